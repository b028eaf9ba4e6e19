"""
Application initialization module
Checks the payment configuration before the app starts serving checkouts
"""

import logging

from sqlalchemy.orm import Session

from app.core.config import Settings, settings
from app.models.course import Course

logger = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    pass


def check_payment_settings(config: Settings = settings) -> None:
    """
    Refuse to start with the signature bypass switched on in production.
    Missing provider credentials only disable paid checkout, so they warn.
    """
    if config.production and config.payment_sandbox_enabled:
        logger.error("❌ PAYMENT_SANDBOX_ENABLED must be off in production")
        raise ConfigurationError(
            "Sandbox signature bypass cannot be enabled in production"
        )

    if config.sandbox_active:
        logger.warning(
            f"⚠️  Sandbox orders ({', '.join(config.payment_sandbox_prefixes)}) "
            f"skip signature verification"
        )

    if not config.shopier_api_key or not config.shopier_api_secret:
        logger.warning(
            "⚠️  SHOPIER_API_KEY / SHOPIER_API_SECRET missing: checkout will answer 500"
        )
    else:
        logger.info("✅ Shopier credentials configured")


def initialize_application(db: Session) -> None:
    """
    Run all application initialization tasks.

    Args:
        db: Database session
    """
    logger.info("🚀 Starting application initialization...")

    check_payment_settings()

    active_courses = db.query(Course).filter(Course.is_active.is_(True)).count()
    logger.info(f"✅ {active_courses} active course(s) available for checkout")

    logger.info("✅ Application initialization completed!")
