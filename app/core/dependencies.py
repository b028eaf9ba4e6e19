import logging
from typing import Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.errors import PaymentConfigurationError
from app.core.security import jwt_manager
from app.services.course_enrollment import CourseEnrollmentService
from app.services.discount import DiscountEvaluator
from app.services.order import OrderStore
from app.services.payment_initiation import PaymentInitiationService
from app.services.payment_return import PaymentReturnHandler
from app.services.post_commit import PostCommitDispatcher
from app.services.referral import DatabaseReferralLedger
from app.services.signature import SignatureVerifier
from app.utils.mailer import Mailer
from app.utils.shopier import ShopierGateway

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


# ============================================================================
# Identity
# ============================================================================
async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Security(security),
) -> str:
    """
    Dependency that requires a valid Bearer token and returns its subject.
    Raises 401 Unauthorized if the token is missing or invalid.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = jwt_manager.verify_token(credentials.credentials)
    return str(payload["sub"])


async def get_optional_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
) -> Optional[str]:
    """
    Returns the token subject if a valid token is provided, or None otherwise.
    Checkout works for guests, so a bad token is treated as anonymous.
    """
    if not credentials:
        return None

    try:
        payload = jwt_manager.verify_token(credentials.credentials)
    except HTTPException:
        return None

    return str(payload["sub"])


# ============================================================================
# Clients
# ============================================================================
def get_signature_verifier() -> SignatureVerifier:
    return SignatureVerifier(
        secret=settings.shopier_api_secret,
        sandbox_prefixes=settings.payment_sandbox_prefixes,
        sandbox_enabled=settings.sandbox_active,
    )


def get_shopier_gateway(
    verifier: SignatureVerifier = Depends(get_signature_verifier),
) -> ShopierGateway:
    if not settings.shopier_api_key or not settings.shopier_api_secret:
        logger.error("Shopier API key or secret is not configured")
        raise PaymentConfigurationError()

    return ShopierGateway(
        api_key=settings.shopier_api_key,
        signer=verifier,
        base_url=settings.app_url,
        form_action=settings.shopier_form_action,
        website_index=settings.shopier_website_index,
        currency=settings.shopier_currency,
        product_type=settings.shopier_product_type,
    )


def get_mailer() -> Mailer:
    return Mailer.from_settings()


# ============================================================================
# Services
# ============================================================================
def get_referral_ledger(db: Session = Depends(get_db)) -> DatabaseReferralLedger:
    return DatabaseReferralLedger(
        db,
        code_prefix=settings.referral_code_prefix,
        reward_prefix=settings.referral_reward_prefix,
        reward_percentage=settings.referral_reward_percentage,
        reward_valid_days=settings.referral_reward_valid_days,
    )


def get_order_store(db: Session = Depends(get_db)) -> OrderStore:
    return OrderStore(db, order_id_prefix=settings.order_id_prefix)


def get_post_commit_dispatcher(
    db: Session = Depends(get_db),
    referrals: DatabaseReferralLedger = Depends(get_referral_ledger),
    mailer: Mailer = Depends(get_mailer),
) -> PostCommitDispatcher:
    return PostCommitDispatcher(db, referrals=referrals, mailer=mailer)


def get_payment_initiation_service(
    db: Session = Depends(get_db),
    gateway: ShopierGateway = Depends(get_shopier_gateway),
    referrals: DatabaseReferralLedger = Depends(get_referral_ledger),
    orders: OrderStore = Depends(get_order_store),
    dispatcher: PostCommitDispatcher = Depends(get_post_commit_dispatcher),
) -> PaymentInitiationService:
    return PaymentInitiationService(
        db,
        gateway=gateway,
        discounts=DiscountEvaluator(db),
        referrals=referrals,
        orders=orders,
        enrollments=CourseEnrollmentService(db),
        dispatcher=dispatcher,
        frontend_url=settings.frontend_url,
        min_amount=settings.payment_min_amount,
    )


def _payment_return_handler(
    db: Session,
    verifier: SignatureVerifier,
    orders: OrderStore,
    dispatcher: PostCommitDispatcher,
    require_signature: bool,
) -> PaymentReturnHandler:
    return PaymentReturnHandler(
        db,
        verifier=verifier,
        orders=orders,
        enrollments=CourseEnrollmentService(db),
        dispatcher=dispatcher,
        frontend_url=settings.frontend_url,
        default_locale=settings.default_locale,
        require_signature=require_signature,
    )


def get_payment_callback_handler(
    db: Session = Depends(get_db),
    verifier: SignatureVerifier = Depends(get_signature_verifier),
    orders: OrderStore = Depends(get_order_store),
    dispatcher: PostCommitDispatcher = Depends(get_post_commit_dispatcher),
) -> PaymentReturnHandler:
    """Server-to-server callback: always signed."""
    return _payment_return_handler(db, verifier, orders, dispatcher, True)


def get_payment_return_handler(
    db: Session = Depends(get_db),
    verifier: SignatureVerifier = Depends(get_signature_verifier),
    orders: OrderStore = Depends(get_order_store),
    dispatcher: PostCommitDispatcher = Depends(get_post_commit_dispatcher),
) -> PaymentReturnHandler:
    """Browser return: may arrive unsigned, then it only reports the stored state."""
    return _payment_return_handler(
        db, verifier, orders, dispatcher, settings.payment_require_signature
    )
