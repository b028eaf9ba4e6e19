from decimal import Decimal
from typing import List, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application Information
    app_name: str = Field(default="MyUNI Checkout")
    app_description: str = Field(default="Course checkout and payment reconciliation")
    app_version: str = Field(default="1.0.0")
    app_url: str = Field(default="http://localhost:8000")
    frontend_url: str = Field(default="http://localhost:3000")
    debug: bool = Field(default=True)
    production: bool = Field(default=False)
    timezone: str = Field(default="UTC")
    default_locale: str = Field(default="tr")
    supported_locales: List[str] = Field(default=["tr", "en"])

    # Database Configuration
    database_url: Optional[str] = Field(default=None)
    db_connection: str = Field(default="postgresql")
    db_host: str = Field(default="127.0.0.1")
    db_port: int = Field(default=5432)
    db_database: str = Field(default="myuni")
    db_username: str = Field(default="home")
    db_password: str = Field(default="123")
    db_echo: bool = Field(default=False)

    # Security Settings
    cors_allowed_origins: List[str] = Field(default=["http://localhost:3000"])

    # Identity tokens (issued by the hosted auth provider)
    jwt_secret: str = Field(default="your-secret-key-change-in-production")
    jwt_algorithm: str = Field(default="HS256")
    jwt_issuer: Optional[str] = Field(default=None)

    # Email (SMTP)
    mail_enabled: bool = Field(default=False)
    mail_host: str = Field(default="smtp.example.com")
    mail_port: int = Field(default=587)
    mail_username: str = Field(default="your@email.com")
    mail_password: str = Field(default="")
    mail_encryption: str = Field(default="tls")
    mail_timeout: int = Field(default=10)
    mail_from_address: str = Field(default="no-reply@example.com")
    mail_from_name: str = Field(default="MyUNI")

    # Logging
    log_level: str = Field(default="info")
    log_file: str = Field(default="logs/app.log")

    # Payment provider (Shopier)
    shopier_api_key: str = Field(default="")
    shopier_api_secret: str = Field(default="")
    shopier_form_action: str = Field(
        default="https://www.shopier.com/ShowProduct/api_pay4.php"
    )
    shopier_website_index: int = Field(default=1)
    shopier_currency: int = Field(default=0)  # 0 = TRY
    shopier_product_type: int = Field(default=1)  # 1 = digital good

    # Checkout
    order_id_prefix: str = Field(default="MYU")
    payment_min_amount: Decimal = Field(default=Decimal("0.01"))
    payment_require_signature: bool = Field(default=False)
    payment_sandbox_enabled: bool = Field(default=False)
    payment_sandbox_prefixes: List[str] = Field(default=["TEST-", "MOCK-"])

    # Referral rewards
    referral_code_prefix: str = Field(default="REF")
    referral_reward_prefix: str = Field(default="REWARD")
    referral_reward_percentage: Decimal = Field(default=Decimal("15"))
    referral_reward_valid_days: int = Field(default=3)

    # Rate limiting
    redis_url: str = Field(default="redis://localhost:6379")
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_storage_uri: Optional[str] = Field(default=None)
    redis_rate_limit: str = Field(default="60/minute")
    checkout_rate_limit: str = Field(default="10/minute")

    # ============================
    # Generic comma-separated parser
    # ============================
    @staticmethod
    def _parse_csv(value, default):
        if isinstance(value, str):
            items = [x.strip() for x in value.split(",") if x.strip()]
            return items if items else default
        if isinstance(value, list):
            return value
        return default

    @field_validator("cors_allowed_origins", mode="before")
    def validate_cors(cls, v):
        return cls._parse_csv(v, ["http://localhost:3000"])

    @field_validator("supported_locales", mode="before")
    def validate_locales(cls, v):
        return cls._parse_csv(v, ["tr", "en"])

    @field_validator("payment_sandbox_prefixes", mode="before")
    def validate_sandbox_prefixes(cls, v):
        return cls._parse_csv(v, ["TEST-", "MOCK-"])

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return "postgresql+psycopg2://{user}:{password}@{host}:{port}/{database}".format(
            user=self.db_username,
            password=self.db_password,
            host=self.db_host,
            port=self.db_port,
            database=self.db_database,
        )

    @property
    def sandbox_active(self) -> bool:
        """Signature bypass for synthetic order ids, never in production."""
        return self.payment_sandbox_enabled and not self.production

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


def load_settings():
    try:
        settings = Settings()
        print("✅ Settings loaded successfully!")
        return settings
    except ValidationError as e:
        print("❌ Validation Error:", e)
        raise


settings = load_settings()
