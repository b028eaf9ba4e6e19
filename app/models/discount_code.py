# app/models/discount_code.py
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.sql import func

from app.core.database import Base


class DiscountCode(Base):
    """
    Discount codes redeemable at checkout.
    Created out-of-band by admins, or issued as referral rewards.
    """

    __tablename__ = "discount_codes"

    id = Column(Integer, primary_key=True, index=True)

    code = Column(String(64), nullable=False)
    discount_type = Column(
        String(20), nullable=False, default="percentage"
    )  # 'percentage', 'fixed', 'balance'
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)

    valid_until = Column(Date, nullable=False)
    applicable_courses = Column(JSON, nullable=False, default=list)

    # Usage
    usage_count = Column(Integer, nullable=False, default=0)
    max_usage = Column(Integer, nullable=False, default=1)

    # Running balance (gift-card style codes)
    has_balance_limit = Column(Boolean, nullable=False, default=False)
    remaining_balance = Column(Numeric(10, 2), nullable=True)

    # Reward codes are issued to the owner of a referral code
    owner_user_id = Column(String(255), nullable=True, index=True)
    is_reward = Column(Boolean, nullable=False, default=False)

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("uq_discount_codes_code_lower", func.lower(code), unique=True),
        CheckConstraint(
            "remaining_balance IS NULL OR remaining_balance >= 0",
            name="ck_discount_codes_balance_non_negative",
        ),
    )

    @property
    def is_balance_limited(self) -> bool:
        return bool(self.has_balance_limit) and self.remaining_balance is not None

    def __repr__(self):
        return f"<DiscountCode(id={self.id}, code='{self.code}', type={self.discount_type})>"
