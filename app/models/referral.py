# app/models/referral.py
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class ReferralCode(Base):
    """A user's personal invite code. Gives no price reduction by itself."""

    __tablename__ = "referral_codes"

    id = Column(Integer, primary_key=True, index=True)

    code = Column(String(64), nullable=False, unique=True, index=True)
    owner_user_id = Column(String(255), nullable=False, unique=True, index=True)

    usage_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self):
        return f"<ReferralCode(code='{self.code}', owner='{self.owner_user_id}')>"


class ReferralUse(Base):
    """A referral code recorded against an order by the buyer."""

    __tablename__ = "referral_uses"

    id = Column(Integer, primary_key=True, index=True)

    referral_code_id = Column(
        Integer, ForeignKey("referral_codes.id"), nullable=False, index=True
    )
    buyer_ref = Column(String(255), nullable=False, index=True)
    order_id = Column(String(64), nullable=False, unique=True, index=True)

    # Post-payment bookkeeping, each flipped at most once
    usage_counted = Column(Boolean, nullable=False, default=False)
    reward_code = Column(String(64), nullable=True)

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    referral_code = relationship("ReferralCode", backref="uses")

    def __repr__(self):
        return f"<ReferralUse(order_id='{self.order_id}', buyer='{self.buyer_ref}')>"
