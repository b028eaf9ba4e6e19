# app/models/discount_redemption.py
from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class DiscountRedemption(Base):
    """One applied discount per order; its presence marks the code as used."""

    __tablename__ = "discount_redemptions"

    id = Column(Integer, primary_key=True, index=True)

    order_id = Column(String(64), nullable=False, unique=True, index=True)
    discount_code_id = Column(
        Integer, ForeignKey("discount_codes.id"), nullable=False, index=True
    )
    code = Column(String(64), nullable=False)

    amount = Column(Numeric(10, 2), nullable=False)
    balance_after = Column(Numeric(10, 2), nullable=True)

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    discount_code = relationship("DiscountCode", backref="redemptions")

    def __repr__(self):
        return f"<DiscountRedemption(order_id='{self.order_id}', code='{self.code}', amount={self.amount})>"
