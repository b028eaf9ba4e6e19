# app/models/order.py
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class Order(Base):
    """
    A single checkout attempt for one course.
    Created before the buyer leaves for the payment provider so the
    provider's callback always has a row to reconcile against.
    """

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(64), nullable=False, unique=True, index=True)

    # Course
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    course_name = Column(String(255), nullable=False)

    # Buyer
    buyer_email = Column(String(255), nullable=False, index=True)
    buyer_ref = Column(
        String(255), nullable=False, index=True
    )  # external user id, or the email when none was supplied
    buyer_name = Column(String(255), nullable=False)
    buyer_phone = Column(String(50), nullable=True)
    locale = Column(String(10), nullable=False, default="tr")

    # Pricing
    original_amount = Column(Numeric(10, 2), nullable=False)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    amount = Column(Numeric(10, 2), nullable=False)
    discount_code = Column(String(64), nullable=True)
    referral_code = Column(String(64), nullable=True)

    # Payment
    status = Column(
        String(20), nullable=False, default="pending", index=True
    )  # 'pending', 'completed', 'failed'
    payment_method = Column(
        String(50), nullable=False, default="shopier"
    )  # 'shopier', 'free_discount'
    provider_payment_id = Column(String(255), nullable=True, index=True)
    failure_reason = Column(Text, nullable=True)

    # Enrollment linkage
    enrolled = Column(Boolean, nullable=False, default=False)
    enrollment_id = Column(
        Integer, ForeignKey("course_enrollments.id"), nullable=True
    )

    # Billing details and request metadata
    custom_data = Column(JSON, nullable=False, default=dict)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
    completed_at = Column(DateTime(timezone=True), nullable=True)

    course = relationship("Course")
    enrollment = relationship("CourseEnrollment")

    def __repr__(self):
        return f"<Order(order_id='{self.order_id}', status={self.status}, amount={self.amount})>"
