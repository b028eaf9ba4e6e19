# app/models/course.py
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from app.core.database import Base


class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)

    # Basic Info
    slug = Column(String(255), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    course_type = Column(String(50), nullable=False, default="online")

    # Pricing
    price = Column(Numeric(10, 2), nullable=False, default=0.00)
    price_before_discount = Column(Numeric(10, 2), nullable=True)
    early_bird_price = Column(Numeric(10, 2), nullable=True)
    early_bird_deadline = Column(DateTime(timezone=True), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

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

    def is_early_bird_active(self, now: Optional[datetime] = None) -> bool:
        if self.early_bird_price is None or self.early_bird_deadline is None:
            return False
        now = now or datetime.now(timezone.utc)
        deadline = self.early_bird_deadline
        # SQLite hands back naive datetimes
        if deadline.tzinfo is None:
            deadline = deadline.replace(tzinfo=timezone.utc)
        return now < deadline

    def effective_price(self, now: Optional[datetime] = None) -> Decimal:
        if self.is_early_bird_active(now):
            return Decimal(self.early_bird_price)
        return Decimal(self.price)

    def __repr__(self):
        return f"<Course(id={self.id}, slug='{self.slug}', price={self.price})>"
