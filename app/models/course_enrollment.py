# app/models/course_enrollment.py
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class CourseEnrollment(Base):
    """
    Grants a user access to a course.
    One row per (user, course); unenrolling deactivates the row and a later
    purchase reactivates it.
    """

    __tablename__ = "course_enrollments"

    id = Column(Integer, primary_key=True, index=True)

    # User and Course relationship
    user_id = Column(String(255), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)

    is_active = Column(Boolean, nullable=False, default=True)

    # Progress tracking
    progress_percentage = Column(Numeric(5, 2), nullable=False, default=0)

    # Timestamps
    enrolled_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_accessed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    course = relationship("Course", backref="enrollments")

    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_enrollment_user_course"),
    )

    def __repr__(self):
        return f"<CourseEnrollment(id={self.id}, user_id={self.user_id}, course_id={self.course_id}, active={self.is_active})>"
