# app/schemas/course_enrollment.py
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

# ==================== Course Enrollment Schemas ====================


class EnrolledCourseResponse(BaseModel):
    """An active enrollment with the course it grants"""

    id: int
    user_id: str
    course_id: int
    is_active: bool
    progress_percentage: Decimal = Field(
        Decimal("0"), description="Course completion percentage"
    )
    enrolled_at: datetime
    last_accessed_at: Optional[datetime]

    # Course details
    course_name: str
    course_slug: str
    course_type: str

    class Config:
        from_attributes = True


class EnrolledCoursesListResponse(BaseModel):
    """Response for list of enrolled courses with pagination"""

    enrollments: list[EnrolledCourseResponse]
    total: int
    page: int
    size: int
    total_pages: int


class EnrollmentCheckResponse(BaseModel):
    course_id: int
    is_enrolled: bool
