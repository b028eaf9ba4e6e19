# app/routers/course_enrollment.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.dependencies import get_current_user_id
from app.schemas.course_enrollment import (
    EnrolledCourseResponse,
    EnrolledCoursesListResponse,
    EnrollmentCheckResponse,
)
from app.services.course_enrollment import CourseEnrollmentService

router = APIRouter(
    prefix="/enrollments",
    tags=["Course Enrollments"],
)


@router.get("/me", response_model=EnrolledCoursesListResponse)
def get_my_enrollments(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Get the current user's active enrollments with pagination.
    """
    service = CourseEnrollmentService(db)
    enrollments, pagination = service.get_user_enrollments(user_id, page, size)

    items = [
        EnrolledCourseResponse(
            id=enrollment.id,
            user_id=enrollment.user_id,
            course_id=enrollment.course_id,
            is_active=enrollment.is_active,
            progress_percentage=enrollment.progress_percentage,
            enrolled_at=enrollment.enrolled_at,
            last_accessed_at=enrollment.last_accessed_at,
            course_name=enrollment.course.title,
            course_slug=enrollment.course.slug,
            course_type=enrollment.course.course_type,
        )
        for enrollment in enrollments
    ]
    return EnrolledCoursesListResponse(enrollments=items, **pagination)


@router.get("/check/{course_id}", response_model=EnrollmentCheckResponse)
def check_enrollment(
    course_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Check if the current user has access to a course"""
    service = CourseEnrollmentService(db)
    return EnrollmentCheckResponse(
        course_id=course_id, is_enrolled=service.is_user_enrolled(user_id, course_id)
    )
