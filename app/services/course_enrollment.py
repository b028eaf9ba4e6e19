# app/services/course_enrollment.py
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from app.core.errors import EnrollmentError
from app.models.course_enrollment import CourseEnrollment
from app.services.transitions import (
    EnrollmentOutcome,
    enrollment_state_of,
    enrollment_transition,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnrollmentResult:
    enrollment_id: int
    outcome: EnrollmentOutcome

    @property
    def already_enrolled(self) -> bool:
        return self.outcome == EnrollmentOutcome.ALREADY_ENROLLED


class CourseEnrollmentService:
    """
    Grants course access. Writes are flushed, never committed here; the
    caller owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def _find(self, user_id: str, course_id: int) -> Optional[CourseEnrollment]:
        return (
            self.db.query(CourseEnrollment)
            .filter(
                and_(
                    CourseEnrollment.user_id == user_id,
                    CourseEnrollment.course_id == course_id,
                )
            )
            .first()
        )

    def ensure_enrolled(self, user_id: str, course_id: int) -> EnrollmentResult:
        """
        Make sure the user has an active enrollment in the course.

        absent -> new row, inactive -> same row reactivated with progress
        reset, active -> untouched. Raises EnrollmentError when the store
        refuses the write.
        """
        try:
            enrollment = self._find(user_id, course_id)
            transition = enrollment_transition(enrollment_state_of(enrollment))
            now = datetime.now(timezone.utc)

            if transition.write == "insert":
                enrollment = CourseEnrollment(
                    user_id=user_id,
                    course_id=course_id,
                    is_active=True,
                    progress_percentage=0,
                    enrolled_at=now,
                )
                self.db.add(enrollment)
                self.db.flush()
            elif transition.write == "reactivate":
                enrollment.is_active = True
                enrollment.progress_percentage = 0
                enrollment.enrolled_at = now
                self.db.flush()
        except IntegrityError as e:
            # Lost an insert race against a concurrent delivery of the same order
            self.db.rollback()
            logger.warning(
                f"Concurrent enrollment write for user={user_id} course={course_id}"
            )
            raise EnrollmentError("Enrollment already being created") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Enrollment write failed for user={user_id} course={course_id}: {e}"
            )
            raise EnrollmentError(str(e)) from e

        logger.info(
            f"Enrollment {enrollment.id} for user={user_id} course={course_id}: "
            f"{transition.outcome.value}"
        )
        return EnrollmentResult(enrollment_id=enrollment.id, outcome=transition.outcome)

    def get_user_enrollments(
        self, user_id: str, page: int = 1, size: int = 20
    ) -> Tuple[List[CourseEnrollment], dict]:
        """
        Get all active enrollments of a user with pagination.
        Returns enrollments with course details.
        """
        query = (
            self.db.query(CourseEnrollment)
            .options(joinedload(CourseEnrollment.course))
            .filter(
                CourseEnrollment.user_id == user_id,
                CourseEnrollment.is_active.is_(True),
            )
        )

        # Get total count
        total = query.count()

        # Apply pagination
        offset = (page - 1) * size
        enrollments = (
            query.order_by(CourseEnrollment.enrolled_at.desc())
            .offset(offset)
            .limit(size)
            .all()
        )

        # Pagination metadata
        total_pages = math.ceil(total / size) if size > 0 else 0
        pagination = {
            "total": total,
            "page": page,
            "size": size,
            "total_pages": total_pages,
        }

        return enrollments, pagination

    def is_user_enrolled(self, user_id: str, course_id: int) -> bool:
        """Check if user has an active enrollment in a course"""
        enrollment = self._find(user_id, course_id)
        return enrollment is not None and bool(enrollment.is_active)
