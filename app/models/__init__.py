"""
Models package initialization
Import all models so the metadata is complete
"""

from .course import Course
from .course_enrollment import CourseEnrollment
from .discount_code import DiscountCode
from .discount_redemption import DiscountRedemption
from .order import Order
from .referral import ReferralCode, ReferralUse

# Make models available at package level
__all__ = [
    "Course",
    "CourseEnrollment",
    "DiscountCode",
    "DiscountRedemption",
    "Order",
    "ReferralCode",
    "ReferralUse",
]
