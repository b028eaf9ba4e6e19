from .checkout import router as checkout_router
from .course_enrollment import router as course_enrollment_router
from .payment import router as payment_router
from .referral import router as referral_router

routes = [
    checkout_router,
    payment_router,
    referral_router,
    course_enrollment_router,
]
