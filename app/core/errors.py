import enum


class RejectionReason(str, enum.Enum):
    # Discount codes
    EMPTY_CODE = "empty_code"
    ONLY_ONE_DISCOUNT = "only_one_discount"
    INVALID_CODE = "invalid_code"
    EXPIRED = "expired"
    NOT_APPLICABLE = "not_applicable"
    USAGE_LIMIT_REACHED = "usage_limit_reached"
    NOT_USABLE = "not_usable"

    # Referral codes
    EMPTY_REFERRAL = "empty_referral"
    INVALID_REFERRAL = "invalid_referral"
    SELF_REFERRAL = "self_referral"
    REFERRAL_ALREADY_APPLIED = "referral_already_applied"

    # Checkout
    COURSE_NOT_FOUND = "course_not_found"


REJECTION_MESSAGES = {
    RejectionReason.EMPTY_CODE: "Please enter a discount code",
    RejectionReason.ONLY_ONE_DISCOUNT: "You can only use one discount code",
    RejectionReason.INVALID_CODE: "Invalid discount code",
    RejectionReason.EXPIRED: "This discount code has expired",
    RejectionReason.NOT_APPLICABLE: "This discount code is not applicable for this course",
    RejectionReason.USAGE_LIMIT_REACHED: "This code has reached its usage limit",
    RejectionReason.NOT_USABLE: "This discount code can no longer be used",
    RejectionReason.EMPTY_REFERRAL: "Please enter a referral code",
    RejectionReason.INVALID_REFERRAL: "Invalid referral code",
    RejectionReason.SELF_REFERRAL: "You cannot use your own referral code",
    RejectionReason.REFERRAL_ALREADY_APPLIED: "Referral code already applied",
    RejectionReason.COURSE_NOT_FOUND: "Course not found or not active",
}


class CheckoutRejection(Exception):
    """A business rule refused the checkout; nothing was persisted."""

    def __init__(self, reason: RejectionReason, status_code: int = 400):
        self.reason = reason
        self.message = REJECTION_MESSAGES.get(reason, reason.value)
        self.status_code = status_code
        super().__init__(self.message)


class PaymentConfigurationError(Exception):
    def __init__(self, message: str = "Payment provider is not configured"):
        self.message = message
        super().__init__(message)


class EnrollmentError(Exception):
    pass
