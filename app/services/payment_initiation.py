# app/services/payment_initiation.py
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Sequence, Union
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from app.core.errors import CheckoutRejection, EnrollmentError, RejectionReason
from app.models.course import Course
from app.models.order import Order
from app.services.course_enrollment import CourseEnrollmentService
from app.services.discount import DiscountEvaluator, DiscountQuote
from app.services.order import OrderDraft, OrderStore
from app.services.post_commit import PostCommitDispatcher
from app.services.referral import ReferralLedger
from app.services.transitions import SUCCESS_EFFECTS, OrderStatus
from app.utils.money import ZERO, to_money
from app.utils.shopier import ProviderRedirect, ShopierGateway

logger = logging.getLogger(__name__)

FREE_PAYMENT_METHOD = "free_discount"
PROVIDER_PAYMENT_METHOD = "shopier"


def resolve_buyer_ref(
    token_subject: Optional[str], user_id: Optional[str], email: str
) -> str:
    """
    The identity we enroll. A missing or malformed external id (one that
    looks like an email address) falls back to the buyer's email.
    """
    candidate = (token_subject or user_id or "").strip()
    if not candidate or "@" in candidate:
        if candidate:
            logger.warning(
                f"Unusable user id {candidate!r}, enrolling by email {email}"
            )
        return email.strip().lower()
    return candidate


@dataclass
class BuyerDetails:
    email: str
    name: str
    buyer_ref: str
    locale: str = "tr"
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    zip_code: Optional[str] = None
    notes: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    extra: dict = field(default_factory=dict)

    def billing_data(self) -> dict:
        data = {
            "address": self.address,
            "city": self.city,
            "zip_code": self.zip_code,
            "notes": self.notes,
        }
        data.update(self.extra)
        return {key: value for key, value in data.items() if value}


@dataclass(frozen=True)
class FreeEnrollmentResult:
    order_id: str
    redirect_url: str
    enrollment_id: int
    outcome: str


@dataclass(frozen=True)
class PriceBreakdown:
    effective_price: Decimal
    discount_amount: Decimal
    amount: Decimal
    quote: Optional[DiscountQuote] = None

    @property
    def is_free(self) -> bool:
        return self.amount <= ZERO


class PaymentInitiationService:
    """
    Turns a checkout request into either a completed free enrollment or a
    pending order plus the signed provider form.

    The order row, the discount redemption and the referral record are
    written in one transaction, so a rejected code leaves nothing behind.
    """

    def __init__(
        self,
        db: Session,
        gateway: ShopierGateway,
        discounts: DiscountEvaluator,
        referrals: ReferralLedger,
        orders: OrderStore,
        enrollments: CourseEnrollmentService,
        dispatcher: PostCommitDispatcher,
        frontend_url: str,
        min_amount: Decimal = Decimal("0.01"),
    ):
        self.db = db
        self.gateway = gateway
        self.discounts = discounts
        self.referrals = referrals
        self.orders = orders
        self.enrollments = enrollments
        self.dispatcher = dispatcher
        self.frontend_url = frontend_url.rstrip("/")
        self.min_amount = to_money(min_amount)

    @staticmethod
    def get_course_or_reject(db: Session, course_id: int) -> Course:
        course = (
            db.query(Course)
            .filter(Course.id == course_id, Course.is_active.is_(True))
            .first()
        )
        if course is None:
            raise CheckoutRejection(RejectionReason.COURSE_NOT_FOUND, status_code=404)
        return course

    def get_course(self, course_id: int) -> Course:
        return self.get_course_or_reject(self.db, course_id)

    @staticmethod
    def price(
        course: Course, quote: Optional[DiscountQuote], now: datetime
    ) -> PriceBreakdown:
        effective_price = to_money(course.effective_price(now))
        discount = quote.discount_amount if quote else ZERO
        return PriceBreakdown(
            effective_price=effective_price,
            discount_amount=discount,
            amount=to_money(effective_price - discount),
            quote=quote,
        )

    def success_url(self, order: Order, free: bool = False) -> str:
        params = {
            "courseId": order.course_id,
            "name": order.course_name,
            "orderId": order.order_id,
        }
        if free:
            params["free"] = "true"
        return f"{self.frontend_url}/{order.locale}/payment-success?{urlencode(params)}"

    def initiate(
        self,
        course_id: int,
        buyer: BuyerDetails,
        discount_codes: Sequence[str] = (),
        referral_code: Optional[str] = None,
    ) -> Union[FreeEnrollmentResult, ProviderRedirect]:
        now = datetime.now(timezone.utc)
        course = self.get_course(course_id)

        codes = [c.strip() for c in discount_codes if c and c.strip()]
        referral_code = (referral_code or "").strip() or None

        order_id = self.orders.new_order_id()
        try:
            quote = None
            if codes:
                # Only the last code is honoured; any earlier one is a second discount
                quote = self.discounts.redeem(
                    codes[-1], course, order_id, prior_applied=codes[:-1], now=now
                )
            if referral_code:
                self.referrals.consume(referral_code, buyer.buyer_ref, order_id)

            pricing = self.price(course, quote, now)
            if pricing.is_free:
                return self._complete_free(
                    order_id, course, buyer, pricing, referral_code
                )

            amount = max(pricing.amount, self.min_amount)
            order = self.orders.create(
                self._draft(order_id, course, buyer, pricing, amount, referral_code)
            )
            self.orders.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Checkout {order.order_id}: course={course.id} buyer={buyer.buyer_ref} "
            f"price={pricing.effective_price} discount={pricing.discount_amount} "
            f"amount={order.amount}"
        )
        return self.gateway.build_payment_form(order)

    def _draft(
        self,
        order_id: str,
        course: Course,
        buyer: BuyerDetails,
        pricing: PriceBreakdown,
        amount: Decimal,
        referral_code: Optional[str],
        free: bool = False,
    ) -> OrderDraft:
        return OrderDraft(
            order_id=order_id,
            course_id=course.id,
            course_name=course.title,
            buyer_email=buyer.email,
            buyer_ref=buyer.buyer_ref,
            buyer_name=buyer.name,
            buyer_phone=buyer.phone,
            locale=buyer.locale,
            original_amount=pricing.effective_price,
            discount_amount=pricing.discount_amount,
            amount=amount,
            discount_code=pricing.quote.code if pricing.quote else None,
            referral_code=referral_code,
            status=OrderStatus.COMPLETED if free else OrderStatus.PENDING,
            payment_method=FREE_PAYMENT_METHOD if free else PROVIDER_PAYMENT_METHOD,
            custom_data=buyer.billing_data(),
            ip_address=buyer.ip_address,
            user_agent=buyer.user_agent,
        )

    def _complete_free(
        self,
        order_id: str,
        course: Course,
        buyer: BuyerDetails,
        pricing: PriceBreakdown,
        referral_code: Optional[str],
    ) -> FreeEnrollmentResult:
        order = self.orders.create(
            self._draft(
                order_id,
                course,
                buyer,
                pricing,
                ZERO,
                referral_code,
                free=True,
            )
        )
        try:
            enrollment = self.enrollments.ensure_enrolled(buyer.buyer_ref, course.id)
        except EnrollmentError:
            logger.error(
                f"Free enrollment failed for order {order_id}, rolling back",
                exc_info=True,
            )
            raise
        self.orders.attach_enrollment(order.order_id, enrollment.enrollment_id)
        self.orders.commit()

        logger.info(
            f"Free checkout {order.order_id}: course={course.id} "
            f"buyer={buyer.buyer_ref} enrollment={enrollment.outcome.value}"
        )
        self.dispatcher.run(order, SUCCESS_EFFECTS)

        return FreeEnrollmentResult(
            order_id=order.order_id,
            redirect_url=self.success_url(order, free=True),
            enrollment_id=enrollment.enrollment_id,
            outcome=enrollment.outcome.value,
        )
