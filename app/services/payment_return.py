# app/services/payment_return.py
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.decorator import StorageError
from app.core.errors import EnrollmentError
from app.models.order import Order
from app.services.course_enrollment import CourseEnrollmentService, EnrollmentResult
from app.services.order import OrderStore
from app.services.post_commit import PostCommitDispatcher
from app.services.signature import SignatureVerifier
from app.services.transitions import (
    IllegalTransition,
    OrderEvent,
    OrderStatus,
    OrderTransition,
    order_transition,
)
from app.utils.callback_parser import CallbackPayload

logger = logging.getLogger(__name__)


class FailureReason:
    INVALID_SIGNATURE = "invalid_signature"
    MISSING_ORDER_ID = "missing_order_id"
    ORDER_NOT_FOUND = "order_not_found"
    PAYMENT_FAILED = "payment_failed"
    ORDER_NOT_PAYABLE = "order_not_payable"
    PAYMENT_PENDING = "payment_pending"
    INTERNAL_ERROR = "internal_error"


@dataclass(frozen=True)
class ReturnOutcome:
    redirect_url: str
    success: bool
    reason: Optional[str] = None
    order_id: Optional[str] = None
    enrolled: bool = False


class PaymentReturnHandler:
    """
    Reconciles a provider callback with the stored order.

    Every write is conditional, so the same callback delivered twice ends in
    the same state: one completed order, one active enrollment, and the
    post-commit effects run once, on the pending -> completed step.

    Only a verified (or sandbox) payload may change an order. With
    ``require_signature`` off, an unsigned payload is answered from the
    order's stored state and writes nothing.
    """

    def __init__(
        self,
        db: Session,
        verifier: SignatureVerifier,
        orders: OrderStore,
        enrollments: CourseEnrollmentService,
        dispatcher: PostCommitDispatcher,
        frontend_url: str,
        default_locale: str = "tr",
        require_signature: bool = False,
    ):
        self.db = db
        self.verifier = verifier
        self.orders = orders
        self.enrollments = enrollments
        self.dispatcher = dispatcher
        self.frontend_url = frontend_url.rstrip("/")
        self.default_locale = default_locale
        self.require_signature = require_signature

    # ------------------------------------------------------------------
    # Redirect targets
    # ------------------------------------------------------------------
    def failure(
        self,
        reason: str,
        order_id: Optional[str] = None,
        status: Optional[str] = None,
        locale: Optional[str] = None,
    ) -> ReturnOutcome:
        params = {"error": reason}
        if order_id:
            params["orderId"] = order_id
        if status:
            params["status"] = status
        url = (
            f"{self.frontend_url}/{locale or self.default_locale}/payment-failed?"
            f"{urlencode(params)}"
        )
        return ReturnOutcome(redirect_url=url, success=False, reason=reason, order_id=order_id)

    def success(self, order: Order, payment_id: Optional[str], enrolled: bool) -> ReturnOutcome:
        params = {
            "orderId": order.order_id,
            "paymentId": payment_id or order.provider_payment_id or "",
            "courseId": order.course_id,
            "name": order.course_name,
            "enrolled": "true" if enrolled else "false",
        }
        url = f"{self.frontend_url}/{order.locale}/payment-success?{urlencode(params)}"
        return ReturnOutcome(
            redirect_url=url, success=True, order_id=order.order_id, enrolled=enrolled
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def handle(self, payload: CallbackPayload) -> ReturnOutcome:
        try:
            return self._handle(payload)
        except Exception:
            logger.exception(f"Unexpected error handling callback for {payload.order_id}")
            self.db.rollback()
            return self.failure(FailureReason.INTERNAL_ERROR, order_id=payload.order_id)

    def _handle(self, payload: CallbackPayload) -> ReturnOutcome:
        verified = self._check_signature(payload)
        if verified is False:
            return self.failure(FailureReason.INVALID_SIGNATURE)

        if not payload.order_id:
            logger.warning("Callback without an order id")
            return self.failure(FailureReason.MISSING_ORDER_ID)

        order = self.orders.find_by_id(payload.order_id)
        if order is None:
            logger.warning(f"Callback for unknown order {payload.order_id}")
            return self.failure(FailureReason.ORDER_NOT_FOUND, order_id=payload.order_id)

        if verified is None:
            return self._current_state(order, payload)

        if not payload.is_success:
            return self._record_failure(order, payload)

        try:
            transition = self._complete(order, payload)
        except IllegalTransition:
            logger.warning(
                f"Success callback for order {order.order_id} in state {order.status}"
            )
            return self.failure(
                FailureReason.ORDER_NOT_PAYABLE,
                order_id=order.order_id,
                locale=order.locale,
            )

        enrollment = self._ensure_enrollment(order)

        if transition.effects:
            self.dispatcher.run(order, transition.effects)

        return self.success(order, payload.payment_id, enrolled=enrollment is not None)

    def _check_signature(self, payload: CallbackPayload) -> Optional[bool]:
        """True when verified, False when refused, None when unsigned but tolerated."""
        if self.verifier.is_sandbox_order(payload.order_id):
            logger.warning(f"Sandbox order {payload.order_id}, signature not checked")
            return True
        if not payload.has_signature:
            if self.require_signature:
                logger.warning(f"Unsigned callback for {payload.order_id} rejected")
                return False
            return None
        return self.verifier.verify(
            payload.random_nr,
            payload.order_id,
            payload.total_order_value,
            payload.currency,
            payload.signature,
        )

    def _current_state(self, order: Order, payload: CallbackPayload) -> ReturnOutcome:
        logger.info(
            f"Unsigned return for order {order.order_id}, reporting stored status {order.status}"
        )
        if order.status == OrderStatus.COMPLETED.value:
            return self.success(order, payload.payment_id, enrolled=bool(order.enrolled))
        reason = (
            FailureReason.PAYMENT_FAILED
            if order.status == OrderStatus.FAILED.value
            else FailureReason.PAYMENT_PENDING
        )
        return self.failure(
            reason, order_id=order.order_id, status=order.status, locale=order.locale
        )

    def _record_failure(self, order: Order, payload: CallbackPayload) -> ReturnOutcome:
        transition = order_transition(order.status, OrderEvent.PAYMENT_FAILED)
        if transition.changed:
            reason = f"Payment failed with status: {payload.status}"
            if self.orders.mark_failed(order.order_id, reason):
                self.orders.commit()
                logger.info(f"Order {order.order_id} marked failed ({payload.status})")
        return self.failure(
            FailureReason.PAYMENT_FAILED,
            order_id=order.order_id,
            status=payload.status or "unknown",
            locale=order.locale,
        )

    def _complete(self, order: Order, payload: CallbackPayload) -> OrderTransition:
        transition = order_transition(order.status, OrderEvent.PAYMENT_SUCCEEDED)
        if not transition.changed:
            logger.info(f"Order {order.order_id} already {order.status}, replay")
            return transition

        if self.orders.mark_completed(order.order_id, payload.payment_id):
            self.orders.commit()
            logger.info(f"Order {order.order_id} marked completed")
            return transition

        # Another delivery moved the row first; follow whatever it wrote
        self.db.refresh(order)
        return order_transition(order.status, OrderEvent.PAYMENT_SUCCEEDED)

    def _ensure_enrollment(self, order: Order) -> Optional[EnrollmentResult]:
        try:
            enrollment = self.enrollments.ensure_enrolled(order.buyer_ref, order.course_id)
            self.orders.attach_enrollment(order.order_id, enrollment.enrollment_id)
            self.orders.commit()
        except (EnrollmentError, StorageError, SQLAlchemyError):
            self.db.rollback()
            logger.error(
                f"Payment for order {order.order_id} succeeded but enrollment failed",
                exc_info=True,
            )
            return None
        return enrollment
