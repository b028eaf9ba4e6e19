# app/services/order.py
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.decorator import storage_guard
from app.models.order import Order
from app.services.transitions import OrderStatus

logger = logging.getLogger(__name__)


def generate_order_id(prefix: str = "MYU", now: Optional[datetime] = None) -> str:
    """``MYU-20250101120000-A1B2C3``: readable in logs, not sequential."""
    now = now or datetime.now(timezone.utc)
    return f"{prefix}-{now.strftime('%Y%m%d%H%M%S')}-{secrets.token_hex(3).upper()}"


@dataclass
class OrderDraft:
    course_id: int
    course_name: str
    buyer_email: str
    buyer_ref: str
    buyer_name: str
    original_amount: Decimal
    discount_amount: Decimal
    amount: Decimal
    locale: str = "tr"
    buyer_phone: Optional[str] = None
    discount_code: Optional[str] = None
    referral_code: Optional[str] = None
    status: OrderStatus = OrderStatus.PENDING
    payment_method: str = "shopier"
    custom_data: Dict[str, Any] = field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    order_id: Optional[str] = None


class OrderStore:
    """
    Durable order records.

    Writes are flushed, not committed; ``commit`` ends the caller's unit of
    work. Status changes are conditional on the row still being pending.
    """

    def __init__(self, db: Session, order_id_prefix: str = "MYU"):
        self.db = db
        self.order_id_prefix = order_id_prefix

    def new_order_id(self) -> str:
        return generate_order_id(self.order_id_prefix)

    @storage_guard("create the order")
    def create(self, draft: OrderDraft) -> Order:
        status = OrderStatus(draft.status)
        order = Order(
            order_id=draft.order_id or self.new_order_id(),
            course_id=draft.course_id,
            course_name=draft.course_name,
            buyer_email=draft.buyer_email,
            buyer_ref=draft.buyer_ref,
            buyer_name=draft.buyer_name,
            buyer_phone=draft.buyer_phone,
            locale=draft.locale,
            original_amount=draft.original_amount,
            discount_amount=draft.discount_amount,
            amount=draft.amount,
            discount_code=draft.discount_code,
            referral_code=draft.referral_code,
            status=status.value,
            payment_method=draft.payment_method,
            custom_data=draft.custom_data or {},
            ip_address=draft.ip_address,
            user_agent=draft.user_agent,
            completed_at=(
                datetime.now(timezone.utc) if status == OrderStatus.COMPLETED else None
            ),
        )
        self.db.add(order)
        self.db.flush()

        logger.info(
            f"Order {order.order_id} created ({status.value}, {draft.payment_method}) "
            f"for course {draft.course_id}: {draft.amount}"
        )
        return order

    @storage_guard("save the order")
    def commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def find_by_id(self, order_id: str) -> Optional[Order]:
        return self.db.query(Order).filter(Order.order_id == order_id).first()

    def find_by_reference(self, reference: str) -> Optional[Order]:
        """Match our own order id, or the payment id the provider issued."""
        return (
            self.db.query(Order)
            .filter(
                or_(
                    Order.order_id == reference,
                    Order.provider_payment_id == reference,
                )
            )
            .order_by(Order.created_at.desc())
            .first()
        )

    def mark_completed(self, order_id: str, provider_payment_id: Optional[str]) -> bool:
        result = self.db.execute(
            update(Order)
            .where(
                Order.order_id == order_id,
                Order.status == OrderStatus.PENDING.value,
            )
            .values(
                status=OrderStatus.COMPLETED.value,
                provider_payment_id=provider_payment_id,
                completed_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    def mark_failed(self, order_id: str, reason: Optional[str]) -> bool:
        result = self.db.execute(
            update(Order)
            .where(
                Order.order_id == order_id,
                Order.status == OrderStatus.PENDING.value,
            )
            .values(status=OrderStatus.FAILED.value, failure_reason=reason)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    @storage_guard("attach the enrollment")
    def attach_enrollment(self, order_id: str, enrollment_id: int) -> None:
        self.db.execute(
            update(Order)
            .where(Order.order_id == order_id)
            .values(enrolled=True, enrollment_id=enrollment_id)
            .execution_options(synchronize_session="fetch")
        )
