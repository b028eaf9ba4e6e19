# app/services/discount.py
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from app.core.errors import CheckoutRejection, RejectionReason
from app.models.course import Course
from app.models.discount_code import DiscountCode
from app.models.discount_redemption import DiscountRedemption
from app.utils.money import ZERO, to_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscountQuote:
    code: str
    discount_code_id: int
    effective_price: Decimal
    discount_amount: Decimal
    balance_after: Optional[Decimal] = None

    @property
    def payable_amount(self) -> Decimal:
        return to_money(max(self.effective_price - self.discount_amount, ZERO))


class DiscountEvaluator:
    """
    Applies the discount-code rules to a course price.

    ``quote`` only reads. ``redeem`` re-runs the rules and then consumes one
    use of the code (and balance, for balance-limited codes) for an order in a
    single conditional UPDATE, so two orders racing for the last use cannot
    both win.
    """

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def find_code(self, code: str) -> Optional[DiscountCode]:
        return (
            self.db.query(DiscountCode)
            .filter(func.lower(DiscountCode.code) == code.strip().lower())
            .first()
        )

    def find_redemption(self, order_id: str) -> Optional[DiscountRedemption]:
        return (
            self.db.query(DiscountRedemption)
            .filter(DiscountRedemption.order_id == order_id)
            .first()
        )

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------
    @staticmethod
    def compute_discount(discount_code: DiscountCode, effective_price: Decimal) -> Decimal:
        price = to_money(effective_price)

        if discount_code.is_balance_limited:
            # The balance replaces the kind-specific magnitude
            return to_money(min(Decimal(discount_code.remaining_balance), price))

        magnitude = Decimal(discount_code.discount_amount or 0)
        if discount_code.discount_type == "percentage":
            discount = to_money(price * magnitude / Decimal(100))
        else:
            discount = to_money(magnitude)
        return max(min(discount, price), ZERO)

    def quote(
        self,
        code: Optional[str],
        course: Course,
        prior_applied: Sequence[str] = (),
        now: Optional[datetime] = None,
    ) -> DiscountQuote:
        now = now or datetime.now(timezone.utc)
        normalized = (code or "").strip()

        if not normalized:
            raise CheckoutRejection(RejectionReason.EMPTY_CODE)

        if any(prior and prior.strip() for prior in prior_applied):
            raise CheckoutRejection(RejectionReason.ONLY_ONE_DISCOUNT)

        discount_code = self.find_code(normalized)
        if discount_code is None:
            raise CheckoutRejection(RejectionReason.INVALID_CODE)

        today: date = now.date()
        if discount_code.valid_until < today:
            raise CheckoutRejection(RejectionReason.EXPIRED)

        allowed = discount_code.applicable_courses or []
        if allowed and str(course.id) not in {str(c) for c in allowed}:
            raise CheckoutRejection(RejectionReason.NOT_APPLICABLE)

        effective_price = to_money(course.effective_price(now))
        discount = self.compute_discount(discount_code, effective_price)

        balance_after = None
        if discount_code.is_balance_limited:
            if Decimal(discount_code.remaining_balance) <= ZERO:
                raise CheckoutRejection(RejectionReason.NOT_USABLE)
            balance_after = to_money(
                max(Decimal(discount_code.remaining_balance) - discount, ZERO)
            )

        if discount_code.usage_count >= discount_code.max_usage:
            raise CheckoutRejection(RejectionReason.USAGE_LIMIT_REACHED)

        return DiscountQuote(
            code=discount_code.code,
            discount_code_id=discount_code.id,
            effective_price=effective_price,
            discount_amount=discount,
            balance_after=balance_after,
        )

    # ------------------------------------------------------------------
    # Redemption
    # ------------------------------------------------------------------
    def redeem(
        self,
        code: Optional[str],
        course: Course,
        order_id: str,
        prior_applied: Sequence[str] = (),
        now: Optional[datetime] = None,
    ) -> DiscountQuote:
        """
        Consume the code for ``order_id``. Flushes only; the caller commits
        together with the order row.
        """
        existing = self.find_redemption(order_id)
        if existing is not None:
            if existing.code.lower() != (code or "").strip().lower():
                raise CheckoutRejection(RejectionReason.ONLY_ONE_DISCOUNT)
            logger.info(f"Discount {existing.code} already applied to order {order_id}")
            now = now or datetime.now(timezone.utc)
            return DiscountQuote(
                code=existing.code,
                discount_code_id=existing.discount_code_id,
                effective_price=to_money(course.effective_price(now)),
                discount_amount=to_money(existing.amount),
                balance_after=existing.balance_after,
            )

        quote = self.quote(code, course, prior_applied=prior_applied, now=now)
        discount_code = self.db.get(DiscountCode, quote.discount_code_id)

        conditions = [
            DiscountCode.id == discount_code.id,
            DiscountCode.usage_count < DiscountCode.max_usage,
        ]
        values = {"usage_count": DiscountCode.usage_count + 1}
        if discount_code.is_balance_limited:
            conditions.append(DiscountCode.remaining_balance >= quote.discount_amount)
            values["remaining_balance"] = (
                DiscountCode.remaining_balance - quote.discount_amount
            )

        result = self.db.execute(
            update(DiscountCode)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            self.db.refresh(discount_code)
            logger.warning(
                f"Discount {discount_code.code} lost the redemption race for order {order_id}"
            )
            if discount_code.usage_count >= discount_code.max_usage:
                raise CheckoutRejection(RejectionReason.USAGE_LIMIT_REACHED)
            raise CheckoutRejection(RejectionReason.NOT_USABLE)

        self.db.refresh(discount_code)
        balance_after = (
            to_money(discount_code.remaining_balance)
            if discount_code.is_balance_limited
            else None
        )

        self.db.add(
            DiscountRedemption(
                order_id=order_id,
                discount_code_id=discount_code.id,
                code=discount_code.code,
                amount=quote.discount_amount,
                balance_after=balance_after,
            )
        )
        self.db.flush()

        logger.info(
            f"Discount {discount_code.code} redeemed for order {order_id}: "
            f"-{quote.discount_amount} (usage {discount_code.usage_count}/{discount_code.max_usage})"
        )
        return DiscountQuote(
            code=quote.code,
            discount_code_id=quote.discount_code_id,
            effective_price=quote.effective_price,
            discount_amount=quote.discount_amount,
            balance_after=balance_after,
        )
