# app/services/referral.py
import hashlib
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Protocol

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from app.core.errors import CheckoutRejection, RejectionReason
from app.models.discount_code import DiscountCode
from app.models.referral import ReferralCode, ReferralUse

logger = logging.getLogger(__name__)


class ReferralLedger(Protocol):
    """The calls the checkout core makes against the referral store."""

    def consume(self, code: str, buyer_ref: str, order_id: str) -> ReferralUse: ...

    def increment_usage(self, order_id: str) -> bool: ...

    def issue_reward(self, order_id: str) -> Optional[str]: ...


@dataclass(frozen=True)
class ReferralStats:
    code: Optional[str]
    total_referrals: int
    successful_referrals: int
    pending_referrals: int
    earned_rewards: int


class DatabaseReferralLedger:
    """
    Store-backed referral ledger.

    ``consume`` runs inside the checkout transaction (flush only).
    ``increment_usage`` and ``issue_reward`` run after the order is
    committed as completed; each commits on its own and is guarded by a
    conditional update on the ReferralUse row, so a replayed callback
    neither counts a referral twice nor issues a second reward.
    """

    def __init__(
        self,
        db: Session,
        code_prefix: str = "REF",
        reward_prefix: str = "REWARD",
        reward_percentage: Decimal = Decimal("15"),
        reward_valid_days: int = 3,
    ):
        self.db = db
        self.code_prefix = code_prefix
        self.reward_prefix = reward_prefix
        self.reward_percentage = Decimal(reward_percentage)
        self.reward_valid_days = reward_valid_days

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def find_code(self, code: str) -> Optional[ReferralCode]:
        return (
            self.db.query(ReferralCode)
            .filter(func.upper(ReferralCode.code) == code.strip().upper())
            .first()
        )

    def find_use(self, order_id: str) -> Optional[ReferralUse]:
        return self.db.query(ReferralUse).filter(ReferralUse.order_id == order_id).first()

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------
    def consume(self, code: str, buyer_ref: str, order_id: str) -> ReferralUse:
        normalized = (code or "").strip()
        if not normalized:
            raise CheckoutRejection(RejectionReason.EMPTY_REFERRAL)

        referral = self.find_code(normalized)
        if referral is None or not referral.is_active:
            raise CheckoutRejection(RejectionReason.INVALID_REFERRAL)

        if referral.owner_user_id == buyer_ref:
            raise CheckoutRejection(RejectionReason.SELF_REFERRAL)

        existing = self.find_use(order_id)
        if existing is not None:
            if existing.referral_code_id == referral.id:
                return existing
            raise CheckoutRejection(RejectionReason.REFERRAL_ALREADY_APPLIED)

        use = ReferralUse(
            referral_code_id=referral.id,
            buyer_ref=buyer_ref,
            order_id=order_id,
            usage_counted=False,
        )
        self.db.add(use)
        self.db.flush()

        logger.info(f"Referral {referral.code} recorded for order {order_id}")
        return use

    # ------------------------------------------------------------------
    # After payment
    # ------------------------------------------------------------------
    def increment_usage(self, order_id: str) -> bool:
        result = self.db.execute(
            update(ReferralUse)
            .where(
                ReferralUse.order_id == order_id,
                ReferralUse.usage_counted.is_(False),
            )
            .values(usage_counted=True)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            return False

        use = self.find_use(order_id)
        self.db.execute(
            update(ReferralCode)
            .where(ReferralCode.id == use.referral_code_id)
            .values(usage_count=ReferralCode.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

        logger.info(f"Referral usage counted for order {order_id}")
        return True

    def issue_reward(self, order_id: str) -> Optional[str]:
        """Give the referrer a one-off percentage code for ``order_id``."""
        use = self.find_use(order_id)
        if use is None:
            return None
        if use.reward_code:
            return use.reward_code

        owner = use.referral_code.owner_user_id
        reward_code = self._reward_code_for(owner)

        claimed = self.db.execute(
            update(ReferralUse)
            .where(ReferralUse.id == use.id, ReferralUse.reward_code.is_(None))
            .values(reward_code=reward_code)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            self.db.rollback()
            return None

        valid_until = (
            datetime.now(timezone.utc) + timedelta(days=self.reward_valid_days)
        ).date()
        self.db.add(
            DiscountCode(
                code=reward_code,
                discount_type="percentage",
                discount_amount=self.reward_percentage,
                valid_until=valid_until,
                applicable_courses=[],
                usage_count=0,
                max_usage=1,
                has_balance_limit=False,
                owner_user_id=owner,
                is_reward=True,
            )
        )
        self.db.commit()

        logger.info(f"Reward code {reward_code} issued to {owner} for order {order_id}")
        return reward_code

    def _reward_code_for(self, owner: str) -> str:
        stem = re.sub(r"[^A-Za-z0-9]", "", owner)[:6].upper()
        return f"{self.reward_prefix}{stem}{secrets.token_hex(2).upper()}"

    # ------------------------------------------------------------------
    # Referrer side
    # ------------------------------------------------------------------
    def get_or_create_code(self, user_id: str) -> ReferralCode:
        referral = (
            self.db.query(ReferralCode)
            .filter(ReferralCode.owner_user_id == user_id)
            .first()
        )
        if referral:
            return referral

        # Stable per user, like an identity number
        stem = re.sub(r"[^A-Za-z0-9]", "", user_id)[:8].upper()
        digest = hashlib.sha256(user_id.encode("utf-8")).hexdigest()[:6].upper()
        referral = ReferralCode(
            code=f"{self.code_prefix}{stem}{digest}",
            owner_user_id=user_id,
            usage_count=0,
            is_active=True,
        )
        self.db.add(referral)
        self.db.commit()
        self.db.refresh(referral)

        logger.info(f"Referral code {referral.code} created for {user_id}")
        return referral

    def stats(self, user_id: str) -> ReferralStats:
        referral = (
            self.db.query(ReferralCode)
            .filter(ReferralCode.owner_user_id == user_id)
            .first()
        )
        if referral is None:
            return ReferralStats(
                code=None,
                total_referrals=0,
                successful_referrals=0,
                pending_referrals=0,
                earned_rewards=0,
            )

        total = (
            self.db.query(func.count(ReferralUse.id))
            .filter(ReferralUse.referral_code_id == referral.id)
            .scalar()
        )
        successful = (
            self.db.query(func.count(ReferralUse.id))
            .filter(
                ReferralUse.referral_code_id == referral.id,
                ReferralUse.usage_counted.is_(True),
            )
            .scalar()
        )
        rewards = (
            self.db.query(func.count(DiscountCode.id))
            .filter(
                DiscountCode.owner_user_id == user_id,
                DiscountCode.is_reward.is_(True),
            )
            .scalar()
        )
        return ReferralStats(
            code=referral.code,
            total_referrals=total or 0,
            successful_referrals=successful or 0,
            pending_referrals=(total or 0) - (successful or 0),
            earned_rewards=rewards or 0,
        )

    def reward_codes(self, user_id: str) -> List[DiscountCode]:
        return (
            self.db.query(DiscountCode)
            .filter(
                DiscountCode.owner_user_id == user_id,
                DiscountCode.is_reward.is_(True),
            )
            .order_by(DiscountCode.created_at.desc())
            .all()
        )
