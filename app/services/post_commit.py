# app/services/post_commit.py
"""
Side effects that run after an order is committed as completed.

Each event is attempted on its own; a failure is logged and the session is
rolled back so the next event starts clean. Nothing here can change the
outcome the buyer sees.
"""

import logging
from typing import Callable, Dict, Iterable, Optional

from sqlalchemy.orm import Session

from app.models.order import Order
from app.services.referral import ReferralLedger
from app.services.transitions import PostCommitEvent
from app.utils.mailer import Mailer

logger = logging.getLogger(__name__)


class PostCommitDispatcher:
    def __init__(
        self,
        db: Session,
        referrals: Optional[ReferralLedger] = None,
        mailer: Optional[Mailer] = None,
    ):
        self.db = db
        self.referrals = referrals
        self.mailer = mailer
        self.handlers: Dict[PostCommitEvent, Callable[[Order], object]] = {
            PostCommitEvent.REFERRAL_USAGE_INCREMENT: self._increment_referral_usage,
            PostCommitEvent.REFERRAL_REWARD_ISSUE: self._issue_referral_reward,
            PostCommitEvent.SEND_CONFIRMATION_EMAIL: self._send_confirmation_email,
        }

    def run(
        self, order: Order, events: Iterable[PostCommitEvent]
    ) -> Dict[PostCommitEvent, bool]:
        results = {}
        for event in events:
            handler = self.handlers.get(event)
            if handler is None:
                continue
            try:
                handler(order)
                results[event] = True
            except Exception:
                logger.exception(
                    f"Post-commit step {event.value} failed for order {order.order_id}"
                )
                self.db.rollback()
                results[event] = False
        return results

    def _increment_referral_usage(self, order: Order):
        if not order.referral_code or self.referrals is None:
            return None
        return self.referrals.increment_usage(order.order_id)

    def _issue_referral_reward(self, order: Order):
        if not order.referral_code or self.referrals is None:
            return None
        return self.referrals.issue_reward(order.order_id)

    def _send_confirmation_email(self, order: Order):
        if self.mailer is None:
            return None
        return self.mailer.send_purchase_confirmation(order, order.course)
