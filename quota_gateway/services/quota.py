"""Quota consumption - atomic credit debits and low/empty quota alerts"""

import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session

from quota_gateway.config import settings
from quota_gateway.domain.exceptions import InvalidCreditAmountError
from quota_gateway.domain.models import Notification, QuotaDebit
from quota_gateway.infrastructure.clients.notifications import NotificationDispatcher
from quota_gateway.infrastructure.database.repositories import MerchantRepository, SubscriptionRepository
from quota_gateway.infrastructure.observability.logging import log_quota_debit
from quota_gateway.infrastructure.observability.metrics import record_quota_debit
from quota_gateway.utils.date_utils import utc_now

logger = logging.getLogger(__name__)

QUOTA_LINK = "/merchant/subscription"


def classify_alert(remaining: int, credits: int, low_threshold: int) -> Optional[str]:
    """
    Alert raised by one debit, judged from that debit's own before/after.

    - "empty": remaining hit 0
    - "low":   remaining dropped below low_threshold with this debit

    A crossing happens in exactly one debit, so each alert fires once per
    subscription no matter how many orders follow.
    """
    if remaining == 0:
        return "empty"
    before = remaining + credits
    if remaining < low_threshold <= before:
        return "low"
    return None


def build_quota_notification(user_id: str, alert: str, remaining: int) -> Notification:
    if alert == "empty":
        return Notification(
            user_id=user_id,
            title="Transaction quota used up",
            message=(
                "Your transaction quota is used up. Your store cannot accept new orders "
                "until a new quota package is purchased."
            ),
            severity="error",
            link=QUOTA_LINK,
        )
    return Notification(
        user_id=user_id,
        title="Transaction quota running low",
        message=f"Only {remaining} transaction credit(s) left. Buy a quota package to keep accepting orders.",
        severity="warning",
        link=QUOTA_LINK,
    )


class QuotaConsumptionService:
    """Debits merchant credits when orders are finalized"""

    def __init__(
        self,
        db: Session,
        dispatcher: NotificationDispatcher | None = None,
        low_quota_threshold: int | None = None,
        max_attempts: int | None = None,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.low_quota_threshold = (
            settings.low_quota_threshold if low_quota_threshold is None else low_quota_threshold
        )
        self.max_attempts = max_attempts or settings.quota_debit_max_attempts
        self.subscriptions = SubscriptionRepository(db)
        self.merchants = MerchantRepository(db)

    def consume_quota(self, merchant_id: str, credits: int, now: datetime | None = None) -> bool:
        """Debit credits from the active subscription; False leaves everything untouched"""
        return self.debit(merchant_id, credits, now).success

    def debit(self, merchant_id: str, credits: int, now: datetime | None = None) -> QuotaDebit:
        """
        Debit with full outcome details.

        The write is a guarded UPDATE (used_quota + credits <= transaction_quota),
        never a read-then-write. A miss is retried only when the active
        subscription changed underneath us (concurrent assignment); a miss on
        the same subscription means there is not enough quota left.

        The caller owns the transaction: commit after the order is persisted.
        """
        if not isinstance(credits, int) or isinstance(credits, bool) or credits < 1:
            raise InvalidCreditAmountError(f"Credits must be a positive integer, got {credits!r}")

        now = now or utc_now()
        attempted: set = set()

        for _ in range(self.max_attempts):
            subscription = self.subscriptions.get_active(merchant_id, now)
            if subscription is None or subscription.id in attempted:
                break

            attempted.add(subscription.id)
            if not self.subscriptions.debit(subscription.id, credits, now):
                continue

            used, total = self.subscriptions.read_usage(subscription.id)
            remaining = total - used
            alert = classify_alert(remaining, credits, self.low_quota_threshold)

            record_quota_debit(True, credits, alert)
            log_quota_debit(merchant_id, credits, True, remaining, alert)
            if alert:
                self._notify(merchant_id, alert, remaining)

            return QuotaDebit(success=True, subscription_id=subscription.id, remaining=remaining, alert=alert)

        record_quota_debit(False, credits, None)
        log_quota_debit(merchant_id, credits, False, None)
        return QuotaDebit(success=False)

    def can_transact(self, merchant_id: str, now: datetime | None = None) -> bool:
        """True iff an active subscription with credits left exists"""
        subscription = self.subscriptions.get_active(merchant_id, now or utc_now())
        return subscription is not None and subscription.used_quota < subscription.transaction_quota

    def _notify(self, merchant_id: str, alert: str, remaining: int) -> None:
        if self.dispatcher is None:
            return

        merchant = self.merchants.get_merchant(merchant_id)
        if merchant is None or not merchant.user_id:
            logger.warning("No notification target for merchant", extra={"merchant_id": merchant_id})
            return

        try:
            self.dispatcher.send(build_quota_notification(merchant.user_id, alert, remaining))
        except Exception as e:
            # Alert delivery must never undo the debit
            logger.error(
                f"Quota alert dispatch failed: {e}",
                extra={"merchant_id": merchant_id, "quota_alert": alert},
            )
