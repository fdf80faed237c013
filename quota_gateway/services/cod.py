"""COD risk engine - eligibility checks, buyer trust feedback and COD order outcomes"""

import logging
from datetime import datetime
from typing import List
from sqlalchemy.orm import Session

from quota_gateway.domain.cod_rules import (
    TrustState,
    confirmation_deadline,
    evaluate_cod_eligibility,
    is_confirmation_expired,
)
from quota_gateway.domain.exceptions import (
    BuyerNotFoundError,
    InvalidOrderStateError,
    OrderNotFoundError,
)
from quota_gateway.domain.models import BuyerCODStatus, CODEligibilityResult, CODSettings, CODStatus, PaymentMethod
from quota_gateway.infrastructure.database.models import Order
from quota_gateway.infrastructure.database.repositories import (
    BuyerRepository,
    MerchantRepository,
    OrderRepository,
)
from quota_gateway.infrastructure.observability.logging import log_cod_decision, log_trust_update
from quota_gateway.infrastructure.observability.metrics import (
    cod_disabled_counter,
    cod_outcome_counter,
    record_cod_eligibility,
    trust_update_counter,
)
from quota_gateway.utils.date_utils import utc_now

logger = logging.getLogger(__name__)


class CODRiskEngine:
    """Decides COD availability and runs the buyer trust feedback loop"""

    def __init__(self, db: Session, cod_settings: CODSettings):
        self.db = db
        self.settings = cod_settings
        self.buyers = BuyerRepository(db)
        self.merchants = MerchantRepository(db)
        self.orders = OrderRepository(db)

    # ------------------------------------------------------------------
    # Eligibility
    # ------------------------------------------------------------------

    def check_eligibility(
        self,
        buyer_id: str,
        merchant_id: str,
        total_amount: int,
        distance_km: float | None = None,
    ) -> CODEligibilityResult:
        """
        Evaluate the COD rule chain for one order.

        A buyer without a profile is treated as a fresh buyer (score 100, COD
        on). A merchant the ledger does not know cannot accept COD.
        """
        buyer = self.buyers.read_trust(buyer_id) or TrustState()
        merchant = self.merchants.get_merchant(merchant_id)

        result = evaluate_cod_eligibility(
            total_amount=total_amount,
            distance_km=distance_km,
            buyer=buyer,
            merchant_allows_cod=merchant is not None and merchant.cod_enabled,
            settings=self.settings,
            merchant_max_amount=merchant.cod_max_amount if merchant else None,
            merchant_max_distance_km=merchant.cod_max_distance_km if merchant else None,
        )

        record_cod_eligibility(result.eligible, result.reason)
        log_cod_decision(buyer_id, merchant_id, total_amount, result.eligible, result.reason)
        return result

    def get_buyer_cod_status(self, buyer_id: str) -> BuyerCODStatus:
        profile = self.buyers.get_profile(buyer_id)
        if profile is None:
            return BuyerCODStatus(enabled=True, trust_score=100, fail_count=0, is_verified=False)
        return BuyerCODStatus(
            enabled=profile.cod_enabled,
            trust_score=profile.trust_score,
            fail_count=profile.cod_fail_count,
            is_verified=profile.is_verified_buyer,
        )

    # ------------------------------------------------------------------
    # Trust feedback
    # ------------------------------------------------------------------

    def update_trust_score(self, buyer_id: str, success: bool, now: datetime | None = None) -> TrustState:
        """
        Apply one COD outcome to the buyer's trust score.

        Success: +1 (capped at 100). Failure: -50 (floored at 0), fail count +1,
        COD switched off when the new score is below 50. The penalty is meant to
        dwarf the reward.

        Executed as a single UPDATE; call exactly once per delivery outcome.

        Raises:
            BuyerNotFoundError: no profile for buyer_id
        """
        now = now or utc_now()
        was_enabled = None

        if success:
            rows = self.buyers.reward(buyer_id, self.settings.success_bonus_points, now)
        else:
            before = self.buyers.read_trust(buyer_id)
            was_enabled = before.cod_enabled if before else None
            rows = self.buyers.penalize(
                buyer_id,
                self.settings.penalty_points,
                self.settings.min_trust_score,
                now,
            )

        if rows == 0:
            raise BuyerNotFoundError(f"Buyer {buyer_id} has no profile")

        state = self.buyers.read_trust(buyer_id)

        trust_update_counter.labels(result="success" if success else "failure").inc()
        if was_enabled and not state.cod_enabled:
            cod_disabled_counter.inc()
        log_trust_update(buyer_id, success, state.trust_score, state.cod_enabled)
        return state

    # ------------------------------------------------------------------
    # Confirmation window
    # ------------------------------------------------------------------

    def confirmation_deadline(self, created_at: datetime, timeout_minutes: int | None = None) -> datetime:
        if timeout_minutes is None:
            timeout_minutes = self.settings.confirmation_timeout_minutes
        return confirmation_deadline(created_at, timeout_minutes)

    def is_confirmation_expired(self, deadline: datetime, now: datetime | None = None) -> bool:
        return is_confirmation_expired(deadline, now)

    # ------------------------------------------------------------------
    # COD order outcomes
    # ------------------------------------------------------------------

    def confirm_order(self, order_id: str, now: datetime | None = None) -> Order:
        """
        PENDING_CONFIRMATION → CONFIRMED, buyer trust +1.

        A confirmation arriving after the deadline expires the order instead;
        check the returned order's cod_status.
        """
        now = now or utc_now()
        order = self._pending_cod_order(order_id)

        if self.is_confirmation_expired(order.confirmation_deadline, now):
            if not self._fail_order(order, CODStatus.EXPIRED, "confirmation window elapsed", now):
                raise InvalidOrderStateError(f"Order {order_id} is no longer pending confirmation")
            return self.orders.get_order(order_id)

        if not self.orders.transition_cod(order_id, CODStatus.CONFIRMED, now):
            raise InvalidOrderStateError(f"Order {order_id} is no longer pending confirmation")

        cod_outcome_counter.labels(status=CODStatus.CONFIRMED.value).inc()
        self._update_trust_if_known(order.buyer_id, True, now)
        return self.orders.get_order(order_id)

    def reject_order(self, order_id: str, reason: str, now: datetime | None = None) -> Order:
        """PENDING_CONFIRMATION → REJECTED, buyer trust -50, order relisted as flash sale"""
        now = now or utc_now()
        order = self._pending_cod_order(order_id)
        if not self._fail_order(order, CODStatus.REJECTED, reason, now):
            raise InvalidOrderStateError(f"Order {order_id} is no longer pending confirmation")
        return self.orders.get_order(order_id)

    def expire_overdue_orders(self, now: datetime | None = None) -> List[str]:
        """
        Expire every pending COD order past its confirmation deadline.

        Each expiry is a failure outcome for the buyer. Orders already moved by
        a concurrent caller are skipped, so no outcome is counted twice.
        """
        now = now or utc_now()
        expired = []
        for order_id, _buyer_id in self.orders.find_overdue_pending(now):
            order = self.orders.get_order(order_id)
            if order is not None and self._fail_order(order, CODStatus.EXPIRED, "confirmation window elapsed", now):
                expired.append(order_id)

        if expired:
            logger.info("Expired overdue COD orders", extra={"count": len(expired), "order_ids": expired})
        return expired

    def create_flash_sale(self, order_id: str, discount_percent: int | None = None, now: datetime | None = None) -> bool:
        """Relist a failed COD order's goods at a discount instead of losing the sale"""
        if discount_percent is None:
            discount_percent = self.settings.flash_sale_discount_percent
        if not 0 < discount_percent <= 100:
            raise ValueError(f"Discount must be within (0, 100], got {discount_percent}")

        if self.orders.mark_flash_sale(order_id, discount_percent, now or utc_now()) == 0:
            raise OrderNotFoundError(f"Order {order_id} not found")

        logger.info("Flash sale created", extra={"order_id": order_id, "discount_percent": discount_percent})
        return True

    def _pending_cod_order(self, order_id: str) -> Order:
        order = self.orders.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(f"Order {order_id} not found")
        if order.payment_method != PaymentMethod.COD.value:
            raise InvalidOrderStateError(f"Order {order_id} is not a COD order")
        if order.cod_status != CODStatus.PENDING_CONFIRMATION.value:
            raise InvalidOrderStateError(f"Order {order_id} is already {order.cod_status}")
        return order

    def _fail_order(self, order: Order, status: CODStatus, reason: str, now: datetime) -> bool:
        if not self.orders.transition_cod(order.id, status, now, reason=reason):
            return False

        cod_outcome_counter.labels(status=status.value).inc()
        self._update_trust_if_known(order.buyer_id, False, now)
        self.create_flash_sale(order.id, now=now)
        return True

    def _update_trust_if_known(self, buyer_id: str, success: bool, now: datetime) -> None:
        try:
            self.update_trust_score(buyer_id, success, now)
        except BuyerNotFoundError:
            logger.warning("COD outcome for buyer without profile", extra={"buyer_id": buyer_id})
