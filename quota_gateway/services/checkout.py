"""Checkout - ties COD eligibility, quota debit and order creation into one unit"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session

from quota_gateway.domain.cod_rules import calculate_distance
from quota_gateway.domain.exceptions import CODIneligibleError, MerchantNotFoundError, QuotaExhaustedError
from quota_gateway.domain.models import CODStatus, OrderItem, PaymentMethod
from quota_gateway.domain.pricing import QuotaTierPricer
from quota_gateway.infrastructure.database.models import Order
from quota_gateway.infrastructure.database.repositories import BuyerRepository, MerchantRepository, OrderRepository
from quota_gateway.services.cod import CODRiskEngine
from quota_gateway.services.quota import QuotaConsumptionService
from quota_gateway.utils.date_utils import utc_now


@dataclass(frozen=True)
class PlacedOrder:
    order: Order
    credits_used: int
    remaining_quota: Optional[int]
    quota_alert: Optional[str]


class CheckoutService:
    """Finalizes an order for one merchant"""

    def __init__(
        self,
        db: Session,
        pricer: QuotaTierPricer,
        quota_service: QuotaConsumptionService,
        risk_engine: CODRiskEngine,
    ):
        self.db = db
        self.pricer = pricer
        self.quota_service = quota_service
        self.risk_engine = risk_engine
        self.orders = OrderRepository(db)
        self.merchants = MerchantRepository(db)
        self.buyers = BuyerRepository(db)

    def place_order(
        self,
        buyer_id: str,
        merchant_id: str,
        items: List[OrderItem],
        payment_method: PaymentMethod,
        distance_km: float | None = None,
        buyer_location: Tuple[float, float] | None = None,
        now: datetime | None = None,
    ) -> PlacedOrder:
        """
        Validate and persist an order.

        Flow:
        1. Subtotal from items; COD orders carry the COD service fee
        2. COD: run the eligibility chain (distance derived from coordinates
           when not given)
        3. Debit tier-priced credits from the merchant's subscription
        4. Insert the order (COD orders wait for buyer confirmation)

        Nothing is committed here; the caller commits on success and rolls
        back on any raised error, so a failed debit never leaves an order.

        Raises:
            MerchantNotFoundError, CODIneligibleError, QuotaExhaustedError
        """
        now = now or utc_now()

        merchant = self.merchants.get_merchant(merchant_id)
        if merchant is None:
            raise MerchantNotFoundError(f"Merchant {merchant_id} not found")

        subtotal = sum(item.price * item.quantity for item in items)
        is_cod = payment_method == PaymentMethod.COD
        service_fee = self.risk_engine.settings.service_fee if is_cod else 0

        self.buyers.ensure_profile(buyer_id)

        if is_cod:
            if distance_km is None and buyer_location and merchant.latitude is not None and merchant.longitude is not None:
                distance_km = calculate_distance(
                    buyer_location[0], buyer_location[1], merchant.latitude, merchant.longitude
                )
            eligibility = self.risk_engine.check_eligibility(buyer_id, merchant_id, subtotal, distance_km)
            if not eligibility.eligible:
                raise CODIneligibleError(eligibility.reason)

        credits = self.pricer.order_credit_cost(items)
        debit = self.quota_service.debit(merchant_id, credits, now)
        if not debit.success:
            raise QuotaExhaustedError(merchant_id, credits)

        order = self.orders.create_order(
            buyer_id=buyer_id,
            merchant_id=merchant_id,
            subtotal=subtotal,
            service_fee=service_fee,
            total=subtotal + service_fee,
            credits_used=credits,
            payment_method=payment_method.value,
            status="PENDING" if is_cod else "PAID",
            cod_status=CODStatus.PENDING_CONFIRMATION.value if is_cod else None,
            confirmation_deadline=self.risk_engine.confirmation_deadline(now) if is_cod else None,
            created_at=now,
        )

        return PlacedOrder(
            order=order,
            credits_used=credits,
            remaining_quota=debit.remaining,
            quota_alert=debit.alert,
        )
