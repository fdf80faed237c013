"""Unit tests for the checkout flow"""

import pytest
from datetime import datetime, timedelta
from quota_gateway.domain.cod_rules import REASON_AMOUNT_TOO_LARGE, REASON_DISTANCE_TOO_FAR
from quota_gateway.domain.exceptions import CODIneligibleError, MerchantNotFoundError, QuotaExhaustedError
from quota_gateway.domain.models import OrderItem, PaymentMethod
from quota_gateway.domain.pricing import QuotaTierPricer
from quota_gateway.infrastructure.database.models import BuyerProfile, MerchantSubscription, Order
from quota_gateway.services.checkout import CheckoutService
from quota_gateway.services.cod import CODRiskEngine
from quota_gateway.services.quota import QuotaConsumptionService
from quota_gateway.services.subscriptions import SubscriptionLedger

NOW = datetime(2026, 1, 15, 9, 0, 0)


@pytest.fixture
def checkout(db, cod_settings, dispatcher) -> CheckoutService:
    return CheckoutService(
        db,
        pricer=QuotaTierPricer(),
        quota_service=QuotaConsumptionService(db, dispatcher=dispatcher),
        risk_engine=CODRiskEngine(db, cod_settings),
    )


@pytest.fixture
def merchant_with_quota(db, make_merchant, make_package):
    def _setup(quota: int = 50, **merchant_fields) -> str:
        make_merchant("m1", **merchant_fields)
        package = make_package(transaction_quota=quota)
        return SubscriptionLedger(db).assign_package("m1", package.id, now=NOW).subscription_id

    return _setup


def _used(db, subscription_id: str) -> int:
    db.expire_all()
    return db.query(MerchantSubscription).filter(MerchantSubscription.id == subscription_id).one().used_quota


def test_prepaid_order_debits_tier_credits(db, checkout, merchant_with_quota):
    sub_id = merchant_with_quota()
    items = [OrderItem(price=12_000, quantity=2), OrderItem(price=4_000)]  # 3*2 + 1

    placed = checkout.place_order("buyer-1", "m1", items, PaymentMethod.PREPAID, now=NOW)
    db.commit()

    assert placed.credits_used == 7
    assert placed.remaining_quota == 43
    assert placed.order.status == "PAID"
    assert placed.order.cod_status is None
    assert placed.order.service_fee == 0
    assert placed.order.total == 28_000
    assert _used(db, sub_id) == 7


def test_cod_order_waits_for_confirmation(db, checkout, merchant_with_quota):
    merchant_with_quota()

    placed = checkout.place_order(
        "buyer-1", "m1", [OrderItem(price=50_000)], PaymentMethod.COD, distance_km=2.0, now=NOW
    )
    db.commit()

    order = placed.order
    assert order.status == "PENDING"
    assert order.cod_status == "PENDING_CONFIRMATION"
    assert order.confirmation_deadline == NOW + timedelta(minutes=15)
    assert order.service_fee == 1_000
    assert order.total == 51_000
    assert db.query(BuyerProfile).filter(BuyerProfile.buyer_id == "buyer-1").one().trust_score == 100


def test_cod_eligibility_uses_subtotal(db, checkout, merchant_with_quota):
    """75 000 of goods plus the service fee is still within the COD limit"""
    merchant_with_quota()
    placed = checkout.place_order("buyer-1", "m1", [OrderItem(price=75_000)], PaymentMethod.COD, now=NOW)
    assert placed.order.total == 76_000


def test_ineligible_cod_order_leaves_quota_untouched(db, checkout, merchant_with_quota):
    sub_id = merchant_with_quota()

    with pytest.raises(CODIneligibleError) as exc:
        checkout.place_order("buyer-1", "m1", [OrderItem(price=80_000)], PaymentMethod.COD, now=NOW)
    db.rollback()

    assert exc.value.reason == REASON_AMOUNT_TOO_LARGE
    assert _used(db, sub_id) == 0
    assert db.query(Order).count() == 0


def test_distance_derived_from_coordinates(db, checkout, merchant_with_quota):
    merchant_with_quota(latitude=-7.2575, longitude=112.7521)

    with pytest.raises(CODIneligibleError) as exc:
        checkout.place_order(
            "buyer-1",
            "m1",
            [OrderItem(price=10_000)],
            PaymentMethod.COD,
            buyer_location=(-7.3000, 112.7521),  # ~4.7 km south
            now=NOW,
        )
    assert exc.value.reason == REASON_DISTANCE_TOO_FAR


def test_quota_exhausted_rejects_order(db, checkout, merchant_with_quota):
    sub_id = merchant_with_quota(quota=2)

    with pytest.raises(QuotaExhaustedError):
        checkout.place_order("buyer-1", "m1", [OrderItem(price=20_000)], PaymentMethod.PREPAID, now=NOW)
    db.rollback()

    assert _used(db, sub_id) == 0
    assert db.query(Order).count() == 0


def test_unknown_merchant(checkout):
    with pytest.raises(MerchantNotFoundError):
        checkout.place_order("buyer-1", "ghost", [OrderItem(price=1_000)], PaymentMethod.PREPAID, now=NOW)


def test_checkout_reports_low_quota_alert(db, checkout, merchant_with_quota, dispatcher):
    merchant_with_quota(quota=5)
    placed = checkout.place_order("buyer-1", "m1", [OrderItem(price=1_000)], PaymentMethod.PREPAID, now=NOW)

    assert placed.quota_alert == "low"
    assert len(dispatcher.sent) == 1
