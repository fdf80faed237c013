"""Data access layer for the quota ledger and COD entities"""

from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import case
from sqlalchemy.orm import Session
from quota_gateway.infrastructure.database.models import (
    BuyerProfile,
    Merchant,
    MerchantSubscription,
    Order,
    QuotaTierRecord,
    TransactionPackage,
)
from quota_gateway.domain.cod_rules import TrustState, MAX_TRUST_SCORE, MIN_TRUST_SCORE
from quota_gateway.domain.models import CODStatus, QuotaTier, SubscriptionStatus


class PackageRepository:
    """Repository for transaction packages"""

    def __init__(self, db: Session):
        self.db = db

    def create_package(self, **fields) -> TransactionPackage:
        package = TransactionPackage(**fields)
        self.db.add(package)
        self.db.flush()
        return package

    def get_package(self, package_id: str) -> Optional[TransactionPackage]:
        return self.db.query(TransactionPackage).filter(TransactionPackage.id == package_id).first()

    def list_packages(self, active_only: bool = True) -> List[TransactionPackage]:
        query = self.db.query(TransactionPackage)
        if active_only:
            query = query.filter(TransactionPackage.is_active.is_(True))
        return query.order_by(TransactionPackage.price.asc()).all()

    def is_referenced(self, package_id: str) -> bool:
        """True once any subscription was created from the package"""
        return (
            self.db.query(MerchantSubscription.id)
            .filter(MerchantSubscription.package_id == package_id)
            .first()
            is not None
        )


class MerchantRepository:
    """Repository for the merchant side of the ledger"""

    def __init__(self, db: Session):
        self.db = db

    def get_merchant(self, merchant_id: str) -> Optional[Merchant]:
        return self.db.query(Merchant).filter(Merchant.id == merchant_id).first()

    def lock_merchant(self, merchant_id: str) -> Optional[Merchant]:
        """SELECT ... FOR UPDATE; serialises assignments for one merchant"""
        return self.db.query(Merchant).filter(Merchant.id == merchant_id).with_for_update().first()

    def set_current_subscription(self, merchant_id: str, subscription_id: str, now: datetime) -> int:
        return (
            self.db.query(Merchant)
            .filter(Merchant.id == merchant_id)
            .update(
                {Merchant.current_subscription_id: subscription_id, Merchant.updated_at: now},
                synchronize_session="fetch",
            )
        )


class SubscriptionRepository:
    """Repository for merchant subscriptions"""

    def __init__(self, db: Session):
        self.db = db

    def create_subscription(
        self,
        merchant_id: str,
        package: TransactionPackage,
        started_at: datetime,
        expired_at: datetime,
    ) -> MerchantSubscription:
        subscription = MerchantSubscription(
            merchant_id=merchant_id,
            package_id=package.id,
            transaction_quota=package.transaction_quota,
            used_quota=0,
            started_at=started_at,
            expired_at=expired_at,
            status=SubscriptionStatus.ACTIVE.value,
            payment_amount=package.transaction_quota * package.price,
        )
        self.db.add(subscription)
        self.db.flush()
        return subscription

    def supersede_active(self, merchant_id: str, keep_id: str) -> List[str]:
        """Mark every other ACTIVE subscription of the merchant REPLACED"""
        ids = [
            row.id
            for row in self.db.query(MerchantSubscription.id)
            .filter(
                MerchantSubscription.merchant_id == merchant_id,
                MerchantSubscription.status == SubscriptionStatus.ACTIVE.value,
                MerchantSubscription.id != keep_id,
            )
            .all()
        ]
        if ids:
            self.db.query(MerchantSubscription).filter(MerchantSubscription.id.in_(ids)).update(
                {MerchantSubscription.status: SubscriptionStatus.REPLACED.value},
                synchronize_session="fetch",
            )
        return ids

    def get_active(self, merchant_id: str, now: datetime) -> Optional[MerchantSubscription]:
        """Most recent ACTIVE subscription that has not expired"""
        return (
            self.db.query(MerchantSubscription)
            .filter(
                MerchantSubscription.merchant_id == merchant_id,
                MerchantSubscription.status == SubscriptionStatus.ACTIVE.value,
                MerchantSubscription.expired_at >= now,
            )
            .order_by(MerchantSubscription.started_at.desc(), MerchantSubscription.created_at.desc())
            .populate_existing()
            .first()
        )

    def debit(self, subscription_id: str, credits: int, now: datetime) -> bool:
        """
        Guarded debit: a single UPDATE that only matches while the subscription
        is active, unexpired and still has room for the credits.
        """
        rows = (
            self.db.query(MerchantSubscription)
            .filter(
                MerchantSubscription.id == subscription_id,
                MerchantSubscription.status == SubscriptionStatus.ACTIVE.value,
                MerchantSubscription.expired_at >= now,
                MerchantSubscription.used_quota + credits <= MerchantSubscription.transaction_quota,
            )
            .update(
                {MerchantSubscription.used_quota: MerchantSubscription.used_quota + credits},
                synchronize_session=False,
            )
        )
        return rows == 1

    def read_usage(self, subscription_id: str) -> Tuple[int, int]:
        """(used_quota, transaction_quota) straight from the store"""
        row = (
            self.db.query(MerchantSubscription.used_quota, MerchantSubscription.transaction_quota)
            .filter(MerchantSubscription.id == subscription_id)
            .one()
        )
        return row.used_quota, row.transaction_quota


class TierRepository:
    """Repository for admin-managed quota tiers"""

    def __init__(self, db: Session):
        self.db = db

    def list_tiers(self) -> List[QuotaTier]:
        return [
            QuotaTier(min_price=r.min_price, max_price=r.max_price, credit_cost=r.credit_cost)
            for r in self.db.query(QuotaTierRecord).order_by(QuotaTierRecord.min_price.asc()).all()
        ]

    def replace_tiers(self, tiers: List[QuotaTier]) -> None:
        self.db.query(QuotaTierRecord).delete(synchronize_session=False)
        for tier in tiers:
            self.db.add(
                QuotaTierRecord(min_price=tier.min_price, max_price=tier.max_price, credit_cost=tier.credit_cost)
            )
        self.db.flush()


class BuyerRepository:
    """Repository for buyer COD profiles"""

    def __init__(self, db: Session):
        self.db = db

    def get_profile(self, buyer_id: str) -> Optional[BuyerProfile]:
        return self.db.query(BuyerProfile).filter(BuyerProfile.buyer_id == buyer_id).populate_existing().first()

    def ensure_profile(self, buyer_id: str) -> BuyerProfile:
        """Fetch the profile, creating the default one for a first-time buyer"""
        profile = self.get_profile(buyer_id)
        if profile is None:
            profile = BuyerProfile(buyer_id=buyer_id)
            self.db.add(profile)
            self.db.flush()
        return profile

    def read_trust(self, buyer_id: str) -> Optional[TrustState]:
        row = (
            self.db.query(BuyerProfile.trust_score, BuyerProfile.cod_fail_count, BuyerProfile.cod_enabled)
            .filter(BuyerProfile.buyer_id == buyer_id)
            .first()
        )
        if row is None:
            return None
        return TrustState(
            trust_score=row.trust_score,
            cod_fail_count=row.cod_fail_count,
            cod_enabled=row.cod_enabled,
        )

    def reward(self, buyer_id: str, bonus: int, now: datetime) -> int:
        """trust_score = min(100, trust_score + bonus) in one statement"""
        raised = BuyerProfile.trust_score + bonus
        return (
            self.db.query(BuyerProfile)
            .filter(BuyerProfile.buyer_id == buyer_id)
            .update(
                {
                    BuyerProfile.trust_score: case((raised > MAX_TRUST_SCORE, MAX_TRUST_SCORE), else_=raised),
                    BuyerProfile.updated_at: now,
                },
                synchronize_session=False,
            )
        )

    def penalize(self, buyer_id: str, penalty: int, min_trust_score: int, now: datetime) -> int:
        """
        trust_score = max(0, trust_score - penalty), one more failure, and COD
        switched off when the new score falls below min_trust_score. Every SET
        expression sees the pre-update row, so this is one atomic step.
        """
        lowered = BuyerProfile.trust_score - penalty
        clamped = case((lowered < MIN_TRUST_SCORE, MIN_TRUST_SCORE), else_=lowered)
        return (
            self.db.query(BuyerProfile)
            .filter(BuyerProfile.buyer_id == buyer_id)
            .update(
                {
                    BuyerProfile.trust_score: clamped,
                    BuyerProfile.cod_fail_count: BuyerProfile.cod_fail_count + 1,
                    BuyerProfile.cod_enabled: case(
                        (clamped < min_trust_score, False), else_=BuyerProfile.cod_enabled
                    ),
                    BuyerProfile.updated_at: now,
                },
                synchronize_session=False,
            )
        )


class OrderRepository:
    """Repository for checkout orders"""

    def __init__(self, db: Session):
        self.db = db

    def create_order(self, **fields) -> Order:
        order = Order(**fields)
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: str) -> Optional[Order]:
        return self.db.query(Order).filter(Order.id == order_id).populate_existing().first()

    def transition_cod(
        self,
        order_id: str,
        to_status: CODStatus,
        now: datetime,
        reason: str | None = None,
    ) -> bool:
        """Move a COD order out of PENDING_CONFIRMATION; False if it already left"""
        values = {Order.cod_status: to_status.value, Order.updated_at: now}
        if reason is not None:
            values[Order.cod_rejection_reason] = reason
        rows = (
            self.db.query(Order)
            .filter(
                Order.id == order_id,
                Order.cod_status == CODStatus.PENDING_CONFIRMATION.value,
            )
            .update(values, synchronize_session=False)
        )
        return rows == 1

    def find_overdue_pending(self, now: datetime) -> List[Tuple[str, str]]:
        """(order_id, buyer_id) of pending COD orders past their deadline"""
        rows = (
            self.db.query(Order.id, Order.buyer_id)
            .filter(
                Order.cod_status == CODStatus.PENDING_CONFIRMATION.value,
                Order.confirmation_deadline < now,
            )
            .order_by(Order.confirmation_deadline.asc())
            .all()
        )
        return [(r.id, r.buyer_id) for r in rows]

    def mark_flash_sale(self, order_id: str, discount_percent: int, now: datetime) -> int:
        return (
            self.db.query(Order)
            .filter(Order.id == order_id)
            .update(
                {
                    Order.is_flash_sale: True,
                    Order.flash_sale_discount: discount_percent,
                    Order.updated_at: now,
                },
                synchronize_session=False,
            )
        )
