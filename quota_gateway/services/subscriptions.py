"""Subscription ledger - lifecycle of a merchant's purchased quota packages"""

import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quota_gateway.domain.exceptions import (
    MerchantNotFoundError,
    PackageInactiveError,
    PackageInUseError,
    PackageNotFoundError,
)
from quota_gateway.domain.models import AssignmentCommitted, AssignmentFailed, AssignmentResult, QuotaStatus
from quota_gateway.infrastructure.database.models import MerchantSubscription, TransactionPackage
from quota_gateway.infrastructure.database.repositories import (
    MerchantRepository,
    PackageRepository,
    SubscriptionRepository,
)
from quota_gateway.infrastructure.observability.metrics import subscription_assignment_counter
from quota_gateway.utils.date_utils import subscription_expiry, utc_now

logger = logging.getLogger(__name__)


class SubscriptionLedger:
    """Assigns packages to merchants and answers "which subscription is live" """

    def __init__(self, db: Session):
        self.db = db
        self.packages = PackageRepository(db)
        self.merchants = MerchantRepository(db)
        self.subscriptions = SubscriptionRepository(db)

    def assign_package(self, merchant_id: str, package_id: str, now: datetime | None = None) -> AssignmentResult:
        """
        Give a merchant a fresh subscription built from a package.

        Flow (one transaction, merchant row locked for the duration):
        1. insert the new ACTIVE subscription with used_quota = 0
        2. mark every earlier ACTIVE subscription of the merchant REPLACED
        3. point the merchant at the new subscription

        Any failing stage rolls the whole unit back and is reported as
        AssignmentFailed(stage) so the merchant never points at a missing or
        stale subscription. On success the transaction is committed.

        Raises:
            PackageNotFoundError / PackageInactiveError / MerchantNotFoundError
        """
        now = now or utc_now()

        package = self.packages.get_package(package_id)
        if package is None:
            raise PackageNotFoundError(f"Package {package_id} not found")
        if not package.is_active:
            raise PackageInactiveError(f"Package {package_id} is not active")

        merchant = self.merchants.lock_merchant(merchant_id)
        if merchant is None:
            self.db.rollback()
            raise MerchantNotFoundError(f"Merchant {merchant_id} not found")

        expired_at = subscription_expiry(now, package.validity_days)

        stage = "insert"
        try:
            subscription = self.subscriptions.create_subscription(
                merchant_id=merchant_id,
                package=package,
                started_at=now,
                expired_at=expired_at,
            )

            stage = "supersede"
            replaced = self.subscriptions.supersede_active(merchant_id, keep_id=subscription.id)

            stage = "pointer"
            if self.merchants.set_current_subscription(merchant_id, subscription.id, now) != 1:
                raise MerchantNotFoundError(f"Merchant {merchant_id} disappeared during assignment")

            self.db.commit()
        except (SQLAlchemyError, MerchantNotFoundError) as e:
            self.db.rollback()
            subscription_assignment_counter.labels(outcome="failed").inc()
            logger.error(
                f"Package assignment failed at {stage}: {e}",
                extra={"merchant_id": merchant_id, "package_id": package_id, "stage": stage},
            )
            return AssignmentFailed(stage=stage, error=str(e))

        subscription_assignment_counter.labels(outcome="committed").inc()
        logger.info(
            "Package assigned",
            extra={
                "merchant_id": merchant_id,
                "package_id": package_id,
                "subscription_id": subscription.id,
                "replaced": replaced,
            },
        )
        return AssignmentCommitted(
            subscription_id=subscription.id,
            expired_at=expired_at,
            transaction_quota=subscription.transaction_quota,
            replaced_ids=tuple(replaced),
        )

    def create_package(self, **fields) -> TransactionPackage:
        package = self.packages.create_package(**fields)
        self.db.commit()
        return package

    def update_package(self, package_id: str, **fields) -> TransactionPackage:
        """
        Edit a package. Once a subscription references it only is_active may
        change, so existing subscriptions keep describing what was sold.

        Raises:
            PackageNotFoundError, PackageInUseError
        """
        package = self.packages.get_package(package_id)
        if package is None:
            raise PackageNotFoundError(f"Package {package_id} not found")
        changed = {k for k, v in fields.items() if getattr(package, k) != v}
        if changed - {"is_active"} and self.packages.is_referenced(package_id):
            raise PackageInUseError(f"Package {package_id} is referenced by a subscription")

        for key, value in fields.items():
            setattr(package, key, value)
        self.db.commit()
        return package

    def get_active_subscription(self, merchant_id: str, now: datetime | None = None) -> Optional[MerchantSubscription]:
        """Most recent ACTIVE subscription with expired_at >= now, or None"""
        return self.subscriptions.get_active(merchant_id, now or utc_now())

    def get_quota_status(self, merchant_id: str, now: datetime | None = None) -> QuotaStatus:
        """Credits view for merchant/admin dashboards"""
        subscription = self.get_active_subscription(merchant_id, now)

        if subscription is None:
            return QuotaStatus(
                merchant_id=merchant_id,
                can_transact=False,
                remaining_quota=0,
                total_quota=0,
                used_quota=0,
                expires_at=None,
                package_name=None,
            )

        remaining = subscription.transaction_quota - subscription.used_quota
        return QuotaStatus(
            merchant_id=merchant_id,
            can_transact=remaining > 0,
            remaining_quota=remaining,
            total_quota=subscription.transaction_quota,
            used_quota=subscription.used_quota,
            expires_at=subscription.expired_at,
            package_name=subscription.package.name if subscription.package else None,
        )
