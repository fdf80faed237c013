"""Subscription endpoints - package assignment and merchant quota status"""

from fastapi import APIRouter, Depends, HTTPException

from quota_gateway.api.dependencies import get_subscription_ledger
from quota_gateway.api.v1.schemas import (
    AssignPackageRequest,
    AssignPackageResponse,
    QuotaStatusResponse,
    SubscriptionResponse,
)
from quota_gateway.domain.exceptions import MerchantNotFoundError, PackageInactiveError, PackageNotFoundError
from quota_gateway.domain.models import AssignmentFailed
from quota_gateway.services.subscriptions import SubscriptionLedger

router = APIRouter()


@router.post("/admin/merchants/{merchant_id}/subscription", response_model=AssignPackageResponse, status_code=201)
def assign_package(
    merchant_id: str,
    request_body: AssignPackageRequest,
    ledger: SubscriptionLedger = Depends(get_subscription_ledger),
):
    """
    Assign a package to a merchant (admin only; auth lives in the gateway).

    Replaces the merchant's current subscription; unused credits of the old
    subscription are not carried over.
    """
    try:
        result = ledger.assign_package(merchant_id, request_body.package_id)
    except (PackageNotFoundError, MerchantNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PackageInactiveError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if isinstance(result, AssignmentFailed):
        raise HTTPException(status_code=500, detail=f"Package assignment failed at stage '{result.stage}'")

    return AssignPackageResponse(
        subscription_id=result.subscription_id,
        transaction_quota=result.transaction_quota,
        remaining_quota=result.transaction_quota,
        expired_at=result.expired_at,
        replaced_subscription_ids=list(result.replaced_ids),
    )


@router.get("/merchants/{merchant_id}/subscription", response_model=QuotaStatusResponse)
def get_merchant_subscription(merchant_id: str, ledger: SubscriptionLedger = Depends(get_subscription_ledger)):
    """Active subscription and remaining credits for dashboards"""
    status = ledger.get_quota_status(merchant_id)
    subscription = ledger.get_active_subscription(merchant_id)

    subscription_body = None
    if subscription is not None:
        subscription_body = SubscriptionResponse(
            subscription_id=subscription.id,
            merchant_id=subscription.merchant_id,
            package_id=subscription.package_id,
            transaction_quota=subscription.transaction_quota,
            used_quota=subscription.used_quota,
            remaining_quota=subscription.transaction_quota - subscription.used_quota,
            started_at=subscription.started_at,
            expired_at=subscription.expired_at,
            status=subscription.status,
        )

    return QuotaStatusResponse(
        merchant_id=merchant_id,
        can_transact=status.can_transact,
        remaining_quota=status.remaining_quota,
        total_quota=status.total_quota,
        used_quota=status.used_quota,
        expires_at=status.expires_at,
        package_name=status.package_name,
        subscription=subscription_body,
    )
