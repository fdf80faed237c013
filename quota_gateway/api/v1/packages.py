"""Admin package catalog endpoints"""

from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query

from quota_gateway.api.dependencies import get_subscription_ledger
from quota_gateway.api.v1.schemas import PackageRequest, PackageResponse
from quota_gateway.domain.exceptions import PackageInUseError, PackageNotFoundError
from quota_gateway.infrastructure.database.models import TransactionPackage
from quota_gateway.services.subscriptions import SubscriptionLedger

router = APIRouter()


def _package_response(package: TransactionPackage) -> PackageResponse:
    return PackageResponse(
        package_id=package.id,
        name=package.name,
        price=package.price,
        transaction_quota=package.transaction_quota,
        validity_days=package.validity_days,
        commission_percent=package.commission_percent,
        description=package.description,
        is_active=package.is_active,
    )


@router.post("/admin/packages", response_model=PackageResponse, status_code=201)
def create_package(request_body: PackageRequest, ledger: SubscriptionLedger = Depends(get_subscription_ledger)):
    package = ledger.create_package(**request_body.model_dump())
    return _package_response(package)


@router.get("/admin/packages", response_model=List[PackageResponse])
def list_packages(
    include_inactive: bool = Query(False, description="Also list retired packages"),
    ledger: SubscriptionLedger = Depends(get_subscription_ledger),
):
    return [_package_response(p) for p in ledger.packages.list_packages(active_only=not include_inactive)]


@router.put("/admin/packages/{package_id}", response_model=PackageResponse)
def update_package(
    package_id: str,
    request_body: PackageRequest,
    ledger: SubscriptionLedger = Depends(get_subscription_ledger),
):
    """Packages already sold can only be retired (is_active), not edited"""
    try:
        package = ledger.update_package(package_id, **request_body.model_dump())
    except PackageNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PackageInUseError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return _package_response(package)
