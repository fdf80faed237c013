"""Quota endpoints - credit debits and tier pricing"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from quota_gateway.api.dependencies import get_quota_service, get_request_id, get_tier_pricer
from quota_gateway.api.v1.schemas import (
    ConsumeQuotaRequest,
    ConsumeQuotaResponse,
    CreditCostRequest,
    CreditCostResponse,
    QuotaTierSchema,
    QuotaTiersRequest,
    QuotaTiersResponse,
)
from quota_gateway.domain.exceptions import InvalidPriceError, InvalidTierConfigurationError
from quota_gateway.domain.models import OrderItem, QuotaTier
from quota_gateway.domain.pricing import QuotaTierPricer, validate_tiers
from quota_gateway.infrastructure.database.repositories import TierRepository
from quota_gateway.infrastructure.database.session import get_db
from quota_gateway.services.quota import QuotaConsumptionService

router = APIRouter()


@router.post("/quota/consume", response_model=ConsumeQuotaResponse)
def consume_quota(
    request_body: ConsumeQuotaRequest,
    request: Request,
    db: Session = Depends(get_db),
    quota_service: QuotaConsumptionService = Depends(get_quota_service),
):
    """
    Debit credits for a finalized order.

    `success: false` means no active subscription or not enough credits; the
    caller must reject the order. Low/empty alerts go out after the response.
    """
    try:
        debit = quota_service.debit(request_body.merchant_id, request_body.credits)
        db.commit()
    except Exception as e:
        db.rollback()
        logging.error(f"Quota debit failed: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=500, detail="Internal server error")

    return ConsumeQuotaResponse(success=debit.success, remaining_quota=debit.remaining, quota_alert=debit.alert)


@router.get("/quota/tiers", response_model=QuotaTiersResponse)
def list_quota_tiers(pricer: QuotaTierPricer = Depends(get_tier_pricer)):
    return QuotaTiersResponse(
        tiers=[
            QuotaTierSchema(min_price=t.min_price, max_price=t.max_price, credit_cost=t.credit_cost)
            for t in pricer.tiers
        ]
    )


@router.put("/admin/quota/tiers", response_model=QuotaTiersResponse)
def replace_quota_tiers(request_body: QuotaTiersRequest, db: Session = Depends(get_db)):
    """Replace the tier table; rejected unless the tiers partition the price axis"""
    tiers = [QuotaTier(min_price=t.min_price, max_price=t.max_price, credit_cost=t.credit_cost) for t in request_body.tiers]
    try:
        tiers = validate_tiers(tiers)
    except InvalidTierConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    TierRepository(db).replace_tiers(tiers)
    db.commit()
    logging.info("Quota tiers replaced", extra={"tier_count": len(tiers)})

    return QuotaTiersResponse(
        tiers=[QuotaTierSchema(min_price=t.min_price, max_price=t.max_price, credit_cost=t.credit_cost) for t in tiers]
    )


@router.post("/quota/cost", response_model=CreditCostResponse)
def calculate_credit_cost(request_body: CreditCostRequest, pricer: QuotaTierPricer = Depends(get_tier_pricer)):
    """Credits an order would consume, from a total or from its items"""
    try:
        if request_body.items:
            credits = pricer.order_credit_cost(OrderItem(price=i.price, quantity=i.quantity) for i in request_body.items)
        elif request_body.order_total is not None:
            credits = pricer.credit_cost(request_body.order_total)
        else:
            raise HTTPException(status_code=422, detail="Provide order_total or items")
    except InvalidPriceError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return CreditCostResponse(credits=credits)
