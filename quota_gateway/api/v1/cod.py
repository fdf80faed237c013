"""COD endpoints - eligibility, buyer status and COD order outcomes"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from quota_gateway.api.dependencies import get_request_id, get_risk_engine
from quota_gateway.api.v1.schemas import (
    BuyerCODStatusResponse,
    CODEligibilityRequest,
    CODEligibilityResponse,
    CODOrderResponse,
    CODRejectRequest,
    ExpireResponse,
    FlashSaleRequest,
)
from quota_gateway.domain.exceptions import InvalidOrderStateError, OrderNotFoundError
from quota_gateway.infrastructure.database.models import Order
from quota_gateway.infrastructure.database.session import get_db
from quota_gateway.services.cod import CODRiskEngine

router = APIRouter()
logger = logging.getLogger(__name__)


def _order_response(order: Order) -> CODOrderResponse:
    return CODOrderResponse(
        order_id=order.id,
        buyer_id=order.buyer_id,
        cod_status=order.cod_status,
        is_flash_sale=order.is_flash_sale,
        flash_sale_discount=order.flash_sale_discount,
        cod_rejection_reason=order.cod_rejection_reason,
    )


@router.post("/cod/eligibility", response_model=CODEligibilityResponse)
def check_cod_eligibility(
    request_body: CODEligibilityRequest,
    engine: CODRiskEngine = Depends(get_risk_engine),
):
    """
    Decide whether COD may be offered for an order.

    An ineligible result is not an error: the checkout falls back to a
    prepaid method and shows `reason` to the buyer.
    """
    result = engine.check_eligibility(
        buyer_id=request_body.buyer_id,
        merchant_id=request_body.merchant_id,
        total_amount=request_body.total_amount,
        distance_km=request_body.distance_km,
    )
    return CODEligibilityResponse(eligible=result.eligible, reason=result.reason)


@router.get("/buyers/{buyer_id}/cod-status", response_model=BuyerCODStatusResponse)
def get_buyer_cod_status(buyer_id: str, engine: CODRiskEngine = Depends(get_risk_engine)):
    status = engine.get_buyer_cod_status(buyer_id)
    return BuyerCODStatusResponse(
        buyer_id=buyer_id,
        enabled=status.enabled,
        trust_score=status.trust_score,
        fail_count=status.fail_count,
        is_verified=status.is_verified,
    )


def _apply_outcome(db: Session, request_id: str, action, order_id: str) -> CODOrderResponse:
    try:
        order = action()
        db.commit()
        return _order_response(order)
    except OrderNotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidOrderStateError as e:
        db.rollback()
        logger.warning(f"Rejected COD outcome: {e}", extra={"request_id": request_id, "order_id": order_id})
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/cod/orders/{order_id}/confirm", response_model=CODOrderResponse)
def confirm_cod_order(
    order_id: str,
    request: Request,
    db: Session = Depends(get_db),
    engine: CODRiskEngine = Depends(get_risk_engine),
):
    """Buyer confirmed the COD order in time (a late confirmation expires it)"""
    return _apply_outcome(db, get_request_id(request), lambda: engine.confirm_order(order_id), order_id)


@router.post("/cod/orders/{order_id}/reject", response_model=CODOrderResponse)
def reject_cod_order(
    order_id: str,
    request_body: CODRejectRequest,
    request: Request,
    db: Session = Depends(get_db),
    engine: CODRiskEngine = Depends(get_risk_engine),
):
    return _apply_outcome(
        db, get_request_id(request), lambda: engine.reject_order(order_id, request_body.reason), order_id
    )


@router.post("/cod/orders/expire", response_model=ExpireResponse)
def expire_overdue_cod_orders(db: Session = Depends(get_db), engine: CODRiskEngine = Depends(get_risk_engine)):
    """Sweep for pending COD orders past their deadline; meant for a cron caller"""
    expired = engine.expire_overdue_orders()
    db.commit()
    return ExpireResponse(expired_order_ids=expired)


@router.post("/cod/orders/{order_id}/flash-sale", response_model=CODOrderResponse)
def create_flash_sale(
    order_id: str,
    request_body: FlashSaleRequest,
    db: Session = Depends(get_db),
    engine: CODRiskEngine = Depends(get_risk_engine),
):
    try:
        engine.create_flash_sale(order_id, request_body.discount_percent)
        db.commit()
    except OrderNotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))

    return _order_response(engine.orders.get_order(order_id))
