"""POST /v1/orders - checkout for a single merchant"""

import time
import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from quota_gateway.api.dependencies import get_quota_service, get_request_id, get_risk_engine, get_tier_pricer
from quota_gateway.api.v1.schemas import CheckoutRequest, CheckoutResponse
from quota_gateway.domain.exceptions import (
    CODIneligibleError,
    InvalidPriceError,
    MerchantNotFoundError,
    QuotaExhaustedError,
)
from quota_gateway.domain.models import OrderItem
from quota_gateway.domain.pricing import QuotaTierPricer
from quota_gateway.infrastructure.database.session import get_db
from quota_gateway.services.checkout import CheckoutService
from quota_gateway.services.cod import CODRiskEngine
from quota_gateway.services.quota import QuotaConsumptionService

router = APIRouter()


@router.post("/orders", response_model=CheckoutResponse, status_code=201)
def place_order(
    request_body: CheckoutRequest,
    request: Request,
    db: Session = Depends(get_db),
    pricer: QuotaTierPricer = Depends(get_tier_pricer),
    quota_service: QuotaConsumptionService = Depends(get_quota_service),
    risk_engine: CODRiskEngine = Depends(get_risk_engine),
):
    """
    Finalize an order.

    Flow:
    1. COD orders must pass the eligibility chain (409 with reason otherwise)
    2. Tier-priced credits are debited from the merchant (409 when exhausted)
    3. Order is persisted and committed together with the debit
    """
    start_time = time.time()
    request_id = get_request_id(request)

    buyer_location = None
    if request_body.buyer_latitude is not None and request_body.buyer_longitude is not None:
        buyer_location = (request_body.buyer_latitude, request_body.buyer_longitude)

    checkout = CheckoutService(db, pricer, quota_service, risk_engine)

    try:
        placed = checkout.place_order(
            buyer_id=request_body.buyer_id,
            merchant_id=request_body.merchant_id,
            items=[OrderItem(price=i.price, quantity=i.quantity) for i in request_body.items],
            payment_method=request_body.payment_method,
            distance_km=request_body.distance_km,
            buyer_location=buyer_location,
        )
        db.commit()

    except MerchantNotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))

    except CODIneligibleError as e:
        db.rollback()
        raise HTTPException(status_code=409, detail={"code": "cod_ineligible", "reason": e.reason})

    except QuotaExhaustedError as e:
        db.rollback()
        logging.warning(f"Quota exhausted: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail={"code": "quota_exhausted", "reason": str(e)})

    except InvalidPriceError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(e))

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected checkout error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    order = placed.order
    logging.info(
        "Order placed",
        extra={
            "request_id": request_id,
            "order_id": order.id,
            "merchant_id": order.merchant_id,
            "credits_used": placed.credits_used,
            "duration_ms": (time.time() - start_time) * 1000,
        },
    )

    return CheckoutResponse(
        order_id=order.id,
        status=order.status,
        cod_status=order.cod_status,
        subtotal=order.subtotal,
        service_fee=order.service_fee,
        total=order.total,
        credits_used=placed.credits_used,
        remaining_quota=placed.remaining_quota,
        confirmation_deadline=order.confirmation_deadline,
    )
