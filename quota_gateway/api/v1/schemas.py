"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from quota_gateway.domain.models import PaymentMethod


# ---------------------------------------------------------------------------
# COD
# ---------------------------------------------------------------------------

class CODEligibilityRequest(BaseModel):
    """Request body for POST /v1/cod/eligibility"""

    buyer_id: str = Field(..., min_length=1, description="Buyer identifier")
    merchant_id: str = Field(..., min_length=1, description="Merchant identifier")
    total_amount: int = Field(..., ge=0, description="Order total in Rupiah")
    distance_km: Optional[float] = Field(None, ge=0, description="Buyer-merchant distance, when known")


class CODEligibilityResponse(BaseModel):
    eligible: bool
    reason: Optional[str] = None


class BuyerCODStatusResponse(BaseModel):
    """Response for GET /v1/buyers/{buyer_id}/cod-status"""

    buyer_id: str
    enabled: bool
    trust_score: int
    fail_count: int
    is_verified: bool


class CODRejectRequest(BaseModel):
    reason: str = Field("rejected by merchant", min_length=1)


class FlashSaleRequest(BaseModel):
    discount_percent: Optional[int] = Field(None, gt=0, le=100)


class CODOrderResponse(BaseModel):
    """COD order after an outcome was applied"""

    order_id: str
    buyer_id: str
    cod_status: str
    is_flash_sale: bool
    flash_sale_discount: Optional[int] = None
    cod_rejection_reason: Optional[str] = None


class ExpireResponse(BaseModel):
    expired_order_ids: List[str]


# ---------------------------------------------------------------------------
# Quota
# ---------------------------------------------------------------------------

class ConsumeQuotaRequest(BaseModel):
    """Request body for POST /v1/quota/consume"""

    merchant_id: str = Field(..., min_length=1)
    credits: int = Field(..., gt=0, description="Credits to debit")


class ConsumeQuotaResponse(BaseModel):
    success: bool
    remaining_quota: Optional[int] = None
    quota_alert: Optional[str] = None


class QuotaTierSchema(BaseModel):
    min_price: int = Field(..., ge=0)
    max_price: Optional[int] = Field(None, ge=0)
    credit_cost: int = Field(..., gt=0)


class QuotaTiersResponse(BaseModel):
    tiers: List[QuotaTierSchema]


class QuotaTiersRequest(BaseModel):
    """Request body for PUT /v1/admin/quota/tiers (replaces the whole table)"""

    tiers: List[QuotaTierSchema] = Field(..., min_length=1)


class OrderItemSchema(BaseModel):
    price: int = Field(..., ge=0, description="Unit price in Rupiah")
    quantity: int = Field(1, gt=0)


class CreditCostRequest(BaseModel):
    """Either a single order total or a list of items"""

    order_total: Optional[int] = Field(None, ge=0)
    items: Optional[List[OrderItemSchema]] = None


class CreditCostResponse(BaseModel):
    credits: int


# ---------------------------------------------------------------------------
# Subscriptions & packages
# ---------------------------------------------------------------------------

class AssignPackageRequest(BaseModel):
    """Request body for POST /v1/admin/merchants/{merchant_id}/subscription"""

    package_id: str = Field(..., min_length=1)


class SubscriptionResponse(BaseModel):
    subscription_id: str
    merchant_id: str
    package_id: str
    transaction_quota: int
    used_quota: int
    remaining_quota: int
    started_at: datetime
    expired_at: datetime
    status: str


class AssignPackageResponse(BaseModel):
    subscription_id: str
    transaction_quota: int
    remaining_quota: int
    expired_at: datetime
    replaced_subscription_ids: List[str]


class QuotaStatusResponse(BaseModel):
    """Response for GET /v1/merchants/{merchant_id}/subscription"""

    merchant_id: str
    can_transact: bool
    remaining_quota: int
    total_quota: int
    used_quota: int
    expires_at: Optional[datetime] = None
    package_name: Optional[str] = None
    subscription: Optional[SubscriptionResponse] = None


class PackageRequest(BaseModel):
    name: str = Field(..., min_length=1)
    price: int = Field(..., ge=0, description="Price per transaction credit")
    transaction_quota: int = Field(..., gt=0)
    validity_days: int = Field(30, ge=0, description="0 = never expires")
    commission_percent: float = Field(0.0, ge=0, le=100)
    description: Optional[str] = None
    is_active: bool = True


class PackageResponse(PackageRequest):
    package_id: str


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------

class CheckoutRequest(BaseModel):
    """Request body for POST /v1/orders"""

    buyer_id: str = Field(..., min_length=1)
    merchant_id: str = Field(..., min_length=1)
    items: List[OrderItemSchema] = Field(..., min_length=1)
    payment_method: PaymentMethod
    distance_km: Optional[float] = Field(None, ge=0)
    buyer_latitude: Optional[float] = Field(None, ge=-90, le=90)
    buyer_longitude: Optional[float] = Field(None, ge=-180, le=180)


class CheckoutResponse(BaseModel):
    order_id: str
    status: str
    cod_status: Optional[str] = None
    subtotal: int
    service_fee: int
    total: int
    credits_used: int
    remaining_quota: Optional[int] = None
    confirmation_deadline: Optional[datetime] = None
