"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    REPLACED = "REPLACED"


class PaymentMethod(str, Enum):
    COD = "COD"
    PREPAID = "PREPAID"


class CODStatus(str, Enum):
    PENDING_CONFIRMATION = "PENDING_CONFIRMATION"
    CONFIRMED = "CONFIRMED"
    EXPIRED = "EXPIRED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class QuotaTier:
    """Price range [min_price, max_price] mapped to a credit cost (max_price None = open-ended)"""

    min_price: int
    max_price: Optional[int]
    credit_cost: int

    def contains(self, price: int) -> bool:
        return price >= self.min_price and (self.max_price is None or price <= self.max_price)


@dataclass(frozen=True)
class OrderItem:
    """Single order line used for credit costing"""

    price: int
    quantity: int = 1


@dataclass(frozen=True)
class CODEligibilityResult:
    """Outcome of the COD rule chain"""

    eligible: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class CODSettings:
    """Explicit COD configuration threaded into the risk engine"""

    max_amount: int = 75_000
    max_distance_km: float = 3.0
    service_fee: int = 1_000
    confirmation_timeout_minutes: int = 15
    min_trust_score: int = 50
    penalty_points: int = 50
    success_bonus_points: int = 1
    flash_sale_discount_percent: int = 50

    @classmethod
    def from_settings(cls, settings) -> "CODSettings":
        return cls(
            max_amount=settings.cod_max_amount,
            max_distance_km=settings.cod_max_distance_km,
            service_fee=settings.cod_service_fee,
            confirmation_timeout_minutes=settings.cod_confirmation_timeout_minutes,
            min_trust_score=settings.cod_min_trust_score,
            penalty_points=settings.cod_penalty_points,
            success_bonus_points=settings.cod_success_bonus_points,
            flash_sale_discount_percent=settings.cod_flash_sale_discount_percent,
        )


@dataclass(frozen=True)
class BuyerCODStatus:
    enabled: bool
    trust_score: int
    fail_count: int
    is_verified: bool


@dataclass(frozen=True)
class Notification:
    """Structured alert handed to the notification dispatcher"""

    user_id: str
    title: str
    message: str
    severity: str  # "warning" | "error"
    link: str

    def to_payload(self) -> dict:
        return {
            "user_id": self.user_id,
            "title": self.title,
            "message": self.message,
            "severity": self.severity,
            "link": self.link,
        }


@dataclass(frozen=True)
class QuotaStatus:
    """Dashboard view of a merchant's credits"""

    merchant_id: str
    can_transact: bool
    remaining_quota: int
    total_quota: int
    used_quota: int
    expires_at: Optional[datetime]
    package_name: Optional[str]


@dataclass(frozen=True)
class QuotaDebit:
    """Result of a debit attempt"""

    success: bool
    subscription_id: Optional[str] = None
    remaining: Optional[int] = None
    alert: Optional[str] = None  # "low" | "empty"


@dataclass(frozen=True)
class AssignmentCommitted:
    subscription_id: str
    expired_at: datetime
    transaction_quota: int
    replaced_ids: tuple = ()


@dataclass(frozen=True)
class AssignmentFailed:
    """Assignment rolled back; stage is "insert", "supersede" or "pointer" """

    stage: str
    error: str


AssignmentResult = Union[AssignmentCommitted, AssignmentFailed]
