"""COD risk rules - eligibility chain, trust score math and confirmation deadlines"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from quota_gateway.domain.models import CODEligibilityResult, CODSettings
from quota_gateway.utils.date_utils import add_minutes, utc_now

REASON_AMOUNT_TOO_LARGE = "amount too large for COD"
REASON_DISTANCE_TOO_FAR = "distance too far for COD"
REASON_BUYER_DISABLED = "COD disabled for this buyer"
REASON_MERCHANT_UNSUPPORTED = "merchant does not support COD"
REASON_LOW_TRUST = "trust score too low for COD"

MAX_TRUST_SCORE = 100
MIN_TRUST_SCORE = 0
EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class TrustState:
    """Buyer trust snapshot"""

    trust_score: int = MAX_TRUST_SCORE
    cod_fail_count: int = 0
    cod_enabled: bool = True


def evaluate_cod_eligibility(
    total_amount: int,
    distance_km: Optional[float],
    buyer: TrustState,
    merchant_allows_cod: bool,
    settings: CODSettings,
    merchant_max_amount: Optional[int] = None,
    merchant_max_distance_km: Optional[float] = None,
) -> CODEligibilityResult:
    """
    Run the COD rule chain in order; the first failing rule wins.

    Rules:
    1. total_amount within the COD ceiling (merchant cap may lower it)
    2. distance within range, only when distance is known
    3. buyer still has COD enabled
    4. merchant accepts COD
    5. buyer trust score at or above the configured minimum
    """
    max_amount = settings.max_amount
    if merchant_max_amount is not None:
        max_amount = min(max_amount, merchant_max_amount)

    max_distance = settings.max_distance_km
    if merchant_max_distance_km is not None:
        max_distance = min(max_distance, merchant_max_distance_km)

    if total_amount > max_amount:
        return CODEligibilityResult(eligible=False, reason=REASON_AMOUNT_TOO_LARGE)

    if distance_km is not None and distance_km > max_distance:
        return CODEligibilityResult(eligible=False, reason=REASON_DISTANCE_TOO_FAR)

    if not buyer.cod_enabled:
        return CODEligibilityResult(eligible=False, reason=REASON_BUYER_DISABLED)

    if not merchant_allows_cod:
        return CODEligibilityResult(eligible=False, reason=REASON_MERCHANT_UNSUPPORTED)

    if buyer.trust_score < settings.min_trust_score:
        return CODEligibilityResult(eligible=False, reason=REASON_LOW_TRUST)

    return CODEligibilityResult(eligible=True, reason=None)


def confirmation_deadline(created_at: datetime, timeout_minutes: int = 15) -> datetime:
    """Latest time a buyer may confirm a pending COD order"""
    return add_minutes(created_at, timeout_minutes)


def is_confirmation_expired(deadline: datetime, now: datetime | None = None) -> bool:
    return (now or utc_now()) > deadline


def calculate_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in kilometres (haversine)"""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c
