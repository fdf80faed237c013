"""Quota tier pricing - maps order prices to transaction credit costs"""

from typing import Iterable, List, Sequence
from quota_gateway.domain.models import QuotaTier, OrderItem
from quota_gateway.domain.exceptions import InvalidPriceError, InvalidTierConfigurationError

# Tier table of the production deployment (prices in Rupiah)
DEFAULT_QUOTA_TIERS: List[QuotaTier] = [
    QuotaTier(min_price=0, max_price=3_000, credit_cost=1),
    QuotaTier(min_price=3_001, max_price=5_000, credit_cost=1),
    QuotaTier(min_price=5_001, max_price=10_000, credit_cost=2),
    QuotaTier(min_price=10_001, max_price=None, credit_cost=3),
]


def validate_tiers(tiers: Sequence[QuotaTier]) -> List[QuotaTier]:
    """
    Check that tiers partition the non-negative integer price axis.

    Requirements:
    - First tier starts at 0, last tier is open-ended (max_price None)
    - Each tier starts exactly one unit after the previous one ends (no gaps/overlaps)
    - credit_cost is a positive integer and never decreases as price grows

    Returns the tiers sorted by min_price.
    """
    if not tiers:
        raise InvalidTierConfigurationError("At least one quota tier is required")

    ordered = sorted(tiers, key=lambda t: t.min_price)

    if ordered[0].min_price != 0:
        raise InvalidTierConfigurationError("First tier must start at price 0")

    for i, tier in enumerate(ordered):
        is_last = i == len(ordered) - 1
        if tier.credit_cost < 1:
            raise InvalidTierConfigurationError(f"Tier starting at {tier.min_price} has non-positive cost")

        if is_last:
            if tier.max_price is not None:
                raise InvalidTierConfigurationError("Last tier must be open-ended")
            continue

        nxt = ordered[i + 1]
        if tier.max_price is None:
            raise InvalidTierConfigurationError("Only the last tier may be open-ended")
        if tier.max_price < tier.min_price:
            raise InvalidTierConfigurationError(f"Tier starting at {tier.min_price} has max below min")
        if nxt.min_price != tier.max_price + 1:
            raise InvalidTierConfigurationError(
                f"Tiers [{tier.min_price}, {tier.max_price}] and starting at {nxt.min_price} "
                "leave a gap or overlap"
            )
        if nxt.credit_cost < tier.credit_cost:
            raise InvalidTierConfigurationError("Credit cost must not decrease as price grows")

    return ordered


class QuotaTierPricer:
    """Pure tier lookup; construct once per tier table"""

    def __init__(self, tiers: Iterable[QuotaTier] | None = None):
        self.tiers = validate_tiers(list(tiers) if tiers is not None else DEFAULT_QUOTA_TIERS)

    def credit_cost(self, order_total: int) -> int:
        """
        Credit cost for a monetary total.

        Upper bounds are inclusive and the last tier is open-ended, so every
        non-negative price maps to exactly one tier.

        Example:
            3000 → 1, 3001 → 1, 5001 → 2, 250000 → 3 (default tiers)
        """
        if order_total < 0:
            raise InvalidPriceError(f"Price cannot be negative: {order_total}")

        for tier in self.tiers:
            if tier.contains(order_total):
                return tier.credit_cost

        # Fractional prices between integer tier bounds fall into the lower tier
        for tier in reversed(self.tiers):
            if order_total >= tier.min_price:
                return tier.credit_cost

        raise InvalidPriceError(f"No tier covers price {order_total}")

    def order_credit_cost(self, items: Iterable[OrderItem]) -> int:
        """Sum of per-item tier cost times quantity"""
        total = 0
        for item in items:
            if item.quantity < 1:
                raise InvalidPriceError(f"Quantity must be positive: {item.quantity}")
            total += self.credit_cost(item.price) * item.quantity
        return total
