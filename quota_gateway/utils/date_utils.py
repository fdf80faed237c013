"""Date manipulation utilities"""

from datetime import datetime, timedelta, timezone

# validity_days == 0 packages never expire; modelled as ~100 years out
NON_EXPIRING_DAYS = 36_500


def utc_now() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def subscription_expiry(started_at: datetime, validity_days: int) -> datetime:
    """Expiry for a subscription starting at started_at"""
    if validity_days < 0:
        raise ValueError("validity_days cannot be negative")
    days = NON_EXPIRING_DAYS if validity_days == 0 else validity_days
    return started_at + timedelta(days=days)


def add_minutes(from_time: datetime, minutes: int) -> datetime:
    return from_time + timedelta(minutes=minutes)
