"""
Datetime helpers for values crossing the MongoDB boundary.

BSON datetimes carry no timezone: pymongo hands back naive values that are
implicitly UTC. Everything written to the document store is therefore naive
UTC, and everything read back is made aware before any arithmetic.
"""
from datetime import datetime, timezone as dt_timezone
from typing import Optional

from django.utils import timezone


def now() -> datetime:
    """Current time as an aware UTC datetime."""
    return timezone.now()


def ensure_aware(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC."""
    if timezone.is_naive(value):
        return value.replace(tzinfo=dt_timezone.utc)
    return value


def to_storage(value: Optional[datetime] = None) -> datetime:
    """Naive UTC representation used for document fields and queries."""
    value = ensure_aware(value or now())
    return value.astimezone(dt_timezone.utc).replace(tzinfo=None)


def storage_now() -> datetime:
    """Default factory for DateTimeFields on mongoengine documents."""
    return to_storage(now())
