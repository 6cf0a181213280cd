# utils/clock.py
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, which is how DateTime columns store it."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
