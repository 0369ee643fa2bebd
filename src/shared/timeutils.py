"""
Timezone helpers.

Everything is stored in UTC; the configured TIMEZONE only decides where a
"day" starts for daily quotas.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize to aware UTC. SQLite hands back naive datetimes."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(tz_name: str, now: Optional[datetime] = None) -> datetime:
    """Start of the current calendar day in `tz_name`, expressed in UTC."""
    tz = ZoneInfo(tz_name)
    local = (now or utcnow()).astimezone(tz)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc)
