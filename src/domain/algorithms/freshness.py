from __future__ import annotations

from datetime import datetime, timedelta, timezone

FRESHNESS_WINDOW = timedelta(seconds=90)


def parse_timestamp(raw: object) -> datetime | None:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive values are assumed to be UTC. Returns None for anything that is not
    a usable timestamp.
    """

    if isinstance(raw, datetime):
        ts = raw
    elif isinstance(raw, str) and raw.strip():
        value = raw.strip()
        if value.endswith(("Z", "z")):
            value = value[:-1] + "+00:00"
        try:
            ts = datetime.fromisoformat(value)
        except ValueError:
            return None
    else:
        return None

    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def is_fresh(
    updated_at: datetime | None,
    *,
    now: datetime,
    window: timedelta = FRESHNESS_WINDOW,
) -> bool:
    if updated_at is None:
        return False
    return now - updated_at <= window
