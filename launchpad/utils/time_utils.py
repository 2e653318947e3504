from datetime import datetime, timedelta, timezone
from typing import Optional

# Fixed-width form so stored timestamps compare correctly as strings.
ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """Return ``dt`` as a fixed-width UTC ISO 8601 string."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime(ISO_FORMAT)


def iso_utc_now() -> str:
    return to_iso(utc_now())


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp (``Z`` suffix allowed); ``None`` passes through."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    raw = str(value)
    if raw.endswith("Z"):
        raw = raw.replace("Z", "+00:00")
    dt = datetime.fromisoformat(raw)
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def advance_past(previous: Optional[datetime], now: Optional[datetime] = None) -> datetime:
    """Return ``now`` or, if the clock has not moved past ``previous``, one microsecond later."""
    now = now or utc_now()
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


def epoch_ms(dt: Optional[datetime] = None) -> int:
    return int((dt or utc_now()).timestamp() * 1000)


__all__ = ["utc_now", "to_iso", "iso_utc_now", "parse_iso", "advance_past", "epoch_ms"]
