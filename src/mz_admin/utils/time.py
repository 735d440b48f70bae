"""Time helpers for store records."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def to_iso(moment: datetime) -> str:
    """Serialise a datetime as an ISO-8601 string, assuming UTC when naive."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.isoformat()


def from_iso(value: str) -> datetime:
    """Parse an ISO-8601 string written by `to_iso` (or by a JS ``toISOString``)."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
