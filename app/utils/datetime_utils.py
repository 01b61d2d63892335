"""UTC helpers. Every timestamp the pipeline writes is timezone-aware UTC."""

from datetime import date, datetime, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def days_ago(days: int, now: datetime | None = None) -> date:
    """Calendar date `days` before now (UTC)."""
    return ((now or utc_now()) - timedelta(days=days)).date()


def iso_date(value: date) -> str:
    """YYYY-MM-DD, the format of trend observation points."""
    return value.isoformat()
