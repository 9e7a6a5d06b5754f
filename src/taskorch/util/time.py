from __future__ import annotations

from datetime import datetime


def now() -> datetime:
    """Timezone-aware local time."""
    return datetime.now().astimezone()


def to_iso(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds")


def duration_sec(start: datetime, end: datetime) -> float:
    return round((end - start).total_seconds(), 3)
