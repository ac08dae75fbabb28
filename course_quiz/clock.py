"""Wall-clock source for time-window decisions.

All datetimes are timezone-aware UTC. Every operation reads ``now`` once
and passes it down, so all of its comparisons agree with each other.
Tests swap the clock via ``app.dependency_overrides[get_clock]``.
"""

from datetime import datetime, timezone


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC; naive input is taken to be UTC already."""
    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


system_clock = SystemClock()


def get_clock() -> SystemClock:
    """FastAPI dependency returning the process clock."""
    return system_clock
