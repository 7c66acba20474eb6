"""User statistics: validation, time buckets and the recent-users list.

Everything here is a pure function of ``(records, now)``. Callers pass
``now`` explicitly; nothing in this module reads the wall clock.

Records are the raw dicts returned by the users listing endpoint::

    {"id": 7, "name": "Ada", "email": "ada@example.com", "created_at": "2024-03-15T11:00:00Z"}
"""

from __future__ import annotations

import calendar
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

RECENT_USERS_LIMIT = 5
REQUIRED_FIELDS = ("id", "name", "email", "created_at")


@dataclass(frozen=True)
class DateRange:
    """Bucket boundaries derived from a reference instant."""

    today_start: datetime
    week_ago_start: datetime
    month_ago_start: datetime


@dataclass(frozen=True)
class BucketCounts:
    today: int = 0
    this_week: int = 0
    this_month: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"today": self.today, "this_week": self.this_week, "this_month": self.this_month}


@dataclass(frozen=True)
class StatsSnapshot:
    """Aggregate statistics from one successful fetch."""

    total_users: int = 0
    recent_users: list[dict[str, Any]] = field(default_factory=list)
    bucket_counts: BucketCounts = field(default_factory=BucketCounts)
    fetched_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_users": self.total_users,
            "recent_users": [dict(u) for u in self.recent_users],
            "bucket_counts": self.bucket_counts.to_dict(),
            "fetched_at": self.fetched_at.isoformat() if self.fetched_at else None,
        }


# ── Validation ───────────────────────────────────────────────────────────────


def is_valid_user(record: Any) -> bool:
    """True iff the record is a mapping whose id, name, email and created_at are all truthy."""
    if not isinstance(record, Mapping):
        return False
    return all(record.get(f) for f in REQUIRED_FIELDS)


def as_local_naive(dt: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone().replace(tzinfo=None)


def parse_created_at(value: Any) -> datetime | None:
    """Parse a created_at value to a naive local datetime, or None if unparsable."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is not None:
        try:
            dt = as_local_naive(dt)
        except (OverflowError, OSError):
            return None
    return dt


# ── Date ranges ──────────────────────────────────────────────────────────────


def _shift_month(dt: datetime, months: int) -> datetime:
    """Move ``dt`` by whole months, clamping the day to the target month's length."""
    index = dt.year * 12 + (dt.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def date_ranges(now: datetime) -> DateRange:
    """Today's midnight, 7 days before it, and one calendar month before it.

    Day-of-month overflow clamps: 2024-03-31 gives a month start of 2024-02-29.
    """
    today = as_local_naive(now).replace(hour=0, minute=0, second=0, microsecond=0)
    return DateRange(
        today_start=today,
        week_ago_start=today - timedelta(days=7),
        month_ago_start=_shift_month(today, -1),
    )


# ── Counting ─────────────────────────────────────────────────────────────────


def count_users_by_date(records: Iterable[Any], boundary: datetime) -> int:
    """Count valid records created at or after ``boundary``."""
    count = 0
    for record in records:
        if not is_valid_user(record):
            continue
        created = parse_created_at(record["created_at"])
        if created is not None and created >= boundary:
            count += 1
    return count


def calculate_user_stats(records: Any, now: datetime) -> BucketCounts:
    """Bucket counts for today / this week / this month. Non-sequences count as empty."""
    if not isinstance(records, Sequence) or isinstance(records, (str, bytes)) or not records:
        return BucketCounts()

    ranges = date_ranges(now)
    return BucketCounts(
        today=count_users_by_date(records, ranges.today_start),
        this_week=count_users_by_date(records, ranges.week_ago_start),
        this_month=count_users_by_date(records, ranges.month_ago_start),
    )


def recent_users(records: Iterable[Any], limit: int = RECENT_USERS_LIMIT) -> list[dict[str, Any]]:
    """First ``limit`` valid records in source order (validate first, then slice)."""
    valid = [dict(r) for r in records if is_valid_user(r)]
    return valid[:max(0, limit)]


def total_users(records: Sequence[Any], server_total: Any = None) -> int:
    """Server-reported total when it is a usable number, else the record count."""
    if (
        isinstance(server_total, (int, float))
        and not isinstance(server_total, bool)
        and math.isfinite(server_total)
        and server_total >= 0
    ):
        return int(server_total)
    return max(0, len(records))


def compute_snapshot(
    records: Sequence[Any],
    now: datetime,
    server_total: Any = None,
    limit: int = RECENT_USERS_LIMIT,
) -> StatsSnapshot:
    """Build a full snapshot from one listing. Not cached across calls."""
    now = as_local_naive(now)
    return StatsSnapshot(
        total_users=total_users(records, server_total),
        recent_users=recent_users(records, limit),
        bucket_counts=calculate_user_stats(records, now),
        fetched_at=now,
    )
