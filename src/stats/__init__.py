"""User statistics: pure bucket/recent-list computation and display helpers."""

from .engine import (
    BucketCounts,
    DateRange,
    StatsSnapshot,
    calculate_user_stats,
    compute_snapshot,
    count_users_by_date,
    date_ranges,
    is_valid_user,
    recent_users,
    total_users,
)
from .formatting import format_date, format_number, safe_json_parse
