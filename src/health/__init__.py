"""Health subsystem: dependency probes and cache backends."""

from .cache import MemoryCache, RedisCache, build_cache
from .engine import (
    HealthAggregator,
    HealthReport,
    OverallStatus,
    ProbeResult,
    Status,
    aggregate,
    build_default_aggregator,
    run_probe,
)
