"""Health aggregation: runs dependency probes and composes one report.

Probes: SQLite database connectivity, cache write/read round trip.
Each probe is isolated: an exception or timeout in one probe marks only
that service DOWN. The report is built fresh per request, never stored.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

CACHE_SENTINEL_VALUE = "ok"


# ── Models ───────────────────────────────────────────────────────────────────


class Status(str, Enum):
    UP = "up"
    DOWN = "down"


class OverallStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


@dataclass
class ProbeResult:
    """Result of a single dependency probe."""

    name: str
    status: Status
    message: str = ""
    latency_ms: float = 0.0

    def to_dict(self) -> dict[str, str]:
        return {"status": self.status.value, "message": self.message}


@dataclass
class HealthReport:
    """Aggregate of all probe results plus static application info."""

    overall: OverallStatus
    timestamp: datetime
    services: dict[str, ProbeResult] = field(default_factory=dict)
    app_info: dict[str, Any] = field(default_factory=dict)

    @property
    def http_status(self) -> int:
        return 200 if self.overall == OverallStatus.HEALTHY else 503

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.overall.value,
            "timestamp": self.timestamp.isoformat(),
            "services": {name: r.to_dict() for name, r in self.services.items()},
            "application": dict(self.app_info),
        }


# ── Probe runners ────────────────────────────────────────────────────────────


def run_database_probe(db_path: str, timeout: float = 5.0) -> ProbeResult:
    """Open the SQLite database read-write (must already exist) and run SELECT 1."""
    t0 = time.perf_counter()
    try:
        conn = sqlite3.connect(f"file:{db_path}?mode=rw", uri=True, timeout=timeout)
        try:
            conn.execute("SELECT 1").fetchone()
        finally:
            conn.close()
        latency = (time.perf_counter() - t0) * 1000
        return ProbeResult(
            name="", status=Status.UP, latency_ms=round(latency, 1),
            message="Database connection successful",
        )
    except Exception as e:
        latency = (time.perf_counter() - t0) * 1000
        return ProbeResult(
            name="", status=Status.DOWN, latency_ms=round(latency, 1),
            message=f"Database connection failed: {e}",
        )


def run_cache_probe(cache: Any, key: str, ttl: int = 1) -> ProbeResult:
    """Write a sentinel key with a short TTL, read it back and compare."""
    t0 = time.perf_counter()
    try:
        cache.set(key, CACHE_SENTINEL_VALUE, ttl)
        value = cache.get(key)
        latency = (time.perf_counter() - t0) * 1000
        if value == CACHE_SENTINEL_VALUE:
            return ProbeResult(
                name="", status=Status.UP, latency_ms=round(latency, 1),
                message="Cache is working",
            )
        return ProbeResult(
            name="", status=Status.DOWN, latency_ms=round(latency, 1),
            message="Cache check failed",
        )
    except Exception as e:
        latency = (time.perf_counter() - t0) * 1000
        return ProbeResult(
            name="", status=Status.DOWN, latency_ms=round(latency, 1),
            message=f"Cache check failed: {e}",
        )


def run_probe(name: str, probe: Callable[[], ProbeResult]) -> ProbeResult:
    """Run one probe in isolation and tag the result with its service name."""
    try:
        result = probe()
    except Exception as e:
        logger.warning("Probe %s raised: %s", name, e)
        return ProbeResult(name=name, status=Status.DOWN, message=f"Probe error: {type(e).__name__}: {e}")

    if not isinstance(result, ProbeResult):
        return ProbeResult(
            name=name, status=Status.DOWN,
            message=f"Probe returned unexpected value: {result!r}",
        )
    result.name = name
    if result.status == Status.DOWN:
        logger.warning("Probe %s down: %s", name, result.message)
    return result


def aggregate(
    results: Iterable[ProbeResult],
    app_info: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> HealthReport:
    """Compose probe results into a report. HEALTHY iff every probe is UP."""
    services = {r.name: r for r in results}
    overall = (
        OverallStatus.HEALTHY
        if all(r.status == Status.UP for r in services.values())
        else OverallStatus.UNHEALTHY
    )
    return HealthReport(
        overall=overall,
        timestamp=now or datetime.now(timezone.utc),
        services=services,
        app_info=dict(app_info or {}),
    )


# ── Aggregator ───────────────────────────────────────────────────────────────


class HealthAggregator:
    """Runs named probes concurrently, each bounded by ``timeout`` seconds."""

    def __init__(
        self,
        probes: dict[str, Callable[[], ProbeResult]],
        app_info: dict[str, Any] | None = None,
        timeout: float = 5.0,
    ) -> None:
        self.probes = dict(probes)
        self.app_info = dict(app_info or {})
        self.timeout = timeout

    def check(self, now: datetime | None = None) -> HealthReport:
        """Run every probe and aggregate. Probes still running after the timeout are DOWN.

        Each check gets its own pool with one worker per probe, so a probe
        that hangs past the timeout never holds a worker a later check needs.
        """
        executor = ThreadPoolExecutor(
            max_workers=max(1, len(self.probes)), thread_name_prefix="probe",
        )
        try:
            futures = {
                name: executor.submit(run_probe, name, probe)
                for name, probe in self.probes.items()
            }
            wait(futures.values(), timeout=self.timeout)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        results = []
        for name, future in futures.items():
            if future.done() and not future.cancelled():
                results.append(future.result())
            else:
                logger.warning("Probe %s timed out after %.1fs", name, self.timeout)
                results.append(ProbeResult(
                    name=name, status=Status.DOWN,
                    message=f"Probe timed out ({self.timeout:g}s)",
                ))

        report = aggregate(results, self.app_info, now=now)
        logger.debug("Health check: %s (%d services)", report.overall.value, len(report.services))
        return report


def build_default_aggregator(settings: Any, cache: Any) -> HealthAggregator:
    """Wire the database and cache probes from configuration."""
    probes: dict[str, Callable[[], ProbeResult]] = {
        "database": lambda: run_database_probe(settings.database_path, settings.health_probe_timeout),
        "cache": lambda: run_cache_probe(cache, settings.health_cache_key, settings.health_cache_ttl),
    }
    return HealthAggregator(
        probes,
        app_info=settings.app_info,
        timeout=settings.health_probe_timeout,
    )
