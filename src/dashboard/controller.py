"""Dashboard refresh controller: owns the cached stats snapshot.

State machine::

    IDLE | SUCCESS | ERROR --refresh()--> LOADING
    LOADING --refresh()--> (dropped, no second fetch)
    LOADING --valid listing--> SUCCESS   (snapshot replaced)
    LOADING --failure--------> ERROR     (snapshot kept, notification sent)

Only ``refresh()`` mutates the snapshot. The LOADING guard is checked and
set with no ``await`` in between, so concurrent callers on one event loop
cannot both start a fetch.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from typing import Any

from src.dashboard.client import ListingClient, ListingOfflineError
from src.dashboard.models import classify_listing
from src.stats.engine import RECENT_USERS_LIMIT, StatsSnapshot, compute_snapshot

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_MS = 300_000
UNKNOWN_ERROR_MESSAGE = "An unknown error occurred"
FALLBACK_ERROR_MESSAGE = "An unexpected error occurred"


class RefreshState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


def is_stale(
    last_updated: datetime | None,
    max_age_ms: int = DEFAULT_MAX_AGE_MS,
    now: datetime | None = None,
) -> bool:
    """True when there is no successful update yet or it is older than ``max_age_ms``."""
    if last_updated is None:
        return True
    now = now or datetime.now()
    return (now - last_updated).total_seconds() * 1000 > max_age_ms


def extract_error_message(error: BaseException | None) -> str:
    """User-facing message for a failed refresh.

    Preference: server ``message`` → first field error in ``errors`` →
    the exception's own message → a fixed fallback.
    """
    if error is None:
        return UNKNOWN_ERROR_MESSAGE

    payload = getattr(error, "payload", None)
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message:
            return message

        errors = payload.get("errors")
        if isinstance(errors, dict) and errors:
            first = next(iter(errors.values()))
            if isinstance(first, (list, tuple)):
                first = first[0] if first else None
            if first:
                return str(first)

    text = str(error)
    if text:
        return text
    return FALLBACK_ERROR_MESSAGE


class DashboardState:
    """State container observed by the presentation layer."""

    def __init__(self) -> None:
        self.state: RefreshState = RefreshState.IDLE
        self.snapshot: StatsSnapshot | None = None
        self.error: str | None = None
        self.last_updated: datetime | None = None
        self.last_attempt: datetime | None = None
        # Diagnostics
        self.consecutive_failures: int = 0
        self.fetch_count: int = 0

    @property
    def is_loading(self) -> bool:
        return self.state == RefreshState.LOADING

    def to_dict(self, now: datetime | None = None, max_age_ms: int = DEFAULT_MAX_AGE_MS) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "is_loading": self.is_loading,
            "error": self.error,
            "snapshot": self.snapshot.to_dict() if self.snapshot else None,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "stale": is_stale(self.last_updated, max_age_ms, now),
            "last_attempt": self.last_attempt.isoformat() if self.last_attempt else None,
            "consecutive_failures": self.consecutive_failures,
            "fetch_count": self.fetch_count,
        }


class RefreshController:
    """Fetches the users listing and maintains the last-known-good snapshot."""

    def __init__(
        self,
        client: ListingClient,
        recent_limit: int = RECENT_USERS_LIMIT,
        max_attempts: int = 1,
        retry_backoff: float = 0.5,
        auto_refresh_interval: float | None = None,
        on_error: Callable[[str], Any] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.client = client
        self.recent_limit = recent_limit
        self.max_attempts = max(1, max_attempts)
        self.retry_backoff = retry_backoff
        self.auto_refresh_interval = auto_refresh_interval
        self.on_error = on_error  # notification channel
        self.clock = clock
        self.state = DashboardState()
        self._task: asyncio.Task[None] | None = None
        self._running = False

    def is_stale(self, max_age_ms: int = DEFAULT_MAX_AGE_MS, now: datetime | None = None) -> bool:
        return is_stale(self.state.last_updated, max_age_ms, now or self.clock())

    async def refresh(self, now: datetime | None = None) -> bool:
        """Run one refresh. Returns False if dropped because one is already in flight."""
        if self.state.state == RefreshState.LOADING:
            logger.debug("Refresh already in flight, dropped")
            return False

        previous = self.state.state
        self.state.state = RefreshState.LOADING
        self.state.last_attempt = self.clock()

        try:
            payload = await self._fetch()
            listing = classify_listing(payload)
            snapshot = compute_snapshot(
                listing.data, now or self.clock(), listing.server_total, self.recent_limit,
            )
        except asyncio.CancelledError:
            self.state.state = previous
            raise
        except Exception as e:
            self._fail(e)
            return True

        self.state.snapshot = snapshot
        self.state.last_updated = snapshot.fetched_at
        self.state.error = None
        self.state.consecutive_failures = 0
        self.state.state = RefreshState.SUCCESS
        logger.info(
            "Dashboard refreshed: %d users, %d recent",
            self.state.snapshot.total_users, len(self.state.snapshot.recent_users),
        )
        return True

    async def _fetch(self) -> Any:
        """Fetch in a worker thread, retrying only transport failures."""
        loop = asyncio.get_running_loop()
        attempt = 0
        while True:
            attempt += 1
            self.state.fetch_count += 1
            try:
                return await loop.run_in_executor(None, self.client.fetch_users)
            except ListingOfflineError as e:
                if attempt >= self.max_attempts:
                    raise
                delay = self.retry_backoff * attempt
                logger.info(
                    "Listing fetch failed (%s), retry %d/%d in %.1fs",
                    e, attempt, self.max_attempts - 1, delay,
                )
                await asyncio.sleep(delay)

    def _fail(self, error: Exception) -> None:
        message = extract_error_message(error)
        self.state.error = message
        self.state.consecutive_failures += 1
        self.state.state = RefreshState.ERROR
        logger.warning("Dashboard refresh failed (%s): %s", type(error).__name__, message)

        if self.on_error:
            try:
                self.on_error(message)
            except Exception:
                logger.exception("Notification callback error")

    # ── Auto refresh ─────────────────────────────────────────────────────

    async def start(self) -> None:
        """Start the timer loop if an interval is configured."""
        if self._running or not self.auto_refresh_interval:
            return
        self._running = True
        self._task = asyncio.create_task(self._refresh_loop(), name="dashboard-auto-refresh")
        logger.info("Dashboard auto-refresh started (interval=%ss)", self.auto_refresh_interval)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Dashboard auto-refresh task failed")
            self._task = None
            logger.info("Dashboard auto-refresh stopped")

    async def _refresh_loop(self) -> None:
        while self._running:
            try:
                await self.refresh()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Dashboard auto-refresh error")
            await asyncio.sleep(self.auto_refresh_interval)
