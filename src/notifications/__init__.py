"""Dashboard notifications: short-lived banner messages plus optional Discord forwarding.

The presentation layer polls ``current()`` for the active notification;
each one stays visible for ``duration`` seconds. When a Discord webhook
URL is configured the text is also forwarded (fire-and-forget via httpx).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class NotifyLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_EMOJI = {
    NotifyLevel.INFO: "ℹ️",
    NotifyLevel.WARNING: "⚠️",
    NotifyLevel.ERROR: "🔴",
}


@dataclass
class Notification:
    message: str
    level: NotifyLevel
    created_at: datetime
    expires_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "level": self.level.value,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }


class NotificationCenter:
    """Holds the latest notification for the dashboard banner."""

    def __init__(
        self,
        duration: float = 5,
        enabled: bool = True,
        webhook_url: str = "",
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.duration = duration
        self.enabled = enabled
        self.webhook_url = webhook_url
        self.clock = clock
        self._current: Notification | None = None
        self._pending: set[asyncio.Task[bool]] = set()

    def notify(self, message: str, level: NotifyLevel = NotifyLevel.ERROR) -> Notification | None:
        """Set the active notification; returns None when notifications are disabled."""
        if not self.enabled:
            logger.debug("Notifications disabled, dropping: %s", message)
            return None

        now = self.clock()
        self._current = Notification(
            message=message,
            level=level,
            created_at=now,
            expires_at=now + timedelta(seconds=self.duration),
        )
        if self.webhook_url:
            self._forward(f"{_EMOJI[level]} **Dashboard**: {message}")
        return self._current

    def current(self, now: datetime | None = None) -> Notification | None:
        """The active notification, or None once it has expired."""
        if self._current is None:
            return None
        if (now or self.clock()) >= self._current.expires_at:
            self._current = None
        return self._current

    def clear(self) -> None:
        self._current = None

    # -- Discord forwarding ---------------------------------------------------

    def _forward(self, text: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, Discord forward skipped")
            return
        task = loop.create_task(self.send_webhook(text))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def send_webhook(self, text: str) -> bool:
        """POST a message to the configured Discord webhook."""
        if not self.webhook_url:
            return False
        try:
            async with httpx.AsyncClient(timeout=10) as client:
                resp = await client.post(self.webhook_url, json={"content": text})
            if resp.status_code in (200, 204):
                logger.debug("Discord: message sent")
                return True
            logger.warning("Discord send failed: %d %s", resp.status_code, resp.text[:200])
            return False
        except Exception as exc:
            logger.warning("Discord notification failed: %s", exc)
            return False

    async def close(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
