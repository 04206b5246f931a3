"""User-visible failure channel with auto-expiring notifications."""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

LOGGER = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, message: str) -> None:
        """Show a short-lived message to the user."""


@dataclass(frozen=True)
class Notification:
    id: int
    message: str


class NotificationCenter:
    """Keeps the currently visible notifications and dismisses each after `ttl_s`.

    Hosts that render notifications pass `on_show`/`on_dismiss` hooks; without
    a running event loop a notification stays until `dismiss` is called.
    """

    def __init__(
        self,
        *,
        ttl_s: float = 5.0,
        on_show: Callable[[Notification], None] | None = None,
        on_dismiss: Callable[[Notification], None] | None = None,
    ) -> None:
        self.ttl_s = ttl_s
        self._on_show = on_show
        self._on_dismiss = on_dismiss
        self._ids = itertools.count(1)
        self._active: dict[int, Notification] = {}

    @property
    def active(self) -> list[Notification]:
        return list(self._active.values())

    def notify(self, message: str) -> None:
        notification = Notification(id=next(self._ids), message=message)
        self._active[notification.id] = notification
        LOGGER.warning(message)
        if self._on_show is not None:
            self._on_show(notification)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        loop.call_later(self.ttl_s, self.dismiss, notification.id)

    def dismiss(self, notification_id: int) -> None:
        notification = self._active.pop(notification_id, None)
        if notification is not None and self._on_dismiss is not None:
            self._on_dismiss(notification)
