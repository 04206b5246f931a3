"""Collapse bursts of rapid triggers into one delayed action."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

LOGGER = logging.getLogger(__name__)


class Debouncer:
    """Fire-and-forget trigger that only runs the last call of a burst.

    Each call cancels the pending invocation and schedules a new one
    `delay_s` later on the running event loop.
    """

    def __init__(self, action: Callable[..., Any], delay_s: float) -> None:
        self._action = action
        self._delay_s = delay_s
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay_s, self._fire, args, kwargs)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        self._handle = None
        try:
            self._action(*args, **kwargs)
        except Exception:
            LOGGER.exception("Debounced action %r failed", self._action)


def debounce(action: Callable[..., Any], delay_s: float) -> Debouncer:
    return Debouncer(action, delay_s)
