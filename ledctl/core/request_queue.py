"""Serialized, retrying request dispatcher.

The device behind the transport cannot absorb concurrent or rapid calls, so
every call goes through one `RequestQueue`:

- at most one call is in flight; `enqueue` never starts a second drain;
- after a success the queue waits `cooldown_s` before the next call;
- a failed request goes back to the head of the queue and is retried after
  `base_delay_s * 2 ** n` for retry `n`, up to `max_retries` retries;
- a request that exhausts its retries is dropped with one notification and
  the queue moves on to the next request.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any

from ledctl.core.errors import RequestFailedError, TransportError
from ledctl.core.model import Endpoint, QueuePolicy, Request
from ledctl.core.notify import Notifier
from ledctl.transports.base import DeviceTransport

LOGGER = logging.getLogger(__name__)


class RequestQueue:
    def __init__(
        self,
        transport: DeviceTransport,
        *,
        policy: QueuePolicy | None = None,
        notifier: Notifier | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._policy = policy or QueuePolicy()
        self._notifier = notifier
        self._sleep = sleep
        self._requests: deque[Request] = deque()
        self._processing = False
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def policy(self) -> QueuePolicy:
        return self._policy

    @property
    def processing(self) -> bool:
        return self._processing

    @property
    def pending(self) -> tuple[Endpoint, ...]:
        return tuple(request.endpoint for request in self._requests)

    def enqueue(
        self,
        endpoint: Endpoint,
        on_complete: Callable[[str], Any] | None = None,
        on_failure: Callable[[Exception], Any] | None = None,
    ) -> Request:
        if self._closed:
            raise RequestFailedError(f"Request {endpoint} not sent: queue is closed", attempts=0)
        request = Request(endpoint=endpoint, on_complete=on_complete, on_failure=on_failure)
        self._requests.append(request)
        LOGGER.debug("Queued %s (%d pending)", endpoint, len(self._requests))
        if not self._processing:
            self._processing = True
            self._task = asyncio.get_running_loop().create_task(self._drain())
        return request

    def submit(self, endpoint: Endpoint) -> asyncio.Future[str]:
        """Enqueue `endpoint` and return a future for its response body."""
        future: asyncio.Future[str] = asyncio.get_running_loop().create_future()

        def _resolve(body: str) -> None:
            if not future.done():
                future.set_result(body)

        def _reject(exc: Exception) -> None:
            if not future.done():
                future.set_exception(exc)

        self.enqueue(endpoint, _resolve, _reject)
        return future

    async def join(self) -> None:
        """Wait until every queued request has settled and the queue is idle."""
        while self._task is not None and not self._task.done():
            await asyncio.wait((self._task,))

    async def _drain(self) -> None:
        try:
            while self._requests:
                request = self._requests.popleft()
                try:
                    body = await self._transport.request(request.endpoint)
                except asyncio.CancelledError:
                    self._abandon(request, attempts=request.retry_count + 1)
                    raise
                except TransportError as exc:
                    delay = self._handle_failure(request, exc)
                except Exception as exc:
                    LOGGER.exception("Unexpected transport failure for %s", request.endpoint)
                    delay = self._handle_failure(request, exc)
                else:
                    LOGGER.debug("%s -> %r", request.endpoint, body)
                    self._run_callback(request.on_complete, body)
                    delay = self._policy.cooldown_s
                await self._sleep(delay)
        finally:
            self._processing = False

    async def close(self) -> None:
        """Drop every queued request and stop the drain task.

        Dropped requests, including one cancelled mid-call, get their
        `on_failure` callback so awaiting callers are released. Later
        `enqueue` calls raise `RequestFailedError`.
        """
        self._closed = True
        while self._requests:
            request = self._requests.popleft()
            self._abandon(request, attempts=request.retry_count)
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._processing = False

    def _abandon(self, request: Request, *, attempts: int) -> None:
        LOGGER.debug("Dropping %s", request.endpoint)
        error = RequestFailedError(f"Request {request.endpoint} cancelled", attempts=attempts)
        self._run_callback(request.on_failure, error)

    def _handle_failure(self, request: Request, exc: Exception) -> float:
        if request.retry_count < self._policy.max_retries:
            delay = self._policy.base_delay_s * 2**request.retry_count
            request.retry_count += 1
            self._requests.appendleft(request)
            LOGGER.warning(
                "%s failed (%s); retry %d/%d in %.2fs",
                request.endpoint,
                exc,
                request.retry_count,
                self._policy.max_retries,
                delay,
            )
            return delay

        attempts = request.retry_count + 1
        message = f"Request {request.endpoint} failed after {attempts} attempts"
        error = RequestFailedError(f"{message}: {exc}", attempts=attempts)
        error.__cause__ = exc
        self._run_callback(request.on_failure, error)
        if self._notifier is not None:
            self._notifier.notify(message)
        else:
            LOGGER.error(message)
        return self._policy.cooldown_s

    @staticmethod
    def _run_callback(callback: Callable[[Any], Any] | None, arg: Any) -> None:
        if callback is None:
            return
        try:
            callback(arg)
        except Exception:
            LOGGER.exception("Request callback %r failed", callback)
