"""Staged startup fetch of the device's current configuration.

Options lists are fetched first, then scalar settings, then values that only
make sense once the options are known (e.g. the current palette index). Each
stage settles completely before the next one starts, and a fetch that fails
or returns garbage falls back to the setting's default, so `run` always ends
in `BootstrapState.READY`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from ledctl.core.binding import SettingBinding
from ledctl.core.errors import MalformedResponseError
from ledctl.core.model import BootstrapState, Endpoint
from ledctl.core.request_queue import RequestQueue
from ledctl.core.responses import parse_options, parse_scalar

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchStep:
    setting: str
    endpoint: Endpoint
    apply: Callable[[str], object]
    fallback: Callable[[], object]


def _options_step(binding: SettingBinding) -> FetchStep:
    def _fallback() -> None:
        binding.apply_options(())
        binding.apply_default()

    return FetchStep(
        setting=binding.setting.id,
        endpoint=Endpoint(binding.setting.list_op),
        apply=lambda body: binding.apply_options(parse_options(body)),
        fallback=_fallback,
    )


def _scalar_step(binding: SettingBinding) -> FetchStep:
    field = binding.setting.response_field
    return FetchStep(
        setting=binding.setting.id,
        endpoint=Endpoint(binding.setting.get_op),
        apply=lambda body: binding.apply_remote(parse_scalar(body, field)),
        fallback=binding.apply_default,
    )


class BootstrapSequencer:
    def __init__(self, queue: RequestQueue, bindings: Mapping[str, SettingBinding]) -> None:
        self._queue = queue
        self._bindings = bindings
        self._state = BootstrapState.IDLE
        self._ready_callbacks: list[Callable[[], None]] = []

    @property
    def state(self) -> BootstrapState:
        return self._state

    @property
    def ready(self) -> bool:
        return self._state is BootstrapState.READY

    def on_ready(self, callback: Callable[[], None]) -> None:
        self._ready_callbacks.append(callback)

    def stages(self) -> list[tuple[BootstrapState, list[FetchStep]]]:
        bindings = list(self._bindings.values())
        return [
            (
                BootstrapState.FETCHING_OPTIONS,
                [_options_step(b) for b in bindings if b.setting.list_op],
            ),
            (
                BootstrapState.FETCHING_SCALARS,
                [_scalar_step(b) for b in bindings if b.setting.get_op and b.setting.stage == "scalars"],
            ),
            (
                BootstrapState.FETCHING_DERIVED,
                [_scalar_step(b) for b in bindings if b.setting.get_op and b.setting.stage == "derived"],
            ),
        ]

    async def run(self) -> BootstrapState:
        if self.ready:
            return self._state
        for state, steps in self.stages():
            self._state = state
            LOGGER.debug("Bootstrap %s: %d fetches", state.value, len(steps))
            await asyncio.gather(*(self._submit(step) for step in steps))
        self._state = BootstrapState.READY
        LOGGER.debug("Bootstrap ready")
        for callback in self._ready_callbacks:
            callback()
        return self._state

    def _submit(self, step: FetchStep) -> asyncio.Future[None]:
        settled: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def _complete(body: str) -> None:
            try:
                step.apply(body)
            except MalformedResponseError as exc:
                LOGGER.warning("Malformed response for %s (%s); using default", step.setting, exc)
                step.fallback()
            except Exception:
                LOGGER.exception("Could not apply %s; using default", step.setting)
                step.fallback()
            finally:
                settled.set_result(None)

        def _fail(exc: Exception) -> None:
            try:
                LOGGER.warning("Could not fetch %s (%s); using default", step.setting, exc)
                step.fallback()
            finally:
                settled.set_result(None)

        self._queue.enqueue(step.endpoint, _complete, _fail)
        return settled
