"""Engine layer used by CLI and UI frontends.

One `SyncEngine` lives for one device session: it owns the request queue,
one binding per profile setting, and the bootstrap sequencer. Writes committed
before bootstrap has finished are held back and flushed in order once the
device's current values are known.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable
from typing import Any

from ledctl.core.binding import SettingBinding
from ledctl.core.bootstrap import BootstrapSequencer
from ledctl.core.errors import SettingResolutionError
from ledctl.core.mapping import format_value
from ledctl.core.model import BootstrapState, DeviceProfile, Endpoint, SettingSpec, WriteResult
from ledctl.core.notify import NotificationCenter, Notifier
from ledctl.core.request_queue import RequestQueue
from ledctl.core.responses import parse_scalar
from ledctl.core.surface import ControlSurface, MemorySurface
from ledctl.transports.base import DeviceTransport
from ledctl.transports.http import HTTPTransport

HOST_ENV = "LEDCTL_HOST"
LOGGER = logging.getLogger(__name__)


def resolve_base_url(profile: DeviceProfile, host: str | None = None) -> str:
    return host or os.environ.get(HOST_ENV) or profile.base_url


def resolve_profile(profiles: dict[str, DeviceProfile], profile_id: str | None) -> DeviceProfile:
    if profile_id is None:
        if len(profiles) == 1:
            return next(iter(profiles.values()))
        available = ", ".join(sorted(profiles))
        raise SettingResolutionError(f"Several profiles are loaded; pick one with --profile. Available: {available}")
    profile = profiles.get(profile_id)
    if profile is None:
        available = ", ".join(sorted(profiles))
        raise SettingResolutionError(f"Unknown profile '{profile_id}'. Available: {available}")
    return profile


class SyncEngine:
    def __init__(
        self,
        profile: DeviceProfile,
        *,
        transport: DeviceTransport | None = None,
        surface: ControlSurface | None = None,
        notifier: Notifier | None = None,
        host: str | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.profile = profile
        self.transport = transport or HTTPTransport(
            resolve_base_url(profile, host),
            timeout_s=profile.timeout_s,
        )
        self.surface = surface or MemorySurface()
        self.notifier = notifier or NotificationCenter(ttl_s=profile.queue.notification_ttl_s)
        self.queue = RequestQueue(
            self.transport,
            policy=profile.queue,
            notifier=self.notifier,
            sleep=sleep,
        )
        self.bindings = {
            setting_id: SettingBinding(
                setting,
                self.surface,
                self._commit,
                debounce_s=profile.debounce_s,
            )
            for setting_id, setting in profile.settings.items()
        }
        self.bootstrapper = BootstrapSequencer(self.queue, self.bindings)
        self.bootstrapper.on_ready(self._flush_deferred)
        self.writes: list[WriteResult] = []
        self._deferred: list[tuple[SettingSpec, float]] = []

    @property
    def state(self) -> BootstrapState:
        return self.bootstrapper.state

    @property
    def deferred(self) -> tuple[tuple[str, float], ...]:
        return tuple((setting.id, value) for setting, value in self._deferred)

    def binding(self, setting_id: str) -> SettingBinding:
        binding = self.bindings.get(setting_id)
        if binding is None:
            available = ", ".join(self.bindings)
            raise SettingResolutionError(
                f"Profile '{self.profile.id}' does not define setting '{setting_id}'. Available: {available}"
            )
        return binding

    async def start(self) -> BootstrapState:
        return await self.bootstrapper.run()

    async def join(self) -> None:
        await self.queue.join()

    async def close(self) -> None:
        """Stop pending commits and queued requests, then release the transport."""
        for binding in self.bindings.values():
            binding.cancel()
        self._deferred.clear()
        await self.queue.close()
        await self.transport.close()

    async def __aenter__(self) -> SyncEngine:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def set_value(self, setting_id: str, value: str | float, *, slider: bool = False) -> float:
        """Write a value now, bypassing the debounce.

        `value` is a domain value, a native control position when `slider`
        is set, or an option name/index for enumerated settings.
        """
        binding = self.binding(setting_id)
        if binding.setting.is_enum:
            binding.select(self._option_index(binding, value))
        elif slider:
            binding.slider_input(value)
        else:
            binding.field_input(value)
        return binding.apply()

    async def refresh(self, setting_id: str) -> float:
        binding = self.binding(setting_id)
        if binding.setting.get_op is None:
            raise SettingResolutionError(f"Setting '{setting_id}' cannot be read back from the device")
        body = await self.queue.submit(Endpoint(binding.setting.get_op))
        return binding.apply_remote(parse_scalar(body, binding.setting.response_field))

    def _option_index(self, binding: SettingBinding, value: str | float) -> int:
        options = binding.state.options
        if isinstance(value, str) and value in options:
            return options.index(value)
        try:
            return int(value)
        except (ValueError, OverflowError):
            available = ", ".join(options) or "<none loaded>"
            raise SettingResolutionError(
                f"Setting '{binding.setting.id}' has no option '{value}'. Available: {available}"
            ) from None

    def _commit(self, setting: SettingSpec, value: float) -> None:
        if not self.bootstrapper.ready:
            LOGGER.debug("Deferring %s=%s until bootstrap completes", setting.id, value)
            self._deferred.append((setting, value))
            return
        self._enqueue_write(setting, value)

    def _flush_deferred(self) -> None:
        deferred, self._deferred = self._deferred, []
        for setting, value in deferred:
            self.bindings[setting.id].restore(value)
            self._enqueue_write(setting, value)

    @staticmethod
    def _wire_value(binding: SettingBinding, value: float) -> str:
        options = binding.state.options
        if binding.setting.send == "option" and 0 <= int(value) < len(options):
            return options[int(value)]
        return format_value(binding.setting.mapping, value)

    def _enqueue_write(self, setting: SettingSpec, value: float) -> None:
        binding = self.bindings[setting.id]
        endpoint = Endpoint(setting.set_op, self._wire_value(binding, value))

        def _acknowledged(body: str) -> None:
            LOGGER.debug("%s acknowledged: %s", endpoint, body.strip())
            binding.acknowledge(value)
            self.writes.append(
                WriteResult(setting=setting.id, value=value, endpoint=str(endpoint), response=body or None)
            )

        self.queue.enqueue(endpoint, _acknowledged)
