"""Stable public API for building tooling on top of ledctl.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from ledctl.core.binding import SettingBinding
from ledctl.core.debounce import Debouncer, debounce
from ledctl.core.engine import SyncEngine, resolve_profile
from ledctl.core.errors import (
    LedctlError,
    MalformedResponseError,
    ProfileLoadError,
    ProfileValidationError,
    RequestFailedError,
    SettingResolutionError,
    TransportConnectError,
    TransportError,
    TransportResponseError,
    TransportTimeoutError,
)
from ledctl.core.mapping import Mapper, build_mapper
from ledctl.core.model import (
    BootstrapState,
    DeviceProfile,
    Endpoint,
    MappingSpec,
    QueuePolicy,
    SettingSpec,
    WriteResult,
)
from ledctl.core.notify import Notification, NotificationCenter, Notifier
from ledctl.core.profile_loader import load_profiles
from ledctl.core.request_queue import RequestQueue
from ledctl.core.surface import ControlSurface, MemorySurface
from ledctl.transports.base import DeviceTransport
from ledctl.transports.http import HTTPTransport

__all__ = [
    "LedctlError",
    "MalformedResponseError",
    "ProfileLoadError",
    "ProfileValidationError",
    "RequestFailedError",
    "SettingResolutionError",
    "TransportError",
    "TransportConnectError",
    "TransportResponseError",
    "TransportTimeoutError",
    "BootstrapState",
    "DeviceProfile",
    "Endpoint",
    "MappingSpec",
    "QueuePolicy",
    "SettingSpec",
    "WriteResult",
    "ControlSurface",
    "MemorySurface",
    "DeviceTransport",
    "HTTPTransport",
    "Debouncer",
    "debounce",
    "Mapper",
    "build_mapper",
    "Notification",
    "NotificationCenter",
    "Notifier",
    "RequestQueue",
    "SettingBinding",
    "SyncEngine",
    "Client",
]


class Client:
    """Public client for interacting with ledctl core capabilities.

    A `Client` wraps profile loading and engine construction behind a stable
    API intended for third-party tools (GUI/TUI/services/scripts). Engines
    it creates are bound to a single device session and must be closed.
    """

    def __init__(self) -> None:
        loaded = load_profiles()
        self._profiles = loaded.profiles
        self._load_warnings = loaded.warnings

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._load_warnings

    def list_profiles(self) -> list[DeviceProfile]:
        return sorted(self._profiles.values(), key=lambda p: p.id)

    def get_profile(self, profile_id: str | None = None) -> DeviceProfile:
        return resolve_profile(self._profiles, profile_id)

    def map_value(
        self,
        setting_id: str,
        value: float,
        *,
        profile_id: str | None = None,
        inverse: bool = False,
    ) -> float:
        """Map a slider position to its domain value, or back with `inverse`."""
        profile = self.get_profile(profile_id)
        setting = profile.settings.get(setting_id)
        if setting is None:
            available = ", ".join(profile.settings)
            raise SettingResolutionError(
                f"Profile '{profile.id}' does not define setting '{setting_id}'. Available: {available}"
            )
        mapper = build_mapper(setting.mapping)
        return mapper.to_control(value) if inverse else mapper.to_domain(value)

    def create_engine(
        self,
        *,
        profile_id: str | None = None,
        host: str | None = None,
        transport: DeviceTransport | None = None,
        surface: ControlSurface | None = None,
        notifier: Notifier | None = None,
    ) -> SyncEngine:
        return SyncEngine(
            self.get_profile(profile_id),
            transport=transport,
            surface=surface,
            notifier=notifier,
            host=host,
        )
