"""Core data models used across loader, engine, and CLI."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

MAPPING_KINDS = ("identity", "linear", "piecewise", "logarithmic")


@dataclass(frozen=True)
class MappingSpec:
    kind: str
    control_min: float
    control_max: float
    domain_min: float
    domain_max: float
    control_mid: float | None = None
    domain_mid: float | None = None
    fractional: bool = False
    decimals: int = 2


@dataclass(frozen=True)
class SettingSpec:
    id: str
    label: str
    kind: str
    set_op: str
    mapping: MappingSpec
    default: float
    get_op: str | None = None
    list_op: str | None = None
    response_field: str = "current"
    stage: str = "scalars"
    commit: str = "auto"
    options: tuple[str, ...] = ()
    send: str = "index"

    @property
    def is_enum(self) -> bool:
        return self.kind == "enum"


@dataclass(frozen=True)
class QueuePolicy:
    cooldown_s: float = 0.1
    max_retries: int = 3
    base_delay_s: float = 0.5
    notification_ttl_s: float = 5.0


@dataclass(frozen=True)
class DeviceProfile:
    id: str
    name: str
    base_url: str
    settings: dict[str, SettingSpec]
    queue: QueuePolicy = field(default_factory=QueuePolicy)
    debounce_s: float = 0.3
    timeout_s: float = 5.0


@dataclass(frozen=True)
class Endpoint:
    operation: str
    value: str | None = None

    @property
    def path(self) -> str:
        return f"/api/{self.operation}"

    @property
    def params(self) -> dict[str, str]:
        return {} if self.value is None else {"val": self.value}

    def __str__(self) -> str:
        if self.value is None:
            return self.path
        return f"{self.path}?val={self.value}"


@dataclass
class Request:
    endpoint: Endpoint
    on_complete: Callable[[str], Any] | None = None
    on_failure: Callable[[Exception], Any] | None = None
    retry_count: int = 0


class BootstrapState(Enum):
    IDLE = "idle"
    FETCHING_OPTIONS = "fetching_options"
    FETCHING_SCALARS = "fetching_scalars"
    FETCHING_DERIVED = "fetching_derived"
    READY = "ready"


@dataclass
class SettingState:
    displayed: float
    confirmed: float | None = None
    options: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class WriteResult:
    setting: str
    value: float | int
    endpoint: str
    response: str | None
