"""Per-setting glue between controls, the device value, and the write path.

Outbound entry points (`slider_*`, `field_*`, `select`, `apply`) react to user
interaction and may end in a write through the committer. Inbound entry points
(`apply_remote`, `apply_options`, `apply_default`, `acknowledge`, `restore`) only
touch controls and state; they never reach the committer, so a value read from
the device cannot echo back as a write.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence

from ledctl.core.debounce import Debouncer
from ledctl.core.mapping import build_mapper, clamp, format_value, normalize_domain
from ledctl.core.model import SettingSpec, SettingState
from ledctl.core.surface import ControlSurface, display_id, field_id, slider_id

LOGGER = logging.getLogger(__name__)

Committer = Callable[[SettingSpec, float], None]


def _parse_number(raw: str | float) -> float | None:
    if isinstance(raw, str):
        try:
            raw = float(raw.strip())
        except ValueError:
            return None
    if math.isnan(raw):
        return None
    return float(raw)


class SettingBinding:
    def __init__(
        self,
        setting: SettingSpec,
        surface: ControlSurface,
        committer: Committer,
        *,
        debounce_s: float,
    ) -> None:
        self.setting = setting
        self.mapper = build_mapper(setting.mapping)
        self.state = SettingState(
            displayed=normalize_domain(setting.mapping, setting.default),
            options=setting.options,
        )
        self._surface = surface
        self._committer = committer
        self._commit = Debouncer(self._send, debounce_s)

    @property
    def value(self) -> float:
        return self.state.displayed

    @property
    def commit_pending(self) -> bool:
        return self._commit.pending

    # -- outbound -------------------------------------------------------

    def slider_input(self, raw: str | float) -> float:
        spec = self.setting.mapping
        parsed = _parse_number(raw)
        if parsed is None:
            LOGGER.debug("Invalid slider position %r for %s; using %s", raw, self.setting.id, spec.control_min)
            parsed = spec.control_min
        position = clamp(parsed, spec.control_min, spec.control_max)
        domain = self.mapper.to_domain(position)
        self._show(domain, position)
        return domain

    def slider_commit(self, raw: str | float) -> float:
        domain = self.slider_input(raw)
        self._schedule(domain)
        return domain

    def field_input(self, raw: str | float) -> float:
        spec = self.setting.mapping
        parsed = _parse_number(raw)
        if parsed is None:
            LOGGER.debug("Invalid input %r for %s; using %s", raw, self.setting.id, spec.domain_min)
            parsed = spec.domain_min
        domain = normalize_domain(spec, parsed)
        self._show(domain, self.mapper.to_control(domain))
        return domain

    def field_commit(self, raw: str | float) -> float:
        domain = self.field_input(raw)
        self._schedule(domain)
        return domain

    def select(self, index: int) -> float:
        """Pick an enumerated option by index and schedule the write."""
        domain = self._clamp_index(index)
        self._show(domain, domain)
        self._schedule(domain)
        return domain

    def apply(self) -> float:
        """Write the currently displayed value now, skipping the debounce."""
        self._commit.cancel()
        self._send(self.state.displayed)
        return self.state.displayed

    def cancel(self) -> None:
        self._commit.cancel()

    # -- inbound --------------------------------------------------------

    def apply_remote(self, value: float) -> float:
        if self.setting.is_enum:
            domain = self._clamp_index(int(value))
        else:
            domain = normalize_domain(self.setting.mapping, value)
        self._show(domain, self.mapper.to_control(domain))
        self.state.confirmed = domain
        return domain

    def apply_default(self) -> float:
        domain = normalize_domain(self.setting.mapping, self.setting.default)
        self._show(domain, self.mapper.to_control(domain))
        return domain

    def apply_options(self, options: Sequence[str]) -> None:
        self.state.options = tuple(options)
        self._surface.set_options(slider_id(self.setting.id), self.state.options)
        index = self._clamp_index(int(self.state.displayed))
        self._show(index, index)

    def acknowledge(self, value: float) -> None:
        self.state.confirmed = value

    def restore(self, value: float) -> None:
        """Show a locally committed value again after a read replaced it."""
        self._show(value, self.mapper.to_control(value))

    # -- internals ------------------------------------------------------

    def _clamp_index(self, index: int) -> float:
        if self.state.options:
            return int(clamp(index, 0, len(self.state.options) - 1))
        return normalize_domain(self.setting.mapping, index)

    def _schedule(self, domain: float) -> None:
        if self.setting.commit == "auto":
            self._commit(domain)

    def _send(self, domain: float) -> None:
        self._committer(self.setting, domain)

    def _show(self, domain: float, position: float) -> None:
        self.state.displayed = domain
        self._surface.set_value(slider_id(self.setting.id), position)
        self._surface.set_value(field_id(self.setting.id), domain)
        self._surface.set_text(display_id(self.setting.id), self.display_text(domain))

    def display_text(self, domain: float) -> str:
        if self.setting.is_enum:
            index = int(domain)
            if 0 <= index < len(self.state.options):
                return f"{index}: {self.state.options[index]}"
            return str(index)
        return format_value(self.setting.mapping, domain)
