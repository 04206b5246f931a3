"""Control/display collaborator consumed by the binding layer."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol


def slider_id(setting_id: str) -> str:
    return f"{setting_id}.slider"


def field_id(setting_id: str) -> str:
    return f"{setting_id}.field"


def display_id(setting_id: str) -> str:
    return f"{setting_id}.display"


class ControlSurface(Protocol):
    def get_value(self, control_id: str) -> float | None:
        """Return the current value of a control, or None if it has none yet."""

    def set_value(self, control_id: str, value: float) -> None:
        """Set a control's value without emitting any change event."""

    def set_text(self, control_id: str, text: str) -> None:
        """Replace the text of a display element."""

    def set_options(self, control_id: str, options: Sequence[str]) -> None:
        """Replace the selectable options of an enumerated control."""


class MemorySurface:
    """Headless surface that records what a UI would show."""

    def __init__(self) -> None:
        self.values: dict[str, float] = {}
        self.texts: dict[str, str] = {}
        self.options: dict[str, tuple[str, ...]] = {}

    def get_value(self, control_id: str) -> float | None:
        return self.values.get(control_id)

    def set_value(self, control_id: str, value: float) -> None:
        self.values[control_id] = value

    def set_text(self, control_id: str, text: str) -> None:
        self.texts[control_id] = text

    def set_options(self, control_id: str, options: Sequence[str]) -> None:
        self.options[control_id] = tuple(options)
