"""Translation between a control's native range and the device's domain value.

Every mapper is a stateless strategy selected per setting by `build_mapper`.
Inputs outside the valid range are clamped, never rejected, and results are
rounded to whole numbers unless the mapping is fractional.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Protocol

from ledctl.core.errors import ProfileValidationError
from ledctl.core.model import MappingSpec


class Mapper(Protocol):
    spec: MappingSpec

    def to_domain(self, control_value: float) -> float:
        """Map a native control value to the domain value sent to the device."""

    def to_control(self, domain_value: float) -> float:
        """Map a domain value back to the native control position."""


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _round(spec: MappingSpec, value: float) -> float:
    if spec.fractional:
        return round(value, spec.decimals)
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class _BaseMapper:
    spec: MappingSpec

    def _clamp_control(self, control_value: float) -> float:
        return clamp(control_value, self.spec.control_min, self.spec.control_max)

    def _clamp_domain(self, domain_value: float) -> float:
        return clamp(domain_value, self.spec.domain_min, self.spec.domain_max)

    def _fraction(self, control_value: float) -> float:
        span = self.spec.control_max - self.spec.control_min
        return (self._clamp_control(control_value) - self.spec.control_min) / span

    def _control_at(self, fraction: float) -> float:
        span = self.spec.control_max - self.spec.control_min
        return _round(self.spec, self.spec.control_min + span * fraction)


class IdentityMapper(_BaseMapper):
    def to_domain(self, control_value: float) -> float:
        return _round(self.spec, self._clamp_domain(control_value))

    def to_control(self, domain_value: float) -> float:
        return _round(self.spec, self._clamp_control(domain_value))


class LinearMapper(_BaseMapper):
    def to_domain(self, control_value: float) -> float:
        span = self.spec.domain_max - self.spec.domain_min
        return _round(self.spec, self.spec.domain_min + span * self._fraction(control_value))

    def to_control(self, domain_value: float) -> float:
        span = self.spec.domain_max - self.spec.domain_min
        fraction = (self._clamp_domain(domain_value) - self.spec.domain_min) / span
        return self._control_at(fraction)


class PiecewiseMapper(_BaseMapper):
    """Linear below the knee, quadratic easing above it.

    Fine granularity at low values; equal slider movement yields progressively
    larger jumps toward the top of the range.
    """

    @property
    def _knee(self) -> tuple[float, float]:
        control_mid = self.spec.control_mid
        if control_mid is None:
            control_mid = (self.spec.control_min + self.spec.control_max) / 2
        return control_mid, float(self.spec.domain_mid)

    def to_domain(self, control_value: float) -> float:
        control_mid, domain_mid = self._knee
        value = self._clamp_control(control_value)
        if value <= control_mid:
            t = (value - self.spec.control_min) / (control_mid - self.spec.control_min)
            return _round(self.spec, self.spec.domain_min + (domain_mid - self.spec.domain_min) * t)
        t = (value - control_mid) / (self.spec.control_max - control_mid)
        return _round(self.spec, domain_mid + (self.spec.domain_max - domain_mid) * t * t)

    def to_control(self, domain_value: float) -> float:
        control_mid, domain_mid = self._knee
        value = self._clamp_domain(domain_value)
        if value <= domain_mid:
            t = (value - self.spec.domain_min) / (domain_mid - self.spec.domain_min)
            return _round(self.spec, self.spec.control_min + (control_mid - self.spec.control_min) * t)
        t = math.sqrt((value - domain_mid) / (self.spec.domain_max - domain_mid))
        return _round(self.spec, control_mid + (self.spec.control_max - control_mid) * t)


class LogarithmicMapper(_BaseMapper):
    def to_domain(self, control_value: float) -> float:
        low = math.log(self.spec.domain_min)
        high = math.log(self.spec.domain_max)
        return _round(self.spec, math.exp(low + (high - low) * self._fraction(control_value)))

    def to_control(self, domain_value: float) -> float:
        low = math.log(self.spec.domain_min)
        high = math.log(self.spec.domain_max)
        fraction = (math.log(self._clamp_domain(domain_value)) - low) / (high - low)
        return self._control_at(fraction)


_MAPPERS: dict[str, type[_BaseMapper]] = {
    "identity": IdentityMapper,
    "linear": LinearMapper,
    "piecewise": PiecewiseMapper,
    "logarithmic": LogarithmicMapper,
}


def build_mapper(spec: MappingSpec) -> Mapper:
    mapper_cls = _MAPPERS.get(spec.kind)
    if mapper_cls is None:
        raise ProfileValidationError(f"Unsupported mapping kind '{spec.kind}'")
    return mapper_cls(spec)


def normalize_domain(spec: MappingSpec, value: float) -> float:
    """Clamp and round a domain value the way `to_domain` would."""
    return _round(spec, clamp(value, spec.domain_min, spec.domain_max))


def format_value(spec: MappingSpec, value: float) -> str:
    if spec.fractional:
        return f"{value:.{spec.decimals}f}"
    return str(int(value))
