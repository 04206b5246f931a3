"""Parsing of device response bodies."""

from __future__ import annotations

import json
import math
from typing import Any

from ledctl.core.errors import MalformedResponseError


def _load(body: str) -> Any:
    try:
        return json.loads(body.strip())
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Response is not valid JSON: {body!r}") from exc


def parse_scalar(body: str, field: str = "current") -> float:
    """Read a bare scalar or the `field` member of an object response."""
    data = _load(body)
    if isinstance(data, dict):
        if field not in data:
            raise MalformedResponseError(f"Response object has no '{field}' field: {body!r}")
        data = data[field]
    if isinstance(data, bool) or not isinstance(data, (int, float, str)):
        raise MalformedResponseError(f"Expected a number, got {body!r}")
    try:
        value = float(data)
    except ValueError as exc:
        raise MalformedResponseError(f"Expected a number, got {body!r}") from exc
    if not math.isfinite(value):
        raise MalformedResponseError(f"Expected a finite number, got {body!r}")
    return value


def parse_options(body: str) -> tuple[str, ...]:
    data = _load(body)
    if not isinstance(data, list):
        raise MalformedResponseError(f"Expected a list of options, got {body!r}")
    return tuple(str(item) for item in data)
