"""Profile loading and validation for YAML-based ledctl device profiles.

Packaged profiles ship in `ledctl.profiles`. Users can add or replace profiles
in `$XDG_CONFIG_HOME/ledctl/profiles` or `$XDG_DATA_HOME/ledctl/profiles`; a
user profile with a packaged profile's id wins, with a warning.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from functools import cache
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from ledctl.core.errors import ProfileLoadError, ProfileValidationError
from ledctl.core.model import DeviceProfile, MappingSpec, QueuePolicy, SettingSpec

_ENUM_RANGE = (0, 255)
_PROFILE_SUFFIXES = (".yaml", ".yml")
LOGGER = logging.getLogger(__name__)


class ProfileYAMLLoader(yaml.SafeLoader):
    """Safe loader that refuses a key repeated within one mapping."""

    def construct_mapping(self, node: yaml.MappingNode, deep: bool = False) -> dict[Any, Any]:
        seen: set[Any] = set()
        for key_node, _ in node.value:
            key = self.construct_object(key_node, deep=deep)
            if key in seen:
                raise ProfileValidationError(f"Duplicate key '{key}' at line {key_node.start_mark.line + 1}")
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


@dataclass(frozen=True)
class LoadedProfiles:
    profiles: dict[str, DeviceProfile]
    warnings: tuple[str, ...]


@cache
def _schema_validator() -> Any:
    schema = json.loads(
        resources.files("ledctl.schemas").joinpath("profile.schema.json").read_text(encoding="utf-8")
    )
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _user_profile_dirs() -> list[Path]:
    home = Path.home()
    roots = (
        os.environ.get("XDG_CONFIG_HOME") or home / ".config",
        os.environ.get("XDG_DATA_HOME") or home / ".local" / "share",
    )
    return [Path(root) / "ledctl" / "profiles" for root in roots]


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ProfileLoadError(f"Could not read profile file {path}: {exc}") from exc

    try:
        doc = yaml.load(text, Loader=ProfileYAMLLoader)
    except yaml.YAMLError as exc:
        raise ProfileValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(doc, dict):
        raise ProfileValidationError(f"Profile file {path} must contain a mapping at root")
    return doc


def _ordered_range(values: list[float], *, context: str) -> tuple[float, float]:
    low, high = values
    if low >= high:
        raise ProfileValidationError(f"{context} must be [min, max] with min < max")
    return low, high


def _build_mapping(spec: dict[str, Any] | None, *, context: str, is_enum: bool) -> MappingSpec:
    if spec is None:
        if not is_enum:
            raise ProfileValidationError(f"{context} requires a mapping")
        low, high = _ENUM_RANGE
        return MappingSpec(kind="identity", control_min=low, control_max=high, domain_min=low, domain_max=high)

    kind = spec["kind"]
    control_min, control_max = _ordered_range(spec["control"], context=f"{context}.control")
    if "domain" in spec:
        domain_min, domain_max = _ordered_range(spec["domain"], context=f"{context}.domain")
    else:
        domain_min, domain_max = control_min, control_max

    if kind == "identity" and (domain_min, domain_max) != (control_min, control_max):
        raise ProfileValidationError(f"{context}: identity mapping needs equal control and domain ranges")

    control_mid = domain_mid = None
    if kind == "piecewise":
        if "knee" not in spec:
            raise ProfileValidationError(f"{context}: piecewise mapping requires knee [control, domain]")
        control_mid, domain_mid = spec["knee"]
        if not control_min < control_mid < control_max:
            raise ProfileValidationError(f"{context}.knee control value must lie inside the control range")
        if not domain_min < domain_mid < domain_max:
            raise ProfileValidationError(f"{context}.knee domain value must lie inside the domain range")

    if kind == "logarithmic" and domain_min <= 0:
        raise ProfileValidationError(f"{context}: logarithmic mapping needs a positive domain range")

    return MappingSpec(
        kind=kind,
        control_min=control_min,
        control_max=control_max,
        domain_min=domain_min,
        domain_max=domain_max,
        control_mid=control_mid,
        domain_mid=domain_mid,
        fractional=spec.get("fractional", False),
        decimals=int(spec.get("decimals", 2)),
    )


def _build_setting(setting_id: str, spec: dict[str, Any], *, profile_id: str) -> SettingSpec:
    context = f"{profile_id}.{setting_id}"
    kind = spec.get("type", "scalar")
    is_enum = kind == "enum"
    mapping = _build_mapping(spec.get("mapping"), context=f"{context}.mapping", is_enum=is_enum)

    options = tuple(spec.get("options", ()))
    if not is_enum and ("list" in spec or options):
        raise ProfileValidationError(f"{context}: only enum settings may define options or a list operation")
    if options and "list" in spec:
        raise ProfileValidationError(f"{context}: use either fixed options or a list operation, not both")
    send = spec.get("send", "index")
    if send == "option" and not (options or "list" in spec):
        raise ProfileValidationError(f"{context}: send: option needs options or a list operation")
    if "get" not in spec and "list" not in spec:
        LOGGER.debug("%s has no read operation; it starts from its default", context)

    default = spec.get("default", mapping.domain_min)
    if not mapping.domain_min <= default <= mapping.domain_max:
        raise ProfileValidationError(
            f"{context}.default {default} is outside [{mapping.domain_min}, {mapping.domain_max}]"
        )
    if options and default >= len(options):
        raise ProfileValidationError(f"{context}.default {default} is not an index into {list(options)}")

    return SettingSpec(
        id=setting_id,
        label=spec.get("label", setting_id),
        kind=kind,
        set_op=spec["set"],
        mapping=mapping,
        default=default,
        get_op=spec.get("get"),
        list_op=spec.get("list"),
        response_field=spec.get("response_field", "current"),
        stage=spec.get("stage", "scalars"),
        commit=spec.get("commit", "auto"),
        options=options,
        send=send,
    )


def _build_profile(doc: dict[str, Any], source: Path | Traversable) -> DeviceProfile:
    validator = _schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ProfileValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    settings = {
        setting_id: _build_setting(setting_id, setting_spec, profile_id=doc["id"])
        for setting_id, setting_spec in doc["settings"].items()
    }
    queue = doc.get("queue", {})
    defaults = QueuePolicy()

    return DeviceProfile(
        id=doc["id"],
        name=doc["name"],
        base_url=doc.get("base_url", "http://192.168.4.1"),
        settings=settings,
        queue=QueuePolicy(
            cooldown_s=float(queue.get("cooldown_s", defaults.cooldown_s)),
            max_retries=int(queue.get("max_retries", defaults.max_retries)),
            base_delay_s=float(queue.get("base_delay_s", defaults.base_delay_s)),
            notification_ttl_s=float(queue.get("notification_ttl_s", defaults.notification_ttl_s)),
        ),
        debounce_s=float(doc.get("debounce_s", 0.3)),
        timeout_s=float(doc.get("timeout_s", 5.0)),
    )


def _profile_sources() -> Iterator[tuple[Path | Traversable, bool]]:
    """Yield `(path, is_user)` with packaged profiles first, each group sorted by name."""
    packaged = resources.files("ledctl.profiles").iterdir()
    for path in sorted(packaged, key=lambda p: p.name):
        if path.name.endswith(_PROFILE_SUFFIXES):
            yield path, False
    for directory in _user_profile_dirs():
        if directory.is_dir():
            for path in sorted(directory.iterdir()):
                if path.suffix in _PROFILE_SUFFIXES:
                    yield path, True


def load_profile_file(path: Path) -> DeviceProfile:
    return _build_profile(_read_yaml(path), path)


def load_profiles() -> LoadedProfiles:
    profiles: dict[str, DeviceProfile] = {}
    packaged_ids: set[str] = set()
    warnings: list[str] = []

    for path, is_user in _profile_sources():
        profile = _build_profile(_read_yaml(path), path)
        if not is_user:
            packaged_ids.add(profile.id)
        elif profile.id in packaged_ids:
            warning = f"User profile '{profile.id}' from {path} overrides packaged profile"
            LOGGER.warning(warning)
            warnings.append(warning)
        profiles[profile.id] = profile

    return LoadedProfiles(profiles=profiles, warnings=tuple(warnings))
