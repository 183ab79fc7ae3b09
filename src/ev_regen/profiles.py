"""Named vehicle profiles shipped with the package."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from .braking.torque import VehicleParameters
from .configuration import merge_dataclass
from .errors import ConfigurationError, ProfileNotFoundError
from .resources import VEHICLE_PROFILES_RESOURCE

__all__ = [
    "VehicleProfile",
    "get_vehicle_profile",
    "load_vehicle_profiles",
    "normalise_profile_name",
]


@dataclass(frozen=True)
class VehicleProfile:
    """Vehicle parameters plus partial overrides for the integrated system."""

    name: str
    description: str
    vehicle: VehicleParameters
    system: Mapping[str, Any] = field(default_factory=dict)
    damper: Mapping[str, Any] = field(default_factory=dict)


def normalise_profile_name(name: str) -> str:
    return str(name).strip().lower().replace("-", "_").replace(" ", "_")


def _profile_from_mapping(name: str, payload: Mapping[str, Any]) -> VehicleProfile:
    vehicle_payload = payload.get("vehicle") or {}
    if not isinstance(vehicle_payload, MappingABC):
        raise ConfigurationError(f"Vehicle profile '{name}' must define a 'vehicle' mapping")
    try:
        vehicle = merge_dataclass(VehicleParameters(), vehicle_payload)
    except ValueError as exc:
        raise ConfigurationError(f"Vehicle profile '{name}' is invalid: {exc}") from exc
    return VehicleProfile(
        name=name,
        description=str(payload.get("description", "")),
        vehicle=vehicle,
        system=MappingProxyType(dict(payload.get("system") or {})),
        damper=MappingProxyType(dict(payload.get("damper") or {})),
    )


def _load_from_text(text: str, *, source: str) -> Mapping[str, VehicleProfile]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:  # pragma: no cover - defensive guard
        raise ConfigurationError(f"Invalid YAML in vehicle profiles: {source}") from exc
    if data is None:
        return MappingProxyType({})
    if not isinstance(data, MappingABC):
        raise ConfigurationError(f"Vehicle profiles in {source} must decode to a mapping")
    profiles: dict[str, VehicleProfile] = {}
    for raw_name, payload in data.items():
        if not isinstance(payload, MappingABC):
            raise ConfigurationError(f"Vehicle profile '{raw_name}' must be a mapping")
        name = normalise_profile_name(raw_name)
        profiles[name] = _profile_from_mapping(name, payload)
    return MappingProxyType(profiles)


@lru_cache(maxsize=1)
def _packaged_profiles() -> Mapping[str, VehicleProfile]:
    text = VEHICLE_PROFILES_RESOURCE.read_text(encoding="utf-8")
    return _load_from_text(text, source=str(VEHICLE_PROFILES_RESOURCE))


def load_vehicle_profiles(text: str | None = None) -> Mapping[str, VehicleProfile]:
    """Return the vehicle profiles parsed from ``text`` or the packaged YAML."""

    if text is None:
        return _packaged_profiles()
    return _load_from_text(text, source="<string>")


def get_vehicle_profile(
    name: str, profiles: Mapping[str, VehicleProfile] | None = None
) -> VehicleProfile:
    """Look up ``name`` ignoring case, dashes and spaces."""

    table = load_vehicle_profiles() if profiles is None else profiles
    try:
        return table[normalise_profile_name(name)]
    except KeyError:
        raise ProfileNotFoundError(name, known=table) from None
