"""Embedded data resources for ev-regen."""

from __future__ import annotations

from importlib import resources

__all__ = ["VEHICLE_PROFILES_RESOURCE"]


def _resource(name: str):
    return resources.files(__name__).joinpath(name)


VEHICLE_PROFILES_RESOURCE = _resource("vehicles.yaml")
