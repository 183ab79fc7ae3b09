"""Utilities for retrieving and validating the package version."""

from __future__ import annotations

import re
from importlib import metadata
from pathlib import Path

from packaging.version import InvalidVersion, Version

_DISTRIBUTION = "ev-regen"
_CHANGELOG_HEADING = re.compile(r"^## v(?P<version>\d+\.\d+\.\d+)\b")


def _version_from_sources() -> str:
    """Return the newest version listed in ``CHANGELOG.md``.

    Used in source checkouts where the distribution metadata has not been
    generated yet.
    """

    parents = Path(__file__).resolve().parents
    candidates = [parent / "CHANGELOG.md" for parent in parents[1:3]]
    for changelog in candidates:
        if not changelog.is_file():
            continue
        for line in changelog.read_text(encoding="utf-8").splitlines():
            match = _CHANGELOG_HEADING.match(line)
            if match:
                return match.group("version")

    raise RuntimeError(
        f"Unable to determine the '{_DISTRIBUTION}' version from package metadata or "
        "repository sources."
    )


def _load_version() -> str:
    """Return the validated ``MAJOR.MINOR.PATCH`` package version."""

    try:
        raw_version = metadata.version(_DISTRIBUTION)
    except metadata.PackageNotFoundError:
        raw_version = _version_from_sources()

    try:
        parsed = Version(raw_version)
    except InvalidVersion as exc:
        raise RuntimeError(
            f"Invalid version string for '{_DISTRIBUTION}': "
            f"{raw_version!r}. Expected a semantic version."
        ) from exc

    if len(parsed.release) != 3:
        raise RuntimeError(
            f"The '{_DISTRIBUTION}' version must follow the MAJOR.MINOR.PATCH format. "
            f"Found: {raw_version!r}."
        )

    return raw_version


__version__ = _load_version()

__all__ = ["__version__"]
