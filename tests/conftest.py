from __future__ import annotations

import logging
import sys
from pathlib import Path
from textwrap import dedent
from typing import Iterator

import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = ROOT / "src"
for entry in (SRC_ROOT, ROOT):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))


def write_pyproject(directory: Path, contents: str) -> Path:
    """Persist a ``pyproject.toml`` under ``directory`` and return its path."""

    payload = dedent(contents).lstrip()
    target = directory / "pyproject.toml"
    target.write_text(payload, encoding="utf8")
    return target


from ev_regen.braking.system import BrakingControlSystem
from ev_regen.cli.io import CONFIG_ENV_VAR
from ev_regen.factories import create_advanced_hrs_controller, create_integrated_damper_system
from ev_regen.integration.system import IntegratedDamperSystem
from ev_regen.suspension.controller import AdaptiveSuspensionController
from ev_regen.suspension.damper import HydraulicElectromagneticDamper


@pytest.fixture
def braking_system() -> BrakingControlSystem:
    return BrakingControlSystem()


@pytest.fixture
def suspension_controller() -> AdaptiveSuspensionController:
    return create_advanced_hrs_controller()


@pytest.fixture
def damper() -> HydraulicElectromagneticDamper:
    return HydraulicElectromagneticDamper()


@pytest.fixture
def integrated_system() -> IntegratedDamperSystem:
    return create_integrated_damper_system()


@pytest.fixture
def isolated_cli(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run CLI commands from an empty directory without inherited config."""

    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture(autouse=True)
def restore_root_logger() -> Iterator[None]:
    """Undo handler and level changes made by ``setup_logging``."""

    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    try:
        yield
    finally:
        for handler in list(root.handlers):
            if handler not in handlers:
                root.removeHandler(handler)
                handler.close()
        root.setLevel(level)
