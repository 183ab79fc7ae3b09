from __future__ import annotations

from pathlib import Path

import pytest

from ev_regen.braking.system import SafetyLimits
from ev_regen.braking.torque import VehicleParameters
from ev_regen.configuration import (
    load_project_config,
    merge_dataclass,
    normalise_weights,
    section,
)
from ev_regen.errors import ConfigurationError, ConfigurationKeyError
from ev_regen.integration.system import SystemConfiguration

from tests.conftest import write_pyproject


def test_merge_dataclass_coerces_to_field_types() -> None:
    merged = merge_dataclass(VehicleParameters(), {"mass": "1900", "motor_count": 4.0})

    assert merged.mass == 1_900.0
    assert merged.motor_count == 4
    assert isinstance(merged.motor_count, int)
    assert merged.wheel_radius == VehicleParameters().wheel_radius


def test_merge_dataclass_without_overrides_returns_base() -> None:
    base = SafetyLimits()

    assert merge_dataclass(base, None) is base
    assert merge_dataclass(base, {}) is base


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"motor_count": 2.5}, "expects an integer"),
        ({"mass": True}, "expects a number"),
        ({"mass": "heavy"}, "expects a number"),
        ({"mass": float("nan")}, "must be finite"),
    ],
)
def test_merge_dataclass_rejects_mistyped_values(overrides: dict, message: str) -> None:
    with pytest.raises(ConfigurationError, match=message):
        merge_dataclass(VehicleParameters(), overrides)


def test_merge_dataclass_rejects_non_boolean_flags() -> None:
    with pytest.raises(ConfigurationError, match="expects a boolean"):
        merge_dataclass(SystemConfiguration(), {"thermal_management_enabled": "yes"})


def test_unknown_keys_list_the_known_fields() -> None:
    with pytest.raises(ConfigurationKeyError) as excinfo:
        merge_dataclass(SafetyLimits(), {"max_torque": 100.0})

    message = str(excinfo.value)
    assert "max_torque" in message
    assert "SafetyLimits" in message
    assert "max_motor_torque" in message
    assert isinstance(excinfo.value, KeyError)


def test_normalise_weights() -> None:
    assert normalise_weights({"a": 1, "b": 3}) == pytest.approx({"a": 0.25, "b": 0.75})

    with pytest.raises(ConfigurationError):
        normalise_weights({"a": 0.0, "b": 0.0})
    with pytest.raises(ConfigurationError):
        normalise_weights({"a": "x"})


def test_section_returns_nested_mappings_only() -> None:
    config = {"vehicle": {"profile": "suv_awd"}, "logging": "info"}

    assert section(config, "vehicle") == {"profile": "suv_awd"}
    assert section(config, "logging") == {}
    assert section(config, "logging", "level") == {}
    assert section(config, "missing") == {}


def test_load_project_config_reads_the_tool_section(tmp_path: Path) -> None:
    write_pyproject(
        tmp_path,
        """
        [project]
        name = "vehicle"

        [tool.ev_regen.vehicle]
        profile = "suv_awd"

        [tool.ev_regen.system]
        max_combined_power = 20000.0
        """,
    )

    loaded = load_project_config(tmp_path)

    assert loaded is not None
    config, path = loaded
    assert path == (tmp_path / "pyproject.toml").resolve()
    assert config["vehicle"] == {"profile": "suv_awd"}
    assert config["system"]["max_combined_power"] == 20_000.0


def test_load_project_config_ignores_missing_sections(tmp_path: Path) -> None:
    assert load_project_config(tmp_path) is None

    write_pyproject(tmp_path, '[project]\nname = "vehicle"\n')
    assert load_project_config(tmp_path / "pyproject.toml") is None
    assert load_project_config(tmp_path / "settings.cfg") is None


def test_load_project_config_rejects_unknown_tables(tmp_path: Path) -> None:
    write_pyproject(
        tmp_path,
        """
        [tool.ev_regen.vehicle]
        profile = "suv_awd"

        [tool.ev_regen.brakes]
        max_combined_power = 20000.0
        """,
    )

    with pytest.raises(ConfigurationKeyError, match="brakes") as excinfo:
        load_project_config(tmp_path)

    assert "suspension" in str(excinfo.value)


def test_load_project_config_reports_malformed_files(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text("[tool.ev_regen\n", encoding="utf8")

    with pytest.raises(ConfigurationError, match="Malformed"):
        load_project_config(tmp_path)
