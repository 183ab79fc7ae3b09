from __future__ import annotations

from pathlib import Path

import pytest

from ev_regen.cli import run_cli
from ev_regen.cli.errors import CliError
from ev_regen.errors import (
    ConfigurationError,
    InputValidationError,
    MotorNotFoundError,
    ProfileNotFoundError,
)
from tests.conftest import write_pyproject
from tests.helpers import run_cli_in_tmp, write_input_file


BRAKING_ARGS = ["--speed", "50", "--intensity", "0.3", "--soc", "0.5", "--motor-temperature", "40"]

INTEGRATED_PAYLOAD = {
    "driving_mode": "comfort",
    "braking": {
        "vehicle_speed": 50.0,
        "brake_pedal_position": 0.3,
        "battery_soc": 0.5,
        "motor_temperatures": 40.0,
    },
    "suspension": {
        "compression_velocity": 0.5,
        "displacement": 0.02,
        "vehicle_speed": 60.0,
        "road_roughness": 0.5,
        "damper_temperature": 40.0,
        "battery_soc": 0.5,
        "load_factor": 0.5,
    },
}


def _exit_status(args: list[str], capsys: pytest.CaptureFixture[str]) -> tuple[int, str]:
    with pytest.raises(SystemExit) as excinfo:
        run_cli(["--log-level", "critical", *args])
    return excinfo.value.code, capsys.readouterr().out


def test_profiles_command_lists_packaged_vehicles(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    payload = run_cli_in_tmp(["profiles"], tmp_path=tmp_path, monkeypatch=monkeypatch)

    assert sorted(payload) == ["compact_fwd", "midsize_sedan", "performance_awd", "suv_awd"]
    assert payload["suv_awd"]["vehicle"]["motor_count"] == 4


def test_braking_command_reports_decision_and_distribution(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    payload = run_cli_in_tmp(["braking", *BRAKING_ARGS], tmp_path=tmp_path, monkeypatch=monkeypatch)

    assert payload["profile"] is None
    assert payload["outputs"]["regenerative_ratio"] == pytest.approx(0.95 * 0.85)
    assert payload["distribution"]["motor_torques"]["front_left"] > 0.0
    assert payload["diagnostics"]["cycles"] == 1


def test_braking_command_accepts_profiles(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    payload = run_cli_in_tmp(
        ["braking", *BRAKING_ARGS, "--profile", "Performance-AWD"],
        tmp_path=tmp_path,
        monkeypatch=monkeypatch,
    )

    assert payload["profile"] == "performance_awd"
    assert set(payload["distribution"]["motor_torques"]) == {
        "front_left",
        "front_right",
        "rear_left",
        "rear_right",
    }


def test_damper_command_from_flags(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    payload = run_cli_in_tmp(
        [
            "damper",
            "--velocity", "0.5",
            "--displacement", "0.02",
            "--speed", "60",
            "--roughness", "0.5",
            "--temperature", "40",
            "--soc", "0.5",
            "--load", "0.5",
        ],
        tmp_path=tmp_path,
        monkeypatch=monkeypatch,
    )

    assert payload["outputs"]["generated_power"] == pytest.approx(992.25 * 0.5 * 0.85)


def test_damper_command_flags_override_input_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    source = write_input_file(tmp_path, INTEGRATED_PAYLOAD["suspension"], suffix=".json")

    payload = run_cli_in_tmp(
        ["damper", "--input", str(source), "--velocity", "0.0"],
        tmp_path=tmp_path,
        monkeypatch=monkeypatch,
    )

    assert payload["inputs"]["compression_velocity"] == 0.0
    assert payload["inputs"]["road_roughness"] == 0.5
    assert payload["outputs"]["generated_power"] == 0.0


def test_integrated_command_from_yaml_input(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    source = write_input_file(tmp_path, INTEGRATED_PAYLOAD)

    payload = run_cli_in_tmp(
        ["integrated", "--input", str(source), "--cycles", "3"],
        tmp_path=tmp_path,
        monkeypatch=monkeypatch,
    )

    balance = payload["energy_balance"]
    assert payload["cycles"] == 3
    assert payload["operation_time"] == pytest.approx(0.03)
    assert balance["total_generated_power"] == pytest.approx(
        balance["regenerative_braking_power"] + balance["damper_power"]
    )
    assert sorted(payload["corners"]) == ["front_left", "front_right", "rear_left", "rear_right"]
    assert payload["power_limited"] is False


def test_integrated_command_power_cap_override(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    source = write_input_file(tmp_path, INTEGRATED_PAYLOAD)

    payload = run_cli_in_tmp(
        ["integrated", "--input", str(source), "--max-combined-power", "1000"],
        tmp_path=tmp_path,
        monkeypatch=monkeypatch,
    )

    assert payload["power_limited"] is True
    assert payload["energy_balance"]["total_generated_power"] <= 1_000.0
    assert "Combined power limited to 1000 W" in payload["warnings"]


def test_project_configuration_selects_the_vehicle_profile(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    write_pyproject(
        tmp_path,
        """
        [tool.ev_regen.vehicle]
        profile = "suv_awd"

        [tool.ev_regen.system]
        max_combined_power = 60000.0
        """,
    )
    source = write_input_file(tmp_path, INTEGRATED_PAYLOAD)

    payload = run_cli_in_tmp(
        ["integrated", "--input", str(source)], tmp_path=tmp_path, monkeypatch=monkeypatch
    )

    assert payload["profile"] == "suv_awd"
    assert set(payload["braking"]["motor_torques"]) == {
        "front_left",
        "front_right",
        "rear_left",
        "rear_right",
    }


def test_explicit_config_path_takes_precedence(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    project = tmp_path / "project"
    project.mkdir()
    write_pyproject(project, '[tool.ev_regen.vehicle]\nprofile = "compact_fwd"\n')

    payload = run_cli_in_tmp(
        ["--config", str(project / "pyproject.toml"), "braking", *BRAKING_ARGS],
        tmp_path=tmp_path,
        monkeypatch=monkeypatch,
    )

    assert payload["profile"] == "compact_fwd"


@pytest.mark.usefixtures("isolated_cli")
@pytest.mark.parametrize(
    ("args", "status", "fragment"),
    [
        pytest.param(
            ["braking", "--input", "missing.yaml"], 4, "does not exist", id="missing-input"
        ),
        pytest.param(
            ["damper", "--velocity", "0.5"], 2, "Invalid damper input", id="missing-fields"
        ),
        pytest.param(
            ["braking", *BRAKING_ARGS, "--profile", "hovercraft"], 4, "hovercraft",
            id="unknown-profile",
        ),
        pytest.param(["integrated"], 2, "requires --input", id="integrated-without-input"),
        pytest.param(
            ["braking", "--speed", "-5", "--intensity", "0.3", "--soc", "0.5",
             "--motor-temperature", "40"],
            2, "Driving speed", id="out-of-range",
        ),
    ],
)
def test_failures_exit_with_category_status(
    capsys: pytest.CaptureFixture[str], args: list[str], status: int, fragment: str
) -> None:
    code, output = _exit_status(args, capsys)

    assert code == status
    assert fragment in output


def test_integrated_input_without_suspension_is_a_usage_error(
    isolated_cli: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    source = write_input_file(isolated_cli, {"braking": INTEGRATED_PAYLOAD["braking"]})

    code, output = _exit_status(["integrated", "--input", str(source)], capsys)

    assert code == 2
    assert "suspension_inputs" in output


def test_malformed_input_file_is_an_io_error(
    isolated_cli: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    source = isolated_cli / "cycle.json"
    source.write_text("{not json", encoding="utf8")

    code, _ = _exit_status(["damper", "--input", str(source)], capsys)

    assert code == 3


@pytest.mark.parametrize(
    ("exc", "category", "status"),
    [
        (InputValidationError("bad", field="battery_soc", value=2.0), "usage", 2),
        (ProfileNotFoundError("hovercraft", known=["suv_awd"]), "not_found", 4),
        (MotorNotFoundError("rear_left", known=["front_left"]), "not_found", 4),
        (ConfigurationError("bad override"), "usage", 2),
        (RuntimeError(), "runtime", 1),
    ],
)
def test_cli_error_from_exception(exc: Exception, category: str, status: int) -> None:
    error = CliError.from_exception(exc)

    assert error.category == category
    assert error.status_code == status
    assert str(error)


def test_cli_error_context_is_json_friendly() -> None:
    error = CliError.from_exception(
        InputValidationError("bad", field="battery_soc", value=2.0, minimum=0.0, maximum=1.0)
    )

    assert error.context == {
        "field": "battery_soc",
        "value": 2.0,
        "minimum": 0.0,
        "maximum": 1.0,
    }
    assert error.payload.as_dict()["status_code"] == 2


def test_unknown_project_table_is_a_usage_error(
    isolated_cli: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    write_pyproject(isolated_cli, '[tool.ev_regen.brakes]\nmax_power = 1.0\n')

    code, output = _exit_status(["profiles"], capsys)

    assert code == 2
    assert "brakes" in output
