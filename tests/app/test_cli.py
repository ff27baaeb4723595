"""Tests for the command line interface and build_config."""

import json

import pytest
from click.testing import CliRunner

from sail_sim.app.cli import build_config, main
from sail_sim.app.config import SailingConfig
from sail_sim.app.simulation import EnsembleResult
from sail_sim.core.config import VelocityMethod
from sail_sim.core.errors import ConfigurationError
from sail_sim.core.geodesics import knots_to_ms


class TestBuildConfig:
    """Tests for build_config."""

    def test_defaults(self):
        config = build_config()
        assert isinstance(config, SailingConfig)
        assert config == SailingConfig()

    def test_vessel_units(self):
        config = build_config(
            speed_knots=10.0,
            speed_std_knots=2.0,
            cargo_tonnes=3.0,
            cargo_capacity_tonnes=5.0,
        )
        assert config.vessel.velocity_mean_ms == pytest.approx(knots_to_ms(10.0))
        assert config.vessel.velocity_std_ms == pytest.approx(knots_to_ms(2.0))
        assert config.vessel.cargo_kg == pytest.approx(3_000.0)
        assert config.vessel.cargo_max_capacity_kg == pytest.approx(5_000.0)
        # untouched fields keep their defaults
        assert config.vessel.min_angle_of_attack_degrees == 45.0

    def test_overrides(self):
        config = build_config(
            lon_waypoints=(0.0, 1.0),
            lat_waypoints=(0.0, 0.0),
            method="weather_driven",
            wind_speed_ms=5.0,
            wind_from_degrees=270.0,
            executor_type="thread",
            num_workers=3,
        )
        assert config.voyage.lon_waypoints == (0.0, 1.0)
        assert config.voyage.method is VelocityMethod.WEATHER_DRIVEN
        assert config.forcing.uniform_wind_speed_ms == 5.0
        assert config.forcing.uniform_wind_from_degrees == 270.0
        assert config.ensemble.executor_type == "thread"
        assert config.ensemble.num_workers == 3

    def test_config_dict_is_base(self):
        """Explicit parameters override the config dict."""
        config_dict = {
            "voyage": {"name": "From file", "time_step_hours": 2.0},
            "vessel": {"name": "Schooner", "velocity_mean_ms": 4.0},
            "ensemble": {"members_per_start_time": 4},
        }
        config = build_config(time_step_hours=0.5, config_dict=config_dict)
        assert config.voyage.name == "From file"
        assert config.voyage.time_step_hours == 0.5
        assert config.vessel.name == "Schooner"
        assert config.vessel.velocity_mean_ms == 4.0
        # the vessel section replaces the default vessel
        assert config.vessel.min_angle_of_attack_degrees is None
        assert config.ensemble.members_per_start_time == 4

    def test_invalid_method(self):
        with pytest.raises(ConfigurationError):
            build_config(method="rowing")


class TestMain:
    """Tests for the click entry point."""

    def test_run_writes_results(self, tmp_path):
        runner = CliRunner()
        result = runner.invoke(
            main,
            [
                "--log-dir",
                str(tmp_path),
                "--lon-wp",
                "0.0",
                "--lon-wp",
                "0.5",
                "--lat-wp",
                "0.0",
                "--lat-wp",
                "0.0",
                "--msgpack",
            ],
        )
        assert result.exit_code == 0, result.output
        (json_file,) = tmp_path.glob("run_*.json")
        (msgpack_file,) = tmp_path.glob("run_*.msgpack")
        assert "Results saved to" in result.output

        loaded = EnsembleResult.load_json(json_file)
        assert len(loaded.members) == 1
        assert loaded.members[0].result.completed
        from_msgpack = EnsembleResult.from_msgpack(msgpack_file.read_bytes())
        assert (
            from_msgpack.members[0].result.log.entries
            == loaded.members[0].result.log.entries
        )

    def test_ensemble_over_start_times(self, tmp_path):
        runner = CliRunner()
        result = runner.invoke(
            main,
            [
                "--log-dir",
                str(tmp_path),
                "--start-time",
                "2025-01-01T00:00",
                "--start-time",
                "2025-01-01T12:00",
                "--method",
                "mean_plus_deviation",
                "--speed-std-knots",
                "2",
                "--members-per-start-time",
                "2",
                "--random-seed",
                "1",
            ],
        )
        assert result.exit_code == 0, result.output
        (json_file,) = tmp_path.glob("run_*.json")
        loaded = EnsembleResult.load_json(json_file)
        assert [m.start_time for m in loaded.members] == [
            "2025-01-01T00:00",
            "2025-01-01T00:00",
            "2025-01-01T12:00",
            "2025-01-01T12:00",
        ]

    def test_config_file(self, tmp_path):
        config_file = tmp_path / "config.json"
        config_file.write_text(
            json.dumps({"voyage": {"name": "Config voyage", "max_iterations": 1}})
        )
        runner = CliRunner()
        result = runner.invoke(
            main,
            ["--log-dir", str(tmp_path / "runs"), "--config-file", str(config_file)],
        )
        assert result.exit_code == 0, result.output
        (json_file,) = (tmp_path / "runs").glob("run_*.json")
        loaded = EnsembleResult.load_json(json_file)
        assert loaded.members[0].result.status.value == "iterations_exhausted"
        assert loaded.logs.config["voyage"]["name"] == "Config voyage"

    def test_weather_driven_without_wind_fails(self, tmp_path):
        runner = CliRunner()
        result = runner.invoke(
            main, ["--log-dir", str(tmp_path), "--method", "weather_driven"]
        )
        assert result.exit_code != 0
        assert isinstance(result.exception, ConfigurationError)
