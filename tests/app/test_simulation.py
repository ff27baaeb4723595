"""Tests for running ensembles with SimulationApp."""

import numpy as np
import pytest

from sail_sim.algorithms.stepper import SimulationStatus
from sail_sim.app.config import (
    EnsembleParams,
    ForcingConfig,
    SailingConfig,
    VoyageConfig,
)
from sail_sim.app.simulation import EnsembleResult, SimulationApp
from sail_sim.core.config import Vessel
from sail_sim.core.errors import ConfigurationError


def _ensemble_config(executor_type="sequential", num_workers=1):
    return SailingConfig(
        voyage=VoyageConfig(
            start_times=("2025-01-01T00:00", "2025-01-02T00:00"),
            method="mean_plus_deviation",
        ),
        vessel=Vessel(velocity_mean_ms=5.0, velocity_std_ms=2.0),
        ensemble=EnsembleParams(
            members_per_start_time=3,
            random_seed=42,
            executor_type=executor_type,
            num_workers=num_workers,
        ),
    )


@pytest.fixture(scope="module")
def ensemble_result():
    return SimulationApp(_ensemble_config()).run()


class TestSimulationApp:
    """Tests for SimulationApp.run."""

    def test_default_config_completes(self):
        result = SimulationApp(SailingConfig()).run()
        assert len(result.members) == 1
        member = result.members[0]
        assert member.result.status is SimulationStatus.COMPLETED
        assert member.start_time == "2025-01-01T00:00"

    def test_members_per_start_time(self, ensemble_result):
        members = ensemble_result.members
        assert [m.member for m in members] == list(range(6))
        assert [m.start_time for m in members] == 3 * ["2025-01-01T00:00"] + 3 * [
            "2025-01-02T00:00"
        ]
        assert all(m.result.completed for m in members)
        assert members[3].result.log[0].timestamp == np.datetime64("2025-01-02T00:00")

    def test_members_differ(self, ensemble_result):
        """Every member draws its own random numbers."""
        logs = [m.result.log.entries for m in ensemble_result.members]
        assert logs[0] != logs[1]

    @pytest.mark.parametrize("executor_type", ["thread", "process"])
    def test_executor_does_not_change_results(self, ensemble_result, executor_type):
        other = SimulationApp(
            _ensemble_config(executor_type=executor_type, num_workers=2)
        ).run()
        assert [m.result.log.entries for m in other.members] == [
            m.result.log.entries for m in ensemble_result.members
        ]

    def test_unknown_executor(self):
        config = SailingConfig(ensemble=EnsembleParams(executor_type="cluster"))
        with pytest.raises(ValueError):
            SimulationApp(config).run()

    def test_weather_driven_needs_winds(self):
        config = SailingConfig(voyage=VoyageConfig(method="weather_driven"))
        with pytest.raises(ConfigurationError):
            SimulationApp(config).run()

    def test_uniform_wind(self):
        """A fair wind from the south carries the vessel north without tacks."""
        config = SailingConfig(
            voyage=VoyageConfig(
                lon_waypoints=(0.0, 0.0),
                lat_waypoints=(0.0, 1.0),
                method="weather_driven",
            ),
            forcing=ForcingConfig(
                uniform_wind_speed_ms=4.0, uniform_wind_from_degrees=180.0
            ),
        )
        result = SimulationApp(config).run()
        member = result.members[0]
        assert member.result.completed
        assert member.result.tacks == 0
        assert member.result.log[1].velocity.magnitude == pytest.approx(6.0)
        assert member.result.log[1].heading == pytest.approx(0.0)

    def test_wind_from_file(self, tmp_path, wind_dataset):
        winds_path = tmp_path / "winds.nc"
        wind_dataset.rename(
            {
                "lon": "longitude",
                "lat": "latitude",
                "uw": "eastward_wind",
                "vw": "northward_wind",
            }
        ).to_netcdf(winds_path, engine="scipy")
        config = SailingConfig(
            voyage=VoyageConfig(
                lon_waypoints=(0.0, 0.5),
                lat_waypoints=(0.0, 0.5),
                method="weather_driven",
            ),
            forcing=ForcingConfig(winds_path=str(winds_path), engine="scipy"),
        )
        app = SimulationApp(config)
        result = app.run()
        assert result.members[0].result.completed
        (stage,) = app.log.stages_named("load_forcing")
        assert stage.metrics["winds"] is True
        assert stage.metrics["currents"] is False
        # cropped to the route plus two degrees
        assert "'lon': 10" in stage.metrics["winds_shape"]
        assert "'lat': 10" in stage.metrics["winds_shape"]

    def test_wind_from_file_without_cropping(self, tmp_path, wind_dataset):
        winds_path = tmp_path / "winds.nc"
        wind_dataset.rename(
            {
                "lon": "longitude",
                "lat": "latitude",
                "uw": "eastward_wind",
                "vw": "northward_wind",
            }
        ).to_netcdf(winds_path, engine="scipy")
        config = SailingConfig(
            voyage=VoyageConfig(
                lon_waypoints=(0.0, 0.5),
                lat_waypoints=(0.0, 0.5),
                method="weather_driven",
                max_iterations=12,
            ),
            forcing=ForcingConfig(
                winds_path=str(winds_path), engine="scipy", spatial_margin_degrees=None
            ),
        )
        app = SimulationApp(config)
        app.run()
        (stage,) = app.log.stages_named("load_forcing")
        assert "'lon': 41" in stage.metrics["winds_shape"]
        # twelve hourly steps reach the 12:00 field, 18:00 is kept as buffer
        assert "'time': 4" in stage.metrics["winds_shape"]


class TestSimulationLog:
    """Tests for the stage metrics of a run."""

    def test_stages(self, ensemble_result):
        logs = ensemble_result.logs
        assert len(logs.stages_named("run")) == 1
        assert len(logs.stages_named("member")) == 6
        (ensemble,) = logs.stages_named("ensemble")
        assert ensemble.metrics["members"] == 6
        assert ensemble.metrics["completed"] == 6
        assert ensemble.metrics["failed"] == 0
        assert (
            ensemble.metrics["travel_time_hours_min"]
            <= ensemble.metrics["travel_time_hours_mean"]
            <= ensemble.metrics["travel_time_hours_max"]
        )

    def test_to_dataframe(self, ensemble_result):
        df = ensemble_result.logs.to_dataframe()
        assert "stage" in df.columns
        assert "timestamp" in df.columns
        assert (df.stage == "member").sum() == 6

    def test_config_is_logged(self, ensemble_result):
        config = ensemble_result.logs.config
        assert config["ensemble"]["members_per_start_time"] == 3
        assert config["vessel"]["velocity_std_ms"] == 2.0


class TestEnsembleResult:
    """Tests for tabular views and serialization of ensemble results."""

    def test_data_frame(self, ensemble_result):
        df = ensemble_result.data_frame
        assert list(df.columns[:2]) == ["member", "start_time"]
        assert set(df.member) == set(range(6))
        assert len(df) == sum(len(m.result.log) for m in ensemble_result.members)

    def test_summary_data_frame(self, ensemble_result):
        df = ensemble_result.summary_data_frame
        assert len(df) == 6
        assert (df.status == "completed").all()
        assert (df.travel_time_hours > 0).all()
        # two legs of 100 km each
        np.testing.assert_allclose(df.distance_km, 200.15, rtol=1e-3)

    def test_empty_data_frame(self):
        assert len(EnsembleResult().data_frame) == 0

    def test_json_round_trip(self, tmp_path, ensemble_result):
        path = tmp_path / "out" / "result.json"
        ensemble_result.dump_json(path)
        restored = EnsembleResult.load_json(path)
        assert len(restored.members) == 6
        assert [m.result.log.entries for m in restored.members] == [
            m.result.log.entries for m in ensemble_result.members
        ]
        assert len(restored.logs.stages) == len(ensemble_result.logs.stages)

    def test_msgpack_round_trip(self, ensemble_result):
        restored = EnsembleResult.from_msgpack(ensemble_result.to_msgpack())
        assert [m.result.status for m in restored.members] == [
            m.result.status for m in ensemble_result.members
        ]
        assert restored.members[0].result.log.entries == (
            ensemble_result.members[0].result.log.entries
        )
