"""Tests for the configuration of ensemble simulations."""

import pandas as pd
import pytest

from sail_sim.app.config import (
    EnsembleParams,
    ForcingConfig,
    SailingConfig,
    VoyageConfig,
)
from sail_sim.core.config import DistanceMethod, VelocityMethod
from sail_sim.core.errors import ConfigurationError
from sail_sim.core.routes import RoutePlan


class TestVoyageConfig:
    """Tests for VoyageConfig."""

    def test_defaults_give_two_legs(self):
        route = VoyageConfig().route_plan()
        assert isinstance(route, RoutePlan)
        assert len(route) == 2
        assert route[0].tacking_width == 10_000.0

    def test_coerces_sequences_and_enums(self):
        config = VoyageConfig(
            lon_waypoints=[0.0, 1.0],
            lat_waypoints=[0.0, 1.0],
            start_times="2025-02-01T00:00",
            method="weather_driven",
            distance_method="bisection",
        )
        assert config.lon_waypoints == (0.0, 1.0)
        assert config.start_times == ("2025-02-01T00:00",)
        assert config.method is VelocityMethod.WEATHER_DRIVEN
        assert config.distance_method is DistanceMethod.BISECTION

    def test_unknown_method(self):
        with pytest.raises(ConfigurationError):
            VoyageConfig(method="rowing")

    def test_needs_start_time(self):
        with pytest.raises(ConfigurationError):
            VoyageConfig(start_times=())

    def test_route_from_file(self, tmp_path, equator_route):
        """Route files take precedence over waypoints."""
        route_file = tmp_path / "route.csv"
        equator_route.data_frame.to_csv(route_file, index=False)
        config = VoyageConfig(
            lon_waypoints=(5.0, 6.0),
            lat_waypoints=(5.0, 6.0),
            route_file=str(route_file),
        )
        assert config.route_plan() == equator_route

    def test_route_file_missing_columns(self, tmp_path):
        route_file = tmp_path / "route.csv"
        pd.DataFrame({"p1_lat": [0.0]}).to_csv(route_file, index=False)
        with pytest.raises(ConfigurationError):
            VoyageConfig(route_file=str(route_file)).route_plan()

    def test_simulation_config(self):
        voyage = VoyageConfig(
            time_step_hours=0.5, max_iterations=7, method="mean_plus_deviation"
        )
        config = voyage.simulation_config("2025-06-01T00:00")
        assert config.time_step_seconds == 1_800.0
        assert config.max_iterations == 7
        assert config.method is VelocityMethod.MEAN_PLUS_DEVIATION
        assert config.start_time == "2025-06-01T00:00"


class TestForcingConfig:
    """Tests for ForcingConfig."""

    def test_no_weather_by_default(self):
        assert not ForcingConfig().has_weather

    @pytest.mark.parametrize(
        "kwargs",
        [dict(winds_path="winds.nc"), dict(uniform_wind_speed_ms=5.0)],
    )
    def test_has_weather(self, kwargs):
        assert ForcingConfig(**kwargs).has_weather

    def test_currents_alone_are_no_weather(self):
        assert not ForcingConfig(currents_path="currents.nc").has_weather


class TestSailingConfig:
    """Tests for SailingConfig defaults."""

    def test_defaults(self):
        config = SailingConfig()
        assert config.vessel.velocity_mean_ms == 5.0
        assert config.vessel.min_angle_of_attack_degrees == 45.0
        assert config.ensemble == EnsembleParams()
        assert config.ensemble.executor_type == "sequential"
