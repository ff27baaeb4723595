from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Tuple

import numpy as np
import pandas as pd
import xarray as xr

from ..core.config import DistanceMethod, SimulationConfig, VelocityMethod, Vessel
from ..core.errors import ConfigurationError
from ..core.routes import RoutePlan


@dataclass(frozen=True)
class VoyageConfig:
    """Definition of the voyage that needs to be simulated.

    The route is read from ``route_file`` (CSV with the route plan columns)
    if given and built from the waypoints otherwise.
    """

    name: str = "Voyage"
    lon_waypoints: Tuple[float, ...] = (0.0, 0.9, 1.8)
    lat_waypoints: Tuple[float, ...] = (0.0, 0.0, 0.0)
    route_file: str | None = None
    tacking_width_meters: float = 10_000.0
    min_proximity_meters: float = 0.0
    start_times: Tuple[str, ...] = ("2025-01-01T00:00",)
    time_step_hours: float = 1.0
    max_iterations: int = 1_000
    method: VelocityMethod = VelocityMethod.CONSTANT_MEAN
    distance_method: DistanceMethod = DistanceMethod.CLOSED_FORM

    def __post_init__(self):
        """Coerce sequences to tuples and enum fields given as strings."""
        if isinstance(self.start_times, str):
            object.__setattr__(self, "start_times", (self.start_times,))
        object.__setattr__(self, "start_times", tuple(self.start_times))
        object.__setattr__(self, "lon_waypoints", tuple(self.lon_waypoints))
        object.__setattr__(self, "lat_waypoints", tuple(self.lat_waypoints))
        try:
            object.__setattr__(self, "method", VelocityMethod(self.method))
            object.__setattr__(
                self, "distance_method", DistanceMethod(self.distance_method)
            )
        except ValueError as err:
            raise ConfigurationError(str(err)) from err
        if len(self.start_times) == 0:
            raise ConfigurationError("Need at least one start time.")

    def route_plan(self) -> RoutePlan:
        """Route plan from file or waypoints."""
        if self.route_file is not None:
            return RoutePlan.from_data_frame(pd.read_csv(self.route_file))
        return RoutePlan.from_waypoints(
            lon_waypoints=self.lon_waypoints,
            lat_waypoints=self.lat_waypoints,
            tacking_width=self.tacking_width_meters,
            min_proximity=self.min_proximity_meters,
        )

    def simulation_config(self, start_time: str | np.datetime64) -> SimulationConfig:
        """Single run configuration for one of the start times."""
        return SimulationConfig(
            method=self.method,
            start_time=start_time,
            time_step_seconds=self.time_step_hours * 3_600.0,
            max_iterations=self.max_iterations,
            distance_method=self.distance_method,
        )


@dataclass(frozen=True)
class ForcingConfig:
    """Paths and IO settings for winds and currents.

    Without files, a uniform wind and current can be given instead. Wind
    directions are where the wind comes from, current directions where the
    water flows to, both in degrees clockwise from north.
    """

    winds_path: str | None = None
    currents_path: str | None = None
    engine: str | None = None
    load_eagerly: bool = True
    uniform_wind_speed_ms: float | None = None
    uniform_wind_from_degrees: float = 0.0
    uniform_current_speed_ms: float | None = None
    uniform_current_to_degrees: float = 0.0
    # files are cropped to the route plus this margin, None keeps the full grid
    spatial_margin_degrees: float | None = 2.0

    @property
    def has_weather(self) -> bool:
        return self.winds_path is not None or self.uniform_wind_speed_ms is not None


@dataclass
class ForcingData:
    """Loaded forcing datasets."""

    winds: xr.Dataset | None = None
    currents: xr.Dataset | None = None


@dataclass(frozen=True)
class EnsembleParams:
    """Ensemble and parallelization settings."""

    members_per_start_time: int = 1
    random_seed: int | None = 345

    # Parallelization
    num_workers: int = 2  # ignored if executor_type="sequential"
    executor_type: Literal["process", "thread", "sequential"] = "sequential"
    progress_bar: bool = False


@dataclass(frozen=True)
class SailingConfig:
    """Top-level configuration consumed by the simulation application."""

    voyage: VoyageConfig = VoyageConfig()
    forcing: ForcingConfig = ForcingConfig()
    vessel: Vessel = Vessel(
        name="Sailing Cargo", min_angle_of_attack_degrees=45.0, velocity_mean_ms=5.0
    )
    ensemble: EnsembleParams = EnsembleParams()
