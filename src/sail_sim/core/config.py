from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np

from .errors import ConfigurationError

EARTH_RADIUS_M = 6_371_008.8

# Positions closer than this to a waypoint are snapped onto it.
ARRIVAL_TOLERANCE_METERS = 1e-3

# Slack for being "inside" a tacking corridor after landing on its edge.
CORRIDOR_TOLERANCE_METERS = 1e-3

# Leftover time budgets below this are dropped.
MIN_TIME_BUDGET_SECONDS = 1e-9


class VelocityMethod(str, Enum):
    """How the vessel velocity is obtained for each sub-step."""

    CONSTANT_MEAN = "constant_mean"
    MEAN_PLUS_DEVIATION = "mean_plus_deviation"
    WEATHER_DRIVEN = "weather_driven"


class DistanceMethod(str, Enum):
    """Algorithm for the point to great circle distance."""

    CLOSED_FORM = "closed_form"
    BISECTION = "bisection"


@dataclass(frozen=True)
class Vessel:
    """Static vessel characteristics.

    All fields are optional so that a vessel can be described with only
    what the chosen velocity method needs.
    """

    name: str | None = None
    imo: int | None = None
    min_angle_of_attack_degrees: float | None = None
    velocity_mean_ms: float | None = None
    velocity_std_ms: float | None = None
    wind_speed_factor: float = 1.5
    draft_m: float | None = None
    mass_kg: float | None = None
    cargo_kg: float = 0.0
    cargo_max_capacity_kg: float | None = None
    preferred_side: str = "starboard"

    def validate_cargo(self, cargo_kg: float | None = None) -> float:
        """Check cargo against capacity and return it."""
        cargo = self.cargo_kg if cargo_kg is None else cargo_kg
        if cargo < 0:
            raise ConfigurationError(f"Cargo must not be negative, got {cargo} kg.")
        if self.cargo_max_capacity_kg is not None and cargo > self.cargo_max_capacity_kg:
            raise ConfigurationError(
                f"Cargo of {cargo} kg exceeds capacity of "
                f"{self.cargo_max_capacity_kg} kg."
            )
        return cargo


@dataclass(frozen=True)
class SimulationConfig:
    """Parameters of a single simulation run."""

    method: VelocityMethod = VelocityMethod.CONSTANT_MEAN
    start_time: str | np.datetime64 = "2025-01-01T00:00"
    time_step_seconds: float = 3_600.0
    max_iterations: int = 1_000
    distance_method: DistanceMethod = DistanceMethod.CLOSED_FORM

    def __post_init__(self):
        """Coerce enum fields given as strings."""
        object.__setattr__(self, "method", VelocityMethod(self.method))
        object.__setattr__(
            self, "distance_method", DistanceMethod(self.distance_method)
        )

    @property
    def start_time_np(self) -> np.datetime64:
        """Start time as millisecond resolution datetime64."""
        return np.datetime64(self.start_time, "ms")

    def validate(self):
        """Raise ConfigurationError for unusable step settings."""
        if self.time_step_seconds is None or not np.isfinite(self.time_step_seconds):
            raise ConfigurationError("Missing time step.")
        if self.time_step_seconds <= 0:
            raise ConfigurationError(
                f"Time step must be positive, got {self.time_step_seconds} s."
            )
        if self.max_iterations is None or self.max_iterations < 0:
            raise ConfigurationError(
                f"max_iterations must be non-negative, got {self.max_iterations}."
            )
        try:
            start = self.start_time_np
        except ValueError as err:
            raise ConfigurationError(f"Invalid start time {self.start_time!r}.") from err
        if np.isnat(start):
            raise ConfigurationError("Missing start time.")

