from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np

from ..core.config import DistanceMethod, VelocityMethod, Vessel
from ..core.data import WeatherSource
from ..core.errors import ConfigurationError
from ..core.geodesics import normalize_angle
from ..core.routes import SailingLeg
from ..core.tacking import TackingController
from ..core.vectors import PhysVec
from ..core.vessel import VesselState


@dataclass(frozen=True)
class StepEnvironment:
    """What a velocity model may know about the sub-step besides the vessel."""

    leg: SailingLeg
    time: np.datetime64


@dataclass(frozen=True)
class VelocitySample:
    """Velocity for one sub-step.

    ``vector`` is the velocity over ground. ``wind_from`` is the direction
    the wind comes from and is None without wind information.
    """

    vector: PhysVec
    heading: float
    wind: PhysVec | None = None
    current: PhysVec | None = None
    wind_from: float | None = None


def _check_non_negative(name, value):
    if not np.isfinite(value) or value < 0:
        raise ConfigurationError(f"{name} must be finite and non-negative, got {value}.")


class VelocityModel(ABC):
    """Strategy producing the vessel velocity for each sub-step."""

    def __init__(
        self,
        vessel: Vessel = None,
        distance_method: DistanceMethod = DistanceMethod.CLOSED_FORM,
    ):
        self.vessel = vessel
        self.tacking = TackingController(
            min_angle_of_attack_degrees=vessel.min_angle_of_attack_degrees,
            distance_method=distance_method,
        )

    def validate(self):
        """Raise ConfigurationError if a required parameter is missing."""
        pass

    @abstractmethod
    def compute_velocity(
        self, state: VesselState, env: StepEnvironment
    ) -> VelocitySample: ...


class ConstantMean(VelocityModel):
    """Sail at the mean speed of the vessel."""

    def validate(self):
        if self.vessel.velocity_mean_ms is None:
            raise ConfigurationError("ConstantMean needs velocity_mean_ms.")
        _check_non_negative("velocity_mean_ms", self.vessel.velocity_mean_ms)

    def _speed_ms(self):
        return self.vessel.velocity_mean_ms

    def compute_velocity(self, state, env):
        decision = self.tacking.steer(state, env.leg)
        return VelocitySample(
            vector=PhysVec(magnitude=self._speed_ms(), angle=decision.heading),
            heading=decision.heading,
        )


class MeanPlusDeviation(ConstantMean):
    """Mean speed plus a uniform random deviation of up to one std.

    The random numbers come from ``rng.uniform(-1.0, 1.0)``, which a
    ``numpy.random.Generator`` provides.
    """

    def __init__(self, vessel=None, rng=None, distance_method=DistanceMethod.CLOSED_FORM):
        super().__init__(vessel=vessel, distance_method=distance_method)
        self.rng = rng

    def validate(self):
        super().validate()
        if self.vessel.velocity_std_ms is None:
            raise ConfigurationError("MeanPlusDeviation needs velocity_std_ms.")
        _check_non_negative("velocity_std_ms", self.vessel.velocity_std_ms)
        if self.rng is None:
            raise ConfigurationError("MeanPlusDeviation needs a random generator.")

    def _speed_ms(self):
        u = float(self.rng.uniform(-1.0, 1.0))
        return max(0.0, self.vessel.velocity_mean_ms + u * self.vessel.velocity_std_ms)


class WeatherDriven(VelocityModel):
    """Speed through water proportional to the wind speed.

    The speed through water is ``wind_speed_factor * |wind|`` along the
    heading chosen by the tacking controller. The current, if any, is added
    to give the velocity over ground.
    """

    def __init__(
        self,
        vessel=None,
        weather: WeatherSource = None,
        distance_method=DistanceMethod.CLOSED_FORM,
    ):
        super().__init__(vessel=vessel, distance_method=distance_method)
        self.weather = weather

    def validate(self):
        if self.weather is None:
            raise ConfigurationError("WeatherDriven needs a weather source.")
        if self.vessel.min_angle_of_attack_degrees is None:
            raise ConfigurationError("WeatherDriven needs min_angle_of_attack_degrees.")
        if self.vessel.wind_speed_factor is None:
            raise ConfigurationError("WeatherDriven needs wind_speed_factor.")
        _check_non_negative("wind_speed_factor", self.vessel.wind_speed_factor)

    def compute_velocity(self, state, env):
        wind = self.weather.wind_vector_at(state.location, env.time)
        current = self.weather.current_vector_at(state.location, env.time)
        wind_from = normalize_angle(wind.angle + 180.0)
        decision = self.tacking.steer(state, env.leg, wind_from=wind_from)
        through_water = PhysVec(
            magnitude=self.vessel.wind_speed_factor * wind.magnitude,
            angle=decision.heading,
        )
        over_ground = through_water if current is None else through_water + current
        return VelocitySample(
            vector=over_ground,
            heading=decision.heading,
            wind=wind,
            current=current,
            wind_from=wind_from,
        )


def build_velocity_model(
    method: VelocityMethod = VelocityMethod.CONSTANT_MEAN,
    vessel: Vessel = None,
    weather: WeatherSource = None,
    rng=None,
    distance_method: DistanceMethod = DistanceMethod.CLOSED_FORM,
) -> VelocityModel:
    """Velocity model for the given method."""
    if vessel is None:
        raise ConfigurationError("Missing vessel.")
    method = VelocityMethod(method)
    if method is VelocityMethod.CONSTANT_MEAN:
        return ConstantMean(vessel=vessel, distance_method=distance_method)
    if method is VelocityMethod.MEAN_PLUS_DEVIATION:
        return MeanPlusDeviation(vessel=vessel, rng=rng, distance_method=distance_method)
    return WeatherDriven(vessel=vessel, weather=weather, distance_method=distance_method)
