"""Algorithm layer: Velocity strategies and the simulation stepper."""

from .velocity import (
    ConstantMean,
    MeanPlusDeviation,
    StepEnvironment,
    VelocityModel,
    VelocitySample,
    WeatherDriven,
    build_velocity_model,
)
from .stepper import (
    SimulationResult,
    SimulationStatus,
    SimulationStepper,
    advance_timestamp,
    simulate_voyage,
)

__all__ = [
    "ConstantMean",
    "MeanPlusDeviation",
    "StepEnvironment",
    "VelocityModel",
    "VelocitySample",
    "WeatherDriven",
    "build_velocity_model",
    "SimulationResult",
    "SimulationStatus",
    "SimulationStepper",
    "advance_timestamp",
    "simulate_voyage",
]
