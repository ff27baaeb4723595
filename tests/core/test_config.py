from sail_sim.core.config import (
    DistanceMethod,
    SimulationConfig,
    VelocityMethod,
)
from sail_sim.core.errors import ConfigurationError, SimulationError

import numpy as np

import pytest


def test_simulation_config_coerces_enums():
    config = SimulationConfig(method="weather_driven", distance_method="bisection")
    assert config.method is VelocityMethod.WEATHER_DRIVEN
    assert config.distance_method is DistanceMethod.BISECTION


def test_simulation_config_unknown_method():
    with pytest.raises(ValueError):
        SimulationConfig(method="rowing")


def test_simulation_config_start_time():
    config = SimulationConfig(start_time="2025-03-01T12:00")
    assert config.start_time_np == np.datetime64("2025-03-01T12:00:00.000")
    assert config.start_time_np.dtype == np.dtype("datetime64[ms]")


def test_simulation_config_validate_ok():
    SimulationConfig().validate()
    SimulationConfig(max_iterations=0).validate()


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(time_step_seconds=0.0),
        dict(time_step_seconds=-1.0),
        dict(time_step_seconds=np.inf),
        dict(time_step_seconds=None),
        dict(max_iterations=-1),
        dict(start_time="not a time"),
        dict(start_time="NaT"),
    ],
)
def test_simulation_config_validate_errors(kwargs):
    with pytest.raises(ConfigurationError):
        SimulationConfig(**kwargs).validate()


def test_configuration_error_hierarchy():
    assert issubclass(ConfigurationError, SimulationError)
    assert issubclass(ConfigurationError, ValueError)
