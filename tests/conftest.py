"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest
import xarray as xr

from sail_sim.core import PhysVec, RoutePlan, SimulationConfig, UniformWeather, Vessel


@pytest.fixture
def equator_route():
    """Two legs of about 100 km each along the equator."""
    return RoutePlan.from_waypoints(
        lon_waypoints=[0.0, 0.9, 1.8],
        lat_waypoints=[0.0, 0.0, 0.0],
        tacking_width=10_000.0,
        min_proximity=0.0,
    )


@pytest.fixture
def northward_route():
    """Single leg of about 111 km going north with a 10 km corridor."""
    return RoutePlan.from_waypoints(
        lon_waypoints=[0.0, 0.0],
        lat_waypoints=[0.0, 1.0],
        tacking_width=10_000.0,
        min_proximity=100.0,
    )


@pytest.fixture
def constant_vessel():
    return Vessel(name="Test Vessel", velocity_mean_ms=10.0, draft_m=3.5)


@pytest.fixture
def sailing_vessel():
    return Vessel(
        name="Test Sailer",
        min_angle_of_attack_degrees=45.0,
        velocity_mean_ms=5.0,
        velocity_std_ms=1.0,
        wind_speed_factor=1.5,
    )


@pytest.fixture
def hourly_config():
    return SimulationConfig(
        method="constant_mean",
        start_time="2025-01-01T00:00",
        time_step_seconds=3_600.0,
        max_iterations=10,
    )


@pytest.fixture
def headwind_from_north():
    """5 m/s wind blowing from north to south."""
    return UniformWeather(wind=PhysVec(magnitude=5.0, angle=180.0))


@pytest.fixture
def wind_dataset():
    """Gridded wind blowing eastward at 3 m/s and northward at 4 m/s."""
    lon = np.arange(-10.0, 10.5, 0.5)
    lat = np.arange(-5.0, 5.5, 0.5)
    time = np.arange(
        np.datetime64("2025-01-01T00:00"),
        np.datetime64("2025-01-03T00:00"),
        np.timedelta64(6, "h"),
    )
    shape = (time.size, lat.size, lon.size)
    return xr.Dataset(
        {
            "uw": (("time", "lat", "lon"), np.full(shape, 3.0)),
            "vw": (("time", "lat", "lon"), np.full(shape, 4.0)),
        },
        coords={"time": time, "lat": lat, "lon": lon},
    )


@pytest.fixture
def current_dataset(wind_dataset):
    """Eastward current of 1 m/s, masked (land) east of 5E."""
    uo = xr.ones_like(wind_dataset.uw).where(wind_dataset.lon <= 5.0)
    vo = xr.zeros_like(wind_dataset.vw).where(wind_dataset.lon <= 5.0)
    return xr.Dataset({"uo": uo, "vo": vo})
