from sail_sim.core.config import Vessel
from sail_sim.core.errors import ConfigurationError
from sail_sim.core.routes import GeoPoint
from sail_sim.core.vectors import PhysVec
from sail_sim.core.vessel import (
    NavigationStatus,
    ShipLog,
    ShipLogEntry,
    VesselSide,
    VesselState,
)

import numpy as np

import pytest


@pytest.fixture
def two_entry_log(equator_route):
    """Initial record and a record after one hour 36 km to the east."""
    state = VesselState.at_start_of(route=equator_route, vessel=Vessel(cargo_kg=1e3))
    t0 = np.datetime64("2025-01-01T00:00", "ms")
    first = ShipLogEntry.from_state(
        state=state, route=equator_route, timestamp=t0, draft=3.5
    )
    state.location = state.location.move_space(
        azimuth_degrees=90.0, distance_meters=36_000.0
    )
    state.velocity = PhysVec(magnitude=10.0, angle=90.0)
    second = ShipLogEntry.from_state(
        state=state,
        route=equator_route,
        timestamp=t0 + np.timedelta64(3_600_000, "ms"),
        previous=first,
        draft=3.5,
    )
    return ShipLog([first, second])


def test_vessel_side_switched():
    assert VesselSide.PORT.switched() is VesselSide.STARBOARD
    assert VesselSide.STARBOARD.switched() is VesselSide.PORT
    assert VesselSide("port") is VesselSide.PORT


def test_navigation_status_codes():
    assert int(NavigationStatus.UNDER_WAY_SAILING) == 8
    assert int(NavigationStatus.MOORED) == 5


def test_vessel_validate_cargo():
    vessel = Vessel(cargo_kg=500.0, cargo_max_capacity_kg=1_000.0)
    assert vessel.validate_cargo() == 500.0
    assert vessel.validate_cargo(1_000.0) == 1_000.0
    with pytest.raises(ConfigurationError):
        vessel.validate_cargo(1_001.0)
    with pytest.raises(ConfigurationError):
        vessel.validate_cargo(-1.0)


def test_vessel_state_at_start(equator_route):
    vessel = Vessel(preferred_side="port", cargo_kg=42.0)
    state = VesselState.at_start_of(route=equator_route, vessel=vessel)
    assert state.location == equator_route.initial_point
    assert state.leg_index == 1
    assert state.side is VesselSide.PORT
    assert state.cargo_kg == 42.0
    assert state.tacks == 0
    assert state.velocity is None
    assert state.heading == pytest.approx(90.0)


def test_first_entry(two_entry_log, equator_route):
    first = two_entry_log[0]
    assert first.coordinates_initial == equator_route.initial_point
    assert first.coordinates_final == equator_route.final_point
    assert first.coordinates_current == equator_route.initial_point
    assert first.course == pytest.approx(90.0)
    assert first.true_bearing == pytest.approx(90.0)
    # no previous entry, no track
    assert first.track_angle is None
    assert first.velocity is None
    assert first.cargo_on_board == 1e3
    assert first.draft == 3.5
    assert first.navigation_status is NavigationStatus.UNDER_WAY_SAILING


def test_second_entry(two_entry_log):
    second = two_entry_log[1]
    assert second.track_angle == pytest.approx(90.0)
    assert second.velocity == PhysVec(magnitude=10.0, angle=90.0)
    assert second.leg_index == 1


def test_true_bearing_none_at_destination(equator_route):
    state = VesselState.at_start_of(route=equator_route, vessel=Vessel())
    state.location = equator_route.final_point
    entry = ShipLogEntry.from_state(
        state=state, route=equator_route, timestamp=np.datetime64("2025-01-01", "ms")
    )
    assert entry.true_bearing is None


def test_ship_log_access(two_entry_log):
    assert len(two_entry_log) == 2
    assert isinstance(two_entry_log[:1], tuple)
    assert two_entry_log[-1] is two_entry_log.entries[-1]
    assert [e.leg_index for e in two_entry_log] == [1, 1]
    assert two_entry_log.elapsed_seconds == 3_600.0
    assert two_entry_log.length_meters == pytest.approx(36_000.0)
    assert two_entry_log.timestamps.dtype == np.dtype("datetime64[ms]")


def test_ship_log_append(two_entry_log):
    log = ShipLog()
    assert len(log) == 0
    assert log.elapsed_seconds == 0.0
    assert log.length_meters == 0.0
    log.append(two_entry_log[0])
    assert len(log) == 1
    # a single point still gives a (degenerate) track
    assert log.line_string.length == 0.0


def test_ship_log_data_frame(two_entry_log):
    df = two_entry_log.data_frame
    assert len(df) == 2
    for column in [
        "timestamp",
        "coordinates_initial",
        "coordinates_current",
        "coordinates_final",
        "cargo_on_board",
        "velocity",
        "course",
        "heading",
        "track_angle",
        "true_bearing",
        "draft",
        "navigation_status",
        "lon",
        "lat",
        "speed_ms",
        "leg",
    ]:
        assert column in df.columns
    assert df.coordinates_initial.iloc[0] == "0.0,0.0"
    assert df.navigation_status.iloc[0] == "UNDER_WAY_SAILING"
    assert np.isnan(df.speed_ms.iloc[0])
    assert df.speed_ms.iloc[1] == 10.0


def test_ship_log_dict_round_trip(two_entry_log):
    restored = ShipLog.from_dict(two_entry_log.to_dict())
    assert restored.entries == two_entry_log.entries


def test_ship_log_entry_dict_coordinates_are_lon_lat():
    entry = ShipLogEntry(
        timestamp=np.datetime64("2025-01-01T00:00", "ms"),
        coordinates_initial=GeoPoint(lon=1.0, lat=2.0),
        coordinates_current=GeoPoint(lon=1.0, lat=2.0),
        coordinates_final=GeoPoint(lon=3.0, lat=4.0),
        navigation_status=NavigationStatus.MOORED,
    )
    data = entry.to_dict()
    assert data["coordinates_final"] == [3.0, 4.0]
    assert data["navigation_status"] == 5
    assert ShipLogEntry.from_dict(data) == entry
