from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np
import pandas as pd
from shapely.geometry import LineString

from .geodesics import get_length_meters, get_rhumb_azimuth_degrees
from .routes import GeoPoint
from .vectors import PhysVec


class VesselSide(str, Enum):
    """Side the wind comes over while holding a tack."""

    PORT = "port"
    STARBOARD = "starboard"

    def switched(self):
        """The other side."""
        if self is VesselSide.PORT:
            return VesselSide.STARBOARD
        return VesselSide.PORT


class NavigationStatus(int, Enum):
    """Navigational status as used in AIS messages."""

    UNDER_WAY_USING_ENGINE = 0
    AT_ANCHOR = 1
    NOT_UNDER_COMMAND = 2
    MOORED = 5
    UNDER_WAY_SAILING = 8
    UNDEFINED = 15


@dataclass
class VesselState:
    """Mutable state of the vessel during one run.

    ``leg_index`` is 1-based.
    """

    location: GeoPoint
    heading: float = 0.0
    leg_index: int = 1
    side: VesselSide = VesselSide.STARBOARD
    velocity: PhysVec | None = None
    cargo_kg: float = 0.0
    tacks: int = 0

    def __post_init__(self):
        self.side = VesselSide(self.side)

    @classmethod
    def at_start_of(cls, route=None, vessel=None):
        """Fresh state at the first waypoint of a route plan."""
        return cls(
            location=route.initial_point,
            heading=route[0].azimuth_degrees,
            leg_index=1,
            side=VesselSide(vessel.preferred_side),
            velocity=None,
            cargo_kg=vessel.validate_cargo(),
        )


def _optional_float(value):
    return None if value is None else float(value)


@dataclass(frozen=True)
class ShipLogEntry:
    """One record of the ship log."""

    timestamp: np.datetime64
    coordinates_initial: GeoPoint
    coordinates_current: GeoPoint
    coordinates_final: GeoPoint
    cargo_on_board: float = 0.0
    velocity: PhysVec | None = None
    course: float | None = None
    heading: float | None = None
    track_angle: float | None = None
    true_bearing: float | None = None
    draft: float | None = None
    navigation_status: NavigationStatus = NavigationStatus.UNDER_WAY_SAILING
    leg_index: int = 1

    @classmethod
    def from_state(
        cls,
        state: VesselState = None,
        route=None,
        timestamp: np.datetime64 = None,
        previous=None,
        draft: float = None,
        navigation_status: NavigationStatus = NavigationStatus.UNDER_WAY_SAILING,
    ):
        """Record the current vessel state.

        Parameters
        ----------
        state : VesselState
            Vessel state after the sub-step.
        route : RoutePlan
            Route plan providing the initial and final points.
        timestamp : np.datetime64
            Simulated time of the record.
        previous : ShipLogEntry, optional
            Previous record. Used for the track angle.
        draft : float, optional
            Draft of the vessel in meters.
        navigation_status : NavigationStatus
            Status to log.

        Returns
        -------
        ShipLogEntry
        """
        initial, final = route.initial_point, route.final_point
        location = state.location
        course = None
        if initial != final:
            course = get_rhumb_azimuth_degrees(
                lon_start=initial.lon,
                lat_start=initial.lat,
                lon_end=final.lon,
                lat_end=final.lat,
            )
        true_bearing = None
        if location != final:
            true_bearing = location.azimuth_to(final)
        track_angle = None
        if previous is not None and previous.coordinates_current != location:
            track_angle = get_rhumb_azimuth_degrees(
                lon_start=previous.coordinates_current.lon,
                lat_start=previous.coordinates_current.lat,
                lon_end=location.lon,
                lat_end=location.lat,
            )
        return cls(
            timestamp=timestamp,
            coordinates_initial=initial,
            coordinates_current=location,
            coordinates_final=final,
            cargo_on_board=state.cargo_kg,
            velocity=state.velocity,
            course=course,
            heading=state.heading,
            track_angle=track_angle,
            true_bearing=true_bearing,
            draft=draft,
            navigation_status=navigation_status,
            leg_index=state.leg_index,
        )

    def to_dict(self) -> dict[str, Any]:
        """Simple dict representation with ISO timestamps."""
        return {
            "timestamp": str(self.timestamp),
            "coordinates_initial": [
                self.coordinates_initial.lon,
                self.coordinates_initial.lat,
            ],
            "coordinates_current": [
                self.coordinates_current.lon,
                self.coordinates_current.lat,
            ],
            "coordinates_final": [self.coordinates_final.lon, self.coordinates_final.lat],
            "cargo_on_board": self.cargo_on_board,
            "velocity": None if self.velocity is None else self.velocity.to_dict(),
            "course": self.course,
            "heading": self.heading,
            "track_angle": self.track_angle,
            "true_bearing": self.true_bearing,
            "draft": self.draft,
            "navigation_status": int(self.navigation_status),
            "leg_index": self.leg_index,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]):
        """Construct entry from dict."""
        velocity = data.get("velocity")
        return cls(
            timestamp=np.datetime64(data["timestamp"], "ms"),
            coordinates_initial=GeoPoint(*data["coordinates_initial"]),
            coordinates_current=GeoPoint(*data["coordinates_current"]),
            coordinates_final=GeoPoint(*data["coordinates_final"]),
            cargo_on_board=float(data["cargo_on_board"]),
            velocity=None if velocity is None else PhysVec.from_dict(velocity),
            course=_optional_float(data.get("course")),
            heading=_optional_float(data.get("heading")),
            track_angle=_optional_float(data.get("track_angle")),
            true_bearing=_optional_float(data.get("true_bearing")),
            draft=_optional_float(data.get("draft")),
            navigation_status=NavigationStatus(data["navigation_status"]),
            leg_index=int(data["leg_index"]),
        )


@dataclass
class ShipLog:
    """Append-only sequence of ship log entries."""

    _entries: list = field(default_factory=list)

    def __post_init__(self):
        self._entries = list(self._entries)

    def append(self, entry: ShipLogEntry):
        self._entries.append(entry)

    def __len__(self):
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def __getitem__(self, key):
        if isinstance(key, slice):
            return tuple(self._entries[key])
        return self._entries[key]

    @property
    def entries(self):
        """Tuple of all entries."""
        return tuple(self._entries)

    @property
    def timestamps(self):
        return np.array([e.timestamp for e in self._entries], dtype="datetime64[ms]")

    @property
    def elapsed_seconds(self) -> float:
        """Time between first and last entry in seconds."""
        if len(self._entries) < 2:
            return 0.0
        return (
            (self._entries[-1].timestamp - self._entries[0].timestamp)
            / np.timedelta64(1, "ms")
            / 1000.0
        )

    @property
    def data_frame(self):
        """Data frame with one row per entry.

        Coordinates are given as ``"lat,lon"`` strings next to numeric
        ``lon``/``lat`` columns of the current position.
        """
        return pd.DataFrame(
            {
                "timestamp": self.timestamps,
                "coordinates_initial": [str(e.coordinates_initial) for e in self],
                "coordinates_current": [str(e.coordinates_current) for e in self],
                "coordinates_final": [str(e.coordinates_final) for e in self],
                "cargo_on_board": [e.cargo_on_board for e in self],
                "velocity": [
                    None if e.velocity is None else e.velocity.magnitude for e in self
                ],
                "course": [e.course for e in self],
                "heading": [e.heading for e in self],
                "track_angle": [e.track_angle for e in self],
                "true_bearing": [e.true_bearing for e in self],
                "draft": [e.draft for e in self],
                "navigation_status": [e.navigation_status.name for e in self],
                "lon": [e.coordinates_current.lon for e in self],
                "lat": [e.coordinates_current.lat for e in self],
                "speed_ms": [
                    np.nan if e.velocity is None else e.velocity.magnitude for e in self
                ],
                "leg": [e.leg_index for e in self],
            }
        )

    @property
    def line_string(self):
        """LineString geometry of the track with x=lon and y=lat."""
        points = [e.coordinates_current.point for e in self]
        if len(points) == 1:
            points = points * 2
        return LineString(points)

    @property
    def length_meters(self) -> float:
        """Length of the sailed track in meters."""
        if len(self._entries) < 2:
            return 0.0
        return get_length_meters(self.line_string)

    def to_dict(self) -> dict[str, Any]:
        return {"entries": [e.to_dict() for e in self]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]):
        return cls([ShipLogEntry.from_dict(e) for e in data["entries"]])
