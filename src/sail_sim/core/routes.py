import logging
from dataclasses import dataclass
from typing import Any, Iterable, Tuple

import numpy as np
import pandas as pd
from shapely.geometry import LineString, Point

from .config import ARRIVAL_TOLERANCE_METERS
from .errors import ConfigurationError, InvalidRouteGeometry
from .geodesics import (
    get_azimuth_degrees,
    get_distance_meters,
    get_length_meters,
    move_fwd,
    normalize_lon,
    normalize_relative_angle,
)


ROUTE_COLUMNS = (
    "p1_lat",
    "p1_lon",
    "p2_lat",
    "p2_lon",
    "tacking_width",
    "min_proximity",
)


@dataclass(frozen=True)
class GeoPoint:
    """Geographic point with lon in [-180, 360) and lat in [-90, 90]."""

    lon: float
    lat: float

    def __post_init__(self):
        lon, lat = float(self.lon), float(self.lat)
        if not (np.isfinite(lon) and np.isfinite(lat)):
            raise InvalidRouteGeometry(f"Non-finite coordinates ({lon}, {lat}).")
        if not -90.0 <= lat <= 90.0:
            raise InvalidRouteGeometry(f"Latitude {lat} outside [-90, 90].")
        object.__setattr__(self, "lon", normalize_lon(lon))
        object.__setattr__(self, "lat", lat)

    @property
    def point(self):
        """Point geometry with x=lon and y=lat."""
        return Point(self.lon, self.lat)

    @classmethod
    def from_point(cls, point: Point = None):
        """Construct from Point with x=lon and y=lat."""
        return cls(lon=point.x, lat=point.y)

    def distance_to(self, other) -> float:
        """Great-circle distance to other point in meters."""
        return get_distance_meters(
            lon_start=self.lon, lat_start=self.lat, lon_end=other.lon, lat_end=other.lat
        )

    def azimuth_to(self, other) -> float:
        """Initial great-circle bearing towards other point in degrees."""
        return get_azimuth_degrees(
            lon_start=self.lon, lat_start=self.lat, lon_end=other.lon, lat_end=other.lat
        )

    def move_space(self, azimuth_degrees: float = None, distance_meters: float = None):
        """Move along a great circle.

        Parameters
        ----------
        azimuth_degrees: float
            Azimuth in degrees.
        distance_meters: float
            Distance in meters.

        Returns
        -------
        GeoPoint

        """
        lon_new, lat_new = move_fwd(
            lon=self.lon,
            lat=self.lat,
            azimuth_degrees=azimuth_degrees,
            distance_meters=distance_meters,
        )
        return GeoPoint(lon=lon_new, lat=lat_new)

    def __str__(self):
        return f"{self.lat},{self.lon}"


@dataclass(frozen=True)
class SailingLeg:
    """A leg between two waypoints with a tacking corridor.

    ``tacking_width`` is the total width of the corridor in meters centered
    on the great circle through ``p1`` and ``p2``. The vessel has arrived
    at ``p2`` once it is within ``min_proximity`` meters.
    """

    p1: GeoPoint
    p2: GeoPoint
    tacking_width: float = 0.0
    min_proximity: float = 0.0

    def __post_init__(self):
        if self.tacking_width is None or self.min_proximity is None:
            raise ConfigurationError("Missing tacking width or minimal proximity.")
        # the same point can have two longitudes, or any longitude at the poles
        if self.p1.distance_to(self.p2) <= ARRIVAL_TOLERANCE_METERS:
            raise InvalidRouteGeometry(f"Leg with coincident end points {self.p1}.")
        if not self.tacking_width >= 0:
            raise InvalidRouteGeometry(
                f"Tacking width must be non-negative, got {self.tacking_width}."
            )
        if not self.min_proximity >= 0:
            raise InvalidRouteGeometry(
                f"Minimal proximity must be non-negative, got {self.min_proximity}."
            )

    @property
    def half_width(self) -> float:
        return self.tacking_width / 2.0

    @property
    def line_string(self):
        """LineString geometry with x=lon and y=lat."""
        return LineString((self.p1.point, self.p2.point))

    @property
    def length_meters(self):
        """Length of the leg in meters."""
        return self.p1.distance_to(self.p2)

    @property
    def azimuth_degrees(self):
        """Forward azimuth from p1 in degrees."""
        return self.p1.azimuth_to(self.p2)

    def to_record(self) -> dict[str, Any]:
        return {
            "p1_lat": self.p1.lat,
            "p1_lon": self.p1.lon,
            "p2_lat": self.p2.lat,
            "p2_lon": self.p2.lon,
            "tacking_width": self.tacking_width,
            "min_proximity": self.min_proximity,
        }

    @classmethod
    def from_record(cls, record=None):
        """Construct from a mapping or sequence in route column order."""
        if not hasattr(record, "keys"):
            record = dict(zip(ROUTE_COLUMNS, record))
        return cls(
            p1=GeoPoint(lon=record["p1_lon"], lat=record["p1_lat"]),
            p2=GeoPoint(lon=record["p2_lon"], lat=record["p2_lat"]),
            tacking_width=record["tacking_width"],
            min_proximity=record["min_proximity"],
        )


@dataclass(frozen=True)
class RoutePlan:
    """An ordered, non-empty sequence of sailing legs."""

    legs: Tuple

    def __post_init__(self):
        object.__setattr__(self, "legs", tuple(self.legs))
        self.validate()

    def validate(self):
        """Check that the plan can be sailed.

        Raises
        ------
        ConfigurationError
            If there are no legs.
        InvalidRouteGeometry
            If a leg is not a SailingLeg.
        """
        if len(self.legs) == 0:
            raise ConfigurationError("A route plan needs at least one leg.")
        for n, leg in enumerate(self.legs):
            if not isinstance(leg, SailingLeg):
                raise InvalidRouteGeometry(f"Leg {n + 1} is not a SailingLeg.")
        for n, (leg, next_leg) in enumerate(zip(self.legs[:-1], self.legs[1:])):
            if leg.p2 != next_leg.p1:
                logging.warning(
                    f"Route plan is not continuous between legs {n + 1} and {n + 2}."
                )

    def __len__(self):
        """Length is determined by number of legs."""
        return len(self.legs)

    def __getitem__(self, key):
        return self.legs[key]

    def __iter__(self):
        return iter(self.legs)

    @property
    def initial_point(self) -> GeoPoint:
        return self.legs[0].p1

    @property
    def final_point(self) -> GeoPoint:
        return self.legs[-1].p2

    @property
    def line_string(self):
        """LineString geometry through all waypoints with x=lon and y=lat."""
        return LineString(
            [self.legs[0].p1.point] + [leg.p2.point for leg in self.legs]
        )

    @property
    def length_meters(self):
        """Length of the route in meters."""
        return get_length_meters(self.line_string)

    def bounding_box(self, margin_degrees: float = 0.0, sample_meters: float = 100e3):
        """Box around all legs as (lon_min, lon_max, lat_min, lat_max).

        Legs are sampled every ``sample_meters`` along their great circles so
        that the box covers legs bulging polewards. Longitudes are unwrapped
        from the first waypoint, so ``lon_max`` may exceed 180 for routes
        across the dateline.
        """
        lon_ref = self.initial_point.lon
        points = []
        for leg in self.legs:
            length = leg.length_meters
            n = max(1, int(np.ceil(length / sample_meters)))
            points.append(leg.p1)
            points.extend(
                leg.p1.move_space(
                    azimuth_degrees=leg.azimuth_degrees, distance_meters=k * length / n
                )
                for k in range(1, n)
            )
            points.append(leg.p2)
        lons = [lon_ref + normalize_relative_angle(p.lon - lon_ref) for p in points]
        lats = [p.lat for p in points]
        lon_min, lon_max = min(lons) - margin_degrees, max(lons) + margin_degrees
        if lon_max - lon_min >= 360.0:
            lon_min, lon_max = -180.0, 180.0
        return (
            float(lon_min),
            float(lon_max),
            float(max(min(lats) - margin_degrees, -90.0)),
            float(min(max(lats) + margin_degrees, 90.0)),
        )

    def current_leg(self, state) -> SailingLeg:
        """Leg the vessel is currently sailing."""
        return self.legs[state.leg_index - 1]

    def has_arrived(self, state) -> bool:
        """Whether the vessel is at the end point of its current leg."""
        leg = self.current_leg(state)
        if state.location == leg.p2:
            return True
        return state.location.distance_to(leg.p2) <= leg.min_proximity

    def advance(self, state) -> bool:
        """Move the vessel on to the next leg.

        Returns
        -------
        bool
            True if the completed leg was the final one. The leg index is left
            unchanged in that case.
        """
        if state.leg_index >= len(self.legs):
            return True
        state.leg_index += 1
        return False

    @property
    def data_frame(self):
        """Data frame with one row per leg in route column order."""
        return pd.DataFrame(
            [leg.to_record() for leg in self.legs], columns=list(ROUTE_COLUMNS)
        )

    @classmethod
    def from_data_frame(cls, data_frame: pd.DataFrame = None):
        """Construct route plan from data frame with route columns."""
        missing = set(ROUTE_COLUMNS) - set(data_frame.columns)
        if missing:
            raise ConfigurationError(f"Route plan is missing columns {sorted(missing)}.")
        return cls.from_records(data_frame.to_dict(orient="records"))

    @classmethod
    def from_records(cls, records: Iterable = None):
        """Construct route plan from records.

        Each record is either a mapping with the route column names or a
        sequence ``(p1_lat, p1_lon, p2_lat, p2_lon, tacking_width,
        min_proximity)``.
        """
        if records is None:
            raise ConfigurationError("Missing route plan.")
        return cls(legs=tuple(SailingLeg.from_record(r) for r in records))

    @classmethod
    def from_waypoints(
        cls,
        lon_waypoints: list = None,
        lat_waypoints: list = None,
        tacking_width: float = 0.0,
        min_proximity: float = 0.0,
    ):
        """Create a route plan connecting consecutive waypoints.

        Parameters
        ----------
        lon_waypoints : list
            Longitudes of waypoints
        lat_waypoints : list
            Latitudes of waypoints
        tacking_width : float
            Corridor width in meters used for every leg
        min_proximity : float
            Arrival distance in meters used for every leg

        Returns
        -------
        RoutePlan
        """
        if lon_waypoints is None or lat_waypoints is None:
            raise ConfigurationError("Missing waypoints.")
        if len(lon_waypoints) != len(lat_waypoints):
            raise ConfigurationError(
                "Need the same number of waypoint longitudes and latitudes."
            )
        if len(lon_waypoints) < 2:
            raise ConfigurationError("A route plan needs at least two waypoints.")
        points = [
            GeoPoint(lon=lon, lat=lat) for lon, lat in zip(lon_waypoints, lat_waypoints)
        ]
        return cls(
            legs=tuple(
                SailingLeg(
                    p1=p1,
                    p2=p2,
                    tacking_width=tacking_width,
                    min_proximity=min_proximity,
                )
                for p1, p2 in zip(points[:-1], points[1:])
            )
        )

    def to_dict(self) -> dict[str, Any]:
        """Simple dict representation of the route plan."""
        return {"legs": [leg.to_record() for leg in self.legs]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]):
        """Construct route plan from dict."""
        return cls.from_records(data["legs"])
