"""Core layer: Geodesics, vectors, route plans, vessel state, tacking, and weather data."""

from .config import (
    EARTH_RADIUS_M,
    DistanceMethod,
    SimulationConfig,
    Vessel,
    VelocityMethod,
)
from .data import (
    DatasetWeather,
    UniformWeather,
    WeatherSource,
    load_currents,
    load_winds,
    select_data_at_point,
)
from .errors import (
    ArithmeticOverflow,
    ConfigurationError,
    InvalidRouteGeometry,
    SimulationError,
)
from .geodesics import (
    get_azimuth_degrees,
    get_cross_track_distance,
    get_distance_meters,
    get_length_meters,
    get_min_distance_to_great_circle,
    get_min_distance_to_great_circle_bisection,
    get_min_distance_to_great_circle_closed_form,
    get_rhumb_azimuth_degrees,
    knots_to_ms,
    move_fwd,
    ms_to_knots,
    normalize_angle,
    normalize_relative_angle,
    tonnes_to_kg,
)
from .routes import GeoPoint, RoutePlan, SailingLeg
from .tacking import (
    CorridorClip,
    HeadingDecision,
    SteeringMode,
    TackingController,
    decide_heading,
    hold_tack,
    relative_wind_angle,
)
from .vectors import PhysVec
from .vessel import NavigationStatus, ShipLog, ShipLogEntry, VesselSide, VesselState

__all__ = [
    "EARTH_RADIUS_M",
    "DistanceMethod",
    "SimulationConfig",
    "Vessel",
    "VelocityMethod",
    "DatasetWeather",
    "UniformWeather",
    "WeatherSource",
    "load_currents",
    "load_winds",
    "select_data_at_point",
    "ArithmeticOverflow",
    "ConfigurationError",
    "InvalidRouteGeometry",
    "SimulationError",
    "get_azimuth_degrees",
    "get_cross_track_distance",
    "get_distance_meters",
    "get_length_meters",
    "get_min_distance_to_great_circle",
    "get_min_distance_to_great_circle_bisection",
    "get_min_distance_to_great_circle_closed_form",
    "get_rhumb_azimuth_degrees",
    "knots_to_ms",
    "move_fwd",
    "ms_to_knots",
    "normalize_angle",
    "normalize_relative_angle",
    "tonnes_to_kg",
    "GeoPoint",
    "RoutePlan",
    "SailingLeg",
    "CorridorClip",
    "HeadingDecision",
    "SteeringMode",
    "TackingController",
    "decide_heading",
    "hold_tack",
    "relative_wind_angle",
    "PhysVec",
    "NavigationStatus",
    "ShipLog",
    "ShipLogEntry",
    "VesselSide",
    "VesselState",
]
