import numpy as np
import pint
import pyproj
from shapely.geometry import LineString

from .config import EARTH_RADIUS_M

# Create unit registry once at module level
_ureg = pint.UnitRegistry()

# Geodesics on a sphere are great circles, so inv/fwd give the haversine
# distance, the initial great-circle bearing and the direct problem.
_GEOD = pyproj.Geod(a=EARTH_RADIUS_M, b=EARTH_RADIUS_M)

BISECTION_MAX_ITERATIONS = 150
BISECTION_TOLERANCE_METERS = 1.0


def knots_to_ms(speed_knots: float) -> float:
    """Convert speed from knots to meters per second."""
    return float((speed_knots * _ureg.knot) / _ureg.meter_per_second)


def ms_to_knots(speed_ms: float) -> float:
    """Convert speed from meters per second to knots."""
    return float((speed_ms * _ureg.meter_per_second) / _ureg.knot)


def tonnes_to_kg(mass_tonnes: float) -> float:
    """Convert mass from metric tons to kilograms."""
    return float((mass_tonnes * _ureg.metric_ton) / _ureg.kilogram)


def normalize_angle(angle_degrees: float) -> float:
    """Map an angle to [0, 360)."""
    angle = float(angle_degrees) % 360.0
    # float modulo can round up to the period itself
    if angle >= 360.0:
        angle = 0.0
    return angle


def normalize_relative_angle(angle_degrees: float) -> float:
    """Map an angle to (-180, 180]."""
    angle = normalize_angle(angle_degrees)
    if angle > 180.0:
        angle -= 360.0
    return angle


def normalize_lon(lon: float) -> float:
    """Wrap longitude into [-180, 360)."""
    lon = float(lon)
    if lon < -180.0 or lon >= 360.0:
        lon = (lon + 180.0) % 360.0 - 180.0
    return lon


def move_fwd(
    lon: float = None,
    lat: float = None,
    azimuth_degrees: float = None,
    distance_meters: float = None,
) -> tuple:
    """Move forward from a point along a great circle.

    Parameters
    ----------
    lon : float
        Starting longitude in degrees
    lat : float
        Starting latitude in degrees
    azimuth_degrees : float
        Forward azimuth in degrees
    distance_meters : float
        Distance to move in meters. Negative distances move backwards.

    Returns
    -------
    tuple of float
        New (longitude, latitude) in degrees
    """
    lon_new, lat_new, _ = _GEOD.fwd(
        lons=lon, lats=lat, az=azimuth_degrees, dist=distance_meters, radians=False
    )
    return normalize_lon(lon_new), float(lat_new)


def get_distance_meters(
    lon_start: float = None,
    lon_end: float = None,
    lat_start: float = None,
    lat_end: float = None,
) -> float:
    """Calculate great-circle distance between two points.

    Parameters
    ----------
    lon_start : float
        Starting longitude in degrees
    lon_end : float
        Ending longitude in degrees
    lat_start : float
        Starting latitude in degrees
    lat_end : float
        Ending latitude in degrees

    Returns
    -------
    float
        Distance in meters along the great circle
    """
    _, _, distance_meters = _GEOD.inv(
        lons1=lon_start,
        lons2=lon_end,
        lats1=lat_start,
        lats2=lat_end,
    )
    return float(distance_meters)


def get_azimuth_degrees(
    lon_start: float = None,
    lat_start: float = None,
    lon_end: float = None,
    lat_end: float = None,
) -> float:
    """Initial great-circle bearing from start to end in [0, 360)."""
    fwd_az, _, _ = _GEOD.inv(
        lons1=lon_start,
        lons2=lon_end,
        lats1=lat_start,
        lats2=lat_end,
    )
    return normalize_angle(fwd_az)


def get_rhumb_azimuth_degrees(
    lon_start: float = None,
    lat_start: float = None,
    lon_end: float = None,
    lat_end: float = None,
) -> float:
    """Constant bearing (rhumb line) from start to end in [0, 360).

    Only used for reporting course and track angles.
    """
    phi_start, phi_end = np.deg2rad(lat_start), np.deg2rad(lat_end)
    d_lambda = np.deg2rad(normalize_relative_angle(lon_end - lon_start))
    # clip keeps the Mercator stretch finite at the poles
    d_psi = np.log(
        np.tan(np.pi / 4 + np.clip(phi_end, -1.5707, 1.5707) / 2)
        / np.tan(np.pi / 4 + np.clip(phi_start, -1.5707, 1.5707) / 2)
    )
    return normalize_angle(np.rad2deg(np.arctan2(d_lambda, d_psi)))


def get_length_meters(line_string: LineString = None) -> float:
    """Calculate great-circle length of a LineString geometry."""
    return _GEOD.geometry_length(line_string)


def get_min_distance_to_great_circle_closed_form(
    lon_start: float = None,
    lat_start: float = None,
    lon_end: float = None,
    lat_end: float = None,
    lon: float = None,
    lat: float = None,
) -> float:
    """Shortest distance from a point to the great circle through two points.

    Uses the spherical law of sines on the triangle (start, foot point, point):
    ``d = R asin(|sin(gamma) sin(b / R)|)`` where ``b`` is the distance from
    start to the point and ``gamma`` the angle between the bearings from start
    to end and from start to the point.

    Parameters
    ----------
    lon_start, lat_start : float
        First point on the great circle in degrees
    lon_end, lat_end : float
        Second point on the great circle in degrees
    lon, lat : float
        Point to measure from in degrees

    Returns
    -------
    float
        Distance in meters
    """
    return abs(
        get_cross_track_distance(
            lon_start=lon_start,
            lat_start=lat_start,
            lon_end=lon_end,
            lat_end=lat_end,
            lon=lon,
            lat=lat,
        )
    )


def get_cross_track_distance(
    lon_start: float = None,
    lat_start: float = None,
    lon_end: float = None,
    lat_end: float = None,
    lon: float = None,
    lat: float = None,
) -> float:
    """Signed distance from a point to the great circle through start and end.

    Positive values are to the right (starboard) of the direction start to end.
    """
    if (lon, lat) == (lon_start, lat_start) or (lon, lat) == (lon_end, lat_end):
        return 0.0
    b = get_distance_meters(
        lon_start=lon_start, lat_start=lat_start, lon_end=lon, lat_end=lat
    )
    gamma = np.deg2rad(
        get_azimuth_degrees(
            lon_start=lon_start, lat_start=lat_start, lon_end=lon, lat_end=lat
        )
        - get_azimuth_degrees(
            lon_start=lon_start, lat_start=lat_start, lon_end=lon_end, lat_end=lat_end
        )
    )
    sin_d = np.clip(np.sin(gamma) * np.sin(b / EARTH_RADIUS_M), -1.0, 1.0)
    return float(EARTH_RADIUS_M * np.arcsin(sin_d))


def get_along_track_distance(
    lon_start: float = None,
    lat_start: float = None,
    lon_end: float = None,
    lat_end: float = None,
    lon: float = None,
    lat: float = None,
) -> float:
    """Signed distance from start to the foot point of a point on the great circle.

    Positive values are in the direction start to end.
    """
    if (lon, lat) == (lon_start, lat_start):
        return 0.0
    b = get_distance_meters(
        lon_start=lon_start, lat_start=lat_start, lon_end=lon, lat_end=lat
    ) / EARTH_RADIUS_M
    gamma = np.deg2rad(
        get_azimuth_degrees(
            lon_start=lon_start, lat_start=lat_start, lon_end=lon, lat_end=lat
        )
        - get_azimuth_degrees(
            lon_start=lon_start, lat_start=lat_start, lon_end=lon_end, lat_end=lat_end
        )
    )
    # right spherical triangle: tan(along) = tan(b) cos(gamma)
    return float(EARTH_RADIUS_M * np.arctan2(np.sin(b) * np.cos(gamma), np.cos(b)))


def get_min_distance_to_great_circle_bisection(
    lon_start: float = None,
    lat_start: float = None,
    lon_end: float = None,
    lat_end: float = None,
    lon: float = None,
    lat: float = None,
    tolerance_meters: float = BISECTION_TOLERANCE_METERS,
    max_iterations: int = BISECTION_MAX_ITERATIONS,
) -> float:
    """Shortest distance from a point to a great circle by bisection.

    The great circle through start and end is sampled every quarter circle
    and the search arc spans a quarter circle either side of the sample
    closest to the point. The nearest foot point lies within an eighth circle
    of that sample, so the arc contains it and the distance ``f(t)`` from
    ``c(t)``, ``t`` in [0, 1], to the point has a single minimum on it. The
    derivative of ``f`` is estimated with a forward difference of step
    ``h = (b - a) / 1000`` and the bracket ``[a, b]`` is bisected on its sign.

    Parameters
    ----------
    lon_start, lat_start : float
        First point on the great circle in degrees
    lon_end, lat_end : float
        Second point on the great circle in degrees
    lon, lat : float
        Point to measure from in degrees
    tolerance_meters : float
        Stop once ``f(c)`` or half the difference of ``f`` at the bracket
        ends drops below this.
    max_iterations : int
        Maximal number of bisections.

    Returns
    -------
    float
        Distance in meters
    """
    if (lon, lat) == (lon_start, lat_start) or (lon, lat) == (lon_end, lat_end):
        return 0.0

    azimuth = get_azimuth_degrees(
        lon_start=lon_start, lat_start=lat_start, lon_end=lon_end, lat_end=lat_end
    )
    quarter_circle = np.pi * EARTH_RADIUS_M / 2.0

    def distance_at(along_track_meters):
        lon_c, lat_c = move_fwd(
            lon=lon_start,
            lat=lat_start,
            azimuth_degrees=azimuth,
            distance_meters=along_track_meters,
        )
        return get_distance_meters(
            lon_start=lon_c, lat_start=lat_c, lon_end=lon, lat_end=lat
        )

    centre = min(
        (k * quarter_circle for k in (-1, 0, 1, 2)),
        key=distance_at,
    )

    def f(t):
        return distance_at(centre + (2.0 * t - 1.0) * quarter_circle)

    a, b = 0.0, 1.0
    f_a, f_b = f(a), f(b)
    c = (a + b) / 2.0
    f_c = f(c)
    for _ in range(max_iterations):
        if f_c < tolerance_meters or abs(f_a - f_b) / 2.0 < tolerance_meters:
            break
        h = (b - a) / 1000.0
        slope = f(c + h) - f_c
        if slope > 0:
            # minimum lies before c + h
            b, f_b = c + h, f(c + h)
        elif slope < 0:
            a, f_a = c, f_c
        else:
            a, f_a, b, f_b = c, f_c, c + h, f(c + h)
        c = (a + b) / 2.0
        f_c = f(c)
    return float(f_c)


def get_min_distance_to_great_circle(
    lon_start: float = None,
    lat_start: float = None,
    lon_end: float = None,
    lat_end: float = None,
    lon: float = None,
    lat: float = None,
    method: str = "closed_form",
) -> float:
    """Shortest distance from a point to a great circle.

    ``method`` is ``"closed_form"`` or ``"bisection"``.
    """
    if method == "closed_form":
        func = get_min_distance_to_great_circle_closed_form
    elif method == "bisection":
        func = get_min_distance_to_great_circle_bisection
    else:
        raise ValueError(f"Unknown distance method {method!r}.")
    return func(
        lon_start=lon_start,
        lat_start=lat_start,
        lon_end=lon_end,
        lat_end=lat_end,
        lon=lon,
        lat=lat,
    )
