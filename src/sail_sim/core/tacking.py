import logging
from dataclasses import dataclass
from enum import Enum

import numpy as np

from .config import CORRIDOR_TOLERANCE_METERS, DistanceMethod
from .geodesics import (
    get_along_track_distance,
    get_cross_track_distance,
    get_min_distance_to_great_circle,
    normalize_angle,
    normalize_relative_angle,
)
from .routes import GeoPoint, SailingLeg
from .vectors import PhysVec
from .vessel import VesselSide, VesselState


class SteeringMode(str, Enum):
    TACKING = "tacking"
    DIRECT = "direct"


@dataclass(frozen=True)
class HeadingDecision:
    heading: float
    mode: SteeringMode


@dataclass(frozen=True)
class CorridorClip:
    """Shortened sub-step ending on the corridor edge."""

    travel_meters: float
    leftover_seconds: float
    location: GeoPoint
    tacked: bool = True


def relative_wind_angle(wind_from: float = None, bearing: float = None) -> float:
    """Angle of the wind relative to the bearing in (-180, 180]."""
    return normalize_relative_angle(wind_from - bearing)


def hold_tack(
    wind_from: float = None,
    side: VesselSide = VesselSide.STARBOARD,
    min_angle_of_attack_degrees: float = None,
) -> float:
    """Heading closest to the wind on the given side.

    Parameters
    ----------
    wind_from : float
        Direction the wind comes from in degrees.
    side : VesselSide
        Tack to hold. PORT sails clockwise of the wind, STARBOARD counter
        clockwise.
    min_angle_of_attack_degrees : float
        Smallest angle to the wind the vessel can sail.

    Returns
    -------
    float
        Heading in [0, 360).
    """
    if VesselSide(side) is VesselSide.PORT:
        return normalize_angle(wind_from + min_angle_of_attack_degrees)
    return normalize_angle(wind_from - min_angle_of_attack_degrees)


def decide_heading(
    bearing: float = None,
    wind_from: float = None,
    side: VesselSide = VesselSide.STARBOARD,
    min_angle_of_attack_degrees: float = None,
) -> HeadingDecision:
    """Sail directly towards the waypoint unless it lies too close to the wind."""
    if wind_from is None or min_angle_of_attack_degrees is None:
        return HeadingDecision(heading=normalize_angle(bearing), mode=SteeringMode.DIRECT)
    relative = relative_wind_angle(wind_from=wind_from, bearing=bearing)
    if abs(relative) < min_angle_of_attack_degrees:
        return HeadingDecision(
            heading=hold_tack(
                wind_from=wind_from,
                side=side,
                min_angle_of_attack_degrees=min_angle_of_attack_degrees,
            ),
            mode=SteeringMode.TACKING,
        )
    return HeadingDecision(heading=normalize_angle(bearing), mode=SteeringMode.DIRECT)


class TackingController:
    """Steers the vessel and keeps it inside the tacking corridor of a leg."""

    def __init__(
        self,
        min_angle_of_attack_degrees: float = None,
        distance_method: DistanceMethod = DistanceMethod.CLOSED_FORM,
    ):
        self.min_angle_of_attack_degrees = min_angle_of_attack_degrees
        self.distance_method = DistanceMethod(distance_method)

    def steer(
        self, state: VesselState, leg: SailingLeg, wind_from: float = None
    ) -> HeadingDecision:
        """Set the heading of the vessel for the next sub-step."""
        decision = decide_heading(
            bearing=state.location.azimuth_to(leg.p2),
            wind_from=wind_from,
            side=state.side,
            min_angle_of_attack_degrees=self.min_angle_of_attack_degrees,
        )
        state.heading = decision.heading
        return decision

    def _switch_side(self, state: VesselState):
        state.side = state.side.switched()
        state.tacks += 1
        logging.debug(f"Tack number {state.tacks} to {state.side.value}.")

    def tack(self, state: VesselState, wind_from: float = None) -> float:
        """Switch to the other side and hold the new tack."""
        self._switch_side(state)
        if wind_from is not None and self.min_angle_of_attack_degrees is not None:
            state.heading = hold_tack(
                wind_from=wind_from,
                side=state.side,
                min_angle_of_attack_degrees=self.min_angle_of_attack_degrees,
            )
        return state.heading

    def distance_to_leg_line(self, leg: SailingLeg, point: GeoPoint) -> float:
        """Distance of point to the great circle through the leg in meters."""
        return get_min_distance_to_great_circle(
            lon_start=leg.p1.lon,
            lat_start=leg.p1.lat,
            lon_end=leg.p2.lon,
            lat_end=leg.p2.lat,
            lon=point.lon,
            lat=point.lat,
            method=self.distance_method,
        )

    def _signed_distance_to_leg_line(self, leg: SailingLeg, point: GeoPoint) -> float:
        return get_cross_track_distance(
            lon_start=leg.p1.lon,
            lat_start=leg.p1.lat,
            lon_end=leg.p2.lon,
            lat_end=leg.p2.lat,
            lon=point.lon,
            lat=point.lat,
        )

    def _onto_edge(self, leg: SailingLeg, point: GeoPoint, side: float) -> GeoPoint:
        """Point on the corridor edge abeam of ``point``.

        ``side`` is negative for the left edge and positive for the right one.
        """
        along_track = get_along_track_distance(
            lon_start=leg.p1.lon,
            lat_start=leg.p1.lat,
            lon_end=leg.p2.lon,
            lat_end=leg.p2.lat,
            lon=point.lon,
            lat=point.lat,
        )
        azimuth = leg.p1.azimuth_to(leg.p2)
        foot = leg.p1.move_space(azimuth_degrees=azimuth, distance_meters=along_track)
        if leg.half_width == 0:
            return foot
        ahead = leg.p1.move_space(
            azimuth_degrees=azimuth, distance_meters=along_track + 1_000.0
        )
        # perpendicular to the leg line, towards the requested edge
        return foot.move_space(
            azimuth_degrees=foot.azimuth_to(ahead) + (90.0 if side > 0 else -90.0),
            distance_meters=leg.half_width,
        )

    def enforce_corridor(
        self,
        state: VesselState,
        leg: SailingLeg,
        velocity: PhysVec = None,
        budget_seconds: float = None,
        travel_meters: float = None,
    ) -> CorridorClip | None:
        """Keep the vessel inside the corridor of the leg.

        If the vessel would be outside the corridor and further away from the
        leg line after travelling ``travel_meters`` along ``velocity``, the
        travel is scaled down so that the vessel ends on the edge, and the
        vessel switches to the other tack. The new tack is held from the next
        sub-step on. The cross-track distance is assumed to grow linearly over
        the sub-step.

        A vessel already on the edge and still pushed outwards, for example by
        a current, slides along the edge instead: it travels the full
        distance and is put back onto the edge abeam of where it ended.

        Parameters
        ----------
        state : VesselState
            Current vessel state.
        leg : SailingLeg
            Leg the vessel is sailing.
        velocity : PhysVec
            Velocity over ground for the sub-step.
        budget_seconds : float
            Time available for the sub-step.
        travel_meters : float
            Tentative distance to travel.

        Returns
        -------
        CorridorClip or None
            None if the sub-step stays inside the corridor.
        """
        if velocity is None or velocity.magnitude <= 0 or travel_meters <= 0:
            return None
        half_width = leg.half_width
        tentative = state.location.move_space(
            azimuth_degrees=velocity.angle, distance_meters=travel_meters
        )
        d_current = self.distance_to_leg_line(leg, state.location)
        d_next = self.distance_to_leg_line(leg, tentative)
        if d_next <= half_width + CORRIDOR_TOLERANCE_METERS:
            return None
        # slightly outside after an earlier clip, but heading back in
        if d_next <= d_current:
            return None

        s_current = self._signed_distance_to_leg_line(leg, state.location)
        s_next = self._signed_distance_to_leg_line(leg, tentative)
        edge = float(np.copysign(half_width, s_next))
        on_edge = abs(s_current) >= half_width - CORRIDOR_TOLERANCE_METERS and (
            s_current * s_next > 0 or half_width <= CORRIDOR_TOLERANCE_METERS
        )
        if on_edge:
            logging.debug(
                f"Sliding {travel_meters:.1f} m along the corridor edge "
                f"of leg {state.leg_index}."
            )
            return CorridorClip(
                travel_meters=travel_meters,
                leftover_seconds=max(
                    budget_seconds - travel_meters / velocity.magnitude, 0.0
                ),
                location=self._onto_edge(leg, tentative, side=s_next),
                tacked=False,
            )

        if s_next == s_current:
            fraction = 0.0
        else:
            fraction = float(
                np.clip((edge - s_current) / (s_next - s_current), 0.0, 1.0)
            )
        travel_clipped = fraction * travel_meters
        location = state.location.move_space(
            azimuth_degrees=velocity.angle, distance_meters=travel_clipped
        )
        leftover = budget_seconds - travel_clipped / velocity.magnitude
        logging.debug(
            f"Corridor edge reached after {travel_clipped:.1f} m of "
            f"{travel_meters:.1f} m on leg {state.leg_index}."
        )
        self._switch_side(state)
        return CorridorClip(
            travel_meters=travel_clipped,
            leftover_seconds=max(leftover, 0.0),
            location=self._onto_edge(leg, location, side=s_next),
            tacked=True,
        )
