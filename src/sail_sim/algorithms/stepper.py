import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

import numpy as np

from ..core.config import (
    ARRIVAL_TOLERANCE_METERS,
    MIN_TIME_BUDGET_SECONDS,
    SimulationConfig,
    Vessel,
)
from ..core.data import WeatherSource
from ..core.errors import ArithmeticOverflow, ConfigurationError, SimulationError
from ..core.routes import RoutePlan
from ..core.vectors import PhysVec
from ..core.vessel import (
    NavigationStatus,
    ShipLog,
    ShipLogEntry,
    VesselSide,
    VesselState,
)
from .velocity import StepEnvironment, VelocityModel, build_velocity_model

_INT64_MAX = int(np.iinfo(np.int64).max)
# the smallest int64 is NaT
_INT64_MIN = int(np.iinfo(np.int64).min) + 1


class SimulationStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    ITERATIONS_EXHAUSTED = "iterations_exhausted"
    FAILED = "failed"


@dataclass
class SimulationResult:
    """Outcome of a single run.

    ``iterations`` counts passes of the stepping loop, ``time_steps`` counts
    the fixed time steps that were started. A failed run carries the error
    and whatever log was written before the failure.
    """

    status: SimulationStatus
    log: ShipLog = field(default_factory=ShipLog)
    iterations: int = 0
    time_steps: int = 0
    error: Exception | None = None
    start_time: np.datetime64 | None = None
    tacks: int = 0

    @property
    def completed(self) -> bool:
        return self.status is SimulationStatus.COMPLETED

    @property
    def elapsed_seconds(self) -> float:
        return self.log.elapsed_seconds

    def to_dict(self) -> dict[str, Any]:
        """Simple dict representation of the result."""
        return {
            "status": self.status.value,
            "iterations": self.iterations,
            "time_steps": self.time_steps,
            "tacks": self.tacks,
            "error": (
                None
                if self.error is None
                else f"{type(self.error).__name__}: {self.error}"
            ),
            "start_time": None if self.start_time is None else str(self.start_time),
            "log": self.log.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]):
        """Construct result from dict. Errors come back as SimulationError."""
        error = data.get("error")
        start_time = data.get("start_time")
        return cls(
            status=SimulationStatus(data["status"]),
            log=ShipLog.from_dict(data["log"]),
            iterations=int(data["iterations"]),
            time_steps=int(data["time_steps"]),
            tacks=int(data.get("tacks", 0)),
            error=None if error is None else SimulationError(error),
            start_time=None if start_time is None else np.datetime64(start_time, "ms"),
        )


def advance_timestamp(start: np.datetime64, elapsed_seconds: float) -> np.datetime64:
    """Start time plus elapsed seconds at millisecond resolution.

    Raises
    ------
    ArithmeticOverflow
        If the result is not representable as datetime64[ms].
    """
    if not np.isfinite(elapsed_seconds):
        raise ArithmeticOverflow(f"Cannot advance time by {elapsed_seconds} s.")
    start_ms = int(np.datetime64(start, "ms").astype(np.int64))
    new_ms = start_ms + int(round(elapsed_seconds * 1000.0))
    if not _INT64_MIN <= new_ms <= _INT64_MAX:
        raise ArithmeticOverflow(
            f"Advancing {start} by {elapsed_seconds} s leaves the datetime64[ms] range."
        )
    return np.datetime64(new_ms, "ms")


class SimulationStepper:
    """Discrete-time loop sailing a vessel along a route plan.

    Each iteration spends the leftover time budget of the previous sub-step
    or a fresh fixed time step. A sub-step ends early at the next waypoint
    or at the edge of the tacking corridor. The unused time is carried over
    into the next iteration.

    Parameters
    ----------
    route : RoutePlan
        Legs to sail.
    vessel : Vessel
        Static vessel characteristics.
    config : SimulationConfig
        Start time, time step and iteration limit.
    velocity_model : VelocityModel
        Strategy for the vessel velocity.
    on_iteration : callable, optional
        Called as ``on_iteration(iteration, state, entry)`` after every
        iteration that wrote a log entry.
    """

    def __init__(
        self,
        route: RoutePlan = None,
        vessel: Vessel = None,
        config: SimulationConfig = None,
        velocity_model: VelocityModel = None,
        on_iteration: Callable = None,
    ):
        self.route = route
        self.vessel = vessel
        self.config = config
        self.velocity_model = velocity_model
        self.on_iteration = on_iteration

    def validate(self):
        """Check everything needed before the first step.

        Raises
        ------
        ConfigurationError
            For missing or inconsistent parameters.
        InvalidRouteGeometry
            For degenerate legs.
        """
        if self.route is None:
            raise ConfigurationError("Missing route plan.")
        if self.vessel is None:
            raise ConfigurationError("Missing vessel.")
        if self.config is None:
            raise ConfigurationError("Missing simulation config.")
        if self.velocity_model is None:
            raise ConfigurationError("Missing velocity model.")
        self.route.validate()
        self.config.validate()
        self.velocity_model.validate()
        self.vessel.validate_cargo()
        try:
            VesselSide(self.vessel.preferred_side)
        except ValueError as err:
            raise ConfigurationError(
                f"Unknown preferred side {self.vessel.preferred_side!r}."
            ) from err

    def run(self) -> SimulationResult:
        """Run the simulation.

        Returns
        -------
        SimulationResult
            FAILED with an empty log if validation fails, FAILED with the
            partial log if the clock overflows, COMPLETED once the final
            waypoint is reached, and ITERATIONS_EXHAUSTED otherwise.
        """
        try:
            self.validate()
        except SimulationError as err:
            logging.warning(f"Simulation not started: {err}")
            return SimulationResult(status=SimulationStatus.FAILED, error=err)

        start_time = self.config.start_time_np
        state = VesselState.at_start_of(route=self.route, vessel=self.vessel)
        log = ShipLog()
        log.append(
            ShipLogEntry.from_state(
                state=state,
                route=self.route,
                timestamp=start_time,
                draft=self.vessel.draft_m,
            )
        )
        result = SimulationResult(
            status=SimulationStatus.RUNNING, log=log, start_time=start_time
        )
        try:
            self._loop(state, result)
        except ArithmeticOverflow as err:
            logging.warning(
                f"Simulation aborted after {result.iterations} iterations: {err}"
            )
            result.status = SimulationStatus.FAILED
            result.error = err
        result.tacks = state.tacks
        logging.debug(
            f"Simulation {result.status.value} after {result.iterations} iterations "
            f"with {len(log)} log entries."
        )
        return result

    def _loop(self, state: VesselState, result: SimulationResult):
        route, log = self.route, result.log
        time_step = float(self.config.time_step_seconds)
        start_time = result.start_time
        elapsed = 0.0
        leftover = 0.0

        while result.iterations < self.config.max_iterations:
            result.iterations += 1
            if leftover > MIN_TIME_BUDGET_SECONDS:
                budget = leftover
            else:
                budget = time_step
                result.time_steps += 1
            leftover = 0.0

            if route.has_arrived(state) and route.advance(state):
                state.velocity = PhysVec()
                elapsed += budget
                entry = ShipLogEntry.from_state(
                    state=state,
                    route=route,
                    timestamp=advance_timestamp(start_time, elapsed),
                    previous=log[-1],
                    draft=self.vessel.draft_m,
                    navigation_status=NavigationStatus.MOORED,
                )
                log.append(entry)
                self._call_hook(result.iterations, state, entry)
                result.status = SimulationStatus.COMPLETED
                return

            leg = route.current_leg(state)
            timestamp = advance_timestamp(start_time, elapsed)
            sample = self.velocity_model.compute_velocity(
                state, StepEnvironment(leg=leg, time=timestamp)
            )
            state.velocity = sample.vector
            speed = sample.vector.magnitude

            travel = speed * budget
            distance_to_waypoint = state.location.distance_to(leg.p2)
            if travel > distance_to_waypoint:
                leftover = (travel - distance_to_waypoint) / speed
                travel = distance_to_waypoint

            clip = self.velocity_model.tacking.enforce_corridor(
                state,
                leg,
                velocity=sample.vector,
                budget_seconds=budget,
                travel_meters=travel,
            )
            if clip is not None:
                leftover = clip.leftover_seconds
                location = clip.location
            else:
                location = state.location.move_space(
                    azimuth_degrees=sample.vector.angle, distance_meters=travel
                )
            if location.distance_to(leg.p2) <= ARRIVAL_TOLERANCE_METERS:
                location = leg.p2
            state.location = location

            elapsed += budget - leftover
            entry = ShipLogEntry.from_state(
                state=state,
                route=route,
                timestamp=advance_timestamp(start_time, elapsed),
                previous=log[-1],
                draft=self.vessel.draft_m,
            )
            log.append(entry)
            self._call_hook(result.iterations, state, entry)

        result.status = SimulationStatus.ITERATIONS_EXHAUSTED

    def _call_hook(self, iteration, state, entry):
        if self.on_iteration is not None:
            self.on_iteration(iteration, state, entry)


def simulate_voyage(
    route: RoutePlan = None,
    vessel: Vessel = None,
    config: SimulationConfig = None,
    weather: WeatherSource = None,
    rng=None,
    on_iteration: Callable = None,
) -> SimulationResult:
    """Simulate a voyage along a route plan.

    Parameters
    ----------
    route : RoutePlan
        Legs to sail.
    vessel : Vessel
        Static vessel characteristics.
    config : SimulationConfig
        Velocity method, start time, time step and iteration limit.
    weather : WeatherSource, optional
        Wind and currents, needed for the weather driven method.
    rng : numpy.random.Generator, optional
        Random numbers, needed for the mean plus deviation method.
    on_iteration : callable, optional
        Called as ``on_iteration(iteration, state, entry)`` after each
        iteration.

    Returns
    -------
    SimulationResult
    """
    if config is None:
        config = SimulationConfig()
    try:
        velocity_model = build_velocity_model(
            method=config.method,
            vessel=vessel,
            weather=weather,
            rng=rng,
            distance_method=config.distance_method,
        )
    except SimulationError as err:
        logging.warning(f"Simulation not started: {err}")
        return SimulationResult(status=SimulationStatus.FAILED, error=err)
    stepper = SimulationStepper(
        route=route,
        vessel=vessel,
        config=config,
        velocity_model=velocity_model,
        on_iteration=on_iteration,
    )
    return stepper.run()
