"""Worker state management for parallel ensemble members.

Module-level globals are required because concurrent.futures needs
picklable module-level task functions, and executor initializers run once
per worker to set up the read-only inputs of all members.

State variables (initialized in SimulationApp.run() when executors are created):
- _WORKER_STATE: Per-process state for ProcessPoolExecutor workers and for
  sequential execution
- _THREAD_LOCAL_STATE: Per-thread state for ThreadPoolExecutor workers
- _SHARED_WEATHER: Shared weather source for threads only (avoids copies)

Random numbers are not part of the worker state. Every member gets its own
seed so that results do not depend on the executor.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..core.config import Vessel
    from ..core.data import WeatherSource
    from ..core.routes import RoutePlan
    from .config import VoyageConfig


# ========== Module-level Worker State ==========

_WORKER_STATE = None
_THREAD_LOCAL_STATE = None
_SHARED_WEATHER = None


@dataclass
class WorkerState:
    """Read-only inputs shared by all members run in a worker.

    Attributes
    ----------
    route : RoutePlan
        Route plan to sail
    vessel : Vessel
        Vessel characteristics
    weather : WeatherSource or None
        Wind and currents
    voyage : VoyageConfig
        Time stepping settings
    """

    route: RoutePlan
    vessel: Vessel
    weather: WeatherSource | None
    voyage: VoyageConfig


def _initialize_worker_process(
    route: RoutePlan, vessel: Vessel, weather: WeatherSource, voyage: VoyageConfig
) -> None:
    """Initialize worker process with shared state.

    Called once per worker process at creation time by ProcessPoolExecutor.
    """
    global _WORKER_STATE
    _WORKER_STATE = WorkerState(
        route=route, vessel=vessel, weather=weather, voyage=voyage
    )


def _initialize_worker_thread(
    route: RoutePlan, vessel: Vessel, voyage: VoyageConfig
) -> None:
    """Initialize worker thread with thread-local state.

    Called once per worker thread at creation time by ThreadPoolExecutor.
    Threads share memory, so the weather is taken from _SHARED_WEATHER.
    """
    _THREAD_LOCAL_STATE.state = WorkerState(
        route=route, vessel=vessel, weather=_SHARED_WEATHER, voyage=voyage
    )


def _initialize_sequential(
    route: RoutePlan, vessel: Vessel, weather: WeatherSource, voyage: VoyageConfig
) -> None:
    """Initialize worker state for sequential execution."""
    global _WORKER_STATE
    _WORKER_STATE = WorkerState(
        route=route, vessel=vessel, weather=weather, voyage=voyage
    )


def _get_state() -> WorkerState:
    """Get the worker state for current process/thread.

    Returns thread-local state if running in a worker thread,
    otherwise returns global process state.
    """
    if hasattr(_THREAD_LOCAL_STATE, "state"):
        return _THREAD_LOCAL_STATE.state
    return _WORKER_STATE


class SequentialExecutor:
    """Sequential executor that mimics concurrent.futures.Executor interface.

    Provides a `.map()` method for compatibility with ThreadPoolExecutor
    and ProcessPoolExecutor, but executes tasks sequentially in the main thread.
    """

    def __init__(self, initializer=None, initargs=()):
        if initializer is not None:
            initializer(*initargs)

    def map(self, func, *iterables):
        """Map a function over iterables sequentially."""
        return map(func, *iterables)

    def shutdown(self, wait=True):
        """No-op for sequential execution."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
        return False
