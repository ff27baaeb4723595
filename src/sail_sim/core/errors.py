from __future__ import annotations


class SimulationError(Exception):
    """Base class of all errors raised by the simulator."""

    pass


class ConfigurationError(SimulationError, ValueError):
    """Raised if a required configuration field is missing or inconsistent."""

    pass


class InvalidRouteGeometry(SimulationError, ValueError):
    """Raised if a route plan contains degenerate geometry, e.g., p1 == p2."""

    pass


class ArithmeticOverflow(SimulationError, OverflowError):
    """Raised if advancing the simulation clock leaves the representable range."""

    pass
