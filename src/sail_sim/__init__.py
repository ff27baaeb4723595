"""
Sailing vessel simulation package.

Three-layer architecture:
- core: Geodesics, route plans, vessel state, ship log, tacking, weather data
- algorithms: Velocity strategies and the simulation stepper
- app: Ensembles over start times, configuration and command line

Examples
--------
>>> from sail_sim.core import RoutePlan, Vessel, SimulationConfig
>>> from sail_sim.algorithms import simulate_voyage
>>> from sail_sim.app import SimulationApp, SailingConfig
"""

__version__ = "2025dev"
