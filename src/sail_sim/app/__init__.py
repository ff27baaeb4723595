"""User-facing/app layer: Ensembles of sailing simulations."""

from .simulation import (
    EnsembleMember,
    EnsembleResult,
    StageLog,
    SimulationLog,
    SimulationApp,
)
from .config import (
    EnsembleParams,
    ForcingConfig,
    ForcingData,
    SailingConfig,
    VoyageConfig,
)
from .cli import build_config

__all__ = [
    "EnsembleMember",
    "EnsembleResult",
    "StageLog",
    "SimulationLog",
    "SimulationApp",
    "EnsembleParams",
    "ForcingConfig",
    "ForcingData",
    "SailingConfig",
    "VoyageConfig",
    "build_config",
]
