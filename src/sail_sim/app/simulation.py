from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
import json
import logging
from pathlib import Path
import threading
from typing import Any

import numpy as np
import pandas as pd
import tqdm

from . import parallel
from .parallel import (
    SequentialExecutor,
    _initialize_worker_process,
    _initialize_worker_thread,
    _initialize_sequential,
    _get_state,
)
from .config import EnsembleParams, ForcingData, SailingConfig
from ..algorithms.stepper import SimulationResult, SimulationStatus, simulate_voyage
from ..core.config import VelocityMethod, Vessel
from ..core.data import (
    DatasetWeather,
    UniformWeather,
    WeatherSource,
    load_currents,
    load_winds,
)
from ..core.errors import ConfigurationError
from ..core.routes import RoutePlan
from ..core.vectors import PhysVec


def _json_default(obj: Any):
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Path):
        return str(obj)
    raise TypeError(f"Object of type {type(obj)!r} is not JSON serialisable")


@dataclass(frozen=True)
class MemberTask:
    """Inputs of a single ensemble member besides the shared worker state."""

    member: int
    start_time: str
    seed: np.random.SeedSequence | None = None


@dataclass
class EnsembleMember:
    """A simulated voyage of the ensemble."""

    member: int
    start_time: str
    result: SimulationResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "member": self.member,
            "start_time": self.start_time,
            "result": self.result.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EnsembleMember":
        return cls(
            member=int(data["member"]),
            start_time=data["start_time"],
            result=SimulationResult.from_dict(data["result"]),
        )


@dataclass
class StageLog:
    """Record of a single simulation stage event."""

    name: str
    metrics: dict[str, Any]
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(timespec="seconds")
    )

    def to_record(self) -> dict[str, Any]:
        """Return a flat record with stage, timestamp, and metrics."""
        return {
            "stage": self.name,
            "timestamp": self.timestamp,
            **self.metrics,
        }


@dataclass
class SimulationLog:
    """Configuration and stage metrics of an ensemble run."""

    config: dict[str, Any]
    stages: list[StageLog] = field(default_factory=list)

    def add_stage(self, name: str, **metrics: Any) -> None:
        """Append a stage log entry."""
        self.stages.append(StageLog(name=name, metrics=dict(metrics)))

    def stages_named(self, name: str) -> list[StageLog]:
        """Return all stage logs matching the provided name."""
        return [stage for stage in self.stages if stage.name == name]

    def to_dataframe(self) -> "pd.DataFrame":
        """Convert logs to a pandas DataFrame.

        Includes all stages with columns: stage, timestamp, and metric keys.
        """
        records = [s.to_record() for s in self.stages]
        if not records:
            return pd.DataFrame(columns=["stage", "timestamp"])
        df = pd.DataFrame(records)
        df["timestamp"] = pd.to_datetime(df["timestamp"], errors="coerce")
        return df

    def to_dict(self) -> dict[str, Any]:
        """Return log contents as plain dict."""
        return {
            "config": self.config,
            "stages": [
                {
                    "name": stage.name,
                    "metrics": stage.metrics,
                    "timestamp": stage.timestamp,
                }
                for stage in self.stages
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SimulationLog":
        return cls(
            config=data.get("config", {}),
            stages=[
                StageLog(
                    name=stage["name"],
                    metrics=stage.get("metrics", {}),
                    timestamp=stage.get("timestamp", ""),
                )
                for stage in data.get("stages", [])
            ],
        )


@dataclass
class EnsembleResult:
    """Container returned by SimulationApp.run."""

    members: list[EnsembleMember] = field(default_factory=list)
    logs: SimulationLog | None = None

    @property
    def data_frame(self) -> pd.DataFrame:
        """Ship logs of all members with member and start_time columns."""
        frames = []
        for m in self.members:
            df = m.result.log.data_frame
            df.insert(0, "start_time", m.start_time)
            df.insert(0, "member", m.member)
            frames.append(df)
        if not frames:
            return pd.DataFrame(columns=["member", "start_time"])
        return pd.concat(frames, ignore_index=True)

    @property
    def summary_data_frame(self) -> pd.DataFrame:
        """One row per member with status, travel time and sailed distance."""
        return pd.DataFrame(
            [
                {
                    "member": m.member,
                    "start_time": m.start_time,
                    "status": m.result.status.value,
                    "iterations": m.result.iterations,
                    "time_steps": m.result.time_steps,
                    "tacks": m.result.tacks,
                    "travel_time_hours": m.result.elapsed_seconds / 3_600.0,
                    "distance_km": m.result.log.length_meters / 1_000.0,
                }
                for m in self.members
            ],
            columns=[
                "member",
                "start_time",
                "status",
                "iterations",
                "time_steps",
                "tacks",
                "travel_time_hours",
                "distance_km",
            ],
        )

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly representation."""
        return {
            "members": [m.to_dict() for m in self.members],
            "log": self.logs.to_dict() if self.logs else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EnsembleResult":
        """Reconstruct EnsembleResult from dictionary."""
        log_data = data.get("log")
        return cls(
            members=[EnsembleMember.from_dict(m) for m in data.get("members", [])],
            logs=SimulationLog.from_dict(log_data) if log_data else None,
        )

    def to_msgpack(self) -> bytes:
        """Serialize to MessagePack binary format."""
        import msgpack

        return msgpack.packb(self.to_dict(), use_bin_type=True, default=_json_default)

    @classmethod
    def from_msgpack(cls, data: bytes) -> "EnsembleResult":
        """Deserialize from MessagePack binary format."""
        import msgpack

        return cls.from_dict(msgpack.unpackb(data, raw=False))

    def dump_json(self, path: Path | str, *, indent: int = 2) -> None:
        """Write members and logs to JSON."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as fh:
            json.dump(self.to_dict(), fh, indent=indent, default=_json_default)

    @classmethod
    def load_json(cls, path: Path) -> EnsembleResult:
        """Load an EnsembleResult from disk."""
        with Path(path).open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        return cls.from_dict(data)


class SimulationApp:
    """High-level orchestrator running an ensemble of voyages.

    One member is simulated per start time and ensemble member. Members
    share the route, vessel and weather and differ in start time and
    random numbers.
    """

    def __init__(self, config: SailingConfig):
        self.config = config
        self.log = SimulationLog(config=asdict(config))

    def _create_executor(
        self,
        *,
        route: RoutePlan,
        vessel: Vessel,
        weather: WeatherSource | None,
        params: EnsembleParams,
    ) -> SequentialExecutor | ThreadPoolExecutor | ProcessPoolExecutor:
        """Create and initialize the appropriate executor based on configuration.

        Raises
        ------
        ValueError
            If executor configuration is invalid
        """
        # Initialize worker state globals in parallel module
        parallel._WORKER_STATE = None
        parallel._THREAD_LOCAL_STATE = threading.local()
        parallel._SHARED_WEATHER = None
        voyage = self.config.voyage

        if params.executor_type == "sequential":
            if params.num_workers > 1:
                logging.warning(
                    f"Sequential executor requested but num_workers={params.num_workers} > 1. "
                    "Sequential execution will use single thread regardless."
                )
            return SequentialExecutor(
                initializer=_initialize_sequential,
                initargs=(route, vessel, weather, voyage),
            )
        elif params.executor_type == "thread":
            if params.num_workers == 0:
                raise ValueError("Thread executor requested but num_workers=0")
            parallel._SHARED_WEATHER = weather
            return ThreadPoolExecutor(
                max_workers=params.num_workers,
                initializer=_initialize_worker_thread,
                initargs=(route, vessel, voyage),
            )
        elif params.executor_type == "process":
            if params.num_workers == 0:
                raise ValueError("Process executor requested but num_workers=0")
            return ProcessPoolExecutor(
                max_workers=params.num_workers,
                initializer=_initialize_worker_process,
                initargs=(route, vessel, weather, voyage),
            )
        else:
            raise ValueError(f"Unknown executor_type: {params.executor_type}")

    def run(self) -> EnsembleResult:
        """Simulate all ensemble members."""
        self._log_stage_metrics("run", message="starting simulation run")
        voyage, params = self.config.voyage, self.config.ensemble

        needs_weather = voyage.method is VelocityMethod.WEATHER_DRIVEN
        if needs_weather and not self.config.forcing.has_weather:
            raise ConfigurationError("Weather driven simulation needs winds.")
        route = voyage.route_plan()
        forcing = self._load_forcing(route)
        weather = self._build_weather(forcing)

        tasks = self._member_tasks()
        members = []
        with self._create_executor(
            route=route, vessel=self.config.vessel, weather=weather, params=params
        ) as executor:
            results = executor.map(SimulationApp._task_member, tasks)
            if params.progress_bar:
                results = tqdm.tqdm(results, total=len(tasks), desc="members")
            for member in results:
                members.append(member)
                self._log_stage_metrics("member", **self._member_stats(member))

        self._log_stage_metrics("ensemble", **self._ensemble_stats(members))
        return EnsembleResult(members=members, logs=self.log)

    def _member_tasks(self) -> list[MemberTask]:
        """One task per start time and ensemble member with spawned seeds."""
        voyage, params = self.config.voyage, self.config.ensemble
        n_members = len(voyage.start_times) * params.members_per_start_time
        seeds = np.random.SeedSequence(params.random_seed).spawn(n_members)
        tasks = []
        for n, seed in enumerate(seeds):
            start_time = voyage.start_times[n // params.members_per_start_time]
            tasks.append(MemberTask(member=n, start_time=str(start_time), seed=seed))
        return tasks

    @staticmethod
    def _task_member(task: MemberTask) -> EnsembleMember:
        """Task function simulating a single ensemble member.

        Parameters
        ----------
        task : MemberTask
            Member number, start time and seed

        Returns
        -------
        EnsembleMember
        """
        state = _get_state()
        result = simulate_voyage(
            route=state.route,
            vessel=state.vessel,
            config=state.voyage.simulation_config(task.start_time),
            weather=state.weather,
            rng=np.random.default_rng(task.seed),
        )
        return EnsembleMember(
            member=task.member, start_time=task.start_time, result=result
        )

    def _load_forcing(self, route: RoutePlan) -> ForcingData:
        """Load wind and current fields according to the config.

        Fields are cropped to the period all members can reach and to the
        bounding box of the route.
        """
        config, voyage = self.config.forcing, self.config.voyage
        start_times = [np.datetime64(t, "ms") for t in voyage.start_times]
        time_start = min(start_times)
        max_duration_ms = int(
            voyage.max_iterations * voyage.time_step_hours * 3_600e3
        )
        time_end = max(start_times) + np.timedelta64(max_duration_ms, "ms")
        spatial_bounds = None
        if config.spatial_margin_degrees is not None:
            spatial_bounds = route.bounding_box(
                margin_degrees=config.spatial_margin_degrees
            )
        kwargs = {} if config.engine is None else {"engine": config.engine}

        forcing = ForcingData(
            winds=(
                load_winds(
                    data_file=config.winds_path,
                    time_start=time_start,
                    time_end=time_end,
                    spatial_bounds=spatial_bounds,
                    load_eagerly=config.load_eagerly,
                    **kwargs,
                )
                if config.winds_path is not None
                else None
            ),
            currents=(
                load_currents(
                    data_file=config.currents_path,
                    time_start=time_start,
                    time_end=time_end,
                    spatial_bounds=spatial_bounds,
                    load_eagerly=config.load_eagerly,
                    **kwargs,
                )
                if config.currents_path is not None
                else None
            ),
        )
        self._log_stage_metrics(
            "load_forcing",
            winds=forcing.winds is not None,
            winds_shape=(
                str(dict(forcing.winds.sizes)) if forcing.winds is not None else "{}"
            ),
            currents=forcing.currents is not None,
            currents_shape=(
                str(dict(forcing.currents.sizes)) if forcing.currents is not None else "{}"
            ),
        )
        return forcing

    def _build_weather(self, forcing: ForcingData) -> WeatherSource | None:
        """Weather source from loaded data or uniform settings."""
        config = self.config.forcing
        if forcing.winds is not None:
            return DatasetWeather(winds=forcing.winds, currents=forcing.currents)
        if forcing.currents is not None:
            logging.warning("Currents are only used together with a wind dataset.")
        if config.uniform_wind_speed_ms is None:
            return None
        current = None
        if config.uniform_current_speed_ms is not None:
            current = PhysVec(
                magnitude=config.uniform_current_speed_ms,
                angle=config.uniform_current_to_degrees,
            )
        return UniformWeather(
            wind=PhysVec(
                magnitude=config.uniform_wind_speed_ms,
                angle=config.uniform_wind_from_degrees + 180.0,
            ),
            current=current,
        )

    def _log_stage_metrics(
        self,
        name: str,
        **metrics: Any,
    ) -> None:
        """Convenience wrapper for stage-level logging."""
        timestamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
        logging.info("%s [%s] %s", name, timestamp, metrics)
        self.log.add_stage(name=name, **metrics)

    @staticmethod
    def _member_stats(member: EnsembleMember) -> dict[str, Any]:
        result = member.result
        return {
            "member": member.member,
            "start_time": member.start_time,
            "status": result.status.value,
            "iterations": result.iterations,
            "log_entries": len(result.log),
            "tacks": result.tacks,
            "travel_time_hours": result.elapsed_seconds / 3_600.0,
            "error": None if result.error is None else str(result.error),
        }

    @staticmethod
    def _ensemble_stats(members: list[EnsembleMember]) -> dict[str, Any]:
        statuses = [m.result.status for m in members]
        hours = np.array(
            [m.result.elapsed_seconds / 3_600.0 for m in members if m.result.completed]
        )
        return {
            "members": len(members),
            "completed": statuses.count(SimulationStatus.COMPLETED),
            "iterations_exhausted": statuses.count(
                SimulationStatus.ITERATIONS_EXHAUSTED
            ),
            "failed": statuses.count(SimulationStatus.FAILED),
            "travel_time_hours_mean": float(hours.mean()) if hours.size else np.nan,
            "travel_time_hours_std": float(hours.std()) if hours.size else np.nan,
            "travel_time_hours_min": float(hours.min()) if hours.size else np.nan,
            "travel_time_hours_max": float(hours.max()) if hours.size else np.nan,
        }
