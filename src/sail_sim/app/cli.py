"""Unified CLI for SimulationApp.

Provides Click-based command-line interface and a programmatic build_config() function
for creating SailingConfig objects from individual parameters.
"""

from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Optional
import json
import logging
import uuid

import click
from click.core import ParameterSource

from .config import EnsembleParams, ForcingConfig, SailingConfig, VoyageConfig
from .simulation import EnsembleResult, SimulationApp
from ..core.config import Vessel
from ..core.geodesics import knots_to_ms, tonnes_to_kg


def _merge(section: dict[str, Any], **overrides: Any) -> dict[str, Any]:
    """Overlay non-None overrides on a config section."""
    merged = dict(section or {})
    merged.update({k: v for k, v in overrides.items() if v is not None})
    return merged


def build_config(
    # Voyage parameters
    voyage_name: Optional[str] = None,
    lon_waypoints: Optional[tuple[float, ...]] = None,
    lat_waypoints: Optional[tuple[float, ...]] = None,
    route_file: Optional[str] = None,
    tacking_width_meters: Optional[float] = None,
    min_proximity_meters: Optional[float] = None,
    start_times: Optional[tuple[str, ...]] = None,
    time_step_hours: Optional[float] = None,
    max_iterations: Optional[int] = None,
    method: Optional[str] = None,
    distance_method: Optional[str] = None,
    # Vessel parameters
    vessel_name: Optional[str] = None,
    speed_knots: Optional[float] = None,
    speed_std_knots: Optional[float] = None,
    min_angle_of_attack_degrees: Optional[float] = None,
    wind_speed_factor: Optional[float] = None,
    draft_m: Optional[float] = None,
    cargo_tonnes: Optional[float] = None,
    cargo_capacity_tonnes: Optional[float] = None,
    preferred_side: Optional[str] = None,
    # Forcing parameters
    winds_path: Optional[str] = None,
    currents_path: Optional[str] = None,
    engine: Optional[str] = None,
    wind_speed_ms: Optional[float] = None,
    wind_from_degrees: Optional[float] = None,
    current_speed_ms: Optional[float] = None,
    current_to_degrees: Optional[float] = None,
    # Ensemble parameters
    members_per_start_time: Optional[int] = None,
    random_seed: Optional[int] = None,
    executor_type: Optional[str] = None,
    num_workers: Optional[int] = None,
    progress_bar: Optional[bool] = None,
    # Config file override
    config_dict: Optional[dict[str, Any]] = None,
) -> SailingConfig:
    """Build SailingConfig from individual parameters.

    Parameters are merged with defaults from config classes. If config_dict
    is provided, it is used as the base and individual parameters which are
    not None override it.

    Parameters
    ----------
    voyage_name : str, optional
        Human-readable name for the voyage
    lon_waypoints, lat_waypoints : tuple[float, ...], optional
        Waypoints of the route
    route_file : str, optional
        CSV file with route plan records, used instead of the waypoints
    tacking_width_meters : float, optional
        Corridor width of each leg
    min_proximity_meters : float, optional
        Arrival distance of each leg
    start_times : tuple[str, ...], optional
        Start times in ISO format, one ensemble group per start time
    time_step_hours : float, optional
        Fixed time step
    max_iterations : int, optional
        Iteration limit per member
    method : str, optional
        constant_mean, mean_plus_deviation, or weather_driven
    distance_method : str, optional
        closed_form or bisection
    speed_knots, speed_std_knots : float, optional
        Mean and std of the vessel speed in knots
    min_angle_of_attack_degrees : float, optional
        Smallest angle to the wind the vessel can sail
    wind_speed_factor : float, optional
        Ratio of vessel speed through water to wind speed
    draft_m : float, optional
        Draft in meters
    cargo_tonnes, cargo_capacity_tonnes : float, optional
        Cargo on board and capacity in metric tons
    preferred_side : str, optional
        port or starboard
    winds_path, currents_path : str, optional
        Paths to wind and current data
    engine : str, optional
        xarray engine for opening the data
    wind_speed_ms, wind_from_degrees : float, optional
        Uniform wind if no wind data is given
    current_speed_ms, current_to_degrees : float, optional
        Uniform current if no wind data is given
    members_per_start_time : int, optional
        Ensemble members per start time
    random_seed : int, optional
        Random seed for reproducibility
    executor_type : str, optional
        Executor type: process, thread, or sequential
    num_workers : int, optional
        Number of worker processes/threads
    progress_bar : bool, optional
        Show a progress bar over members
    config_dict : dict, optional
        Base configuration with sections voyage, vessel, forcing, ensemble

    Returns
    -------
    SailingConfig
        Configured simulation configuration object
    """
    params = config_dict or {}

    voyage = VoyageConfig(
        **_merge(
            params.get("voyage"),
            name=voyage_name,
            lon_waypoints=lon_waypoints,
            lat_waypoints=lat_waypoints,
            route_file=route_file,
            tacking_width_meters=tacking_width_meters,
            min_proximity_meters=min_proximity_meters,
            start_times=start_times,
            time_step_hours=time_step_hours,
            max_iterations=max_iterations,
            method=method,
            distance_method=distance_method,
        )
    )

    vessel_base = params.get("vessel")
    if vessel_base is None:
        vessel_base = asdict(SailingConfig().vessel)
    vessel = Vessel(
        **_merge(
            vessel_base,
            name=vessel_name,
            velocity_mean_ms=None if speed_knots is None else knots_to_ms(speed_knots),
            velocity_std_ms=(
                None if speed_std_knots is None else knots_to_ms(speed_std_knots)
            ),
            min_angle_of_attack_degrees=min_angle_of_attack_degrees,
            wind_speed_factor=wind_speed_factor,
            draft_m=draft_m,
            cargo_kg=None if cargo_tonnes is None else tonnes_to_kg(cargo_tonnes),
            cargo_max_capacity_kg=(
                None
                if cargo_capacity_tonnes is None
                else tonnes_to_kg(cargo_capacity_tonnes)
            ),
            preferred_side=preferred_side,
        )
    )

    forcing = ForcingConfig(
        **_merge(
            params.get("forcing"),
            winds_path=winds_path,
            currents_path=currents_path,
            engine=engine,
            uniform_wind_speed_ms=wind_speed_ms,
            uniform_wind_from_degrees=wind_from_degrees,
            uniform_current_speed_ms=current_speed_ms,
            uniform_current_to_degrees=current_to_degrees,
        )
    )

    ensemble = EnsembleParams(
        **_merge(
            params.get("ensemble"),
            members_per_start_time=members_per_start_time,
            random_seed=random_seed,
            executor_type=executor_type,
            num_workers=num_workers,
            progress_bar=progress_bar,
        )
    )

    return SailingConfig(voyage=voyage, forcing=forcing, vessel=vessel, ensemble=ensemble)


@click.command()
# Voyage parameters
@click.option(
    "--voyage-name",
    type=str,
    default="Voyage",
    help="Human-readable name for this voyage.",
)
@click.option(
    "--lon-wp",
    "lon_waypoints",
    type=float,
    multiple=True,
    default=(0.0, 0.9, 1.8),
    help="Longitude waypoints (e.g., --lon-wp 0.0 --lon-wp 0.9).",
)
@click.option(
    "--lat-wp",
    "lat_waypoints",
    type=float,
    multiple=True,
    default=(0.0, 0.0, 0.0),
    help="Latitude waypoints (e.g., --lat-wp 0.0 --lat-wp 0.0).",
)
@click.option(
    "--route-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="CSV route plan with p1_lat, p1_lon, p2_lat, p2_lon, tacking_width, min_proximity.",
)
@click.option(
    "--tacking-width",
    "tacking_width_meters",
    type=float,
    default=10_000.0,
    help="Total width of the tacking corridor in meters.",
)
@click.option(
    "--min-proximity",
    "min_proximity_meters",
    type=float,
    default=0.0,
    help="Distance to a waypoint in meters that counts as arrived.",
)
@click.option(
    "--start-time",
    "start_times",
    type=str,
    multiple=True,
    default=("2025-01-01T00:00",),
    help="Start time in ISO format. Repeat for an ensemble over start times.",
)
@click.option(
    "--time-step-hours",
    type=float,
    default=1.0,
    help="Fixed time step in hours.",
)
@click.option(
    "--max-iterations",
    type=int,
    default=1_000,
    help="Maximal number of iterations per member.",
)
@click.option(
    "--method",
    type=click.Choice(["constant_mean", "mean_plus_deviation", "weather_driven"]),
    default="constant_mean",
    help="How the vessel velocity is obtained.",
)
@click.option(
    "--distance-method",
    type=click.Choice(["closed_form", "bisection"]),
    default="closed_form",
    help="Algorithm for the distance to the leg line.",
)
# Vessel parameters
@click.option("--vessel-name", type=str, default=None, help="Name of the vessel.")
@click.option(
    "--speed-knots", type=float, default=10.0, help="Mean vessel speed in knots."
)
@click.option(
    "--speed-std-knots",
    type=float,
    default=None,
    help="Std of the vessel speed in knots (mean_plus_deviation).",
)
@click.option(
    "--min-angle-of-attack",
    "min_angle_of_attack_degrees",
    type=float,
    default=45.0,
    help="Smallest angle to the wind the vessel can sail in degrees.",
)
@click.option(
    "--wind-speed-factor",
    type=float,
    default=None,
    help="Vessel speed through water per wind speed (weather_driven).",
)
@click.option("--draft", "draft_m", type=float, default=None, help="Draft in meters.")
@click.option(
    "--cargo-tonnes", type=float, default=None, help="Cargo on board in metric tons."
)
@click.option(
    "--cargo-capacity-tonnes",
    type=float,
    default=None,
    help="Cargo capacity in metric tons.",
)
@click.option(
    "--preferred-side",
    type=click.Choice(["port", "starboard"]),
    default=None,
    help="Initial tack.",
)
# Forcing parameters
@click.option("--winds-path", type=str, default=None, help="Path to winds data.")
@click.option("--currents-path", type=str, default=None, help="Path to currents data.")
@click.option(
    "--engine", type=str, default=None, help="xarray engine (netcdf4, zarr, ...)."
)
@click.option(
    "--wind-speed-ms",
    type=float,
    default=None,
    help="Uniform wind speed in m/s if no wind data is given.",
)
@click.option(
    "--wind-from",
    "wind_from_degrees",
    type=float,
    default=None,
    help="Direction the uniform wind comes from in degrees.",
)
@click.option(
    "--current-speed-ms",
    type=float,
    default=None,
    help="Uniform current speed in m/s.",
)
@click.option(
    "--current-to",
    "current_to_degrees",
    type=float,
    default=None,
    help="Direction the uniform current flows to in degrees.",
)
# Ensemble parameters
@click.option(
    "--members-per-start-time",
    type=int,
    default=1,
    help="Number of ensemble members per start time.",
)
@click.option(
    "--random-seed",
    type=int,
    default=None,
    help="Random seed for reproducibility.",
)
@click.option(
    "--executor-type",
    type=click.Choice(["sequential", "thread", "process"]),
    default="sequential",
    help="How ensemble members are executed.",
)
@click.option(
    "--num-workers",
    type=int,
    default=1,
    help="Number of worker threads or processes.",
)
@click.option(
    "--progress-bar/--no-progress-bar",
    default=False,
    help="Show a progress bar over members.",
)
# Config file and output
@click.option(
    "--config-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="JSON file with voyage, vessel, forcing and ensemble sections.",
)
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False),
    default="runs",
    help="Directory for the result files.",
)
@click.option(
    "--msgpack/--no-msgpack",
    "write_msgpack",
    default=False,
    help="Also write the result in MessagePack format.",
)
def main(
    # Voyage
    voyage_name,
    lon_waypoints,
    lat_waypoints,
    route_file,
    tacking_width_meters,
    min_proximity_meters,
    start_times,
    time_step_hours,
    max_iterations,
    method,
    distance_method,
    # Vessel
    vessel_name,
    speed_knots,
    speed_std_knots,
    min_angle_of_attack_degrees,
    wind_speed_factor,
    draft_m,
    cargo_tonnes,
    cargo_capacity_tonnes,
    preferred_side,
    # Forcing
    winds_path,
    currents_path,
    engine,
    wind_speed_ms,
    wind_from_degrees,
    current_speed_ms,
    current_to_degrees,
    # Ensemble
    members_per_start_time,
    random_seed,
    executor_type,
    num_workers,
    progress_bar,
    # Output
    config_file,
    log_dir,
    write_msgpack,
) -> EnsembleResult:
    """Configure and run an ensemble of sailing simulations."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    config_dict = None
    if config_file is not None:
        with Path(config_file).open("r", encoding="utf-8") as fh:
            config_dict = json.load(fh)

    ctx = click.get_current_context()
    options = {
        name: value
        for name, value in ctx.params.items()
        if name not in ("config_file", "log_dir", "write_msgpack")
    }
    if config_dict is not None:
        # values from the config file win over option defaults
        options = {
            name: value
            for name, value in options.items()
            if ctx.get_parameter_source(name) is not ParameterSource.DEFAULT
        }
    config = build_config(**options, config_dict=config_dict)

    app = SimulationApp(config=config)
    result = app.run()

    # Write results
    run_id = datetime.now().isoformat(timespec="milliseconds").replace(":", "-")
    run_id = f"{run_id}_{uuid.uuid4()}"

    output_file = Path(log_dir) / f"run_{run_id}.json"
    result.dump_json(output_file)
    click.echo(f"Results saved to {output_file}")
    if write_msgpack:
        msgpack_file = output_file.with_suffix(".msgpack")
        msgpack_file.write_bytes(result.to_msgpack())
        click.echo(f"Results saved to {msgpack_file}")

    return result


if __name__ == "__main__":
    main()
