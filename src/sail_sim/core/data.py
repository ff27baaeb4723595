import logging
from abc import ABC, abstractmethod
from pathlib import Path

import numpy as np
import xarray as xr

from .routes import GeoPoint
from .vectors import PhysVec


class WeatherSource(ABC):
    """Wind and ocean current at a point and time.

    Vectors point in the direction the wind blows or the water flows to.
    """

    @abstractmethod
    def wind_vector_at(self, point: GeoPoint, time: np.datetime64) -> PhysVec:
        """Wind vector in m/s."""

    @abstractmethod
    def current_vector_at(
        self, point: GeoPoint, time: np.datetime64
    ) -> PhysVec | None:
        """Ocean current vector in m/s, or None where there is no current."""


class UniformWeather(WeatherSource):
    """The same wind and current everywhere and at all times."""

    def __init__(self, wind: PhysVec = None, current: PhysVec = None):
        self.wind = PhysVec() if wind is None else wind
        self.current = current

    def wind_vector_at(self, point, time):
        return self.wind

    def current_vector_at(self, point, time):
        return self.current

    def __repr__(self):
        return f"UniformWeather(wind={self.wind!r}, current={self.current!r})"


class DatasetWeather(WeatherSource):
    """Weather from gridded datasets with standardized variable names.

    Winds need ``uw, vw`` and currents ``uo, vo`` on ``lon, lat`` and
    optionally ``time``. Values are taken from the nearest grid point.
    """

    def __init__(self, winds: xr.Dataset = None, currents: xr.Dataset = None):
        if winds is None:
            raise ValueError("Need a wind dataset.")
        self.winds = winds
        self.currents = currents

    def wind_vector_at(self, point, time):
        ds = select_data_at_point(self.winds, lon=point.lon, lat=point.lat, time=time)
        uw, vw = float(ds.uw.data), float(ds.vw.data)
        if not (np.isfinite(uw) and np.isfinite(vw)):
            logging.warning(f"No wind data at {point} and {time}, assuming calm.")
            return PhysVec()
        return PhysVec.from_components(east=uw, north=vw)

    def current_vector_at(self, point, time):
        if self.currents is None:
            return None
        ds = select_data_at_point(
            self.currents, lon=point.lon, lat=point.lat, time=time
        )
        uo, vo = float(ds.uo.data), float(ds.vo.data)
        # currents are masked on land
        if not (np.isfinite(uo) and np.isfinite(vo)):
            return None
        return PhysVec.from_components(east=uo, north=vo)


def select_data_at_point(
    ds: xr.Dataset = None,
    lon: float = None,
    lat: float = None,
    time: np.datetime64 = None,
) -> xr.Dataset:
    """Select nearest grid point (and time step if present)."""
    # grids may be stored in [-180, 180) or [0, 360)
    lon_min = float(ds.lon.min())
    if lon_min >= 0 and lon < 0:
        lon = lon + 360.0
    elif lon_min < 0 and lon >= 180.0:
        lon = lon - 360.0
    ds = ds.sel(lon=lon, lat=lat, method="nearest")
    if "time" in ds.dims and time is not None:
        ds = ds.sel(time=time, method="nearest")
    return ds


def load_currents(
    data_file: Path = None,
    lon_name: str = "longitude",
    lat_name: str = "latitude",
    time_name: str = "time",
    uo_name: str = "uo",
    vo_name: str = "vo",
    time_start: np.datetime64 = None,
    time_end: np.datetime64 = None,
    load_eagerly: bool = True,
    spatial_bounds: tuple = None,
    **kwargs,
) -> xr.Dataset:
    """Load ocean current data from netCDF file or other formats.

    Loads current velocity data, renames variables to standard names and
    filters to time period of interest.

    Parameters
    ----------
    data_file : Path
        Path to file containing current data (netCDF by default; other formats
        supported via engine kwarg in **kwargs)
    lon_name : str, default="longitude"
        Name of longitude variable in source file
    lat_name : str, default="latitude"
        Name of latitude variable in source file
    time_name : str, default="time"
        Name of time variable in source file
    uo_name : str, default="uo"
        Name of eastward current velocity variable in source file
    vo_name : str, default="vo"
        Name of northward current velocity variable in source file
    time_start : np.datetime64, optional
        Start time for filtering data
    time_end : np.datetime64, optional
        End time for filtering data
    load_eagerly : bool, default=True
        If True, load data into memory immediately
    spatial_bounds : tuple, optional
        (lon_min, lon_max, lat_min, lat_max) for spatial cropping
    **kwargs
        Additional arguments passed to xr.open_dataset

    Returns
    -------
    xr.Dataset
        Dataset with standardized variable names (lon, lat, time, uo, vo)
    """
    return _load_standardized(
        data_file=data_file,
        names={lon_name: "lon", lat_name: "lat", time_name: "time"},
        variables={uo_name: "uo", vo_name: "vo"},
        time_start=time_start,
        time_end=time_end,
        load_eagerly=load_eagerly,
        spatial_bounds=spatial_bounds,
        **kwargs,
    )


def load_winds(
    data_file: Path = None,
    lon_name: str = "longitude",
    lat_name: str = "latitude",
    time_name: str = "time",
    uw_name: str = "eastward_wind",
    vw_name: str = "northward_wind",
    time_start: np.datetime64 = None,
    time_end: np.datetime64 = None,
    load_eagerly: bool = True,
    spatial_bounds: tuple = None,
    **kwargs,
) -> xr.Dataset:
    """Load wind data from netCDF file or other formats.

    Same as :func:`load_currents` but for the wind components, which are
    renamed to ``uw`` and ``vw``.
    """
    return _load_standardized(
        data_file=data_file,
        names={lon_name: "lon", lat_name: "lat", time_name: "time"},
        variables={uw_name: "uw", vw_name: "vw"},
        time_start=time_start,
        time_end=time_end,
        load_eagerly=load_eagerly,
        spatial_bounds=spatial_bounds,
        **kwargs,
    )


def _load_standardized(
    data_file: Path = None,
    names: dict = None,
    variables: dict = None,
    time_start: np.datetime64 = None,
    time_end: np.datetime64 = None,
    load_eagerly: bool = True,
    spatial_bounds: tuple = None,
    **kwargs,
) -> xr.Dataset:
    ds = xr.open_dataset(data_file, **kwargs)
    renames = {k: v for k, v in {**names, **variables}.items() if k in ds.variables}
    ds = ds.rename(renames)
    missing = [v for v in variables.values() if v not in ds.data_vars]
    if missing:
        raise ValueError(f"{data_file} lacks variables for {missing}.")
    if "time" in ds.dims:
        ds = _filter_times(ds, time_start=time_start, time_end=time_end)
    if spatial_bounds is not None:
        lon_min, lon_max, lat_min, lat_max = spatial_bounds
        ds = _apply_spatial_selection(ds, lon_min, lon_max, lat_min, lat_max)
    if load_eagerly:
        ds = ds.load()
    logging.info(f"Loaded {sorted(variables.values())} from {data_file}.")
    return ds


def _filter_times(
    ds: xr.Dataset = None,
    time_start: np.datetime64 = None,
    time_end: np.datetime64 = None,
) -> xr.Dataset:
    """Filter dataset to time period of interest.

    Keeps one extra time step on either side so that nearest-neighbour
    selection still works at the ends.

    Parameters
    ----------
    ds : xr.Dataset
        Input dataset
    time_start : np.datetime64
        Start time for filtering.
    time_end : np.datetime64
        End time for filtering.

    Returns
    -------
    xr.Dataset
        Filtered dataset.
    """
    # If we don't filter at all, just fall through
    if time_end is None and time_start is None:
        return ds
    if ds.sizes["time"] < 2:
        return ds

    # Calculate maximum time step for buffer
    time_buffer = ds.time.diff("time").max().load().data[()]
    time_sel_start, time_sel_end = None, None
    if time_start is not None:
        time_sel_start = np.datetime64(time_start) - time_buffer
    if time_end is not None:
        time_sel_end = np.datetime64(time_end) + time_buffer
    return ds.sel(time=slice(time_sel_start, time_sel_end))


def _apply_spatial_selection(
    ds: xr.Dataset = None,
    lon_min: float = None,
    lon_max: float = None,
    lat_min: float = None,
    lat_max: float = None,
) -> xr.Dataset:
    """Crop dataset to bounding box.

    Works for grids in [-180, 180) and [0, 360) and for descending
    latitudes. ``lon_max`` may exceed 180 for boxes across the dateline.
    """
    lon_offset = (ds.lon.data - lon_min) % 360.0
    lon_mask = lon_offset <= lon_max - lon_min
    lat_mask = (ds.lat.data >= lat_min) & (ds.lat.data <= lat_max)
    return ds.isel(lon=np.flatnonzero(lon_mask), lat=np.flatnonzero(lat_mask))
