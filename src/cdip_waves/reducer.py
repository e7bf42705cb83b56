"""
Hindcast reduction
==================
Cuts a station's multi-year hindcast down to the requested UTC date window
and averages significant wave height per UTC calendar day.

The window is closed on both ends: [start 00:00:00, end 23:59:59.999] UTC.
The time axis is read in full (it is needed to find the window), but only
the matching slice of the wave-height axis is read from disk. The time axis
must be non-decreasing, so the window is one contiguous index range.
"""
import re
import warnings
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, as_completed

import numpy as np
import pandas as pd
import xarray as xr

from .config import TIME_VAR, VALUE_VAR, workers_for
from .errors import EmptyWindow, MalformedSourceFile, StationSkipped
from .models import AGG_COLUMNS

_UNIT_SECONDS = {
    "seconds": 1.0, "second": 1.0, "secs": 1.0, "sec": 1.0, "s": 1.0,
    "minutes": 60.0, "minute": 60.0, "mins": 60.0, "min": 60.0,
    "hours": 3600.0, "hour": 3600.0, "hrs": 3600.0, "hr": 3600.0, "h": 3600.0,
    "days": 86400.0, "day": 86400.0, "d": 86400.0,
}
_EPOCH = pd.Timestamp("1970-01-01", tz="UTC")


def utc_window(start_date, end_date):
    """Epoch-second bounds [lo, hi) covering start_date through all of end_date."""
    start = pd.Timestamp(start_date)
    end = pd.Timestamp(end_date)
    start = start.tz_localize("UTC") if start.tzinfo is None else start.tz_convert("UTC")
    end = end.tz_localize("UTC") if end.tzinfo is None else end.tz_convert("UTC")
    start, end = start.normalize(), end.normalize()
    if end < start:
        raise ValueError(f"end_date {end.date()} is before start_date {start.date()}")
    lo = (start - _EPOCH).total_seconds()
    hi = (end + pd.Timedelta(days=1) - _EPOCH).total_seconds()
    return lo, hi


def _epoch_seconds(raw, units):
    """Convert a CF '<unit> since <ref>' numeric axis to seconds since 1970 UTC."""
    if np.issubdtype(raw.dtype, np.datetime64):
        return (raw.astype("datetime64[ns]").astype("int64") / 1e9).astype(float)
    m = re.match(r"\s*(\w+)\s+since\s+(.+)", units or "seconds since 1970-01-01")
    if not m or m.group(1).lower() not in _UNIT_SECONDS:
        raise ValueError(f"unsupported time units {units!r}")
    ref = pd.Timestamp(m.group(2).strip().replace("UTC", "").strip())
    ref = ref.tz_localize("UTC") if ref.tzinfo is None else ref.tz_convert("UTC")
    offset = (ref - _EPOCH).total_seconds()
    return raw.astype(float) * _UNIT_SECONDS[m.group(1).lower()] + offset


def _empty_frame():
    return pd.DataFrame({c: pd.Series(dtype=t) for c, t in
                         zip(AGG_COLUMNS, [object, object, float, int])})


def reduce(local_path, start_date, end_date, station_id=None,
           time_var=TIME_VAR, value_var=VALUE_VAR, warn=True):
    """
    Daily mean of ``value_var`` for one station file.

    Returns a DataFrame with columns station, date_utc, mean_value, n_samples,
    one row per UTC day that has samples. NaN samples are ignored; a day with
    only NaN samples keeps a NaN mean. An empty window returns an empty frame
    (and an EmptyWindow warning when ``warn``).

    Raises MalformedSourceFile if the file cannot be opened or lacks a
    usable time / value axis.
    """
    station_id = station_id or str(local_path)
    lo, hi = utc_window(start_date, end_date)

    try:
        ds = xr.open_dataset(local_path, decode_times=False)
    except (OSError, ValueError, RuntimeError, KeyError) as e:
        raise MalformedSourceFile(station_id, local_path, f"cannot open file: {e}") from e

    with ds:
        for var in (time_var, value_var):
            if var not in ds.variables:
                raise MalformedSourceFile(station_id, local_path, f"missing variable {var!r}")
        tvar, hvar = ds[time_var], ds[value_var]
        if tvar.ndim != 1 or hvar.ndim != 1 or tvar.size != hvar.size:
            raise MalformedSourceFile(
                station_id, local_path,
                f"{time_var} {tvar.shape} and {value_var} {hvar.shape} are not aligned 1-D axes")

        try:
            secs = _epoch_seconds(np.asarray(tvar.values), tvar.attrs.get("units"))
        except ValueError as e:
            raise MalformedSourceFile(station_id, local_path, str(e)) from e
        if secs.size > 1 and not np.all(np.diff(secs) >= 0):
            raise MalformedSourceFile(station_id, local_path, f"{time_var} is not monotonic")

        i0 = int(np.searchsorted(secs, lo, side="left"))
        i1 = int(np.searchsorted(secs, hi, side="left"))
        if i1 <= i0:
            if warn:
                warnings.warn(f"{station_id}: no samples between {start_date} and {end_date} "
                              f"({local_path})", EmptyWindow, stacklevel=2)
            return _empty_frame()

        values = np.asarray(hvar.isel({hvar.dims[0]: slice(i0, i1)}).values, dtype=float)

    df = pd.DataFrame({
        "time": pd.to_datetime(secs[i0:i1], unit="s", utc=True),
        "value": values,
    })
    df["date_utc"] = df["time"].dt.date
    daily = (df.groupby("date_utc")
               .agg(mean_value=("value", "mean"), n_samples=("time", "count"))
               .reset_index())
    daily.insert(0, "station", station_id)
    print(f"    {station_id}: {i1 - i0:,} samples → {len(daily)} days")
    return daily[AGG_COLUMNS]


def _reduce_job(job):
    sid, path, start_date, end_date, time_var, value_var = job
    return reduce(path, start_date, end_date, station_id=sid,
                  time_var=time_var, value_var=value_var, warn=False)


def reduce_stations(cached, start_date, end_date, config):
    """
    Reduce every cached station file, one task per station.

    ``cached`` maps station id → CachedFile. The pool (processes or threads,
    per ``config.reduce_executor``) is sized by ``config.reduce_worker_ratio``
    and shut down before returning. Returns ``(frames, failures)`` keyed by
    station id; stations whose window is empty are in neither.
    """
    frames, failures = {}, {}
    if not cached:
        return frames, failures
    utc_window(start_date, end_date)

    jobs = [(sid, str(cf.local_path), str(start_date), str(end_date),
             config.time_var, config.value_var) for sid, cf in cached.items()]
    n_workers = workers_for(config.reduce_worker_ratio, len(jobs))
    pool_cls = ProcessPoolExecutor if config.reduce_executor == "process" else ThreadPoolExecutor
    print(f"\n  Reducing {len(jobs)} station files ({n_workers} {config.reduce_executor} workers)")

    with pool_cls(max_workers=n_workers) as ex:
        futs = {ex.submit(_reduce_job, job): job for job in jobs}
        for fut in as_completed(futs):
            sid, path = futs[fut][:2]
            try:
                daily = fut.result()
            except MalformedSourceFile as e:
                failures[sid] = e
                continue
            if daily.empty:
                warnings.warn(f"{sid}: no samples between {start_date} and {end_date} ({path})",
                              EmptyWindow, stacklevel=2)
                continue
            frames[sid] = daily

    for sid, err in failures.items():
        warnings.warn(f"Skipping station {sid}: {err}", StationSkipped, stacklevel=2)
    print(f"  Reduce complete: {len(frames)} stations with data, {len(failures)} failed")
    return frames, failures
