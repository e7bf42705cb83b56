"""
Hindcast file cache
===================
Maps a station id to its THREDDS fileServer URL and a local cache path, and
downloads the file only when the cached copy is missing or too small to be a
complete hindcast (a truncated earlier download).

Downloads stream into ``<file>.part`` (unencoded, within ``timeout`` overall)
and are moved into place only once the byte count matches the server's
Content-Length (when it sends one), so an interrupted transfer never looks
like a cached file.
"""
import os
import time
import warnings
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from time import monotonic

import requests

from .config import (CACHE_FILE_TEMPLATE, CHUNK_BYTES, FETCH_TIMEOUT_S,
                     HINDCAST_URL_TEMPLATE, MAX_RETRIES, MIN_FILE_BYTES,
                     RETRY_DELAYS, workers_for)
from .errors import FetchFailure, StationSkipped
from .models import CachedFile


def station_url(station_id, url_template=HINDCAST_URL_TEMPLATE):
    return url_template.format(station=station_id)


def cache_path(station_id, cache_dir, file_template=CACHE_FILE_TEMPLATE):
    return Path(cache_dir) / file_template.format(station=station_id)


def _download(url, path, timeout):
    """
    Stream ``url`` to ``path`` via a .part file. Returns bytes written.

    ``timeout`` bounds each socket read and also the whole transfer.
    """
    part = path.with_name(path.name + ".part")
    started = monotonic()
    try:
        with requests.get(url, stream=True, timeout=timeout,
                          headers={"Accept-Encoding": "identity"}) as r:
            r.raise_for_status()
            # Content-Length counts encoded bytes; only comparable when unencoded
            encoding = r.headers.get("Content-Encoding", "identity").lower()
            expected = r.headers.get("Content-Length") if encoding == "identity" else None
            written = 0
            with open(part, "wb") as fh:
                for chunk in r.iter_content(chunk_size=CHUNK_BYTES):
                    if chunk:
                        fh.write(chunk)
                        written += len(chunk)
                    if monotonic() - started > timeout:
                        raise IOError(f"transfer exceeded {timeout}s after {written} bytes")
        if expected is not None and int(expected) != written:
            raise IOError(f"incomplete transfer: {written} of {expected} bytes")
        os.replace(part, path)
        return written
    finally:
        if part.exists():
            part.unlink()


def _retryable(exc):
    if isinstance(exc, requests.exceptions.HTTPError):
        status = exc.response.status_code if exc.response is not None else None
        return status is None or status >= 500 or status == 429
    return isinstance(exc, (requests.exceptions.RequestException, IOError))


def ensure_local(station_id, url_template=HINDCAST_URL_TEMPLATE, cache_dir=".",
                 min_bytes=MIN_FILE_BYTES, timeout=FETCH_TIMEOUT_S,
                 max_retries=MAX_RETRIES, retry_delays=RETRY_DELAYS,
                 file_template=CACHE_FILE_TEMPLATE):
    """
    Return a CachedFile for ``station_id``, downloading only if needed.

    A file at the cache path of at least ``min_bytes`` is reused without any
    network I/O. Raises FetchFailure when every download attempt fails.
    """
    url = station_url(station_id, url_template)
    path = cache_path(station_id, cache_dir, file_template)
    path.parent.mkdir(parents=True, exist_ok=True)

    if path.exists():
        size = path.stat().st_size
        if size >= min_bytes:
            print(f"    {station_id}: cached ({size / 1024:,.0f} KB), skipping download")
            return CachedFile(station_id, url, path, size, downloaded=False)
        print(f"    {station_id}: cached file too small ({size / 1024:,.0f} KB), re-downloading")

    last_error = None
    for attempt in range(max_retries):
        try:
            print(f"    {station_id}: downloading {url}")
            size = _download(url, path, timeout)
            if size < min_bytes:
                print(f"    {station_id}: downloaded {size / 1024:,.0f} KB "
                      f"(below the {min_bytes / 1024:,.0f} KB cache threshold)")
            else:
                print(f"    {station_id}: downloaded {size / 1024:,.0f} KB")
            return CachedFile(station_id, url, path, size, downloaded=True)
        except (requests.exceptions.RequestException, IOError) as e:
            last_error = e
            if not _retryable(e) or attempt == max_retries - 1:
                break
            delay = retry_delays[min(attempt, len(retry_delays) - 1)] if retry_delays else 0
            print(f"    {station_id}: attempt {attempt + 1}/{max_retries} failed "
                  f"({type(e).__name__}), retrying in {delay}s...")
            time.sleep(delay)

    raise FetchFailure(station_id, url, f"download failed: {last_error}")


def fetch_stations(station_ids, config):
    """
    Make sure every station's hindcast is in ``config.cache_dir``.

    Runs on a thread pool sized by ``config.fetch_worker_ratio``; the pool is
    shut down before returning. Returns ``(cached, failures)``, both dicts
    keyed by station id. Each failure is also emitted as a StationSkipped
    warning.
    """
    station_ids = list(dict.fromkeys(station_ids))
    cached, failures = {}, {}
    if not station_ids:
        return cached, failures

    n_workers = workers_for(config.fetch_worker_ratio, len(station_ids))
    print(f"\n  Fetching {len(station_ids)} hindcast files ({n_workers} workers)")
    with ThreadPoolExecutor(max_workers=n_workers) as ex:
        futs = {
            ex.submit(
                ensure_local, sid,
                url_template=config.url_template,
                cache_dir=config.cache_dir,
                min_bytes=config.min_file_bytes,
                timeout=config.fetch_timeout_s,
                max_retries=config.max_retries,
                retry_delays=config.retry_delays,
                file_template=config.file_template,
            ): sid
            for sid in station_ids
        }
        for fut in as_completed(futs):
            sid = futs[fut]
            try:
                cached[sid] = fut.result()
            except FetchFailure as e:
                failures[sid] = e

    for sid, err in failures.items():
        warnings.warn(f"Skipping station {sid}: {err}", StationSkipped, stacklevel=2)
    print(f"  Fetch complete: {len(cached)} ready, {len(failures)} failed")
    return cached, failures
