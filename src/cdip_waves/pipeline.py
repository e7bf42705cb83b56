"""
CDIP Wave Height Pipeline
=========================
Site list → nearest MOP station → cached hindcast file → daily mean Hs per
station → daily mean Hs per site.

    from cdip_waves import process
    wave_data = process("sites.csv", "2017-09-01", "2017-09-30")

Catalog failures end the run (``process`` returns None). Per-station fetch
or file problems only drop that station's sites from the table, with a
StationSkipped warning naming the station and its URL or path.
"""
from dataclasses import dataclass, field
from datetime import datetime

import pandas as pd

from .catalog import fetch_catalog
from .config import PipelineConfig
from .errors import CatalogError
from .fetcher import fetch_stations
from .matcher import match
from .models import RESULT_COLUMNS
from .recombine import combine
from .reducer import reduce_stations, utc_window
from .sites_io import read_sites


@dataclass
class PipelineResult:
    table: pd.DataFrame
    matches: list
    failures: dict = field(default_factory=dict)

    @property
    def skipped_sites(self):
        return sorted({m.site.name for m in self.matches if m.station.id in self.failures})


def run_pipeline(sites, start_date, end_date, config=None, catalog=None):
    """
    Run matching, fetch, reduce and recombine for already-parsed sites.

    ``catalog`` may be passed to skip the metadata download. Raises
    CatalogError / NoStationInRange; station-level failures are collected in
    ``PipelineResult.failures``.
    """
    config = config or PipelineConfig()
    utc_window(start_date, end_date)
    sites = list(sites)

    print("\n" + "=" * 70)
    print(f"CDIP WAVE HEIGHT: {len(sites)} sites, {start_date} → {end_date} (UTC)")
    print("=" * 70)

    # ── Step 1: Station catalog ─────────────────────────────────────────────
    if catalog is None:
        catalog = fetch_catalog(config.metadata_url, family=config.station_family,
                                timeout=config.catalog_timeout_s)
    if not catalog:
        raise CatalogError(f"No {config.station_family} stations in catalog "
                           f"{config.metadata_url}")

    # ── Step 2: Nearest station per site ────────────────────────────────────
    print("\n  Matching sites to nearest stations")
    matches = match(sites, catalog, margin=config.window_margin_deg,
                    fallback_to_full_catalog=config.fallback_to_full_catalog)
    station_ids = list(dict.fromkeys(m.station.id for m in matches))

    # ── Step 3: Hindcast files ──────────────────────────────────────────────
    cached, fetch_failures = fetch_stations(station_ids, config)

    # ── Step 4: Daily means per station ─────────────────────────────────────
    frames, reduce_failures = reduce_stations(cached, start_date, end_date, config)

    # ── Step 5: Back onto the sites ─────────────────────────────────────────
    table = combine(frames.values(), matches)
    failures = {**fetch_failures, **reduce_failures}

    result = PipelineResult(table=table, matches=matches, failures=failures)
    print(f"\n  Result: {len(table)} rows for {table['site'].nunique()} of {len(sites)} sites")
    if failures:
        print(f"  Skipped stations: {', '.join(sorted(failures))} "
              f"(sites: {', '.join(result.skipped_sites)})")
    return result


def process(sites_path, start_date, end_date, cache_dir=None, config=None):
    """
    Daily mean significant wave height for every site in ``sites_path``.

    Returns a DataFrame with columns site, date_utc, mean_value, or None if
    the station catalog cannot be obtained.
    """
    config = (config or PipelineConfig()).with_overrides(cache_dir=cache_dir)
    sites = read_sites(sites_path)
    print(f"Started: {datetime.now().isoformat(timespec='seconds')}")
    try:
        result = run_pipeline(sites, start_date, end_date, config=config)
    except CatalogError as e:
        print(f"\n*** Could not retrieve CDIP station metadata: {e} ***")
        return None
    return result.table[RESULT_COLUMNS]
