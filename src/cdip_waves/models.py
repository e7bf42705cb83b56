"""Record types passed between pipeline stages."""
from dataclasses import dataclass
from pathlib import Path

# Column names of the per-station daily aggregate and the final table
AGG_COLUMNS = ["station", "date_utc", "mean_value", "n_samples"]
RESULT_COLUMNS = ["site", "date_utc", "mean_value"]


@dataclass(frozen=True)
class Site:
    name: str
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Station:
    id: str
    latitude: float
    longitude: float


@dataclass(frozen=True)
class SiteStationMatch:
    site: Site
    station: Station
    distance_m: float


@dataclass(frozen=True)
class CachedFile:
    station_id: str
    url: str
    local_path: Path
    size_bytes: int
    downloaded: bool = False  # False when served from the existing cache
