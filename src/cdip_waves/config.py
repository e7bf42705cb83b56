"""
Run configuration
=================
Defaults for the CDIP MOP alongshore hindcast pipeline, plus a
``PipelineConfig`` that carries them explicitly into every phase.

Environment overrides (all optional):
    CDIP_METADATA_URL, CDIP_URL_TEMPLATE, CDIP_CACHE_DIR, CDIP_MIN_FILE_BYTES,
    CDIP_WINDOW_MARGIN_DEG, CDIP_FETCH_TIMEOUT_S, CDIP_MAX_RETRIES,
    CDIP_FETCH_WORKER_RATIO, CDIP_REDUCE_WORKER_RATIO, CDIP_REDUCE_EXECUTOR
"""
import math
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path

# ─── CDIP endpoints ──────────────────────────────────────────────────────────
METADATA_URL = "http://cdip.ucsd.edu/data_access/metadata.xml"
HINDCAST_URL_TEMPLATE = (
    "https://thredds.cdip.ucsd.edu/thredds/fileServer/cdip/model/"
    "MOP_alongshore/{station}_hindcast.nc"
)

# Only MOP (alongshore model output points) stations carry the hindcast files
STATION_FAMILY = "MOP"

# ─── Local cache ─────────────────────────────────────────────────────────────
DEFAULT_CACHE_DIR = Path("cdip_data")
CACHE_FILE_TEMPLATE = "{station}_hindcast.nc"
MIN_FILE_BYTES = 151000 * 1024   # a complete MOP hindcast file is larger

# ─── Matching ────────────────────────────────────────────────────────────────
WINDOW_MARGIN_DEG = 0.2
EARTH_RADIUS_M = 6378137.0

# ─── Network ─────────────────────────────────────────────────────────────────
CATALOG_TIMEOUT_S = 60
FETCH_TIMEOUT_S = 600
MAX_RETRIES = 3
RETRY_DELAYS = (5, 15, 45)  # seconds
CHUNK_BYTES = 1024 * 1024

# ─── Parallelism ─────────────────────────────────────────────────────────────
# Fetching is bound by the remote server, reduction by local CPU / disk
FETCH_WORKER_RATIO = 0.2
REDUCE_WORKER_RATIO = 0.8
EXECUTORS = ("process", "thread")

# ─── NetCDF variables ────────────────────────────────────────────────────────
TIME_VAR = "waveTime"
VALUE_VAR = "waveHs"


def available_cpus():
    """CPUs this process may run on (affinity-aware where the OS reports it)."""
    if hasattr(os, "sched_getaffinity"):
        return len(os.sched_getaffinity(0)) or 1
    return os.cpu_count() or 1


def workers_for(ratio, n_tasks, cpu_count=None):
    """Pool size for a phase: ceil(cpus * ratio), clamped to [1, n_tasks]."""
    cpus = cpu_count or available_cpus()
    n = math.ceil(cpus * ratio)
    return max(1, min(n, max(n_tasks, 1)))


@dataclass(frozen=True)
class PipelineConfig:
    metadata_url: str = METADATA_URL
    station_family: str = STATION_FAMILY
    url_template: str = HINDCAST_URL_TEMPLATE
    cache_dir: Path = DEFAULT_CACHE_DIR
    file_template: str = CACHE_FILE_TEMPLATE
    min_file_bytes: int = MIN_FILE_BYTES
    window_margin_deg: float = WINDOW_MARGIN_DEG
    fallback_to_full_catalog: bool = False
    catalog_timeout_s: float = CATALOG_TIMEOUT_S
    fetch_timeout_s: float = FETCH_TIMEOUT_S
    max_retries: int = MAX_RETRIES
    retry_delays: tuple = field(default=RETRY_DELAYS)
    fetch_worker_ratio: float = FETCH_WORKER_RATIO
    reduce_worker_ratio: float = REDUCE_WORKER_RATIO
    reduce_executor: str = "process"
    time_var: str = TIME_VAR
    value_var: str = VALUE_VAR

    def __post_init__(self):
        object.__setattr__(self, "cache_dir", Path(self.cache_dir))
        if self.reduce_executor not in EXECUTORS:
            raise ValueError(f"reduce_executor must be one of {EXECUTORS}, "
                             f"got {self.reduce_executor!r}")
        if self.window_margin_deg < 0:
            raise ValueError("window_margin_deg must be >= 0")
        if self.max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        for name in ("fetch_worker_ratio", "reduce_worker_ratio"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")

    def with_overrides(self, **kwargs):
        """Copy with the non-None keyword arguments applied."""
        return replace(self, **{k: v for k, v in kwargs.items() if v is not None})

    @classmethod
    def from_env(cls, environ=None):
        """Build a config from ``CDIP_*`` environment variables."""
        environ = os.environ if environ is None else environ
        env_names = {
            "metadata_url": "CDIP_METADATA_URL",
            "url_template": "CDIP_URL_TEMPLATE",
            "cache_dir": "CDIP_CACHE_DIR",
            "min_file_bytes": "CDIP_MIN_FILE_BYTES",
            "window_margin_deg": "CDIP_WINDOW_MARGIN_DEG",
            "fetch_timeout_s": "CDIP_FETCH_TIMEOUT_S",
            "max_retries": "CDIP_MAX_RETRIES",
            "fetch_worker_ratio": "CDIP_FETCH_WORKER_RATIO",
            "reduce_worker_ratio": "CDIP_REDUCE_WORKER_RATIO",
            "reduce_executor": "CDIP_REDUCE_EXECUTOR",
        }
        types = {f.name: f.type for f in fields(cls)}
        kwargs = {}
        for attr, env in env_names.items():
            raw = environ.get(env)
            if raw is None or raw == "":
                continue
            kind = types[attr]
            if kind is int:
                kwargs[attr] = int(raw)
            elif kind is float:
                kwargs[attr] = float(raw)
            elif kind is Path:
                kwargs[attr] = Path(raw)
            else:
                kwargs[attr] = raw
        return cls(**kwargs)
