"""Daily mean wave height for named sites from CDIP MOP hindcasts."""
from .config import PipelineConfig
from .errors import (CatalogError, CatalogParseError, CatalogUnavailable, CdipError,
                     EmptyWindow, FetchFailure, MalformedSourceFile, NoStationInRange,
                     SitesFileError, StationError, StationSkipped)
from .models import CachedFile, Site, SiteStationMatch, Station
from .pipeline import PipelineResult, process, run_pipeline

__version__ = "0.1.0"
