"""Error and warning types raised by the wave pipeline."""


class CdipError(Exception):
    """Base class for all pipeline errors."""


# ─── Catalog (fatal: no catalog, no run) ─────────────────────────────────────

class CatalogError(CdipError):
    pass


class CatalogUnavailable(CatalogError):
    """Metadata endpoint unreachable or returned a non-success status."""


class CatalogParseError(CatalogError):
    """Metadata payload is not the expected station XML."""


# ─── Matching ────────────────────────────────────────────────────────────────

class NoStationInRange(CdipError):
    """No catalog station falls inside the search window around the sites."""

    def __init__(self, sites, window):
        self.sites = list(sites)
        self.window = window
        lat_lo, lat_hi, lon_lo, lon_hi = window
        super().__init__(
            f"No station within lat [{lat_lo:.3f}, {lat_hi:.3f}], "
            f"lon [{lon_lo:.3f}, {lon_hi:.3f}] for sites: {', '.join(self.sites)}"
        )


# ─── Per-station (recoverable: station is excluded) ──────────────────────────

class StationError(CdipError):
    def __init__(self, station_id, location, reason):
        self.station_id = station_id
        self.location = str(location)
        self.reason = reason
        super().__init__(f"{station_id}: {reason} ({self.location})")

    def __reduce__(self):
        # rebuilt from these fields when returned by a process-pool worker
        return (self.__class__, (self.station_id, self.location, self.reason))


class FetchFailure(StationError):
    """Hindcast file could not be downloaded."""


class MalformedSourceFile(StationError):
    """Hindcast file lacks a usable time or value axis."""


# ─── Input ───────────────────────────────────────────────────────────────────

class SitesFileError(CdipError):
    """Site list unreadable or missing the site/lat/long columns."""


# ─── Warnings ────────────────────────────────────────────────────────────────

class StationSkipped(UserWarning):
    """A station was dropped from the run after a recoverable failure."""


class EmptyWindow(UserWarning):
    """A station has no samples inside the requested date window."""
