"""
Nearest-station matching
========================
Pairs every site with its closest catalog station.

Candidates are first restricted to a lat/lon box around the sites
(``margin`` degrees beyond the sites' extent), then a k-d tree over the
candidates' (lat, lon) picks the nearest one in degree space. The reported
distance is the great-circle (Haversine) distance for that pair.

Note: the box is a shortcut. A station just outside it can be nearer than
the one chosen inside it; widen ``margin`` when sites sit near the box edge.
Ties in the tree query resolve to whichever equidistant candidate
``cKDTree`` returns for the catalog order given, which is stable for a
given catalog.
"""
import numpy as np
from scipy.spatial import cKDTree

from .config import EARTH_RADIUS_M, WINDOW_MARGIN_DEG
from .errors import NoStationInRange
from .models import SiteStationMatch


def haversine_m(lonlat1, lonlat2, radius=EARTH_RADIUS_M):
    """Great-circle distance in metres between (lon, lat) points (vectorised)."""
    p1 = np.radians(np.asarray(lonlat1, dtype=float))
    p2 = np.radians(np.asarray(lonlat2, dtype=float))
    lon1, lat1 = p1[..., 0], p1[..., 1]
    lon2, lat2 = p2[..., 0], p2[..., 1]
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = (np.sin(dlat / 2) ** 2 +
         np.cos(lat1) * np.cos(lat2) * np.sin(dlon / 2) ** 2)
    return radius * 2 * np.arctan2(np.sqrt(a), np.sqrt(np.clip(1 - a, 0, None)))


def bounding_window(sites, margin=WINDOW_MARGIN_DEG):
    """(lat_lo, lat_hi, lon_lo, lon_hi) enclosing all sites plus ``margin``."""
    lats = [s.latitude for s in sites]
    lons = [s.longitude for s in sites]
    return (min(lats) - margin, max(lats) + margin,
            min(lons) - margin, max(lons) + margin)


def stations_in_window(catalog, window):
    lat_lo, lat_hi, lon_lo, lon_hi = window
    return [st for st in catalog
            if lat_lo <= st.latitude <= lat_hi and lon_lo <= st.longitude <= lon_hi]


def match(sites, catalog, margin=WINDOW_MARGIN_DEG, fallback_to_full_catalog=False):
    """
    Return one SiteStationMatch per site, in site order.

    Raises NoStationInRange if no candidate station is left after the window
    filter (or, with ``fallback_to_full_catalog``, if the catalog is empty).
    """
    sites = list(sites)
    if not sites:
        return []

    window = bounding_window(sites, margin)
    candidates = stations_in_window(catalog, window)
    if not candidates and fallback_to_full_catalog:
        print(f"  No station inside ±{margin}° window, searching the full catalog")
        candidates = list(catalog)
    if not candidates:
        raise NoStationInRange([s.name for s in sites], window)

    cand_pts = np.array([[st.latitude, st.longitude] for st in candidates])
    site_pts = np.array([[s.latitude, s.longitude] for s in sites])
    tree = cKDTree(cand_pts)
    _, idx = tree.query(site_pts, k=1)
    idx = np.atleast_1d(idx)

    nearest = [candidates[i] for i in idx]
    distances = haversine_m(
        site_pts[:, ::-1],
        np.array([[st.longitude, st.latitude] for st in nearest]),
    )

    matches = []
    for site, station, dist in zip(sites, nearest, distances):
        matches.append(SiteStationMatch(site=site, station=station, distance_m=float(dist)))
        print(f"    {site.name} → {station.id} ({dist / 1000:.2f} km)")
    print(f"  Matched {len(sites)} sites to {len({m.station.id for m in matches})} stations "
          f"({len(candidates)} candidates)")
    return matches
