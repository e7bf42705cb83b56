"""
CDIP Station Catalog
====================
Downloads CDIP's station metadata XML and keeps the stations that belong to
the MOP alongshore family (the ones with hindcast files on THREDDS).

The metadata document lists ``<station name=... latitude=... longitude=...>``
elements; anything else in the document is ignored.
"""
import requests
from lxml import etree

from .config import CATALOG_TIMEOUT_S, METADATA_URL, STATION_FAMILY
from .errors import CatalogParseError, CatalogUnavailable
from .models import Station


def parse_catalog(payload, family=STATION_FAMILY):
    """
    Parse metadata XML (bytes or str) into Station records.

    Entries whose name does not contain ``family``, or whose coordinates are
    missing or non-numeric, are dropped. Duplicate names keep the first entry.
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    try:
        root = etree.fromstring(payload)
    except (etree.XMLSyntaxError, ValueError) as e:
        raise CatalogParseError(f"Station metadata is not valid XML: {e}") from e

    elements = root.findall(".//station")
    if root.tag == "station":
        elements.insert(0, root)
    if not elements:
        raise CatalogParseError("Station metadata contains no <station> entries")

    stations = []
    seen = set()
    for el in elements:
        sid = el.get("name")
        if not sid or family not in sid or sid in seen:
            continue
        try:
            lat = float(el.get("latitude"))
            lon = float(el.get("longitude"))
        except (TypeError, ValueError):
            continue
        seen.add(sid)
        stations.append(Station(id=sid, latitude=lat, longitude=lon))
    return stations


def fetch_catalog(url=METADATA_URL, family=STATION_FAMILY, timeout=CATALOG_TIMEOUT_S):
    """Download and parse the station catalog. One GET, nothing cached."""
    print(f"  Downloading station metadata from {url}")
    try:
        r = requests.get(url, timeout=timeout)
        r.raise_for_status()
    except requests.exceptions.RequestException as e:
        raise CatalogUnavailable(f"Station metadata unavailable from {url}: {e}") from e

    stations = parse_catalog(r.content, family=family)
    print(f"  Catalog: {len(stations)} {family} stations")
    return stations
