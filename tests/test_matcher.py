import math

import numpy as np
import pytest

from cdip_waves.errors import NoStationInRange
from cdip_waves.matcher import bounding_window, haversine_m, match, stations_in_window
from cdip_waves.models import Site, Station

SITES = [Site("A", 34.0, -119.0), Site("B", 34.5, -119.5)]
CATALOG = [
    Station("MOP_S1", 34.01, -119.01),
    Station("MOP_S2", 34.49, -119.49),
    Station("MOP_S3", 40.0, -125.0),
]


def test_haversine_one_degree_of_latitude():
    d = haversine_m((0.0, 0.0), (0.0, 1.0))
    assert d == pytest.approx(math.pi / 180 * 6378137.0)


def test_haversine_is_lon_lat_ordered_and_vectorised():
    d = haversine_m([[0.0, 60.0], [0.0, 0.0]], [[1.0, 60.0], [1.0, 0.0]])
    # a degree of longitude shrinks with cos(latitude)
    assert d[0] == pytest.approx(d[1] * 0.5, rel=1e-3)


def test_haversine_zero():
    assert haversine_m((-119.0, 34.0), (-119.0, 34.0)) == 0.0


def test_bounding_window():
    assert bounding_window(SITES, 0.2) == pytest.approx((33.8, 34.7, -119.7, -118.8))


def test_stations_in_window_excludes_far_station():
    window = bounding_window(SITES, 0.2)
    assert [s.id for s in stations_in_window(CATALOG, window)] == ["MOP_S1", "MOP_S2"]


def test_match_picks_nearest_and_reports_haversine_distance():
    matches = match(SITES, CATALOG)
    assert [m.site.name for m in matches] == ["A", "B"]
    assert [m.station.id for m in matches] == ["MOP_S1", "MOP_S2"]
    for m in matches:
        expected = haversine_m((m.site.longitude, m.site.latitude),
                               (m.station.longitude, m.station.latitude))
        assert m.distance_m >= 0
        assert m.distance_m == pytest.approx(float(expected))


def test_match_shared_station():
    sites = [Site("A", 34.0, -119.0), Site("A2", 34.02, -119.02)]
    matches = match(sites, CATALOG)
    assert len(matches) == 2
    assert {m.station.id for m in matches} == {"MOP_S1"}


def test_match_does_not_mutate_inputs():
    sites, catalog = list(SITES), list(CATALOG)
    match(sites, catalog)
    assert sites == SITES and catalog == CATALOG


def test_match_empty_window_raises():
    far = [Site("X", 10.0, 10.0)]
    with pytest.raises(NoStationInRange) as exc:
        match(far, CATALOG)
    assert exc.value.sites == ["X"]
    assert exc.value.window == pytest.approx((9.8, 10.2, 9.8, 10.2))


def test_match_fallback_to_full_catalog():
    far = [Site("X", 39.0, -124.0)]
    (m,) = match(far, CATALOG, fallback_to_full_catalog=True)
    assert m.station.id == "MOP_S3"


def test_match_empty_catalog_raises_even_with_fallback():
    with pytest.raises(NoStationInRange):
        match(SITES, [], fallback_to_full_catalog=True)


def test_wider_margin_finds_station_outside_default_window():
    site = [Site("C", 34.0, -119.3)]
    catalog = [Station("MOP_FAR", 34.0, -119.55)]
    with pytest.raises(NoStationInRange):
        match(site, catalog, margin=0.2)
    (m,) = match(site, catalog, margin=0.3)
    assert m.station.id == "MOP_FAR"


def test_match_no_sites():
    assert match([], CATALOG) == []


def test_match_single_site_single_candidate():
    (m,) = match([Site("A", 34.0, -119.0)], [Station("MOP_S1", 34.01, -119.01)])
    assert m.station.id == "MOP_S1"
    assert np.isfinite(m.distance_m)
