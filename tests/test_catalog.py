import pytest
import requests

from cdip_waves.catalog import fetch_catalog, parse_catalog
from cdip_waves.errors import CatalogParseError, CatalogUnavailable
from cdip_waves.models import Station

from conftest import CATALOG_XML, FakeResponse

URL = "http://test.invalid/metadata.xml"


def test_parse_keeps_only_mop_stations():
    stations = parse_catalog(CATALOG_XML)
    assert [s.id for s in stations] == ["MOP_S1", "MOP_S2", "MOP_S3"]
    assert stations[0] == Station("MOP_S1", 34.01, -119.01)


def test_parse_drops_entries_with_bad_coordinates_and_duplicates():
    xml = b"""<root>
      <station name="MOP_A" latitude="33.0" longitude="-117.5"/>
      <station name="MOP_B" latitude="" longitude="-117.5"/>
      <station name="MOP_C" longitude="-117.5"/>
      <station name="MOP_A" latitude="0" longitude="0"/>
    </root>"""
    stations = parse_catalog(xml)
    assert stations == [Station("MOP_A", 33.0, -117.5)]


def test_parse_no_matching_family_is_empty_not_error():
    xml = '<root><station name="100p1" latitude="1" longitude="2"/></root>'
    assert parse_catalog(xml) == []


def test_parse_custom_family():
    assert [s.id for s in parse_catalog(CATALOG_XML, family="p1")] == ["067p1"]


@pytest.mark.parametrize("payload", [b"<html><body>oops", b"{\"stations\": []}", b"<root/>"])
def test_parse_rejects_non_station_xml(payload):
    with pytest.raises(CatalogParseError):
        parse_catalog(payload)


def test_fetch_catalog(fake_server):
    fake_server.routes[URL] = CATALOG_XML.encode()
    stations = fetch_catalog(URL)
    assert len(stations) == 3
    assert fake_server.count(URL) == 1


def test_fetch_catalog_http_error(fake_server):
    fake_server.routes[URL] = lambda: FakeResponse(b"", status_code=503)
    with pytest.raises(CatalogUnavailable):
        fetch_catalog(URL)


def test_fetch_catalog_unreachable(fake_server):
    fake_server.routes[URL] = requests.exceptions.ConnectionError("no route")
    with pytest.raises(CatalogUnavailable, match="no route"):
        fetch_catalog(URL)


def test_fetch_catalog_garbage_payload(fake_server):
    fake_server.routes[URL] = b"Service temporarily unavailable"
    with pytest.raises(CatalogParseError):
        fetch_catalog(URL)
