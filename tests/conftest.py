from pathlib import Path

import numpy as np
import pandas as pd
import pytest
import requests
import xarray as xr

from cdip_waves.config import PipelineConfig

EPOCH = pd.Timestamp("1970-01-01", tz="UTC")

CATALOG_XML = """<?xml version="1.0"?>
<cdip>
  <stations>
    <station name="MOP_S1" latitude="34.01" longitude="-119.01"/>
    <station name="MOP_S2" latitude="34.49" longitude="-119.49"/>
    <station name="MOP_S3" latitude="40.0" longitude="-125.0"/>
    <station name="067p1" latitude="34.0" longitude="-119.0"/>
  </stations>
</cdip>
"""


def write_hindcast(path, start, hours, values=None, time_var="waveTime", value_var="waveHs",
                   units="seconds since 1970-01-01 00:00:00 UTC"):
    """Hourly synthetic hindcast starting at ``start`` (UTC)."""
    t0 = (pd.Timestamp(start, tz="UTC") - EPOCH).total_seconds()
    secs = (t0 + 3600 * np.arange(hours)).astype("int64")
    if values is None:
        values = np.full(hours, 1.5)
    ds = xr.Dataset(
        {value_var: (time_var, np.asarray(values, dtype="float32"))},
        coords={time_var: (time_var, secs, {"units": units})},
    )
    ds.to_netcdf(path)
    return Path(path)


class FakeResponse:
    def __init__(self, content=b"", status_code=200, headers=None):
        self.content = content
        self.status_code = status_code
        self.headers = {"Content-Length": str(len(content))} if headers is None else headers

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i:i + chunk_size]

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeServer:
    """Stands in for ``requests.get``; routes URLs to canned responses."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []
        self.kwargs = []

    def __call__(self, url, **kwargs):
        self.calls.append(url)
        self.kwargs.append(kwargs)
        handler = self.routes.get(url)
        if handler is None:
            return FakeResponse(b"not found", status_code=404)
        if isinstance(handler, BaseException):
            raise handler
        if callable(handler):
            return handler()
        return FakeResponse(handler)

    def count(self, url):
        return self.calls.count(url)


@pytest.fixture
def fake_server(monkeypatch):
    server = FakeServer()
    monkeypatch.setattr(requests, "get", server)
    return server


@pytest.fixture
def no_sleep(monkeypatch):
    monkeypatch.setattr("cdip_waves.fetcher.time.sleep", lambda s: None)


@pytest.fixture
def test_config(tmp_path):
    return PipelineConfig(
        metadata_url="http://test.invalid/metadata.xml",
        url_template="http://test.invalid/thredds/{station}_hindcast.nc",
        cache_dir=tmp_path / "cache",
        min_file_bytes=1,
        max_retries=1,
        retry_delays=(0,),
        reduce_executor="thread",
    )
