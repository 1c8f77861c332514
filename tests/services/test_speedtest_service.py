"""Tests for the speedtest-cli measurement provider."""
import pytest
import requests
import speedtest

from services import speedtest_service
from services.speedtest_service import (
    MeasurementReading,
    SpeedtestClient,
    SpeedtestError,
    parse_client_config,
    parse_servers,
)

CONFIG_URL = "http://config.test/speedtest-config.php?x=abc"
SERVER_URL = "http://config.test/speedtest-servers-static.php?x=abc"

CONFIG_XML = """<?xml version="1.0" encoding="UTF-8"?>
<settings>
  <client ip="203.0.113.7" lat="52.5200" lon="13.4050" isp="Example ISP" />
</settings>
"""

SERVERS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<settings>
  <servers>
    <server url="http://berlin.test:8080/speedtest/upload.php" lat="52.5" lon="13.4" name="Berlin" country="Germany" sponsor="Berlin Net" id="1" />
    <server url="http://hamburg.test/speedtest/upload.php" lat="53.55" lon="9.99" name="Hamburg" country="Germany" sponsor="Hamburg Net" id="2" />
    <server url="http://newyork.test/speedtest/upload.php" lat="40.71" lon="-74.00" name="New York" country="United States" sponsor="NY Net" id="3" />
    <server url="http://ignored.test/speedtest/upload.php" lat="52.52" lon="13.405" name="Ignored" country="Germany" sponsor="Ignored" id="4" />
    <server url="http://broken.test/speedtest/upload.php" lat="n/a" lon="13.4" name="Broken" country="Germany" sponsor="Broken" id="5" />
  </servers>
</settings>
"""


class MockResponse:
    def __init__(self, content="", status_code=200):
        self.content = content.encode()
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")


class FakeResults:
    ping = 0.0


class FakeSpeedtest:
    """Stands in for speedtest.Speedtest: scripted latencies and transfer rates."""

    latencies = {"1": 20.0, "2": 12.0, "3": 95.0}
    download_bps = 50_000_000.0
    upload_bps = 10_000_000.0
    config_error = None
    transfer_error = None
    instances = []

    def __init__(self, config=None, timeout=10, **kwargs):
        if self.config_error is not None:
            raise self.config_error
        self.config = {"client": config["client"], "ignore_servers": [4, 99]}
        self.timeout = timeout
        self.results = FakeResults()
        self.best_server_calls = []
        FakeSpeedtest.instances.append(self)

    def get_best_server(self, servers=None):
        self.best_server_calls.append([s["id"] for s in servers])
        answering = [s for s in servers if s["id"] in self.latencies]
        if not answering:
            raise speedtest.SpeedtestBestServerFailure("Unable to connect to servers to test latency.")
        best = min(answering, key=lambda s: self.latencies[s["id"]])
        best["latency"] = self.latencies[best["id"]]
        self.results.ping = best["latency"]
        return best

    def download(self):
        if self.transfer_error is not None:
            raise self.transfer_error
        return self.download_bps

    def upload(self):
        return self.upload_bps


@pytest.fixture
def fake(monkeypatch):
    documents = {CONFIG_URL: CONFIG_XML, SERVER_URL: SERVERS_XML}

    def mock_get(url, timeout=None, headers=None):
        assert timeout is not None
        assert headers["User-Agent"].startswith("speedtest-exporter/")
        return MockResponse(documents[url])

    FakeSpeedtest.instances = []
    monkeypatch.setattr(requests, "get", mock_get)
    monkeypatch.setattr(speedtest, "Speedtest", FakeSpeedtest)
    return documents


def make_client(**kwargs):
    kwargs.setdefault("closest_servers", 2)
    return SpeedtestClient(CONFIG_URL, SERVER_URL, timeout=7.0, **kwargs)


def test_parse_client_config():
    info = parse_client_config(CONFIG_XML)
    assert info["ip"] == "203.0.113.7"
    assert info["isp"] == "Example ISP"
    assert (info["lat"], info["lon"]) == ("52.5200", "13.4050")


def test_parse_client_config_rejects_garbage():
    with pytest.raises(SpeedtestError):
        parse_client_config("<html>not xml")
    with pytest.raises(SpeedtestError):
        parse_client_config("<settings><foo/></settings>")
    with pytest.raises(SpeedtestError):
        parse_client_config('<settings><client lat="x" lon="1"/></settings>')


def test_parse_servers_skips_invalid_coordinates():
    servers = parse_servers(SERVERS_XML)
    assert [s["id"] for s in servers] == ["1", "2", "3", "4"]
    assert servers[0]["url"] == "http://berlin.test:8080/speedtest/upload.php"


def test_client_location_comes_from_config_url(fake):
    make_client()

    st = FakeSpeedtest.instances[0]
    assert st.timeout == 7.0
    assert st.config["client"]["ip"] == "203.0.113.7"


def test_best_server_chosen_among_nearest(fake):
    client = make_client()

    # id 4 is ignored by the speedtest config; Berlin and Hamburg are the two nearest
    assert FakeSpeedtest.instances[0].best_server_calls == [["1", "2"]]
    assert client.server["id"] == "2"
    assert client.server["d"] == pytest.approx(255, abs=10)


def test_closest_orders_by_distance(fake):
    client = make_client(closest_servers=3)
    nearest = client.closest(parse_servers(SERVERS_XML))
    assert [s["id"] for s in nearest] == ["4", "1", "2"]


def test_measure_converts_to_mbps(fake):
    client = make_client()

    reading = client.measure()

    assert reading == MeasurementReading(ping=12.0, download=50.0, upload=10.0)
    # latency is re-measured against the selected server on every measurement
    assert FakeSpeedtest.instances[0].best_server_calls[-1] == ["2"]


def test_measure_wraps_library_errors(fake, monkeypatch):
    client = make_client()
    monkeypatch.setattr(FakeSpeedtest, "transfer_error", speedtest.SpeedtestException("socket closed"))

    with pytest.raises(SpeedtestError, match="socket closed"):
        client.measure()


def test_construction_fails_when_config_unreachable(monkeypatch):
    def mock_get(*args, **kwargs):
        raise requests.exceptions.ConnectionError("Mock failure")

    monkeypatch.setattr(requests, "get", mock_get)
    monkeypatch.setattr(speedtest, "Speedtest", FakeSpeedtest)
    with pytest.raises(SpeedtestError):
        make_client()


def test_construction_fails_when_library_config_fails(fake, monkeypatch):
    monkeypatch.setattr(FakeSpeedtest, "config_error", speedtest.ConfigRetrievalError("403"))
    with pytest.raises(SpeedtestError):
        make_client()


def test_construction_fails_on_empty_server_list(fake):
    fake[SERVER_URL] = "<settings><servers></servers></settings>"
    with pytest.raises(SpeedtestError, match="empty"):
        make_client()


def test_construction_fails_when_no_server_answers(fake, monkeypatch):
    monkeypatch.setattr(FakeSpeedtest, "latencies", {})
    with pytest.raises(SpeedtestError):
        make_client(closest_servers=5)


def test_mbps_conversion():
    assert speedtest_service._mbps(8_000_000) == 8.0
    assert speedtest_service._mbps(0) == 0.0
