"""Speedtest service - measures latency and bandwidth with speedtest-cli.

The client location and the server list come from the two configurable
discovery URLs; the transfer itself (latency checks, threaded download and
upload) is done by ``speedtest.Speedtest``. The best server is selected once
at construction and re-checked for latency on every ``measure()``.
"""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Any, Final

import requests
import speedtest

from config import VERSION


DEFAULT_TIMEOUT: Final[float] = 30.0
DEFAULT_CLOSEST_SERVERS: Final[int] = 5
USER_AGENT: Final[str] = f"speedtest-exporter/{VERSION}"


class SpeedtestError(Exception):
    """Raised when the speedtest service cannot be reached or returns garbage."""


@dataclass(frozen=True)
class MeasurementReading:
    """One complete measurement: ping in ms, download/upload in Mbps."""
    ping: float
    download: float
    upload: float


def _has_coordinates(attrib: dict[str, str]) -> bool:
    try:
        float(attrib.get("lat", "")), float(attrib.get("lon", ""))
    except ValueError:
        return False
    return True


def parse_client_config(xml_text: str | bytes) -> dict[str, str]:
    """Attributes of the ``<client>`` element (ip, lat, lon, isp, ...)."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise SpeedtestError(f"Invalid speedtest configuration: {exc}") from exc

    client = root.find("client")
    if client is None:
        raise SpeedtestError("Speedtest configuration has no client element")
    if not _has_coordinates(client.attrib):
        raise SpeedtestError(f"Invalid client coordinates: {client.attrib}")
    return dict(client.attrib)


def parse_servers(xml_text: str | bytes) -> list[dict[str, Any]]:
    """Server list as speedtest-cli server dicts. Entries with bad coordinates are skipped."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise SpeedtestError(f"Invalid speedtest server list: {exc}") from exc

    servers: list[dict[str, Any]] = []
    for element in root.iter("server"):
        if not _has_coordinates(element.attrib):
            logging.debug(f"Skipping speedtest server with invalid coordinates: {element.attrib}")
            continue
        servers.append(dict(element.attrib))
    return servers


def _mbps(bits_per_second: float) -> float:
    return bits_per_second / 1_000_000


class SpeedtestClient:
    """Measurement provider backed by speedtest-cli.

    Example:
        client = SpeedtestClient(config_url, server_url)
        reading = client.measure()
        print(f"{reading.ping:.1f} ms, {reading.download:.1f}/{reading.upload:.1f} Mbps")

    Raises:
        SpeedtestError: on construction when discovery fails or no server answers.
    """

    def __init__(
        self,
        config_url: str,
        server_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        closest_servers: int = DEFAULT_CLOSEST_SERVERS,
    ) -> None:
        logging.debug(f"New speedtest client {config_url} {server_url}")
        self.config_url = config_url
        self.server_url = server_url
        self._timeout = timeout
        self._closest_servers = closest_servers

        logging.debug("Retrieve configuration")
        client_info = parse_client_config(self._fetch(config_url))
        try:
            self._speedtest = speedtest.Speedtest(config={"client": client_info}, timeout=timeout)
        except speedtest.SpeedtestException as exc:
            raise SpeedtestError(f"Speedtest configuration failed: {exc}") from exc

        logging.debug("Retrieve servers")
        ignored = {str(sid) for sid in self._speedtest.config.get("ignore_servers", [])}
        servers = [s for s in parse_servers(self._fetch(server_url)) if s.get("id") not in ignored]
        if not servers:
            raise SpeedtestError("Speedtest server list is empty")

        try:
            self.server = self._speedtest.get_best_server(servers=self.closest(servers))
        except speedtest.SpeedtestException as exc:
            raise SpeedtestError(f"No speedtest server answered the latency check: {exc}") from exc
        logging.info(
            f"Speedtest server: {self.server.get('sponsor')} ({self.server.get('name')}, "
            f"{self.server.get('country')}) {self.server['d']:.1f} km, {self.server['latency']:.2f} ms"
        )

    def _fetch(self, url: str) -> bytes:
        try:
            response = requests.get(url, timeout=self._timeout, headers={"User-Agent": USER_AGENT})
            response.raise_for_status()
        except requests.exceptions.RequestException as exc:
            raise SpeedtestError(f"Failed to fetch {url}: {exc}") from exc
        return response.content

    def closest(self, servers: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Nearest ``closest_servers`` servers, each with its distance ``d`` in km."""
        client = self._speedtest.config["client"]
        origin = (float(client["lat"]), float(client["lon"]))
        for server in servers:
            server["d"] = speedtest.distance(origin, (float(server["lat"]), float(server["lon"])))
        return sorted(servers, key=lambda s: s["d"])[: self._closest_servers]

    def measure(self) -> MeasurementReading:
        """Run one full measurement; raises SpeedtestError instead of returning partial data."""
        try:
            self._speedtest.get_best_server(servers=[self.server])
            download_bps = self._speedtest.download()
            upload_bps = self._speedtest.upload()
        except speedtest.SpeedtestException as exc:
            raise SpeedtestError(f"Speedtest against {self.server.get('url')} failed: {exc}") from exc
        return MeasurementReading(
            ping=float(self._speedtest.results.ping),
            download=_mbps(download_bps),
            upload=_mbps(upload_bps),
        )
