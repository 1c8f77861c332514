"""
Command-line entry point for the speedtest Prometheus exporter.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import Sequence

from pydantic import ValidationError
from rich.console import Console

from config import VERSION, Settings, load_settings


def build_parser() -> argparse.ArgumentParser:
    """Flags use the single-dash Go-style spelling; ``--`` aliases work too."""
    parser = argparse.ArgumentParser(
        description="Speedtest Prometheus exporter - publishes ping, download and upload as gauges",
        prog="speedtest_exporter",
        allow_abbrev=False,
    )
    parser.add_argument(
        "-version", "--version",
        dest="version",
        action="store_true",
        help="Print version information.",
    )
    parser.add_argument(
        "-web.listen-address", "--web.listen-address",
        dest="listen_address",
        help="Address to listen on for web interface and telemetry (default: :9112).",
    )
    parser.add_argument(
        "-web.telemetry-path", "--web.telemetry-path",
        dest="telemetry_path",
        help="Path under which to expose metrics (default: /metrics).",
    )
    parser.add_argument(
        "-speedtest.config-url", "--speedtest.config-url",
        dest="config_url",
        help="Speedtest configuration URL.",
    )
    parser.add_argument(
        "-speedtest.server-url", "--speedtest.server-url",
        dest="server_url",
        help="Speedtest server URL.",
    )
    return parser


def version_string() -> str:
    return f"Speedtest Prometheus exporter. v{VERSION}"


def configure_logging(settings: Settings) -> None:
    """Configure root logging once: stderr by default, ``LOG_FILE`` when set."""
    kwargs: dict = {}
    if settings.LOG_FILE:
        log_dir = os.path.dirname(settings.LOG_FILE)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        kwargs.update(filename=settings.LOG_FILE, filemode="a", encoding="utf-8")

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL),
        format="%(asctime)s %(levelname)s %(message)s",
        **kwargs,
    )


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point for the speedtest exporter."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        Console(highlight=False).print(version_string())
        sys.exit(0)

    try:
        settings = load_settings(
            WEB_LISTEN_ADDRESS=args.listen_address,
            WEB_TELEMETRY_PATH=args.telemetry_path,
            SPEEDTEST_CONFIG_URL=args.config_url,
            SPEEDTEST_SERVER_URL=args.server_url,
        )
    except ValidationError as exc:
        parser.error(str(exc))

    configure_logging(settings)

    from main import run_async_main

    sys.exit(asyncio.run(run_async_main(settings)))


__all__ = ["build_parser", "configure_logging", "main", "version_string"]
