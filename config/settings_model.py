import secrets
import string

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_TOKEN_ALPHABET = string.ascii_letters + string.digits


def _random_token(length: int = 16) -> str:
    """Cache-busting query token, regenerated on every process start."""
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


def _default_config_url() -> str:
    return f"http://c.speedtest.net/speedtest-config.php?x={_random_token()}"


def _default_server_url() -> str:
    return f"http://c.speedtest.net/speedtest-servers-static.php?x={_random_token()}"


class Settings(BaseSettings):
    """
    Exporter configuration settings using Pydantic Settings.
    Reads from environment variables; command-line flags are passed as init kwargs and win.
    """

    # ─────────────────────────────────────────────────────────────────────────────
    # Version
    # ─────────────────────────────────────────────────────────────────────────────
    VERSION: str = "0.3.0"
    # Also update:
    # - pyproject.toml (version)

    # ─────────────────────────────────────────────────────────────────────────────
    # Web / Telemetry
    # ─────────────────────────────────────────────────────────────────────────────
    WEB_LISTEN_ADDRESS: str = Field(default=":9112", description="Address to listen on for web interface and telemetry")
    WEB_TELEMETRY_PATH: str = Field(default="/metrics", description="Path under which to expose metrics")
    ENABLE_PROCESS_METRICS: bool = True

    # ─────────────────────────────────────────────────────────────────────────────
    # Speedtest
    # ─────────────────────────────────────────────────────────────────────────────
    SPEEDTEST_CONFIG_URL: str = Field(default_factory=_default_config_url, description="Speedtest configuration URL")
    SPEEDTEST_SERVER_URL: str = Field(default_factory=_default_server_url, description="Speedtest server URL")
    SPEEDTEST_TIMEOUT: float = Field(default=30.0, gt=0, description="Per-request HTTP timeout in seconds")
    SPEEDTEST_CLOSEST_SERVERS: int = Field(default=5, ge=1)
    MEASUREMENT_INTERVAL: float = Field(default=60.0, ge=1, description="Seconds between measurements")

    # ─────────────────────────────────────────────────────────────────────────────
    # Resource Limits
    # ─────────────────────────────────────────────────────────────────────────────
    SHUTDOWN_TIMEOUT_SECONDS: int = Field(default=10, ge=0)

    # ─────────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @field_validator("WEB_TELEMETRY_PATH")
    @classmethod
    def _telemetry_path_is_absolute(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("telemetry path must start with '/'")
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {value}")
        return level
