"""Server configuration — environment variables with an optional YAML overlay.

Typical usage::

    settings = ServerSettings.from_env()
    settings = ServerSettings.from_yaml(Path("utctime.yaml"), base=settings)

Hardware flags (PPS, GPS, local stratum) are informational only: the server
never configures the time daemon, it reports what the deployment declared.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_NTP_SERVERS = ("time.cloudflare.com", "time.google.com")
DEFAULT_HTTP_PORT = 3000

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})
_CONTAINER_MARKERS = ("HTTP_API_ONLY", "CONTAINER_APP_NAME", "KUBERNETES_SERVICE_HOST")


class ConfigError(Exception):
    """Configuration could not be read or failed validation."""


class ApiKey(BaseModel):
    """An accepted API key and its optional metadata."""

    model_config = {"frozen": True}

    key: str = Field(min_length=1)
    name: str | None = None


class ServerSettings(BaseModel):
    """All runtime settings of the server."""

    ntp_servers: tuple[str, ...] = DEFAULT_NTP_SERVERS
    enable_pps: bool = False
    pps_device: str = "/dev/pps0"
    enable_gps: bool = False
    gps_device: str = "/dev/ttyUSB0"
    gps_baud: int = 9600
    local_stratum: int = Field(default=10, ge=0, le=16)

    enable_http: bool = True
    http_only: bool = False
    http_host: str = "0.0.0.0"  # noqa: S104
    http_port: int = Field(default=DEFAULT_HTTP_PORT, ge=1, le=65535)
    http_request_timeout: float = Field(default=5.0, gt=0)

    log_level: str = "INFO"

    sync_timeout: float = Field(default=2.0, gt=0)
    shm_unit: int = Field(default=0, ge=0)
    shm_path: str | None = None
    shm_max_age: float = Field(default=64.0, gt=0)
    peer_command: str = "ntpq -p -n"
    system_command: str = "ntpq -c rv"

    api_keys: tuple[ApiKey, ...] = ()
    otlp_endpoint: str | None = None

    @property
    def run_stdio(self) -> bool:
        return not self.http_only

    @property
    def run_http(self) -> bool:
        return self.http_only or self.enable_http

    @property
    def hardware(self) -> dict[str, Any]:
        """The declared reference-clock hardware, as reported to clients."""
        return {
            "pps": {"enabled": self.enable_pps, "device": self.pps_device},
            "gps": {"enabled": self.enable_gps, "device": self.gps_device, "baud_rate": self.gps_baud},
            "local_stratum": self.local_stratum,
        }

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ServerSettings:
        """Build settings from environment variables (``os.environ`` by default)."""
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        if servers := env.get("NTP_SERVERS"):
            values["ntp_servers"] = tuple(s.strip() for s in servers.split(",") if s.strip())
        if "ENABLE_PPS" in env:
            values["enable_pps"] = _flag(env["ENABLE_PPS"], "ENABLE_PPS")
        if device := env.get("PPS_DEVICE"):
            values["pps_device"] = device
        if "ENABLE_GPS" in env:
            values["enable_gps"] = _flag(env["ENABLE_GPS"], "ENABLE_GPS")
        if device := env.get("GPS_DEVICE"):
            values["gps_device"] = device
        if baud := env.get("GPS_BAUD"):
            values["gps_baud"] = baud
        if stratum := env.get("LOCAL_STRATUM"):
            values["local_stratum"] = stratum

        port = env.get("PORT") or env.get("HEALTH_PORT")
        if port:
            values["http_port"] = port
        if host := env.get("HTTP_HOST"):
            values["http_host"] = host
        enable_http = env.get("ENABLE_HTTP_API", env.get("ENABLE_HEALTH_SERVER"))
        if enable_http is not None:
            values["enable_http"] = _flag(enable_http, "ENABLE_HTTP_API")
        values["http_only"] = any(marker in env for marker in _CONTAINER_MARKERS)
        if request_timeout := env.get("HTTP_REQUEST_TIMEOUT"):
            values["http_request_timeout"] = request_timeout

        if level := env.get("LOG_LEVEL"):
            values["log_level"] = level.upper()

        if sync_timeout := env.get("SYNC_TIMEOUT"):
            values["sync_timeout"] = sync_timeout
        if unit := env.get("NTP_SHM_UNIT"):
            values["shm_unit"] = unit
        if path := env.get("NTP_SHM_PATH"):
            values["shm_path"] = path
        if max_age := env.get("NTP_SHM_MAX_AGE"):
            values["shm_max_age"] = max_age
        if command := env.get("NTP_QUERY_COMMAND"):
            values["peer_command"] = command
        if command := env.get("NTP_SYSTEM_COMMAND"):
            values["system_command"] = command

        values["api_keys"] = api_keys_from_env(env)
        if endpoint := env.get("OTEL_EXPORTER_OTLP_ENDPOINT"):
            values["otlp_endpoint"] = endpoint

        return cls._validate(values, "environment")

    @classmethod
    def from_yaml(cls, path: Path, *, base: ServerSettings | None = None) -> ServerSettings:
        """Overlay the mapping in *path* onto *base* (defaults when omitted).

        ``${VAR}`` references are expanded before parsing.

        Raises:
            ConfigError: On unreadable files, YAML errors or invalid values.
        """
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Cannot read {path}: {exc}") from exc

        try:
            data: Any = yaml.safe_load(os.path.expandvars(raw))
        except yaml.YAMLError as exc:
            raise ConfigError(f"YAML parse error in {path}: {exc}") from exc

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping")

        unknown = set(data) - set(cls.model_fields)
        if unknown:
            raise ConfigError(f"Unknown settings in {path}: {', '.join(sorted(unknown))}")

        merged = (base or cls()).model_dump()
        merged.update(data)
        return cls._validate(merged, str(path))

    @classmethod
    def _validate(cls, values: dict[str, Any], origin: str) -> ServerSettings:
        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            raise ConfigError(f"Invalid settings from {origin}: {exc}") from exc


def api_keys_from_env(env: Mapping[str, str]) -> tuple[ApiKey, ...]:
    """Collect keys from ``API_KEY_<NAME>`` variables and the ``API_KEYS`` list.

    An ``API_KEY_*`` value is either the key itself or a JSON object
    ``{"key": ..., "name": ...}``; unparsable JSON is taken as a plain key.
    """
    keys: list[ApiKey] = []
    for variable in sorted(env):
        if not variable.startswith("API_KEY_"):
            continue
        suffix = variable.removeprefix("API_KEY_")
        value = env[variable].strip()
        if not value:
            continue
        if value.startswith("{"):
            try:
                keys.append(ApiKey.model_validate(json.loads(value)))
                logger.info("Loaded API key %s with metadata", suffix)
                continue
            except (json.JSONDecodeError, ValidationError) as exc:
                logger.warning("Failed to parse %s as JSON (%s); treating as plain key", variable, exc)
        keys.append(ApiKey(key=value, name=f"Key {suffix}"))
        logger.info("Loaded API key %s", suffix)

    for key in env.get("API_KEYS", "").split(","):
        if key.strip():
            keys.append(ApiKey(key=key.strip(), name="Legacy key"))

    return tuple(keys)


def _flag(value: str, name: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUTHY:
        return True
    if normalized in _FALSY:
        return False
    raise ConfigError(f"{name} must be a boolean flag, got {value!r}")
