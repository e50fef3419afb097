"""Server configuration.

Values come from ``TRAFFICLENS_*`` environment variables, then CLI
options override them.
"""
import ipaddress
import os
from dataclasses import dataclass, fields, replace
from typing import Mapping, Optional, Tuple

from analysis.aggregator import DEFAULT_MAX_HOSTS, DEFAULT_MAX_SESSIONS_PER_HOST
from utils.net import DEFAULT_LOCAL_NETWORKS

ENV_PREFIX = "TRAFFICLENS_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


class ConfigError(ValueError):
    """Invalid configuration value."""


@dataclass(frozen=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3001
    snapshot_interval: float = 5.0
    default_interface: Optional[str] = None
    local_networks: Tuple[str, ...] = DEFAULT_LOCAL_NETWORKS
    max_hosts: Optional[int] = DEFAULT_MAX_HOSTS
    max_sessions_per_host: Optional[int] = DEFAULT_MAX_SESSIONS_PER_HOST
    include_raw: bool = False
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def __post_init__(self):
        if not 0 < self.port < 65536:
            raise ConfigError(f"port must be in 1..65535, got {self.port}")
        if self.snapshot_interval <= 0:
            raise ConfigError(f"snapshot_interval must be > 0, got {self.snapshot_interval}")
        for name in ("max_hosts", "max_sessions_per_host"):
            bound = getattr(self, name)
            if bound is not None and bound < 1:
                raise ConfigError(f"{name} must be >= 1 (or unset for no bound), got {bound}")
        if not self.local_networks:
            raise ConfigError("local_networks must name at least one CIDR block")
        for cidr in self.local_networks:
            try:
                ipaddress.ip_network(cidr, strict=False)
            except ValueError as e:
                raise ConfigError(f"Invalid local network {cidr!r}: {e}") from e

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        environ = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = environ.get(ENV_PREFIX + name)
            return value.strip() if value is not None else None

        values = {}
        if get("HOST"):
            values["host"] = get("HOST")
        if get("PORT"):
            values["port"] = _parse_int("PORT", get("PORT"))
        if get("SNAPSHOT_INTERVAL"):
            values["snapshot_interval"] = _parse_float("SNAPSHOT_INTERVAL", get("SNAPSHOT_INTERVAL"))
        if get("INTERFACE"):
            values["default_interface"] = get("INTERFACE")
        if get("LOCAL_NETWORKS"):
            values["local_networks"] = tuple(
                part.strip() for part in get("LOCAL_NETWORKS").split(",") if part.strip()
            )
        if get("MAX_HOSTS") is not None:
            values["max_hosts"] = _parse_bound("MAX_HOSTS", get("MAX_HOSTS"))
        if get("MAX_SESSIONS_PER_HOST") is not None:
            values["max_sessions_per_host"] = _parse_bound("MAX_SESSIONS_PER_HOST", get("MAX_SESSIONS_PER_HOST"))
        if get("INCLUDE_RAW") is not None:
            values["include_raw"] = _parse_bool("INCLUDE_RAW", get("INCLUDE_RAW"))
        if get("LOG_LEVEL"):
            values["log_level"] = get("LOG_LEVEL").upper()
        if get("LOG_FILE"):
            values["log_file"] = get("LOG_FILE")
        return cls(**values)

    def override(self, **changes) -> "ServerConfig":
        """Copy with every non-None keyword applied (CLI options)."""
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ConfigError(f"Unknown config fields: {', '.join(sorted(unknown))}")
        return replace(self, **{key: value for key, value in changes.items() if value is not None})


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name} must be an integer, got {value!r}") from None


def _parse_float(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name} must be a number, got {value!r}") from None


def _parse_bound(name: str, value: str) -> Optional[int]:
    if value.lower() in ("", "0", "none", "unbounded"):
        return None
    return _parse_int(name, value)


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigError(f"{ENV_PREFIX}{name} must be a boolean, got {value!r}")
