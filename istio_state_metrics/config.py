"""Application configuration helpers."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Tuple

from dotenv import load_dotenv

# Sentinel namespace meaning "watch every namespace" (metav1.NamespaceAll).
ALL_NAMESPACES = ""
ALL_NAMESPACES_TOKEN = "*"

DEFAULT_RESYNC_PERIOD_SECONDS = 300.0

_NAMESPACE_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")


class ConfigError(ValueError):
    """Raised for configuration that must stop the process from starting."""


def split_list(value: str | None) -> Tuple[str, ...]:
    """Split a comma separated option, dropping blanks."""

    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def parse_namespaces(values: Iterable[str]) -> Tuple[str, ...]:
    """Validate namespace tokens and map ``*`` to the all-namespaces sentinel."""

    namespaces = []
    for value in values:
        if value == ALL_NAMESPACES_TOKEN:
            namespaces.append(ALL_NAMESPACES)
            continue
        if len(value) > 63 or not _NAMESPACE_RE.match(value):
            raise ConfigError(f'namespace "{value}" is not a valid namespace name')
        if value not in namespaces:
            namespaces.append(value)
    if not namespaces:
        return (ALL_NAMESPACES,)
    if ALL_NAMESPACES in namespaces and len(namespaces) > 1:
        raise ConfigError(
            f'"{ALL_NAMESPACES_TOKEN}" cannot be combined with explicit namespaces'
        )
    return tuple(namespaces)


def describe_namespaces(namespaces: Iterable[str]) -> str:
    names = list(namespaces)
    if names == [ALL_NAMESPACES]:
        return "all namespaces"
    return ",".join(names)


@dataclass(slots=True)
class Config:
    """Runtime configuration parsed from environment variables."""

    metrics_host: str = "0.0.0.0"
    metrics_port: int = 9090
    telemetry_host: str = "0.0.0.0"
    telemetry_port: int = 9093
    # Empty means every available collector.
    collectors: Tuple[str, ...] = ()
    namespaces: Tuple[str, ...] = field(default=(ALL_NAMESPACES,))
    kubeconfig: Optional[str] = None
    apiserver: Optional[str] = None
    resync_period_seconds: float = DEFAULT_RESYNC_PERIOD_SECONDS
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, overrides: Optional[Mapping[str, str]] = None) -> "Config":
        """Load configuration from environment variables and defaults.

        ``overrides`` are keyed by environment variable name and replace the
        environment before anything is parsed.
        """

        load_dotenv()
        overrides = overrides or {}

        def _get(name: str, default: Optional[str] = None) -> Optional[str]:
            if name in overrides:
                return overrides[name]
            return os.getenv(name, default)

        def _get_int(name: str, default: int) -> int:
            value = _get(name)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as exc:
                raise ConfigError(f"Invalid integer for {name}: {value}") from exc

        def _get_float(name: str, default: float) -> float:
            value = _get(name)
            if value is None:
                return default
            try:
                return float(value)
            except ValueError as exc:
                raise ConfigError(f"Invalid float for {name}: {value}") from exc

        config = cls(
            metrics_host=_get("METRICS_HOST", "0.0.0.0"),
            metrics_port=_get_int("METRICS_PORT", 9090),
            telemetry_host=_get("TELEMETRY_HOST", "0.0.0.0"),
            telemetry_port=_get_int("TELEMETRY_PORT", 9093),
            collectors=split_list(_get("COLLECTORS")),
            namespaces=parse_namespaces(split_list(_get("NAMESPACES"))),
            kubeconfig=_get("KUBECONFIG") or None,
            apiserver=_get("APISERVER") or None,
            resync_period_seconds=_get_float(
                "RESYNC_PERIOD_SECONDS", DEFAULT_RESYNC_PERIOD_SECONDS
            ),
            log_level=_get("LOG_LEVEL", "INFO"),
        )
        config.validate()
        return config

    def validate(self) -> None:
        if self.resync_period_seconds <= 0:
            raise ConfigError("Resync period must be a positive number of seconds")
        for name, port in (("metrics", self.metrics_port), ("telemetry", self.telemetry_port)):
            if not 0 < port < 65536:
                raise ConfigError(f"Invalid {name} port: {port}")


__all__ = [
    "ALL_NAMESPACES",
    "ALL_NAMESPACES_TOKEN",
    "Config",
    "ConfigError",
    "describe_namespaces",
    "parse_namespaces",
    "split_list",
]
