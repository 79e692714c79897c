"""Command line entrypoint for istio-state-metrics."""

from __future__ import annotations

import argparse
import logging
from typing import Optional

from .catalog import DEFAULT_COLLECTORS, resolve_collectors
from .config import ALL_NAMESPACES_TOKEN, Config, ConfigError
from .exporter import run_from_config

# Command line flag destination -> environment variable it replaces.
_FLAG_ENV = (
    ("apiserver", "APISERVER"),
    ("kubeconfig", "KUBECONFIG"),
    ("port", "METRICS_PORT"),
    ("host", "METRICS_HOST"),
    ("telemetry_port", "TELEMETRY_PORT"),
    ("telemetry_host", "TELEMETRY_HOST"),
    ("collectors", "COLLECTORS"),
    ("namespace", "NAMESPACES"),
    ("resync_period", "RESYNC_PERIOD_SECONDS"),
    ("log_level", "LOG_LEVEL"),
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="istio-state-metrics",
        description="Expose the state of Istio custom resources as Prometheus metrics.",
    )
    parser.add_argument(
        "--apiserver",
        type=str,
        default=None,
        help="The URL of the apiserver to use as a master (default from APISERVER env).",
    )
    parser.add_argument(
        "--kubeconfig",
        type=str,
        default=None,
        help="Absolute path to the kubeconfig file (default from KUBECONFIG env).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to expose metrics on (default from METRICS_PORT env, else 9090).",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to expose metrics on (default from METRICS_HOST env).",
    )
    parser.add_argument(
        "--telemetry-port",
        type=int,
        default=None,
        help="Port to expose istio-state-metrics self metrics on (default 9093).",
    )
    parser.add_argument(
        "--telemetry-host",
        type=str,
        default=None,
        help="Host to expose istio-state-metrics self metrics on.",
    )
    parser.add_argument(
        "--collectors",
        type=str,
        default=None,
        help=f"Comma-separated list of collectors to be enabled. Defaults to {','.join(DEFAULT_COLLECTORS)!r}.",
    )
    parser.add_argument(
        "--namespace",
        type=str,
        default=None,
        help=f"Comma-separated list of namespaces to be enabled. Defaults to {ALL_NAMESPACES_TOKEN!r} (all).",
    )
    parser.add_argument(
        "--resync-period",
        type=float,
        default=None,
        help="Seconds between full relists of every watched resource (default 300).",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Set an explicit log level (default from LOG_LEVEL env).",
    )
    return parser


def _configure_logging(level: str) -> None:
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def load_config(args: argparse.Namespace) -> Config:
    """Merge environment configuration with command line overrides."""

    overrides = {
        env: str(getattr(args, dest))
        for dest, env in _FLAG_ENV
        if getattr(args, dest) is not None
    }
    config = Config.from_env(overrides)
    config.collectors = resolve_collectors(config.collectors)
    return config


def main(argv: Optional[list[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        config = load_config(args)
    except ConfigError as exc:
        parser.error(str(exc))

    _configure_logging(config.log_level)

    try:
        run_from_config(config)
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Received interrupt, shutting down.")


if __name__ == "__main__":  # pragma: no cover - module entrypoint
    main()
