"""Process wiring: mirrors, coordinator and the two HTTP endpoints."""

from __future__ import annotations

import logging
import signal
import threading
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    GCCollector,
    PlatformCollector,
    ProcessCollector,
    start_http_server,
)

from .catalog import SourceFactory, build_coordinator
from .config import Config
from .kube import CustomObjectSourceFactory, load_api_client, probe_server_version
from .metrics import ScrapeTelemetry

logger = logging.getLogger(__name__)

SHUTDOWN_GRACE_SECONDS = 5.0


class StateMetricsExporter:
    """Serve Istio resource state as Prometheus metrics."""

    def __init__(
        self,
        config: Config,
        source_factory: SourceFactory,
        registry: CollectorRegistry | None = None,
        telemetry_registry: CollectorRegistry | None = None,
    ) -> None:
        self.config = config
        self.registry = registry or CollectorRegistry()
        self.telemetry_registry = telemetry_registry or CollectorRegistry()
        self.telemetry = ScrapeTelemetry(self.telemetry_registry)
        self.coordinator, self.mirrors = build_coordinator(
            source_factory,
            collectors=config.collectors,
            namespaces=config.namespaces,
            telemetry=self.telemetry,
            resync_period=config.resync_period_seconds,
        )
        self.registry.register(self.coordinator)
        self._register_process_collectors()

    def _register_process_collectors(self) -> None:
        ProcessCollector(registry=self.telemetry_registry)
        PlatformCollector(registry=self.telemetry_registry)
        GCCollector(registry=self.telemetry_registry)

    @property
    def stop_event(self) -> threading.Event:
        return self.mirrors.stop_event

    def start(self) -> None:
        self.mirrors.start()
        logger.info(
            "Starting istio-state-metrics self metrics server: %s:%s",
            self.config.telemetry_host,
            self.config.telemetry_port,
        )
        start_http_server(
            self.config.telemetry_port,
            addr=self.config.telemetry_host,
            registry=self.telemetry_registry,
        )
        logger.info(
            "Starting metrics server: %s:%s", self.config.metrics_host, self.config.metrics_port
        )
        start_http_server(
            self.config.metrics_port, addr=self.config.metrics_host, registry=self.registry
        )

    def run(self) -> None:
        """Start everything and block until SIGINT/SIGTERM."""

        self._install_signal_handlers()
        self.start()
        try:
            self.stop_event.wait()
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        logger.info("Shutting down mirrors")
        self.mirrors.shutdown(SHUTDOWN_GRACE_SECONDS)

    def _install_signal_handlers(self) -> None:
        def _handle(signum, _frame) -> None:
            logger.info("Received %s, shutting down.", signal.Signals(signum).name)
            self.stop_event.set()

        signal.signal(signal.SIGINT, _handle)
        signal.signal(signal.SIGTERM, _handle)


def build_exporter(config: Config, source_factory: Optional[SourceFactory] = None) -> StateMetricsExporter:
    """Construct an exporter talking to the configured cluster."""

    if source_factory is None:
        api_client = load_api_client(config)
        probe_server_version(api_client)
        source_factory = CustomObjectSourceFactory(api_client)
    return StateMetricsExporter(config, source_factory)


def run_from_config(config: Config) -> None:
    """Run the exporter with the provided configuration."""

    exporter = build_exporter(config)
    exporter.run()


__all__ = ["StateMetricsExporter", "build_exporter", "run_from_config"]
