"""Metric family and row types, plus the exporter's own telemetry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

from prometheus_client import CollectorRegistry, Counter, Summary
from prometheus_client.core import GaugeMetricFamily

TELEMETRY_NAMESPACE = "istio_state_metrics"


@dataclass(frozen=True, slots=True)
class MetricFamily:
    """A declared gauge family: name, help text and ordered label names."""

    name: str
    documentation: str
    labelnames: Tuple[str, ...]

    def to_prometheus(self, rows: Iterable["MetricRow"] = ()) -> GaugeMetricFamily:
        family = GaugeMetricFamily(self.name, self.documentation, labels=self.labelnames)
        for row in rows:
            family.add_metric(row.labels, row.value)
        return family


@dataclass(frozen=True, slots=True)
class MetricRow:
    family: MetricFamily
    labels: Tuple[str, ...]
    value: float = 1.0

    def __post_init__(self) -> None:
        if len(self.labels) != len(self.family.labelnames):
            raise ValueError(
                f"{self.family.name} expects {len(self.family.labelnames)} label values, "
                f"got {len(self.labels)}"
            )

    @property
    def identity(self) -> Tuple[str, Tuple[str, ...]]:
        return (self.family.name, self.labels)

    def as_dict(self) -> dict[str, str]:
        return dict(zip(self.family.labelnames, self.labels))


class ScrapeTelemetry:
    """Wrapper object holding the scrape bookkeeping metrics."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry
        self.scrape_error_total = Counter(
            "scrape_error_total",
            "Total scrape errors encountered when scraping a resource",
            labelnames=("resource",),
            namespace=TELEMETRY_NAMESPACE,
            registry=registry,
        )
        self.resources_per_scrape = Summary(
            "resources_per_scrape",
            "Number of resources returned per scrape",
            labelnames=("resource",),
            namespace=TELEMETRY_NAMESPACE,
            registry=registry,
        )

    def record_success(self, resource: str, count: int) -> None:
        # Touch the error series so it is present before the first failure.
        self.scrape_error_total.labels(resource=resource).inc(0)
        self.resources_per_scrape.labels(resource=resource).observe(count)

    def record_failure(self, resource: str) -> None:
        self.scrape_error_total.labels(resource=resource).inc()


__all__ = ["MetricFamily", "MetricRow", "ScrapeTelemetry", "TELEMETRY_NAMESPACE"]
