"""Collectors binding mirrors to extractors, and the scrape coordinator."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Protocol, Sequence, Set, Tuple

from prometheus_client.registry import Collector as PrometheusCollector

from .extraction import Extractor
from .metrics import MetricFamily, MetricRow, ScrapeTelemetry
from .resources import WatchedResource

logger = logging.getLogger(__name__)


class ResourceLister(Protocol):
    def list(self) -> Sequence[WatchedResource]:
        ...


@dataclass(slots=True)
class Collector:
    """One resource kind: where its resources come from and how they flatten."""

    name: str
    mirror: ResourceLister
    extractor: Extractor

    @property
    def resource(self) -> str:
        return self.extractor.kind

    def describe(self) -> Tuple[MetricFamily, ...]:
        return self.extractor.families

    def collect(self) -> Tuple[int, List[MetricRow]]:
        """Return the number of resources seen and their de-duplicated rows."""

        resources = self.mirror.list()
        rows: List[MetricRow] = []
        seen: Set[Tuple[str, Tuple[str, ...]]] = set()
        for resource in resources:
            for row in self.extractor.extract(resource):
                if row.identity in seen:
                    continue
                seen.add(row.identity)
                rows.append(row)
        return len(resources), rows


class ScrapeCoordinator(PrometheusCollector):
    """Aggregates every registered collector into one scrape.

    A failing collector is counted in ``scrape_error_total`` and left out
    of that scrape; the other collectors are unaffected.
    """

    def __init__(self, telemetry: ScrapeTelemetry | None = None) -> None:
        self.telemetry = telemetry or ScrapeTelemetry()
        self._collectors: Dict[str, Collector] = {}

    def register(self, name: str, mirror: ResourceLister, extractor: Extractor) -> Collector:
        """Add a collector.  Only meant to be called during startup."""

        if name in self._collectors:
            raise ValueError(f"Collector {name!r} is already registered")
        collector = Collector(name=name, mirror=mirror, extractor=extractor)
        self._collectors[name] = collector
        return collector

    @property
    def collectors(self) -> Tuple[Collector, ...]:
        return tuple(self._collectors.values())

    @property
    def names(self) -> List[str]:
        return list(self._collectors)

    def families(self) -> List[MetricFamily]:
        families: List[MetricFamily] = []
        for collector in self._collectors.values():
            families.extend(collector.describe())
        return families

    def rows(self) -> List[MetricRow]:
        rows: List[MetricRow] = []
        for collector in self._collectors.values():
            try:
                count, collected = collector.collect()
            except Exception:  # noqa: BLE001
                logger.exception("Scrape of %s failed", collector.resource)
                self.telemetry.record_failure(collector.resource)
                continue
            self.telemetry.record_success(collector.resource, count)
            rows.extend(collected)
        return rows

    # prometheus_client collector interface
    def describe(self) -> Iterator:
        for family in self.families():
            yield family.to_prometheus()

    def collect(self) -> Iterator:
        grouped: Dict[str, List[MetricRow]] = {}
        for row in self.rows():
            grouped.setdefault(row.family.name, []).append(row)
        for family in self.families():
            yield family.to_prometheus(grouped.get(family.name, ()))


__all__ = ["Collector", "ResourceLister", "ScrapeCoordinator"]
