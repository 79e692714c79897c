"""Shared factories for istio-state-metrics tests.

Resources are built as the JSON objects the custom-objects API returns, so
tests exercise the same freezing and lookup paths as a live cluster.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Sequence, Tuple

import pytest
from prometheus_client import CollectorRegistry

from istio_state_metrics.metrics import ScrapeTelemetry
from istio_state_metrics.resources import WatchedResource


# ---------------------------------------------------------------------------
# Object factories
# ---------------------------------------------------------------------------


def make_object(
    name: str,
    namespace: str = "default",
    spec: Mapping[str, Any] | None = None,
    resource_version: str = "1",
) -> dict[str, Any]:
    return {
        "apiVersion": "networking.istio.io/v1alpha3",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "resourceVersion": resource_version,
        },
        "spec": dict(spec or {}),
    }


def make_resource(
    kind: str, name: str, namespace: str = "default", spec: Mapping[str, Any] | None = None
) -> WatchedResource:
    return WatchedResource.from_object(kind, make_object(name, namespace, spec))


def rows_by_family(rows: Iterable[Any]) -> dict[str, List[dict[str, str]]]:
    grouped: dict[str, List[dict[str, str]]] = {}
    for row in rows:
        grouped.setdefault(row.family.name, []).append(row.as_dict())
    return grouped


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeSource:
    """In-memory list-watch source.

    ``watch_batches`` is consumed one batch per watch call; once exhausted,
    watches return an empty stream.
    """

    def __init__(self, items: Sequence[Mapping[str, Any]] = (), resource_version: str = "1") -> None:
        self.items = list(items)
        self.resource_version = resource_version
        self.watch_batches: List[List[Mapping[str, Any]]] = []
        self.list_calls: List[str] = []
        self.watch_calls: List[Tuple[str, str, int]] = []
        self.fail_lists = 0

    def list(self, namespace: str):
        self.list_calls.append(namespace)
        if self.fail_lists:
            self.fail_lists -= 1
            raise ConnectionError("apiserver unavailable")
        items = [
            item
            for item in self.items
            if not namespace or item["metadata"]["namespace"] == namespace
        ]
        return items, self.resource_version

    def watch(self, namespace: str, resource_version: str, timeout_seconds: int):
        self.watch_calls.append((namespace, resource_version, timeout_seconds))
        if self.watch_batches:
            return iter(self.watch_batches.pop(0))
        return iter(())


class StaticMirror:
    def __init__(self, resources: Sequence[WatchedResource] = ()) -> None:
        self.resources = list(resources)

    def list(self) -> List[WatchedResource]:
        return list(self.resources)


class BrokenMirror:
    def list(self) -> List[WatchedResource]:
        raise RuntimeError("store unavailable")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def telemetry_registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def telemetry(telemetry_registry: CollectorRegistry) -> ScrapeTelemetry:
    return ScrapeTelemetry(telemetry_registry)
