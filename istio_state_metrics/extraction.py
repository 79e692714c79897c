"""Schema-guided flattening of resource trees into metric rows."""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Mapping, Sequence, Tuple

from .metrics import MetricFamily, MetricRow
from .resources import WatchedResource
from .schema import FamilySchema, FanOut, ResourceSchema, Scope, lookup


def _elements(value: Any) -> Sequence[Any]:
    if value is None:
        return ()
    if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Sequence):
        # A single object where a list was expected still counts as one element.
        return (value,)
    return value


def resource_scope(resource: WatchedResource) -> Dict[str, Any]:
    return {
        "resource": {
            "kind": resource.kind,
            "name": resource.name,
            "namespace": resource.namespace,
            "id": resource.qualified_name,
        },
        "spec": resource.spec,
    }


class Extractor:
    """Turn one resource into rows for every family of its schema.

    ``extract`` is pure: it reads the resource, never mutates it, and the
    same input always yields the same rows in the same order.
    """

    def __init__(self, schema: ResourceSchema) -> None:
        self.schema = schema

    @property
    def kind(self) -> str:
        return self.schema.kind

    @property
    def families(self) -> Tuple[MetricFamily, ...]:
        return self.schema.metric_families

    def extract(self, resource: WatchedResource) -> List[MetricRow]:
        scope = resource_scope(resource)
        rows: List[MetricRow] = []
        for family_schema in self.schema.families:
            rows.extend(self._flatten(family_schema, scope))
        return rows

    def _flatten(self, family_schema: FamilySchema, scope: Scope) -> Iterator[MetricRow]:
        for source, path in family_schema.requires:
            if lookup(scope.get(source), path) is None:
                return
        family = family_schema.family
        for leaf in self._expand(family_schema.fan_out, scope):
            labels = tuple(label.resolve(leaf) for label in family_schema.labels)
            yield MetricRow(family, labels)

    def _expand(self, steps: Sequence[FanOut], scope: Scope) -> Iterator[Scope]:
        if not steps:
            yield scope
            return
        step, rest = steps[0], steps[1:]
        for element in _elements(lookup(scope.get(step.source), step.path)):
            child = dict(scope)
            child[step.scope] = element
            yield from self._expand(rest, child)


__all__ = ["Extractor", "resource_scope"]
