"""Resource kinds and the immutable resource objects held by mirrors."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping


@dataclass(frozen=True, slots=True)
class ResourceKind:
    """Coordinates of a custom resource kind in the cluster API."""

    name: str
    group: str
    version: str
    plural: str


DESTINATION_RULE = ResourceKind(
    name="destination_rule",
    group="networking.istio.io",
    version="v1alpha3",
    plural="destinationrules",
)
VIRTUAL_SERVICE = ResourceKind(
    name="virtual_service",
    group="networking.istio.io",
    version="v1alpha3",
    plural="virtualservices",
)
RULE = ResourceKind(
    name="rule",
    group="config.istio.io",
    version="v1alpha2",
    plural="rules",
)


def freeze(value: Any) -> Any:
    """Recursively convert JSON containers into read-only equivalents."""

    if isinstance(value, Mapping):
        return MappingProxyType({str(key): freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


@dataclass(frozen=True, slots=True)
class WatchedResource:
    """One custom resource as last seen by a mirror.

    ``spec`` is a frozen copy of the object's spec tree, so a
    snapshot handed to a collector can never be changed under it.
    """

    kind: str
    namespace: str
    name: str
    spec: Mapping[str, Any]
    resource_version: str = ""

    @classmethod
    def from_object(cls, kind: str, obj: Mapping[str, Any]) -> "WatchedResource":
        metadata = obj.get("metadata") or {}
        spec = obj.get("spec") or {}
        return cls(
            kind=kind,
            namespace=str(metadata.get("namespace") or ""),
            name=str(metadata.get("name") or ""),
            spec=freeze(spec),
            resource_version=str(metadata.get("resourceVersion") or ""),
        )

    @property
    def key(self) -> tuple[str, str]:
        return (self.namespace, self.name)

    @property
    def qualified_name(self) -> str:
        return f"{self.name}.{self.namespace}"


__all__ = [
    "DESTINATION_RULE",
    "RULE",
    "ResourceKind",
    "VIRTUAL_SERVICE",
    "WatchedResource",
    "freeze",
]
