"""Metric families for config.istio.io Mixer Rules.

Besides describing each rule, the rule collector derives the Mixer
instances the rules reference.  Instance references follow the
``<name>.<kind>.<namespace>`` naming convention; there is no escaping, so
the split is best effort:

* only the first two dots separate fields, any further dots stay in the
  namespace (``a.b.c.d`` is instance ``a`` of kind ``b`` in ``c.d``);
* a missing or empty kind is reported as ``unknown``;
* a missing or empty namespace falls back to the rule's own namespace.
"""

from __future__ import annotations

from typing import NamedTuple

from .schema import (
    FamilySchema,
    FanOut,
    ResourceSchema,
    Scope,
    derived,
    joined,
    render_scalar,
    resource_id,
    resource_name,
    resource_namespace,
    scalar,
)

KIND = "rule"
UNKNOWN_INSTANCE_KIND = "unknown"


class InstanceRef(NamedTuple):
    name: str
    kind: str
    namespace: str


def parse_instance_ref(reference: str, default_namespace: str) -> InstanceRef:
    parts = reference.split(".", 2)
    name = parts[0]
    kind = parts[1] if len(parts) > 1 and parts[1] else UNKNOWN_INSTANCE_KIND
    namespace = parts[2] if len(parts) > 2 and parts[2] else default_namespace
    return InstanceRef(name, kind, namespace)


def _instance(scope: Scope) -> InstanceRef:
    return parse_instance_ref(
        render_scalar(scope.get("instance")), scope["resource"]["namespace"]
    )


INFO = FamilySchema(
    "istio_mixer_rule_info",
    "Information about Mixer Rules",
    labels=(resource_name("rule"), resource_namespace()),
)

ACTIONS = FamilySchema(
    "istio_mixer_rule_actions",
    "Information about Actions in Mixer Rules",
    labels=(
        resource_id("rule"),
        scalar("match", "match"),
        scalar("handler", "handler", scope="action"),
        joined("instances", "instances", scope="action"),
    ),
    fan_out=(FanOut("action", "spec", ("actions",)),),
)

INSTANCE_INFO = FamilySchema(
    "istio_mixer_instance_info",
    "Information about Mixer Instances",
    labels=(
        derived("instance", lambda scope: _instance(scope).name),
        derived("kind", lambda scope: _instance(scope).kind),
        derived("namespace", lambda scope: _instance(scope).namespace),
    ),
    fan_out=(
        FanOut("action", "spec", ("actions",)),
        FanOut("instance", "action", ("instances",)),
    ),
)

SCHEMA = ResourceSchema(kind=KIND, families=(INFO, ACTIONS, INSTANCE_INFO))

__all__ = ["InstanceRef", "KIND", "SCHEMA", "UNKNOWN_INSTANCE_KIND", "parse_instance_ref"]
