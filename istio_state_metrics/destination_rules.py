"""Metric families for networking.istio.io DestinationRules."""

from __future__ import annotations

from typing import Any, Tuple

from .schema import (
    FamilySchema,
    FanOut,
    Label,
    ResourceSchema,
    Scope,
    derived,
    duration,
    joined,
    lookup,
    lookup_first,
    pairs,
    render_scalar,
    resource_id,
    resource_namespace,
    scalar,
)

KIND = "destination_rule"
_RULE = resource_id("destination_rule")
_POLICY = ("trafficPolicy",)


def _load_balancer(scope: Scope, base: Tuple[str, ...], source: str) -> Any:
    return lookup(scope.get(source), base + ("loadBalancer",))


def _consistent_hash(load_balancer: Any) -> Any:
    return lookup_first(load_balancer, (("consistentHash",), ("consistent_hash",)))


def _lb_labels(base: Tuple[str, ...], source: str = "spec", ring_label: str = "consistent_hash_minimum_ring_size") -> Tuple[Label, ...]:
    def lb_type(scope: Scope) -> str:
        load_balancer = _load_balancer(scope, base, source)
        if load_balancer is None:
            return ""
        return "consistent_hash" if _consistent_hash(load_balancer) is not None else "simple"

    def lb_identifier(scope: Scope) -> str:
        load_balancer = _load_balancer(scope, base, source)
        if load_balancer is None:
            return ""
        consistent_hash = _consistent_hash(load_balancer)
        if consistent_hash is not None:
            return render_scalar(
                lookup_first(consistent_hash, (("httpHeader",), ("httpHeaderName",), ("http_header",)))
            )
        return render_scalar(lookup(load_balancer, ("simple",)))

    def ring_size(scope: Scope) -> str:
        consistent_hash = _consistent_hash(_load_balancer(scope, base, source))
        return render_scalar(
            lookup_first(consistent_hash, (("minimumRingSize",), ("minimum_ring_size",)))
        )

    return (
        derived("lb_type", lb_type),
        derived("lb_identifier", lb_identifier),
        derived(ring_label, ring_size),
    )


def _connection_pool_labels(base: Tuple[str, ...], source: str = "spec") -> Tuple[Label, ...]:
    pool = base + ("connectionPool",)
    return (
        scalar("max_connections", *pool, "tcp", "maxConnections", scope=source),
        duration("connect_timeout", *pool, "tcp", "connectTimeout", scope=source),
        scalar("http1_max_pending_requests", *pool, "http", "http1MaxPendingRequests", scope=source),
        scalar("http2_max_requests", *pool, "http", "http2MaxRequests", scope=source),
        scalar("max_requests_per_connection", *pool, "http", "maxRequestsPerConnection", scope=source),
        scalar("max_retries", *pool, "http", "maxRetries", scope=source),
    )


def _outlier_labels(base: Tuple[str, ...], source: str = "spec") -> Tuple[Label, ...]:
    outlier = base + ("outlierDetection",)
    # Older CRDs nest the settings under "http"; newer ones keep them flat.
    return (
        scalar("consecutive_errors", *outlier, "http", "consecutiveErrors", scope=source,
               aliases=[outlier + ("consecutiveErrors",)]),
        duration("interval", *outlier, "http", "interval", scope=source,
                 aliases=[outlier + ("interval",)]),
        duration("base_ejection_time", *outlier, "http", "baseEjectionTime", scope=source,
                 aliases=[outlier + ("baseEjectionTime",)]),
        scalar("max_ejection_percent", *outlier, "http", "maxEjectionPercent", scope=source,
               aliases=[outlier + ("maxEjectionPercent",)]),
    )


def _tls_labels(base: Tuple[str, ...], source: str = "spec") -> Tuple[Label, ...]:
    tls = base + ("tls",)
    return (
        scalar("mode", *tls, "mode", scope=source),
        scalar("client_certificate", *tls, "clientCertificate", scope=source),
        scalar("private_key", *tls, "privateKey", scope=source),
        scalar("ca_certificates", *tls, "caCertificates", scope=source),
        joined("subject_alt_names", *tls, "subjectAltNames", scope=source),
        scalar("sni", *tls, "sni", scope=source),
    )


INFO = FamilySchema(
    "istio_pilot_destination_rule_info",
    "Information about Pilot DestinationRules",
    labels=(_RULE, resource_namespace()),
)

HOST = FamilySchema(
    "istio_pilot_destination_rule_host",
    "Information about Host in Pilot DestinationRules",
    labels=(_RULE, scalar("host", "host")),
)

LOAD_BALANCER = FamilySchema(
    "istio_pilot_destination_rule_traffic_policy_loadbalancer",
    "Information about LoadBalancer in Pilot DestinationRules",
    labels=(_RULE,) + _lb_labels(_POLICY),
    requires=(("spec", _POLICY + ("loadBalancer",)),),
)

CONNECTION_POOL = FamilySchema(
    "istio_pilot_destination_rule_traffic_policy_connection_pool_settings",
    "Information about ConnectionPoolSettings in Pilot DestinationRules",
    labels=(_RULE,) + _connection_pool_labels(_POLICY),
    requires=(("spec", _POLICY + ("connectionPool",)),),
)

OUTLIER_DETECTION = FamilySchema(
    "istio_pilot_destination_rule_traffic_policy_outlier_detection",
    "Information about OutlierDetection in Pilot DestinationRules",
    labels=(_RULE,) + _outlier_labels(_POLICY),
    requires=(("spec", _POLICY + ("outlierDetection",)),),
)

TLS_SETTINGS = FamilySchema(
    "istio_pilot_destination_rule_traffic_policy_tls_settings",
    "Information about TLS Settings of TrafficPolicy in Pilot DestinationRules",
    labels=(_RULE,) + _tls_labels(_POLICY),
    requires=(("spec", _POLICY + ("tls",)),),
)

PORT_LEVEL_SETTINGS = FamilySchema(
    "istio_pilot_destination_rule_traffic_policy_port_level_settings",
    "Information about PortTrafficPolicy in Pilot DestinationRules",
    labels=(
        _RULE,
        scalar("port_name", "port", "name", scope="port_policy"),
        scalar("port_number", "port", "number", scope="port_policy"),
    )
    + _lb_labels((), source="port_policy", ring_label="lb_consistent_hash_minimum_ring_size")
    + _connection_pool_labels((), source="port_policy")
    + _outlier_labels((), source="port_policy")
    + _tls_labels((), source="port_policy"),
    requires=(("spec", _POLICY),),
    fan_out=(FanOut("port_policy", "spec", _POLICY + ("portLevelSettings",)),),
)

SUBSET = FamilySchema(
    "istio_pilot_destination_rule_subset",
    "Information about Subsets in Pilot DestinationRules",
    labels=(
        _RULE,
        scalar("subset", "name", scope="subset"),
        pairs("labels", "labels", scope="subset"),
    ),
    fan_out=(FanOut("subset", "spec", ("subsets",)),),
)

SCHEMA = ResourceSchema(
    kind=KIND,
    families=(
        INFO,
        HOST,
        LOAD_BALANCER,
        CONNECTION_POOL,
        OUTLIER_DETECTION,
        TLS_SETTINGS,
        PORT_LEVEL_SETTINGS,
        SUBSET,
    ),
)

__all__ = ["KIND", "SCHEMA"]
