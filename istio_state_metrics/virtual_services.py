"""Metric families for networking.istio.io VirtualServices."""

from __future__ import annotations

from typing import Tuple

from .schema import (
    FamilySchema,
    FanOut,
    Label,
    ResourceSchema,
    duration,
    joined,
    pairs,
    render_header_matches,
    resource_name,
    resource_namespace,
    scalar,
)

KIND = "virtual_service"
_SERVICE = (resource_name("virtual_service"), resource_namespace())


def _string_match_labels(field: str, source: str) -> Tuple[Label, ...]:
    return tuple(
        scalar(f"{field}_{kind}", field, kind, scope=source)
        for kind in ("exact", "prefix", "regex")
    )


def _destination_labels(source: str) -> Tuple[Label, ...]:
    return (
        scalar("destination_host", "destination", "host", scope=source),
        scalar("destination_subset", "destination", "subset", scope=source),
        scalar("destination_port_name", "destination", "port", "name", scope=source),
        scalar("destination_port_number", "destination", "port", "number", scope=source),
        scalar("weight", "weight", scope=source),
    )


INFO = FamilySchema(
    "istio_pilot_virtual_service_info",
    "Information about Pilot VirtualServices",
    labels=_SERVICE,
)

HOST = FamilySchema(
    "istio_pilot_virtual_service_host",
    "Information about Hosts in Pilot VirtualServices",
    labels=_SERVICE + (scalar("host", scope="host"),),
    fan_out=(FanOut("host", "spec", ("hosts",)),),
)

GATEWAY = FamilySchema(
    "istio_pilot_virtual_service_gateway",
    "Information about Gateways in Pilot VirtualServices",
    labels=_SERVICE + (scalar("gateway", scope="gateway"),),
    fan_out=(FanOut("gateway", "spec", ("gateways",)),),
)

HTTP_MATCH = FamilySchema(
    "istio_pilot_virtual_service_http_match_info",
    "Information about Pilot VirtualServices Http Match Info",
    labels=_SERVICE
    + _string_match_labels("uri", "match")
    + _string_match_labels("scheme", "match")
    + _string_match_labels("method", "match")
    + _string_match_labels("authority", "match")
    + (
        Label("headers", "match", (("headers",),), render=render_header_matches),
        scalar("port", "port", scope="match"),
        pairs("source_labels", "sourceLabels", scope="match", aliases=[("source_labels",)]),
        joined("gateways", "gateways", scope="match"),
    ),
    fan_out=(
        FanOut("http_route", "spec", ("http",)),
        FanOut("match", "http_route", ("match",)),
    ),
)

HTTP_ROUTE = FamilySchema(
    "istio_pilot_virtual_service_http_route_info",
    "Information about Pilot VirtualServices Http Route Info",
    labels=_SERVICE + _destination_labels("route"),
    fan_out=(
        FanOut("http_route", "spec", ("http",)),
        FanOut("route", "http_route", ("route",)),
    ),
)

HTTP_ROUTE_POLICY = FamilySchema(
    "istio_pilot_virtual_service_http_route_policy",
    "Information about timeouts, retries, redirects and rewrites of Pilot VirtualServices Http Routes",
    labels=_SERVICE
    + (
        duration("timeout", "timeout", scope="http_route"),
        scalar("retries_attempts", "retries", "attempts", scope="http_route"),
        duration("retries_per_try_timeout", "retries", "perTryTimeout", scope="http_route",
                 aliases=[("retries", "per_try_timeout")]),
        scalar("redirect_uri", "redirect", "uri", scope="http_route"),
        scalar("redirect_authority", "redirect", "authority", scope="http_route"),
        scalar("rewrite_uri", "rewrite", "uri", scope="http_route"),
        scalar("rewrite_authority", "rewrite", "authority", scope="http_route"),
        scalar("mirror_host", "mirror", "host", scope="http_route"),
        scalar("mirror_subset", "mirror", "subset", scope="http_route"),
        scalar("websocket_upgrade", "websocketUpgrade", scope="http_route",
               aliases=[("websocket_upgrade",)]),
    ),
    fan_out=(FanOut("http_route", "spec", ("http",)),),
)

TCP_MATCH = FamilySchema(
    "istio_pilot_virtual_service_tcp_match_info",
    "Information about Pilot VirtualServices Tcp Match Info",
    labels=_SERVICE
    + (
        scalar("destination_subnet", "destinationSubnet", scope="match",
               aliases=[("destination_subnet",)]),
        scalar("port", "port", scope="match"),
        scalar("source_subnet", "sourceSubnet", scope="match", aliases=[("source_subnet",)]),
        pairs("source_labels", "sourceLabels", scope="match", aliases=[("source_labels",)]),
        joined("gateways", "gateways", scope="match"),
    ),
    fan_out=(
        FanOut("tcp_route", "spec", ("tcp",)),
        FanOut("match", "tcp_route", ("match",)),
    ),
)

TCP_ROUTE = FamilySchema(
    "istio_pilot_virtual_service_tcp_route_info",
    "Information about Pilot VirtualServices Tcp Route Info",
    labels=_SERVICE + _destination_labels("route"),
    fan_out=(
        FanOut("tcp_route", "spec", ("tcp",)),
        FanOut("route", "tcp_route", ("route",)),
    ),
)

SCHEMA = ResourceSchema(
    kind=KIND,
    families=(
        INFO,
        HOST,
        GATEWAY,
        HTTP_MATCH,
        HTTP_ROUTE,
        HTTP_ROUTE_POLICY,
        TCP_MATCH,
        TCP_ROUTE,
    ),
)

__all__ = ["KIND", "SCHEMA"]
