"""Unit tests for value rendering and schema validation."""

from __future__ import annotations

from decimal import Decimal

import pytest

from istio_state_metrics.resources import freeze
from istio_state_metrics.schema import (
    FamilySchema,
    lookup,
    lookup_first,
    parse_duration,
    render_duration,
    render_header_matches,
    render_joined,
    render_pairs,
    render_scalar,
    scalar,
)


# ---------------------------------------------------------------------------
# Scalars and joins
# ---------------------------------------------------------------------------


class TestRenderScalar:
    """Leaf values render to their plain text form."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, ""),
            ("", ""),
            ("ROUND_ROBIN", "ROUND_ROBIN"),
            (10, "10"),
            (10.0, "10"),
            (0.5, "0.5"),
            (0.00001, "0.00001"),
            (1e-07, "0.0000001"),
            (True, "true"),
            (False, "false"),
        ],
    )
    def test_values(self, value, expected) -> None:
        assert render_scalar(value) == expected

    def test_zero_is_not_absent(self) -> None:
        assert render_scalar(0) == "0"


def test_render_joined_keeps_list_order() -> None:
    assert render_joined(["b.example", "a.example"]) == "b.example,a.example"


def test_render_joined_empty_list_is_empty_string() -> None:
    assert render_joined([]) == ""
    assert render_joined(None) == ""


def test_render_pairs_sorts_keys() -> None:
    assert render_pairs({"version": "v1", "app": "web"}) == (
        "{key:app,value:web}{key:version,value:v1}"
    )


def test_render_pairs_reads_frozen_maps() -> None:
    assert render_pairs(freeze({"b": 2, "a": 1})) == "{key:a,value:1}{key:b,value:2}"


def test_render_header_matches() -> None:
    headers = {
        "x-user": {"exact": "bob"},
        "cookie": {"regex": "^(.*?;)?(user=jason)(;.*)?$"},
    }
    assert render_header_matches(headers) == (
        "{header:cookie,value:,,^(.*?;)?(user=jason)(;.*)?$}"
        "{header:x-user,value:bob,,}"
    )


# ---------------------------------------------------------------------------
# Durations
# ---------------------------------------------------------------------------


class TestDurations:
    """Durations are normalised to seconds with an ``s`` suffix."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("10s", "10s"),
            ("1m30s", "90s"),
            ("1h", "3600s"),
            ("250ms", "0.25s"),
            ("1.5s", "1.5s"),
            (3, "3s"),
            ({"seconds": 5, "nanos": 500000000}, "5.5s"),
        ],
    )
    def test_render(self, value, expected) -> None:
        assert render_duration(value) == expected

    def test_absent_duration_is_empty(self) -> None:
        assert render_duration(None) == ""

    def test_unparseable_duration_is_rendered_verbatim(self) -> None:
        assert render_duration("soon") == "soon"

    def test_parse_rejects_non_finite_numbers(self) -> None:
        assert parse_duration(float("nan")) is None
        assert parse_duration("inf") is None

    def test_parse_negative(self) -> None:
        assert parse_duration("-2s") == Decimal(-2)

    @pytest.mark.parametrize("value", ["1e99999999", "-1e99999999", "1e999999", "99999999999999999999h"])
    def test_huge_exponents_pass_through_verbatim(self, value) -> None:
        assert parse_duration(value) is None
        assert render_duration(value) == value

    def test_huge_protobuf_seconds_are_not_parsed(self) -> None:
        value = {"seconds": "1e99999999"}

        assert parse_duration(value) is None
        assert render_duration(value) == "{key:seconds,value:1e99999999}"

    def test_zero_with_large_exponent_is_zero(self) -> None:
        assert render_duration("0e-99999999") == "0s"


# ---------------------------------------------------------------------------
# Tree navigation and schema declarations
# ---------------------------------------------------------------------------


def test_lookup_stops_at_absent_step() -> None:
    tree = {"trafficPolicy": {"tls": {"mode": "ISTIO_MUTUAL"}}}

    assert lookup(tree, ("trafficPolicy", "tls", "mode")) == "ISTIO_MUTUAL"
    assert lookup(tree, ("trafficPolicy", "loadBalancer", "simple")) is None
    assert lookup(tree, ("trafficPolicy", "tls", "mode", "deeper")) is None


def test_lookup_first_prefers_earlier_paths() -> None:
    tree = {"sourceLabels": {"a": "1"}, "source_labels": {"b": "2"}}

    assert lookup_first(tree, (("sourceLabels",), ("source_labels",))) == {"a": "1"}
    assert lookup_first({"source_labels": "x"}, (("sourceLabels",), ("source_labels",))) == "x"


def test_family_schema_rejects_duplicate_label_names() -> None:
    with pytest.raises(ValueError, match="Duplicate label names"):
        FamilySchema(
            "istio_test_info",
            "duplicate labels",
            labels=(scalar("host", "host"), scalar("host", "other")),
        )


def test_family_schema_builds_metric_family() -> None:
    schema = FamilySchema(
        "istio_test_info", "help", labels=(scalar("host", "host"), scalar("port", "port"))
    )

    assert schema.family.name == "istio_test_info"
    assert schema.family.labelnames == ("host", "port")
