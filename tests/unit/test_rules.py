"""Unit tests for Mixer rule flattening and instance reference parsing."""

from __future__ import annotations

import pytest

from istio_state_metrics import rules
from istio_state_metrics.collectors import Collector
from istio_state_metrics.extraction import Extractor
from istio_state_metrics.rules import InstanceRef, parse_instance_ref

from tests.conftest import StaticMirror, make_resource, rows_by_family

INFO = "istio_mixer_rule_info"
ACTIONS = "istio_mixer_rule_actions"
INSTANCE = "istio_mixer_instance_info"


# ---------------------------------------------------------------------------
# Instance references
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("reference", "expected"),
    [
        ("requestcount.metric.istio-system", InstanceRef("requestcount", "metric", "istio-system")),
        ("requestcount.metric", InstanceRef("requestcount", "metric", "default")),
        ("requestcount", InstanceRef("requestcount", "unknown", "default")),
        ("a.b.c.d", InstanceRef("a", "b", "c.d")),
        ("a..c", InstanceRef("a", "unknown", "c")),
        ("a.b.", InstanceRef("a", "b", "default")),
        ("", InstanceRef("", "unknown", "default")),
    ],
)
def test_parse_instance_ref(reference, expected) -> None:
    assert parse_instance_ref(reference, "default") == expected


# ---------------------------------------------------------------------------
# Rule rows
# ---------------------------------------------------------------------------


def _rule(name, namespace="istio-system", spec=None):
    return make_resource("rule", name, namespace, spec)


def test_rule_rows() -> None:
    rule = _rule(
        "promhttp",
        spec={
            "match": 'context.protocol == "http"',
            "actions": [
                {
                    "handler": "handler.prometheus",
                    "instances": ["requestcount.metric", "requestsize.metric.telemetry"],
                }
            ],
        },
    )

    rows = rows_by_family(Extractor(rules.SCHEMA).extract(rule))

    assert rows[INFO] == [{"rule": "promhttp", "namespace": "istio-system"}]
    assert rows[ACTIONS] == [
        {
            "rule": "promhttp.istio-system",
            "match": 'context.protocol == "http"',
            "handler": "handler.prometheus",
            "instances": "requestcount.metric,requestsize.metric.telemetry",
        }
    ]
    assert rows[INSTANCE] == [
        {"instance": "requestcount", "kind": "metric", "namespace": "istio-system"},
        {"instance": "requestsize", "kind": "metric", "namespace": "telemetry"},
    ]


def test_rule_without_actions_only_has_info_row() -> None:
    rows = rows_by_family(Extractor(rules.SCHEMA).extract(_rule("empty")))

    assert list(rows) == [INFO]


def test_shared_instances_are_reported_once_per_scrape() -> None:
    shared = {"handler": "h.prometheus", "instances": ["requestcount.metric"]}
    collector = Collector(
        name="rules",
        mirror=StaticMirror(
            [
                _rule("one", spec={"actions": [shared]}),
                _rule("two", spec={"actions": [shared, {"handler": "h.stdio", "instances": ["requestcount.metric"]}]}),
            ]
        ),
        extractor=Extractor(rules.SCHEMA),
    )

    count, collected = collector.collect()
    grouped = rows_by_family(collected)

    assert count == 2
    assert grouped[INSTANCE] == [
        {"instance": "requestcount", "kind": "metric", "namespace": "istio-system"}
    ]
    assert len(grouped[ACTIONS]) == 3
