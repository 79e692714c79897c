"""Declarative description of how a resource tree flattens into metric rows.

A :class:`ResourceSchema` lists the metric families of one resource kind.
Each :class:`FamilySchema` names the sections that must be present for its
rows to exist (``requires``), the lists it fans out over (``fan_out``) and
the labels every row carries.  Labels read a value from a named *scope*:

``resource``
    identity of the resource (``name``, ``namespace``, ``id``, ``kind``)
``spec``
    the resource's spec tree
``<fan-out scope>``
    the current element of a list the family fans out over

Lists of independently identified sub-objects are fanned out, one row per
element.  Lists of plain values and free-form key/value maps are joined
into a single label value by the label's ``render`` function instead.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple

from .metrics import MetricFamily

Path = Tuple[str, ...]
Scope = Mapping[str, Any]
Renderer = Callable[[Any], str]

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": Decimal("0.000000001"),
    "us": Decimal("0.000001"),
    "µs": Decimal("0.000001"),
    "ms": Decimal("0.001"),
    "s": Decimal(1),
    "m": Decimal(60),
    "h": Decimal(3600),
}
# Adjusted exponents outside this range are not durations worth rendering.
_DURATION_EXPONENT_RANGE = (-9, 18)


# ----------------------------------------------------------------------
# Value rendering
# ----------------------------------------------------------------------
def _format_decimal(value: Decimal) -> str:
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def render_scalar(value: Any) -> str:
    """Render a leaf value; absent values become the empty string."""

    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return _format_decimal(Decimal(repr(value)))
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        return render_pairs(value)
    if isinstance(value, Sequence):
        return render_joined(value)
    return str(value)


def render_joined(value: Any, separator: str = ",") -> str:
    if value is None:
        return ""
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        return render_scalar(value)
    return separator.join(render_scalar(item) for item in value)


def render_pairs(value: Any) -> str:
    """Render a key/value map as ``{key:k,value:v}`` literals in key order."""

    if not isinstance(value, Mapping):
        return render_scalar(value)
    return "".join(
        f"{{key:{key},value:{render_scalar(value[key])}}}" for key in sorted(value)
    )


def render_header_matches(value: Any) -> str:
    """Render a header name -> string match map as bracketed literals."""

    if not isinstance(value, Mapping):
        return render_scalar(value)
    parts = []
    for header in sorted(value):
        match = value[header]
        exact, prefix, regex = string_match_parts(match)
        parts.append(f"{{header:{header},value:{exact},{prefix},{regex}}}")
    return "".join(parts)


def string_match_parts(match: Any) -> Tuple[str, str, str]:
    if not isinstance(match, Mapping):
        return ("", "", "")
    return (
        render_scalar(match.get("exact")),
        render_scalar(match.get("prefix")),
        render_scalar(match.get("regex")),
    )


def _duration_number(text: str) -> Optional[Decimal]:
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    if number.is_zero():
        return Decimal(0)
    low, high = _DURATION_EXPONENT_RANGE
    if not low <= number.adjusted() <= high:
        return None
    return number


def parse_duration(value: Any) -> Optional[Decimal]:
    """Parse a duration into seconds.

    Accepts Go-style strings (``1m30s``, ``250ms``), bare numbers meaning
    seconds and protobuf ``{seconds, nanos}`` objects.  Returns ``None``
    when the value cannot be understood.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _duration_number(str(value))
    if isinstance(value, Mapping):
        seconds = _duration_number(str(value.get("seconds") or 0))
        nanos = _duration_number(str(value.get("nanos") or 0))
        if seconds is None or nanos is None:
            return None
        return seconds + nanos * _DURATION_UNITS["ns"]
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    sign = Decimal(1)
    if text[0] in "+-":
        if text[0] == "-":
            sign = Decimal(-1)
        text = text[1:]
    if not text:
        return None
    if text[-1].isdigit() or text[-1] == ".":
        # No unit: plain seconds.
        number = _duration_number(text)
        return None if number is None else sign * number
    total = Decimal(0)
    position = 0
    for match in _DURATION_PART_RE.finditer(text):
        if match.start() != position:
            return None
        number = _duration_number(match.group(1))
        if number is None:
            return None
        total += number * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position != len(text) or position == 0:
        return None
    return sign * total


def render_duration(value: Any) -> str:
    """Render a duration in seconds, e.g. ``90s`` or ``0.25s``."""

    if value is None:
        return ""
    seconds = parse_duration(value)
    if seconds is None:
        return render_scalar(value)
    return f"{_format_decimal(seconds)}s"


# ----------------------------------------------------------------------
# Tree navigation
# ----------------------------------------------------------------------
def lookup(node: Any, path: Path) -> Any:
    """Follow ``path`` through nested mappings; ``None`` when any step is absent."""

    for step in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(step)
        if node is None:
            return None
    return node


def lookup_first(node: Any, paths: Sequence[Path]) -> Any:
    for path in paths:
        value = lookup(node, path)
        if value is not None:
            return value
    return None


# ----------------------------------------------------------------------
# Schema types
# ----------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Label:
    """One label of a family and where its value comes from.

    ``paths`` are alternatives tried in order (e.g. a camelCase field and
    its snake_case alias).  ``derive`` replaces path lookup entirely and is
    handed the whole scope.
    """

    name: str
    scope: str = "spec"
    paths: Tuple[Path, ...] = ((),)
    render: Renderer = render_scalar
    derive: Optional[Callable[[Scope], str]] = None

    def resolve(self, scope: Scope) -> str:
        if self.derive is not None:
            return self.derive(scope)
        return self.render(lookup_first(scope.get(self.scope), self.paths))


@dataclass(frozen=True, slots=True)
class FanOut:
    """Emit one row per element of the list at ``path`` under ``source``."""

    scope: str
    source: str
    path: Path


@dataclass(frozen=True, slots=True)
class FamilySchema:
    name: str
    documentation: str
    labels: Tuple[Label, ...]
    requires: Tuple[Tuple[str, Path], ...] = ()
    fan_out: Tuple[FanOut, ...] = ()
    family: MetricFamily = field(init=False, compare=False)

    def __post_init__(self) -> None:
        names = [label.name for label in self.labels]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate label names in {self.name}: {names}")
        object.__setattr__(
            self, "family", MetricFamily(self.name, self.documentation, tuple(names))
        )


@dataclass(frozen=True, slots=True)
class ResourceSchema:
    kind: str
    families: Tuple[FamilySchema, ...]

    @property
    def metric_families(self) -> Tuple[MetricFamily, ...]:
        return tuple(schema.family for schema in self.families)


# ----------------------------------------------------------------------
# Label constructors
# ----------------------------------------------------------------------
def _as_paths(path: Sequence[str], aliases: Sequence[Sequence[str]]) -> Tuple[Path, ...]:
    return (tuple(path),) + tuple(tuple(alias) for alias in aliases)


def scalar(name: str, *path: str, scope: str = "spec", aliases: Sequence[Sequence[str]] = ()) -> Label:
    return Label(name, scope, _as_paths(path, aliases))


def duration(name: str, *path: str, scope: str = "spec", aliases: Sequence[Sequence[str]] = ()) -> Label:
    return Label(name, scope, _as_paths(path, aliases), render=render_duration)


def joined(name: str, *path: str, scope: str = "spec", aliases: Sequence[Sequence[str]] = ()) -> Label:
    return Label(name, scope, _as_paths(path, aliases), render=render_joined)


def pairs(name: str, *path: str, scope: str = "spec", aliases: Sequence[Sequence[str]] = ()) -> Label:
    return Label(name, scope, _as_paths(path, aliases), render=render_pairs)


def derived(name: str, fn: Callable[[Scope], str]) -> Label:
    return Label(name, derive=fn)


def resource_name(label: str) -> Label:
    return Label(label, "resource", (("name",),))


def resource_namespace(label: str = "namespace") -> Label:
    return Label(label, "resource", (("namespace",),))


def resource_id(label: str) -> Label:
    """``<name>.<namespace>`` of the resource."""

    return Label(label, "resource", (("id",),))


__all__ = [
    "FamilySchema",
    "FanOut",
    "Label",
    "ResourceSchema",
    "derived",
    "duration",
    "joined",
    "lookup",
    "lookup_first",
    "pairs",
    "parse_duration",
    "render_duration",
    "render_header_matches",
    "render_joined",
    "render_pairs",
    "render_scalar",
    "resource_id",
    "resource_name",
    "resource_namespace",
    "scalar",
    "string_match_parts",
]
