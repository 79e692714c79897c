"""The fixed catalog of available collectors and how to assemble them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Sequence, Tuple

from . import destination_rules, rules, virtual_services
from .collectors import ScrapeCoordinator
from .config import ALL_NAMESPACES, DEFAULT_RESYNC_PERIOD_SECONDS, ConfigError, describe_namespaces
from .extraction import Extractor
from .metrics import ScrapeTelemetry
from .mirror import ListWatchSource, MirrorGroup, ResourceMirror
from .resources import DESTINATION_RULE, RULE, VIRTUAL_SERVICE, ResourceKind
from .schema import ResourceSchema

logger = logging.getLogger(__name__)

SourceFactory = Callable[[ResourceKind], ListWatchSource]


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    kind: ResourceKind
    schema: ResourceSchema

    def extractor(self) -> Extractor:
        return Extractor(self.schema)


AVAILABLE_COLLECTORS: Mapping[str, CatalogEntry] = {
    "destinationrules": CatalogEntry(DESTINATION_RULE, destination_rules.SCHEMA),
    "rules": CatalogEntry(RULE, rules.SCHEMA),
    "virtualservices": CatalogEntry(VIRTUAL_SERVICE, virtual_services.SCHEMA),
}

DEFAULT_COLLECTORS: Tuple[str, ...] = tuple(sorted(AVAILABLE_COLLECTORS))


def resolve_collectors(names: Iterable[str]) -> Tuple[str, ...]:
    """Validate collector names; an empty selection enables all of them."""

    selected = []
    for name in names:
        if name not in AVAILABLE_COLLECTORS:
            raise ConfigError(
                f'collector "{name}" does not exist (available: {", ".join(DEFAULT_COLLECTORS)})'
            )
        if name not in selected:
            selected.append(name)
    return tuple(selected) if selected else DEFAULT_COLLECTORS


def build_coordinator(
    source_factory: SourceFactory,
    collectors: Sequence[str] = DEFAULT_COLLECTORS,
    namespaces: Sequence[str] = (ALL_NAMESPACES,),
    telemetry: ScrapeTelemetry | None = None,
    resync_period: float = DEFAULT_RESYNC_PERIOD_SECONDS,
) -> Tuple[ScrapeCoordinator, MirrorGroup]:
    """Create a mirror and collector for every enabled kind.

    Mirrors are returned unstarted in a :class:`MirrorGroup`.
    """

    coordinator = ScrapeCoordinator(telemetry)
    mirrors = MirrorGroup()
    for name in resolve_collectors(collectors):
        entry = AVAILABLE_COLLECTORS[name]
        mirror = mirrors.add(
            ResourceMirror(entry.kind, source_factory(entry.kind), namespaces, resync_period)
        )
        coordinator.register(name, mirror, entry.extractor())
    logger.info("Active collectors: %s", ",".join(coordinator.names))
    logger.info("Using %s", describe_namespaces(namespaces))
    return coordinator, mirrors


__all__ = [
    "AVAILABLE_COLLECTORS",
    "CatalogEntry",
    "DEFAULT_COLLECTORS",
    "build_coordinator",
    "resolve_collectors",
]
