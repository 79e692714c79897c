"""Local mirrors of custom resources kept in sync by list-watch workers.

Every mirror runs one worker thread per watched namespace (or a single one
for the whole cluster).  A worker lists the current objects, then applies
watch events until the resync period elapses, and lists again.  Failures
are logged and retried with backoff; readers keep seeing the last good
snapshot meanwhile.

Snapshots are replace-only: a worker builds a new mapping for every change
and swaps the reference, so ``list()`` never locks and never blocks.
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Protocol, Sequence, Tuple

from .config import ALL_NAMESPACES, DEFAULT_RESYNC_PERIOD_SECONDS, describe_namespaces
from .resources import ResourceKind, WatchedResource

logger = logging.getLogger(__name__)

WATCH_TIMEOUT_SECONDS = 60.0
BACKOFF_INITIAL_SECONDS = 1.0
BACKOFF_MAX_SECONDS = 30.0


class MirrorState(Enum):
    UNSYNCED = "unsynced"
    SYNCING = "syncing"
    SYNCED = "synced"
    RESYNCING = "resyncing"
    STOPPED = "stopped"


class WatchExpired(RuntimeError):
    """The watch stream reported an error; the worker must list again."""


class ListWatchSource(Protocol):
    """The cluster side of a mirror: list current objects, then stream changes."""

    def list(self, namespace: str) -> Tuple[Sequence[Mapping[str, Any]], str]:
        ...

    def watch(
        self, namespace: str, resource_version: str, timeout_seconds: int
    ) -> Iterable[Mapping[str, Any]]:
        ...


class NamespaceSync:
    """Keeps the objects of one kind in one namespace up to date."""

    def __init__(
        self,
        kind: ResourceKind,
        source: ListWatchSource,
        namespace: str = ALL_NAMESPACES,
        resync_period: float = DEFAULT_RESYNC_PERIOD_SECONDS,
        watch_timeout: float = WATCH_TIMEOUT_SECONDS,
        backoff_initial: float = BACKOFF_INITIAL_SECONDS,
        backoff_max: float = BACKOFF_MAX_SECONDS,
    ) -> None:
        self.kind = kind
        self.source = source
        self.namespace = namespace
        self.resync_period = resync_period
        self.watch_timeout = watch_timeout
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max
        self.state = MirrorState.UNSYNCED
        self.synced_once = False
        self.resource_version = ""
        self._items: Mapping[Tuple[str, str], WatchedResource] = MappingProxyType({})

    @property
    def label(self) -> str:
        return f"{self.kind.name}/{describe_namespaces([self.namespace])}"

    def snapshot(self) -> Tuple[WatchedResource, ...]:
        return tuple(self._items.values())

    def _publish(self, items: Dict[Tuple[str, str], WatchedResource]) -> None:
        self._items = MappingProxyType(items)

    def relist(self) -> None:
        self.state = MirrorState.RESYNCING if self.state is MirrorState.SYNCED else MirrorState.SYNCING
        objects, resource_version = self.source.list(self.namespace)
        items: Dict[Tuple[str, str], WatchedResource] = {}
        for obj in objects:
            resource = WatchedResource.from_object(self.kind.name, obj)
            items[resource.key] = resource
        self._publish(items)
        self.resource_version = resource_version
        self.state = MirrorState.SYNCED
        self.synced_once = True
        logger.debug("Listed %s %s resources", len(items), self.label)

    def apply(self, event: Mapping[str, Any]) -> None:
        """Apply one watch event to the snapshot.

        Sources that yield ERROR events (rather than raising, as the
        kubernetes client does) get them turned into :class:`WatchExpired`.
        """

        event_type = event.get("type")
        obj = event.get("object") or {}
        if event_type == "ERROR":
            raise WatchExpired(f"watch of {self.label} failed: {obj.get('message', obj)}")
        metadata = obj.get("metadata") or {}
        if event_type == "BOOKMARK":
            self.resource_version = str(metadata.get("resourceVersion") or self.resource_version)
            return
        if event_type not in ("ADDED", "MODIFIED", "DELETED"):
            logger.debug("Ignoring %s event for %s", event_type, self.label)
            return
        resource = WatchedResource.from_object(self.kind.name, obj)
        items = dict(self._items)
        if event_type == "DELETED":
            items.pop(resource.key, None)
        else:
            items[resource.key] = resource
        self._publish(items)
        if resource.resource_version:
            self.resource_version = resource.resource_version

    def watch_until_resync(self, stop_event: threading.Event) -> None:
        deadline = time.monotonic() + self.resync_period
        while not stop_event.is_set():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            timeout = max(1, int(min(remaining, self.watch_timeout)))
            received = False
            for event in self.source.watch(self.namespace, self.resource_version, timeout):
                if stop_event.is_set():
                    return
                self.apply(event)
                received = True
            if not received:
                # Empty stream closed early; pause instead of reconnecting in a tight loop.
                stop_event.wait(min(self.backoff_initial, remaining))

    def run(self, stop_event: threading.Event) -> None:
        delay = self.backoff_initial
        logger.info("Starting sync of %s", self.label)
        while not stop_event.is_set():
            try:
                self.relist()
                delay = self.backoff_initial
                self.watch_until_resync(stop_event)
            except Exception as exc:  # noqa: BLE001
                self.state = MirrorState.SYNCING
                logger.warning(
                    "Sync of %s failed, retrying in %.1fs: %s", self.label, delay, exc
                )
                stop_event.wait(delay)
                delay = min(delay * 2, self.backoff_max)
        self.state = MirrorState.STOPPED
        logger.info("Stopped sync of %s", self.label)


class ResourceMirror:
    """Mirror of one resource kind across a set of namespaces."""

    def __init__(
        self,
        kind: ResourceKind,
        source: ListWatchSource,
        namespaces: Sequence[str] = (ALL_NAMESPACES,),
        resync_period: float = DEFAULT_RESYNC_PERIOD_SECONDS,
        watch_timeout: float = WATCH_TIMEOUT_SECONDS,
    ) -> None:
        self.kind = kind
        self.syncs: Tuple[NamespaceSync, ...] = tuple(
            NamespaceSync(kind, source, namespace, resync_period, watch_timeout)
            for namespace in namespaces
        )
        self._threads: List[threading.Thread] = []
        self._start_lock = threading.Lock()

    def start(self, stop_event: threading.Event) -> None:
        """Start the sync workers; calling it again is a no-op."""

        with self._start_lock:
            if self._threads:
                return
            for sync in self.syncs:
                thread = threading.Thread(
                    target=sync.run,
                    args=(stop_event,),
                    name=f"mirror-{sync.kind.name}-{sync.namespace or 'all'}",
                    daemon=True,
                )
                thread.start()
                self._threads.append(thread)

    def list(self) -> List[WatchedResource]:
        resources: List[WatchedResource] = []
        for sync in self.syncs:
            resources.extend(sync.snapshot())
        return resources

    @property
    def states(self) -> Dict[str, MirrorState]:
        return {sync.namespace: sync.state for sync in self.syncs}

    def has_synced(self) -> bool:
        return all(sync.synced_once for sync in self.syncs)

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the workers to exit; returns False if any is still alive."""

        deadline = None if timeout is None else time.monotonic() + timeout
        for thread in self._threads:
            remaining = None if deadline is None else max(deadline - time.monotonic(), 0.0)
            thread.join(remaining)
        return not any(thread.is_alive() for thread in self._threads)


class MirrorGroup:
    """Owns every mirror of the process and the one shutdown signal they share."""

    def __init__(self, mirrors: Iterable[ResourceMirror] = ()) -> None:
        self.stop_event = threading.Event()
        self._mirrors: List[ResourceMirror] = list(mirrors)

    def add(self, mirror: ResourceMirror) -> ResourceMirror:
        self._mirrors.append(mirror)
        return mirror

    def __iter__(self) -> Iterator[ResourceMirror]:
        return iter(self._mirrors)

    def __len__(self) -> int:
        return len(self._mirrors)

    def start(self) -> None:
        for mirror in self._mirrors:
            mirror.start(self.stop_event)

    def shutdown(self, timeout: float = 5.0) -> bool:
        self.stop_event.set()
        deadline = time.monotonic() + timeout
        stopped = True
        for mirror in self._mirrors:
            stopped = mirror.join(max(deadline - time.monotonic(), 0.0)) and stopped
        if not stopped:
            logger.warning("Some mirror workers did not stop within %.1fs", timeout)
        return stopped


__all__ = [
    "ListWatchSource",
    "MirrorGroup",
    "MirrorState",
    "NamespaceSync",
    "ResourceMirror",
    "WatchExpired",
]
