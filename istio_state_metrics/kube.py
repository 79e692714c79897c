"""Kubernetes API access: client loading and the custom-object list-watch source."""

from __future__ import annotations

import logging
from typing import Any, Iterator, Mapping, Optional, Sequence, Tuple

from kubernetes import client, config as kube_config, watch
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from .config import ALL_NAMESPACES, Config
from .mirror import WatchExpired
from .resources import ResourceKind

logger = logging.getLogger(__name__)

HTTP_GONE = 410


def load_api_client(config: Config) -> client.ApiClient:
    """Build an API client from in-cluster credentials or a kubeconfig file.

    An explicit kubeconfig wins; otherwise the in-cluster service account is
    tried first and the default kubeconfig location second.  ``apiserver``
    overrides the server URL either way.
    """

    configuration = client.Configuration()
    if config.kubeconfig:
        kube_config.load_kube_config(config_file=config.kubeconfig, client_configuration=configuration)
        logger.info("Loaded kubeconfig from %s", config.kubeconfig)
    else:
        try:
            kube_config.load_incluster_config(client_configuration=configuration)
            logger.info("Loaded in-cluster Kubernetes config")
        except ConfigException:
            kube_config.load_kube_config(client_configuration=configuration)
            logger.info("Loaded kubeconfig")
    if config.apiserver:
        configuration.host = config.apiserver
    return client.ApiClient(configuration)


def probe_server_version(api_client: client.ApiClient) -> Optional[str]:
    """Log the cluster version; unreachable servers are reported, not fatal."""

    logger.info("Testing communication with server")
    try:
        version = client.VersionApi(api_client).get_code()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Could not reach the apiserver, mirrors will keep retrying: %s", exc)
        return None
    logger.info(
        "Running with Kubernetes cluster version: v%s.%s. git version: %s. platform: %s",
        version.major,
        version.minor,
        version.git_version,
        version.platform,
    )
    return version.git_version


class CustomObjectSource:
    """List-watch access to one custom resource kind."""

    def __init__(self, api: client.CustomObjectsApi, kind: ResourceKind) -> None:
        self.api = api
        self.kind = kind

    def _call(self, namespace: str) -> Tuple[Any, Tuple[str, ...]]:
        if namespace == ALL_NAMESPACES:
            return (
                self.api.list_cluster_custom_object,
                (self.kind.group, self.kind.version, self.kind.plural),
            )
        return (
            self.api.list_namespaced_custom_object,
            (self.kind.group, self.kind.version, namespace, self.kind.plural),
        )

    def list(self, namespace: str) -> Tuple[Sequence[Mapping[str, Any]], str]:
        func, args = self._call(namespace)
        response = func(*args)
        metadata = response.get("metadata") or {}
        return response.get("items") or [], str(metadata.get("resourceVersion") or "")

    def watch(
        self, namespace: str, resource_version: str, timeout_seconds: int
    ) -> Iterator[Mapping[str, Any]]:
        func, args = self._call(namespace)
        kwargs: dict[str, Any] = {
            "timeout_seconds": timeout_seconds,
            "allow_watch_bookmarks": True,
            "_request_timeout": timeout_seconds + 10,
        }
        if resource_version:
            kwargs["resource_version"] = resource_version
        stream = watch.Watch()
        try:
            yield from stream.stream(func, *args, **kwargs)
        except ApiException as exc:
            # The client raises ERROR events itself; 410 means the version is too old.
            if exc.status == HTTP_GONE:
                raise WatchExpired(f"watch of {self.kind.plural} expired: {exc.reason}") from exc
            raise
        finally:
            stream.stop()


class CustomObjectSourceFactory:
    """Creates a list-watch source per resource kind from one API client."""

    def __init__(self, api_client: client.ApiClient) -> None:
        self.api = client.CustomObjectsApi(api_client)

    def __call__(self, kind: ResourceKind) -> CustomObjectSource:
        return CustomObjectSource(self.api, kind)


__all__ = ["CustomObjectSource", "CustomObjectSourceFactory", "load_api_client", "probe_server_version"]
