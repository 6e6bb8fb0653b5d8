"""Kubernetes Services handling module.

This module lists, patches and watches the Services that kubexpose exposes.
"""

import logging
import random
import threading
from collections.abc import Callable
from typing import Any

from kubernetes import client, watch
from kubernetes.client.exceptions import ApiException

from kubexpose.kubernetes.base import KubernetesResource
from kubexpose.kubernetes.connection import KubernetesConnection
from kubexpose.metrics import WATCH_ERRORS
from kubexpose.models import ServiceDescriptor

logger = logging.getLogger(__name__)


class ServiceResource(KubernetesResource[client.V1Service]):
    """Handler for Kubernetes Service resources."""

    # Resource type specific constants
    RESOURCE_API_VERSION = "v1"
    RESOURCE_KIND = "Service"

    def __init__(self, connection: KubernetesConnection, namespace: str | None = None):
        """Initialize the Service resource handler.

        Args:
            connection: The Kubernetes connection to use
            namespace: Optional namespace to filter resources. If None, all namespaces will be used.
        """
        super().__init__(connection, namespace)
        self.api = connection.core_v1_api

    def list_namespaced_resources(self, namespace: str, **kwargs) -> Any:
        """List services in a specific namespace."""
        return self.api.list_namespaced_service(namespace, **kwargs)

    def list_all_namespaces_resources(self, **kwargs) -> Any:
        """List services across all namespaces."""
        return self.api.list_service_for_all_namespaces(**kwargs)

    def list_services(self, namespace: str | None = None) -> list[ServiceDescriptor]:
        """List the services of a namespace as descriptors.

        A namespace that does not exist holds no services. Any other API
        failure is raised.

        Args:
            namespace: Namespace to list. If None, use the handler's namespace.

        Returns:
            The service descriptors.
        """
        try:
            return [ServiceDescriptor.from_k8s(service) for service in self.iter_resources(namespace=namespace)]
        except ApiException as e:
            if e.status == 404:
                logger.info(f"Namespace {namespace} not found, treating it as empty")
                return []
            raise

    def patch_service(self, name: str, namespace: str, body: dict) -> None:
        """Patch a service with the given body.

        Args:
            name: Name of the service.
            namespace: Namespace of the service.
            body: The patch body to apply.
        """
        self.api.patch_namespaced_service(name=name, namespace=namespace, body=body)
        logger.debug(f"Patched Service {namespace}/{name}: {body}")

    def watch_callable(self, namespace: str | None) -> tuple[Callable[..., Any], tuple]:
        """Return the list function and positional arguments to watch."""
        if namespace:
            return self.api.list_namespaced_service, (namespace,)
        return self.api.list_service_for_all_namespaces, ()


class ServiceWatcher(threading.Thread):
    """Streams Service events for one namespace, or all namespaces, to a callback.

    The stream is reopened whenever it ends. A ``410 Gone`` restarts it from
    the current state, transient errors back off exponentially with jitter
    up to 30 seconds.
    """

    def __init__(
        self,
        services: ServiceResource,
        namespace: str | None,
        on_event: Callable[[str, Any], None],
        timeout_seconds: int = 300,
    ):
        """Initialize the watcher.

        Args:
            services: The Service handler used to open watch streams.
            namespace: Namespace to watch, None for all namespaces.
            on_event: Called with the event type and the Service for every event.
            timeout_seconds: Server side timeout of a single stream.
        """
        super().__init__(name=f"service-watch-{namespace or 'all'}", daemon=True)
        self.services = services
        self.watch_namespace = namespace
        self.on_event = on_event
        self.timeout_seconds = timeout_seconds
        self._stop_event = threading.Event()
        self._active_watcher: watch.Watch | None = None
        self._watcher_lock = threading.Lock()

    def stop(self) -> None:
        """Stop watching and interrupt any open stream."""
        self._stop_event.set()
        with self._watcher_lock:
            active_watcher = self._active_watcher
        if active_watcher is not None:
            active_watcher.stop()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def run(self) -> None:
        resource_version: str | None = None
        backoff_seconds = 1
        list_func, args = self.services.watch_callable(self.watch_namespace)
        scope = self.watch_namespace or "all namespaces"
        logger.info(f"Watching services in {scope}")

        while not self.stopped:
            watcher = watch.Watch()
            with self._watcher_lock:
                self._active_watcher = watcher
            try:
                kwargs: dict[str, Any] = {"timeout_seconds": self.timeout_seconds}
                if resource_version:
                    kwargs["resource_version"] = resource_version
                for event in watcher.stream(list_func, *args, **kwargs):
                    if self.stopped:
                        break
                    if event.get("type") == "ERROR":
                        status = event.get("raw_object") or {}
                        raise ApiException(status=status.get("code"), reason=status.get("message"))
                    obj = event.get("object")
                    if obj is None:
                        continue
                    metadata = getattr(obj, "metadata", None)
                    if metadata is not None and metadata.resource_version:
                        resource_version = metadata.resource_version
                    self.on_event(str(event.get("type", "")), obj)
                backoff_seconds = 1
            except ApiException as e:
                if e.status == 410:
                    logger.warning(f"Service watch in {scope} expired, restarting from the current state")
                    resource_version = None
                    continue
                logger.error(f"Service watch error in {scope}: {e}")
                WATCH_ERRORS.inc()
                self._stop_event.wait(timeout=backoff_seconds * (0.5 + random.random()))
                backoff_seconds = min(backoff_seconds * 2, 30)
            except Exception:
                logger.exception(f"Unexpected service watch error in {scope}")
                WATCH_ERRORS.inc()
                self._stop_event.wait(timeout=backoff_seconds * (0.5 + random.random()))
                backoff_seconds = min(backoff_seconds * 2, 30)
            finally:
                watcher.stop()
                with self._watcher_lock:
                    if self._active_watcher is watcher:
                        self._active_watcher = None

        logger.info(f"Stopped watching services in {scope}")
