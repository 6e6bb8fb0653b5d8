"""Kubernetes controller module.

This module provides the entry point to every Kubernetes resource handler
used by kubexpose.
"""

import logging
from typing import Any

from kubernetes.client.exceptions import ApiException

from kubexpose.config import config_from_configmap
from kubexpose.kubernetes.connection import KubernetesConnection
from kubexpose.kubernetes.resources.ingresses import IngressStore
from kubexpose.kubernetes.resources.routes import RouteStore
from kubexpose.kubernetes.resources.services import ServiceResource
from kubexpose.kubernetes.store import AccessObjectStore

logger = logging.getLogger(__name__)

# ConfigMaps searched for configuration, in order
CONFIGMAP_NAMES = ["kubexpose", "ingress-config"]
# Namespace label pointing at the namespace holding shared configuration
TEAM_NAMESPACE_LABEL = "team"


class KubernetesController:
    """Controller for the Kubernetes resources kubexpose works with.

    It owns the connection, the Service handler and one store per supported
    access object kind.
    """

    # All supported access object stores
    SUPPORTED_STORES = ["ingresses", "routes"]

    def __init__(self, connection: KubernetesConnection | None = None):
        """Initialize the Kubernetes controller.

        Args:
            connection: The connection to use. If None, a new connection is created.
        """
        self.connection = connection or KubernetesConnection()
        self.services = ServiceResource(self.connection)

        # Initialize store handlers
        self.stores: dict[str, AccessObjectStore] = {}
        self._register_stores()

    def _register_stores(self) -> None:
        """Register all supported access object stores."""
        self.register_store("ingresses", IngressStore(self.connection))
        self.register_store("routes", RouteStore(self.connection))

    def register_store(self, kind: str, store: AccessObjectStore) -> None:
        """Register an access object store.

        Args:
            kind: The name of the access object kind.
            store: The store instance for this kind.
        """
        self.stores[kind] = store
        logger.debug(f"Registered store for {kind}")

    def get_store(self, kind: str) -> AccessObjectStore | None:
        """Get the store for a specific access object kind.

        Args:
            kind: The name of the access object kind.

        Returns:
            The store for the requested kind, or None if not found.
        """
        store = self.stores.get(kind)
        if not store:
            logger.warning(f"No store registered for access object kind {kind}")
        return store

    def current_namespace(self) -> str:
        """Return the namespace the controller runs in."""
        return self.connection.current_namespace()

    def find_cluster_config(self, namespace: str) -> dict[str, Any] | None:
        """Look for configuration held in a ConfigMap of a namespace.

        The ``kubexpose`` ConfigMap is tried first, then ``ingress-config``.

        Args:
            namespace: The namespace to look in.

        Returns:
            The configuration mapping, or None if no usable ConfigMap exists.
        """
        for name in CONFIGMAP_NAMES:
            try:
                config_map = self.connection.core_v1_api.read_namespaced_config_map(name, namespace)
            except ApiException as e:
                if e.status != 404:
                    logger.warning(f"Failed to read ConfigMap {namespace}/{name}: {e}")
                else:
                    logger.debug(f"Could not find ConfigMap {namespace}/{name}")
                continue

            data = config_from_configmap(config_map.data)
            if data is not None:
                logger.info(f"Loaded configuration from ConfigMap {namespace}/{name}")
                return data
        return None

    def team_namespace(self, namespace: str) -> str | None:
        """Find the team namespace linked to a namespace through its ``team`` label.

        Args:
            namespace: The namespace whose label to read.

        Returns:
            The team namespace, or None if the label is missing or the namespace cannot be read.
        """
        try:
            resource = self.connection.core_v1_api.read_namespace(namespace)
        except ApiException as e:
            logger.warning(f"Failed to load Namespace {namespace}: {e}")
            return None

        team = (resource.metadata.labels or {}).get(TEAM_NAMESPACE_LABEL)
        if not team:
            logger.debug(f"No '{TEAM_NAMESPACE_LABEL}' label on Namespace {namespace}")
            return None
        return team
