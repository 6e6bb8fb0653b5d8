"""OpenShift Routes handling module.

This module provides the access object store for route.openshift.io/v1 Routes,
which are custom objects and therefore handled as plain dictionaries.
"""

import logging
from typing import Any, ClassVar

from kubexpose.kubernetes.connection import KubernetesConnection
from kubexpose.kubernetes.store import AccessObjectStore
from kubexpose.models import AccessObjectSpec, OwnedObjectRecord

logger = logging.getLogger(__name__)


class RouteStore(AccessObjectStore[dict[str, Any]]):
    """Store for OpenShift Routes generated by kubexpose."""

    RESOURCE_API_VERSION: ClassVar[str] = "route.openshift.io/v1"
    RESOURCE_KIND: ClassVar[str] = "Route"

    GROUP: ClassVar[str] = "route.openshift.io"
    VERSION: ClassVar[str] = "v1"
    PLURAL: ClassVar[str] = "routes"

    def __init__(self, connection: KubernetesConnection, namespace: str | None = None):
        """Initialize the Route store.

        Args:
            connection: The Kubernetes connection to use
            namespace: Optional namespace to filter resources
        """
        super().__init__(connection, namespace)
        self.api = connection.custom_objects_api

    def list_namespaced_resources(self, namespace: str, **kwargs) -> Any:
        """List Routes in a namespace."""
        return self.api.list_namespaced_custom_object(
            group=self.GROUP,
            version=self.VERSION,
            namespace=namespace,
            plural=self.PLURAL,
            **kwargs,
        )

    def list_all_namespaces_resources(self, **kwargs) -> Any:
        """List Routes across all namespaces."""
        return self.api.list_cluster_custom_object(
            group=self.GROUP,
            version=self.VERSION,
            plural=self.PLURAL,
            **kwargs,
        )

    def page_items(self, result: dict[str, Any]) -> list[dict[str, Any]]:
        return result.get("items") or []

    def page_continue_token(self, result: dict[str, Any]) -> str | None:
        return (result.get("metadata") or {}).get("continue")

    def get_resource_name(self, resource: dict[str, Any]) -> str:
        return resource["metadata"]["name"]

    def get_resource_namespace(self, resource: dict[str, Any]) -> str:
        return resource["metadata"]["namespace"]

    def get_annotations(self, resource: dict[str, Any]) -> dict[str, str]:
        return dict(resource.get("metadata", {}).get("annotations") or {})

    def build_body(
        self, spec: AccessObjectSpec, annotations: dict[str, str], resource_version: str | None = None
    ) -> dict[str, Any]:
        """Build a Route sending the spec host to the spec backend.

        The backend port is the spec target port (a port name or endpoint port),
        falling back to the service port number. TLS is terminated at the router (edge) and plain HTTP is redirected.
        """
        metadata: dict[str, Any] = {
            "name": spec.name,
            "namespace": spec.namespace,
            "annotations": annotations,
        }
        if resource_version:
            metadata["resourceVersion"] = resource_version

        route_spec: dict[str, Any] = {
            "host": spec.host,
            "path": spec.path,
            "to": {"kind": "Service", "name": spec.service_name, "weight": 100},
            "port": {"targetPort": spec.target_port if spec.target_port is not None else spec.service_port},
        }
        if spec.tls:
            route_spec["tls"] = {"termination": "edge", "insecureEdgeTerminationPolicy": "Redirect"}

        return {
            "apiVersion": self.RESOURCE_API_VERSION,
            "kind": self.RESOURCE_KIND,
            "metadata": metadata,
            "spec": route_spec,
        }

    def to_record(self, resource: dict[str, Any]) -> OwnedObjectRecord:
        spec = resource.get("spec") or {}
        target_port = (spec.get("port") or {}).get("targetPort")
        return OwnedObjectRecord(
            name=self.get_resource_name(resource),
            namespace=self.get_resource_namespace(resource),
            host=spec.get("host"),
            service_name=(spec.get("to") or {}).get("name"),
            service_port=target_port if isinstance(target_port, int) else None,
            target_port=target_port,
            path=spec.get("path"),
            tls=bool(spec.get("tls")),
            annotations=self.get_annotations(resource),
            managed_annotations=self.managed_annotation_keys(resource),
            resource_version=resource.get("metadata", {}).get("resourceVersion"),
        )

    def create_resource(self, namespace: str, body: dict[str, Any]) -> None:
        self.api.create_namespaced_custom_object(
            group=self.GROUP,
            version=self.VERSION,
            namespace=namespace,
            plural=self.PLURAL,
            body=body,
        )

    def replace_resource(self, name: str, namespace: str, body: dict[str, Any]) -> None:
        self.api.replace_namespaced_custom_object(
            group=self.GROUP,
            version=self.VERSION,
            namespace=namespace,
            plural=self.PLURAL,
            name=name,
            body=body,
        )

    def delete_resource(self, name: str, namespace: str) -> None:
        self.api.delete_namespaced_custom_object(
            group=self.GROUP,
            version=self.VERSION,
            namespace=namespace,
            plural=self.PLURAL,
            name=name,
        )
