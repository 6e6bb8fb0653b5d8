"""Kubernetes Ingresses handling module.

This module provides the access object store for networking.k8s.io/v1 Ingresses.
"""

import logging
from typing import Any

from kubernetes import client

from kubexpose.kubernetes.connection import KubernetesConnection
from kubexpose.kubernetes.store import AccessObjectStore
from kubexpose.models import AccessObjectSpec, OwnedObjectRecord

logger = logging.getLogger(__name__)

MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"


class IngressStore(AccessObjectStore[client.V1Ingress]):
    """Store for Ingresses generated by kubexpose."""

    # Resource type specific constants
    RESOURCE_API_VERSION = "networking.k8s.io/v1"
    RESOURCE_KIND = "Ingress"

    def __init__(self, connection: KubernetesConnection, namespace: str | None = None):
        """Initialize the Ingress store.

        Args:
            connection: The Kubernetes connection to use
            namespace: Optional namespace to filter resources. If None, all namespaces will be used.
        """
        super().__init__(connection, namespace)
        # API client for ingresses
        self.api = connection.networking_v1_api

    def list_namespaced_resources(self, namespace: str, **kwargs) -> Any:
        """List ingresses in a specific namespace."""
        return self.api.list_namespaced_ingress(namespace, **kwargs)

    def list_all_namespaces_resources(self, **kwargs) -> Any:
        """List ingresses across all namespaces."""
        return self.api.list_ingress_for_all_namespaces(**kwargs)

    def build_body(
        self, spec: AccessObjectSpec, annotations: dict[str, str], resource_version: str | None = None
    ) -> client.V1Ingress:
        """Build a V1Ingress routing the spec host to the spec backend.

        Args:
            spec: The desired access object.
            annotations: The annotations to set on the Ingress.
            resource_version: The resource version to replace, if any.

        Returns:
            The Ingress body.
        """
        backend = client.V1IngressBackend(
            service=client.V1IngressServiceBackend(
                name=spec.service_name,
                port=client.V1ServiceBackendPort(number=spec.service_port),
            )
        )
        rule = client.V1IngressRule(
            host=spec.host,
            http=client.V1HTTPIngressRuleValue(
                paths=[client.V1HTTPIngressPath(path=spec.path, path_type="Prefix", backend=backend)]
            ),
        )
        tls = None
        if spec.tls:
            tls = [client.V1IngressTLS(hosts=[spec.host], secret_name=spec.tls_secret_name)]

        return client.V1Ingress(
            api_version=self.RESOURCE_API_VERSION,
            kind=self.RESOURCE_KIND,
            metadata=client.V1ObjectMeta(
                name=spec.name,
                namespace=spec.namespace,
                labels={MANAGED_BY_LABEL: "kubexpose"},
                annotations=annotations,
                resource_version=resource_version,
            ),
            spec=client.V1IngressSpec(ingress_class_name=spec.ingress_class, rules=[rule], tls=tls),
        )

    def to_record(self, resource: client.V1Ingress) -> OwnedObjectRecord:
        """Convert a V1Ingress to a record.

        Only the first rule and its first path are considered, which is the
        shape of every Ingress generated by kubexpose.
        """
        spec = resource.spec
        host = path = service_name = service_port = None
        rules = (spec.rules or []) if spec else []
        if rules:
            host = rules[0].host
            paths = rules[0].http.paths if rules[0].http else []
            if paths:
                path = paths[0].path
                service = paths[0].backend.service if paths[0].backend else None
                if service:
                    service_name = service.name
                    service_port = service.port.number if service.port else None

        tls_entries = (spec.tls or []) if spec else []
        return OwnedObjectRecord(
            name=self.get_resource_name(resource),
            namespace=self.get_resource_namespace(resource),
            host=host,
            service_name=service_name,
            service_port=service_port,
            path=path,
            tls=bool(tls_entries),
            tls_secret_name=tls_entries[0].secret_name if tls_entries else None,
            ingress_class=spec.ingress_class_name if spec else None,
            annotations=self.get_annotations(resource),
            managed_annotations=self.managed_annotation_keys(resource),
            resource_version=resource.metadata.resource_version,
        )

    def create_resource(self, namespace: str, body: client.V1Ingress) -> None:
        self.api.create_namespaced_ingress(namespace=namespace, body=body)

    def replace_resource(self, name: str, namespace: str, body: client.V1Ingress) -> None:
        self.api.replace_namespaced_ingress(name=name, namespace=namespace, body=body)

    def delete_resource(self, name: str, namespace: str) -> None:
        self.api.delete_namespaced_ingress(name=name, namespace=namespace)
