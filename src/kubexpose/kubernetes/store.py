"""Access object store.

This module provides the base class for handlers of the access objects
(Ingresses, Routes) that kubexpose generates. Every object created through a
store carries the ownership annotation, and only objects carrying it are ever
returned, replaced or deleted.
"""

import abc
import logging
from typing import Any, Generic, TypeVar

from kubernetes.client.exceptions import ApiException

from kubexpose.kubernetes.annotations import MANAGED_ANNOTATIONS_ANNOTATION, OWNER_ANNOTATION, OWNER_VALUE
from kubexpose.kubernetes.base import KubernetesResource
from kubexpose.models import AccessObjectSpec, OwnedObjectRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AccessObjectConflict(Exception):
    """An object with the desired name exists but is not owned by kubexpose."""

    def __init__(self, name: str, namespace: str):
        super().__init__(f"{namespace}/{name} already exists and is not owned by kubexpose")
        self.name = name
        self.namespace = namespace


class AccessObjectStore(KubernetesResource[T], Generic[T], abc.ABC):
    """Base class for stores of generated access objects.

    Stores do not retry: a failed call raises and the next reconciliation
    pass recomputes the same desired state.
    """

    def is_owned(self, resource: T) -> bool:
        """Check whether a resource carries the ownership marker.

        Args:
            resource: The resource to check.

        Returns:
            True if the resource was generated by kubexpose.
        """
        return self._get_annotation(resource, OWNER_ANNOTATION) == OWNER_VALUE

    def list_owned(self, namespace: str | None = None) -> list[OwnedObjectRecord]:
        """List the owned access objects in a namespace, or in all namespaces.

        A namespace that does not exist holds no objects.

        Args:
            namespace: Namespace to list. If None, use the handler's namespace.

        Returns:
            Records for every owned object.
        """
        try:
            return [
                self.to_record(resource)
                for resource in self.iter_resources(namespace=namespace)
                if self.is_owned(resource)
            ]
        except ApiException as e:
            if e.status == 404:
                logger.debug(f"Namespace {namespace} not found, no {self.RESOURCE_KIND}s to list")
                return []
            raise

    def create(self, spec: AccessObjectSpec) -> None:
        """Create an access object from its desired spec.

        Args:
            spec: The desired access object.

        Raises:
            AccessObjectConflict: If an object with the same name already exists.
            ApiException: For any other API failure.
        """
        body = self.build_body(spec, self.owned_annotations(spec))
        try:
            self.create_resource(spec.namespace, body)
        except ApiException as e:
            if e.status == 409:
                raise AccessObjectConflict(spec.name, spec.namespace) from e
            raise
        logger.info(f"Created {self.RESOURCE_KIND} {spec.key} for host {spec.host}")

    def update(self, record: OwnedObjectRecord, spec: AccessObjectSpec) -> None:
        """Replace an owned access object with its desired spec.

        Annotations added by other actors are preserved, annotations kubexpose
        set earlier and no longer wants are dropped. The observed resource
        version is sent so a concurrent modification fails instead of being
        overwritten.

        Args:
            record: The owned object as last observed.
            spec: The desired access object.
        """
        stale = set(record.stale_annotations(spec))
        annotations = {key: value for key, value in record.annotations.items() if key not in stale}
        annotations.update(self.owned_annotations(spec))
        body = self.build_body(spec, annotations, resource_version=record.resource_version)
        self.replace_resource(spec.name, spec.namespace, body)
        if stale:
            logger.debug(f"Removed annotations {', '.join(sorted(stale))} from {self.RESOURCE_KIND} {spec.key}")
        logger.info(f"Updated {self.RESOURCE_KIND} {spec.key} for host {spec.host}")

    def delete(self, name: str, namespace: str) -> bool:
        """Delete an owned access object.

        Deleting an object that is already gone is not an error.

        Args:
            name: Name of the object.
            namespace: Namespace of the object.

        Returns:
            True if the object was deleted, False if it was already absent.
        """
        try:
            self.delete_resource(name, namespace)
        except ApiException as e:
            if e.status == 404:
                logger.debug(f"{self.RESOURCE_KIND} {namespace}/{name} already deleted")
                return False
            raise
        logger.info(f"Deleted {self.RESOURCE_KIND} {namespace}/{name}")
        return True

    def managed_annotation_keys(self, resource: T) -> list[str]:
        """Return the annotation keys kubexpose recorded as set on a resource."""
        value = self._get_annotation(resource, MANAGED_ANNOTATIONS_ANNOTATION) or ""
        return [key.strip() for key in value.split(",") if key.strip()]

    @staticmethod
    def owned_annotations(spec: AccessObjectSpec) -> dict[str, str]:
        """Return the spec annotations with the ownership marker and the managed keys added."""
        return {
            **spec.annotations,
            OWNER_ANNOTATION: OWNER_VALUE,
            MANAGED_ANNOTATIONS_ANNOTATION: ",".join(sorted(spec.annotations)),
        }

    @abc.abstractmethod
    def build_body(
        self, spec: AccessObjectSpec, annotations: dict[str, str], resource_version: str | None = None
    ) -> Any:
        """Build the API body for an access object.

        Args:
            spec: The desired access object.
            annotations: The annotations to set on the object.
            resource_version: The resource version to replace, if any.

        Returns:
            The body to send to the API.
        """
        pass

    @abc.abstractmethod
    def to_record(self, resource: T) -> OwnedObjectRecord:
        """Convert an API object to a record.

        Args:
            resource: The object returned by the API.

        Returns:
            The parsed record.
        """
        pass

    @abc.abstractmethod
    def create_resource(self, namespace: str, body: Any) -> None:
        pass

    @abc.abstractmethod
    def replace_resource(self, name: str, namespace: str, body: Any) -> None:
        pass

    @abc.abstractmethod
    def delete_resource(self, name: str, namespace: str) -> None:
        pass
