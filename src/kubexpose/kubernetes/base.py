"""Base module for Kubernetes resources.

This module provides the base class for the resource handlers used by kubexpose.
"""

import abc
import logging
from collections.abc import Iterator
from typing import Any, ClassVar, Generic, TypeVar

from kubexpose.kubernetes.connection import KubernetesConnection

logger = logging.getLogger(__name__)

# Type variable for resource types
T = TypeVar("T")


class KubernetesResource(Generic[T], abc.ABC):
    """Base class for all Kubernetes resources.

    This abstract base class defines the common interface and functionality
    for all Kubernetes resources read or written by kubexpose.
    """

    # Resource type specific constants
    RESOURCE_API_VERSION: ClassVar[str]
    RESOURCE_KIND: ClassVar[str]

    def __init__(self, connection: KubernetesConnection, namespace: str | None = None):
        """Initialize the resource handler.

        Args:
            connection: The Kubernetes connection to use
            namespace: Optional namespace to filter resources. If None, all namespaces will be used.
        """
        self.connection = connection
        self.namespace = namespace

    def iter_resources(self, namespace: str | None = None, batch_size: int = 100) -> Iterator[T]:
        """Iterate over all resources in a namespace or across all namespaces.

        Uses pagination to fetch resources in batches and yield them one by one
        to limit memory usage. API errors are propagated to the caller, which
        must not mistake a failed listing for an empty one.

        Args:
            namespace: Namespace to get resources from. If None, use the handler's namespace.
            batch_size: Number of resources to fetch per API call.

        Yields:
            Resources, one at a time.
        """
        ns = namespace or self.namespace
        continue_token = None

        while True:
            # Fetch current page of resources
            if ns:
                result = self.list_namespaced_resources(ns, limit=batch_size, _continue=continue_token)
            else:
                result = self.list_all_namespaces_resources(limit=batch_size, _continue=continue_token)

            # Yield resources from this page one by one
            yield from self.page_items(result)

            # Check if there are more pages to process
            continue_token = self.page_continue_token(result)
            if not continue_token:
                break

    def page_items(self, result: Any) -> list[T]:
        """Extract the items of a list response."""
        return result.items or []

    def page_continue_token(self, result: Any) -> str | None:
        """Extract the continue token of a list response."""
        return result.metadata._continue

    @abc.abstractmethod
    def list_namespaced_resources(self, namespace: str, **kwargs) -> Any:
        """List resources in a specific namespace.

        Args:
            namespace: The namespace to list resources in.
            **kwargs: Additional arguments to pass to the API call.

        Returns:
            The API response containing the list of resources.
        """
        pass

    @abc.abstractmethod
    def list_all_namespaces_resources(self, **kwargs) -> Any:
        """List resources across all namespaces.

        Args:
            **kwargs: Additional arguments to pass to the API call.

        Returns:
            The API response containing the list of resources.
        """
        pass

    def get_resource_name(self, resource: T) -> str:
        """Get the name of a resource.

        Args:
            resource: The resource to get the name for.

        Returns:
            The name of the resource.
        """
        return resource.metadata.name

    def get_resource_namespace(self, resource: T) -> str:
        """Get the namespace of a resource.

        Args:
            resource: The resource to get the namespace for.

        Returns:
            The namespace of the resource.
        """
        return resource.metadata.namespace

    def get_annotations(self, resource: T) -> dict[str, str]:
        """Get all annotations of a resource."""
        return dict(getattr(resource.metadata, "annotations", None) or {})

    def _get_annotation(self, resource: T, annotation_key: str) -> str | None:
        """Get an annotation from a resource.

        Args:
            resource: The resource to get the annotation from.
            annotation_key: The annotation key to get.

        Returns:
            The annotation value, or None if not found.
        """
        return self.get_annotations(resource).get(annotation_key)
