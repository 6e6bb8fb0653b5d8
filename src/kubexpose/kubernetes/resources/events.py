"""Kubernetes events handling module.

This module provides functions for recording events on exposed services.
"""

import logging
from datetime import UTC, datetime

from kubernetes import client

from kubexpose.kubernetes.connection import KubernetesConnection
from kubexpose.models import AccessObjectSpec

logger = logging.getLogger(__name__)

# Constants for event types
EVENT_TYPE_NORMAL = "Normal"
EVENT_TYPE_WARNING = "Warning"

# Constants for event reasons
EVENT_REASON_EXPOSED = "Exposed"
EVENT_REASON_EXPOSE_UPDATED = "ExposeUpdated"
EVENT_REASON_EXPOSE_CONFLICT = "ExposeConflict"

# Constants for event actions
EVENT_ACTION_CREATE = "Create"
EVENT_ACTION_UPDATE = "Update"

# Component name for events
EVENT_COMPONENT = "kubexpose"


def create_exposed_event(connection: KubernetesConnection, spec: AccessObjectSpec, kind: str) -> None:
    """Record that a service got a new access object.

    Args:
        connection: The Kubernetes connection to use
        spec: The access object that was created
        kind: Kind of the access object
    """
    _create_event(
        connection=connection,
        spec=spec,
        event_type=EVENT_TYPE_NORMAL,
        reason=EVENT_REASON_EXPOSED,
        message=f"Service exposed on host {spec.host} through {kind} {spec.name}",
        action=EVENT_ACTION_CREATE,
    )


def create_updated_event(connection: KubernetesConnection, spec: AccessObjectSpec, kind: str) -> None:
    """Record that the access object of a service was updated.

    Args:
        connection: The Kubernetes connection to use
        spec: The access object that was updated
        kind: Kind of the access object
    """
    _create_event(
        connection=connection,
        spec=spec,
        event_type=EVENT_TYPE_NORMAL,
        reason=EVENT_REASON_EXPOSE_UPDATED,
        message=f"{kind} {spec.name} updated for host {spec.host}",
        action=EVENT_ACTION_UPDATE,
    )


def create_conflict_event(connection: KubernetesConnection, spec: AccessObjectSpec, kind: str) -> None:
    """Record that a service could not be exposed because of a name clash.

    Args:
        connection: The Kubernetes connection to use
        spec: The access object that could not be created
        kind: Kind of the access object
    """
    _create_event(
        connection=connection,
        spec=spec,
        event_type=EVENT_TYPE_WARNING,
        reason=EVENT_REASON_EXPOSE_CONFLICT,
        message=f"{kind} {spec.name} already exists and was not generated by kubexpose",
        action=EVENT_ACTION_CREATE,
    )


def _create_event(
    connection: KubernetesConnection,
    spec: AccessObjectSpec,
    event_type: str,
    reason: str,
    message: str,
    action: str,
) -> None:
    """Create a Kubernetes event regarding the service behind an access object.

    Args:
        connection: The Kubernetes connection to use
        spec: The access object the event is about
        event_type: Type of event (Normal or Warning)
        reason: Short reason for the event
        message: Detailed message for the event
        action: Action being performed
    """
    try:
        body = client.EventsV1Event(
            metadata=client.V1ObjectMeta(generate_name=f"{spec.service_name}-", namespace=spec.namespace),
            reason=reason,
            note=message,
            type=event_type,
            reporting_controller=EVENT_COMPONENT,
            reporting_instance=connection.hostname,
            action=action,
            regarding=client.V1ObjectReference(
                api_version="v1", kind="Service", name=spec.service_name, namespace=spec.namespace
            ),
            event_time=datetime.now(UTC),
        )

        connection.events_v1_api.create_namespaced_event(namespace=spec.namespace, body=body)
        logger.debug(f"Created event for Service {spec.namespace}/{spec.service_name}: {reason}")

    except Exception as e:
        logger.warning(f"Failed to create event for Service {spec.namespace}/{spec.service_name}: {e}")
