"""Resources package for Kubernetes resource handlers.

This package contains specialized handlers for the resource types kubexpose reads and writes.
"""

from kubexpose.kubernetes.resources.events import (
    create_conflict_event,
    create_exposed_event,
    create_updated_event,
)

__all__ = [
    "create_exposed_event",
    "create_updated_event",
    "create_conflict_event",
]
