"""Prometheus counters and the health endpoint."""

import logging

from prometheus_client import Counter, start_http_server

logger = logging.getLogger(__name__)

RECONCILE_PASSES = Counter(
    "kubexpose_reconcile_passes_total",
    "Reconciliation passes completed",
)
ACCESS_OBJECT_OPERATIONS = Counter(
    "kubexpose_access_object_operations_total",
    "Create, update and delete calls on access objects",
    ["operation", "result"],
)
SERVICE_PATCHES = Counter(
    "kubexpose_service_patches_total",
    "Patches applied to exposed services",
    ["result"],
)
WATCH_ERRORS = Counter(
    "kubexpose_watch_errors_total",
    "Errors raised by service watch streams",
)


def start_health_server(port: int) -> bool:
    """Serve the counters over HTTP on a background thread.

    The endpoint answers on every path, so kubelet liveness checks can use it too.

    Args:
        port: Port to listen on, 0 disables the server.

    Returns:
        True if the server was started.
    """
    if not port:
        logger.info("Health endpoint disabled")
        return False
    start_http_server(port)
    logger.info(f"Serving health endpoint on port {port}")
    return True
