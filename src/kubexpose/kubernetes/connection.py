"""Kubernetes connection management.

This module handles the connection to the Kubernetes API.
"""
import logging
import os
import socket
from pathlib import Path

from kubernetes import client, config

from kubexpose.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Namespace file mounted in every pod with a service account
SERVICE_ACCOUNT_NAMESPACE_FILE = Path("/var/run/secrets/kubernetes.io/serviceaccount/namespace")


class KubernetesConnection:
    """Connection manager for the Kubernetes API.

    This class manages authentication and connection to the Kubernetes API.
    It is shared among all resource handlers to avoid duplication of connection logic.
    """

    def __init__(self, kubeconfig: str | None = None, context: str | None = None):
        """Initialize the Kubernetes connection.

        Attempts to connect to the Kubernetes API using in-cluster config first,
        falling back to kubeconfig for local development.

        Args:
            kubeconfig: Optional path to a kubeconfig file.
            context: Optional kubeconfig context to use.
        """
        self.kubeconfig = kubeconfig
        self.context = context
        self.in_cluster = False
        self._setup_connection()
        # Get hostname for event reporting
        self.hostname = socket.gethostname()

    def _setup_connection(self) -> None:
        """Set up the connection to the Kubernetes API."""
        # An explicit kubeconfig or context skips the in-cluster configuration
        if not (self.kubeconfig or self.context):
            try:
                # Try to load in-cluster config first (for when running in a pod)
                config.load_incluster_config()
                self.in_cluster = True
                logger.info("Using in-cluster configuration")
            except config.ConfigException:
                logger.debug("In-cluster configuration not available")

        if not self.in_cluster:
            try:
                # Fall back to kubeconfig for local development
                config.load_kube_config(config_file=self.kubeconfig, context=self.context)
                logger.info("Using kubeconfig configuration")
            except config.ConfigException as e:
                logger.error(
                    "Failed to load Kubernetes configuration. Ensure that the kubeconfig file is available and valid."
                )
                raise RuntimeError(
                    "Kubernetes configuration error: kubeconfig file is missing or invalid.") from e

        # Initialize API clients
        self.core_v1_api = client.CoreV1Api()
        self.networking_v1_api = client.NetworkingV1Api()
        self.custom_objects_api = client.CustomObjectsApi()
        self.events_v1_api = client.EventsV1Api()

    def current_namespace(self) -> str:
        """Determine the namespace the controller runs in.

        Looks at the ``KUBERNETES_NAMESPACE`` environment variable, then the
        service account namespace file, then the active kubeconfig context.

        Returns:
            The current namespace.

        Raises:
            ConfigurationError: If no namespace can be determined.
        """
        namespace = os.environ.get("KUBERNETES_NAMESPACE", "").strip()
        if namespace:
            return namespace

        if SERVICE_ACCOUNT_NAMESPACE_FILE.is_file():
            namespace = SERVICE_ACCOUNT_NAMESPACE_FILE.read_text().strip()
            if namespace:
                return namespace

        try:
            contexts, active_context = config.list_kube_config_contexts(config_file=self.kubeconfig)
        except (config.ConfigException, OSError) as e:
            raise ConfigurationError(f"Could not find the current namespace: {e}") from e

        if self.context:
            active_context = next((c for c in contexts if c.get("name") == self.context), active_context)

        if not active_context:
            raise ConfigurationError("Could not find the current namespace: no active kubeconfig context")
        return active_context.get("context", {}).get("namespace") or "default"
