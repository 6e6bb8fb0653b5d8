"""Base module for exposure strategies.

An exposer turns a service into the desired state needed to reach it from
outside the cluster: an access object (Ingress, Route) and/or changes to the
service itself.
"""

import abc
import logging
from typing import ClassVar

import yaml

from kubexpose.config import ExposeConfig, ExposerType
from kubexpose.kubernetes.annotations import (
    EXPOSE_ANNOTATION,
    EXPOSE_URL_ANNOTATION,
    HOST_ANNOTATION,
    INGRESS_ANNOTATIONS_ANNOTATION,
    PATH_ANNOTATION,
    PORT_ANNOTATION,
)
from kubexpose.models import ExposeResult, ServiceDescriptor, ServicePort

logger = logging.getLogger(__name__)

# Port names and numbers preferred when a service has several ports
HTTP_PORT_NAMES = ("http", "https")
HTTP_PORT_NUMBERS = (80, 443, 8080, 8443)


class ExposerStrategy(abc.ABC):
    """Base class for all exposure strategies.

    Subclasses implement ``build`` for a service and the port chosen by the
    shared port policy. ``STORE_KIND`` names the access object store the
    engine reconciles against; strategies acting on services only still
    reconcile it so objects left by a previous strategy are collected.
    """

    NAME: ClassVar[ExposerType]
    STORE_KIND: ClassVar[str] = "ingresses"

    @classmethod
    def validate_config(cls, config: ExposeConfig) -> None:
        """Check that the configuration is usable with this strategy.

        Raises:
            ConfigurationError: If it is not.
        """

    def expose(self, service: ServiceDescriptor, config: ExposeConfig) -> ExposeResult | None:
        """Compute what exposing a service requires.

        Args:
            service: The service to expose.
            config: The resolved configuration.

        Returns:
            The desired state, or None if the service cannot be exposed this way.
        """
        if not self.is_exposable(service):
            return None

        port = select_port(service)
        if port is None:
            logger.debug(f"Service {service.key} has no port that can be exposed")
            return None
        return self.build(service, port, config)

    def is_exposable(self, service: ServiceDescriptor) -> bool:
        if service.annotations.get(EXPOSE_ANNOTATION, "").lower() == "false":
            logger.debug(f"Service {service.key} opted out of exposure")
            return False
        if service.service_type == "ExternalName":
            logger.debug(f"Service {service.key} is an ExternalName service")
            return False
        return True

    @abc.abstractmethod
    def build(self, service: ServiceDescriptor, port: ServicePort, config: ExposeConfig) -> ExposeResult | None:
        """Build the desired state for a service.

        Args:
            service: The service to expose.
            port: The port selected for exposure.
            config: The resolved configuration.

        Returns:
            The desired state, or None if the service cannot be exposed this way.
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


def select_port(service: ServiceDescriptor) -> ServicePort | None:
    """Choose the port to expose.

    The ``kubexpose.io/port`` annotation (port name or number) wins. Otherwise
    a lone TCP port, then the first HTTP-named port, then the first well-known
    HTTP port number, then the first TCP port.

    Args:
        service: The service whose ports to consider.

    Returns:
        The chosen port, or None if the service has no TCP port.
    """
    tcp_ports = [port for port in service.ports if (port.protocol or "TCP").upper() == "TCP"]
    if not tcp_ports:
        return None

    requested = service.annotations.get(PORT_ANNOTATION, "").strip()
    if requested:
        for port in tcp_ports:
            if port.name == requested or str(port.port) == requested:
                return port
        logger.warning(f"Service {service.key} requests port {requested} which it does not define")
        return None

    if len(tcp_ports) == 1:
        return tcp_ports[0]

    for port in tcp_ports:
        name = (port.name or "").lower()
        if name in HTTP_PORT_NAMES or name.startswith(tuple(f"{n}-" for n in HTTP_PORT_NAMES)):
            return port

    for port in tcp_ports:
        if port.port in HTTP_PORT_NUMBERS:
            return port

    return tcp_ports[0]


def port_scheme(port: ServicePort) -> str:
    """Guess the URL scheme of a port from its name and number."""
    name = (port.name or "").lower()
    if name == "https" or name.startswith("https-") or port.port in (443, 8443):
        return "https"
    return "http"


def effective_domain(config: ExposeConfig) -> str:
    """Return the configured domain, or a nip.io domain built from the node address."""
    if config.domain:
        return config.domain
    if config.node_ip:
        return f"{config.node_ip}.nip.io"
    return ""


def service_host(service: ServiceDescriptor, config: ExposeConfig) -> str:
    """Return the external hostname of a service.

    The ``kubexpose.io/host`` annotation wins over the URL template.
    """
    explicit = service.annotations.get(HOST_ANNOTATION, "").strip()
    if explicit:
        return explicit
    return config.url_template.format(
        service=service.name,
        namespace=service.namespace,
        domain=effective_domain(config),
    )


def service_path(service: ServiceDescriptor) -> str:
    path = service.annotations.get(PATH_ANNOTATION, "").strip() or "/"
    if not path.startswith("/"):
        path = f"/{path}"
    return path


def extra_annotations(service: ServiceDescriptor) -> dict[str, str]:
    """Parse the annotations a service asks to copy onto its access object.

    The value of ``kubexpose.io/ingress.annotations`` is a YAML mapping,
    usually written as ``key: value`` lines.
    """
    raw = service.annotations.get(INGRESS_ANNOTATIONS_ANNOTATION)
    if not raw:
        return {}
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        logger.warning(f"Ignoring invalid {INGRESS_ANNOTATIONS_ANNOTATION} on Service {service.key}: {e}")
        return {}
    if not isinstance(parsed, dict):
        logger.warning(f"Ignoring {INGRESS_ANNOTATIONS_ANNOTATION} on Service {service.key}: not a mapping")
        return {}
    return {str(key): _annotation_value(value) for key, value in parsed.items()}


def _annotation_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def url_annotations(url: str | None) -> dict[str, str]:
    return {EXPOSE_URL_ANNOTATION: url} if url else {}
