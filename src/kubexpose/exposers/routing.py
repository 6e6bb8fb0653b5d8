"""Host-routing exposure strategies.

These strategies generate one access object per service, routing
``<service>.<namespace>.<domain>`` (or the configured template) to the
service port.
"""

import logging
from typing import ClassVar

from kubexpose.config import ExposeConfig, ExposerType
from kubexpose.exceptions import ConfigurationError
from kubexpose.exposers.base import (
    ExposerStrategy,
    extra_annotations,
    service_host,
    service_path,
    url_annotations,
)
from kubexpose.kubernetes.annotations import TLS_ACME_ANNOTATION
from kubexpose.models import AccessObjectSpec, ExposeResult, ServiceDescriptor, ServicePort

logger = logging.getLogger(__name__)


class HostRoutingExposer(ExposerStrategy):
    """Base class for strategies that route a hostname to a service."""

    # Whether the access object kind supports ingress classes and TLS secrets
    SUPPORTS_INGRESS_OPTIONS: ClassVar[bool] = True
    # Whether the access object addresses the backend by port name or target port
    ADDRESSES_TARGET_PORT: ClassVar[bool] = False

    @classmethod
    def validate_config(cls, config: ExposeConfig) -> None:
        uses_domain = "{domain}" in config.url_template
        if uses_domain and not (config.domain or config.node_ip):
            raise ConfigurationError(
                f"The {cls.NAME.value} exposer needs a domain, or a node IP to build a nip.io domain"
            )

    def build(self, service: ServiceDescriptor, port: ServicePort, config: ExposeConfig) -> ExposeResult | None:
        host = service_host(service, config)
        path = service_path(service)

        annotations = extra_annotations(service)
        if config.tls:
            annotations[TLS_ACME_ANNOTATION] = "true"

        tls_secret_name = None
        ingress_class = None
        if self.SUPPORTS_INGRESS_OPTIONS:
            ingress_class = config.ingress_class
            if config.tls:
                tls_secret_name = config.tls_secret_name.format(name=service.name)

        target_port = None
        if self.ADDRESSES_TARGET_PORT:
            target_port = port.name or port.target_port or port.port

        spec = AccessObjectSpec(
            name=service.name,
            namespace=service.namespace,
            host=host,
            service_name=service.name,
            service_port=port.port,
            target_port=target_port,
            path=path,
            tls=config.tls,
            tls_secret_name=tls_secret_name,
            ingress_class=ingress_class,
            annotations=annotations,
        )

        url = f"{config.url_scheme}://{host}"
        if path != "/":
            url = f"{url}{path}"
        return ExposeResult(access_object=spec, service_annotations=url_annotations(url))


class IngressExposer(HostRoutingExposer):
    """Expose services through Kubernetes Ingresses."""

    NAME = ExposerType.INGRESS
    STORE_KIND = "ingresses"


class RouteExposer(HostRoutingExposer):
    """Expose services through OpenShift Routes."""

    NAME = ExposerType.ROUTE
    STORE_KIND = "routes"
    SUPPORTS_INGRESS_OPTIONS = False
    ADDRESSES_TARGET_PORT = True
