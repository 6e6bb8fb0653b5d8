"""Exposure strategies acting on the service itself.

These strategies change the service type instead of generating an access
object, and record the external URL on the service once it is known.
"""

import logging

from kubexpose.config import ExposeConfig, ExposerType
from kubexpose.exposers.base import ExposerStrategy, port_scheme, url_annotations
from kubexpose.models import ExposeResult, ServiceDescriptor, ServicePort

logger = logging.getLogger(__name__)


class LoadBalancerExposer(ExposerStrategy):
    """Expose services by turning them into LoadBalancer services.

    The URL is only known once the cloud provider has assigned an address,
    which shows up as a service update and triggers another pass.
    """

    NAME = ExposerType.LOADBALANCER

    def build(self, service: ServiceDescriptor, port: ServicePort, config: ExposeConfig) -> ExposeResult:
        url = None
        if service.load_balancer_addresses:
            address = service.load_balancer_addresses[0]
            url = f"{port_scheme(port)}://{address}:{port.port}"
        else:
            logger.debug(f"Service {service.key} has no load balancer address yet")
        return ExposeResult(service_type="LoadBalancer", service_annotations=url_annotations(url))


class NodePortExposer(ExposerStrategy):
    """Expose services by turning them into NodePort services.

    The URL uses the configured node IP and is omitted when none is set.
    """

    NAME = ExposerType.NODEPORT

    def build(self, service: ServiceDescriptor, port: ServicePort, config: ExposeConfig) -> ExposeResult:
        url = None
        if config.node_ip and port.node_port:
            url = f"{port_scheme(port)}://{config.node_ip}:{port.node_port}"
        return ExposeResult(service_type="NodePort", service_annotations=url_annotations(url))
