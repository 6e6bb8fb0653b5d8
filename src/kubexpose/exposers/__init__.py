"""Exposure strategies.

Strategies are selected once at startup from the configured exposer name.
"""

import logging

from kubexpose.config import ExposeConfig, ExposerType
from kubexpose.exceptions import ConfigurationError
from kubexpose.exposers.base import ExposerStrategy, select_port
from kubexpose.exposers.routing import IngressExposer, RouteExposer
from kubexpose.exposers.services import LoadBalancerExposer, NodePortExposer

logger = logging.getLogger(__name__)

EXPOSERS: dict[ExposerType, type[ExposerStrategy]] = {
    ExposerType.INGRESS: IngressExposer,
    ExposerType.ROUTE: RouteExposer,
    ExposerType.LOADBALANCER: LoadBalancerExposer,
    ExposerType.NODEPORT: NodePortExposer,
}


def create_exposer(config: ExposeConfig) -> ExposerStrategy:
    """Create the exposer selected by the configuration.

    Args:
        config: The resolved configuration.

    Returns:
        The exposer instance.

    Raises:
        ConfigurationError: If the exposer is unknown or cannot work with the configuration.
    """
    exposer_class = EXPOSERS.get(config.exposer)
    if exposer_class is None:
        raise ConfigurationError(f"Unknown exposer: {config.exposer}")
    exposer_class.validate_config(config)
    logger.info(f"Using {config.exposer.value} exposer")
    return exposer_class()


__all__ = [
    "EXPOSERS",
    "ExposerStrategy",
    "IngressExposer",
    "RouteExposer",
    "LoadBalancerExposer",
    "NodePortExposer",
    "create_exposer",
    "select_port",
]
