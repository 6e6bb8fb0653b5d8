"""Kubernetes client module for kubexpose.

This module handles all interactions with the Kubernetes API.
"""

import logging

from kubexpose.kubernetes.annotations import (
    EXPOSE_URL_ANNOTATION,
    OWNER_ANNOTATION,
    OWNER_VALUE,
)
from kubexpose.kubernetes.controller import KubernetesController

logger = logging.getLogger(__name__)

# Export KubernetesController as the main interface
__all__ = [
    "KubernetesController",
    "OWNER_ANNOTATION",
    "OWNER_VALUE",
    "EXPOSE_URL_ANNOTATION",
]
