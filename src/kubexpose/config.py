"""Configuration module for kubexpose.

This module defines the immutable controller configuration and the helpers
that build it from layered sources: command-line overrides, environment
variables, a YAML file and ConfigMaps held in the cluster.
"""

import logging
import os
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from kubexpose.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Placeholders available in url_template
URL_TEMPLATE_FIELDS = ("service", "namespace", "domain")

# Key of a ConfigMap entry holding a whole YAML document
CONFIGMAP_DOCUMENT_KEY = "config.yml"

# Fields that together decide the namespace scope
NAMESPACE_SCOPE_FIELDS = frozenset({"watch_namespaces", "watch_current_namespace"})

# Environment variables mapped to configuration fields
ENV_OVERRIDES = {
    "KUBEXPOSE_DOMAIN": "domain",
    "KUBEXPOSE_EXPOSER": "exposer",
    "KUBEXPOSE_API_SERVER": "api_server",
    "KUBEXPOSE_CONSOLE_URL": "console_url",
    "KUBEXPOSE_HTTP": "http",
    "KUBEXPOSE_TLS_ACME": "tls_acme",
    "KUBEXPOSE_TLS_SECRET_NAME": "tls_secret_name",
    "KUBEXPOSE_INGRESS_CLASS": "ingress_class",
    "KUBEXPOSE_URL_TEMPLATE": "url_template",
    "KUBEXPOSE_NODE_IP": "node_ip",
    "KUBEXPOSE_SYNC_PERIOD": "sync_period",
    "KUBEXPOSE_WATCH_NAMESPACES": "watch_namespaces",
    "KUBEXPOSE_WATCH_CURRENT_NAMESPACE": "watch_current_namespace",
    "KUBEXPOSE_SERVICES": "services",
}


class ExposerType(str, Enum):
    """Enumeration of the supported exposure strategies."""
    INGRESS = "ingress"
    ROUTE = "route"
    LOADBALANCER = "loadbalancer"
    NODEPORT = "nodeport"

    @classmethod
    def names(cls) -> list[str]:
        """Return the identifiers accepted in configuration."""
        return [member.value for member in cls]


class ExposeConfig(BaseModel):
    """Resolved configuration for the controller.

    Instances are immutable: one is built at startup and passed to every
    component that needs it.

    Attributes:
        domain: Domain suffix used to build hostnames.
        exposer: The exposure strategy to apply to services.
        api_server: URL of the cluster API server, available to strategies.
        console_url: URL of the cluster console, available to strategies.
        http: Prefer plain HTTP URLs and never request TLS.
        tls_acme: Request certificates for generated hosts.
        tls_secret_name: Template for the TLS secret name, ``{name}`` is the access object name.
        ingress_class: Ingress class set on generated Ingresses.
        url_template: Template for generated hostnames.
        node_ip: Node address used to build NodePort URLs and nip.io domains.
        sync_period: Seconds between forced resync passes.
        watch_namespaces: Explicit namespaces to watch.
        watch_current_namespace: Watch only the namespace the controller runs in.
        services: Allow-list of service names, empty means every service.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    domain: str = ""
    exposer: ExposerType = ExposerType.INGRESS
    api_server: str = Field(default="", alias="apiServer")
    console_url: str = Field(default="", alias="consoleURL")
    http: bool = False
    tls_acme: bool = Field(default=False, alias="tls-acme")
    tls_secret_name: str = Field(default="{name}-tls", alias="tlsSecretName")
    ingress_class: str | None = Field(default=None, alias="ingressClass")
    url_template: str = Field(default="{service}.{namespace}.{domain}", alias="urlTemplate")
    node_ip: str | None = Field(default=None, alias="nodeIP")
    sync_period: int = Field(default=30, alias="syncPeriod", gt=0)
    watch_namespaces: list[str] = Field(default_factory=list, alias="watchNamespaces")
    watch_current_namespace: bool = Field(default=True, alias="watchCurrentNamespace")
    services: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def explicit_namespaces_disable_current(cls, data: Any) -> Any:
        """An explicit namespace list always replaces the current-namespace scope."""
        if not isinstance(data, Mapping):
            return data
        namespaces = data.get("watch_namespaces", data.get("watchNamespaces"))
        if namespaces and _split_list(namespaces):
            data = {
                key: value
                for key, value in data.items()
                if key not in ("watch_current_namespace", "watchCurrentNamespace")
            }
            data["watch_current_namespace"] = False
        return data

    @field_validator("exposer", mode="before")
    @classmethod
    def normalize_exposer(cls, v):
        """Accept exposer names in any case."""
        if isinstance(v, str):
            v = v.strip().lower()
            if v not in ExposerType.names():
                raise ValueError(f"Unknown exposer '{v}', expected one of {', '.join(ExposerType.names())}")
        return v

    @field_validator("watch_namespaces", "services", mode="before")
    @classmethod
    def split_lists(cls, v):
        """Accept comma-separated strings as well as lists."""
        return _split_list(v)

    @field_validator("url_template")
    @classmethod
    def validate_url_template(cls, v):
        """Validate that the template only uses the known placeholders"""
        try:
            v.format(**{name: name for name in URL_TEMPLATE_FIELDS})
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(f"Invalid url template '{v}': {e}")
        return v

    @field_validator("tls_secret_name")
    @classmethod
    def validate_tls_secret_name(cls, v):
        """Validate that the secret name template only uses {name}"""
        try:
            v.format(name="name")
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(f"Invalid TLS secret name template '{v}': {e}")
        return v

    @property
    def tls(self) -> bool:
        """Whether generated access objects should terminate TLS."""
        return self.tls_acme and not self.http

    @property
    def url_scheme(self) -> str:
        """The scheme used in exposed URLs."""
        return "https" if self.tls else "http"

    def summary(self) -> str:
        """Return a one-line description suitable for logging."""
        return (
            f"exposer={self.exposer.value}, domain={self.domain or '<unset>'}, http={self.http}, "
            f"tls_acme={self.tls_acme}, sync_period={self.sync_period}s, "
            f"watch_namespaces={self.watch_namespaces or '-'}, "
            f"watch_current_namespace={self.watch_current_namespace}, "
            f"services={self.services or 'all'}"
        )


def _split_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(item).strip() for item in value if str(item).strip()]


def _field_name(key: str) -> str | None:
    """Map an alias or field name to the model field name."""
    if key in ExposeConfig.model_fields:
        return key
    for name, field in ExposeConfig.model_fields.items():
        if field.alias == key:
            return name
    return None


def resolve_config(*sources: Mapping[str, Any] | None) -> ExposeConfig:
    """Merge configuration sources and build the resolved configuration.

    Sources are given in decreasing precedence. For each field the first
    source that provides a value wins. Missing sources (None) are skipped.
    The namespace scope is taken as a whole from the first source that sets
    either ``watch_namespaces`` or ``watch_current_namespace``.

    Args:
        *sources: Partial configuration mappings keyed by field name or alias.

    Returns:
        The validated configuration.

    Raises:
        ConfigurationError: If the merged configuration is invalid.
    """
    merged: dict[str, Any] = {}
    for source in sources:
        if not source:
            continue
        values: dict[str, Any] = {}
        for key, value in source.items():
            name = _field_name(key)
            if name is None:
                logger.debug(f"Ignoring unknown configuration key: {key}")
                continue
            if value is None or value == "" or value == []:
                continue
            values.setdefault(name, value)

        if NAMESPACE_SCOPE_FIELDS & merged.keys():
            for name in NAMESPACE_SCOPE_FIELDS & values.keys():
                logger.debug(f"Ignoring {name}, the namespace scope is set by a higher-precedence source")
                del values[name]
        for name, value in values.items():
            merged.setdefault(name, value)

    try:
        return ExposeConfig.model_validate(merged)
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_file(path: str | Path) -> dict[str, Any] | None:
    """Load a configuration file.

    Args:
        path: Path to a YAML file.

    Returns:
        The configuration mapping, or None if the file does not exist.

    Raises:
        ConfigurationError: If the file cannot be parsed as a YAML mapping.
    """
    path = Path(path)
    if not path.is_file():
        logger.debug(f"Configuration file {path} not found")
        return None

    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load configuration file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")
    logger.info(f"Loaded configuration file {path}")
    return data


def config_from_configmap(data: Mapping[str, str] | None) -> dict[str, Any] | None:
    """Convert the data of a configuration ConfigMap to a configuration mapping.

    A ConfigMap either holds a whole YAML document under ``config.yml`` or
    flat key/value entries such as ``domain`` and ``tls-acme``.

    Args:
        data: The ConfigMap data.

    Returns:
        The configuration mapping, or None if the ConfigMap holds nothing usable.
    """
    if not data:
        return None

    document = data.get(CONFIGMAP_DOCUMENT_KEY)
    if document:
        try:
            parsed = yaml.safe_load(document)
        except yaml.YAMLError as e:
            logger.warning(f"Could not parse {CONFIGMAP_DOCUMENT_KEY} from ConfigMap: {e}")
            return None
        if not isinstance(parsed, dict):
            logger.warning(f"{CONFIGMAP_DOCUMENT_KEY} in ConfigMap is not a mapping")
            return None
        return parsed

    return {key: value for key, value in data.items() if key != CONFIGMAP_DOCUMENT_KEY}


def overrides_from_env(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Read configuration overrides from ``KUBEXPOSE_*`` environment variables."""
    environ = os.environ if environ is None else environ
    return {field: environ[var] for var, field in ENV_OVERRIDES.items() if environ.get(var)}
