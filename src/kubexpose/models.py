"""Data models shared by the exposers, the stores and the engine."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ServicePort(BaseModel):
    """A port of a Kubernetes Service."""
    model_config = ConfigDict(frozen=True)

    name: str | None = None
    port: int
    target_port: int | str | None = None
    protocol: str = "TCP"
    node_port: int | None = None


class ServiceDescriptor(BaseModel):
    """Read-only view of a Kubernetes Service."""
    model_config = ConfigDict(frozen=True)

    namespace: str
    name: str
    ports: list[ServicePort] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    cluster_ip: str | None = None
    service_type: str = "ClusterIP"
    load_balancer_addresses: list[str] = Field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def from_k8s(cls, service: Any) -> "ServiceDescriptor":
        """Build a descriptor from a ``V1Service``.

        Args:
            service: The service returned by the Kubernetes API.

        Returns:
            The descriptor.
        """
        metadata = service.metadata
        spec = service.spec
        ports = [
            ServicePort(
                name=port.name,
                port=port.port,
                target_port=port.target_port,
                protocol=port.protocol or "TCP",
                node_port=port.node_port,
            )
            for port in ((spec.ports or []) if spec else [])
        ]

        addresses = []
        status = getattr(service, "status", None)
        load_balancer = getattr(status, "load_balancer", None) if status else None
        for ingress in getattr(load_balancer, "ingress", None) or []:
            address = ingress.hostname or ingress.ip
            if address:
                addresses.append(address)

        return cls(
            namespace=metadata.namespace,
            name=metadata.name,
            ports=ports,
            labels=metadata.labels or {},
            annotations=metadata.annotations or {},
            cluster_ip=spec.cluster_ip if spec else None,
            service_type=(spec.type if spec and spec.type else "ClusterIP"),
            load_balancer_addresses=addresses,
        )


class AccessObjectSpec(BaseModel):
    """Desired state of an access object generated for a service.

    ``target_port`` is set for access objects that address the backend by
    port name or endpoint port (Routes) instead of by service port number.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    namespace: str
    host: str
    service_name: str
    service_port: int
    target_port: int | str | None = None
    path: str = "/"
    tls: bool = False
    tls_secret_name: str | None = None
    ingress_class: str | None = None
    annotations: dict[str, str] = Field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"


class OwnedObjectRecord(BaseModel):
    """An access object found in the cluster that carries the ownership marker.

    ``managed_annotations`` lists the annotation keys kubexpose set on the
    object when it last wrote it.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    namespace: str
    host: str | None = None
    service_name: str | None = None
    service_port: int | None = None
    target_port: int | str | None = None
    path: str | None = None
    tls: bool = False
    tls_secret_name: str | None = None
    ingress_class: str | None = None
    annotations: dict[str, str] = Field(default_factory=dict)
    managed_annotations: list[str] = Field(default_factory=list)
    resource_version: str | None = None

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    def stale_annotations(self, spec: AccessObjectSpec) -> list[str]:
        """Return the annotations kubexpose set earlier that the spec no longer wants."""
        return [key for key in self.managed_annotations if key in self.annotations and key not in spec.annotations]

    def differences(self, spec: AccessObjectSpec) -> list[str]:
        """List the fields where this object differs from the desired spec.

        Annotations added by other actors do not count as a difference, while
        annotations kubexpose set and no longer wants do. The backend port is
        compared by target port when the spec has one.
        """
        port_field = "target_port" if spec.target_port is not None else "service_port"
        changed = [
            field
            for field in (
                "host",
                "service_name",
                port_field,
                "path",
                "tls",
                "tls_secret_name",
                "ingress_class",
            )
            if getattr(self, field) != getattr(spec, field)
        ]
        if self.stale_annotations(spec) or any(
            self.annotations.get(key) != value for key, value in spec.annotations.items()
        ):
            changed.append("annotations")
        return changed

    def matches(self, spec: AccessObjectSpec) -> bool:
        return not self.differences(spec)


class ExposeResult(BaseModel):
    """What an exposer wants for one service.

    ``access_object`` is None for strategies that act on the service itself.
    ``service_type`` and ``service_annotations`` describe the desired state of
    the service; the engine only patches what differs.
    """
    model_config = ConfigDict(frozen=True)

    access_object: AccessObjectSpec | None = None
    service_type: str | None = None
    service_annotations: dict[str, str] = Field(default_factory=dict)
