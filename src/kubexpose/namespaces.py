"""Namespace scope resolution."""

import logging
from collections.abc import Callable

from kubexpose.config import ExposeConfig
from kubexpose.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class NamespaceScope:
    """The set of namespaces the controller watches.

    ``namespaces`` is None when every namespace is in scope.
    """

    def __init__(self, namespaces: list[str] | None):
        self.namespaces = sorted(set(namespaces)) if namespaces is not None else None

    @property
    def all_namespaces(self) -> bool:
        return self.namespaces is None

    def targets(self) -> list[str | None]:
        """Return the list targets of a pass: each namespace, or None for all."""
        return list(self.namespaces) if self.namespaces is not None else [None]

    @classmethod
    def resolve(cls, config: ExposeConfig, current_namespace: Callable[[], str]) -> "NamespaceScope":
        """Resolve the scope from the configuration.

        An explicit namespace list wins, then the current namespace, otherwise
        every namespace is watched.

        Args:
            config: The resolved configuration.
            current_namespace: Returns the namespace the controller runs in, only
                called when that namespace is needed.

        Returns:
            The namespace scope.

        Raises:
            ConfigurationError: If the current namespace is needed but unknown.
        """
        if config.watch_namespaces:
            return cls(config.watch_namespaces)
        if config.watch_current_namespace:
            namespace = current_namespace()
            if not namespace:
                raise ConfigurationError("No current namespace found")
            return cls([namespace])
        return cls(None)

    def __str__(self) -> str:
        return ", ".join(self.namespaces) if self.namespaces is not None else "all namespaces"

    def __repr__(self) -> str:
        return f"NamespaceScope({self.namespaces!r})"
