"""Cleanup of generated access objects.

Cleanup is an attended one-shot operation: unlike reconciliation passes, the
first failure aborts it.
"""

import logging

from kubexpose.exceptions import CleanupError
from kubexpose.kubernetes.store import AccessObjectStore
from kubexpose.namespaces import NamespaceScope

logger = logging.getLogger(__name__)


class CleanupJob:
    """Deletes the owned access objects in scope, optionally filtered by name."""

    def __init__(self, store: AccessObjectStore, scope: NamespaceScope, name_filter: str | None = None):
        """Initialize the cleanup job.

        Args:
            store: The store of the access objects to delete.
            scope: The namespaces to clean up.
            name_filter: Only delete objects whose name contains this substring.
        """
        self.store = store
        self.scope = scope
        self.name_filter = name_filter or None

    def selects(self, name: str) -> bool:
        return self.name_filter is None or self.name_filter in name

    def run(self) -> list[str]:
        """Delete the selected owned access objects.

        Returns:
            The keys of the deleted objects.

        Raises:
            CleanupError: On the first listing or deletion failure.
        """
        kind = self.store.RESOURCE_KIND
        description = f" matching '{self.name_filter}'" if self.name_filter else ""
        logger.info(f"Cleaning up generated {kind}s{description} in {self.scope}")

        deleted = []
        for namespace in self.scope.targets():
            scope = namespace or "all namespaces"
            try:
                records = self.store.list_owned(namespace)
            except Exception as e:
                raise CleanupError(f"Failed to list {kind}s in {scope}: {e}") from e

            for record in records:
                if not self.selects(record.name):
                    logger.debug(f"Keeping {kind} {record.key}")
                    continue
                try:
                    self.store.delete(record.name, record.namespace)
                except Exception as e:
                    raise CleanupError(f"Failed to delete {kind} {record.key}: {e}") from e
                deleted.append(record.key)

        logger.info(f"Cleanup deleted {len(deleted)} {kind}(s)")
        return deleted
