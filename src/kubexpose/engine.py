"""Reconciliation engine for kubexpose.

This module drives the reconciliation passes that converge the access objects
in the cluster toward the state the exposer derives from the services in
scope.
"""

import logging
import threading
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, Field

from kubexpose.config import ExposeConfig
from kubexpose.exposers import ExposerStrategy
from kubexpose.kubernetes.annotations import EXPOSE_URL_ANNOTATION
from kubexpose.kubernetes.connection import KubernetesConnection
from kubexpose.kubernetes.resources.events import (
    create_conflict_event,
    create_exposed_event,
    create_updated_event,
)
from kubexpose.kubernetes.resources.services import ServiceResource, ServiceWatcher
from kubexpose.kubernetes.store import AccessObjectConflict, AccessObjectStore
from kubexpose.metrics import ACCESS_OBJECT_OPERATIONS, RECONCILE_PASSES, SERVICE_PATCHES
from kubexpose.models import AccessObjectSpec, ExposeResult, OwnedObjectRecord, ServiceDescriptor
from kubexpose.namespaces import NamespaceScope

logger = logging.getLogger(__name__)


class ReconcilePlan(BaseModel):
    """Operations needed to converge the owned access objects of a namespace."""

    creates: list[AccessObjectSpec] = Field(default_factory=list)
    updates: list[tuple[OwnedObjectRecord, AccessObjectSpec]] = Field(default_factory=list)
    deletes: list[OwnedObjectRecord] = Field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.creates or self.updates or self.deletes)


class PassSummary(BaseModel):
    """Outcome of one reconciliation pass."""

    created: int = 0
    updated: int = 0
    deleted: int = 0
    patched: int = 0
    conflicts: int = 0
    failed: int = 0
    skipped_namespaces: list[str] = Field(default_factory=list)

    @property
    def mutations(self) -> int:
        return self.created + self.updated + self.deleted + self.patched


def plan_changes(
    desired: dict[str, AccessObjectSpec],
    owned: list[OwnedObjectRecord],
    protected: set[str] | None = None,
) -> ReconcilePlan:
    """Diff desired access objects against the owned ones.

    Args:
        desired: Desired access objects keyed by ``namespace/name``.
        owned: Owned access objects found in the cluster.
        protected: Keys whose desired state is unknown this pass; their owned
            objects are left alone instead of being collected.

    Returns:
        The plan of creates, updates and deletes.
    """
    protected = protected or set()
    plan = ReconcilePlan()
    owned_by_key = {record.key: record for record in owned}

    for key, spec in sorted(desired.items()):
        record = owned_by_key.get(key)
        if record is None:
            plan.creates.append(spec)
        elif not record.matches(spec):
            plan.updates.append((record, spec))

    for key, record in sorted(owned_by_key.items()):
        if key not in desired and key not in protected:
            plan.deletes.append(record)

    return plan


class ReconciliationEngine:
    """Runs reconciliation passes until stopped.

    Passes are triggered by the initial start, by service watch events and by
    a periodic resync. Triggers only set a flag, so passes never overlap and
    any number of triggers arriving during a pass results in a single
    follow-up pass.

    In daemon mode the engine runs until ``stop()``. Otherwise it performs a
    single pass, starts no trigger source and returns; ``wait_until_run()``
    lets another thread await that pass.
    """

    def __init__(
        self,
        config: ExposeConfig,
        scope: NamespaceScope,
        exposer: ExposerStrategy,
        store: AccessObjectStore,
        services: ServiceResource,
        connection: KubernetesConnection | None = None,
        daemon: bool = True,
        watcher_factory: Callable[..., Any] = ServiceWatcher,
    ):
        """Initialize the engine.

        Args:
            config: The resolved configuration.
            scope: The namespaces to reconcile.
            exposer: The exposure strategy.
            store: The store of the access objects the exposer generates.
            services: The Service handler used to list, patch and watch services.
            connection: Connection used to record events. If None, no events are recorded.
            daemon: Keep running and reacting to triggers after the first pass.
            watcher_factory: Creates the service watchers started in daemon mode.
        """
        self.config = config
        self.scope = scope
        self.exposer = exposer
        self.store = store
        self.services = services
        self.connection = connection
        self.daemon = daemon
        self.watcher_factory = watcher_factory

        self.passes = 0
        self._pending = threading.Event()
        self._stop_event = threading.Event()
        self._has_run = threading.Event()
        self._completion = threading.Event()
        self._pass_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._running = False
        self._watchers: list[Any] = []
        self._resync_thread: threading.Thread | None = None

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def has_run(self) -> bool:
        """Whether at least one full pass has completed."""
        return self._has_run.is_set()

    def wait_until_run(self, timeout: float | None = None) -> bool:
        """Block until the first pass completes or the engine exits.

        Args:
            timeout: Maximum number of seconds to wait, None to wait forever.

        Returns:
            True if a full pass has completed.
        """
        self._completion.wait(timeout=timeout)
        return self.has_run()

    def trigger(self, reason: str = "manual") -> None:
        """Request a pass. Requests made while one is pending are merged."""
        logger.debug(f"Reconciliation requested: {reason}")
        self._pending.set()

    def stop(self) -> None:
        """Request the engine to stop.

        The pass in progress, if any, completes. No further pass starts.
        Calling this more than once, or before ``run()``, is safe.
        """
        with self._state_lock:
            if self._stop_event.is_set():
                return
            logger.info("Stop requested, shutting down after the current pass")
            self._stop_event.set()
            watchers = list(self._watchers)
        # Wake up the loop so it can observe the stop request
        self._pending.set()
        for watcher in watchers:
            watcher.stop()

    def run(self) -> None:
        """Perform reconciliation passes until stopped, or once outside daemon mode."""
        with self._state_lock:
            if self._running:
                raise RuntimeError("Reconciliation engine is already running")
            if self._stop_event.is_set():
                logger.info("Stop requested before the first pass, exiting")
                self._completion.set()
                return
            self._running = True

        mode = "daemon" if self.daemon else "run-once"
        logger.info(f"Starting reconciliation in {mode} mode for {self.scope}")
        self._pending.set()

        try:
            if self.daemon:
                self._start_triggers()

            while not self.stopped:
                self._pending.wait()
                if self.stopped:
                    break
                self._pending.clear()
                self.reconcile()
                if not self._has_run.is_set():
                    self._has_run.set()
                    self._completion.set()
                if not self.daemon:
                    break
        finally:
            self._stop_triggers()
            with self._state_lock:
                self._running = False
            self._completion.set()
            logger.info(f"Reconciliation stopped after {self.passes} pass(es)")

    def _start_triggers(self) -> None:
        """Start the service watchers and the resync ticker."""
        with self._state_lock:
            if self._stop_event.is_set():
                return
            for namespace in self.scope.targets():
                watcher = self.watcher_factory(self.services, namespace, self._on_service_event)
                self._watchers.append(watcher)
                watcher.start()

        self._resync_thread = threading.Thread(target=self._resync_loop, name="resync", daemon=True)
        self._resync_thread.start()

    def _stop_triggers(self) -> None:
        with self._state_lock:
            watchers, self._watchers = self._watchers, []
        for watcher in watchers:
            watcher.stop()
        # The ticker exits as soon as the stop event is set
        if self._resync_thread is not None and self._stop_event.is_set():
            self._resync_thread.join()

    def _resync_loop(self) -> None:
        logger.debug(f"Resyncing every {self.config.sync_period} seconds")
        while not self._stop_event.wait(timeout=self.config.sync_period):
            self.trigger("resync")

    def _on_service_event(self, event_type: str, service: Any) -> None:
        metadata = getattr(service, "metadata", None)
        name = getattr(metadata, "name", None)
        namespace = getattr(metadata, "namespace", None)
        if name and not self.is_selected_name(name):
            return
        self.trigger(f"{event_type} Service {namespace}/{name}")

    def is_selected_name(self, name: str) -> bool:
        return not self.config.services or name in self.config.services

    def is_selected(self, service: ServiceDescriptor) -> bool:
        """Whether a service passes the allow-list."""
        return self.is_selected_name(service.name)

    def reconcile(self) -> PassSummary:
        """Perform one full reconciliation pass over every namespace in scope.

        Failures are logged and counted; they never abort the pass.

        Returns:
            The outcome of the pass.
        """
        with self._pass_lock:
            summary = PassSummary()
            for namespace in self.scope.targets():
                self._reconcile_namespace(namespace, summary)

            self.passes += 1
            RECONCILE_PASSES.inc()
            logger.info(
                f"Reconciliation pass {self.passes} done: created={summary.created}, "
                f"updated={summary.updated}, deleted={summary.deleted}, patched={summary.patched}, "
                f"conflicts={summary.conflicts}, failed={summary.failed}"
                + (f", skipped={summary.skipped_namespaces}" if summary.skipped_namespaces else "")
            )
            return summary

    def _reconcile_namespace(self, namespace: str | None, summary: PassSummary) -> None:
        scope = namespace or "all namespaces"

        # A failed listing must not be mistaken for an empty one, or every owned
        # object in the namespace would be collected.
        try:
            services = self.services.list_services(namespace)
        except Exception as e:
            logger.error(f"Error listing services in {scope}, skipping it this pass: {e}")
            summary.skipped_namespaces.append(scope)
            return

        try:
            owned = self.store.list_owned(namespace)
        except Exception as e:
            logger.error(f"Error listing {self.store.RESOURCE_KIND}s in {scope}, skipping it this pass: {e}")
            summary.skipped_namespaces.append(scope)
            return

        desired: dict[str, AccessObjectSpec] = {}
        protected: set[str] = set()
        for service in services:
            if not self.is_selected(service):
                self._apply_service_state(service, ExposeResult(), summary)
                continue
            try:
                result = self.exposer.expose(service, self.config)
            except Exception as e:
                logger.error(f"Error computing exposure for Service {service.key}: {e}")
                summary.failed += 1
                protected.add(service.key)
                continue
            if result is None:
                self._apply_service_state(service, ExposeResult(), summary)
                continue
            if result.access_object is not None:
                desired[result.access_object.key] = result.access_object
            self._apply_service_state(service, result, summary)

        plan = plan_changes(desired, owned, protected)
        if plan.empty:
            logger.debug(f"{self.store.RESOURCE_KIND}s in {scope} are up to date")
            return
        self._apply_plan(plan, summary)

    def _apply_service_state(self, service: ServiceDescriptor, result: ExposeResult, summary: PassSummary) -> None:
        """Patch a service when its type or annotations differ from the desired ones.

        An exposed URL the result no longer carries is removed from the service.
        """
        body: dict[str, Any] = {}
        if result.service_type and service.service_type != result.service_type:
            body["spec"] = {"type": result.service_type}
        changed: dict[str, str | None] = {
            key: value
            for key, value in result.service_annotations.items()
            if service.annotations.get(key) != value
        }
        if EXPOSE_URL_ANNOTATION in service.annotations and EXPOSE_URL_ANNOTATION not in result.service_annotations:
            # A null value removes the annotation when patched
            changed[EXPOSE_URL_ANNOTATION] = None
        if changed:
            body["metadata"] = {"annotations": changed}
        if not body:
            return

        try:
            self.services.patch_service(service.name, service.namespace, body)
        except Exception as e:
            logger.error(f"Error patching Service {service.key}: {e}")
            SERVICE_PATCHES.labels(result="error").inc()
            summary.failed += 1
            return
        SERVICE_PATCHES.labels(result="success").inc()
        summary.patched += 1
        logger.info(f"Patched Service {service.key}: {body}")

    def _apply_plan(self, plan: ReconcilePlan, summary: PassSummary) -> None:
        kind = self.store.RESOURCE_KIND

        for spec in plan.creates:
            try:
                self.store.create(spec)
            except AccessObjectConflict as e:
                logger.warning(f"Not exposing Service {spec.namespace}/{spec.service_name}: {e}")
                ACCESS_OBJECT_OPERATIONS.labels(operation="create", result="conflict").inc()
                summary.conflicts += 1
                if self.connection is not None:
                    create_conflict_event(self.connection, spec, kind)
                continue
            except Exception as e:
                logger.error(f"Error creating {kind} {spec.key}: {e}")
                ACCESS_OBJECT_OPERATIONS.labels(operation="create", result="error").inc()
                summary.failed += 1
                continue
            ACCESS_OBJECT_OPERATIONS.labels(operation="create", result="success").inc()
            summary.created += 1
            if self.connection is not None:
                create_exposed_event(self.connection, spec, kind)

        for record, spec in plan.updates:
            logger.debug(f"{kind} {spec.key} differs in {', '.join(record.differences(spec))}")
            try:
                self.store.update(record, spec)
            except Exception as e:
                logger.error(f"Error updating {kind} {spec.key}: {e}")
                ACCESS_OBJECT_OPERATIONS.labels(operation="update", result="error").inc()
                summary.failed += 1
                continue
            ACCESS_OBJECT_OPERATIONS.labels(operation="update", result="success").inc()
            summary.updated += 1
            if self.connection is not None:
                create_updated_event(self.connection, spec, kind)

        for record in plan.deletes:
            try:
                deleted = self.store.delete(record.name, record.namespace)
            except Exception as e:
                logger.error(f"Error deleting {kind} {record.key}: {e}")
                ACCESS_OBJECT_OPERATIONS.labels(operation="delete", result="error").inc()
                summary.failed += 1
                continue
            ACCESS_OBJECT_OPERATIONS.labels(operation="delete", result="success").inc()
            if deleted:
                summary.deleted += 1
