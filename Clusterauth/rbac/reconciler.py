from __future__ import annotations

import concurrent.futures
import logging
import uuid
from typing import Any, Iterable, Optional

from django.core.cache import cache
from django.utils import timezone

from ..models import Cluster, ClusterPermission, SyncStatus
from .catalog import PermissionTypeCatalog
from .client import ClusterAuthorizationClient, KubernetesAuthorizationClient
from .contracts import (
    AuthorizationObject,
    NamespaceDescriptor,
    ObjectKey,
    ReconcileState,
    SyncOutcome,
    describe,
    error_entry,
    object_summary,
)
from .exceptions import (
    ClusterApiError,
    ClusterNotFound,
    InvalidScopeError,
    ReconciliationInProgress,
    TransportError,
    UnknownTierError,
)
from .mapper import RbacObjectMapper
from .settings import get_rbac_settings
from .status import SyncStatusStore
from .store import PermissionStore

logger = logging.getLogger(__name__)

ApplyResult = tuple[AuthorizationObject, Optional[dict[str, Any]]]


def _lock_key(cluster_id: int) -> str:
    return f"rbac:reconcile:lock:{cluster_id}"


def _transition(cluster: Cluster, state: ReconcileState) -> ReconcileState:
    logger.debug("Cluster %s reconciliation -> %s", cluster.pk, state.value)
    return state


class Reconciler:
    """Converges one cluster's authorization objects towards its stored grants."""

    def __init__(
        self,
        catalog: PermissionTypeCatalog,
        *,
        client: ClusterAuthorizationClient | None = None,
        mapper: RbacObjectMapper | None = None,
        permissions: PermissionStore | None = None,
        statuses: SyncStatusStore | None = None,
    ) -> None:
        self.config = get_rbac_settings()
        self.catalog = catalog
        self.client = client or KubernetesAuthorizationClient()
        self.mapper = mapper or RbacObjectMapper()
        self.permissions = permissions or PermissionStore(catalog)
        self.statuses = statuses or SyncStatusStore()

    def reconcile(self, cluster_id: int) -> SyncStatus:
        cluster = self._get_cluster(cluster_id)
        key = _lock_key(cluster.pk)
        token = uuid.uuid4().hex
        if not cache.add(key, token, timeout=self.config.lock_timeout_seconds):
            raise ReconciliationInProgress(f"Reconciliation for cluster {cluster.pk} is already running.")
        try:
            outcome = self._run(cluster)
            status = self.statuses.put(cluster, outcome)
        finally:
            # The lock may have expired and been taken by another run.
            if cache.get(key) == token:
                cache.delete(key)
            else:
                logger.warning("Reconciliation lock for cluster %s expired before the run finished", cluster.pk)

        logger.info(
            "Reconciled cluster %s state=%s applied=%d errors=%d",
            cluster.pk,
            outcome.state.value,
            len(outcome.applied),
            len(outcome.errors),
        )
        return status

    def get_sync_status(self, cluster_id: int) -> SyncStatus | None:
        return self.statuses.get(cluster_id)

    def desired_state(self, cluster: Cluster) -> tuple[list[AuthorizationObject], list[dict[str, Any]]]:
        return self._expand(self.permissions.list(cluster.pk))

    def inspect(self, cluster_id: int) -> list[dict[str, Any]]:
        """Presence of every desired object on the live cluster, checked one by one."""
        cluster = self._get_cluster(cluster_id)
        desired, _ = self.desired_state(cluster)
        report = []
        for obj in sorted(desired, key=lambda item: item.key):
            entry: dict[str, Any] = object_summary(obj)
            try:
                entry["exists"] = self.client.object_exists(cluster, obj)
            except (TransportError, ClusterApiError) as exc:
                entry["exists"] = None
                entry["error"] = str(exc)
            report.append(entry)
        return report

    def _get_cluster(self, cluster_id: int) -> Cluster:
        cluster = Cluster.objects.filter(pk=cluster_id).first()
        if cluster is None:
            raise ClusterNotFound(f"Cluster {cluster_id} does not exist.")
        return cluster

    def _expand(
        self, permissions: Iterable[ClusterPermission]
    ) -> tuple[list[AuthorizationObject], list[dict[str, Any]]]:
        """Union of every grant's objects, de-duplicated by key, plus per-grant errors."""
        desired: dict[ObjectKey, AuthorizationObject] = {}
        errors: list[dict[str, Any]] = []
        principal_namespace = NamespaceDescriptor(self.mapper.principal_namespace)
        for permission in permissions:
            try:
                definition = self.catalog.lookup(permission.permission_type)
                expanded = self.mapper.expand(permission, definition)
            except (UnknownTierError, InvalidScopeError) as exc:
                logger.warning("Skipping cluster permission %s: %s", permission.pk, exc)
                errors.append(error_entry(str(exc), permission_id=permission.pk))
                continue
            desired.setdefault(principal_namespace.key, principal_namespace)
            for obj in expanded.objects():
                desired.setdefault(obj.key, obj)
        return list(desired.values()), errors

    def _run(self, cluster: Cluster) -> SyncOutcome:
        attempted_at = timezone.now()
        previous = self.statuses.get(cluster.pk)
        last_succeeded_at = previous.last_succeeded_at if previous else None

        _transition(cluster, ReconcileState.LOADING)
        permissions = self.permissions.list(cluster.pk)
        try:
            actual = self.client.list_objects(cluster)
        except (TransportError, ClusterApiError) as exc:
            logger.warning("Loading authorization objects for cluster %s failed: %s", cluster.pk, exc)
            return SyncOutcome(
                state=_transition(cluster, ReconcileState.FAILED),
                attempted_at=attempted_at,
                succeeded_at=last_succeeded_at,
                errors=[error_entry(str(exc), retryable=isinstance(exc, TransportError))],
            )

        _transition(cluster, ReconcileState.DIFFING)
        desired, errors = self._expand(permissions)
        missing = [obj for obj in desired if not actual.covers(obj)]

        _transition(cluster, ReconcileState.APPLYING)
        # Principal namespace before the service accounts it holds.
        namespaces = [obj for obj in missing if isinstance(obj, NamespaceDescriptor)]
        others = [obj for obj in missing if not isinstance(obj, NamespaceDescriptor)]
        results = [self._apply_one(cluster, obj) for obj in namespaces]
        results.extend(self._apply(cluster, others))

        applied = []
        failures = []
        for obj, failure in results:
            if failure is None:
                applied.append(object_summary(obj))
            else:
                failures.append(failure)
        applied.sort(key=lambda item: (item["kind"], item["namespace"], item["name"]))
        failures.sort(key=lambda item: item["object"])
        errors.extend(failures)

        if errors:
            state = _transition(cluster, ReconcileState.PARTIALLY_FAILED)
        else:
            state = _transition(cluster, ReconcileState.SUCCEEDED)
        return SyncOutcome(
            state=state,
            attempted_at=attempted_at,
            succeeded_at=attempted_at if not errors else last_succeeded_at,
            applied=applied,
            errors=errors,
        )

    def _apply(self, cluster: Cluster, missing: list[AuthorizationObject]) -> list[ApplyResult]:
        if self.config.apply_workers <= 1 or len(missing) <= 1:
            return [self._apply_one(cluster, obj) for obj in missing]
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.config.apply_workers) as ex:
            futs = [ex.submit(self._apply_one, cluster, obj) for obj in missing]
            return [fut.result() for fut in concurrent.futures.as_completed(futs)]

    def _apply_one(self, cluster: Cluster, obj: AuthorizationObject) -> ApplyResult:
        try:
            self.client.create_object(cluster, obj)
        except (TransportError, ClusterApiError) as exc:
            logger.warning("Creating %s on cluster %s failed: %s", describe(obj), cluster.pk, exc)
            return obj, error_entry(str(exc), obj=obj, retryable=isinstance(exc, TransportError))
        return obj, None
