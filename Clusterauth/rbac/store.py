from __future__ import annotations

import logging
import re
from typing import Any

from django.db import transaction

from ..models import Cluster, ClusterPermission
from .catalog import PermissionTypeCatalog
from .contracts import ALL_NAMESPACES
from .exceptions import PermissionValidationError
from .mapper import normalize_namespaces

logger = logging.getLogger(__name__)

NAMESPACE_PATTERN = re.compile(r"^[a-z0-9*]([-a-z0-9*]{0,61}[a-z0-9*])?$")


class PermissionStore:
    """Write boundary for grants; everything stored here is structurally valid."""

    def __init__(self, catalog: PermissionTypeCatalog) -> None:
        self.catalog = catalog

    def create(
        self,
        *,
        cluster: Cluster,
        permission_type: str,
        user: Any | None = None,
        group: Any | None = None,
        namespaces: list[str] | None = None,
        custom_role_ref: str = "",
    ) -> ClusterPermission:
        if user is None and group is None:
            raise PermissionValidationError("A user or a user group is required.")
        if user is not None and group is not None:
            raise PermissionValidationError("A grant cannot target both a user and a user group.")

        # An unscoped grant covers every namespace.
        scope = normalize_namespaces(namespaces) or [ALL_NAMESPACES]
        role_ref = self._validate(permission_type, scope, custom_role_ref)

        with transaction.atomic():
            existing = ClusterPermission.objects.filter(cluster=cluster)
            existing = existing.filter(user=user) if user is not None else existing.filter(group=group)
            if existing.exists():
                raise PermissionValidationError("This user or group already has a grant on this cluster.")
            permission = ClusterPermission.objects.create(
                cluster=cluster,
                user=user,
                group=group,
                permission_type=permission_type,
                namespaces=scope,
                custom_role_ref=role_ref,
            )

        logger.info(
            "Created cluster permission cluster=%s subject=%s:%s type=%s",
            cluster.pk,
            permission.subject_kind,
            permission.subject_id,
            permission_type,
        )
        return permission

    def update(
        self,
        permission_id: int,
        *,
        permission_type: str | None = None,
        namespaces: list[str] | None = None,
        custom_role_ref: str | None = None,
    ) -> ClusterPermission:
        with transaction.atomic():
            permission = self._get_for_update(permission_id)
            tier = permission_type or permission.permission_type
            scope = normalize_namespaces(namespaces) if namespaces else list(permission.namespaces or [])
            role_ref = permission.custom_role_ref if custom_role_ref is None else custom_role_ref
            permission.custom_role_ref = self._validate(tier, scope, role_ref)
            permission.permission_type = tier
            permission.namespaces = scope
            permission.save()
        return permission

    def delete(self, permission_id: int) -> None:
        deleted, _ = ClusterPermission.objects.filter(pk=permission_id).delete()
        if not deleted:
            raise PermissionValidationError(f"Cluster permission {permission_id} does not exist.")
        logger.info("Deleted cluster permission %s", permission_id)

    def get(self, permission_id: int) -> ClusterPermission | None:
        return ClusterPermission.objects.filter(pk=permission_id).first()

    def list(self, cluster_id: int | None = None) -> list[ClusterPermission]:
        queryset = ClusterPermission.objects.all()
        if cluster_id is not None:
            queryset = queryset.filter(cluster_id=cluster_id)
        return list(queryset.order_by("id"))

    def _get_for_update(self, permission_id: int) -> ClusterPermission:
        permission = ClusterPermission.objects.select_for_update().filter(pk=permission_id).first()
        if permission is None:
            raise PermissionValidationError(f"Cluster permission {permission_id} does not exist.")
        return permission

    def _validate(self, permission_type: str, scope: list[str], custom_role_ref: str) -> str:
        if permission_type not in self.catalog:
            raise PermissionValidationError(f"Unknown permission type '{permission_type}'.")
        definition = self.catalog.lookup(permission_type)

        role_ref = str(custom_role_ref or "").strip()
        if definition.role_from_grant and not role_ref:
            raise PermissionValidationError(
                f"Permission type '{permission_type}' requires a ClusterRole name."
            )
        if not definition.role_from_grant:
            role_ref = ""

        if scope == [ALL_NAMESPACES]:
            return role_ref
        if definition.require_all_namespaces:
            raise PermissionValidationError(
                f"Permission type '{permission_type}' must cover all namespaces."
            )
        if not definition.allow_partial_namespaces:
            raise PermissionValidationError(
                f"Permission type '{permission_type}' does not allow partial namespaces."
            )
        invalid = [namespace for namespace in scope if not NAMESPACE_PATTERN.match(namespace)]
        if invalid:
            raise PermissionValidationError(f"Invalid namespace names: {', '.join(invalid)}")
        return role_ref
