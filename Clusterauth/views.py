from __future__ import annotations

import json
from typing import Any

from django.apps import apps
from django.contrib.admin.views.decorators import staff_member_required
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from .models import Cluster
from .rbac.catalog import PermissionTypeCatalog
from .rbac.exceptions import ClusterNotFound, PermissionValidationError, ReconciliationInProgress
from .rbac.reconciler import Reconciler
from .rbac.store import PermissionStore


def _catalog() -> PermissionTypeCatalog:
    return apps.get_app_config("Clusterauth").catalog


def _reconciler() -> Reconciler:
    return Reconciler(_catalog())


def _error(reason: str, status: int, **extra: Any) -> JsonResponse:
    return JsonResponse({"status": "error", "reason": reason, **extra}, status=status)


def _ok(data: Any, status: int = 200) -> JsonResponse:
    return JsonResponse({"status": "ok", "data": data}, status=status)


def _read_json(request) -> dict[str, Any]:
    try:
        payload = json.loads(request.body or b"{}")
    except (TypeError, ValueError) as exc:
        raise PermissionValidationError("Request body is not valid JSON.") from exc
    if not isinstance(payload, dict):
        raise PermissionValidationError("Request body must be a JSON object.")
    return payload


def _optional_id(payload: dict[str, Any], field: str) -> int | None:
    value = payload.get(field)
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise PermissionValidationError(f"'{field}' must be an integer.") from exc


@csrf_exempt
@require_POST
@staff_member_required
def sync_cluster_permissions(request, cluster_id: int):
    reconciler = _reconciler()
    try:
        status = reconciler.reconcile(cluster_id)
    except ClusterNotFound as exc:
        return _error(str(exc), 404)
    except ReconciliationInProgress as exc:
        current = reconciler.get_sync_status(cluster_id)
        return _error(str(exc), 409, data=current.to_dict() if current else None)
    return _ok(status.to_dict())


@require_GET
@staff_member_required
def cluster_sync_status(request, cluster_id: int):
    status = _reconciler().get_sync_status(cluster_id)
    if status is None:
        return _error(f"Cluster {cluster_id} has never been reconciled.", 404)
    return _ok(status.to_dict())


@require_GET
@staff_member_required
def inspect_cluster_permissions(request, cluster_id: int):
    try:
        report = _reconciler().inspect(cluster_id)
    except ClusterNotFound as exc:
        return _error(str(exc), 404)
    return _ok({"synced": all(entry.get("exists") for entry in report), "resources": report})


@require_GET
@staff_member_required
def permission_types(request):
    return _ok([definition.to_dict() for definition in _catalog().list()])


@csrf_exempt
@require_http_methods(["GET", "POST"])
@staff_member_required
def cluster_permissions(request, cluster_id: int):
    cluster = Cluster.objects.filter(pk=cluster_id).first()
    if cluster is None:
        return _error(f"Cluster {cluster_id} does not exist.", 404)
    store = PermissionStore(_catalog())

    if request.method == "GET":
        return _ok([permission.to_dict() for permission in store.list(cluster.pk)])

    try:
        payload = _read_json(request)
        user_id = _optional_id(payload, "user_id")
        group_id = _optional_id(payload, "user_group_id")
        user = get_user_model().objects.filter(pk=user_id).first() if user_id is not None else None
        group = Group.objects.filter(pk=group_id).first() if group_id is not None else None
        if (user_id is not None and user is None) or (group_id is not None and group is None):
            return _error("Unknown user or user group.", 400)
        namespaces = payload.get("namespaces") or []
        if not isinstance(namespaces, list):
            raise PermissionValidationError("'namespaces' must be a list.")
        permission = store.create(
            cluster=cluster,
            user=user,
            group=group,
            permission_type=str(payload.get("permission_type", "")).strip(),
            namespaces=namespaces,
            custom_role_ref=str(payload.get("custom_role_ref", "") or ""),
        )
    except PermissionValidationError as exc:
        return _error(str(exc), 400)
    return _ok(permission.to_dict(), status=201)


@csrf_exempt
@require_http_methods(["GET", "PUT", "DELETE"])
@staff_member_required
def permission_detail(request, permission_id: int):
    store = PermissionStore(_catalog())
    permission = store.get(permission_id)
    if permission is None:
        return _error(f"Cluster permission {permission_id} does not exist.", 404)

    if request.method == "GET":
        return _ok(permission.to_dict())
    if request.method == "DELETE":
        store.delete(permission_id)
        return _ok({"id": permission_id})

    try:
        payload = _read_json(request)
        namespaces = payload.get("namespaces")
        if namespaces is not None and not isinstance(namespaces, list):
            raise PermissionValidationError("'namespaces' must be a list.")
        custom_role_ref = payload.get("custom_role_ref")
        permission = store.update(
            permission_id,
            permission_type=str(payload.get("permission_type", "") or "").strip() or None,
            namespaces=namespaces,
            custom_role_ref=str(custom_role_ref) if custom_role_ref is not None else None,
        )
    except PermissionValidationError as exc:
        return _error(str(exc), 400)
    return _ok(permission.to_dict())
