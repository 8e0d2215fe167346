from __future__ import annotations

from typing import Any

from .contracts import (
    AuthorizationObject,
    BindingDescriptor,
    NamespaceDescriptor,
    ObjectKey,
    PrincipalDescriptor,
    RoleDescriptor,
)

RBAC_API_GROUP = "rbac.authorization.k8s.io"
RBAC_API_VERSION = f"{RBAC_API_GROUP}/v1"
MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
SUBJECT_ANNOTATION = "clusterauth.io/subject"


def _metadata(name: str, namespace: str, managed_by: str) -> dict[str, Any]:
    metadata: dict[str, Any] = {"name": name, "labels": {MANAGED_BY_LABEL: managed_by}}
    if namespace:
        metadata["namespace"] = namespace
    return metadata


def to_manifest(obj: AuthorizationObject, *, managed_by: str, namespace: str | None = None) -> dict[str, Any]:
    """
    Adapter: descriptor -> Kubernetes API payload.

    ``namespace`` replaces the descriptor's own namespace, which is how a
    wildcard pattern gets rendered once per matching live namespace.
    """
    target_namespace = obj.namespace if namespace is None else namespace
    metadata = _metadata(obj.name, target_namespace, managed_by)

    if isinstance(obj, RoleDescriptor):
        return {
            "apiVersion": RBAC_API_VERSION,
            "kind": obj.kind,
            "metadata": metadata,
            "rules": [
                {
                    "apiGroups": list(rule.api_groups),
                    "resources": list(rule.resources),
                    "verbs": list(rule.verbs),
                }
                for rule in obj.rules
            ],
        }
    if isinstance(obj, NamespaceDescriptor):
        return {"apiVersion": "v1", "kind": obj.kind, "metadata": metadata}
    if isinstance(obj, PrincipalDescriptor):
        metadata["annotations"] = {SUBJECT_ANNOTATION: obj.subject}
        return {"apiVersion": "v1", "kind": obj.kind, "metadata": metadata}
    if isinstance(obj, BindingDescriptor):
        return {
            "apiVersion": RBAC_API_VERSION,
            "kind": obj.kind,
            "metadata": metadata,
            "subjects": [
                {
                    "kind": "ServiceAccount",
                    "name": obj.principal_name,
                    "namespace": obj.principal_namespace,
                }
            ],
            "roleRef": {"apiGroup": RBAC_API_GROUP, "kind": obj.role_kind, "name": obj.role_name},
        }
    raise TypeError(f"Unsupported authorization object: {obj!r}")


def to_object_key(kind: str, item: dict[str, Any]) -> ObjectKey | None:
    """Adapter: Kubernetes list item -> (kind, namespace, name)."""
    metadata = item.get("metadata") if isinstance(item.get("metadata"), dict) else {}
    name = str(metadata.get("name", "")).strip()
    if not name:
        return None
    return (kind, str(metadata.get("namespace", "") or "").strip(), name)


def to_namespace_names(payload: dict[str, Any]) -> tuple[str, ...]:
    items = payload.get("items") if isinstance(payload.get("items"), list) else []
    names = {str((item.get("metadata") or {}).get("name", "")).strip() for item in items if isinstance(item, dict)}
    return tuple(sorted(name for name in names if name))
