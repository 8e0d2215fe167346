from __future__ import annotations

from typing import Any

import requests

from .adapter import MANAGED_BY_LABEL, RBAC_API_VERSION, to_manifest, to_namespace_names, to_object_key
from .contracts import ActualObjectSet, AuthorizationObject, ObjectKey, is_pattern
from .exceptions import ClusterApiError, TransportError
from .settings import get_rbac_settings

# kind -> (api prefix, plural, namespaced)
RESOURCE_PATHS: dict[str, tuple[str, str, bool]] = {
    "Namespace": ("/api/v1", "namespaces", False),
    "ClusterRole": (f"/apis/{RBAC_API_VERSION}", "clusterroles", False),
    "Role": (f"/apis/{RBAC_API_VERSION}", "roles", True),
    "ClusterRoleBinding": (f"/apis/{RBAC_API_VERSION}", "clusterrolebindings", False),
    "RoleBinding": (f"/apis/{RBAC_API_VERSION}", "rolebindings", True),
    "ServiceAccount": ("/api/v1", "serviceaccounts", True),
}


class ClusterAuthorizationClient:
    """Operations the reconciler needs against one remote cluster."""

    def list_objects(self, cluster: Any) -> ActualObjectSet:
        raise NotImplementedError

    def create_object(self, cluster: Any, obj: AuthorizationObject) -> None:
        raise NotImplementedError

    def object_exists(self, cluster: Any, obj: AuthorizationObject) -> bool:
        raise NotImplementedError


class KubernetesAuthorizationClient(ClusterAuthorizationClient):
    """HTTP client for the Kubernetes RBAC and core APIs."""

    def __init__(self) -> None:
        self.config = get_rbac_settings()

    def list_objects(self, cluster: Any) -> ActualObjectSet:
        selector = f"{MANAGED_BY_LABEL}={self.config.managed_by_label}"
        keys: set[ObjectKey] = set()
        for kind, (prefix, plural, _namespaced) in RESOURCE_PATHS.items():
            if kind == "Namespace":
                # Presence comes from the full namespace list below.
                continue
            payload = self._request(cluster, "GET", f"{prefix}/{plural}", params={"labelSelector": selector})
            items = payload.get("items") if isinstance(payload, dict) else None
            for item in items if isinstance(items, list) else []:
                key = to_object_key(kind, item) if isinstance(item, dict) else None
                if key is not None:
                    keys.add(key)
        return ActualObjectSet(keys=frozenset(keys), namespaces=self._list_namespaces(cluster))

    def create_object(self, cluster: Any, obj: AuthorizationObject) -> None:
        for namespace in self._target_namespaces(cluster, obj):
            manifest = to_manifest(obj, managed_by=self.config.managed_by_label, namespace=namespace)
            try:
                self._request(cluster, "POST", self._collection_path(obj.kind, namespace), json=manifest)
            except ClusterApiError as exc:
                # Created concurrently or by a previous run; creation is idempotent.
                if exc.status_code != 409:
                    raise

    def object_exists(self, cluster: Any, obj: AuthorizationObject) -> bool:
        # Vacuously true for a pattern with no matching namespace, as in ActualObjectSet.covers.
        for namespace in self._target_namespaces(cluster, obj):
            try:
                self._request(cluster, "GET", f"{self._collection_path(obj.kind, namespace)}/{obj.name}")
            except ClusterApiError as exc:
                if exc.status_code == 404:
                    return False
                raise
        return True

    def _list_namespaces(self, cluster: Any) -> tuple[str, ...]:
        payload = self._request(cluster, "GET", "/api/v1/namespaces")
        return to_namespace_names(payload if isinstance(payload, dict) else {})

    def _target_namespaces(self, cluster: Any, obj: AuthorizationObject) -> list[str]:
        if not is_pattern(obj.namespace):
            return [obj.namespace]
        live = ActualObjectSet(namespaces=self._list_namespaces(cluster))
        return live.matching_namespaces(obj.namespace)

    def _collection_path(self, kind: str, namespace: str) -> str:
        prefix, plural, namespaced = RESOURCE_PATHS[kind]
        if namespaced:
            return f"{prefix}/namespaces/{namespace}/{plural}"
        return f"{prefix}/{plural}"

    def _request(self, cluster: Any, method: str, path: str, **kwargs: Any) -> Any:
        headers = kwargs.pop("headers", {})
        if cluster.bearer_token:
            headers["Authorization"] = f"Bearer {cluster.bearer_token}"
        headers["Accept"] = "application/json"
        url = f"{cluster.api_server.rstrip('/')}{path}"

        try:
            response = requests.request(
                method=method,
                url=url,
                timeout=self.config.request_timeout_seconds,
                headers=headers,
                verify=cluster.verify_tls,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise TransportError(f"{method} {path} failed: {exc!s}") from exc

        if response.status_code in (502, 503, 504):
            raise TransportError(f"Cluster API unavailable with status {response.status_code}")
        if response.status_code >= 400:
            raise ClusterApiError(
                f"{method} {path} failed ({response.status_code}): {response.text[:300]}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ClusterApiError(f"{method} {path} returned invalid JSON.") from exc
