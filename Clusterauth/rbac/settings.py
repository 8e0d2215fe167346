from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass(frozen=True, slots=True)
class RbacSettings:
    object_prefix: str
    principal_namespace: str
    managed_by_label: str
    request_timeout_seconds: int
    lock_timeout_seconds: int
    apply_workers: int
    permission_types: tuple[dict[str, Any], ...]


def get_rbac_settings() -> RbacSettings:
    prefix = str(getattr(settings, "CLUSTERAUTH_OBJECT_PREFIX", "clusterauth")).strip().lower()
    return RbacSettings(
        object_prefix=prefix,
        principal_namespace=str(
            getattr(settings, "CLUSTERAUTH_PRINCIPAL_NAMESPACE", f"{prefix}-system")
        ).strip(),
        managed_by_label=str(getattr(settings, "CLUSTERAUTH_MANAGED_BY_LABEL", prefix)).strip(),
        request_timeout_seconds=int(getattr(settings, "CLUSTERAUTH_REQUEST_TIMEOUT_SECONDS", 8)),
        lock_timeout_seconds=int(getattr(settings, "CLUSTERAUTH_LOCK_TIMEOUT_SECONDS", 600)),
        apply_workers=max(1, int(getattr(settings, "CLUSTERAUTH_APPLY_WORKERS", 1))),
        permission_types=tuple(getattr(settings, "CLUSTERAUTH_PERMISSION_TYPES", None) or ()),
    )
