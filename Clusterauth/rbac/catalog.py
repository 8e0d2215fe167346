from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable

from django.core.exceptions import ImproperlyConfigured

from .exceptions import UnknownTierError
from .settings import get_rbac_settings

WILDCARD = "*"
READ_VERBS = ("get", "list", "watch")
WRITE_VERBS = READ_VERBS + ("create", "update", "delete")
WORKLOAD_RESOURCES = ("pods", "deployments", "services")


@dataclass(frozen=True, slots=True)
class PermissionTypeDefinition:
    """Shape of one privilege tier."""

    tag: str
    label: str
    description: str = ""
    resources: tuple[str, ...] = ()
    verbs: tuple[str, ...] = ()
    allow_partial_namespaces: bool = True
    require_all_namespaces: bool = False
    # The grant names an existing role instead of one being synthesized.
    role_from_grant: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.tag,
            "name": self.label,
            "description": self.description,
            "resources": list(self.resources),
            "actions": list(self.verbs),
            "allowPartialNamespaces": self.allow_partial_namespaces,
            "requireAllNamespaces": self.require_all_namespaces,
            "roleFromGrant": self.role_from_grant,
        }


DEFAULT_PERMISSION_TYPES: tuple[PermissionTypeDefinition, ...] = (
    PermissionTypeDefinition(
        tag="admin",
        label="Administrator",
        description="Read/write on every resource in all namespaces. All namespaces required.",
        resources=(WILDCARD,),
        verbs=(WILDCARD,),
        allow_partial_namespaces=False,
        require_all_namespaces=True,
    ),
    PermissionTypeDefinition(
        tag="ops",
        label="Operations",
        description="Read/write on most resources in all namespaces. All namespaces required.",
        resources=WORKLOAD_RESOURCES,
        verbs=WRITE_VERBS,
        allow_partial_namespaces=False,
        require_all_namespaces=True,
    ),
    PermissionTypeDefinition(
        tag="dev",
        label="Developer",
        description="Read/write on most resources in the selected namespaces.",
        resources=WORKLOAD_RESOURCES,
        verbs=WRITE_VERBS,
    ),
    PermissionTypeDefinition(
        tag="readonly",
        label="Read only",
        description="Read access to most resources in the selected namespaces.",
        resources=(WILDCARD,),
        verbs=READ_VERBS,
    ),
    PermissionTypeDefinition(
        tag="custom",
        label="Custom",
        description="Permissions come from the ClusterRole named by the grant.",
        role_from_grant=True,
    ),
)


class PermissionTypeCatalog:
    """Immutable registry of privilege tiers, keyed by tag."""

    def __init__(self, definitions: Iterable[PermissionTypeDefinition]) -> None:
        registry: dict[str, PermissionTypeDefinition] = {}
        for definition in definitions:
            registry[definition.tag] = definition
        self._definitions = MappingProxyType(registry)

    def lookup(self, tier: str) -> PermissionTypeDefinition:
        try:
            return self._definitions[tier]
        except KeyError:
            raise UnknownTierError(f"Unknown permission type '{tier}'.") from None

    def list(self) -> list[PermissionTypeDefinition]:
        return list(self._definitions.values())

    def __contains__(self, tier: object) -> bool:
        return tier in self._definitions


def _as_tuple(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (value.strip(),)
    return tuple(str(item).strip() for item in value if str(item).strip())


def to_permission_type(entry: dict[str, Any]) -> PermissionTypeDefinition:
    """Adapter: settings mapping -> PermissionTypeDefinition."""
    tag = str(entry.get("type") or entry.get("tag") or "").strip()
    if not tag:
        raise ImproperlyConfigured("Permission type entries need a 'type' tag.")
    require_all = bool(entry.get("require_all_namespaces", False))
    allow_partial = bool(entry.get("allow_partial_namespaces", not require_all))
    if require_all and allow_partial:
        raise ImproperlyConfigured(
            f"Permission type '{tag}' cannot both require all namespaces and allow partial ones."
        )
    role_from_grant = bool(entry.get("role_from_grant", False))
    resources = _as_tuple(entry.get("resources"))
    verbs = _as_tuple(entry.get("verbs"))
    if not role_from_grant and not (resources and verbs):
        raise ImproperlyConfigured(f"Permission type '{tag}' needs resources and verbs.")
    return PermissionTypeDefinition(
        tag=tag,
        label=str(entry.get("label", tag)),
        description=str(entry.get("description", "")),
        resources=resources,
        verbs=verbs,
        allow_partial_namespaces=allow_partial,
        require_all_namespaces=require_all,
        role_from_grant=role_from_grant,
    )


def load_permission_catalog() -> PermissionTypeCatalog:
    """Defaults first, then CLUSTERAUTH_PERMISSION_TYPES entries add or replace tiers."""
    config = get_rbac_settings()
    overrides = [to_permission_type(dict(entry)) for entry in config.permission_types]
    return PermissionTypeCatalog([*DEFAULT_PERMISSION_TYPES, *overrides])
