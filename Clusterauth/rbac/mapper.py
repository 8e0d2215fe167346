from __future__ import annotations

from typing import Any, Iterable

from .catalog import WILDCARD, PermissionTypeDefinition
from .contracts import (
    ALL_NAMESPACES,
    BindingDescriptor,
    DesiredAuthorizationObjectSet,
    PolicyRule,
    PrincipalDescriptor,
    RoleDescriptor,
)
from .exceptions import InvalidScopeError
from .settings import get_rbac_settings


def normalize_namespaces(namespaces: Iterable[Any] | None) -> list[str]:
    """Trimmed, de-duplicated, sorted namespace patterns; ``["*"]`` when any entry is the sentinel."""
    cleaned = {str(item).strip() for item in namespaces or () if str(item).strip()}
    if ALL_NAMESPACES in cleaned:
        return [ALL_NAMESPACES]
    return sorted(cleaned)


class RbacObjectMapper:
    """Expands a grant into the authorization objects its cluster needs."""

    def __init__(self, *, prefix: str | None = None, principal_namespace: str | None = None) -> None:
        config = get_rbac_settings()
        self.prefix = prefix or config.object_prefix
        self.principal_namespace = principal_namespace or config.principal_namespace

    def expand(self, permission: Any, definition: PermissionTypeDefinition) -> DesiredAuthorizationObjectSet:
        namespaces = self._scope(permission, definition)
        cluster_wide = namespaces is None

        tier = definition.tag
        subject_name = f"{self.prefix}-{tier}-{permission.subject_kind}-{permission.subject_id}"
        principal = PrincipalDescriptor(
            name=subject_name,
            namespace=self.principal_namespace,
            subject=f"{permission.subject_kind}:{permission.subject_id}",
        )

        roles: list[RoleDescriptor] = []
        bindings: list[BindingDescriptor] = []
        for namespace in namespaces or [""]:
            if definition.role_from_grant:
                role_kind, role_name = "ClusterRole", str(permission.custom_role_ref).strip()
            else:
                role = RoleDescriptor(
                    name=f"{self.prefix}-{tier}",
                    rules=self._rules(definition),
                    namespace=namespace,
                )
                roles.append(role)
                role_kind, role_name = role.kind, role.name
            bindings.append(
                BindingDescriptor(
                    name=subject_name,
                    role_kind=role_kind,
                    role_name=role_name,
                    principal_name=principal.name,
                    principal_namespace=principal.namespace,
                    namespace=namespace,
                )
            )

        return DesiredAuthorizationObjectSet(
            permission_id=permission.pk,
            principal=principal,
            roles=tuple(roles),
            bindings=tuple(bindings),
            cluster_wide=cluster_wide,
        )

    def _scope(self, permission: Any, definition: PermissionTypeDefinition) -> list[str] | None:
        # None means cluster-wide.
        if definition.require_all_namespaces:
            return None
        namespaces = normalize_namespaces(permission.namespaces)
        if namespaces == [ALL_NAMESPACES]:
            return None
        if not definition.allow_partial_namespaces:
            raise InvalidScopeError(
                f"Permission type '{definition.tag}' does not allow partial namespace scope."
            )
        if not namespaces:
            raise InvalidScopeError(f"Grant {permission.pk} has an empty namespace scope.")
        return namespaces

    def _rules(self, definition: PermissionTypeDefinition) -> tuple[PolicyRule, ...]:
        return (
            PolicyRule(
                api_groups=(WILDCARD,),
                resources=tuple(definition.resources),
                verbs=tuple(definition.verbs),
            ),
        )
