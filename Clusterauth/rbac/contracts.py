from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from fnmatch import fnmatchcase
from typing import Any, Iterator, Union

ALL_NAMESPACES = "*"

ObjectKey = tuple[str, str, str]


def is_pattern(namespace: str) -> bool:
    return "*" in namespace


@dataclass(frozen=True, slots=True)
class PolicyRule:
    api_groups: tuple[str, ...]
    resources: tuple[str, ...]
    verbs: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class RoleDescriptor:
    name: str
    rules: tuple[PolicyRule, ...]
    namespace: str = ""

    @property
    def kind(self) -> str:
        return "Role" if self.namespace else "ClusterRole"

    @property
    def key(self) -> ObjectKey:
        return (self.kind, self.namespace, self.name)


@dataclass(frozen=True, slots=True)
class PrincipalDescriptor:
    """Service account standing in for the grant's user or group."""

    name: str
    namespace: str
    subject: str

    @property
    def kind(self) -> str:
        return "ServiceAccount"

    @property
    def key(self) -> ObjectKey:
        return (self.kind, self.namespace, self.name)


@dataclass(frozen=True, slots=True)
class BindingDescriptor:
    name: str
    role_kind: str
    role_name: str
    principal_name: str
    principal_namespace: str
    namespace: str = ""

    @property
    def kind(self) -> str:
        return "RoleBinding" if self.namespace else "ClusterRoleBinding"

    @property
    def key(self) -> ObjectKey:
        return (self.kind, self.namespace, self.name)


@dataclass(frozen=True, slots=True)
class NamespaceDescriptor:
    """Namespace holding the principals; created before any of them."""

    name: str

    @property
    def kind(self) -> str:
        return "Namespace"

    @property
    def namespace(self) -> str:
        return ""

    @property
    def key(self) -> ObjectKey:
        return (self.kind, "", self.name)


AuthorizationObject = Union[NamespaceDescriptor, RoleDescriptor, PrincipalDescriptor, BindingDescriptor]


def describe(obj: AuthorizationObject) -> str:
    kind, namespace, name = obj.key
    return f"{kind}/{namespace}/{name}" if namespace else f"{kind}/{name}"


def object_summary(obj: AuthorizationObject) -> dict[str, str]:
    kind, namespace, name = obj.key
    return {"kind": kind, "namespace": namespace, "name": name}


@dataclass(frozen=True, slots=True)
class DesiredAuthorizationObjectSet:
    """Objects one grant needs on its cluster."""

    permission_id: int | None
    principal: PrincipalDescriptor
    roles: tuple[RoleDescriptor, ...] = ()
    bindings: tuple[BindingDescriptor, ...] = ()
    cluster_wide: bool = True

    def objects(self) -> Iterator[AuthorizationObject]:
        yield from self.roles
        yield self.principal
        yield from self.bindings


@dataclass(frozen=True, slots=True)
class ActualObjectSet:
    """Managed objects observed on a cluster, plus its live namespaces."""

    keys: frozenset[ObjectKey] = frozenset()
    namespaces: tuple[str, ...] = ()

    def matching_namespaces(self, pattern: str) -> list[str]:
        return [namespace for namespace in self.namespaces if fnmatchcase(namespace, pattern)]

    def covers(self, obj: AuthorizationObject) -> bool:
        if obj.key in self.keys:
            return True
        kind, namespace, name = obj.key
        if kind == "Namespace":
            return name in self.namespaces
        if not is_pattern(namespace):
            return False
        # A pattern matching no live namespace has nothing to create yet.
        return all((kind, ns, name) in self.keys for ns in self.matching_namespaces(namespace))


class ReconcileState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    DIFFING = "diffing"
    APPLYING = "applying"
    SUCCEEDED = "succeeded"
    PARTIALLY_FAILED = "partially_failed"
    FAILED = "failed"


@dataclass(slots=True)
class SyncOutcome:
    """Result of one reconciliation run, before it is persisted."""

    state: ReconcileState
    attempted_at: datetime
    succeeded_at: datetime | None = None
    applied: list[dict[str, str]] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def synced(self) -> bool:
        return self.state is ReconcileState.SUCCEEDED


def error_entry(
    message: str,
    *,
    permission_id: int | None = None,
    obj: AuthorizationObject | None = None,
    retryable: bool = False,
) -> dict[str, Any]:
    return {
        "permission_id": permission_id,
        "object": describe(obj) if obj is not None else None,
        "error": message,
        "retryable": retryable,
    }
