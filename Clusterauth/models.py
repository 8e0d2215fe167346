from __future__ import annotations

from typing import Any

from django.conf import settings
from django.contrib.auth.models import Group
from django.db import models
from django.db.models import Q


class Cluster(models.Model):
    name = models.CharField(max_length=128, unique=True)
    api_server = models.URLField(max_length=255)
    bearer_token = models.TextField(blank=True, default="")
    verify_tls = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("id",)

    def __str__(self) -> str:
        return self.name


class ClusterPermission(models.Model):
    """A grant: one user or group, one tier, one namespace scope, on one cluster."""

    cluster = models.ForeignKey(Cluster, on_delete=models.CASCADE, related_name="permissions")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="cluster_permissions",
    )
    group = models.ForeignKey(
        Group,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="cluster_permissions",
    )
    permission_type = models.CharField(max_length=32)
    namespaces = models.JSONField(default=list)
    custom_role_ref = models.CharField(max_length=253, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("id",)
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(user__isnull=False, group__isnull=True)
                    | Q(user__isnull=True, group__isnull=False)
                ),
                name="clusterpermission_exactly_one_subject",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.subject_kind}:{self.subject_id} {self.permission_type}@{self.cluster_id}"

    @property
    def subject_kind(self) -> str:
        return "user" if self.user_id is not None else "group"

    @property
    def subject_id(self) -> int | None:
        return self.user_id if self.user_id is not None else self.group_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.pk,
            "cluster_id": self.cluster_id,
            "user_id": self.user_id,
            "user_group_id": self.group_id,
            "permission_type": self.permission_type,
            "namespaces": list(self.namespaces or []),
            "custom_role_ref": self.custom_role_ref,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class SyncStatus(models.Model):
    """Outcome of the most recent reconciliation of one cluster."""

    cluster = models.OneToOneField(Cluster, on_delete=models.CASCADE, related_name="sync_status")
    state = models.CharField(max_length=32)
    synced = models.BooleanField(default=False)
    last_attempted_at = models.DateTimeField(null=True, blank=True)
    last_succeeded_at = models.DateTimeField(null=True, blank=True)
    applied = models.JSONField(default=list)
    errors = models.JSONField(default=list)

    class Meta:
        verbose_name_plural = "sync statuses"

    def __str__(self) -> str:
        return f"{self.cluster_id}: {self.state}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "cluster_id": self.cluster_id,
            "state": self.state,
            "synced": self.synced,
            "last_attempted_at": self.last_attempted_at.isoformat() if self.last_attempted_at else None,
            "last_succeeded_at": self.last_succeeded_at.isoformat() if self.last_succeeded_at else None,
            "applied": list(self.applied or []),
            "errors": list(self.errors or []),
        }
