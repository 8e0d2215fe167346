from __future__ import annotations

from django.contrib.auth.models import Group, User
from django.db import IntegrityError, transaction
from django.test import TestCase

from Clusterauth.models import Cluster, ClusterPermission
from Clusterauth.rbac.catalog import DEFAULT_PERMISSION_TYPES, PermissionTypeCatalog
from Clusterauth.rbac.exceptions import PermissionValidationError
from Clusterauth.rbac.store import PermissionStore


class PermissionStoreTests(TestCase):
    def setUp(self):
        self.store = PermissionStore(PermissionTypeCatalog(DEFAULT_PERMISSION_TYPES))
        self.cluster = Cluster.objects.create(name="c1", api_server="https://c1.example:6443")
        self.user = User.objects.create(username="alice")
        self.group = Group.objects.create(name="platform")

    def test_create_user_grant_defaults_to_all_namespaces(self):
        permission = self.store.create(cluster=self.cluster, user=self.user, permission_type="admin")
        self.assertEqual(permission.namespaces, ["*"])
        self.assertEqual(permission.subject_kind, "user")
        self.assertEqual(permission.subject_id, self.user.pk)
        self.assertEqual(permission.to_dict()["namespaces"], ["*"])

    def test_create_group_grant_with_namespaces(self):
        permission = self.store.create(
            cluster=self.cluster,
            group=self.group,
            permission_type="dev",
            namespaces=["team-*", "payments", "payments"],
        )
        permission.refresh_from_db()
        self.assertEqual(permission.namespaces, ["payments", "team-*"])
        self.assertEqual(permission.subject_kind, "group")

    def test_subject_must_be_exactly_one(self):
        with self.assertRaises(PermissionValidationError):
            self.store.create(cluster=self.cluster, permission_type="admin")
        with self.assertRaises(PermissionValidationError):
            self.store.create(cluster=self.cluster, user=self.user, group=self.group, permission_type="admin")
        self.assertFalse(ClusterPermission.objects.exists())

    def test_database_rejects_both_subjects(self):
        with self.assertRaises(IntegrityError), transaction.atomic():
            ClusterPermission.objects.create(
                cluster=self.cluster, user=self.user, group=self.group, permission_type="dev", namespaces=["*"]
            )

    def test_unknown_tier_rejected(self):
        with self.assertRaises(PermissionValidationError):
            self.store.create(cluster=self.cluster, user=self.user, permission_type="root")

    def test_all_namespace_tier_rejects_partial_scope(self):
        with self.assertRaises(PermissionValidationError):
            self.store.create(cluster=self.cluster, user=self.user, permission_type="ops", namespaces=["team-a"])

    def test_custom_tier_requires_role(self):
        with self.assertRaises(PermissionValidationError):
            self.store.create(cluster=self.cluster, user=self.user, permission_type="custom")
        permission = self.store.create(
            cluster=self.cluster, user=self.user, permission_type="custom", custom_role_ref=" ml-operator "
        )
        self.assertEqual(permission.custom_role_ref, "ml-operator")

    def test_role_ref_dropped_for_synthesized_tiers(self):
        permission = self.store.create(
            cluster=self.cluster, user=self.user, permission_type="readonly", custom_role_ref="ignored"
        )
        self.assertEqual(permission.custom_role_ref, "")

    def test_invalid_namespace_names_rejected(self):
        with self.assertRaises(PermissionValidationError):
            self.store.create(cluster=self.cluster, user=self.user, permission_type="dev", namespaces=["Team_A"])

    def test_one_grant_per_subject_and_cluster(self):
        self.store.create(cluster=self.cluster, user=self.user, permission_type="readonly")
        with self.assertRaises(PermissionValidationError):
            self.store.create(cluster=self.cluster, user=self.user, permission_type="dev", namespaces=["a"])

        other = Cluster.objects.create(name="c2", api_server="https://c2.example:6443")
        self.store.create(cluster=other, user=self.user, permission_type="dev", namespaces=["a"])
        self.assertEqual(len(self.store.list()), 2)
        self.assertEqual(len(self.store.list(other.pk)), 1)

    def test_update_revalidates(self):
        permission = self.store.create(
            cluster=self.cluster, group=self.group, permission_type="dev", namespaces=["team-a"]
        )
        with self.assertRaises(PermissionValidationError):
            self.store.update(permission.pk, permission_type="admin")

        updated = self.store.update(permission.pk, permission_type="admin", namespaces=["*"])
        self.assertEqual(updated.permission_type, "admin")
        self.assertEqual(updated.namespaces, ["*"])

        updated = self.store.update(permission.pk, permission_type="custom", custom_role_ref="viewer-plus")
        self.assertEqual(updated.custom_role_ref, "viewer-plus")

    def test_delete(self):
        permission = self.store.create(cluster=self.cluster, user=self.user, permission_type="readonly")
        self.store.delete(permission.pk)
        self.assertIsNone(self.store.get(permission.pk))
        with self.assertRaises(PermissionValidationError):
            self.store.delete(permission.pk)

    def test_deregistering_cluster_removes_grants(self):
        self.store.create(cluster=self.cluster, user=self.user, permission_type="readonly")
        self.cluster.delete()
        self.assertFalse(ClusterPermission.objects.exists())
