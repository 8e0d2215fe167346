from __future__ import annotations

from unittest import mock

import requests
from django.test import SimpleTestCase, override_settings

from Clusterauth.models import Cluster
from Clusterauth.rbac.adapter import MANAGED_BY_LABEL, SUBJECT_ANNOTATION, to_manifest
from Clusterauth.rbac.client import KubernetesAuthorizationClient
from Clusterauth.rbac.contracts import (
    BindingDescriptor,
    NamespaceDescriptor,
    PolicyRule,
    PrincipalDescriptor,
    RoleDescriptor,
)
from Clusterauth.rbac.exceptions import ClusterApiError, TransportError

from .fakes import api_response as _response


def _items(*names):
    return {"items": [{"metadata": {"name": name}} for name in names]}


ROLE = RoleDescriptor("kp-dev", (PolicyRule(("*",), ("pods",), ("get", "list")),), namespace="team-*")


@override_settings(
    CLUSTERAUTH_OBJECT_PREFIX="kp",
    CLUSTERAUTH_MANAGED_BY_LABEL="kp",
    CLUSTERAUTH_REQUEST_TIMEOUT_SECONDS=3,
)
class KubernetesAuthorizationClientTests(SimpleTestCase):
    def setUp(self):
        self.cluster = Cluster(pk=1, name="c1", api_server="https://c1.example:6443/", bearer_token="tok")
        self.client_api = KubernetesAuthorizationClient()
        patcher = mock.patch("Clusterauth.rbac.client.requests.request")
        self.request = patcher.start()
        self.addCleanup(patcher.stop)

    def test_sends_token_timeout_and_tls_flag(self):
        self.request.return_value = _response(payload={"metadata": {"name": "kp-dev"}})

        self.assertTrue(self.client_api.object_exists(self.cluster, RoleDescriptor("kp-admin", ())))

        kwargs = self.request.call_args.kwargs
        self.assertEqual(kwargs["url"], "https://c1.example:6443/apis/rbac.authorization.k8s.io/v1/clusterroles/kp-admin")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer tok")
        self.assertEqual(kwargs["timeout"], 3)
        self.assertTrue(kwargs["verify"])

    def test_timeout_is_transport_error(self):
        self.request.side_effect = requests.Timeout("read timed out")
        with self.assertRaises(TransportError):
            self.client_api.list_objects(self.cluster)

    def test_gateway_errors_are_transport_errors(self):
        self.request.return_value = _response(503, text="unavailable")
        with self.assertRaises(TransportError):
            self.client_api.list_objects(self.cluster)

    def test_other_errors_keep_status_code(self):
        self.request.return_value = _response(403, text="forbidden")
        with self.assertRaises(ClusterApiError) as ctx:
            self.client_api.list_objects(self.cluster)
        self.assertEqual(ctx.exception.status_code, 403)

    def test_invalid_json_is_api_error(self):
        self.request.return_value = _response(200, payload=None)
        with self.assertRaises(ClusterApiError):
            self.client_api.list_objects(self.cluster)

    def test_list_objects_filters_by_label_and_reads_namespaces(self):
        def respond(method, url, **kwargs):
            if url.endswith("/clusterroles"):
                return _response(payload=_items("kp-admin"))
            if url.endswith("/rolebindings"):
                return _response(
                    payload={"items": [{"metadata": {"name": "kp-dev-group-2", "namespace": "team-a"}}, {"bogus": 1}]}
                )
            if url.endswith("/api/v1/namespaces"):
                return _response(payload=_items("team-b", "team-a", "default"))
            return _response(payload={"items": []})

        self.request.side_effect = respond

        actual = self.client_api.list_objects(self.cluster)

        self.assertEqual(
            actual.keys,
            frozenset({("ClusterRole", "", "kp-admin"), ("RoleBinding", "team-a", "kp-dev-group-2")}),
        )
        self.assertEqual(actual.namespaces, ("default", "team-a", "team-b"))
        selectors = {
            call.kwargs["params"]["labelSelector"]
            for call in self.request.call_args_list
            if call.kwargs.get("params")
        }
        self.assertEqual(selectors, {f"{MANAGED_BY_LABEL}=kp"})

    def test_create_expands_wildcard_namespaces(self):
        def respond(method, url, **kwargs):
            if method == "GET":
                return _response(payload=_items("team-a", "team-b", "ops"))
            return _response(201, payload={})

        self.request.side_effect = respond

        self.client_api.create_object(self.cluster, ROLE)

        posts = [call.kwargs for call in self.request.call_args_list if call.kwargs["method"] == "POST"]
        self.assertEqual(
            [post["url"] for post in posts],
            [
                "https://c1.example:6443/apis/rbac.authorization.k8s.io/v1/namespaces/team-a/roles",
                "https://c1.example:6443/apis/rbac.authorization.k8s.io/v1/namespaces/team-b/roles",
            ],
        )
        self.assertEqual(posts[1]["json"]["metadata"]["namespace"], "team-b")

    def test_create_conflict_counts_as_present(self):
        self.request.return_value = _response(409, text="AlreadyExists")
        principal = PrincipalDescriptor("kp-admin-user-1", "kp-system", "user:1")

        self.client_api.create_object(self.cluster, principal)

        self.assertEqual(
            self.request.call_args.kwargs["url"],
            "https://c1.example:6443/api/v1/namespaces/kp-system/serviceaccounts",
        )

    def test_create_propagates_other_errors(self):
        self.request.return_value = _response(422, text="invalid")
        with self.assertRaises(ClusterApiError):
            self.client_api.create_object(self.cluster, RoleDescriptor("kp-admin", ()))

    def test_object_exists_not_found(self):
        self.request.return_value = _response(404, text="not found")
        binding = BindingDescriptor("kp-dev-user-1", "Role", "kp-dev", "kp-dev-user-1", "kp-system", namespace="a")
        self.assertFalse(self.client_api.object_exists(self.cluster, binding))

    def test_pattern_without_matching_namespaces_needs_nothing(self):
        self.request.return_value = _response(payload={"items": []})
        self.assertTrue(self.client_api.object_exists(self.cluster, ROLE))
        self.assertEqual(self.request.call_count, 1)

    def test_create_namespace(self):
        self.request.return_value = _response(201, payload={})

        self.client_api.create_object(self.cluster, NamespaceDescriptor("kp-system"))

        kwargs = self.request.call_args.kwargs
        self.assertEqual(kwargs["url"], "https://c1.example:6443/api/v1/namespaces")
        self.assertEqual(kwargs["json"]["kind"], "Namespace")
        self.assertEqual(kwargs["json"]["metadata"], {"name": "kp-system", "labels": {MANAGED_BY_LABEL: "kp"}})

    def test_namespaces_are_not_listed_by_label(self):
        self.request.return_value = _response(payload={"items": []})
        self.client_api.list_objects(self.cluster)
        urls = [call.kwargs["url"] for call in self.request.call_args_list if call.kwargs.get("params")]
        self.assertEqual(len(urls), 5)
        self.assertFalse(any(url.endswith("/api/v1/namespaces") for url in urls))


class ManifestTests(SimpleTestCase):
    def test_binding_manifest(self):
        binding = BindingDescriptor(
            name="kp-dev-group-2",
            role_kind="Role",
            role_name="kp-dev",
            principal_name="kp-dev-group-2",
            principal_namespace="kp-system",
            namespace="team-*",
        )
        manifest = to_manifest(binding, managed_by="kp", namespace="team-a")

        self.assertEqual(manifest["kind"], "RoleBinding")
        self.assertEqual(manifest["metadata"], {"name": "kp-dev-group-2", "labels": {MANAGED_BY_LABEL: "kp"}, "namespace": "team-a"})
        self.assertEqual(
            manifest["subjects"], [{"kind": "ServiceAccount", "name": "kp-dev-group-2", "namespace": "kp-system"}]
        )
        self.assertEqual(manifest["roleRef"]["kind"], "Role")

    def test_cluster_role_manifest_has_no_namespace(self):
        manifest = to_manifest(RoleDescriptor("kp-admin", (PolicyRule(("*",), ("*",), ("*",)),)), managed_by="kp")
        self.assertNotIn("namespace", manifest["metadata"])
        self.assertEqual(manifest["rules"], [{"apiGroups": ["*"], "resources": ["*"], "verbs": ["*"]}])

    def test_principal_manifest_carries_subject(self):
        manifest = to_manifest(PrincipalDescriptor("kp-admin-user-1", "kp-system", "user:1"), managed_by="kp")
        self.assertEqual(manifest["metadata"]["annotations"], {SUBJECT_ANNOTATION: "user:1"})
        self.assertEqual(manifest["apiVersion"], "v1")
