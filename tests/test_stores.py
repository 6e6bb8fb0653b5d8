"""Tests for the access object stores."""

import unittest
from unittest import mock

from kubernetes import client
from kubernetes.client.exceptions import ApiException

from kubexpose.kubernetes.annotations import MANAGED_ANNOTATIONS_ANNOTATION, OWNER_ANNOTATION, OWNER_VALUE
from kubexpose.kubernetes.connection import KubernetesConnection
from kubexpose.kubernetes.resources.ingresses import MANAGED_BY_LABEL, IngressStore
from kubexpose.kubernetes.resources.routes import RouteStore
from kubexpose.kubernetes.store import AccessObjectConflict
from kubexpose.models import AccessObjectSpec, OwnedObjectRecord


def make_spec(**kwargs):
    values = {
        "name": "checkout",
        "namespace": "shop",
        "host": "checkout.shop.example.com",
        "service_name": "checkout",
        "service_port": 8080,
    }
    values.update(kwargs)
    return AccessObjectSpec(**values)


def ingress_page(items, continue_token=None):
    page = mock.Mock()
    page.items = items
    page.metadata._continue = continue_token
    return page


class TestIngressStore(unittest.TestCase):
    """Test cases for the IngressStore class."""

    def setUp(self):
        """Set up test fixtures."""
        self.connection = mock.Mock(spec=KubernetesConnection)
        self.api = mock.Mock()
        self.connection.networking_v1_api = self.api
        self.store = IngressStore(self.connection)

    def make_ingress(self, name, owned=True, **kwargs):
        annotations = {OWNER_ANNOTATION: OWNER_VALUE} if owned else {"team": "payments"}
        return self.store.build_body(make_spec(name=name, **kwargs), annotations, resource_version="42")

    def test_build_body(self):
        """Test that the Ingress routes the host to the service port."""
        spec = make_spec(tls=True, tls_secret_name="checkout-tls", ingress_class="nginx", path="/api")

        body = self.store.build_body(spec, self.store.owned_annotations(spec))

        self.assertEqual(body.metadata.name, "checkout")
        self.assertEqual(body.metadata.labels, {MANAGED_BY_LABEL: "kubexpose"})
        self.assertEqual(body.metadata.annotations, {OWNER_ANNOTATION: OWNER_VALUE, MANAGED_ANNOTATIONS_ANNOTATION: ""})
        self.assertEqual(body.spec.ingress_class_name, "nginx")
        rule = body.spec.rules[0]
        self.assertEqual(rule.host, "checkout.shop.example.com")
        path = rule.http.paths[0]
        self.assertEqual(path.path, "/api")
        self.assertEqual(path.path_type, "Prefix")
        self.assertEqual(path.backend.service.name, "checkout")
        self.assertEqual(path.backend.service.port.number, 8080)
        self.assertEqual(body.spec.tls[0].hosts, ["checkout.shop.example.com"])
        self.assertEqual(body.spec.tls[0].secret_name, "checkout-tls")

    def test_to_record_round_trip(self):
        """Test that a generated Ingress matches the spec it was built from."""
        spec = make_spec(
            tls=True,
            tls_secret_name="checkout-tls",
            ingress_class="nginx",
            annotations={"kubernetes.io/tls-acme": "true", "nginx.ingress.kubernetes.io/ssl-redirect": "true"},
        )
        body = self.store.build_body(spec, self.store.owned_annotations(spec), resource_version="7")

        record = self.store.to_record(body)

        self.assertTrue(record.matches(spec))
        self.assertEqual(record.resource_version, "7")
        self.assertEqual(
            record.managed_annotations, ["kubernetes.io/tls-acme", "nginx.ingress.kubernetes.io/ssl-redirect"]
        )

    def test_to_record_without_managed_annotations(self):
        """Test that an Ingress written without the managed list manages no annotations."""
        body = self.make_ingress("checkout")
        self.assertEqual(self.store.to_record(body).managed_annotations, [])

    def test_to_record_foreign_shape(self):
        """Test that an Ingress without rules gives an empty record."""
        ingress = client.V1Ingress(
            metadata=client.V1ObjectMeta(name="checkout", namespace="shop"),
            spec=client.V1IngressSpec(),
        )
        record = self.store.to_record(ingress)
        self.assertIsNone(record.host)
        self.assertFalse(record.tls)

    def test_list_owned_filters_unowned(self):
        """Test that only owned Ingresses are listed."""
        self.api.list_namespaced_ingress.return_value = ingress_page(
            [self.make_ingress("checkout"), self.make_ingress("manual", owned=False)]
        )

        records = self.store.list_owned("shop")

        self.assertEqual([record.name for record in records], ["checkout"])
        self.api.list_namespaced_ingress.assert_called_once_with("shop", limit=100, _continue=None)

    def test_list_owned_paginates(self):
        """Test that every page is read."""
        self.api.list_ingress_for_all_namespaces.side_effect = [
            ingress_page([self.make_ingress("a")], "token"),
            ingress_page([self.make_ingress("b")]),
        ]

        records = self.store.list_owned()

        self.assertEqual([record.name for record in records], ["a", "b"])
        self.api.list_ingress_for_all_namespaces.assert_called_with(limit=100, _continue="token")

    def test_list_owned_missing_namespace(self):
        """Test that a missing namespace holds no Ingresses."""
        self.api.list_namespaced_ingress.side_effect = ApiException(status=404)
        self.assertEqual(self.store.list_owned("gone"), [])

    def test_list_owned_error_is_raised(self):
        """Test that other listing failures are not mistaken for an empty list."""
        self.api.list_namespaced_ingress.side_effect = ApiException(status=403)
        with self.assertRaises(ApiException):
            self.store.list_owned("shop")

    def test_create_marks_ownership(self):
        """Test that created Ingresses carry the ownership marker."""
        self.store.create(make_spec(annotations={"kubernetes.io/tls-acme": "true"}))

        body = self.api.create_namespaced_ingress.call_args.kwargs["body"]
        self.assertEqual(body.metadata.annotations[OWNER_ANNOTATION], OWNER_VALUE)
        self.assertEqual(body.metadata.annotations["kubernetes.io/tls-acme"], "true")
        self.assertEqual(body.metadata.annotations[MANAGED_ANNOTATIONS_ANNOTATION], "kubernetes.io/tls-acme")
        self.assertEqual(self.api.create_namespaced_ingress.call_args.kwargs["namespace"], "shop")

    def test_create_conflict(self):
        """Test that an existing object is never replaced by a create."""
        self.api.create_namespaced_ingress.side_effect = ApiException(status=409)

        with self.assertRaises(AccessObjectConflict):
            self.store.create(make_spec())

        self.api.replace_namespaced_ingress.assert_not_called()

    def test_update_keeps_foreign_annotations(self):
        """Test that updates preserve annotations and send the resource version."""
        record = OwnedObjectRecord(
            name="checkout",
            namespace="shop",
            annotations={OWNER_ANNOTATION: OWNER_VALUE, "team": "payments"},
            resource_version="42",
        )

        self.store.update(record, make_spec())

        kwargs = self.api.replace_namespaced_ingress.call_args.kwargs
        self.assertEqual(kwargs["name"], "checkout")
        body = kwargs["body"]
        self.assertEqual(body.metadata.resource_version, "42")
        self.assertEqual(
            body.metadata.annotations,
            {OWNER_ANNOTATION: OWNER_VALUE, MANAGED_ANNOTATIONS_ANNOTATION: "", "team": "payments"},
        )

    def test_update_drops_annotations_no_longer_wanted(self):
        """Test that annotations kubexpose set earlier are removed once the spec drops them."""
        record = OwnedObjectRecord(
            name="checkout",
            namespace="shop",
            tls=True,
            annotations={
                OWNER_ANNOTATION: OWNER_VALUE,
                MANAGED_ANNOTATIONS_ANNOTATION: "kubernetes.io/tls-acme",
                "kubernetes.io/tls-acme": "true",
                "team": "payments",
            },
            managed_annotations=["kubernetes.io/tls-acme"],
        )

        self.store.update(record, make_spec(tls=False))

        body = self.api.replace_namespaced_ingress.call_args.kwargs["body"]
        self.assertNotIn("kubernetes.io/tls-acme", body.metadata.annotations)
        self.assertEqual(
            body.metadata.annotations,
            {OWNER_ANNOTATION: OWNER_VALUE, MANAGED_ANNOTATIONS_ANNOTATION: "", "team": "payments"},
        )
        self.assertIsNone(body.spec.tls)

    def test_delete(self):
        self.assertTrue(self.store.delete("checkout", "shop"))
        self.api.delete_namespaced_ingress.assert_called_once_with(name="checkout", namespace="shop")

    def test_delete_absent(self):
        """Test that deleting an absent Ingress is not an error."""
        self.api.delete_namespaced_ingress.side_effect = ApiException(status=404)
        self.assertFalse(self.store.delete("checkout", "shop"))

    def test_delete_error(self):
        self.api.delete_namespaced_ingress.side_effect = ApiException(status=500)
        with self.assertRaises(ApiException):
            self.store.delete("checkout", "shop")


class TestRouteStore(unittest.TestCase):
    """Test cases for the RouteStore class."""

    def setUp(self):
        """Set up test fixtures."""
        self.connection = mock.Mock(spec=KubernetesConnection)
        self.api = mock.Mock()
        self.connection.custom_objects_api = self.api
        self.store = RouteStore(self.connection)

    def test_build_body(self):
        """Test that the Route sends the host to the service's named port."""
        spec = make_spec(tls=True, target_port="http")

        body = self.store.build_body(spec, self.store.owned_annotations(spec), resource_version="3")

        self.assertEqual(body["apiVersion"], "route.openshift.io/v1")
        self.assertEqual(body["kind"], "Route")
        self.assertEqual(body["metadata"]["resourceVersion"], "3")
        self.assertEqual(body["spec"]["host"], "checkout.shop.example.com")
        self.assertEqual(body["spec"]["to"], {"kind": "Service", "name": "checkout", "weight": 100})
        self.assertEqual(body["spec"]["port"], {"targetPort": "http"})
        self.assertEqual(body["spec"]["tls"]["termination"], "edge")

    def test_build_body_without_target_port(self):
        """Test that the service port number is used when no target port is known."""
        body = self.store.build_body(make_spec(), {})
        self.assertEqual(body["spec"]["port"], {"targetPort": 8080})

    def test_to_record_round_trip(self):
        """Test that a generated Route matches its spec for named and numbered target ports."""
        for target_port in ("http", 9000, None):
            spec = make_spec(target_port=target_port)
            body = self.store.build_body(spec, self.store.owned_annotations(spec))
            record = self.store.to_record(body)
            self.assertTrue(record.matches(spec), target_port)

    def test_to_record_detects_wrong_target_port(self):
        """Test that a Route pointing at another port is reported as different."""
        body = self.store.build_body(make_spec(), {})
        record = self.store.to_record(body)
        self.assertEqual(record.differences(make_spec(target_port="http")), ["target_port"])

    def test_list_owned(self):
        """Test that only owned Routes are listed, across pages."""
        owned = self.store.build_body(make_spec(name="a"), {OWNER_ANNOTATION: OWNER_VALUE})
        manual = self.store.build_body(make_spec(name="b"), {})
        self.api.list_namespaced_custom_object.side_effect = [
            {"items": [owned], "metadata": {"continue": "next"}},
            {"items": [manual], "metadata": {}},
        ]

        records = self.store.list_owned("shop")

        self.assertEqual([record.name for record in records], ["a"])
        self.assertEqual(self.api.list_namespaced_custom_object.call_count, 2)
        self.assertEqual(self.api.list_namespaced_custom_object.call_args.kwargs["_continue"], "next")

    def test_create_conflict(self):
        self.api.create_namespaced_custom_object.side_effect = ApiException(status=409)
        with self.assertRaises(AccessObjectConflict):
            self.store.create(make_spec())

    def test_delete(self):
        self.assertTrue(self.store.delete("checkout", "shop"))
        self.api.delete_namespaced_custom_object.assert_called_once_with(
            group="route.openshift.io", version="v1", namespace="shop", plural="routes", name="checkout"
        )


if __name__ == "__main__":
    unittest.main()
