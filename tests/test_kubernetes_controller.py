"""Tests for the Kubernetes controller and connection modules."""

import os
import unittest
from unittest import mock

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from kubexpose.exceptions import ConfigurationError
from kubexpose.kubernetes.connection import KubernetesConnection
from kubexpose.kubernetes.controller import KubernetesController
from kubexpose.kubernetes.resources.ingresses import IngressStore
from kubexpose.kubernetes.resources.routes import RouteStore
from kubexpose.kubernetes.resources.services import ServiceResource


class TestKubernetesController(unittest.TestCase):
    """Test cases for the KubernetesController class."""

    def setUp(self):
        """Set up test fixtures."""
        self.connection_mock = mock.Mock(spec=KubernetesConnection)
        self.connection_mock.core_v1_api = mock.Mock()
        self.connection_mock.networking_v1_api = mock.Mock()
        self.connection_mock.custom_objects_api = mock.Mock()
        self.controller = KubernetesController(self.connection_mock)

    def test_init(self):
        """Test that the controller registers every store."""
        self.assertIs(self.controller.connection, self.connection_mock)
        self.assertIsInstance(self.controller.services, ServiceResource)
        self.assertEqual(set(self.controller.stores), set(KubernetesController.SUPPORTED_STORES))
        self.assertIsInstance(self.controller.get_store("ingresses"), IngressStore)
        self.assertIsInstance(self.controller.get_store("routes"), RouteStore)

    def test_get_unknown_store(self):
        self.assertIsNone(self.controller.get_store("gateways"))

    def test_register_store(self):
        """Test that additional stores can be registered."""
        store = mock.Mock()
        self.controller.register_store("gateways", store)
        self.assertIs(self.controller.get_store("gateways"), store)

    def test_current_namespace(self):
        self.connection_mock.current_namespace.return_value = "shop"
        self.assertEqual(self.controller.current_namespace(), "shop")

    def test_find_cluster_config_first_configmap(self):
        """Test that the kubexpose ConfigMap is preferred."""
        self.connection_mock.core_v1_api.read_namespaced_config_map.return_value = client.V1ConfigMap(
            data={"config.yml": "domain: example.com\n"}
        )

        self.assertEqual(self.controller.find_cluster_config("shop"), {"domain": "example.com"})
        self.connection_mock.core_v1_api.read_namespaced_config_map.assert_called_once_with("kubexpose", "shop")

    def test_find_cluster_config_fallback(self):
        """Test that ingress-config is read when the kubexpose ConfigMap is missing."""
        self.connection_mock.core_v1_api.read_namespaced_config_map.side_effect = [
            ApiException(status=404),
            client.V1ConfigMap(data={"domain": "apps.example.com", "tls-acme": "true"}),
        ]

        self.assertEqual(
            self.controller.find_cluster_config("shop"),
            {"domain": "apps.example.com", "tls-acme": "true"},
        )
        self.connection_mock.core_v1_api.read_namespaced_config_map.assert_called_with("ingress-config", "shop")

    def test_find_cluster_config_none(self):
        """Test that unreadable ConfigMaps yield no configuration."""
        self.connection_mock.core_v1_api.read_namespaced_config_map.side_effect = ApiException(status=403)
        self.assertIsNone(self.controller.find_cluster_config("shop"))

    def test_team_namespace(self):
        """Test that the team label names the team namespace."""
        self.connection_mock.core_v1_api.read_namespace.return_value = client.V1Namespace(
            metadata=client.V1ObjectMeta(name="shop", labels={"team": "commerce"})
        )
        self.assertEqual(self.controller.team_namespace("shop"), "commerce")

    def test_team_namespace_missing(self):
        self.connection_mock.core_v1_api.read_namespace.return_value = client.V1Namespace(
            metadata=client.V1ObjectMeta(name="shop")
        )
        self.assertIsNone(self.controller.team_namespace("shop"))

        self.connection_mock.core_v1_api.read_namespace.side_effect = ApiException(status=403)
        self.assertIsNone(self.controller.team_namespace("shop"))


class TestKubernetesConnection(unittest.TestCase):
    """Test cases for the KubernetesConnection class."""

    def setUp(self):
        """Set up test fixtures."""
        self.incluster_patcher = mock.patch("kubernetes.config.load_incluster_config")
        self.kubeconfig_patcher = mock.patch("kubernetes.config.load_kube_config")
        self.load_incluster_config = self.incluster_patcher.start()
        self.load_kube_config = self.kubeconfig_patcher.start()

    def tearDown(self):
        """Tear down test fixtures."""
        self.incluster_patcher.stop()
        self.kubeconfig_patcher.stop()

    def test_in_cluster(self):
        """Test that in-cluster configuration is tried first."""
        connection = KubernetesConnection()

        self.assertTrue(connection.in_cluster)
        self.load_kube_config.assert_not_called()

    def test_kubeconfig_fallback(self):
        """Test that kubeconfig is used outside a cluster."""
        self.load_incluster_config.side_effect = config.ConfigException()

        connection = KubernetesConnection()

        self.assertFalse(connection.in_cluster)
        self.load_kube_config.assert_called_once_with(config_file=None, context=None)

    def test_explicit_kubeconfig(self):
        """Test that an explicit kubeconfig skips the in-cluster configuration."""
        KubernetesConnection(kubeconfig="/tmp/kubeconfig", context="staging")

        self.load_incluster_config.assert_not_called()
        self.load_kube_config.assert_called_once_with(config_file="/tmp/kubeconfig", context="staging")

    def test_no_configuration(self):
        self.load_incluster_config.side_effect = config.ConfigException()
        self.load_kube_config.side_effect = config.ConfigException()

        with self.assertRaises(RuntimeError):
            KubernetesConnection()

    @mock.patch.dict(os.environ, {"KUBERNETES_NAMESPACE": "shop"})
    def test_current_namespace_from_env(self):
        self.assertEqual(KubernetesConnection().current_namespace(), "shop")

    @mock.patch.dict(os.environ, {"KUBERNETES_NAMESPACE": ""})
    @mock.patch("kubexpose.kubernetes.connection.SERVICE_ACCOUNT_NAMESPACE_FILE")
    @mock.patch("kubernetes.config.list_kube_config_contexts")
    def test_current_namespace_from_kubeconfig(self, list_contexts, namespace_file):
        """Test that the active kubeconfig context gives the namespace."""
        namespace_file.is_file.return_value = False
        list_contexts.return_value = (
            [
                {"name": "dev", "context": {"namespace": "shop"}},
                {"name": "staging", "context": {}},
            ],
            {"name": "dev", "context": {"namespace": "shop"}},
        )

        self.assertEqual(KubernetesConnection().current_namespace(), "shop")
        self.assertEqual(KubernetesConnection(context="staging").current_namespace(), "default")

    @mock.patch.dict(os.environ, {"KUBERNETES_NAMESPACE": ""})
    @mock.patch("kubexpose.kubernetes.connection.SERVICE_ACCOUNT_NAMESPACE_FILE")
    @mock.patch("kubernetes.config.list_kube_config_contexts")
    def test_current_namespace_unknown(self, list_contexts, namespace_file):
        """Test that an unknown namespace is a configuration error."""
        namespace_file.is_file.return_value = False
        list_contexts.side_effect = config.ConfigException("no kubeconfig")

        with self.assertRaises(ConfigurationError):
            KubernetesConnection().current_namespace()


if __name__ == "__main__":
    unittest.main()
