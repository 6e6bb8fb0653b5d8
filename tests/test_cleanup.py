"""Tests for the namespace scope and the cleanup job."""

import unittest
from unittest import mock

from kubernetes.client.exceptions import ApiException

from kubexpose.cleanup import CleanupJob
from kubexpose.config import ExposeConfig
from kubexpose.exceptions import CleanupError, ConfigurationError
from kubexpose.kubernetes.store import AccessObjectStore
from kubexpose.models import OwnedObjectRecord
from kubexpose.namespaces import NamespaceScope


class TestNamespaceScope(unittest.TestCase):
    """Test cases for the NamespaceScope class."""

    def test_explicit_namespaces(self):
        """Test that an explicit list wins over the current namespace."""
        current = mock.Mock(return_value="kubexpose")
        scope = NamespaceScope.resolve(ExposeConfig(watch_namespaces=["shop", "blog", "shop"]), current)

        self.assertEqual(scope.targets(), ["blog", "shop"])
        self.assertFalse(scope.all_namespaces)
        current.assert_not_called()

    def test_current_namespace(self):
        scope = NamespaceScope.resolve(ExposeConfig(), lambda: "shop")
        self.assertEqual(scope.targets(), ["shop"])
        self.assertEqual(str(scope), "shop")

    def test_unknown_current_namespace(self):
        """Test that the scope cannot be resolved without a current namespace."""
        with self.assertRaises(ConfigurationError):
            NamespaceScope.resolve(ExposeConfig(), lambda: "")

    def test_all_namespaces(self):
        scope = NamespaceScope.resolve(ExposeConfig(watch_current_namespace=False), mock.Mock())
        self.assertTrue(scope.all_namespaces)
        self.assertEqual(scope.targets(), [None])
        self.assertEqual(str(scope), "all namespaces")


class TestCleanupJob(unittest.TestCase):
    """Test cases for the CleanupJob class."""

    def setUp(self):
        """Set up test fixtures."""
        self.store = mock.Mock(spec=AccessObjectStore)
        self.store.RESOURCE_KIND = "Ingress"
        self.store.list_owned.return_value = [
            OwnedObjectRecord(name="checkout", namespace="shop", host="checkout.shop.example.com"),
            OwnedObjectRecord(name="cart", namespace="shop", host="cart.shop.example.com"),
        ]
        self.scope = NamespaceScope(["shop"])

    def test_deletes_every_owned_object(self):
        deleted = CleanupJob(self.store, self.scope).run()

        self.assertEqual(deleted, ["shop/checkout", "shop/cart"])
        self.store.list_owned.assert_called_once_with("shop")

    def test_filter_matches(self):
        """Test that a matching filter deletes only the matching objects."""
        deleted = CleanupJob(self.store, self.scope, "check").run()

        self.assertEqual(deleted, ["shop/checkout"])
        self.store.delete.assert_called_once_with("checkout", "shop")

    def test_filter_without_match(self):
        """Test that a filter matching nothing leaves every object in place."""
        deleted = CleanupJob(self.store, self.scope, "zzz").run()

        self.assertEqual(deleted, [])
        self.store.delete.assert_not_called()

    def test_listing_failure_is_fatal(self):
        self.store.list_owned.side_effect = ApiException(status=500)

        with self.assertRaises(CleanupError):
            CleanupJob(self.store, self.scope).run()

    def test_delete_failure_aborts(self):
        """Test that the first delete failure stops the cleanup."""
        self.store.delete.side_effect = ApiException(status=403)

        with self.assertRaises(CleanupError):
            CleanupJob(self.store, self.scope).run()

        self.store.delete.assert_called_once_with("checkout", "shop")


if __name__ == "__main__":
    unittest.main()
