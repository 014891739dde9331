"""Unit tests for actions and the HTTP method mapping."""

import unittest

from abilities.actions import DEFAULT_ALIASES, Action, action_for_request, normalize_action


class TestActionForRequest(unittest.TestCase):
    def test_get_with_id(self):
        """Test GET on a single resource is a read."""
        self.assertEqual(action_for_request("GET", has_id=True), "read")

    def test_get_without_id(self):
        """Test GET on a collection is a list."""
        self.assertEqual(action_for_request("GET", has_id=False), "list")

    def test_post(self):
        """Test POST is a create, with or without identifier."""
        self.assertEqual(action_for_request("POST", has_id=False), "create")
        self.assertEqual(action_for_request("POST", has_id=True), "create")

    def test_put_and_patch(self):
        """Test PUT and PATCH are updates."""
        self.assertEqual(action_for_request("PUT", has_id=True), "update")
        self.assertEqual(action_for_request("PATCH", has_id=True), "update")

    def test_delete(self):
        """Test DELETE is a destroy."""
        self.assertEqual(action_for_request("DELETE", has_id=True), "destroy")

    def test_method_case_insensitive(self):
        """Test methods are matched regardless of case."""
        self.assertEqual(action_for_request("get", has_id=True), "read")
        self.assertEqual(action_for_request("Delete", has_id=True), "destroy")

    def test_other_methods(self):
        """Test methods without a corresponding action map to None."""
        self.assertIsNone(action_for_request("HEAD", has_id=True))
        self.assertIsNone(action_for_request("OPTIONS", has_id=False))


class TestActions(unittest.TestCase):
    def test_normalize_action(self):
        """Test enum members are normalised to their value and strings are unchanged."""
        self.assertEqual(normalize_action(Action.DESTROY), "destroy")
        self.assertEqual(normalize_action("publish"), "publish")
        self.assertIsNone(normalize_action(None))

    def test_default_aliases(self):
        """Test the default aliases."""
        self.assertEqual(set(DEFAULT_ALIASES["read"]), {"index", "show"})
        self.assertEqual(set(DEFAULT_ALIASES["create"]), {"new"})
        self.assertEqual(set(DEFAULT_ALIASES["update"]), {"edit"})


if __name__ == "__main__":
    unittest.main()
