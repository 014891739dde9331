"""Unit tests for the in-memory loader."""

import unittest
from dataclasses import dataclass

from abilities.errors import ResourceNotFound, UnregisteredResource
from abilities.loaders.memory import MemoryLoader
from abilities.resolver import Resolver
from abilities.resources import ResourceRegistry, ResourceType


@dataclass
class Article:
    id: int
    status: str = "published"


class TestMemoryLoader(unittest.TestCase):
    def setUp(self):
        """Set up a loader holding a few articles."""
        self.registry = ResourceRegistry()
        self.article_type = self.registry.register(Article)
        self.published = Article(1, "published")
        self.draft = Article(2, "draft")
        self.loader = MemoryLoader(self.registry, [self.published, self.draft])

    def test_find(self):
        """Test records are found by identifier."""
        self.assertIs(self.loader.find(self.article_type, 1), self.published)

    def test_find_string_id(self):
        """Test identifiers given as strings match integer keys."""
        self.assertIs(self.loader.find(self.article_type, "2"), self.draft)

    def test_find_missing(self):
        """Test a missing record raises ResourceNotFound."""
        with self.assertRaises(ResourceNotFound) as ctx:
            self.loader.find(self.article_type, 3)

        self.assertEqual(ctx.exception.resource_type, self.article_type)
        self.assertEqual(ctx.exception.id, 3)

    def test_find_unknown_type(self):
        """Test looking up a type without records raises ResourceNotFound."""
        with self.assertRaises(ResourceNotFound):
            self.loader.find(ResourceType("comment"), 1)

    def test_add_and_remove(self):
        """Test records can be added and removed."""
        self.loader.add(Article(3))
        self.assertEqual(len(self.loader.all(self.article_type)), 3)

        self.loader.remove(self.draft)
        with self.assertRaises(ResourceNotFound):
            self.loader.find(self.article_type, 2)

    def test_add_mapping_record(self):
        """Test mapping records can be stored under an explicit type."""
        page = {"id": "home", "title": "Home"}
        self.loader.add(page, ResourceType("page"))
        self.assertIs(self.loader.find(ResourceType("page"), "home"), page)

    def test_add_without_id(self):
        """Test records without identifier are rejected."""
        with self.assertRaises(ValueError):
            self.loader.add({"title": "Home"}, ResourceType("page"))

    def test_add_unregistered(self):
        """Test records of unregistered classes are rejected."""
        with self.assertRaises(UnregisteredResource):
            self.loader.add(object())

    def test_accessible(self):
        """Test accessible returns the records the resolver permits the action on."""
        resolver = Resolver(None, self.registry)
        resolver.can("list", Article, status="published")

        self.assertEqual(self.loader.accessible(self.article_type, resolver, "list"), [self.published])
        self.assertEqual(self.loader.accessible(self.article_type, resolver, "destroy"), [])

    def test_accessible_follows_precedence(self):
        """Test accessible applies the same precedence as permitted."""
        resolver = Resolver(None, self.registry)
        resolver.can("list", Article)
        resolver.cannot("list", Article, lambda article: article.status == "published")

        self.assertEqual(self.loader.accessible(self.article_type, resolver, "list"), [self.draft])

    def test_name(self):
        """Test the loader name."""
        self.assertEqual(self.loader.get_name(), "memory")
        self.assertTrue(self.loader.supports_scoping(self.article_type))


if __name__ == "__main__":
    unittest.main()
