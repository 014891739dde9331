"""Unit tests for rules.

Tests cover:
- Normalisation of actions and subjects, including the wildcard spellings
- Validation of malformed declarations
- Matching on action and subject type
- Predicate and attribute-map conditions
"""

import unittest
from dataclasses import dataclass
from typing import Optional

from abilities.actions import Action
from abilities.errors import RuleDefinitionInvalid
from abilities.resources import ALL, Resource, ResourceType
from abilities.rule import Rule


@dataclass
class Article:
    id: int
    status: str
    owner_id: Optional[object] = None


def article(status="published", owner_id=None, id=1):  # pylint: disable=redefined-builtin
    return Resource(ResourceType("article"), Article(id, status, owner_id), id)


class TestRuleConstruction(unittest.TestCase):
    def test_single_action_and_subject_wrapped(self):
        """Test a single action and subject are stored as one-element sets."""
        rule = Rule(True, "read", "article")
        self.assertEqual(rule.actions, frozenset({"read"}))
        self.assertEqual(rule.subjects, frozenset({"article"}))

    def test_multiple_actions_and_subjects(self):
        """Test lists of actions and subjects are stored as sets."""
        rule = Rule(False, ["read", "update"], ("article", "comment"))
        self.assertEqual(rule.actions, frozenset({"read", "update"}))
        self.assertEqual(rule.subjects, frozenset({"article", "comment"}))

    def test_enum_actions_normalised(self):
        """Test Action members are stored as their string value."""
        rule = Rule(True, [Action.READ, Action.LIST], "article")
        self.assertEqual(rule.actions, frozenset({"read", "list"}))

    def test_manage_is_action_wildcard(self):
        """Test "manage" becomes the ALL wildcard."""
        self.assertIs(Rule(True, "manage", "article").actions, ALL)
        self.assertIs(Rule(True, Action.MANAGE, "article").actions, ALL)
        self.assertIs(Rule(True, ["read", "manage"], "article").actions, ALL)

    def test_all_is_subject_wildcard(self):
        """Test "all" and ALL become the subject wildcard."""
        self.assertIs(Rule(True, "read", "all").subjects, ALL)
        self.assertIs(Rule(True, "read", ALL).subjects, ALL)
        self.assertIs(Rule(True, ALL, ALL).actions, ALL)

    def test_resource_type_subject_normalised(self):
        """Test ResourceType subjects are stored by name."""
        rule = Rule(True, "read", ResourceType("article"))
        self.assertEqual(rule.subjects, frozenset({"article"}))

    def test_empty_actions_rejected(self):
        """Test a rule without actions fails at declaration time."""
        with self.assertRaises(RuleDefinitionInvalid):
            Rule(True, [], "article")

    def test_empty_subjects_rejected(self):
        """Test a rule without subjects fails at declaration time."""
        with self.assertRaises(RuleDefinitionInvalid):
            Rule(True, "read", set())

    def test_none_actions_rejected(self):
        """Test None is not accepted as actions."""
        with self.assertRaises(RuleDefinitionInvalid):
            Rule(True, None, "article")

    def test_class_subject_rejected(self):
        """Test subjects must be type names, as classes are only converted by the resolver."""
        with self.assertRaises(RuleDefinitionInvalid):
            Rule(True, "read", Article)

        with self.assertRaises(RuleDefinitionInvalid):
            Rule(True, "read", ["article", 5])

    def test_invalid_condition_rejected(self):
        """Test a condition must be a callable or a mapping."""
        with self.assertRaises(RuleDefinitionInvalid):
            Rule(True, "read", "article", condition="status == 'published'")

    def test_rule_is_immutable(self):
        """Test rules cannot be modified after construction."""
        rule = Rule(True, "read", "article")
        with self.assertRaises(AttributeError):
            rule.base_behavior = False  # type: ignore[misc]

    def test_attribute_condition_copied(self):
        """Test later changes to the mapping passed as condition do not affect the rule."""
        condition = {"status": "published"}
        rule = Rule(True, "read", "article", condition)
        condition["status"] = "draft"
        self.assertEqual(rule.condition, {"status": "published"})


class TestRuleMatching(unittest.TestCase):
    def test_matches_action_and_subject(self):
        """Test a rule matches its own action and subject."""
        rule = Rule(True, "read", "article")
        self.assertTrue(rule.matches("read", "article"))

    def test_does_not_match_other_action(self):
        """Test a rule does not match an undeclared action."""
        rule = Rule(True, "read", "article")
        self.assertFalse(rule.matches("update", "article"))

    def test_does_not_match_other_subject(self):
        """Test a rule does not match an undeclared subject."""
        rule = Rule(True, "read", "article")
        self.assertFalse(rule.matches("read", "comment"))

    def test_wildcards_match_anything(self):
        """Test wildcard actions and subjects match any action and subject."""
        rule = Rule(True, ALL, ALL)
        self.assertTrue(rule.matches("publish", "comment"))
        self.assertTrue(rule.matches("read", ALL))

    def test_specific_subject_does_not_match_all_query(self):
        """Test the ALL subject in a query only matches wildcard-subject rules."""
        self.assertFalse(Rule(True, "read", "article").matches("read", ALL))
        self.assertTrue(Rule(True, "read", ALL).matches("read", ALL))

    def test_none_action_never_matches(self):
        """Test a None action matches no rule, not even a wildcard one."""
        self.assertFalse(Rule(True, ALL, ALL).matches(None, "article"))

    def test_matches_any(self):
        """Test matching against several candidate actions."""
        rule = Rule(True, "read", "article")
        self.assertTrue(rule.matches_any({"show", "read"}, "article"))
        self.assertFalse(rule.matches_any({"show", "index"}, "article"))


class TestRuleConditions(unittest.TestCase):
    def test_unconditioned_rule_applies_to_type_and_instance(self):
        """Test a rule without condition applies to a bare type and to an instance."""
        rule = Rule(True, "read", "article")
        self.assertTrue(rule.applies_to(ResourceType("article")))
        self.assertTrue(rule.applies_to(article()))

    def test_conditioned_rule_does_not_apply_to_type(self):
        """Test conditioned rules cannot be satisfied without an instance."""
        self.assertFalse(Rule(True, "read", "article", {"status": "published"}).applies_to(ResourceType("article")))
        self.assertFalse(Rule(True, "read", "article", lambda a: True).applies_to(ResourceType("article")))

    def test_predicate_called_with_record(self):
        """Test the predicate receives the underlying record."""
        seen = []
        rule = Rule(True, "read", "article", lambda record: seen.append(record) or record.status == "published")
        published = article("published")

        self.assertTrue(rule.applies_to(published))
        self.assertFalse(rule.applies_to(article("draft")))
        self.assertIs(seen[0], published.record)

    def test_attribute_map_equality(self):
        """Test attribute maps match on equal attribute values only."""
        rule = Rule(True, "read", "article", {"status": "published"})
        self.assertTrue(rule.applies_to(article("published")))
        self.assertFalse(rule.applies_to(article("draft")))

    def test_attribute_map_requires_every_pair(self):
        """Test all attributes of the map must match."""
        rule = Rule(True, "update", "article", {"status": "draft", "owner_id": 5})
        self.assertTrue(rule.applies_to(article("draft", 5)))
        self.assertFalse(rule.applies_to(article("draft", 6)))
        self.assertFalse(rule.applies_to(article("published", 5)))

    def test_attribute_map_exact_equality(self):
        """Test attribute values are compared without coercion across types."""
        rule = Rule(True, "update", "article", {"owner_id": 5})
        self.assertTrue(rule.applies_to(article(owner_id=5)))
        self.assertFalse(rule.applies_to(article(owner_id=5.0)))
        self.assertFalse(rule.applies_to(article(owner_id="5")))
        self.assertFalse(rule.applies_to(article(owner_id=True)))

    def test_attribute_map_missing_attribute(self):
        """Test a missing attribute is a non-match rather than an error."""
        rule = Rule(True, "read", "article", {"category": "news"})
        self.assertFalse(rule.applies_to(article()))

    def test_attribute_map_on_mapping_record(self):
        """Test mapping records are read by key."""
        rule = Rule(True, "read", "article", {"status": "published"})
        self.assertTrue(rule.applies_to(Resource.build("article", {"id": 1, "status": "published"}, 1)))
        self.assertFalse(rule.applies_to(Resource.build("article", {"id": 2}, 2)))

    def test_empty_attribute_map_applies_to_instances_only(self):
        """Test an empty attribute map still requires an instance."""
        rule = Rule(True, "read", "article", {})
        self.assertTrue(rule.applies_to(article()))
        self.assertFalse(rule.applies_to(ResourceType("article")))

    def test_condition_kind_helpers(self):
        """Test has_condition and is_predicate."""
        self.assertFalse(Rule(True, "read", "article").has_condition)
        self.assertTrue(Rule(True, "read", "article", {"id": 1}).has_condition)
        self.assertFalse(Rule(True, "read", "article", {"id": 1}).is_predicate)
        self.assertTrue(Rule(True, "read", "article", lambda a: True).is_predicate)


if __name__ == "__main__":
    unittest.main()
