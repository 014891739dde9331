from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Callable, FrozenSet, Optional, Union

from abilities.actions import Action, normalize_action
from abilities.errors import RuleDefinitionInvalid
from abilities.resources import ALL, Resource, ResourceType, Target, Wildcard

Predicate = Callable[[Any], Any]
Condition = Union[Predicate, Mapping[str, Any]]


def _normalize_subject(subject: Any) -> Any:
    if isinstance(subject, ResourceType):
        return subject.name
    if subject == "all":
        return ALL

    return subject


def _normalize_rule_action(action: Any) -> Any:
    action = normalize_action(action)
    return ALL if action == Action.MANAGE.value else action


def _to_identifiers(values: Any, normalize: Callable[[Any], Any]) -> Union[FrozenSet[Any], Wildcard]:
    if values is ALL or isinstance(values, (str, Action, ResourceType)):
        values = (values,)
    elif not isinstance(values, Iterable):
        values = (values,)

    identifiers = frozenset(normalize(value) for value in values)

    if ALL in identifiers:
        return ALL

    return identifiers


def _values_equal(actual: Any, expected: Any) -> bool:
    return type(actual) is type(expected) and actual == expected


@dataclass(frozen=True)
class Rule:
    """A single grant (``base_behavior=True``) or revocation (``base_behavior=False``) of one or more actions on one or
    more resource types, optionally narrowed by a condition on the resource instance.

    ``actions`` and ``subjects`` are stored as frozensets of identifiers, or as the ``ALL`` wildcard. The action
    ``"manage"`` and the subject ``"all"`` are the conventional spellings of the wildcard and are normalised to it.
    Subjects are type names (or ``ResourceType`` values); classes are converted to type names by ``Resolver``.

    A condition is either a predicate, called with the resource's underlying record, or a mapping of attribute names
    to the values they must equal. Conditioned rules never match a bare ``ResourceType``.
    """

    base_behavior: bool
    actions: Union[FrozenSet[Any], Wildcard]
    subjects: Union[FrozenSet[Any], Wildcard]
    condition: Optional[Condition] = None

    def __post_init__(self) -> None:
        if self.actions is None or self.subjects is None:
            raise RuleDefinitionInvalid("a rule must name its actions and subjects")

        actions = _to_identifiers(self.actions, _normalize_rule_action)
        subjects = _to_identifiers(self.subjects, _normalize_subject)

        if not actions:
            raise RuleDefinitionInvalid("a rule must name at least one action (or ALL)")
        if not subjects:
            raise RuleDefinitionInvalid("a rule must name at least one subject (or ALL)")
        invalid = [] if subjects is ALL else [subject for subject in subjects if not isinstance(subject, str)]
        if invalid:
            raise RuleDefinitionInvalid(
                f"rule subjects must be type names, ResourceType values or ALL, not {invalid!r}; "
                "declare rules through a Resolver to use registered classes"
            )
        if self.condition is not None and not callable(self.condition) and not isinstance(self.condition, Mapping):
            raise RuleDefinitionInvalid(
                f"a rule condition must be a callable or a mapping, not {type(self.condition).__name__}"
            )

        # The dataclass is frozen, so normalised values have to be set through object
        object.__setattr__(self, "actions", actions)
        object.__setattr__(self, "subjects", subjects)

        if isinstance(self.condition, Mapping):
            object.__setattr__(self, "condition", dict(self.condition))

    @property
    def has_condition(self) -> bool:
        return self.condition is not None

    @property
    def is_predicate(self) -> bool:
        return self.condition is not None and not isinstance(self.condition, Mapping)

    def matches_action(self, action: Any) -> bool:
        if action is None:
            return False

        return self.actions is ALL or normalize_action(action) in self.actions  # type: ignore[operator]

    def matches_subject(self, subject_type: Any) -> bool:
        return self.subjects is ALL or _normalize_subject(subject_type) in self.subjects  # type: ignore[operator]

    def matches(self, action: Any, subject_type: Any) -> bool:
        return self.matches_action(action) and self.matches_subject(subject_type)

    def matches_any(self, actions: Iterable[Any], subject_type: Any) -> bool:
        return any(self.matches_action(action) for action in actions) and self.matches_subject(subject_type)

    def applies_to(self, target: Target) -> bool:
        if self.condition is None:
            return True

        if not isinstance(target, Resource):
            return False

        if isinstance(self.condition, Mapping):
            return self.attributes_match(target)

        return bool(self.condition(target.record))

    def attributes_match(self, resource: Resource) -> bool:
        missing = object()

        for attribute, expected in self.condition.items():  # type: ignore[union-attr]
            actual = resource.get(attribute, missing)

            if actual is missing or not _values_equal(actual, expected):
                return False

        return True
