"""Per-actor rule registry and permission resolution.

A ``Resolver`` holds the rules which apply to a single actor, in the order they were declared, and answers queries of
the form "may this actor perform this action on this resource (or resource type)?".

Rules are usually declared by an *ability*, a plain function of the actor which yields ``allow`` and ``deny``
declarations::

    def ability(user):
        if user.is_admin:
            yield allow("edit", ALL)

        yield allow("read", ALL)
        yield deny("create", Article)
        yield allow("list", User, id=user.id)

    resolver = Resolver.from_ability(current_user, ability, registry)
    resolver.permitted("read", article)       # True
    resolver.permitted("create", Article)     # False

Resolution scans the rules from the most recently declared to the least recently declared and the first rule which
matches both the action and the resource type, and whose condition (if any) holds for the resource, decides the
outcome. When no rule matches, the action is denied. Precedence is therefore a matter of declaration order only: a
later, broader rule overrides an earlier, narrower one.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from abilities.actions import DEFAULT_ALIASES, ActionLike, normalize_action
from abilities.errors import AuthorizationFailure, RuleDefinitionInvalid
from abilities.resources import ALL, Resource, ResourceRegistry, ResourceType, Target
from abilities.rule import Condition, Rule


@dataclass(frozen=True)
class Declaration:
    """A single ``allow`` or ``deny`` statement produced by an ability, replayed into a ``Resolver`` as a rule."""

    base_behavior: bool
    actions: Any
    subjects: Any
    condition: Optional[Condition] = field(default=None, compare=False)


def _declaration(base_behavior: bool, actions: Any, subjects: Any, condition: Any, attributes: Dict[str, Any]):
    if condition is not None and attributes:
        raise RuleDefinitionInvalid("a rule may have a condition or attribute constraints but not both")

    return Declaration(base_behavior, actions, subjects, condition if condition is not None else attributes or None)


def allow(actions: Any, subjects: Any, condition: Optional[Condition] = None, **attributes: Any) -> Declaration:
    """Declares that ``actions`` are permitted on ``subjects``, optionally only where ``condition`` holds or where the
    resource's attributes equal the given keyword values.
    """
    return _declaration(True, actions, subjects, condition, attributes)


def deny(actions: Any, subjects: Any, condition: Optional[Condition] = None, **attributes: Any) -> Declaration:
    """Declares that ``actions`` are not permitted on ``subjects``. Takes the same arguments as ``allow``."""
    return _declaration(False, actions, subjects, condition, attributes)


Ability = Callable[[Any], Optional[Iterable[Declaration]]]


class Resolver:
    """The rules which apply to a single actor and the algorithm used to resolve queries against them.

    A resolver is built for one actor, typically once per request, and goes through two phases: first rules are
    declared (usually by replaying an ability with ``from_ability``), then queries are made with ``permitted``,
    ``forbidden`` and ``require_permitted``. Declaring further rules after querying is allowed and simply extends the
    set of rules considered by subsequent queries. Resolvers are not safe to share between threads while rules are
    still being declared.
    """

    def __init__(
        self,
        actor: Any = None,
        registry: Optional[ResourceRegistry] = None,
        aliases: Optional[Mapping[str, Iterable[str]]] = DEFAULT_ALIASES,
    ) -> None:
        self._actor = actor
        self._registry: ResourceRegistry = registry if registry is not None else ResourceRegistry()
        self._rules: List[Rule] = []
        self._aliases: Dict[Any, Set[Any]] = {}

        for target, aliased in (aliases or {}).items():
            self.alias_action(*aliased, to=target)

    @classmethod
    def from_ability(
        cls,
        actor: Any,
        ability: Ability,
        registry: Optional[ResourceRegistry] = None,
        aliases: Optional[Mapping[str, Iterable[str]]] = DEFAULT_ALIASES,
    ) -> "Resolver":
        resolver = cls(actor, registry, aliases)

        for declaration in ability(actor) or ():
            resolver.apply(declaration)

        return resolver

    def _subject_identifiers(self, subjects: Any) -> Any:
        if subjects is ALL or isinstance(subjects, (str, type, ResourceType)):
            subjects = (subjects,)
        elif not isinstance(subjects, Iterable):
            raise RuleDefinitionInvalid(f"invalid rule subject {subjects!r}")

        identifiers = []

        for subject in subjects:
            if isinstance(subject, type):
                identifiers.append(self._registry.type_of(subject).name)
            else:
                identifiers.append(subject)

        return identifiers

    def declare(
        self, base_behavior: bool, actions: Any, subjects: Any, condition: Optional[Condition] = None
    ) -> Rule:
        rule = Rule(base_behavior, actions, self._subject_identifiers(subjects), condition)
        self._rules.append(rule)
        return rule

    def apply(self, declaration: Declaration) -> Rule:
        return self.declare(declaration.base_behavior, declaration.actions, declaration.subjects, declaration.condition)

    def can(self, actions: Any, subjects: Any, condition: Optional[Condition] = None, **attributes: Any) -> Rule:
        return self.apply(allow(actions, subjects, condition, **attributes))

    def cannot(self, actions: Any, subjects: Any, condition: Optional[Condition] = None, **attributes: Any) -> Rule:
        return self.apply(deny(actions, subjects, condition, **attributes))

    allow = can
    deny = cannot

    def alias_action(self, *actions: ActionLike, to: ActionLike) -> None:
        """Makes rules which name the action ``to`` also apply to each of ``actions``. For example, after
        ``alias_action("index", "show", to="read")`` a rule allowing ``"read"`` also allows ``"index"`` and ``"show"``.
        Aliases are transitive.
        """
        target = normalize_action(to)
        aliased = {normalize_action(action) for action in actions}

        if target in aliased:
            raise RuleDefinitionInvalid(f"the action '{target}' cannot be aliased to itself")

        self._aliases.setdefault(target, set()).update(aliased)

    def expand_actions(self, actions: Iterable[ActionLike]) -> Set[Any]:
        """Returns the given actions together with every action they cover through aliases."""
        expanded: Set[Any] = set()
        pending = [normalize_action(action) for action in actions]

        while pending:
            action = pending.pop()

            if action in expanded:
                continue

            expanded.add(action)
            pending.extend(self._aliases.get(action, ()))

        return expanded

    def _covering_actions(self, action: Any) -> Set[Any]:
        # Every action whose rules apply to the given action: the action itself and any alias target covering it
        covering = {action}
        changed = True

        while changed:
            changed = False

            for target, aliased in self._aliases.items():
                if target not in covering and aliased & covering:
                    covering.add(target)
                    changed = True

        return covering

    @staticmethod
    def _subject_type(target: Target) -> Any:
        if isinstance(target, Resource):
            return target.type.name

        return target.name

    def resolve(self, target: Any) -> Target:
        return self._registry.resolve(target)

    def relevant_rules(self, action: Optional[ActionLike], target: Any) -> List[Rule]:
        """Returns, in declaration order, the rules which match the given action and the type of the given target,
        without regard to their conditions.
        """
        action = normalize_action(action)

        if action is None:
            return []

        subject_type = self._subject_type(self.resolve(target))
        covering = self._covering_actions(action)
        return [rule for rule in self._rules if rule.matches_any(covering, subject_type)]

    def permitted(self, action: Optional[ActionLike], target: Any) -> bool:
        action = normalize_action(action)

        if action is None:
            return False

        resolved = self.resolve(target)
        subject_type = self._subject_type(resolved)
        covering = self._covering_actions(action)

        for rule in reversed(self._rules):
            if rule.matches_any(covering, subject_type) and rule.applies_to(resolved):
                return rule.base_behavior

        return False

    def forbidden(self, action: Optional[ActionLike], target: Any) -> bool:
        return not self.permitted(action, target)

    def require_permitted(self, action: Optional[ActionLike], target: Any, **options: Any) -> Target:
        """Checks that the action is permitted on the target and returns the resolved target.

        :raises: ``AuthorizationFailure`` carrying the action, the resolved target and ``options`` if not permitted
        """
        resolved = self.resolve(target)

        if not self.permitted(action, resolved):
            raise AuthorizationFailure(normalize_action(action), resolved, options)

        return resolved

    @property
    def actor(self) -> Any:
        return self._actor

    @property
    def registry(self) -> ResourceRegistry:
        return self._registry

    @property
    def rules(self) -> Tuple[Rule, ...]:
        return tuple(self._rules)

    @property
    def aliases(self) -> Dict[Any, Set[Any]]:
        return {target: set(aliased) for target, aliased in self._aliases.items()}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(actor={self._actor!r}, rules={len(self._rules)})"
