"""Authorizer for the abilities package.

The authorizer is the entry point used by host applications. It holds the application's ability function, resource
registry, loaders and settings, builds a fresh ``Resolver`` for each actor, and wraps resolver queries with decision
logging and resource loading.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from abilities import abilities_logging, config
from abilities.actions import DEFAULT_ALIASES, Action, action_for_request
from abilities.errors import AuthorizationFailure, LoaderMissing
from abilities.loaders.base import Loader
from abilities.resolver import Ability, Resolver
from abilities.resources import ResourceRegistry, ResourceType, Target

logger = abilities_logging.init_logging("authorizer")


@dataclass(frozen=True)
class AuthorizerSettings:
    """Settings consulted by host integrations when an authorization check fails.

    Attributes:
        not_auth: Path to redirect to instead of responding with a 403 error
        auth_failure_path: Path to redirect to when there is no current actor (e.g. a login page)
        auth_use_referrer: Whether to remember the path of the denied request so it can be returned to later
        default_aliases: Whether resolvers get the default action aliases ("index"/"show" to "read", etc.)
        log_decisions: Whether each authorization decision is logged
    """

    not_auth: Optional[str] = None
    auth_failure_path: Optional[str] = None
    auth_use_referrer: bool = False
    default_aliases: bool = True
    log_decisions: bool = True

    @classmethod
    def from_config(cls, component: str = "abilities") -> "AuthorizerSettings":
        return cls(
            not_auth=config.get(component, "not_auth") or None,
            auth_failure_path=config.get(component, "auth_failure_path") or None,
            auth_use_referrer=config.getboolean(component, "auth_use_referrer"),
            default_aliases=config.getboolean(component, "default_aliases", fallback=True),
            log_decisions=config.getboolean(component, "log_decisions", fallback=True),
        )


class Authorizer:
    """Builds per-actor resolvers and performs authorization checks on behalf of a host application.

    The authorizer itself holds no per-actor state and may be shared between requests. Each call to ``ability_for``
    produces a new ``Resolver`` by replaying the ability for the given actor, which the host should keep for the
    duration of a single request.
    """

    def __init__(
        self,
        ability: Ability,
        registry: Optional[ResourceRegistry] = None,
        loader: Optional[Loader] = None,
        settings: Optional[AuthorizerSettings] = None,
    ) -> None:
        """Initialize the authorizer.

        Args:
            ability: Function of the actor returning the ``allow``/``deny`` declarations which apply to it
            registry: Registry of the application's resource types
            loader: Default loader, used for every resource type without a loader of its own
            settings: Failure-handling settings; read from the "abilities" configuration when not given
        """
        self._ability = ability
        self._registry = registry if registry is not None else ResourceRegistry()
        self._loader = loader
        self._loaders: Dict[Any, Loader] = {}
        self._settings = settings if settings is not None else AuthorizerSettings.from_config()

    def use_loader(self, resource_type: Any, loader: Loader) -> None:
        self._loaders[self._registry.type_of(resource_type).name] = loader

    def loader_for(self, resource_type: Any) -> Loader:
        resource_type = self._registry.type_of(resource_type)
        loader = self._loaders.get(resource_type.name, self._loader)

        if loader is None:
            raise LoaderMissing(f"no loader is configured for resource type '{resource_type}'")

        return loader

    def ability_for(self, actor: Any) -> Resolver:
        aliases = DEFAULT_ALIASES if self._settings.default_aliases else None
        resolver = Resolver.from_ability(actor, self._ability, self._registry, aliases)
        logger.debug("Built resolver with %d rules for actor %s", len(resolver.rules), actor)
        return resolver

    def _log_decision(self, resolver: Resolver, action: Any, subject: Any, allowed: bool) -> None:
        if not self._settings.log_decisions:
            return

        log_msg = "Authorization %s: actor=%s, action=%s, subject=%s"
        log_args = ("GRANTED" if allowed else "DENIED", resolver.actor, action, subject)

        if allowed:
            logger.info(log_msg, *log_args)
        else:
            logger.warning(log_msg, *log_args)

    def can(self, resolver: Resolver, action: Any, target: Any) -> bool:
        return resolver.permitted(action, target)

    def cannot(self, resolver: Resolver, action: Any, target: Any) -> bool:
        return resolver.forbidden(action, target)

    def authorize(self, resolver: Resolver, action: Any, target: Any, **options: Any) -> Target:
        """Check that the resolver's actor may perform the action on the target, logging the decision.

        Args:
            resolver: The resolver for the current actor
            action: The action to check
            target: The resource, resource type or class to check the action against
            options: Passed through to the ``AuthorizationFailure`` (e.g. ``not_auth``)

        Returns:
            The resolved target (a ``ResourceType`` or ``Resource``)

        Raises:
            AuthorizationFailure: If the action is not permitted
        """
        try:
            resolved = resolver.require_permitted(action, target, **options)
        except AuthorizationFailure as failure:
            self._log_decision(resolver, failure.action, failure.subject, False)
            raise

        self._log_decision(resolver, action, resolved, True)
        return resolved

    def load_and_authorize(
        self,
        resolver: Resolver,
        resource_type: Any,
        id: Any = None,  # pylint: disable=redefined-builtin
        method: str = "GET",
        **options: Any,
    ) -> Any:
        """Load the resource targeted by a request, if any, and authorize the action implied by the request method.

        * With an ``id``, the record is fetched with the type's loader and the action is authorized against it.
          ``ResourceNotFound`` raised by the loader propagates unchanged, whatever the rules say. Both steps run within
          the loader's ``unit_of_work``.
        * Without an ``id``, for the "list" action (a GET request), the collection of records the actor may list is
          fetched if the type's loader supports scoping, and "list" is authorized against the type.
        * Otherwise, the action is authorized against the type.

        Returns:
            The loaded record, the scoped collection (a list), or ``None`` if nothing was loaded

        Raises:
            AuthorizationFailure: If the action is not permitted
            ResourceNotFound: If a record with the given ``id`` does not exist
            LoaderMissing: If an ``id`` is given and no loader is configured for the type
        """
        resource_type = self._registry.type_of(resource_type)
        action = action_for_request(method, has_id=id is not None)

        if id is not None:
            loader = self.loader_for(resource_type)

            # Conditions may read related data, so the record stays attached while they are evaluated
            with loader.unit_of_work():
                record = loader.find(resource_type, id)
                self.authorize(resolver, action, self._registry.instance(record, resource_type), **options)

            return record

        if action == Action.LIST.value and self._has_scoping_loader(resource_type):
            self.authorize(resolver, action, resource_type, **options)
            return self.loader_for(resource_type).accessible(resource_type, resolver, action)

        self.authorize(resolver, action, resource_type, **options)
        return None

    def _has_scoping_loader(self, resource_type: ResourceType) -> bool:
        try:
            return self.loader_for(resource_type).supports_scoping(resource_type)
        except LoaderMissing:
            return False

    @property
    def registry(self) -> ResourceRegistry:
        return self._registry

    @property
    def settings(self) -> AuthorizerSettings:
        return self._settings
