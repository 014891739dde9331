"""Tornado integration.

``AuthorizedHandler`` is a Tornado ``RequestHandler`` which gives request handlers access to the current actor's
resolver and translates authorization outcomes into HTTP responses. The application must be created with an
``Authorizer`` in its settings, and should implement Tornado's ``get_current_user`` hook to identify the actor::

    class ArticleHandler(AuthorizedHandler):
        def get_current_user(self):
            return users.get(self.get_signed_cookie("user_id"))

        @loads(Article)
        def get(self, id):
            self.write(self.resources["article"].title)

        def delete(self, id):
            article = self.load_and_authorize(Article)
            ...

    app = tornado.web.Application(
        [(r"/articles/(?P<id>[^/]+)", ArticleHandler)],
        authorizer=Authorizer(ability, registry, loader),
        cookie_secret="...",
    )

Failed checks result in, by order of precedence: a redirect to the configured ``auth_failure_path`` when there is no
current user, a redirect to the ``not_auth`` path given to ``authorize`` or configured in the settings, or a 403
response. A missing record results in a 404 response.
"""

import functools
import re
from typing import Any, Callable, Dict, NoReturn, Optional

from tornado.web import Finish, HTTPError, RequestHandler

from abilities import abilities_logging
from abilities.authorizer import Authorizer
from abilities.errors import AuthorizationFailure, ResourceNotFound
from abilities.resolver import Resolver
from abilities.resources import Target

logger = abilities_logging.init_logging("web")


class AuthorizedHandler(RequestHandler):
    # Because RequestHandler.data_received raises a NotImplemented error, Pylint thinks this is an abstract method
    # despite not being declared as such
    # pylint: disable=abstract-method

    _current_ability: Optional[Resolver] = None
    _resources: Optional[Dict[str, Any]] = None

    def prepare(self) -> None:
        # Make incoming request ID available to logger
        abilities_logging.request_id_var.set(self.request_id)
        logger.debug("%s %s", self.request.method, self.request.path)

    @property
    def authorizer(self) -> Authorizer:
        authorizer = self.settings.get("authorizer")

        if not isinstance(authorizer, Authorizer):
            raise RuntimeError("the application settings must include an 'authorizer' to use AuthorizedHandler")

        return authorizer

    @property
    def current_ability(self) -> Resolver:
        """The resolver for the current user, built on first access and reused for the rest of the request."""
        if self._current_ability is None:
            self._current_ability = self.authorizer.ability_for(self.current_user)

        return self._current_ability

    @property
    def resources(self) -> Dict[str, Any]:
        """Records and collections loaded by ``load_and_authorize``, keyed by resource type name."""
        if self._resources is None:
            self._resources = {}

        return self._resources

    @property
    def request_id(self) -> str:
        request_id = self.request.headers.get("X-Request-ID") or ""
        request_id = re.sub(r"\W+", "", request_id)
        return request_id[:36]

    def can(self, action: Any, target: Any) -> bool:
        return self.authorizer.can(self.current_ability, action, target)

    def cannot(self, action: Any, target: Any) -> bool:
        return self.authorizer.cannot(self.current_ability, action, target)

    def authorize(self, action: Any, target: Any, not_auth: Optional[str] = None, **options: Any) -> Target:
        """Checks that the current user may perform the action on the target, or ends the request.

        :param action: The action to check
        :param target: The resource, resource type or class to check the action against
        :param not_auth: Path to redirect to if the check fails, overriding the ``not_auth`` setting

        :returns: The resolved target
        """
        try:
            return self.authorizer.authorize(self.current_ability, action, target, not_auth=not_auth, **options)
        except AuthorizationFailure as failure:
            self.handle_authorization_failure(failure)

    def load_and_authorize(self, resource_type: Any, **options: Any) -> Any:
        """Loads the record identified by the ``id`` path argument (or, for a GET request without one, the collection
        of records the current user may list) and authorizes the action implied by the request method.

        The loaded record or collection is returned and also stored in ``self.resources``.
        """
        resource_type = self.authorizer.registry.type_of(resource_type)
        record_id = self.path_kwargs.get("id")

        try:
            loaded = self.authorizer.load_and_authorize(
                self.current_ability, resource_type, record_id, self.request.method or "GET", **options
            )
        except ResourceNotFound as err:
            logger.info("%s", err)
            raise HTTPError(404) from err
        except AuthorizationFailure as failure:
            self.handle_authorization_failure(failure)

        if loaded is not None:
            self.resources[resource_type.name] = loaded

        return loaded

    def handle_authorization_failure(self, failure: AuthorizationFailure) -> NoReturn:
        settings = self.authorizer.settings

        if settings.auth_use_referrer:
            if not self.application.settings.get("cookie_secret"):
                raise RuntimeError("the application settings must include a 'cookie_secret' to use auth_use_referrer")

            self.set_signed_cookie("return_to", self.request.path)

        if not self.current_user and settings.auth_failure_path:
            logger.debug("Redirecting anonymous request to %s", settings.auth_failure_path)
            self.redirect(settings.auth_failure_path)
            raise Finish()

        not_auth = failure.options.get("not_auth") or settings.not_auth

        if not_auth:
            logger.debug("Redirecting unauthorized request to %s", not_auth)
            self.redirect(not_auth)
            raise Finish()

        raise HTTPError(403)


def authorized(action: Any, target: Any) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorates a handler method so that it only runs if the current user may perform ``action`` on ``target``."""

    def decorator(method: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(method)
        def wrapper(self: AuthorizedHandler, *args: Any, **kwargs: Any) -> Any:
            self.authorize(action, target)
            return method(self, *args, **kwargs)

        return wrapper

    return decorator


def loads(resource_type: Any) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorates a handler method so that ``load_and_authorize`` is called for ``resource_type`` before it runs."""

    def decorator(method: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(method)
        def wrapper(self: AuthorizedHandler, *args: Any, **kwargs: Any) -> Any:
            self.load_and_authorize(resource_type)
            return method(self, *args, **kwargs)

        return wrapper

    return decorator
