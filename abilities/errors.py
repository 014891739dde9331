from typing import Any, Mapping, Optional


class AbilityError(Exception):
    pass


class RuleDefinitionInvalid(AbilityError):
    pass


class UnregisteredResource(AbilityError):
    pass


class AuthorizationFailure(AbilityError):
    """Raised when an actor is not permitted to perform an action on a subject.

    The failure carries everything the host integration needs to decide how to report it: the attempted ``action``,
    the ``subject`` (a ``ResourceType`` or ``Resource``) and the caller-supplied ``options`` (e.g. ``not_auth``, the
    path to redirect to instead of responding with a 403).
    """

    def __init__(self, action: Any, subject: Any, options: Optional[Mapping[str, Any]] = None) -> None:
        self.action = action
        self.subject = subject
        self.options = dict(options or {})
        super().__init__(f"not authorized to perform '{action}' on {subject}")


class ResourceNotFound(AbilityError):
    def __init__(self, resource_type: Any, id: Any) -> None:  # pylint: disable=redefined-builtin
        self.resource_type = resource_type
        self.id = id
        super().__init__(f"no {resource_type} found with id '{id}'")


class LoaderError(AbilityError):
    pass


class LoaderMissing(LoaderError):
    pass
