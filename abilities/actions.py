from enum import Enum
from typing import Any, Optional, Union


class Action(Enum):
    """Actions with a fixed meaning to the engine and its integrations.

    Any other string is equally valid as an action (e.g. ``"publish"`` or ``"admin"``). Rules and queries may use
    members of this enum and plain strings interchangeably, as both are normalised to the string value.
    """

    # Resource actions produced by the HTTP verb mapping
    READ = "read"
    LIST = "list"
    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"

    # Matches every action
    MANAGE = "manage"

    # Aliased by default: "index" and "show" to "read", "new" to "create", "edit" to "update"
    INDEX = "index"
    SHOW = "show"
    NEW = "new"
    EDIT = "edit"


ActionLike = Union[Action, str]

DEFAULT_ALIASES = {
    Action.READ.value: (Action.INDEX.value, Action.SHOW.value),
    Action.CREATE.value: (Action.NEW.value,),
    Action.UPDATE.value: (Action.EDIT.value,),
}


def normalize_action(action: Any) -> Any:
    if isinstance(action, Action):
        return action.value

    return action


def action_for_request(method: str, has_id: bool) -> Optional[str]:
    """Translates an HTTP request method into the action to authorize.

    :param method: The HTTP method of the request, in any case
    :param has_id: Whether the request targets a single resource by identifier

    :returns: The action name, or ``None`` for methods which have no corresponding action (``None`` never matches any
        rule, not even one which applies to every action)
    """
    method = method.upper()

    if method == "GET":
        return Action.READ.value if has_id else Action.LIST.value
    if method == "POST":
        return Action.CREATE.value
    if method in ("PUT", "PATCH"):
        return Action.UPDATE.value
    if method == "DELETE":
        return Action.DESTROY.value

    return None
