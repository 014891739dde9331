"""Rule-based authorization for Python applications.

This package decides whether an actor may perform an action on a resource, based on ``allow`` and ``deny`` rules
declared ahead of time by an *ability* function. It separates the decision (what an actor can do) from how the actor
was identified and how resources are stored.

The package consists of:
- Rules and resolvers: the rule registry and the permission-resolution algorithm (``rule``, ``resolver``)
- Resources: the registry mapping domain classes to resource types (``resources``)
- Loaders: fetching records to authorize from a persistence backend (``loaders``)
- Authorizer: the entry point used by host applications, with decision logging (``authorizer``)
- Tornado integration: request handler helpers producing 403/404 responses and redirects (``web``)
"""

from abilities.actions import Action, action_for_request
from abilities.authorizer import Authorizer, AuthorizerSettings
from abilities.errors import (
    AbilityError,
    AuthorizationFailure,
    LoaderError,
    LoaderMissing,
    ResourceNotFound,
    RuleDefinitionInvalid,
    UnregisteredResource,
)
from abilities.resolver import Declaration, Resolver, allow, deny
from abilities.resources import ALL, Resource, ResourceRegistry, ResourceType
from abilities.rule import Rule

__all__ = [
    "ALL",
    "Action",
    "action_for_request",
    "Authorizer",
    "AuthorizerSettings",
    "AbilityError",
    "AuthorizationFailure",
    "LoaderError",
    "LoaderMissing",
    "ResourceNotFound",
    "RuleDefinitionInvalid",
    "UnregisteredResource",
    "Declaration",
    "Resolver",
    "allow",
    "deny",
    "Resource",
    "ResourceRegistry",
    "ResourceType",
    "Rule",
]
