"""Resource types and instances as seen by the rule engine.

A query target is always one of two things: a ``ResourceType`` (a type-level subject, e.g. "may this user create
articles?") or a ``Resource`` (a concrete record of some type, e.g. "may this user edit article 42?"). Rules without
conditions match on the type alone; conditioned rules need a ``Resource`` to be evaluated.

Domain classes are mapped to type names through an explicit ``ResourceRegistry``, so that callers may pass their own
classes and records to the engine and have them converted to the two forms above::

    registry = ResourceRegistry()
    registry.register(Article)                    # type name "article"
    registry.register(BlogPost, name="post")

    registry.resolve(Article)                     # ResourceType(name='article')
    registry.resolve(Article(id=1, title="..."))  # Resource(type=ResourceType(name='article'), ...)
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

from abilities.errors import UnregisteredResource


class Wildcard(Enum):
    """Marker matching every action or every subject type."""

    ALL = "all"

    def __repr__(self) -> str:
        return "ALL"


ALL = Wildcard.ALL

_MISSING = object()


def type_name_for(cls: type) -> str:
    """Produces the default type name for a class, e.g. ``BlogPost`` becomes ``"blog_post"``."""
    return re.sub(r"([a-z\d])([A-Z])", r"\1_\2", cls.__name__).lower()


@dataclass(frozen=True)
class ResourceType:
    name: Union[str, Wildcard]

    def __str__(self) -> str:
        return "all" if self.name is ALL else str(self.name)


@dataclass(frozen=True)
class Resource:
    type: ResourceType
    record: Any = field(compare=False)
    id: Any = None

    @classmethod
    def build(cls, type_name: str, record: Any, id: Any = None) -> "Resource":  # pylint: disable=redefined-builtin
        return cls(ResourceType(type_name), record, id)

    def get(self, attribute: str, default: Any = _MISSING) -> Any:
        """Reads an attribute of the underlying record, by key for mappings and by attribute otherwise.

        :param attribute: The name of the attribute to read
        :param default: The value to return if the record has no such attribute

        :raises: ``AttributeError`` if the attribute is missing and no default was given
        """
        if isinstance(self.record, Mapping):
            if attribute in self.record:
                return self.record[attribute]
        elif hasattr(self.record, attribute):
            return getattr(self.record, attribute)

        if default is _MISSING:
            raise AttributeError(f"{self.type} record has no attribute '{attribute}'")

        return default

    def __str__(self) -> str:
        if self.id is None:
            return f"{self.type} instance"

        return f"{self.type} '{self.id}'"


Target = Union[ResourceType, Resource]


class ResourceRegistry:
    """Maps domain classes to resource type names and converts query targets into ``ResourceType`` or ``Resource``
    values. Each registry is populated explicitly, typically once at application start-up.
    """

    def __init__(self) -> None:
        self._types: Dict[type, ResourceType] = {}
        self._models: Dict[str, type] = {}
        self._id_attributes: Dict[str, str] = {}

    def register(self, cls: type, name: Optional[str] = None, id_attribute: str = "id") -> ResourceType:
        if not isinstance(cls, type):
            raise TypeError(f"only classes may be registered as resource types, not {cls!r}")

        name = name or type_name_for(cls)

        if name in self._models and self._models[name] is not cls:
            raise ValueError(f"resource type name '{name}' is already registered to {self._models[name].__name__}")

        resource_type = ResourceType(name)
        self._types[cls] = resource_type
        self._models[name] = cls
        self._id_attributes[name] = id_attribute
        return resource_type

    def _lookup_class(self, cls: type) -> Optional[ResourceType]:
        for klass in cls.__mro__:
            if klass in self._types:
                return self._types[klass]

        return None

    def type_of(self, cls_or_name: Union[type, str, ResourceType]) -> ResourceType:
        if isinstance(cls_or_name, ResourceType):
            return cls_or_name

        if isinstance(cls_or_name, str):
            return ResourceType(ALL if cls_or_name == "all" else cls_or_name)

        resource_type = self._lookup_class(cls_or_name)

        if not resource_type:
            raise UnregisteredResource(f"class {cls_or_name.__name__} is not registered as a resource type")

        return resource_type

    def model_for(self, resource_type: Union[ResourceType, str]) -> type:
        name = resource_type.name if isinstance(resource_type, ResourceType) else resource_type

        if name not in self._models:
            raise UnregisteredResource(f"no class is registered for resource type '{name}'")

        return self._models[name]

    def id_attribute(self, resource_type: Union[ResourceType, str]) -> str:
        name = resource_type.name if isinstance(resource_type, ResourceType) else resource_type
        return self._id_attributes.get(name, "id")  # type: ignore[arg-type]

    def instance(self, record: Any, resource_type: Optional[ResourceType] = None) -> Resource:
        if resource_type is None:
            resource_type = self._lookup_class(type(record))

        if not resource_type:
            raise UnregisteredResource(f"records of class {type(record).__name__} are not registered resources")

        id_attribute = self.id_attribute(resource_type)

        if isinstance(record, Mapping):
            record_id = record.get(id_attribute)
        else:
            record_id = getattr(record, id_attribute, None)

        return Resource(resource_type, record, record_id)

    def resolve(self, target: Any) -> Target:
        """Converts a query target into a ``ResourceType`` or a ``Resource``.

        Accepted targets are ``ResourceType`` and ``Resource`` values (returned unchanged), the ``ALL`` wildcard or the
        string ``"all"`` (the type-level wildcard subject), any other string (taken as a type name), a registered
        class, or an instance of a registered class.
        """
        if isinstance(target, (ResourceType, Resource)):
            return target

        if target is ALL:
            return ResourceType(ALL)

        if isinstance(target, str):
            return ResourceType(ALL if target == "all" else target)

        if isinstance(target, type):
            return self.type_of(target)

        return self.instance(target)

    def __contains__(self, item: Any) -> bool:
        if isinstance(item, type):
            return self._lookup_class(item) is not None

        if isinstance(item, ResourceType):
            return item.name in self._models

        return item in self._models
