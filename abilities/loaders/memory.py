"""In-memory loader.

Keeps records in dictionaries keyed by resource type name and identifier. Useful for tests, prototypes and for
resources which are held in memory by the application anyway.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from abilities.errors import ResourceNotFound
from abilities.loaders.base import Loader
from abilities.resources import ResourceRegistry, ResourceType

if TYPE_CHECKING:
    from abilities.resolver import Resolver

logger = logging.getLogger(__name__)


class MemoryLoader(Loader):
    def __init__(self, registry: ResourceRegistry, records: Optional[Iterable[Any]] = None) -> None:
        super().__init__(registry)
        self._records: Dict[Any, Dict[Any, Any]] = {}

        for record in records or ():
            self.add(record)

    def add(self, record: Any, resource_type: Optional[ResourceType] = None) -> Any:
        resource = self.registry.instance(record, resource_type)

        if resource.id is None:
            raise ValueError(f"cannot store a {resource.type} record which has no identifier")

        self._records.setdefault(resource.type.name, {})[resource.id] = record
        return record

    def remove(self, record: Any, resource_type: Optional[ResourceType] = None) -> None:
        resource = self.registry.instance(record, resource_type)
        self._records.get(resource.type.name, {}).pop(resource.id, None)

    def _lookup(self, records: Dict[Any, Any], id: Any) -> Any:  # pylint: disable=redefined-builtin
        if id in records:
            return records[id]

        # Identifiers taken from a URL arrive as strings, so also compare against the string form of stored keys
        for key, record in records.items():
            if str(key) == str(id):
                return record

        return None

    def find(self, resource_type: ResourceType, id: Any) -> Any:  # pylint: disable=redefined-builtin
        record = self._lookup(self._records.get(resource_type.name, {}), id)

        if record is None:
            logger.debug("No %s record found with id '%s'", resource_type, id)
            raise ResourceNotFound(resource_type, id)

        return record

    def all(self, resource_type: ResourceType) -> List[Any]:
        return list(self._records.get(resource_type.name, {}).values())

    def accessible(self, resource_type: ResourceType, resolver: "Resolver", action: Any) -> List[Any]:
        return [
            record
            for record in self.all(resource_type)
            if resolver.permitted(action, self.registry.instance(record, resource_type))
        ]

    def get_name(self) -> str:
        return "memory"
