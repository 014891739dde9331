"""Loader interface for the abilities package.

A loader fetches domain records from a persistence backend on behalf of ``Authorizer.load_and_authorize``. It knows
nothing about rules beyond asking a ``Resolver`` which records an actor may access when scoping a collection.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator, List

from abilities.resources import ResourceRegistry, ResourceType

if TYPE_CHECKING:
    from abilities.resolver import Resolver


class Loader(ABC):
    """Abstract base class for loaders.

    Loaders must be safe to share between requests: any per-request state (such as a database session) should be
    obtained within each call.

    Example implementation:

        class ApiLoader(Loader):
            def __init__(self, registry: ResourceRegistry, client: ApiClient) -> None:
                super().__init__(registry)
                self._client = client

            def find(self, resource_type: ResourceType, id: Any) -> Any:
                record = self._client.fetch(resource_type.name, id)
                if record is None:
                    raise ResourceNotFound(resource_type, id)
                return record

            def accessible(self, resource_type: ResourceType, resolver: "Resolver", action: Any) -> List[Any]:
                records = self._client.fetch_all(resource_type.name)
                return [r for r in records if resolver.permitted(action, self.registry.instance(r, resource_type))]

            def get_name(self) -> str:
                return "api"
    """

    def __init__(self, registry: ResourceRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> ResourceRegistry:
        return self._registry

    @abstractmethod
    def find(self, resource_type: ResourceType, id: Any) -> Any:  # pylint: disable=redefined-builtin
        """Fetch a single record by its primary identifier.

        Args:
            resource_type: The type of the record to fetch
            id: The identifier of the record, as received from the caller (often a string taken from a URL)

        Returns:
            The domain record

        Raises:
            ResourceNotFound: If no record of the given type has the given identifier
        """

    @abstractmethod
    def accessible(self, resource_type: ResourceType, resolver: "Resolver", action: Any) -> List[Any]:
        """Fetch every record of a type on which the resolver permits the given action.

        Args:
            resource_type: The type of the records to fetch
            resolver: The resolver holding the actor's rules
            action: The action which must be permitted on each returned record

        Returns:
            A list of domain records
        """

    @contextmanager
    def unit_of_work(self) -> Iterator[None]:
        """Context within which records returned by ``find`` stay attached to the backend, so that conditions evaluated
        on them may read related data. Nested contexts share the outermost one.

        The default implementation does nothing.
        """
        yield

    def supports_scoping(self, resource_type: ResourceType) -> bool:
        """Whether ``accessible`` can be used to produce collections of the given type.

        Returns:
            True by default
        """
        return True

    @abstractmethod
    def get_name(self) -> str:
        """Get the loader name for logging and debugging.

        Returns:
            Loader name (e.g., "memory", "sqlalchemy")
        """
