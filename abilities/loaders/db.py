"""SQLAlchemy loader.

Fetches records of mapped classes through SQLAlchemy sessions. Collections are scoped in the database where possible:
the rules relevant to the requested action are folded, in declaration order, into a single SQL criterion, so that a row
is selected exactly when the most recently declared rule applying to it is an allow rule. Rules whose conditions
cannot be expressed in SQL (predicates, constraints on attributes which are not mapped columns, or expected values
whose type differs from the column's Python type) cause the loader to fetch every row and filter the records in Python
instead, within the same session.

Records returned by ``find`` are detached once the session closes. Callers which evaluate conditions reading related
data (or which use the records afterwards) should do so within ``unit_of_work``, which keeps a single session open::

    with loader.unit_of_work():
        article = loader.find(article_type, "42")
        resolver.permitted("update", registry.instance(article, article_type))
"""

import contextvars
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, Iterator, List, Optional, Sequence

from sqlalchemy import and_, false, inspect, not_, or_, true
from sqlalchemy.exc import SQLAlchemyError, StatementError
from sqlalchemy.orm import Session
from sqlalchemy.sql.expression import ColumnElement

from abilities.errors import LoaderError, ResourceNotFound
from abilities.loaders.base import Loader
from abilities.resources import ResourceRegistry, ResourceType
from abilities.rule import Rule

if TYPE_CHECKING:
    from abilities.resolver import Resolver

logger = logging.getLogger(__name__)


class SQLAlchemyLoader(Loader):
    def __init__(self, registry: ResourceRegistry, session_factory: Callable[[], Session]) -> None:
        """Initialize the loader.

        Args:
            registry: The registry mapping resource types to SQLAlchemy mapped classes
            session_factory: A callable returning a new session, e.g. a ``sessionmaker`` or ``scoped_session``
        """
        super().__init__(registry)
        self._session_factory = session_factory
        self._active_session: contextvars.ContextVar[Optional[Session]] = contextvars.ContextVar(
            f"abilities_session_{id(self)}", default=None
        )

    @contextmanager
    def session_context(self) -> Iterator[Session]:
        """Yields the session of the enclosing ``unit_of_work``, if any, or a new session closed on exit."""
        active = self._active_session.get()

        if active is not None:
            try:
                yield active
            except SQLAlchemyError as err:
                raise LoaderError(f"database error while loading records: {err}") from err
            return

        session = self._session_factory()

        try:
            yield session
        except SQLAlchemyError as err:
            session.rollback()
            raise LoaderError(f"database error while loading records: {err}") from err
        finally:
            session.close()

    @contextmanager
    def unit_of_work(self) -> Iterator[None]:
        if self._active_session.get() is not None:
            yield
            return

        with self.session_context() as session:
            token = self._active_session.set(session)

            try:
                yield
            finally:
                self._active_session.reset(token)

    @staticmethod
    def _coerce_id(model: type, id: Any) -> Any:  # pylint: disable=redefined-builtin
        primary_key = inspect(model).primary_key

        if len(primary_key) != 1:
            return id

        try:
            python_type = primary_key[0].type.python_type
        except NotImplementedError:
            return id

        if isinstance(id, python_type):
            return id

        return python_type(id)

    def find(self, resource_type: ResourceType, id: Any) -> Any:  # pylint: disable=redefined-builtin
        model = self.registry.model_for(resource_type)

        try:
            key = self._coerce_id(model, id)
        except (TypeError, ValueError):
            logger.debug("Identifier '%s' is not valid for %s records", id, resource_type)
            raise ResourceNotFound(resource_type, id) from None

        with self.session_context() as session:
            try:
                record = session.get(model, key)
            except StatementError:
                record = None

        if record is None:
            raise ResourceNotFound(resource_type, id)

        return record

    @staticmethod
    def _column_type(model: type, attribute: str) -> Optional[type]:
        columns = inspect(model).columns

        if attribute not in columns:
            return None

        try:
            return columns[attribute].type.python_type
        except NotImplementedError:
            return None

    @classmethod
    def _translatable(cls, model: type, rules: Sequence[Rule]) -> bool:
        # SQL comparisons coerce bound values to the column type, so only values of exactly that type (or None) are
        # compared in the database
        for rule in rules:
            if rule.is_predicate:
                return False

            if not rule.has_condition:
                continue

            for attribute, expected in rule.condition.items():  # type: ignore[union-attr]
                python_type = cls._column_type(model, attribute)

                if python_type is None or (expected is not None and type(expected) is not python_type):
                    return False

        return True

    @staticmethod
    def _equals(column: Any, value: Any) -> ColumnElement:
        # Two-valued equality: a NULL column never equals a value, and never makes the comparison NULL
        if value is None:
            return column.is_(None)

        return and_(column.is_not(None), column == value)

    @classmethod
    def build_criterion(cls, model: type, rules: Sequence[Rule]) -> ColumnElement:
        """Folds rules, given in declaration order, into a criterion selecting the rows on which the last applicable
        rule grants the action. Each allow rule adds the rows matching its condition; each deny rule removes them.
        """
        criterion: ColumnElement = false()

        for rule in rules:
            if rule.has_condition:
                items = rule.condition.items()  # type: ignore[union-attr]
                constraints = [cls._equals(getattr(model, attribute), value) for attribute, value in items]
                condition = and_(true(), *constraints)
            else:
                condition = true()

            if rule.base_behavior:
                criterion = or_(criterion, condition)
            else:
                criterion = and_(criterion, not_(condition))

        return criterion

    def accessible(self, resource_type: ResourceType, resolver: "Resolver", action: Any) -> List[Any]:
        model = self.registry.model_for(resource_type)
        rules = resolver.relevant_rules(action, resource_type)

        if not rules:
            return []

        with self.session_context() as session:
            query = session.query(model)

            if self._translatable(model, rules):
                return list(query.filter(self.build_criterion(model, rules)).all())

            logger.debug(
                "Rules for '%s' on %s cannot be expressed in SQL, filtering records in memory", action, resource_type
            )

            return [
                record
                for record in query.all()
                if resolver.permitted(action, self.registry.instance(record, resource_type))
            ]

    def get_name(self) -> str:
        return "sqlalchemy"
