"""
Query objects handed to read hooks.

``ModelQuery`` wraps the SELECT statement a read entry point is about to
execute and collects eager-load requests as a tree of ``RelationQuery``
nodes. ``build()`` turns that tree into nested ``selectinload`` options::

    query = ModelQuery(User, select(User))
    query.preload('posts', lambda posts: posts.preload('comments'))
    statement = query.build()
    # select(User).options(selectinload(User.posts).options(selectinload(Post.comments)))

Requesting the same relationship twice merges into one node, so
``'posts'`` and ``'posts.comments'`` share the ``posts`` loader.
"""
from types import MappingProxyType
from typing import Any, Callable, Generic, Mapping, Self, TypeVar

from sqlalchemy import ColumnExpressionArgument, Select, inspect as sa_inspect
from sqlalchemy.orm import QueryableAttribute, selectinload
from sqlalchemy.orm.strategy_options import _AbstractLoad

from sqlmodel_autopreload._exceptions import RelationshipNotFoundError

T = TypeVar("T")

Configurator = Callable[["RelationQuery"], Any]


def _resolve_relationship(model: type, relation: str) -> QueryableAttribute:
    """
    Look up a relationship attribute by name.

    :raises RelationshipNotFoundError: ``relation`` is not a relationship of ``model``
    """
    if not isinstance(relation, str) or relation not in sa_inspect(model).relationships:
        raise RelationshipNotFoundError(model.__name__, str(relation))
    return getattr(model, relation)


class _PreloadNode:
    """Shared ``preload()`` behavior of root queries and relationship sub-queries."""

    def __init__(self, model: type):
        self.model = model
        self._preloads: dict[str, RelationQuery] = {}

    @property
    def preloads(self) -> Mapping[str, "RelationQuery"]:
        """Requested relationships, keyed by name, in request order."""
        return MappingProxyType(self._preloads)

    def preload(self, relation: str, configure: Configurator | None = None) -> Self:
        """
        Request eager loading of a relationship.

        :param relation: Relationship attribute name on this query's model
        :param configure: Optional callable receiving the ``RelationQuery``
            for ``relation``; it may call ``preload()`` again to load nested
            relationships or ``where()`` to filter the loaded rows
        :returns: self (supports chaining)
        :raises RelationshipNotFoundError: Unknown relationship name
        """
        sub_query = self._preloads.get(relation)
        if sub_query is None:
            sub_query = RelationQuery(_resolve_relationship(self.model, relation))
            self._preloads[relation] = sub_query

        if configure is not None:
            configure(sub_query)

        return self

    def loader_options(self) -> list[_AbstractLoad]:
        """Loader options for every requested relationship (nested ones included)."""
        return [sub_query.loader() for sub_query in self._preloads.values()]


class RelationQuery(_PreloadNode):
    """
    Sub-query scoped to one relationship.

    Passed to ``preload()`` configurators.
    """

    def __init__(self, attribute: QueryableAttribute):
        super().__init__(attribute.property.mapper.class_)
        self.attribute = attribute
        self._criteria: list[ColumnExpressionArgument[bool]] = []

    @property
    def relation(self) -> str:
        return self.attribute.key

    @property
    def criteria(self) -> tuple[ColumnExpressionArgument[bool], ...]:
        return tuple(self._criteria)

    def where(self, *criteria: ColumnExpressionArgument[bool]) -> Self:
        """Restrict the related rows that get loaded (``relationship.and_()``)."""
        self._criteria.extend(criteria)
        return self

    def loader(self) -> _AbstractLoad:
        target = self.attribute.and_(*self._criteria) if self._criteria else self.attribute
        loader = selectinload(target)

        nested = self.loader_options()
        if nested:
            loader = loader.options(*nested)
        return loader

    def __repr__(self) -> str:
        return f"<RelationQuery {self.attribute.class_.__name__}.{self.relation} preloads={list(self._preloads)}>"


class ModelQuery(_PreloadNode, Generic[T]):
    """
    The statement of an in-flight read, plus its eager-load requests.

    Read hooks receive this object before the statement executes.
    """

    def __init__(self, model: type[T], statement: Select[Any]):
        super().__init__(model)
        self.statement = statement

    def where(self, *criteria: ColumnExpressionArgument[bool]) -> Self:
        """Add WHERE criteria to the statement."""
        self.statement = self.statement.where(*criteria)
        return self

    def build(self) -> Select[Any]:
        """Return the statement with all requested loader options attached."""
        options = self.loader_options()
        if options:
            return self.statement.options(*options)
        return self.statement

    def __repr__(self) -> str:
        return f"<ModelQuery {self.model.__name__} preloads={list(self._preloads)}>"
