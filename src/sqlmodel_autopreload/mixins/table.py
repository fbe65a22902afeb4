"""
Table Base Mixins -- async CRUD operations and the read lifecycle.

Provides TableBaseMixin and UUIDTableBaseMixin with async CRUD and
pagination. Every read builds a ``ModelQuery`` and runs the class's
``before`` hooks on it (``fetch``, ``find`` or ``paginate``) before the
statement executes.
"""
import logging
import uuid
from datetime import datetime
from typing import TypeVar, Literal, Any, ClassVar

from typing_extensions import override

from sqlalchemy import DateTime, BinaryExpression, ClauseElement, Select, desc, asc, func, delete as sql_delete
from sqlalchemy.orm import selectinload
from sqlmodel import Field, select
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.sql._typing import _OnClauseArgument
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlmodel.main import RelationshipInfo

from sqlmodel_autopreload._utils import now
from sqlmodel_autopreload._exceptions import RecordNotFoundError
from sqlmodel_autopreload.mixins.hooks import ReadHooksMixin
from sqlmodel_autopreload.pagination import ListResponse, PaginationRequest
from sqlmodel_autopreload.query import ModelQuery

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="TableBaseMixin")

FetchMode = Literal["one", "first", "all"]


class TableBaseMixin(ReadHooksMixin, AsyncAttrs):
    """
    Async CRUD operations base mixin for SQLModel models.

    Must be used together with SQLModelBase.

    Provides ``add()``, ``save()``, ``delete()``, ``get()``, ``count()``,
    ``get_with_count()``, ``paginate()`` and ``get_exist_one()``.

    Read events fired (see ``ReadHooksMixin``):

    - ``get(fetch_mode="first" | "one")`` and ``get_exist_one()``: ``find``
    - ``get(fetch_mode="all")``: ``fetch``
    - ``get_with_count()`` and ``paginate()``: ``paginate``

    A read that raises before its event fires calls ``abort_read()``.

    Attributes:
        id: Integer primary key, auto-increment.
        created_at: Record creation timestamp, auto-set.
        updated_at: Record update timestamp, auto-updated.
    """
    _has_table_mixin: ClassVar[bool] = True
    """Internal flag marking TableBaseMixin inheritance."""

    def __init_subclass__(cls, **kwargs):
        """Accept and forward keyword arguments from subclass definitions."""
        super().__init_subclass__(**kwargs)

    id: int | None = Field(default=None, primary_key=True)

    created_at: datetime = Field(sa_type=DateTime(timezone=True), default_factory=now)
    updated_at: datetime = Field(
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={'default': now, 'onupdate': now},
        default_factory=now
    )

    @classmethod
    async def add(cls: type[T], session: AsyncSession, instances: T | list[T], refresh: bool = True) -> T | list[T]:
        """
        Add one or more new records to the database.

        :param session: Async database session
        :param instances: Single instance or list of instances to add
        :param refresh: If True, refresh instances after commit to sync DB-generated values
        :returns: The added (and optionally refreshed) instance(s)
        """
        is_list = False
        if isinstance(instances, list):
            is_list = True
            session.add_all(instances)
        else:
            session.add(instances)

        await session.commit()

        if refresh:
            if is_list:
                for instance in instances:
                    await session.refresh(instance)
            else:
                await session.refresh(instances)

        return instances

    async def save(
            self: T,
            session: AsyncSession,
            load: RelationshipInfo | list[RelationshipInfo] | None = None,
            refresh: bool = True,
            commit: bool = True,
    ) -> T:
        """
        Save (insert or update) this instance to the database.

        **Important**: After calling this method, all session objects expire.
        Always use the return value::

            user = await user.save(session)

        :param session: Async database session
        :param load: Relationship(s) to eagerly load after save; the row is
            re-read through ``get()``, so auto preloads apply as well
        :param refresh: Whether to refresh the object after save (default True)
        :param commit: Whether to commit (default True). Set False for batch operations.
        :returns: The refreshed instance (if refresh=True), otherwise self
        """
        cls = type(self)
        session.add(self)
        if commit:
            await session.commit()
        else:
            await session.flush()

        if not refresh:
            return self

        await session.refresh(self)
        if load is not None:
            return await cls.get(session, cls.id == self.id, load=load)
        return self

    @classmethod
    async def delete(
            cls: type[T],
            session: AsyncSession,
            instances: T | list[T] | None = None,
            *,
            condition: BinaryExpression | ClauseElement | None = None,
            commit: bool = True,
    ) -> int:
        """
        Delete records from the database. Supports instance and condition modes.

        :param session: Async database session
        :param instances: Instance(s) to delete (instance mode)
        :param condition: WHERE condition for bulk delete (condition mode)
        :param commit: Whether to commit after delete (default True)
        :returns: Number of deleted records
        :raises ValueError: If both or neither of instances/condition are provided
        """
        if instances is not None and condition is not None:
            raise ValueError("Cannot provide both instances and condition")
        if instances is None and condition is None:
            raise ValueError("Must provide either instances or condition")

        deleted_count = 0

        if condition is not None:
            stmt = sql_delete(cls).where(condition)
            result = await session.execute(stmt)
            deleted_count = result.rowcount
        else:
            if isinstance(instances, list):
                for instance in instances:
                    await session.delete(instance)
                deleted_count = len(instances)
            else:
                await session.delete(instances)
                deleted_count = 1

        if commit:
            await session.commit()

        return deleted_count

    @classmethod
    def _build_select(
            cls: type[T],
            condition: BinaryExpression | ClauseElement | None = None,
            *,
            offset: int | None = None,
            limit: int | None = None,
            join: type[T] | tuple[type[T], _OnClauseArgument] | None = None,
            options: list | None = None,
            load: RelationshipInfo | list[RelationshipInfo] | None = None,
            order_by: list[ClauseElement] | None = None,
            filter: BinaryExpression | ClauseElement | None = None,
            with_for_update: bool = False,
            table_view: PaginationRequest | None = None,
            populate_existing: bool = False,
    ) -> Select:
        """Build the SELECT for ``get()`` / ``get_with_count()``. No hooks run here."""
        if table_view:
            if offset is None:
                offset = table_view.offset
            if limit is None:
                limit = table_view.limit
            if order_by is None:
                order_column = cls.created_at if table_view.order == "created_at" else cls.updated_at
                order_by = [desc(order_column) if table_view.desc else asc(order_column)]

        statement = select(cls)

        if condition is not None:
            statement = statement.where(condition)

        if join is not None:
            if isinstance(join, tuple):
                statement = statement.join(*join)
            else:
                statement = statement.join(join)

        if options:
            statement = statement.options(*options)

        if load is not None:
            load_list = load if isinstance(load, list) else [load]
            for chain in cls._build_load_chains(load_list):
                loader = selectinload(chain[0])
                for rel in chain[1:]:
                    loader = loader.selectinload(rel)
                statement = statement.options(loader)

        if order_by is not None:
            statement = statement.order_by(*order_by)

        if offset:
            statement = statement.offset(offset)

        if limit:
            statement = statement.limit(limit)

        if filter is not None:
            statement = statement.filter(filter)

        if with_for_update:
            statement = statement.with_for_update()

        if populate_existing:
            statement = statement.execution_options(populate_existing=True)

        return statement

    @classmethod
    async def get(
            cls: type[T],
            session: AsyncSession,
            condition: BinaryExpression | ClauseElement | None = None,
            *,
            offset: int | None = None,
            limit: int | None = None,
            fetch_mode: FetchMode = "first",
            join: type[T] | tuple[type[T], _OnClauseArgument] | None = None,
            options: list | None = None,
            load: RelationshipInfo | list[RelationshipInfo] | None = None,
            order_by: list[ClauseElement] | None = None,
            filter: BinaryExpression | ClauseElement | None = None,
            with_for_update: bool = False,
            table_view: PaginationRequest | None = None,
            populate_existing: bool = False,
    ) -> T | list[T] | None:
        """
        Fetch one or more records from the database with filtering, sorting,
        pagination, joins, and relationship preloading.

        Fires ``find`` for ``fetch_mode`` "first"/"one" and ``fetch`` for "all".

        :param session: Async database session
        :param condition: Main query filter (e.g. ``User.id == 1``)
        :param offset: Pagination offset
        :param limit: Max records to return
        :param fetch_mode: "one", "first", or "all"
        :param join: Model class or (model, ON clause) tuple to JOIN
        :param options: SQLAlchemy query options (e.g. selectinload)
        :param load: Relationship(s) to eagerly load via selectinload, in
            addition to the model's declared auto preloads
        :param order_by: Sort expressions
        :param filter: Additional filter condition
        :param with_for_update: Use FOR UPDATE row locking
        :param table_view: PaginationRequest for pagination + sorting
        :param populate_existing: Force overwrite identity map objects with DB data
        :returns: Single instance, list, or None depending on fetch_mode
        :raises ValueError: Invalid fetch_mode
        """
        try:
            if fetch_mode not in ("one", "first", "all"):
                raise ValueError(f"Invalid fetch_mode: {fetch_mode}")

            query = ModelQuery(cls, cls._build_select(
                condition,
                offset=offset,
                limit=limit,
                join=join,
                options=options,
                load=load,
                order_by=order_by,
                filter=filter,
                with_for_update=with_for_update,
                table_view=table_view,
                populate_existing=populate_existing,
            ))
        except Exception:
            cls.abort_read()
            raise
        cls.run_before_hooks("fetch" if fetch_mode == "all" else "find", query)

        result = await session.exec(query.build())

        if fetch_mode == "one":
            return result.one()
        elif fetch_mode == "first":
            return result.first()
        return list(result.all())

    @staticmethod
    def _build_load_chains(load_list: list[RelationshipInfo]) -> list[list[RelationshipInfo]]:
        """
        Build chained selectinload structures from a flat relationship list.

        Auto-detects dependencies between relationships and builds nested chains.
        For example: ``[Parent.children, Child.toys]`` becomes ``[[children, toys]]``.

        :param load_list: Flat list of relationship attributes
        :returns: List of chains, where each chain is a list of relationships
        """
        if not load_list:
            return []

        rel_info: dict[RelationshipInfo, tuple[type, type]] = {}
        for rel in load_list:
            rel_info[rel] = (rel.property.parent.class_, rel.property.mapper.class_)

        predecessors: dict[RelationshipInfo, RelationshipInfo | None] = {rel: None for rel in load_list}
        for rel_b in load_list:
            parent_b, _ = rel_info[rel_b]
            for rel_a in load_list:
                if rel_a is rel_b:
                    continue
                _, target_a = rel_info[rel_a]
                if parent_b is target_a:
                    predecessors[rel_b] = rel_a
                    break

        roots = [rel for rel, pred in predecessors.items() if pred is None]

        chains: list[list[RelationshipInfo]] = []
        used: set[RelationshipInfo] = set()

        for root in roots:
            chain = [root]
            used.add(root)
            current = root
            while True:
                _, current_target = rel_info[current]
                next_rel = None
                for rel, (parent, _) in rel_info.items():
                    if rel not in used and parent is current_target:
                        next_rel = rel
                        break
                if next_rel is None:
                    break
                chain.append(next_rel)
                used.add(next_rel)
                current = next_rel
            chains.append(chain)

        return chains

    @classmethod
    def _build_count(cls: type[T], condition: BinaryExpression | ClauseElement | None = None) -> Select:
        statement = select(func.count()).select_from(cls)
        if condition is not None:
            statement = statement.where(condition)
        return statement

    @classmethod
    async def count(cls: type[T], session: AsyncSession, condition: BinaryExpression | ClauseElement | None = None) -> int:
        """
        Count records matching a condition with a database-level COUNT().

        No read hooks fire.

        :param session: Async database session
        :param condition: Query condition
        :returns: Number of matching records
        """
        result = await session.scalar(cls._build_count(condition))
        return result or 0

    @classmethod
    async def get_with_count(
            cls: type[T],
            session: AsyncSession,
            condition: BinaryExpression | ClauseElement | None = None,
            *,
            join: type[T] | tuple[type[T], _OnClauseArgument] | None = None,
            options: list | None = None,
            load: RelationshipInfo | list[RelationshipInfo] | None = None,
            order_by: list[ClauseElement] | None = None,
            filter: BinaryExpression | ClauseElement | None = None,
            table_view: PaginationRequest | None = None,
    ) -> 'ListResponse[T]':
        """
        Get paginated list with total count, returns ListResponse.

        Fires ``paginate`` once with ``(count_query, data_query)``; ``fetch``
        does not fire.

        :param session: Async database session
        :param condition: Query condition
        :param join: JOIN target
        :param options: SQLAlchemy query options
        :param load: Relationships to eagerly load
        :param order_by: Sort expressions
        :param filter: Additional filter
        :param table_view: Pagination + sorting
        :returns: ListResponse with count and items
        """
        try:
            count_query = ModelQuery(cls, cls._build_count(condition))
            data_query = ModelQuery(cls, cls._build_select(
                condition,
                join=join,
                options=options,
                load=load,
                order_by=order_by,
                filter=filter,
                table_view=table_view,
            ))
        except Exception:
            cls.abort_read()
            raise
        cls.run_before_hooks("paginate", (count_query, data_query))

        total_count = await session.scalar(count_query.build())
        result = await session.exec(data_query.build())

        return ListResponse(count=total_count or 0, items=list(result.all()))

    @classmethod
    async def paginate(
            cls: type[T],
            session: AsyncSession,
            page: int,
            per_page: int = 20,
            condition: BinaryExpression | ClauseElement | None = None,
            **kwargs: Any,
    ) -> 'ListResponse[T]':
        """
        Page-number front end for ``get_with_count()``.

        :param session: Async database session
        :param page: 1-based page number
        :param per_page: Page size (max 100)
        :param condition: Query condition
        :param kwargs: Forwarded to ``get_with_count()``
        :raises ValueError: page or per_page below 1
        """
        try:
            table_view = PaginationRequest.from_page(page, per_page)
        except ValueError:
            cls.abort_read()
            raise
        return await cls.get_with_count(session, condition, table_view=table_view, **kwargs)

    @classmethod
    async def get_exist_one(cls: type[T], session: AsyncSession, id: int, load: RelationshipInfo | list[RelationshipInfo] | None = None) -> T:
        """
        Get a record by primary key ID, raising if not found.

        :param session: Async database session
        :param id: Primary key ID
        :param load: Relationship(s) to eagerly load
        :returns: The found instance
        :raises RecordNotFoundError: If not found
        """
        instance = await cls.get(session, cls.id == id, load=load)
        if not instance:
            logger.debug(f"{cls.__name__} id={id} not found")
            raise RecordNotFoundError(f"{cls.__name__} not found")
        return instance


class UUIDTableBaseMixin(TableBaseMixin):
    """
    UUID-based async CRUD mixin.

    Inherits all CRUD methods from TableBaseMixin, with the ``id`` field
    overridden to use UUID with auto-generation.

    Attributes:
        id: UUID primary key, auto-generated.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    """UUID primary key, auto-generated."""

    @override
    @classmethod
    async def get_exist_one(cls: type[T], session: AsyncSession, id: uuid.UUID, load: RelationshipInfo | list[RelationshipInfo] | None = None) -> T:
        """
        Get a record by UUID primary key, raising if not found.

        :param session: Async database session
        :param id: UUID primary key
        :param load: Relationship(s) to eagerly load
        :returns: The found instance
        :raises RecordNotFoundError: If not found
        """
        return await super().get_exist_one(session, id, load)  # type: ignore
