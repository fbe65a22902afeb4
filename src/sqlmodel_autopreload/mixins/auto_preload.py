"""
Auto Preload Mixin

Declares, per model class, the relationships that are eager-loaded on every
read, so call sites do not have to repeat them.

Usage::

    from sqlmodel_autopreload import SQLModelBase, TableBaseMixin, AutoPreloadMixin

    class User(AutoPreloadMixin, TableBaseMixin, SQLModelBase):
        __auto_preload__ = ['posts.comments', 'profile']
        ...

    users = await User.get(session, fetch_mode='all')        # posts, comments, profile loaded
    users = await User.without(['profile']).get(session, fetch_mode='all')
    user = await User.without_any().get(session, User.id == 1)

Entries are relationship names (dotted for nested relationships) or callables
receiving the ``ModelQuery``::

    class Post(AutoPreloadMixin, TableBaseMixin, SQLModelBase):
        __auto_preload__ = [
            'user',
            lambda query: query.preload('comments', lambda c: c.where(Comment.hidden == False)),
        ]

Narrowing (``without``, ``with_only``, ``without_any``) applies to the next
read of the class only; the declared list is restored right after that read
builds its statement. Callables carry no name, so only ``without_any()``
drops them.

The narrowed list lives on the class, shared by every task. Call the
narrowing method and the read in one expression
(``await User.without([...]).get(...)``); a narrowing call left pending
across an ``await`` can be consumed by another task's read of the same class.
"""
import logging
from typing import Any, ClassVar, Iterable, TypeVar

from sqlmodel_autopreload._exceptions import InvalidArgumentKindError
from sqlmodel_autopreload.query import ModelQuery
from sqlmodel_autopreload.specs import ModelPreloadState, PreloadSpec, parse_preloads

logger = logging.getLogger(__name__)

A = TypeVar("A", bound="AutoPreloadMixin")


class AutoPreloadMixin:
    """
    Always-loaded relationships for a model class.

    Must be combined with TableBaseMixin (or any class providing the
    ReadHooksMixin read lifecycle) and listed before it.
    """

    __auto_preload__: ClassVar[list[Any]] = []

    def __init_subclass__(cls, **kwargs) -> None:
        """Validate the declaration and hook into the read lifecycle at class creation time."""
        baseline = None
        if getattr(cls, '_has_read_hooks', False):
            baseline = parse_preloads(cls.__auto_preload__, cls.__name__)

        super().__init_subclass__(**kwargs)

        if baseline is not None:
            cls._boot(baseline)

    @classmethod
    def boot(cls) -> None:
        """
        One-time initialization of this class's preload state. Idempotent.

        Runs automatically when the class is created; calling it again is a no-op.

        :raises InvalidRelationshipSpecificationError: ``__auto_preload__`` holds
            an entry that is neither a string nor a callable
        """
        if '__preload_state__' in cls.__dict__:
            return

        if not getattr(cls, '_has_read_hooks', False):
            logger.warning(f"{cls.__name__} has no read lifecycle, auto preloads will not be applied")
            return

        cls._boot(parse_preloads(cls.__auto_preload__, cls.__name__))

    @classmethod
    def _boot(cls, baseline: list[PreloadSpec]) -> None:
        if '__preload_state__' in cls.__dict__:
            return

        cls.__preload_state__ = ModelPreloadState(baseline=tuple(baseline))

        for event in ('fetch', 'find'):
            cls.before(event, cls._apply_auto_preload)
        cls.before('paginate', cls._apply_auto_preload_paginated)
        cls.on_read_abort(cls._restore_auto_preload)

        logger.debug(f"Booted auto preload for {cls.__name__} with {len(baseline)} relationship(s)")

    @classmethod
    def _preload_state(cls) -> ModelPreloadState:
        state = cls.__dict__.get('__preload_state__')
        if state is None:
            cls.boot()
            state = cls.__dict__.get('__preload_state__')
            if state is None:
                raise TypeError(f"{cls.__name__} cannot use auto preload without a read lifecycle")
        return state

    @classmethod
    def get_auto_preloads(cls) -> list[Any]:
        """Entries the next read will apply (strings and callables, as declared)."""
        return [spec.value for spec in cls._preload_state().active]

    @classmethod
    def get_baseline_preloads(cls) -> list[Any]:
        """The declared entries, restored after every read."""
        return [spec.value for spec in cls._preload_state().baseline]

    # ==================== Narrowing ====================

    @staticmethod
    def _check_relationship_names(method: str, names: Iterable[Any]) -> set[Any]:
        if isinstance(names, str) or not isinstance(names, (list, tuple, set, frozenset)):
            raise InvalidArgumentKindError(method)
        for name in names:
            if not isinstance(name, str) and not callable(name):
                raise InvalidArgumentKindError(method)
        return set(names)

    @classmethod
    def without(cls: type[A], names: list[str]) -> type[A]:
        """
        Skip the named relationships on the next read.

        Callable entries are kept.

        :param names: Relationship names (paths exactly as declared)
        :returns: The class (supports chaining)
        :raises InvalidArgumentKindError: ``names`` is not a list of strings
        """
        checked = cls._check_relationship_names('without', names)
        cls._preload_state().without(checked)
        logger.debug(f"{cls.__name__}.without({sorted(map(str, checked))})")
        return cls

    @classmethod
    def with_only(cls: type[A], names: list[str]) -> type[A]:
        """
        Load only the named relationships on the next read.

        Callable entries are kept.

        :param names: Relationship names (paths exactly as declared)
        :returns: The class (supports chaining)
        :raises InvalidArgumentKindError: ``names`` is not a list of strings
        """
        checked = cls._check_relationship_names('with_only', names)
        cls._preload_state().with_only(checked)
        logger.debug(f"{cls.__name__}.with_only({sorted(map(str, checked))})")
        return cls

    @classmethod
    def without_any(cls: type[A]) -> type[A]:
        """Load none of the declared relationships on the next read, callables included."""
        cls._preload_state().clear()
        logger.debug(f"{cls.__name__}.without_any()")
        return cls

    # ==================== Hook handlers ====================

    @classmethod
    def _apply_auto_preload(cls, query: ModelQuery) -> None:
        """Apply the active preloads to ``query``, then restore the declared list."""
        state = cls._preload_state()
        try:
            if state.active:
                logger.debug(f"Auto-preloading {len(state.active)} relationship(s) for {cls.__name__}")
            for spec in state.active:
                spec.apply(query)
        finally:
            state.restore()

    @classmethod
    def _apply_auto_preload_paginated(cls, queries: tuple[ModelQuery, ModelQuery]) -> None:
        _count_query, data_query = queries
        cls._apply_auto_preload(data_query)

    @classmethod
    def _restore_auto_preload(cls) -> None:
        """Drop any pending narrowing of a read that failed before applying it."""
        cls._preload_state().restore()
        logger.debug(f"Read of {cls.__name__} aborted, restored declared auto preloads")
