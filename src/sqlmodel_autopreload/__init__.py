"""
sqlmodel_autopreload -- Declarative always-loaded relationships for SQLModel.

A model lists the relationships every read must eager-load; reads through
``get()``, ``get_exist_one()``, ``get_with_count()`` and ``paginate()`` pick
them up automatically.

Quick start::

    from sqlmodel import Relationship
    from sqlmodel_autopreload import SQLModelBase, TableBaseMixin, AutoPreloadMixin

    class User(AutoPreloadMixin, TableBaseMixin, SQLModelBase):
        __auto_preload__ = ['posts.comments']

        name: str
        posts: list["Post"] = Relationship(back_populates="user")

    users = await User.get(session, fetch_mode="all")            # posts + comments loaded
    users = await User.without_any().get(session, fetch_mode="all")  # nothing preloaded, this read only
"""
__version__ = "0.1.0"

# Base
from sqlmodel_autopreload.base import SQLModelBase

# Exceptions
from sqlmodel_autopreload._exceptions import (
    RecordNotFoundError,
    AutoPreloadError,
    InvalidRelationshipSpecificationError,
    InvalidArgumentKindError,
    RelationshipNotFoundError,
)

# Pagination
from sqlmodel_autopreload.pagination import (
    ListResponse,
    PaginationRequest,
)

# Query objects
from sqlmodel_autopreload.query import (
    ModelQuery,
    RelationQuery,
)

# Preload specifications
from sqlmodel_autopreload.specs import (
    NamedPreload,
    CallbackPreload,
    PreloadSpec,
    ModelPreloadState,
    expand_path,
    parse_preloads,
)

# Mixins
from sqlmodel_autopreload.mixins import (
    ReadHooksMixin,
    READ_EVENTS,
    TableBaseMixin,
    UUIDTableBaseMixin,
    AutoPreloadMixin,
)
