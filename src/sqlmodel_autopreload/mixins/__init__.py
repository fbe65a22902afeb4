"""
sqlmodel_autopreload.mixins -- Mixin classes for SQLModel table models.

Re-exports all mixins for convenient access.
"""
from .hooks import (
    ReadHooksMixin,
    ReadEvent,
    READ_EVENTS,
)
from .table import (
    TableBaseMixin,
    UUIDTableBaseMixin,
)
from .auto_preload import (
    AutoPreloadMixin,
)
