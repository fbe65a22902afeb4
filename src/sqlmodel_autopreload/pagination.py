"""
Pagination request and response models.

``PaginationRequest`` carries offset/limit/sort parameters for list reads;
the SQL clauses are built by ``TableBaseMixin``.
"""
from typing import TypeVar, Literal, Generic, Self

# ListResponse uses BaseModel due to SQLModel Generic[T] schema generation bug
# See: https://github.com/fastapi/sqlmodel/discussions/1002
from pydantic import BaseModel, ConfigDict
from sqlmodel import Field

from sqlmodel_autopreload.base import SQLModelBase

ItemT = TypeVar("ItemT")


class ListResponse(BaseModel, Generic[ItemT]):
    """
    Generic paginated response returned by ``TableBaseMixin.get_with_count()``.

    Note:
        Inherits BaseModel instead of SQLModelBase because SQLModel's metaclass
        conflicts with Generic.
    """
    model_config = ConfigDict(use_attribute_docstrings=True)

    count: int
    """Total number of records matching the query conditions."""

    items: list[ItemT]
    """Records of the current page."""


class PaginationRequest(SQLModelBase):
    """Pagination and sorting request parameters."""

    offset: int | None = Field(default=0, ge=0)
    """Offset (skip first N records), must be non-negative"""

    limit: int | None = Field(default=50, le=100)
    """Page size (return at most N records), default 50, max 100"""

    desc: bool | None = True
    """Sort descending (True: descending, False: ascending)"""

    order: Literal["created_at", "updated_at"] | None = "created_at"
    """Sort field (created_at or updated_at)"""

    @classmethod
    def from_page(cls, page: int, per_page: int = 20, **kwargs) -> Self:
        """
        Build a request from a 1-based page number.

        :param page: Page number, starting at 1
        :param per_page: Page size
        :raises ValueError: page or per_page below 1
        """
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        if per_page < 1:
            raise ValueError(f"per_page must be >= 1, got {per_page}")
        return cls(offset=(page - 1) * per_page, limit=per_page, **kwargs)
