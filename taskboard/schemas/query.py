"""Shared query schemas for filtering, sorting, and pagination."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel


DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


class FilterOp(str, Enum):
    """Comparison operators for filter conditions.

    Negation is handled by the ``negate`` flag on FilterCondition,
    not by separate operators.
    """
    eq = "eq"
    lte = "lte"
    gte = "gte"
    ilike = "ilike"
    is_null = "is_null"


class SortDir(str, Enum):
    asc = "asc"
    desc = "desc"


class FilterCondition(BaseModel):
    """A single field comparison.

    Set ``negate=True`` to invert the result::

        # author_id != 7
        FilterCondition(field="author_id", value=7, negate=True)
    """
    field: str
    op: FilterOp = FilterOp.eq
    value: Any = None
    negate: bool = False


class FilterGroup(BaseModel):
    """Group of conditions combined with AND or OR logic.

    Free-text search is an OR group::

        # name ILIKE '%api%' OR description ILIKE '%api%'
        FilterGroup(
            logic="or",
            conditions=[
                FilterCondition(field="name", op=FilterOp.ilike, value="api"),
                FilterCondition(field="description", op=FilterOp.ilike, value="api"),
            ],
        )
    """
    logic: Literal["and", "or"] = "and"
    negate: bool = False
    conditions: list[FilterCondition | FilterGroup]


class SortField(BaseModel):
    field: str
    dir: SortDir = SortDir.desc



class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
