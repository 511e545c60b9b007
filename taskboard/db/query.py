"""Reusable query utilities for filtering, sorting, and pagination.

Provides composable functions that transform SQLAlchemy Select statements:
- date_range_conditions: turns created/updated bounds into FilterCondition items
- apply_filters: adds WHERE clauses from FilterCondition/FilterGroup lists
- apply_sorting: adds ORDER BY from a whitelisted ``sort_by``/``sort_order`` pair
- apply_pagination: adds OFFSET/LIMIT
- paginated_query: executes count + data queries, returns (items, total)
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from sqlalchemy import Select, and_, asc, desc, not_, or_
from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.schemas.query import (
    DEFAULT_PAGE_SIZE,
    FilterCondition,
    FilterGroup,
    FilterOp,
    Pagination,
    SortDir,
    SortField,
)


def date_range_conditions(
    *,
    created_after: datetime | None = None,
    created_before: datetime | None = None,
    updated_after: datetime | None = None,
    updated_before: datetime | None = None,
) -> list[FilterCondition]:
    """Inclusive bounds on ``created_at`` / ``updated_at``."""
    bounds = (
        ("created_at", FilterOp.gte, created_after),
        ("created_at", FilterOp.lte, created_before),
        ("updated_at", FilterOp.gte, updated_after),
        ("updated_at", FilterOp.lte, updated_before),
    )
    return [
        FilterCondition(field=field, op=op, value=value)
        for field, op, value in bounds
        if value is not None
    ]


def search_group(term: str | None, *fields: str) -> list[FilterGroup]:
    """Case-insensitive partial match of *term* against any of *fields*."""
    if not term or not term.strip():
        return []
    term = term.strip()
    return [
        FilterGroup(
            logic="or",
            conditions=[FilterCondition(field=field, op=FilterOp.ilike, value=term) for field in fields],
        )
    ]


def apply_filters(
    statement: Select,
    model: Any,
    conditions: list[FilterCondition | FilterGroup],
) -> Select:
    """Apply filter conditions to a Select statement.

    ``conditions`` can contain flat :class:`FilterCondition` items (implicitly
    AND-ed) or :class:`FilterGroup` items for explicit AND/OR logic.

    Fields are looked up on *model*; unknown fields are skipped.
    """
    for cond in conditions:
        clause = _resolve_condition(cond, model)
        if clause is not None:
            statement = statement.where(clause)

    return statement


def _resolve_condition(cond: FilterCondition | FilterGroup, model: Any):
    if isinstance(cond, FilterGroup):
        return _resolve_group(cond, model)

    col = getattr(model, cond.field, None)
    if col is None:
        return None

    clause = _build_filter_clause(col, cond.op, cond.value)
    if clause is None:
        return None

    return not_(clause) if cond.negate else clause


def _resolve_group(group: FilterGroup, model: Any):
    clauses = []
    for cond in group.conditions:
        clause = _resolve_condition(cond, model)
        if clause is not None:
            clauses.append(clause)

    if not clauses:
        return None

    if len(clauses) == 1:
        combined = clauses[0]
    elif group.logic == "or":
        combined = or_(*clauses)
    else:
        combined = and_(*clauses)

    return not_(combined) if group.negate else combined


def _build_filter_clause(col: Any, op: FilterOp, value: Any):
    if op == FilterOp.eq:
        return col == value
    if op == FilterOp.lte:
        return col <= value
    if op == FilterOp.gte:
        return col >= value
    if op == FilterOp.ilike:
        return col.ilike(f"%{value}%")
    if op == FilterOp.is_null:
        return col.is_(None) if value else col.is_not(None)
    return None


def resolve_sort(
    sort_by: str | None,
    sort_order: str | None,
    allowed: tuple[str, ...],
    default_field: str = "created_at",
) -> SortField:
    """Whitelist the sort field; anything unknown falls back to the default.

    Direction is ``asc`` only when asked for explicitly.
    """
    field = sort_by if sort_by in allowed else default_field
    direction = SortDir.asc if (sort_order or "").lower() == "asc" else SortDir.desc
    return SortField(field=field, dir=direction)


def apply_sorting(statement: Select, model: Any, sort: SortField) -> Select:
    """Apply ORDER BY for *sort*, with the model's primary key as tiebreaker."""
    col = getattr(model, sort.field)
    order = desc(col) if sort.dir == SortDir.desc else asc(col)
    statement = statement.order_by(order)
    pk = getattr(model, "id", None)
    if pk is not None:
        statement = statement.order_by(desc(pk) if sort.dir == SortDir.desc else asc(pk))
    return statement


def apply_pagination(
    statement: Select,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> Select:
    return statement.offset((page - 1) * limit).limit(limit)


async def paginated_query(
    session: AsyncSession,
    data_stmt: Select,
    count_stmt: Select,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> tuple[list, int]:
    """Execute count + data queries.

    Pages past the end return an empty list rather than being clamped.
    """
    total = (await session.exec(count_stmt)).one()
    result = await session.exec(apply_pagination(data_stmt, page, limit))
    return list(result.all()), total


def build_pagination(total: int, page: int, limit: int) -> Pagination:
    return Pagination(
        page=page,
        limit=limit,
        total=total,
        total_pages=math.ceil(total / limit) if limit else 0,
    )
