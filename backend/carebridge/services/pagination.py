"""
Cursor and page-number pagination helpers.

Cursor pages order by a timestamp column then ``id``, both descending, and
use the last returned row's id as the next cursor. One extra row is fetched
to decide ``has_more``.
"""

import math
from typing import Any, Optional, Union
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.orm import Query

from ..core.exceptions import BadRequestError


DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def clamp_limit(limit: Optional[int], default: int = DEFAULT_LIMIT) -> int:
    if not limit or limit < 1:
        return default
    return min(limit, MAX_LIMIT)


def _parse_cursor(cursor: Union[str, UUID]) -> UUID:
    if isinstance(cursor, UUID):
        return cursor
    try:
        return UUID(str(cursor))
    except ValueError:
        raise BadRequestError("Invalid cursor")


def paginate_by_cursor(
    query: Query,
    model: Any,
    cursor: Optional[Union[str, UUID]] = None,
    limit: Optional[int] = None,
    order_column: Any = None,
) -> dict[str, Any]:
    """
    Apply keyset pagination to ``query``.

    Args:
        query: Filtered query over ``model``
        model: Mapped class exposing ``id``
        cursor: Id of the last row of the previous page
        limit: Page size (clamped to MAX_LIMIT)
        order_column: Column to order by, defaults to ``model.created_at``

    Returns:
        ``{"items": [...], "next_cursor": str | None, "has_more": bool}``
    """
    limit = clamp_limit(limit)
    order_column = order_column if order_column is not None else model.created_at

    if cursor:
        cursor_id = _parse_cursor(cursor)
        anchor = query.session.query(order_column).filter(model.id == cursor_id).scalar()
        if anchor is None:
            raise BadRequestError("Invalid cursor")
        query = query.filter(
            or_(
                order_column < anchor,
                and_(order_column == anchor, model.id < cursor_id),
            )
        )

    rows = query.order_by(order_column.desc(), model.id.desc()).limit(limit + 1).all()
    has_more = len(rows) > limit
    items = rows[:limit]

    return {
        "items": items,
        "next_cursor": str(items[-1].id) if has_more and items else None,
        "has_more": has_more,
    }


def paginate_by_page(query: Query, page: int = 1, limit: int = DEFAULT_LIMIT) -> dict[str, Any]:
    """
    Offset pagination for already-ordered queries.

    Returns ``{"items", "total", "page", "limit", "pages", "has_more"}``.
    """
    page = max(page or 1, 1)
    limit = clamp_limit(limit)
    total = query.count()
    items = query.offset((page - 1) * limit).limit(limit).all()

    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "pages": math.ceil(total / limit) if total else 0,
        "has_more": page * limit < total,
    }
