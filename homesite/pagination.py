from __future__ import annotations

import math
from typing import Any

from sqlalchemy.orm import Query

from .schemas import Pagination

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def clamp_limit(limit: int | None, default: int = DEFAULT_LIMIT) -> int:
    if not limit or limit < 1:
        return default
    return min(limit, MAX_LIMIT)


def paginate(query: Query, page: int, limit: int) -> tuple[list[Any], Pagination]:
    """
    Apply offset pagination to a query.

    Pages are 1-based; a page past the end returns an empty list. The query
    must already carry its ordering.

    Returns:
        Tuple of (items, pagination metadata)
    """
    page = max(page, 1)
    limit = clamp_limit(limit)

    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()

    return items, Pagination(
        page=page,
        limit=limit,
        total=total,
        total_pages=math.ceil(total / limit) if total else 0,
    )
