from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence, TypeVar, Union

from fastapi import HTTPException

T = TypeVar("T")


# PUBLIC_INTERFACE
def pagination_envelope(
    items: Union[Sequence[Any], Iterable[Any]],
    total: int,
    limit: int,
    offset: int,
) -> Dict[str, Any]:
    """
    Build a standard pagination envelope for list endpoints.

    Args:
        items: The list/iterable of items for the current page.
        total: Total number of items that match the query (ignoring pagination).
        limit: The limit used for pagination.
        offset: The offset used for pagination.

    Returns:
        Dict with keys: items, total, limit, offset.
    """
    materialized: List[Any] = list(items) if not isinstance(items, list) else items
    return {
        "items": materialized,
        "total": int(total),
        "limit": int(max(limit, 0)),
        "offset": int(max(offset, 0)),
    }


def paginate(items: Sequence[T], limit: int, offset: int) -> List[T]:
    return list(items[offset : offset + limit])


def require_found(item: Optional[T], what: str) -> T:
    """Return ``item`` or raise a 404 naming ``what``."""
    if item is None:
        raise HTTPException(status_code=404, detail=f"{what} not found")
    return item
