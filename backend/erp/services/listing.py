# Overview: Shared pagination envelope for list endpoints.

from __future__ import annotations


def paginate(query, page: int, per_page: int, serialize) -> dict:
    """
    Run ``query`` for one page and wrap it in the standard list envelope.

    Returns a dict with 'items', 'count', and 'pagination' metadata.
    """
    page = max(page or 1, 1)
    per_page = max(per_page or 1, 1)

    total = query.order_by(None).count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [serialize(row) for row in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
