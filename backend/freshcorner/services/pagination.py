from __future__ import annotations

from flask import current_app


def clamp_page(page: int | None, per_page: int | None) -> tuple[int, int]:
    default = current_app.config["DEFAULT_PAGE_SIZE"]
    maximum = current_app.config["MAX_PAGE_SIZE"]
    per_page = min(per_page or default, maximum)
    per_page = max(per_page, 1)
    page = max(page or 1, 1)
    return page, per_page


def paginate(query, page: int | None, per_page: int | None) -> tuple[list, dict]:
    """Apply offset/limit and build the pagination block returned to clients."""
    page, per_page = clamp_page(page, per_page)

    total = query.order_by(None).count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return rows, {
        "page": page,
        "per_page": per_page,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }
