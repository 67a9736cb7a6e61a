from flask import request
from sqlalchemy import or_

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


def search_filter(query, model, search_term, search_columns):
    """Case-insensitive substring match of ``search_term`` against any of ``search_columns``."""
    search_term = (search_term or "").strip()
    if not search_term:
        return query
    return query.filter(or_(*[
        getattr(model, col).ilike(f"%{search_term}%") for col in search_columns
    ]))


def paginate_request(query, model, search_columns):
    """
    Applies ?search=, ?page= and ?per_page= from the current request.

    Returns (items, meta) where meta holds total, page, pages and per_page.
    """
    page = request.args.get("page", 1, type=int) or 1
    per_page = request.args.get("per_page", DEFAULT_PER_PAGE, type=int) or DEFAULT_PER_PAGE
    page = max(page, 1)
    per_page = min(max(per_page, 1), MAX_PER_PAGE)

    query = search_filter(query, model, request.args.get("search"), search_columns)
    paginated = query.paginate(page=page, per_page=per_page, error_out=False)
    return paginated.items, {
        "total": paginated.total,
        "page": paginated.page,
        "pages": paginated.pages,
        "per_page": per_page,
    }
