from dataclasses import dataclass

from clinic_backend.core import config
from clinic_backend.core.errors import InvalidQueryError

SORT_ORDERS = ('asc', 'desc')


@dataclass(frozen=True)
class PageOptions:
    page: int
    limit: int
    skip: int
    sort_by: str | None
    sort_order: str


def calculate_pagination(
    page: int | None = None,
    limit: int | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
) -> PageOptions:
    page = 1 if page is None else page
    limit = config.DEFAULT_PAGE_LIMIT if limit is None else limit

    if page < 1:
        raise InvalidQueryError('page must be 1 or greater.', page=page)
    if limit < 1:
        raise InvalidQueryError('limit must be 1 or greater.', limit=limit)
    limit = min(limit, config.MAX_PAGE_LIMIT)

    normalized_order = (sort_order or 'desc').strip().lower()
    if normalized_order not in SORT_ORDERS:
        raise InvalidQueryError('sort_order must be asc or desc.', sort_order=sort_order)

    return PageOptions(
        page=page,
        limit=limit,
        skip=(page - 1) * limit,
        sort_by=sort_by.strip() if sort_by else None,
        sort_order=normalized_order,
    )


def order_clause(options: PageOptions, sortable: dict, default: str):
    """Resolve ``options.sort_by`` against an allow-list of sortable columns."""
    key = options.sort_by or default
    if key not in sortable:
        raise InvalidQueryError(
            f'Cannot sort by {key}.',
            sort_by=key,
            allowed=sorted(sortable),
        )
    column = sortable[key]
    return column.asc() if options.sort_order == 'asc' else column.desc()


def page_payload(total: int, options: PageOptions, data: list) -> dict:
    return {
        'meta': {'total': total, 'page': options.page, 'limit': options.limit},
        'data': data,
    }
