"""Offset/limit windows shared by the catalog and order listings"""
from .exceptions import ValidationFailed

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def parse_window(query_params, default_limit=DEFAULT_LIMIT, max_limit=MAX_LIMIT):
    """Read `limit` and `offset` from query params, clamped to sane bounds"""
    try:
        limit = int(query_params.get('limit', default_limit))
        offset = int(query_params.get('offset', 0))
    except (TypeError, ValueError):
        raise ValidationFailed('limit and offset must be integers.')
    limit = max(1, min(limit, max_limit))
    offset = max(0, offset)
    return limit, offset


def paginate(queryset, limit, offset):
    """
    Slice a queryset.

    Returns (items, total, has_more) where has_more is
    offset + len(items) < total.
    """
    total = queryset.count()
    items = list(queryset[offset:offset + limit])
    return items, total, offset + len(items) < total
