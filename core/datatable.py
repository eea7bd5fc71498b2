"""
Datatable query service.

Applies search, sorting and pagination from request query params to a
queryset and returns a page payload the front end can render directly.
"""
import math
from functools import reduce
from operator import or_
from typing import Iterable, Mapping, Optional, Sequence

from django.db.models import Q, QuerySet

from core.constants import DEFAULT_PER_PAGE, DEFAULT_PER_PAGE_OPTIONS

SORT_DIRECTIONS = ('asc', 'desc')


class DatatableQueryService:
    """Search, sort and paginate querysets from query params"""

    def apply_search(self, queryset: QuerySet, search_fields: Sequence[str],
                     search_term: Optional[str]) -> QuerySet:
        """OR an icontains lookup across search_fields"""
        if not search_term or not search_fields:
            return queryset

        condition = reduce(or_, (Q(**{f"{field}__icontains": search_term}) for field in search_fields))
        return queryset.filter(condition)

    def apply_sorting(self, queryset: QuerySet, params: Mapping, allowed_sorts: Iterable[str],
                      default_sort: str = 'created_at', default_direction: str = 'desc') -> QuerySet:
        """Order by the requested column, falling back to the defaults for unknown values"""
        allowed_sorts = list(allowed_sorts)
        if default_sort not in allowed_sorts:
            raise ValueError(f"DatatableQueryService: default sort '{default_sort}' is not one of {allowed_sorts}")

        sort = params.get('sort') or default_sort
        direction = params.get('direction') or default_direction

        if sort not in allowed_sorts:
            sort = default_sort
        if direction not in SORT_DIRECTIONS:
            direction = default_direction or 'desc'

        prefix = '-' if direction == 'desc' else ''
        return queryset.order_by(f"{prefix}{sort}")

    def resolve_per_page(self, params: Mapping, allowed_per_page: Sequence[int] = DEFAULT_PER_PAGE_OPTIONS,
                         default_per_page: int = DEFAULT_PER_PAGE) -> int:
        requested = params.get('per_page')
        if requested is None:
            return default_per_page
        try:
            requested = int(requested)
        except (TypeError, ValueError):
            return default_per_page
        return requested if requested in allowed_per_page else default_per_page

    def apply_pagination(self, queryset: QuerySet, params: Mapping,
                         allowed_per_page: Sequence[int] = DEFAULT_PER_PAGE_OPTIONS,
                         default_per_page: int = DEFAULT_PER_PAGE) -> dict:
        """
        Slice the queryset into a page.

        Returns:
            dict with data (model instances), current_page, last_page,
            per_page, total, from and to
        """
        per_page = self.resolve_per_page(params, allowed_per_page, default_per_page)
        total = queryset.count()
        last_page = max(1, math.ceil(total / per_page))

        try:
            page = int(params.get('page', 1))
        except (TypeError, ValueError):
            page = 1
        page = min(max(page, 1), last_page)

        offset = (page - 1) * per_page
        items = list(queryset[offset:offset + per_page])

        return {
            'data': items,
            'current_page': page,
            'last_page': last_page,
            'per_page': per_page,
            'total': total,
            'from': offset + 1 if items else None,
            'to': offset + len(items) if items else None,
        }

    def build(self, queryset: QuerySet, params: Mapping, search_fields: Sequence[str] = (),
              allowed_sorts: Iterable[str] = ('created_at',), default_sort: str = 'created_at',
              default_direction: str = 'desc', allowed_per_page: Sequence[int] = DEFAULT_PER_PAGE_OPTIONS,
              default_per_page: int = DEFAULT_PER_PAGE) -> dict:
        """Search, then sort, then paginate"""
        queryset = self.apply_search(queryset, search_fields, params.get('search'))
        queryset = self.apply_sorting(queryset, params, allowed_sorts, default_sort, default_direction)
        return self.apply_pagination(queryset, params, allowed_per_page, default_per_page)


def serialize_page(page: dict, serializer_class, context=None) -> dict:
    """Replace model instances in a page payload with serialized data"""
    return {**page, 'data': serializer_class(page['data'], many=True, context=context or {}).data}
