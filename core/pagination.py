import math

from rest_framework.pagination import PageNumberPagination

from core.responses import api_response


class StandardResultsSetPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = 'limit'
    max_page_size = 100

    def get_paginated_response(self, data):
        total = self.page.paginator.count
        page_size = self.page.paginator.per_page
        view = self.request.parser_context.get('view') if self.request else None
        return api_response(
            getattr(view, 'list_message', 'Results retrieved successfully'),
            {
                getattr(view, 'list_key', 'results'): data,
                'pagination': {
                    'current_page': self.page.number,
                    'total_pages': math.ceil(total / page_size) if page_size else 0,
                    'total_items': total,
                    'has_next': self.page.has_next(),
                    'has_prev': self.page.has_previous(),
                },
            },
        )


class OptionalPagination(StandardResultsSetPagination):
    """Paginate only when the client sends both ``page`` and ``limit``."""

    def paginate_queryset(self, queryset, request, view=None):
        if self.page_query_param not in request.query_params or \
                self.page_size_query_param not in request.query_params:
            return None
        return super().paginate_queryset(queryset, request, view=view)
