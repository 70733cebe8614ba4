from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class OptionalPageNumberPagination(PageNumberPagination):
    """Plain lists by default; paginated only when the client sends ?page_size=."""
    page_size = None
    page_size_query_param = "page_size"
    max_page_size = 100


class PaginationMixin:
    """Shared helper to reduce pagination boilerplate."""

    def paginate_and_respond(self, queryset, serializer_cls, many=True, context=None):
        page = self.paginate_queryset(queryset)
        context = context or {"request": self.request}
        serializer = serializer_cls(page if page is not None else queryset, many=many, context=context)
        if page is not None:
            return self.get_paginated_response(serializer.data)
        return Response(serializer.data)
