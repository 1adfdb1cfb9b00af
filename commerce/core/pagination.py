from django.core.paginator import Paginator, EmptyPage
from rest_framework.response import Response

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def _positive_int(value, default):
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def paginate(request, queryset, serializer_class, page_size=DEFAULT_PAGE_SIZE, max_page_size=MAX_PAGE_SIZE,
             context=None, extra=None):
    """
    Paginate a queryset with django's Paginator and return the standard list response:
    results, count, next, previous, page, page_size, total_pages.

    `limit` and `page_size` query params are both accepted.
    """
    page = _positive_int(request.query_params.get('page'), 1)
    limit = _positive_int(
        request.query_params.get('limit') or request.query_params.get('page_size'),
        page_size,
    )
    limit = min(limit, max_page_size)

    paginator = Paginator(queryset, limit)
    try:
        page_obj = paginator.page(page)
    except EmptyPage:
        page_obj = paginator.page(paginator.num_pages or 1)
        page = page_obj.number

    serializer_context = {'request': request}
    if context:
        serializer_context.update(context)
    serializer = serializer_class(page_obj.object_list, many=True, context=serializer_context)
    data = {
        'results': serializer.data,
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page,
        'page_size': limit,
        'total_pages': paginator.num_pages,
    }
    if extra:
        data.update(extra)
    return Response(data)
