import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from commerce.core.csv_export import csv_response
from commerce.core.permissions import HasPermission, user_has_permission
from . import analytics, planning

logger = logging.getLogger(__name__)


def _range_params(request):
    params = request.query_params
    range_name = params.get('range') or analytics.DEFAULT_RANGE
    date_from = params.get('from') or None
    date_to = params.get('to') or None
    # Validate before touching the cache so bad input is never cached
    analytics.parse_date_range(range_name, date_from, date_to)
    return range_name, date_from, date_to


def _receivable_params(request):
    params = request.query_params
    overdue_only = params.get('overdue_only') in ('1', 'true')
    due_in_days = params.get('due_in_days')
    if due_in_days not in (None, ''):
        try:
            due_in_days = int(due_in_days)
        except ValueError:
            return None, Response({'error': 'due_in_days must be an integer'}, status=status.HTTP_400_BAD_REQUEST)
        if due_in_days < 0:
            return None, Response({'error': 'due_in_days must be zero or greater'},
                                  status=status.HTTP_400_BAD_REQUEST)
    else:
        due_in_days = None
    return (overdue_only, due_in_days, (params.get('q') or '').strip() or None), None


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('reports:read')])
def revenue_dashboard(request):
    """Revenue, debt, AOV, daily series, status breakdown and top products (range=today|7d|30d|month|custom)"""
    return Response(analytics.revenue_dashboard(*_range_params(request)))


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('reports:read')])
def receivables(request):
    """Open receivables (filters: overdue_only, due_in_days, q)"""
    params, error = _receivable_params(request)
    if error:
        return error
    return Response(analytics.receivables(*params))


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('reports:read')])
def inventory_analytics(request):
    return Response(analytics.inventory_analytics(*_range_params(request)))


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('reports:read')])
def customer_analytics(request):
    return Response(analytics.customer_analytics(*_range_params(request)))


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('reports:read')])
def dashboard_summary(request):
    return Response(analytics.dashboard_summary())


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('reports:export')])
def revenue_export(request):
    series = analytics.revenue_series(*_range_params(request))
    rows = ([day['date'], day['revenue'], day['payments']] for day in series)
    return csv_response('revenue.csv', ['Date', 'Revenue', 'Payments'], rows)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('reports:export')])
def debt_export(request):
    params, error = _receivable_params(request)
    if error:
        return error
    data = analytics.receivables(*params)
    rows = (
        [
            row['code'], row['customer_name'], row['company_name'], row['total'], row['paid_amount'],
            row['outstanding_amount'], row['due_date'] or '', row['days_overdue'],
        ]
        for row in data['results']
    )
    return csv_response(
        'debt.csv',
        ['Order Code', 'Customer', 'Company', 'Total', 'Paid', 'Outstanding', 'Due Date', 'Days Overdue'],
        rows,
    )


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, HasPermission('reports:read')])
def revenue_plan(request):
    """
    GET ?month=YYYY-MM: monthly target against payments received, with the five months before.
    PUT {month, target}: set a monthly target; target 0 clears it.
    """
    if request.method == 'PUT':
        if not user_has_permission(request.user, 'settings:update'):
            return Response({'error': 'You do not have permission to change revenue targets'},
                            status=status.HTTP_403_FORBIDDEN)
        month = request.data.get('month')
        planning.set_revenue_target(month, request.data.get('target'), request=request)
        return Response(analytics.revenue_plan.uncached(month))

    month = request.query_params.get('month') or None
    # Validate before touching the cache so bad input is never cached
    planning.parse_month(month)
    return Response(analytics.revenue_plan(month))


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('reports:read')])
def marketing_analytics(request):
    """Coupons, reviews, contact response rate and top blog posts (range=today|7d|30d|month|custom)"""
    return Response(analytics.marketing_analytics(*_range_params(request)))
