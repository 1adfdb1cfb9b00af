import logging
from datetime import datetime, time

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated
from django.db.models import Q, Count
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date

from commerce.core.csv_export import csv_response
from commerce.core.i18n import get_request_locale
from commerce.core.pagination import paginate
from commerce.core.permissions import HasPermission, user_has_permission
from commerce.core.throttling import ApiAdminRateThrottle, CheckoutRateThrottle
from .models import Order
from .serializers import (
    OrderListSerializer, OrderDetailSerializer, CustomerOrderSerializer, PaymentSerializer,
    OrderStatusHistorySerializer, CheckoutSerializer, StatusUpdateSerializer, BulkStatusSerializer,
    PaymentCreateSerializer, ShippingUpdateSerializer, OrderNoteSerializer,
)
from .state_machine import ORDER_STATUSES
from . import services

logger = logging.getLogger(__name__)

ORDER_SORTS = {
    'newest': ('-created_at', '-id'),
    'oldest': ('created_at', 'id'),
    'total_desc': ('-total', '-created_at'),
    'total_asc': ('total', '-created_at'),
}

ORDER_FILTER_FIELDS = ('order_status', 'payment_state', 'fulfillment_status', 'customer_kind')


def _day_bound(value, end=False):
    day = parse_date(value) if value else None
    if day is None:
        return None
    return timezone.make_aware(datetime.combine(day, time.max if end else time.min))


def _admin_order_queryset(request):
    """Orders filtered by q, status fields and created date range"""
    queryset = Order.objects.annotate(item_count=Count('items'))
    search = request.query_params.get('q')
    if search:
        queryset = queryset.filter(
            Q(code__icontains=search) |
            Q(customer_name__icontains=search) |
            Q(email__icontains=search) |
            Q(company_name__icontains=search)
        )
    for field in ORDER_FILTER_FIELDS:
        value = request.query_params.get(field)
        if value:
            queryset = queryset.filter(**{field: value.upper()})

    date_from = _day_bound(request.query_params.get('from'))
    date_to = _day_bound(request.query_params.get('to'), end=True)
    if date_from:
        queryset = queryset.filter(created_at__gte=date_from)
    if date_to:
        queryset = queryset.filter(created_at__lte=date_to)

    sort = request.query_params.get('sort') or 'newest'
    return queryset.order_by(*ORDER_SORTS.get(sort, ORDER_SORTS['newest']))


# Storefront
@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([CheckoutRateThrottle])
def checkout(request):
    """Create an order from the cart. Idempotency-Key header (or idempotency_key) makes retries safe"""
    serializer = CheckoutSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    idempotency_key = request.headers.get('Idempotency-Key') or data.get('idempotency_key') or None

    order, created = services.checkout(data, user=request.user, idempotency_key=idempotency_key, request=request)
    return Response(
        {'id': order.id, 'code': order.code, 'total': str(order.total), 'currency': order.currency,
         'order_status': order.order_status, 'created': created},
        status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_order_list(request):
    """The signed-in customer's orders (filter: order_status)"""
    queryset = Order.objects.filter(user=request.user).prefetch_related('items', 'status_history')
    order_status = request.query_params.get('order_status')
    if order_status:
        queryset = queryset.filter(order_status=order_status.upper())
    return paginate(request, queryset.order_by('-created_at'), CustomerOrderSerializer,
                    context={'locale': get_request_locale(request)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_order_detail(request, code):
    order = get_object_or_404(Order.objects.prefetch_related('items', 'status_history'), code=code, user=request.user)
    return Response(CustomerOrderSerializer(order, context={'locale': get_request_locale(request)}).data)


# Admin
@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('orders:list')])
@throttle_classes([ApiAdminRateThrottle])
def admin_order_list(request):
    """Order list for the back-office (filters: q, order_status, payment_state, fulfillment_status,
    customer_kind, from, to; sort: newest|oldest|total_desc|total_asc)"""
    order_status = request.query_params.get('order_status')
    if order_status and order_status.upper() not in ORDER_STATUSES:
        return Response({'error': f"Unknown order_status {order_status}"}, status=status.HTTP_400_BAD_REQUEST)
    counts = dict(Order.objects.order_by().values_list('order_status').annotate(total=Count('id')))
    return paginate(
        request, _admin_order_queryset(request), OrderListSerializer,
        context={'locale': get_request_locale(request)},
        extra={'status_counts': {key: counts.get(key, 0) for key in ORDER_STATUSES}},
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('orders:export')])
def admin_order_export(request):
    """CSV export with the same filters as the admin list"""
    rows = (
        [
            order.code, order.created_at.isoformat(), order.customer_name, order.company_name, order.email,
            order.phone, order.order_status, order.payment_state, order.accounting_status, order.total,
            order.paid_amount, order.outstanding_amount, order.due_date.isoformat() if order.due_date else '',
        ]
        for order in _admin_order_queryset(request).iterator()
    )
    return csv_response(
        'orders.csv',
        ['Code', 'Created', 'Customer', 'Company', 'Email', 'Phone', 'Status', 'Payment', 'Accounting',
         'Total', 'Paid', 'Outstanding', 'Due Date'],
        rows,
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('orders:read')])
def admin_order_detail(request, pk):
    order = get_object_or_404(
        Order.objects.annotate(item_count=Count('items')).prefetch_related(
            'items__product', 'status_history__actor', 'payments__created_by'
        ),
        pk=pk,
    )
    return Response(OrderDetailSerializer(order, context={'locale': get_request_locale(request)}).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasPermission('orders:update')])
def admin_order_status(request, pk):
    """Change an order's status; force skips the transition check"""
    serializer = StatusUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    if data['force'] and not user_has_permission(request.user, 'orders:manage'):
        return Response({'error': 'Forcing a status change requires orders:manage'},
                        status=status.HTTP_403_FORBIDDEN)
    services.update_status(
        pk, data['status'], user=request.user, note_internal=data['note_internal'],
        note_customer=data['note_customer'], cancel_reason=data['cancel_reason'], force=data['force'],
        request=request,
    )
    order = Order.objects.prefetch_related('items', 'status_history', 'payments').get(pk=pk)
    return Response(OrderDetailSerializer(order, context={'locale': get_request_locale(request)}).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasPermission('orders:update')])
def admin_order_bulk_status(request):
    serializer = BulkStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    results = services.bulk_update_status(data['ids'], data['status'], user=request.user, note=data['note'],
                                          request=request)
    return Response({
        'results': results,
        'succeeded': sum(1 for result in results if result['success']),
        'failed': sum(1 for result in results if not result['success']),
    })


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasPermission('orders:read')])
def admin_order_payments(request, pk):
    """List payments of an order or record a new one"""
    order = get_object_or_404(Order, pk=pk)

    if request.method == 'GET':
        payments = order.payments.select_related('created_by')
        return Response({
            'results': PaymentSerializer(payments, many=True).data,
            'total': str(order.total),
            'paid_amount': str(order.paid_amount),
            'outstanding_amount': str(order.outstanding_amount),
        })

    else:  # POST
        if not user_has_permission(request.user, 'orders:update'):
            return Response({'error': 'Missing permission: orders:update'}, status=status.HTTP_403_FORBIDDEN)
        serializer = PaymentCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data
        payment, order = services.add_payment(
            order.id, data['amount'], data['method'], payment_date=data.get('payment_date'),
            reference=data['reference'], note=data['note'], user=request.user, request=request,
        )
        return Response({
            'payment': PaymentSerializer(payment).data,
            'paid_amount': str(order.paid_amount),
            'outstanding_amount': str(order.outstanding_amount),
            'payment_state': order.payment_state,
            'accounting_status': order.accounting_status,
        }, status=status.HTTP_201_CREATED)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, HasPermission('orders:update')])
def admin_order_shipping(request, pk):
    serializer = ShippingUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    order = services.update_shipping(pk, user=request.user, request=request, **serializer.validated_data)
    return Response({'id': order.id, 'carrier': order.carrier, 'tracking_code': order.tracking_code})


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasPermission('orders:update')])
def admin_order_notes(request, pk):
    serializer = OrderNoteSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    entry = services.add_note(pk, user=request.user, request=request, **serializer.validated_data)
    return Response(OrderStatusHistorySerializer(entry).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasPermission('orders:manage')])
def admin_order_release_stock(request, pk):
    """Release reserved stock for an order without changing its status"""
    order = get_object_or_404(Order, pk=pk)
    result = services.release_stock(order, user=request.user)
    return Response(result)
