import logging
from decimal import Decimal

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import Q, Sum, Count
from django.db.models.functions import Coalesce
from django.shortcuts import get_object_or_404
from django.utils import timezone

from commerce.core.csv_export import csv_response
from commerce.core.pagination import paginate
from commerce.core.permissions import HasPermission
from commerce.orders.models import Order
from .models import CustomerProfile, CustomerAddress
from .serializers import CustomerProfileSerializer, CustomerAddressSerializer, CustomerListSerializer

logger = logging.getLogger(__name__)

MONTH_NAMES = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']

STATUS_GROUPS = {
    'pending': ('PENDING_CONFIRMATION',),
    'confirmed': ('CONFIRMED', 'PACKING'),
    'shipped': ('SHIPPED',),
    'delivered': ('DELIVERED',),
}


def _clear_other_defaults(address):
    """Only one default address per kind and user"""
    if address.is_default:
        CustomerAddress.objects.filter(
            user_id=address.user_id, kind=address.kind, is_default=True
        ).exclude(pk=address.pk).update(is_default=False)


# Profile views
@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def customer_profile(request):
    """Get or update the current customer's profile"""
    profile = CustomerProfile.for_user(request.user)

    if request.method == 'GET':
        return Response(CustomerProfileSerializer(profile).data)
    else:  # PATCH
        serializer = CustomerProfileSerializer(profile, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# Address views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def address_list_create(request):
    """List the current user's addresses (?kind=) or add a new one"""
    if request.method == 'GET':
        addresses = CustomerAddress.objects.filter(user=request.user)
        kind = request.query_params.get('kind')
        if kind:
            addresses = addresses.filter(kind=kind.upper())
        return Response(CustomerAddressSerializer(addresses, many=True).data)
    else:  # POST
        serializer = CustomerAddressSerializer(data=request.data)
        if serializer.is_valid():
            with transaction.atomic():
                address = serializer.save(user=request.user)
                _clear_other_defaults(address)
            return Response(CustomerAddressSerializer(address).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def address_detail(request, pk):
    address = get_object_or_404(CustomerAddress, pk=pk, user=request.user)

    if request.method == 'GET':
        return Response(CustomerAddressSerializer(address).data)
    elif request.method == 'PATCH':
        serializer = CustomerAddressSerializer(address, data=request.data, partial=True)
        if serializer.is_valid():
            with transaction.atomic():
                address = serializer.save()
                _clear_other_defaults(address)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        address.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


def _month_start(now, months_back):
    year, month = now.year, now.month - months_back
    while month <= 0:
        month += 12
        year -= 1
    return now.replace(year=year, month=month, day=1, hour=0, minute=0, second=0, microsecond=0)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def customer_dashboard(request):
    """Dashboard stats for the signed-in customer"""
    user = request.user
    now = timezone.localtime()
    orders = Order.objects.filter(user=user)

    totals = orders.aggregate(count=Count('id'), spent=Coalesce(Sum('total'), Decimal('0')))
    total_orders = totals['count']
    total_spent = totals['spent']
    avg_order_value = (total_spent / total_orders) if total_orders else Decimal('0')

    orders_by_status = {
        group: orders.filter(order_status__in=statuses).count()
        for group, statuses in STATUS_GROUPS.items()
    }

    # Last 6 months including the current one, oldest first
    months = [_month_start(now, back) for back in range(5, -1, -1)]
    spending = {(m.year, m.month): Decimal('0') for m in months}
    for created_at, total in orders.filter(created_at__gte=months[0]).values_list('created_at', 'total'):
        local = timezone.localtime(created_at)
        key = (local.year, local.month)
        if key in spending:
            spending[key] += total
    monthly_spending = [
        {'month': MONTH_NAMES[m.month - 1], 'year': m.year, 'amount': spending[(m.year, m.month)]}
        for m in months
    ]

    recent_orders = [
        {
            'id': order.id,
            'code': order.code,
            'created_at': order.created_at,
            'total': order.total,
            'status': order.order_status,
            'item_count': order.item_count,
        }
        for order in orders.annotate(item_count=Count('items')).order_by('-created_at')[:5]
    ]

    profile = CustomerProfile.objects.filter(user=user).first()
    return Response({
        'user': {
            'name': user.display_name,
            'email': user.email,
            'member_since': user.date_joined,
        },
        'stats': {
            'total_orders': total_orders,
            'total_spent': total_spent,
            'avg_order_value': avg_order_value.quantize(Decimal('0.01')),
            'pending_orders': orders_by_status['pending'],
            'delivered_orders': orders_by_status['delivered'],
            'loyalty_points': profile.loyalty_points if profile else 0,
        },
        'orders_by_status': orders_by_status,
        'monthly_spending': monthly_spending,
        'recent_orders': recent_orders,
    })


# Admin customer views
def _customer_queryset(request):
    queryset = CustomerProfile.objects.select_related('user').annotate(
        order_count=Count('user__orders'),
        total_spent=Coalesce(
            Sum('user__orders__total', filter=~Q(user__orders__order_status__in=['CANCELED', 'FAILED'])),
            Decimal('0'),
        ),
    )
    search = request.query_params.get('q')
    customer_type = request.query_params.get('customer_type')
    if search:
        queryset = queryset.filter(
            Q(user__username__icontains=search) |
            Q(user__email__icontains=search) |
            Q(user__first_name__icontains=search) |
            Q(user__last_name__icontains=search) |
            Q(company_name__icontains=search) |
            Q(tax_id__icontains=search)
        )
    if customer_type:
        queryset = queryset.filter(customer_type=customer_type.upper())
    return queryset.order_by('-created_at')


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('customers:list')])
def customer_list(request):
    """Admin customer list (filters: q, customer_type)"""
    return paginate(request, _customer_queryset(request), CustomerListSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('customers:export')])
def customer_export(request):
    rows = (
        [
            c.user.username, c.user.email, c.user.display_name, c.user.phone, c.customer_type,
            c.company_name, c.tax_id, c.loyalty_points, c.order_count, c.total_spent,
        ]
        for c in _customer_queryset(request)
    )
    return csv_response(
        'customers.csv',
        ['Username', 'Email', 'Name', 'Phone', 'Type', 'Company', 'Tax ID', 'Loyalty Points', 'Orders', 'Total Spent'],
        rows,
    )
