import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated
from django.db import transaction
from django.db.models import Q
from django.shortcuts import get_object_or_404

from commerce.core.pagination import paginate
from commerce.core.permissions import IsAdminRole
from commerce.core.throttling import ApiGeneralRateThrottle
from commerce.core.utils import create_audit_log
from .models import Coupon
from .serializers import CouponSerializer, CouponUsageSerializer, CouponApplySerializer
from .services import evaluate_coupon

logger = logging.getLogger(__name__)


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([ApiGeneralRateThrottle])
def coupon_apply(request):
    """Validate a coupon against the cart and return the discount it gives"""
    serializer = CouponApplySerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    result = evaluate_coupon(
        data['code'], data['items'], data['subtotal'],
        user=request.user, currency=data['currency'],
    )

    if result['discount_amount'] > 0:
        message = f"Discount of {result['discount_amount']} {data['currency']} applied"
    elif result['free_shipping']:
        message = 'Free shipping applied'
    else:
        message = 'Coupon applied'

    return Response({
        'coupon_id': result['coupon_id'],
        'code': result['code'],
        'name': result['name'],
        'discount_type': result['discount_type'],
        'discount_value': str(result['discount_value']),
        'discount_amount': str(result['discount_amount']),
        'eligible_subtotal': str(result['eligible_subtotal']),
        'free_shipping': result['free_shipping'],
        'message': message,
    })


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def coupon_list_create(request):
    """List coupons (filters: q, status, discount_type) or create one"""
    if request.method == 'GET':
        queryset = Coupon.objects.select_related('created_by').prefetch_related('products', 'categories', 'customers')
        search = request.query_params.get('q')
        if search:
            queryset = queryset.filter(Q(code__icontains=search) | Q(name__icontains=search))
        coupon_status = request.query_params.get('status')
        if coupon_status:
            queryset = queryset.filter(status=coupon_status.upper())
        discount_type = request.query_params.get('discount_type')
        if discount_type:
            queryset = queryset.filter(discount_type=discount_type.upper())
        return paginate(request, queryset.order_by('-created_at'), CouponSerializer)

    else:  # POST
        serializer = CouponSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        with transaction.atomic():
            coupon = serializer.save(created_by=request.user)
            create_audit_log(
                request=request,
                action='COUPON_CREATED',
                model_name='Coupon',
                object_id=str(coupon.id),
                object_name=coupon.name,
                object_reference=coupon.code,
                changes={'discount_type': coupon.discount_type, 'discount_value': str(coupon.discount_value)},
            )
        logger.info(f"Coupon {coupon.code} created by {request.user.username}")
        return Response(CouponSerializer(coupon).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def coupon_detail(request, pk):
    """Get, update or delete a coupon. Coupons that were already used are deactivated instead of deleted"""
    coupon = get_object_or_404(Coupon, pk=pk)

    if request.method == 'GET':
        data = CouponSerializer(coupon).data
        data['usages'] = CouponUsageSerializer(coupon.usages.select_related('order')[:50], many=True).data
        return Response(data)

    elif request.method == 'PATCH':
        serializer = CouponSerializer(coupon, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        coupon = serializer.save()
        create_audit_log(
            request=request,
            action='update',
            model_name='Coupon',
            object_id=str(coupon.id),
            object_name=coupon.name,
            object_reference=coupon.code,
            changes={key: str(value) for key, value in request.data.items()},
        )
        return Response(CouponSerializer(coupon).data)

    else:  # DELETE
        if coupon.usages.exists():
            coupon.status = 'INACTIVE'
            coupon.save(update_fields=['status', 'updated_at'])
            return Response({'deactivated': True, 'id': coupon.id})
        create_audit_log(
            request=request,
            action='delete',
            model_name='Coupon',
            object_id=str(coupon.id),
            object_name=coupon.name,
            object_reference=coupon.code,
        )
        coupon.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
