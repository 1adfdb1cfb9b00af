from decimal import Decimal

from django.contrib.auth import get_user_model
from rest_framework import serializers

from commerce.catalog.models import Category, Product
from .models import Coupon, CouponUsage


class CouponSerializer(serializers.ModelSerializer):
    products = serializers.PrimaryKeyRelatedField(many=True, queryset=Product.objects.all(), required=False)
    categories = serializers.PrimaryKeyRelatedField(many=True, queryset=Category.objects.all(), required=False)
    customers = serializers.PrimaryKeyRelatedField(many=True, queryset=get_user_model().objects.all(), required=False)
    created_by_name = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = Coupon
        fields = ['id', 'code', 'name', 'description', 'discount_type', 'discount_value', 'max_discount',
                  'min_order_amount', 'min_quantity', 'usage_limit', 'used_count', 'usage_per_user',
                  'target_type', 'products', 'categories', 'customers', 'status', 'starts_at', 'expires_at',
                  'created_by', 'created_by_name', 'created_at', 'updated_at']
        read_only_fields = ['used_count', 'created_by', 'created_at', 'updated_at']

    def validate_code(self, value):
        code = value.strip().upper()
        queryset = Coupon.objects.filter(code=code)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('A coupon with this code already exists')
        return code

    def validate(self, attrs):
        discount_type = attrs.get('discount_type', getattr(self.instance, 'discount_type', 'PERCENTAGE'))
        discount_value = attrs.get('discount_value', getattr(self.instance, 'discount_value', None))
        if discount_value is not None and discount_value < 0:
            raise serializers.ValidationError({'discount_value': 'Must be zero or greater'})
        if discount_type == 'PERCENTAGE' and discount_value is not None and discount_value > 100:
            raise serializers.ValidationError({'discount_value': 'Percentage cannot exceed 100'})

        starts_at = attrs.get('starts_at', getattr(self.instance, 'starts_at', None))
        expires_at = attrs.get('expires_at', getattr(self.instance, 'expires_at', None))
        if starts_at and expires_at and expires_at <= starts_at:
            raise serializers.ValidationError({'expires_at': 'Must be after starts_at'})

        target_type = attrs.get('target_type', getattr(self.instance, 'target_type', 'ALL'))
        required_targets = {
            'SPECIFIC_PRODUCTS': 'products',
            'SPECIFIC_CATEGORIES': 'categories',
            'SPECIFIC_CUSTOMERS': 'customers',
        }
        field = required_targets.get(target_type)
        if field and self.instance is None and not attrs.get(field):
            raise serializers.ValidationError({field: f'Required for target type {target_type}'})
        return attrs


class CouponUsageSerializer(serializers.ModelSerializer):
    order_code = serializers.CharField(source='order.code', read_only=True, default=None)

    class Meta:
        model = CouponUsage
        fields = ['id', 'coupon', 'user', 'order', 'order_code', 'discount_amount', 'created_at']


class CartItemSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.DecimalField(max_digits=15, decimal_places=3, min_value=Decimal('0.001'))
    price = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=Decimal('0'))
    category_id = serializers.IntegerField(required=False, allow_null=True)


class CouponApplySerializer(serializers.Serializer):
    code = serializers.CharField(max_length=50)
    items = CartItemSerializer(many=True)
    subtotal = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=Decimal('0'))
    currency = serializers.ChoiceField(choices=['VND', 'USD'], default='VND')

    def validate_code(self, value):
        return value.strip().upper()
