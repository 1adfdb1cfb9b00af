from decimal import Decimal

from rest_framework import serializers

from .models import Order, OrderItem, OrderStatusHistory, Payment
from .state_machine import ORDER_STATUSES, allowed_next, order_status_label, accounting_status_label


class OrderItemSerializer(serializers.ModelSerializer):
    product_slug = serializers.CharField(source='product.slug', read_only=True, default=None)

    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'product_slug', 'sku', 'name', 'unit_price', 'quantity', 'line_total']


class OrderStatusHistorySerializer(serializers.ModelSerializer):
    actor_name = serializers.CharField(source='actor.username', read_only=True, default=None)

    class Meta:
        model = OrderStatusHistory
        fields = ['id', 'from_status', 'to_status', 'actor', 'actor_name', 'note_internal', 'note_customer',
                  'created_at']


class CustomerStatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = ['id', 'from_status', 'to_status', 'note_customer', 'created_at']


class PaymentSerializer(serializers.ModelSerializer):
    created_by_name = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = Payment
        fields = ['id', 'order', 'amount', 'method', 'payment_date', 'reference', 'note', 'created_by',
                  'created_by_name', 'created_at']


class StatusLabelMixin:
    def _locale(self):
        return self.context.get('locale', 'vi')

    def get_order_status_label(self, obj):
        return order_status_label(obj.order_status, self._locale())

    def get_accounting_status_label(self, obj):
        return accounting_status_label(obj.accounting_status, self._locale())


class OrderListSerializer(StatusLabelMixin, serializers.ModelSerializer):
    order_status_label = serializers.SerializerMethodField()
    accounting_status_label = serializers.SerializerMethodField()
    item_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = Order
        fields = ['id', 'code', 'customer_name', 'email', 'phone', 'company_name', 'customer_kind',
                  'order_status', 'order_status_label', 'payment_state', 'fulfillment_status',
                  'accounting_status', 'accounting_status_label', 'currency', 'total', 'paid_amount',
                  'outstanding_amount', 'payment_method', 'due_date', 'item_count', 'created_at']


class OrderDetailSerializer(OrderListSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    status_history = OrderStatusHistorySerializer(many=True, read_only=True)
    payments = PaymentSerializer(many=True, read_only=True)
    allowed_next = serializers.SerializerMethodField()

    class Meta(OrderListSerializer.Meta):
        fields = OrderListSerializer.Meta.fields + [
            'user', 'buyer_type', 'tax_id', 'shipping_address', 'billing_address', 'subtotal', 'discount_total',
            'shipping_fee', 'coupon_code', 'note', 'cancel_reason', 'carrier', 'tracking_code', 'confirmed_at',
            'shipped_at', 'delivered_at', 'canceled_at', 'updated_at', 'items', 'status_history', 'payments',
            'allowed_next',
        ]

    def get_allowed_next(self, obj):
        return allowed_next(obj.order_status)


class CustomerOrderSerializer(StatusLabelMixin, serializers.ModelSerializer):
    """Order as the buyer sees it: no internal notes or actor names"""
    order_status_label = serializers.SerializerMethodField()
    items = OrderItemSerializer(many=True, read_only=True)
    status_history = CustomerStatusHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = ['id', 'code', 'order_status', 'order_status_label', 'payment_state', 'fulfillment_status',
                  'currency', 'subtotal', 'discount_total', 'shipping_fee', 'total', 'paid_amount',
                  'outstanding_amount', 'payment_method', 'coupon_code', 'shipping_address', 'billing_address',
                  'carrier', 'tracking_code', 'due_date', 'created_at', 'items', 'status_history']


class AddressSnapshotSerializer(serializers.Serializer):
    recipient_name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    recipient_email = serializers.EmailField(required=False, allow_blank=True)
    recipient_phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    address_line1 = serializers.CharField(max_length=300, required=False, allow_blank=True)
    address_line2 = serializers.CharField(max_length=300, required=False, allow_blank=True)
    ward = serializers.CharField(max_length=100, required=False, allow_blank=True)
    district = serializers.CharField(max_length=100, required=False, allow_blank=True)
    city = serializers.CharField(max_length=100, required=False, allow_blank=True)
    province = serializers.CharField(max_length=100, required=False, allow_blank=True)
    postal_code = serializers.CharField(max_length=20, required=False, allow_blank=True)
    country = serializers.CharField(max_length=100, required=False, allow_blank=True)
    company_name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    tax_id = serializers.CharField(max_length=50, required=False, allow_blank=True)


class BuyerInfoSerializer(serializers.Serializer):
    customer_type = serializers.ChoiceField(choices=['PERSONAL', 'BUSINESS'])
    company_name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    tax_id = serializers.CharField(max_length=50, required=False, allow_blank=True)
    company_email = serializers.EmailField(required=False, allow_blank=True)

    def validate(self, attrs):
        if attrs['customer_type'] == 'BUSINESS' and not attrs.get('company_name'):
            raise serializers.ValidationError({'company_name': 'Required for business buyers'})
        return attrs


class CheckoutItemSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3)
    price = serializers.DecimalField(max_digits=15, decimal_places=2, required=False, allow_null=True)

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError('Quantity must be greater than 0')
        return value

    def validate_price(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError('Price must be zero or greater')
        return value


class CheckoutSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=2, max_length=200)
    email = serializers.EmailField()
    phone = serializers.CharField(min_length=8, max_length=20)
    address = serializers.CharField(max_length=300)
    city = serializers.CharField(max_length=100)
    buyer_info = BuyerInfoSerializer(required=False)
    shipping = AddressSnapshotSerializer(required=False)
    billing = AddressSnapshotSerializer(required=False)
    items = CheckoutItemSerializer(many=True, allow_empty=True)
    shipping_fee = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=Decimal('0'),
                                            required=False, default=Decimal('0'))
    coupon_code = serializers.CharField(max_length=50, required=False, allow_blank=True)
    notes = serializers.CharField(max_length=2000, required=False, allow_blank=True)
    payment_method = serializers.ChoiceField(choices=['COD', 'BANK_TRANSFER'], default='COD')
    idempotency_key = serializers.CharField(max_length=255, required=False, allow_blank=True)


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ORDER_STATUSES)
    note_internal = serializers.CharField(max_length=2000, required=False, allow_blank=True, default='')
    note_customer = serializers.CharField(max_length=2000, required=False, allow_blank=True, default='')
    cancel_reason = serializers.CharField(max_length=1000, required=False, allow_blank=True, default='')
    force = serializers.BooleanField(default=False)


class BulkStatusSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(), min_length=1, max_length=100)
    status = serializers.ChoiceField(choices=ORDER_STATUSES)
    note = serializers.CharField(max_length=2000, required=False, allow_blank=True, default='')


class PaymentCreateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=15, decimal_places=2)
    method = serializers.ChoiceField(choices=[choice for choice, _ in Payment.METHOD_CHOICES])
    payment_date = serializers.DateTimeField(required=False, allow_null=True)
    reference = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    note = serializers.CharField(max_length=2000, required=False, allow_blank=True, default='')


class ShippingUpdateSerializer(serializers.Serializer):
    carrier = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    tracking_code = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')


class OrderNoteSerializer(serializers.Serializer):
    note_internal = serializers.CharField(max_length=2000, required=False, allow_blank=True, default='')
    note_customer = serializers.CharField(max_length=2000, required=False, allow_blank=True, default='')

    def validate(self, attrs):
        if not attrs.get('note_internal') and not attrs.get('note_customer'):
            raise serializers.ValidationError('Provide note_internal or note_customer')
        return attrs
