from decimal import Decimal

from django.conf import settings
from django.db import models

from commerce.catalog.models import Product
from .state_machine import ORDER_STATUS_LABELS, ACCOUNTING_STATUS_LABELS

ORDER_STATUS_CHOICES = [(key, labels['en']) for key, labels in ORDER_STATUS_LABELS.items()]
ACCOUNTING_STATUS_CHOICES = [(key, labels['en']) for key, labels in ACCOUNTING_STATUS_LABELS.items()]


class OrderCounter(models.Model):
    """Per-year sequence behind order codes"""
    year = models.PositiveIntegerField(unique=True)
    last_seq = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"{self.year}: {self.last_seq}"

    class Meta:
        db_table = 'order_counters'


class Order(models.Model):
    """Storefront order with its payment, fulfillment and accounting state"""
    CUSTOMER_KIND_CHOICES = [
        ('INDIVIDUAL', 'Individual'),
        ('BUSINESS', 'Business'),
    ]

    BUYER_TYPE_CHOICES = [
        ('PERSONAL', 'Personal'),
        ('BUSINESS', 'Business'),
    ]

    PAYMENT_STATE_CHOICES = [
        ('UNPAID', 'Unpaid'),
        ('PARTIAL', 'Partially Paid'),
        ('PAID', 'Paid'),
        ('REFUNDED', 'Refunded'),
    ]

    FULFILLMENT_STATUS_CHOICES = [
        ('UNFULFILLED', 'Unfulfilled'),
        ('PACKING', 'Packing'),
        ('SHIPPED', 'Shipped'),
        ('DELIVERED', 'Delivered'),
        ('RETURNED', 'Returned'),
    ]

    PAYMENT_METHOD_CHOICES = [
        ('COD', 'Cash on Delivery'),
        ('BANK_TRANSFER', 'Bank Transfer'),
    ]

    code = models.CharField(max_length=50, unique=True)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                             related_name='orders')
    idempotency_key = models.CharField(max_length=255, unique=True, null=True, blank=True)
    customer_kind = models.CharField(max_length=20, choices=CUSTOMER_KIND_CHOICES, default='INDIVIDUAL')
    buyer_type = models.CharField(max_length=20, choices=BUYER_TYPE_CHOICES, default='PERSONAL')

    customer_name = models.CharField(max_length=200)
    email = models.EmailField()
    phone = models.CharField(max_length=20)
    company_name = models.CharField(max_length=200, blank=True)
    tax_id = models.CharField(max_length=50, blank=True)
    shipping_address = models.JSONField(default=dict)
    billing_address = models.JSONField(null=True, blank=True)

    order_status = models.CharField(max_length=30, choices=ORDER_STATUS_CHOICES, default='PENDING_CONFIRMATION',
                                    db_index=True)
    payment_state = models.CharField(max_length=20, choices=PAYMENT_STATE_CHOICES, default='UNPAID')
    fulfillment_status = models.CharField(max_length=20, choices=FULFILLMENT_STATUS_CHOICES, default='UNFULFILLED')
    accounting_status = models.CharField(max_length=20, choices=ACCOUNTING_STATUS_CHOICES, default='PENDING_PAYMENT',
                                         db_index=True)

    currency = models.CharField(max_length=3, default='VND')
    subtotal = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    discount_total = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    shipping_fee = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    paid_amount = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    outstanding_amount = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))

    coupon_code = models.CharField(max_length=50, blank=True)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default='COD')
    due_date = models.DateTimeField(null=True, blank=True)

    note = models.TextField(blank=True)
    cancel_reason = models.TextField(blank=True)
    carrier = models.CharField(max_length=100, blank=True)
    tracking_code = models.CharField(max_length=100, blank=True)

    confirmed_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    canceled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.code

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['order_status', 'created_at'], name='idx_order_status_created'),
            models.Index(fields=['accounting_status', 'due_date'], name='idx_order_accounting_due'),
            models.Index(fields=['user', 'created_at'], name='idx_order_user_created'),
        ]


class OrderItem(models.Model):
    """Order line with the product name, SKU and price captured at checkout"""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.SET_NULL, null=True, blank=True, related_name='order_items')
    sku = models.CharField(max_length=100, blank=True)
    name = models.CharField(max_length=300)
    unit_price = models.DecimalField(max_digits=15, decimal_places=2)
    quantity = models.DecimalField(max_digits=12, decimal_places=3)
    line_total = models.DecimalField(max_digits=15, decimal_places=2)

    def __str__(self):
        return f"{self.order.code} - {self.name}"

    class Meta:
        db_table = 'order_items'
        ordering = ['id']


class OrderStatusHistory(models.Model):
    """Status transitions and notes of an order"""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='status_history')
    from_status = models.CharField(max_length=30, blank=True, null=True)
    to_status = models.CharField(max_length=30)
    actor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                              related_name='order_status_changes')
    note_internal = models.TextField(blank=True)
    note_customer = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'order_status_history'
        ordering = ['created_at', 'id']


class Payment(models.Model):
    """Payment received against an order"""
    METHOD_CHOICES = [
        ('COD', 'Cash on Delivery'),
        ('BANK_TRANSFER', 'Bank Transfer'),
        ('CASH', 'Cash'),
        ('CARD', 'Card'),
        ('MANUAL_ADJUSTMENT', 'Manual Adjustment'),
        ('OTHER', 'Other'),
    ]

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    method = models.CharField(max_length=20, choices=METHOD_CHOICES)
    payment_date = models.DateTimeField(db_index=True)
    reference = models.CharField(max_length=200, blank=True)
    note = models.TextField(blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='recorded_payments')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.order.code} - {self.amount}"

    class Meta:
        db_table = 'payments'
        ordering = ['-payment_date', '-id']
