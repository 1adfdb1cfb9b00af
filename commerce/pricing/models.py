from django.conf import settings
from django.db import models
from django.utils import timezone

from commerce.catalog.models import Category, Product


class Coupon(models.Model):
    """Discount code applied at checkout"""
    DISCOUNT_TYPE_CHOICES = [
        ('PERCENTAGE', 'Percentage'),
        ('FIXED_AMOUNT', 'Fixed Amount'),
        ('FREE_SHIPPING', 'Free Shipping'),
    ]

    TARGET_TYPE_CHOICES = [
        ('ALL', 'All Products'),
        ('SPECIFIC_PRODUCTS', 'Specific Products'),
        ('SPECIFIC_CATEGORIES', 'Specific Categories'),
        ('SPECIFIC_CUSTOMERS', 'Specific Customers'),
        ('FIRST_ORDER', 'First Order'),
    ]

    STATUS_CHOICES = [
        ('ACTIVE', 'Active'),
        ('INACTIVE', 'Inactive'),
        ('EXPIRED', 'Expired'),
    ]

    code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    discount_type = models.CharField(max_length=20, choices=DISCOUNT_TYPE_CHOICES, default='PERCENTAGE')
    discount_value = models.DecimalField(max_digits=15, decimal_places=2)
    max_discount = models.DecimalField(max_digits=15, decimal_places=2, null=True, blank=True)
    min_order_amount = models.DecimalField(max_digits=15, decimal_places=2, null=True, blank=True)
    min_quantity = models.PositiveIntegerField(null=True, blank=True)
    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    used_count = models.PositiveIntegerField(default=0)
    usage_per_user = models.PositiveIntegerField(default=1)
    target_type = models.CharField(max_length=30, choices=TARGET_TYPE_CHOICES, default='ALL')
    products = models.ManyToManyField(Product, related_name='coupons', blank=True)
    categories = models.ManyToManyField(Category, related_name='coupons', blank=True)
    customers = models.ManyToManyField(settings.AUTH_USER_MODEL, related_name='targeted_coupons', blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='ACTIVE', db_index=True)
    starts_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='created_coupons')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def save(self, *args, **kwargs):
        self.code = (self.code or '').strip().upper()
        super().save(*args, **kwargs)

    def __str__(self):
        return self.code

    class Meta:
        db_table = 'coupons'
        ordering = ['-created_at']


class CouponUsage(models.Model):
    """One redemption of a coupon by an order"""
    coupon = models.ForeignKey(Coupon, on_delete=models.CASCADE, related_name='usages')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                             related_name='coupon_usages')
    order = models.ForeignKey('orders.Order', on_delete=models.SET_NULL, null=True, blank=True,
                              related_name='coupon_usages')
    discount_amount = models.DecimalField(max_digits=15, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.coupon.code} - {self.discount_amount}"

    class Meta:
        db_table = 'coupon_usages'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['coupon', 'user'], name='idx_coupon_usage_user'),
        ]
