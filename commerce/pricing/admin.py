from django.contrib import admin
from .models import Coupon, CouponUsage


class CouponUsageInline(admin.TabularInline):
    model = CouponUsage
    extra = 0
    readonly_fields = ['user', 'order', 'discount_amount', 'created_at']
    can_delete = False


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'discount_type', 'discount_value', 'target_type', 'status',
                    'used_count', 'usage_limit', 'starts_at', 'expires_at']
    list_filter = ['status', 'discount_type', 'target_type', 'starts_at']
    search_fields = ['code', 'name', 'description']
    ordering = ['-created_at']
    filter_horizontal = ['products', 'categories', 'customers']
    inlines = [CouponUsageInline]
    readonly_fields = ['used_count', 'created_at', 'updated_at']


@admin.register(CouponUsage)
class CouponUsageAdmin(admin.ModelAdmin):
    list_display = ['coupon', 'user', 'order', 'discount_amount', 'created_at']
    list_filter = ['created_at']
    search_fields = ['coupon__code', 'order__code', 'user__username']
    ordering = ['-created_at']
    readonly_fields = ['created_at']
