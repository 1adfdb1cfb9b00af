from django.contrib import admin
from .models import Order, OrderItem, OrderStatusHistory, Payment, OrderCounter


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['product', 'sku', 'name', 'unit_price', 'quantity', 'line_total']


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    readonly_fields = ['created_by', 'created_at']


class OrderStatusHistoryInline(admin.TabularInline):
    model = OrderStatusHistory
    extra = 0
    readonly_fields = ['from_status', 'to_status', 'actor', 'note_internal', 'note_customer', 'created_at']
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['code', 'customer_name', 'company_name', 'order_status', 'payment_state',
                    'accounting_status', 'total', 'outstanding_amount', 'created_at']
    list_filter = ['order_status', 'payment_state', 'fulfillment_status', 'accounting_status',
                   'customer_kind', 'created_at']
    search_fields = ['code', 'customer_name', 'email', 'phone', 'company_name', 'tax_id']
    ordering = ['-created_at']
    inlines = [OrderItemInline, PaymentInline, OrderStatusHistoryInline]
    readonly_fields = ['code', 'idempotency_key', 'paid_amount', 'outstanding_amount', 'created_at', 'updated_at']


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['order', 'amount', 'method', 'payment_date', 'reference', 'created_by']
    list_filter = ['method', 'payment_date']
    search_fields = ['order__code', 'reference']
    ordering = ['-payment_date']
    readonly_fields = ['created_at']


@admin.register(OrderCounter)
class OrderCounterAdmin(admin.ModelAdmin):
    list_display = ['year', 'last_seq']
    ordering = ['-year']
