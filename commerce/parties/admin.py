from django.contrib import admin
from .models import CustomerProfile, CustomerAddress


@admin.register(CustomerProfile)
class CustomerProfileAdmin(admin.ModelAdmin):
    list_display = ['user', 'customer_type', 'company_name', 'tax_id', 'loyalty_points', 'created_at']
    list_filter = ['customer_type', 'created_at']
    search_fields = ['user__username', 'user__email', 'company_name', 'tax_id']
    ordering = ['-created_at']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(CustomerAddress)
class CustomerAddressAdmin(admin.ModelAdmin):
    list_display = ['user', 'kind', 'recipient_name', 'phone', 'city', 'is_default']
    list_filter = ['kind', 'is_default', 'province']
    search_fields = ['user__username', 'recipient_name', 'phone', 'line1', 'city']
