from django.contrib import admin
from .models import Warehouse, WarehouseLocation, InventoryItem, StockDocument, StockDocumentLine, StockMovement


class WarehouseLocationInline(admin.TabularInline):
    model = WarehouseLocation
    extra = 0


@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'is_default', 'is_active', 'created_at']
    list_filter = ['is_default', 'is_active']
    search_fields = ['code', 'name']
    ordering = ['code']
    inlines = [WarehouseLocationInline]


@admin.register(InventoryItem)
class InventoryItemAdmin(admin.ModelAdmin):
    list_display = ['product', 'warehouse', 'on_hand_qty', 'reserved_qty', 'available_qty', 'reorder_point_qty', 'updated_at']
    list_filter = ['warehouse']
    search_fields = ['product__sku', 'product__name_en', 'product__name_vi']
    # Balances only change through the stock ledger
    readonly_fields = ['on_hand_qty', 'reserved_qty', 'available_qty', 'updated_at']


class StockDocumentLineInline(admin.TabularInline):
    model = StockDocumentLine
    extra = 0


@admin.register(StockDocument)
class StockDocumentAdmin(admin.ModelAdmin):
    list_display = ['code', 'type', 'status', 'warehouse', 'target_warehouse', 'reference_type', 'reference_id', 'created_at']
    list_filter = ['type', 'status', 'warehouse', 'reference_type']
    search_fields = ['code', 'reference_id', 'note']
    ordering = ['-created_at']
    readonly_fields = ['status', 'posted_by', 'posted_at', 'voided_by', 'voided_at', 'created_at', 'updated_at']
    inlines = [StockDocumentLineInline]


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ['document', 'product', 'warehouse', 'movement_type', 'qty_change_on_hand',
                    'qty_change_reserved', 'balance_on_hand_after', 'created_at']
    list_filter = ['movement_type', 'warehouse']
    search_fields = ['idempotency_key', 'product__sku', 'document__code']
    ordering = ['-created_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
