from decimal import Decimal

from rest_framework import serializers
from .models import Warehouse, WarehouseLocation, InventoryItem, StockDocument, StockDocumentLine, StockMovement
from .state_machine import DOCUMENT_TYPES, REFERENCE_TYPES, document_type_label, document_status_label, allowed_next


class WarehouseSerializer(serializers.ModelSerializer):
    class Meta:
        model = Warehouse
        fields = ['id', 'code', 'name', 'address', 'is_default', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_code(self, value):
        value = value.strip().upper()
        queryset = Warehouse.objects.filter(code=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('A warehouse with this code already exists')
        return value


class WarehouseLocationSerializer(serializers.ModelSerializer):
    class Meta:
        model = WarehouseLocation
        fields = ['id', 'warehouse', 'code', 'name', 'is_default', 'created_at']
        read_only_fields = ['warehouse', 'created_at']


class InventoryItemSerializer(serializers.ModelSerializer):
    sku = serializers.CharField(source='product.sku', read_only=True)
    product_name = serializers.CharField(source='product.name_en', read_only=True)
    product_name_vi = serializers.CharField(source='product.name_vi', read_only=True)
    warehouse_code = serializers.CharField(source='warehouse.code', read_only=True)
    warehouse_name = serializers.CharField(source='warehouse.name', read_only=True)
    stock_status = serializers.SerializerMethodField()

    class Meta:
        model = InventoryItem
        fields = [
            'id', 'product', 'sku', 'product_name', 'product_name_vi', 'warehouse', 'warehouse_code',
            'warehouse_name', 'on_hand_qty', 'reserved_qty', 'available_qty', 'reorder_point_qty',
            'reorder_qty', 'stock_status', 'updated_at'
        ]

    def get_stock_status(self, obj):
        if obj.available_qty <= 0:
            return 'out_of_stock'
        if obj.reorder_point_qty > 0 and obj.available_qty <= obj.reorder_point_qty:
            return 'low_stock'
        return 'in_stock'


class StockDocumentLineSerializer(serializers.ModelSerializer):
    sku = serializers.CharField(source='product.sku', read_only=True)
    product_name = serializers.CharField(source='product.name_en', read_only=True)

    class Meta:
        model = StockDocumentLine
        fields = ['id', 'product', 'sku', 'product_name', 'qty', 'unit_cost', 'source_location', 'target_location']


class StockMovementSerializer(serializers.ModelSerializer):
    sku = serializers.CharField(source='product.sku', read_only=True)
    warehouse_code = serializers.CharField(source='warehouse.code', read_only=True)
    document_code = serializers.CharField(source='document.code', read_only=True)

    class Meta:
        model = StockMovement
        fields = [
            'id', 'document', 'document_code', 'line', 'product', 'sku', 'warehouse', 'warehouse_code',
            'movement_type', 'qty_change_on_hand', 'qty_change_reserved', 'balance_on_hand_after',
            'balance_reserved_after', 'idempotency_key', 'created_by', 'created_at'
        ]


class StockDocumentSerializer(serializers.ModelSerializer):
    warehouse_code = serializers.CharField(source='warehouse.code', read_only=True)
    target_warehouse_code = serializers.CharField(source='target_warehouse.code', read_only=True, default=None)
    type_label = serializers.SerializerMethodField()
    status_label = serializers.SerializerMethodField()
    line_count = serializers.IntegerField(read_only=True, required=False)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = StockDocument
        fields = [
            'id', 'code', 'type', 'type_label', 'status', 'status_label', 'warehouse', 'warehouse_code',
            'target_warehouse', 'target_warehouse_code', 'reference_type', 'reference_id', 'note',
            'line_count', 'created_by', 'created_by_username', 'posted_by', 'posted_at',
            'voided_by', 'voided_at', 'void_reason', 'created_at', 'updated_at'
        ]

    def _locale(self):
        return self.context.get('locale', 'vi')

    def get_type_label(self, obj):
        return document_type_label(obj.type, self._locale())

    def get_status_label(self, obj):
        return document_status_label(obj.status, self._locale())


class StockDocumentDetailSerializer(StockDocumentSerializer):
    lines = StockDocumentLineSerializer(many=True, read_only=True)
    movements = StockMovementSerializer(many=True, read_only=True)
    allowed_next = serializers.SerializerMethodField()

    class Meta(StockDocumentSerializer.Meta):
        fields = StockDocumentSerializer.Meta.fields + ['lines', 'movements', 'allowed_next']

    def get_allowed_next(self, obj):
        return allowed_next(obj.status)


class DocumentLineInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    qty = serializers.DecimalField(max_digits=12, decimal_places=3)
    unit_cost = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, allow_null=True)
    source_location_id = serializers.IntegerField(required=False, allow_null=True)
    target_location_id = serializers.IntegerField(required=False, allow_null=True)


class StockDocumentCreateSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=DOCUMENT_TYPES)
    warehouse_id = serializers.IntegerField()
    target_warehouse_id = serializers.IntegerField(required=False, allow_null=True)
    reference_type = serializers.ChoiceField(choices=REFERENCE_TYPES, default='MANUAL')
    reference_id = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    note = serializers.CharField(max_length=1000, required=False, allow_blank=True, allow_null=True)
    lines = DocumentLineInputSerializer(many=True)
    post_immediately = serializers.BooleanField(default=False)


class VoidDocumentSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=1000, required=False, allow_blank=True, default='')


class QuickAdjustSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    warehouse_id = serializers.IntegerField()
    qty_change = serializers.DecimalField(max_digits=12, decimal_places=3)
    reason = serializers.CharField(min_length=3, max_length=500)


class ReorderItemSerializer(serializers.Serializer):
    inventory_item_id = serializers.IntegerField()
    reorder_point_qty = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=Decimal('0'))
    reorder_qty = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=Decimal('0'))


class ReorderBulkSerializer(serializers.Serializer):
    items = ReorderItemSerializer(many=True, allow_empty=False)
