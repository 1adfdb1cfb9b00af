from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import RegexValidator
from django.db import models
from decimal import Decimal

from commerce.catalog.models import Product
from .state_machine import DOCUMENT_TYPE_LABELS, DOCUMENT_STATUS_LABELS

TYPE_CHOICES = [(key, labels['en']) for key, labels in DOCUMENT_TYPE_LABELS.items()]
STATUS_CHOICES = [(key, labels['en']) for key, labels in DOCUMENT_STATUS_LABELS.items()]

QTY = {'max_digits': 12, 'decimal_places': 3}


class Warehouse(models.Model):
    """Physical stock locations"""
    code = models.CharField(
        max_length=50,
        unique=True,
        validators=[RegexValidator(r'^[A-Za-z0-9_-]+$', 'Code may only contain letters, digits, "_" and "-"')],
    )
    name = models.CharField(max_length=200)
    address = models.TextField(blank=True)
    is_default = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def save(self, *args, **kwargs):
        self.code = (self.code or '').strip().upper()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.code} - {self.name}"

    class Meta:
        db_table = 'warehouses'
        ordering = ['-is_default', 'code']


class WarehouseLocation(models.Model):
    """Bins/shelves inside a warehouse"""
    warehouse = models.ForeignKey(Warehouse, on_delete=models.CASCADE, related_name='locations')
    code = models.CharField(max_length=50)
    name = models.CharField(max_length=200, blank=True)
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.warehouse.code}/{self.code}"

    class Meta:
        db_table = 'warehouse_locations'
        unique_together = [['warehouse', 'code']]
        ordering = ['code']


class InventoryItem(models.Model):
    """Per product and warehouse balance; available is always on hand minus reserved"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='inventory_items')
    warehouse = models.ForeignKey(Warehouse, on_delete=models.CASCADE, related_name='inventory_items')
    on_hand_qty = models.DecimalField(default=Decimal('0.000'), **QTY)
    reserved_qty = models.DecimalField(default=Decimal('0.000'), **QTY)
    available_qty = models.DecimalField(default=Decimal('0.000'), **QTY)
    reorder_point_qty = models.DecimalField(default=Decimal('0.000'), **QTY)
    reorder_qty = models.DecimalField(default=Decimal('0.000'), **QTY)
    updated_at = models.DateTimeField(auto_now=True)

    def save(self, *args, **kwargs):
        self.available_qty = self.on_hand_qty - self.reserved_qty
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and ('on_hand_qty' in update_fields or 'reserved_qty' in update_fields):
            kwargs['update_fields'] = set(update_fields) | {'available_qty'}
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.product.sku} @ {self.warehouse.code}: {self.available_qty}"

    class Meta:
        db_table = 'inventory_items'
        unique_together = [['product', 'warehouse']]
        indexes = [
            models.Index(fields=['warehouse', 'available_qty'], name='idx_inventory_wh_available'),
        ]


class StockDocument(models.Model):
    """Warehouse transaction header: DRAFT -> POSTED -> VOID"""
    REFERENCE_TYPE_CHOICES = [
        ('ORDER', 'Order'),
        ('PO', 'Purchase Order'),
        ('MANUAL', 'Manual'),
    ]

    code = models.CharField(max_length=50, unique=True)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='DRAFT', db_index=True)
    warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT, related_name='documents')
    target_warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT, null=True, blank=True,
                                         related_name='incoming_documents')
    reference_type = models.CharField(max_length=20, choices=REFERENCE_TYPE_CHOICES, default='MANUAL')
    reference_id = models.CharField(max_length=100, blank=True)
    note = models.CharField(max_length=1000, blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='stock_documents_created')
    posted_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                  related_name='stock_documents_posted')
    posted_at = models.DateTimeField(null=True, blank=True)
    voided_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                  related_name='stock_documents_voided')
    voided_at = models.DateTimeField(null=True, blank=True)
    void_reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.code} ({self.type}, {self.status})"

    class Meta:
        db_table = 'stock_documents'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['type', 'created_at'], name='idx_stockdoc_type_created'),
            models.Index(fields=['reference_type', 'reference_id'], name='idx_stockdoc_reference'),
        ]


class StockDocumentLine(models.Model):
    """Document line; qty is signed only for ADJUSTMENT documents"""
    document = models.ForeignKey(StockDocument, on_delete=models.CASCADE, related_name='lines')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='stock_document_lines')
    qty = models.DecimalField(**QTY)
    unit_cost = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    source_location = models.ForeignKey(WarehouseLocation, on_delete=models.SET_NULL, null=True, blank=True,
                                        related_name='outgoing_lines')
    target_location = models.ForeignKey(WarehouseLocation, on_delete=models.SET_NULL, null=True, blank=True,
                                        related_name='incoming_lines')

    def __str__(self):
        return f"{self.document.code}: {self.product.sku} x {self.qty}"

    class Meta:
        db_table = 'stock_document_lines'
        ordering = ['id']


class StockMovement(models.Model):
    """Immutable ledger row written when a document is posted or voided"""
    document = models.ForeignKey(StockDocument, on_delete=models.PROTECT, related_name='movements')
    line = models.ForeignKey(StockDocumentLine, on_delete=models.SET_NULL, null=True, blank=True,
                             related_name='movements')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='stock_movements')
    warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT, related_name='movements')
    movement_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    qty_change_on_hand = models.DecimalField(default=Decimal('0.000'), **QTY)
    qty_change_reserved = models.DecimalField(default=Decimal('0.000'), **QTY)
    balance_on_hand_after = models.DecimalField(**QTY)
    balance_reserved_after = models.DecimalField(**QTY)
    idempotency_key = models.CharField(max_length=255, unique=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='stock_movements')
    created_at = models.DateTimeField(auto_now_add=True)

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError('Stock movements cannot be modified')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError('Stock movements cannot be deleted')

    def __str__(self):
        return f"{self.movement_type} {self.product_id}@{self.warehouse_id}: {self.qty_change_on_hand}"

    class Meta:
        db_table = 'stock_movements'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['product', 'created_at'], name='idx_movement_product_created'),
            models.Index(fields=['warehouse', 'created_at'], name='idx_movement_wh_created'),
        ]
