import logging
from decimal import Decimal

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import Q, F, Sum, Count
from django.shortcuts import get_object_or_404

from commerce.core.csv_export import csv_response
from commerce.core.i18n import get_request_locale
from commerce.core.pagination import paginate
from commerce.core.permissions import HasPermission, IsStaffRole, user_has_permission
from commerce.core.throttling import ApiAdminRateThrottle
from commerce.core.utils import create_audit_log
from .models import Warehouse, WarehouseLocation, InventoryItem, StockDocument, StockMovement
from .serializers import (
    WarehouseSerializer, WarehouseLocationSerializer, InventoryItemSerializer,
    StockDocumentSerializer, StockDocumentDetailSerializer, StockDocumentCreateSerializer,
    StockMovementSerializer, VoidDocumentSerializer, QuickAdjustSerializer, ReorderBulkSerializer,
)
from . import services

logger = logging.getLogger(__name__)

INVENTORY_STATUSES = ('all', 'in_stock', 'low_stock', 'out_of_stock')


def _inventory_queryset(request):
    """Inventory items filtered by warehouse, product, q and stock status"""
    queryset = InventoryItem.objects.select_related('product', 'warehouse')
    warehouse_id = request.query_params.get('warehouse')
    product_id = request.query_params.get('product')
    search = request.query_params.get('q')
    stock_status = request.query_params.get('status') or 'all'

    if warehouse_id:
        queryset = queryset.filter(warehouse_id=warehouse_id)
    if product_id:
        queryset = queryset.filter(product_id=product_id)
    if search:
        queryset = queryset.filter(
            Q(product__sku__icontains=search) |
            Q(product__name_en__icontains=search) |
            Q(product__name_vi__icontains=search)
        )

    if stock_status == 'in_stock':
        queryset = queryset.filter(available_qty__gt=0)
    elif stock_status == 'low_stock':
        queryset = queryset.filter(
            available_qty__gt=0,
            reorder_point_qty__gt=0,
            available_qty__lte=F('reorder_point_qty'),
        )
    elif stock_status == 'out_of_stock':
        queryset = queryset.filter(available_qty__lte=0)
    return queryset.order_by('-updated_at', 'id')


# Inventory views
@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('inventory:list')])
@throttle_classes([ApiAdminRateThrottle])
def inventory_list(request):
    """List inventory balances (filters: warehouse, product, q, status=all|in_stock|low_stock|out_of_stock)"""
    stock_status = request.query_params.get('status') or 'all'
    if stock_status not in INVENTORY_STATUSES:
        return Response({'error': f"status must be one of {', '.join(INVENTORY_STATUSES)}"},
                        status=status.HTTP_400_BAD_REQUEST)
    return paginate(request, _inventory_queryset(request), InventoryItemSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('inventory:export')])
def inventory_export(request):
    """CSV export of inventory balances with the same filters as the list"""
    rows = (
        [
            item.product.sku, item.product.name_en, item.warehouse.code, item.on_hand_qty,
            item.reserved_qty, item.available_qty, item.reorder_point_qty, item.reorder_qty,
            item.updated_at.isoformat(),
        ]
        for item in _inventory_queryset(request).iterator()
    )
    return csv_response(
        'inventory.csv',
        ['SKU', 'Product', 'Warehouse', 'On Hand', 'Reserved', 'Available', 'Reorder Point', 'Reorder Qty', 'Updated'],
        rows,
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasPermission('inventory:update')])
def inventory_reorder_bulk(request):
    """Bulk update reorder point and reorder quantity"""
    serializer = ReorderBulkSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    updated = services.update_reorder_levels(serializer.validated_data['items'])
    return Response({'updated': updated})


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasPermission('inventory:update')])
def inventory_quick_adjust(request):
    """Adjust one product's stock in one warehouse with a reason"""
    serializer = QuickAdjustSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    document = services.quick_adjust(
        data['product_id'], data['warehouse_id'], data['qty_change'], data['reason'],
        user=request.user, request=request,
    )
    item = InventoryItem.objects.select_related('product', 'warehouse').get(
        product_id=data['product_id'], warehouse_id=data['warehouse_id']
    )
    return Response({
        'document': StockDocumentSerializer(document, context={'locale': get_request_locale(request)}).data,
        'item': InventoryItemSerializer(item).data,
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('inventory:read')])
def movement_list(request):
    """Ledger rows (filters: product, warehouse, document, type)"""
    queryset = StockMovement.objects.select_related('product', 'warehouse', 'document')
    for param, field in (('product', 'product_id'), ('warehouse', 'warehouse_id'), ('document', 'document_id')):
        value = request.query_params.get(param)
        if value:
            queryset = queryset.filter(**{field: value})
    movement_type = request.query_params.get('type')
    if movement_type:
        queryset = queryset.filter(movement_type=movement_type.upper())
    return paginate(request, queryset.order_by('-created_at', '-id'), StockMovementSerializer)


# Warehouse views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def warehouse_list_create(request):
    """List all warehouses or create a new warehouse"""
    if request.method == 'GET':
        warehouses = Warehouse.objects.all()
        active = request.query_params.get('active')
        if active is not None:
            warehouses = warehouses.filter(is_active=active.lower() in ('1', 'true', 'yes'))
        return Response(WarehouseSerializer(warehouses, many=True).data)
    else:  # POST
        if not user_has_permission(request.user, 'inventory:manage'):
            return Response({'error': 'Only admins can create warehouses'}, status=status.HTTP_403_FORBIDDEN)
        serializer = WarehouseSerializer(data=request.data)
        if serializer.is_valid():
            with transaction.atomic():
                warehouse = serializer.save()
                if warehouse.is_default:
                    Warehouse.objects.exclude(pk=warehouse.pk).update(is_default=False)
            create_audit_log(
                request=request,
                action='WAREHOUSE_CREATED',
                model_name='Warehouse',
                object_id=str(warehouse.id),
                object_name=warehouse.name,
                object_reference=warehouse.code,
            )
            return Response(WarehouseSerializer(warehouse).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, HasPermission('inventory:manage')])
def warehouse_detail(request, pk):
    """Retrieve, update or delete a warehouse"""
    warehouse = get_object_or_404(Warehouse, pk=pk)

    if request.method == 'GET':
        return Response(WarehouseSerializer(warehouse).data)
    elif request.method == 'PATCH':
        serializer = WarehouseSerializer(warehouse, data=request.data, partial=True)
        if serializer.is_valid():
            with transaction.atomic():
                warehouse = serializer.save()
                if warehouse.is_default:
                    Warehouse.objects.exclude(pk=warehouse.pk).update(is_default=False)
            create_audit_log(
                request=request,
                action='update',
                model_name='Warehouse',
                object_id=str(warehouse.id),
                object_reference=warehouse.code,
                changes={field: str(value) for field, value in serializer.validated_data.items()},
            )
            return Response(WarehouseSerializer(warehouse).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if warehouse.documents.exists() or warehouse.inventory_items.filter(on_hand_qty__gt=0).exists():
            return Response({'error': 'Warehouse has stock or documents; deactivate it instead'},
                            status=status.HTTP_409_CONFLICT)
        warehouse.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def warehouse_locations(request, pk):
    """List or create locations of a warehouse"""
    warehouse = get_object_or_404(Warehouse, pk=pk)

    if request.method == 'GET':
        return Response(WarehouseLocationSerializer(warehouse.locations.all(), many=True).data)
    else:  # POST
        serializer = WarehouseLocationSerializer(data=request.data)
        if serializer.is_valid():
            code = serializer.validated_data['code'].strip().upper()
            if warehouse.locations.filter(code=code).exists():
                return Response({'code': ['Location code already exists in this warehouse']},
                                status=status.HTTP_400_BAD_REQUEST)
            with transaction.atomic():
                location = serializer.save(warehouse=warehouse, code=code)
                if location.is_default:
                    warehouse.locations.exclude(pk=location.pk).update(is_default=False)
            return Response(WarehouseLocationSerializer(location).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# Stock document views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasPermission('inventory:read')])
def document_list_create(request):
    """
    GET: list documents (filters: type, status, warehouse, q on code/note/reference)
    POST: create a DRAFT document, optionally posting it right away
    """
    locale = get_request_locale(request)
    if request.method == 'GET':
        queryset = StockDocument.objects.select_related('warehouse', 'target_warehouse', 'created_by').annotate(
            line_count=Count('lines')
        )
        doc_type = request.query_params.get('type')
        doc_status = request.query_params.get('status')
        warehouse_id = request.query_params.get('warehouse')
        search = request.query_params.get('q')
        if doc_type:
            queryset = queryset.filter(type=doc_type.upper())
        if doc_status:
            queryset = queryset.filter(status=doc_status.upper())
        if warehouse_id:
            queryset = queryset.filter(Q(warehouse_id=warehouse_id) | Q(target_warehouse_id=warehouse_id))
        if search:
            queryset = queryset.filter(
                Q(code__icontains=search) | Q(note__icontains=search) | Q(reference_id__icontains=search)
            )
        return paginate(request, queryset.order_by('-created_at'), StockDocumentSerializer, context={'locale': locale})
    else:  # POST
        if not user_has_permission(request.user, 'inventory:create'):
            return Response({'error': 'You do not have permission to create stock documents'},
                            status=status.HTTP_403_FORBIDDEN)
        serializer = StockDocumentCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data
        with transaction.atomic():
            document = services.create_document(
                data['type'],
                data['warehouse_id'],
                [dict(line) for line in data['lines']],
                target_warehouse_id=data.get('target_warehouse_id'),
                reference_type=data.get('reference_type'),
                reference_id=data.get('reference_id'),
                note=data.get('note'),
                user=request.user,
                request=request,
            )
            if data.get('post_immediately'):
                document = services.post_document(document.id, user=request.user, request=request)
        document = StockDocument.objects.prefetch_related('lines__product', 'movements').get(pk=document.pk)
        return Response(StockDocumentDetailSerializer(document, context={'locale': locale}).data,
                        status=status.HTTP_201_CREATED)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated, HasPermission('inventory:read')])
def document_detail(request, pk):
    """Document with lines and ledger movements; only DRAFT documents can be deleted"""
    document = get_object_or_404(
        StockDocument.objects.select_related('warehouse', 'target_warehouse', 'created_by').prefetch_related(
            'lines__product', 'movements__product', 'movements__warehouse'
        ),
        pk=pk,
    )

    if request.method == 'GET':
        return Response(StockDocumentDetailSerializer(document, context={'locale': get_request_locale(request)}).data)
    else:  # DELETE
        if not user_has_permission(request.user, 'inventory:delete'):
            return Response({'error': 'Only admins can delete stock documents'}, status=status.HTTP_403_FORBIDDEN)
        if document.status != 'DRAFT':
            return Response({'error': 'Only DRAFT documents can be deleted; void it instead'},
                            status=status.HTTP_409_CONFLICT)
        create_audit_log(
            request=request,
            action='delete',
            model_name='StockDocument',
            object_id=str(document.id),
            object_reference=document.code,
        )
        document.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasPermission('inventory:update')])
def document_post(request, pk):
    document = services.post_document(pk, user=request.user, request=request)
    document = StockDocument.objects.prefetch_related('lines__product', 'movements').get(pk=document.pk)
    return Response(StockDocumentDetailSerializer(document, context={'locale': get_request_locale(request)}).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasPermission('inventory:update')])
def document_void(request, pk):
    serializer = VoidDocumentSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    document = services.void_document(pk, user=request.user, reason=serializer.validated_data['reason'],
                                      request=request)
    document = StockDocument.objects.prefetch_related('lines__product', 'movements').get(pk=document.pk)
    return Response(StockDocumentDetailSerializer(document, context={'locale': get_request_locale(request)}).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasPermission('inventory:read')])
def warehouse_overview(request):
    """Warehouse dashboard: totals, low/out of stock counts, documents by status, recent movements"""
    items = InventoryItem.objects.all()
    totals = items.aggregate(
        on_hand=Sum('on_hand_qty'),
        reserved=Sum('reserved_qty'),
        available=Sum('available_qty'),
    )
    low_stock = items.filter(
        available_qty__gt=0, reorder_point_qty__gt=0, available_qty__lte=F('reorder_point_qty')
    ).count()
    out_of_stock = items.filter(available_qty__lte=0).count()

    documents_by_status = {key: 0 for key in ('DRAFT', 'POSTED', 'VOID')}
    for row in StockDocument.objects.order_by().values('status').annotate(count=Count('id')):
        documents_by_status[row['status']] = row['count']

    recent = StockMovement.objects.select_related('product', 'warehouse', 'document').order_by('-created_at', '-id')[:10]

    return Response({
        'warehouses': Warehouse.objects.filter(is_active=True).count(),
        'items': items.count(),
        'totals': {
            'on_hand': totals['on_hand'] or Decimal('0'),
            'reserved': totals['reserved'] or Decimal('0'),
            'available': totals['available'] or Decimal('0'),
        },
        'low_stock': low_stock,
        'out_of_stock': out_of_stock,
        'documents_by_status': documents_by_status,
        'recent_movements': StockMovementSerializer(recent, many=True).data,
    })
