"""
Inventory ledger services.

Every balance change goes through apply_movement(), which writes one immutable
StockMovement row keyed by an idempotency key and keeps InventoryItem and
Product.stock_quantity in step. Callers wrap it in transaction.atomic().
"""
import logging
import string
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone
from django.utils.crypto import get_random_string

from commerce.catalog.models import Product
from commerce.core.cache_utils import invalidate_reports_cache
from commerce.core.errors import AppError, ErrorCode
from commerce.core.money import to_decimal
from commerce.core.utils import create_audit_log
from .models import Warehouse, WarehouseLocation, InventoryItem, StockDocument, StockDocumentLine, StockMovement
from .state_machine import (
    DOCUMENT_TYPES, DOCUMENT_CODE_PREFIXES, POSITIVE_QTY_TYPES, ORDER_STOCK_ACTIONS,
    can_post, can_void, get_reverse_type,
)

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


def generate_document_code(doc_type, now=None):
    """{PREFIX}-{YYYYMM}-{seq:04d}, seq counting documents of this type created this month"""
    now = timezone.localtime(now or timezone.now())
    prefix = DOCUMENT_CODE_PREFIXES[doc_type]
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if month_start.month == 12:
        next_month = month_start.replace(year=month_start.year + 1, month=1)
    else:
        next_month = month_start.replace(month=month_start.month + 1)

    seq = StockDocument.objects.filter(
        type=doc_type, created_at__gte=month_start, created_at__lt=next_month
    ).count() + 1
    code = f"{prefix}-{now:%Y%m}-{seq:04d}"
    # Deleted drafts leave gaps; skip forward past any code already taken
    while StockDocument.objects.filter(code=code).exists():
        seq += 1
        code = f"{prefix}-{now:%Y%m}-{seq:04d}"
    return code


def generate_order_document_code(action, now=None):
    """{PREFIX}-{YYYYMMDD}-{random6} for documents created from order transitions"""
    now = timezone.localtime(now or timezone.now())
    prefix = DOCUMENT_CODE_PREFIXES[action]
    chars = string.ascii_uppercase + string.digits
    while True:
        code = f"{prefix}-{now:%Y%m%d}-{get_random_string(6, chars)}"
        if not StockDocument.objects.filter(code=code).exists():
            return code


def ensure_default_warehouse():
    """Return the default warehouse, promoting or creating MAIN when there is none"""
    warehouse = Warehouse.objects.filter(is_default=True).first()
    if warehouse:
        return warehouse

    code = getattr(settings, 'DEFAULT_WAREHOUSE_CODE', 'MAIN')
    warehouse = Warehouse.objects.filter(code=code).first()
    if warehouse:
        warehouse.is_default = True
        warehouse.save(update_fields=['is_default', 'updated_at'])
        logger.info(f"Warehouse {warehouse.code} promoted to default")
        return warehouse

    warehouse = Warehouse.objects.create(code=code, name='Main Warehouse', is_default=True)
    logger.info(f"Default warehouse {warehouse.code} created")
    return warehouse


def sync_product_stock(product_id):
    """Product.stock_quantity = sum of available qty across warehouses"""
    total = InventoryItem.objects.filter(product_id=product_id).aggregate(
        total=Sum('available_qty')
    )['total'] or ZERO
    Product.objects.filter(pk=product_id).update(stock_quantity=total)
    return total


def _line_deltas(movement_type, qty, reserved_before):
    """(on_hand change, reserved change) for a positive line qty, signed for ADJUSTMENT"""
    reserved_before = max(reserved_before, ZERO)
    if movement_type in ('ADJUSTMENT', 'GRN', 'RESTOCK'):
        return qty, ZERO
    if movement_type == 'ISSUE':
        return -qty, ZERO
    if movement_type == 'DEDUCT':
        return -qty, -min(qty, reserved_before)
    if movement_type == 'RESERVE':
        return ZERO, qty
    if movement_type == 'RELEASE':
        return ZERO, -min(qty, reserved_before)
    raise AppError.validation(f"Movement type {movement_type} needs explicit quantity changes")


def _insufficient_stock(item, requested, available):
    return AppError(
        ErrorCode.INVENTORY_INSUFFICIENT_STOCK,
        f"Insufficient stock for product {item.product.sku} in warehouse {item.warehouse.code}",
        {
            'product_id': item.product_id,
            'sku': item.product.sku,
            'warehouse': item.warehouse.code,
            'requested': str(requested),
            'available': str(available),
        },
    )


def apply_movement(document, product_id, warehouse_id, movement_type, idempotency_key, qty=None,
                   on_hand_change=None, reserved_change=None, line=None, user=None,
                   allow_negative=False, check_as=None):
    """
    Apply one ledger movement to the (product, warehouse) balance.

    Pass `qty` to derive the changes from the movement type, or explicit
    `on_hand_change`/`reserved_change` for transfer legs and reversals.
    `check_as` selects whose stock rules apply (defaults to movement_type).

    Returns the StockMovement, or None when the idempotency key was already applied.
    """
    if StockMovement.objects.filter(idempotency_key=idempotency_key).exists():
        logger.debug(f"Movement {idempotency_key} already applied, skipping")
        return None

    InventoryItem.objects.get_or_create(product_id=product_id, warehouse_id=warehouse_id)
    item = (
        InventoryItem.objects.select_for_update()
        .select_related('product', 'warehouse')
        .get(product_id=product_id, warehouse_id=warehouse_id)
    )

    if on_hand_change is None and reserved_change is None:
        on_hand_change, reserved_change = _line_deltas(movement_type, to_decimal(qty), item.reserved_qty)
    on_hand_change = on_hand_change or ZERO
    reserved_change = reserved_change or ZERO

    new_on_hand = item.on_hand_qty + on_hand_change
    new_reserved = item.reserved_qty + reserved_change
    new_available = new_on_hand - new_reserved

    if not allow_negative:
        rules = check_as or movement_type
        if rules != 'ADJUSTMENT' and new_on_hand < 0:
            raise _insufficient_stock(item, abs(on_hand_change), item.on_hand_qty)
        if new_reserved < 0:
            raise _insufficient_stock(item, abs(reserved_change), item.reserved_qty)
        if rules in ('RESERVE', 'ISSUE') and new_available < 0:
            raise _insufficient_stock(item, abs(on_hand_change) + abs(reserved_change), item.available_qty)
        if rules == 'TRANSFER' and on_hand_change < 0 and new_available < 0:
            raise _insufficient_stock(item, abs(on_hand_change), item.available_qty)

    item.on_hand_qty = new_on_hand
    item.reserved_qty = new_reserved
    item.save()

    movement = StockMovement.objects.create(
        document=document,
        line=line,
        product_id=product_id,
        warehouse_id=warehouse_id,
        movement_type=movement_type,
        qty_change_on_hand=on_hand_change,
        qty_change_reserved=reserved_change,
        balance_on_hand_after=item.on_hand_qty,
        balance_reserved_after=item.reserved_qty,
        idempotency_key=idempotency_key,
        created_by=user if user and user.is_authenticated else None,
    )
    sync_product_stock(product_id)
    return movement


def _validate_lines(doc_type, warehouse, target_warehouse, lines):
    if not lines:
        raise AppError.validation('At least one line is required', {'lines': 'required'})

    product_ids = set()
    for line in lines:
        product_id = line.get('product_id') or line.get('product')
        if product_id is not None:
            product_ids.add(product_id)
    products = Product.objects.in_bulk(list(product_ids))

    cleaned = []
    for index, line in enumerate(lines):
        product_id = line.get('product_id') or line.get('product')
        product = products.get(product_id)
        if product is None:
            raise AppError.not_found('Product', product_id)

        qty = to_decimal(line.get('qty'))
        if doc_type == 'ADJUSTMENT':
            if qty == 0:
                raise AppError.validation('Adjustment quantity must not be zero', {f'lines.{index}.qty': 'non_zero'})
        elif doc_type in POSITIVE_QTY_TYPES and qty <= 0:
            raise AppError.validation('Quantity must be greater than zero', {f'lines.{index}.qty': 'positive'})

        source_location = None
        target_location = None
        if line.get('source_location_id'):
            source_location = WarehouseLocation.objects.filter(
                pk=line['source_location_id'], warehouse=warehouse
            ).first()
            if source_location is None:
                raise AppError.not_found('WarehouseLocation', line['source_location_id'])
        if line.get('target_location_id'):
            location_warehouse = target_warehouse or warehouse
            target_location = WarehouseLocation.objects.filter(
                pk=line['target_location_id'], warehouse=location_warehouse
            ).first()
            if target_location is None:
                raise AppError.not_found('WarehouseLocation', line['target_location_id'])

        unit_cost = line.get('unit_cost')
        cleaned.append({
            'product': product,
            'qty': qty,
            'unit_cost': to_decimal(unit_cost) if unit_cost not in (None, '') else None,
            'source_location': source_location,
            'target_location': target_location,
        })
    return cleaned


def create_document(doc_type, warehouse_id, lines, target_warehouse_id=None, reference_type='MANUAL',
                    reference_id=None, note=None, user=None, request=None):
    """Create a DRAFT stock document with its lines"""
    if doc_type not in DOCUMENT_TYPES:
        raise AppError.validation(f"Unknown document type {doc_type}", {'type': 'invalid_choice'})

    warehouse = Warehouse.objects.filter(pk=warehouse_id).first()
    if warehouse is None:
        raise AppError.not_found('Warehouse', warehouse_id, code=ErrorCode.INVENTORY_NOT_FOUND)

    target_warehouse = None
    if doc_type == 'TRANSFER':
        if not target_warehouse_id:
            raise AppError.validation('Transfer requires a target warehouse', {'target_warehouse_id': 'required'})
        target_warehouse = Warehouse.objects.filter(pk=target_warehouse_id).first()
        if target_warehouse is None:
            raise AppError.not_found('Warehouse', target_warehouse_id, code=ErrorCode.INVENTORY_NOT_FOUND)
        if target_warehouse.pk == warehouse.pk:
            raise AppError.validation('Target warehouse must differ from source',
                                      {'target_warehouse_id': 'different_from_source'})

    cleaned = _validate_lines(doc_type, warehouse, target_warehouse, lines)

    with transaction.atomic():
        document = StockDocument.objects.create(
            code=generate_document_code(doc_type),
            type=doc_type,
            status='DRAFT',
            warehouse=warehouse,
            target_warehouse=target_warehouse,
            reference_type=reference_type or 'MANUAL',
            reference_id=str(reference_id) if reference_id else '',
            note=note or '',
            created_by=user if user and user.is_authenticated else None,
        )
        StockDocumentLine.objects.bulk_create([
            StockDocumentLine(document=document, **line) for line in cleaned
        ])

        create_audit_log(
            request=request,
            user=user,
            action='STOCK_DOCUMENT_CREATED',
            model_name='StockDocument',
            object_id=str(document.id),
            object_reference=document.code,
            changes={
                'type': doc_type,
                'warehouse': warehouse.code,
                'target_warehouse': target_warehouse.code if target_warehouse else None,
                'lines': len(cleaned),
            },
        )

    logger.info(f"Stock document {document.code} created with {len(cleaned)} lines")
    return document


def _lock_document(document_id):
    document = StockDocument.objects.select_for_update().filter(pk=document_id).first()
    if document is None:
        raise AppError.not_found('StockDocument', document_id, code=ErrorCode.INVENTORY_NOT_FOUND)
    return document


def post_document(document_id, user=None, request=None):
    """Apply every line of a DRAFT document to the ledger and mark it POSTED"""
    with transaction.atomic():
        document = _lock_document(document_id)
        if not can_post(document.status):
            raise AppError(
                ErrorCode.INVENTORY_DOCUMENT_ALREADY_POSTED,
                f"Document {document.code} is {document.status} and cannot be posted",
                {'status': document.status},
            )

        for line in document.lines.all():
            key = f"doc:{document.id}:line:{line.id}:type:{document.type}"
            if document.type == 'TRANSFER':
                apply_movement(
                    document, line.product_id, document.warehouse_id, 'TRANSFER', key,
                    on_hand_change=-line.qty, line=line, user=user,
                )
                apply_movement(
                    document, line.product_id, document.target_warehouse_id, 'TRANSFER', f"{key}:target",
                    on_hand_change=line.qty, line=line, user=user,
                )
            else:
                apply_movement(
                    document, line.product_id, document.warehouse_id, document.type, key,
                    qty=line.qty, line=line, user=user,
                )

        document.status = 'POSTED'
        document.posted_at = timezone.now()
        document.posted_by = user if user and user.is_authenticated else None
        document.save(update_fields=['status', 'posted_at', 'posted_by', 'updated_at'])

        create_audit_log(
            request=request,
            user=user,
            action='STOCK_DOCUMENT_POSTED',
            model_name='StockDocument',
            object_id=str(document.id),
            object_reference=document.code,
            changes={'status': {'old': 'DRAFT', 'new': 'POSTED'}},
        )
        transaction.on_commit(invalidate_reports_cache)

    logger.info(f"Stock document {document.code} posted")
    return document


def void_document(document_id, user=None, reason='', request=None):
    """Void a DRAFT or POSTED document; posted movements are reversed by exact negation"""
    with transaction.atomic():
        document = _lock_document(document_id)
        if not can_void(document.status):
            raise AppError(
                ErrorCode.INVENTORY_DOCUMENT_VOID_NOT_ALLOWED,
                f"Document {document.code} is already {document.status}",
                {'status': document.status},
            )

        old_status = document.status
        reversed_count = 0
        if old_status == 'POSTED':
            movements = document.movements.exclude(idempotency_key__endswith=':void').order_by('id')
            for movement in movements:
                check_as = 'TRANSFER' if movement.movement_type == 'TRANSFER' else get_reverse_type(movement.movement_type)
                applied = apply_movement(
                    document, movement.product_id, movement.warehouse_id,
                    get_reverse_type(movement.movement_type),
                    f"{movement.idempotency_key}:void",
                    on_hand_change=-movement.qty_change_on_hand,
                    reserved_change=-movement.qty_change_reserved,
                    line=movement.line, user=user, check_as=check_as,
                )
                if applied:
                    reversed_count += 1

        document.status = 'VOID'
        document.voided_at = timezone.now()
        document.voided_by = user if user and user.is_authenticated else None
        document.void_reason = reason or ''
        document.save(update_fields=['status', 'voided_at', 'voided_by', 'void_reason', 'updated_at'])

        create_audit_log(
            request=request,
            user=user,
            action='STOCK_DOCUMENT_VOIDED',
            model_name='StockDocument',
            object_id=str(document.id),
            object_reference=document.code,
            changes={'status': {'old': old_status, 'new': 'VOID'}, 'reason': reason, 'reversed': reversed_count},
        )
        transaction.on_commit(invalidate_reports_cache)

    logger.info(f"Stock document {document.code} voided ({reversed_count} movements reversed)")
    return document


def quick_adjust(product_id, warehouse_id, qty_change, reason, user=None, request=None):
    """Create and post a single-line ADJUSTMENT in one step"""
    qty_change = to_decimal(qty_change)
    reason = (reason or '').strip()
    if qty_change == 0:
        raise AppError.validation('Quantity change must not be zero', {'qty_change': 'non_zero'})
    if not 3 <= len(reason) <= 500:
        raise AppError.validation('Reason must be between 3 and 500 characters', {'reason': 'length'})

    with transaction.atomic():
        document = create_document(
            'ADJUSTMENT', warehouse_id, [{'product_id': product_id, 'qty': qty_change}],
            note=reason, user=user, request=request,
        )
        document = post_document(document.id, user=user, request=request)
        create_audit_log(
            request=request,
            user=user,
            action='INVENTORY_ADJUSTED',
            model_name='InventoryItem',
            object_id=f"{product_id}:{warehouse_id}",
            object_reference=document.code,
            changes={'qty_change': str(qty_change), 'reason': reason},
        )
    return document


def execute_order_stock_action(order, action, warehouse=None, user=None):
    """
    Apply RESERVE/DEDUCT/RELEASE/RESTOCK for every product line of an order.

    Keys are order:{order}:{action}:{index}:{product}, so re-running an action is a no-op.
    """
    if action not in ORDER_STOCK_ACTIONS:
        raise AppError.validation(f"Unknown stock action {action}", {'action': 'invalid_choice'})

    items = [
        (index, item) for index, item in enumerate(order.items.order_by('id'))
        if item.product_id
    ]
    if not items:
        return {'applied': 0, 'skipped': 0, 'document': None}

    keys = {index: f"order:{order.id}:{action}:{index}:{item.product_id}" for index, item in items}
    existing = set(
        StockMovement.objects.filter(idempotency_key__in=keys.values()).values_list('idempotency_key', flat=True)
    )
    if len(existing) == len(keys):
        return {'applied': 0, 'skipped': len(keys), 'document': None}

    warehouse = warehouse or ensure_default_warehouse()
    actor = user if user and user.is_authenticated else None
    applied = 0
    skipped = 0

    with transaction.atomic():
        document = StockDocument.objects.create(
            code=generate_order_document_code(action),
            type=action,
            status='POSTED',
            warehouse=warehouse,
            reference_type='ORDER',
            reference_id=str(order.id),
            note=f"Auto {action} for order {order.code}",
            created_by=actor,
            posted_by=actor,
            posted_at=timezone.now(),
        )
        for index, item in items:
            if keys[index] in existing:
                skipped += 1
                continue
            line = StockDocumentLine.objects.create(document=document, product_id=item.product_id, qty=item.quantity)
            movement = apply_movement(
                document, item.product_id, warehouse.id, action, keys[index],
                qty=item.quantity, line=line, user=user,
            )
            if movement is None:
                skipped += 1
            else:
                applied += 1
        transaction.on_commit(invalidate_reports_cache)

    logger.info(f"Order {order.code}: {action} applied={applied} skipped={skipped} doc={document.code}")
    return {'applied': applied, 'skipped': skipped, 'document': document.code}


def update_reorder_levels(items):
    """items: [{'inventory_item_id', 'reorder_point_qty', 'reorder_qty'}], all quantities >= 0"""
    with transaction.atomic():
        updated = 0
        for entry in items:
            reorder_point = to_decimal(entry['reorder_point_qty'])
            reorder_qty = to_decimal(entry['reorder_qty'])
            if reorder_point < 0 or reorder_qty < 0:
                raise AppError.validation('Reorder quantities must be zero or more',
                                          {str(entry['inventory_item_id']): 'min_value'})
            updated += InventoryItem.objects.filter(pk=entry['inventory_item_id']).update(
                reorder_point_qty=reorder_point, reorder_qty=reorder_qty, updated_at=timezone.now(),
            )
    return updated
