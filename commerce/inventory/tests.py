"""
Test suite for the inventory ledger
Tests: document lifecycle, posting, voiding, transfers, order stock actions and API permissions
"""
from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.test import TestCase
from rest_framework import status
from decimal import Decimal
from commerce.core.errors import AppError, ErrorCode
from commerce.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from commerce.catalog.models import Product
from commerce.inventory import services
from commerce.inventory.models import Warehouse, InventoryItem, StockDocument, StockMovement
from commerce.orders.models import OrderItem
from commerce.inventory.state_machine import (
    can_post, can_void, is_allowed_transition, get_reverse_type, get_movement_direction, DOCUMENT_CODE_PREFIXES,
)


class DocumentStateMachineTests(TestCase):
    """Pure document lifecycle rules"""

    def test_draft_can_post_and_void(self):
        self.assertTrue(can_post('DRAFT'))
        self.assertTrue(can_void('DRAFT'))
        self.assertTrue(is_allowed_transition('DRAFT', 'POSTED'))

    def test_posted_can_only_void(self):
        self.assertFalse(can_post('POSTED'))
        self.assertTrue(can_void('POSTED'))
        self.assertFalse(is_allowed_transition('POSTED', 'DRAFT'))

    def test_void_is_terminal(self):
        self.assertFalse(can_post('VOID'))
        self.assertFalse(can_void('VOID'))
        self.assertFalse(is_allowed_transition('VOID', 'POSTED'))

    def test_reverse_types(self):
        self.assertEqual(get_reverse_type('GRN'), 'ISSUE')
        self.assertEqual(get_reverse_type('DEDUCT'), 'RESTOCK')
        self.assertEqual(get_reverse_type('RESERVE'), 'RELEASE')
        self.assertEqual(get_reverse_type('TRANSFER'), 'ADJUSTMENT')

    def test_movement_direction(self):
        self.assertEqual(get_movement_direction('GRN'), 'IN')
        self.assertEqual(get_movement_direction('ISSUE'), 'OUT')
        self.assertEqual(get_movement_direction('TRANSFER'), 'TRANSFER')

    def test_code_prefixes_are_unique(self):
        prefixes = list(DOCUMENT_CODE_PREFIXES.values())
        self.assertEqual(len(prefixes), len(set(prefixes)))


class LedgerServiceTests(TestCase):
    """Posting and voiding documents against balances"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_admin()
        self.warehouse = TestDataFactory.create_warehouse(code='HCM', is_default=True)
        self.other_warehouse = TestDataFactory.create_warehouse(code='HAN')
        self.product = TestDataFactory.create_product()

    def _receive(self, qty, warehouse=None):
        document = services.create_document(
            'GRN', (warehouse or self.warehouse).id, [{'product_id': self.product.id, 'qty': qty}], user=self.user
        )
        return services.post_document(document.id, user=self.user)

    def _item(self, warehouse=None):
        return InventoryItem.objects.get(product=self.product, warehouse=warehouse or self.warehouse)

    def test_document_code_format(self):
        """Codes are {PREFIX}-{YYYYMM}-{seq}"""
        document = services.create_document('GRN', self.warehouse.id, [{'product_id': self.product.id, 'qty': 1}])
        self.assertRegex(document.code, r'^GRN-\d{6}-0001$')
        second = services.create_document('GRN', self.warehouse.id, [{'product_id': self.product.id, 'qty': 1}])
        self.assertTrue(second.code.endswith('-0002'))

    def test_create_document_starts_as_draft(self):
        document = services.create_document('GRN', self.warehouse.id, [{'product_id': self.product.id, 'qty': 5}])
        self.assertEqual(document.status, 'DRAFT')
        self.assertEqual(document.lines.count(), 1)
        self.assertFalse(StockMovement.objects.exists())

    def test_create_document_without_lines(self):
        with self.assertRaises(AppError) as ctx:
            services.create_document('GRN', self.warehouse.id, [])
        self.assertEqual(ctx.exception.code, ErrorCode.VALIDATION_ERROR)

    def test_create_document_rejects_non_positive_qty(self):
        with self.assertRaises(AppError):
            services.create_document('ISSUE', self.warehouse.id, [{'product_id': self.product.id, 'qty': 0}])

    def test_create_document_unknown_warehouse(self):
        with self.assertRaises(AppError) as ctx:
            services.create_document('GRN', 99999, [{'product_id': self.product.id, 'qty': 1}])
        self.assertEqual(ctx.exception.code, ErrorCode.INVENTORY_NOT_FOUND)

    def test_transfer_requires_distinct_target(self):
        with self.assertRaises(AppError):
            services.create_document(
                'TRANSFER', self.warehouse.id, [{'product_id': self.product.id, 'qty': 1}],
                target_warehouse_id=self.warehouse.id,
            )

    def test_post_grn_increases_balance(self):
        """Posting a GRN adds on-hand stock and syncs the product stock quantity"""
        document = self._receive(Decimal('10'))
        self.assertEqual(document.status, 'POSTED')
        self.assertIsNotNone(document.posted_at)
        item = self._item()
        self.assertEqual(item.on_hand_qty, Decimal('10'))
        self.assertEqual(item.available_qty, Decimal('10'))
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, Decimal('10'))
        movement = StockMovement.objects.get(document=document)
        self.assertEqual(movement.balance_on_hand_after, Decimal('10'))

    def test_post_twice_rejected(self):
        document = self._receive(Decimal('3'))
        with self.assertRaises(AppError) as ctx:
            services.post_document(document.id)
        self.assertEqual(ctx.exception.code, ErrorCode.INVENTORY_DOCUMENT_ALREADY_POSTED)
        self.assertEqual(self._item().on_hand_qty, Decimal('3'))

    def test_issue_more_than_available_fails(self):
        """An ISSUE larger than the available qty leaves balances untouched"""
        self._receive(Decimal('2'))
        document = services.create_document('ISSUE', self.warehouse.id, [{'product_id': self.product.id, 'qty': 5}])
        with self.assertRaises(AppError) as ctx:
            services.post_document(document.id)
        self.assertEqual(ctx.exception.code, ErrorCode.INVENTORY_INSUFFICIENT_STOCK)
        self.assertEqual(self._item().on_hand_qty, Decimal('2'))
        document.refresh_from_db()
        self.assertEqual(document.status, 'DRAFT')

    def test_negative_adjustment(self):
        self._receive(Decimal('10'))
        document = services.create_document(
            'ADJUSTMENT', self.warehouse.id, [{'product_id': self.product.id, 'qty': Decimal('-4')}]
        )
        services.post_document(document.id)
        self.assertEqual(self._item().on_hand_qty, Decimal('6'))

    def test_transfer_moves_stock_between_warehouses(self):
        self._receive(Decimal('10'))
        document = services.create_document(
            'TRANSFER', self.warehouse.id, [{'product_id': self.product.id, 'qty': 4}],
            target_warehouse_id=self.other_warehouse.id,
        )
        services.post_document(document.id)
        self.assertEqual(self._item().on_hand_qty, Decimal('6'))
        self.assertEqual(self._item(self.other_warehouse).on_hand_qty, Decimal('4'))
        self.assertEqual(StockMovement.objects.filter(document=document).count(), 2)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, Decimal('10'))

    def test_void_posted_document_reverses_movements(self):
        """Voiding a posted GRN writes negating movements and restores the balance"""
        document = self._receive(Decimal('7'))
        services.void_document(document.id, user=self.user, reason='Wrong supplier')
        document.refresh_from_db()
        self.assertEqual(document.status, 'VOID')
        self.assertEqual(document.void_reason, 'Wrong supplier')
        self.assertEqual(self._item().on_hand_qty, Decimal('0'))
        movements = StockMovement.objects.filter(document=document)
        self.assertEqual(movements.count(), 2)
        self.assertEqual(sum(m.qty_change_on_hand for m in movements), Decimal('0'))

    def test_void_transfer_restores_both_warehouses(self):
        self._receive(Decimal('5'))
        document = services.create_document(
            'TRANSFER', self.warehouse.id, [{'product_id': self.product.id, 'qty': 5}],
            target_warehouse_id=self.other_warehouse.id,
        )
        services.post_document(document.id)
        services.void_document(document.id)
        self.assertEqual(self._item().on_hand_qty, Decimal('5'))
        self.assertEqual(self._item(self.other_warehouse).on_hand_qty, Decimal('0'))

    def test_void_draft_writes_no_movements(self):
        document = services.create_document('GRN', self.warehouse.id, [{'product_id': self.product.id, 'qty': 1}])
        services.void_document(document.id)
        document.refresh_from_db()
        self.assertEqual(document.status, 'VOID')
        self.assertFalse(StockMovement.objects.exists())

    def test_void_twice_rejected(self):
        document = self._receive(Decimal('1'))
        services.void_document(document.id)
        with self.assertRaises(AppError) as ctx:
            services.void_document(document.id)
        self.assertEqual(ctx.exception.code, ErrorCode.INVENTORY_DOCUMENT_VOID_NOT_ALLOWED)

    def test_void_rolls_back_when_reversal_lacks_stock(self):
        """Voiding a receipt whose stock was already issued fails and leaves everything as it was"""
        receipt = self._receive(Decimal('10'))
        issue = services.create_document('ISSUE', self.warehouse.id, [{'product_id': self.product.id, 'qty': 8}])
        services.post_document(issue.id)

        with self.assertRaises(AppError) as ctx:
            services.void_document(receipt.id, user=self.user, reason='Supplier recall')
        self.assertEqual(ctx.exception.code, ErrorCode.INVENTORY_INSUFFICIENT_STOCK)

        receipt.refresh_from_db()
        self.assertEqual(receipt.status, 'POSTED')
        self.assertIsNone(receipt.voided_at)
        self.assertEqual(self._item().on_hand_qty, Decimal('2'))
        self.assertFalse(StockMovement.objects.filter(idempotency_key__endswith=':void').exists())
        self.assertEqual(StockMovement.objects.count(), 2)

    def test_movements_are_immutable(self):
        self._receive(Decimal('1'))
        movement = StockMovement.objects.first()
        with self.assertRaises(ValidationError):
            movement.save()
        with self.assertRaises(ValidationError):
            movement.delete()

    def test_quick_adjust_validates_reason(self):
        with self.assertRaises(AppError):
            services.quick_adjust(self.product.id, self.warehouse.id, 5, 'no')
        with self.assertRaises(AppError):
            services.quick_adjust(self.product.id, self.warehouse.id, 0, 'Cycle count')

    def test_quick_adjust_posts_adjustment(self):
        document = services.quick_adjust(self.product.id, self.warehouse.id, 5, 'Cycle count', user=self.user)
        self.assertEqual(document.type, 'ADJUSTMENT')
        self.assertEqual(document.status, 'POSTED')
        self.assertEqual(self._item().on_hand_qty, Decimal('5'))

    def test_ensure_default_warehouse_creates_main(self):
        Warehouse.objects.all().delete()
        warehouse = services.ensure_default_warehouse()
        self.assertEqual(warehouse.code, 'MAIN')
        self.assertTrue(warehouse.is_default)
        self.assertEqual(services.ensure_default_warehouse().pk, warehouse.pk)


class OrderStockActionTests(TestCase):
    """Reserve, deduct, release and restock driven by orders"""

    def setUp(self):
        cache.clear()
        self.warehouse = TestDataFactory.create_warehouse(code='MAIN', is_default=True)
        self.product = TestDataFactory.create_product()
        TestDataFactory.create_inventory(self.product, self.warehouse, on_hand=Decimal('10'))
        self.order = TestDataFactory.create_order(items=[(self.product, Decimal('3'))])

    def _item(self):
        return InventoryItem.objects.get(product=self.product, warehouse=self.warehouse)

    def test_reserve_holds_stock(self):
        result = services.execute_order_stock_action(self.order, 'RESERVE')
        self.assertEqual(result['applied'], 1)
        item = self._item()
        self.assertEqual(item.on_hand_qty, Decimal('10'))
        self.assertEqual(item.reserved_qty, Decimal('3'))
        self.assertEqual(item.available_qty, Decimal('7'))
        document = StockDocument.objects.get(code=result['document'])
        self.assertEqual(document.reference_type, 'ORDER')
        self.assertTrue(document.code.startswith('RSV-'))

    def test_reserve_is_idempotent(self):
        services.execute_order_stock_action(self.order, 'RESERVE')
        result = services.execute_order_stock_action(self.order, 'RESERVE')
        self.assertEqual(result['applied'], 0)
        self.assertEqual(result['skipped'], 1)
        self.assertEqual(self._item().reserved_qty, Decimal('3'))

    def test_reserve_beyond_available_fails(self):
        order = TestDataFactory.create_order(items=[(self.product, Decimal('11'))])
        with self.assertRaises(AppError) as ctx:
            services.execute_order_stock_action(order, 'RESERVE')
        self.assertEqual(ctx.exception.code, ErrorCode.INVENTORY_INSUFFICIENT_STOCK)
        self.assertEqual(self._item().reserved_qty, Decimal('0'))

    def test_deduct_consumes_reservation(self):
        services.execute_order_stock_action(self.order, 'RESERVE')
        services.execute_order_stock_action(self.order, 'DEDUCT')
        item = self._item()
        self.assertEqual(item.on_hand_qty, Decimal('7'))
        self.assertEqual(item.reserved_qty, Decimal('0'))
        self.assertEqual(item.available_qty, Decimal('7'))

    def test_release_never_goes_below_zero(self):
        """Releasing without a reservation is clamped to the reserved qty"""
        services.execute_order_stock_action(self.order, 'RELEASE')
        self.assertEqual(self._item().reserved_qty, Decimal('0'))

    def test_restock_returns_goods(self):
        services.execute_order_stock_action(self.order, 'RESERVE')
        services.execute_order_stock_action(self.order, 'DEDUCT')
        services.execute_order_stock_action(self.order, 'RESTOCK')
        self.assertEqual(self._item().on_hand_qty, Decimal('10'))

    def test_partial_rerun_only_lists_moved_lines(self):
        """A re-run after a line was added writes a document line only for the new item"""
        services.execute_order_stock_action(self.order, 'RESERVE')
        extra = TestDataFactory.create_product()
        TestDataFactory.create_inventory(extra, self.warehouse, on_hand=Decimal('4'))
        OrderItem.objects.create(order=self.order, product=extra, sku=extra.sku, name=extra.name_en,
                                 unit_price=extra.price, quantity=Decimal('2'), line_total=extra.price * 2)

        result = services.execute_order_stock_action(self.order, 'RESERVE')
        self.assertEqual((result['applied'], result['skipped']), (1, 1))
        document = StockDocument.objects.get(code=result['document'])
        self.assertEqual([line.product_id for line in document.lines.all()], [extra.id])
        self.assertEqual(self._item().reserved_qty, Decimal('3'))

    def test_lines_without_product_are_ignored(self):
        self.order.items.update(product=None)
        result = services.execute_order_stock_action(self.order, 'RESERVE')
        self.assertEqual(result, {'applied': 0, 'skipped': 0, 'document': None})

    def test_unknown_action(self):
        with self.assertRaises(AppError):
            services.execute_order_stock_action(self.order, 'GRN')


class InventoryAPITests(TestCase):
    """Inventory and stock document endpoints"""

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_admin()
        self.editor = TestDataFactory.create_editor()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.warehouse = TestDataFactory.create_warehouse(code='HCM', is_default=True)
        self.product = TestDataFactory.create_product()

    def test_create_and_post_document(self):
        data = {
            'type': 'GRN',
            'warehouse_id': self.warehouse.id,
            'lines': [{'product_id': self.product.id, 'qty': '12'}],
            'post_immediately': True,
        }
        response = self.client.post('/api/v1/warehouse/docs/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'POSTED')
        self.assertEqual(Product.objects.get(pk=self.product.pk).stock_quantity, Decimal('12'))

    def test_post_endpoint_reports_conflict(self):
        document = services.create_document('GRN', self.warehouse.id, [{'product_id': self.product.id, 'qty': 1}])
        response = self.client.post(f'/api/v1/warehouse/docs/{document.id}/post/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.post(f'/api/v1/warehouse/docs/{document.id}/post/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['error']['code'], ErrorCode.INVENTORY_DOCUMENT_ALREADY_POSTED)

    def test_posted_document_cannot_be_deleted(self):
        document = services.create_document('GRN', self.warehouse.id, [{'product_id': self.product.id, 'qty': 1}])
        services.post_document(document.id)
        response = self.client.delete(f'/api/v1/warehouse/docs/{document.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_inventory_list_filters_low_stock(self):
        TestDataFactory.create_inventory(self.product, self.warehouse, on_hand=Decimal('2'), reorder_point=Decimal('5'))
        healthy = TestDataFactory.create_product()
        TestDataFactory.create_inventory(healthy, self.warehouse, on_hand=Decimal('50'), reorder_point=Decimal('5'))
        response = self.client.get('/api/v1/inventory/', {'status': 'low_stock'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['sku'], self.product.sku)

    def test_inventory_list_rejects_unknown_status(self):
        response = self.client.get('/api/v1/inventory/', {'status': 'missing'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_quick_adjust_endpoint(self):
        data = {'product_id': self.product.id, 'warehouse_id': self.warehouse.id, 'qty_change': '4',
                'reason': 'Found in back room'}
        response = self.client.post('/api/v1/inventory/adjust/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(str(response.data['item']['on_hand_qty'])), Decimal('4'))

    def test_editor_cannot_read_inventory(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.editor)
        response = client.get('/api/v1/inventory/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_anonymous_rejected(self):
        response = AuthenticatedAPIClient().get('/api/v1/warehouse/docs/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
