"""
Test suite for orders
Tests: status workflow, checkout, payments, stock side effects and the order API
"""
from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from decimal import Decimal
from commerce.core.errors import AppError, ErrorCode
from commerce.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from commerce.inventory.models import InventoryItem
from commerce.orders import services
from commerce.orders.models import Order, OrderStatusHistory, Payment
from commerce.orders.state_machine import (
    is_allowed_transition, allowed_next, can_cancel, can_modify, fulfillment_for_status,
    stock_action_for_transition, order_status_label, legacy_status_for,
)
from commerce.parties.models import CustomerProfile
from commerce.pricing.models import CouponUsage


class OrderStateMachineTests(TestCase):
    """Transition table and derived statuses"""

    def test_happy_path_transitions(self):
        path = ['PENDING_CONFIRMATION', 'CONFIRMED', 'PACKING', 'SHIPPED', 'DELIVERED']
        for current, following in zip(path, path[1:]):
            self.assertTrue(is_allowed_transition(current, following), f"{current} -> {following}")

    def test_skipping_steps_not_allowed(self):
        self.assertFalse(is_allowed_transition('PENDING_CONFIRMATION', 'SHIPPED'))
        self.assertFalse(is_allowed_transition('CONFIRMED', 'DELIVERED'))

    def test_final_statuses(self):
        self.assertEqual(allowed_next('CANCELED'), [])
        self.assertEqual(allowed_next('RETURNED'), [])
        self.assertFalse(can_modify('DELIVERED'))
        self.assertTrue(can_modify('PACKING'))

    def test_cancel_only_before_shipping(self):
        self.assertTrue(can_cancel('PACKING'))
        self.assertFalse(can_cancel('SHIPPED'))

    def test_same_status_is_allowed(self):
        self.assertTrue(is_allowed_transition('SHIPPED', 'SHIPPED'))

    def test_stock_actions(self):
        self.assertEqual(stock_action_for_transition('PENDING_CONFIRMATION', 'CONFIRMED'), 'RESERVE')
        self.assertEqual(stock_action_for_transition('PACKING', 'SHIPPED'), 'DEDUCT')
        self.assertEqual(stock_action_for_transition('CONFIRMED', 'CANCELED'), 'RELEASE')
        self.assertIsNone(stock_action_for_transition('PENDING_CONFIRMATION', 'CANCELED'))
        self.assertEqual(stock_action_for_transition('RETURN_REQUESTED', 'RETURNED'), 'RESTOCK')
        self.assertIsNone(stock_action_for_transition('CONFIRMED', 'CONFIRMED'))

    def test_fulfillment_mapping(self):
        self.assertEqual(fulfillment_for_status('CONFIRMED'), 'UNFULFILLED')
        self.assertEqual(fulfillment_for_status('SHIPPED'), 'SHIPPED')
        self.assertEqual(fulfillment_for_status('RETURN_REQUESTED'), 'DELIVERED')

    def test_labels(self):
        self.assertEqual(order_status_label('CONFIRMED', 'en'), 'Confirmed')
        self.assertEqual(order_status_label('CONFIRMED', 'vi'), 'Đã xác nhận')
        self.assertEqual(legacy_status_for('CANCELED'), 'CANCELLED')


class CheckoutServiceTests(TestCase):
    """Order creation from a cart"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(price=Decimal('100000'))
        self.quote_product = TestDataFactory.create_product(price=None)

    def _payload(self, **overrides):
        data = {
            'name': 'Tran Thi B',
            'email': 'buyer@example.com',
            'phone': '0909123456',
            'address': '12 Nguyen Hue',
            'city': 'Ho Chi Minh',
            'items': [{'product_id': self.product.id, 'quantity': Decimal('2')}],
            'shipping_fee': Decimal('30000'),
        }
        data.update(overrides)
        return data

    def test_checkout_creates_order(self):
        order, created = services.checkout(self._payload(), user=self.user)
        self.assertTrue(created)
        self.assertRegex(order.code, rf'^CE-{timezone.now().year}-\d{{6}}$')
        self.assertEqual(order.subtotal, Decimal('200000'))
        self.assertEqual(order.total, Decimal('230000'))
        self.assertEqual(order.outstanding_amount, order.total)
        self.assertEqual(order.order_status, 'PENDING_CONFIRMATION')
        self.assertEqual(order.accounting_status, 'PENDING_PAYMENT')
        self.assertEqual(order.items.count(), 1)
        self.assertEqual(order.shipping_address['address_line1'], '12 Nguyen Hue')
        history = order.status_history.get()
        self.assertIsNone(history.from_status)
        self.assertEqual(history.to_status, 'PENDING_CONFIRMATION')

    def test_order_codes_are_sequential(self):
        first, _ = services.checkout(self._payload())
        second, _ = services.checkout(self._payload())
        self.assertEqual(int(second.code.rsplit('-', 1)[1]), int(first.code.rsplit('-', 1)[1]) + 1)

    def test_catalog_price_wins_over_submitted_price(self):
        items = [{'product_id': self.product.id, 'quantity': Decimal('1'), 'price': Decimal('1')}]
        order, _ = services.checkout(self._payload(items=items))
        self.assertEqual(order.items.get().unit_price, Decimal('100000'))

    def test_quote_only_product_uses_submitted_price(self):
        items = [{'product_id': self.quote_product.id, 'quantity': Decimal('3'), 'price': Decimal('50000')}]
        order, _ = services.checkout(self._payload(items=items, shipping_fee=Decimal('0')))
        self.assertEqual(order.total, Decimal('150000'))

    def test_empty_cart(self):
        with self.assertRaises(AppError) as ctx:
            services.checkout(self._payload(items=[]))
        self.assertEqual(ctx.exception.code, ErrorCode.CHECKOUT_EMPTY_CART)

    def test_inactive_product_unavailable(self):
        self.product.is_active = False
        self.product.save()
        with self.assertRaises(AppError) as ctx:
            services.checkout(self._payload())
        self.assertEqual(ctx.exception.code, ErrorCode.CHECKOUT_PRODUCT_UNAVAILABLE)
        self.assertFalse(Order.objects.exists())

    def test_unknown_product_unavailable(self):
        with self.assertRaises(AppError) as ctx:
            services.checkout(self._payload(items=[{'product_id': 987654, 'quantity': Decimal('1')}]))
        self.assertEqual(ctx.exception.code, ErrorCode.CHECKOUT_PRODUCT_UNAVAILABLE)

    def test_idempotency_key_replays_order(self):
        first, created = services.checkout(self._payload(), idempotency_key='cart-123')
        second, replayed = services.checkout(self._payload(), idempotency_key='cart-123')
        self.assertTrue(created)
        self.assertFalse(replayed)
        self.assertEqual(first.pk, second.pk)
        self.assertEqual(Order.objects.count(), 1)

    def test_business_buyer_gets_due_date(self):
        buyer_info = {'customer_type': 'BUSINESS', 'company_name': 'Song Da Steel', 'tax_id': '0101234567'}
        order, _ = services.checkout(self._payload(buyer_info=buyer_info))
        self.assertEqual(order.customer_kind, 'BUSINESS')
        self.assertEqual(order.company_name, 'Song Da Steel')
        self.assertIsNotNone(order.due_date)
        self.assertEqual(round((order.due_date - order.created_at).total_seconds() / 86400), 30)

    def test_business_profile_used_when_buyer_info_missing(self):
        TestDataFactory.create_business_profile(self.user, company_name='Profile Co')
        order, _ = services.checkout(self._payload(), user=self.user)
        self.assertEqual(order.customer_kind, 'BUSINESS')
        self.assertEqual(order.company_name, 'Profile Co')

    def test_personal_order_has_no_due_date(self):
        order, _ = services.checkout(self._payload())
        self.assertIsNone(order.due_date)

    def test_loyalty_points_awarded(self):
        """One point per LOYALTY_POINT_VALUE of the order total"""
        services.checkout(self._payload(), user=self.user)
        self.assertEqual(CustomerProfile.objects.get(user=self.user).loyalty_points, 23)

    def test_coupon_discount_applied_and_redeemed(self):
        coupon = TestDataFactory.create_coupon(code='TENOFF', discount_value=Decimal('10'))
        order, _ = services.checkout(self._payload(coupon_code='tenoff'), user=self.user)
        self.assertEqual(order.discount_total, Decimal('20000'))
        self.assertEqual(order.total, Decimal('210000'))
        self.assertEqual(order.coupon_code, 'TENOFF')
        coupon.refresh_from_db()
        self.assertEqual(coupon.used_count, 1)
        self.assertTrue(CouponUsage.objects.filter(coupon=coupon, order=order, user=self.user).exists())

    def test_free_shipping_coupon(self):
        TestDataFactory.create_coupon(code='SHIPFREE', discount_type='FREE_SHIPPING', discount_value=Decimal('0'))
        order, _ = services.checkout(self._payload(coupon_code='SHIPFREE'))
        self.assertEqual(order.shipping_fee, Decimal('0'))
        self.assertEqual(order.total, Decimal('200000'))

    def test_invalid_coupon_blocks_checkout(self):
        with self.assertRaises(AppError) as ctx:
            services.checkout(self._payload(coupon_code='NOPE'))
        self.assertEqual(ctx.exception.code, ErrorCode.COUPON_INVALID)
        self.assertFalse(Order.objects.exists())


class StatusWorkflowTests(TestCase):
    """update_status and the stock actions it schedules"""

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_admin()
        self.warehouse = TestDataFactory.create_warehouse(code='MAIN', is_default=True)
        self.product = TestDataFactory.create_product(price=Decimal('50000'))
        TestDataFactory.create_inventory(self.product, self.warehouse, on_hand=Decimal('10'))
        self.order = TestDataFactory.create_order(items=[(self.product, Decimal('4'))])

    def _item(self):
        return InventoryItem.objects.get(product=self.product, warehouse=self.warehouse)

    def _move(self, new_status, **kwargs):
        with self.captureOnCommitCallbacks(execute=True):
            return services.update_status(self.order.id, new_status, user=self.admin, **kwargs)

    def test_confirm_reserves_stock(self):
        order = self._move('CONFIRMED')
        self.assertEqual(order.order_status, 'CONFIRMED')
        self.assertIsNotNone(order.confirmed_at)
        self.assertEqual(self._item().reserved_qty, Decimal('4'))
        self.assertEqual(order.status_history.filter(to_status='CONFIRMED').count(), 1)

    def test_ship_deducts_stock(self):
        self._move('CONFIRMED')
        self._move('PACKING')
        order = self._move('SHIPPED')
        self.assertEqual(order.fulfillment_status, 'SHIPPED')
        item = self._item()
        self.assertEqual(item.on_hand_qty, Decimal('6'))
        self.assertEqual(item.reserved_qty, Decimal('0'))

    def test_cancel_after_confirm_releases_stock(self):
        self._move('CONFIRMED')
        order = self._move('CANCELED', cancel_reason='Customer changed mind')
        self.assertEqual(order.cancel_reason, 'Customer changed mind')
        self.assertEqual(order.accounting_status, 'CANCELLED')
        self.assertEqual(self._item().reserved_qty, Decimal('0'))

    def test_cancel_requires_reason(self):
        with self.assertRaises(AppError) as ctx:
            services.update_status(self.order.id, 'CANCELED', cancel_reason='')
        self.assertEqual(ctx.exception.code, ErrorCode.VALIDATION_ERROR)

    def test_invalid_transition_rejected(self):
        with self.assertRaises(AppError) as ctx:
            services.update_status(self.order.id, 'SHIPPED')
        self.assertEqual(ctx.exception.code, ErrorCode.ORDER_INVALID_TRANSITION)
        self.assertIn('CONFIRMED', ctx.exception.details['allowed'])

    def test_force_skips_transition_check(self):
        order = self._move('DELIVERED', force=True)
        self.assertEqual(order.order_status, 'DELIVERED')
        self.assertIsNotNone(order.delivered_at)

    def test_unknown_order(self):
        with self.assertRaises(AppError) as ctx:
            services.update_status(999999, 'CONFIRMED')
        self.assertEqual(ctx.exception.code, ErrorCode.ORDER_NOT_FOUND)

    def test_same_status_without_note_is_noop(self):
        services.update_status(self.order.id, 'PENDING_CONFIRMATION')
        self.assertEqual(OrderStatusHistory.objects.filter(order=self.order).count(), 0)

    def test_stock_failure_keeps_status(self):
        """A failed reservation is logged; the status change stands"""
        TestDataFactory.create_inventory(self.product, self.warehouse, on_hand=Decimal('1'))
        with self.assertLogs('commerce.orders.services', level='ERROR'):
            order = self._move('CONFIRMED')
        order.refresh_from_db()
        self.assertEqual(order.order_status, 'CONFIRMED')
        self.assertEqual(self._item().reserved_qty, Decimal('0'))

    def test_bulk_update_reports_each_order(self):
        other = TestDataFactory.create_order(status='DELIVERED')
        results = services.bulk_update_status([self.order.id, other.id], 'CONFIRMED', user=self.admin)
        self.assertTrue(results[0]['success'])
        self.assertFalse(results[1]['success'])
        self.assertIsNotNone(results[1]['error'])


class PaymentServiceTests(TestCase):
    """Payments and derived financial state"""

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_admin()
        self.product = TestDataFactory.create_product(price=Decimal('100000'))
        self.order = TestDataFactory.create_order(items=[(self.product, Decimal('2'))])

    def test_partial_payment(self):
        payment, order = services.add_payment(self.order.id, Decimal('50000'), 'BANK_TRANSFER', user=self.admin)
        self.assertEqual(payment.amount, Decimal('50000'))
        self.assertEqual(order.paid_amount, Decimal('50000'))
        self.assertEqual(order.outstanding_amount, Decimal('150000'))
        self.assertEqual(order.payment_state, 'PARTIAL')
        self.assertEqual(order.accounting_status, 'PARTIALLY_PAID')

    def test_full_payment(self):
        _, order = services.add_payment(self.order.id, Decimal('200000'), 'CASH')
        self.assertEqual(order.payment_state, 'PAID')
        self.assertEqual(order.accounting_status, 'PAID')
        self.assertEqual(order.outstanding_amount, Decimal('0'))

    def test_paid_and_delivered_is_completed(self):
        Order.objects.filter(pk=self.order.pk).update(order_status='DELIVERED')
        _, order = services.add_payment(self.order.id, Decimal('200000'), 'CASH')
        self.assertEqual(order.accounting_status, 'COMPLETED')

    def test_payment_exceeding_outstanding(self):
        services.add_payment(self.order.id, Decimal('150000'), 'CASH')
        with self.assertRaises(AppError) as ctx:
            services.add_payment(self.order.id, Decimal('60000'), 'CASH')
        self.assertEqual(ctx.exception.code, ErrorCode.PAYMENT_EXCEEDS_OUTSTANDING)
        self.assertEqual(Payment.objects.filter(order=self.order).count(), 1)

    def test_non_positive_amount(self):
        with self.assertRaises(AppError) as ctx:
            services.add_payment(self.order.id, Decimal('0'), 'CASH')
        self.assertEqual(ctx.exception.code, ErrorCode.PAYMENT_INVALID_AMOUNT)

    def test_recalculate_from_payments(self):
        Payment.objects.create(order=self.order, amount=Decimal('200000'), method='CASH', payment_date=timezone.now())
        order = services.recalculate_order_financials(self.order)
        self.assertEqual(order.payment_state, 'PAID')
        self.order.refresh_from_db()
        self.assertEqual(self.order.paid_amount, Decimal('200000'))

    def test_notes_keep_status(self):
        entry = services.add_note(self.order.id, note_internal='Called customer', user=self.admin)
        self.assertEqual(entry.from_status, entry.to_status)
        with self.assertRaises(AppError):
            services.add_note(self.order.id)

    def test_shipping_update(self):
        order = services.update_shipping(self.order.id, carrier=' GHN ', tracking_code='GHN123')
        self.assertEqual(order.carrier, 'GHN')
        self.assertEqual(order.tracking_code, 'GHN123')


class CheckoutAPITests(TestCase):
    """Storefront checkout and customer order endpoints"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(price=Decimal('120000'))
        self.payload = {
            'name': 'Le Van C',
            'email': 'levanc@example.com',
            'phone': '0912345678',
            'address': '5 Tran Phu',
            'city': 'Da Nang',
            'items': [{'product_id': self.product.id, 'quantity': '1'}],
        }

    def test_guest_checkout(self):
        response = self.client.post('/api/v1/checkout/', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['created'])
        self.assertIsNone(Order.objects.get(code=response.data['code']).user)

    def test_idempotency_header_returns_same_order(self):
        first = self.client.post('/api/v1/checkout/', self.payload, format='json', HTTP_IDEMPOTENCY_KEY='abc-1')
        second = self.client.post('/api/v1/checkout/', self.payload, format='json', HTTP_IDEMPOTENCY_KEY='abc-1')
        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertEqual(first.data['code'], second.data['code'])

    def test_empty_cart_error_envelope(self):
        response = self.client.post('/api/v1/checkout/', dict(self.payload, items=[]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], ErrorCode.CHECKOUT_EMPTY_CART)

    def test_invalid_payload(self):
        response = self.client.post('/api/v1/checkout/', {'name': 'X'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_customer_sees_only_own_orders(self):
        self.client.authenticate_user(self.user)
        mine = TestDataFactory.create_order(user=self.user)
        other = TestDataFactory.create_order(user=TestDataFactory.create_user())
        response = self.client.get('/api/v1/customer/orders/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['code'] for row in response.data['results']], [mine.code])
        response = self.client.get(f'/api/v1/customer/orders/{other.code}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_customer_view_hides_internal_notes(self):
        self.client.authenticate_user(self.user)
        order = TestDataFactory.create_order(user=self.user)
        services.add_note(order.id, note_internal='Credit check pending', note_customer='We are preparing it')
        response = self.client.get(f'/api/v1/customer/orders/{order.code}/')
        history = response.data['status_history'][0]
        self.assertNotIn('note_internal', history)
        self.assertEqual(history['note_customer'], 'We are preparing it')


class AdminOrderAPITests(TestCase):
    """Back-office order endpoints and permissions"""

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_admin()
        self.editor = TestDataFactory.create_editor()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        TestDataFactory.create_warehouse(code='MAIN', is_default=True)
        self.order = TestDataFactory.create_order()

    def test_list_includes_status_counts(self):
        TestDataFactory.create_order(status='CONFIRMED')
        response = self.client.get('/api/v1/admin/orders/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['status_counts']['CONFIRMED'], 1)
        self.assertEqual(response.data['status_counts']['PENDING_CONFIRMATION'], 1)

    def test_detail_lists_allowed_next(self):
        response = self.client.get(f'/api/v1/admin/orders/{self.order.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('CONFIRMED', response.data['allowed_next'])

    def test_status_endpoint(self):
        response = self.client.post(f'/api/v1/admin/orders/{self.order.id}/status/', {'status': 'CONFIRMED'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order_status'], 'CONFIRMED')

    def test_invalid_transition_is_conflict(self):
        response = self.client.post(f'/api/v1/admin/orders/{self.order.id}/status/', {'status': 'DELIVERED'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], ErrorCode.ORDER_INVALID_TRANSITION)

    def test_editor_can_read_but_not_update(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.editor)
        self.assertEqual(client.get(f'/api/v1/admin/orders/{self.order.id}/').status_code, status.HTTP_200_OK)
        response = client.post(f'/api/v1/admin/orders/{self.order.id}/status/', {'status': 'CONFIRMED'},
                               format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = client.post(f'/api/v1/admin/orders/{self.order.id}/payments/',
                               {'amount': '1000', 'method': 'CASH'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_customer_cannot_list_admin_orders(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_user())
        self.assertEqual(client.get('/api/v1/admin/orders/').status_code, status.HTTP_403_FORBIDDEN)

    def test_record_payment(self):
        response = self.client.post(f'/api/v1/admin/orders/{self.order.id}/payments/',
                                    {'amount': '40000', 'method': 'BANK_TRANSFER', 'reference': 'VCB-889'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['payment_state'], 'PARTIAL')

    def test_overpayment_is_conflict(self):
        response = self.client.post(f'/api/v1/admin/orders/{self.order.id}/payments/',
                                    {'amount': '999999999', 'method': 'CASH'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], ErrorCode.PAYMENT_EXCEEDS_OUTSTANDING)

    def test_bulk_status(self):
        response = self.client.post('/api/v1/admin/orders/bulk-status/',
                                    {'ids': [self.order.id, 424242], 'status': 'CONFIRMED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['succeeded'], 1)
        self.assertEqual(response.data['failed'], 1)

    def test_export_csv(self):
        response = self.client.get('/api/v1/admin/orders/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('text/csv', response['Content-Type'])
        self.assertIn(self.order.code, response.content.decode('utf-8-sig'))
