"""
Test suite for coupons
Tests: discount calculation, every rejection reason, targeting and the coupon endpoints
"""
from datetime import timedelta
from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from decimal import Decimal
from commerce.core.errors import AppError, ErrorCode
from commerce.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from commerce.pricing.models import Coupon, CouponUsage
from commerce.pricing.services import evaluate_coupon, calculate_discount, redeem_coupon


class CouponEvaluationTests(TestCase):
    """evaluate_coupon checks and discount amounts"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.category = TestDataFactory.create_category()
        self.product = TestDataFactory.create_product(category=self.category, price=Decimal('200000'))
        self.other_product = TestDataFactory.create_product(price=Decimal('100000'))
        self.items = [
            {'product_id': self.product.id, 'quantity': Decimal('1'), 'price': Decimal('200000')},
            {'product_id': self.other_product.id, 'quantity': Decimal('2'), 'price': Decimal('100000')},
        ]
        self.subtotal = Decimal('400000')

    def assertReason(self, reason, code, user=None, items=None, subtotal=None):
        with self.assertRaises(AppError) as ctx:
            evaluate_coupon(code, items or self.items, subtotal or self.subtotal, user=user)
        self.assertEqual(ctx.exception.code, ErrorCode.COUPON_INVALID)
        self.assertEqual(ctx.exception.details['reason'], reason)

    def test_percentage_discount(self):
        TestDataFactory.create_coupon(code='PCT15', discount_value=Decimal('15'))
        result = evaluate_coupon('pct15', self.items, self.subtotal)
        self.assertEqual(result['code'], 'PCT15')
        self.assertEqual(result['discount_amount'], Decimal('60000'))
        self.assertFalse(result['free_shipping'])

    def test_percentage_capped_by_max_discount(self):
        TestDataFactory.create_coupon(code='CAP', discount_value=Decimal('50'), max_discount=Decimal('50000'))
        self.assertEqual(evaluate_coupon('CAP', self.items, self.subtotal)['discount_amount'], Decimal('50000'))

    def test_fixed_amount_never_exceeds_subtotal(self):
        coupon = TestDataFactory.create_coupon(code='BIG', discount_type='FIXED_AMOUNT',
                                               discount_value=Decimal('1000000'))
        self.assertEqual(calculate_discount(coupon, Decimal('400000')), Decimal('400000'))

    def test_discount_rounded_to_currency(self):
        coupon = TestDataFactory.create_coupon(code='ODD', discount_value=Decimal('33'))
        self.assertEqual(calculate_discount(coupon, Decimal('1001'), 'VND'), Decimal('330'))
        self.assertEqual(calculate_discount(coupon, Decimal('10.01'), 'USD'), Decimal('3.30'))

    def test_free_shipping(self):
        TestDataFactory.create_coupon(code='SHIP', discount_type='FREE_SHIPPING', discount_value=Decimal('0'))
        result = evaluate_coupon('SHIP', self.items, self.subtotal)
        self.assertTrue(result['free_shipping'])
        self.assertEqual(result['discount_amount'], Decimal('0'))

    def test_not_found(self):
        self.assertReason('not_found', 'MISSING')
        self.assertReason('not_found', '   ')

    def test_inactive(self):
        TestDataFactory.create_coupon(code='OFF', status='INACTIVE')
        self.assertReason('inactive', 'OFF')

    def test_not_started(self):
        TestDataFactory.create_coupon(code='LATER', starts_at=timezone.now() + timedelta(days=2))
        self.assertReason('not_started', 'LATER')

    def test_expired(self):
        TestDataFactory.create_coupon(code='OLD', expires_at=timezone.now() - timedelta(minutes=1))
        self.assertReason('expired', 'OLD')

    def test_usage_limit_reached(self):
        TestDataFactory.create_coupon(code='LIMITED', usage_limit=2, used_count=2)
        self.assertReason('usage_limit_reached', 'LIMITED')

    def test_user_limit_reached(self):
        coupon = TestDataFactory.create_coupon(code='ONCE')
        redeem_coupon(coupon, self.user, None, Decimal('1000'))
        self.assertReason('user_limit_reached', 'ONCE', user=self.user)
        # Guests are not tracked per user
        evaluate_coupon('ONCE', self.items, self.subtotal)

    def test_min_order_not_met(self):
        TestDataFactory.create_coupon(code='MIN', min_order_amount=Decimal('500000'))
        with self.assertRaises(AppError) as ctx:
            evaluate_coupon('MIN', self.items, self.subtotal)
        self.assertEqual(ctx.exception.details['reason'], 'min_order_not_met')
        self.assertEqual(ctx.exception.details['min_order_amount'], '500000.00')

    def test_min_quantity_not_met(self):
        TestDataFactory.create_coupon(code='BULK', min_quantity=10)
        self.assertReason('min_quantity_not_met', 'BULK')

    def test_specific_customers(self):
        coupon = TestDataFactory.create_coupon(code='VIP', target_type='SPECIFIC_CUSTOMERS')
        self.assertReason('login_required', 'VIP')
        self.assertReason('not_eligible_customer', 'VIP', user=self.user)
        coupon.customers.add(self.user)
        self.assertEqual(evaluate_coupon('VIP', self.items, self.subtotal, user=self.user)['code'], 'VIP')

    def test_first_order(self):
        TestDataFactory.create_coupon(code='WELCOME', target_type='FIRST_ORDER')
        self.assertEqual(evaluate_coupon('WELCOME', self.items, self.subtotal, user=self.user)['code'], 'WELCOME')
        TestDataFactory.create_order(user=self.user, status='CANCELED')
        # Canceled orders do not count
        evaluate_coupon('WELCOME', self.items, self.subtotal, user=self.user)
        TestDataFactory.create_order(user=self.user, status='DELIVERED')
        self.assertReason('not_first_order', 'WELCOME', user=self.user)

    def test_specific_products_discount_only_eligible_lines(self):
        coupon = TestDataFactory.create_coupon(code='PUMP', target_type='SPECIFIC_PRODUCTS',
                                               discount_value=Decimal('10'))
        coupon.products.add(self.product)
        result = evaluate_coupon('PUMP', self.items, self.subtotal)
        self.assertEqual(result['eligible_subtotal'], Decimal('200000'))
        self.assertEqual(result['discount_amount'], Decimal('20000'))

    def test_specific_categories_resolves_product_category(self):
        """Items without category_id are looked up from the catalog"""
        coupon = TestDataFactory.create_coupon(code='CAT', target_type='SPECIFIC_CATEGORIES',
                                               discount_value=Decimal('50'))
        coupon.categories.add(self.category)
        result = evaluate_coupon('CAT', self.items, self.subtotal)
        self.assertEqual(result['discount_amount'], Decimal('100000'))

    def test_not_applicable(self):
        coupon = TestDataFactory.create_coupon(code='NOMATCH', target_type='SPECIFIC_PRODUCTS')
        coupon.products.add(TestDataFactory.create_product())
        self.assertReason('not_applicable', 'NOMATCH')

    def test_redeem_increments_usage(self):
        coupon = TestDataFactory.create_coupon(code='COUNT')
        order = TestDataFactory.create_order(user=self.user)
        redeem_coupon(coupon, self.user, order, Decimal('5000'))
        coupon.refresh_from_db()
        self.assertEqual(coupon.used_count, 1)
        self.assertEqual(CouponUsage.objects.get(coupon=coupon).order, order)

    def test_code_stored_uppercase(self):
        coupon = TestDataFactory.create_coupon(code='  lower10 ')
        self.assertEqual(coupon.code, 'LOWER10')


class CouponAPITests(TestCase):
    """Public apply endpoint and admin coupon management"""

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.product = TestDataFactory.create_product(price=Decimal('100000'))
        self.cart = {
            'items': [{'product_id': self.product.id, 'quantity': '3', 'price': '100000'}],
            'subtotal': '300000',
        }

    def test_apply_valid_coupon(self):
        TestDataFactory.create_coupon(code='SAVE10', discount_value=Decimal('10'))
        response = self.client.post('/api/v1/coupons/apply/', dict(self.cart, code='save10'), format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['discount_amount'], '30000')
        self.assertIn('30000', response.data['message'])

    def test_apply_invalid_coupon_returns_reason(self):
        response = self.client.post('/api/v1/coupons/apply/', dict(self.cart, code='NOPE'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], ErrorCode.COUPON_INVALID)
        self.assertEqual(response.data['error']['details']['reason'], 'not_found')

    def test_admin_creates_coupon(self):
        self.client.authenticate_user(self.admin)
        data = {'code': 'new20', 'name': 'New customers', 'discount_type': 'PERCENTAGE', 'discount_value': '20'}
        response = self.client.post('/api/v1/admin/coupons/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['code'], 'NEW20')
        self.assertEqual(Coupon.objects.get(code='NEW20').created_by, self.admin)

    def test_percentage_over_100_rejected(self):
        self.client.authenticate_user(self.admin)
        data = {'code': 'TOOMUCH', 'name': 'Bad', 'discount_type': 'PERCENTAGE', 'discount_value': '150'}
        response = self.client.post('/api/v1/admin/coupons/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_targeted_coupon_needs_targets(self):
        self.client.authenticate_user(self.admin)
        data = {'code': 'PRODS', 'name': 'Products', 'discount_value': '5', 'target_type': 'SPECIFIC_PRODUCTS'}
        response = self.client.post('/api/v1/admin/coupons/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('products', response.data)

    def test_duplicate_code_rejected(self):
        TestDataFactory.create_coupon(code='DUP')
        self.client.authenticate_user(self.admin)
        data = {'code': 'dup', 'name': 'Again', 'discount_value': '5'}
        response = self.client.post('/api/v1/admin/coupons/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_used_coupon_deactivates(self):
        coupon = TestDataFactory.create_coupon(code='USED')
        redeem_coupon(coupon, None, None, Decimal('1000'))
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/admin/coupons/{coupon.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['deactivated'])
        coupon.refresh_from_db()
        self.assertEqual(coupon.status, 'INACTIVE')

    def test_delete_unused_coupon(self):
        coupon = TestDataFactory.create_coupon(code='UNUSED')
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/admin/coupons/{coupon.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Coupon.objects.filter(pk=coupon.pk).exists())

    def test_editor_cannot_manage_coupons(self):
        self.client.authenticate_user(TestDataFactory.create_editor())
        response = self.client.get('/api/v1/admin/coupons/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
