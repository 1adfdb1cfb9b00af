"""
Comprehensive test suite for Reports module
Tests: Date Ranges, Revenue Dashboard, Receivables, Dashboard Summary, CSV Exports, Cache Invalidation
"""
import json
from datetime import datetime, date, time, timedelta
from decimal import Decimal
from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from commerce.catalog.models import ProductReview
from commerce.content.models import ContactMessage
from commerce.core.errors import AppError, ErrorCode
from commerce.core.models import AuditLog, Setting
from commerce.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from commerce.orders.models import Order
from commerce.orders.services import add_payment
from commerce.pricing.models import CouponUsage
from commerce.reports import analytics, planning


class DateRangeTests(TestCase):
    """parse_date_range boundaries"""

    def setUp(self):
        self.now = timezone.make_aware(datetime(2026, 3, 15, 10, 30))

    def test_seven_days_starts_at_midnight_six_days_back(self):
        start, end = analytics.parse_date_range('7d', now=self.now)
        self.assertEqual(timezone.localtime(start).date(), date(2026, 3, 9))
        self.assertEqual(timezone.localtime(start).time(), time.min)
        self.assertEqual(end, self.now)

    def test_today_and_month(self):
        start, _ = analytics.parse_date_range('today', now=self.now)
        self.assertEqual(timezone.localtime(start).date(), date(2026, 3, 15))
        start, _ = analytics.parse_date_range('month', now=self.now)
        self.assertEqual(timezone.localtime(start).date(), date(2026, 3, 1))

    def test_default_is_thirty_days(self):
        start, _ = analytics.parse_date_range(None, now=self.now)
        self.assertEqual(timezone.localtime(start).date(), date(2026, 2, 14))

    def test_custom_range_includes_whole_end_day(self):
        start, end = analytics.parse_date_range('custom', '2026-01-01', '2026-01-31', now=self.now)
        self.assertEqual(timezone.localtime(start).date(), date(2026, 1, 1))
        self.assertEqual(timezone.localtime(end).date(), date(2026, 1, 31))
        self.assertEqual(timezone.localtime(end).time(), time.max)

    def test_custom_without_to_ends_now(self):
        _, end = analytics.parse_date_range('custom', '2026-03-01', now=self.now)
        self.assertEqual(end, self.now)

    def test_invalid_ranges(self):
        for args in (('yearly',), ('custom',), ('custom', '2026-02-01', '2026-01-01'), ('custom', 'not-a-date')):
            with self.assertRaises(AppError) as ctx:
                analytics.parse_date_range(*args, now=self.now)
            self.assertEqual(ctx.exception.code, ErrorCode.VALIDATION_ERROR)


class AnalyticsTests(TestCase):
    """Report query results"""

    def setUp(self):
        cache.clear()
        self.product = TestDataFactory.create_product(price=Decimal('100000'))

    def test_revenue_dashboard_summary(self):
        order = TestDataFactory.create_order(items=[(self.product, 2)])
        add_payment(order.id, '50000', 'BANK_TRANSFER')

        data = analytics.revenue_dashboard.uncached('7d')
        self.assertEqual(data['summary']['total_revenue'], 50000.0)
        self.assertEqual(data['summary']['outstanding_debt'], 150000.0)
        self.assertEqual(data['summary']['completed_orders'], 0)
        self.assertEqual(data['summary']['aov'], 200000.0)
        self.assertEqual(len(data['daily']), 7)
        self.assertEqual(data['daily'][-1]['revenue'], 50000.0)
        self.assertEqual(data['top_products'][0]['sku'], self.product.sku)
        self.assertEqual(data['top_products'][0]['quantity'], 2.0)

    def test_cancelled_orders_excluded_from_debt(self):
        TestDataFactory.create_order(items=[(self.product, 1)])
        cancelled = TestDataFactory.create_order(items=[(self.product, 5)])
        Order.objects.filter(pk=cancelled.pk).update(accounting_status='CANCELLED')
        data = analytics.revenue_dashboard.uncached('today')
        self.assertEqual(data['summary']['outstanding_debt'], 100000.0)

    def test_receivables_ordering_and_overdue(self):
        now = timezone.now()
        overdue = TestDataFactory.create_order(items=[(self.product, 1)], due_date=now - timedelta(days=5))
        upcoming = TestDataFactory.create_order(items=[(self.product, 2)], due_date=now + timedelta(days=10))
        undated = TestDataFactory.create_order(items=[(self.product, 3)])
        settled = TestDataFactory.create_order(items=[(self.product, 1)])
        add_payment(settled.id, '100000', 'CASH')

        data = analytics.receivables.uncached()
        self.assertEqual([row['code'] for row in data['results']], [overdue.code, upcoming.code, undated.code])
        self.assertEqual(data['results'][0]['days_overdue'], 5)
        self.assertEqual(data['results'][1]['days_overdue'], 0)
        self.assertEqual(data['total_outstanding'], 600000.0)
        self.assertEqual(data['overdue_amount'], 100000.0)

    def test_receivables_filters(self):
        now = timezone.now()
        overdue = TestDataFactory.create_order(items=[(self.product, 1)], due_date=now - timedelta(days=1))
        TestDataFactory.create_order(items=[(self.product, 1)], due_date=now + timedelta(days=20))
        self.assertEqual(analytics.receivables.uncached(overdue_only=True)['count'], 1)
        self.assertEqual(analytics.receivables.uncached(due_in_days=7)['count'], 1)
        self.assertEqual(analytics.receivables.uncached(q=overdue.code)['results'][0]['id'], overdue.id)

    def test_dashboard_summary(self):
        TestDataFactory.create_order(items=[(self.product, 1)])
        TestDataFactory.create_inventory(self.product, TestDataFactory.create_warehouse(), on_hand=Decimal('2'),
                                         reorder_point=Decimal('5'))
        ContactMessage.objects.create(name='Le C', email='le@example.com', message='Quote for 3 pumps please')

        data = analytics.dashboard_summary.uncached()
        self.assertEqual(data['orders_today'], 1)
        self.assertEqual(data['pending_orders'], 1)
        self.assertEqual(data['low_stock_count'], 1)
        self.assertEqual(data['unread_contacts'], 1)

    def test_out_of_stock_not_counted_as_low(self):
        warehouse = TestDataFactory.create_warehouse()
        TestDataFactory.create_inventory(self.product, warehouse, on_hand=Decimal('3'), reorder_point=Decimal('5'))
        TestDataFactory.create_inventory(TestDataFactory.create_product(), warehouse, on_hand=Decimal('0'),
                                         reorder_point=Decimal('5'))
        self.assertEqual(analytics.dashboard_summary.uncached()['low_stock_count'], 1)
        self.assertEqual(analytics.inventory_analytics.uncached('30d')['low_stock_count'], 1)

    def test_inventory_analytics_stock_value(self):
        TestDataFactory.create_inventory(self.product, TestDataFactory.create_warehouse(), on_hand=Decimal('10'))
        data = analytics.inventory_analytics.uncached('30d')
        # cost price 60000 per unit
        self.assertEqual(data['stock_value'], 600000.0)
        self.assertEqual(data['low_stock_count'], 0)

    def test_payment_invalidates_cached_report(self):
        order = TestDataFactory.create_order(items=[(self.product, 1)])
        self.assertEqual(analytics.revenue_dashboard('30d')['summary']['total_revenue'], 0.0)
        with self.captureOnCommitCallbacks(execute=True):
            add_payment(order.id, '40000', 'CASH')
        self.assertEqual(analytics.revenue_dashboard('30d')['summary']['total_revenue'], 40000.0)


class RevenuePlanTests(TestCase):
    """Monthly targets against payments"""

    def setUp(self):
        cache.clear()
        self.month = f"{timezone.localtime():%Y-%m}"
        self.product = TestDataFactory.create_product(price=Decimal('100000'))

    def test_progress_against_target(self):
        planning.set_revenue_target(self.month, '200000')
        order = TestDataFactory.create_order(items=[(self.product, 1)])
        add_payment(order.id, '50000', 'BANK_TRANSFER')

        data = analytics.revenue_plan.uncached()
        self.assertEqual(data['current'], {
            'month': self.month, 'target': 200000.0, 'actual': 50000.0, 'remaining': 150000.0, 'percent': 25.0,
        })
        self.assertEqual(len(data['months']), 6)
        self.assertEqual(data['months'][-1]['month'], self.month)

    def test_percent_capped_at_one_hundred(self):
        planning.set_revenue_target(self.month, 10000)
        order = TestDataFactory.create_order(items=[(self.product, 1)])
        add_payment(order.id, '50000', 'CASH')
        current = analytics.revenue_plan.uncached()['current']
        self.assertEqual(current['percent'], 100.0)
        self.assertEqual(current['remaining'], 0.0)

    def test_history_months_are_consecutive(self):
        planning.set_revenue_target('2025-12', '3000000')
        data = analytics.revenue_plan.uncached('2026-01')
        self.assertEqual([row['month'] for row in data['months']],
                         ['2025-08', '2025-09', '2025-10', '2025-11', '2025-12', '2026-01'])
        self.assertEqual(data['months'][-2]['target'], 3000000.0)
        self.assertEqual(data['current']['percent'], 0.0)

    def test_targets_stored_as_json_setting(self):
        planning.set_revenue_target('2026-03', '500000000')
        planning.set_revenue_target('2026-04', '1500.50')
        stored = json.loads(Setting.objects.get(key=planning.REVENUE_PLAN_KEY).value)
        self.assertEqual(stored, {'2026-03': 500000000, '2026-04': 1500.5})
        self.assertTrue(AuditLog.objects.filter(action='REVENUE_TARGET_SET', object_reference='2026-03').exists())

    def test_zero_clears_target(self):
        planning.set_revenue_target('2026-03', '500000')
        targets = planning.set_revenue_target('2026-03', 0)
        self.assertNotIn('2026-03', targets)
        self.assertEqual(planning.load_revenue_targets(), {})

    def test_malformed_setting_ignored(self):
        Setting.objects.create(key=planning.REVENUE_PLAN_KEY, value='{not json')
        self.assertEqual(planning.load_revenue_targets(), {})
        Setting.objects.filter(key=planning.REVENUE_PLAN_KEY).update(
            value='{"2026-03": 100, "March": 5, "2026-04": -1}'
        )
        self.assertEqual(planning.load_revenue_targets(), {'2026-03': Decimal('100')})

    def test_invalid_input_rejected(self):
        for month, target in (('2026-13', 100), ('03/2026', 100), ('2026-03', -5), ('2026-03', 'lots'), (None, 100)):
            with self.assertRaises(AppError) as ctx:
                planning.set_revenue_target(month, target)
            self.assertEqual(ctx.exception.code, ErrorCode.VALIDATION_ERROR)


class MarketingAnalyticsTests(TestCase):
    """Coupon, review, contact and blog aggregates"""

    def setUp(self):
        cache.clear()
        self.product = TestDataFactory.create_product(price=Decimal('100000'))

    def test_coupon_redemptions(self):
        coupon = TestDataFactory.create_coupon(code='PUMP10')
        order = TestDataFactory.create_order(items=[(self.product, 2)])
        CouponUsage.objects.create(coupon=coupon, order=order, discount_amount=Decimal('20000'))
        TestDataFactory.create_coupon(code='UNUSED')

        coupons = analytics.marketing_analytics.uncached('30d')['coupons']
        self.assertEqual(len(coupons['top']), 1)
        top = coupons['top'][0]
        self.assertEqual(top['code'], 'PUMP10')
        self.assertEqual(top['usage_count'], 1)
        self.assertEqual(top['total_discount'], 20000.0)
        self.assertEqual(top['total_revenue'], 200000.0)
        self.assertEqual(top['roi'], 900.0)
        self.assertEqual(coupons['total_usages'], 1)

    def test_reviews_contacts_and_blog(self):
        ProductReview.objects.create(product=self.product, user=TestDataFactory.create_user(), overall_rating=4,
                                     content='Solid pump, quiet motor', status='APPROVED', is_verified_purchase=True)
        ProductReview.objects.create(product=self.product, user=TestDataFactory.create_user(), overall_rating=5,
                                     content='Delivered quickly and works', status='APPROVED')
        ProductReview.objects.create(product=self.product, user=TestDataFactory.create_user(), overall_rating=1,
                                     content='Still waiting for moderation')
        ContactMessage.objects.create(name='Le C', email='le@example.com', message='Quote for 3 pumps please',
                                      status='REPLIED')
        ContactMessage.objects.create(name='Tran D', email='tran@example.com', message='Do you ship to Hue?')
        popular = TestDataFactory.create_blog_post(status='PUBLISHED', view_count=120, published_at=timezone.now())
        TestDataFactory.create_blog_post(status='PUBLISHED', view_count=30, published_at=timezone.now())
        TestDataFactory.create_blog_post(view_count=999)

        data = analytics.marketing_analytics.uncached('7d')
        self.assertEqual(data['reviews'], {
            'approved': 2, 'pending': 1, 'average_rating': 4.5, 'verified': 1, 'verified_rate': 50.0,
        })
        self.assertEqual(data['contacts'], {'total': 2, 'replied': 1, 'response_rate': 50.0})
        self.assertEqual(data['blog']['published_posts'], 2)
        self.assertEqual(data['blog']['total_views'], 150)
        self.assertEqual(data['blog']['top_posts'][0]['slug'], popular.slug)

    def test_empty(self):
        data = analytics.marketing_analytics.uncached('today')
        self.assertEqual(data['coupons']['total_discount'], 0.0)
        self.assertEqual(data['reviews']['average_rating'], 0)
        self.assertEqual(data['contacts']['response_rate'], 0.0)
        self.assertEqual(data['blog']['top_posts'], [])


class ReportsAPITests(TestCase):
    """Report endpoints and permissions"""

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.product = TestDataFactory.create_product(price=Decimal('250000'))

    def test_revenue_dashboard(self):
        response = self.client.get('/api/v1/reports/revenue/', {'range': '7d'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('summary', response.data)
        self.assertEqual(len(response.data['daily']), 7)

    def test_invalid_range_rejected(self):
        response = self.client.get('/api/v1/reports/revenue/', {'range': 'forever'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], ErrorCode.VALIDATION_ERROR)

    def test_custom_range_needs_from(self):
        response = self.client.get('/api/v1/reports/inventory/', {'range': 'custom'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_receivables_bad_due_in_days(self):
        response = self.client.get('/api/v1/reports/receivables/', {'due_in_days': 'soon'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_customers_and_dashboard(self):
        TestDataFactory.create_order(items=[(self.product, 1)], email='buyer@acme.vn')
        response = self.client.get('/api/v1/reports/customers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['new_customers'], 1)
        response = self.client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.data['orders_today'], 1)

    def test_debt_csv(self):
        order = TestDataFactory.create_order(items=[(self.product, 1)], due_date=timezone.now() - timedelta(days=3))
        response = self.client.get('/api/v1/reports/debt.csv')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/csv; charset=utf-8')
        lines = response.content.decode('utf-8-sig').strip().splitlines()
        self.assertTrue(lines[0].startswith('Order Code,Customer'))
        self.assertIn(order.code, lines[1])

    def test_revenue_csv(self):
        response = self.client.get('/api/v1/reports/revenue.csv', {'range': '7d'})
        lines = response.content.decode('utf-8-sig').strip().splitlines()
        self.assertEqual(lines[0], 'Date,Revenue,Payments')
        self.assertEqual(len(lines), 8)

    def test_editor_denied(self):
        self.client.authenticate_user(TestDataFactory.create_editor())
        self.assertEqual(self.client.get('/api/v1/reports/revenue/').status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.client.get('/api/v1/reports/debt.csv').status_code, status.HTTP_403_FORBIDDEN)

    def test_anonymous_denied(self):
        self.client.logout()
        response = self.client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_revenue_plan_set_and_read(self):
        month = f"{timezone.localtime():%Y-%m}"
        response = self.client.put('/api/v1/reports/planning/', {'month': month, 'target': '1000000'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['current']['target'], 1000000.0)

        response = self.client.get('/api/v1/reports/planning/', {'month': month})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['current']['month'], month)
        self.assertEqual(len(response.data['months']), 6)

    def test_revenue_plan_invalid_input(self):
        response = self.client.get('/api/v1/reports/planning/', {'month': '2026-3'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.put('/api/v1/reports/planning/', {'month': '2026-03', 'target': -1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], ErrorCode.VALIDATION_ERROR)

    def test_marketing_report(self):
        response = self.client.get('/api/v1/reports/marketing/', {'range': '30d'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(set(response.data), {'period', 'coupons', 'reviews', 'contacts', 'blog'})

    def test_editor_cannot_plan(self):
        self.client.authenticate_user(TestDataFactory.create_editor())
        response = self.client.put('/api/v1/reports/planning/', {'month': '2026-03', 'target': 5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.client.get('/api/v1/reports/marketing/').status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Setting.objects.filter(key=planning.REVENUE_PLAN_KEY).exists())
