"""
Comprehensive test suite for Catalog module
Tests: Categories, Product CRUD and Filters, Search, Reviews (submission, votes, reports, moderation)
"""
from decimal import Decimal
from django.core.cache import cache
from django.test import TestCase, override_settings
from rest_framework import status
from commerce.catalog import reviews as review_service
from commerce.catalog.models import Category, Industry, Product, ProductReview
from commerce.core.errors import AppError, ErrorCode
from commerce.core.models import AuditLog
from commerce.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class CategoryAPITests(TestCase):
    """Test category endpoints"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.editor = TestDataFactory.create_editor()

    def test_public_list_hides_inactive(self):
        TestDataFactory.create_category(name='Pumps')
        hidden = TestDataFactory.create_category(name='Old stock')
        Category.objects.filter(pk=hidden.pk).update(is_active=False)
        response = self.client.get('/api/v1/categories/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['name_en'] for row in response.data], ['Pumps'])

    def test_staff_creates_category_with_slug(self):
        self.client.authenticate_user(self.editor)
        response = self.client.post('/api/v1/categories/', {'name_en': 'Safety Valves', 'name_vi': 'Van an toàn'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['slug'], 'safety-valves')

    def test_anonymous_cannot_create(self):
        response = self.client.post('/api/v1/categories/', {'name_en': 'X', 'name_vi': 'X'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_localized_name(self):
        category = Category.objects.create(name_en='Motors', name_vi='Động cơ', slug='motors')
        response = self.client.get('/api/v1/categories/', {'locale': 'en'})
        self.assertEqual(response.data[0]['name'], 'Motors')
        response = self.client.get('/api/v1/categories/')
        self.assertEqual(response.data[0]['name'], category.name_vi)


class ProductAPITests(TestCase):
    """Test product listing, filters and admin CRUD"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.admin = TestDataFactory.create_admin()
        self.editor = TestDataFactory.create_editor()
        self.pumps = TestDataFactory.create_category(name='Pumps')
        self.pump = TestDataFactory.create_product(name='Centrifugal Pump', sku='PUMP-001', category=self.pumps,
                                                   price=Decimal('5000000'))
        self.valve = TestDataFactory.create_product(name='Gate Valve', sku='VALVE-001', price=Decimal('800000'))
        self.retired = TestDataFactory.create_product(name='Retired Pump', sku='PUMP-OLD', is_active=False)

    def test_public_list_active_only(self):
        response = self.client.get('/api/v1/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        skus = {row['sku'] for row in response.data['results']}
        self.assertEqual(skus, {'PUMP-001', 'VALVE-001'})
        self.assertEqual(response.data['count'], 2)

    def test_staff_sees_inactive(self):
        self.client.authenticate_user(self.editor)
        response = self.client.get('/api/v1/products/')
        self.assertEqual(response.data['count'], 3)

    def test_filters(self):
        response = self.client.get('/api/v1/products/', {'category': self.pumps.slug})
        self.assertEqual([row['sku'] for row in response.data['results']], ['PUMP-001'])
        response = self.client.get('/api/v1/products/', {'q': 'gate valve'})
        self.assertEqual([row['sku'] for row in response.data['results']], ['VALVE-001'])
        response = self.client.get('/api/v1/products/', {'min_price': '1000000'})
        self.assertEqual([row['sku'] for row in response.data['results']], ['PUMP-001'])

    def test_in_stock_filter(self):
        Product.objects.filter(pk=self.valve.pk).update(stock_quantity=Decimal('4'))
        response = self.client.get('/api/v1/products/', {'in_stock': 'true'})
        self.assertEqual([row['sku'] for row in response.data['results']], ['VALVE-001'])

    def test_sort_by_price(self):
        response = self.client.get('/api/v1/products/', {'sort': 'price_asc'})
        self.assertEqual([row['sku'] for row in response.data['results']], ['VALVE-001', 'PUMP-001'])

    def test_industry_filter(self):
        industry = Industry.objects.create(slug='water-treatment', name_en='Water Treatment', name_vi='Xử lý nước')
        self.pump.industries.add(industry)
        response = self.client.get('/api/v1/products/', {'industry': 'water-treatment'})
        self.assertEqual([row['sku'] for row in response.data['results']], ['PUMP-001'])
        response = self.client.get('/api/v1/industries/water-treatment/')
        self.assertEqual(len(response.data['products']), 1)

    def test_product_page_by_slug(self):
        response = self.client.get(f'/api/v1/products/{self.pump.slug}/', {'locale': 'en'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Centrifugal Pump')
        self.assertEqual(response.data['rating']['total_reviews'], 0)
        response = self.client.get(f'/api/v1/products/{self.retired.slug}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_editor_creates_product(self):
        self.client.authenticate_user(self.editor)
        data = {'sku': ' mtr-220 ', 'name_en': 'Induction Motor 2.2kW', 'name_vi': 'Động cơ 2.2kW',
                'price': '3200000', 'category': self.pumps.id}
        response = self.client.post('/api/v1/products/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['sku'], 'MTR-220')
        self.assertEqual(response.data['slug'], 'induction-motor-22kw')
        self.assertTrue(AuditLog.objects.filter(model_name='Product', action='create').exists())

    def test_quote_only_product(self):
        """Null price means contact for price"""
        self.client.authenticate_user(self.editor)
        data = {'sku': 'CUSTOM-1', 'name_en': 'Custom Skid', 'name_vi': 'Skid', 'price': None}
        response = self.client.post('/api/v1/products/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(response.data['price'])

    def test_customer_cannot_create(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post('/api/v1/products/', {'sku': 'X', 'name_en': 'X', 'name_vi': 'X'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_update_logs_price_change(self):
        self.client.authenticate_user(self.editor)
        response = self.client.patch(f'/api/v1/admin/products/{self.pump.id}/', {'price': '5500000'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.filter(model_name='Product', action='update').latest('created_at')
        self.assertEqual(log.changes['price'], {'old': '5000000.00', 'new': '5500000.00'})

    def test_editor_cannot_delete(self):
        self.client.authenticate_user(self.editor)
        response = self.client.delete(f'/api/v1/admin/products/{self.valve.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_delete_product_with_orders_deactivates(self):
        TestDataFactory.create_order(items=[(self.pump, 1)])
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/admin/products/{self.pump.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.pump.refresh_from_db()
        self.assertFalse(self.pump.is_active)

    def test_delete_unused_product(self):
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/admin/products/{self.valve.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Product.objects.filter(pk=self.valve.pk).exists())

    def test_export_csv(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/products/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        lines = response.content.decode('utf-8-sig').strip().splitlines()
        self.assertEqual(lines[0].split(',')[0], 'SKU')
        self.assertEqual(len(lines), 4)

    def test_global_search(self):
        response = self.client.get('/api/v1/search/', {'q': 'pump'})
        self.assertEqual([row['sku'] for row in response.data['products']], ['PUMP-001'])
        response = self.client.get('/api/v1/search/', {'q': 'p'})
        self.assertEqual(response.data['products'], [])


class ReviewServiceTests(TestCase):
    """Test the review workflow"""

    def setUp(self):
        self.product = TestDataFactory.create_product()
        self.author = TestDataFactory.create_user()
        self.reader = TestDataFactory.create_user()

    def _review(self, user=None, rating=5, approved=True):
        review = review_service.create_review(
            user or self.author, self.product.id,
            {'overall_rating': rating, 'content': 'Runs quietly and delivered on time.'},
        )
        if approved:
            review_service.moderate_review(review, 'APPROVED')
        return review

    def test_new_review_is_pending(self):
        review = self._review(approved=False)
        self.assertEqual(review.status, 'PENDING')
        self.assertFalse(review.is_verified_purchase)

    def test_verified_purchase(self):
        TestDataFactory.create_order(user=self.author, items=[(self.product, 1)], status='DELIVERED')
        self.assertTrue(self._review(approved=False).is_verified_purchase)

    def test_duplicate_review(self):
        self._review()
        with self.assertRaises(AppError) as ctx:
            self._review()
        self.assertEqual(ctx.exception.code, ErrorCode.REVIEW_DUPLICATE)

    def test_votes_recounted(self):
        review = self._review()
        review_service.vote_review(self.reader, review.id, True)
        review = review_service.vote_review(self.reader, review.id, False)
        self.assertEqual((review.helpful_count, review.not_helpful_count), (0, 1))

    def test_cannot_vote_own_review(self):
        review = self._review()
        with self.assertRaises(AppError) as ctx:
            review_service.vote_review(self.author, review.id, True)
        self.assertEqual(ctx.exception.code, ErrorCode.AUTH_FORBIDDEN)

    @override_settings(REVIEW_FLAG_THRESHOLD=2)
    def test_reports_flag_review(self):
        review = self._review()
        review_service.report_review(self.reader, review.id, 'spam')
        with self.assertRaises(AppError):
            review_service.report_review(self.reader, review.id, 'spam')
        review_service.report_review(TestDataFactory.create_user(), review.id, 'fake')
        review.refresh_from_db()
        self.assertEqual(review.status, 'FLAGGED')
        self.assertEqual(review.report_count, 2)

    def test_stats_count_approved_only(self):
        self._review(rating=5)
        self._review(user=self.reader, rating=4)
        self._review(user=TestDataFactory.create_user(), rating=1, approved=False)
        stats = review_service.review_stats(self.product.id)
        self.assertEqual(stats['total_reviews'], 2)
        self.assertEqual(stats['average_rating'], 4.5)
        self.assertEqual(stats['distribution']['5'], 1)
        self.assertEqual(stats['distribution']['1'], 0)


class ReviewAPITests(TestCase):
    """Test review endpoints"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.product = TestDataFactory.create_product()
        self.user = TestDataFactory.create_user()

    def test_submit_requires_login(self):
        data = {'product': self.product.id, 'overall_rating': 4, 'content': 'Solid build quality overall.'}
        response = self.client.post('/api/v1/reviews/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_submit_and_moderate(self):
        self.client.authenticate_user(self.user)
        data = {'product': self.product.id, 'overall_rating': 4, 'content': 'Solid build quality overall.'}
        response = self.client.post('/api/v1/reviews/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        review_id = response.data['id']

        # Pending reviews are not public yet
        response = self.client.get('/api/v1/reviews/', {'product': self.product.id})
        self.assertEqual(response.data['count'], 0)

        self.client.authenticate_user(TestDataFactory.create_editor())
        response = self.client.post(f'/api/v1/admin/reviews/{review_id}/moderate/',
                                    {'status': 'APPROVED', 'seller_response': 'Thank you!'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNotNone(ProductReview.objects.get(pk=review_id).responded_at)

        response = self.client.get('/api/v1/reviews/', {'product': self.product.id})
        self.assertEqual(response.data['count'], 1)

    def test_list_requires_product(self):
        response = self.client.get('/api/v1/reviews/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_short_content_rejected(self):
        self.client.authenticate_user(self.user)
        response = self.client.post('/api/v1/reviews/', {'product': self.product.id, 'overall_rating': 4,
                                                         'content': 'ok'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_customer_cannot_moderate(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/admin/reviews/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
