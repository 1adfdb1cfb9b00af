"""
Comprehensive test suite for Customers module
Tests: Profile, Addresses, Customer Dashboard, Admin Customer List and Export
"""
from decimal import Decimal
from django.test import TestCase
from rest_framework import status
from commerce.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from commerce.parties.models import CustomerProfile, CustomerAddress


class CustomerProfileTests(TestCase):
    """Test profile self-service"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_profile_created_on_first_access(self):
        response = self.client.get('/api/v1/customer/profile/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['customer_type'], 'PERSONAL')
        self.assertTrue(CustomerProfile.objects.filter(user=self.user).exists())

    def test_update_profile_and_user_fields(self):
        data = {'first_name': 'Tran', 'last_name': 'Binh', 'phone': '0912345678'}
        response = self.client.patch('/api/v1/customer/profile/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.display_name, 'Tran Binh')
        self.assertEqual(self.user.phone, '0912345678')

    def test_business_requires_company_name(self):
        response = self.client.patch('/api/v1/customer/profile/', {'customer_type': 'BUSINESS'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('company_name', response.data)

        data = {'customer_type': 'BUSINESS', 'company_name': 'Saigon Mechanical Co.', 'tax_id': '0301234567'}
        response = self.client.patch('/api/v1/customer/profile/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['company_name'], 'Saigon Mechanical Co.')

    def test_loyalty_points_read_only(self):
        response = self.client.patch('/api/v1/customer/profile/', {'loyalty_points': 9999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['loyalty_points'], 0)

    def test_anonymous_rejected(self):
        self.client.logout()
        response = self.client.get('/api/v1/customer/profile/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class CustomerAddressTests(TestCase):
    """Test saved addresses"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.address_data = {
            'recipient_name': 'Nguyen Van A',
            'phone': '0901234567',
            'line1': '12 Nguyen Hue',
            'city': 'Ho Chi Minh City',
            'is_default': True,
        }

    def test_single_default_per_kind(self):
        first = self.client.post('/api/v1/customer/addresses/', self.address_data, format='json')
        second = self.client.post('/api/v1/customer/addresses/', dict(self.address_data, line1='5 Tran Phu'),
                                  format='json')
        self.assertEqual(second.status_code, status.HTTP_201_CREATED)
        self.assertFalse(CustomerAddress.objects.get(pk=first.data['id']).is_default)
        self.assertTrue(CustomerAddress.objects.get(pk=second.data['id']).is_default)

    def test_billing_default_independent(self):
        shipping = self.client.post('/api/v1/customer/addresses/', self.address_data, format='json')
        self.client.post('/api/v1/customer/addresses/', dict(self.address_data, kind='BILLING'), format='json')
        self.assertTrue(CustomerAddress.objects.get(pk=shipping.data['id']).is_default)
        response = self.client.get('/api/v1/customer/addresses/', {'kind': 'billing'})
        self.assertEqual(len(response.data), 1)

    def test_other_users_address_not_found(self):
        other = CustomerAddress.objects.create(user=TestDataFactory.create_user(), recipient_name='B',
                                               phone='1', line1='x', city='Hanoi')
        response = self.client.get(f'/api/v1/customer/addresses/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_address(self):
        created = self.client.post('/api/v1/customer/addresses/', self.address_data, format='json')
        response = self.client.delete(f"/api/v1/customer/addresses/{created.data['id']}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(CustomerAddress.objects.exists())

    def test_snapshot(self):
        address = CustomerAddress.objects.create(user=self.user, recipient_name='A', phone='1', line1='x',
                                                 city='Da Nang')
        self.assertEqual(address.as_snapshot()['city'], 'Da Nang')
        self.assertEqual(address.as_snapshot()['country'], 'Vietnam')


class CustomerDashboardTests(TestCase):
    """Test the customer dashboard"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_dashboard_stats(self):
        product = TestDataFactory.create_product(price=Decimal('100000'))
        TestDataFactory.create_order(user=self.user, items=[(product, 1)])
        TestDataFactory.create_order(user=self.user, items=[(product, 3)], status='DELIVERED')
        TestDataFactory.create_order(items=[(product, 5)])

        response = self.client.get('/api/v1/customer/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        stats = response.data['stats']
        self.assertEqual(stats['total_orders'], 2)
        self.assertEqual(stats['total_spent'], Decimal('400000'))
        self.assertEqual(stats['avg_order_value'], Decimal('200000.00'))
        self.assertEqual(stats['pending_orders'], 1)
        self.assertEqual(stats['delivered_orders'], 1)
        self.assertEqual(len(response.data['monthly_spending']), 6)
        self.assertEqual(response.data['monthly_spending'][-1]['amount'], Decimal('400000'))
        self.assertEqual(len(response.data['recent_orders']), 2)

    def test_empty_dashboard(self):
        response = self.client.get('/api/v1/customer/dashboard/')
        self.assertEqual(response.data['stats']['total_orders'], 0)
        self.assertEqual(response.data['stats']['loyalty_points'], 0)


class AdminCustomerTests(TestCase):
    """Test the admin customer list"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.buyer = TestDataFactory.create_user(username='acme_buyer')
        TestDataFactory.create_business_profile(self.buyer, company_name='Acme Industrial JSC')
        product = TestDataFactory.create_product(price=Decimal('250000'))
        TestDataFactory.create_order(user=self.buyer, items=[(product, 2)])
        TestDataFactory.create_order(user=self.buyer, items=[(product, 1)], status='CANCELED')

    def test_list_with_aggregates(self):
        response = self.client.get('/api/v1/customers/', {'customer_type': 'business'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        row = response.data['results'][0]
        self.assertEqual(row['order_count'], 2)
        # Canceled orders do not count toward spend
        self.assertEqual(Decimal(row['total_spent']), Decimal('500000'))

    def test_search(self):
        response = self.client.get('/api/v1/customers/', {'q': 'acme'})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/customers/', {'q': 'nobody'})
        self.assertEqual(response.data['count'], 0)

    def test_export(self):
        response = self.client.get('/api/v1/customers/export/')
        lines = response.content.decode('utf-8-sig').strip().splitlines()
        self.assertTrue(lines[0].startswith('Username,Email'))
        self.assertIn('acme_buyer', lines[1])

    def test_editor_denied(self):
        self.client.authenticate_user(TestDataFactory.create_editor())
        response = self.client.get('/api/v1/customers/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
