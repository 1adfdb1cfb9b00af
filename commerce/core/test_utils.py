"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from commerce.catalog.models import Category, Product
from commerce.content.models import BlogPost
from commerce.inventory.models import Warehouse, InventoryItem
from commerce.orders.models import Order, OrderItem
from commerce.orders.services import allocate_order_code
from commerce.parties.models import CustomerProfile
from commerce.pricing.models import Coupon
from decimal import Decimal
from django.utils import timezone
from datetime import timedelta
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', role='CUSTOMER', is_staff=False,
                    is_superuser=False):
        """Create a test user with a role"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username.lower()}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            role=role,
            is_staff=is_staff,
            is_superuser=is_superuser
        )

    @staticmethod
    def create_admin(**kwargs):
        return TestDataFactory.create_user(role='ADMIN', is_staff=True, **kwargs)

    @staticmethod
    def create_editor(**kwargs):
        return TestDataFactory.create_user(role='EDITOR', is_staff=True, **kwargs)

    @staticmethod
    def create_business_profile(user, company_name='Acme Industrial JSC', tax_id='0312345678'):
        profile = CustomerProfile.for_user(user)
        profile.customer_type = 'BUSINESS'
        profile.company_name = company_name
        profile.tax_id = tax_id
        profile.save()
        return profile

    @staticmethod
    def create_category(name=None, parent=None):
        """Create a test category"""
        if not name:
            name = f'Category {TestDataFactory.random_string(6)}'
        return Category.objects.create(
            name_en=name,
            name_vi=name,
            slug=f'cat-{TestDataFactory.random_string(8).lower()}',
            parent=parent
        )

    @staticmethod
    def create_product(name=None, sku=None, category=None, price=Decimal('100000.00'),
                       cost_price=Decimal('60000.00'), is_active=True):
        """Create a test product; pass price=None for quote-only products"""
        if not name:
            name = f'Product {TestDataFactory.random_string(6)}'
        if not sku:
            sku = f'SKU-{TestDataFactory.random_string(8).upper()}'
        if category is None:
            category = TestDataFactory.create_category()
        return Product.objects.create(
            sku=sku,
            slug=sku.lower(),
            name_en=name,
            name_vi=name,
            category=category,
            price=price,
            cost_price=cost_price,
            is_active=is_active
        )

    @staticmethod
    def create_warehouse(code=None, name=None, is_default=False):
        """Create a test warehouse"""
        if not code:
            code = f'WH{TestDataFactory.random_string(4).upper()}'
        return Warehouse.objects.create(
            code=code,
            name=name or f'Warehouse {code}',
            is_default=is_default
        )

    @staticmethod
    def create_inventory(product, warehouse, on_hand=Decimal('0'), reserved=Decimal('0'),
                         reorder_point=Decimal('0')):
        """Set a balance directly, bypassing the ledger"""
        item, _ = InventoryItem.objects.get_or_create(product=product, warehouse=warehouse)
        item.on_hand_qty = Decimal(on_hand)
        item.reserved_qty = Decimal(reserved)
        item.reorder_point_qty = Decimal(reorder_point)
        item.save()
        return item

    @staticmethod
    def create_order(user=None, items=None, status='PENDING_CONFIRMATION', customer_kind='INDIVIDUAL',
                     due_date=None, email=None):
        """
        Create an order without going through checkout.
        items: list of (product, quantity) tuples, priced at product.price.
        """
        items = items or [(TestDataFactory.create_product(), Decimal('1'))]
        subtotal = sum((product.price * Decimal(quantity) for product, quantity in items), Decimal('0'))
        order = Order.objects.create(
            code=allocate_order_code(),
            user=user,
            customer_kind=customer_kind,
            buyer_type='BUSINESS' if customer_kind == 'BUSINESS' else 'PERSONAL',
            customer_name='Nguyen Van A',
            email=email or (user.email if user else 'buyer@test.com'),
            phone='0901234567',
            company_name='Acme Industrial JSC' if customer_kind == 'BUSINESS' else '',
            shipping_address={'recipient_name': 'Nguyen Van A', 'address_line1': '1 Le Loi', 'city': 'HCMC'},
            order_status=status,
            subtotal=subtotal,
            total=subtotal,
            outstanding_amount=subtotal,
            due_date=due_date
        )
        for product, quantity in items:
            OrderItem.objects.create(
                order=order,
                product=product,
                sku=product.sku,
                name=product.name_en,
                unit_price=product.price,
                quantity=Decimal(quantity),
                line_total=product.price * Decimal(quantity)
            )
        return order

    @staticmethod
    def create_coupon(code=None, discount_type='PERCENTAGE', discount_value=Decimal('10'), **kwargs):
        """Create an active coupon that started yesterday"""
        if not code:
            code = f'SAVE{TestDataFactory.random_string(6).upper()}'
        kwargs.setdefault('starts_at', timezone.now() - timedelta(days=1))
        return Coupon.objects.create(
            code=code,
            name=f'Coupon {code}',
            discount_type=discount_type,
            discount_value=discount_value,
            **kwargs
        )

    @staticmethod
    def create_blog_post(title=None, status='DRAFT', content='<p>Industrial pumps explained.</p>', **kwargs):
        """Create a test blog post"""
        if not title:
            title = f'Post {TestDataFactory.random_string(6)}'
        return BlogPost.objects.create(
            slug=f'post-{TestDataFactory.random_string(8).lower()}',
            title_en=title,
            title_vi=title,
            content_en=content,
            status=status,
            **kwargs
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
