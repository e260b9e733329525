"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from decimal import Decimal
import random
import string

from storefront.core.authentication import issue_credential
from storefront.catalog.models import Category, Product
from storefront.orders.models import Order
from storefront.orders import services as order_services

User = get_user_model()

DEFAULT_SHIPPING_ADDRESS = {
    'name': 'Somchai Jaidee',
    'phone': '0812345678',
    'address': '99/1 Sukhumvit Road',
    'district': 'Watthana',
    'province': 'Bangkok',
    'postal_code': '10110',
}


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_lowercase + string.digits, k=length))

    @staticmethod
    def create_user(email=None, password='testpass123', name=None, role=User.ROLE_CUSTOMER):
        """Create a test user"""
        if not email:
            email = f'user_{TestDataFactory.random_string(6)}@test.com'
        return User.objects.create_user(
            email=email,
            password=password,
            name=name or 'Test User',
            role=role,
        )

    @staticmethod
    def create_admin(email=None, password='testpass123'):
        """Create a user with the admin role"""
        return TestDataFactory.create_user(email=email, password=password, name='Admin', role=User.ROLE_ADMIN)

    @staticmethod
    def create_category(name=None, slug=None):
        """Create a test category"""
        if not name:
            name = f'Category {TestDataFactory.random_string(6)}'
        return Category.objects.create(
            name=name,
            name_en=name,
            slug=slug or f'category-{TestDataFactory.random_string(8)}',
            description=f'Test category {name}',
        )

    @staticmethod
    def create_product(name=None, slug=None, category=None, price=Decimal('100.00'),
                       discount_price=None, stock=10, featured=False, images=None, specifications=None):
        """Create a test product"""
        if not name:
            name = f'Product {TestDataFactory.random_string(6)}'
        if not category:
            category = TestDataFactory.create_category()
        return Product.objects.create(
            name=name,
            name_en=name,
            slug=slug or f'product-{TestDataFactory.random_string(8)}',
            description=f'Description of {name}',
            description_en=f'Description of {name}',
            price=price,
            discount_price=discount_price,
            category=category,
            brand='Test Brand',
            images=images if images is not None else ['https://cdn.test/img-1.jpg'],
            specifications=specifications or {},
            stock=stock,
            featured=featured,
        )

    @staticmethod
    def create_order(user, products_with_quantities, payment_method=Order.PAYMENT_PROMPTPAY,
                     shipping_address=None, notes=None):
        """Place an order through the order service"""
        return order_services.create_order(
            user,
            items=[
                {'product_id': product.pk, 'quantity': quantity}
                for product, quantity in products_with_quantities
            ],
            shipping_address=shipping_address or dict(DEFAULT_SHIPPING_ADDRESS),
            payment_method=payment_method,
            notes=notes,
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {issue_credential(user)}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
