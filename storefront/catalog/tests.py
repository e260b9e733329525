"""
Test suite for the catalog module
Tests: category/product reads, filters and paging, specification handling, admin CRUD
"""
from decimal import Decimal
from types import SimpleNamespace

from django.test import TestCase
from rest_framework import status

from storefront.catalog import services
from storefront.catalog.models import Category, Product
from storefront.catalog.specifications import normalize_specifications, specifications_to_mapping
from storefront.core.exceptions import Conflict, NotFound
from storefront.core.models import AuditLog
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient


def product_payload(category, **overrides):
    data = {
        'name': 'หูฟังไร้สาย',
        'name_en': 'Wireless Earbuds',
        'slug': 'wireless-earbuds',
        'description': 'หูฟังบลูทูธ',
        'description_en': 'Bluetooth earbuds',
        'price': '1290.00',
        'discount_price': '990.00',
        'category_id': category.pk,
        'brand': 'Soundly',
        'images': ['https://cdn.test/earbuds.jpg'],
        'specifications': [
            {'key': 'Battery', 'value': '24h'},
            {'key': 'Bluetooth', 'value': '5.3'},
        ],
        'stock': 25,
        'featured': True,
    }
    data.update(overrides)
    return data


class ProductModelTests(TestCase):
    """Test product helpers"""

    def test_effective_price_uses_lower_discount(self):
        product = TestDataFactory.create_product(price=Decimal('500.00'), discount_price=Decimal('450.00'))
        self.assertEqual(product.effective_price, Decimal('450.00'))

    def test_effective_price_ignores_missing_or_higher_discount(self):
        product = TestDataFactory.create_product(price=Decimal('500.00'))
        self.assertEqual(product.effective_price, Decimal('500.00'))
        product.discount_price = Decimal('600.00')
        self.assertEqual(product.effective_price, Decimal('500.00'))

    def test_primary_image(self):
        product = TestDataFactory.create_product(images=['a.jpg', 'b.jpg'])
        self.assertEqual(product.primary_image, 'a.jpg')
        product.images = []
        self.assertEqual(product.primary_image, '')


class SpecificationTests(TestCase):
    """Test specification normalisation"""

    def test_pairs_to_mapping_last_duplicate_wins(self):
        mapping = specifications_to_mapping([
            {'key': 'Color', 'value': 'Red'},
            {'key': 'Size', 'value': 'M'},
            {'key': 'Color', 'value': 'Blue'},
        ])
        self.assertEqual(mapping, {'Color': 'Blue', 'Size': 'M'})

    def test_empty_input(self):
        self.assertEqual(specifications_to_mapping(None), {})
        self.assertEqual(normalize_specifications(None), [])
        self.assertEqual(normalize_specifications({}), [])

    def test_mapping_is_normalised_in_order_with_string_values(self):
        result = normalize_specifications({'Weight': 1.5, 'Waterproof': True})
        self.assertEqual(result, [
            {'key': 'Weight', 'value': '1.5'},
            {'key': 'Waterproof', 'value': 'True'},
        ])

    def test_plain_object_is_normalised(self):
        result = normalize_specifications(SimpleNamespace(Material='Steel'))
        self.assertEqual(result, [{'key': 'Material', 'value': 'Steel'}])

    def test_pair_list_is_normalised(self):
        result = normalize_specifications([{'key': 'Ports', 'value': 2}, ['Color', 'Black']])
        self.assertEqual(result, [
            {'key': 'Ports', 'value': '2'},
            {'key': 'Color', 'value': 'Black'},
        ])


class CategoryReadTests(TestCase):
    """Test category reads"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.phones = TestDataFactory.create_category(name='Phones', slug='phones')
        self.audio = TestDataFactory.create_category(name='Audio', slug='audio')
        TestDataFactory.create_product(category=self.phones)
        TestDataFactory.create_product(category=self.phones)

    def test_categories_sorted_by_name_with_counts(self):
        response = self.client.get('/api/v1/categories/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([c['slug'] for c in response.data], ['audio', 'phones'])
        self.assertEqual(response.data[0]['product_count'], 0)
        self.assertEqual(response.data[1]['product_count'], 2)

    def test_category_by_slug(self):
        response = self.client.get('/api/v1/categories/phones/')
        self.assertEqual(response.data['name'], 'Phones')
        self.assertEqual(response.data['product_count'], 2)

    def test_unknown_category_is_null(self):
        response = self.client.get('/api/v1/categories/missing/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data)


class ProductReadTests(TestCase):
    """Test product listing, filters and lookup"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.phones = TestDataFactory.create_category(name='Phones', slug='phones')
        self.audio = TestDataFactory.create_category(name='Audio', slug='audio')
        self.phone = TestDataFactory.create_product(name='Galaxy Phone', slug='galaxy', category=self.phones, featured=True)
        self.case = TestDataFactory.create_product(name='Phone Case', slug='case', category=self.phones)
        self.speaker = TestDataFactory.create_product(name='Speaker', slug='speaker', category=self.audio)

    def test_newest_first(self):
        items, total, has_more = services.list_products({}, limit=20, offset=0)
        self.assertEqual([p.slug for p in items], ['speaker', 'case', 'galaxy'])
        self.assertEqual(total, 3)
        self.assertFalse(has_more)

    def test_filter_by_category_slug(self):
        response = self.client.get('/api/v1/products/', {'category': 'phones'})
        self.assertEqual(response.data['total'], 2)
        self.assertEqual({p['slug'] for p in response.data['products']}, {'galaxy', 'case'})

    def test_unknown_category_matches_nothing(self):
        response = self.client.get('/api/v1/products/', {'category': 'nope'})
        self.assertEqual(response.data['total'], 0)

    def test_filter_featured(self):
        response = self.client.get('/api/v1/products/', {'featured': 'true'})
        self.assertEqual([p['slug'] for p in response.data['products']], ['galaxy'])

    def test_search_is_case_insensitive(self):
        response = self.client.get('/api/v1/products/', {'search': 'PHONE'})
        self.assertEqual(response.data['total'], 2)

    def test_search_matches_any_word(self):
        hub = TestDataFactory.create_product(name='USB hub', slug='usb-hub', category=self.audio)
        cable = TestDataFactory.create_product(name='HDMI cable', slug='hdmi-cable', category=self.audio)

        items, total, has_more = services.list_products({'search': 'usb cable'}, limit=20, offset=0)
        self.assertEqual(total, 2)
        self.assertEqual({p.pk for p in items}, {hub.pk, cable.pk})
        self.assertFalse(has_more)

    def test_paging_has_more(self):
        response = self.client.get('/api/v1/products/', {'limit': 2, 'offset': 0})
        self.assertEqual(len(response.data['products']), 2)
        self.assertEqual(response.data['total'], 3)
        self.assertTrue(response.data['has_more'])

        response = self.client.get('/api/v1/products/', {'limit': 2, 'offset': 2})
        self.assertEqual(len(response.data['products']), 1)
        self.assertFalse(response.data['has_more'])

    def test_non_integer_limit_rejected(self):
        response = self.client.get('/api/v1/products/', {'limit': 'ten'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'ValidationFailed')

    def test_product_lookup_id_takes_precedence(self):
        response = self.client.get('/api/v1/product/', {'id': self.phone.pk, 'slug': 'speaker'})
        self.assertEqual(response.data['slug'], 'galaxy')
        self.assertEqual(response.data['category']['slug'], 'phones')

    def test_product_lookup_by_slug(self):
        response = self.client.get('/api/v1/product/', {'slug': 'speaker'})
        self.assertEqual(response.data['id'], self.speaker.pk)

    def test_product_lookup_without_arguments_is_null(self):
        response = self.client.get('/api/v1/product/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data)

    def test_product_specifications_read_as_pairs(self):
        self.phone.specifications = {'Screen': '6.1"', 'RAM': 8}
        self.phone.save()
        response = self.client.get('/api/v1/product/', {'slug': 'galaxy'})
        self.assertEqual(response.data['specifications'], [
            {'key': 'Screen', 'value': '6.1"'},
            {'key': 'RAM', 'value': '8'},
        ])


class AdminCatalogTests(TestCase):
    """Test admin product and category management"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.customer = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient().authenticate_user(self.admin)
        self.category = TestDataFactory.create_category(name='Audio', slug='audio')

    def test_customer_cannot_create_product(self):
        client = AuthenticatedAPIClient().authenticate_user(self.customer)
        response = client.post('/api/v1/admin/products/', product_payload(self.category), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Product.objects.exists())

    def test_create_product_stores_specification_mapping(self):
        response = self.client.post('/api/v1/admin/products/', product_payload(self.category), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        product = Product.objects.get(slug='wireless-earbuds')
        self.assertEqual(product.specifications, {'Battery': '24h', 'Bluetooth': '5.3'})
        self.assertEqual(response.data['specifications'][0], {'key': 'Battery', 'value': '24h'})
        self.assertEqual(response.data['category']['id'], self.category.pk)
        self.assertTrue(AuditLog.objects.filter(action='create', model_name='Product').exists())

    def test_create_product_rejects_negative_price(self):
        response = self.client.post(
            '/api/v1/admin/products/', product_payload(self.category, price='-1'), format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_product(self):
        product = TestDataFactory.create_product(category=self.category, stock=3)
        response = self.client.patch(
            f'/api/v1/admin/products/{product.pk}/', {'stock': 40, 'featured': True}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        product.refresh_from_db()
        self.assertEqual(product.stock, 40)
        self.assertTrue(product.featured)
        log = AuditLog.objects.get(action='update', model_name='Product')
        self.assertEqual(log.changes['stock'], {'old': 3, 'new': 40})

    def test_update_missing_product_is_404(self):
        response = self.client.patch('/api/v1/admin/products/9999/', {'stock': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'NotFound')

    def test_delete_product(self):
        product = TestDataFactory.create_product(category=self.category)
        response = self.client.delete(f'/api/v1/admin/products/{product.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data)
        self.assertFalse(Product.objects.filter(pk=product.pk).exists())

    def test_admin_product_listing(self):
        for _ in range(3):
            TestDataFactory.create_product(category=self.category)
        response = self.client.get('/api/v1/admin/products/', {'limit': 2})
        self.assertEqual(response.data['total'], 3)
        self.assertTrue(response.data['has_more'])

    def test_create_and_update_category(self):
        response = self.client.post('/api/v1/admin/categories/', {
            'name': 'กล้อง', 'name_en': 'Cameras', 'slug': 'cameras',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['product_count'], 0)

        category_id = response.data['id']
        response = self.client.patch(
            f'/api/v1/admin/categories/{category_id}/', {'description_en': 'All cameras'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Category.objects.get(pk=category_id).description_en, 'All cameras')

    def test_delete_category_with_products_conflicts(self):
        TestDataFactory.create_product(category=self.category)
        with self.assertRaises(Conflict):
            services.delete_category(self.category.pk)
        response = self.client.delete(f'/api/v1/admin/categories/{self.category.pk}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(Category.objects.filter(pk=self.category.pk).exists())

    def test_delete_empty_category(self):
        response = self.client.delete(f'/api/v1/admin/categories/{self.category.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Category.objects.filter(pk=self.category.pk).exists())

    def test_delete_missing_category(self):
        with self.assertRaises(NotFound):
            services.delete_category(9999)
