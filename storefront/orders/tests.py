"""
Comprehensive test suite for the Orders module
Tests: order placement, stock reservation, totals, numbering, ownership, admin transitions, slips
"""
from decimal import Decimal
from unittest.mock import patch

from django.db.models import QuerySet
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from storefront.catalog.models import Product
from storefront.core.exceptions import (
    Forbidden, InsufficientStock, NotFound, Unauthenticated, ValidationFailed,
)
from storefront.core.models import AuditLog
from storefront.core.test_utils import DEFAULT_SHIPPING_ADDRESS, TestDataFactory, AuthenticatedAPIClient
from storefront.orders import services
from storefront.orders.models import Order, OrderItem, OrderSequence


def order_payload(product, quantity, **overrides):
    data = {
        'items': [{'product_id': product.pk, 'quantity': quantity}],
        'shipping_address': dict(DEFAULT_SHIPPING_ADDRESS),
        'payment_method': 'promptpay',
        'notes': 'Leave at the front desk',
    }
    data.update(overrides)
    return data


class OrderTotalsTests(TestCase):
    """Test subtotal, shipping and total calculation"""

    def setUp(self):
        self.user = TestDataFactory.create_user()

    def test_below_threshold_pays_flat_shipping(self):
        product = TestDataFactory.create_product(price=Decimal('300.00'))
        order = TestDataFactory.create_order(self.user, [(product, 2)])
        self.assertEqual(order.subtotal, Decimal('600.00'))
        self.assertEqual(order.shipping_fee, Decimal('50.00'))
        self.assertEqual(order.total, Decimal('650.00'))

    def test_threshold_exactly_ships_free(self):
        product = TestDataFactory.create_product(price=Decimal('500.00'))
        order = TestDataFactory.create_order(self.user, [(product, 2)])
        self.assertEqual(order.subtotal, Decimal('1000.00'))
        self.assertEqual(order.shipping_fee, Decimal('0.00'))
        self.assertEqual(order.total, Decimal('1000.00'))

    def test_discount_price_is_charged(self):
        product = TestDataFactory.create_product(price=Decimal('1200.00'), discount_price=Decimal('999.00'))
        order = TestDataFactory.create_order(self.user, [(product, 1)])
        item = order.items.get()
        self.assertEqual(item.price, Decimal('999.00'))
        self.assertEqual(order.subtotal, Decimal('999.00'))
        self.assertEqual(order.shipping_fee, Decimal('50.00'))

    def test_total_is_subtotal_plus_shipping_for_mixed_lines(self):
        first = TestDataFactory.create_product(price=Decimal('120.50'))
        second = TestDataFactory.create_product(price=Decimal('80.25'), discount_price=Decimal('70.00'))
        order = TestDataFactory.create_order(self.user, [(first, 3), (second, 2)])
        self.assertEqual(order.subtotal, Decimal('501.50'))
        self.assertEqual(order.total, order.subtotal + order.shipping_fee)

    def test_calculate_shipping_fee(self):
        self.assertEqual(services.calculate_shipping_fee(Decimal('999.99')), Decimal('50'))
        self.assertEqual(services.calculate_shipping_fee(Decimal('1000')), Decimal('0'))


class OrderPlacementTests(TestCase):
    """Test order placement and stock reservation"""

    def setUp(self):
        self.user = TestDataFactory.create_user()

    def test_stock_two_scenario(self):
        product = TestDataFactory.create_product(stock=2)

        with self.assertRaises(InsufficientStock):
            TestDataFactory.create_order(self.user, [(product, 3)])
        product.refresh_from_db()
        self.assertEqual(product.stock, 2)
        self.assertFalse(Order.objects.exists())

        TestDataFactory.create_order(self.user, [(product, 2)])
        product.refresh_from_db()
        self.assertEqual(product.stock, 0)

        with self.assertRaises(InsufficientStock):
            TestDataFactory.create_order(self.user, [(product, 1)])
        product.refresh_from_db()
        self.assertEqual(product.stock, 0)
        self.assertEqual(Order.objects.count(), 1)

    def test_failed_line_rolls_back_every_line(self):
        plenty = TestDataFactory.create_product(stock=10)
        scarce = TestDataFactory.create_product(stock=1)
        with self.assertRaises(InsufficientStock):
            TestDataFactory.create_order(self.user, [(plenty, 5), (scarce, 2)])
        plenty.refresh_from_db()
        self.assertEqual(plenty.stock, 10)
        self.assertFalse(Order.objects.exists())
        self.assertFalse(OrderItem.objects.exists())

    def test_failed_decrement_rolls_back_every_line(self):
        first = TestDataFactory.create_product(stock=5)
        second = TestDataFactory.create_product(stock=5)
        TestDataFactory.create_order(self.user, [(first, 1)])
        first.refresh_from_db()
        self.assertEqual(first.stock, 4)

        original_update = QuerySet.update

        def update_losing_second_decrement(queryset, **kwargs):
            # Simulate stock taken by another checkout between lock and decrement
            if queryset.model is Product and 'stock' in kwargs and queryset.filter(pk=second.pk).exists():
                return 0
            return original_update(queryset, **kwargs)

        with patch.object(QuerySet, 'update', update_losing_second_decrement):
            with self.assertRaises(InsufficientStock):
                TestDataFactory.create_order(self.user, [(first, 2), (second, 3)])

        first.refresh_from_db()
        second.refresh_from_db()
        self.assertEqual(first.stock, 4)
        self.assertEqual(second.stock, 5)
        self.assertEqual(Order.objects.count(), 1)
        self.assertEqual(OrderItem.objects.count(), 1)
        self.assertEqual(OrderSequence.objects.get(name='order').value, 1)

    def test_duplicate_lines_are_summed_against_stock(self):
        product = TestDataFactory.create_product(stock=3)
        with self.assertRaises(InsufficientStock):
            TestDataFactory.create_order(self.user, [(product, 2), (product, 2)])
        order = TestDataFactory.create_order(self.user, [(product, 1), (product, 2)])
        item = order.items.get()
        self.assertEqual(item.quantity, 3)
        product.refresh_from_db()
        self.assertEqual(product.stock, 0)

    def test_unknown_product_is_not_found(self):
        with self.assertRaises(NotFound):
            services.create_order(
                self.user,
                items=[{'product_id': 999999, 'quantity': 1}],
                shipping_address=DEFAULT_SHIPPING_ADDRESS,
                payment_method='promptpay',
            )
        self.assertFalse(Order.objects.exists())

    def test_anonymous_cannot_order(self):
        product = TestDataFactory.create_product()
        with self.assertRaises(Unauthenticated):
            TestDataFactory.create_order(None, [(product, 1)])

    def test_input_validation(self):
        product = TestDataFactory.create_product()
        with self.assertRaises(ValidationFailed):
            services.create_order(self.user, [], DEFAULT_SHIPPING_ADDRESS, 'promptpay')
        with self.assertRaises(ValidationFailed):
            services.create_order(self.user, [{'product_id': product.pk, 'quantity': 0}],
                                  DEFAULT_SHIPPING_ADDRESS, 'promptpay')
        with self.assertRaises(ValidationFailed):
            services.create_order(self.user, [{'product_id': product.pk, 'quantity': 1}],
                                  DEFAULT_SHIPPING_ADDRESS, 'cash')
        with self.assertRaises(ValidationFailed):
            services.create_order(self.user, [{'product_id': product.pk, 'quantity': 1}],
                                  {'name': 'Only a name'}, 'promptpay')

    def test_new_order_is_pending(self):
        product = TestDataFactory.create_product()
        order = TestDataFactory.create_order(self.user, [(product, 1)])
        self.assertEqual(order.status, Order.STATUS_PENDING)
        self.assertEqual(order.payment_status, Order.PAYMENT_PENDING)
        self.assertEqual(order.shipping_address, DEFAULT_SHIPPING_ADDRESS)

    def test_order_writes_audit_entries(self):
        product = TestDataFactory.create_product()
        order = TestDataFactory.create_order(self.user, [(product, 2)])
        log = AuditLog.objects.get(action='order_create')
        self.assertEqual(log.object_reference, order.order_number)
        self.assertEqual(log.user, self.user)
        self.assertTrue(AuditLog.objects.filter(action='stock_sale', object_id=str(product.pk)).exists())


class PriceSnapshotTests(TestCase):
    """Line items keep their purchase-time values"""

    def test_price_change_does_not_affect_existing_order(self):
        user = TestDataFactory.create_user()
        product = TestDataFactory.create_product(name='Old Name', price=Decimal('250.00'), images=['first.jpg'])
        order = TestDataFactory.create_order(user, [(product, 1)])

        product.price = Decimal('400.00')
        product.name = 'New Name'
        product.images = ['second.jpg']
        product.save()

        item = services.get_order_for_user(user, order.pk).items.get()
        self.assertEqual(item.price, Decimal('250.00'))
        self.assertEqual(item.name, 'Old Name')
        self.assertEqual(item.image, 'first.jpg')
        self.assertEqual(item.product.price, Decimal('400.00'))

    def test_deleted_product_leaves_item(self):
        user = TestDataFactory.create_user()
        product = TestDataFactory.create_product()
        order = TestDataFactory.create_order(user, [(product, 1)])
        product.delete()
        item = services.get_order_for_user(user, order.pk).items.get()
        self.assertIsNone(item.product)
        self.assertEqual(item.quantity, 1)


class OrderNumberTests(TestCase):
    """Test order numbering"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(stock=100)

    def test_format(self):
        order = TestDataFactory.create_order(self.user, [(self.product, 1)])
        now = timezone.localtime()
        self.assertEqual(order.order_number, f"KHN{now.year:04d}{now.month:02d}00001")

    def test_sequence_increments(self):
        first = TestDataFactory.create_order(self.user, [(self.product, 1)])
        second = TestDataFactory.create_order(self.user, [(self.product, 1)])
        self.assertEqual(int(first.order_number[-5:]) + 1, int(second.order_number[-5:]))
        self.assertEqual(OrderSequence.objects.get(name='order').value, 2)

    def test_failed_order_does_not_consume_number(self):
        scarce = TestDataFactory.create_product(stock=0)
        with self.assertRaises(InsufficientStock):
            TestDataFactory.create_order(self.user, [(scarce, 1)])
        order = TestDataFactory.create_order(self.user, [(self.product, 1)])
        self.assertTrue(order.order_number.endswith('00001'))

    def test_counter_seeded_from_existing_orders(self):
        TestDataFactory.create_order(self.user, [(self.product, 1)])
        TestDataFactory.create_order(self.user, [(self.product, 1)])
        OrderSequence.objects.all().delete()

        order = TestDataFactory.create_order(self.user, [(self.product, 1)])
        self.assertTrue(order.order_number.endswith('00003'))

    def test_existing_counter_skips_order_count(self):
        TestDataFactory.create_order(self.user, [(self.product, 1)])
        with patch.object(Order.objects, 'count') as count:
            order = TestDataFactory.create_order(self.user, [(self.product, 1)])
        count.assert_not_called()
        self.assertTrue(order.order_number.endswith('00002'))


class OrderAccessTests(TestCase):
    """Test ownership rules on order reads"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.stranger = TestDataFactory.create_user()
        self.admin = TestDataFactory.create_admin()
        product = TestDataFactory.create_product()
        self.order = TestDataFactory.create_order(self.owner, [(product, 1)])

    def test_owner_and_admin_can_read(self):
        self.assertEqual(services.get_order_for_user(self.owner, self.order.pk), self.order)
        self.assertEqual(services.get_order_for_user(self.admin, self.order.pk), self.order)

    def test_stranger_is_forbidden(self):
        with self.assertRaises(Forbidden):
            services.get_order_for_user(self.stranger, self.order.pk)

    def test_missing_order_is_not_found(self):
        with self.assertRaises(NotFound):
            services.get_order_for_user(self.stranger, 999999)

    def test_order_detail_endpoint(self):
        client = AuthenticatedAPIClient().authenticate_user(self.stranger)
        response = client.get(f'/api/v1/orders/{self.order.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'Forbidden')

        client.authenticate_user(self.owner)
        response = client.get(f'/api/v1/orders/{self.order.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order_number'], self.order.order_number)

        response = client.get('/api/v1/orders/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_my_orders_lists_only_own_orders_newest_first(self):
        product = TestDataFactory.create_product()
        newer = TestDataFactory.create_order(self.owner, [(product, 1)])
        TestDataFactory.create_order(self.stranger, [(product, 1)])
        orders = list(services.my_orders(self.owner))
        self.assertEqual(orders, [newer, self.order])


class OrderEndpointTests(TestCase):
    """Test the customer order endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient().authenticate_user(self.user)
        self.product = TestDataFactory.create_product(price=Decimal('450.00'), stock=5)

    def test_create_order(self):
        response = self.client.post('/api/v1/orders/', order_payload(self.product, 2), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['subtotal'], Decimal('900.00'))
        self.assertEqual(response.data['shipping_fee'], Decimal('50.00'))
        self.assertEqual(response.data['total'], Decimal('950.00'))
        self.assertEqual(response.data['items'][0]['product']['id'], self.product.pk)
        self.assertEqual(response.data['notes'], 'Leave at the front desk')
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 3)

    def test_create_order_insufficient_stock_is_409(self):
        response = self.client.post('/api/v1/orders/', order_payload(self.product, 6), format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'InsufficientStock')
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 5)

    def test_create_order_requires_authentication(self):
        client = AuthenticatedAPIClient()
        response = client.post('/api/v1/orders/', order_payload(self.product, 1), format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_create_order_validates_shape(self):
        response = self.client.post(
            '/api/v1/orders/', order_payload(self.product, 1, items=[]), format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'ValidationFailed')

    def test_my_orders_endpoint(self):
        TestDataFactory.create_order(self.user, [(self.product, 1)])
        response = self.client.get('/api/v1/orders/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)


class PaymentSlipTests(TestCase):
    """Test slip upload"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.order = TestDataFactory.create_order(self.owner, [(TestDataFactory.create_product(), 1)])

    def test_slip_does_not_change_statuses(self):
        order = services.upload_payment_slip(self.owner, self.order.pk, 'https://cdn.test/slip.png')
        self.assertEqual(order.payment_slip, 'https://cdn.test/slip.png')
        self.assertEqual(order.status, Order.STATUS_PENDING)
        self.assertEqual(order.payment_status, Order.PAYMENT_PENDING)

    def test_stranger_cannot_attach_slip(self):
        stranger = TestDataFactory.create_user()
        client = AuthenticatedAPIClient().authenticate_user(stranger)
        response = client.post(
            f'/api/v1/orders/{self.order.pk}/payment-slip/', {'slip_url': 'x.png'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.order.refresh_from_db()
        self.assertIsNone(self.order.payment_slip)

    def test_admin_can_attach_slip(self):
        admin = TestDataFactory.create_admin()
        client = AuthenticatedAPIClient().authenticate_user(admin)
        response = client.post(
            f'/api/v1/orders/{self.order.pk}/payment-slip/', {'slip_url': 'admin.png'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['payment_slip'], 'admin.png')


class AdminOrderTests(TestCase):
    """Test admin order listing and transitions"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.customer = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient().authenticate_user(self.admin)
        product = TestDataFactory.create_product(stock=50)
        self.order = TestDataFactory.create_order(self.customer, [(product, 1)])
        self.other = TestDataFactory.create_order(self.customer, [(product, 1)])

    def test_status_transition_accepts_any_member(self):
        order = services.update_order_status(self.order.pk, 'delivered')
        self.assertEqual(order.status, 'delivered')
        order = services.update_order_status(self.order.pk, 'pending')
        self.assertEqual(order.status, 'pending')
        self.assertEqual(AuditLog.objects.filter(action='order_status').count(), 2)

    def test_unknown_status_rejected(self):
        with self.assertRaises(ValidationFailed):
            services.update_order_status(self.order.pk, 'paid')
        with self.assertRaises(ValidationFailed):
            services.update_payment_status(self.order.pk, 'paid')

    def test_missing_order_not_found(self):
        with self.assertRaises(NotFound):
            services.update_tracking_number(999999, 'TH123')

    def test_status_endpoint(self):
        response = self.client.patch(
            f'/api/v1/admin/orders/{self.order.pk}/status/', {'status': 'shipped'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'shipped')

        response = self.client.patch(
            f'/api/v1/admin/orders/{self.order.pk}/status/', {'status': 'lost'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_tracking_and_payment_endpoints(self):
        response = self.client.patch(
            f'/api/v1/admin/orders/{self.order.pk}/tracking-number/', {'tracking_number': 'TH0001'}, format='json'
        )
        self.assertEqual(response.data['tracking_number'], 'TH0001')
        response = self.client.patch(
            f'/api/v1/admin/orders/{self.order.pk}/payment-status/', {'status': 'completed'}, format='json'
        )
        self.assertEqual(response.data['payment_status'], 'completed')
        self.assertEqual(response.data['status'], 'pending')

    def test_customer_cannot_transition(self):
        client = AuthenticatedAPIClient().authenticate_user(self.customer)
        response = client.patch(
            f'/api/v1/admin/orders/{self.order.pk}/status/', {'status': 'shipped'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_order_listing_filters_by_status(self):
        services.update_order_status(self.other.pk, 'cancelled')
        response = self.client.get('/api/v1/admin/orders/', {'status': 'cancelled'})
        self.assertEqual(response.data['total'], 1)
        self.assertEqual(response.data['orders'][0]['id'], self.other.pk)
        self.assertEqual(response.data['orders'][0]['user']['email'], self.customer.email)

        response = self.client.get('/api/v1/admin/orders/', {'limit': 1})
        self.assertEqual(response.data['total'], 2)
        self.assertTrue(response.data['has_more'])

    def test_stock_never_negative(self):
        product = Product.objects.create(
            name='Last one', name_en='Last one', slug='last-one', description='d', description_en='d',
            price=Decimal('10.00'), category=TestDataFactory.create_category(), brand='b', stock=1,
        )
        for _ in range(3):
            try:
                TestDataFactory.create_order(self.customer, [(product, 1)])
            except InsufficientStock:
                pass
            product.refresh_from_db()
            self.assertGreaterEqual(product.stock, 0)
        self.assertEqual(product.stock, 0)
