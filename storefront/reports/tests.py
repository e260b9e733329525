"""
Test suite for the dashboard report
Tests: KPI counts, revenue, low stock, monthly revenue, caching and access
"""
from datetime import datetime
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from storefront.core.cache_utils import DASHBOARD_KPI_CACHE_KEY
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.orders import services as order_services
from storefront.orders.models import Order
from storefront.reports.services import (
    MONTH_LABELS, build_dashboard, dashboard_kpis, monthly_revenue, months_before,
)


def month_label(moment):
    moment = timezone.localtime(moment)
    return f"{MONTH_LABELS[moment.month - 1]} {moment.year}"


class MonthArithmeticTests(TestCase):
    def test_months_before_clamps_day(self):
        self.assertEqual(months_before(datetime(2026, 8, 31, 12, 0), 6), datetime(2026, 2, 28, 12, 0))

    def test_months_before_crosses_year(self):
        self.assertEqual(months_before(datetime(2026, 3, 15), 6), datetime(2025, 9, 15))


class DashboardTests(TestCase):
    """Test dashboard aggregates"""

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_admin()
        self.customer = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(price=Decimal('400.00'), stock=100)

    def test_counts(self):
        TestDataFactory.create_order(self.customer, [(self.product, 1)])
        second = TestDataFactory.create_order(self.customer, [(self.product, 1)])
        order_services.update_order_status(second.pk, 'processing')

        data = build_dashboard()
        self.assertEqual(data['total_products'], 1)
        self.assertEqual(data['total_orders'], 2)
        self.assertEqual(data['pending_orders'], 1)
        self.assertEqual(data['recent_orders'][0]['id'], second.pk)

    def test_recent_orders_limited_to_five(self):
        for _ in range(6):
            TestDataFactory.create_order(self.customer, [(self.product, 1)])
        self.assertEqual(len(build_dashboard()['recent_orders']), 5)

    def test_revenue_increases_by_order_total_after_payment_confirmed(self):
        order = TestDataFactory.create_order(self.customer, [(self.product, 2)])
        before = dashboard_kpis()['total_revenue']

        order_services.update_payment_status(order.pk, Order.PAYMENT_COMPLETED)

        after = dashboard_kpis()['total_revenue']
        self.assertEqual(after - before, order.total)
        self.assertEqual(after, Decimal('850.00'))

    def test_low_stock_products(self):
        low = TestDataFactory.create_product(stock=3)
        TestDataFactory.create_product(stock=10)
        data = build_dashboard()
        self.assertEqual([p['id'] for p in data['low_stock_products']], [low.pk])

    def test_low_stock_limited_to_five(self):
        for stock in range(7):
            TestDataFactory.create_product(stock=stock)
        self.assertEqual(len(build_dashboard()['low_stock_products']), 5)

    def test_monthly_revenue_window_and_order(self):
        now = timezone.localtime()
        current = TestDataFactory.create_order(self.customer, [(self.product, 1)])
        earlier = TestDataFactory.create_order(self.customer, [(self.product, 3)])
        too_old = TestDataFactory.create_order(self.customer, [(self.product, 1)])
        unpaid = TestDataFactory.create_order(self.customer, [(self.product, 1)])

        two_months_ago = months_before(now, 2)
        Order.objects.filter(pk=earlier.pk).update(created_at=two_months_ago)
        Order.objects.filter(pk=too_old.pk).update(created_at=months_before(now, 8))
        Order.objects.filter(pk__in=[current.pk, earlier.pk, too_old.pk]).update(
            payment_status=Order.PAYMENT_COMPLETED
        )

        series = monthly_revenue(now)
        self.assertEqual(series, [
            {'month': month_label(two_months_ago), 'revenue': earlier.total},
            {'month': month_label(now), 'revenue': current.total},
        ])

    def test_months_without_revenue_are_omitted(self):
        self.assertEqual(monthly_revenue(), [])


class DashboardCacheTests(TestCase):
    """Test dashboard cache invalidation"""

    def setUp(self):
        cache.clear()
        self.customer = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(stock=20)

    def test_result_is_cached(self):
        dashboard_kpis()
        self.assertIsNotNone(cache.get(DASHBOARD_KPI_CACHE_KEY))

    def test_order_write_invalidates(self):
        self.assertEqual(dashboard_kpis()['total_orders'], 0)
        TestDataFactory.create_order(self.customer, [(self.product, 1)])
        self.assertEqual(dashboard_kpis()['total_orders'], 1)

    def test_product_write_invalidates(self):
        self.assertEqual(dashboard_kpis()['total_products'], 1)
        TestDataFactory.create_product()
        self.assertEqual(dashboard_kpis()['total_products'], 2)

    def test_stock_decrement_refreshes_low_stock(self):
        self.assertEqual(dashboard_kpis()['low_stock_products'], [])
        TestDataFactory.create_order(self.customer, [(self.product, 15)])
        low_stock = dashboard_kpis()['low_stock_products']
        self.assertEqual([p['id'] for p in low_stock], [self.product.pk])
        self.assertEqual(low_stock[0]['stock'], 5)


class DashboardEndpointTests(TestCase):
    def setUp(self):
        cache.clear()

    def test_admin_only(self):
        client = AuthenticatedAPIClient()
        self.assertEqual(client.get('/api/v1/admin/dashboard/').status_code, status.HTTP_401_UNAUTHORIZED)

        client.authenticate_user(TestDataFactory.create_user())
        self.assertEqual(client.get('/api/v1/admin/dashboard/').status_code, status.HTTP_403_FORBIDDEN)

        client.authenticate_user(TestDataFactory.create_admin())
        response = client.get('/api/v1/admin/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        for key in ('total_products', 'total_orders', 'total_revenue', 'pending_orders',
                    'recent_orders', 'monthly_revenue', 'low_stock_products'):
            self.assertIn(key, response.data)
