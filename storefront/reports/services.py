"""
Admin dashboard aggregate.

The computed payload is cached under a fixed key; order and product
writes clear it through the signals in storefront.core.cache_signals.
"""
import calendar
import logging
from decimal import Decimal

from django.conf import settings
from django.db.models import Sum
from django.db.models.functions import TruncMonth
from django.utils import timezone

from storefront.catalog.models import Product
from storefront.catalog.serializers import ProductSerializer
from storefront.core.cache_utils import cache_dashboard_kpis, get_cached_dashboard_kpis
from storefront.orders.models import Order
from storefront.orders.serializers import OrderSerializer
from storefront.orders.services import order_queryset

logger = logging.getLogger('storefront.reports')

RECENT_ORDER_COUNT = 5
LOW_STOCK_PRODUCT_COUNT = 5
MONTHLY_REVENUE_MONTHS = 6
MONTH_LABELS = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']


def months_before(moment, months):
    """Same wall-clock moment `months` calendar months earlier (day clamped)"""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def monthly_revenue(now=None):
    """
    Completed-payment revenue per calendar month over the trailing window,
    oldest first. Months without revenue are left out.
    """
    now = timezone.localtime(now)
    since = months_before(now, MONTHLY_REVENUE_MONTHS)
    rows = (
        Order.objects.filter(payment_status=Order.PAYMENT_COMPLETED, created_at__gte=since)
        .annotate(month=TruncMonth('created_at'))
        .values('month')
        .annotate(revenue=Sum('total'))
        .order_by('month')
    )
    return [
        {
            'month': f"{MONTH_LABELS[row['month'].month - 1]} {row['month'].year}",
            'revenue': row['revenue'] or Decimal('0.00'),
        }
        for row in rows
    ]


def build_dashboard(now=None):
    config = settings.STOREFRONT
    completed = Order.objects.filter(payment_status=Order.PAYMENT_COMPLETED)
    total_revenue = completed.aggregate(total=Sum('total'))['total'] or Decimal('0.00')

    recent_orders = order_queryset().order_by('-created_at', '-id')[:RECENT_ORDER_COUNT]
    low_stock_products = (
        Product.objects.select_related('category')
        .filter(stock__lt=config.low_stock_threshold)
        .order_by('stock', 'id')[:LOW_STOCK_PRODUCT_COUNT]
    )

    return {
        'total_products': Product.objects.count(),
        'total_orders': Order.objects.count(),
        'total_revenue': total_revenue,
        'pending_orders': Order.objects.filter(status=Order.STATUS_PENDING).count(),
        'recent_orders': list(OrderSerializer(recent_orders, many=True).data),
        'monthly_revenue': monthly_revenue(now),
        'low_stock_products': list(ProductSerializer(low_stock_products, many=True).data),
    }


def dashboard_kpis():
    """Dashboard payload, served from cache when a fresh copy exists"""
    cached = get_cached_dashboard_kpis()
    if cached is not None:
        return cached
    data = build_dashboard()
    cache_dashboard_kpis(data)
    logger.info(
        f"Dashboard rebuilt: {data['total_orders']} orders, revenue {data['total_revenue']}"
    )
    return data
