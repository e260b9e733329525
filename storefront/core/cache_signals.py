"""
Cache invalidation signals
Automatically invalidate cached aggregates when orders or products change
"""
from django.db import transaction
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging

from .cache_utils import invalidate_dashboard_cache

logger = logging.getLogger(__name__)


def _invalidate_now_and_on_commit():
    # A concurrent read may re-cache pre-commit data; clear again after commit
    invalidate_dashboard_cache()
    transaction.on_commit(invalidate_dashboard_cache)


@receiver(post_save, sender='orders.Order')
@receiver(post_delete, sender='orders.Order')
def invalidate_on_order_change(sender, instance, **kwargs):
    logger.debug(f"Order {instance.pk} changed, invalidating dashboard cache")
    _invalidate_now_and_on_commit()


@receiver(post_save, sender='catalog.Product')
@receiver(post_delete, sender='catalog.Product')
def invalidate_on_product_change(sender, instance, **kwargs):
    logger.debug(f"Product {instance.pk} changed, invalidating dashboard cache")
    _invalidate_now_and_on_commit()


def invalidate_after_stock_update():
    """Queryset.update() skips signals; stock decrements call this instead"""
    _invalidate_now_and_on_commit()
