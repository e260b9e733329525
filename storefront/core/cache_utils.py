"""
Caching utilities for expensive read aggregates
Uses the default Django cache (Redis when configured)
"""
from django.conf import settings
from django.core.cache import cache
import logging

logger = logging.getLogger(__name__)

DASHBOARD_KPI_CACHE_KEY = 'dashboard_kpis'


def get_cached_dashboard_kpis():
    """Get cached dashboard KPIs, or None on miss or cache failure"""
    try:
        data = cache.get(DASHBOARD_KPI_CACHE_KEY)
    except Exception as e:
        logger.warning(f"Cache unavailable, proceeding without cache: {e}")
        return None
    if data is not None:
        logger.debug(f"Cache HIT for {DASHBOARD_KPI_CACHE_KEY}")
    else:
        logger.debug(f"Cache MISS for {DASHBOARD_KPI_CACHE_KEY}")
    return data


def cache_dashboard_kpis(data, ttl=None):
    """Cache dashboard KPIs data"""
    ttl = ttl if ttl is not None else settings.STOREFRONT.dashboard_cache_ttl
    try:
        cache.set(DASHBOARD_KPI_CACHE_KEY, data, ttl)
        logger.debug(f"Cached dashboard KPIs for {ttl}s")
    except Exception as e:
        logger.warning(f"Could not cache dashboard KPIs: {e}")


def invalidate_dashboard_cache():
    """Invalidate dashboard KPIs cache"""
    try:
        cache.delete(DASHBOARD_KPI_CACHE_KEY)
        logger.debug("Invalidated dashboard cache")
    except Exception as e:
        logger.warning(f"Could not invalidate dashboard cache: {e}")
