import logging
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from storefront.core.permissions import IsAdminRole

from .services import dashboard_kpis

logger = logging.getLogger('storefront.reports')


@api_view(['GET'])
@permission_classes([IsAdminRole])
def admin_dashboard(request):
    """Store KPIs: counts, revenue, recent orders, low stock and monthly revenue"""
    response = Response(dashboard_kpis())
    # Admin-only data; never cache in shared proxies
    response['Cache-Control'] = 'private, no-store'
    return response
