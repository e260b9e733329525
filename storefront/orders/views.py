import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from storefront.core.pagination import parse_window
from storefront.core.permissions import IsAdminRole, IsAuthenticatedUser
from storefront.core.utils import validated_data

from . import services
from .serializers import (
    CreateOrderSerializer, OrderPageSerializer, OrderSerializer,
    OrderStatusUpdateSerializer, PaymentSlipSerializer,
    PaymentStatusUpdateSerializer, TrackingNumberSerializer,
)

logger = logging.getLogger(__name__)


# Customer order views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticatedUser])
def order_list_create(request):
    """List the caller's orders (newest first) or place a new order"""
    if request.method == 'GET':
        serializer = OrderSerializer(services.my_orders(request.user), many=True)
        return Response(serializer.data)

    data = validated_data(CreateOrderSerializer(data=request.data))
    order = services.create_order(
        request.user,
        items=data['items'],
        shipping_address=data['shipping_address'],
        payment_method=data['payment_method'],
        notes=data.get('notes'),
        request=request,
    )
    return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticatedUser])
def order_detail(request, pk):
    """Retrieve an order owned by the caller (admins may read any)"""
    order = services.get_order_for_user(request.user, pk)
    return Response(OrderSerializer(order).data)


@api_view(['POST'])
@permission_classes([IsAuthenticatedUser])
def order_payment_slip(request, pk):
    """Attach an uploaded payment slip URL to an order"""
    data = validated_data(PaymentSlipSerializer(data=request.data))
    order = services.upload_payment_slip(request.user, pk, data['slip_url'], request=request)
    return Response(OrderSerializer(order).data)


# Admin order views
@api_view(['GET'])
@permission_classes([IsAdminRole])
def admin_order_list(request):
    """All orders, optionally filtered by status"""
    limit, offset = parse_window(request.query_params)
    items, total, has_more = services.admin_orders(
        status=request.query_params.get('status') or None,
        limit=limit,
        offset=offset,
    )
    return Response(OrderPageSerializer({'orders': items, 'total': total, 'has_more': has_more}).data)


@api_view(['PATCH'])
@permission_classes([IsAdminRole])
def admin_order_status(request, pk):
    """Move an order to a new status"""
    data = validated_data(OrderStatusUpdateSerializer(data=request.data))
    order = services.update_order_status(pk, data['status'], request=request)
    return Response(OrderSerializer(order).data)


@api_view(['PATCH'])
@permission_classes([IsAdminRole])
def admin_order_tracking_number(request, pk):
    """Set the carrier tracking number"""
    data = validated_data(TrackingNumberSerializer(data=request.data))
    order = services.update_tracking_number(pk, data['tracking_number'], request=request)
    return Response(OrderSerializer(order).data)


@api_view(['PATCH'])
@permission_classes([IsAdminRole])
def admin_order_payment_status(request, pk):
    """Confirm, fail or refund payment"""
    data = validated_data(PaymentStatusUpdateSerializer(data=request.data))
    order = services.update_payment_status(pk, data['status'], request=request)
    return Response(OrderSerializer(order).data)
