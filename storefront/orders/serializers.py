from rest_framework import serializers

from storefront.catalog.serializers import ProductSerializer
from storefront.core.serializers import UserSummarySerializer

from .models import Order, OrderItem


class ShippingAddressSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    phone = serializers.CharField(max_length=20)
    address = serializers.CharField()
    district = serializers.CharField(max_length=100)
    province = serializers.CharField(max_length=100)
    postal_code = serializers.CharField(max_length=10)
    is_default = serializers.BooleanField(required=False, default=False)


class OrderItemInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1)


class CreateOrderSerializer(serializers.Serializer):
    items = OrderItemInputSerializer(many=True, allow_empty=False)
    shipping_address = ShippingAddressSerializer()
    payment_method = serializers.ChoiceField(choices=Order.PAYMENT_METHOD_CHOICES)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class OrderItemSerializer(serializers.ModelSerializer):
    # Current product (null once deleted); name/price/image stay as purchased
    product = ProductSerializer(read_only=True)
    product_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = OrderItem
        fields = ['id', 'product_id', 'product', 'name', 'price', 'quantity', 'image']


class OrderSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    payment_status_display = serializers.CharField(source='get_payment_status_display', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'user', 'items', 'subtotal', 'shipping_fee', 'total',
            'status', 'status_display', 'payment_method', 'payment_status', 'payment_status_display',
            'shipping_address', 'tracking_number', 'payment_slip', 'notes',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class OrderPageSerializer(serializers.Serializer):
    orders = OrderSerializer(many=True)
    total = serializers.IntegerField()
    has_more = serializers.BooleanField()


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.STATUS_CHOICES)


class PaymentStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.PAYMENT_STATUS_CHOICES)


class TrackingNumberSerializer(serializers.Serializer):
    tracking_number = serializers.CharField(max_length=100)


class PaymentSlipSerializer(serializers.Serializer):
    slip_url = serializers.CharField(max_length=500)
