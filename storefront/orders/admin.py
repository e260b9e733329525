from django.contrib import admin
from .models import Order, OrderItem, OrderSequence


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['product', 'name', 'price', 'quantity', 'image']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'user', 'status', 'payment_method', 'payment_status', 'total', 'created_at']
    list_filter = ['status', 'payment_status', 'payment_method', 'created_at']
    search_fields = ['order_number', 'user__email', 'tracking_number']
    list_select_related = ['user']
    readonly_fields = ['order_number', 'subtotal', 'shipping_fee', 'total', 'created_at', 'updated_at']
    inlines = [OrderItemInline]


@admin.register(OrderSequence)
class OrderSequenceAdmin(admin.ModelAdmin):
    list_display = ['name', 'value']
    readonly_fields = ['name', 'value']
