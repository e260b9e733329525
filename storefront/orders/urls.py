from django.urls import path
from .views import (
    order_list_create, order_detail, order_payment_slip,
    admin_order_list, admin_order_status,
    admin_order_tracking_number, admin_order_payment_status,
)

urlpatterns = [
    # Customer order endpoints
    path('orders/', order_list_create, name='order-list-create'),
    path('orders/<int:pk>/', order_detail, name='order-detail'),
    path('orders/<int:pk>/payment-slip/', order_payment_slip, name='order-payment-slip'),

    # Admin order endpoints
    path('admin/orders/', admin_order_list, name='admin-order-list'),
    path('admin/orders/<int:pk>/status/', admin_order_status, name='admin-order-status'),
    path('admin/orders/<int:pk>/tracking-number/', admin_order_tracking_number, name='admin-order-tracking-number'),
    path('admin/orders/<int:pk>/payment-status/', admin_order_payment_status, name='admin-order-payment-status'),
]
