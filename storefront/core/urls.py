from django.urls import path
from .views import (
    register, login, user_me,
    address_create, address_detail,
    upload_image, health, audit_log_list,
)

urlpatterns = [
    # Auth endpoints
    path('auth/register/', register, name='register'),
    path('auth/login/', login, name='login'),
    path('auth/me/', user_me, name='user-me'),

    # Address book endpoints
    path('auth/me/addresses/', address_create, name='address-create'),
    path('auth/me/addresses/<int:index>/', address_detail, name='address-detail'),

    # File upload endpoint
    path('upload/', upload_image, name='upload-image'),

    # Health check endpoint
    path('health/', health, name='health'),

    # AuditLog endpoints
    path('admin/audit-logs/', audit_log_list, name='audit-log-list'),
]
