from django.urls import path
from .views import (
    category_list, category_by_slug,
    product_list, product_lookup,
    admin_product_list_create, admin_product_detail,
    admin_category_create, admin_category_detail,
)

urlpatterns = [
    # Storefront catalog endpoints
    path('categories/', category_list, name='category-list'),
    path('categories/<str:slug>/', category_by_slug, name='category-by-slug'),
    path('products/', product_list, name='product-list'),
    path('product/', product_lookup, name='product-lookup'),

    # Admin catalog endpoints
    path('admin/products/', admin_product_list_create, name='admin-product-list-create'),
    path('admin/products/<int:pk>/', admin_product_detail, name='admin-product-detail'),
    path('admin/categories/', admin_category_create, name='admin-category-create'),
    path('admin/categories/<int:pk>/', admin_category_detail, name='admin-category-detail'),
]
