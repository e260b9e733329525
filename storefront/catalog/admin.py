from django.contrib import admin
from .models import Category, Product


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'name_en', 'slug', 'created_at']
    search_fields = ['name', 'name_en', 'slug']
    prepopulated_fields = {'slug': ('name_en',)}


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'category', 'brand', 'price', 'discount_price', 'stock', 'featured']
    list_filter = ['category', 'featured', 'created_at']
    search_fields = ['name', 'name_en', 'slug', 'brand']
    list_select_related = ['category']
    readonly_fields = ['created_at', 'updated_at']
