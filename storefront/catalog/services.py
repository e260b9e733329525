"""
Catalog reads and admin mutations.

Views validate input through the serializers and hand validated data here;
these functions own the queries and the referential rules.
"""
import logging

from django.db import transaction
from django.db.models import Count

from storefront.core.exceptions import Conflict, NotFound
from storefront.core.pagination import paginate

from .filters import ProductFilter
from .models import Category, Product

logger = logging.getLogger(__name__)


def list_categories():
    """All categories by name, each carrying a live product_count"""
    return Category.objects.annotate(product_count=Count('products')).order_by('name')


def get_category(slug):
    if not slug:
        return None
    return list_categories().filter(slug=slug).first()


def product_queryset():
    return Product.objects.select_related('category').order_by('-created_at', '-id')


def list_products(filter_params, limit, offset):
    """
    Filtered product page.

    `filter_params` holds any of category (slug), featured and search.
    An unknown category slug matches nothing.
    """
    product_filter = ProductFilter(filter_params, queryset=product_queryset())
    return paginate(product_filter.qs, limit, offset)


def get_product(product_id=None, slug=None):
    """Lookup by id (takes precedence) or slug; None when nothing matches"""
    queryset = product_queryset()
    if product_id not in (None, ''):
        try:
            return queryset.filter(pk=int(product_id)).first()
        except (TypeError, ValueError):
            return None
    if slug:
        return queryset.filter(slug=slug).first()
    return None


def admin_products(limit, offset):
    return paginate(product_queryset(), limit, offset)


def get_category_or_404(category_id):
    category = Category.objects.filter(pk=category_id).first()
    if category is None:
        raise NotFound('Category not found.')
    return category


def get_product_or_404(product_id):
    product = product_queryset().filter(pk=product_id).first()
    if product is None:
        raise NotFound('Product not found.')
    return product


def create_category(data):
    category = Category.objects.create(**data)
    logger.info(f"Created category {category.pk} ({category.slug})")
    return category


def update_category(category, data):
    for field, value in data.items():
        setattr(category, field, value)
    category.save()
    return category


def delete_category(category_id):
    """Delete a category that no product references"""
    with transaction.atomic():
        category = get_category_or_404(category_id)
        product_count = Product.objects.filter(category=category).count()
        if product_count > 0:
            raise Conflict(f'Cannot delete category with products ({product_count} assigned).')
        category.delete()
    logger.info(f"Deleted category {category_id}")
    return True


def create_product(data):
    data = dict(data)
    data.setdefault('images', [])
    data.setdefault('specifications', {})
    product = Product.objects.create(**data)
    logger.info(f"Created product {product.pk} ({product.slug})")
    return product


def update_product(product, data):
    """Apply validated fields; specifications, when given, replace the stored mapping"""
    changes = {}
    for field, value in data.items():
        old_value = getattr(product, field)
        if old_value != value:
            changes[field] = {'old': _audit_value(old_value), 'new': _audit_value(value)}
        setattr(product, field, value)
    product.save()
    return product, changes


def delete_product(product_id):
    product = get_product_or_404(product_id)
    snapshot = {'name': product.name, 'slug': product.slug}
    product.delete()
    logger.info(f"Deleted product {product_id}")
    return snapshot


def _audit_value(value):
    if isinstance(value, Category):
        return value.pk
    if isinstance(value, (dict, list, bool, int, str)) or value is None:
        return value
    return str(value)
