import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from storefront.core.pagination import parse_window
from storefront.core.permissions import IsAdminRole
from storefront.core.utils import create_audit_log, validated_data

from . import services
from .serializers import CategorySerializer, ProductPageSerializer, ProductSerializer

logger = logging.getLogger(__name__)

PRODUCT_FILTER_PARAMS = ('category', 'featured', 'search')


def _product_page(items, total, has_more):
    return ProductPageSerializer({'products': items, 'total': total, 'has_more': has_more}).data


# Storefront reads
@api_view(['GET'])
@permission_classes([AllowAny])
def category_list(request):
    """List all categories with their product counts"""
    serializer = CategorySerializer(services.list_categories(), many=True)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([AllowAny])
def category_by_slug(request, slug):
    """Single category by slug, or null"""
    category = services.get_category(slug)
    if category is None:
        return Response(None)
    return Response(CategorySerializer(category).data)


@api_view(['GET'])
@permission_classes([AllowAny])
def product_list(request):
    """Product listing with category/featured/search filters and paging"""
    limit, offset = parse_window(request.query_params)
    filter_params = {
        key: request.query_params.get(key)
        for key in PRODUCT_FILTER_PARAMS
        if request.query_params.get(key) not in (None, '')
    }
    items, total, has_more = services.list_products(filter_params, limit, offset)
    return Response(_product_page(items, total, has_more))


@api_view(['GET'])
@permission_classes([AllowAny])
def product_lookup(request):
    """Single product by ?id= or ?slug= (id wins), or null"""
    product = services.get_product(
        product_id=request.query_params.get('id'),
        slug=request.query_params.get('slug'),
    )
    if product is None:
        return Response(None)
    return Response(ProductSerializer(product).data)


# Admin catalog management
@api_view(['GET', 'POST'])
@permission_classes([IsAdminRole])
def admin_product_list_create(request):
    """List every product (paged) or create a new one"""
    if request.method == 'GET':
        limit, offset = parse_window(request.query_params)
        items, total, has_more = services.admin_products(limit, offset)
        return Response(_product_page(items, total, has_more))

    data = validated_data(ProductSerializer(data=request.data))
    product = services.create_product(data)
    create_audit_log(
        request=request,
        action='create',
        model_name='Product',
        object_id=str(product.id),
        object_name=product.name,
        object_reference=product.slug,
        changes={'price': str(product.price), 'stock': product.stock},
    )
    return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)


@api_view(['PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAdminRole])
def admin_product_detail(request, pk):
    """Update or delete a product"""
    if request.method == 'DELETE':
        snapshot = services.delete_product(pk)
        create_audit_log(
            request=request,
            action='delete',
            model_name='Product',
            object_id=str(pk),
            object_name=snapshot['name'],
            object_reference=snapshot['slug'],
            changes=snapshot,
        )
        return Response(True)

    product = services.get_product_or_404(pk)
    serializer = ProductSerializer(product, data=request.data, partial=request.method == 'PATCH')
    data = validated_data(serializer)
    product, changes = services.update_product(product, data)
    if changes:
        create_audit_log(
            request=request,
            action='update',
            model_name='Product',
            object_id=str(product.id),
            object_name=product.name,
            object_reference=product.slug,
            changes=changes,
        )
    return Response(ProductSerializer(product).data)


@api_view(['POST'])
@permission_classes([IsAdminRole])
def admin_category_create(request):
    """Create a category"""
    data = validated_data(CategorySerializer(data=request.data))
    category = services.create_category(data)
    create_audit_log(
        request=request,
        action='create',
        model_name='Category',
        object_id=str(category.id),
        object_name=category.name,
        object_reference=category.slug,
    )
    return Response(CategorySerializer(category).data, status=status.HTTP_201_CREATED)


@api_view(['PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAdminRole])
def admin_category_detail(request, pk):
    """Update a category, or delete one that has no products"""
    if request.method == 'DELETE':
        services.delete_category(pk)
        create_audit_log(
            request=request,
            action='delete',
            model_name='Category',
            object_id=str(pk),
        )
        return Response(True)

    category = services.get_category_or_404(pk)
    serializer = CategorySerializer(category, data=request.data, partial=request.method == 'PATCH')
    data = validated_data(serializer)
    category = services.update_category(category, data)
    create_audit_log(
        request=request,
        action='update',
        model_name='Category',
        object_id=str(category.id),
        object_name=category.name,
        object_reference=category.slug,
        changes={k: str(v) for k, v in data.items()},
    )
    return Response(CategorySerializer(category).data)
