from rest_framework import serializers

from .models import Category, Product
from .specifications import normalize_specifications, specifications_to_mapping


class CategorySerializer(serializers.ModelSerializer):
    product_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ['id', 'name', 'name_en', 'slug', 'description', 'description_en', 'image',
                  'product_count', 'created_at', 'updated_at']

    def get_product_count(self, obj):
        """Use the annotated count when the queryset carries one"""
        count = getattr(obj, 'product_count', None)
        if count is None:
            count = obj.products.count()
        return count


class SpecificationPairSerializer(serializers.Serializer):
    key = serializers.CharField(max_length=200)
    value = serializers.CharField(allow_blank=True)


class SpecificationsField(serializers.Field):
    """
    Specifications are written as [{key, value}, ...] and stored as a
    mapping; they are always read back as an ordered pair list.
    """

    def to_representation(self, value):
        return normalize_specifications(value)

    def to_internal_value(self, data):
        if data is None:
            return {}
        if not isinstance(data, list):
            raise serializers.ValidationError('Expected a list of {key, value} pairs.')
        pairs = SpecificationPairSerializer(data=data, many=True)
        pairs.is_valid(raise_exception=True)
        return specifications_to_mapping(pairs.validated_data)


class ProductSerializer(serializers.ModelSerializer):
    category = CategorySerializer(read_only=True)
    category_id = serializers.PrimaryKeyRelatedField(
        source='category', queryset=Category.objects.all(), write_only=True
    )
    specifications = SpecificationsField(required=False)
    images = serializers.ListField(child=serializers.CharField(max_length=500), required=False)

    class Meta:
        model = Product
        fields = ['id', 'name', 'name_en', 'slug', 'description', 'description_en',
                  'price', 'discount_price', 'category', 'category_id', 'brand',
                  'images', 'specifications', 'stock', 'featured',
                  'created_at', 'updated_at']

    def validate_price(self, value):
        if value < 0:
            raise serializers.ValidationError('Price cannot be negative.')
        return value

    def validate_discount_price(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError('Discount price cannot be negative.')
        return value


class ProductPageSerializer(serializers.Serializer):
    products = ProductSerializer(many=True)
    total = serializers.IntegerField()
    has_more = serializers.BooleanField()
