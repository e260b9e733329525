import django_filters
from django.db.models import Q
from .models import Product


class ProductFilter(django_filters.FilterSet):
    """Storefront product filter: category slug, featured flag, free-text search"""

    # Category is addressed by slug in the storefront URLs
    category = django_filters.CharFilter(field_name='category__slug', lookup_expr='exact')
    featured = django_filters.BooleanFilter(field_name='featured')
    search = django_filters.CharFilter(method='filter_search', label='Search')

    class Meta:
        model = Product
        fields = ['category', 'featured', 'search']

    def filter_search(self, queryset, name, value):
        """
        Case-insensitive search OR-matched across the Thai and English names
        and the description.

        A product matches when any word appears in any of the fields, so
        "usb cable" matches both "USB hub" and "HDMI cable".
        """
        if not value:
            return queryset

        search_words = [w.strip() for w in value.split() if w.strip()]
        if not search_words:
            return queryset

        combined_query = Q()
        for word in search_words:
            combined_query |= (
                Q(name__icontains=word) |
                Q(name_en__icontains=word) |
                Q(description__icontains=word)
            )
        return queryset.filter(combined_query)
