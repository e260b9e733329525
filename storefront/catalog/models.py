from django.core.validators import MinValueValidator
from django.db import models
from decimal import Decimal


class Category(models.Model):
    """Product categories (Thai primary name plus English name)"""
    name = models.CharField(max_length=200, db_index=True)
    name_en = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200, unique=True, allow_unicode=True)
    description = models.TextField(blank=True)
    description_en = models.TextField(blank=True)
    image = models.URLField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'categories'
        verbose_name_plural = 'categories'
        ordering = ['name']


class Product(models.Model):
    """Product master"""
    name = models.CharField(max_length=200, db_index=True)
    name_en = models.CharField(max_length=200, db_index=True)
    slug = models.SlugField(max_length=200, unique=True, allow_unicode=True)
    description = models.TextField()
    description_en = models.TextField()
    price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0.00'))])
    discount_price = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True,
        validators=[MinValueValidator(Decimal('0.00'))],
    )
    category = models.ForeignKey(Category, on_delete=models.PROTECT, related_name='products')
    brand = models.CharField(max_length=200)
    images = models.JSONField(default=list, blank=True)  # list of image URLs, first is primary
    specifications = models.JSONField(default=dict, blank=True)  # {"key": "value"}
    stock = models.PositiveIntegerField(default=0)
    featured = models.BooleanField(default=False, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.slug})"

    @property
    def effective_price(self):
        """Discount price when present and lower than the list price"""
        if self.discount_price is not None and self.discount_price < self.price:
            return self.discount_price
        return self.price

    @property
    def primary_image(self):
        return self.images[0] if self.images else ''

    class Meta:
        db_table = 'products'
        ordering = ['-created_at', '-id']
        constraints = [
            models.CheckConstraint(condition=models.Q(stock__gte=0), name='product_stock_non_negative'),
            models.CheckConstraint(condition=models.Q(price__gte=0), name='product_price_non_negative'),
        ]
        indexes = [
            models.Index(fields=['category', '-created_at'], name='idx_product_category_created'),
            models.Index(fields=['stock'], name='idx_product_stock'),
        ]
