from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from decimal import Decimal


class Order(models.Model):
    """Customer order with a frozen snapshot of its lines and shipping address"""
    STATUS_PENDING = 'pending'
    STATUS_PROCESSING = 'processing'
    STATUS_SHIPPED = 'shipped'
    STATUS_DELIVERED = 'delivered'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PROCESSING, 'Processing'),
        (STATUS_SHIPPED, 'Shipped'),
        (STATUS_DELIVERED, 'Delivered'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    PAYMENT_PROMPTPAY = 'promptpay'
    PAYMENT_CREDIT_CARD = 'credit_card'
    PAYMENT_BANK_TRANSFER = 'bank_transfer'
    PAYMENT_METHOD_CHOICES = [
        (PAYMENT_PROMPTPAY, 'PromptPay'),
        (PAYMENT_CREDIT_CARD, 'Credit Card'),
        (PAYMENT_BANK_TRANSFER, 'Bank Transfer'),
    ]

    PAYMENT_PENDING = 'pending'
    PAYMENT_COMPLETED = 'completed'
    PAYMENT_FAILED = 'failed'
    PAYMENT_REFUNDED = 'refunded'
    PAYMENT_STATUS_CHOICES = [
        (PAYMENT_PENDING, 'Pending'),
        (PAYMENT_COMPLETED, 'Completed'),
        (PAYMENT_FAILED, 'Failed'),
        (PAYMENT_REFUNDED, 'Refunded'),
    ]

    order_number = models.CharField(max_length=50, unique=True, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='orders')
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0.00'))])
    shipping_fee = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0.00'))])
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES)
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default=PAYMENT_PENDING, db_index=True)
    shipping_address = models.JSONField(default=dict)  # name, phone, address, district, province, postal_code
    tracking_number = models.CharField(max_length=100, blank=True, null=True)
    payment_slip = models.CharField(max_length=500, blank=True, null=True)  # URL of the uploaded slip image
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.order_number} - {self.user}"

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', '-created_at'], name='idx_order_user_created'),
            models.Index(fields=['payment_status', 'created_at'], name='idx_order_payment_created'),
        ]


class OrderItem(models.Model):
    """Order line; name, price and image are copied from the product at purchase time"""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey('catalog.Product', on_delete=models.SET_NULL, null=True, blank=True, related_name='order_items')
    name = models.CharField(max_length=200)
    price = models.DecimalField(max_digits=12, decimal_places=2)  # effective unit price at purchase
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    image = models.CharField(max_length=500, blank=True)

    @property
    def line_total(self):
        return self.price * self.quantity

    def __str__(self):
        return f"{self.order.order_number} - {self.name} x{self.quantity}"

    class Meta:
        db_table = 'order_items'
        ordering = ['id']
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gte=1), name='order_item_quantity_positive'),
        ]


class OrderSequence(models.Model):
    """Named counter rows; incremented under a row lock to number orders"""
    name = models.CharField(max_length=50, unique=True)
    value = models.PositiveBigIntegerField(default=0)

    def __str__(self):
        return f"{self.name}={self.value}"

    class Meta:
        db_table = 'order_sequences'
