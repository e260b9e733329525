"""
Order placement and lifecycle.

create_order reserves stock and writes the order in one transaction:
product rows are locked, every line is priced from the locked rows, the
order number is drawn from a locked counter row and each stock decrement
is conditional on enough stock remaining. Any failure rolls the whole
order back, so no order exists without its decrements and vice versa.
"""
import logging
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import F, Prefetch
from django.utils import timezone

from storefront.catalog.models import Product
from storefront.core.cache_signals import invalidate_after_stock_update
from storefront.core.exceptions import InsufficientStock, NotFound, ValidationFailed
from storefront.core.pagination import paginate
from storefront.core.permissions import require_authenticated, require_owner_or_admin
from storefront.core.utils import create_audit_log

from .models import Order, OrderItem, OrderSequence

logger = logging.getLogger(__name__)

ORDER_SEQUENCE_NAME = 'order'
SHIPPING_ADDRESS_FIELDS = ('name', 'phone', 'address', 'district', 'province', 'postal_code')

ORDER_STATUSES = {choice for choice, _ in Order.STATUS_CHOICES}
PAYMENT_STATUSES = {choice for choice, _ in Order.PAYMENT_STATUS_CHOICES}
PAYMENT_METHODS = {choice for choice, _ in Order.PAYMENT_METHOD_CHOICES}


def order_queryset():
    return Order.objects.select_related('user').prefetch_related(
        Prefetch('items', queryset=OrderItem.objects.select_related('product__category'))
    )


def calculate_shipping_fee(subtotal):
    """Free shipping from the configured threshold, flat fee below it"""
    config = settings.STOREFRONT
    if subtotal >= config.free_shipping_threshold:
        return Decimal('0.00')
    return config.shipping_fee


def next_order_number(now=None):
    """
    Draw the next order number: <prefix><YYYY><MM><sequence:05d>.

    Must run inside a transaction; the counter row stays locked until it
    commits, so concurrent orders never share a sequence value.
    """
    now = timezone.localtime(now)
    sequence, created = OrderSequence.objects.select_for_update().get_or_create(
        name=ORDER_SEQUENCE_NAME,
        # Continue from existing orders when the counter is first used
        defaults={'value': Order.objects.count},
    )
    OrderSequence.objects.filter(pk=sequence.pk).update(value=F('value') + 1)
    sequence.refresh_from_db(fields=['value'])
    prefix = settings.STOREFRONT.order_number_prefix
    return f"{prefix}{now.year:04d}{now.month:02d}{sequence.value:05d}"


def _requested_quantities(items):
    """Sum quantities per product, keeping first-seen order"""
    if not items:
        raise ValidationFailed('Order must contain at least one item.')
    quantities = {}
    for item in items:
        product_id = item.get('product_id')
        quantity = item.get('quantity')
        if product_id is None:
            raise ValidationFailed('Every item needs a product.')
        if not isinstance(quantity, int) or quantity < 1:
            raise ValidationFailed('Quantity must be at least 1.')
        quantities[product_id] = quantities.get(product_id, 0) + quantity
    return quantities


def _shipping_snapshot(shipping_address):
    shipping_address = shipping_address or {}
    missing = [field for field in SHIPPING_ADDRESS_FIELDS if not shipping_address.get(field)]
    if missing:
        raise ValidationFailed(
            'Shipping address is incomplete.',
            details={field: ['This field is required.'] for field in missing},
        )
    return {field: str(shipping_address[field]) for field in SHIPPING_ADDRESS_FIELDS}


def create_order(user, items, shipping_address, payment_method, notes=None, request=None):
    """
    Place an order for `user`.

    Raises Unauthenticated, ValidationFailed, NotFound (unknown product) or
    InsufficientStock; on any of them nothing is written.
    """
    user = require_authenticated(user)
    quantities = _requested_quantities(items)
    address = _shipping_snapshot(shipping_address)
    if payment_method not in PAYMENT_METHODS:
        raise ValidationFailed(f'Unknown payment method: {payment_method}')

    with transaction.atomic():
        # Lock in id order so two checkouts sharing products cannot deadlock
        locked = {
            product.pk: product
            for product in Product.objects.select_for_update().filter(pk__in=list(quantities)).order_by('id')
        }

        lines = []
        for product_id, quantity in quantities.items():
            product = locked.get(product_id)
            if product is None:
                raise NotFound(f'Product not found: {product_id}')
            if product.stock < quantity:
                raise InsufficientStock(
                    f'Insufficient stock for {product.name}',
                    details={'product_id': product.pk, 'available': product.stock, 'requested': quantity},
                )
            lines.append(OrderItem(
                product=product,
                name=product.name,
                price=product.effective_price,
                quantity=quantity,
                image=product.primary_image,
            ))

        subtotal = sum((line.price * line.quantity for line in lines), Decimal('0.00'))
        shipping_fee = calculate_shipping_fee(subtotal)

        order = Order.objects.create(
            order_number=next_order_number(),
            user=user,
            subtotal=subtotal,
            shipping_fee=shipping_fee,
            total=subtotal + shipping_fee,
            status=Order.STATUS_PENDING,
            payment_method=payment_method,
            payment_status=Order.PAYMENT_PENDING,
            shipping_address=address,
            notes=notes or None,
        )
        for line in lines:
            line.order = order
        OrderItem.objects.bulk_create(lines)

        for line in lines:
            # Conditional decrement; zero rows means stock moved under us
            updated = Product.objects.filter(pk=line.product_id, stock__gte=line.quantity).update(
                stock=F('stock') - line.quantity,
                updated_at=timezone.now(),
            )
            if not updated:
                raise InsufficientStock(f'Insufficient stock for {line.name}')

        invalidate_after_stock_update()

    logger.info(
        f"Order {order.order_number} created for user {user.pk}: "
        f"{len(lines)} line(s), subtotal {subtotal}, shipping {shipping_fee}, total {order.total}"
    )
    create_audit_log(
        request=request,
        user=user,
        action='order_create',
        model_name='Order',
        object_id=str(order.id),
        object_name=f"Order {order.order_number}",
        object_reference=order.order_number,
        changes={
            'items': [
                {'product_id': line.product_id, 'name': line.name,
                 'price': str(line.price), 'quantity': line.quantity}
                for line in lines
            ],
            'subtotal': str(order.subtotal),
            'shipping_fee': str(order.shipping_fee),
            'total': str(order.total),
            'payment_method': payment_method,
        },
    )
    for line in lines:
        create_audit_log(
            request=request,
            user=user,
            action='stock_sale',
            model_name='Product',
            object_id=str(line.product_id),
            object_name=line.name,
            object_reference=order.order_number,
            changes={'quantity_sold': line.quantity},
        )
    return order_queryset().get(pk=order.pk)


def get_order_for_user(user, order_id):
    """Missing order is NotFound before ownership is considered"""
    user = require_authenticated(user)
    order = order_queryset().filter(pk=order_id).first()
    if order is None:
        raise NotFound('Order not found.')
    require_owner_or_admin(user, order.user_id)
    return order


def my_orders(user):
    user = require_authenticated(user)
    return order_queryset().filter(user=user).order_by('-created_at', '-id')


def admin_orders(status=None, limit=20, offset=0):
    queryset = order_queryset().order_by('-created_at', '-id')
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationFailed(f'Unknown order status: {status}')
        queryset = queryset.filter(status=status)
    return paginate(queryset, limit, offset)


def _get_order_or_404(order_id):
    order = Order.objects.filter(pk=order_id).first()
    if order is None:
        raise NotFound('Order not found.')
    return order


def update_order_status(order_id, new_status, request=None):
    """Admin transition to any member of the order status set"""
    if new_status not in ORDER_STATUSES:
        raise ValidationFailed(f'Unknown order status: {new_status}')
    order = _get_order_or_404(order_id)
    old_status = order.status
    order.status = new_status
    order.save(update_fields=['status', 'updated_at'])
    logger.info(f"Order {order.order_number} status {old_status} -> {new_status}")
    create_audit_log(
        request=request,
        action='order_status',
        model_name='Order',
        object_id=str(order.id),
        object_name=f"Order {order.order_number}",
        object_reference=order.order_number,
        changes={'status': {'old': old_status, 'new': new_status}},
    )
    return order_queryset().get(pk=order.pk)


def update_payment_status(order_id, new_status, request=None):
    """Admin transition to any member of the payment status set"""
    if new_status not in PAYMENT_STATUSES:
        raise ValidationFailed(f'Unknown payment status: {new_status}')
    order = _get_order_or_404(order_id)
    old_status = order.payment_status
    order.payment_status = new_status
    order.save(update_fields=['payment_status', 'updated_at'])
    logger.info(f"Order {order.order_number} payment {old_status} -> {new_status}")
    create_audit_log(
        request=request,
        action='payment_status',
        model_name='Order',
        object_id=str(order.id),
        object_name=f"Order {order.order_number}",
        object_reference=order.order_number,
        changes={'payment_status': {'old': old_status, 'new': new_status}},
    )
    return order_queryset().get(pk=order.pk)


def update_tracking_number(order_id, tracking_number, request=None):
    order = _get_order_or_404(order_id)
    old_tracking = order.tracking_number
    order.tracking_number = tracking_number
    order.save(update_fields=['tracking_number', 'updated_at'])
    create_audit_log(
        request=request,
        action='tracking_update',
        model_name='Order',
        object_id=str(order.id),
        object_name=f"Order {order.order_number}",
        object_reference=order.order_number,
        changes={'tracking_number': {'old': old_tracking, 'new': tracking_number}},
    )
    return order_queryset().get(pk=order.pk)


def upload_payment_slip(user, order_id, slip_url, request=None):
    """Attach payment evidence; neither status changes until an admin confirms"""
    order = get_order_for_user(user, order_id)
    order.payment_slip = slip_url
    order.save(update_fields=['payment_slip', 'updated_at'])
    logger.info(f"Payment slip attached to order {order.order_number} by user {user.pk}")
    create_audit_log(
        request=request,
        user=user,
        action='payment_slip',
        model_name='Order',
        object_id=str(order.id),
        object_name=f"Order {order.order_number}",
        object_reference=order.order_number,
        changes={'payment_slip': slip_url},
    )
    return order_queryset().get(pk=order.pk)
