"""
Account flows: registration, login, profile and the address book.

Password hashing is done by Django's configured hashers through
`set_password` / `check_password` before anything is persisted.
"""
import logging

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction

from .authentication import issue_credential
from .exceptions import Conflict, InvalidCredentials, NotFound, ValidationFailed
from .models import Address

logger = logging.getLogger(__name__)

User = get_user_model()

MIN_PASSWORD_LENGTH = 6
ADDRESS_FIELDS = ('name', 'phone', 'address', 'district', 'province', 'postal_code', 'is_default')


def normalize_email(email):
    return (email or '').strip().lower()


def register_user(email, password, name):
    """Create a customer account and return (user, token)"""
    email = normalize_email(email)
    if not email:
        raise ValidationFailed('Email is required.')
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f'Password must be at least {MIN_PASSWORD_LENGTH} characters.')
    if not name or not name.strip():
        raise ValidationFailed('Name is required.')

    if User.objects.filter(email=email).exists():
        raise Conflict('Email already exists.')

    try:
        with transaction.atomic():
            user = User.objects.create_user(email=email, password=password, name=name.strip())
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email
        raise Conflict('Email already exists.')

    logger.info(f"Registered user {user.pk} ({email})")
    return user, issue_credential(user)


def authenticate_user(email, password):
    """Verify credentials and return (user, token)"""
    email = normalize_email(email)
    user = User.objects.filter(email=email, is_active=True).first()
    if user is None:
        # Same error for unknown email and wrong password
        raise InvalidCredentials()
    if not user.check_password(password or ''):
        raise InvalidCredentials()
    return user, issue_credential(user)


def update_profile(user, name=None, phone=None):
    """Apply only the provided, non-empty profile values"""
    update_fields = []
    if name:
        user.name = name
        update_fields.append('name')
    if phone:
        user.phone = phone
        update_fields.append('phone')
    if update_fields:
        update_fields.append('updated_at')
        user.save(update_fields=update_fields)
    return user


def _address_at(user, index):
    addresses = list(user.addresses.order_by('id'))
    if index is None or index < 0 or index >= len(addresses):
        raise NotFound('Address not found.')
    return addresses[index]


def _clear_default(user, exclude_id=None):
    queryset = Address.objects.filter(user=user, is_default=True)
    if exclude_id is not None:
        queryset = queryset.exclude(pk=exclude_id)
    queryset.update(is_default=False)


def add_address(user, data):
    """Append an address; a new default replaces the previous one"""
    with transaction.atomic():
        if data.get('is_default'):
            _clear_default(user)
        Address.objects.create(user=user, **{k: v for k, v in data.items() if k in ADDRESS_FIELDS})
    return user


def update_address(user, index, data):
    """Merge `data` into the address at list position `index`"""
    with transaction.atomic():
        address = _address_at(user, index)
        if data.get('is_default'):
            _clear_default(user, exclude_id=address.pk)
        for field, value in data.items():
            if field in ADDRESS_FIELDS:
                setattr(address, field, value)
        address.save()
    return user


def delete_address(user, index):
    """Remove the address at list position `index`"""
    address = _address_at(user, index)
    address.delete()
    return user
