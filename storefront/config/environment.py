"""
Process configuration for the storefront backend.

Everything that used to be read ad hoc from the environment (secret keys,
connection strings, pricing constants) is collected here into a single
immutable object. `load_config` is called exactly once from settings.py and
the result is exposed as `settings.STOREFRONT`.
"""
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Mapping, Optional, Tuple

BASE_DIR = Path(__file__).resolve().parent.parent.parent

INSECURE_SECRET_KEY = 'django-insecure-storefront-development-key'


class ConfigurationError(Exception):
    """Raised when an environment variable cannot be parsed"""


@dataclass(frozen=True)
class DatabaseConfig:
    engine: str = 'sqlite'
    name: str = str(BASE_DIR / 'db.sqlite3')
    user: str = ''
    password: str = ''
    host: str = ''
    port: str = ''

    def as_django(self):
        """Return the DATABASES['default'] dict for this configuration"""
        if self.engine == 'postgres':
            return {
                'ENGINE': 'django.db.backends.postgresql',
                'NAME': self.name,
                'USER': self.user,
                'PASSWORD': self.password,
                'HOST': self.host,
                'PORT': self.port,
                'ATOMIC_REQUESTS': False,
            }
        return {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': self.name,
        }


@dataclass(frozen=True)
class StorefrontConfig:
    secret_key: str
    debug: bool = False
    allowed_hosts: Tuple[str, ...] = ('localhost', '127.0.0.1')
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    redis_url: Optional[str] = None
    log_level: str = 'INFO'
    media_root: str = str(BASE_DIR / 'uploads')

    # Identity & access
    credential_lifetime: timedelta = timedelta(days=7)

    # Order engine
    free_shipping_threshold: Decimal = Decimal('1000')
    shipping_fee: Decimal = Decimal('50')
    order_number_prefix: str = 'KHN'

    # Dashboard
    low_stock_threshold: int = 10
    dashboard_cache_ttl: int = 300


def _bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _csv(value: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in value.split(',') if part.strip())


def _decimal(name: str, value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise ConfigurationError(f'{name} must be a decimal number, got {value!r}')


def _int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f'{name} must be an integer, got {value!r}')


def load_config(environ: Mapping[str, str]) -> StorefrontConfig:
    """
    Build the configuration from an environment mapping.

    Recognised variables (all optional; set STOREFRONT_SECRET_KEY in
    production):
        STOREFRONT_SECRET_KEY, STOREFRONT_DEBUG, STOREFRONT_ALLOWED_HOSTS,
        STOREFRONT_DB_ENGINE (sqlite|postgres),
        STOREFRONT_DB_NAME, STOREFRONT_DB_USER, STOREFRONT_DB_PASSWORD,
        STOREFRONT_DB_HOST, STOREFRONT_DB_PORT, STOREFRONT_REDIS_URL,
        STOREFRONT_LOG_LEVEL, STOREFRONT_MEDIA_ROOT,
        STOREFRONT_CREDENTIAL_DAYS, STOREFRONT_FREE_SHIPPING_THRESHOLD,
        STOREFRONT_SHIPPING_FEE, STOREFRONT_ORDER_PREFIX,
        STOREFRONT_LOW_STOCK_THRESHOLD, STOREFRONT_DASHBOARD_CACHE_TTL
    """
    debug = _bool(environ.get('STOREFRONT_DEBUG', '0'))
    # Django's check framework (security.W009) flags the fallback key on deploy
    secret_key = environ.get('STOREFRONT_SECRET_KEY') or INSECURE_SECRET_KEY

    engine = environ.get('STOREFRONT_DB_ENGINE', 'sqlite').lower()
    if engine not in ('sqlite', 'postgres'):
        raise ConfigurationError(f'Unsupported STOREFRONT_DB_ENGINE {engine!r}')
    default_db_name = 'storefront' if engine == 'postgres' else str(BASE_DIR / 'db.sqlite3')
    database = DatabaseConfig(
        engine=engine,
        name=environ.get('STOREFRONT_DB_NAME', default_db_name),
        user=environ.get('STOREFRONT_DB_USER', ''),
        password=environ.get('STOREFRONT_DB_PASSWORD', ''),
        host=environ.get('STOREFRONT_DB_HOST', ''),
        port=environ.get('STOREFRONT_DB_PORT', ''),
    )

    return StorefrontConfig(
        secret_key=secret_key,
        debug=debug,
        allowed_hosts=_csv(environ.get('STOREFRONT_ALLOWED_HOSTS', 'localhost,127.0.0.1')),
        database=database,
        redis_url=environ.get('STOREFRONT_REDIS_URL') or None,
        log_level=environ.get('STOREFRONT_LOG_LEVEL', 'INFO').upper(),
        media_root=environ.get('STOREFRONT_MEDIA_ROOT', str(BASE_DIR / 'uploads')),
        credential_lifetime=timedelta(
            days=_int('STOREFRONT_CREDENTIAL_DAYS', environ.get('STOREFRONT_CREDENTIAL_DAYS', '7'))
        ),
        free_shipping_threshold=_decimal(
            'STOREFRONT_FREE_SHIPPING_THRESHOLD',
            environ.get('STOREFRONT_FREE_SHIPPING_THRESHOLD', '1000'),
        ),
        shipping_fee=_decimal('STOREFRONT_SHIPPING_FEE', environ.get('STOREFRONT_SHIPPING_FEE', '50')),
        order_number_prefix=environ.get('STOREFRONT_ORDER_PREFIX', 'KHN'),
        low_stock_threshold=_int(
            'STOREFRONT_LOW_STOCK_THRESHOLD', environ.get('STOREFRONT_LOW_STOCK_THRESHOLD', '10')
        ),
        dashboard_cache_ttl=_int(
            'STOREFRONT_DASHBOARD_CACHE_TTL', environ.get('STOREFRONT_DASHBOARD_CACHE_TTL', '300')
        ),
    )
