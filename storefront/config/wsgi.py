"""
WSGI config for the storefront project.

The database connection is checked before the application is handed to
the server; a failed check is logged and the process exits.
"""
import logging
import os
import sys

from django.core.wsgi import get_wsgi_application
from django.db import connection

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'storefront.config.settings')

application = get_wsgi_application()

logger = logging.getLogger('storefront')

try:
    connection.ensure_connection()
    logger.info("Database connection established")
except Exception as e:
    logger.critical(f"Database connection failed: {e}")
    sys.exit(1)
