"""Production settings for the bike rental backend.

This module extends the base settings with production specific
configuration. Ensure that sensitive values are provided via
environment variables and that security settings are appropriate for
production use.
"""

from django.core.exceptions import ImproperlyConfigured  # type: ignore

from .base import *  # noqa: F401,F403

# Never run with debug enabled in production
DEBUG = False

# Allowed hosts should be defined explicitly via environment variable
ALLOWED_HOSTS = os.environ.get('DJANGO_ALLOWED_HOSTS', '').split(',')  # noqa: F405

# Configure secure proxies and cookies
CSRF_COOKIE_SECURE = True
SESSION_COOKIE_SECURE = True

# Email backend (e.g. SMTP) should be configured via environment variables
EMAIL_BACKEND = 'django.core.mail.backends.smtp.EmailBackend'
EMAIL_HOST = os.environ.get('EMAIL_HOST', 'localhost')  # noqa: F405
EMAIL_PORT = int(os.environ.get('EMAIL_PORT', 25))  # noqa: F405
EMAIL_USE_TLS = os.environ.get('EMAIL_USE_TLS', 'false').lower() == 'true'  # noqa: F405
EMAIL_HOST_USER = os.environ.get('EMAIL_HOST_USER', '')  # noqa: F405
EMAIL_HOST_PASSWORD = os.environ.get('EMAIL_HOST_PASSWORD', '')  # noqa: F405

# The item exclusion constraint only exists on PostgreSQL.
if 'postgresql' not in DATABASES['default']['ENGINE']:  # noqa: F405
    raise ImproperlyConfigured('Production requires the PostgreSQL database engine.')

if PAYMENT_GATEWAY.endswith('SandboxGateway'):  # noqa: F405
    raise ImproperlyConfigured(
        'Refusing to start with the sandbox payment gateway. '
        'Set PAYMENT_GATEWAY and the MONERIS_* variables.'
    )
if not (MONERIS_STORE_ID and MONERIS_API_TOKEN and MONERIS_CHECKOUT_ID):  # noqa: F405
    raise ImproperlyConfigured('MONERIS_STORE_ID, MONERIS_API_TOKEN and MONERIS_CHECKOUT_ID are required.')

if BOOKING_HMAC_SECRET == 'dev-booking-hmac-secret':  # noqa: F405
    raise ImproperlyConfigured('BOOKING_HMAC_SECRET must be set in production.')
