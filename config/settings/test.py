"""Test settings for the bike rental backend.

In-memory SQLite, eager Celery, the locmem email backend and the sandbox
payment gateway. Tests that need real concurrency or the PostgreSQL
exclusion constraint opt in by running against DB_ENGINE=postgresql.
"""

import os

from .base import *  # noqa: F401,F403

DEBUG = False

if os.environ.get('DB_ENGINE', '').endswith('postgresql'):
    DATABASES = {  # noqa: F405
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.environ.get('DB_NAME', 'bike_rental_test'),
            'USER': os.environ.get('DB_USER', ''),
            'PASSWORD': os.environ.get('DB_PASSWORD', ''),
            'HOST': os.environ.get('DB_HOST', ''),
            'PORT': os.environ.get('DB_PORT', ''),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': ':memory:',
        }
    }

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

PAYMENT_GATEWAY = 'apps.payments.gateway.SandboxGateway'
BOOKING_HMAC_SECRET = 'test-booking-hmac-secret'

STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}

LOGGING["root"]["level"] = "CRITICAL"  # noqa: F405
LOGGING["loggers"]["apps"]["level"] = "CRITICAL"  # noqa: F405
LOGGING["loggers"]["shared"]["level"] = "CRITICAL"  # noqa: F405
