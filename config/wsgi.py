"""WSGI config for the bike rental backend.

Exposes the WSGI application for runserver and production WSGI servers
(gunicorn in deployment), pointing at our settings package.
"""

import os
from django.core.wsgi import get_wsgi_application  # type: ignore

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.dev')

application = get_wsgi_application()
