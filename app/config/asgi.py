"""
ASGI config for the clinic billing application.

ASGI (Asynchronous Server Gateway Interface) is the successor to WSGI,
designed to handle async Python web applications. This file exposes the
ASGI callable as a module-level variable named `application`.

Async callers inside the ASGI process can await the ledger through
billing.async_api, which runs each service call on Django's
thread-sensitive executor.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/asgi/
"""

import os

from django.core.asgi import get_asgi_application

# Set the default Django settings module for the ASGI application
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_asgi_application()
