"""
WSGI config for the clinic billing application.

WSGI is provided for traditional deployment options (gunicorn, mod_wsgi).
This file exposes the WSGI callable as a module-level variable named
`application`.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/wsgi/
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
