"""WSGI config for the AULAS project."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "aulas.settings")

application = get_wsgi_application()
