"""
WSGI config for ridecycleBackend project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "ridecycleBackend.settings")

application = get_wsgi_application()
