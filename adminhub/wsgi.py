"""
WSGI config for adminhub project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'adminhub.settings')

application = get_wsgi_application()
