"""WSGI config for the campusdesk project."""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'campusdesk.settings')

application = get_wsgi_application()
