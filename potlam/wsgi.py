"""WSGI config for the potlam operations console."""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'potlam.settings')

application = get_wsgi_application()
