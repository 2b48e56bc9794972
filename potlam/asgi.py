"""ASGI config for the potlam operations console."""
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'potlam.settings')

application = get_asgi_application()
