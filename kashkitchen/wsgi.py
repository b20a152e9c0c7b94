"""
WSGI config for the kashkitchen project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'kashkitchen.settings')

application = get_wsgi_application()
