"""
WSGI config for the commerce project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'commerce.config.settings')

application = get_wsgi_application()
