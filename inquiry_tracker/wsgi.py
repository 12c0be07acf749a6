"""
WSGI config for the Inquiry Tracker project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'inquiry_tracker.settings')

application = get_wsgi_application()
