"""
WSGI config for the DailySnap project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'dailysnap.settings')

application = get_wsgi_application()
