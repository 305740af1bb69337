import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'payledger.backend.payledger_project.settings')

application = get_wsgi_application()
