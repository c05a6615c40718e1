import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "core.settings")
import django  # noqa: E402

django.setup()

from django.conf import settings  # noqa: E402

wsgi_app = "core.wsgi:application"
bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.environ.get("GUNICORN_WORKERS", "3"))

# A worker must outlive the slowest processor call made inside an approval
timeout = int(
    os.environ.get(
        "GUNICORN_TIMEOUT", str(int(settings.PAYMENT_PROCESSOR["TIMEOUT"]) + 20)
    )
)

errorlog = "-"
accesslog = "-"
loglevel = settings.LOG_LEVEL.lower()
capture_output = True

# Django's LOGGING (request_id filter included) replaces gunicorn's handlers
logconfig_dict = settings.LOGGING
