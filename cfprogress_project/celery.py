import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "cfprogress_project.settings")

app = Celery("cfprogress_project")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
