import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("bike_rental")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

# Workers only run the after-commit emails queued by the reservation engine.
# There is no beat schedule; expired holds are handled lazily.
app.conf.task_acks_late = True
app.conf.task_reject_on_worker_lost = True
app.conf.timezone = os.environ.get("SHOP_TIMEZONE", "America/Edmonton")
