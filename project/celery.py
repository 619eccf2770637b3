import os
import logging

from celery import Celery
from celery.signals import worker_init

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "project.settings")

app = Celery("project")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

logger = logging.getLogger("observability.tasks")


@worker_init.connect
def validate_fusion_config(**kwargs):
    # A worker without Fusion credentials would fail every job, refuse to start instead
    from requisitions.fusion import FusionConfig

    config = FusionConfig.from_settings()
    logger.info(
        "fusion_config_loaded",
        extra={"task_name": "worker_init", "queue": "requisition-processing"},
    )
    return config
