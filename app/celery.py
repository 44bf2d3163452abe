from celery import Celery
from celery.signals import setup_logging

from app.utils.logging import CustomizeLogger

# Background worker for best-effort side effects (outbound email)
celery = Celery("certportal")

# Load configuration from app.config.celeryconfig module
celery.config_from_object("app.config.celeryconfig")


@setup_logging.connect
def configure_worker_logging(**kwargs):
    """Keep Celery from replacing the loguru handlers with its own"""
    CustomizeLogger._setup_intercept_handlers()
