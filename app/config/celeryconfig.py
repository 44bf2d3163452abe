from .settings import settings


def _redis_url() -> str:
    auth = f":{settings.REDIS_PASSWORD}@" if settings.REDIS_PASSWORD else ""
    return f"redis://{auth}{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}"


# Broker and result backend
broker_url = _redis_url()
result_backend = _redis_url()
broker_connection_retry_on_startup = True

# Task Discovery
include = ["app.tasks"]

timezone = settings.TIMEZONE
enable_utc = True

# Email results are only kept for troubleshooting
result_expires = 3600

task_serializer = "json"
accept_content = ["json"]
result_serializer = "json"

# A single SMTP exchange, bounded by SMTP_TIMEOUT
task_time_limit = settings.SMTP_TIMEOUT * 2
task_soft_time_limit = settings.SMTP_TIMEOUT + 10

worker_prefetch_multiplier = 1
worker_max_tasks_per_child = 1000

# At-least-once delivery: a lost worker requeues the email
task_acks_late = True
task_reject_on_worker_lost = True

task_default_queue = "certportal"
task_routes = {
    "app.tasks.background.email_sender.send_email_task": {"queue": "certportal-email"},
}
