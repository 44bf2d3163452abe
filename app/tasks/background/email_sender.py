from app.celery import celery
from app.services.mailer import Mailer
from app.utils.logging import get_logger


@celery.task(bind=True, max_retries=3, default_retry_delay=60)
def send_email_task(self, request_id: str, to: str, subject: str, text: str):
    """
    Celery task to deliver one transactional email.

    Delivery is best effort: failures are logged and reported in the task
    result, never raised back to the request that produced the email. A
    configured SMTP server that refuses the message is retried up to
    ``max_retries`` times before the task gives up.

    Args:
        request_id: The request ID from the original HTTP request
        to: Recipient address
        subject: Email subject
        text: Plain-text body
    """
    logger = get_logger().bind(request_id=request_id)
    mailer = Mailer()

    try:
        delivered = mailer.send(to, subject, text)
    except Exception as e:
        logger.error(f"Critical error in email task for '{subject}': {str(e)}")
        return {"success": False, "error": str(e), "request_id": request_id}

    # Without SMTP settings a retry cannot succeed
    if not delivered and mailer.is_configured:
        if self.request.retries < self.max_retries:
            logger.warning(
                f"Retrying email '{subject}' "
                f"(attempt {self.request.retries + 1} of {self.max_retries})"
            )
            raise self.retry()
        logger.error(f"Giving up on email '{subject}' after {self.max_retries} retries")

    return {"success": delivered, "subject": subject, "request_id": request_id}
