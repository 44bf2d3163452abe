from .email_sender import send_email_task

__all__ = [
    "send_email_task",
]
