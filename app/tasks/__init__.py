from .background import *

__all__ = [
    "send_email_task",
]
