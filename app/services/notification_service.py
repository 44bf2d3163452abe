from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Optional

from app.utils.context import get_request_id
from app.utils.logging import get_logger

logger = get_logger()


@dataclass(frozen=True)
class EmailNotification:
    """Outbound email produced by a committed state change"""

    to: str
    subject: str
    text: str


# Message builders
def registration_completed_email(to: str, full_name: str) -> EmailNotification:
    return EmailNotification(
        to=to,
        subject="Регистрация завершена",
        text=(
            f"Здравствуйте, {full_name}. Регистрация завершена. "
            "В ближайшее время придет письмо со ссылкой на обучение."
        ),
    )


def training_invite_email(
    to: str, full_name: str, training_url: str
) -> EmailNotification:
    return EmailNotification(
        to=to,
        subject="Ссылка на обучение",
        text=f"Здравствуйте, {full_name}. Ссылка на обучение: {training_url}",
    )


def certificate_issued_email(
    to: str, certificate_number: str, full_name: Optional[str] = None
) -> EmailNotification:
    greeting = f"Здравствуйте, {full_name}." if full_name else "Здравствуйте."
    return EmailNotification(
        to=to,
        subject="Сертификат оформлен",
        text=f"{greeting} Ваш сертификат оформлен. Номер: {certificate_number}.",
    )


class NotificationDispatcher(ABC):
    """Hands committed email events to a delivery channel.

    Callers dispatch only after their transaction has committed. Dispatch
    never raises: a failed hand-off is logged and the request still succeeds.
    """

    @abstractmethod
    def dispatch(self, events: Iterable[EmailNotification]) -> None:
        pass


class CeleryNotificationDispatcher(NotificationDispatcher):
    """Enqueues one email task per event on the Celery broker"""

    def dispatch(self, events: Iterable[EmailNotification]) -> None:
        from app.tasks import send_email_task

        request_id = get_request_id() or "app"
        for event in events:
            try:
                send_email_task.delay(request_id, event.to, event.subject, event.text)
            except Exception as e:
                logger.warning(
                    f"Failed to enqueue email '{event.subject}': {str(e)}"
                )


class InMemoryNotificationDispatcher(NotificationDispatcher):
    """Keeps dispatched events in memory, for local runs and tests"""

    def __init__(self):
        self.sent: List[EmailNotification] = []

    def dispatch(self, events: Iterable[EmailNotification]) -> None:
        self.sent.extend(events)


_celery_dispatcher = CeleryNotificationDispatcher()


# Dependency injection for the dispatcher
def get_notification_dispatcher() -> NotificationDispatcher:
    """Dependency to provide the process-wide notification dispatcher"""
    return _celery_dispatcher
