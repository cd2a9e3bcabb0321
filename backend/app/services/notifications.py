"""User-facing notifications and error presentation.

Services report outcomes through a Notifier instead of raising.  The HTTP
layer uses CollectingNotifier and returns the collected messages so the
front-end can render them as toasts.
"""

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional, Protocol

import httpx

logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    type: NotificationType = NotificationType.INFO

    def to_dict(self) -> dict:
        data = asdict(self)
        data["type"] = self.type.value
        return data


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None: ...


class ErrorPresenter(Protocol):
    def present(self, error: BaseException, *, title: str) -> None: ...


_LOG_LEVELS = {
    NotificationType.SUCCESS: logging.INFO,
    NotificationType.INFO: logging.INFO,
    NotificationType.WARNING: logging.WARNING,
    NotificationType.ERROR: logging.ERROR,
}


class LoggingNotifier:
    """Writes notifications to the log (background jobs, CLI use)."""

    def notify(self, notification: Notification) -> None:
        logger.log(
            _LOG_LEVELS[notification.type],
            f"{notification.title}: {notification.description}",
            extra={"notification_type": notification.type.value},
        )


class CollectingNotifier:
    """Buffers notifications for the current request."""

    def __init__(self):
        self.notifications: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    def to_list(self) -> list[dict]:
        return [n.to_dict() for n in self.notifications]


def extract_error_message(error: BaseException) -> str:
    """Best human-readable message for an exception.

    HTTP status errors are unwrapped from the API's JSON error envelope
    ({"error": {"message": ...}}, {"message": ...} or {"detail": ...})
    when the body has one.
    """
    if isinstance(error, httpx.HTTPStatusError):
        message = _message_from_response(error.response)
        if message:
            return message
        return f"Request failed with status {error.response.status_code}"
    if isinstance(error, httpx.TimeoutException):
        return "The request timed out. Please try again."
    if isinstance(error, httpx.TransportError):
        return "Unable to reach the server. Please check your connection."
    return str(error) or "Unknown error occurred"


def _message_from_response(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    for key in ("message", "detail"):
        if isinstance(body.get(key), str) and body[key]:
            return body[key]
    return None


class ApiErrorPresenter:
    """Turns an exception into exactly one error notification."""

    def __init__(self, notifier: Notifier):
        self.notifier = notifier

    def present(self, error: BaseException, *, title: str) -> None:
        self.notifier.notify(
            Notification(
                title=title,
                description=extract_error_message(error),
                type=NotificationType.ERROR,
            )
        )
