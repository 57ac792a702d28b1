"""User-facing error notifications."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal, Protocol

HTTP_ERROR_MESSAGE = "relpage.notification.http_error"

NotificationType = Literal["info", "success", "warning", "error"]


@dataclass(frozen=True, slots=True)
class Message:
    """An error that is already a plain message."""

    text: str


@dataclass(frozen=True, slots=True)
class Structured:
    """An error object, optionally carrying a ``message``."""

    message: str | None = None


ErrorShape = Message | Structured


def error_shape(error: Any) -> ErrorShape:
    """Classify an error as a plain message or a structured error."""
    if isinstance(error, str):
        return Message(error)
    if isinstance(error, Mapping):
        message = error.get("message")
    else:
        message = getattr(error, "message", None)
        if message is None and isinstance(error, BaseException) and error.args:
            first = error.args[0]
            message = first if isinstance(first, str) else None
    return Structured(message if isinstance(message, str) and message else None)


def error_message(error: Any) -> str:
    """Display text for an error: the message itself or the generic label."""
    shape = error_shape(error)
    if isinstance(shape, Message):
        return shape.text
    return shape.message or HTTP_ERROR_MESSAGE


def error_detail(error: Any) -> str | None:
    """The raw detail passed along as the ``_`` message argument."""
    shape = error_shape(error)
    if isinstance(shape, Message):
        return shape.text
    return shape.message


class Notifier(Protocol):
    """Notification sink (toasts, log panes, ...)."""

    def __call__(
        self,
        message: str,
        *,
        type: NotificationType = "info",
        message_args: Mapping[str, Any] | None = None,
    ) -> None: ...


def notify_error(notifier: Notifier, error: Any) -> None:
    notifier(
        error_message(error),
        type="error",
        message_args={"_": error_detail(error)},
    )


def null_notifier(
    message: str,
    *,
    type: NotificationType = "info",
    message_args: Mapping[str, Any] | None = None,
) -> None:
    """Default sink: drop the notification."""


__all__ = [
    "HTTP_ERROR_MESSAGE",
    "ErrorShape",
    "Message",
    "Notifier",
    "Structured",
    "error_detail",
    "error_message",
    "error_shape",
    "notify_error",
    "null_notifier",
]
