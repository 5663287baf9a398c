"""Notifier registry and the fire-and-forget ``notify`` helper.

Order and payment flows call notify() after their state has been committed.
A notification that fails is logged and dropped; it never undoes or aborts
the operation that triggered it.
"""

import structlog

from commerce.notification.fake_adapter import FakeNotifier
from commerce.notification.port import Notifier

logger = structlog.get_logger(__name__)

_current_notifier: Notifier | None = None


def get_notifier() -> Notifier:
    """Return the current notifier. Defaults to FakeNotifier."""
    global _current_notifier
    if _current_notifier is None:
        _current_notifier = FakeNotifier()
    return _current_notifier


def set_notifier(notifier: Notifier) -> None:
    """Override the active notifier (useful for tests)."""
    global _current_notifier
    _current_notifier = notifier


def reset_notifier() -> None:
    global _current_notifier
    _current_notifier = None


def notify(email: str | None, template: str, data: dict) -> bool:
    """Send a notification; return whether it went out."""
    if not email:
        logger.info("Notification skipped, no recipient", template=template)
        return False

    try:
        result = get_notifier().send(email, template, data)
    except Exception as exc:
        logger.warning("Notification failed", template=template, error=str(exc))
        return False

    if result.get("status") != "sent":
        logger.warning("Notification not delivered", template=template, error=result.get("error"))
        return False

    logger.info("Notification sent", template=template, message_id=result.get("message_id"))
    return True
