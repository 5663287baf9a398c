"""Notification port: abstract interface for customer notifications."""

from abc import ABC, abstractmethod


class Notifier(ABC):
    """Abstract interface for notification adapters."""

    @abstractmethod
    def send(self, email: str, template: str, data: dict) -> dict:
        """Send ``template`` rendered with ``data`` to ``email``.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...
