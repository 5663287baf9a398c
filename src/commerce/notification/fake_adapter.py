"""Fake notifier: records sent notifications for testing."""

from uuid import uuid4

from commerce.notification.port import Notifier


class FakeNotifier(Notifier):
    """Notifier that records messages in memory for test assertions."""

    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True
        self.raise_error = False
        self.failure_reason = "Notification delivery failed"

    def configure(self, should_succeed: bool = True, raise_error: bool = False, failure_reason: str | None = None):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.raise_error = raise_error
        if failure_reason:
            self.failure_reason = failure_reason

    def send(self, email: str, template: str, data: dict) -> dict:
        if self.raise_error:
            raise ConnectionError(self.failure_reason)
        if not self.should_succeed:
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message_id = f"notif-{uuid4().hex[:12]}"
        self.sent.append({"message_id": message_id, "email": email, "template": template, "data": data})
        return {"message_id": message_id, "status": "sent"}

    def templates_sent(self) -> list[str]:
        return [record["template"] for record in self.sent]

    def reset(self):
        """Clear sent notifications (useful between tests)."""
        self.sent.clear()
        self.should_succeed = True
        self.raise_error = False
        self.failure_reason = "Notification delivery failed"
