"""In-memory implementation of NotifierPort for testing."""

from dataclasses import dataclass
from typing import Any

from domain.model.auth import NotificationKind


@dataclass
class SentNotification:
    kind: NotificationKind
    to: str
    payload: dict[str, Any]


class FakeNotifier:
    def __init__(self, fail: bool = False):
        self.sent: list[SentNotification] = []
        self.fail = fail

    def notify(self, kind: NotificationKind, to: str, payload: dict[str, Any]) -> bool:
        if self.fail:
            return False
        self.sent.append(SentNotification(kind=kind, to=to, payload=dict(payload)))
        return True

    def last(self, kind: NotificationKind | None = None) -> SentNotification | None:
        for notification in reversed(self.sent):
            if kind is None or notification.kind == kind:
                return notification
        return None

    def of_kind(self, kind: NotificationKind) -> list[SentNotification]:
        return [n for n in self.sent if n.kind == kind]
