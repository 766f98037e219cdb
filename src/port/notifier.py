"""Port definition for outbound account notifications."""

from typing import Any, Protocol

from domain.model.auth import NotificationKind


class NotifierPort(Protocol):
    """Delivers verification, reset and welcome messages.

    ``notify`` returns False on delivery failure. Timeouts are the adapter's
    responsibility; callers never retry.
    """

    def notify(self, kind: NotificationKind, to: str, payload: dict[str, Any]) -> bool: ...
