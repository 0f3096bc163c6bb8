"""
Outbound collaborators: user notifications and the audit trail.

Both are fire-and-forget. The defaults write to dedicated loggers; the web
layer wraps the notifier so delivery happens after the response is sent.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from fastapi import BackgroundTasks


class Notifier(Protocol):
    def notify(self, user_id: int, event_type: str, payload: Dict[str, Any]) -> None: ...


@dataclass
class AuditEvent:
    action: str
    user_id: int
    actor_id: Optional[int] = None
    data: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class AuditLog(Protocol):
    def record(self, event: AuditEvent) -> None: ...


class LoggingNotifier:
    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("rewards_ledger.notifications")

    def notify(self, user_id: int, event_type: str, payload: Dict[str, Any]) -> None:
        self.logger.info("notify user=%s event=%s payload=%s", user_id, event_type, payload)


class LoggingAuditLog:
    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("rewards_ledger.audit")

    def record(self, event: AuditEvent) -> None:
        self.logger.info(
            "audit action=%s user=%s actor=%s data=%s at=%s",
            event.action, event.user_id, event.actor_id, event.data, event.occurred_at.isoformat(),
        )


class BackgroundNotifier:
    """Defers delivery to FastAPI background tasks so the request never waits on it."""

    def __init__(self, background_tasks: BackgroundTasks, delegate: Notifier):
        self.background_tasks = background_tasks
        self.delegate = delegate

    def notify(self, user_id: int, event_type: str, payload: Dict[str, Any]) -> None:
        self.background_tasks.add_task(_deliver, self.delegate, user_id, event_type, payload)


def _deliver(delegate: Notifier, user_id: int, event_type: str, payload: Dict[str, Any]) -> None:
    try:
        delegate.notify(user_id, event_type, payload)
    except Exception:
        logging.getLogger(__name__).exception("notification %s for user %s was not delivered", event_type, user_id)
