"""
Workflow notification events (``forms_kernel.domain.events``).

Responsibility
--------------
The event emitted whenever a response changes status, and the
``NotificationDispatcher`` protocol that receives it.  Delivery (chat
messages, e-mail) belongs to the dispatcher implementation.

Architecture position
---------------------
**Kernel domain layer**.  Events are produced by the pure workflow
engine and handed to a dispatcher by ``forms_services`` only after the
surrounding transaction commits.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from forms_kernel.domain.response import ResponseStatus
from forms_kernel.logging_config import get_logger

logger = get_logger("domain.events")


@dataclass(frozen=True)
class WorkflowEvent:
    """A response moved from ``previous_status`` to ``status``."""

    response_id: UUID | None
    form_id: UUID
    submitter_id: str
    actor_id: str
    previous_status: ResponseStatus
    status: ResponseStatus
    occurred_at: datetime


class NotificationDispatcher(Protocol):
    def dispatch(self, event: WorkflowEvent) -> None: ...


class LoggingDispatcher:
    """Dispatcher that only writes a structured log line per event."""

    def dispatch(self, event: WorkflowEvent) -> None:
        logger.info(
            "workflow_event_dispatched",
            extra={
                "response_id": str(event.response_id),
                "form_id": str(event.form_id),
                "submitter_id": event.submitter_id,
                "event_actor_id": event.actor_id,
                "previous_status": event.previous_status.value,
                "status": event.status.value,
            },
        )


class RecordingDispatcher:
    """Keeps every dispatched event in memory."""

    def __init__(self) -> None:
        self.events: list[WorkflowEvent] = []

    def dispatch(self, event: WorkflowEvent) -> None:
        self.events.append(event)

    def clear(self) -> None:
        self.events.clear()
