"""
Response record domain types (``forms_kernel.domain.response``).

Responsibility
--------------
The response lifecycle state machine and the immutable snapshot of a
response that the workflow engine reads and returns.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``RESPONSE_TRANSITIONS`` defines the only valid status transitions.
  Terminal states have no outgoing edges.
* Status values are wire-visible and persisted verbatim.
* ``final_approval`` is set only when the final-approval gate decided.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from forms_kernel.domain.forms import Answer
from forms_kernel.domain.ledger import DecisionLedger, DecisionRecord


class ResponseStatus(str, Enum):
    """Response lifecycle states."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    PENDING_REVIEW = "pending_review"
    DENIED_BY_REVIEW = "denied_by_review"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    DENIED_BY_APPROVAL = "denied_by_approval"


# SUBMITTED is transient: submit() passes through it within one operation
# and the row is never left there.
RESPONSE_TRANSITIONS: dict[ResponseStatus, frozenset[ResponseStatus]] = {
    ResponseStatus.DRAFT: frozenset({
        ResponseStatus.DRAFT,
        ResponseStatus.SUBMITTED,
    }),
    ResponseStatus.SUBMITTED: frozenset({
        ResponseStatus.PENDING_REVIEW,
        ResponseStatus.PENDING_APPROVAL,
        ResponseStatus.APPROVED,
    }),
    ResponseStatus.PENDING_REVIEW: frozenset({
        ResponseStatus.PENDING_REVIEW,
        ResponseStatus.DENIED_BY_REVIEW,
        ResponseStatus.PENDING_APPROVAL,
        ResponseStatus.APPROVED,
    }),
    ResponseStatus.PENDING_APPROVAL: frozenset({
        ResponseStatus.APPROVED,
        ResponseStatus.DENIED_BY_APPROVAL,
    }),
    ResponseStatus.DENIED_BY_REVIEW: frozenset(),
    ResponseStatus.APPROVED: frozenset(),
    ResponseStatus.DENIED_BY_APPROVAL: frozenset(),
}

TERMINAL_RESPONSE_STATUSES: frozenset[ResponseStatus] = frozenset({
    ResponseStatus.DENIED_BY_REVIEW,
    ResponseStatus.APPROVED,
    ResponseStatus.DENIED_BY_APPROVAL,
})


def can_transition(current: ResponseStatus, target: ResponseStatus) -> bool:
    return target in RESPONSE_TRANSITIONS.get(current, frozenset())


@dataclass(frozen=True)
class FinalApproval:
    """The final approver's verdict. Immutable."""

    approver_id: str
    decision: bool
    decided_at: datetime
    comments: str | None = None


@dataclass(frozen=True)
class ResponseRecord:
    """Immutable snapshot of one form response.

    ``response_id`` is ``None`` only for a record the engine has built but
    that has not been persisted yet.  ``version`` mirrors the row's
    optimistic-lock counter.
    """

    response_id: UUID | None
    form_id: UUID
    submitter_id: str
    status: ResponseStatus = ResponseStatus.DRAFT
    answers: tuple[Answer, ...] = ()
    decisions: tuple[DecisionRecord, ...] = ()
    final_approval: FinalApproval | None = None
    submitted_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 0

    @property
    def ledger(self) -> DecisionLedger:
        return DecisionLedger(self.decisions)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_RESPONSE_STATUSES

    @property
    def is_draft(self) -> bool:
        return self.status is ResponseStatus.DRAFT
