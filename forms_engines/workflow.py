"""
forms_engines.workflow -- Pure response workflow state machine.

Responsibility:
    Decide the next state of a form response for each workflow operation
    (save draft, submit, reviewer decision, final approval) and produce
    the notification events for status changes.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import forms_kernel/domain/ types and forms_kernel.exceptions.
    The caller resolves access control and passes the current time in.

Invariants enforced:
    - Transitions follow ``RESPONSE_TRANSITIONS``; terminal statuses are
      never left.
    - Veto: one "no" vote ends review as ``denied_by_review`` no matter how
      many "yes" votes exist or how many reviewers are required.
    - Quorum: with no "no" vote, ``approved >= required_reviewers`` leaves
      review (to ``pending_approval`` or ``approved``).
    - A reviewer appears in the ledger at most once.
    - Only the submitter touches their draft.
    - Purity: no clock access, no I/O, no database.

Failure modes:
    - InvalidTransitionError when the status does not admit the operation.
    - DuplicateDecisionError when the reviewer already decided.
    - UnauthorizedActorError when a draft is touched by someone other than
      its submitter.
    - InvalidAnswerError from answer validation.
    - ValueError when a final-approval decision is not a bool.
    In every case the input record is returned to the caller unchanged
    (records are immutable) and no events are produced.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime
from uuid import UUID

from forms_engines.answers import validate_answers
from forms_kernel.domain.events import WorkflowEvent
from forms_kernel.domain.forms import Answer, FormDefinition
from forms_kernel.domain.ledger import DecisionCounts, DecisionRecord, ReviewDecision
from forms_kernel.domain.response import (
    FinalApproval,
    ResponseRecord,
    ResponseStatus,
    can_transition,
)
from forms_kernel.exceptions import InvalidTransitionError, UnauthorizedActorError


@dataclass(frozen=True)
class TransitionOutcome:
    """Updated record plus the events the change produced."""

    record: ResponseRecord
    events: tuple[WorkflowEvent, ...] = ()
    appended: DecisionRecord | None = None

    @property
    def status_changed(self) -> bool:
        return bool(self.events)


# =========================================================================
# Status rules
# =========================================================================


def initial_review_status(definition: FormDefinition) -> ResponseStatus:
    """Where a freshly submitted response goes."""
    if definition.required_reviewers == 0:
        if definition.requires_final_approval:
            return ResponseStatus.PENDING_APPROVAL
        return ResponseStatus.APPROVED
    return ResponseStatus.PENDING_REVIEW


def resolve_review_status(
    counts: DecisionCounts, definition: FormDefinition
) -> ResponseStatus:
    """Recompute the review outcome from ledger counts.

    The veto check runs before the quorum check.
    """
    if counts.denied >= 1:
        return ResponseStatus.DENIED_BY_REVIEW
    if counts.approved >= definition.required_reviewers:
        if definition.requires_final_approval:
            return ResponseStatus.PENDING_APPROVAL
        return ResponseStatus.APPROVED
    return ResponseStatus.PENDING_REVIEW


def require_status(
    record: ResponseRecord,
    allowed: Iterable[ResponseStatus],
    operation: str,
) -> None:
    if record.status not in frozenset(allowed):
        raise InvalidTransitionError(
            _id(record), record.status.value, operation
        )


def _require_edge(
    record: ResponseRecord, current: ResponseStatus, target: ResponseStatus, operation: str
) -> None:
    if not can_transition(current, target):
        raise InvalidTransitionError(_id(record), current.value, operation)


def _require_submitter(
    record: ResponseRecord, actor_id: str, capability: str
) -> None:
    if record.submitter_id != actor_id:
        raise UnauthorizedActorError(actor_id, capability, str(record.form_id))


def _id(record: ResponseRecord) -> str | None:
    return str(record.response_id) if record.response_id is not None else None


def _event(
    record: ResponseRecord,
    actor_id: str,
    previous: ResponseStatus,
    now: datetime,
) -> WorkflowEvent:
    return WorkflowEvent(
        response_id=record.response_id,
        form_id=record.form_id,
        submitter_id=record.submitter_id,
        actor_id=actor_id,
        previous_status=previous,
        status=record.status,
        occurred_at=now,
    )


def _new_draft(
    definition: FormDefinition,
    submitter_id: str,
    now: datetime,
    response_id: UUID | None,
) -> ResponseRecord:
    return ResponseRecord(
        response_id=response_id,
        form_id=definition.form_id,
        submitter_id=submitter_id,
        status=ResponseStatus.DRAFT,
        created_at=now,
        updated_at=now,
    )


# =========================================================================
# Operations
# =========================================================================


def save_draft(
    definition: FormDefinition,
    record: ResponseRecord | None,
    submitter_id: str,
    answers: tuple[Answer, ...],
    now: datetime,
    new_response_id: UUID | None = None,
) -> TransitionOutcome:
    """Store answers on a draft, creating the draft if ``record`` is None.

    Status stays ``draft`` and no events are produced.
    """
    if record is None:
        record = _new_draft(definition, submitter_id, now, new_response_id)
    else:
        require_status(record, (ResponseStatus.DRAFT,), "save_draft")
        _require_submitter(record, submitter_id, "edit_draft")
    _require_edge(record, record.status, ResponseStatus.DRAFT, "save_draft")

    validate_answers(definition.questions, answers)
    return TransitionOutcome(record=replace(record, answers=tuple(answers), updated_at=now))


def submit(
    definition: FormDefinition,
    record: ResponseRecord | None,
    submitter_id: str,
    answers: tuple[Answer, ...],
    now: datetime,
    new_response_id: UUID | None = None,
) -> TransitionOutcome:
    """Submit a response and route it.

    ``required_reviewers == 0`` skips review: straight to
    ``pending_approval`` when final approval is required, otherwise
    ``approved``.  Anything else goes to ``pending_review``.
    """
    if record is None:
        record = _new_draft(definition, submitter_id, now, new_response_id)
    else:
        require_status(record, (ResponseStatus.DRAFT,), "submit")
        _require_submitter(record, submitter_id, "submit")

    validate_answers(definition.questions, answers)

    previous = record.status
    _require_edge(record, previous, ResponseStatus.SUBMITTED, "submit")
    target = initial_review_status(definition)
    _require_edge(record, ResponseStatus.SUBMITTED, target, "submit")

    updated = replace(
        record,
        answers=tuple(answers),
        status=target,
        submitted_at=now,
        updated_at=now,
    )
    return TransitionOutcome(
        record=updated,
        events=(_event(updated, submitter_id, previous, now),),
    )


def record_reviewer_decision(
    definition: FormDefinition,
    record: ResponseRecord,
    reviewer_id: str,
    decision: ReviewDecision,
    comments: str | None,
    now: datetime,
) -> TransitionOutcome:
    """Append a reviewer decision and recompute status from the ledger.

    An event is produced only when the status moves.
    """
    require_status(record, (ResponseStatus.PENDING_REVIEW,), "record_reviewer_decision")

    entry = DecisionRecord(
        reviewer_id=reviewer_id,
        decision=ReviewDecision(decision),
        decided_at=now,
        comments=comments,
    )
    ledger = record.ledger.append(entry, _id(record))
    target = resolve_review_status(ledger.counts(), definition)
    _require_edge(record, record.status, target, "record_reviewer_decision")

    updated = replace(
        record,
        decisions=ledger.entries,
        status=target,
        updated_at=now,
    )
    events: tuple[WorkflowEvent, ...] = ()
    if target is not record.status:
        events = (_event(updated, reviewer_id, record.status, now),)
    return TransitionOutcome(record=updated, events=events, appended=entry)


def require_final_decision(decision: object) -> bool:
    """Return ``decision`` unchanged; anything but a real bool is a ValueError."""
    if not isinstance(decision, bool):
        raise ValueError(f"Final approval decision must be True or False, got {decision!r}")
    return decision


def record_final_approval(
    record: ResponseRecord,
    approver_id: str,
    decision: bool,
    comments: str | None,
    now: datetime,
) -> TransitionOutcome:
    """Close the final-approval gate: ``approved`` or ``denied_by_approval``."""
    decision = require_final_decision(decision)
    require_status(record, (ResponseStatus.PENDING_APPROVAL,), "record_final_approval")

    target = ResponseStatus.APPROVED if decision else ResponseStatus.DENIED_BY_APPROVAL
    _require_edge(record, record.status, target, "record_final_approval")

    updated = replace(
        record,
        status=target,
        final_approval=FinalApproval(
            approver_id=approver_id,
            decision=decision,
            decided_at=now,
            comments=comments,
        ),
        updated_at=now,
    )
    return TransitionOutcome(
        record=updated,
        events=(_event(updated, approver_id, record.status, now),),
    )
