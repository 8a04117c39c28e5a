"""
forms_kernel.services.workflow_service -- Response workflow persistence.

Responsibility:
    Runs each workflow operation as one read-modify-write against the
    database: lock the response row, load its form definition, ask the
    access evaluator, hand the snapshot to the pure workflow engine, and
    persist the engine's result (ledger append plus status) in a single
    flush.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/ and the
    pure ``forms_engines`` layer.  Flushes, never commits.

Invariants enforced:
    - Check order: record exists -> status admits the operation -> actor
      is authorized -> engine rules (duplicate vote, answer validation).
    - Atomicity: the new ledger row and the recomputed status land in the
      same flush inside a SAVEPOINT; on failure the savepoint is rolled
      back and the stored record is unchanged.
    - No double vote: ledger check in the engine, repeated by
      UNIQUE(response_id, reviewer_id).
    - Lost-update protection: the row is read ``FOR UPDATE`` and every
      write is guarded by ``version_id``.

Failure modes:
    - RecordNotFoundError: unknown response, unknown or deleted form.
    - InvalidTransitionError / UnauthorizedActorError /
      DuplicateDecisionError / InvalidAnswerError from the checks above.
    - ConcurrentModificationError: the row changed under us (stale
      version, or a racing insert of the same open draft).  Retry-safe.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from forms_engines import workflow as engine
from forms_engines.workflow import TransitionOutcome
from forms_kernel.domain.access import AccessControlEvaluator
from forms_kernel.domain.clock import Clock, SystemClock
from forms_kernel.domain.events import WorkflowEvent
from forms_kernel.domain.forms import Answer, FormDefinition
from forms_kernel.domain.ledger import ReviewDecision
from forms_kernel.domain.response import ResponseRecord, ResponseStatus
from forms_kernel.exceptions import (
    ConcurrentModificationError,
    DuplicateDecisionError,
    RecordNotFoundError,
    UnauthorizedActorError,
)
from forms_kernel.logging_config import get_logger
from forms_kernel.models.response import FormResponseModel, ReviewerDecisionModel
from forms_kernel.services.base import BaseService
from forms_kernel.services.form_catalog import FormCatalog

logger = get_logger("services.workflow")


@dataclass(frozen=True)
class WorkflowResult:
    """Persisted record plus the events to dispatch after commit."""

    record: ResponseRecord
    events: tuple[WorkflowEvent, ...] = ()


class ResponseWorkflowService(BaseService[FormResponseModel]):
    """Applies workflow operations to stored responses."""

    def __init__(
        self,
        session: Session,
        access: AccessControlEvaluator,
        catalog: FormCatalog | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(session)
        self._access = access
        self._clock = clock or SystemClock()
        self._catalog = catalog or FormCatalog(session, self._clock)

    # ------------------------------------------------------------------
    # Submitter operations
    # ------------------------------------------------------------------

    def save_draft(
        self,
        form_id: UUID,
        submitter_id: str,
        answers: Iterable[Answer],
        response_id: UUID | None = None,
    ) -> WorkflowResult:
        """Create or update the submitter's open draft for a form."""
        definition = self._submittable_form(form_id, submitter_id)
        model = self._load_draft(form_id, submitter_id, response_id)

        outcome = engine.save_draft(
            definition,
            model.to_dto() if model is not None else None,
            submitter_id,
            tuple(answers),
            self._clock.now(),
            new_response_id=uuid4(),
        )
        result = self._persist(model, outcome)
        logger.info(
            "draft_saved",
            extra={
                "response_id": str(result.record.response_id),
                "form_id": str(form_id),
                "submitter_id": submitter_id,
                "answer_count": len(result.record.answers),
            },
        )
        return result

    def submit(
        self,
        form_id: UUID,
        submitter_id: str,
        answers: Iterable[Answer],
        response_id: UUID | None = None,
    ) -> WorkflowResult:
        """Submit the open draft (or a fresh response) and route it."""
        definition = self._submittable_form(form_id, submitter_id)
        model = self._load_draft(form_id, submitter_id, response_id)

        outcome = engine.submit(
            definition,
            model.to_dto() if model is not None else None,
            submitter_id,
            tuple(answers),
            self._clock.now(),
            new_response_id=uuid4(),
        )
        result = self._persist(model, outcome)
        logger.info(
            "response_submitted",
            extra={
                "response_id": str(result.record.response_id),
                "form_id": str(form_id),
                "submitter_id": submitter_id,
                "status": result.record.status.value,
            },
        )
        return result

    # ------------------------------------------------------------------
    # Reviewer / approver operations
    # ------------------------------------------------------------------

    def record_reviewer_decision(
        self,
        response_id: UUID,
        reviewer_id: str,
        decision: ReviewDecision | str,
        comments: str | None = None,
    ) -> WorkflowResult:
        """Append one reviewer's yes/no and recompute the review outcome."""
        model = self._lock(response_id)
        record = model.to_dto()
        engine.require_status(
            record, (ResponseStatus.PENDING_REVIEW,), "record_reviewer_decision"
        )

        definition = self._catalog.get_definition(record.form_id, include_deleted=True)
        if not self._access.can_review(definition, reviewer_id):
            raise UnauthorizedActorError(reviewer_id, "review", str(record.form_id))

        outcome = engine.record_reviewer_decision(
            definition,
            record,
            reviewer_id,
            ReviewDecision(decision),
            comments,
            self._clock.now(),
        )
        result = self._persist(model, outcome)
        counts = result.record.ledger.counts()
        logger.info(
            "reviewer_decision_recorded",
            extra={
                "response_id": str(response_id),
                "reviewer_id": reviewer_id,
                "decision": ReviewDecision(decision).value,
                "approved_count": counts.approved,
                "denied_count": counts.denied,
                "required_reviewers": definition.required_reviewers,
                "status": result.record.status.value,
            },
        )
        return result

    def record_final_approval(
        self,
        response_id: UUID,
        approver_id: str,
        decision: bool,
        comments: str | None = None,
    ) -> WorkflowResult:
        """Close the final-approval gate on a response."""
        model = self._lock(response_id)
        record = model.to_dto()
        engine.require_status(
            record, (ResponseStatus.PENDING_APPROVAL,), "record_final_approval"
        )

        definition = self._catalog.get_definition(record.form_id, include_deleted=True)
        if not self._access.can_final_approve(definition, approver_id):
            raise UnauthorizedActorError(
                approver_id, "final_approve", str(record.form_id)
            )

        outcome = engine.record_final_approval(
            record, approver_id, decision, comments, self._clock.now()
        )
        result = self._persist(model, outcome)
        logger.info(
            "final_approval_recorded",
            extra={
                "response_id": str(response_id),
                "approver_id": approver_id,
                "decision": decision,
                "status": result.record.status.value,
            },
        )
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _submittable_form(self, form_id: UUID, submitter_id: str) -> FormDefinition:
        definition = self._catalog.get_definition(form_id)
        if not self._access.can_submit(definition, submitter_id):
            raise UnauthorizedActorError(submitter_id, "submit", str(form_id))
        return definition

    def _lock(self, response_id: UUID) -> FormResponseModel:
        # Row lock serializes concurrent writers on PostgreSQL.  SQLite
        # ignores FOR UPDATE; its transactions open with BEGIN IMMEDIATE.
        # version_id still guards every write.
        model = self.session.execute(
            select(FormResponseModel)
            .where(FormResponseModel.id == response_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise RecordNotFoundError("FormResponse", str(response_id))
        return model

    def _load_draft(
        self, form_id: UUID, submitter_id: str, response_id: UUID | None
    ) -> FormResponseModel | None:
        if response_id is not None:
            model = self._lock(response_id)
            if model.form_id != form_id:
                raise RecordNotFoundError("FormResponse", str(response_id))
            return model

        return self.session.execute(
            select(FormResponseModel)
            .where(
                FormResponseModel.form_id == form_id,
                FormResponseModel.submitter_id == submitter_id,
                FormResponseModel.status == ResponseStatus.DRAFT.value,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _persist(
        self, model: FormResponseModel | None, outcome: TransitionOutcome
    ) -> WorkflowResult:
        record = outcome.record
        entity_id = str(record.response_id)

        # Savepoint first: begin_nested() flushes pending state, and the
        # row must not be modified before that.
        savepoint = self.session.begin_nested()
        try:
            if model is None:
                model = FormResponseModel.from_dto(record)
                self.session.add(model)
            else:
                model.apply(record)
            if outcome.appended is not None:
                model.decisions.append(
                    ReviewerDecisionModel.from_dto(
                        model.id, len(model.decisions) + 1, outcome.appended
                    )
                )
            self.session.flush()
            savepoint.commit()
        except StaleDataError as exc:
            savepoint.rollback()
            logger.warning(
                "concurrent_modification_detected",
                extra={"response_id": entity_id, "cause": "stale_version"},
            )
            raise ConcurrentModificationError("FormResponse", entity_id) from exc
        except IntegrityError as exc:
            savepoint.rollback()
            raise self._translate_integrity_error(record, outcome) from exc

        return WorkflowResult(record=model.to_dto(), events=outcome.events)

    def _translate_integrity_error(
        self, record: ResponseRecord, outcome: TransitionOutcome
    ) -> Exception:
        entity_id = str(record.response_id)
        if outcome.appended is not None:
            reviewer_id = outcome.appended.reviewer_id
            existing = self.session.execute(
                select(ReviewerDecisionModel.id).where(
                    ReviewerDecisionModel.response_id == record.response_id,
                    ReviewerDecisionModel.reviewer_id == reviewer_id,
                )
            ).first()
            if existing is not None:
                logger.warning(
                    "duplicate_decision_rejected",
                    extra={"response_id": entity_id, "reviewer_id": reviewer_id},
                )
                return DuplicateDecisionError(entity_id, reviewer_id)

        logger.warning(
            "concurrent_modification_detected",
            extra={"response_id": entity_id, "cause": "integrity_conflict"},
        )
        return ConcurrentModificationError("FormResponse", entity_id)
