"""
forms_services.workflow_api -- Transport-neutral entrypoint for the workflow.

Responsibility:
    The surface an HTTP router, chat bot or batch job calls.  Each write
    operation runs in its own transaction, is retried when it loses a
    concurrent-write race, and has its notification events dispatched
    only after commit.  Read operations resolve which forms the actor may
    work on through the access evaluator, then delegate to the selector.

Architecture position:
    Services -- outermost layer.  Owns transaction boundaries (the kernel
    services below only flush).  Wires FormCatalog, ResponseWorkflowService
    and ResponseSelector per session.

Invariants enforced:
    - One transaction per attempt; a failed attempt is rolled back in full.
    - Only ConcurrentModificationError is retried, at most
      ``max_conflict_retries`` times.  Every other error propagates on the
      first occurrence.
    - Events are dispatched after commit, never for a rolled-back attempt.

Failure modes:
    - Every typed error from forms_kernel.exceptions propagates unchanged.
    - ConcurrentModificationError after the retry budget is spent.
    - ValueError for a reviewer decision that is neither "yes" nor "no",
      or a final-approval decision that is not a bool.
    - UnauthorizedActorError from get_response when the actor may not
      see the response.

Usage:
    api = build_workflow_api(get_active_settings(), access=evaluator)
    record = api.submit(form_id, "user-1", [{"questionId": "q1",
                                             "type": "true_false",
                                             "answer": True}])
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from forms_config.schema import KernelSettings
from forms_engines.workflow import require_final_decision
from forms_kernel.db.engine import get_session_factory, init_engine_from_url, session_scope
from forms_kernel.domain.access import AccessControlEvaluator, can_view_response
from forms_kernel.domain.clock import Clock, SystemClock
from forms_kernel.domain.events import LoggingDispatcher, NotificationDispatcher
from forms_kernel.domain.forms import FormDefinition, answers_from_json
from forms_kernel.domain.ledger import ReviewDecision
from forms_kernel.domain.response import ResponseRecord, ResponseStatus
from forms_kernel.exceptions import (
    ConcurrentModificationError,
    RecordNotFoundError,
    UnauthorizedActorError,
)
from forms_kernel.logging_config import LogContext, configure_logging, get_logger
from forms_kernel.selectors.response_selector import DEFAULT_PAGE_SIZE, ResponsePage, ResponseSelector
from forms_kernel.services.form_catalog import FormCatalog
from forms_kernel.services.workflow_service import ResponseWorkflowService, WorkflowResult

logger = get_logger("services.workflow_api")


class FormWorkflowAPI:
    """Public workflow operations over a session factory."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        access: AccessControlEvaluator,
        dispatcher: NotificationDispatcher | None = None,
        clock: Clock | None = None,
        max_conflict_retries: int = 3,
    ) -> None:
        self._session_factory = session_factory
        self._access = access
        self._dispatcher = dispatcher or LoggingDispatcher()
        self._clock = clock or SystemClock()
        self._max_conflict_retries = max_conflict_retries

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def save_draft(
        self,
        form_id: UUID,
        submitter_id: str,
        answers: list[dict[str, Any]],
        response_id: UUID | None = None,
    ) -> ResponseRecord:
        parsed = answers_from_json(answers)
        return self._run(
            "save_draft",
            submitter_id,
            lambda svc: svc.save_draft(form_id, submitter_id, parsed, response_id),
            form_id=form_id,
            response_id=response_id,
        )

    def submit(
        self,
        form_id: UUID,
        submitter_id: str,
        answers: list[dict[str, Any]],
        response_id: UUID | None = None,
    ) -> ResponseRecord:
        parsed = answers_from_json(answers)
        return self._run(
            "submit",
            submitter_id,
            lambda svc: svc.submit(form_id, submitter_id, parsed, response_id),
            form_id=form_id,
            response_id=response_id,
        )

    def record_reviewer_decision(
        self,
        response_id: UUID,
        reviewer_id: str,
        decision: ReviewDecision | str,
        comments: str | None = None,
    ) -> ResponseRecord:
        vote = ReviewDecision(decision)
        return self._run(
            "record_reviewer_decision",
            reviewer_id,
            lambda svc: svc.record_reviewer_decision(response_id, reviewer_id, vote, comments),
            response_id=response_id,
        )

    def record_final_approval(
        self,
        response_id: UUID,
        approver_id: str,
        decision: bool,
        comments: str | None = None,
    ) -> ResponseRecord:
        verdict = require_final_decision(decision)
        return self._run(
            "record_final_approval",
            approver_id,
            lambda svc: svc.record_final_approval(response_id, approver_id, verdict, comments),
            response_id=response_id,
        )

    # ------------------------------------------------------------------
    # Form administration
    # ------------------------------------------------------------------

    def register_form(self, definition: FormDefinition) -> FormDefinition:
        with session_scope(self._session_factory) as session:
            return FormCatalog(session, self._clock).add_definition(definition)

    def delete_form(self, form_id: UUID) -> FormDefinition:
        with session_scope(self._session_factory) as session:
            return FormCatalog(session, self._clock).soft_delete(form_id)

    def list_forms(self, include_deleted: bool = False) -> list[FormDefinition]:
        with session_scope(self._session_factory) as session:
            return FormCatalog(session, self._clock).list_definitions(include_deleted)

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get_response(self, response_id: UUID, actor_id: str) -> ResponseRecord:
        """Return one response if ``actor_id`` may see it.

        Visible to the submitter, to reviewers while it is pending review,
        and to the form's final approvers.
        """
        with session_scope(self._session_factory) as session:
            record = ResponseSelector(session).get(response_id)
            if record is None:
                raise RecordNotFoundError("FormResponse", str(response_id))
            definition = FormCatalog(session, self._clock).get_definition(
                record.form_id, include_deleted=True
            )
        if not can_view_response(self._access, definition, record, actor_id):
            logger.warning(
                "response_view_denied",
                extra={"response_id": str(response_id), "actor_id": actor_id},
            )
            raise UnauthorizedActorError(actor_id, "view", str(record.form_id))
        return record

    def get_user_draft(self, form_id: UUID, submitter_id: str) -> ResponseRecord | None:
        with session_scope(self._session_factory) as session:
            return ResponseSelector(session).get_user_draft(form_id, submitter_id)

    def list_user_submissions(
        self, submitter_id: str, limit: int = DEFAULT_PAGE_SIZE, cursor: str | None = None
    ) -> ResponsePage:
        with session_scope(self._session_factory) as session:
            return ResponseSelector(session).list_user_submissions(submitter_id, limit, cursor)

    def list_review_queue(
        self, reviewer_id: str, limit: int = DEFAULT_PAGE_SIZE, cursor: str | None = None
    ) -> ResponsePage:
        """Responses the reviewer may review and has not decided yet."""
        with session_scope(self._session_factory) as session:
            form_ids = self._forms_where(session, self._access.can_review, reviewer_id)
            return ResponseSelector(session).list_pending_review(
                form_ids, reviewer_id, limit, cursor
            )

    def list_approval_queue(
        self, approver_id: str, limit: int = DEFAULT_PAGE_SIZE, cursor: str | None = None
    ) -> ResponsePage:
        with session_scope(self._session_factory) as session:
            form_ids = self._forms_where(session, self._access.can_final_approve, approver_id)
            return ResponseSelector(session).list_pending_approval(form_ids, limit, cursor)

    def list_outcomes(
        self, approver_id: str, limit: int = DEFAULT_PAGE_SIZE, cursor: str | None = None
    ) -> ResponsePage:
        """Submitted responses, any status, on forms the actor final-approves."""
        with session_scope(self._session_factory) as session:
            form_ids = self._forms_where(session, self._access.can_final_approve, approver_id)
            return ResponseSelector(session).list_outcomes(form_ids, limit, cursor)

    def list_responses(
        self,
        status: ResponseStatus | str | None = None,
        form_id: UUID | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: str | None = None,
    ) -> ResponsePage:
        with session_scope(self._session_factory) as session:
            return ResponseSelector(session).list_responses(
                ResponseStatus(status) if status is not None else None,
                form_id,
                limit,
                cursor,
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _forms_where(
        self,
        session: Session,
        check: Callable[[FormDefinition, str], bool],
        actor_id: str,
    ) -> list[UUID]:
        # Deleted forms keep their queues; the workflow still accepts
        # decisions on responses filed before deletion.
        definitions = FormCatalog(session, self._clock).list_definitions(include_deleted=True)
        return [d.form_id for d in definitions if check(d, actor_id)]

    def _run(
        self,
        operation: str,
        actor_id: str,
        call: Callable[[ResponseWorkflowService], WorkflowResult],
        form_id: UUID | None = None,
        response_id: UUID | None = None,
    ) -> ResponseRecord:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=actor_id,
            form_id=str(form_id) if form_id else None,
            response_id=str(response_id) if response_id else None,
        ):
            logger.info("workflow_operation_started", extra={"operation": operation})
            t0 = time.monotonic()
            attempt = 0
            while True:
                attempt += 1
                try:
                    with session_scope(self._session_factory) as session:
                        service = ResponseWorkflowService(
                            session,
                            self._access,
                            FormCatalog(session, self._clock),
                            self._clock,
                        )
                        result = call(service)
                    break
                except ConcurrentModificationError:
                    if attempt > self._max_conflict_retries:
                        logger.warning(
                            "workflow_conflict_retries_exhausted",
                            extra={"operation": operation, "attempts": attempt},
                        )
                        raise
                    logger.info(
                        "workflow_conflict_retry",
                        extra={"operation": operation, "attempt": attempt},
                    )

            logger.info(
                "workflow_operation_completed",
                extra={
                    "operation": operation,
                    "status": result.record.status.value,
                    "attempts": attempt,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            self._dispatch(result)
        return result.record

    def _dispatch(self, result: WorkflowResult) -> None:
        for event in result.events:
            try:
                self._dispatcher.dispatch(event)
            except Exception:
                # The transition is committed; delivery is the dispatcher's concern.
                logger.error(
                    "notification_dispatch_failed",
                    extra={
                        "event_response_id": str(event.response_id),
                        "event_status": event.status.value,
                    },
                    exc_info=True,
                )


def build_workflow_api(
    settings: KernelSettings,
    access: AccessControlEvaluator,
    dispatcher: NotificationDispatcher | None = None,
    clock: Clock | None = None,
) -> FormWorkflowAPI:
    """Initialise the database engine and logging from settings and wire the API."""
    configure_logging(level=settings.logging.level)
    db = settings.database
    init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
    )
    return FormWorkflowAPI(
        get_session_factory(),
        access,
        dispatcher=dispatcher,
        clock=clock,
        max_conflict_retries=settings.workflow.max_conflict_retries,
    )
