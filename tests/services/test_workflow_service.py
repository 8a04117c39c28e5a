"""
Tests for ResponseWorkflowService against a real database session.

Tests cover:
- Draft lifecycle (create, update, address by id, submit)
- Reviewer decisions: authorization, check order, veto, quorum
- Final approval
- Soft-deleted forms
- Atomicity when a write fails
- Structured log output
"""

from uuid import uuid4

import pytest
from sqlalchemy import func, insert, select

from forms_kernel.domain.forms import ShortAnswerAnswer, TrueFalseAnswer, answers_from_json
from forms_kernel.domain.ledger import ReviewDecision
from forms_kernel.domain.response import ResponseStatus
from forms_kernel.exceptions import (
    DuplicateDecisionError,
    InvalidAnswerError,
    InvalidTransitionError,
    RecordNotFoundError,
    UnauthorizedActorError,
)
from forms_kernel.models.response import FormResponseModel, ReviewerDecisionModel
from forms_kernel.services.workflow_service import ResponseWorkflowService
from tests.factories import (
    APPROVER,
    OUTSIDER,
    REVIEWERS,
    SUBMITTER,
    standard_answers_json,
)

ANSWERS = answers_from_json(standard_answers_json())


def _decision_count(session, response_id):
    return session.scalar(
        select(func.count())
        .select_from(ReviewerDecisionModel)
        .where(ReviewerDecisionModel.response_id == response_id)
    )


# =========================================================================
# Drafts and submission
# =========================================================================


class TestDrafts:

    def test_save_draft_creates_then_updates(self, workflow, make_form, clock):
        form = make_form()

        first = workflow.save_draft(form.form_id, SUBMITTER, ANSWERS[:1])
        clock.tick()
        second = workflow.save_draft(form.form_id, SUBMITTER, ANSWERS)

        assert first.events == ()
        assert second.record.response_id == first.record.response_id
        assert second.record.answers == ANSWERS
        assert second.record.updated_at > first.record.updated_at
        assert second.record.version == first.record.version + 1

    def test_draft_addressed_by_id(self, workflow, make_form):
        form = make_form()
        draft = workflow.save_draft(form.form_id, SUBMITTER, ()).record

        updated = workflow.save_draft(form.form_id, SUBMITTER, ANSWERS, draft.response_id)

        assert updated.record.response_id == draft.response_id
        assert updated.record.answers == ANSWERS

    def test_unknown_draft_id(self, workflow, make_form):
        form = make_form()

        with pytest.raises(RecordNotFoundError):
            workflow.save_draft(form.form_id, SUBMITTER, ANSWERS, uuid4())

    def test_draft_id_on_another_form_is_not_found(self, workflow, make_form):
        form, other = make_form(), make_form()
        draft = workflow.save_draft(form.form_id, SUBMITTER, ()).record

        with pytest.raises(RecordNotFoundError):
            workflow.save_draft(other.form_id, SUBMITTER, ANSWERS, draft.response_id)

    def test_another_submitters_draft_refused(self, workflow, make_form, roles):
        form = make_form()
        draft = workflow.save_draft(form.form_id, SUBMITTER, ()).record
        roles.grant(OUTSIDER, "role-member")

        with pytest.raises(UnauthorizedActorError) as exc_info:
            workflow.save_draft(form.form_id, OUTSIDER, ANSWERS, draft.response_id)

        assert exc_info.value.capability == "edit_draft"

    def test_actor_without_access_role_refused(self, workflow, make_form):
        form = make_form()

        with pytest.raises(UnauthorizedActorError) as exc_info:
            workflow.save_draft(form.form_id, OUTSIDER, ANSWERS)

        assert exc_info.value.capability == "submit"

    def test_invalid_answers_leave_no_draft(self, workflow, make_form, session):
        form = make_form()

        with pytest.raises(InvalidAnswerError):
            workflow.save_draft(
                form.form_id, SUBMITTER, (ShortAnswerAnswer("age_confirm", "yes"),)
            )

        assert session.scalar(select(func.count()).select_from(FormResponseModel)) == 0

    def test_submit_promotes_open_draft(self, workflow, make_form):
        form = make_form()
        draft = workflow.save_draft(form.form_id, SUBMITTER, ANSWERS[:1]).record

        result = workflow.submit(form.form_id, SUBMITTER, ANSWERS)

        assert result.record.response_id == draft.response_id
        assert result.record.status is ResponseStatus.PENDING_REVIEW
        assert result.record.submitted_at is not None
        assert [e.status for e in result.events] == [ResponseStatus.PENDING_REVIEW]

    def test_submit_without_draft_creates_response(self, workflow, make_form):
        form = make_form(required_reviewers=0, requires_final_approval=False)

        result = workflow.submit(form.form_id, SUBMITTER, ANSWERS)

        assert result.record.status is ResponseStatus.APPROVED
        assert result.events[0].response_id == result.record.response_id

    def test_resubmission_creates_new_response(self, workflow, make_form):
        form = make_form()
        first = workflow.submit(form.form_id, SUBMITTER, ANSWERS).record

        second = workflow.submit(form.form_id, SUBMITTER, ANSWERS).record

        assert second.response_id != first.response_id

    def test_submitted_response_cannot_be_resubmitted_by_id(self, workflow, make_form):
        form = make_form()
        record = workflow.submit(form.form_id, SUBMITTER, ANSWERS).record

        with pytest.raises(InvalidTransitionError):
            workflow.submit(form.form_id, SUBMITTER, ANSWERS, record.response_id)

    def test_deleted_form_refuses_new_work(self, workflow, make_form, catalog):
        form = make_form()
        catalog.soft_delete(form.form_id)

        with pytest.raises(RecordNotFoundError):
            workflow.submit(form.form_id, SUBMITTER, ANSWERS)
        with pytest.raises(RecordNotFoundError):
            workflow.save_draft(form.form_id, SUBMITTER, ANSWERS)

    def test_unknown_form(self, workflow):
        with pytest.raises(RecordNotFoundError) as exc_info:
            workflow.submit(uuid4(), SUBMITTER, ANSWERS)

        assert exc_info.value.entity_type == "Form"


# =========================================================================
# Reviewer decisions
# =========================================================================


class TestReviewerDecisions:

    def _submitted(self, workflow, make_form, **form_overrides):
        form = make_form(**form_overrides)
        return form, workflow.submit(form.form_id, SUBMITTER, ANSWERS).record

    def test_quorum_moves_to_final_approval(self, workflow, make_form, session):
        _, record = self._submitted(workflow, make_form, required_reviewers=2)

        first = workflow.record_reviewer_decision(record.response_id, REVIEWERS[0], "yes")
        second = workflow.record_reviewer_decision(
            record.response_id, REVIEWERS[1], ReviewDecision.YES, "looks good"
        )

        assert first.record.status is ResponseStatus.PENDING_REVIEW
        assert first.events == ()
        assert second.record.status is ResponseStatus.PENDING_APPROVAL
        assert second.record.decisions[1].comments == "looks good"
        assert _decision_count(session, record.response_id) == 2

    def test_veto(self, workflow, make_form):
        _, record = self._submitted(workflow, make_form, required_reviewers=3)
        workflow.record_reviewer_decision(record.response_id, REVIEWERS[0], "yes")

        result = workflow.record_reviewer_decision(record.response_id, REVIEWERS[1], "no")

        assert result.record.status is ResponseStatus.DENIED_BY_REVIEW
        assert result.events[0].actor_id == REVIEWERS[1]

    def test_duplicate_decision(self, workflow, make_form, session):
        _, record = self._submitted(workflow, make_form, required_reviewers=2)
        workflow.record_reviewer_decision(record.response_id, REVIEWERS[0], "yes")

        with pytest.raises(DuplicateDecisionError):
            workflow.record_reviewer_decision(record.response_id, REVIEWERS[0], "no")

        assert _decision_count(session, record.response_id) == 1

    def test_non_reviewer_refused(self, workflow, make_form, session):
        _, record = self._submitted(workflow, make_form)

        with pytest.raises(UnauthorizedActorError) as exc_info:
            workflow.record_reviewer_decision(record.response_id, OUTSIDER, "yes")

        assert exc_info.value.capability == "review"
        assert _decision_count(session, record.response_id) == 0

    def test_status_checked_before_authorization(self, workflow, make_form):
        form = make_form()
        draft = workflow.save_draft(form.form_id, SUBMITTER, ANSWERS).record

        with pytest.raises(InvalidTransitionError):
            workflow.record_reviewer_decision(draft.response_id, OUTSIDER, "yes")

    def test_unknown_response(self, workflow):
        with pytest.raises(RecordNotFoundError) as exc_info:
            workflow.record_reviewer_decision(uuid4(), REVIEWERS[0], "yes")

        assert exc_info.value.entity_type == "FormResponse"

    def test_review_continues_after_form_deleted(self, workflow, make_form, catalog):
        form, record = self._submitted(workflow, make_form, required_reviewers=1,
                                       requires_final_approval=False)
        catalog.soft_delete(form.form_id)

        result = workflow.record_reviewer_decision(record.response_id, REVIEWERS[0], "yes")

        assert result.record.status is ResponseStatus.APPROVED

    def test_racing_duplicate_insert_reported_as_duplicate(
        self, workflow, make_form, session, monkeypatch, clock
    ):
        _, record = self._submitted(workflow, make_form, required_reviewers=2)
        original_lock = ResponseWorkflowService._lock

        def lock_then_race(self, response_id):
            model = original_lock(self, response_id)
            # Another request by the same reviewer lands between read and write.
            self.session.execute(
                insert(ReviewerDecisionModel.__table__).values(
                    id=str(uuid4()),
                    response_id=str(response_id),
                    sequence=1,
                    reviewer_id=REVIEWERS[0],
                    decision="yes",
                    decided_at=clock.now(),
                )
            )
            return model

        monkeypatch.setattr(ResponseWorkflowService, "_lock", lock_then_race)

        with pytest.raises(DuplicateDecisionError):
            workflow.record_reviewer_decision(record.response_id, REVIEWERS[0], "yes")

        assert _decision_count(session, record.response_id) == 1


# =========================================================================
# Final approval
# =========================================================================


class TestFinalApproval:

    def _pending_approval(self, workflow, make_form):
        form = make_form(required_reviewers=0, requires_final_approval=True)
        return workflow.submit(form.form_id, SUBMITTER, ANSWERS).record

    def test_approve(self, workflow, make_form):
        record = self._pending_approval(workflow, make_form)

        result = workflow.record_final_approval(record.response_id, APPROVER, True, "ok")

        assert result.record.status is ResponseStatus.APPROVED
        assert result.record.final_approval.approver_id == APPROVER
        assert result.record.final_approval.comments == "ok"

    def test_deny(self, workflow, make_form):
        record = self._pending_approval(workflow, make_form)

        result = workflow.record_final_approval(record.response_id, APPROVER, False)

        assert result.record.status is ResponseStatus.DENIED_BY_APPROVAL

    def test_reviewer_is_not_a_final_approver(self, workflow, make_form):
        record = self._pending_approval(workflow, make_form)

        with pytest.raises(UnauthorizedActorError) as exc_info:
            workflow.record_final_approval(record.response_id, REVIEWERS[0], True)

        assert exc_info.value.capability == "final_approve"

    def test_terminal_response_refuses_second_verdict(self, workflow, make_form):
        record = self._pending_approval(workflow, make_form)
        workflow.record_final_approval(record.response_id, APPROVER, True)

        with pytest.raises(InvalidTransitionError):
            workflow.record_final_approval(record.response_id, APPROVER, False)

    def test_review_decision_refused_in_approval(self, workflow, make_form):
        record = self._pending_approval(workflow, make_form)

        with pytest.raises(InvalidTransitionError):
            workflow.record_reviewer_decision(record.response_id, REVIEWERS[0], "yes")


# =========================================================================
# Logging
# =========================================================================


class TestWorkflowLogging:

    def test_decision_log_carries_counts(self, workflow, make_form, captured_logs):
        form = make_form(required_reviewers=2)
        record = workflow.submit(form.form_id, SUBMITTER, (TrueFalseAnswer("age_confirm", True),)).record

        workflow.record_reviewer_decision(record.response_id, REVIEWERS[0], "yes")

        entry = next(r for r in captured_logs() if r["message"] == "reviewer_decision_recorded")
        assert entry["approved_count"] == 1
        assert entry["denied_count"] == 0
        assert entry["required_reviewers"] == 2
        assert entry["status"] == "pending_review"
        assert entry["logger"] == "forms_kernel.services.workflow"

    def test_submit_logged(self, workflow, make_form, captured_logs):
        form = make_form()

        workflow.submit(form.form_id, SUBMITTER, ANSWERS)

        messages = [r["message"] for r in captured_logs()]
        assert "response_submitted" in messages
