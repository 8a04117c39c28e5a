"""
Module: forms_kernel.models.response
Responsibility: ORM persistence for form responses and their reviewer
    decision ledger.

Architecture position: Kernel > Models.  May import from db/base.py and
    domain value objects only.

Invariants enforced:
    - Status values: DB check constraint limits status to the seven
      lifecycle values; the workflow engine enforces transitions.
    - Final approval columns are only populated on approved /
      denied_by_approval rows.
    - One open draft per (form_id, submitter_id): partial unique index.
    - One decision per reviewer: UNIQUE(response_id, reviewer_id).
    - Ledger order: UNIQUE(response_id, sequence).
    - Optimistic locking: version_id is bumped on every write and checked
      in the UPDATE's WHERE clause.
    - Decisions are append-only: ORM listeners reject UPDATE / DELETE.

Failure modes:
    - IntegrityError on a second draft or a duplicate reviewer decision.
    - StaleDataError when version_id moved under a concurrent writer.
    - ImmutabilityViolationError on decision UPDATE/DELETE.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from forms_kernel.db.base import Base, UUIDString
from forms_kernel.domain.forms import answers_from_json, answers_to_json
from forms_kernel.domain.ledger import DecisionRecord, ReviewDecision
from forms_kernel.domain.response import (
    FinalApproval,
    ResponseRecord,
    ResponseStatus,
)
from forms_kernel.exceptions import ImmutabilityViolationError
from forms_kernel.models.form import JSONDocument

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in ResponseStatus)


class FormResponseModel(Base):
    """Persistent form response.

    Contract:
        ``version_id`` is assigned by the service (programmatic counter) so
        that every workflow write emits an UPDATE guarded by the previous
        version, even when no other column changes.
    """

    __tablename__ = "form_responses"

    __table_args__ = (
        CheckConstraint(
            f"status IN ({_STATUS_VALUES})",
            name="ck_form_responses_valid_status",
        ),
        CheckConstraint(
            "final_decision IS NULL OR status IN ('approved', 'denied_by_approval')",
            name="ck_form_responses_final_decision_terminal",
        ),
        Index(
            "ix_form_responses_open_draft",
            "form_id", "submitter_id",
            unique=True,
            postgresql_where=text("status = 'draft'"),
            sqlite_where=text("status = 'draft'"),
        ),
        Index(
            "ix_form_responses_queue",
            "status", "form_id", "submitted_at",
        ),
        Index("ix_form_responses_submitter", "submitter_id", "submitted_at"),
    )

    form_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("forms.id"), nullable=False,
    )
    submitter_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=ResponseStatus.DRAFT.value,
    )
    answers: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONDocument, nullable=False, default=list,
    )
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    final_approver_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    final_decision: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    final_decided_at: Mapped[datetime | None] = mapped_column(nullable=True)
    final_comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    decisions: Mapped[list[ReviewerDecisionModel]] = relationship(
        "ReviewerDecisionModel",
        back_populates="response",
        order_by="ReviewerDecisionModel.sequence",
        lazy="selectin",
    )

    __mapper_args__ = {
        "version_id_col": version_id,
        "version_id_generator": False,
    }

    def __repr__(self) -> str:
        return (
            f"<FormResponse {self.id} form={self.form_id} "
            f"status={self.status} v{self.version_id}>"
        )

    def to_dto(self) -> ResponseRecord:
        """Convert ORM model to frozen domain record."""
        final_approval = None
        if self.final_decision is not None:
            final_approval = FinalApproval(
                approver_id=self.final_approver_id,
                decision=self.final_decision,
                decided_at=self.final_decided_at,
                comments=self.final_comments,
            )
        return ResponseRecord(
            response_id=self.id,
            form_id=self.form_id,
            submitter_id=self.submitter_id,
            status=ResponseStatus(self.status),
            answers=answers_from_json(self.answers),
            decisions=tuple(d.to_dto() for d in self.decisions),
            final_approval=final_approval,
            submitted_at=self.submitted_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
            version=self.version_id,
        )

    def apply(self, record: ResponseRecord) -> None:
        """Copy mutable workflow state from ``record`` onto this row.

        Decisions are not touched here; new ledger entries are inserted as
        separate ReviewerDecisionModel rows.
        """
        self.status = record.status.value
        self.answers = answers_to_json(record.answers)
        self.submitted_at = record.submitted_at
        self.updated_at = record.updated_at
        if record.final_approval is not None:
            self.final_approver_id = record.final_approval.approver_id
            self.final_decision = record.final_approval.decision
            self.final_decided_at = record.final_approval.decided_at
            self.final_comments = record.final_approval.comments
        self.version_id = (self.version_id or 0) + 1

    @classmethod
    def from_dto(cls, record: ResponseRecord) -> FormResponseModel:
        """Create a new ORM row from a not-yet-persisted domain record."""
        model = cls(
            form_id=record.form_id,
            submitter_id=record.submitter_id,
            created_at=record.created_at,
            version_id=0,
        )
        if record.response_id is not None:
            model.id = record.response_id
        model.apply(record)
        return model


class ReviewerDecisionModel(Base):
    """Persistent reviewer decision. Append-only.

    Contract:
        Decisions are immutable once created -- no UPDATE, no DELETE.
    """

    __tablename__ = "reviewer_decisions"

    __table_args__ = (
        UniqueConstraint(
            "response_id", "reviewer_id",
            name="uq_reviewer_decisions_reviewer",
        ),
        UniqueConstraint(
            "response_id", "sequence",
            name="uq_reviewer_decisions_sequence",
        ),
        CheckConstraint(
            "decision IN ('yes', 'no')",
            name="ck_reviewer_decisions_valid_decision",
        ),
    )

    response_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("form_responses.id"), nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    reviewer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    decision: Mapped[str] = mapped_column(String(8), nullable=False)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_at: Mapped[datetime] = mapped_column(nullable=False)

    response: Mapped[FormResponseModel] = relationship(
        "FormResponseModel", back_populates="decisions",
    )

    def __repr__(self) -> str:
        return (
            f"<ReviewerDecision response={self.response_id} "
            f"#{self.sequence} {self.reviewer_id}={self.decision}>"
        )

    def to_dto(self) -> DecisionRecord:
        return DecisionRecord(
            reviewer_id=self.reviewer_id,
            decision=ReviewDecision(self.decision),
            decided_at=self.decided_at,
            comments=self.comments,
        )

    @classmethod
    def from_dto(
        cls, response_id: UUID, sequence: int, entry: DecisionRecord
    ) -> ReviewerDecisionModel:
        return cls(
            response_id=response_id,
            sequence=sequence,
            reviewer_id=entry.reviewer_id,
            decision=entry.decision.value,
            comments=entry.comments,
            decided_at=entry.decided_at,
        )


# =============================================================================
# ORM-Level Immutability for Decisions (Append-Only)
# =============================================================================


@event.listens_for(ReviewerDecisionModel, "before_update")
def prevent_decision_update(mapper, connection, target):
    """Prevent updates to reviewer decision records."""
    raise ImmutabilityViolationError(
        entity_type="ReviewerDecision",
        entity_id=str(target.id),
        reason="Reviewer decisions are immutable -- cannot modify",
    )


@event.listens_for(ReviewerDecisionModel, "before_delete")
def prevent_decision_delete(mapper, connection, target):
    """Prevent deletion of reviewer decision records."""
    raise ImmutabilityViolationError(
        entity_type="ReviewerDecision",
        entity_id=str(target.id),
        reason="Reviewer decisions are immutable -- cannot delete",
    )
