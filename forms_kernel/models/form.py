"""
Module: forms_kernel.models.form
Responsibility: ORM persistence for form definitions.

Architecture position: Kernel > Models.  May import from db/base.py and
    domain value objects only.

Invariants enforced:
    - required_reviewers >= 0 (check constraint, repeated in the domain).
    - Forms are never physically deleted; deleted_at marks a soft delete.

Failure modes:
    - IntegrityError on a negative required_reviewers written around the
      domain layer.
    - InvalidFormDefinitionError from to_definition() if stored questions
      no longer parse.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, CheckConstraint, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from forms_kernel.db.base import Base
from forms_kernel.domain.forms import (
    FormDefinition,
    question_from_json,
    question_to_json,
)

JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class FormModel(Base):
    """Persistent form definition.

    Contract:
        Role sets are stored as sorted JSON arrays of role ids.  Questions
        are stored in their wire form.
    """

    __tablename__ = "forms"

    __table_args__ = (
        CheckConstraint(
            "required_reviewers >= 0",
            name="ck_forms_required_reviewers_non_negative",
        ),
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    questions: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONDocument, nullable=False, default=list,
    )
    access_role_ids: Mapped[list[str]] = mapped_column(
        JSONDocument, nullable=False, default=list,
    )
    reviewer_role_ids: Mapped[list[str]] = mapped_column(
        JSONDocument, nullable=False, default=list,
    )
    final_approver_role_ids: Mapped[list[str]] = mapped_column(
        JSONDocument, nullable=False, default=list,
    )
    required_reviewers: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1,
    )
    requires_final_approval: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        state = "deleted" if self.deleted_at else "live"
        return f"<Form {self.id} {self.title!r} {state}>"

    def to_definition(self) -> FormDefinition:
        """Convert ORM model to frozen domain definition."""
        form_id = str(self.id)
        return FormDefinition(
            form_id=self.id,
            title=self.title,
            description=self.description,
            questions=tuple(question_from_json(q, form_id) for q in self.questions),
            access_role_ids=frozenset(self.access_role_ids),
            reviewer_role_ids=frozenset(self.reviewer_role_ids),
            final_approver_role_ids=frozenset(self.final_approver_role_ids),
            required_reviewers=self.required_reviewers,
            requires_final_approval=self.requires_final_approval,
            deleted_at=self.deleted_at,
        )

    @classmethod
    def from_definition(cls, definition: FormDefinition, created_at: datetime) -> FormModel:
        """Create ORM model from a domain definition."""
        return cls(
            id=definition.form_id,
            title=definition.title,
            description=definition.description,
            questions=[question_to_json(q) for q in definition.questions],
            access_role_ids=sorted(definition.access_role_ids),
            reviewer_role_ids=sorted(definition.reviewer_role_ids),
            final_approver_role_ids=sorted(definition.final_approver_role_ids),
            required_reviewers=definition.required_reviewers,
            requires_final_approval=definition.requires_final_approval,
            created_at=created_at,
            deleted_at=definition.deleted_at,
        )
