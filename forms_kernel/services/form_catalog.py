"""
FormCatalog -- storage adapter for form definitions.

Responsibility:
    Registers form definitions, soft-deletes them, and hands the workflow
    read-only ``FormDefinition`` snapshots.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - Forms are never physically deleted; ``soft_delete`` stamps
      ``deleted_at`` and leaves existing responses untouched.
    - A soft-deleted form is invisible to ``get_definition`` unless
      ``include_deleted`` is requested.

Failure modes:
    - RecordNotFoundError for unknown or soft-deleted forms.
    - InvalidFormDefinitionError from definition construction.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from forms_kernel.domain.clock import Clock, SystemClock
from forms_kernel.domain.forms import FormDefinition, Question
from forms_kernel.exceptions import RecordNotFoundError
from forms_kernel.logging_config import get_logger
from forms_kernel.models.form import FormModel
from forms_kernel.services.base import BaseService

logger = get_logger("services.form_catalog")


class FormCatalog(BaseService[FormModel]):
    """Reads and writes form definitions."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def register_form(
        self,
        title: str,
        questions: tuple[Question, ...] = (),
        *,
        form_id: UUID | None = None,
        description: str | None = None,
        access_role_ids: frozenset[str] = frozenset(),
        reviewer_role_ids: frozenset[str] = frozenset(),
        final_approver_role_ids: frozenset[str] = frozenset(),
        required_reviewers: int = 1,
        requires_final_approval: bool = True,
    ) -> FormDefinition:
        """Persist a new form and return its definition."""
        definition = FormDefinition(
            form_id=form_id or uuid4(),
            title=title,
            description=description,
            questions=tuple(questions),
            access_role_ids=frozenset(access_role_ids),
            reviewer_role_ids=frozenset(reviewer_role_ids),
            final_approver_role_ids=frozenset(final_approver_role_ids),
            required_reviewers=required_reviewers,
            requires_final_approval=requires_final_approval,
        )
        return self.add_definition(definition)

    def add_definition(self, definition: FormDefinition) -> FormDefinition:
        model = FormModel.from_definition(definition, created_at=self._clock.now())
        self.session.add(model)
        self.session.flush()
        logger.info(
            "form_registered",
            extra={
                "form_id": str(model.id),
                "title": model.title,
                "required_reviewers": model.required_reviewers,
                "requires_final_approval": model.requires_final_approval,
            },
        )
        return model.to_definition()

    def soft_delete(self, form_id: UUID) -> FormDefinition:
        """Mark a live form deleted. Responses already filed are not affected."""
        model = self._load(form_id, include_deleted=False)
        model.deleted_at = self._clock.now()
        self.session.flush()
        logger.info("form_soft_deleted", extra={"form_id": str(form_id)})
        return model.to_definition()

    def get_definition(self, form_id: UUID, include_deleted: bool = False) -> FormDefinition:
        return self._load(form_id, include_deleted).to_definition()

    def list_definitions(self, include_deleted: bool = False) -> list[FormDefinition]:
        stmt = select(FormModel).order_by(FormModel.created_at, FormModel.id)
        if not include_deleted:
            stmt = stmt.where(FormModel.deleted_at.is_(None))
        return [m.to_definition() for m in self.session.execute(stmt).scalars()]

    def _load(self, form_id: UUID, include_deleted: bool) -> FormModel:
        model = self.session.get(FormModel, form_id)
        if model is None or (model.deleted_at is not None and not include_deleted):
            raise RecordNotFoundError("Form", str(form_id))
        return model
