"""
Module: forms_kernel.selectors.response_selector
Responsibility: Read-only queries over form responses -- reviewer and
    final-approver work queues, a submitter's draft and history, outcome
    history and an admin listing.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Listings are ordered newest submission first, ties broken by id, and
      paginated with a keyset cursor on (submitted_at, id), so a page
      boundary never skips or repeats a row while new responses arrive.
    - The review queue never offers a response to a reviewer who already
      has a ledger entry on it.
    - Drafts appear only through get_user_draft and the admin listing.

Failure modes:
    - ValueError on a malformed cursor string.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.sql import Select

from forms_kernel.domain.response import ResponseRecord, ResponseStatus
from forms_kernel.models.response import FormResponseModel, ReviewerDecisionModel
from forms_kernel.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 50


@dataclass(frozen=True)
class ResponseCursor:
    """Keyset position: the last row of the previous page."""

    submitted_at: datetime
    response_id: UUID

    def encode(self) -> str:
        return f"{self.submitted_at.isoformat()}|{self.response_id}"

    @classmethod
    def decode(cls, raw: str) -> ResponseCursor:
        ts, sep, rid = raw.partition("|")
        if not sep:
            raise ValueError(f"Malformed cursor: {raw!r}")
        return cls(submitted_at=datetime.fromisoformat(ts), response_id=UUID(rid))


@dataclass(frozen=True)
class ResponsePage:
    items: tuple[ResponseRecord, ...]
    next_cursor: str | None = None


class ResponseSelector(BaseSelector[FormResponseModel]):
    """Read-only response queries."""

    def get(self, response_id: UUID) -> ResponseRecord | None:
        model = self.session.get(FormResponseModel, response_id)
        return model.to_dto() if model is not None else None

    def get_user_draft(self, form_id: UUID, submitter_id: str) -> ResponseRecord | None:
        model = self.session.execute(
            select(FormResponseModel).where(
                FormResponseModel.form_id == form_id,
                FormResponseModel.submitter_id == submitter_id,
                FormResponseModel.status == ResponseStatus.DRAFT.value,
            )
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def list_user_submissions(
        self,
        submitter_id: str,
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: str | None = None,
    ) -> ResponsePage:
        stmt = select(FormResponseModel).where(
            FormResponseModel.submitter_id == submitter_id,
            FormResponseModel.status != ResponseStatus.DRAFT.value,
        )
        return self._page(stmt, limit, cursor)

    def list_pending_review(
        self,
        form_ids: Collection[UUID],
        reviewer_id: str,
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: str | None = None,
    ) -> ResponsePage:
        """Responses awaiting review on ``form_ids`` the reviewer has not decided."""
        if not form_ids:
            return ResponsePage(items=())
        already_decided = exists().where(
            ReviewerDecisionModel.response_id == FormResponseModel.id,
            ReviewerDecisionModel.reviewer_id == reviewer_id,
        )
        stmt = select(FormResponseModel).where(
            FormResponseModel.status == ResponseStatus.PENDING_REVIEW.value,
            FormResponseModel.form_id.in_(list(form_ids)),
            ~already_decided,
        )
        return self._page(stmt, limit, cursor)

    def list_pending_approval(
        self,
        form_ids: Collection[UUID],
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: str | None = None,
    ) -> ResponsePage:
        if not form_ids:
            return ResponsePage(items=())
        stmt = select(FormResponseModel).where(
            FormResponseModel.status == ResponseStatus.PENDING_APPROVAL.value,
            FormResponseModel.form_id.in_(list(form_ids)),
        )
        return self._page(stmt, limit, cursor)

    def list_outcomes(
        self,
        form_ids: Collection[UUID],
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: str | None = None,
    ) -> ResponsePage:
        """Every submitted response on ``form_ids``, whatever its status."""
        if not form_ids:
            return ResponsePage(items=())
        stmt = select(FormResponseModel).where(
            FormResponseModel.status != ResponseStatus.DRAFT.value,
            FormResponseModel.form_id.in_(list(form_ids)),
        )
        return self._page(stmt, limit, cursor)

    def list_responses(
        self,
        status: ResponseStatus | None = None,
        form_id: UUID | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: str | None = None,
    ) -> ResponsePage:
        stmt = select(FormResponseModel)
        if status is not None:
            stmt = stmt.where(FormResponseModel.status == ResponseStatus(status).value)
        if form_id is not None:
            stmt = stmt.where(FormResponseModel.form_id == form_id)
        return self._page(stmt, limit, cursor)

    def _page(self, stmt: Select, limit: int, cursor: str | None) -> ResponsePage:
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")

        order_key = _sort_key()
        if cursor is not None:
            pos = ResponseCursor.decode(cursor)
            stmt = stmt.where(
                or_(
                    order_key < pos.submitted_at,
                    and_(order_key == pos.submitted_at, FormResponseModel.id < pos.response_id),
                )
            )

        rows = self.session.execute(
            stmt.order_by(order_key.desc(), FormResponseModel.id.desc()).limit(limit + 1)
        ).scalars().all()

        items = tuple(m.to_dto() for m in rows[:limit])
        next_cursor = None
        if len(rows) > limit:
            last = rows[limit - 1]
            next_cursor = ResponseCursor(
                submitted_at=last.submitted_at or last.created_at,
                response_id=last.id,
            ).encode()
        return ResponsePage(items=items, next_cursor=next_cursor)


def _sort_key():
    # Drafts have no submitted_at; they sort by created_at.
    return func.coalesce(FormResponseModel.submitted_at, FormResponseModel.created_at)
