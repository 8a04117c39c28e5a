"""
Module: forms_engines
Responsibility:
    Package entrypoint for the pure calculation layer: the response
    workflow state machine and answer validation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import forms_kernel/domain/ and forms_kernel.exceptions.
    MUST NOT import forms_services, models, db or selectors.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()``.  The current time is
      passed in by the calling service.
    - Determinism: identical inputs always produce identical outputs.
"""

from forms_engines.answers import validate_answer, validate_answers
from forms_engines.workflow import (
    TransitionOutcome,
    initial_review_status,
    record_final_approval,
    record_reviewer_decision,
    require_final_decision,
    require_status,
    resolve_review_status,
    save_draft,
    submit,
)

__all__ = [
    "validate_answer",
    "validate_answers",
    "TransitionOutcome",
    "initial_review_status",
    "record_final_approval",
    "record_reviewer_decision",
    "require_final_decision",
    "require_status",
    "resolve_review_status",
    "save_draft",
    "submit",
]
