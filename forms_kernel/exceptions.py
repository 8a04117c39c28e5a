"""
Typed Exception Hierarchy for the Forms Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Workflow callers (HTTP handlers, bots, batch jobs) must tell "you may not
review this" apart from "somebody else changed it first".  Matching on
message text is brittle, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

    try:
        api.record_reviewer_decision(response_id, reviewer_id, "yes")
    except DuplicateDecisionError as e:
        reply(code=e.code, reviewer=e.reviewer_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FormsKernelError (base)
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |   +-- UnauthorizedActorError
    |   +-- DuplicateDecisionError
    |
    +-- RecordNotFoundError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentModificationError
    |
    +-- AnswerError
    |   +-- InvalidAnswerError
    |
    +-- FormDefinitionError
    |   +-- InvalidFormDefinitionError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Workflow        | INVALID_TRANSITION          | Operation not allowed in current status
                | UNAUTHORIZED_ACTOR          | Access evaluator refused the actor
                | DUPLICATE_DECISION          | Reviewer already in the decision ledger
----------------|-----------------------------|-----------------------------------------
Lookup          | RECORD_NOT_FOUND            | Response or form missing / soft-deleted
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONCURRENT_MODIFICATION     | Row changed between read and write
----------------|-----------------------------|-----------------------------------------
Answers         | INVALID_ANSWER              | Answer does not fit its question
----------------|-----------------------------|-----------------------------------------
Forms           | INVALID_FORM_DEFINITION     | Malformed form or question definition
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Update/delete of a recorded decision

===============================================================================
HANDLING PATTERNS
===============================================================================

Categories exist so middleware can treat them differently:
    - WorkflowError      -> user-facing 4xx
    - RecordNotFoundError -> 404
    - ConcurrencyError   -> auto-retry (FormWorkflowAPI does this)
    - ImmutabilityError  -> log as a programming error
"""


class FormsKernelError(Exception):
    """
    Base exception for all forms kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "FORMS_KERNEL_ERROR"


# Workflow exceptions


class WorkflowError(FormsKernelError):
    """Base exception for workflow rule violations."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """The response's current status does not admit the requested operation."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, response_id: str | None, current_status: str, operation: str):
        self.response_id = response_id
        self.current_status = current_status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} response {response_id}: "
            f"status is '{current_status}'"
        )


class UnauthorizedActorError(WorkflowError):
    """The access evaluator (or submitter identity check) refused the actor."""

    code: str = "UNAUTHORIZED_ACTOR"

    def __init__(self, actor_id: str, capability: str, form_id: str):
        self.actor_id = actor_id
        self.capability = capability
        self.form_id = form_id
        super().__init__(
            f"Actor {actor_id} is not allowed to {capability} on form {form_id}"
        )


class DuplicateDecisionError(WorkflowError):
    """The reviewer already has an entry in this response's decision ledger."""

    code: str = "DUPLICATE_DECISION"

    def __init__(self, response_id: str | None, reviewer_id: str):
        self.response_id = response_id
        self.reviewer_id = reviewer_id
        super().__init__(
            f"Reviewer {reviewer_id} has already decided on response {response_id}"
        )


# Lookup


class RecordNotFoundError(FormsKernelError):
    """Referenced response or form does not exist (or is soft-deleted)."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


# Concurrency-related exceptions


class ConcurrencyError(FormsKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentModificationError(ConcurrencyError):
    """
    The record changed between read and write.

    Safe to retry: the failed attempt wrote nothing.
    """

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, entity_type: str, entity_id: str | None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Concurrent modification of {entity_type} {entity_id}: "
            "record was changed by another transaction"
        )


# Answer-related exceptions


class AnswerError(FormsKernelError):
    """Base exception for answer payload errors."""

    code: str = "ANSWER_ERROR"


class InvalidAnswerError(AnswerError):
    """An answer does not satisfy its question's type or constraints."""

    code: str = "INVALID_ANSWER"

    def __init__(self, question_id: str, reason: str):
        self.question_id = question_id
        self.reason = reason
        super().__init__(f"Invalid answer for question {question_id}: {reason}")


# Form definition exceptions


class FormDefinitionError(FormsKernelError):
    """Base exception for form definition errors."""

    code: str = "FORM_DEFINITION_ERROR"


class InvalidFormDefinitionError(FormDefinitionError):
    """A form or question definition is malformed."""

    code: str = "INVALID_FORM_DEFINITION"

    def __init__(self, form_id: str | None, reason: str):
        self.form_id = form_id
        self.reason = reason
        super().__init__(f"Invalid form definition {form_id}: {reason}")


# Immutability-related exceptions


class ImmutabilityError(FormsKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Reviewer decisions are append-only once recorded.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
