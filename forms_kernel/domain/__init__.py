"""
Pure domain layer.

Immutable value objects and protocols with NO dependencies on the ORM,
the database, or the wall clock (time arrives through ``Clock``).
"""

from forms_kernel.domain.access import (
    AccessControlEvaluator,
    ActorRoleProvider,
    RoleBasedAccessEvaluator,
    StaticRoleDirectory,
    can_view_response,
    has_required_role,
)
from forms_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from forms_kernel.domain.events import (
    LoggingDispatcher,
    NotificationDispatcher,
    RecordingDispatcher,
    WorkflowEvent,
)
from forms_kernel.domain.forms import (
    Answer,
    FormDefinition,
    LongAnswerAnswer,
    LongAnswerQuestion,
    MultipleChoiceAnswer,
    MultipleChoiceQuestion,
    Question,
    QuestionType,
    ShortAnswerAnswer,
    ShortAnswerQuestion,
    TrueFalseAnswer,
    TrueFalseQuestion,
)
from forms_kernel.domain.ledger import (
    DecisionCounts,
    DecisionLedger,
    DecisionRecord,
    ReviewDecision,
    count_decisions,
)
from forms_kernel.domain.response import (
    RESPONSE_TRANSITIONS,
    TERMINAL_RESPONSE_STATUSES,
    FinalApproval,
    ResponseRecord,
    ResponseStatus,
)

__all__ = [
    # Access
    "AccessControlEvaluator",
    "ActorRoleProvider",
    "RoleBasedAccessEvaluator",
    "StaticRoleDirectory",
    "can_view_response",
    "has_required_role",
    # Time
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Events
    "LoggingDispatcher",
    "NotificationDispatcher",
    "RecordingDispatcher",
    "WorkflowEvent",
    # Forms
    "Answer",
    "FormDefinition",
    "LongAnswerAnswer",
    "LongAnswerQuestion",
    "MultipleChoiceAnswer",
    "MultipleChoiceQuestion",
    "Question",
    "QuestionType",
    "ShortAnswerAnswer",
    "ShortAnswerQuestion",
    "TrueFalseAnswer",
    "TrueFalseQuestion",
    # Ledger
    "DecisionCounts",
    "DecisionLedger",
    "DecisionRecord",
    "ReviewDecision",
    "count_decisions",
    # Responses
    "RESPONSE_TRANSITIONS",
    "TERMINAL_RESPONSE_STATUSES",
    "FinalApproval",
    "ResponseRecord",
    "ResponseStatus",
]
