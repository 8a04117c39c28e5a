"""
Form definition and answer value objects (``forms_kernel.domain.forms``).

Responsibility
--------------
Tagged variants for the four question kinds and their matching answer
kinds, the read-only ``FormDefinition`` the workflow consults, and the
JSON wire codec for both (``{"questionId", "type", "answer"}`` for
answers, ``{"id", "text", "type", ...}`` for questions).

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  May import
only from ``forms_kernel.exceptions``.

Invariants enforced
-------------------
* ``FormDefinition.required_reviewers >= 0``.
* Question ids are unique within a form.
* Multiple-choice questions offer at least one option, with no repeats.
* Every answer carries the Python type its kind requires (bool, tuple of
  str, str); ``answer_from_json`` refuses anything else.

Failure modes
-------------
* ``InvalidFormDefinitionError`` for malformed forms / questions.
* ``InvalidAnswerError`` for malformed answer payloads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Union
from uuid import UUID

from forms_kernel.exceptions import InvalidAnswerError, InvalidFormDefinitionError


class QuestionType(str, Enum):
    """Question (and answer) kinds. Values are the wire strings."""

    TRUE_FALSE = "true_false"
    MULTIPLE_CHOICE = "multiple_choice"
    SHORT_ANSWER = "short_answer"
    LONG_ANSWER = "long_answer"


# =========================================================================
# Questions
# =========================================================================


@dataclass(frozen=True)
class TrueFalseQuestion:
    question_id: str
    text: str

    kind: ClassVar[QuestionType] = QuestionType.TRUE_FALSE


@dataclass(frozen=True)
class MultipleChoiceQuestion:
    question_id: str
    text: str
    options: tuple[str, ...]
    allow_multiple: bool = False

    kind: ClassVar[QuestionType] = QuestionType.MULTIPLE_CHOICE

    def __post_init__(self) -> None:
        if not self.options:
            raise InvalidFormDefinitionError(
                None, f"question {self.question_id} has no options"
            )
        if len(set(self.options)) != len(self.options):
            raise InvalidFormDefinitionError(
                None, f"question {self.question_id} repeats an option"
            )


@dataclass(frozen=True)
class ShortAnswerQuestion:
    question_id: str
    text: str
    max_length: int | None = None

    kind: ClassVar[QuestionType] = QuestionType.SHORT_ANSWER


@dataclass(frozen=True)
class LongAnswerQuestion:
    question_id: str
    text: str
    max_length: int | None = None
    supports_markdown: bool = False

    kind: ClassVar[QuestionType] = QuestionType.LONG_ANSWER


Question = Union[
    TrueFalseQuestion, MultipleChoiceQuestion, ShortAnswerQuestion, LongAnswerQuestion
]


# =========================================================================
# Answers
# =========================================================================


@dataclass(frozen=True)
class TrueFalseAnswer:
    question_id: str
    value: bool

    kind: ClassVar[QuestionType] = QuestionType.TRUE_FALSE


@dataclass(frozen=True)
class MultipleChoiceAnswer:
    """Selected options, in the order the submitter picked them."""

    question_id: str
    value: tuple[str, ...]

    kind: ClassVar[QuestionType] = QuestionType.MULTIPLE_CHOICE


@dataclass(frozen=True)
class ShortAnswerAnswer:
    question_id: str
    value: str

    kind: ClassVar[QuestionType] = QuestionType.SHORT_ANSWER


@dataclass(frozen=True)
class LongAnswerAnswer:
    question_id: str
    value: str

    kind: ClassVar[QuestionType] = QuestionType.LONG_ANSWER


Answer = Union[TrueFalseAnswer, MultipleChoiceAnswer, ShortAnswerAnswer, LongAnswerAnswer]


# =========================================================================
# Form definition
# =========================================================================


@dataclass(frozen=True)
class FormDefinition:
    """Read-only view of a form as the workflow sees it.

    ``required_reviewers == 0 and not requires_final_approval`` means a
    submission is approved on the spot.
    """

    form_id: UUID
    title: str
    description: str | None = None
    questions: tuple[Question, ...] = ()
    access_role_ids: frozenset[str] = frozenset()
    reviewer_role_ids: frozenset[str] = frozenset()
    final_approver_role_ids: frozenset[str] = frozenset()
    required_reviewers: int = 1
    requires_final_approval: bool = True
    deleted_at: datetime | None = None
    _by_id: dict[str, Question] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        quorum = self.required_reviewers
        if isinstance(quorum, bool) or not isinstance(quorum, int) or quorum < 0:
            raise InvalidFormDefinitionError(
                str(self.form_id),
                f"required_reviewers must be an integer >= 0, got {quorum!r}",
            )
        for question in self.questions:
            if question.question_id in self._by_id:
                raise InvalidFormDefinitionError(
                    str(self.form_id),
                    f"duplicate question id {question.question_id}",
                )
            self._by_id[question.question_id] = question

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def auto_approves(self) -> bool:
        return self.required_reviewers == 0 and not self.requires_final_approval

    def question(self, question_id: str) -> Question | None:
        return self._by_id.get(question_id)


# =========================================================================
# JSON codec
# =========================================================================


def _parse_kind(raw: Any) -> QuestionType | None:
    try:
        return QuestionType(raw)
    except ValueError:
        return None


def question_from_json(data: dict[str, Any], form_id: str | None = None) -> Question:
    """Parse a question from its wire form."""
    question_id = data.get("id")
    text = data.get("text")
    if not isinstance(question_id, str) or not question_id:
        raise InvalidFormDefinitionError(form_id, "question is missing an 'id'")
    if not isinstance(text, str):
        raise InvalidFormDefinitionError(
            form_id, f"question {question_id} is missing its 'text'"
        )

    kind = _parse_kind(data.get("type"))
    if kind is QuestionType.TRUE_FALSE:
        return TrueFalseQuestion(question_id, text)
    if kind is QuestionType.MULTIPLE_CHOICE:
        options = data.get("options") or []
        if not all(isinstance(o, str) for o in options):
            raise InvalidFormDefinitionError(
                form_id, f"question {question_id} options must be strings"
            )
        return MultipleChoiceQuestion(
            question_id,
            text,
            options=tuple(options),
            allow_multiple=bool(data.get("allowMultiple", False)),
        )
    if kind is QuestionType.SHORT_ANSWER:
        return ShortAnswerQuestion(question_id, text, max_length=data.get("maxLength"))
    if kind is QuestionType.LONG_ANSWER:
        return LongAnswerQuestion(
            question_id,
            text,
            max_length=data.get("maxLength"),
            supports_markdown=bool(data.get("supportsMarkdown", False)),
        )
    raise InvalidFormDefinitionError(
        form_id, f"question {question_id} has unknown type {data.get('type')!r}"
    )


def question_to_json(question: Question) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": question.question_id,
        "text": question.text,
        "type": question.kind.value,
    }
    if isinstance(question, MultipleChoiceQuestion):
        data["options"] = list(question.options)
        data["allowMultiple"] = question.allow_multiple
    elif isinstance(question, (ShortAnswerQuestion, LongAnswerQuestion)):
        if question.max_length is not None:
            data["maxLength"] = question.max_length
        if isinstance(question, LongAnswerQuestion):
            data["supportsMarkdown"] = question.supports_markdown
    return data


def answer_from_json(data: dict[str, Any]) -> Answer:
    """Parse an answer from its wire form, checking the value's type."""
    question_id = data.get("questionId")
    if not isinstance(question_id, str) or not question_id:
        raise InvalidAnswerError("?", "answer is missing its 'questionId'")

    kind = _parse_kind(data.get("type"))
    value = data.get("answer")
    if kind is QuestionType.TRUE_FALSE:
        if not isinstance(value, bool):
            raise InvalidAnswerError(question_id, "expected a boolean")
        return TrueFalseAnswer(question_id, value)
    if kind is QuestionType.MULTIPLE_CHOICE:
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise InvalidAnswerError(question_id, "expected a list of strings")
        return MultipleChoiceAnswer(question_id, tuple(value))
    if kind in (QuestionType.SHORT_ANSWER, QuestionType.LONG_ANSWER):
        if not isinstance(value, str):
            raise InvalidAnswerError(question_id, "expected a string")
        if kind is QuestionType.SHORT_ANSWER:
            return ShortAnswerAnswer(question_id, value)
        return LongAnswerAnswer(question_id, value)
    raise InvalidAnswerError(question_id, f"unknown answer type {data.get('type')!r}")


def answer_to_json(answer: Answer) -> dict[str, Any]:
    value: Any = answer.value
    if isinstance(answer, MultipleChoiceAnswer):
        value = list(answer.value)
    return {"questionId": answer.question_id, "type": answer.kind.value, "answer": value}


def answers_from_json(items: list[dict[str, Any]]) -> tuple[Answer, ...]:
    return tuple(answer_from_json(item) for item in items)


def answers_to_json(answers: tuple[Answer, ...]) -> list[dict[str, Any]]:
    return [answer_to_json(a) for a in answers]
