"""
forms_engines.answers -- Answer validation against a form's questions.

Responsibility:
    Check that each typed answer fits the question it answers.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Every answer refers to a question of the form, at most once.
    - The answer kind equals the question kind.
    - Multiple-choice selections are offered options, without repeats;
      single-select questions take at most one selection.
    - Text answers respect ``max_length`` when one is set.

Failure modes:
    - InvalidAnswerError naming the first offending question.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import cast

from forms_kernel.domain.forms import (
    Answer,
    LongAnswerQuestion,
    MultipleChoiceAnswer,
    MultipleChoiceQuestion,
    Question,
    ShortAnswerQuestion,
)
from forms_kernel.exceptions import InvalidAnswerError


def validate_answers(questions: Iterable[Question], answers: Iterable[Answer]) -> None:
    by_id = {q.question_id: q for q in questions}
    seen: set[str] = set()

    for answer in answers:
        question = by_id.get(answer.question_id)
        if question is None:
            raise InvalidAnswerError(answer.question_id, "no such question on this form")
        if answer.question_id in seen:
            raise InvalidAnswerError(answer.question_id, "answered more than once")
        seen.add(answer.question_id)
        validate_answer(question, answer)


def validate_answer(question: Question, answer: Answer) -> None:
    if answer.kind is not question.kind:
        raise InvalidAnswerError(
            answer.question_id,
            f"expected a {question.kind.value} answer, got {answer.kind.value}",
        )

    if isinstance(question, MultipleChoiceQuestion):
        _check_choices(question, cast(MultipleChoiceAnswer, answer))
    elif isinstance(question, (ShortAnswerQuestion, LongAnswerQuestion)):
        if question.max_length is not None and len(answer.value) > question.max_length:
            raise InvalidAnswerError(
                answer.question_id,
                f"longer than {question.max_length} characters",
            )


def _check_choices(question: MultipleChoiceQuestion, answer: MultipleChoiceAnswer) -> None:
    offered = set(question.options)
    unknown = [v for v in answer.value if v not in offered]
    if unknown:
        raise InvalidAnswerError(
            answer.question_id, f"not an offered option: {', '.join(unknown)}"
        )
    if len(set(answer.value)) != len(answer.value):
        raise InvalidAnswerError(answer.question_id, "option selected twice")
    if not question.allow_multiple and len(answer.value) > 1:
        raise InvalidAnswerError(answer.question_id, "only one option may be selected")
