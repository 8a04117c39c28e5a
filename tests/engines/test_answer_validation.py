"""
Tests for answer validation against form questions.
"""

import pytest

from forms_engines.answers import validate_answer, validate_answers
from forms_kernel.domain.forms import (
    LongAnswerAnswer,
    MultipleChoiceAnswer,
    ShortAnswerAnswer,
    TrueFalseAnswer,
)
from forms_kernel.exceptions import InvalidAnswerError
from tests.factories import standard_questions

QUESTIONS = {q.question_id: q for q in standard_questions()}


class TestValidateAnswers:

    def test_partial_answers_accepted(self):
        validate_answers(QUESTIONS.values(), [TrueFalseAnswer("age_confirm", True)])

    def test_no_answers_accepted(self):
        validate_answers(QUESTIONS.values(), [])

    def test_unknown_question_rejected(self):
        with pytest.raises(InvalidAnswerError, match="no such question") as exc_info:
            validate_answers(QUESTIONS.values(), [TrueFalseAnswer("ghost", True)])
        assert exc_info.value.question_id == "ghost"

    def test_question_answered_twice_rejected(self):
        answers = [TrueFalseAnswer("age_confirm", True), TrueFalseAnswer("age_confirm", False)]

        with pytest.raises(InvalidAnswerError, match="more than once"):
            validate_answers(QUESTIONS.values(), answers)


class TestValidateAnswer:

    def test_kind_mismatch_rejected(self):
        with pytest.raises(InvalidAnswerError, match="expected a true_false answer"):
            validate_answer(QUESTIONS["age_confirm"], ShortAnswerAnswer("age_confirm", "yes"))

    def test_multiple_choice_question_rejects_other_kinds(self):
        with pytest.raises(InvalidAnswerError, match="expected a multiple_choice answer"):
            validate_answer(QUESTIONS["timezone"], ShortAnswerAnswer("timezone", "EU"))

    def test_single_choice(self):
        validate_answer(QUESTIONS["timezone"], MultipleChoiceAnswer("timezone", ("EU",)))

    def test_single_choice_refuses_two_selections(self):
        with pytest.raises(InvalidAnswerError, match="only one option"):
            validate_answer(QUESTIONS["timezone"], MultipleChoiceAnswer("timezone", ("EU", "NA")))

    def test_multi_choice_accepts_several(self):
        validate_answer(
            QUESTIONS["roles"], MultipleChoiceAnswer("roles", ("fire", "patrol"))
        )

    def test_unoffered_option_rejected(self):
        with pytest.raises(InvalidAnswerError, match="not an offered option: APAC"):
            validate_answer(QUESTIONS["timezone"], MultipleChoiceAnswer("timezone", ("APAC",)))

    def test_repeated_option_rejected(self):
        with pytest.raises(InvalidAnswerError, match="selected twice"):
            validate_answer(
                QUESTIONS["roles"], MultipleChoiceAnswer("roles", ("fire", "fire"))
            )

    def test_short_answer_length_limit(self):
        validate_answer(QUESTIONS["callsign"], ShortAnswerAnswer("callsign", "12345678"))
        with pytest.raises(InvalidAnswerError, match="longer than 8"):
            validate_answer(QUESTIONS["callsign"], ShortAnswerAnswer("callsign", "123456789"))

    def test_long_answer_length_limit(self):
        with pytest.raises(InvalidAnswerError, match="longer than 200"):
            validate_answer(QUESTIONS["story"], LongAnswerAnswer("story", "x" * 201))
