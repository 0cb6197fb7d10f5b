# app/services/registration/questionnaire.py
"""
Validation of attendee answers against an event's custom questions.

Checkbox answers travel as a JSON array of option strings; dropdown answers
are a single option string; text answers are free-form.
"""
import json
from typing import Dict, List, Sequence

from app.core.exceptions import ValidationError
from app.models.event_question import EventQuestion
from app.schemas.event import QuestionType
from app.schemas.registration import QuestionResponseIn


def parse_checkbox_answer(answer_text: str) -> List[str]:
    """Decode a checkbox answer; raises ValueError when it is not a list of strings."""
    if not answer_text or not answer_text.strip():
        return []
    value = json.loads(answer_text)
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError("Checkbox answers must be a JSON array of strings")
    return value


def validate_responses(
    questions: Sequence[EventQuestion],
    responses: Sequence[QuestionResponseIn],
    *,
    field: str,
) -> None:
    """
    Check one attendee's answers.

    Rejects unknown and duplicated question ids, missing answers to required
    questions, and choice answers that are not among the question's options.
    """
    by_id: Dict[str, EventQuestion] = {question.id: question for question in questions}
    answers: Dict[str, str] = {}

    for response in responses:
        if response.question_id not in by_id:
            raise ValidationError(f"Unknown question {response.question_id}", field=field)
        if response.question_id in answers:
            raise ValidationError(
                f"Question {response.question_id} answered more than once", field=field
            )
        answers[response.question_id] = response.answer_text

    for question in questions:
        answer = answers.get(question.id, "")
        question_type = question.question_type

        if question_type == QuestionType.checkbox.value:
            try:
                selected = parse_checkbox_answer(answer)
            except (ValueError, RecursionError):
                raise ValidationError(
                    f"Answer to '{question.question_text}' must be a list of options",
                    field=field,
                )
            if question.is_required and not selected:
                raise ValidationError(
                    f"'{question.question_text}' requires at least one option", field=field
                )
            invalid = [choice for choice in selected if choice not in question.option_texts]
            if invalid:
                raise ValidationError(
                    f"Invalid option(s) for '{question.question_text}': {', '.join(invalid)}",
                    field=field,
                )
            continue

        if not answer.strip():
            if question.is_required:
                raise ValidationError(
                    f"An answer to '{question.question_text}' is required", field=field
                )
            continue

        if question_type == QuestionType.dropdown.value and answer not in question.option_texts:
            raise ValidationError(
                f"Invalid option for '{question.question_text}': {answer}", field=field
            )
