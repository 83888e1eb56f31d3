"""Deterministic scoring of closed-form (multiple-choice) questions.

Uses the answer key embedded in each question - NO completion call.
Non-mc questions are passed through as open items for the open-form grader.
"""

from __future__ import annotations

import re

import structlog

from mockexam.core.errors import InvalidQuestion
from mockexam.core.models import (
    CHOICE_LETTERS,
    Answer,
    OpenItem,
    PerQuestionResult,
    Question,
    ScoringResult,
)
from mockexam.prompts.builder import feedback_text

logger = structlog.get_logger(__name__)

# First letter A-F standing alone after any punctuation: "A", "b.", "C) text", "'c'", "- d", "*E*"
_CHOICE_PATTERN = re.compile(r"^[\W_]*([A-Fa-f])(?!\w)")
# Nothing but a letter and punctuation: "B", "\"b\"", "(c)"
_BARE_CHOICE_PATTERN = re.compile(r"^[\W_]*([A-Fa-f])[\W_]*$")


def normalize_choice(response: str | None, options: tuple[str, ...] = ()) -> int | None:
    """Normalize an mc response to a zero-based option index.

    Accepts a leading letter A-F (case insensitive, punctuation ignored,
    e.g. "A) Paris", "b", "(c)", "'d'") or the exact text of one of the
    options. A bare letter always reads as a letter, even when an option's
    text is that letter.

    Returns:
        Option index, or None if the response is empty or unreadable
    """
    if response is None:
        return None
    stripped = response.strip()
    if not stripped:
        return None

    bare = _BARE_CHOICE_PATTERN.match(stripped)
    if bare is not None:
        return CHOICE_LETTERS.index(bare.group(1).upper())

    folded = stripped.casefold()
    for i, option in enumerate(options):
        if option.strip().casefold() == folded:
            return i

    match = _CHOICE_PATTERN.match(stripped)
    if match is None:
        return None
    return CHOICE_LETTERS.index(match.group(1).upper())


def _option_label(question: Question, index: int) -> tuple[str, str]:
    """Letter and text of an option."""
    return CHOICE_LETTERS[index], question.options[index]


def score_closed_question(question: Question, answer: Answer | None, language: str = "sv") -> PerQuestionResult:
    """Score one mc question against its answer key."""
    if not question.has_answer_key or question.correct_index >= len(CHOICE_LETTERS):
        logger.warning(
            "mc_answer_key_missing",
            question_id=question.id,
            correct_index=question.correct_index,
            options=len(question.options),
        )
        return PerQuestionResult(
            question_id=question.id,
            points_awarded=0.0,
            max_points=question.points,
            feedback=feedback_text(language, "missing_key"),
            model_answer="",
            grading_path="auto",
        )

    letter, option = _option_label(question, question.correct_index)
    model_answer = f"{letter}) {option}"

    response = answer.response if answer is not None else ""
    chosen = normalize_choice(response, question.options)

    if chosen == question.correct_index:
        points = question.points
        feedback = feedback_text(language, "correct")
    elif not response.strip():
        points = 0.0
        feedback = feedback_text(language, "no_answer", letter=letter, option=option)
    elif chosen is None:
        points = 0.0
        feedback = feedback_text(
            language,
            "unreadable",
            letter=letter,
            option=option,
            last=CHOICE_LETTERS[min(len(question.options), len(CHOICE_LETTERS)) - 1],
        )
    else:
        points = 0.0
        feedback = feedback_text(language, "incorrect", letter=letter, option=option)

    return PerQuestionResult(
        question_id=question.id,
        points_awarded=points,
        max_points=question.points,
        feedback=feedback,
        model_answer=model_answer,
        grading_path="auto",
    )


def index_answers(answers: list[Answer]) -> dict[str, Answer]:
    """Index answers by question id (first answer per id wins)."""
    by_id: dict[str, Answer] = {}
    for answer in answers:
        if answer.question_id in by_id:
            logger.warning("duplicate_answer_ignored", question_id=answer.question_id)
            continue
        by_id[answer.question_id] = answer
    return by_id


def score_answers(
    questions: tuple[Question, ...] | list[Question],
    answers: list[Answer],
    language: str = "sv",
) -> ScoringResult:
    """Partition questions and score the closed-form ones.

    Answers whose id matches no question are ignored. Questions without an
    answer are scored as empty.

    Args:
        questions: Exam questions in order
        answers: Submitted answers
        language: Feedback language (sv, en)

    Returns:
        ScoringResult with mc results and open items, both in exam order

    Raises:
        InvalidQuestion: If a question has no id or a duplicate id
    """
    seen_ids: set[str] = set()
    for position, question in enumerate(questions, 1):
        if not question.id:
            raise InvalidQuestion(f"Question #{position} has no id")
        if question.id in seen_ids:
            raise InvalidQuestion(f"Question id {question.id!r} is used more than once")
        seen_ids.add(question.id)

    answers_by_id = index_answers(answers)

    unmatched = [a.question_id for a in answers if a.question_id not in seen_ids]
    if unmatched:
        logger.info("unmatched_answers_ignored", question_ids=unmatched)

    closed_results: list[PerQuestionResult] = []
    open_items: list[OpenItem] = []

    for question in questions:
        answer = answers_by_id.get(question.id)
        if question.is_closed_form:
            closed_results.append(score_closed_question(question, answer, language))
        else:
            open_items.append(
                OpenItem(
                    question=question,
                    answer=answer if answer is not None else Answer(question_id=question.id),
                )
            )

    logger.debug(
        "answers_partitioned",
        closed=len(closed_results),
        open=len(open_items),
    )

    return ScoringResult(closed_results=closed_results, open_items=open_items)
