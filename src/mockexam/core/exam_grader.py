"""Exam grading module.

Responsibilities:
- Auto-grade multiple-choice questions against the embedded answer key
- Grade short and essay answers with one completion call
- Merge both into one GradeReport in exam order

The report's totals are recomputed from the per-question ledger, never taken
from an upstream total.
"""

from __future__ import annotations

import time

import structlog

from mockexam.config.app_config import GradingConfig, load_app_config
from mockexam.core.answer_key import score_answers
from mockexam.core.models import GradeReport, PerQuestionResult, Question
from mockexam.core.open_grader import grade_open_items
from mockexam.llm.client import CompletionClient
from mockexam.prompts.builder import feedback_text
from mockexam.schemas import GradeRequest

logger = structlog.get_logger(__name__)


def merge_results(
    closed_results: list[PerQuestionResult],
    open_results: list[PerQuestionResult],
    questions: tuple[Question, ...] | list[Question],
    language: str = "sv",
) -> GradeReport:
    """Assemble the grade report.

    Every question appears exactly once, in exam order. A question with no
    result from either pass is zero-filled. Results for ids that are not in
    the exam are dropped.

    Args:
        closed_results: Results from the answer-key pass
        open_results: Results from the open-form grader
        questions: Exam questions in order
        language: Language for zero-fill feedback

    Returns:
        GradeReport with totals summed from the per-question results
    """
    by_id: dict[str, PerQuestionResult] = {}
    for result in [*closed_results, *open_results]:
        by_id.setdefault(result.question_id, result)

    per_question: list[PerQuestionResult] = []
    for question in questions:
        result = by_id.get(question.id)
        if result is None:
            logger.warning("grade_result_missing", question_id=question.id)
            result = PerQuestionResult(
                question_id=question.id,
                points_awarded=0.0,
                max_points=question.points,
                feedback=feedback_text(language, "not_graded"),
                model_answer=question.model_answer,
                grading_path="missing",
            )
        elif result.max_points != question.points:
            # The exam is the source of truth for max points
            result = PerQuestionResult(
                question_id=result.question_id,
                points_awarded=max(0.0, min(question.points, result.points_awarded)),
                max_points=question.points,
                feedback=result.feedback,
                model_answer=result.model_answer,
                grading_path=result.grading_path,
            )
        per_question.append(result)

    return GradeReport.from_results(per_question)


async def grade_exam(
    request: GradeRequest,
    client: CompletionClient,
    config: GradingConfig | None = None,
) -> GradeReport:
    """Grade a submission against a previously generated exam.

    Issues at most one completion call (none when the exam is all mc or all
    open answers are blank).

    Args:
        request: Validated grading request
        client: Completion client
        config: Grading settings (loaded from app config if not provided)

    Returns:
        GradeReport covering every exam question

    Raises:
        InvalidQuestion: Exam question without id, or duplicate ids
        GradingFailed: Transport or service error during open-form grading
        GradingInvalid: Unusable open-form grading response
    """
    if config is None:
        config = load_app_config().grading

    start_time = time.time()

    exam = request.to_exam()
    scoring = score_answers(exam.questions, request.to_answers(), request.language)

    open_results = await grade_open_items(
        material=request.material,
        open_items=scoring.open_items,
        client=client,
        language=request.language,
        level=request.effective_level,
        course=request.course,
        student_context=request.to_context(),
        domain=request.domain,
        config=config,
    )

    report = merge_results(scoring.closed_results, open_results, exam.questions, request.language)

    logger.info(
        "exam_graded",
        questions=len(report.per_question),
        closed=len(scoring.closed_results),
        open=len(scoring.open_items),
        score=f"{report.percentage:.1%}",
        time_ms=int((time.time() - start_time) * 1000),
    )

    return report
