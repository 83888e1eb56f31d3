"""Open-form (short and essay) grading module.

One completion call covers every non-blank open item, using the
open_grading_v1 contract. There is no retry: grading quality is fuzzy and a
second call would not fix it. The response is mapped back onto the submitted
items by id:

- points are clamped into [0, maxPoints]
- an empty model answer falls back to the question's own
- items the service did not return get zero points and an omission note
- unknown ids and duplicates in the response are ignored (first wins)

Blank answers are scored zero locally and never sent.
"""

from __future__ import annotations

from typing import Any

import structlog

from mockexam.config.app_config import GradingConfig, load_app_config
from mockexam.core.contracts import build_grading_contract
from mockexam.core.errors import GradingFailed, GradingInvalid
from mockexam.core.models import OpenItem, PerQuestionResult, StudentContext
from mockexam.llm.client import CompletionClient, LLMError
from mockexam.prompts.builder import build_grading_messages, feedback_text

logger = structlog.get_logger(__name__)


# =============================================================================
# HELPERS
# =============================================================================


def _cap(text: str, max_chars: int) -> str:
    """Truncate text to max_chars."""
    return text if len(text) <= max_chars else text[:max_chars]


def _cap_fields(entry: dict[str, Any], max_chars: int) -> dict[str, Any]:
    """Truncate every string value of a dict."""
    return {
        key: _cap(value, max_chars) if isinstance(value, str) else value
        for key, value in entry.items()
    }


def truncate_context(
    context: StudentContext | None,
    history_limit: int = 10,
    mistakes_limit: int = 20,
    field_max_chars: int = 600,
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Bounded window of the student's most recent history and mistakes.

    Returns:
        Tuple of (history, mistakes) as dicts, most recent last, every
        string field capped at field_max_chars
    """
    if context is None or context.is_empty:
        return [], []

    history = list(context.history)[-history_limit:] if history_limit > 0 else []
    mistakes = list(context.mistakes)[-mistakes_limit:] if mistakes_limit > 0 else []

    return (
        [_cap_fields(h.to_dict(), field_max_chars) for h in history],
        [_cap_fields(m.to_dict(), field_max_chars) for m in mistakes],
    )


def _to_points(value: Any) -> float:
    """Coerce returned points to a float (0.0 when unusable)."""
    if isinstance(value, bool):
        return 0.0
    try:
        points = float(value)
    except (TypeError, ValueError):
        return 0.0
    if points != points:
        return 0.0
    return points


def _item_payload(item: OpenItem) -> dict[str, Any]:
    """What the grader sees for one item."""
    question = item.question
    max_points = question.points
    return {
        "id": question.id,
        "type": question.type,
        "maxPoints": int(max_points) if float(max_points).is_integer() else max_points,
        "prompt": question.prompt,
        "rubric": question.rubric,
        "modelAnswer": question.model_answer,
        "studentResponse": item.answer.response,
    }


def _index_results(raw_results: list[Any], wanted_ids: set[str]) -> dict[str, dict[str, Any]]:
    """Index returned results by id, keeping the first per known id."""
    by_id: dict[str, dict[str, Any]] = {}
    for entry in raw_results:
        if not isinstance(entry, dict):
            logger.warning("open_grading_entry_not_dict", received_type=type(entry).__name__)
            continue
        result_id = str(entry.get("id") or "").strip()
        if result_id not in wanted_ids:
            logger.warning("open_grading_unknown_id", question_id=result_id)
            continue
        if result_id in by_id:
            logger.warning("open_grading_duplicate_id", question_id=result_id)
            continue
        by_id[result_id] = entry
    return by_id


def _blank_result(item: OpenItem, language: str) -> PerQuestionResult:
    """Zero-credit result for an empty answer."""
    return PerQuestionResult(
        question_id=item.question.id,
        points_awarded=0.0,
        max_points=item.question.points,
        feedback=feedback_text(language, "blank"),
        model_answer=item.question.model_answer,
        grading_path="auto",
    )


def _graded_result(item: OpenItem, entry: dict[str, Any]) -> PerQuestionResult:
    """Result from a returned entry, with points clamped into range."""
    max_points = item.question.points
    raw_points = _to_points(entry.get("points"))
    points = max(0.0, min(max_points, raw_points))
    if points != raw_points:
        logger.warning(
            "open_grading_points_clamped",
            question_id=item.question.id,
            returned=raw_points,
            max_points=max_points,
        )

    model_answer = str(entry.get("modelAnswer") or "").strip() or item.question.model_answer

    return PerQuestionResult(
        question_id=item.question.id,
        points_awarded=points,
        max_points=max_points,
        feedback=str(entry.get("feedback") or ""),
        model_answer=model_answer,
        grading_path="llm",
    )


def _omitted_result(item: OpenItem, language: str) -> PerQuestionResult:
    """Zero-credit result for an item the service did not return."""
    logger.warning("open_grading_item_missing", question_id=item.question.id)
    return PerQuestionResult(
        question_id=item.question.id,
        points_awarded=0.0,
        max_points=item.question.points,
        feedback=feedback_text(language, "omitted"),
        model_answer=item.question.model_answer,
        grading_path="missing",
    )


# =============================================================================
# MAIN FUNCTION
# =============================================================================


async def grade_open_items(
    material: str,
    open_items: list[OpenItem],
    client: CompletionClient,
    language: str = "sv",
    level: str = "",
    course: str = "",
    student_context: StudentContext | None = None,
    domain: str | None = None,
    config: GradingConfig | None = None,
) -> list[PerQuestionResult]:
    """Grade open-form answers with a single completion call.

    Args:
        material: Study material the exam was generated from
        open_items: Non-mc questions with their answers, in exam order
        client: Completion client
        language: Feedback language (sv, en)
        level: Exam level
        course: Course name
        student_context: Optional history and mistakes for personalization
        domain: Domain hint (inferred from course when None)
        config: Grading settings (loaded from app config if not provided)

    Returns:
        One result per open item, in the order of open_items

    Raises:
        GradingFailed: Transport or service error
        GradingInvalid: Response has no usable perQuestion list
    """
    if config is None:
        config = load_app_config().grading

    to_grade = [item for item in open_items if not item.is_blank]

    if not to_grade:
        logger.debug("open_grading_skipped", items=len(open_items))
        return [_blank_result(item, language) for item in open_items]

    contract = build_grading_contract(len(to_grade))

    history, mistakes = truncate_context(
        student_context,
        history_limit=config.history_limit,
        mistakes_limit=config.mistakes_limit,
        field_max_chars=config.field_max_chars,
    )

    messages = build_grading_messages(
        material=material,
        items=[_item_payload(item) for item in to_grade],
        language=language,
        level=level,
        course=course,
        domain=domain,
        history=history,
        mistakes=mistakes,
    )

    logger.info(
        "open_grading_started",
        items=len(to_grade),
        blank=len(open_items) - len(to_grade),
        history=len(history),
        mistakes=len(mistakes),
        contract=contract.full_name,
    )

    try:
        payload = await client.complete(contract, messages, temperature=config.temperature)
    except LLMError as e:
        logger.error("open_grading_upstream_failed", error=str(e), category=e.category)
        raise GradingFailed(
            f"Completion service failed for {contract.full_name}: {e}",
            status=e.status,
            category=e.category,
            raw=e.raw,
            contract=contract.full_name,
        ) from e

    raw_results = payload.get("perQuestion")
    if not isinstance(raw_results, list):
        raise GradingInvalid(
            f"{contract.full_name} response has no perQuestion list",
            raw=payload,
            contract=contract.full_name,
        )

    by_id = _index_results(raw_results, {item.question.id for item in to_grade})

    results: list[PerQuestionResult] = []
    for item in open_items:
        if item.is_blank:
            results.append(_blank_result(item, language))
        elif item.question.id in by_id:
            results.append(_graded_result(item, by_id[item.question.id]))
        else:
            results.append(_omitted_result(item, language))

    upstream_total = payload.get("totalPoints")
    graded_total = sum(r.points_awarded for r in results)
    if isinstance(upstream_total, (int, float)) and upstream_total != graded_total:
        logger.info(
            "open_grading_total_recomputed",
            upstream_total=upstream_total,
            recomputed=graded_total,
        )

    return results
