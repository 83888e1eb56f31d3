"""Exam generation module.

Responsibilities:
- Build the mock_exam_v1 contract for the requested count and type filter
- Drive the completion service to fill it
- Validate what the schema cannot express (exact count, type filter,
  mc options and answer key) and retry with corrective feedback
- Repair deterministic issues locally (ids, sentinels, points, title)

At most `max_attempts` completion calls are made per request, strictly in
sequence: each retry's instruction depends on the previous violation.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterator

import structlog

from mockexam.config.app_config import GenerationConfig, load_app_config
from mockexam.core.contracts import (
    MAX_POINTS,
    MC_OPTION_COUNT,
    MIN_POINTS,
    Contract,
    build_exam_contract,
)
from mockexam.core.errors import GenerationInvalid, UpstreamFailed
from mockexam.core.models import (
    MAX_OPTIONS,
    MIN_OPTIONS,
    NO_ANSWER_INDEX,
    QUESTION_TYPES,
    Exam,
    Question,
)
from mockexam.llm.client import CompletionClient, LLMError, Message
from mockexam.prompts.builder import build_correction_message, build_generation_messages
from mockexam.schemas import ExamRequest

logger = structlog.get_logger(__name__)

# Cap on violations listed in one corrective turn
MAX_REPORTED_VIOLATIONS = 5


# =============================================================================
# CONVERSATION
# =============================================================================


@dataclass
class Conversation:
    """Turns of one generation request.

    Turns only grow: each failed attempt appends the invalid output and a
    corrective instruction. The number of attempts is capped.
    """

    turns: list[Message]
    max_attempts: int
    attempts: int = 0
    violations: list[str] = field(default_factory=list)

    @property
    def exhausted(self) -> bool:
        """True once the attempt ceiling has been reached."""
        return self.attempts >= self.max_attempts

    def next_attempts(self) -> Iterator[int]:
        """Yield attempt numbers (1-based) until the ceiling is reached."""
        while not self.exhausted:
            self.attempts += 1
            yield self.attempts

    def add_correction(self, invalid_output: dict[str, Any], violation: str, count: int, language: str) -> None:
        """Append the rejected output and a corrective instruction."""
        self.violations.append(violation)
        self.turns.append(
            Message(role="assistant", content=json.dumps(invalid_output, ensure_ascii=False))
        )
        self.turns.append(build_correction_message(violation, count, language))


# =============================================================================
# VALIDATION
# =============================================================================


def check_question_invariants(question: Question) -> str | None:
    """Check the mc/non-mc field invariants of a single question.

    Returns:
        Violation description, or None when the question is consistent
    """
    if question.type == "mc":
        if not MIN_OPTIONS <= len(question.options) <= MAX_OPTIONS:
            return f"mc question {question.id} has {len(question.options)} options"
        if not question.has_answer_key:
            return f"mc question {question.id} has correctIndex {question.correct_index} out of range"
        return None
    if question.options or question.correct_index != NO_ANSWER_INDEX:
        return f"{question.type} question {question.id} must have options=[] and correctIndex=-1"
    return None


def validate_exam_payload(payload: dict[str, Any], count: int, type_filter: str) -> str | None:
    """Check semantic rules the contract cannot enforce.

    Rules:
    1. questions is a list of exactly `count` objects
    2. every question has a known type, matching a single-type filter
    3. mc questions have exactly 4 non-empty options and correctIndex 0-3
    4. every question has a non-empty prompt

    Returns:
        "; "-joined violations, or None when valid
    """
    questions = payload.get("questions")
    if not isinstance(questions, list):
        return "questions is missing or not a list"
    if len(questions) != count:
        return f"Wrong question count: {len(questions)} != {count}"

    violations: list[str] = []
    for i, q in enumerate(questions, 1):
        if not isinstance(q, dict):
            violations.append(f"question #{i} is not an object")
            continue

        q_type = q.get("type")
        if q_type not in QUESTION_TYPES:
            violations.append(f"question #{i} has unknown type {q_type!r}")
            continue
        if type_filter != "mix" and q_type != type_filter:
            violations.append(f"question #{i} is {q_type} while only {type_filter} was requested")

        if not str(q.get("prompt") or "").strip():
            violations.append(f"question #{i} has an empty prompt")

        if q_type == "mc":
            options = q.get("options")
            if (
                not isinstance(options, list)
                or len(options) != MC_OPTION_COUNT
                or not all(isinstance(o, str) and o.strip() for o in options)
            ):
                violations.append(f"mc question #{i} must have exactly {MC_OPTION_COUNT} options")
            correct_index = q.get("correctIndex")
            if (
                isinstance(correct_index, bool)
                or not isinstance(correct_index, int)
                or not 0 <= correct_index < MC_OPTION_COUNT
            ):
                violations.append(f"mc question #{i} needs correctIndex 0-{MC_OPTION_COUNT - 1}")

    if not violations:
        return None
    return "; ".join(violations[:MAX_REPORTED_VIOLATIONS])


# =============================================================================
# REPAIR
# =============================================================================


def _clamp_points(value: Any) -> int:
    """Points as an int within the contract range."""
    if isinstance(value, bool):
        return MIN_POINTS
    try:
        points = int(round(float(value)))
    except (TypeError, ValueError):
        return MIN_POINTS
    return max(MIN_POINTS, min(MAX_POINTS, points))


def build_exam(payload: dict[str, Any], request: ExamRequest) -> Exam:
    """Turn a validated payload into an Exam, repairing deterministic issues.

    - empty or duplicate ids are renumbered q1..qN
    - non-mc questions get sentinel options/correctIndex
    - points are clamped to 1-10
    - level is the requested level; title falls back to the course
    """
    raw_questions: list[dict[str, Any]] = payload["questions"]

    ids = [str(q.get("id") or "").strip() for q in raw_questions]
    if any(not i for i in ids) or len(set(ids)) != len(ids):
        logger.warning("exam_question_ids_renumbered", ids=ids)
        ids = [f"q{n}" for n in range(1, len(raw_questions) + 1)]

    questions: list[Question] = []
    for question_id, q in zip(ids, raw_questions):
        q_type = q["type"]
        is_mc = q_type == "mc"
        questions.append(
            Question(
                id=question_id,
                type=q_type,
                points=_clamp_points(q.get("points")),
                prompt=str(q.get("prompt") or "").strip(),
                options=tuple(str(o).strip() for o in q.get("options") or []) if is_mc else (),
                correct_index=q["correctIndex"] if is_mc else NO_ANSWER_INDEX,
                rubric=str(q.get("rubric") or ""),
                model_answer=str(q.get("modelAnswer") or ""),
            )
        )

    if payload.get("level") not in (None, request.level):
        logger.warning(
            "exam_level_overridden",
            returned=payload.get("level"),
            requested=request.level,
        )

    title = str(payload.get("title") or "").strip() or request.course or "Mock exam"

    return Exam(title=title, level=request.level, questions=tuple(questions))


# =============================================================================
# MAIN FUNCTION
# =============================================================================


def _upstream_failed(error: LLMError, contract: Contract) -> UpstreamFailed:
    """Translate a client error into the pipeline taxonomy."""
    return UpstreamFailed(
        f"Completion service failed for {contract.full_name}: {error}",
        status=error.status,
        category=error.category,
        raw=error.raw,
        contract=contract.full_name,
    )


async def generate_exam(
    request: ExamRequest,
    client: CompletionClient,
    config: GenerationConfig | None = None,
) -> Exam:
    """Generate a mock exam from study material.

    Args:
        request: Validated request (material, level, course, type filter,
            count, language, optional domain hint)
        client: Completion client
        config: Generation settings (loaded from app config if not provided)

    Returns:
        Exam with exactly request.count questions

    Raises:
        UpstreamFailed: Transport or service error (not retried here)
        GenerationInvalid: Output still invalid after the last attempt
    """
    if config is None:
        config = load_app_config().generation

    contract = build_exam_contract(request.count, request.type_filter)

    material = request.material
    if len(material) > config.max_material_chars:
        logger.warning(
            "exam_material_truncated",
            chars=len(material),
            limit=config.max_material_chars,
        )
        material = material[: config.max_material_chars]

    conversation = Conversation(
        turns=build_generation_messages(
            material=material,
            level=request.level,
            course=request.course,
            type_filter=request.type_filter,
            count=request.count,
            language=request.language,
            domain=request.domain,
        ),
        max_attempts=max(1, config.max_attempts),
    )

    payload: dict[str, Any] | None = None
    violation = "no attempt made"

    for attempt in conversation.next_attempts():
        logger.info(
            "exam_generation_attempt",
            attempt=attempt,
            max_attempts=conversation.max_attempts,
            count=request.count,
            type_filter=request.type_filter,
            contract=contract.full_name,
        )

        try:
            payload = await client.complete(
                contract,
                list(conversation.turns),
                temperature=config.temperature,
            )
        except LLMError as e:
            logger.error(
                "exam_generation_upstream_failed",
                attempt=attempt,
                error=str(e),
                category=e.category,
            )
            raise _upstream_failed(e, contract) from e

        violation = validate_exam_payload(payload, request.count, request.type_filter)
        if violation is None:
            exam = build_exam(payload, request)
            logger.info(
                "exam_generated",
                attempts=attempt,
                questions=len(exam.questions),
                max_points=exam.max_points,
            )
            return exam

        logger.warning(
            "exam_validation_failed",
            attempt=attempt,
            violation=violation,
        )
        if not conversation.exhausted:
            conversation.add_correction(payload, violation, request.count, request.language)

    raise GenerationInvalid(
        violation=violation,
        last_attempt=payload,
        attempts=conversation.attempts,
        contract=contract.full_name,
    )
