"""Training material synthesis from past mistakes.

Takes a bounded window of the student's most recent mistakes and asks the
completion service, under the training_material_v1 contract, for compact
remedial material plus a handful of focus topics with micro drills. The
result can be pasted back as material for a new, targeted mock exam.

One call, no retry.
"""

from __future__ import annotations

import time
from typing import Any

import structlog

from mockexam.config.app_config import TrainingConfig, load_app_config
from mockexam.core.contracts import build_training_contract
from mockexam.core.errors import GenerationInvalid, InvalidRequest, UpstreamFailed
from mockexam.core.models import FocusTopic, MistakeEntry, TrainingMaterial
from mockexam.llm.client import CompletionClient, LLMError
from mockexam.prompts.builder import build_training_messages
from mockexam.schemas import TrainingRequest

logger = structlog.get_logger(__name__)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def _cap(text: str, max_chars: int) -> str:
    return text if len(text) <= max_chars else text[:max_chars]


def compact_mistakes(
    mistakes: list[MistakeEntry],
    window: int = 40,
    field_max_chars: int = 1200,
    model_answer_max_chars: int = 1600,
) -> list[dict[str, Any]]:
    """Most recent mistakes in wire format with capped text fields.

    Args:
        mistakes: Mistakes in submission order (oldest first)
        window: How many of the most recent mistakes to keep
        field_max_chars: Cap for question, answer and feedback text
        model_answer_max_chars: Cap for the model answer

    Returns:
        List of mistake dicts, oldest first
    """
    recent = mistakes[-window:] if window > 0 else []
    compacted = []
    for mistake in recent:
        entry = mistake.to_dict()
        for key in ("question", "userAnswer", "feedback"):
            entry[key] = _cap(entry[key], field_max_chars)
        entry["modelAnswer"] = _cap(entry["modelAnswer"], model_answer_max_chars)
        compacted.append(entry)
    return compacted


def parse_training_payload(payload: dict[str, Any]) -> TrainingMaterial | None:
    """Build TrainingMaterial from a contract payload.

    Returns:
        TrainingMaterial, or None when there is no usable material text
    """
    material_text = payload.get("materialText")
    if not isinstance(material_text, str) or not material_text.strip():
        return None

    focus_topics: list[FocusTopic] = []
    raw_topics = payload.get("focusTopics")
    if isinstance(raw_topics, list):
        for raw in raw_topics:
            if not isinstance(raw, dict):
                continue
            topic = str(raw.get("topic") or "").strip()
            if not topic:
                continue
            drills = raw.get("microDrills")
            if not isinstance(drills, list):
                drills = []
            focus_topics.append(
                FocusTopic(
                    topic=topic,
                    why=str(raw.get("why") or "").strip(),
                    micro_drills=tuple(str(d).strip() for d in drills if str(d).strip()),
                )
            )

    return TrainingMaterial(material_text=material_text.strip(), focus_topics=tuple(focus_topics))


# =============================================================================
# MAIN FUNCTION
# =============================================================================


async def synthesize_training_material(
    request: TrainingRequest,
    client: CompletionClient,
    config: TrainingConfig | None = None,
) -> TrainingMaterial:
    """Synthesize remedial material from the student's mistakes.

    Args:
        request: Validated request (mistakes, course, level, language)
        client: Completion client (usually configured with the training model)
        config: Training settings (loaded from app config if not provided)

    Returns:
        TrainingMaterial with material text and focus topics

    Raises:
        InvalidRequest: No mistakes to work from
        UpstreamFailed: Transport or service error
        GenerationInvalid: Response has no usable material text
    """
    if config is None:
        config = load_app_config().training

    mistakes = compact_mistakes(
        request.to_mistakes(),
        window=config.mistakes_window,
        field_max_chars=config.field_max_chars,
        model_answer_max_chars=config.model_answer_max_chars,
    )
    if not mistakes:
        raise InvalidRequest("No mistakes to build training material from")

    contract = build_training_contract()
    payload_in = {
        "course": request.course,
        "level": request.level,
        "mistakes": mistakes,
    }
    messages = build_training_messages(payload_in, request.language)

    start_time = time.time()
    logger.info(
        "training_material_started",
        mistakes=len(mistakes),
        submitted=len(request.mistakes),
        contract=contract.full_name,
    )

    try:
        payload = await client.complete(contract, messages, temperature=config.temperature)
    except LLMError as e:
        logger.error("training_material_upstream_failed", error=str(e), category=e.category)
        raise UpstreamFailed(
            f"Completion service failed for {contract.full_name}: {e}",
            status=e.status,
            category=e.category,
            raw=e.raw,
            contract=contract.full_name,
        ) from e

    material = parse_training_payload(payload)
    if material is None:
        raise GenerationInvalid(
            violation="materialText is missing or empty",
            last_attempt=payload,
            attempts=1,
            contract=contract.full_name,
        )

    logger.info(
        "training_material_generated",
        chars=len(material.material_text),
        focus_topics=len(material.focus_topics),
        time_ms=int((time.time() - start_time) * 1000),
    )

    return material
