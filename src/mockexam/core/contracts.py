"""Output contracts for the completion service.

A contract is a strict JSON schema the service is instructed to fill.
Contracts are versioned through their name (mock_exam_v1, ...).

Every property is required and every object forbids extra keys. Fields that
only apply to one question type are still present on all questions, with
sentinel values for the others (options=[] and correctIndex=-1). The schemas
never use oneOf/anyOf alternatives: strict structured-output backends do not
reliably enforce "exactly one of several shapes", so a single flat item shape
is used and type-specific rules are checked after the call.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mockexam.core.models import (
    MAX_OPTIONS,
    NO_ANSWER_INDEX,
    QUESTION_TYPES,
)

EXAM_CONTRACT = "mock_exam"
GRADING_CONTRACT = "open_grading"
TRAINING_CONTRACT = "training_material"
CONTRACT_VERSION = 1

# Generated mc questions always carry four options (A-D)
MC_OPTION_COUNT = 4
MIN_POINTS = 1
MAX_POINTS = 10


@dataclass(frozen=True)
class Contract:
    """A named, versioned strict schema."""

    name: str
    version: int
    schema: dict[str, Any]

    @property
    def full_name(self) -> str:
        """Versioned name, e.g. mock_exam_v1."""
        return f"{self.name}_v{self.version}"


def _strict_object(properties: dict[str, Any]) -> dict[str, Any]:
    """Object schema with every property required and no extra keys."""
    return {
        "type": "object",
        "additionalProperties": False,
        "properties": properties,
        "required": list(properties),
    }


def _question_schema(type_filter: str) -> dict[str, Any]:
    """Flat question item schema for a type filter."""
    if type_filter == "mix":
        allowed_types = list(QUESTION_TYPES)
    else:
        allowed_types = [type_filter]

    if type_filter == "mc":
        options = {
            "type": "array",
            "items": {"type": "string"},
            "minItems": MC_OPTION_COUNT,
            "maxItems": MC_OPTION_COUNT,
        }
        correct_index = {
            "type": "integer",
            "minimum": 0,
            "maximum": MC_OPTION_COUNT - 1,
        }
    elif type_filter in ("short", "essay"):
        options = {"type": "array", "items": {"type": "string"}, "maxItems": 0}
        correct_index = {"type": "integer", "enum": [NO_ANSWER_INDEX]}
    else:
        options = {"type": "array", "items": {"type": "string"}, "maxItems": MAX_OPTIONS}
        correct_index = {
            "type": "integer",
            "minimum": NO_ANSWER_INDEX,
            "maximum": MAX_OPTIONS - 1,
        }

    return _strict_object(
        {
            "id": {"type": "string"},
            "type": {"type": "string", "enum": allowed_types},
            "points": {"type": "integer", "minimum": MIN_POINTS, "maximum": MAX_POINTS},
            "prompt": {"type": "string"},
            "options": options,
            "correctIndex": correct_index,
            "rubric": {"type": "string"},
            "modelAnswer": {"type": "string"},
        }
    )


def build_exam_contract(count: int, type_filter: str) -> Contract:
    """Contract for exactly one exam of `count` questions.

    Args:
        count: Exact number of questions
        type_filter: mix, mc, short or essay

    Returns:
        Contract named mock_exam_v1
    """
    schema = _strict_object(
        {
            "title": {"type": "string"},
            "level": {"type": "string", "enum": ["E", "C", "A"]},
            "questions": {
                "type": "array",
                "minItems": count,
                "maxItems": count,
                "items": _question_schema(type_filter),
            },
        }
    )
    return Contract(name=EXAM_CONTRACT, version=CONTRACT_VERSION, schema=schema)


def build_grading_contract(item_count: int) -> Contract:
    """Contract for grading exactly `item_count` open-form answers.

    The upstream total is part of the contract but advisory only; the merged
    report recomputes it from the items.
    """
    item = _strict_object(
        {
            "id": {"type": "string"},
            "points": {"type": "integer", "minimum": 0},
            "maxPoints": {"type": "integer", "minimum": 1},
            "feedback": {"type": "string"},
            "modelAnswer": {"type": "string"},
        }
    )
    schema = _strict_object(
        {
            "totalPoints": {"type": "integer", "minimum": 0},
            "perQuestion": {
                "type": "array",
                "minItems": item_count,
                "maxItems": item_count,
                "items": item,
            },
        }
    )
    return Contract(name=GRADING_CONTRACT, version=CONTRACT_VERSION, schema=schema)


def build_training_contract() -> Contract:
    """Contract for remedial training material."""
    topic = _strict_object(
        {
            "topic": {"type": "string"},
            "why": {"type": "string"},
            "microDrills": {"type": "array", "items": {"type": "string"}},
        }
    )
    schema = _strict_object(
        {
            "materialText": {"type": "string"},
            "focusTopics": {"type": "array", "items": topic},
        }
    )
    return Contract(name=TRAINING_CONTRACT, version=CONTRACT_VERSION, schema=schema)
