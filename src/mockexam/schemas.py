"""Pydantic request models for the pipeline entry points.

Requests are plain data (e.g. decoded JSON from a caller); these models
validate their shape and allowed values. Aliases accept the camelCase keys
older clients send (qType, numQuestions, lang).
"""

from __future__ import annotations

from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from mockexam.core.errors import InvalidRequest
from mockexam.core.models import Answer, Exam, MistakeEntry, StudentContext

MIN_QUESTIONS = 3
MAX_QUESTIONS = 12

RequestT = TypeVar("RequestT", bound=BaseModel)


class _RequestBase(BaseModel):
    """Shared config: accept field names and aliases, ignore unknown keys."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# =============================================================================
# GENERATION
# =============================================================================


class ExamRequest(_RequestBase):
    """Request to generate one mock exam."""

    material: str = Field(..., min_length=1, alias="pastedText")
    level: Literal["E", "C", "A"] = "C"
    course: str = Field(default="", max_length=200)
    type_filter: Literal["mix", "mc", "short", "essay"] = Field(default="mix", alias="qType")
    count: int = Field(default=MAX_QUESTIONS, ge=MIN_QUESTIONS, le=MAX_QUESTIONS, alias="numQuestions")
    language: Literal["sv", "en"] = Field(default="sv", alias="lang")
    domain: Literal["general", "math"] | None = None

    @field_validator("material", "course", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


# =============================================================================
# GRADING
# =============================================================================


class GradeRequest(_RequestBase):
    """Request to grade answers against a previously generated exam."""

    material: str = Field(..., min_length=1, alias="pastedText")
    exam: dict[str, Any]
    answers: list[dict[str, Any]] = Field(default_factory=list)
    level: Literal["E", "C", "A"] | None = None
    course: str = Field(default="", max_length=200)
    language: Literal["sv", "en"] = Field(default="sv", alias="lang")
    domain: Literal["general", "math"] | None = None
    context: dict[str, Any] | None = None

    @field_validator("material", "course", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("exam")
    @classmethod
    def _has_questions(cls, value: dict[str, Any]) -> dict[str, Any]:
        questions = value.get("questions")
        if not isinstance(questions, list) or not questions:
            raise ValueError("exam must contain a non-empty questions list")
        return value

    def to_exam(self) -> Exam:
        """Exam held by the caller since generation."""
        return Exam.from_dict(self.exam)

    def to_answers(self) -> list[Answer]:
        """Submitted answers."""
        return [Answer.from_dict(a) for a in self.answers]

    def to_context(self) -> StudentContext | None:
        """Optional personalization context."""
        if not self.context:
            return None
        return StudentContext.from_dict(self.context)

    @property
    def effective_level(self) -> str:
        """Level from the request, falling back to the exam's own level."""
        return self.level or str(self.exam.get("level") or "")


# =============================================================================
# TRAINING MATERIAL
# =============================================================================


class TrainingRequest(_RequestBase):
    """Request to synthesize training material from past mistakes."""

    mistakes: list[dict[str, Any]] = Field(..., min_length=1)
    course: str = Field(default="", max_length=200)
    level: str = Field(default="", max_length=10)
    language: Literal["sv", "en"] = Field(default="sv", alias="lang")

    def to_mistakes(self) -> list[MistakeEntry]:
        """Mistake entries in submission order."""
        return [MistakeEntry.from_dict(m) for m in self.mistakes]


# =============================================================================
# PARSING
# =============================================================================


def parse_request(model: type[RequestT], data: Any) -> RequestT:
    """Validate raw request data.

    Raises:
        InvalidRequest: With one message per failing field
    """
    if not isinstance(data, dict):
        raise InvalidRequest("Request body must be a JSON object")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise InvalidRequest(f"Invalid {model.__name__}: {'; '.join(errors)}", errors) from e
