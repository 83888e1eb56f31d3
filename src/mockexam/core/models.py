"""Data model for exams, answers and grade reports.

Wire format (JSON) uses camelCase keys matching the output contracts:
- Question: id, type, points, prompt, options, correctIndex, rubric, modelAnswer
- Exam: title, level, questions
- Answer: questionId, response
- PerQuestionResult: questionId, pointsAwarded, maxPoints, feedback, modelAnswer
- GradeReport: totalPoints, maxPoints, perQuestion

Type-specific fields are always present: non-mc questions carry
options=[] and correctIndex=-1 (sentinel values).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

# =============================================================================
# TYPES
# =============================================================================

QuestionType = Literal["mc", "short", "essay"]
TypeFilter = Literal["mix", "mc", "short", "essay"]
Level = Literal["E", "C", "A"]
GradingPath = Literal["auto", "llm", "missing"]

QUESTION_TYPES: tuple[str, ...] = ("mc", "short", "essay")
TYPE_FILTERS: tuple[str, ...] = ("mix", "mc", "short", "essay")
LEVELS: tuple[str, ...] = ("E", "C", "A")

NO_ANSWER_INDEX = -1
MIN_OPTIONS = 2
MAX_OPTIONS = 6
CHOICE_LETTERS = "ABCDEF"


def _as_number(value: Any, default: float) -> float:
    """Coerce value to a finite float, or default."""
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number or number in (float("inf"), float("-inf")):
        return default
    return number


def _as_index(value: Any) -> int:
    """Coerce an answer key to an int index (sentinel -1 when unusable).

    Accepts ints, digit strings and A-F letters.
    """
    if isinstance(value, bool) or value is None:
        return NO_ANSWER_INDEX
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
        if len(stripped) == 1 and stripped.upper() in CHOICE_LETTERS:
            return CHOICE_LETTERS.index(stripped.upper())
    return NO_ANSWER_INDEX


def _compact(number: float) -> float | int:
    """Render whole numbers as int for JSON output."""
    return int(number) if float(number).is_integer() else number


# =============================================================================
# EXAM
# =============================================================================


@dataclass(frozen=True)
class Question:
    """A single exam question.

    Values parsed from client input are not validated here; the generator
    checks the mc/non-mc invariants and the scorer tolerates a broken
    answer key.
    """

    id: str
    type: str
    points: float
    prompt: str
    options: tuple[str, ...] = ()
    correct_index: int = NO_ANSWER_INDEX
    rubric: str = ""
    model_answer: str = ""

    @property
    def is_closed_form(self) -> bool:
        """True for multiple-choice questions."""
        return self.type == "mc"

    @property
    def has_answer_key(self) -> bool:
        """True when correct_index points at an existing option."""
        return 0 <= self.correct_index < len(self.options)

    @property
    def correct_option_text(self) -> str | None:
        """Text of the correct option, or None without a valid key."""
        if not self.has_answer_key:
            return None
        return self.options[self.correct_index]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "type": self.type,
            "points": _compact(self.points),
            "prompt": self.prompt,
            "options": list(self.options),
            "correctIndex": self.correct_index,
            "rubric": self.rubric,
            "modelAnswer": self.model_answer,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Question:
        """Build from wire format.

        Also accepts "question" for the prompt and "correct" (letter) for the
        answer key, as older clients send them.
        """
        options = data.get("options") or []
        if not isinstance(options, (list, tuple)):
            options = []

        if "correctIndex" in data:
            correct_index = _as_index(data.get("correctIndex"))
        else:
            correct_index = _as_index(data.get("correct"))

        points = _as_number(data.get("points"), 1.0)
        if points <= 0:
            points = 1.0

        return cls(
            id=str(data.get("id") or "").strip(),
            type=str(data.get("type") or "").strip(),
            points=points,
            prompt=str(data.get("prompt") or data.get("question") or ""),
            options=tuple(str(o) for o in options),
            correct_index=correct_index,
            rubric=str(data.get("rubric") or ""),
            model_answer=str(data.get("modelAnswer") or data.get("model_answer") or ""),
        )


@dataclass(frozen=True)
class Exam:
    """A generated mock exam."""

    title: str
    level: str
    questions: tuple[Question, ...]

    @property
    def max_points(self) -> float:
        """Sum of question points."""
        return sum(q.points for q in self.questions)

    def question_ids(self) -> list[str]:
        """Question ids in exam order."""
        return [q.id for q in self.questions]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "title": self.title,
            "level": self.level,
            "questions": [q.to_dict() for q in self.questions],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Exam:
        """Build from wire format."""
        raw_questions = data.get("questions") or []
        if not isinstance(raw_questions, list):
            raw_questions = []
        return cls(
            title=str(data.get("title") or ""),
            level=str(data.get("level") or ""),
            questions=tuple(
                Question.from_dict(q) for q in raw_questions if isinstance(q, dict)
            ),
        )


# =============================================================================
# ANSWERS AND RESULTS
# =============================================================================


@dataclass(frozen=True)
class Answer:
    """A student's response to one question."""

    question_id: str
    response: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"questionId": self.question_id, "response": self.response}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Answer:
        """Build from wire format ("questionId" or "id")."""
        question_id = data.get("questionId", data.get("id", ""))
        response = data.get("response", data.get("answer"))
        return cls(
            question_id=str(question_id or "").strip(),
            response="" if response is None else str(response),
        )


@dataclass(frozen=True)
class OpenItem:
    """An open-form question paired with the student's answer."""

    question: Question
    answer: Answer

    @property
    def is_blank(self) -> bool:
        """True when the student left the answer empty."""
        return not self.answer.response.strip()


@dataclass(frozen=True)
class PerQuestionResult:
    """Grade for a single question."""

    question_id: str
    points_awarded: float
    max_points: float
    feedback: str
    model_answer: str
    grading_path: GradingPath = "auto"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "questionId": self.question_id,
            "pointsAwarded": _compact(self.points_awarded),
            "maxPoints": _compact(self.max_points),
            "feedback": self.feedback,
            "modelAnswer": self.model_answer,
            "gradingPath": self.grading_path,
        }


@dataclass(frozen=True)
class ScoringResult:
    """Output of the answer-key pass: scored mc items and pending open items."""

    closed_results: list[PerQuestionResult] = field(default_factory=list)
    open_items: list[OpenItem] = field(default_factory=list)


@dataclass(frozen=True)
class GradeReport:
    """Complete grading report for one exam submission.

    Totals are always the sums of the per-question ledger.
    """

    total_points: float
    max_points: float
    per_question: tuple[PerQuestionResult, ...]

    @classmethod
    def from_results(cls, results: list[PerQuestionResult]) -> GradeReport:
        """Build a report, recomputing totals from the per-question ledger."""
        return cls(
            total_points=sum(r.points_awarded for r in results),
            max_points=sum(r.max_points for r in results),
            per_question=tuple(results),
        )

    @property
    def percentage(self) -> float:
        """Share of points awarded (0.0 when max is zero)."""
        return self.total_points / self.max_points if self.max_points > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "totalPoints": _compact(self.total_points),
            "maxPoints": _compact(self.max_points),
            "percentage": round(self.percentage, 4),
            "perQuestion": [r.to_dict() for r in self.per_question],
        }


# =============================================================================
# STUDENT CONTEXT
# =============================================================================


@dataclass(frozen=True)
class HistoryEntry:
    """One past exam result."""

    title: str = ""
    course: str = ""
    level: str = ""
    total_points: float = 0.0
    max_points: float = 0.0
    date: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "title": self.title,
            "course": self.course,
            "level": self.level,
            "totalPoints": _compact(self.total_points),
            "maxPoints": _compact(self.max_points),
            "date": self.date,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HistoryEntry:
        """Build from wire format."""
        return cls(
            title=str(data.get("title") or ""),
            course=str(data.get("course") or ""),
            level=str(data.get("level") or ""),
            total_points=_as_number(data.get("totalPoints", data.get("total_points")), 0.0),
            max_points=_as_number(data.get("maxPoints", data.get("max_points")), 0.0),
            date=str(data.get("date") or ""),
        )


@dataclass(frozen=True)
class MistakeEntry:
    """One past wrong or partially wrong answer."""

    question_id: str = ""
    type: str = ""
    prompt: str = ""
    response: str = ""
    feedback: str = ""
    model_answer: str = ""
    points: float = 0.0
    max_points: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.question_id,
            "type": self.type,
            "question": self.prompt,
            "userAnswer": self.response,
            "feedback": self.feedback,
            "modelAnswer": self.model_answer,
            "points": _compact(self.points),
            "maxPoints": _compact(self.max_points),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MistakeEntry:
        """Build from wire format (camelCase or snake_case keys)."""
        return cls(
            question_id=str(data.get("id") or data.get("questionId") or ""),
            type=str(data.get("type") or data.get("qType") or ""),
            prompt=str(data.get("question") or data.get("prompt") or ""),
            response=str(data.get("userAnswer") or data.get("user_answer") or ""),
            feedback=str(data.get("feedback") or ""),
            model_answer=str(data.get("modelAnswer") or data.get("model_answer") or ""),
            points=_as_number(data.get("points"), 0.0),
            max_points=_as_number(data.get("maxPoints", data.get("max_points")), 0.0),
        )


@dataclass(frozen=True)
class StudentContext:
    """Optional personalization passed to the open-form grader."""

    history: tuple[HistoryEntry, ...] = ()
    mistakes: tuple[MistakeEntry, ...] = ()

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to personalize with."""
        return not self.history and not self.mistakes

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StudentContext:
        """Build from wire format."""
        history = data.get("history") or []
        mistakes = data.get("mistakes") or []
        return cls(
            history=tuple(HistoryEntry.from_dict(h) for h in history if isinstance(h, dict)),
            mistakes=tuple(MistakeEntry.from_dict(m) for m in mistakes if isinstance(m, dict)),
        )


# =============================================================================
# TRAINING MATERIAL
# =============================================================================


@dataclass(frozen=True)
class FocusTopic:
    """A weakness to drill, with short exercises."""

    topic: str
    why: str
    micro_drills: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "topic": self.topic,
            "why": self.why,
            "microDrills": list(self.micro_drills),
        }


@dataclass(frozen=True)
class TrainingMaterial:
    """Remedial study material derived from past mistakes."""

    material_text: str
    focus_topics: tuple[FocusTopic, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "materialText": self.material_text,
            "focusTopics": [t.to_dict() for t in self.focus_topics],
        }
