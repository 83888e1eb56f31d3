"""Shared fixtures for the mock exam pipeline tests.

The completion client is always a mock: `complete` is an AsyncMock whose
return value (or side_effect) each test sets to the payload the service
would have produced.
"""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from mockexam.config.app_config import (
    GenerationConfig,
    GradingConfig,
    TrainingConfig,
    clear_config_cache,
)

MATERIAL = (
    "Frankrikes huvudstad är Paris. Fotosyntesen omvandlar ljusenergi till "
    "kemisk energi och bildar glukos och syre av koldioxid och vatten."
)


def make_question(
    question_id: str,
    q_type: str = "mc",
    points: int = 1,
    prompt: str | None = None,
    options: list[str] | None = None,
    correct_index: int | None = None,
) -> dict[str, Any]:
    """Question in wire format, with sensible defaults per type."""
    if q_type == "mc":
        options = options if options is not None else ["Berlin", "Paris", "Rome", "Madrid"]
        correct_index = 1 if correct_index is None else correct_index
    else:
        options = options if options is not None else []
        correct_index = -1 if correct_index is None else correct_index
    return {
        "id": question_id,
        "type": q_type,
        "points": points,
        "prompt": prompt or f"Question {question_id}?",
        "options": options,
        "correctIndex": correct_index,
        "rubric": f"Rubric for {question_id}",
        "modelAnswer": f"Model answer for {question_id}",
    }


def make_exam_payload(count: int, q_type: str = "mc", title: str = "Prov") -> dict[str, Any]:
    """Valid mock_exam_v1 payload with `count` questions.

    q_type "mix" cycles mc, short, essay.
    """
    cycle = ["mc", "short", "essay"]
    questions = []
    for n in range(1, count + 1):
        this_type = cycle[(n - 1) % 3] if q_type == "mix" else q_type
        questions.append(make_question(f"q{n}", this_type, points=2 if this_type != "mc" else 1))
    return {"title": title, "level": "C", "questions": questions}


@pytest.fixture(autouse=True)
def _fresh_config_cache():
    """Every test starts without a cached app config."""
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def mock_client() -> MagicMock:
    """Completion client mock with an async `complete`."""
    client = MagicMock()
    client.complete = AsyncMock()
    return client


@pytest.fixture
def generation_config() -> GenerationConfig:
    return GenerationConfig(max_attempts=3, temperature=0.2, max_material_chars=120000)


@pytest.fixture
def grading_config() -> GradingConfig:
    return GradingConfig()


@pytest.fixture
def training_config() -> TrainingConfig:
    return TrainingConfig()


@pytest.fixture
def sample_exam() -> dict[str, Any]:
    """Four-question exam: two mc, one short, one essay."""
    return {
        "title": "Blandat prov",
        "level": "C",
        "questions": [
            make_question("q1", "mc", points=1, prompt="Vad är Frankrikes huvudstad?"),
            make_question(
                "q2",
                "mc",
                points=2,
                prompt="Vilken gas bildas vid fotosyntesen?",
                options=["Kväve", "Syre", "Helium", "Argon"],
                correct_index=1,
            ),
            make_question("q3", "short", points=3, prompt="Vad behövs för fotosyntes?"),
            make_question("q4", "essay", points=5, prompt="Förklara fotosyntesens betydelse."),
        ],
    }


@pytest.fixture
def sample_answers() -> list[dict[str, Any]]:
    """Answers to sample_exam: q1 right, q2 wrong, q3 and q4 answered."""
    return [
        {"questionId": "q1", "response": "B) Paris"},
        {"questionId": "q2", "response": "a"},
        {"questionId": "q3", "response": "Ljus, vatten och koldioxid."},
        {"questionId": "q4", "response": "Fotosyntesen ger syre och energi till ekosystem."},
    ]


@pytest.fixture
def grading_payload() -> dict[str, Any]:
    """open_grading_v1 payload for q3 and q4 of sample_exam."""
    return {
        "totalPoints": 6,
        "perQuestion": [
            {
                "id": "q3",
                "points": 2,
                "maxPoints": 3,
                "feedback": "Nästan komplett.",
                "modelAnswer": "Ljus, vatten och koldioxid (och klorofyll).",
            },
            {
                "id": "q4",
                "points": 4,
                "maxPoints": 5,
                "feedback": "Bra resonemang.",
                "modelAnswer": "Fotosyntesen är grunden för näringskedjor...",
            },
        ],
    }


@pytest.fixture
def material() -> str:
    return MATERIAL


@pytest.fixture
def question_factory():
    """make_question as a fixture."""
    return make_question


@pytest.fixture
def exam_payload_factory():
    """make_exam_payload as a fixture."""
    return make_exam_payload
