"""Instruction builder for generation, grading and training prompts.

All natural-language text lives in one phrase table keyed by language
(sv, en). Domain hint (general, math) and exam level (E, C, A) select extra
fragments. Builders compose fragments by rule; there is one builder per
conversation kind, not one prompt per variant.

Usage:
    from mockexam.prompts.builder import build_generation_messages

    messages = build_generation_messages(
        material=text, level="C", course="Biologi 1",
        type_filter="mix", count=8, language="sv",
    )
"""

from __future__ import annotations

import json
import re
from typing import Any, Literal

from mockexam.llm.client import Message

Language = Literal["sv", "en"]
DomainHint = Literal["general", "math"]

LANGUAGES: tuple[str, ...] = ("sv", "en")
DOMAIN_HINTS: tuple[str, ...] = ("general", "math")

MATH_COURSE_PATTERN = re.compile(
    r"\b(math|matematik|mathematics|matte|ma\s?[1-5][a-c]?|fysik|physics|kemi|chemistry|"
    r"statisti(k|cs)|algebra|calculus|analys|geometri|geometry)\b",
    re.IGNORECASE,
)

# =============================================================================
# PHRASE TABLE
# =============================================================================

PHRASES: dict[str, dict[str, Any]] = {
    "en": {
        "generation_system": [
            "You are an exam generator for high-school style mock exams.",
            "Output MUST match the provided JSON schema exactly (strict).",
            "Generate questions only from the provided study material.",
            "No extra keys. No markdown. No explanations outside JSON.",
        ],
        "write_in": "Write all questions, rubrics and model answers in English.",
        "course": "Course/subject: {course}",
        "level": {
            "E": "Target level: E (basic). Test core facts and straightforward applications.",
            "C": "Target level: C (intermediate). Require explanations and multi-step reasoning.",
            "A": "Target level: A (advanced). Require analysis, generalisation and well-argued conclusions.",
        },
        "domain": {
            "general": [],
            "math": [
                "This is a mathematics/science course: include calculation problems.",
                "Write formulas in plain text (x^2, sqrt(x), a/b).",
                "Model answers must show each step and state the final answer.",
            ],
        },
        "type_rule": {
            "mix": "Question type rule: use a mix of types (mc, short, essay).",
            "mc": "Question type rule: ONLY multiple-choice questions (type mc).",
            "short": "Question type rule: ONLY short-answer questions (type short).",
            "essay": "Question type rule: ONLY essay/long-answer questions (type essay).",
        },
        "count": "Number of questions: EXACTLY {count}",
        "create": "Create a mock exam.",
        "material_heading": "Study material (only source):",
        "rules_heading": "Rules:",
        "generation_rules": [
            "- Return exactly {count} questions, with ids q1..q{count}.",
            "- Each question must have realistic points (1-10).",
            "- mc questions: exactly 4 options and correctIndex 0-3 pointing at the correct option.",
            "- short and essay questions: options must be [] and correctIndex must be -1.",
            "- Every question needs a rubric and a model answer that would get full points.",
        ],
        "correction": (
            "Your last output was invalid: {violation}. Regenerate the whole exam with "
            "exactly {count} questions and follow the schema and rules exactly."
        ),
        "grading_system": [
            "You are a strict exam grader.",
            "Use ONLY the provided study material, the question, its rubric and model answer when judging.",
            "Return JSON only, matching the schema (strict).",
            "For each item: give points, feedback, and a full-score model answer.",
            "Be concise but complete.",
        ],
        "grading_domain": {
            "general": [],
            "math": [
                "Award partial credit for a correct method even with small arithmetic slips.",
                "Check the final answer and units.",
            ],
        },
        "grade": "Grade the student's answers.",
        "items_heading": "Items to grade:",
        "grading_rules": [
            "- Return exactly one result per item, using the item's id.",
            "- points must be between 0 and the item's maxPoints.",
            "- maxPoints must equal the item's maxPoints.",
            "- Always provide a modelAnswer that would get full points.",
            "- Write feedback and model answers in English.",
        ],
        "history_heading": "Student's recent results (most recent last):",
        "mistakes_heading": "Student's recent mistakes (use them to personalise feedback):",
        "training_system": [
            "You are an elite exam-training coach. Create training material strictly tailored to the student's mistakes.",
            "Goals:",
            "1) Identify what the student systematically misses (concepts, method, reasoning, precision, structure).",
            "2) Produce compact but complete material (headings, bullet points, short rules/strategies, 2-4 micro-examples).",
            "3) Optimise it so an exam generator can produce new questions targeting THESE weaknesses.",
            "Rules:",
            "- Use only the mistake bundle (question, feedback, model answer). If facts are missing, write 'Insufficient data' and stay general.",
            "- Be clear and concrete. No fluff.",
            "- Provide 3-6 focus topics. Each topic must include 3 micro drills.",
            "Return only JSON per schema.",
        ],
        "feedback": {
            "correct": "Correct.",
            "incorrect": "Incorrect. The correct answer is {letter}) {option}.",
            "no_answer": "No answer given. The correct answer is {letter}) {option}.",
            "unreadable": "Answer could not be read as an option (A-{last}). The correct answer is {letter}) {option}.",
            "missing_key": "No valid answer key for this question; it cannot be scored automatically.",
            "blank": "No answer given.",
            "omitted": "The grader returned no result for this answer; scored as zero.",
            "not_graded": "This question was not graded; scored as zero.",
        },
    },
    "sv": {
        "generation_system": [
            "Du är en provgenerator för gymnasieliknande övningsprov.",
            "Svaret MÅSTE följa det angivna JSON-schemat exakt (strikt).",
            "Skapa frågor enbart utifrån det angivna studiematerialet.",
            "Inga extra nycklar. Ingen markdown. Inga förklaringar utanför JSON.",
        ],
        "write_in": "Skriv alla frågor, bedömningsmallar och modellsvar på svenska.",
        "course": "Kurs/ämne: {course}",
        "level": {
            "E": "Nivå: E (grundläggande). Pröva centrala fakta och enkla tillämpningar.",
            "C": "Nivå: C (fördjupad). Kräv förklaringar och resonemang i flera steg.",
            "A": "Nivå: A (avancerad). Kräv analys, generalisering och välgrundade slutsatser.",
        },
        "domain": {
            "general": [],
            "math": [
                "Detta är en matematik-/naturvetenskapskurs: ta med beräkningsuppgifter.",
                "Skriv formler i ren text (x^2, sqrt(x), a/b).",
                "Modellsvar ska visa varje steg och ange slutsvaret.",
            ],
        },
        "type_rule": {
            "mix": "Frågetyper: blanda typer (mc, short, essay).",
            "mc": "Frågetyper: ENDAST flervalsfrågor (typ mc).",
            "short": "Frågetyper: ENDAST kortsvarsfrågor (typ short).",
            "essay": "Frågetyper: ENDAST essä-/långsvarsfrågor (typ essay).",
        },
        "count": "Antal frågor: EXAKT {count}",
        "create": "Skapa ett övningsprov.",
        "material_heading": "Studiematerial (enda källa):",
        "rules_heading": "Regler:",
        "generation_rules": [
            "- Returnera exakt {count} frågor, med id q1..q{count}.",
            "- Varje fråga ska ha realistisk poäng (1-10).",
            "- mc-frågor: exakt 4 alternativ och correctIndex 0-3 som pekar på rätt alternativ.",
            "- short- och essay-frågor: options ska vara [] och correctIndex ska vara -1.",
            "- Varje fråga behöver en bedömningsmall (rubric) och ett modellsvar som ger full poäng.",
        ],
        "correction": (
            "Ditt förra svar var ogiltigt: {violation}. Generera hela provet igen med "
            "exakt {count} frågor och följ schemat och reglerna exakt."
        ),
        "grading_system": [
            "Du är en strikt provrättare.",
            "Använd ENDAST studiematerialet, frågan, dess bedömningsmall och modellsvar vid bedömningen.",
            "Returnera endast JSON enligt schemat (strikt).",
            "För varje uppgift: ge poäng, feedback och ett modellsvar som ger full poäng.",
            "Var koncis men fullständig.",
        ],
        "grading_domain": {
            "general": [],
            "math": [
                "Ge delpoäng för korrekt metod även vid små räknefel.",
                "Kontrollera slutsvar och enheter.",
            ],
        },
        "grade": "Rätta elevens svar.",
        "items_heading": "Uppgifter att rätta:",
        "grading_rules": [
            "- Returnera exakt ett resultat per uppgift, med uppgiftens id.",
            "- points ska ligga mellan 0 och uppgiftens maxPoints.",
            "- maxPoints ska vara lika med uppgiftens maxPoints.",
            "- Ge alltid ett modelAnswer som skulle ge full poäng.",
            "- Skriv feedback och modellsvar på svenska.",
        ],
        "history_heading": "Elevens senaste resultat (senaste sist):",
        "mistakes_heading": "Elevens senaste misstag (använd dem för att anpassa feedbacken):",
        "training_system": [
            "Du är en elitcoach för provträning. Skapa ett träningsmaterial som är strikt anpassat efter elevens misstag.",
            "Mål:",
            "1) Identifiera vad eleven systematiskt missar (begrepp, metod, resonemang, precision, struktur).",
            "2) Skapa ett kompakt men komplett material (rubriker, punktlistor, korta regler/strategier, 2-4 miniexempel).",
            "3) Materialet ska vara optimerat för att en provgenerator ska kunna skapa nya frågor på JUST dessa svagheter.",
            "Regler:",
            "- Bygg endast på informationen i misstagspaketet (fråga, feedback, modellsvar). Om fakta saknas: skriv 'Otillräckliga data' och håll dig generell.",
            "- Skriv tydligt och konkret. Inga fluff-ord.",
            "- Ge 3-6 fokusområden. Varje fokusområde ska ha 3 mikroövningar.",
            "Returnera endast JSON enligt schema.",
        ],
        "feedback": {
            "correct": "Rätt.",
            "incorrect": "Fel. Rätt svar är {letter}) {option}.",
            "no_answer": "Inget svar angivet. Rätt svar är {letter}) {option}.",
            "unreadable": "Svaret kunde inte tolkas som ett alternativ (A-{last}). Rätt svar är {letter}) {option}.",
            "missing_key": "Facit saknas för denna fråga; den kan inte rättas automatiskt.",
            "blank": "Inget svar angivet.",
            "omitted": "Rättningen returnerade inget resultat för detta svar; räknas som noll poäng.",
            "not_graded": "Frågan rättades inte; räknas som noll poäng.",
        },
    },
}


# =============================================================================
# HELPERS
# =============================================================================


def _phrases(language: str) -> dict[str, Any]:
    """Phrase set for a language (sv when unknown)."""
    return PHRASES.get(language, PHRASES["sv"])


def infer_domain_hint(course: str) -> DomainHint:
    """Guess the domain hint from the course name."""
    if course and MATH_COURSE_PATTERN.search(course):
        return "math"
    return "general"


def feedback_text(language: str, key: str, **values: Any) -> str:
    """Localized feedback string for the deterministic scorer and merge."""
    return _phrases(language)["feedback"][key].format(**values)


def _lines(*parts: str | list[str] | None) -> str:
    """Join non-empty parts (strings or lists of lines) with newlines."""
    lines: list[str] = []
    for part in parts:
        if part is None:
            continue
        if isinstance(part, list):
            lines.extend(part)
        else:
            lines.append(part)
    return "\n".join(lines)


# =============================================================================
# BUILDERS
# =============================================================================


def build_generation_messages(
    material: str,
    level: str,
    course: str,
    type_filter: str,
    count: int,
    language: str,
    domain: str | None = None,
) -> list[Message]:
    """System and user turns for exam generation."""
    p = _phrases(language)
    domain = domain or infer_domain_hint(course)

    system = _lines(p["generation_system"], p["domain"].get(domain, []))

    user = _lines(
        p["create"],
        p["course"].format(course=course) if course else None,
        p["level"].get(level, p["level"]["C"]),
        p["count"].format(count=count),
        p["type_rule"].get(type_filter, p["type_rule"]["mix"]),
        p["write_in"],
        "",
        p["material_heading"],
        material,
        "",
        p["rules_heading"],
        [rule.format(count=count) for rule in p["generation_rules"]],
    )

    return [
        Message(role="system", content=system),
        Message(role="user", content=user),
    ]


def build_correction_message(violation: str, count: int, language: str) -> Message:
    """Corrective user turn appended after an invalid attempt."""
    text = _phrases(language)["correction"].format(violation=violation, count=count)
    return Message(role="user", content=text)


def build_grading_messages(
    material: str,
    items: list[dict[str, Any]],
    language: str,
    level: str = "",
    course: str = "",
    domain: str | None = None,
    history: list[dict[str, Any]] | None = None,
    mistakes: list[dict[str, Any]] | None = None,
) -> list[Message]:
    """System and user turns for open-form grading.

    Args:
        material: Study material the exam was generated from
        items: One dict per item (id, type, maxPoints, prompt, rubric,
            modelAnswer, studentResponse)
        language: sv or en
        level: Exam level
        course: Course name
        domain: Domain hint (inferred from course when None)
        history: Already truncated history entries
        mistakes: Already truncated mistake entries
    """
    p = _phrases(language)
    domain = domain or infer_domain_hint(course)

    system = _lines(p["grading_system"], p["grading_domain"].get(domain, []))

    context_parts: list[str] = []
    if history:
        context_parts += ["", p["history_heading"], json.dumps(history, ensure_ascii=False)]
    if mistakes:
        context_parts += ["", p["mistakes_heading"], json.dumps(mistakes, ensure_ascii=False)]

    user = _lines(
        p["grade"],
        p["course"].format(course=course) if course else None,
        p["level"].get(level) if level else None,
        "",
        p["material_heading"],
        material,
        "",
        p["items_heading"],
        json.dumps(items, ensure_ascii=False),
        context_parts,
        "",
        p["rules_heading"],
        p["grading_rules"],
    )

    return [
        Message(role="system", content=system),
        Message(role="user", content=user),
    ]


def build_training_messages(payload: dict[str, Any], language: str) -> list[Message]:
    """System and user turns for training material synthesis."""
    p = _phrases(language)
    return [
        Message(role="system", content=_lines(p["training_system"])),
        Message(role="user", content=json.dumps(payload, ensure_ascii=False)),
    ]
