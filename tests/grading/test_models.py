"""Tests for the data model."""

import dataclasses

import pytest

from mockexam.core.models import (
    Answer,
    Exam,
    GradeReport,
    MistakeEntry,
    PerQuestionResult,
    Question,
    StudentContext,
)


class TestQuestion:
    """Question parsing and serialization."""

    def test_round_trip_keys(self, question_factory):
        data = question_factory("q1", "mc", points=3)
        question = Question.from_dict(data)

        assert question.options == ("Berlin", "Paris", "Rome", "Madrid")
        assert question.correct_index == 1
        assert question.to_dict() == data

    def test_non_mc_has_sentinels(self, question_factory):
        question = Question.from_dict(question_factory("q2", "essay", points=4))

        assert question.to_dict()["options"] == []
        assert question.to_dict()["correctIndex"] == -1
        assert not question.is_closed_form

    def test_legacy_aliases(self):
        """Legacy keys: question for the prompt, a letter in correct."""
        question = Question.from_dict(
            {"id": "q1", "type": "mc", "question": "2+2?", "options": ["3", "4"], "correct": "B"}
        )
        assert question.prompt == "2+2?"
        assert question.correct_index == 1
        assert question.correct_option_text == "4"

    @pytest.mark.parametrize("points", [None, 0, -3, "abc"])
    def test_points_default_to_one(self, points):
        question = Question.from_dict({"id": "q1", "type": "short", "points": points})
        assert question.points == 1.0

    def test_answer_key_out_of_range(self):
        question = Question.from_dict(
            {"id": "q1", "type": "mc", "options": ["a", "b"], "correctIndex": -999}
        )
        assert not question.has_answer_key
        assert question.correct_option_text is None

    def test_frozen(self):
        question = Question(id="q1", type="short", points=1, prompt="?")
        with pytest.raises(dataclasses.FrozenInstanceError):
            question.points = 2


class TestExam:
    """Exam aggregate."""

    def test_max_points_and_ids(self, sample_exam):
        exam = Exam.from_dict(sample_exam)

        assert exam.max_points == 11
        assert exam.question_ids() == ["q1", "q2", "q3", "q4"]

    def test_ignores_non_object_questions(self):
        exam = Exam.from_dict({"title": "t", "level": "E", "questions": ["junk", {"id": "q1"}]})
        assert len(exam.questions) == 1


class TestAnswer:
    """Answer parsing."""

    def test_accepts_id_alias(self):
        assert Answer.from_dict({"id": " q1 ", "answer": "B"}) == Answer("q1", "B")

    def test_missing_response_is_empty(self):
        assert Answer.from_dict({"questionId": "q1"}).response == ""


class TestGradeReport:
    """Totals are recomputed from the ledger."""

    def test_from_results_sums(self):
        results = [
            PerQuestionResult("q1", 1, 1, "ok", "A"),
            PerQuestionResult("q2", 0, 2, "no", "B"),
            PerQuestionResult("q3", 2.5, 5, "partial", "...", grading_path="llm"),
        ]
        report = GradeReport.from_results(results)

        assert report.total_points == 3.5
        assert report.max_points == 8
        assert report.percentage == pytest.approx(3.5 / 8)

    def test_to_dict_wire_format(self):
        report = GradeReport.from_results([PerQuestionResult("q1", 2.0, 2.0, "ok", "A) x")])
        data = report.to_dict()

        assert data["totalPoints"] == 2
        assert data["maxPoints"] == 2
        assert data["perQuestion"][0] == {
            "questionId": "q1",
            "pointsAwarded": 2,
            "maxPoints": 2,
            "feedback": "ok",
            "modelAnswer": "A) x",
            "gradingPath": "auto",
        }

    def test_empty_report_percentage(self):
        assert GradeReport.from_results([]).percentage == 0.0


class TestStudentContext:
    """Personalization context parsing."""

    def test_from_dict(self):
        context = StudentContext.from_dict(
            {
                "history": [{"title": "Prov 1", "totalPoints": 7, "maxPoints": 10}],
                "mistakes": [{"id": "q3", "question": "Q?", "userAnswer": "x", "points": 0}, "junk"],
            }
        )
        assert len(context.history) == 1
        assert context.history[0].total_points == 7
        assert len(context.mistakes) == 1
        assert context.mistakes[0].response == "x"
        assert not context.is_empty

    def test_mistake_wire_keys(self):
        mistake = MistakeEntry.from_dict({"questionId": "q1", "prompt": "P", "user_answer": "U"})
        assert mistake.to_dict()["id"] == "q1"
        assert mistake.to_dict()["question"] == "P"
        assert mistake.to_dict()["userAnswer"] == "U"
