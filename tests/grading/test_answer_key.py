"""Tests for deterministic multiple-choice scoring."""

import pytest

from mockexam.core.answer_key import (
    index_answers,
    normalize_choice,
    score_answers,
    score_closed_question,
)
from mockexam.core.errors import InvalidQuestion
from mockexam.core.models import Answer, Exam, Question


@pytest.fixture
def paris_question():
    return Question(
        id="q1",
        type="mc",
        points=1,
        prompt="Capital of France?",
        options=("Berlin", "Paris", "Rome", "Madrid"),
        correct_index=1,
    )


class TestNormalizeChoice:
    """Response to option index."""

    @pytest.mark.parametrize(
        "response,expected",
        [
            ("A", 0),
            ("b", 1),
            ("B) Paris", 1),
            ("  (c)", 2),
            ("d.", 3),
            ("E: text", 4),
            ("[f]", 5),
        ],
    )
    def test_letters(self, response, expected):
        assert normalize_choice(response) == expected

    @pytest.mark.parametrize("response", [None, "", "   ", "G", "7", "Abc"])
    def test_unreadable(self, response):
        assert normalize_choice(response) is None

    def test_option_text_match(self, paris_question):
        assert normalize_choice("paris", paris_question.options) == 1

    @pytest.mark.parametrize(
        "response,expected",
        [('"B"', 1), ("'c'", 2), ("- b", 1), ("*A*", 0), ("“d”", 3), ("...e) text", 4)],
    )
    def test_letters_wrapped_in_punctuation(self, response, expected):
        assert normalize_choice(response) == expected

    def test_bare_letter_beats_option_text(self):
        """Options whose text is a letter still resolve by position."""
        options = ("B", "A", "C", "D")
        assert normalize_choice("A", options) == 0
        assert normalize_choice("b", options) == 1

    def test_word_starting_with_letter_is_not_a_choice(self, paris_question):
        """A full option text wins over its first letter."""
        assert normalize_choice("Berlin", paris_question.options) == 0
        assert normalize_choice("Bordeaux", paris_question.options) is None


class TestScoreClosedQuestion:
    """Scoring one mc question."""

    def test_letter_with_text_scores_full(self):
        question = Question(
            id="q1", type="mc", points=1, prompt="?", options=("Paris", "Rome", "Berlin", "Madrid"), correct_index=0
        )
        result = score_closed_question(question, Answer("q1", "A) Paris"), "en")

        assert result.points_awarded == 1
        assert result.feedback == "Correct."
        assert result.model_answer == "A) Paris"
        assert result.grading_path == "auto"

    def test_wrong_letter_scores_zero(self):
        question = Question(
            id="q1", type="mc", points=2, prompt="?", options=("Paris", "Rome", "Berlin", "Madrid"), correct_index=0
        )
        result = score_closed_question(question, Answer("q1", "b"), "en")

        assert result.points_awarded == 0
        assert result.max_points == 2
        assert result.feedback == "Incorrect. The correct answer is A) Paris."

    def test_letter_options_scored_by_position(self):
        question = Question(
            id="q1", type="mc", points=1, prompt="?", options=("B", "A", "C", "D"), correct_index=0
        )
        result = score_closed_question(question, Answer("q1", "A"), "en")

        assert result.points_awarded == 1
        assert result.feedback == "Correct."

    def test_invalid_answer_key(self):
        question = Question(
            id="q1", type="mc", points=1, prompt="?", options=("a", "b", "c", "d"), correct_index=-999
        )
        result = score_closed_question(question, Answer("q1", "A"), "en")

        assert result.points_awarded == 0
        assert "answer key" in result.feedback
        assert result.model_answer == ""

    def test_missing_answer(self, paris_question):
        result = score_closed_question(paris_question, None, "en")

        assert result.points_awarded == 0
        assert result.feedback.startswith("No answer given.")

    def test_unreadable_answer(self, paris_question):
        result = score_closed_question(paris_question, Answer("q1", "maybe"), "en")

        assert result.points_awarded == 0
        assert "A-D" in result.feedback

    def test_swedish_feedback_by_default(self, paris_question):
        result = score_closed_question(paris_question, Answer("q1", "B"))
        assert result.feedback == "Rätt."

    def test_deterministic(self, paris_question):
        answer = Answer("q1", "c")
        first = score_closed_question(paris_question, answer, "en")
        second = score_closed_question(paris_question, answer, "en")
        assert first == second


class TestScoreAnswers:
    """Partitioning and scoring a whole submission."""

    def test_partitions_in_exam_order(self, sample_exam, sample_answers):
        exam = Exam.from_dict(sample_exam)
        answers = [Answer.from_dict(a) for a in sample_answers]

        scoring = score_answers(exam.questions, answers, "en")

        assert [r.question_id for r in scoring.closed_results] == ["q1", "q2"]
        assert [i.question.id for i in scoring.open_items] == ["q3", "q4"]
        assert scoring.closed_results[0].points_awarded == 1
        assert scoring.closed_results[1].points_awarded == 0

    def test_open_items_untouched(self, sample_exam, sample_answers):
        exam = Exam.from_dict(sample_exam)
        answers = [Answer.from_dict(a) for a in sample_answers]

        scoring = score_answers(exam.questions, answers)

        assert scoring.open_items[0].question == exam.questions[2]
        assert scoring.open_items[0].answer.response == "Ljus, vatten och koldioxid."

    def test_missing_answers_are_empty(self, sample_exam):
        exam = Exam.from_dict(sample_exam)

        scoring = score_answers(exam.questions, [])

        assert all(r.points_awarded == 0 for r in scoring.closed_results)
        assert all(item.is_blank for item in scoring.open_items)

    def test_unmatched_answers_ignored(self, sample_exam):
        exam = Exam.from_dict(sample_exam)

        scoring = score_answers(exam.questions, [Answer("q99", "A"), Answer("q1", "B")])

        assert len(scoring.closed_results) + len(scoring.open_items) == 4
        assert scoring.closed_results[0].points_awarded == 1

    def test_first_duplicate_answer_wins(self):
        answers = [Answer("q1", "B"), Answer("q1", "A")]
        assert index_answers(answers)["q1"].response == "B"

    def test_question_without_id(self):
        questions = (Question(id="", type="mc", points=1, prompt="?", options=("a", "b"), correct_index=0),)
        with pytest.raises(InvalidQuestion):
            score_answers(questions, [])

    def test_duplicate_question_ids(self):
        question = Question(id="q1", type="short", points=1, prompt="?")
        with pytest.raises(InvalidQuestion):
            score_answers((question, question), [])

    def test_no_client_needed(self, sample_exam, sample_answers):
        """Scoring is pure: identical input yields identical output."""
        exam = Exam.from_dict(sample_exam)
        answers = [Answer.from_dict(a) for a in sample_answers]

        assert score_answers(exam.questions, answers) == score_answers(exam.questions, answers)
