from types import SimpleNamespace

from diverwell.domain.learning.grading import grade_attempt, is_correct, normalize_answer


def question(id, type="multiple_choice", correct_answer="B", points=1):
    return SimpleNamespace(id=id, type=type, correct_answer=correct_answer, explanation=f"q{id}", points=points)


def test_normalize_answer_handles_booleans_and_whitespace():
    assert normalize_answer(True, "true_false") == "true"
    assert normalize_answer("  False ", "true_false") == "false"
    assert normalize_answer("Decompression   Sickness", "short_answer") == "decompression sickness"


def test_is_correct_ignores_case():
    assert is_correct(question(1, correct_answer="Nitrogen"), "nitrogen")
    assert not is_correct(question(1, correct_answer="Nitrogen"), None)


def test_grade_attempt_scores_weighted_points():
    questions = [
        question(1, correct_answer="A", points=2),
        question(2, type="true_false", correct_answer="true", points=1),
        question(3, type="short_answer", correct_answer="buddy check", points=1),
    ]

    result = grade_attempt(questions, {"1": "A", 2: True, "3": "wrong"}, passing_score=70)

    assert result.score == 3
    assert result.max_score == 4
    assert result.percentage == 75
    assert result.passed is True
    assert [item["correct"] for item in result.feedback] == [True, True, False]
    assert result.feedback[2]["points"] == 0


def test_grade_attempt_fails_below_passing_score():
    questions = [question(1), question(2)]

    result = grade_attempt(questions, {"1": "B"}, passing_score=70)

    assert result.percentage == 50
    assert result.passed is False


def test_quiz_without_questions_never_passes():
    result = grade_attempt([], {}, passing_score=0)

    assert result.percentage == 0
    assert result.passed is False


def test_percentage_rounds_half_up():
    questions = [question(i, type="true_false", correct_answer="true") for i in range(1, 9)]
    answers = {i: i <= 5 for i in range(1, 9)}

    result = grade_attempt(questions, answers, passing_score=63)

    assert result.score == 5
    assert result.percentage == 63
    assert result.passed is True
