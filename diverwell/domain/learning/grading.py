"""Quiz grading - pure scoring of submitted answers"""

import re
from dataclasses import dataclass, field
from typing import Any


@dataclass
class GradeResult:
    score: int
    max_score: int
    percentage: int
    passed: bool
    feedback: list[dict] = field(default_factory=list)


def normalize_answer(answer: Any, question_type: str) -> str:
    if isinstance(answer, bool):
        answer = "true" if answer else "false"
    text = str(answer).strip().lower()
    if question_type == "short_answer":
        text = re.sub(r"\s+", " ", text)
    return text


def is_correct(question, answer: Any) -> bool:
    if answer is None:
        return False
    return normalize_answer(answer, question.type) == normalize_answer(
        question.correct_answer, question.type
    )


def grade_attempt(questions, answers: dict, passing_score: int) -> GradeResult:
    """
    Score answers keyed by question id (int or str keys accepted).
    Percentage rounds half up; a quiz with no points scores 0 and never passes.
    """
    score = 0
    max_score = 0
    feedback = []
    for question in questions:
        answer = answers.get(question.id, answers.get(str(question.id)))
        correct = is_correct(question, answer)
        max_score += question.points
        if correct:
            score += question.points
        feedback.append(
            {
                "questionId": question.id,
                "correct": correct,
                "submittedAnswer": answer,
                "correctAnswer": question.correct_answer,
                "explanation": question.explanation,
                "points": question.points if correct else 0,
            }
        )

    percentage = int(100 * score / max_score + 0.5) if max_score else 0
    passed = max_score > 0 and percentage >= passing_score
    return GradeResult(score, max_score, percentage, passed, feedback)
