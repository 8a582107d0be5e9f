"""Quiz grading."""

from collections.abc import Sequence
from dataclasses import dataclass

from skillpath.courses.models import Quiz


@dataclass(frozen=True, slots=True)
class QuestionResult:
    question: str
    user_answer: str | None
    correct_answer: str
    is_correct: bool
    explanation: str | None = None


@dataclass(frozen=True, slots=True)
class QuizGrade:
    score: int
    total_questions: int
    results: tuple[QuestionResult, ...]

    @property
    def percentage(self) -> float:
        return self.score / self.total_questions * 100


def grade_quiz(quiz: Quiz, answers: Sequence[str | None]) -> QuizGrade:
    """Grade answers positionally against the quiz questions.

    Missing answers count as wrong; extra answers are ignored.
    """
    results = []
    for index, question in enumerate(quiz.questions):
        answer = answers[index] if index < len(answers) else None
        results.append(
            QuestionResult(
                question=question.question,
                user_answer=answer,
                correct_answer=question.correct_answer,
                is_correct=answer == question.correct_answer,
                explanation=question.explanation,
            )
        )
    return QuizGrade(
        score=sum(1 for result in results if result.is_correct),
        total_questions=quiz.total_questions,
        results=tuple(results),
    )
