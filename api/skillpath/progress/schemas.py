"""Pydantic schemas for student progress tracking.

Request and response models for:
- Enrollment
- Mutation entry points (video, quiz, task, reading, manual completion)
- Progress queries
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .grading import QuizGrade
from .models import EnrollmentLedger, SubmissionType, TaskType


# ==============================================================================
# Enrollment Schemas
# ==============================================================================


class EnrollRequest(BaseModel):
    """Request to enroll a student in a course."""

    student_id: UUID = Field(..., description="Student UUID")
    course_id: UUID = Field(..., description="Course UUID")


# ==============================================================================
# Mutation Requests
# ==============================================================================


class LedgerRequest(BaseModel):
    student_id: UUID = Field(..., description="Student UUID")
    course_id: UUID = Field(..., description="Course UUID")


class VideoProgressRequest(LedgerRequest):
    """Video watch progress (frontend sends periodically during playback)."""

    topic_id: str = Field(..., min_length=1)
    watched_percent: float = Field(..., ge=0, le=100)
    last_timestamp: float = Field(default=0, ge=0, description="Resume position (s)")


class QuizSubmissionRequest(LedgerRequest):
    topic_id: str = Field(..., min_length=1)
    answers: list[str | None] = Field(
        default_factory=list, description="Answers in question order"
    )


class TaskSubmissionRequest(LedgerRequest):
    """Task submission.

    task_id is the topic id (mini), level id (major) or course id (capstone).
    """

    task_id: str = Field(..., min_length=1)
    task_type: TaskType
    content: str = Field(..., min_length=1, max_length=20000)
    submission_type: SubmissionType | None = None


class ReadingCompleteRequest(LedgerRequest):
    topic_id: str = Field(..., min_length=1)


class CompleteTopicRequest(LedgerRequest):
    topic_id: str = Field(..., min_length=1)


class CompleteLevelRequest(LedgerRequest):
    level_id: str = Field(..., min_length=1)


# ==============================================================================
# Responses
# ==============================================================================


class ProgressSummaryResponse(BaseModel):
    """Returned by every mutation entry point."""

    progress_percent: int = Field(description="0-100 percentage")
    completed_topics: list[str]
    completed_levels: list[str]

    @classmethod
    def from_ledger(cls, ledger: EnrollmentLedger) -> "ProgressSummaryResponse":
        return cls(
            progress_percent=ledger.progress_percent,
            completed_topics=sorted(ledger.completed_topics),
            completed_levels=sorted(ledger.completed_levels),
        )


class QuestionResultResponse(BaseModel):
    question: str
    user_answer: str | None
    correct_answer: str
    is_correct: bool
    explanation: str | None = None


class QuizSubmissionResponse(ProgressSummaryResponse):
    score: int
    total_questions: int
    percentage: float
    results: list[QuestionResultResponse]

    @classmethod
    def from_grade(
        cls, grade: QuizGrade, ledger: EnrollmentLedger
    ) -> "QuizSubmissionResponse":
        summary = ProgressSummaryResponse.from_ledger(ledger)
        return cls(
            **summary.model_dump(),
            score=grade.score,
            total_questions=grade.total_questions,
            percentage=round(grade.percentage, 2),
            results=[
                QuestionResultResponse(
                    question=result.question,
                    user_answer=result.user_answer,
                    correct_answer=result.correct_answer,
                    is_correct=result.is_correct,
                    explanation=result.explanation,
                )
                for result in grade.results
            ],
        )


class VideoProgressEntry(BaseModel):
    watched_percent: float
    last_timestamp: float = 0
    updated_at: datetime | None = None


class QuizResultEntry(BaseModel):
    score: int
    total_questions: int
    attempted: bool
    attempted_at: datetime | None = None


class TaskSubmissionEntry(BaseModel):
    task_type: TaskType
    content: str
    completed: bool
    submitted_at: datetime | None = None
    submission_type: SubmissionType | None = None


class ReadingProgressEntry(BaseModel):
    completed: bool
    completed_at: datetime | None = None


class LedgerResponse(ProgressSummaryResponse):
    """Full ledger view."""

    student_id: UUID
    course_id: UUID
    enrolled_at: datetime | None = None
    updated_at: datetime | None = None
    video_progress: dict[str, VideoProgressEntry]
    quiz_results: dict[str, QuizResultEntry]
    task_submissions: dict[str, TaskSubmissionEntry]
    reading_progress: dict[str, ReadingProgressEntry]
    certificate_issued: bool
    certificate_id: str | None = None
    certificate_issued_date: datetime | None = None
    version: int

    @classmethod
    def from_entity(cls, ledger: EnrollmentLedger) -> "LedgerResponse":
        """Create response from entity."""
        return cls.model_validate(ledger.to_dict())
