"""Student progress tracking API endpoints.

Provides routes for:
- Course enrollment
- Mutation entry points (video, quiz, task, reading, manual completion)
- Progress queries
"""

from collections.abc import Awaitable
from typing import TypeVar
from uuid import UUID

from fastapi import APIRouter, Query, status

from skillpath.courses.dependencies import handle_course_error
from skillpath.courses.repository import CourseError

from .dependencies import ProgressServiceDep, handle_progress_error
from .exceptions import ProgressError
from .schemas import (
    CompleteLevelRequest,
    CompleteTopicRequest,
    EnrollRequest,
    LedgerResponse,
    ProgressSummaryResponse,
    QuizSubmissionRequest,
    QuizSubmissionResponse,
    ReadingCompleteRequest,
    TaskSubmissionRequest,
    VideoProgressRequest,
)


router = APIRouter(prefix="/v1/progress", tags=["progress"])
enrollments_router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])

T = TypeVar("T")


async def _translate_errors(call: Awaitable[T]) -> T:
    try:
        return await call
    except ProgressError as e:
        raise handle_progress_error(e) from e
    except CourseError as e:
        raise handle_course_error(e) from e


# ==============================================================================
# Enrollment Endpoints
# ==============================================================================


@enrollments_router.post(
    "",
    response_model=LedgerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in course",
)
async def enroll(
    data: EnrollRequest,
    progress_service: ProgressServiceDep,
) -> LedgerResponse:
    """Create an empty progress ledger for the student in the course."""
    ledger = await _translate_errors(
        progress_service.enroll(data.student_id, data.course_id)
    )
    return LedgerResponse.from_entity(ledger)


@enrollments_router.delete(
    "/{course_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Unenroll from course",
)
async def unenroll(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    student_id: UUID = Query(...),
) -> None:
    """Delete the student's ledger for the course."""
    await _translate_errors(progress_service.unenroll(student_id, course_id))


# ==============================================================================
# Mutation Endpoints
# ==============================================================================


@router.post(
    "/video",
    response_model=ProgressSummaryResponse,
    summary="Record video progress",
)
async def record_video_progress(
    data: VideoProgressRequest,
    progress_service: ProgressServiceDep,
) -> ProgressSummaryResponse:
    """Record watch progress for a topic video.

    The stored watched percent never decreases.
    """
    ledger = await _translate_errors(
        progress_service.record_video_progress(
            student_id=data.student_id,
            course_id=data.course_id,
            topic_id=data.topic_id,
            watched_percent=data.watched_percent,
            last_timestamp=data.last_timestamp,
        )
    )
    return ProgressSummaryResponse.from_ledger(ledger)


@router.post(
    "/quiz",
    response_model=QuizSubmissionResponse,
    summary="Submit quiz",
)
async def submit_quiz(
    data: QuizSubmissionRequest,
    progress_service: ProgressServiceDep,
) -> QuizSubmissionResponse:
    """Grade quiz answers and record the attempt.

    Attempting the quiz satisfies the topic item regardless of the score.
    """
    grade, ledger = await _translate_errors(
        progress_service.submit_quiz(
            student_id=data.student_id,
            course_id=data.course_id,
            topic_id=data.topic_id,
            answers=data.answers,
        )
    )
    return QuizSubmissionResponse.from_grade(grade, ledger)


@router.post(
    "/task",
    response_model=ProgressSummaryResponse,
    summary="Submit task",
)
async def submit_task(
    data: TaskSubmissionRequest,
    progress_service: ProgressServiceDep,
) -> ProgressSummaryResponse:
    ledger = await _translate_errors(
        progress_service.submit_task(
            student_id=data.student_id,
            course_id=data.course_id,
            task_id=data.task_id,
            task_type=data.task_type,
            content=data.content,
            submission_type=data.submission_type,
        )
    )
    return ProgressSummaryResponse.from_ledger(ledger)


@router.post(
    "/reading",
    response_model=ProgressSummaryResponse,
    summary="Mark reading complete",
)
async def mark_reading_complete(
    data: ReadingCompleteRequest,
    progress_service: ProgressServiceDep,
) -> ProgressSummaryResponse:
    ledger = await _translate_errors(
        progress_service.mark_reading_complete(
            data.student_id, data.course_id, data.topic_id
        )
    )
    return ProgressSummaryResponse.from_ledger(ledger)


@router.post(
    "/complete-topic",
    response_model=ProgressSummaryResponse,
    summary="Mark topic complete",
)
async def mark_topic_complete(
    data: CompleteTopicRequest,
    progress_service: ProgressServiceDep,
) -> ProgressSummaryResponse:
    """Manually complete a topic.

    Returns 412 with the unsatisfied item kinds when the topic is not done.
    """
    ledger = await _translate_errors(
        progress_service.mark_topic_complete(
            data.student_id, data.course_id, data.topic_id
        )
    )
    return ProgressSummaryResponse.from_ledger(ledger)


@router.post(
    "/complete-level",
    response_model=ProgressSummaryResponse,
    summary="Mark level complete",
)
async def mark_level_complete(
    data: CompleteLevelRequest,
    progress_service: ProgressServiceDep,
) -> ProgressSummaryResponse:
    """Manually complete a level.

    Returns 412 with the missing topic ids when a topic is not completed.
    """
    ledger = await _translate_errors(
        progress_service.mark_level_complete(
            data.student_id, data.course_id, data.level_id
        )
    )
    return ProgressSummaryResponse.from_ledger(ledger)


# ==============================================================================
# Progress Query Endpoints
# ==============================================================================


@router.get(
    "/{course_id}",
    response_model=LedgerResponse,
    summary="Get course progress",
)
async def get_progress(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    student_id: UUID = Query(...),
) -> LedgerResponse:
    """Full progress ledger of the student in the course."""
    ledger = await _translate_errors(
        progress_service.get_progress(student_id, course_id)
    )
    return LedgerResponse.from_entity(ledger)
