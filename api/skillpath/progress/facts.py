"""Ledger fact updates.

One function per mutation entry point. Each validates the addressed node
against the content tree, then returns a new ledger with exactly one fact
merged in:

- video progress: watched percent is the max of old and new
- quiz result: score replaced only by a strictly higher one, attempted stays true
- task submission: latest submission replaces the previous one
- reading: completed stays completed, first completion time is kept
- manual topic / level completion: guarded by "all children complete"

None of these recompute progress; the caller runs the recalculator afterwards.
"""

from dataclasses import replace
from datetime import datetime
from uuid import UUID

from skillpath.courses.models import Course, ItemKind, Level, Quiz, Topic

from .exceptions import (
    ContentItemNotFoundError,
    LevelNotFoundError,
    PreconditionFailedError,
    TopicNotFoundError,
)
from .models import (
    EnrollmentLedger,
    QuizResult,
    ReadingProgress,
    SubmissionType,
    TaskSubmission,
    TaskType,
    VideoProgress,
)
from .recalculator import missing_topics, unsatisfied_items


# ==============================================================================
# Tree Lookups
# ==============================================================================


def require_topic(course: Course, topic_id: str) -> Topic:
    topic = course.find_topic(topic_id)
    if topic is None:
        raise TopicNotFoundError(f"Topic {topic_id} not found in course")
    return topic


def require_level(course: Course, level_id: str) -> Level:
    level = course.find_level(level_id)
    if level is None:
        raise LevelNotFoundError(f"Level {level_id} not found in course")
    return level


def require_item(course: Course, topic_id: str, kind: ItemKind) -> Topic:
    topic = require_topic(course, topic_id)
    if topic.item(kind) is None:
        raise ContentItemNotFoundError(f"Topic {topic_id} has no {kind.value}")
    return topic


def require_quiz(course: Course, topic_id: str) -> Quiz:
    topic = require_item(course, topic_id, ItemKind.QUIZ)
    return topic.quiz  # type: ignore[return-value]


def validate_task_target(course: Course, task_id: str, task_type: TaskType) -> str:
    """Check that the task id addresses a task of the given type.

    Returns the id the submission is stored under. Capstone ids are course
    UUIDs and are returned in canonical form.
    """
    if task_type == TaskType.MINI:
        require_item(course, task_id, ItemKind.MINI_TASK)
        return task_id
    if task_type == TaskType.MAJOR:
        level = require_level(course, task_id)
        if level.major_task is None:
            raise ContentItemNotFoundError(f"Level {task_id} has no major task")
        return task_id

    try:
        capstone_id = str(UUID(task_id))
    except ValueError as e:
        raise ContentItemNotFoundError("Course has no capstone project") from e
    if capstone_id != course.capstone_task_id or course.capstone is None:
        raise ContentItemNotFoundError("Course has no capstone project")
    return capstone_id


# ==============================================================================
# Fact Merges
# ==============================================================================


def record_video_progress(
    ledger: EnrollmentLedger,
    topic_id: str,
    watched_percent: float,
    last_timestamp: float,
    now: datetime,
) -> EnrollmentLedger:
    existing = ledger.video_progress.get(topic_id)
    if existing is not None:
        watched_percent = max(existing.watched_percent, watched_percent)
    video_progress = dict(ledger.video_progress)
    video_progress[topic_id] = VideoProgress(
        watched_percent=watched_percent,
        last_timestamp=last_timestamp,
        updated_at=now,
    )
    return replace(ledger, video_progress=video_progress)


def record_quiz_attempt(
    ledger: EnrollmentLedger,
    topic_id: str,
    score: int,
    total_questions: int,
    now: datetime,
) -> EnrollmentLedger:
    existing = ledger.quiz_results.get(topic_id)
    if existing is not None and score <= existing.score:
        result = replace(existing, attempted=True)
    else:
        result = QuizResult(
            score=score,
            total_questions=total_questions,
            attempted=True,
            attempted_at=now,
        )
    quiz_results = dict(ledger.quiz_results)
    quiz_results[topic_id] = result
    return replace(ledger, quiz_results=quiz_results)


def record_task_submission(
    ledger: EnrollmentLedger,
    task_id: str,
    task_type: TaskType,
    content: str,
    now: datetime,
    submission_type: SubmissionType | None = None,
) -> EnrollmentLedger:
    task_submissions = dict(ledger.task_submissions)
    task_submissions[task_id] = TaskSubmission(
        task_type=task_type,
        content=content,
        completed=True,
        submitted_at=now,
        submission_type=submission_type,
    )
    return replace(ledger, task_submissions=task_submissions)


def record_reading_complete(
    ledger: EnrollmentLedger, topic_id: str, now: datetime
) -> EnrollmentLedger:
    existing = ledger.reading_progress.get(topic_id)
    if existing is not None and existing.completed:
        return ledger
    reading_progress = dict(ledger.reading_progress)
    reading_progress[topic_id] = ReadingProgress(completed=True, completed_at=now)
    return replace(ledger, reading_progress=reading_progress)


# ==============================================================================
# Manual Completion
# ==============================================================================


def mark_topic_complete(
    course: Course, ledger: EnrollmentLedger, topic_id: str
) -> EnrollmentLedger:
    """Append a topic id once every gradable item of the topic is satisfied."""
    topic = require_topic(course, topic_id)
    if topic_id in ledger.completed_topics:
        return ledger

    pending = unsatisfied_items(topic, ledger)
    if pending:
        raise PreconditionFailedError(
            "Complete every item of the topic before marking it complete",
            missing=[item.kind.value for item in pending],
        )
    return replace(ledger, completed_topics=ledger.completed_topics | {topic_id})


def mark_level_complete(
    course: Course, ledger: EnrollmentLedger, level_id: str
) -> EnrollmentLedger:
    """Append a level id once every child topic is in completed_topics."""
    level = require_level(course, level_id)
    if level_id in ledger.completed_levels:
        return ledger

    pending = missing_topics(level, ledger.completed_topics)
    if pending:
        raise PreconditionFailedError(
            "Complete all topics before marking the level complete",
            missing=pending,
        )
    return replace(ledger, completed_levels=ledger.completed_levels | {level_id})
