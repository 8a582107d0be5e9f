"""Student progress tracking service layer.

Business logic for:
- Enrollment lifecycle (one ledger per student and course)
- Mutation entry points (video, quiz, task, reading, manual completion)
- Recalculation after every mutation

Every mutation follows the same path: load the course tree, take the ledger
lock, load the ledger, merge one fact, recalculate, save with the loaded
version. A version conflict reloads and reapplies the fact. A failing
validation raises before anything is saved.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from uuid import UUID

import structlog

from skillpath.core.context import LedgerContext
from skillpath.courses.models import Course, ItemKind
from skillpath.courses.repository import CourseRepository

from . import facts
from .exceptions import LedgerConflictError
from .grading import QuizGrade, grade_quiz
from .locks import LedgerLocks
from .models import EnrollmentLedger, SubmissionType, TaskType
from .recalculator import recalculate_progress
from .store import EnrollmentStore


logger = structlog.get_logger(__name__)

LedgerChange = Callable[[EnrollmentLedger], EnrollmentLedger]


class ProgressService:
    """Service for student progress tracking."""

    def __init__(
        self,
        course_repository: CourseRepository,
        store: EnrollmentStore,
        locks: LedgerLocks | None = None,
        conflict_retries: int = 5,
    ):
        self.course_repository = course_repository
        self.store = store
        self.locks = locks or LedgerLocks()
        self.conflict_retries = max(1, conflict_retries)

    # ==========================================================================
    # Enrollment Operations
    # ==========================================================================

    async def enroll(self, student_id: UUID, course_id: UUID) -> EnrollmentLedger:
        """Create an empty ledger for the student in the course.

        Raises:
            CourseNotFoundError: Unknown course
            AlreadyEnrolledError: Ledger already exists
        """
        course = await self.course_repository.get_course_tree(course_id)
        with LedgerContext(student_id, course_id):
            async with self.locks.hold(student_id, course_id):
                # Vacuous topics and levels complete at enrollment time
                ledger = recalculate_progress(
                    course, EnrollmentLedger.new(student_id, course_id)
                )
                created = await self.store.create_ledger(ledger)

            logger.info(
                "student_enrolled",
                progress_percent=created.progress_percent,
            )
            return created

    async def unenroll(self, student_id: UUID, course_id: UUID) -> None:
        """Delete the ledger.

        Raises:
            NotEnrolledError: No ledger for the student and course
        """
        with LedgerContext(student_id, course_id):
            async with self.locks.hold(student_id, course_id):
                await self.store.delete_ledger(student_id, course_id)
            logger.info("student_unenrolled")

    async def get_progress(
        self, student_id: UUID, course_id: UUID
    ) -> EnrollmentLedger:
        """Current ledger, as last saved."""
        return await self.store.load_ledger(student_id, course_id)

    # ==========================================================================
    # Mutation Entry Points
    # ==========================================================================

    async def record_video_progress(
        self,
        student_id: UUID,
        course_id: UUID,
        topic_id: str,
        watched_percent: float,
        last_timestamp: float = 0,
    ) -> EnrollmentLedger:
        course = await self.course_repository.get_course_tree(course_id)
        facts.require_item(course, topic_id, ItemKind.VIDEO)
        now = datetime.now(UTC)
        return await self._mutate(
            course,
            student_id,
            lambda ledger: facts.record_video_progress(
                ledger, topic_id, watched_percent, last_timestamp, now
            ),
        )

    async def submit_quiz(
        self,
        student_id: UUID,
        course_id: UUID,
        topic_id: str,
        answers: list[str | None],
    ) -> tuple[QuizGrade, EnrollmentLedger]:
        """Grade the answers and record the attempt.

        Returns:
            Tuple of (grade, refreshed ledger)
        """
        course = await self.course_repository.get_course_tree(course_id)
        quiz = facts.require_quiz(course, topic_id)
        grade = grade_quiz(quiz, answers)
        now = datetime.now(UTC)
        ledger = await self._mutate(
            course,
            student_id,
            lambda ledger: facts.record_quiz_attempt(
                ledger, topic_id, grade.score, grade.total_questions, now
            ),
        )
        logger.info(
            "quiz_graded",
            student_id=str(student_id),
            course_id=str(course_id),
            topic_id=topic_id,
            score=grade.score,
            total_questions=grade.total_questions,
        )
        return grade, ledger

    async def submit_task(
        self,
        student_id: UUID,
        course_id: UUID,
        task_id: str,
        task_type: TaskType,
        content: str,
        submission_type: SubmissionType | None = None,
    ) -> EnrollmentLedger:
        """Record a mini, major or capstone task submission.

        task_id is the topic id (mini), level id (major) or course id
        (capstone).
        """
        course = await self.course_repository.get_course_tree(course_id)
        task_id = facts.validate_task_target(course, task_id, task_type)
        now = datetime.now(UTC)
        return await self._mutate(
            course,
            student_id,
            lambda ledger: facts.record_task_submission(
                ledger, task_id, task_type, content, now, submission_type
            ),
        )

    async def mark_reading_complete(
        self, student_id: UUID, course_id: UUID, topic_id: str
    ) -> EnrollmentLedger:
        course = await self.course_repository.get_course_tree(course_id)
        facts.require_item(course, topic_id, ItemKind.READING)
        now = datetime.now(UTC)
        return await self._mutate(
            course,
            student_id,
            lambda ledger: facts.record_reading_complete(ledger, topic_id, now),
        )

    async def mark_topic_complete(
        self, student_id: UUID, course_id: UUID, topic_id: str
    ) -> EnrollmentLedger:
        """Manually complete a topic.

        Raises:
            PreconditionFailedError: Some gradable item is not satisfied
        """
        course = await self.course_repository.get_course_tree(course_id)
        facts.require_topic(course, topic_id)
        return await self._mutate(
            course,
            student_id,
            lambda ledger: facts.mark_topic_complete(course, ledger, topic_id),
        )

    async def mark_level_complete(
        self, student_id: UUID, course_id: UUID, level_id: str
    ) -> EnrollmentLedger:
        """Manually complete a level.

        Raises:
            PreconditionFailedError: Some topic of the level is not completed
        """
        course = await self.course_repository.get_course_tree(course_id)
        facts.require_level(course, level_id)
        return await self._mutate(
            course,
            student_id,
            lambda ledger: facts.mark_level_complete(course, ledger, level_id),
        )

    # ==========================================================================
    # Ledger Updates
    # ==========================================================================

    async def _mutate(
        self, course: Course, student_id: UUID, change: LedgerChange
    ) -> EnrollmentLedger:
        with LedgerContext(student_id, course.id):
            async with self.locks.hold(student_id, course.id):
                return await self.commit(course, student_id, change)

    async def commit(
        self, course: Course, student_id: UUID, change: LedgerChange
    ) -> EnrollmentLedger:
        """Apply a change and recalculate, retrying on version conflicts.

        The caller must hold the ledger lock. ``change`` is re-run against a
        freshly loaded ledger on every attempt and may raise to abort.

        Raises:
            NotEnrolledError: No ledger for the student and course
            LedgerConflictError: Still conflicting after conflict_retries
        """
        for attempt in range(1, self.conflict_retries + 1):
            current = await self.store.load_ledger(student_id, course.id)
            updated = recalculate_progress(course, change(current))
            if updated == current:
                return current

            try:
                saved = await self.store.save_ledger(
                    updated, expected_version=current.version
                )
            except LedgerConflictError:
                logger.info("ledger_conflict_retry", attempt=attempt)
                continue

            self._log_transitions(current, saved)
            return saved

        logger.warning("ledger_conflict_exhausted", attempts=self.conflict_retries)
        raise LedgerConflictError

    def _log_transitions(
        self, before: EnrollmentLedger, after: EnrollmentLedger
    ) -> None:
        for topic_id in sorted(after.completed_topics - before.completed_topics):
            logger.info("topic_completed", topic_id=topic_id)
        for level_id in sorted(after.completed_levels - before.completed_levels):
            logger.info("level_completed", level_id=level_id)
        logger.debug(
            "ledger_saved",
            version=after.version,
            progress_percent=after.progress_percent,
        )
