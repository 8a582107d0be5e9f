"""Tests for ProgressService mutation entry points."""

import asyncio
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest
import pytest_asyncio

from skillpath.courses.repository import CourseNotFoundError, InMemoryCourseRepository
from skillpath.progress.exceptions import (
    AlreadyEnrolledError,
    ContentItemNotFoundError,
    LedgerConflictError,
    NotEnrolledError,
    PreconditionFailedError,
    TopicNotFoundError,
)
from skillpath.progress.models import SubmissionType, TaskType
from skillpath.progress.service import ProgressService
from skillpath.progress.store import InMemoryEnrollmentStore


@pytest.fixture
def store() -> InMemoryEnrollmentStore:
    return InMemoryEnrollmentStore()


@pytest.fixture
def progress_service(
    course_repository: InMemoryCourseRepository, store: InMemoryEnrollmentStore
) -> ProgressService:
    return ProgressService(course_repository=course_repository, store=store)


@pytest_asyncio.fixture
async def enrolled(
    progress_service: ProgressService, student_id: UUID, course_id: UUID
) -> ProgressService:
    await progress_service.enroll(student_id, course_id)
    return progress_service


class TestEnrollment:
    @pytest.mark.asyncio
    async def test_enroll_creates_ledger(
        self, progress_service: ProgressService, student_id, course_id
    ):
        ledger = await progress_service.enroll(student_id, course_id)

        assert ledger.version == 1
        assert ledger.enrolled_at is not None
        # Vacuous topic t4 completes at enrollment
        assert ledger.completed_topics == {"t4"}
        assert ledger.progress_percent == 0

    @pytest.mark.asyncio
    async def test_enroll_twice_rejected(
        self, enrolled: ProgressService, student_id, course_id
    ):
        with pytest.raises(AlreadyEnrolledError):
            await enrolled.enroll(student_id, course_id)

    @pytest.mark.asyncio
    async def test_enroll_unknown_course(
        self, progress_service: ProgressService, student_id
    ):
        with pytest.raises(CourseNotFoundError):
            await progress_service.enroll(student_id, uuid4())

    @pytest.mark.asyncio
    async def test_unenroll_removes_ledger(
        self, enrolled: ProgressService, student_id, course_id
    ):
        await enrolled.unenroll(student_id, course_id)

        with pytest.raises(NotEnrolledError):
            await enrolled.get_progress(student_id, course_id)

    @pytest.mark.asyncio
    async def test_mutation_without_enrollment(
        self, progress_service: ProgressService, student_id, course_id
    ):
        with pytest.raises(NotEnrolledError):
            await progress_service.record_video_progress(
                student_id, course_id, "t2", 50
            )


class TestMutations:
    @pytest.mark.asyncio
    async def test_video_progress_recalculates(
        self, enrolled: ProgressService, student_id, course_id
    ):
        ledger = await enrolled.record_video_progress(
            student_id, course_id, "t2", 95, last_timestamp=120
        )

        assert "t2" in ledger.completed_topics
        assert ledger.progress_percent == 14
        assert ledger.version == 2

    @pytest.mark.asyncio
    async def test_submit_quiz_grades_and_records_attempt(
        self, enrolled: ProgressService, student_id, course_id
    ):
        grade, ledger = await enrolled.submit_quiz(
            student_id, course_id, "t3", ["wrong"]
        )

        assert grade.score == 0
        assert ledger.quiz_results["t3"].attempted is True
        assert {"t3", "t4"} <= ledger.completed_topics
        assert "l2" in ledger.completed_levels

    @pytest.mark.asyncio
    async def test_submit_task_types(
        self, enrolled: ProgressService, student_id, course_id
    ):
        await enrolled.submit_task(
            student_id, course_id, "t1", TaskType.MINI, "x = 1", SubmissionType.CODE
        )
        ledger = await enrolled.submit_task(
            student_id, course_id, "l1", TaskType.MAJOR, "https://git.example/r"
        )

        assert ledger.task_submissions["t1"].submission_type == SubmissionType.CODE
        assert ledger.task_submissions["l1"].task_type == TaskType.MAJOR
        assert ledger.progress_percent == 29  # 2 of 7

    @pytest.mark.asyncio
    async def test_capstone_does_not_move_progress(
        self, enrolled: ProgressService, student_id, course_id
    ):
        ledger = await enrolled.submit_task(
            student_id, course_id, str(course_id), TaskType.CAPSTONE, "demo"
        )

        assert str(course_id) in ledger.task_submissions
        assert ledger.progress_percent == 0

    @pytest.mark.asyncio
    async def test_capstone_id_stored_in_canonical_form(
        self, enrolled: ProgressService, student_id, course_id
    ):
        ledger = await enrolled.submit_task(
            student_id, course_id, str(course_id).upper(), TaskType.CAPSTONE, "demo"
        )

        assert list(ledger.task_submissions) == [str(course_id)]

    @pytest.mark.asyncio
    async def test_reading_complete(
        self, enrolled: ProgressService, student_id, course_id
    ):
        ledger = await enrolled.mark_reading_complete(student_id, course_id, "t1")
        assert ledger.reading_progress["t1"].completed is True

    @pytest.mark.asyncio
    async def test_repeated_identical_fact_saves_nothing(
        self, enrolled: ProgressService, student_id, course_id
    ):
        first = await enrolled.mark_reading_complete(student_id, course_id, "t1")
        second = await enrolled.mark_reading_complete(student_id, course_id, "t1")

        assert second.version == first.version

    @pytest.mark.asyncio
    async def test_missing_item_kind_persists_nothing(
        self, enrolled: ProgressService, student_id, course_id
    ):
        with pytest.raises(ContentItemNotFoundError):
            await enrolled.mark_reading_complete(student_id, course_id, "t2")
        with pytest.raises(TopicNotFoundError):
            await enrolled.record_video_progress(student_id, course_id, "t9", 100)

        ledger = await enrolled.get_progress(student_id, course_id)
        assert ledger.version == 1

    @pytest.mark.asyncio
    async def test_mark_topic_guard(
        self, enrolled: ProgressService, student_id, course_id
    ):
        with pytest.raises(PreconditionFailedError) as exc_info:
            await enrolled.mark_topic_complete(student_id, course_id, "t2")
        assert exc_info.value.missing == ["video"]

        ledger = await enrolled.get_progress(student_id, course_id)
        assert "t2" not in ledger.completed_topics
        assert ledger.version == 1

    @pytest.mark.asyncio
    async def test_mark_level_guard(
        self, enrolled: ProgressService, student_id, course_id
    ):
        with pytest.raises(PreconditionFailedError) as exc_info:
            await enrolled.mark_level_complete(student_id, course_id, "l1")
        assert exc_info.value.missing == ["t1", "t2"]


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_mutations_of_distinct_topics_all_kept(
        self, enrolled: ProgressService, student_id, course_id
    ):
        await asyncio.gather(
            enrolled.record_video_progress(student_id, course_id, "t1", 100),
            enrolled.record_video_progress(student_id, course_id, "t2", 100),
            enrolled.submit_quiz(student_id, course_id, "t1", ["4", "true"]),
            enrolled.submit_quiz(student_id, course_id, "t3", ["def"]),
            enrolled.mark_reading_complete(student_id, course_id, "t1"),
            enrolled.submit_task(student_id, course_id, "t1", TaskType.MINI, "code"),
            enrolled.submit_task(student_id, course_id, "l1", TaskType.MAJOR, "repo"),
        )

        ledger = await enrolled.get_progress(student_id, course_id)
        assert ledger.progress_percent == 100
        assert ledger.completed_levels == {"l1", "l2"}
        assert ledger.version == 8

    @pytest.mark.asyncio
    async def test_conflict_reloads_and_reapplies(
        self,
        course_repository: InMemoryCourseRepository,
        store: InMemoryEnrollmentStore,
        student_id,
        course_id,
    ):
        service = ProgressService(course_repository=course_repository, store=store)
        await service.enroll(student_id, course_id)

        real_save = store.save_ledger
        calls = 0

        async def flaky_save(ledger, expected_version):
            nonlocal calls
            calls += 1
            if calls == 1:
                # Another worker saved in between
                current = await store.load_ledger(student_id, course_id)
                await real_save(current, expected_version=current.version)
                raise LedgerConflictError
            return await real_save(ledger, expected_version)

        store.save_ledger = flaky_save

        ledger = await service.record_video_progress(student_id, course_id, "t2", 100)

        assert calls == 2
        assert ledger.version == 3
        assert "t2" in ledger.completed_topics

    @pytest.mark.asyncio
    async def test_conflict_retries_are_bounded(
        self,
        course_repository: InMemoryCourseRepository,
        store: InMemoryEnrollmentStore,
        student_id,
        course_id,
    ):
        service = ProgressService(
            course_repository=course_repository, store=store, conflict_retries=3
        )
        await service.enroll(student_id, course_id)
        store.save_ledger = AsyncMock(side_effect=LedgerConflictError)

        with pytest.raises(LedgerConflictError):
            await service.record_video_progress(student_id, course_id, "t2", 100)

        assert store.save_ledger.await_count == 3
