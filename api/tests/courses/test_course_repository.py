"""Tests for course repositories."""

from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest
from cassandra.cluster import Session

from skillpath.courses.repository import (
    CassandraCourseRepository,
    CourseNotFoundError,
    InMemoryCourseRepository,
    InvalidCourseTreeError,
)
from skillpath.courses.schemas import CourseTreeDocument


@pytest.fixture
def mock_session():
    """Mock Cassandra session."""
    session = Mock(spec=Session)
    session.prepare = Mock(return_value=Mock())
    session.aexecute = AsyncMock(return_value=Mock())
    return session


@pytest.fixture
def repository(mock_session) -> CassandraCourseRepository:
    return CassandraCourseRepository(session=mock_session, keyspace="test_keyspace")


class TestCassandraCourseRepository:
    def test_prepares_statements_for_keyspace(self, repository, mock_session):
        statements = [call.args[0] for call in mock_session.prepare.call_args_list]
        assert all("test_keyspace.course_trees" in cql for cql in statements)

    @pytest.mark.asyncio
    async def test_get_course_tree_parses_document(
        self,
        repository: CassandraCourseRepository,
        mock_session,
        course_document: CourseTreeDocument,
    ):
        row = Mock(document=course_document.model_dump_json())
        mock_session.aexecute.return_value = Mock(one=Mock(return_value=row))

        course = await repository.get_course_tree(course_document.id)

        assert course.id == course_document.id
        assert [level.id for level in course.levels] == ["l1", "l2"]

    @pytest.mark.asyncio
    async def test_missing_course_raises_not_found(self, repository, mock_session):
        mock_session.aexecute.return_value = Mock(one=Mock(return_value=None))

        with pytest.raises(CourseNotFoundError):
            await repository.get_course_tree(uuid4())

    @pytest.mark.asyncio
    async def test_corrupt_document_raises_invalid_tree(
        self, repository, mock_session
    ):
        row = Mock(document='{"title": 3}')
        mock_session.aexecute.return_value = Mock(one=Mock(return_value=row))

        with pytest.raises(InvalidCourseTreeError):
            await repository.get_course_tree(uuid4())

    @pytest.mark.asyncio
    async def test_put_course_tree_writes_document(
        self, repository, mock_session, course_document: CourseTreeDocument
    ):
        course = await repository.put_course_tree(course_document)

        params = mock_session.aexecute.call_args.args[1]
        assert params[0] == course_document.id
        assert params[1] == "Python Foundations"
        assert CourseTreeDocument.model_validate_json(params[2]) == course_document
        assert course.capstone is not None


class TestInMemoryCourseRepository:
    @pytest.mark.asyncio
    async def test_put_then_get(self, course_document: CourseTreeDocument):
        repository = InMemoryCourseRepository()
        await repository.put_course_tree(course_document)

        course = await repository.get_course_tree(course_document.id)
        assert course.title == "Python Foundations"

    @pytest.mark.asyncio
    async def test_unknown_course(self, course_id: UUID):
        with pytest.raises(CourseNotFoundError):
            await InMemoryCourseRepository().get_course_tree(course_id)
