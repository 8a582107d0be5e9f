"""Course repository: loads content trees for progress computations."""

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

import structlog
from pydantic import ValidationError

from .models import Course
from .schemas import CourseTreeDocument


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CourseError(Exception):
    """Base course error."""

    def __init__(self, message: str, code: str = "course_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CourseNotFoundError(CourseError):
    """Course not found."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class InvalidCourseTreeError(CourseError):
    """Stored course document could not be parsed."""

    def __init__(self, message: str = "Course content tree is invalid"):
        super().__init__(message, "invalid_course_tree")


# ==============================================================================
# Repositories
# ==============================================================================


class CourseRepository(Protocol):
    async def get_course_tree(self, course_id: UUID) -> Course:
        """Return the course tree or raise CourseNotFoundError."""
        ...

    async def put_course_tree(self, document: CourseTreeDocument) -> Course:
        """Store (replace) a course tree document."""
        ...


class CassandraCourseRepository:
    """Course trees stored as JSON documents in Cassandra."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        self._get_tree = self.session.prepare(f"""
            SELECT course_id, title, document FROM {self.keyspace}.course_trees
            WHERE course_id = ?
        """)

        self._upsert_tree = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.course_trees
            (course_id, title, document, updated_at)
            VALUES (?, ?, ?, ?)
        """)

    async def get_course_tree(self, course_id: UUID) -> Course:
        result = await self.session.aexecute(self._get_tree, [course_id])
        row = result.one()
        if not row:
            raise CourseNotFoundError

        try:
            document = CourseTreeDocument.model_validate_json(row.document)
        except ValidationError as e:
            logger.error(
                "course_tree_invalid",
                course_id=str(course_id),
                errors=e.error_count(),
            )
            raise InvalidCourseTreeError from e

        return document.to_domain()

    async def put_course_tree(self, document: CourseTreeDocument) -> Course:
        course = document.to_domain()
        await self.session.aexecute(
            self._upsert_tree,
            [
                document.id,
                document.title,
                document.model_dump_json(),
                datetime.now(UTC),
            ],
        )
        logger.info(
            "course_tree_stored",
            course_id=str(document.id),
            levels=len(course.levels),
        )
        return course


class InMemoryCourseRepository:
    """Process-local course trees (development and tests)."""

    def __init__(self) -> None:
        self._courses: dict[UUID, Course] = {}

    async def get_course_tree(self, course_id: UUID) -> Course:
        course = self._courses.get(course_id)
        if course is None:
            raise CourseNotFoundError
        return course

    async def put_course_tree(self, document: CourseTreeDocument) -> Course:
        course = document.to_domain()
        self._courses[course.id] = course
        return course
