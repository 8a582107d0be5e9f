"""Shared fixtures.

Environment is forced to the in-memory backend before the app is imported:
no Cassandra, no Redis, no log files.
"""

import os


os.environ["ENVIRONMENT"] = "testing"
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["REDIS_ENABLED"] = "false"
os.environ["LOG_FILE_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.pop("RENDERER_URL", None)

from collections.abc import Iterator  # noqa: E402
from uuid import UUID, uuid4  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from skillpath.config import get_settings  # noqa: E402
from skillpath.courses.models import Course  # noqa: E402
from skillpath.courses.repository import InMemoryCourseRepository  # noqa: E402
from skillpath.courses.schemas import CourseTreeDocument  # noqa: E402
from skillpath.progress.models import EnrollmentLedger  # noqa: E402


get_settings.cache_clear()


def build_course_document(course_id: UUID) -> CourseTreeDocument:
    """Two levels, mixed item kinds, one vacuous topic, capstone.

    Gradable items counted by progress: t1 (4) + t2 (1) + t3 (1) + t4 (0)
    + major task of l1 (1) = 7.
    """
    return CourseTreeDocument.model_validate(
        {
            "id": str(course_id),
            "title": "Python Foundations",
            "levels": [
                {
                    "id": "l1",
                    "title": "Basics",
                    "topics": [
                        {
                            "id": "t1",
                            "title": "Variables",
                            "video": {"url": "https://cdn.example/t1.mp4"},
                            "quiz": [
                                {
                                    "question": "2 + 2?",
                                    "options": ["3", "4"],
                                    "correct_answer": "4",
                                    "explanation": "Basic arithmetic",
                                },
                                {
                                    "question": "Is Python typed?",
                                    "options": ["true", "false"],
                                    "question_type": "true_false",
                                    "correct_answer": "true",
                                },
                            ],
                            "mini_task": {"title": "Swap two variables"},
                            "reading_material": {"content": "Names bind values."},
                        },
                        {
                            "id": "t2",
                            "title": "Loops",
                            "video": {"url": "https://cdn.example/t2.mp4"},
                        },
                    ],
                    "major_task": {"title": "Build a calculator"},
                },
                {
                    "id": "l2",
                    "title": "Functions",
                    "topics": [
                        {
                            "id": "t3",
                            "title": "Defining functions",
                            "quiz": [
                                {
                                    "question": "Keyword to define a function?",
                                    "correct_answer": "def",
                                    "question_type": "code_output",
                                }
                            ],
                        },
                        {"id": "t4", "title": "Recap"},
                    ],
                },
            ],
            "capstone_project": {"title": "Ship a CLI tool"},
        }
    )


@pytest.fixture
def student_id() -> UUID:
    """Test student ID."""
    return uuid4()


@pytest.fixture
def course_id() -> UUID:
    """Test course ID."""
    return uuid4()


@pytest.fixture
def course_document(course_id: UUID) -> CourseTreeDocument:
    return build_course_document(course_id)


@pytest.fixture
def course(course_document: CourseTreeDocument) -> Course:
    return course_document.to_domain()


@pytest.fixture
def ledger(student_id: UUID, course_id: UUID) -> EnrollmentLedger:
    """Empty, never saved ledger."""
    return EnrollmentLedger.new(student_id, course_id)


@pytest_asyncio.fixture
async def course_repository(
    course_document: CourseTreeDocument,
) -> InMemoryCourseRepository:
    repository = InMemoryCourseRepository()
    await repository.put_course_tree(course_document)
    return repository


@pytest.fixture
def client() -> Iterator[TestClient]:
    """Test client running the app lifespan with in-memory storage."""
    from skillpath.main import create_app

    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture
def seeded_client(
    client: TestClient, course_document: CourseTreeDocument
) -> TestClient:
    """Client whose app already knows the sample course."""
    response = client.put(
        f"/v1/courses/{course_document.id}/tree",
        json=course_document.model_dump(mode="json"),
    )
    assert response.status_code == 200
    return client
