"""Course content tree API endpoints.

Trees are authored elsewhere; these routes let an operator seed or replace a
course tree and inspect what the progress engine will see.
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from .dependencies import CourseRepositoryDep, handle_course_error
from .models import Course
from .repository import CourseError
from .schemas import CourseTreeDocument


router = APIRouter(prefix="/v1/courses", tags=["courses"])


class TopicSummary(BaseModel):
    id: str
    title: str
    items: list[str]


class LevelSummary(BaseModel):
    id: str
    title: str
    topics: list[TopicSummary]
    has_major_task: bool


class CourseTreeSummary(BaseModel):
    id: UUID
    title: str
    levels: list[LevelSummary]
    has_capstone: bool

    @classmethod
    def from_course(cls, course: Course) -> "CourseTreeSummary":
        return cls(
            id=course.id,
            title=course.title,
            levels=[
                LevelSummary(
                    id=level.id,
                    title=level.title,
                    topics=[
                        TopicSummary(
                            id=topic.id,
                            title=topic.title,
                            items=[item.kind.value for item in topic.items],
                        )
                        for topic in level.topics
                    ],
                    has_major_task=level.major_task is not None,
                )
                for level in course.levels
            ],
            has_capstone=course.capstone is not None,
        )


@router.put(
    "/{course_id}/tree",
    response_model=CourseTreeSummary,
    summary="Store course content tree",
)
async def put_course_tree(
    course_id: UUID,
    document: CourseTreeDocument,
    repository: CourseRepositoryDep,
) -> CourseTreeSummary:
    """Store (replace) the content tree of a course."""
    if document.id != course_id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Document id does not match course id",
        )
    course = await repository.put_course_tree(document)
    return CourseTreeSummary.from_course(course)


@router.get(
    "/{course_id}/tree",
    response_model=CourseTreeSummary,
    summary="Get course content tree",
)
async def get_course_tree(
    course_id: UUID,
    repository: CourseRepositoryDep,
) -> CourseTreeSummary:
    try:
        course = await repository.get_course_tree(course_id)
    except CourseError as e:
        raise handle_course_error(e) from e
    return CourseTreeSummary.from_course(course)
