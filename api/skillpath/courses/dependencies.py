"""FastAPI dependencies for course content trees."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .repository import CourseError, CourseRepository


async def get_course_repository(request: Request) -> CourseRepository:
    """Get course repository from app state."""
    repository = getattr(request.app.state, "course_repository", None)
    if repository is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Course repository not available",
        )
    return repository


CourseRepositoryDep = Annotated[CourseRepository, Depends(get_course_repository)]


def handle_course_error(error: CourseError) -> HTTPException:
    """Convert course errors to HTTP exceptions."""
    status_map = {
        "course_not_found": status.HTTP_404_NOT_FOUND,
        "invalid_course_tree": status.HTTP_422_UNPROCESSABLE_ENTITY,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
