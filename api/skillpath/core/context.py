"""Request context management using contextvars.

Every request (or background job) carries a request id and, once known, the
student and course whose ledger is being touched. Log processors read these
values so that ledger events can be correlated without threading the ids
through every call.
"""

from contextvars import ContextVar
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
student_id_var: ContextVar[str | None] = ContextVar("student_id", default=None)
course_id_var: ContextVar[str | None] = ContextVar("course_id", default=None)
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context.

    Args:
        request_id: Optional request ID. If not provided, generates a new one.

    Returns:
        The request ID that was set.
    """
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def _as_text(value: str | UUID | None) -> str | None:
    return str(value) if value is not None else None


def get_student_id() -> str | None:
    """Get the student whose ledger the current context works on."""
    return student_id_var.get()


def set_student_id(student_id: str | UUID | None) -> None:
    """Set the student ID for the current context."""
    student_id_var.set(_as_text(student_id))


def get_course_id() -> str | None:
    """Get the course of the current context."""
    return course_id_var.get()


def set_course_id(course_id: str | UUID | None) -> None:
    """Set the course ID for the current context."""
    course_id_var.set(_as_text(course_id))


def set_ledger_context(student_id: str | UUID, course_id: str | UUID) -> None:
    """Bind both halves of a ledger key to the current context."""
    set_student_id(student_id)
    set_course_id(course_id)


def get_correlation_id() -> str | None:
    """Get the current correlation ID."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None) -> None:
    """Set the correlation ID for the current context."""
    correlation_id_var.set(correlation_id)


def get_context() -> dict[str, Any]:
    """Get all non-empty context variables as a dictionary."""
    values = {
        "request_id": get_request_id(),
        "student_id": get_student_id(),
        "course_id": get_course_id(),
        "correlation_id": get_correlation_id(),
    }
    return {key: value for key, value in values.items() if value}


def clear_context() -> None:
    """Reset all context variables.

    Called at the end of each request so values never leak into the next one.
    """
    request_id_var.set("")
    student_id_var.set(None)
    course_id_var.set(None)
    correlation_id_var.set(None)


class LedgerContext:
    """Context manager scoping log context to one ledger operation.

    Usage:
        with LedgerContext(student_id, course_id):
            logger.info("ledger_saved")  # includes student_id and course_id
    """

    def __init__(
        self,
        student_id: str | UUID,
        course_id: str | UUID,
        request_id: str | None = None,
    ) -> None:
        self.student_id = student_id
        self.course_id = course_id
        self.request_id = request_id
        self._tokens: list[tuple[ContextVar, Any]] = []

    def __enter__(self) -> "LedgerContext":
        if self.request_id is not None or not get_request_id():
            self._tokens.append(
                (
                    request_id_var,
                    request_id_var.set(self.request_id or generate_request_id()),
                )
            )
        self._tokens.append(
            (student_id_var, student_id_var.set(str(self.student_id)))
        )
        self._tokens.append((course_id_var, course_id_var.set(str(self.course_id))))
        return self

    def __exit__(self, *_: object) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
