"""Progress tracking errors.

Each error carries a stable ``code`` that the HTTP layer maps to a status.
"""


class ProgressError(Exception):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotEnrolledError(ProgressError):
    """Student not enrolled in course (no ledger)."""

    def __init__(self, message: str = "Student is not enrolled in this course"):
        super().__init__(message, "not_enrolled")


class AlreadyEnrolledError(ProgressError):
    """A ledger already exists for the student and course."""

    def __init__(self, message: str = "Student is already enrolled in this course"):
        super().__init__(message, "already_enrolled")


class TopicNotFoundError(ProgressError):
    def __init__(self, message: str = "Topic not found"):
        super().__init__(message, "topic_not_found")


class LevelNotFoundError(ProgressError):
    def __init__(self, message: str = "Level not found"):
        super().__init__(message, "level_not_found")


class ContentItemNotFoundError(ProgressError):
    """Addressed topic/level/course does not carry the submitted item kind."""

    def __init__(self, message: str = "Content item not found"):
        super().__init__(message, "item_not_found")


class PreconditionFailedError(ProgressError):
    """Manual completion attempted before all children are complete."""

    def __init__(self, message: str, missing: list[str] | None = None):
        self.missing = missing or []
        super().__init__(message, "precondition_failed")


class LedgerConflictError(ProgressError):
    """Ledger changed between load and save (stale version)."""

    def __init__(
        self,
        message: str = "Enrollment was modified concurrently, please retry",
    ):
        super().__init__(message, "ledger_conflict")
