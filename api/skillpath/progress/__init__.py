"""Student progress tracking module.

Provides:
- Enrollment ledger (raw interaction facts plus derived completion state)
- Pure progress recalculation with upward completion cascade
- Mutation entry points serialized per ledger
- Quiz grading

Note: Router is not exported here to avoid circular imports.
Import directly from skillpath.progress.router when needed.
"""

from .models import (
    PROGRESS_TABLES_CQL,
    EnrollmentLedger,
    QuizResult,
    ReadingProgress,
    SubmissionType,
    TaskSubmission,
    TaskType,
    VideoProgress,
)
from .recalculator import recalculate_progress
from .service import ProgressService


__all__ = [
    "PROGRESS_TABLES_CQL",
    "EnrollmentLedger",
    "ProgressService",
    "QuizResult",
    "ReadingProgress",
    "SubmissionType",
    "TaskSubmission",
    "TaskType",
    "VideoProgress",
    "recalculate_progress",
]
