"""Enrollment ledger models.

One ledger per (student, course) holds the raw interaction facts plus the
completion state derived from them:

- facts: video progress, quiz results, task submissions, reading progress
- derived: completed topics / levels and the overall progress percent
- certificate issuance flag

The ledger is stored as a single Cassandra row. Fact maps are JSON-encoded
TEXT columns; completion sets are native SET<TEXT>. ``version`` is bumped on
every save and checked with a lightweight transaction (compare-and-swap).
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

import orjson


class TaskType(str, Enum):
    """Which task a submission answers."""

    MINI = "mini"  # Topic mini task, task_id = topic id
    MAJOR = "major"  # Level major task, task_id = level id
    CAPSTONE = "capstone"  # Course capstone, task_id = course id


class SubmissionType(str, Enum):
    CODE = "code"
    LINK = "link"


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def _parse_datetime(value: str | None) -> datetime | None:
    return ensure_utc_aware(datetime.fromisoformat(value)) if value else None


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Ledger per student and course, single partition per enrollment
ENROLLMENT_LEDGERS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollment_ledgers (
    student_id UUID,
    course_id UUID,
    version INT,
    enrolled_at TIMESTAMP,
    updated_at TIMESTAMP,
    completed_topics SET<TEXT>,
    completed_levels SET<TEXT>,
    video_progress TEXT,
    quiz_results TEXT,
    task_submissions TEXT,
    reading_progress TEXT,
    progress_percent INT,
    certificate_issued BOOLEAN,
    certificate_id TEXT,
    certificate_issued_date TIMESTAMP,
    PRIMARY KEY ((student_id, course_id))
)
"""

PROGRESS_TABLES_CQL = [
    ENROLLMENT_LEDGERS_TABLE_CQL,
]


# ==============================================================================
# Fact Entries
# ==============================================================================


@dataclass(frozen=True, slots=True)
class VideoProgress:
    watched_percent: float
    last_timestamp: float = 0
    updated_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class QuizResult:
    score: int
    total_questions: int
    attempted: bool = True
    attempted_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class TaskSubmission:
    task_type: TaskType
    content: str
    completed: bool = True
    submitted_at: datetime | None = None
    submission_type: SubmissionType | None = None


@dataclass(frozen=True, slots=True)
class ReadingProgress:
    completed: bool
    completed_at: datetime | None = None


# ==============================================================================
# Ledger
# ==============================================================================


@dataclass(frozen=True, slots=True)
class EnrollmentLedger:
    """Interaction facts and completion state of one student in one course.

    Instances are never mutated in place: merge rules and the recalculator
    return new ledgers built with ``dataclasses.replace``.

    Attributes:
        student_id: Student UUID
        course_id: Course UUID
        completed_topics: Topic ids, append-only
        completed_levels: Level ids, append-only
        video_progress: topic id -> watched percent (never decreases)
        quiz_results: topic id -> best score, attempt flag
        task_submissions: task id -> latest submission
        reading_progress: topic id -> reading completion
        progress_percent: 0-100, recomputed from scratch on every mutation
        certificate_issued: Whether a certificate was issued
        certificate_id: Issued certificate id
        certificate_issued_date: Issue timestamp
        version: Optimistic concurrency counter (0 = never saved)
    """

    student_id: UUID
    course_id: UUID
    enrolled_at: datetime | None = None
    updated_at: datetime | None = None
    completed_topics: frozenset[str] = frozenset()
    completed_levels: frozenset[str] = frozenset()
    video_progress: dict[str, VideoProgress] = field(default_factory=dict)
    quiz_results: dict[str, QuizResult] = field(default_factory=dict)
    task_submissions: dict[str, TaskSubmission] = field(default_factory=dict)
    reading_progress: dict[str, ReadingProgress] = field(default_factory=dict)
    progress_percent: int = 0
    certificate_issued: bool = False
    certificate_id: str | None = None
    certificate_issued_date: datetime | None = None
    version: int = 0

    @classmethod
    def new(cls, student_id: UUID, course_id: UUID) -> "EnrollmentLedger":
        """Empty ledger created at enrollment time."""
        now = datetime.now(UTC)
        return cls(
            student_id=student_id,
            course_id=course_id,
            enrolled_at=now,
            updated_at=now,
        )

    @classmethod
    def from_row(cls, row: Any) -> "EnrollmentLedger":
        """Create EnrollmentLedger instance from Cassandra row."""
        return cls(
            student_id=row.student_id,
            course_id=row.course_id,
            enrolled_at=ensure_utc_aware(row.enrolled_at),
            updated_at=ensure_utc_aware(row.updated_at),
            completed_topics=frozenset(row.completed_topics or ()),
            completed_levels=frozenset(row.completed_levels or ()),
            video_progress=decode_video_progress(row.video_progress),
            quiz_results=decode_quiz_results(row.quiz_results),
            task_submissions=decode_task_submissions(row.task_submissions),
            reading_progress=decode_reading_progress(row.reading_progress),
            progress_percent=row.progress_percent or 0,
            certificate_issued=bool(row.certificate_issued),
            certificate_id=row.certificate_id,
            certificate_issued_date=ensure_utc_aware(row.certificate_issued_date),
            version=row.version or 0,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (API / logging friendly)."""
        return {
            "student_id": self.student_id,
            "course_id": self.course_id,
            "enrolled_at": self.enrolled_at,
            "updated_at": self.updated_at,
            "completed_topics": sorted(self.completed_topics),
            "completed_levels": sorted(self.completed_levels),
            "video_progress": _encode_entries(self.video_progress),
            "quiz_results": _encode_entries(self.quiz_results),
            "task_submissions": _encode_entries(self.task_submissions),
            "reading_progress": _encode_entries(self.reading_progress),
            "progress_percent": self.progress_percent,
            "certificate_issued": self.certificate_issued,
            "certificate_id": self.certificate_id,
            "certificate_issued_date": self.certificate_issued_date,
            "version": self.version,
        }

    def __repr__(self) -> str:
        return (
            f"<EnrollmentLedger student={self.student_id} course={self.course_id} "
            f"v{self.version} {self.progress_percent}%>"
        )


# ==============================================================================
# JSON Column Encoding
# ==============================================================================


def _encode_entries(entries: dict[str, Any]) -> dict[str, dict[str, Any]]:
    encoded: dict[str, dict[str, Any]] = {}
    for key, entry in entries.items():
        values = {name: getattr(entry, name) for name in entry.__slots__}
        encoded[key] = {
            name: value.value if isinstance(value, Enum) else value
            for name, value in values.items()
        }
    return encoded


def encode_fact_map(entries: dict[str, Any]) -> str:
    """Encode a fact map for a TEXT column."""
    return orjson.dumps(_encode_entries(entries)).decode()


def _load(raw: str | None) -> dict[str, dict[str, Any]]:
    return orjson.loads(raw) if raw else {}


def decode_video_progress(raw: str | None) -> dict[str, VideoProgress]:
    return {
        topic_id: VideoProgress(
            watched_percent=entry["watched_percent"],
            last_timestamp=entry.get("last_timestamp") or 0,
            updated_at=_parse_datetime(entry.get("updated_at")),
        )
        for topic_id, entry in _load(raw).items()
    }


def decode_quiz_results(raw: str | None) -> dict[str, QuizResult]:
    return {
        topic_id: QuizResult(
            score=entry["score"],
            total_questions=entry["total_questions"],
            attempted=bool(entry.get("attempted")),
            attempted_at=_parse_datetime(entry.get("attempted_at")),
        )
        for topic_id, entry in _load(raw).items()
    }


def decode_task_submissions(raw: str | None) -> dict[str, TaskSubmission]:
    return {
        task_id: TaskSubmission(
            task_type=TaskType(entry["task_type"]),
            content=entry.get("content") or "",
            completed=bool(entry.get("completed")),
            submitted_at=_parse_datetime(entry.get("submitted_at")),
            submission_type=(
                SubmissionType(entry["submission_type"])
                if entry.get("submission_type")
                else None
            ),
        )
        for task_id, entry in _load(raw).items()
    }


def decode_reading_progress(raw: str | None) -> dict[str, ReadingProgress]:
    return {
        topic_id: ReadingProgress(
            completed=bool(entry.get("completed")),
            completed_at=_parse_datetime(entry.get("completed_at")),
        )
        for topic_id, entry in _load(raw).items()
    }
