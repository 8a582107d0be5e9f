"""Enrollment ledger store.

Every write is a compare-and-swap on the ledger ``version``:

- ``create_ledger`` inserts only if no ledger exists (``IF NOT EXISTS``)
- ``save_ledger`` updates only if the stored version equals the version the
  caller loaded (``IF version = ?``)

A failed swap raises ``LedgerConflictError``; the caller reloads and
reapplies its fact.
"""

from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

import structlog

from .exceptions import AlreadyEnrolledError, LedgerConflictError, NotEnrolledError
from .models import EnrollmentLedger, encode_fact_map


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class EnrollmentStore(Protocol):
    async def load_ledger(self, student_id: UUID, course_id: UUID) -> EnrollmentLedger:
        """Return the ledger or raise NotEnrolledError."""
        ...

    async def create_ledger(self, ledger: EnrollmentLedger) -> EnrollmentLedger:
        """Insert a new ledger or raise AlreadyEnrolledError."""
        ...

    async def save_ledger(
        self, ledger: EnrollmentLedger, expected_version: int
    ) -> EnrollmentLedger:
        """Persist the ledger if the stored version still matches.

        Returns the saved ledger (version bumped). Raises LedgerConflictError.
        """
        ...

    async def delete_ledger(self, student_id: UUID, course_id: UUID) -> None:
        """Remove the ledger or raise NotEnrolledError."""
        ...


class CassandraEnrollmentStore:
    """Ledgers as single rows of ``enrollment_ledgers``."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        self._get_ledger = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollment_ledgers
            WHERE student_id = ? AND course_id = ?
        """)

        self._insert_ledger = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollment_ledgers
            (student_id, course_id, version, enrolled_at, updated_at,
             completed_topics, completed_levels, video_progress, quiz_results,
             task_submissions, reading_progress, progress_percent,
             certificate_issued, certificate_id, certificate_issued_date)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._update_ledger = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollment_ledgers
            SET version = ?, updated_at = ?,
                completed_topics = ?, completed_levels = ?,
                video_progress = ?, quiz_results = ?,
                task_submissions = ?, reading_progress = ?,
                progress_percent = ?, certificate_issued = ?,
                certificate_id = ?, certificate_issued_date = ?
            WHERE student_id = ? AND course_id = ?
            IF version = ?
        """)

        self._delete_ledger = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.enrollment_ledgers
            WHERE student_id = ? AND course_id = ?
            IF EXISTS
        """)

    async def load_ledger(self, student_id: UUID, course_id: UUID) -> EnrollmentLedger:
        result = await self.session.aexecute(self._get_ledger, [student_id, course_id])
        row = result.one()
        if not row:
            raise NotEnrolledError
        return EnrollmentLedger.from_row(row)

    async def create_ledger(self, ledger: EnrollmentLedger) -> EnrollmentLedger:
        created = replace(ledger, version=1)
        result = await self.session.aexecute(
            self._insert_ledger,
            [
                created.student_id,
                created.course_id,
                created.version,
                created.enrolled_at,
                created.updated_at,
                set(created.completed_topics),
                set(created.completed_levels),
                encode_fact_map(created.video_progress),
                encode_fact_map(created.quiz_results),
                encode_fact_map(created.task_submissions),
                encode_fact_map(created.reading_progress),
                created.progress_percent,
                created.certificate_issued,
                created.certificate_id,
                created.certificate_issued_date,
            ],
        )
        if not result.was_applied:
            raise AlreadyEnrolledError
        return created

    async def save_ledger(
        self, ledger: EnrollmentLedger, expected_version: int
    ) -> EnrollmentLedger:
        saved = replace(
            ledger, version=expected_version + 1, updated_at=datetime.now(UTC)
        )
        result = await self.session.aexecute(
            self._update_ledger,
            [
                saved.version,
                saved.updated_at,
                set(saved.completed_topics),
                set(saved.completed_levels),
                encode_fact_map(saved.video_progress),
                encode_fact_map(saved.quiz_results),
                encode_fact_map(saved.task_submissions),
                encode_fact_map(saved.reading_progress),
                saved.progress_percent,
                saved.certificate_issued,
                saved.certificate_id,
                saved.certificate_issued_date,
                saved.student_id,
                saved.course_id,
                expected_version,
            ],
        )
        if not result.was_applied:
            logger.info(
                "ledger_version_conflict",
                student_id=str(ledger.student_id),
                course_id=str(ledger.course_id),
                expected_version=expected_version,
            )
            raise LedgerConflictError
        return saved

    async def delete_ledger(self, student_id: UUID, course_id: UUID) -> None:
        result = await self.session.aexecute(
            self._delete_ledger, [student_id, course_id]
        )
        if not result.was_applied:
            raise NotEnrolledError


class InMemoryEnrollmentStore:
    """Process-local ledgers with the same version checks."""

    def __init__(self) -> None:
        self._ledgers: dict[tuple[UUID, UUID], EnrollmentLedger] = {}

    async def load_ledger(self, student_id: UUID, course_id: UUID) -> EnrollmentLedger:
        ledger = self._ledgers.get((student_id, course_id))
        if ledger is None:
            raise NotEnrolledError
        return ledger

    async def create_ledger(self, ledger: EnrollmentLedger) -> EnrollmentLedger:
        key = (ledger.student_id, ledger.course_id)
        if key in self._ledgers:
            raise AlreadyEnrolledError
        created = replace(ledger, version=1)
        self._ledgers[key] = created
        return created

    async def save_ledger(
        self, ledger: EnrollmentLedger, expected_version: int
    ) -> EnrollmentLedger:
        key = (ledger.student_id, ledger.course_id)
        current = self._ledgers.get(key)
        if current is None or current.version != expected_version:
            raise LedgerConflictError
        saved = replace(
            ledger, version=expected_version + 1, updated_at=datetime.now(UTC)
        )
        self._ledgers[key] = saved
        return saved

    async def delete_ledger(self, student_id: UUID, course_id: UUID) -> None:
        if self._ledgers.pop((student_id, course_id), None) is None:
            raise NotEnrolledError
