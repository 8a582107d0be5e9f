"""Certificate models.

A certificate is issued at most once per (student, course). Two tables:

- ``certificates``: the record, looked up by id (public verification)
- ``certificates_by_enrollment``: the per-enrollment claim, written with
  ``IF NOT EXISTS`` before the ledger is flagged as issued; also serves the
  "my certificates" listing
"""

import secrets
import string
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from skillpath.progress.models import ensure_utc_aware


class CertificateStatus(str, Enum):
    VALID = "valid"
    REVOKED = "revoked"


class AssetStatus(str, Enum):
    """Rendering state of the certificate document."""

    PENDING = "pending"  # Issued, renderer not reached yet (or failed)
    READY = "ready"


ID_ALPHABET = string.digits + string.ascii_uppercase
ID_SUFFIX_LENGTH = 6


def generate_certificate_id(prefix: str = "SL", year: int | None = None) -> str:
    """Random certificate id: ``{prefix}-{year}-{6 base36 chars}``."""
    year = year or datetime.now(UTC).year
    suffix = "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_SUFFIX_LENGTH))
    return f"{prefix}-{year}-{suffix}"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

CERTIFICATES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates (
    certificate_id TEXT PRIMARY KEY,
    student_id UUID,
    course_id UUID,
    student_name TEXT,
    course_name TEXT,
    course_duration TEXT,
    completion_date TIMESTAMP,
    issue_date TIMESTAMP,
    status TEXT,
    asset_status TEXT,
    asset_url TEXT,
    verification_url TEXT,
    render_attempts INT
)
"""

# Claim: one row per enrollment, clustering by course for student listing
CERTIFICATES_BY_ENROLLMENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates_by_enrollment (
    student_id UUID,
    course_id UUID,
    certificate_id TEXT,
    issue_date TIMESTAMP,
    PRIMARY KEY ((student_id), course_id)
)
"""

CERTIFICATES_TABLES_CQL = [
    CERTIFICATES_TABLE_CQL,
    CERTIFICATES_BY_ENROLLMENT_TABLE_CQL,
]


@dataclass(frozen=True, slots=True)
class Certificate:
    """Issued certificate.

    Attributes:
        certificate_id: Public id, e.g. SL-2026-4K7Q1Z
        student_id: Student UUID
        course_id: Course UUID
        student_name: Name printed on the certificate
        course_name: Course title at issue time
        course_duration: Printed duration, e.g. "120 Hours"
        completion_date: When the course requirements were met
        issue_date: When the certificate was issued
        status: valid or revoked
        asset_status: pending until the renderer returned a document
        asset_url: Rendered document location
        verification_url: Public verification page (QR payload)
        render_attempts: Renderer calls so far
    """

    certificate_id: str
    student_id: UUID
    course_id: UUID
    student_name: str
    course_name: str
    course_duration: str
    completion_date: datetime
    issue_date: datetime
    status: CertificateStatus = CertificateStatus.VALID
    asset_status: AssetStatus = AssetStatus.PENDING
    asset_url: str | None = None
    verification_url: str | None = None
    render_attempts: int = 0

    @classmethod
    def from_row(cls, row: Any) -> "Certificate":
        """Create Certificate instance from Cassandra row."""
        return cls(
            certificate_id=row.certificate_id,
            student_id=row.student_id,
            course_id=row.course_id,
            student_name=row.student_name or "",
            course_name=row.course_name or "",
            course_duration=row.course_duration or "",
            completion_date=ensure_utc_aware(row.completion_date),
            issue_date=ensure_utc_aware(row.issue_date),
            status=CertificateStatus(row.status or CertificateStatus.VALID.value),
            asset_status=AssetStatus(row.asset_status or AssetStatus.PENDING.value),
            asset_url=row.asset_url,
            verification_url=row.verification_url,
            render_attempts=row.render_attempts or 0,
        )

    @property
    def is_valid(self) -> bool:
        return self.status == CertificateStatus.VALID
