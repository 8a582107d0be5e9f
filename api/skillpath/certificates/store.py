"""Certificate store (Cassandra and in-memory)."""

from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

import structlog

from .models import AssetStatus, Certificate


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class CertificateStore(Protocol):
    async def insert_certificate(self, certificate: Certificate) -> bool:
        """Insert if the id is unused. Returns False on id collision."""
        ...

    async def claim_enrollment(
        self,
        student_id: UUID,
        course_id: UUID,
        certificate_id: str,
        issue_date: datetime,
    ) -> str:
        """Claim the enrollment for a certificate id.

        Returns the id holding the claim: ``certificate_id`` when this call won,
        the earlier id otherwise.
        """
        ...

    async def get_claim(self, student_id: UUID, course_id: UUID) -> str | None: ...

    async def get_certificate(self, certificate_id: str) -> Certificate | None: ...

    async def list_for_student(self, student_id: UUID) -> list[Certificate]: ...

    async def update_asset(
        self,
        certificate_id: str,
        asset_status: AssetStatus,
        asset_url: str | None,
        render_attempts: int,
    ) -> None: ...

    async def delete_certificate(self, certificate_id: str) -> None: ...


class CassandraCertificateStore:
    """Certificates in Cassandra, uniqueness via lightweight transactions."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        self._insert_certificate = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates
            (certificate_id, student_id, course_id, student_name, course_name,
             course_duration, completion_date, issue_date, status, asset_status,
             asset_url, verification_url, render_attempts)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._get_certificate = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates
            WHERE certificate_id = ?
        """)

        self._update_asset = self.session.prepare(f"""
            UPDATE {self.keyspace}.certificates
            SET asset_status = ?, asset_url = ?, render_attempts = ?
            WHERE certificate_id = ?
        """)

        self._delete_certificate = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.certificates
            WHERE certificate_id = ?
        """)

        self._insert_claim = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates_by_enrollment
            (student_id, course_id, certificate_id, issue_date)
            VALUES (?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._get_claim = self.session.prepare(f"""
            SELECT certificate_id FROM {self.keyspace}.certificates_by_enrollment
            WHERE student_id = ? AND course_id = ?
        """)

        self._get_student_claims = self.session.prepare(f"""
            SELECT certificate_id FROM {self.keyspace}.certificates_by_enrollment
            WHERE student_id = ?
        """)

    async def insert_certificate(self, certificate: Certificate) -> bool:
        result = await self.session.aexecute(
            self._insert_certificate,
            [
                certificate.certificate_id,
                certificate.student_id,
                certificate.course_id,
                certificate.student_name,
                certificate.course_name,
                certificate.course_duration,
                certificate.completion_date,
                certificate.issue_date,
                certificate.status.value,
                certificate.asset_status.value,
                certificate.asset_url,
                certificate.verification_url,
                certificate.render_attempts,
            ],
        )
        return bool(result.was_applied)

    async def claim_enrollment(
        self,
        student_id: UUID,
        course_id: UUID,
        certificate_id: str,
        issue_date: datetime,
    ) -> str:
        result = await self.session.aexecute(
            self._insert_claim, [student_id, course_id, certificate_id, issue_date]
        )
        if result.was_applied:
            return certificate_id

        existing = await self.get_claim(student_id, course_id)
        if existing is None:
            # Claim row vanished between the two statements
            msg = "Certificate claim disappeared during issuance"
            raise RuntimeError(msg)
        logger.info(
            "certificate_claim_taken",
            certificate_id=certificate_id,
            existing_certificate_id=existing,
        )
        return existing

    async def get_claim(self, student_id: UUID, course_id: UUID) -> str | None:
        result = await self.session.aexecute(self._get_claim, [student_id, course_id])
        row = result.one()
        return row.certificate_id if row else None

    async def get_certificate(self, certificate_id: str) -> Certificate | None:
        result = await self.session.aexecute(self._get_certificate, [certificate_id])
        row = result.one()
        return Certificate.from_row(row) if row else None

    async def list_for_student(self, student_id: UUID) -> list[Certificate]:
        rows = await self.session.aexecute(self._get_student_claims, [student_id])
        certificates = []
        for row in rows:
            certificate = await self.get_certificate(row.certificate_id)
            if certificate:
                certificates.append(certificate)
        return certificates

    async def update_asset(
        self,
        certificate_id: str,
        asset_status: AssetStatus,
        asset_url: str | None,
        render_attempts: int,
    ) -> None:
        await self.session.aexecute(
            self._update_asset,
            [asset_status.value, asset_url, render_attempts, certificate_id],
        )

    async def delete_certificate(self, certificate_id: str) -> None:
        await self.session.aexecute(self._delete_certificate, [certificate_id])


class InMemoryCertificateStore:
    """Process-local certificates (development and tests)."""

    def __init__(self) -> None:
        self._certificates: dict[str, Certificate] = {}
        self._claims: dict[tuple[UUID, UUID], str] = {}

    async def insert_certificate(self, certificate: Certificate) -> bool:
        if certificate.certificate_id in self._certificates:
            return False
        self._certificates[certificate.certificate_id] = certificate
        return True

    async def claim_enrollment(
        self,
        student_id: UUID,
        course_id: UUID,
        certificate_id: str,
        issue_date: datetime,
    ) -> str:
        return self._claims.setdefault((student_id, course_id), certificate_id)

    async def get_claim(self, student_id: UUID, course_id: UUID) -> str | None:
        return self._claims.get((student_id, course_id))

    async def get_certificate(self, certificate_id: str) -> Certificate | None:
        return self._certificates.get(certificate_id)

    async def list_for_student(self, student_id: UUID) -> list[Certificate]:
        return [
            self._certificates[certificate_id]
            for (claim_student, _), certificate_id in sorted(
                self._claims.items(), key=lambda item: str(item[0][1])
            )
            if claim_student == student_id and certificate_id in self._certificates
        ]

    async def update_asset(
        self,
        certificate_id: str,
        asset_status: AssetStatus,
        asset_url: str | None,
        render_attempts: int,
    ) -> None:
        certificate = self._certificates.get(certificate_id)
        if certificate is None:
            return
        self._certificates[certificate_id] = replace(
            certificate,
            asset_status=asset_status,
            asset_url=asset_url,
            render_attempts=render_attempts,
        )

    async def delete_certificate(self, certificate_id: str) -> None:
        self._certificates.pop(certificate_id, None)
