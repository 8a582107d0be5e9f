"""Certificate issuance service.

Issuance runs under the ledger lock of the enrollment:

1. already issued (ledger flag or enrollment claim) -> return the existing
   certificate, flagged ``already_issued``
2. evaluate eligibility, raise NotEligibleError when unmet
3. insert the certificate under a fresh random id (``IF NOT EXISTS``,
   bounded retries on collision)
4. claim the enrollment for that id (``IF NOT EXISTS``); a lost claim means
   another worker issued first, so the new record is deleted and the
   winner returned
5. flag the ledger as issued (version-checked save)

Rendering happens after the ledger lock is released, under a per-certificate
lock so concurrent calls render a certificate once. A renderer failure leaves
the certificate issued with asset status ``pending``; calling
``generate_certificate`` again retries the render.
"""

import asyncio
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from uuid import UUID
from weakref import WeakValueDictionary

import structlog

from skillpath.core.context import LedgerContext
from skillpath.courses.models import Course
from skillpath.progress.models import EnrollmentLedger
from skillpath.progress.service import ProgressService

from .eligibility import (
    DEFAULT_VIDEO_THRESHOLD,
    EligibilityReport,
    evaluate_eligibility,
)
from .exceptions import (
    CertificateIdExhaustedError,
    CertificateNotFoundError,
    NotEligibleError,
)
from .models import AssetStatus, Certificate, generate_certificate_id
from .renderer import DocumentRenderer, RendererError, build_verification_url
from .store import CertificateStore


logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class IssueResult:
    certificate: Certificate
    already_issued: bool = False


class CertificateService:
    """Service for certificate eligibility, issuance and verification."""

    def __init__(
        self,
        progress_service: ProgressService,
        certificate_store: CertificateStore,
        renderer: DocumentRenderer | None = None,
        *,
        id_prefix: str = "SL",
        id_max_attempts: int = 5,
        verify_base_url: str = "http://localhost:3000/verify-certificate",
        video_threshold: float = DEFAULT_VIDEO_THRESHOLD,
        absent_kinds_satisfied: bool = False,
        course_duration: str = "120 Hours",
        platform_name: str = "SkillPath",
    ):
        self.progress = progress_service
        self.certificate_store = certificate_store
        self.renderer = renderer
        self.id_prefix = id_prefix
        self.id_max_attempts = max(1, id_max_attempts)
        self.verify_base_url = verify_base_url
        self.video_threshold = video_threshold
        self.absent_kinds_satisfied = absent_kinds_satisfied
        self.course_duration = course_duration
        self.platform_name = platform_name
        # Entries disappear once no call holds or awaits the lock
        self._render_locks: WeakValueDictionary[str, asyncio.Lock] = (
            WeakValueDictionary()
        )

    # ==========================================================================
    # Eligibility
    # ==========================================================================

    def _evaluate(self, course: Course, ledger: EnrollmentLedger) -> EligibilityReport:
        return evaluate_eligibility(
            course,
            ledger,
            video_threshold=self.video_threshold,
            absent_kinds_satisfied=self.absent_kinds_satisfied,
        )

    async def check_eligibility(
        self, student_id: UUID, course_id: UUID
    ) -> tuple[EligibilityReport, EnrollmentLedger]:
        """Evaluate certificate criteria.

        Returns:
            Tuple of (report, ledger) so callers can show the issuance flag

        Raises:
            CourseNotFoundError: Unknown course
            NotEnrolledError: No ledger for the student and course
        """
        course = await self.progress.course_repository.get_course_tree(course_id)
        ledger = await self.progress.store.load_ledger(student_id, course_id)
        return self._evaluate(course, ledger), ledger

    # ==========================================================================
    # Issuance
    # ==========================================================================

    async def generate_certificate(
        self, student_id: UUID, course_id: UUID, student_name: str
    ) -> IssueResult:
        """Issue the certificate of an enrollment, at most once.

        Raises:
            CourseNotFoundError: Unknown course
            NotEnrolledError: No ledger for the student and course
            NotEligibleError: Requirements not met (carries the report)
            CertificateIdExhaustedError: No unique id within id_max_attempts
        """
        course = await self.progress.course_repository.get_course_tree(course_id)
        with LedgerContext(student_id, course_id):
            async with self.progress.locks.hold(student_id, course_id):
                result = await self._issue(course, student_id, student_name)

            if result.certificate.asset_status == AssetStatus.PENDING:
                rendered = await self._render_once(result.certificate)
                result = replace(result, certificate=rendered)
            return result

    async def _issue(
        self, course: Course, student_id: UUID, student_name: str
    ) -> IssueResult:
        ledger = await self.progress.store.load_ledger(student_id, course.id)

        existing = await self._find_existing(course, student_id, ledger)
        if existing is not None:
            logger.info(
                "certificate_already_issued",
                certificate_id=existing.certificate_id,
            )
            return IssueResult(certificate=existing, already_issued=True)

        report = self._evaluate(course, ledger)
        if not report.is_eligible:
            logger.info("certificate_not_eligible", unmet=report.unmet)
            raise NotEligibleError(report)

        now = datetime.now(UTC)
        certificate = await self._insert_with_unique_id(
            course, student_id, student_name, now
        )

        winner = await self.certificate_store.claim_enrollment(
            student_id, course.id, certificate.certificate_id, now
        )
        if winner != certificate.certificate_id:
            await self.certificate_store.delete_certificate(certificate.certificate_id)
            issued = await self.certificate_store.get_certificate(winner)
            if issued is None:
                raise CertificateNotFoundError
            await self._flag_ledger(course, student_id, issued)
            return IssueResult(certificate=issued, already_issued=True)

        await self._flag_ledger(course, student_id, certificate)
        logger.info(
            "certificate_issued",
            certificate_id=certificate.certificate_id,
        )
        return IssueResult(certificate=certificate)

    async def _find_existing(
        self, course: Course, student_id: UUID, ledger: EnrollmentLedger
    ) -> Certificate | None:
        if ledger.certificate_issued and ledger.certificate_id:
            certificate = await self.certificate_store.get_certificate(
                ledger.certificate_id
            )
            if certificate is None:
                logger.error(
                    "certificate_record_missing",
                    certificate_id=ledger.certificate_id,
                )
                raise CertificateNotFoundError
            return certificate

        # Claimed but the ledger flag was never written (crash in between)
        claimed_id = await self.certificate_store.get_claim(student_id, course.id)
        if claimed_id is None:
            return None
        certificate = await self.certificate_store.get_certificate(claimed_id)
        if certificate is None:
            return None
        await self._flag_ledger(course, student_id, certificate)
        return certificate

    async def _insert_with_unique_id(
        self, course: Course, student_id: UUID, student_name: str, now: datetime
    ) -> Certificate:
        for attempt in range(1, self.id_max_attempts + 1):
            certificate_id = generate_certificate_id(self.id_prefix, now.year)
            certificate = Certificate(
                certificate_id=certificate_id,
                student_id=student_id,
                course_id=course.id,
                student_name=student_name,
                course_name=course.title,
                course_duration=course.duration or self.course_duration,
                completion_date=now,
                issue_date=now,
                verification_url=build_verification_url(
                    self.verify_base_url, certificate_id
                ),
            )
            if await self.certificate_store.insert_certificate(certificate):
                return certificate
            logger.warning(
                "certificate_id_collision",
                certificate_id=certificate_id,
                attempt=attempt,
            )

        raise CertificateIdExhaustedError(self.id_max_attempts)

    async def _flag_ledger(
        self, course: Course, student_id: UUID, certificate: Certificate
    ) -> EnrollmentLedger:
        def change(ledger: EnrollmentLedger) -> EnrollmentLedger:
            if ledger.certificate_issued:
                return ledger
            return replace(
                ledger,
                certificate_issued=True,
                certificate_id=certificate.certificate_id,
                certificate_issued_date=certificate.issue_date,
            )

        return await self.progress.commit(course, student_id, change)

    async def _render_once(self, certificate: Certificate) -> Certificate:
        """Render unless another call already did, one render per id at a time."""
        lock = self._render_locks.get(certificate.certificate_id)
        if lock is None:
            lock = asyncio.Lock()
            self._render_locks[certificate.certificate_id] = lock

        async with lock:
            current = await self.certificate_store.get_certificate(
                certificate.certificate_id
            )
            if current is None:
                current = certificate
            if current.asset_status != AssetStatus.PENDING:
                return current
            return await self._render(current)

    async def _render(self, certificate: Certificate) -> Certificate:
        if self.renderer is None:
            logger.info(
                "certificate_render_skipped",
                certificate_id=certificate.certificate_id,
            )
            return certificate

        attempts = certificate.render_attempts + 1
        try:
            asset = await self.renderer.render(certificate)
        except RendererError as e:
            logger.warning(
                "certificate_render_failed",
                certificate_id=certificate.certificate_id,
                attempts=attempts,
                error=str(e),
            )
            await self.certificate_store.update_asset(
                certificate.certificate_id, AssetStatus.PENDING, None, attempts
            )
            return replace(certificate, render_attempts=attempts)

        await self.certificate_store.update_asset(
            certificate.certificate_id, AssetStatus.READY, asset.url, attempts
        )
        logger.info(
            "certificate_rendered",
            certificate_id=certificate.certificate_id,
            attempts=attempts,
        )
        return replace(
            certificate,
            asset_status=AssetStatus.READY,
            asset_url=asset.url,
            render_attempts=attempts,
        )

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def verify_certificate(self, certificate_id: str) -> Certificate:
        """Public lookup by certificate id.

        Raises:
            CertificateNotFoundError: Unknown id
        """
        certificate = await self.certificate_store.get_certificate(certificate_id)
        if certificate is None:
            raise CertificateNotFoundError
        return certificate

    async def list_student_certificates(self, student_id: UUID) -> list[Certificate]:
        return await self.certificate_store.list_for_student(student_id)
