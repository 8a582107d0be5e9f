"""Tests for certificate issuance."""

import asyncio
import re
from dataclasses import replace
from datetime import UTC, datetime
from uuid import UUID

import pytest
import pytest_asyncio

from skillpath.certificates.exceptions import (
    CertificateIdExhaustedError,
    CertificateNotFoundError,
    NotEligibleError,
)
from skillpath.certificates.models import AssetStatus, Certificate
from skillpath.certificates.renderer import RenderedAsset, RendererError
from skillpath.certificates.service import CertificateService
from skillpath.certificates.store import InMemoryCertificateStore
from skillpath.courses.repository import InMemoryCourseRepository
from skillpath.progress.exceptions import NotEnrolledError
from skillpath.progress.models import TaskType
from skillpath.progress.service import ProgressService
from skillpath.progress.store import InMemoryEnrollmentStore


class FakeRenderer:
    """Records calls; fails while ``failures`` is positive."""

    def __init__(self, failures: int = 0, delay: float = 0):
        self.failures = failures
        self.delay = delay
        self.calls: list[str] = []

    async def render(self, certificate: Certificate) -> RenderedAsset:
        self.calls.append(certificate.certificate_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failures > 0:
            self.failures -= 1
            raise RendererError("Renderer error: 502")
        url = f"https://cdn.example/{certificate.certificate_id}.pdf"
        return RenderedAsset(url=url)


class CollidingStore(InMemoryCertificateStore):
    """Every id is already taken."""

    async def insert_certificate(self, certificate: Certificate) -> bool:
        return False


class RacingStore(InMemoryCertificateStore):
    """Another worker claims the enrollment just before our claim lands."""

    def __init__(self, rival: Certificate):
        super().__init__()
        self.rival = rival

    async def claim_enrollment(self, student_id, course_id, certificate_id, issue_date):
        if await self.get_claim(student_id, course_id) is None:
            await self.insert_certificate(self.rival)
            await super().claim_enrollment(
                student_id, course_id, self.rival.certificate_id, issue_date
            )
        return await super().claim_enrollment(
            student_id, course_id, certificate_id, issue_date
        )


@pytest.fixture
def progress_service(course_repository: InMemoryCourseRepository) -> ProgressService:
    return ProgressService(
        course_repository=course_repository, store=InMemoryEnrollmentStore()
    )


@pytest.fixture
def certificate_store() -> InMemoryCertificateStore:
    return InMemoryCertificateStore()


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def certificate_service(
    progress_service: ProgressService,
    certificate_store: InMemoryCertificateStore,
    renderer: FakeRenderer,
) -> CertificateService:
    return CertificateService(
        progress_service,
        certificate_store,
        renderer,
        verify_base_url="https://skillpath.example/verify",
    )


async def complete_course(
    progress: ProgressService, student_id: UUID, course_id: UUID
) -> None:
    await progress.record_video_progress(student_id, course_id, "t1", 100)
    await progress.record_video_progress(student_id, course_id, "t2", 100)
    await progress.submit_quiz(student_id, course_id, "t1", ["4", "true"])
    await progress.submit_quiz(student_id, course_id, "t3", ["def"])
    await progress.submit_task(student_id, course_id, "t1", TaskType.MINI, "code")
    await progress.submit_task(student_id, course_id, "l1", TaskType.MAJOR, "repo")
    await progress.submit_task(
        student_id, course_id, str(course_id), TaskType.CAPSTONE, "demo"
    )


@pytest_asyncio.fixture
async def eligible(
    progress_service: ProgressService, student_id: UUID, course_id: UUID
) -> None:
    await progress_service.enroll(student_id, course_id)
    await complete_course(progress_service, student_id, course_id)


class TestEligibilityCheck:
    @pytest.mark.asyncio
    async def test_not_enrolled(
        self, certificate_service: CertificateService, student_id, course_id
    ):
        with pytest.raises(NotEnrolledError):
            await certificate_service.check_eligibility(student_id, course_id)

    @pytest.mark.asyncio
    async def test_report_and_ledger(
        self,
        certificate_service: CertificateService,
        progress_service: ProgressService,
        student_id,
        course_id,
    ):
        await progress_service.enroll(student_id, course_id)

        report, ledger = await certificate_service.check_eligibility(
            student_id, course_id
        )

        assert report.is_eligible is False
        assert ledger.certificate_issued is False


class TestGenerateCertificate:
    @pytest.mark.asyncio
    async def test_not_eligible(
        self,
        certificate_service: CertificateService,
        progress_service: ProgressService,
        certificate_store: InMemoryCertificateStore,
        student_id,
        course_id,
    ):
        await progress_service.enroll(student_id, course_id)

        with pytest.raises(NotEligibleError) as exc_info:
            await certificate_service.generate_certificate(
                student_id, course_id, "Ada"
            )

        assert "capstone_completed" in exc_info.value.report.unmet
        assert await certificate_store.list_for_student(student_id) == []

    @pytest.mark.usefixtures("eligible")
    @pytest.mark.asyncio
    async def test_issue_flags_ledger_and_renders(
        self,
        certificate_service: CertificateService,
        progress_service: ProgressService,
        certificate_store: InMemoryCertificateStore,
        renderer: FakeRenderer,
        student_id,
        course_id,
    ):
        result = await certificate_service.generate_certificate(
            student_id, course_id, "Ada Lovelace"
        )

        certificate = result.certificate
        assert result.already_issued is False
        assert re.match(r"^SL-\d{4}-[0-9A-Z]{6}$", certificate.certificate_id)
        assert certificate.course_name == "Python Foundations"
        assert certificate.verification_url == (
            f"https://skillpath.example/verify/{certificate.certificate_id}"
        )
        assert certificate.asset_status == AssetStatus.READY
        assert renderer.calls == [certificate.certificate_id]

        ledger = await progress_service.get_progress(student_id, course_id)
        assert ledger.certificate_issued is True
        assert ledger.certificate_id == certificate.certificate_id
        assert ledger.certificate_issued_date == certificate.issue_date

        stored = await certificate_store.get_certificate(certificate.certificate_id)
        assert stored.asset_url == certificate.asset_url

    @pytest.mark.usefixtures("eligible")
    @pytest.mark.asyncio
    async def test_second_call_returns_same_certificate(
        self,
        certificate_service: CertificateService,
        certificate_store: InMemoryCertificateStore,
        renderer: FakeRenderer,
        student_id,
        course_id,
    ):
        first = await certificate_service.generate_certificate(
            student_id, course_id, "Ada"
        )
        second = await certificate_service.generate_certificate(
            student_id, course_id, "Someone Else"
        )

        assert second.already_issued is True
        assert second.certificate.certificate_id == first.certificate.certificate_id
        assert second.certificate.student_name == "Ada"
        assert len(renderer.calls) == 1
        assert len(await certificate_store.list_for_student(student_id)) == 1

    @pytest.mark.usefixtures("eligible")
    @pytest.mark.asyncio
    async def test_concurrent_calls_issue_once(
        self,
        certificate_service: CertificateService,
        certificate_store: InMemoryCertificateStore,
        renderer: FakeRenderer,
        student_id,
        course_id,
    ):
        renderer.delay = 0.05

        results = await asyncio.gather(
            *(
                certificate_service.generate_certificate(student_id, course_id, "Ada")
                for _ in range(5)
            )
        )

        assert len({r.certificate.certificate_id for r in results}) == 1
        assert [r.already_issued for r in results].count(False) == 1
        assert len(await certificate_store.list_for_student(student_id)) == 1
        # Waiting calls see the rendered asset instead of rendering again
        assert len(renderer.calls) == 1
        assert {r.certificate.asset_status for r in results} == {AssetStatus.READY}

    @pytest.mark.usefixtures("eligible")
    @pytest.mark.asyncio
    async def test_render_failure_keeps_certificate_pending(
        self,
        progress_service: ProgressService,
        certificate_store: InMemoryCertificateStore,
        student_id,
        course_id,
    ):
        renderer = FakeRenderer(failures=1)
        service = CertificateService(progress_service, certificate_store, renderer)

        first = await service.generate_certificate(student_id, course_id, "Ada")

        assert first.already_issued is False
        assert first.certificate.asset_status == AssetStatus.PENDING
        assert first.certificate.render_attempts == 1
        ledger = await progress_service.get_progress(student_id, course_id)
        assert ledger.certificate_issued is True

        retry = await service.generate_certificate(student_id, course_id, "Ada")

        assert retry.already_issued is True
        assert retry.certificate.certificate_id == first.certificate.certificate_id
        assert retry.certificate.asset_status == AssetStatus.READY
        assert retry.certificate.render_attempts == 2

    @pytest.mark.usefixtures("eligible")
    @pytest.mark.asyncio
    async def test_without_renderer_stays_pending(
        self,
        progress_service: ProgressService,
        certificate_store: InMemoryCertificateStore,
        student_id,
        course_id,
    ):
        service = CertificateService(progress_service, certificate_store)

        result = await service.generate_certificate(student_id, course_id, "Ada")

        assert result.certificate.asset_status == AssetStatus.PENDING
        assert result.certificate.render_attempts == 0

    @pytest.mark.usefixtures("eligible")
    @pytest.mark.asyncio
    async def test_id_attempts_exhausted(
        self, progress_service: ProgressService, student_id, course_id
    ):
        service = CertificateService(
            progress_service, CollidingStore(), id_max_attempts=3
        )

        with pytest.raises(CertificateIdExhaustedError):
            await service.generate_certificate(student_id, course_id, "Ada")

        ledger = await progress_service.get_progress(student_id, course_id)
        assert ledger.certificate_issued is False

    @pytest.mark.usefixtures("eligible")
    @pytest.mark.asyncio
    async def test_claimed_but_unflagged_ledger_is_repaired(
        self,
        certificate_service: CertificateService,
        progress_service: ProgressService,
        certificate_store: InMemoryCertificateStore,
        student_id,
        course_id,
    ):
        # Crash between claim and ledger flag
        winner = await certificate_service.generate_certificate(
            student_id, course_id, "Ada"
        )
        ledger = await progress_service.get_progress(student_id, course_id)
        await progress_service.store.save_ledger(
            _unflagged(ledger), expected_version=ledger.version
        )

        result = await certificate_service.generate_certificate(
            student_id, course_id, "Ada"
        )

        assert result.already_issued is True
        assert result.certificate.certificate_id == winner.certificate.certificate_id
        ledger = await progress_service.get_progress(student_id, course_id)
        assert ledger.certificate_id == winner.certificate.certificate_id
        assert len(await certificate_store.list_for_student(student_id)) == 1


def _unflagged(ledger):
    return replace(
        ledger,
        certificate_issued=False,
        certificate_id=None,
        certificate_issued_date=None,
    )


class TestQueries:
    @pytest.mark.asyncio
    async def test_verify_unknown(self, certificate_service: CertificateService):
        with pytest.raises(CertificateNotFoundError):
            await certificate_service.verify_certificate("SL-2026-NOPE00")

    @pytest.mark.usefixtures("eligible")
    @pytest.mark.asyncio
    async def test_verify_and_list(
        self, certificate_service: CertificateService, student_id, course_id
    ):
        issued = await certificate_service.generate_certificate(
            student_id, course_id, "Ada"
        )

        found = await certificate_service.verify_certificate(
            issued.certificate.certificate_id
        )
        listed = await certificate_service.list_student_certificates(student_id)

        assert found.certificate_id == issued.certificate.certificate_id
        assert [c.certificate_id for c in listed] == [found.certificate_id]


class TestLostClaim:
    @pytest.mark.usefixtures("eligible")
    @pytest.mark.asyncio
    async def test_lost_claim_discards_own_record(
        self, progress_service: ProgressService, student_id, course_id
    ):
        rival = Certificate(
            certificate_id="SL-2026-RIVAL1",
            student_id=student_id,
            course_id=course_id,
            student_name="Ada",
            course_name="Python Foundations",
            course_duration="120 Hours",
            completion_date=datetime.now(UTC),
            issue_date=datetime.now(UTC),
        )
        store = RacingStore(rival)
        service = CertificateService(progress_service, store)

        result = await service.generate_certificate(student_id, course_id, "Ada")

        assert result.already_issued is True
        assert result.certificate.certificate_id == "SL-2026-RIVAL1"
        assert [c.certificate_id for c in await store.list_for_student(student_id)] == [
            "SL-2026-RIVAL1"
        ]
        assert len(store._certificates) == 1
        ledger = await progress_service.get_progress(student_id, course_id)
        assert ledger.certificate_id == "SL-2026-RIVAL1"
