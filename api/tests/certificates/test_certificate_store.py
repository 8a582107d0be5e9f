"""Tests for certificate stores."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
from cassandra.cluster import Session

from skillpath.certificates.models import AssetStatus, Certificate
from skillpath.certificates.store import (
    CassandraCertificateStore,
    InMemoryCertificateStore,
)


NOW = datetime(2026, 6, 1, tzinfo=UTC)


@pytest.fixture
def mock_session():
    """Mock Cassandra session."""
    session = Mock(spec=Session)
    session.prepare = Mock(return_value=Mock())
    session.aexecute = AsyncMock(return_value=Mock())
    return session


@pytest.fixture
def store(mock_session) -> CassandraCertificateStore:
    return CassandraCertificateStore(session=mock_session, keyspace="test_keyspace")


def _certificate(student_id, course_id, certificate_id="SL-2026-AAAAAA") -> Certificate:
    return Certificate(
        certificate_id=certificate_id,
        student_id=student_id,
        course_id=course_id,
        student_name="Ada",
        course_name="Python Foundations",
        course_duration="120 Hours",
        completion_date=NOW,
        issue_date=NOW,
    )


class TestCassandraCertificateStore:
    @pytest.mark.asyncio
    async def test_insert_reports_collision(
        self, store, mock_session, student_id, course_id
    ):
        mock_session.aexecute.return_value = Mock(was_applied=False)

        inserted = await store.insert_certificate(_certificate(student_id, course_id))

        assert inserted is False
        params = mock_session.aexecute.call_args[0][1]
        assert params[0] == "SL-2026-AAAAAA"
        assert params[8] == "valid"
        assert params[9] == "pending"

    @pytest.mark.asyncio
    async def test_claim_won(self, store, mock_session, student_id, course_id):
        mock_session.aexecute.return_value = Mock(was_applied=True)

        winner = await store.claim_enrollment(
            student_id, course_id, "SL-2026-AAAAAA", NOW
        )

        assert winner == "SL-2026-AAAAAA"
        assert mock_session.aexecute.await_count == 1

    @pytest.mark.asyncio
    async def test_claim_lost_returns_existing(
        self, store, mock_session, student_id, course_id
    ):
        existing_row = Mock(certificate_id="SL-2026-BBBBBB")
        mock_session.aexecute.side_effect = [
            Mock(was_applied=False),
            Mock(one=Mock(return_value=existing_row)),
        ]

        winner = await store.claim_enrollment(
            student_id, course_id, "SL-2026-AAAAAA", NOW
        )

        assert winner == "SL-2026-BBBBBB"

    @pytest.mark.asyncio
    async def test_get_missing_certificate(self, store, mock_session):
        mock_session.aexecute.return_value = Mock(one=Mock(return_value=None))

        assert await store.get_certificate("SL-2026-ZZZZZZ") is None

    @pytest.mark.asyncio
    async def test_update_asset_params(self, store, mock_session):
        await store.update_asset(
            "SL-2026-AAAAAA", AssetStatus.READY, "https://cdn.example/a.pdf", 2
        )

        params = mock_session.aexecute.call_args[0][1]
        assert params == ["ready", "https://cdn.example/a.pdf", 2, "SL-2026-AAAAAA"]


class TestInMemoryCertificateStore:
    @pytest.mark.asyncio
    async def test_first_claim_wins(self, student_id, course_id):
        store = InMemoryCertificateStore()

        first = await store.claim_enrollment(student_id, course_id, "A", NOW)
        second = await store.claim_enrollment(student_id, course_id, "B", NOW)

        assert first == second == "A"

    @pytest.mark.asyncio
    async def test_list_only_own_certificates(self, student_id, course_id):
        store = InMemoryCertificateStore()
        other_student = uuid4()
        for owner, certificate_id in ((student_id, "A"), (other_student, "B")):
            await store.insert_certificate(
                _certificate(owner, course_id, certificate_id)
            )
            await store.claim_enrollment(owner, course_id, certificate_id, NOW)

        listed = await store.list_for_student(student_id)

        assert [c.certificate_id for c in listed] == ["A"]

    @pytest.mark.asyncio
    async def test_delete(self, student_id, course_id):
        store = InMemoryCertificateStore()
        await store.insert_certificate(_certificate(student_id, course_id))

        await store.delete_certificate("SL-2026-AAAAAA")

        assert await store.get_certificate("SL-2026-AAAAAA") is None
