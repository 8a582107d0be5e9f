"""Tests for certificate ids and rows."""

import re
from datetime import datetime
from types import SimpleNamespace
from uuid import uuid4

from skillpath.certificates.models import (
    AssetStatus,
    Certificate,
    CertificateStatus,
    generate_certificate_id,
)


ID_PATTERN = re.compile(r"^SL-\d{4}-[0-9A-Z]{6}$")


class TestGenerateCertificateId:
    def test_format(self):
        assert ID_PATTERN.match(generate_certificate_id())

    def test_prefix_and_year(self):
        certificate_id = generate_certificate_id("ACME", 2031)
        assert certificate_id.startswith("ACME-2031-")
        assert len(certificate_id) == len("ACME-2031-") + 6

    def test_ids_are_random(self):
        ids = {generate_certificate_id(year=2026) for _ in range(200)}
        assert len(ids) > 190


class TestCertificateFromRow:
    def test_defaults_for_null_columns(self):
        row = SimpleNamespace(
            certificate_id="SL-2026-ABC123",
            student_id=uuid4(),
            course_id=uuid4(),
            student_name="Ada",
            course_name=None,
            course_duration=None,
            completion_date=datetime(2026, 4, 1, 10, 0),
            issue_date=datetime(2026, 4, 1, 10, 0),
            status=None,
            asset_status=None,
            asset_url=None,
            verification_url="https://skillpath.example/verify/SL-2026-ABC123",
            render_attempts=None,
        )

        certificate = Certificate.from_row(row)

        assert certificate.status == CertificateStatus.VALID
        assert certificate.asset_status == AssetStatus.PENDING
        assert certificate.render_attempts == 0
        assert certificate.course_name == ""
        assert certificate.issue_date.tzinfo is not None
        assert certificate.is_valid
