"""Pydantic schemas for certificates."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .eligibility import EligibilityReport
from .models import AssetStatus, Certificate, CertificateStatus


class GenerateCertificateRequest(BaseModel):
    student_id: UUID = Field(..., description="Student UUID")
    student_name: str = Field(
        ..., min_length=1, max_length=200, description="Name printed on the certificate"
    )


class EligibilityResponse(BaseModel):
    is_eligible: bool
    criteria: dict[str, bool]
    certificate_issued: bool
    certificate_id: str | None = None

    @classmethod
    def from_report(
        cls,
        report: EligibilityReport,
        certificate_issued: bool,
        certificate_id: str | None,
    ) -> "EligibilityResponse":
        return cls(
            is_eligible=report.is_eligible,
            criteria=report.criteria,
            certificate_issued=certificate_issued,
            certificate_id=certificate_id,
        )


class CertificateResponse(BaseModel):
    """Certificate record."""

    model_config = ConfigDict(from_attributes=True)

    certificate_id: str
    student_id: UUID
    course_id: UUID
    student_name: str
    course_name: str
    course_duration: str
    completion_date: datetime
    issue_date: datetime
    status: CertificateStatus
    asset_status: AssetStatus
    asset_url: str | None = None
    verification_url: str | None = None

    @classmethod
    def from_entity(cls, certificate: Certificate) -> "CertificateResponse":
        """Create response from entity."""
        return cls.model_validate(certificate)


class GenerateCertificateResponse(BaseModel):
    already_issued: bool
    certificate: CertificateResponse


class CertificateVerificationResponse(BaseModel):
    """Public verification view (no student id)."""

    certificate_id: str
    student_name: str
    course_name: str
    completion_date: datetime
    issue_date: datetime
    status: CertificateStatus
    platform_name: str

    @classmethod
    def from_entity(
        cls, certificate: Certificate, platform_name: str
    ) -> "CertificateVerificationResponse":
        return cls(
            certificate_id=certificate.certificate_id,
            student_name=certificate.student_name,
            course_name=certificate.course_name,
            completion_date=certificate.completion_date,
            issue_date=certificate.issue_date,
            status=certificate.status,
            platform_name=platform_name,
        )


class CertificateListResponse(BaseModel):
    items: list[CertificateResponse]
    total: int
