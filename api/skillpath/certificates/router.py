"""Certificate API endpoints.

Provides routes for:
- Eligibility check
- Certificate generation (idempotent)
- Public verification
- Student certificate listing
"""

from uuid import UUID

from fastapi import APIRouter, Query, Response, status

from skillpath.courses.dependencies import handle_course_error
from skillpath.courses.repository import CourseError
from skillpath.progress.dependencies import handle_progress_error
from skillpath.progress.exceptions import ProgressError

from .dependencies import CertificateServiceDep, handle_certificate_error
from .exceptions import CertificateError
from .schemas import (
    CertificateListResponse,
    CertificateResponse,
    CertificateVerificationResponse,
    EligibilityResponse,
    GenerateCertificateRequest,
    GenerateCertificateResponse,
)


router = APIRouter(prefix="/v1/certificates", tags=["certificates"])


@router.get(
    "/eligibility/{course_id}",
    response_model=EligibilityResponse,
    summary="Check certificate eligibility",
)
async def check_eligibility(
    course_id: UUID,
    certificate_service: CertificateServiceDep,
    student_id: UUID = Query(...),
) -> EligibilityResponse:
    """Evaluate every certificate criterion for the enrollment."""
    try:
        report, ledger = await certificate_service.check_eligibility(
            student_id, course_id
        )
    except ProgressError as e:
        raise handle_progress_error(e) from e
    except CourseError as e:
        raise handle_course_error(e) from e

    return EligibilityResponse.from_report(
        report,
        certificate_issued=ledger.certificate_issued,
        certificate_id=ledger.certificate_id,
    )


@router.post(
    "/generate/{course_id}",
    response_model=GenerateCertificateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate certificate",
)
async def generate_certificate(
    course_id: UUID,
    data: GenerateCertificateRequest,
    certificate_service: CertificateServiceDep,
    response: Response,
) -> GenerateCertificateResponse:
    """Issue the enrollment's certificate.

    Returns 201 for a new certificate and 200 with ``already_issued`` when
    it was issued before.
    """
    try:
        result = await certificate_service.generate_certificate(
            data.student_id, course_id, data.student_name
        )
    except CertificateError as e:
        raise handle_certificate_error(e) from e
    except ProgressError as e:
        raise handle_progress_error(e) from e
    except CourseError as e:
        raise handle_course_error(e) from e

    if result.already_issued:
        response.status_code = status.HTTP_200_OK
    return GenerateCertificateResponse(
        already_issued=result.already_issued,
        certificate=CertificateResponse.from_entity(result.certificate),
    )


@router.get(
    "/verify/{certificate_id}",
    response_model=CertificateVerificationResponse,
    summary="Verify certificate",
)
async def verify_certificate(
    certificate_id: str,
    certificate_service: CertificateServiceDep,
) -> CertificateVerificationResponse:
    """Public lookup of a certificate by id."""
    try:
        certificate = await certificate_service.verify_certificate(certificate_id)
    except CertificateError as e:
        raise handle_certificate_error(e) from e

    return CertificateVerificationResponse.from_entity(
        certificate, certificate_service.platform_name
    )


@router.get(
    "/students/{student_id}",
    response_model=CertificateListResponse,
    summary="List student certificates",
)
async def list_student_certificates(
    student_id: UUID,
    certificate_service: CertificateServiceDep,
) -> CertificateListResponse:
    certificates = await certificate_service.list_student_certificates(student_id)
    return CertificateListResponse(
        items=[CertificateResponse.from_entity(c) for c in certificates],
        total=len(certificates),
    )
