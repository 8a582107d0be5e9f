"""Course completion certificates.

Provides:
- Eligibility evaluation (independent of progress tracking)
- At-most-once issuance per enrollment
- External document rendering with pending/ready asset state
- Public verification

Note: Router is not exported here to avoid circular imports.
Import directly from skillpath.certificates.router when needed.
"""

from .eligibility import EligibilityReport, evaluate_eligibility
from .models import (
    CERTIFICATES_TABLES_CQL,
    AssetStatus,
    Certificate,
    CertificateStatus,
)
from .service import CertificateService, IssueResult


__all__ = [
    "CERTIFICATES_TABLES_CQL",
    "AssetStatus",
    "Certificate",
    "CertificateService",
    "CertificateStatus",
    "EligibilityReport",
    "IssueResult",
    "evaluate_eligibility",
]
