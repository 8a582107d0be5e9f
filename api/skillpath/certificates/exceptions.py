"""Certificate errors."""

from .eligibility import EligibilityReport


class CertificateError(Exception):
    """Base certificate error."""

    def __init__(self, message: str, code: str = "certificate_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotEligibleError(CertificateError):
    """Course requirements not met yet."""

    def __init__(self, report: EligibilityReport):
        self.report = report
        super().__init__(
            "Not eligible for a certificate yet, complete all course requirements",
            "not_eligible",
        )


class CertificateNotFoundError(CertificateError):
    def __init__(self, message: str = "Certificate not found"):
        super().__init__(message, "certificate_not_found")


class CertificateIdExhaustedError(CertificateError):
    """Every generated certificate id collided with an existing one."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Could not allocate a unique certificate id after {attempts} attempts",
            "certificate_id_exhausted",
        )
