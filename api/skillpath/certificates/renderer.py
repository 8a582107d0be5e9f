"""Certificate document renderer client.

Rendering (PDF layout, QR image, upload) happens in an external service.
This module only sends the certificate data plus the QR payload and reads
back where the rendered document lives.
"""

from dataclasses import dataclass
from typing import Protocol

import httpx
import structlog

from .models import Certificate


logger = structlog.get_logger(__name__)


class RendererError(Exception):
    """Raised when the renderer cannot produce a document."""


@dataclass(frozen=True, slots=True)
class RenderedAsset:
    url: str
    public_id: str | None = None


class DocumentRenderer(Protocol):
    async def render(self, certificate: Certificate) -> RenderedAsset:
        """Render the certificate. Raises RendererError."""
        ...


def build_verification_url(base_url: str, certificate_id: str) -> str:
    """Public verification page for a certificate (QR code payload)."""
    return f"{base_url.rstrip('/')}/{certificate_id}"


class HttpDocumentRenderer:
    """Renderer reached over HTTP.

    POST {base_url}/render with the certificate fields; expects
    ``{"url": ..., "public_id": ...}`` back.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        platform_name: str = "SkillPath",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.platform_name = platform_name
        self._transport = transport

    def _payload(self, certificate: Certificate) -> dict[str, str | None]:
        return {
            "certificate_id": certificate.certificate_id,
            "student_name": certificate.student_name,
            "course_name": certificate.course_name,
            "course_duration": certificate.course_duration,
            "completion_date": certificate.completion_date.isoformat(),
            "issue_date": certificate.issue_date.isoformat(),
            "qr_payload": certificate.verification_url,
            "platform_name": self.platform_name,
        }

    async def render(self, certificate: Certificate) -> RenderedAsset:
        url = f"{self.base_url}/render"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(url, json=self._payload(certificate))

                if response.status_code not in (httpx.codes.OK, httpx.codes.CREATED):
                    logger.error(
                        "renderer_request_failed",
                        status_code=response.status_code,
                        response_text=response.text[:500],
                    )
                    raise RendererError(f"Renderer error: {response.status_code}")

                data = response.json()

        except httpx.TimeoutException as e:
            logger.error("renderer_timeout", error=str(e))
            raise RendererError("Renderer timeout") from e
        except httpx.RequestError as e:
            logger.error("renderer_request_error", error=str(e))
            raise RendererError(f"Renderer request error: {e}") from e
        except ValueError as e:
            raise RendererError("Renderer returned invalid JSON") from e

        asset_url = data.get("url") if isinstance(data, dict) else None
        if not asset_url:
            raise RendererError("Renderer response has no document url")
        return RenderedAsset(url=asset_url, public_id=data.get("public_id"))
