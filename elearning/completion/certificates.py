"""HTTP client for the certificate issuing service."""

from uuid import UUID

import httpx
import structlog

from elearning.core.exceptions import UpstreamUnavailableError


logger = structlog.get_logger(__name__)


class HttpCertificateIssuer:
    """Issues certificates through the certificate service REST API.

    Requests carry an ``Idempotency-Key`` derived from (student, course) so a
    repeated completion never yields a second certificate.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @staticmethod
    def idempotency_key(student_id: UUID, course_id: UUID) -> str:
        return f"certificate:{student_id}:{course_id}"

    async def issue(self, student_id: UUID, course_id: UUID, enrollment_id: UUID) -> str:
        """Issue a certificate and return its id.

        Raises:
            UpstreamUnavailableError: On timeout, transport error or non-2xx answer
        """
        url = f"{self.base_url}/v1/certificates"
        payload = {
            "studentId": str(student_id),
            "courseId": str(course_id),
            "enrollmentId": str(enrollment_id),
        }
        headers = {
            "Accept": "application/json",
            "Idempotency-Key": self.idempotency_key(student_id, course_id),
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(url, json=payload, headers=headers)

                if not response.is_success:
                    logger.error(
                        "certificate_request_failed",
                        status_code=response.status_code,
                        response_text=response.text[:500],
                    )
                    raise UpstreamUnavailableError(
                        f"Certificate service error: {response.status_code}",
                        "certificate_failed",
                    )

                data = response.json()

        except httpx.TimeoutException as e:
            logger.error("certificate_request_timeout", error=str(e))
            raise UpstreamUnavailableError(
                "Certificate service timeout", "certificate_timeout"
            ) from e
        except httpx.RequestError as e:
            logger.error("certificate_request_error", error=str(e))
            raise UpstreamUnavailableError(
                f"Certificate service request error: {e}", "certificate_failed"
            ) from e

        certificate_id = data.get("certificateId") or data.get("id")
        if not certificate_id:
            raise UpstreamUnavailableError(
                "Certificate service returned no certificate id",
                "certificate_failed",
            )
        return str(certificate_id)
