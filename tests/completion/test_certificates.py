"""Tests for the HTTP certificate issuer."""

import json
from uuid import uuid4

import httpx
import pytest

from elearning.completion.certificates import HttpCertificateIssuer
from elearning.core.exceptions import UpstreamUnavailableError


class TestHttpCertificateIssuer:
    @pytest.mark.asyncio
    async def test_posts_with_idempotency_key(self):
        student_id, course_id, enrollment_id = uuid4(), uuid4(), uuid4()
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"certificateId": "CERT-42"})

        issuer = HttpCertificateIssuer(
            "https://certs.internal/", transport=httpx.MockTransport(handler)
        )

        certificate_id = await issuer.issue(student_id, course_id, enrollment_id)

        assert certificate_id == "CERT-42"
        [request] = seen
        assert str(request.url) == "https://certs.internal/v1/certificates"
        assert request.headers["Idempotency-Key"] == (
            f"certificate:{student_id}:{course_id}"
        )
        assert json.loads(request.content) == {
            "studentId": str(student_id),
            "courseId": str(course_id),
            "enrollmentId": str(enrollment_id),
        }

    @pytest.mark.asyncio
    async def test_accepts_plain_id(self):
        issuer = HttpCertificateIssuer(
            "https://certs.internal",
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, json={"id": "CERT-7"})
            ),
        )

        assert await issuer.issue(uuid4(), uuid4(), uuid4()) == "CERT-7"

    @pytest.mark.asyncio
    async def test_server_error(self):
        issuer = HttpCertificateIssuer(
            "https://certs.internal",
            transport=httpx.MockTransport(
                lambda request: httpx.Response(500, text="oops")
            ),
        )

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await issuer.issue(uuid4(), uuid4(), uuid4())

        assert exc_info.value.code == "certificate_failed"

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        issuer = HttpCertificateIssuer(
            "https://certs.internal", transport=httpx.MockTransport(handler)
        )

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await issuer.issue(uuid4(), uuid4(), uuid4())

        assert exc_info.value.code == "certificate_timeout"

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        issuer = HttpCertificateIssuer(
            "https://certs.internal", transport=httpx.MockTransport(handler)
        )

        with pytest.raises(UpstreamUnavailableError):
            await issuer.issue(uuid4(), uuid4(), uuid4())
