"""Error taxonomy shared by the enrollment, payment and progress modules.

Every domain error carries a human-readable ``message`` and a stable machine
``code``. Routers translate them to HTTP responses through
:func:`to_http_exception`; nothing in the engine retries on these internally.
"""

from fastapi import HTTPException, status


class EngineError(Exception):
    """Base error for the reconciliation engine."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable = False

    def __init__(self, message: str, code: str = "engine_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(EngineError):
    """Missing enrollment, payment, course or module."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Resource not found", code: str = "not_found"):
        super().__init__(message, code)


class ForbiddenError(EngineError):
    """Write attempted by an unenrolled or access-revoked student."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(
        self,
        message: str = "Student is not enrolled in this course",
        code: str = "forbidden",
    ):
        super().__init__(message, code)


class ConflictError(EngineError):
    """Duplicate creation (enrollment for the pair, payment reference)."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "Resource already exists", code: str = "conflict"):
        super().__init__(message, code)


class InvalidTransitionError(EngineError):
    """Illegal status change requested."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot transition from '{current}' to '{requested}'",
            "invalid_transition",
        )


class InvalidRequestError(EngineError):
    """Malformed webhook or progress payload."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Malformed request", code: str = "invalid_request"):
        super().__init__(message, code)


class UpstreamUnavailableError(EngineError):
    """A collaborator call (certificate service, notifier) failed."""

    status_code = status.HTTP_502_BAD_GATEWAY
    retryable = True

    def __init__(
        self,
        message: str = "Upstream service unavailable",
        code: str = "upstream_unavailable",
    ):
        super().__init__(message, code)


class StorageUnavailableError(EngineError):
    """Transient storage failure on the write path; safe for the caller to retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True

    def __init__(
        self,
        message: str = "Storage temporarily unavailable",
        code: str = "storage_unavailable",
    ):
        super().__init__(message, code)


class WriteConflictError(StorageUnavailableError):
    """Optimistic-concurrency retries exhausted for one document."""

    def __init__(self, message: str = "Concurrent update, please retry"):
        super().__init__(message, "write_conflict")


def to_http_exception(error: EngineError) -> HTTPException:
    """Convert an engine error to an HTTPException.

    Retryable errors advertise ``Retry-After`` so well-behaved callers (the
    payment gateway included) back off before retrying.
    """
    headers = {"Retry-After": "1"} if error.retryable else None
    return HTTPException(
        status_code=error.status_code,
        detail=error.message,
        headers=headers,
    )
