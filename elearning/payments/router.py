"""Payment API endpoints.

Provides routes for:
- Gateway webhook callbacks (unauthenticated, idempotent)
- Payment initiation and status for students
- Marking a payment as processing once the push was accepted
"""

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import ValidationError

from elearning.auth.dependencies import AdminUser, CurrentUser
from elearning.auth.permissions import is_admin
from elearning.catalog.dependencies import CatalogReaderDep
from elearning.core.exceptions import (
    EngineError,
    InvalidRequestError,
    NotFoundError,
    to_http_exception,
)
from elearning.core.logging import get_logger

from .dependencies import PaymentServiceDep
from .schemas import (
    InitiatePaymentRequest,
    PaymentCallbackRequest,
    PaymentCallbackResponse,
    PaymentResponse,
)


logger = get_logger(__name__)

router = APIRouter(prefix="/v1/payments", tags=["payments"])


@router.post(
    "/callback/{gateway_reference}",
    response_model=PaymentCallbackResponse,
    summary="Payment gateway callback",
)
async def payment_callback(
    gateway_reference: str,
    request: Request,
    payment_service: PaymentServiceDep,
) -> PaymentCallbackResponse:
    """Reconcile a gateway callback.

    Any handled outcome answers 200, duplicates included. Unknown references
    answer 404 and malformed bodies 400; storage trouble answers 503 so the
    gateway retries.
    """
    body = await request.body()
    try:
        data = PaymentCallbackRequest.model_validate_json(body or b"null")
    except ValidationError as e:
        logger.warning(
            "payment_callback_malformed",
            gateway_reference=gateway_reference,
            errors=e.error_count(),
        )
        raise to_http_exception(
            InvalidRequestError("Malformed callback payload", "malformed_callback")
        ) from e

    try:
        outcome = await payment_service.handle_callback(
            gateway_reference,
            data.result_code,
            result_desc=data.result_desc,
            metadata=data.receipt_metadata,
        )
    except EngineError as e:
        raise to_http_exception(e) from e

    logger.info(
        "payment_callback_handled",
        gateway_reference=gateway_reference,
        outcome=outcome.value,
    )
    return PaymentCallbackResponse(success=True)


@router.post(
    "",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a course payment",
)
async def initiate_payment(
    data: InitiatePaymentRequest,
    payment_service: PaymentServiceDep,
    catalog: CatalogReaderDep,
    user: CurrentUser,
) -> PaymentResponse:
    """Record a pending payment for a paid course at the catalog price."""
    try:
        course = await catalog.get_course(data.course_id)
        if course is None:
            raise NotFoundError("Course not found", "course_not_found")
        if course.is_free:
            raise InvalidRequestError("Course is free, enroll directly", "course_free")

        payment = await payment_service.initiate_payment(
            student_id=user.id,
            course_id=course.course_id,
            branch_id=course.branch_id,
            amount=course.price,
            gateway_reference=data.gateway_reference,
        )
    except EngineError as e:
        raise to_http_exception(e) from e
    return PaymentResponse.from_entity(payment)


@router.post(
    "/{gateway_reference}/processing",
    response_model=PaymentResponse,
    summary="Mark payment as processing",
)
async def mark_processing(
    gateway_reference: str,
    payment_service: PaymentServiceDep,
    _admin: AdminUser,
) -> PaymentResponse:
    try:
        payment = await payment_service.mark_processing(gateway_reference)
    except EngineError as e:
        raise to_http_exception(e) from e
    return PaymentResponse.from_entity(payment)


@router.get(
    "/{gateway_reference}",
    response_model=PaymentResponse,
    summary="Get payment status",
)
async def get_payment(
    gateway_reference: str,
    payment_service: PaymentServiceDep,
    user: CurrentUser,
) -> PaymentResponse:
    try:
        payment = await payment_service.get_payment(gateway_reference)
    except EngineError as e:
        raise to_http_exception(e) from e

    if payment.student_id != user.id and not is_admin(user.role):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Payment not found",
        )
    return PaymentResponse.from_entity(payment)
