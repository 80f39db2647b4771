"""Payment reconciliation service.

Turns at-least-once gateway callbacks into exactly one terminal payment state
and, on success, one enrollment. The gateway owns the retry policy; nothing
here retries on the gateway's behalf. Conditional writes on the payment
``version`` make concurrent duplicate callbacks settle on a single winner.
"""

from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

import structlog

from elearning.completion.models import NotificationType
from elearning.core.exceptions import (
    ConflictError,
    EngineError,
    InvalidRequestError,
    InvalidTransitionError,
    NotFoundError,
    WriteConflictError,
)
from elearning.enrollments.models import EnrollmentStatus, EnrollmentType

from .models import (
    Payment,
    PaymentStatus,
    extract_receipt_number,
    failure_reason_for,
)


if TYPE_CHECKING:
    from elearning.completion.protocols import Notifier
    from elearning.enrollments.service import EnrollmentService

    from .repository import PaymentRepository


logger = structlog.get_logger(__name__)


class CallbackOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    ALREADY_PROCESSED = "already_processed"


class PaymentService:
    """Creates payments and reconciles gateway callbacks."""

    def __init__(
        self,
        repository: "PaymentRepository",
        enrollment_service: "EnrollmentService",
        notifier: "Notifier | None" = None,
        success_code: int = 0,
        max_write_retries: int = 5,
    ):
        self.repository = repository
        self.enrollment_service = enrollment_service
        self.notifier = notifier
        self.success_code = success_code
        self.max_write_retries = max_write_retries

    # ==========================================================================
    # Payment creation
    # ==========================================================================

    async def initiate_payment(
        self,
        student_id: UUID,
        course_id: UUID,
        branch_id: UUID | None,
        amount: Decimal,
        gateway_reference: str | None = None,
    ) -> Payment:
        """Record a pending payment before the push request goes out.

        Raises:
            InvalidRequestError: If the amount is not positive
            ConflictError: If the gateway reference is already used
        """
        if amount <= 0:
            raise InvalidRequestError("Payment amount must be positive")

        payment = Payment(
            student_id=student_id,
            course_id=course_id,
            branch_id=branch_id,
            amount=amount,
            gateway_reference=gateway_reference or uuid4().hex.upper(),
        )
        if not await self.repository.insert(payment):
            raise ConflictError(
                "Gateway reference already used", "duplicate_reference"
            )

        logger.info(
            "payment_initiated",
            gateway_reference=payment.gateway_reference,
            student_id=str(student_id),
            course_id=str(course_id),
            amount=str(amount),
        )
        return payment

    async def get_payment(self, gateway_reference: str) -> Payment:
        payment = await self.repository.get(gateway_reference)
        if payment is None:
            raise NotFoundError("Payment not found", "payment_not_found")
        return payment

    async def mark_processing(self, gateway_reference: str) -> Payment:
        """Move a pending payment to processing once the gateway accepted the push.

        Repeating the call on a processing payment is a no-op.

        Raises:
            NotFoundError: Unknown reference
            InvalidTransitionError: Payment already finalized
        """
        for _ in range(self.max_write_retries):
            payment = await self.get_payment(gateway_reference)
            if payment.status == PaymentStatus.PROCESSING:
                return payment
            if not payment.can_become(PaymentStatus.PROCESSING):
                raise InvalidTransitionError(
                    payment.status.value, PaymentStatus.PROCESSING.value
                )

            updated = payment.evolve(status=PaymentStatus.PROCESSING)
            if await self.repository.compare_and_set(updated, payment.version):
                logger.info("payment_processing", gateway_reference=gateway_reference)
                return updated

        raise WriteConflictError

    # ==========================================================================
    # Gateway callback
    # ==========================================================================

    async def handle_callback(
        self,
        gateway_reference: str,
        result_code: int,
        result_desc: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> CallbackOutcome:
        """Apply a gateway callback.

        A callback for an already finalized payment changes nothing on the
        payment. For a completed payment it re-asserts the enrollment, which
        repairs a crash between finalizing the payment and enrolling.

        Raises:
            NotFoundError: Unknown reference (payments are never created here)
            StorageUnavailableError: Transient storage failure, safe to retry
        """
        metadata = metadata or {}
        log = logger.bind(gateway_reference=gateway_reference, result_code=result_code)

        for _ in range(self.max_write_retries):
            payment = await self.get_payment(gateway_reference)

            if payment.is_terminal:
                log.info("payment_callback_duplicate", status=payment.status.value)
                if payment.status == PaymentStatus.COMPLETED:
                    await self._reassert_enrollment(payment)
                return CallbackOutcome.ALREADY_PROCESSED

            if result_code == self.success_code:
                updated = payment.evolve(
                    status=PaymentStatus.COMPLETED,
                    callback_received=True,
                    result_code=result_code,
                    result_desc=result_desc,
                    receipt_number=extract_receipt_number(metadata),
                    receipt_metadata=metadata,
                )
            else:
                updated = payment.evolve(
                    status=PaymentStatus.FAILED,
                    callback_received=True,
                    result_code=result_code,
                    result_desc=result_desc,
                    failure_reason=failure_reason_for(result_code, result_desc),
                    receipt_metadata=metadata,
                )

            if await self.repository.compare_and_set(updated, payment.version):
                break
            log.debug("payment_callback_write_conflict")
        else:
            raise WriteConflictError

        if updated.status == PaymentStatus.COMPLETED:
            log.info(
                "payment_completed",
                receipt_number=updated.receipt_number,
                student_id=str(updated.student_id),
                course_id=str(updated.course_id),
            )
            await self._enroll(updated)
            await self._notify_status(updated)
            return CallbackOutcome.COMPLETED

        log.info("payment_failed", failure_reason=updated.failure_reason)
        await self._notify_status(updated)
        return CallbackOutcome.FAILED

    async def _enroll(self, payment: Payment) -> None:
        try:
            await self.enrollment_service.create_enrollment(
                student_id=payment.student_id,
                course_id=payment.course_id,
                branch_id=payment.branch_id,
                initial_status=EnrollmentStatus.ACTIVE,
                enrollment_type=EnrollmentType.PAID,
                payment_reference=payment.gateway_reference,
            )
        except ConflictError:
            # The uniqueness guard already holds for this pair
            logger.info(
                "payment_enrollment_exists",
                gateway_reference=payment.gateway_reference,
                student_id=str(payment.student_id),
                course_id=str(payment.course_id),
            )

    async def _reassert_enrollment(self, payment: Payment) -> None:
        enrollments = await self.enrollment_service.list_for_student(payment.student_id)
        if any(e.payment_reference == payment.gateway_reference for e in enrollments):
            return
        logger.warning(
            "payment_enrollment_missing",
            gateway_reference=payment.gateway_reference,
        )
        await self._enroll(payment)

    async def _notify_status(self, payment: Payment) -> None:
        """Tell the student how the payment ended. Best effort."""
        if self.notifier is None:
            return

        if payment.status == PaymentStatus.COMPLETED:
            title = "Payment Successful"
            message = f"Your payment of {payment.amount} was received."
            if payment.receipt_number:
                message += f" Receipt: {payment.receipt_number}."
            action_url = f"/student/courses/{payment.course_id}"
        else:
            title = "Payment Failed"
            message = f"Your payment could not be completed: {payment.failure_reason}."
            action_url = f"/student/courses/{payment.course_id}/checkout"

        try:
            await self.notifier.notify(
                user_id=payment.student_id,
                title=title,
                message=message,
                action_url=action_url,
                notification_type=NotificationType.PAYMENT_STATUS.value,
            )
        except EngineError as e:
            logger.warning(
                "payment_notification_failed",
                gateway_reference=payment.gateway_reference,
                error_code=e.code,
                error=e.message,
            )
        except Exception:
            logger.exception(
                "payment_notification_error",
                gateway_reference=payment.gateway_reference,
            )
