# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Print Job Payment Service

WHY: Print jobs are paid through a UPI app. The backend hands out a
collection URI, then records the outcome the client reports back.

DESIGN PRINCIPLES:
- Payments are separate from print jobs (many-to-one relationship)
- A job may collect several attempts; once the job reaches SUCCESS no new
  attempt can be initiated
- The collection URI is built from local data only (no network call)
- verify() updates the payment and its job in one transaction

TRUST BOUNDARY: verify() accepts the outcome asserted by the caller, with
no gateway callback or signature check. Re-verifying replaces the previous
outcome and keeps no history; concurrent verifies are last-writer-wins.
"""

from flask import current_app
from sqlalchemy.orm import joinedload
from sqlalchemy.orm.exc import StaleDataError

from ..models import PrintJob, Payment
from ..models.printing import (
    PAYMENT_STATUS_PENDING,
    PAYMENT_STATUS_SUCCESS,
    PAYMENT_STATUS_FAILED,
)
from ..permissions import is_allowed
from ..upi import build_upi_pay_uri
from ..validation import ConflictError, ForbiddenError, NotFoundError, ValidationError
from elibrary.time_utils import utcnow
from .concurrency import lock_for_update, resolve_session, run_with_retry


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_UPI = "UPI"
METHOD_GPAY = "GPAY"

VALID_PAYMENT_METHODS = [
    METHOD_UPI,
    METHOD_GPAY,
]

DEFAULT_PAYMENT_METHOD = METHOD_UPI

# Outcomes a caller may report on verify
VERIFY_OUTCOMES = [
    PAYMENT_STATUS_SUCCESS,
    PAYMENT_STATUS_FAILED,
]


# =============================================================================
# PAYMENT INITIATION
# =============================================================================

def initiate_payment(
    print_id: str,
    requester_id: str,
    payment_method: str | None = None,
    *,
    session=None,
) -> tuple[Payment, str]:
    """
    Open a PENDING payment attempt for a print job and build its UPI URI.

    Only the print job's version counter is bumped, so an attempt racing a
    successful verify is retried and then refused as already paid.

    Args:
        print_id: Print job being paid
        requester_id: Authenticated caller; must own the job
        payment_method: UPI or GPAY (default UPI)

    Returns:
        (payment, upi_uri)

    Raises:
        ValidationError: missing print_id or unknown payment method
        NotFoundError: print job does not exist
        ForbiddenError: job belongs to someone else
        ConflictError: job is already paid
    """
    session = resolve_session(session)
    method = payment_method or DEFAULT_PAYMENT_METHOD

    if not print_id:
        raise ValidationError("print_id is required")
    if method not in VALID_PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method: {method}. Must be one of {VALID_PAYMENT_METHODS}")

    def _op():
        job = lock_for_update(session.query(PrintJob).filter_by(print_id=print_id)).first()
        if not job:
            raise NotFoundError("Print job not found")

        if job.user_id != requester_id:
            raise ForbiddenError("Forbidden")

        if job.payment_status == PAYMENT_STATUS_SUCCESS:
            raise ConflictError("Print job is already paid")

        # Bump the job version so a verify committed since the read conflicts
        claimed = (
            session.query(PrintJob)
            .filter_by(print_id=job.print_id, version_id=job.version_id)
            .update({PrintJob.version_id: job.version_id + 1}, synchronize_session="fetch")
        )
        if not claimed:
            raise StaleDataError("Print job changed while opening a payment")

        payment = Payment(
            user_id=requester_id,
            print_id=job.print_id,
            payment_method=method,
            payment_status=PAYMENT_STATUS_PENDING,
            created_at=utcnow(),
        )
        session.add(payment)
        session.flush()  # Get payment ID

        upi_uri = build_collection_uri(job, payment)

        session.commit()
        return payment, upi_uri

    return run_with_retry(_op, session=session)


def build_collection_uri(job: PrintJob, payment: Payment) -> str:
    """UPI URI for one attempt; tr carries payment_id for reconciliation."""
    config = current_app.config
    return build_upi_pay_uri(
        payee_vpa=config.get("UPI_VPA", "library@upi"),
        payee_name=config.get("UPI_PAYEE_NAME", "E-Library"),
        amount=job.total_cost,
        currency=config.get("UPI_CURRENCY", "INR"),
        transaction_note=f"Print job {job.print_id}",
        transaction_ref=payment.payment_id,
    )


# =============================================================================
# PAYMENT VERIFICATION
# =============================================================================

def verify_payment(
    payment_id: str,
    transaction_id: str,
    payment_status: str,
    requester_id: str,
    *,
    session=None,
) -> Payment:
    """
    Record the outcome of a payment attempt and propagate it to the job.

    Sets transaction_id, payment_status and paid_at (now on SUCCESS, None
    on FAILED) on the payment, and the same payment_status on its print
    job, in one transaction.

    Raises:
        ValidationError: missing ids or outcome not SUCCESS / FAILED
        NotFoundError: payment does not exist
        ForbiddenError: payment belongs to someone else
    """
    session = resolve_session(session)

    if not payment_id or not transaction_id:
        raise ValidationError("payment_id and transaction_id are required")
    if payment_status not in VERIFY_OUTCOMES:
        raise ValidationError(f"payment_status must be one of {VERIFY_OUTCOMES}")

    def _op():
        payment = lock_for_update(session.query(Payment).filter_by(payment_id=payment_id)).first()
        if not payment:
            raise NotFoundError("Payment not found")

        if payment.user_id != requester_id:
            raise ForbiddenError("Forbidden")

        job = lock_for_update(session.query(PrintJob).filter_by(print_id=payment.print_id)).first()
        if not job:
            raise NotFoundError("Print job not found")

        payment.transaction_id = transaction_id
        payment.payment_status = payment_status
        payment.paid_at = utcnow() if payment_status == PAYMENT_STATUS_SUCCESS else None
        session.flush()

        job.payment_status = payment_status

        session.commit()
        return payment

    return run_with_retry(_op, session=session)


# =============================================================================
# QUERIES
# =============================================================================

def get_payment_status(payment_id: str, requester_id: str, requester_role: str, *, session=None) -> dict:
    """
    Payment plus a minimal print job summary.

    Readable by the payment's owner and by roles allowed VIEW_ANY_PAYMENT.
    """
    session = resolve_session(session)

    payment = (
        session.query(Payment)
        .options(joinedload(Payment.print_job))
        .filter_by(payment_id=payment_id)
        .first()
    )
    if not payment:
        raise NotFoundError("Payment not found")

    is_owner = payment.user_id == requester_id
    if not is_owner and not is_allowed("VIEW_ANY_PAYMENT", requester_role):
        raise ForbiddenError("Forbidden")

    return {
        "payment": payment.to_dict(),
        "print_job": {
            "total_cost": payment.print_job.total_cost,
            "payment_status": payment.print_job.payment_status,
        },
    }


def list_transactions(*, session=None) -> list[dict]:
    """
    Every payment attempt with payer and print job summaries (staff view).

    Returns newest first.
    """
    session = resolve_session(session)
    payments = (
        session.query(Payment)
        .options(joinedload(Payment.user), joinedload(Payment.print_job))
        .order_by(Payment.created_at.desc())
        .all()
    )

    items = []
    for payment in payments:
        data = payment.to_dict()
        data.pop("user_id")
        data.pop("print_id")
        data["user"] = payment.user.to_summary()
        data["print_job"] = {
            "print_id": payment.print_job.print_id,
            "file_name": payment.print_job.file_name,
            "total_cost": payment.print_job.total_cost,
        }
        items.append(data)
    return items
