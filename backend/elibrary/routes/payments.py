# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/elibrary/routes/payments.py
"""
Payment API Routes

DESIGN:
- initiate: open a PENDING attempt for an owned print job, return a UPI URI
- verify: record the outcome the client reports (SUCCESS / FAILED)
- status: owner or staff read

SECURITY:
- Ownership is checked in payment_service (403 on mismatch)
- verify trusts the caller-asserted outcome; see payment_service docstring
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import payment_service
from ..validation import ServiceError, error_response, internal_error_response
from ..decorators import require_auth, require_role


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payment")


@payments_bp.post("/initiate")
@require_auth
@require_role("PAY_PRINT_JOB")
def initiate_payment_route():
    """
    Start a payment attempt.

    Request body:
    {
        "print_id": "...",
        "payment_method": "UPI"  (optional, UPI or GPAY)
    }

    Returns:
        201: { payment, upi_uri }
        400: Invalid input
        403: Not your print job
        404: Print job not found
        409: Print job is already paid
    """
    try:
        data = request.get_json(silent=True) or {}
        payment, upi_uri = payment_service.initiate_payment(
            print_id=data.get("print_id"),
            requester_id=g.current_user.user_id,
            payment_method=data.get("payment_method"),
        )
        current_app.logger.info("Payment %s initiated for print job %s", payment.payment_id, payment.print_id)
        return jsonify({
            "payment": {
                "payment_id": payment.payment_id,
                "payment_method": payment.payment_method,
                "payment_status": payment.payment_status,
                "created_at": payment.to_dict()["created_at"],
            },
            "upi_uri": upi_uri,
        }), 201
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to initiate payment")
        return internal_error_response()


@payments_bp.post("/verify")
@require_auth
@require_role("PAY_PRINT_JOB")
def verify_payment_route():
    """
    Record a payment outcome.

    Request body:
    {
        "payment_id": "...",
        "transaction_id": "TXN123",
        "payment_status": "SUCCESS" | "FAILED"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        payment = payment_service.verify_payment(
            payment_id=data.get("payment_id"),
            transaction_id=data.get("transaction_id"),
            payment_status=data.get("payment_status"),
            requester_id=g.current_user.user_id,
        )
        current_app.logger.info(
            "Payment %s verified as %s (txn %s)",
            payment.payment_id, payment.payment_status, payment.transaction_id,
        )
        body = payment.to_dict()
        return jsonify({
            "payment": {
                "payment_id": body["payment_id"],
                "payment_status": body["payment_status"],
                "transaction_id": body["transaction_id"],
                "paid_at": body["paid_at"],
            }
        }), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to verify payment")
        return internal_error_response()


@payments_bp.get("/status/<payment_id>")
@require_auth
@require_role("VIEW_PAYMENT")
def payment_status_route(payment_id: str):
    """Readable by the payment's owner and by roles allowed VIEW_ANY_PAYMENT."""
    try:
        return jsonify(payment_service.get_payment_status(
            payment_id, g.current_user.user_id, g.role,
        )), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to read payment status")
        return internal_error_response()
