"""
Payment engine tests.

Covers initiate (ownership, paid-job conflict, URI contents), verify
(outcome propagation to the print job, paid_at rules, overwrite on
re-verify) and the status read rules.
"""

from datetime import timedelta
from urllib.parse import parse_qsl, urlsplit

import pytest

from elibrary.models import Payment, PrintJob
from elibrary.models.printing import PAYMENT_STATUS_FAILED, PAYMENT_STATUS_PENDING, PAYMENT_STATUS_SUCCESS
from elibrary.permissions import Role
from elibrary.services import payment_service
from elibrary.validation import ConflictError, ForbiddenError, NotFoundError, ValidationError


class TestInitiatePayment:

    def test_creates_pending_attempt(self, db_session, user, make_print_job):
        job = make_print_job(user, total_pages=10, cost_per_page=2)

        payment, uri = payment_service.initiate_payment(job.print_id, user.user_id, session=db_session)

        assert payment.payment_status == PAYMENT_STATUS_PENDING
        assert payment.payment_method == payment_service.METHOD_UPI
        assert payment.paid_at is None
        assert payment.transaction_id is None
        assert db_session.get(PrintJob, job.print_id).payment_status == PAYMENT_STATUS_PENDING

        parts = urlsplit(uri)
        assert parts.scheme == "upi"
        assert parts.netloc == "pay"
        assert parse_qsl(parts.query) == [
            ("pa", "library@upi"),
            ("pn", "E-Library"),
            ("am", "20.00"),
            ("cu", "INR"),
            ("tn", f"Print job {job.print_id}"),
            ("tr", payment.payment_id),
        ]

    def test_gpay_method(self, db_session, user, make_print_job):
        job = make_print_job(user)
        payment, _uri = payment_service.initiate_payment(job.print_id, user.user_id, "GPAY", session=db_session)
        assert payment.payment_method == "GPAY"

    def test_unknown_method(self, db_session, user, make_print_job):
        job = make_print_job(user)
        with pytest.raises(ValidationError):
            payment_service.initiate_payment(job.print_id, user.user_id, "CASH", session=db_session)

    def test_missing_print_id(self, db_session, user):
        with pytest.raises(ValidationError):
            payment_service.initiate_payment("", user.user_id, session=db_session)

    def test_unknown_print_job(self, db_session, user):
        with pytest.raises(NotFoundError):
            payment_service.initiate_payment("no-such-job", user.user_id, session=db_session)

    def test_other_users_job_forbidden(self, db_session, user, make_user, make_print_job):
        job = make_print_job(make_user())

        with pytest.raises(ForbiddenError):
            payment_service.initiate_payment(job.print_id, user.user_id, session=db_session)

        assert db_session.query(Payment).count() == 0

    def test_paid_job_conflicts(self, db_session, user, make_print_job):
        job = make_print_job(user)
        payment, _uri = payment_service.initiate_payment(job.print_id, user.user_id, session=db_session)
        payment_service.verify_payment(payment.payment_id, "TXN1", PAYMENT_STATUS_SUCCESS, user.user_id, session=db_session)

        with pytest.raises(ConflictError):
            payment_service.initiate_payment(job.print_id, user.user_id, session=db_session)

        assert db_session.query(Payment).filter_by(print_id=job.print_id).count() == 1

    def test_failed_job_can_retry(self, db_session, user, make_print_job):
        job = make_print_job(user)
        first, _uri = payment_service.initiate_payment(job.print_id, user.user_id, session=db_session)
        payment_service.verify_payment(first.payment_id, "TXN1", PAYMENT_STATUS_FAILED, user.user_id, session=db_session)

        second, _uri = payment_service.initiate_payment(job.print_id, user.user_id, session=db_session)

        assert second.payment_id != first.payment_id
        assert db_session.query(Payment).filter_by(print_id=job.print_id).count() == 2


class TestVerifyPayment:

    def test_success_propagates_to_job(self, db_session, user, make_print_job):
        job = make_print_job(user)
        payment, _uri = payment_service.initiate_payment(job.print_id, user.user_id, session=db_session)

        verified = payment_service.verify_payment(
            payment.payment_id, "TXN123", PAYMENT_STATUS_SUCCESS, user.user_id, session=db_session,
        )

        assert verified.payment_status == PAYMENT_STATUS_SUCCESS
        assert verified.transaction_id == "TXN123"
        assert verified.paid_at is not None
        assert db_session.get(PrintJob, job.print_id).payment_status == PAYMENT_STATUS_SUCCESS

    def test_failed_clears_paid_at(self, db_session, user, make_print_job):
        job = make_print_job(user)
        payment, _uri = payment_service.initiate_payment(job.print_id, user.user_id, session=db_session)
        payment_service.verify_payment(payment.payment_id, "TXN1", PAYMENT_STATUS_SUCCESS, user.user_id, session=db_session)

        verified = payment_service.verify_payment(
            payment.payment_id, "TXN2", PAYMENT_STATUS_FAILED, user.user_id, session=db_session,
        )

        assert verified.paid_at is None
        assert verified.transaction_id == "TXN2"
        assert db_session.get(PrintJob, job.print_id).payment_status == PAYMENT_STATUS_FAILED

    @pytest.mark.parametrize("status", [PAYMENT_STATUS_PENDING, "PAID", "", None])
    def test_rejects_other_outcomes(self, db_session, user, make_print_job, status):
        job = make_print_job(user)
        payment, _uri = payment_service.initiate_payment(job.print_id, user.user_id, session=db_session)

        with pytest.raises(ValidationError):
            payment_service.verify_payment(payment.payment_id, "TXN1", status, user.user_id, session=db_session)

        assert db_session.get(PrintJob, job.print_id).payment_status == PAYMENT_STATUS_PENDING

    def test_requires_transaction_id(self, db_session, user, make_print_job):
        job = make_print_job(user)
        payment, _uri = payment_service.initiate_payment(job.print_id, user.user_id, session=db_session)

        with pytest.raises(ValidationError):
            payment_service.verify_payment(payment.payment_id, "", PAYMENT_STATUS_SUCCESS, user.user_id, session=db_session)

    def test_unknown_payment(self, db_session, user):
        with pytest.raises(NotFoundError):
            payment_service.verify_payment("no-such-payment", "TXN1", PAYMENT_STATUS_SUCCESS, user.user_id, session=db_session)

    def test_other_users_payment_forbidden(self, db_session, user, make_user, make_print_job):
        owner = make_user()
        job = make_print_job(owner)
        payment, _uri = payment_service.initiate_payment(job.print_id, owner.user_id, session=db_session)

        with pytest.raises(ForbiddenError):
            payment_service.verify_payment(payment.payment_id, "TXN1", PAYMENT_STATUS_SUCCESS, user.user_id, session=db_session)

        assert db_session.get(PrintJob, job.print_id).payment_status == PAYMENT_STATUS_PENDING


class TestPaymentStatus:

    def test_owner_reads_status(self, db_session, user, make_print_job):
        job = make_print_job(user, total_pages=3, cost_per_page=5)
        payment, _uri = payment_service.initiate_payment(job.print_id, user.user_id, session=db_session)

        data = payment_service.get_payment_status(payment.payment_id, user.user_id, Role.USER, session=db_session)

        assert data["payment"]["payment_id"] == payment.payment_id
        assert data["print_job"] == {"total_cost": 15, "payment_status": PAYMENT_STATUS_PENDING}

    def test_staff_reads_any_status(self, db_session, user, library_admin, make_print_job):
        job = make_print_job(user)
        payment, _uri = payment_service.initiate_payment(job.print_id, user.user_id, session=db_session)

        data = payment_service.get_payment_status(
            payment.payment_id, library_admin.user_id, Role.LIBRARY_ADMIN, session=db_session,
        )

        assert data["payment"]["user_id"] == user.user_id

    def test_other_user_forbidden(self, db_session, user, make_user, make_print_job):
        job = make_print_job(user)
        payment, _uri = payment_service.initiate_payment(job.print_id, user.user_id, session=db_session)
        stranger = make_user()

        with pytest.raises(ForbiddenError):
            payment_service.get_payment_status(payment.payment_id, stranger.user_id, Role.USER, session=db_session)

    def test_transactions_newest_first(self, db_session, user, make_print_job):
        first_job = make_print_job(user)
        second_job = make_print_job(user)
        earliest, _uri = payment_service.initiate_payment(first_job.print_id, user.user_id, session=db_session)
        latest, _uri = payment_service.initiate_payment(second_job.print_id, user.user_id, session=db_session)
        earliest.created_at = latest.created_at - timedelta(hours=1)
        db_session.commit()

        items = payment_service.list_transactions(session=db_session)

        assert len(items) == 2
        assert items[0]["payment_id"] == latest.payment_id
        assert items[0]["user"]["email"] == user.email
        assert items[0]["print_job"]["print_id"] == second_job.print_id
