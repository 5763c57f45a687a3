from __future__ import annotations

from ..extensions import db
from elibrary.time_utils import to_utc_z, utcnow
from ._ids import new_id


PAYMENT_STATUS_PENDING = "PENDING"
PAYMENT_STATUS_SUCCESS = "SUCCESS"
PAYMENT_STATUS_FAILED = "FAILED"


class PrintJob(db.Model):
    """
    Uploaded document awaiting printing.

    total_cost is computed once at creation (total_pages * cost_per_page)
    and never recomputed. Only payment_status changes afterwards.
    """
    __tablename__ = "print_jobs"
    __table_args__ = (
        db.Index("ix_print_jobs_user_created", "user_id", "created_at"),
    )

    print_id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey("users.user_id"), nullable=False, index=True)

    file_name = db.Column(db.String(255), nullable=False)
    storage_path = db.Column(db.String(512), nullable=False)

    total_pages = db.Column(db.Integer, nullable=False)
    cost_per_page = db.Column(db.Integer, nullable=False)
    total_cost = db.Column(db.Integer, nullable=False)

    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_PENDING, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("print_jobs", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "print_id": self.print_id,
            "file_name": self.file_name,
            "total_pages": self.total_pages,
            "cost_per_page": self.cost_per_page,
            "total_cost": self.total_cost,
            "payment_status": self.payment_status,
            "created_at": to_utc_z(self.created_at),
        }


class Payment(db.Model):
    """
    One payment attempt against a print job.

    A job may collect several attempts (a FAILED one permits retry). verify()
    overwrites transaction_id / payment_status / paid_at in place; no history
    of earlier outcomes is kept. paid_at is set iff payment_status is SUCCESS.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_print_created", "print_id", "created_at"),
    )

    payment_id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey("users.user_id"), nullable=False, index=True)
    print_id = db.Column(db.String(36), db.ForeignKey("print_jobs.print_id"), nullable=False, index=True)

    payment_method = db.Column(db.String(16), nullable=False)
    transaction_id = db.Column(db.String(128), nullable=True)
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_PENDING, index=True)

    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    user = db.relationship("User", backref=db.backref("payments", lazy=True))
    print_job = db.relationship("PrintJob", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "payment_id": self.payment_id,
            "user_id": self.user_id,
            "print_id": self.print_id,
            "payment_method": self.payment_method,
            "transaction_id": self.transaction_id,
            "payment_status": self.payment_status,
            "paid_at": to_utc_z(self.paid_at),
            "created_at": to_utc_z(self.created_at),
        }
