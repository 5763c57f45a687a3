# Overview: Service-layer operations for print jobs.

"""
Print Job Service

WHY: Users upload a document, get a frozen price (pages x cost per page)
and pay for it through payment_service.

DESIGN PRINCIPLES:
- total_cost is computed once at creation and stored; it is never
  recomputed, even if the per-page price changes later
- payment_status is the only mutable field and is written by
  payment_service.verify_payment
- Jobs are visible to their owner; staff see all of them through the admin API
"""

import os
import re

from flask import current_app
from sqlalchemy.orm import joinedload, selectinload

from ..extensions import db
from ..models import PrintJob, Payment
from ..models.printing import PAYMENT_STATUS_PENDING
from ..validation import ForbiddenError, NotFoundError, ValidationError, parse_positive_int
from elibrary.time_utils import epoch_ms


_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def safe_storage_name(original_name: str, now_ms: int | None = None) -> str:
    """<epoch_ms>_<name> with every character outside [A-Za-z0-9._-] replaced by '_'."""
    if now_ms is None:
        now_ms = epoch_ms()
    return f"{now_ms}_{_UNSAFE_FILENAME_CHARS.sub('_', original_name)}"


def store_upload(file_storage) -> tuple[str, str]:
    """
    Persist an uploaded werkzeug FileStorage under UPLOAD_FOLDER.

    Returns (original_file_name, storage_path).
    """
    if file_storage is None or not file_storage.filename:
        raise ValidationError("Missing file")

    upload_dir = current_app.config.get("UPLOAD_FOLDER") or "uploads"
    os.makedirs(upload_dir, exist_ok=True)

    storage_name = safe_storage_name(file_storage.filename)
    file_storage.save(os.path.join(upload_dir, storage_name))
    return file_storage.filename, storage_name


def discard_upload(storage_path: str) -> None:
    """Delete a stored upload that ended up with no print job row."""
    upload_dir = current_app.config.get("UPLOAD_FOLDER") or "uploads"
    try:
        os.remove(os.path.join(upload_dir, storage_path))
    except FileNotFoundError:
        pass


def price_job(total_pages, cost_per_page=None) -> tuple[int, int]:
    """Validated (pages, cost_per_page); cost falls back to DEFAULT_COST_PER_PAGE."""
    default_cost = int(current_app.config.get("DEFAULT_COST_PER_PAGE", 2))
    pages = parse_positive_int("total_pages", total_pages)
    cost = parse_positive_int("cost_per_page", cost_per_page, default=default_cost)
    return pages, cost


def create_print_job(
    user_id: str,
    file_name: str,
    storage_path: str,
    total_pages,
    cost_per_page=None,
) -> PrintJob:
    """
    Record a submitted document with its frozen cost.

    Raises:
        ValidationError: pages / cost not integers >= 1, or missing file info
    """
    if not file_name or not storage_path:
        raise ValidationError("Missing file")

    pages, cost = price_job(total_pages, cost_per_page)

    job = PrintJob(
        user_id=user_id,
        file_name=file_name,
        storage_path=storage_path,
        total_pages=pages,
        cost_per_page=cost,
        total_cost=pages * cost,
        payment_status=PAYMENT_STATUS_PENDING,
    )
    db.session.add(job)
    db.session.commit()
    return job


def get_print_job(print_id: str) -> PrintJob:
    job = db.session.get(PrintJob, print_id)
    if not job:
        raise NotFoundError("Print job not found")
    return job


def get_owned_print_job(print_id: str, requester_id: str) -> PrintJob:
    """Owner-only read used by preview and confirm."""
    if not print_id:
        raise ValidationError("print_id is required")
    job = get_print_job(print_id)
    if job.user_id != requester_id:
        raise ForbiddenError("Forbidden")
    return job


def list_print_jobs_for_user(user_id: str, include_payments: bool = False) -> list[PrintJob]:
    """A user's print jobs, newest first."""
    query = db.session.query(PrintJob).filter_by(user_id=user_id)
    if include_payments:
        query = query.options(selectinload(PrintJob.payments))
    return query.order_by(PrintJob.created_at.desc()).all()


def print_history(user_id: str) -> list[dict]:
    """Print jobs with their payment attempts embedded (both newest first)."""
    items = []
    for job in list_print_jobs_for_user(user_id, include_payments=True):
        data = job.to_dict()
        payments = sorted(job.payments, key=lambda p: p.created_at, reverse=True)
        data["payments"] = [_payment_summary(p) for p in payments]
        items.append(data)
    return items


def _payment_summary(payment: Payment) -> dict:
    data = payment.to_dict()
    data.pop("user_id", None)
    data.pop("print_id", None)
    return data


def list_all_print_jobs() -> list[dict]:
    """Every print job with its owner, newest first (staff view)."""
    jobs = (
        db.session.query(PrintJob)
        .options(joinedload(PrintJob.user))
        .order_by(PrintJob.created_at.desc())
        .all()
    )
    items = []
    for job in jobs:
        data = job.to_dict()
        data["user"] = job.user.to_summary()
        items.append(data)
    return items
