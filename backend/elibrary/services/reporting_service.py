# Overview: Service-layer operations for reporting; aggregate counts for the admin dashboard.

from ..extensions import db
from ..models import Book, BookIssue, PrintJob, Payment, User
from ..models.printing import PAYMENT_STATUS_PENDING


def get_dashboard_stats() -> dict:
    """
    Headline counts for staff.

    Returns:
        books, users, activeIssues (open issues), pendingPrints (print jobs
        still PENDING payment), payments (all attempts)
    """
    return {
        "books": db.session.query(Book).count(),
        "users": db.session.query(User).count(),
        "activeIssues": db.session.query(BookIssue).filter(BookIssue.returned_date.is_(None)).count(),
        "pendingPrints": db.session.query(PrintJob).filter_by(payment_status=PAYMENT_STATUS_PENDING).count(),
        "payments": db.session.query(Payment).count(),
    }
