# Overview: Circulation engine; issues and returns books against the catalog.

"""
Book Circulation Service

Every state change touches two tables (the book_issues ledger row and the
book's status flag) and commits them together inside run_with_retry, so a
failure never leaves a book ISSUED without an open issue or vice versa.

INVARIANTS:
- Book.status == ISSUED  <=>  exactly one BookIssue for it has returned_date NULL
- Availability is re-read inside the transaction. A racing issue_book either
  sees ISSUED (ConflictError) or loses the version_id check, is retried, and
  then sees ISSUED.
- return_book flips the book referenced by the matched issue, never a
  caller-supplied book_id on its own.
- The issue is closed by an UPDATE guarded on returned_date IS NULL. A
  return that lost to a concurrent one matches no row and is NotFound.

All engine entry points take an optional ``session``; the Flask-SQLAlchemy
scoped session is used when it is omitted.
"""

from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from ..models import Book, BookIssue, User
from ..models.catalog import BOOK_STATUS_AVAILABLE, BOOK_STATUS_ISSUED
from ..validation import ConflictError, NotFoundError, ValidationError, parse_datetime_field
from elibrary.time_utils import to_utc_z, utcnow
from .concurrency import lock_for_update, resolve_session, run_with_retry


# =============================================================================
# ISSUE
# =============================================================================

def issue_book(book_id: str, user_id: str, due_date: datetime | str, *, session=None) -> BookIssue:
    """
    Lend a book to a user.

    Creates an open BookIssue and flips the book to ISSUED in one transaction.

    Raises:
        ValidationError: missing book_id / user_id or unparseable due_date
        NotFoundError: book or user does not exist
        ConflictError: book is not AVAILABLE
    """
    session = resolve_session(session)

    if not book_id or not user_id:
        raise ValidationError("book_id and user_id are required")
    due = parse_datetime_field("due_date", due_date)

    def _op():
        book = lock_for_update(session.query(Book).filter_by(book_id=book_id)).first()
        if not book:
            raise NotFoundError("Book not found")

        if book.status != BOOK_STATUS_AVAILABLE:
            raise ConflictError("Book is not available")

        user = session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")

        issue = BookIssue(
            book_id=book.book_id,
            user_id=user.user_id,
            issued_date=utcnow(),
            due_date=due,
            returned_date=None,
        )
        session.add(issue)
        book.status = BOOK_STATUS_ISSUED

        try:
            session.commit()
        except IntegrityError:
            # Partial unique index on open issues lost a race
            session.rollback()
            raise ConflictError("Book is not available")

        return issue

    return run_with_retry(_op, session=session)


# =============================================================================
# RETURN
# =============================================================================

def return_book(issue_id: str | None = None, book_id: str | None = None, *, session=None) -> BookIssue:
    """
    Close the most recent open issue matching the selector(s).

    At least one of issue_id / book_id is required; when both are given the
    issue must match both. The book whose status is restored is the one the
    matched issue references.

    Raises:
        ValidationError: no selector given
        NotFoundError: no open issue matches
    """
    session = resolve_session(session)

    if not issue_id and not book_id:
        raise ValidationError("Provide issue_id or book_id")

    def _op():
        query = session.query(BookIssue).filter(BookIssue.returned_date.is_(None))
        if issue_id:
            query = query.filter(BookIssue.issue_id == issue_id)
        if book_id:
            query = query.filter(BookIssue.book_id == book_id)

        issue = lock_for_update(query.order_by(BookIssue.issued_date.desc())).first()
        if not issue:
            raise NotFoundError("Active issue not found")

        book = lock_for_update(session.query(Book).filter_by(book_id=issue.book_id)).first()

        # Close only if still open; a concurrent return may have won since the read
        closed = (
            session.query(BookIssue)
            .filter(BookIssue.issue_id == issue.issue_id, BookIssue.returned_date.is_(None))
            .update({BookIssue.returned_date: utcnow()}, synchronize_session="fetch")
        )
        if not closed:
            raise NotFoundError("Active issue not found")

        if book:
            book.status = BOOK_STATUS_AVAILABLE

        session.commit()
        return issue

    return run_with_retry(_op, session=session)


# =============================================================================
# QUERIES
# =============================================================================

def _issue_with_parties(issue: BookIssue) -> dict:
    return {
        "issue_id": issue.issue_id,
        "issued_date": to_utc_z(issue.issued_date),
        "due_date": to_utc_z(issue.due_date),
        "book": issue.book.to_summary(),
        "borrower": {
            "user_id": issue.user.user_id,
            "name": issue.user.name,
            "email": issue.user.email,
        },
    }


def list_issued(*, session=None) -> list[dict]:
    """All open issues with book and borrower summaries, most recent first."""
    session = resolve_session(session)

    issues = (
        session.query(BookIssue)
        .options(joinedload(BookIssue.book), joinedload(BookIssue.user))
        .filter(BookIssue.returned_date.is_(None))
        .order_by(BookIssue.issued_date.desc())
        .all()
    )
    return [_issue_with_parties(issue) for issue in issues]


def get_active_issue(book_id: str, *, session=None) -> BookIssue | None:
    session = resolve_session(session)
    return (
        session.query(BookIssue)
        .options(joinedload(BookIssue.user))
        .filter(BookIssue.book_id == book_id, BookIssue.returned_date.is_(None))
        .order_by(BookIssue.issued_date.desc())
        .first()
    )


def get_book_with_active_issue(book_id: str, *, session=None) -> dict:
    """
    Book record plus its current loan, or ``issued: None`` when on the shelf.

    Raises NotFoundError if the book does not exist.
    """
    session = resolve_session(session)

    book = session.get(Book, book_id)
    if not book:
        raise NotFoundError("Book not found")

    active = get_active_issue(book_id, session=session)

    data = book.to_dict()
    data["issued"] = None
    if active:
        data["issued"] = {
            "issue_id": active.issue_id,
            "borrower_name": active.user.name,
            "borrower_email": active.user.email,
            "due_date": to_utc_z(active.due_date),
            "issued_date": to_utc_z(active.issued_date),
        }
    return data


def get_user_issues(user_id: str, include_returned: bool = True, *, session=None) -> list[BookIssue]:
    """Issue history for one borrower, most recent first."""
    session = resolve_session(session)
    query = session.query(BookIssue).filter_by(user_id=user_id)
    if not include_returned:
        query = query.filter(BookIssue.returned_date.is_(None))
    return query.order_by(BookIssue.issued_date.desc()).all()
