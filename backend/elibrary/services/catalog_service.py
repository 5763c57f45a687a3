# Overview: Service-layer operations for the book catalog.

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Book
from ..models.catalog import BOOK_STATUS_ISSUED
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    enforce_rules_book,
    validate_payload,
)
from .concurrency import lock_for_update, resolve_session, run_with_retry


# status is owned by circulation_service and is never client-writable
BOOK_FIELDS = {"book_name", "author_name", "category", "publication_year", "library_location"}

BOOK_POLICY = ModelValidationPolicy(
    writable_fields=BOOK_FIELDS,
    required_on_create=BOOK_FIELDS,
)


def _contains(column, needle: str):
    return func.lower(column).contains(needle.lower(), autoescape=True)


def list_books(q: str = "", author: str = "", category: str = "") -> list[Book]:
    """
    List books, newest first.

    q matches name, author or category; author and category narrow further.
    All matches are case-insensitive substrings.
    """
    query = db.session.query(Book)

    q = (q or "").strip()
    author = (author or "").strip()
    category = (category or "").strip()

    if q:
        query = query.filter(or_(
            _contains(Book.book_name, q),
            _contains(Book.author_name, q),
            _contains(Book.category, q),
        ))
    if author:
        query = query.filter(_contains(Book.author_name, author))
    if category:
        query = query.filter(_contains(Book.category, category))

    return query.order_by(Book.created_at.desc()).all()


def search_books(q: str = "") -> list[Book]:
    return list_books(q=q)


def get_book(book_id: str, *, session=None) -> Book:
    book = resolve_session(session).get(Book, book_id)
    if not book:
        raise NotFoundError("Book not found")
    return book


def _locked_book(session, book_id: str) -> Book:
    book = lock_for_update(session.query(Book).filter_by(book_id=book_id)).first()
    if not book:
        raise NotFoundError("Book not found")
    return book


def create_book(payload: dict) -> Book:
    patch = validate_payload(model=Book, payload=payload, policy=BOOK_POLICY, partial=False)
    enforce_rules_book(patch)

    book = Book(**patch)
    db.session.add(book)
    db.session.commit()
    return book


def update_book(book_id: str, payload: dict, *, session=None) -> Book:
    """
    Apply a partial edit to a book's descriptive fields.

    The patch is re-applied to a fresh read if a concurrent issue or return
    bumped the book's version in the meantime.
    """
    session = resolve_session(session)
    get_book(book_id, session=session)
    patch = validate_payload(model=Book, payload=payload, policy=BOOK_POLICY, partial=True)
    enforce_rules_book(patch)

    def _op():
        book = _locked_book(session, book_id)
        for key, value in patch.items():
            setattr(book, key, value)
        session.commit()
        return book

    return run_with_retry(_op, session=session)


def delete_book(book_id: str, *, session=None) -> None:
    """
    Hard-delete a book and its closed issue history.

    Refused while the book is out on loan; the status is checked on a
    locked read inside the transaction.
    """
    session = resolve_session(session)

    def _op():
        book = _locked_book(session, book_id)
        if book.status == BOOK_STATUS_ISSUED:
            raise ConflictError("Book is currently issued and cannot be deleted")

        session.delete(book)
        session.commit()

    run_with_retry(_op, session=session)
