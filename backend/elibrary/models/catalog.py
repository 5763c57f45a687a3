from __future__ import annotations

from ..extensions import db
from elibrary.time_utils import to_utc_z, utcnow
from ._ids import new_id


BOOK_STATUS_AVAILABLE = "AVAILABLE"
BOOK_STATUS_ISSUED = "ISSUED"


class Book(db.Model):
    """
    Catalog record.

    status is ISSUED exactly while an open BookIssue references the book.
    Only the circulation service flips it; clients never write it.
    """
    __tablename__ = "books"
    __table_args__ = (
        db.Index("ix_books_status_created", "status", "created_at"),
    )

    book_id = db.Column(db.String(36), primary_key=True, default=new_id)
    book_name = db.Column(db.String(255), nullable=False)
    author_name = db.Column(db.String(255), nullable=False, index=True)
    category = db.Column(db.String(128), nullable=False, index=True)
    publication_year = db.Column(db.Integer, nullable=False)
    library_location = db.Column(db.String(128), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=BOOK_STATUS_AVAILABLE)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "book_id": self.book_id,
            "book_name": self.book_name,
            "author_name": self.author_name,
            "category": self.category,
            "publication_year": self.publication_year,
            "library_location": self.library_location,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }

    def to_summary(self) -> dict:
        return {
            "book_id": self.book_id,
            "book_name": self.book_name,
            "author_name": self.author_name,
            "category": self.category,
        }


class BookIssue(db.Model):
    """
    Circulation ledger row. Open while returned_date is NULL.

    Closed by the return operation, never deleted (except together with its
    book on an explicit admin delete). The partial unique index keeps at most
    one open issue per book.
    """
    __tablename__ = "book_issues"
    __table_args__ = (
        db.Index(
            "uq_book_issues_open_book",
            "book_id",
            unique=True,
            sqlite_where=db.text("returned_date IS NULL"),
            postgresql_where=db.text("returned_date IS NULL"),
        ),
        db.Index("ix_book_issues_issued_date", "issued_date"),
    )

    issue_id = db.Column(db.String(36), primary_key=True, default=new_id)
    book_id = db.Column(db.String(36), db.ForeignKey("books.book_id"), nullable=False, index=True)
    user_id = db.Column(db.String(36), db.ForeignKey("users.user_id"), nullable=False, index=True)

    issued_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    due_date = db.Column(db.DateTime(timezone=True), nullable=False)
    returned_date = db.Column(db.DateTime(timezone=True), nullable=True)

    book = db.relationship("Book", backref=db.backref("issues", lazy=True, cascade="all, delete-orphan"))
    user = db.relationship("User", backref=db.backref("book_issues", lazy=True))

    @property
    def is_open(self) -> bool:
        return self.returned_date is None

    def to_dict(self) -> dict:
        return {
            "issue_id": self.issue_id,
            "book_id": self.book_id,
            "user_id": self.user_id,
            "issued_date": to_utc_z(self.issued_date),
            "due_date": to_utc_z(self.due_date),
            "returned_date": to_utc_z(self.returned_date),
        }
