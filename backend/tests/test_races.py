"""
Two-session race tests on a file-backed SQLite database.

Each test opens independent sessions against the same file and forces an
interleaving with a session event hook: one session reads, another commits
in between, then the first one continues. The in-memory app database cannot
do this because every session shares one connection.
"""

import pytest
from sqlalchemy import create_engine, event, inspect
from sqlalchemy.orm import sessionmaker

from elibrary.extensions import db
from elibrary.models import Book, BookIssue, Payment, PrintJob, User
from elibrary.models.catalog import BOOK_STATUS_AVAILABLE, BOOK_STATUS_ISSUED
from elibrary.models.printing import PAYMENT_STATUS_FAILED, PAYMENT_STATUS_PENDING, PAYMENT_STATUS_SUCCESS
from elibrary.permissions import Role
from elibrary.services import catalog_service, circulation_service, payment_service
from elibrary.validation import ConflictError, NotFoundError


@pytest.fixture
def race_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'race.sqlite3'}")
    db.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def open_session(race_engine):
    factory = sessionmaker(bind=race_engine)
    opened = []

    def _open():
        session = factory()
        opened.append(session)
        return session

    yield _open

    for session in opened:
        session.close()


@pytest.fixture
def seed(open_session):
    """Commit rows through a throwaway session and return their primary keys."""
    session = open_session()

    def _seed(*rows):
        session.add_all(rows)
        session.commit()
        return [inspect(row).identity[0] for row in rows]

    return _seed


def _user(n):
    return User(name=f"Reader {n}", email=f"reader{n}@library.test", role=Role.USER)


def _book():
    return Book(
        book_name="Dune",
        author_name="Frank Herbert",
        category="Fiction",
        publication_year=1965,
        library_location="Shelf A3",
    )


def _job(user_id):
    return PrintJob(
        user_id=user_id,
        file_name="notes.pdf",
        storage_path="1700000000000_notes.pdf",
        total_pages=10,
        cost_per_page=2,
        total_cost=20,
    )


def _run_before(session, matches, interleave):
    """Run ``interleave`` once, right before ``session`` executes a matching ORM statement."""
    fired = {"done": False}

    @event.listens_for(session, "do_orm_execute")
    def _hook(state):
        if not fired["done"] and matches(state):
            fired["done"] = True
            interleave()

    return fired


def _open_issues(session, book_id):
    return (
        session.query(BookIssue)
        .filter(BookIssue.book_id == book_id, BookIssue.returned_date.is_(None))
        .count()
    )


# =============================================================================
# CIRCULATION
# =============================================================================


class TestCirculationRaces:

    def test_racing_issue_loser_gets_conflict(self, open_session, seed, due_date):
        first, second, book_id = seed(_user(1), _user(2), _book())
        winner_session, loser_session = open_session(), open_session()

        def _winner_issues_first(session, flush_context, instances):
            circulation_service.issue_book(book_id, second, due_date, session=winner_session)

        event.listen(loser_session, "before_flush", _winner_issues_first, once=True)

        with pytest.raises(ConflictError):
            circulation_service.issue_book(book_id, first, due_date, session=loser_session)

        check = open_session()
        assert check.get(Book, book_id).status == BOOK_STATUS_ISSUED
        assert _open_issues(check, book_id) == 1
        assert check.query(BookIssue).filter_by(book_id=book_id).one().user_id == second

    def test_stale_return_does_not_free_reissued_book(self, open_session, seed, due_date):
        first, second, book_id = seed(_user(1), _user(2), _book())
        first_issue = circulation_service.issue_book(book_id, first, due_date, session=open_session())
        first_issue_id = first_issue.issue_id

        desk_a, desk_b, desk_c = open_session(), open_session(), open_session()

        def _return_and_reissue():
            circulation_service.return_book(issue_id=first_issue_id, session=desk_a)
            circulation_service.issue_book(book_id, second, due_date, session=desk_c)

        fired = _run_before(
            desk_b,
            lambda state: state.is_select and Book.__mapper__ in state.all_mappers,
            _return_and_reissue,
        )

        with pytest.raises(NotFoundError):
            circulation_service.return_book(issue_id=first_issue_id, session=desk_b)

        assert fired["done"]
        check = open_session()
        assert check.get(Book, book_id).status == BOOK_STATUS_ISSUED
        assert _open_issues(check, book_id) == 1

    def test_sequential_return_then_issue_still_works(self, open_session, seed, due_date):
        first, second, book_id = seed(_user(1), _user(2), _book())
        session = open_session()

        issue = circulation_service.issue_book(book_id, first, due_date, session=session)
        circulation_service.return_book(issue_id=issue.issue_id, session=session)

        assert session.get(Book, book_id).status == BOOK_STATUS_AVAILABLE
        circulation_service.issue_book(book_id, second, due_date, session=session)
        assert _open_issues(session, book_id) == 1


# =============================================================================
# PAYMENTS
# =============================================================================


class TestPaymentRaces:

    def test_initiate_racing_successful_verify_is_refused(self, open_session, seed):
        (owner,) = seed(_user(1))
        (print_id,) = seed(_job(owner))
        first, _uri = payment_service.initiate_payment(print_id, owner, session=open_session())
        first_id = first.payment_id

        payer, verifier = open_session(), open_session()

        def _verify_success():
            payment_service.verify_payment(first_id, "TXN-1", PAYMENT_STATUS_SUCCESS, owner, session=verifier)

        fired = _run_before(
            payer,
            lambda state: state.is_update and PrintJob.__mapper__ in state.all_mappers,
            _verify_success,
        )

        with pytest.raises(ConflictError):
            payment_service.initiate_payment(print_id, owner, session=payer)

        assert fired["done"]
        check = open_session()
        assert check.get(PrintJob, print_id).payment_status == PAYMENT_STATUS_SUCCESS
        attempts = check.query(Payment).filter_by(print_id=print_id).all()
        assert [p.payment_status for p in attempts] == [PAYMENT_STATUS_SUCCESS]

    def test_concurrent_verifies_last_writer_wins(self, open_session, seed):
        (owner,) = seed(_user(1))
        (print_id,) = seed(_job(owner))
        payment, _uri = payment_service.initiate_payment(print_id, owner, session=open_session())
        payment_id = payment.payment_id

        late, early = open_session(), open_session()

        def _early_reports_failure(session, flush_context, instances):
            payment_service.verify_payment(payment_id, "TXN-EARLY", PAYMENT_STATUS_FAILED, owner, session=early)

        event.listen(late, "before_flush", _early_reports_failure, once=True)

        payment_service.verify_payment(payment_id, "TXN-LATE", PAYMENT_STATUS_SUCCESS, owner, session=late)

        check = open_session()
        stored = check.get(Payment, payment_id)
        assert stored.transaction_id == "TXN-LATE"
        assert stored.payment_status == PAYMENT_STATUS_SUCCESS
        assert stored.paid_at is not None
        assert check.get(PrintJob, print_id).payment_status == PAYMENT_STATUS_SUCCESS

    def test_failed_job_update_rolls_back_payment(self, open_session, seed, race_engine):
        (owner,) = seed(_user(1))
        (print_id,) = seed(_job(owner))
        payment, _uri = payment_service.initiate_payment(print_id, owner, session=open_session())
        payment_id = payment.payment_id

        @event.listens_for(race_engine, "before_cursor_execute")
        def _fail_job_update(conn, cursor, statement, parameters, context, executemany):
            if statement.lstrip().upper().startswith("UPDATE PRINT_JOBS"):
                raise RuntimeError("disk I/O error")

        with pytest.raises(RuntimeError):
            payment_service.verify_payment(payment_id, "TXN-1", PAYMENT_STATUS_SUCCESS, owner, session=open_session())

        event.remove(race_engine, "before_cursor_execute", _fail_job_update)

        check = open_session()
        stored = check.get(Payment, payment_id)
        assert stored.payment_status == PAYMENT_STATUS_PENDING
        assert stored.transaction_id is None
        assert stored.paid_at is None
        assert check.get(PrintJob, print_id).payment_status == PAYMENT_STATUS_PENDING


# =============================================================================
# CATALOG
# =============================================================================


class TestCatalogRaces:

    def test_delete_racing_issue_is_refused(self, open_session, seed, due_date):
        reader, book_id = seed(_user(1), _book())
        admin, desk = open_session(), open_session()

        def _desk_issues_first(session, flush_context, instances):
            circulation_service.issue_book(book_id, reader, due_date, session=desk)

        event.listen(admin, "before_flush", _desk_issues_first, once=True)

        with pytest.raises(ConflictError):
            catalog_service.delete_book(book_id, session=admin)

        check = open_session()
        assert check.get(Book, book_id).status == BOOK_STATUS_ISSUED
        assert _open_issues(check, book_id) == 1

    def test_edit_racing_issue_is_reapplied(self, open_session, seed, due_date):
        reader, book_id = seed(_user(1), _book())
        admin, desk = open_session(), open_session()

        def _desk_issues_first(session, flush_context, instances):
            circulation_service.issue_book(book_id, reader, due_date, session=desk)

        event.listen(admin, "before_flush", _desk_issues_first, once=True)

        book = catalog_service.update_book(book_id, {"library_location": "Shelf B1"}, session=admin)

        assert book.library_location == "Shelf B1"
        check = open_session()
        stored = check.get(Book, book_id)
        assert stored.library_location == "Shelf B1"
        assert stored.status == BOOK_STATUS_ISSUED
