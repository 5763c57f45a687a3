"""
Pytest fixtures for E-Library backend tests.

Provides the app on in-memory SQLite, a per-test table wipe, user
factories for each role and bearer headers.
"""

from datetime import timedelta

import pytest

from elibrary import create_app
from elibrary.extensions import db
from elibrary.models import Book, PrintJob, User
from elibrary.permissions import Role
from elibrary.services import session_service
from elibrary.services.auth_service import hash_password
from elibrary.time_utils import utcnow


TEST_PASSWORD = "secret123"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'UPLOAD_FOLDER': str(tmp_path_factory.mktemp("uploads")),
        'UPI_VPA': 'library@upi',
        'UPI_PAYEE_NAME': 'E-Library',
        'DEFAULT_COST_PER_PAGE': 2,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Fresh data for each test; schema is kept."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        db.session.expunge_all()

        yield db.session

        db.session.rollback()


# =============================================================================
# FACTORIES
# =============================================================================

@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make(role=Role.USER, name=None, email=None, password=TEST_PASSWORD):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            name=name or f"{role.title()} {n}",
            email=email or f"{role.lower()}{n}@library.test",
            password_hash=hash_password(password) if password else None,
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def make_book(db_session):
    def _make(**overrides):
        fields = {
            "book_name": "Dune",
            "author_name": "Frank Herbert",
            "category": "Fiction",
            "publication_year": 1965,
            "library_location": "Shelf A3",
        }
        fields.update(overrides)
        book = Book(**fields)
        db_session.add(book)
        db_session.commit()
        return book

    return _make


@pytest.fixture
def make_print_job(db_session):
    def _make(user, total_pages=10, cost_per_page=2):
        job = PrintJob(
            user_id=user.user_id,
            file_name="notes.pdf",
            storage_path="1700000000000_notes.pdf",
            total_pages=total_pages,
            cost_per_page=cost_per_page,
            total_cost=total_pages * cost_per_page,
        )
        db_session.add(job)
        db_session.commit()
        return job

    return _make


@pytest.fixture
def user(make_user):
    return make_user(Role.USER)


@pytest.fixture
def library_admin(make_user):
    return make_user(Role.LIBRARY_ADMIN)


@pytest.fixture
def super_admin(make_user):
    return make_user(Role.SUPER_ADMIN)


@pytest.fixture
def due_date():
    return (utcnow() + timedelta(days=14)).replace(microsecond=0)


# =============================================================================
# AUTH HEADERS
# =============================================================================

def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(user) -> dict:
    _session, token = session_service.create_session(user.user_id)
    return auth_headers(token)


@pytest.fixture
def user_headers(user):
    return headers_for(user)


@pytest.fixture
def library_admin_headers(library_admin):
    return headers_for(library_admin)


@pytest.fixture
def super_admin_headers(super_admin):
    return headers_for(super_admin)
