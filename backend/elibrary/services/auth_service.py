# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication and account management.

Password login doubles as self-registration: an unknown email creates a
USER account on the spot. Google sign-in (when GOOGLE_CLIENT_ID is set)
upserts a USER from the verified ID token. Privileged accounts come from
the one-time super-admin bootstrap or from a SUPER_ADMIN via the admin API / CLI.

SECURITY NOTES:
- Passwords hashed with bcrypt (BCRYPT_ROUNDS, cost 12 by default)
- Minimum 6 characters
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
from flask import current_app
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User, SessionToken, BookIssue, PrintJob, Payment
from ..permissions import Role, validate_role
from ..validation import AuthError, ConflictError, NotConfiguredError, NotFoundError, ValidationError
from elibrary.time_utils import utcnow
from . import session_service


MIN_PASSWORD_LENGTH = 6


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def normalize_email(email: str | None) -> str:
    value = (email or "").strip().lower()
    if "@" not in value or value.startswith("@") or value.endswith("@"):
        raise ValidationError("A valid email is required")
    return value


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str | None) -> bool:
    """Timing-safe bcrypt check. Returns False for accounts without a password."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def get_user(user_id: str) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def get_user_by_email(email: str) -> User | None:
    return db.session.query(User).filter_by(email=normalize_email(email)).first()


def login(email: str, password: str, name: str | None = None) -> tuple[User, bool]:
    """
    Password login; registers unknown emails as USER accounts.

    Returns (user, created). Raises:
        ValidationError: bad input, or the account has no password set
        AuthError: wrong password
    """
    email = normalize_email(email)
    validate_password_strength(password)

    existing = db.session.query(User).filter_by(email=email).first()
    now = utcnow()

    if not existing:
        display_name = (name or "").strip() or email.split("@")[0] or "User"
        user = User(
            name=display_name,
            email=email,
            password_hash=hash_password(password),
            role=Role.USER,
            last_login=now,
        )
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Email is already registered")
        return user, True

    if not existing.password_hash:
        raise ValidationError(
            "Account exists but does not have a password set. Contact an administrator."
        )

    if not verify_password(password, existing.password_hash):
        raise AuthError("Invalid email or password")

    existing.last_login = now
    db.session.commit()
    return existing, False


def verify_google_id_token(credential: str, client_id: str) -> dict:
    """Check signature, expiry and audience of a Google ID token; return its claims."""
    try:
        return google_id_token.verify_oauth2_token(credential, google_requests.Request(), client_id)
    except ValueError as exc:
        raise AuthError("Invalid Google ID token") from exc


def login_with_google(credential: str | None, client_id: str | None) -> tuple[User, bool]:
    """
    Google sign-in; upserts a USER keyed by the token's email.

    Existing accounts keep their role and get name / last_login refreshed
    from the token.

    Returns (user, created). Raises:
        NotConfiguredError: GOOGLE_CLIENT_ID is not set
        ValidationError: no token supplied, or the token carries no email
        AuthError: token failed verification
    """
    if not client_id:
        raise NotConfiguredError("Google login is not configured (missing GOOGLE_CLIENT_ID)")
    if not credential:
        raise ValidationError("id_token is required")

    claims = verify_google_id_token(credential, client_id)
    if not claims.get("email"):
        raise ValidationError("Google token did not contain an email")

    email = normalize_email(claims["email"])
    name = (claims.get("name") or "").strip() or "User"
    now = utcnow()

    existing = get_user_by_email(email)
    if not existing:
        user = User(name=name, email=email, password_hash=None, role=Role.USER, last_login=now)
        db.session.add(user)
        try:
            db.session.commit()
            return user, True
        except IntegrityError:
            # Registered concurrently; fall through to the update
            db.session.rollback()
            existing = get_user_by_email(email)

    existing.name = name
    existing.last_login = now
    db.session.commit()
    return existing, False


def bootstrap_super_admin(name: str, email: str, password: str) -> User:
    """Create the first SUPER_ADMIN. Disabled once any SUPER_ADMIN exists."""
    existing = db.session.query(User).filter_by(role=Role.SUPER_ADMIN).count()
    if existing > 0:
        raise ConflictError("SUPER_ADMIN already exists. Bootstrap endpoint disabled.")

    user = create_user(name=name, email=email, password=password, role=Role.SUPER_ADMIN)
    user.last_login = utcnow()
    db.session.commit()
    return user


def create_user(name: str, email: str, password: str | None, role: str) -> User:
    """
    Create a user account with an explicit role.

    Raises ValidationError on bad input and ConflictError on duplicate email.
    """
    if not (name or "").strip():
        raise ValidationError("name is required")
    if not validate_role(role):
        raise ValidationError(f"Invalid role: {role}")
    email = normalize_email(email)

    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError("Email is already registered")

    user = User(
        name=name.strip(),
        email=email,
        password_hash=hash_password(password) if password else None,
        role=role,
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Email is already registered")
    return user


def update_user(user_id: str, name: str | None = None, role: str | None = None, password: str | None = None) -> User:
    """Partial update; a role or password change revokes the user's sessions."""
    user = get_user(user_id)

    if name is not None:
        if not name.strip():
            raise ValidationError("name cannot be blank")
        user.name = name.strip()

    credentials_changed = False
    if role is not None:
        if not validate_role(role):
            raise ValidationError(f"Invalid role: {role}")
        credentials_changed = credentials_changed or role != user.role
        user.role = role

    if password is not None:
        user.password_hash = hash_password(password)
        credentials_changed = True

    if credentials_changed:
        session_service.revoke_all_user_sessions(user.user_id, "Credentials changed")

    db.session.commit()
    return user


def delete_user(user_id: str) -> None:
    """
    Hard-delete a user account.

    Refused while the user has circulation, print or payment history so
    that ledger rows never point at a missing user.
    """
    user = get_user(user_id)

    has_history = (
        db.session.query(BookIssue).filter_by(user_id=user_id).first() is not None
        or db.session.query(PrintJob).filter_by(user_id=user_id).first() is not None
        or db.session.query(Payment).filter_by(user_id=user_id).first() is not None
    )
    if has_history:
        raise ConflictError("User has circulation, print or payment history and cannot be deleted")

    db.session.query(SessionToken).filter_by(user_id=user_id).delete()
    db.session.delete(user)
    db.session.commit()


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.created_at.desc()).all()
