# Overview: Service-layer operations for maintenance; encapsulates business logic and database work.

from __future__ import annotations

from datetime import timedelta

from sqlalchemy import or_

from ..extensions import db
from ..models import SecurityEvent, SessionToken
from elibrary.time_utils import utcnow


def cleanup_expired_sessions() -> int:
    """Delete session rows that are expired or revoked."""
    now = utcnow()
    deleted = db.session.query(SessionToken).filter(
        or_(SessionToken.expires_at < now, SessionToken.is_revoked.is_(True))
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted


def cleanup_security_events(*, retention_days: int = 90) -> int:
    """Delete security events older than retention_days."""
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SecurityEvent).filter(
        SecurityEvent.occurred_at < cutoff
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
