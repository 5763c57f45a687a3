from __future__ import annotations
from datetime import datetime
from elibrary.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from flask import jsonify
from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


class ServiceError(Exception):
    """Base for every error kind surfaced to the request layer."""
    kind = "ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind}


class ValidationError(ServiceError, ValueError):
    """400-level input problem (missing selector, malformed field)."""
    kind = "BAD_REQUEST"
    status_code = 400


class AuthError(ServiceError):
    """401: credential missing, invalid or expired."""
    kind = "UNAUTHORIZED"
    status_code = 401


class ForbiddenError(ServiceError):
    """403: role or ownership check failed."""
    kind = "FORBIDDEN"
    status_code = 403


class NotFoundError(ServiceError):
    """404: referenced entity absent."""
    kind = "NOT_FOUND"
    status_code = 404


class ConflictError(ServiceError, ValueError):
    """409-level business rule conflict (book unavailable, job already paid)."""
    kind = "CONFLICT"
    status_code = 409


class NotConfiguredError(ServiceError):
    """501: an optional integration is switched off in this deployment."""
    kind = "NOT_IMPLEMENTED"
    status_code = 501


def error_response(exc: ServiceError):
    return jsonify(exc.to_dict()), exc.status_code


def internal_error_response():
    return jsonify({"error": "Internal server error", "kind": "INTERNAL"}), 500


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            # Reject scientific notation (e.g., "1e15", "1E10")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            # Reject decimal points (e.g., "12.5")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            return parse_datetime_field(col.key, value)
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value

def parse_datetime_field(name: str, value: Any) -> datetime:
    """Parse a required ISO-8601 date or datetime input field."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be an ISO-8601 datetime")
    try:
        dt = parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 datetime")
    if dt is None:
        raise ValidationError(f"{name} must be an ISO-8601 datetime")
    return dt


def parse_positive_int(name: str, value: Any, *, default: int | None = None) -> int:
    """Coerce a form/JSON value to an int >= 1, mirroring the Integer column rules."""
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise ValidationError(f"{name} is required")
        return default
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped.lstrip("-").isdigit():
            raise ValidationError(f"{name} must be an integer")
        value = int(stripped)
    if not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")
    if value < 1:
        raise ValidationError(f"{name} must be >= 1")
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_book(patch: dict) -> None:
    """Business rules for catalog records not captured by column metadata."""
    if "publication_year" in patch and patch["publication_year"] is not None:
        if patch["publication_year"] < 0:
            raise ValidationError("publication_year must be >= 0")
