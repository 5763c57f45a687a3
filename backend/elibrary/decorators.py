# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .permissions import allowed_roles
from .services import session_service, security_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'role')


def extract_bearer_token() -> str | None:
    """Token from 'Authorization: Bearer <token>' (scheme is case-insensitive)."""
    header = request.headers.get("Authorization")
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def require_auth(f):
    """
    Require a valid, unexpired session.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.role: The caller's role
    - g.session_context: The full SessionContext object
    - g.token: The plaintext bearer token (for logout)

    Returns 401 if the Authorization header is missing or the token is
    invalid, expired or revoked.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = extract_bearer_token()
        if not token:
            return jsonify({"error": "Missing Authorization Bearer token", "kind": "UNAUTHORIZED"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token", "kind": "UNAUTHORIZED"}), 401

        g.current_user = context.user
        g.role = context.role
        g.session_context = context
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_role(operation_code: str):
    """
    Require the caller's role to be in the operation's allowed-role set.

    The set comes from elibrary.permissions.OPERATION_ROLES; roles are not
    hierarchical. Denials are written to security_events.
    """
    roles = allowed_roles(operation_code)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Unauthorized", "kind": "UNAUTHORIZED"}), 401

            if g.role not in roles:
                security_service.log_security_event(
                    user_id=g.current_user.user_id,
                    event_type="PERMISSION_DENIED",
                    success=False,
                    resource=request.path,
                    action=operation_code,
                    reason=f"Role {g.role} not in {sorted(roles)}",
                    ip_address=request.remote_addr,
                    user_agent=request.headers.get("User-Agent"),
                )
                return jsonify({
                    "error": "Forbidden",
                    "kind": "FORBIDDEN",
                    "required_roles": sorted(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
