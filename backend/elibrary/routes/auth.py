# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/elibrary/routes/auth.py
"""
Authentication API routes

- POST /login doubles as registration for unknown emails (201)
- POST /bootstrap-super-admin works once, while no SUPER_ADMIN exists
- Tokens go in 'Authorization: Bearer <token>'
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import auth_service
from ..services import session_service
from ..services import security_service
from ..validation import AuthError, ServiceError, error_response, internal_error_response
from ..decorators import require_auth, extract_bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _issue_token(user) -> str:
    _session, token = session_service.create_session(
        user_id=user.user_id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return token


@auth_bp.post("/bootstrap-super-admin")
def bootstrap_super_admin_route():
    """
    Create the first SUPER_ADMIN.

    Request body: { "name": "...", "email": "...", "password": "..." }

    Returns:
        201: { token, user }
        409: A SUPER_ADMIN already exists
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.bootstrap_super_admin(
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
        )
        security_service.log_security_event(
            user_id=user.user_id,
            event_type="SUPER_ADMIN_BOOTSTRAPPED",
            success=True,
            resource=request.path,
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify({"token": _issue_token(user), "user": user.to_dict()}), 201
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to bootstrap super admin")
        return internal_error_response()


@auth_bp.post("/login")
def login_route():
    """
    Authenticate (or register) with email + password, or with a Google ID token.

    Request body: { "email": "...", "password": "...", "name": "..." (optional) }
              or: { "provider": "google", "id_token": "..." }

    Returns:
        200: { token, user } for an existing account
        201: { token, user } for a newly registered USER
        400: Invalid input / account without password
        401: Wrong password / Google token rejected
        501: Google sign-in requested but GOOGLE_CLIENT_ID is unset
    """
    data = request.get_json(silent=True) or {}
    try:
        provider = data.get("provider", "password")
        if provider == "google":
            user, created = auth_service.login_with_google(
                credential=data.get("id_token") or data.get("idToken"),
                client_id=current_app.config.get("GOOGLE_CLIENT_ID"),
            )
        elif provider == "password":
            user, created = auth_service.login(
                email=data.get("email"),
                password=data.get("password"),
                name=data.get("name"),
            )
        else:
            return jsonify({"error": f"Login provider '{provider}' is not supported", "kind": "BAD_REQUEST"}), 400

        security_service.log_security_event(
            user_id=user.user_id,
            event_type="USER_REGISTERED" if created else "LOGIN",
            success=True,
            resource=request.path,
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify({"token": _issue_token(user), "user": user.to_dict()}), 201 if created else 200
    except AuthError as e:
        security_service.log_security_event(
            user_id=None,
            event_type="LOGIN_FAILED",
            success=False,
            resource=request.path,
            reason=f"{e.message}: {data.get('email')}",
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return error_response(e)
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to login user")
        return internal_error_response()


@auth_bp.post("/logout")
def logout_route():
    """Revoke the presented session if there is one; always succeeds."""
    token = extract_bearer_token()
    if token:
        session_service.revoke_session(token)
    return jsonify({"ok": True}), 200


@auth_bp.get("/user")
@require_auth
def current_user_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
