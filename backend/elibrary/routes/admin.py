# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/elibrary/routes/admin.py
"""
Admin routes.

- Dashboard, all print jobs, all payment attempts: LIBRARY_ADMIN, SUPER_ADMIN
- User management: SUPER_ADMIN only
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import auth_service, payment_service, print_service, reporting_service, security_service
from ..validation import ServiceError, error_response, internal_error_response, parse_positive_int
from ..decorators import require_auth, require_role

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/dashboard")
@require_auth
@require_role("VIEW_DASHBOARD")
def dashboard_route():
    return jsonify({"stats": reporting_service.get_dashboard_stats()}), 200


@admin_bp.get("/print-jobs")
@require_auth
@require_role("VIEW_ALL_PRINT_JOBS")
def print_jobs_route():
    return jsonify({"items": print_service.list_all_print_jobs()}), 200


@admin_bp.get("/transactions")
@require_auth
@require_role("VIEW_TRANSACTIONS")
def transactions_route():
    return jsonify({"items": payment_service.list_transactions()}), 200


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@admin_bp.get("/users")
@require_auth
@require_role("MANAGE_USERS")
def list_users_route():
    users = auth_service.list_users()
    return jsonify({"items": [u.to_dict() for u in users]}), 200


@admin_bp.post("/users")
@require_auth
@require_role("MANAGE_USERS")
def create_user_route():
    """
    Create a user with an explicit role.

    Request body:
    {
        "name": "...",
        "email": "...",
        "password": "...",
        "role": "USER" | "LIBRARY_ADMIN" | "SUPER_ADMIN"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        if not data.get("password"):
            return jsonify({"error": "password is required", "kind": "BAD_REQUEST"}), 400
        user = auth_service.create_user(
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
            role=data.get("role"),
        )
        security_service.log_security_event(
            user_id=g.current_user.user_id,
            event_type="USER_CREATED",
            success=True,
            resource=request.path,
            action=user.role,
            reason=f"Created {user.user_id}",
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify({"user": user.to_dict()}), 201
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create user")
        return internal_error_response()


@admin_bp.put("/users/<user_id>")
@require_auth
@require_role("MANAGE_USERS")
def update_user_route(user_id: str):
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.update_user(
            user_id,
            name=data.get("name"),
            role=data.get("role"),
            password=data.get("password"),
        )
        return jsonify({"user": user.to_summary()}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update user")
        return internal_error_response()


@admin_bp.delete("/users/<user_id>")
@require_auth
@require_role("MANAGE_USERS")
def delete_user_route(user_id: str):
    try:
        auth_service.delete_user(user_id)
        security_service.log_security_event(
            user_id=g.current_user.user_id,
            event_type="USER_DELETED",
            success=True,
            resource=request.path,
            reason=f"Deleted {user_id}",
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return "", 204
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return internal_error_response()


@admin_bp.get("/security-events")
@require_auth
@require_role("VIEW_SECURITY_EVENTS")
def security_events_route():
    """
    Audit trail, newest first.

    Query params: user_id, event_type, limit (default 100, max 500)
    """
    try:
        limit = min(parse_positive_int("limit", request.args.get("limit"), default=100), 500)
        events = security_service.get_security_events(
            user_id=request.args.get("user_id") or None,
            event_type=request.args.get("event_type") or None,
            limit=limit,
        )
        return jsonify({"items": [e.to_dict() for e in events]}), 200
    except ServiceError as e:
        return error_response(e)
