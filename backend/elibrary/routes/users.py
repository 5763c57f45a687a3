# Overview: Flask API routes for the signed-in user's own records.

from flask import Blueprint, jsonify, g

from ..services import circulation_service, print_service
from ..decorators import require_auth


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("/profile")
@require_auth
def profile_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@users_bp.get("/print-history")
@require_auth
def print_history_route():
    """Own print jobs, each with its payment attempts."""
    return jsonify({"items": print_service.print_history(g.current_user.user_id)}), 200


@users_bp.get("/issues")
@require_auth
def my_issues_route():
    """Own borrowing history, open and returned, most recent first."""
    issues = circulation_service.get_user_issues(g.current_user.user_id)
    return jsonify({"items": [i.to_dict() for i in issues]}), 200
