# Overview: Flask API routes for catalog and circulation; parses input and returns JSON responses.

# backend/elibrary/routes/books.py
"""
Catalog and Circulation API Routes

DESIGN:
- Any signed-in role can browse and search the catalog
- Staff (LIBRARY_ADMIN, SUPER_ADMIN) edit records and run issue/return
- Only SUPER_ADMIN hard-deletes a book
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import catalog_service, circulation_service
from ..validation import ServiceError, error_response, internal_error_response
from ..decorators import require_auth, require_role


books_bp = Blueprint("books", __name__, url_prefix="/api/books")


# =============================================================================
# CATALOG
# =============================================================================

@books_bp.get("/")
@require_auth
@require_role("VIEW_BOOKS")
def list_books_route():
    """
    List books, newest first.

    Query params:
    - q: matches name, author or category
    - author: author substring
    - category: category substring
    """
    books = catalog_service.list_books(
        q=request.args.get("q", ""),
        author=request.args.get("author", ""),
        category=request.args.get("category", ""),
    )
    return jsonify({"items": [b.to_dict() for b in books]}), 200


@books_bp.get("/search")
@require_auth
@require_role("VIEW_BOOKS")
def search_books_route():
    books = catalog_service.search_books(request.args.get("q", ""))
    return jsonify({"items": [b.to_dict() for b in books]}), 200


@books_bp.post("/")
@require_auth
@require_role("MANAGE_BOOKS")
def create_book_route():
    """
    Add a catalog record.

    Request body:
    {
        "book_name": "Dune",
        "author_name": "Frank Herbert",
        "category": "Fiction",
        "publication_year": 1965,
        "library_location": "Shelf A3"
    }
    """
    try:
        book = catalog_service.create_book(request.get_json(silent=True) or {})
        return jsonify({"book": book.to_dict()}), 201
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create book")
        return internal_error_response()


@books_bp.put("/<book_id>")
@require_auth
@require_role("MANAGE_BOOKS")
def update_book_route(book_id: str):
    try:
        book = catalog_service.update_book(book_id, request.get_json(silent=True) or {})
        return jsonify({"book": book.to_dict()}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update book")
        return internal_error_response()


@books_bp.delete("/<book_id>")
@require_auth
@require_role("DELETE_BOOK")
def delete_book_route(book_id: str):
    try:
        catalog_service.delete_book(book_id)
        current_app.logger.info("Book %s deleted by %s", book_id, g.current_user.user_id)
        return "", 204
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete book")
        return internal_error_response()


# =============================================================================
# CIRCULATION
# =============================================================================

@books_bp.post("/issue")
@require_auth
@require_role("ISSUE_BOOK")
def issue_book_route():
    """
    Lend a book.

    Request body:
    {
        "book_id": "...",
        "user_id": "...",
        "due_date": "2026-11-01" or ISO-8601 datetime
    }

    Returns:
        201: Issue created, book now ISSUED
        400: Missing fields / bad due_date
        404: Book or user not found
        409: Book is not available
    """
    try:
        data = request.get_json(silent=True) or {}
        issue = circulation_service.issue_book(
            book_id=data.get("book_id"),
            user_id=data.get("user_id"),
            due_date=data.get("due_date"),
        )
        current_app.logger.info("Book %s issued to %s (issue %s)", issue.book_id, issue.user_id, issue.issue_id)
        return jsonify({"issue": issue.to_dict()}), 201
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to issue book")
        return internal_error_response()


@books_bp.post("/return")
@require_auth
@require_role("RETURN_BOOK")
def return_book_route():
    """
    Close an open issue.

    Request body (at least one):
    {
        "issue_id": "...",
        "book_id": "..."
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        issue = circulation_service.return_book(
            issue_id=data.get("issue_id"),
            book_id=data.get("book_id"),
        )
        current_app.logger.info("Book %s returned (issue %s)", issue.book_id, issue.issue_id)
        return jsonify({"issue": issue.to_dict()}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to return book")
        return internal_error_response()


@books_bp.get("/issued")
@require_auth
@require_role("VIEW_ISSUED")
def list_issued_route():
    return jsonify({"items": circulation_service.list_issued()}), 200


@books_bp.get("/<book_id>")
@require_auth
@require_role("VIEW_BOOKS")
def get_book_route(book_id: str):
    """Book with its current loan (issued: null when available)."""
    try:
        return jsonify({"book": circulation_service.get_book_with_active_issue(book_id)}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get book")
        return internal_error_response()
