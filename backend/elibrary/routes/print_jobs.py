# Overview: Flask API routes for print jobs; parses input and returns JSON responses.

# backend/elibrary/routes/print_jobs.py
"""
Print Job API Routes

Upload is multipart/form-data with a 'file' part plus total_pages and an
optional cost_per_page. Every other endpoint is owner-only.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import print_service
from ..validation import ServiceError, error_response, internal_error_response
from ..decorators import require_auth, require_role


print_bp = Blueprint("print_jobs", __name__, url_prefix="/api/print")


@print_bp.post("/upload")
@require_auth
@require_role("SUBMIT_PRINT_JOB")
def upload_route():
    """
    Submit a document for printing.

    Form fields:
    - file: the document
    - total_pages: int >= 1
    - cost_per_page: int >= 1 (optional, DEFAULT_COST_PER_PAGE)

    Returns:
        201: Print job with frozen total_cost, payment_status PENDING
        400: Missing file or invalid page/cost values
    """
    try:
        form = request.form
        # Validate pricing before touching the filesystem
        print_service.price_job(form.get("total_pages"), form.get("cost_per_page"))

        file_name, storage_path = print_service.store_upload(request.files.get("file"))
        try:
            job = print_service.create_print_job(
                user_id=g.current_user.user_id,
                file_name=file_name,
                storage_path=storage_path,
                total_pages=form.get("total_pages"),
                cost_per_page=form.get("cost_per_page"),
            )
        except Exception:
            print_service.discard_upload(storage_path)
            raise
        current_app.logger.info("Print job %s submitted by %s", job.print_id, job.user_id)
        return jsonify({"print_job": job.to_dict()}), 201
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to upload print job")
        return internal_error_response()


@print_bp.post("/preview")
@require_auth
@require_role("SUBMIT_PRINT_JOB")
def preview_route():
    try:
        data = request.get_json(silent=True) or {}
        job = print_service.get_owned_print_job(data.get("print_id"), g.current_user.user_id)
        return jsonify({"print_job": job.to_dict()}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to preview print job")
        return internal_error_response()


@print_bp.post("/confirm")
@require_auth
@require_role("SUBMIT_PRINT_JOB")
def confirm_route():
    try:
        data = request.get_json(silent=True) or {}
        job = print_service.get_owned_print_job(data.get("print_id"), g.current_user.user_id)
        return jsonify({"ok": True, "print_id": job.print_id}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to confirm print job")
        return internal_error_response()


@print_bp.get("/history")
@require_auth
@require_role("SUBMIT_PRINT_JOB")
def history_route():
    jobs = print_service.list_print_jobs_for_user(g.current_user.user_id)
    return jsonify({"items": [j.to_dict() for j in jobs]}), 200
