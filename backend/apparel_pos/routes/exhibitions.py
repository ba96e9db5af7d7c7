# Overview: Flask API routes for exhibition sessions.

from flask import Blueprint, current_app, jsonify, request

from ..errors import EngineError, ValidationError
from ..services import exhibition_service
from ..validation import error_response, get_datetime, get_str, json_body


exhibitions_bp = Blueprint("exhibitions", __name__, url_prefix="/api/exhibitions")


@exhibitions_bp.get("/")
def list_exhibitions_route():
    """Query params: created_by (optional; all employees when omitted)."""
    try:
        exhibitions = exhibition_service.list_exhibitions(request.args.get("created_by") or None)
        return jsonify({"exhibitions": [e.to_dict() for e in exhibitions]}), 200
    except Exception:
        current_app.logger.exception("Failed to list exhibitions")
        return jsonify({"error": "Internal server error"}), 500


@exhibitions_bp.get("/active")
def active_exhibition_route():
    """Query params: created_by (required). Answers {"exhibition": null} when none is running."""
    try:
        exhibition = exhibition_service.get_active_exhibition(request.args.get("created_by") or None)
        return jsonify({"exhibition": exhibition.to_dict() if exhibition else None}), 200
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load active exhibition")
        return jsonify({"error": "Internal server error"}), 500


@exhibitions_bp.get("/<exhibition_id>")
def get_exhibition_route(exhibition_id: str):
    try:
        return jsonify({"exhibition": exhibition_service.require_exhibition(exhibition_id).to_dict()}), 200
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load exhibition")
        return jsonify({"error": "Internal server error"}), 500


@exhibitions_bp.post("/")
def start_exhibition_route():
    """
    Request body:
    {"location": "Pune Expo Hall 2", "created_by": "emp-7",
     "start_time": "2026-10-19T04:30:00Z"}   (start_time defaults to now)
    """
    try:
        data = json_body()
        exhibition = exhibition_service.start_exhibition(
            location=get_str(data, "location", required=True),
            created_by=get_str(data, "created_by", required=True),
            start_time=get_datetime(data, "start_time"),
        )
        return jsonify({"exhibition": exhibition.to_dict()}), 201
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to start exhibition")
        return jsonify({"error": "Internal server error"}), 500


@exhibitions_bp.post("/<exhibition_id>/end")
def end_exhibition_route(exhibition_id: str):
    try:
        exhibition = exhibition_service.end_exhibition(exhibition_id)
        return jsonify({"exhibition": exhibition.to_dict()}), 200
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to end exhibition")
        return jsonify({"error": "Internal server error"}), 500


@exhibitions_bp.patch("/<exhibition_id>")
def update_exhibition_route(exhibition_id: str):
    """Request body: any of {"location", "start_time"}."""
    try:
        data = json_body()
        updates = {}
        if "location" in data:
            updates["location"] = data["location"]
        if "start_time" in data:
            start_time = get_datetime(data, "start_time")
            if start_time is None:
                raise ValidationError("start_time must be an ISO-8601 datetime")
            updates["start_time"] = start_time
        exhibition = exhibition_service.update_exhibition(exhibition_id, updates)
        return jsonify({"exhibition": exhibition.to_dict()}), 200
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update exhibition")
        return jsonify({"error": "Internal server error"}), 500
