# Overview: Flask API routes for bills and their payment ledger.

from flask import Blueprint, current_app, jsonify, request

from ..errors import EngineError
from ..services import billing_service, payment_service
from ..validation import error_response, get_amount_paise, get_datetime, get_str, json_body


bills_bp = Blueprint("bills", __name__, url_prefix="/api/bills")


def _bill_payload(bill) -> dict:
    return {
        "bill": bill.to_dict(),
        "gst_summary": billing_service.gst_summary(bill),
        "payment": payment_service.payment_summary(bill.id),
    }


@bills_bp.get("/")
def list_bills_route():
    """
    Query params:
    - start, end: ISO-8601 datetimes, generated_at in [start, end)
    - employee_id
    """
    try:
        bills = billing_service.list_bills(
            start=get_datetime(request.args, "start"),
            end=get_datetime(request.args, "end"),
            employee_id=request.args.get("employee_id") or None,
        )
        return jsonify({"bills": [b.to_dict() for b in bills]}), 200
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list bills")
        return jsonify({"error": "Internal server error"}), 500


@bills_bp.get("/today")
def todays_bills_route():
    """Query params: employee_id (optional; all employees when omitted)."""
    try:
        bills = billing_service.todays_bills(request.args.get("employee_id") or None)
        return jsonify({"bills": [b.to_dict() for b in bills]}), 200
    except Exception:
        current_app.logger.exception("Failed to list today's bills")
        return jsonify({"error": "Internal server error"}), 500


@bills_bp.get("/by-number/<bill_number>")
def get_bill_by_number_route(bill_number: str):
    try:
        return jsonify(_bill_payload(billing_service.get_bill_by_number(bill_number))), 200
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load bill by number")
        return jsonify({"error": "Internal server error"}), 500


@bills_bp.get("/<int:bill_id>")
def get_bill_route(bill_id: int):
    try:
        return jsonify(_bill_payload(billing_service.get_bill(bill_id))), 200
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load bill")
        return jsonify({"error": "Internal server error"}), 500


@bills_bp.get("/<int:bill_id>/display")
def display_bill_route(bill_id: int):
    """Printable bill: rupee strings and the bill date in IST."""
    try:
        bill = billing_service.get_bill(bill_id)
        return jsonify({"bill": billing_service.format_bill_for_display(bill)}), 200
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to format bill")
        return jsonify({"error": "Internal server error"}), 500


@bills_bp.get("/<int:bill_id>/payments")
def payment_summary_route(bill_id: int):
    try:
        return jsonify(payment_service.payment_summary(bill_id)), 200
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load payment summary")
        return jsonify({"error": "Internal server error"}), 500


@bills_bp.post("/<int:bill_id>/payments")
def record_payment_route(bill_id: int):
    """
    Request body:
    {"mode": "UPI", "amount": 500 | "amount_paise": 50000,
     "reference_id": "UPI-123", "recorded_by": "emp-7"}
    """
    try:
        data = json_body()
        payment_service.record_payment(
            bill_id,
            get_str(data, "mode", required=True),
            get_amount_paise(data),
            reference_id=get_str(data, "reference_id"),
            recorded_by=get_str(data, "recorded_by"),
        )
        return jsonify(payment_service.payment_summary(bill_id)), 201
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500
