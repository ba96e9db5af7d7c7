# Overview: Flask API routes for orders; quote, create, convert and sweep pre-bookings.

"""
Order API Routes

The acting employee travels in the body (`created_by`, `employee_name`);
authentication is handled in front of this service.

Order body:
{
    "type": "daily" | "exhibition" | "prebooking",
    "customer": {"name": "...", "phone": "9876543210", "address": "...",
                 "gender": "...", "age_group": "..."},
    "items": [{"product_id": 1, "quantity": 2}],
    "employee_discount_percent": 5,
    "created_by": "emp-7", "employee_name": "Asha",
    "exhibition_id": null,
    "delivery_date": "2026-10-20T10:00:00Z",      (pre-bookings only)
    "payment_mode": "CASH", "notes": "",
    "initial_payment": {"mode": "UPI", "amount": 500, "reference_id": "..."}
}
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import EngineError, ValidationError
from ..services import catalog_service, order_service
from ..services.billing_service import (
    PREVIEW_BILL_NUMBER,
    BillMetadata,
    CustomerInfo,
    SellerInfo,
    generate_bill,
    gst_summary,
)
from ..services.calculation_service import calculate, gst_breakdown
from ..services.cart_service import cart_from_items
from ..services.order_service import OrderDraft, PaymentInput
from ..validation import error_response, get_amount_paise, get_datetime, get_int, get_str, json_body


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _cart_from_payload(data: dict):
    items = data.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")
    normalized = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object")
        # Clients may send "1" for 1; snapshots are keyed by int
        normalized.append({**item, "product_id": get_int(item, "product_id", required=True)})
    ids = [item["product_id"] for item in normalized]
    return cart_from_items(normalized, catalog_service.batch_get(ids))


def _customer_from_payload(data: dict, *, required: bool = True) -> CustomerInfo | None:
    customer = data.get("customer")
    if customer is None and not required:
        return None
    if not isinstance(customer, dict):
        raise ValidationError("customer is required")
    return CustomerInfo(
        name=get_str(customer, "name", required=True),
        phone=get_str(customer, "phone", required=True),
        address=get_str(customer, "address", default=""),
    )


def _payment_from_payload(data: dict) -> PaymentInput | None:
    payment = data.get("initial_payment")
    if payment is None:
        return None
    if not isinstance(payment, dict):
        raise ValidationError("initial_payment must be an object")
    return PaymentInput(
        mode=get_str(payment, "mode", required=True),
        amount_paise=get_amount_paise(payment),
        reference_id=get_str(payment, "reference_id"),
    )


def draft_from_payload(data: dict) -> OrderDraft:
    customer = data.get("customer") if isinstance(data.get("customer"), dict) else {}
    return OrderDraft(
        type=get_str(data, "type", required=True),
        customer=_customer_from_payload(data),
        cart=_cart_from_payload(data),
        created_by=get_str(data, "created_by", required=True),
        employee_name=get_str(data, "employee_name", required=True),
        employee_discount_percent=data.get("employee_discount_percent") or 0,
        exhibition_id=get_str(data, "exhibition_id"),
        delivery_date=get_datetime(data, "delivery_date"),
        initial_payment=_payment_from_payload(data),
        payment_mode=get_str(data, "payment_mode", default="CASH"),
        notes=get_str(data, "notes", default=""),
        customer_gender=get_str(customer, "gender"),
        customer_age_group=get_str(customer, "age_group"),
    )


# =============================================================================
# QUOTE / CREATE
# =============================================================================

@orders_bp.post("/quote")
def quote_route():
    """
    Price a cart without writing anything.

    Returns the calculation, GST breakdown and, when a customer is given,
    a preview of the bill (bill number "PREVIEW").
    """
    try:
        data = json_body()
        calculation = calculate(_cart_from_payload(data), data.get("employee_discount_percent") or 0)
        body = {
            "calculation": calculation.to_dict(),
            "gst_breakdown": gst_breakdown(calculation.summary),
        }
        customer = _customer_from_payload(data, required=False)
        if customer is not None:
            bill = generate_bill(
                calculation,
                BillMetadata(
                    order_id=None,
                    order_type=get_str(data, "type", default="daily"),
                    employee_id=get_str(data, "created_by", default=""),
                    employee_name=get_str(data, "employee_name", default=""),
                    customer=customer,
                    exhibition_id=get_str(data, "exhibition_id"),
                    payment_mode=get_str(data, "payment_mode", default="CASH"),
                    notes=get_str(data, "notes", default=""),
                ),
                seller=SellerInfo.from_config(current_app.config),
                bill_number=PREVIEW_BILL_NUMBER,
            )
            body["bill_preview"] = bill.to_dict()
            body["gst_summary"] = gst_summary(bill)
        return jsonify(body), 200
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to quote order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/")
def create_order_route():
    try:
        order = order_service.create_order(draft_from_payload(json_body()))
        return jsonify({"order": order.to_dict(), "bill": order.bill.to_dict()}), 201
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# QUERIES
# =============================================================================

@orders_bp.get("/")
def list_orders_route():
    """Query params: type, created_by, exhibition_id, status."""
    try:
        orders = order_service.list_orders(
            type=request.args.get("type") or None,
            created_by=request.args.get("created_by") or None,
            exhibition_id=request.args.get("exhibition_id") or None,
            status=request.args.get("status") or None,
        )
        return jsonify({"orders": [o.to_dict() for o in orders]}), 200
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/prebookings/pending")
def pending_prebookings_route():
    try:
        orders = order_service.pending_prebookings(request.args.get("created_by") or None)
        return jsonify({"orders": [o.to_dict() for o in orders]}), 200
    except Exception:
        current_app.logger.exception("Failed to list pending pre-bookings")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    try:
        return jsonify({"order": order_service.get_order(order_id).to_dict()}), 200
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load order")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PRE-BOOKING LIFECYCLE
# =============================================================================

@orders_bp.get("/<int:order_id>/can-convert")
def can_convert_route(order_id: int):
    try:
        return jsonify(order_service.can_convert(order_id).to_dict()), 200
    except Exception:
        current_app.logger.exception("Failed to check pre-booking conversion")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/convert")
def convert_route(order_id: int):
    """Request body (optional): {"exhibition_id": "EXH-1"}"""
    try:
        data = json_body()
        order = order_service.convert_prebooking(order_id, get_str(data, "exhibition_id"))
        return jsonify({"order": order.to_dict()}), 200
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to convert pre-booking")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/sweep")
def sweep_route():
    """Request body (optional): {"created_by": "emp-7"}; omit to sweep everyone's."""
    try:
        data = json_body()
        result = order_service.sweep_overdue(get_str(data, "created_by"))
        return jsonify(result.to_dict()), 200
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to sweep overdue pre-bookings")
        return jsonify({"error": "Internal server error"}), 500
