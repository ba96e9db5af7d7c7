# Overview: Flask API route for the owner analytics dashboard (read-only).

from flask import Blueprint, current_app, jsonify, request

from ..errors import EngineError
from ..services import analytics_service, catalog_service, stock_service
from ..validation import error_response


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


@analytics_bp.get("/owner")
def owner_dashboard_route():
    """
    Query params:
    - type: all | daily | exhibition | prebooking
    - range: all | today | week | month | custom
    - start, end: YYYY-MM-DD (IST days, inclusive) when range=custom
    """
    try:
        dashboard = analytics_service.owner_dashboard(
            analytics_service.load_revenue_orders(),
            catalog_service.product_index(),
            products=[p.to_dict() for p in stock_service.low_stock_products()],
            employee_names=analytics_service.load_employee_names(),
            order_type=request.args.get("type") or None,
            date_range=request.args.get("range") or None,
            start=request.args.get("start") or None,
            end=request.args.get("end") or None,
        )
        return jsonify(dashboard), 200
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build owner dashboard")
        return jsonify({"error": "Internal server error"}), 500
