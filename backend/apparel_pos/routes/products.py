# Overview: Flask API routes for the product catalog; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import EngineError
from ..services import catalog_service, stock_service
from ..validation import error_response, get_int, json_body, query_flag


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("/")
def list_products_route():
    """
    Query params:
    - active_only: true/false (default false)
    - category: men | women | kids
    """
    try:
        products = catalog_service.list_products(
            active_only=query_flag("active_only"),
            category=request.args.get("category") or None,
        )
        return jsonify({"products": [p.to_dict() for p in products]}), 200
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/low-stock")
def low_stock_route():
    try:
        products = stock_service.low_stock_products()
        return jsonify({"products": [p.to_dict() for p in products]}), 200
    except Exception:
        current_app.logger.exception("Failed to list low-stock products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    snapshot = catalog_service.get_by_id(product_id)
    if snapshot is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": snapshot.to_dict()}), 200


@products_bp.post("/")
def create_product_route():
    try:
        product = catalog_service.create_product(json_body())
        return jsonify({"product": product.to_dict()}), 201
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.patch("/<int:product_id>")
def update_product_route(product_id: int):
    try:
        product = catalog_service.update_product(product_id, json_body())
        return jsonify({"product": product.to_dict()}), 200
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<int:product_id>/toggle")
def toggle_product_route(product_id: int):
    """Request body: {"is_active": true|false}"""
    try:
        data = json_body()
        product = catalog_service.toggle_product_active(product_id, data.get("is_active"))
        return jsonify({"product": product.to_dict()}), 200
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to toggle product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>/stock")
def set_stock_route(product_id: int):
    """Request body: {"stock_qty": 25}"""
    try:
        data = json_body()
        product = catalog_service.set_product_stock(product_id, get_int(data, "stock_qty", required=True))
        return jsonify({"product": product.to_dict()}), 200
    except EngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to set product stock")
        return jsonify({"error": "Internal server error"}), 500
