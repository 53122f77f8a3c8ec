# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/shopledger/routes/products.py
"""
Product catalog routes.

Stock is read-only here except through POST /<id>/stock, which goes through
the stock ledger and always records a movement.
"""
from flask import Blueprint, request, current_app

from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    enforce_rules_stock_adjustment,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..services import catalog_service, ledger_service

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "barcode", "brand", "description",
        "price_cents", "cost_price_cents", "category",
        "stock", "min_stock", "max_stock", "unit", "expiry_date", "is_active",
    },
    required_on_create={"name", "price_cents", "category"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_CREATE_POLICY.writable_fields - {"stock"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products_route():
    """
    List products ordered by name.

    Query params:
    - active: "true" to hide inactive products
    - category: exact category name
    """
    active_only = request.args.get("active", "false").lower() == "true"
    category = request.args.get("category")
    products = catalog_service.list_products(active_only=active_only, category=category)
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/<product_id>")
def get_product_route(product_id: str):
    try:
        product = catalog_service.get_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return product.to_dict()


@products_bp.get("/barcode/<barcode>")
def get_product_by_barcode_route(barcode: str):
    try:
        product = catalog_service.get_product_by_barcode(barcode)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return product.to_dict()


@products_bp.post("")
def create_product_route():
    """Create a product; a positive `stock` is booked as opening stock."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = catalog_service.create_product(patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValueError as e:
        return {"error": str(e)}, 400

    current_app.logger.info("Product created id=%s name=%s", created.id, created.name)
    return created.to_dict(), 201


@products_bp.put("/<product_id>")
def update_product_route(product_id: str):
    payload = request.get_json(silent=True) or {}

    if "stock" in payload:
        return {"error": "stock can only be changed through stock adjustments"}, 400

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = catalog_service.update_product(product_id=product_id, patch=patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValueError as e:
        return {"error": str(e)}, 400

    return updated.to_dict(), 200


@products_bp.delete("/<product_id>")
def delete_product_route(product_id: str):
    try:
        catalog_service.delete_product(product_id=product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    current_app.logger.info("Product deleted id=%s", product_id)
    return {"ok": True}, 200


@products_bp.post("/<product_id>/stock")
def adjust_stock_route(product_id: str):
    """
    Manual stock correction.

    Body: {quantity: signed non-zero int, reason?: str, type?: movement type}
    A negative quantity larger than the stock on hand floors the stock at 0.
    """
    payload = request.get_json(silent=True) or {}

    try:
        adjustment = enforce_rules_stock_adjustment(payload)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        movement = ledger_service.adjust_stock(
            product_id,
            adjustment["delta"],
            movement_type=adjustment["movement_type"],
            reason=adjustment["reason"],
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to adjust stock for product %s", product_id)
        return {"error": "Internal server error"}, 500

    if movement.clamped:
        current_app.logger.warning(
            "Stock for product %s clamped at 0 (requested delta %s from %s)",
            product_id, movement.quantity_delta, movement.previous_stock,
        )

    product = catalog_service.get_product(product_id)
    return {"product": product.to_dict(), "movement": movement.to_dict()}, 201
