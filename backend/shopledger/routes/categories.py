from flask import Blueprint, request

from ..models import Category
from ..validation import ModelValidationPolicy, validate_payload, ValidationError, ConflictError
from ..services import catalog_service

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "is_active"},
    required_on_create={"name"},
)

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
def list_categories_route():
    active_only = request.args.get("active", "false").lower() == "true"
    categories = catalog_service.list_categories(active_only=active_only)
    return {"items": [c.to_dict() for c in categories], "count": len(categories)}


@categories_bp.post("")
def create_category_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        category = catalog_service.create_category(patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409

    return category.to_dict(), 201
