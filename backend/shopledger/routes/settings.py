from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..models import ShopSettings
from ..services import settings_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_settings,
    ValidationError,
)


settings_bp = Blueprint("settings", __name__, url_prefix="/api")

SETTINGS_POLICY = ModelValidationPolicy(
    writable_fields=set(settings_service.SETTINGS_MUTABLE_FIELDS),
)


@settings_bp.get("/settings")
def get_settings_route():
    return jsonify(settings_service.get_settings().to_dict())


@settings_bp.put("/settings")
def update_settings_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=ShopSettings, payload=payload, policy=SETTINGS_POLICY, partial=True)
        enforce_rules_settings(patch)
        settings = settings_service.update_settings(patch)
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(settings.to_dict()), 200
