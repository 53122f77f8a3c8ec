# Overview: Flask API routes for the shop assistant; the collaborator's failures never surface as errors.

from flask import Blueprint, jsonify, request

from ..services import assistant_service


assistant_bp = Blueprint("assistant", __name__, url_prefix="/api")

MAX_MESSAGE_LENGTH = 2000


@assistant_bp.post("/chat")
def chat_route():
    data = request.get_json(silent=True) or {}
    message = data.get("message")
    if not isinstance(message, str) or not message.strip():
        return jsonify({"error": "message is required"}), 400
    if len(message) > MAX_MESSAGE_LENGTH:
        return jsonify({"error": f"message exceeds max length {MAX_MESSAGE_LENGTH}"}), 400

    return jsonify(assistant_service.process_chat_query(message.strip())), 200


@assistant_bp.get("/ai-insights/inventory")
def inventory_insights_route():
    return jsonify(assistant_service.generate_inventory_insights()), 200
