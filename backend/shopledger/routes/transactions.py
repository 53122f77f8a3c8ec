# Overview: Flask API routes for checkout transactions; parses input and returns JSON responses.

# backend/shopledger/routes/transactions.py
"""
Transaction API routes.

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- start/end filtering is inclusive on both ends.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import transaction_service
from ..validation import (
    enforce_rules_cart,
    ValidationError,
    NotFoundError,
    InsufficientStockError,
)
from shopledger.time_utils import parse_iso_datetime, utcnow


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _parse_bound(name: str):
    raw = request.args.get(name)
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 datetime")


@transactions_bp.post("")
def create_transaction_route():
    """
    Commit a checkout.

    Body: {items: [{product_id, quantity, unit_price_cents?}], payment_method,
           discount_cents?, tax_cents?, customer_name?, customer_phone?, occurred_at?}
    """
    payload = request.get_json(silent=True) or {}

    try:
        cart = enforce_rules_cart(payload)
        txn = transaction_service.create_transaction(
            **cart,
            occurred_at=payload.get("occurred_at"),
        )
    except InsufficientStockError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create transaction")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info(
        "Transaction %s completed total_cents=%s", txn.transaction_number, txn.total_amount_cents
    )
    return jsonify(txn.to_dict()), 201


@transactions_bp.get("")
def list_transactions_route():
    """
    List transactions.

    Query params:
    - start, end: ISO-8601 bounds (inclusive). With either bound the result is
      oldest first; without, newest first.
    - limit: int (optional, unbounded listing only)
    """
    try:
        start = _parse_bound("start")
        end = _parse_bound("end")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    if start is None and end is None:
        limit = request.args.get("limit", type=int)
        transactions = transaction_service.list_transactions(limit=limit)
    else:
        if start is None:
            return jsonify({"error": "start is required when end is given"}), 400
        if end is None:
            end = utcnow()
        try:
            transactions = transaction_service.get_transactions_by_date_range(start, end)
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400

    return jsonify({"items": [t.to_dict() for t in transactions], "count": len(transactions)}), 200


@transactions_bp.get("/<transaction_id>")
def get_transaction_route(transaction_id: str):
    try:
        txn = transaction_service.get_transaction(transaction_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(txn.to_dict()), 200
