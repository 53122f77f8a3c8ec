# backend/shopledger/routes/inventory.py
"""
Stock ledger inspection routes.

Movements are append-only; nothing here writes. Stock changes go through
POST /api/products/<id>/stock or a transaction.
"""
from flask import Blueprint, request

from ..services import ledger_service
from ..validation import NotFoundError


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

MAX_MOVEMENTS = 1000


@inventory_bp.get("/movements")
def list_movements_route():
    """
    Movement history, newest first.

    Query params:
    - product_id: str (optional)
    - limit: int (optional, default 200, max 1000)
    """
    product_id = request.args.get("product_id")
    limit = request.args.get("limit", default=200, type=int)
    if limit <= 0:
        return {"error": "limit must be > 0"}, 400
    limit = min(limit, MAX_MOVEMENTS)

    movements = ledger_service.list_movements(product_id=product_id, limit=limit)
    return {"items": [m.to_dict() for m in movements], "count": len(movements)}


@inventory_bp.get("/<product_id>/replay")
def replay_route(product_id: str):
    """Rebuild stock from the movement history and compare it to the stored count."""
    try:
        return ledger_service.replay_stock(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
