# Overview: Service-layer operations for the stock ledger; the only code path that changes Product.stock.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Product, InventoryMovement
from ..validation import NotFoundError, ValidationError, MOVEMENT_TYPES
from shopledger.time_utils import utcnow
from .concurrency import get_locks, lock_for_update, run_with_retry
"""
Stock Ledger Invariants (authoritative)

- Product.stock is changed ONLY here, and only by a signed delta. There is no
  "set stock to N" operation.
- Every change appends exactly one InventoryMovement in the same DB
  transaction: previous_stock is the stock read under the product lock,
  new_stock = max(0, previous_stock + delta), quantity = abs(delta).
- Per product, new_stock of one movement is previous_stock of the next.
- Movements are append-only (no updates/deletes), and they outlive the
  product they describe.

Clamp semantics (lossy, one-way):
- A negative delta larger than the stock on hand floors the stock at 0
  instead of failing. The movement still records the full requested
  quantity. Replaying the history therefore reproduces the CLAMPED
  trajectory: stock=5, deltas [-10, +3] gives 0 then 3, never -5 then -2.
  The unclamped sum cannot be recovered from current stock alone.

Concurrency:
- The read-modify-write of stock plus the movement append run under the
  product's lock from LockRegistry (and SELECT ... FOR UPDATE where the
  database honours it), so concurrent adjustments serialize.
"""

DEFAULT_REASONS = {
    "purchase": "Stock added",
    "sale": "Sale",
}


def _default_type(delta: int) -> str:
    return "purchase" if delta > 0 else "sale"


def _load_product_for_update(product_id: str) -> Product:
    query = lock_for_update(db.session.query(Product).filter_by(id=product_id))
    # Re-read under the lock; a cached identity-map copy may hold a stale count
    product = query.populate_existing().first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def apply_delta_locked(
    product: Product,
    delta: int,
    *,
    movement_type: str | None = None,
    reason: str | None = None,
    transaction_id: str | None = None,
    occurred_at: datetime | None = None,
) -> InventoryMovement:
    """
    Core ledger step without locking or commit.

    Caller must hold the product lock and pass a freshly loaded product.
    """
    if delta == 0:
        raise ValidationError("quantity must be non-zero")

    movement_type = movement_type or _default_type(delta)
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(MOVEMENT_TYPES)}")

    occurred_at = occurred_at or utcnow()
    previous_stock = product.stock or 0
    new_stock = max(0, previous_stock + delta)

    product.stock = new_stock
    product.updated_at = occurred_at

    movement = InventoryMovement(
        product_id=product.id,
        type=movement_type,
        quantity=abs(delta),
        quantity_delta=delta,
        previous_stock=previous_stock,
        new_stock=new_stock,
        reason=reason or DEFAULT_REASONS.get(_default_type(delta)),
        transaction_id=transaction_id,
        created_at=occurred_at,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def adjust_stock(
    product_id: str,
    delta: int,
    *,
    movement_type: str | None = None,
    reason: str | None = None,
    transaction_id: str | None = None,
    occurred_at: datetime | None = None,
    commit: bool = True,
) -> InventoryMovement:
    """
    Apply a signed quantity change to a product and append its movement.

    Positive deltas default to type "purchase" ("Stock added"), negative to
    "sale" ("Sale"). The stock floors at zero (see module notes).

    Raises NotFoundError for an unknown product, ValidationError for a zero
    delta or an unknown movement type.
    """
    def _op():
        with get_locks().hold_products([product_id]):
            try:
                product = _load_product_for_update(product_id)
                movement = apply_delta_locked(
                    product,
                    delta,
                    movement_type=movement_type,
                    reason=reason,
                    transaction_id=transaction_id,
                    occurred_at=occurred_at,
                )
                if commit:
                    db.session.commit()
            except Exception:
                if commit:
                    db.session.rollback()
                raise
            return movement

    if not commit:
        return _op()
    return run_with_retry(_op)


def list_movements(product_id: str | None = None, limit: int = 200) -> list[InventoryMovement]:
    """Movements newest first, optionally for one product."""
    q = InventoryMovement.query
    if product_id is not None:
        q = q.filter_by(product_id=product_id)
    return q.order_by(InventoryMovement.id.desc()).limit(limit).all()


def replay_stock(product_id: str) -> dict:
    """
    Rebuild a product's stock by folding its movements in append order.

    The fold applies the same clamp as the ledger, so for an intact history
    replayed_stock equals the product's current stock. `breaks` lists
    movements whose previous_stock does not continue the chain.
    """
    movements = (
        InventoryMovement.query.filter_by(product_id=product_id)
        .order_by(InventoryMovement.id.asc())
        .all()
    )
    product = db.session.get(Product, product_id)
    if product is None and not movements:
        raise NotFoundError("Product not found")

    stock = 0
    breaks = []
    clamped = 0
    for movement in movements:
        if movement.previous_stock != stock:
            breaks.append({
                "movement_id": movement.id,
                "expected_previous_stock": stock,
                "recorded_previous_stock": movement.previous_stock,
            })
        stock = max(0, stock + movement.quantity_delta)
        if movement.clamped:
            clamped += 1

    current = product.stock if product is not None else None
    return {
        "product_id": product_id,
        "movement_count": len(movements),
        "clamped_movements": clamped,
        "replayed_stock": stock,
        "current_stock": current,
        "consistent": not breaks and (current is None or current == stock),
        "breaks": breaks,
    }
