"""
Transaction Service - checkout processing

Turns a cart into a numbered, completed Transaction and depletes stock for
every line through the stock ledger, all in one DB transaction.

OVERSELL POLICY: reject. Requested quantities are summed per product and
checked against stock under the product locks BEFORE anything is written.
A shortfall raises InsufficientStockError listing every short product, and
no number, transaction, or movement is created. The ledger's clamp-at-zero
therefore never triggers during checkout; it only applies to manual
adjustments.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import func

from ..extensions import db
from ..models import Transaction, TransactionLine, Product
from ..validation import (
    InsufficientStockError,
    NotFoundError,
    ValidationError,
    PAYMENT_METHODS,
)
from shopledger.time_utils import utcnow, parse_iso_datetime
from .concurrency import get_locks, run_with_retry
from .document_service import next_document_number
from .ledger_service import apply_delta_locked, _load_product_for_update

TRANSACTION_PREFIX = "TXN"


def _parse_occurred_at(value):
    """
    Normalize occurred_at to canonical UTC-naive datetime.

    Accepts:
    - None -> utcnow() (UTC-naive)
    - datetime:
        - aware -> convert to UTC, strip tzinfo
        - naive -> treat as UTC-naive
    - str -> parse_iso_datetime (accepts Z/offsets; returns UTC-naive)
    """
    if value is None:
        return utcnow()

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value  # already naive; treat as UTC-naive

    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            dt = None
        if dt is None:
            raise ValidationError("invalid occurred_at")
        return dt

    raise ValidationError("invalid occurred_at")


def _validate_cart(items: list[dict], payment_method: str, discount_cents: int, tax_cents: int) -> None:
    if not items:
        raise ValidationError("Transaction must contain at least one item")
    for index, item in enumerate(items, start=1):
        if not item.get("product_id"):
            raise ValidationError(f"item {index}: product_id is required")
        quantity = item.get("quantity")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise ValidationError(f"item {index}: quantity must be a positive integer")
        price = item.get("unit_price_cents")
        if price is not None and price < 0:
            raise ValidationError(f"item {index}: unit_price_cents must be >= 0")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
    if discount_cents < 0:
        raise ValidationError("discount_cents must be >= 0")
    if tax_cents < 0:
        raise ValidationError("tax_cents must be >= 0")


def _validate_on_hand(products: dict[str, Product], items: list[dict]) -> None:
    product_totals: dict[str, int] = {}
    for item in items:
        product_totals[item["product_id"]] = product_totals.get(item["product_id"], 0) + item["quantity"]

    insufficient = []
    for product_id, qty in product_totals.items():
        on_hand = products[product_id].stock or 0
        if on_hand < qty:
            insufficient.append({
                "product_id": product_id,
                "name": products[product_id].name,
                "requested_quantity": qty,
                "on_hand": on_hand,
            })

    if insufficient:
        raise InsufficientStockError(
            "Insufficient stock to complete transaction",
            details={"items": insufficient},
        )


def compute_total_cents(lines: list[dict], discount_cents: int) -> tuple[int, int]:
    """(subtotal, total) where total = max(0, subtotal - discount)."""
    subtotal = sum(line["unit_price_cents"] * line["quantity"] for line in lines)
    return subtotal, max(0, subtotal - discount_cents)


def create_transaction(
    *,
    items: list[dict],
    payment_method: str,
    discount_cents: int = 0,
    tax_cents: int = 0,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    occurred_at=None,
) -> Transaction:
    """
    Commit a checkout.

    items: [{product_id, quantity, unit_price_cents?}]; the price defaults to
    the catalog price and, like the product name, is snapshotted on the line.

    Raises ValidationError (empty cart, bad quantity, unknown payment method,
    inactive product), NotFoundError (unknown product) or
    InsufficientStockError (oversell; nothing is applied).
    """
    _validate_cart(items, payment_method, discount_cents, tax_cents)
    occurred_dt = _parse_occurred_at(occurred_at)
    now = utcnow()
    if occurred_dt > now + timedelta(minutes=2):
        raise ValidationError("occurred_at cannot be in the future")
    # Within the clock-skew allowance a sale is recorded at now, never ahead of it
    occurred_dt = min(occurred_dt, now)

    def _op():
        product_ids = [item["product_id"] for item in items]
        with get_locks().hold_products(product_ids):
            try:
                products: dict[str, Product] = {}
                for product_id in sorted(set(product_ids)):
                    try:
                        product = _load_product_for_update(product_id)
                    except NotFoundError:
                        raise NotFoundError(f"Product {product_id} not found")
                    if not product.is_active:
                        raise ValidationError(f"Product {product.name} is inactive")
                    products[product_id] = product

                _validate_on_hand(products, items)

                lines = []
                for item in items:
                    product = products[item["product_id"]]
                    price = item.get("unit_price_cents")
                    lines.append({
                        "product_id": product.id,
                        "name": product.name,
                        "quantity": item["quantity"],
                        "unit_price_cents": product.price_cents if price is None else price,
                    })
                subtotal, total = compute_total_cents(lines, discount_cents)

                # The sequence stays locked until commit so no other checkout can
                # read the counter while this number is still uncommitted
                with get_locks().sequence_lock:
                    number = next_document_number(document_type="TRANSACTION", prefix=TRANSACTION_PREFIX)
                    txn = Transaction(
                        transaction_number=number,
                        subtotal_cents=subtotal,
                        discount_cents=discount_cents,
                        tax_cents=tax_cents,
                        total_amount_cents=total,
                        payment_method=payment_method,
                        customer_name=customer_name,
                        customer_phone=customer_phone,
                        status="completed",
                        created_at=occurred_dt,
                    )
                    db.session.add(txn)
                    db.session.flush()

                    for line_number, line in enumerate(lines, start=1):
                        db.session.add(TransactionLine(
                            transaction_id=txn.id,
                            line_number=line_number,
                            product_id=line["product_id"],
                            name=line["name"],
                            quantity=line["quantity"],
                            unit_price_cents=line["unit_price_cents"],
                            line_total_cents=line["unit_price_cents"] * line["quantity"],
                        ))
                        apply_delta_locked(
                            products[line["product_id"]],
                            -line["quantity"],
                            movement_type="sale",
                            reason=f"Sale {number}",
                            transaction_id=txn.id,
                            occurred_at=occurred_dt,
                        )

                    db.session.commit()
            except Exception:
                db.session.rollback()
                raise
        return txn

    return run_with_retry(_op)


def get_transaction(transaction_id: str) -> Transaction:
    txn = db.session.get(Transaction, transaction_id)
    if txn is None:
        raise NotFoundError("Transaction not found")
    return txn


def _allocation_order(descending: bool = False) -> tuple:
    # Numbers share one prefix and only grow, so (length, text) sorts TXN9999 before TXN10000
    keys = (func.length(Transaction.transaction_number), Transaction.transaction_number)
    return tuple(k.desc() for k in keys) if descending else tuple(k.asc() for k in keys)


def list_transactions(limit: int | None = None) -> list[Transaction]:
    """All transactions, newest first."""
    q = Transaction.query.order_by(
        Transaction.created_at.desc(),
        *_allocation_order(descending=True),
    )
    if limit is not None:
        q = q.limit(limit)
    return q.all()


def get_transactions_by_date_range(start: datetime, end: datetime) -> list[Transaction]:
    """Transactions with start <= created_at <= end (UTC-naive bounds)."""
    if start > end:
        raise ValidationError("start must not be after end")
    return (
        Transaction.query.filter(
            Transaction.created_at >= start,
            Transaction.created_at <= end,
        )
        .order_by(Transaction.created_at.asc(), *_allocation_order())
        .all()
    )
