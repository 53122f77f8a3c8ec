# backend/shopledger/services/catalog_service.py
"""
Catalog Service - products and categories.

Stock is NOT writable through this module. Opening stock on create is booked
through the stock ledger so the movement history starts at zero.

Category references are by name and are checked here, on write only.
"""
from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product, Category
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import get_locks
from .ledger_service import apply_delta_locked
from shopledger.time_utils import utcnow

PRODUCT_MUTABLE_FIELDS = {
    "name", "barcode", "brand", "description",
    "price_cents", "cost_price_cents", "category",
    "min_stock", "max_stock", "unit", "expiry_date", "is_active",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _require_category(name: str) -> None:
    exists = db.session.query(Category.id).filter_by(name=name).first()
    if exists is None:
        raise ValidationError(f"Unknown category: {name}")


def _require_unique_barcode(barcode: str | None, exclude_id: str | None = None) -> None:
    if not barcode:
        return
    q = db.session.query(Product.id).filter(Product.barcode == barcode)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"Barcode {barcode} already exists")


def list_products(*, active_only: bool = False, category: str | None = None) -> list[Product]:
    q = db.session.query(Product)
    if active_only:
        q = q.filter(Product.is_active.is_(True))
    if category:
        q = q.filter(Product.category == category)
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(product_id: str) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def get_product_by_barcode(barcode: str) -> Product:
    product = db.session.query(Product).filter_by(barcode=barcode).first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def create_product(*, patch: dict) -> Product:
    """
    Create product using a validated patch dict.

    A positive `stock` in the patch becomes an "Opening stock" purchase
    movement rather than a direct write.
    """
    opening_stock = patch.get("stock") or 0

    with get_locks().hold_writes():
        _require_category(patch["category"])
        _require_unique_barcode(patch.get("barcode"))

        product = Product(stock=0)
        apply_product_patch(product, patch)
        now = utcnow()
        product.created_at = now
        product.updated_at = now
        db.session.add(product)

        try:
            db.session.flush()
            if opening_stock > 0:
                with get_locks().hold_products([product.id]):
                    apply_delta_locked(
                        product,
                        opening_stock,
                        movement_type="purchase",
                        reason="Opening stock",
                        occurred_at=now,
                    )
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Product conflicts with an existing barcode")

    return product


def update_product(*, product_id: str, patch: dict) -> Product:
    if "stock" in patch:
        raise ValidationError("stock can only be changed through stock adjustments")

    with get_locks().hold_writes():
        product = get_product(product_id)

        if "category" in patch and patch["category"] != product.category:
            _require_category(patch["category"])
        if patch.get("barcode"):
            _require_unique_barcode(patch["barcode"], exclude_id=product.id)

        min_stock = patch.get("min_stock", product.min_stock)
        max_stock = patch.get("max_stock", product.max_stock)
        if min_stock is not None and max_stock is not None and min_stock > max_stock:
            raise ValidationError("min_stock cannot exceed max_stock")

        apply_product_patch(product, patch)
        product.updated_at = utcnow()

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Product conflicts with an existing barcode")
    return product


def delete_product(*, product_id: str) -> None:
    """
    Delete a product row.

    Its movements and transaction lines stay behind as orphaned audit records.
    """
    with get_locks().hold_writes():
        product = get_product(product_id)
        db.session.delete(product)
        db.session.commit()


def list_categories(*, active_only: bool = False) -> list[Category]:
    q = db.session.query(Category)
    if active_only:
        q = q.filter(Category.is_active.is_(True))
    return q.order_by(Category.name.asc()).all()


def create_category(*, patch: dict) -> Category:
    name = patch["name"]
    with get_locks().hold_writes():
        if db.session.query(Category.id).filter_by(name=name).first() is not None:
            raise ConflictError(f"Category {name} already exists")

        category = Category(
            name=name,
            description=patch.get("description"),
            is_active=patch.get("is_active", True),
            created_at=utcnow(),
        )
        db.session.add(category)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(f"Category {name} already exists")
    return category
