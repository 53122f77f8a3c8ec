from __future__ import annotations

import uuid

from ..extensions import db
from shopledger.time_utils import to_utc_z


def _new_id() -> str:
    return str(uuid.uuid4())


class Category(db.Model):
    """
    Product category.

    Products point at categories by NAME, not id. The reference is checked
    when a product is written; nothing cascades when a category changes, so
    reports must cope with category names that no longer exist.
    """
    __tablename__ = "categories"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    name = db.Column(db.String(128), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data.

    STOCK: `stock` is a cached on-hand count owned by the stock ledger
    (services/ledger_service.py). Nothing else writes it; every change
    appends an InventoryMovement, so the movement history replays to it.

    MONEY: prices are stored in integer cents.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category", "category"),
        db.Index("ix_products_active", "is_active"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_new_id)

    name = db.Column(db.String(255), nullable=False)
    # Globally unique when present; NULLs do not collide
    barcode = db.Column(db.String(64), nullable=True, unique=True)
    brand = db.Column(db.String(128), nullable=True)
    description = db.Column(db.Text, nullable=True)

    price_cents = db.Column(db.Integer, nullable=False)
    cost_price_cents = db.Column(db.Integer, nullable=True)

    # Soft reference to Category.name
    category = db.Column(db.String(128), nullable=False)

    stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=True, default=5)
    max_stock = db.Column(db.Integer, nullable=True, default=100)
    unit = db.Column(db.String(32), nullable=False, default="piece")

    expiry_date = db.Column(db.DateTime(timezone=True), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "barcode": self.barcode,
            "brand": self.brand,
            "description": self.description,
            "price_cents": self.price_cents,
            "cost_price_cents": self.cost_price_cents,
            "category": self.category,
            "stock": self.stock,
            "min_stock": self.min_stock,
            "max_stock": self.max_stock,
            "unit": self.unit,
            "expiry_date": to_utc_z(self.expiry_date),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
