from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


class InventoryMovement(db.Model):
    """
    One immutable stock change for a product.

    Append-only: rows are never updated or deleted, and product_id /
    transaction_id carry no foreign keys so the audit trail survives product
    deletion.

    quantity is the magnitude that was REQUESTED (abs(quantity_delta)).
    new_stock is max(0, previous_stock + quantity_delta), so a clamped
    movement has new_stock - previous_stock != quantity_delta.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_inventory_movements_product_id", "product_id", "id"),
        {"sqlite_autoincrement": True},
    )

    # Autoincrement id doubles as the append order; created_at can tie within a clock tick
    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.String(36), nullable=False)
    type = db.Column(db.String(16), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    quantity_delta = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(255), nullable=True)
    transaction_id = db.Column(db.String(36), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def clamped(self) -> bool:
        return self.new_stock != self.previous_stock + self.quantity_delta

    def __repr__(self) -> str:
        return (
            f"<InventoryMovement product_id={self.product_id} type={self.type} "
            f"{self.previous_stock}->{self.new_stock}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity": self.quantity,
            "quantity_delta": self.quantity_delta,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "clamped": self.clamped,
            "reason": self.reason,
            "transaction_id": self.transaction_id,
            "created_at": to_utc_z(self.created_at),
        }
