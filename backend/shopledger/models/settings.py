from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


class ShopSettings(db.Model):
    """
    Singleton shop configuration (receipt header, currency, local timezone).

    The timezone decides where "today" and "this month" begin for analytics.
    """
    __tablename__ = "shop_settings"

    id = db.Column(db.Integer, primary_key=True)

    shop_name = db.Column(db.String(255), nullable=False)
    owner_name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.Text, nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    gst_number = db.Column(db.String(32), nullable=True)

    currency = db.Column(db.String(8), nullable=False, default="INR")
    timezone = db.Column(db.String(64), nullable=False, default="Asia/Kolkata")
    receipt_footer = db.Column(db.Text, nullable=True)

    is_offline_mode = db.Column(db.Boolean, nullable=False, default=False)
    last_sync_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_name": self.shop_name,
            "owner_name": self.owner_name,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "gst_number": self.gst_number,
            "currency": self.currency,
            "timezone": self.timezone,
            "receipt_footer": self.receipt_footer,
            "is_offline_mode": self.is_offline_mode,
            "last_sync_at": to_utc_z(self.last_sync_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
