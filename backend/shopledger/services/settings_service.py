# Overview: Service-layer operations for shop settings; a single pass-through configuration record.

from __future__ import annotations

from datetime import tzinfo

from ..extensions import db
from ..models import ShopSettings
from ..validation import ValidationError
from shopledger.time_utils import is_known_timezone, resolve_timezone, utcnow
from .concurrency import get_locks

SETTINGS_MUTABLE_FIELDS = {
    "shop_name", "owner_name", "address", "phone", "email", "gst_number",
    "currency", "timezone", "receipt_footer", "is_offline_mode", "last_sync_at",
}

DEFAULT_SETTINGS = {
    "shop_name": "My Shop",
    "owner_name": "Owner",
    "currency": "INR",
    "timezone": "Asia/Kolkata",
    "is_offline_mode": False,
}


def get_settings() -> ShopSettings:
    """Return the singleton, creating it with defaults on first access."""
    settings = db.session.query(ShopSettings).order_by(ShopSettings.id.asc()).first()
    if settings is not None:
        return settings

    with get_locks().hold_writes():
        settings = db.session.query(ShopSettings).order_by(ShopSettings.id.asc()).first()
        if settings is None:
            now = utcnow()
            settings = ShopSettings(**DEFAULT_SETTINGS, created_at=now, updated_at=now)
            db.session.add(settings)
            db.session.commit()
    return settings


def update_settings(patch: dict) -> ShopSettings:
    if "timezone" in patch and patch["timezone"] is not None:
        name = patch["timezone"]
        if not is_known_timezone(name):
            raise ValidationError(f"Unknown timezone: {name}")

    with get_locks().hold_writes():
        settings = get_settings()
        for k, v in patch.items():
            if k not in SETTINGS_MUTABLE_FIELDS:
                continue
            setattr(settings, k, v)
        settings.updated_at = utcnow()
        db.session.commit()
    return settings


def get_shop_timezone() -> tzinfo:
    # Read-only: analytics must not create the singleton as a side effect
    settings = db.session.query(ShopSettings).order_by(ShopSettings.id.asc()).first()
    name = settings.timezone if settings is not None else DEFAULT_SETTINGS["timezone"]
    return resolve_timezone(name)
