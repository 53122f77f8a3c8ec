# Overview: Demo catalog and shop settings for a fresh database.

from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..models import Category
from shopledger.time_utils import utcnow
from .catalog_service import create_category, create_product
from .settings_service import get_settings, update_settings

DEMO_CATEGORIES = [
    {"name": "Beverages", "description": "Cold drinks and beverages"},
    {"name": "Snacks", "description": "Snacks and quick bites"},
    {"name": "Personal Care", "description": "Personal hygiene and care products"},
]

# (fields, days until expiry)
DEMO_PRODUCTS = [
    ({
        "name": "Coca Cola 600ml", "barcode": "8901030001234", "brand": "Coca Cola",
        "description": "Refreshing cola drink", "category": "Beverages",
        "price_cents": 2500, "cost_price_cents": 2000,
        "stock": 45, "min_stock": 10, "max_stock": 100, "unit": "bottle",
    }, 90),
    ({
        "name": "Maggi 2-Minute Noodles", "barcode": "8901030002345", "brand": "Nestle",
        "description": "Instant noodles", "category": "Snacks",
        "price_cents": 1200, "cost_price_cents": 1000,
        "stock": 8, "min_stock": 10, "max_stock": 50, "unit": "packet",
    }, 180),
    ({
        "name": "Colgate Toothpaste", "barcode": "8901030003456", "brand": "Colgate",
        "description": "Dental care toothpaste", "category": "Personal Care",
        "price_cents": 4500, "cost_price_cents": 3500,
        "stock": 3, "min_stock": 5, "max_stock": 25, "unit": "tube",
    }, 365),
    ({
        "name": "Britannia Biscuits", "barcode": "8901030004567", "brand": "Britannia",
        "description": "Cream biscuits", "category": "Snacks",
        "price_cents": 2000, "cost_price_cents": 1500,
        "stock": 38, "min_stock": 10, "max_stock": 60, "unit": "packet",
    }, 60),
]

DEMO_SETTINGS = {
    "shop_name": "Ramesh General Store",
    "owner_name": "Ramesh Kumar",
    "address": "123 Market Street, Delhi",
    "phone": "+91 98765 43210",
    "email": "ramesh@store.com",
    "gst_number": "07AAACR1234A1Z5",
    "currency": "INR",
    "timezone": "Asia/Kolkata",
    "receipt_footer": "Thank you for shopping with us!",
    "is_offline_mode": False,
}


def seed_demo_data() -> bool:
    """
    Load the demo catalog into an empty database.

    Returns False (and writes nothing) when any category already exists.
    Opening stock goes through the ledger like any other product create.
    """
    if db.session.query(Category.id).first() is not None:
        return False

    for category in DEMO_CATEGORIES:
        create_category(patch=category)

    now = utcnow()
    for fields, expiry_days in DEMO_PRODUCTS:
        create_product(patch={**fields, "expiry_date": now + timedelta(days=expiry_days)})

    get_settings()
    update_settings({**DEMO_SETTINGS, "last_sync_at": now})
    return True
