# Overview: Pytest coverage for products and categories.

from datetime import datetime, timedelta, timezone

import pytest

from shopledger.extensions import db
from shopledger.models import InventoryMovement, Product
from shopledger.services import catalog_service
from shopledger.services.analytics_service import inventory_alerts
from shopledger.routes.products import PRODUCT_CREATE_POLICY
from shopledger.validation import ConflictError, NotFoundError, ValidationError, validate_payload


class TestCategories:
    def test_create_and_list(self, make_category):
        make_category("Snacks")
        make_category("Beverages")
        assert [c.name for c in catalog_service.list_categories()] == ["Beverages", "Snacks"]

    def test_duplicate_name_conflicts(self, make_category):
        make_category("Snacks")
        with pytest.raises(ConflictError):
            catalog_service.create_category(patch={"name": "Snacks"})

    def test_active_only(self, make_category):
        make_category("Snacks")
        make_category("Seasonal", is_active=False)
        assert [c.name for c in catalog_service.list_categories(active_only=True)] == ["Snacks"]


class TestProducts:
    def test_create_defaults(self, make_product):
        product = make_product("Cola", price_cents=2500)

        assert product.stock == 0
        assert product.min_stock == 5
        assert product.max_stock == 100
        assert product.unit == "piece"
        assert product.is_active is True

    def test_unknown_category_rejected(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.create_product(patch={"name": "Cola", "price_cents": 100, "category": "Nope"})
        assert Product.query.count() == 0

    def test_duplicate_barcode_conflicts(self, make_product):
        make_product("Cola", barcode="8901030001234")
        with pytest.raises(ConflictError):
            make_product("Cola Zero", barcode="8901030001234")

    def test_products_without_barcode_do_not_collide(self, make_product):
        make_product("Loose Rice")
        make_product("Loose Dal")
        assert Product.query.count() == 2

    def test_lookup_by_barcode(self, make_product):
        product = make_product("Cola", barcode="8901030001234")
        assert catalog_service.get_product_by_barcode("8901030001234").id == product.id
        with pytest.raises(NotFoundError):
            catalog_service.get_product_by_barcode("0000")

    def test_list_filters(self, make_product):
        make_product("Cola", category="Beverages")
        make_product("Chips", category="Snacks")
        make_product("Old Chips", category="Snacks", is_active=False)

        assert [p.name for p in catalog_service.list_products(category="Snacks")] == ["Chips", "Old Chips"]
        assert [p.name for p in catalog_service.list_products(active_only=True)] == ["Chips", "Cola"]

    def test_update_rejects_stock(self, make_product):
        product = make_product(stock=4)
        with pytest.raises(ValidationError):
            catalog_service.update_product(product_id=product.id, patch={"stock": 40})
        assert db.session.get(Product, product.id).stock == 4

    def test_update_checks_category_and_thresholds(self, make_product):
        product = make_product(min_stock=5, max_stock=10)
        with pytest.raises(ValidationError):
            catalog_service.update_product(product_id=product.id, patch={"category": "Nope"})
        with pytest.raises(ValidationError):
            catalog_service.update_product(product_id=product.id, patch={"min_stock": 20})

    def test_update_barcode_conflict(self, make_product):
        make_product("Cola", barcode="111")
        other = make_product("Fanta", barcode="222")
        with pytest.raises(ConflictError):
            catalog_service.update_product(product_id=other.id, patch={"barcode": "111"})

    def test_update_fields(self, make_product):
        product = make_product("Cola", price_cents=2500)
        updated = catalog_service.update_product(
            product_id=product.id,
            patch={"price_cents": 2700, "brand": "Coca Cola"},
        )
        assert updated.price_cents == 2700
        assert updated.brand == "Coca Cola"

    def test_update_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            catalog_service.update_product(product_id="missing", patch={"name": "x"})

    def test_delete_keeps_movements(self, make_product):
        product = make_product(stock=7)
        catalog_service.delete_product(product_id=product.id)

        with pytest.raises(NotFoundError):
            catalog_service.get_product(product.id)
        assert InventoryMovement.query.filter_by(product_id=product.id).count() == 1

    def test_delete_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            catalog_service.delete_product(product_id="missing")


class TestPayloadNormalization:
    def test_aware_expiry_date_is_stored_as_utc(self, make_category):
        make_category("Dairy")
        ist = timezone(timedelta(hours=5, minutes=30))
        patch = validate_payload(
            model=Product,
            payload={
                "name": "Amul Butter",
                "price_cents": 5600,
                "category": "Dairy",
                "expiry_date": datetime(2030, 6, 1, 10, 0, tzinfo=ist),
            },
            policy=PRODUCT_CREATE_POLICY,
            partial=False,
        )
        assert patch["expiry_date"] == datetime(2030, 6, 1, 4, 30)

        product = catalog_service.create_product(patch=patch)
        db.session.expire_all()
        assert db.session.get(Product, product.id).expiry_date == datetime(2030, 6, 1, 4, 30)

        alerts = inventory_alerts(now=datetime(2030, 5, 30, 4, 30))
        expiring = [a for a in alerts if a["type"] == "expiring_soon"]
        assert expiring[0]["products"][0]["days_to_expiry"] == 2
