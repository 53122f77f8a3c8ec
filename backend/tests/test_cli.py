# Overview: Pytest coverage for the `flask shop` command group.

from shopledger.extensions import db
from shopledger.models import Category, InventoryMovement, Product, ShopSettings


def _run(app, *args):
    return app.test_cli_runner().invoke(args=["shop", *args])


class TestShopCommands:
    def test_init_creates_settings(self, app, db_session):
        result = _run(app, "init")

        assert result.exit_code == 0, result.output
        assert "Shop ready: My Shop" in result.output
        assert db.session.query(ShopSettings).count() == 1

    def test_seed_demo(self, app, db_session):
        result = _run(app, "seed-demo")

        assert result.exit_code == 0, result.output
        assert "Loaded 4 demo products" in result.output
        assert {c.name for c in Category.query.all()} == {"Beverages", "Snacks", "Personal Care"}

        cola = Product.query.filter_by(barcode="8901030001234").one()
        assert (cola.name, cola.price_cents, cola.stock, cola.min_stock) == ("Coca Cola 600ml", 2500, 45, 10)
        assert InventoryMovement.query.filter_by(reason="Opening stock").count() == 4
        assert db.session.query(ShopSettings).one().shop_name == "Ramesh General Store"

    def test_seed_demo_skips_non_empty_catalog(self, app, db_session):
        _run(app, "seed-demo")
        result = _run(app, "seed-demo")

        assert result.exit_code == 0
        assert "skipping" in result.output
        assert Product.query.count() == 4

    def test_replay_check_passes_for_intact_history(self, app, db_session):
        _run(app, "seed-demo")
        result = _run(app, "replay-check")

        assert result.exit_code == 0, result.output
        assert "4/4 products consistent" in result.output

    def test_replay_check_flags_out_of_band_write(self, app, db_session):
        _run(app, "seed-demo")
        product = Product.query.filter_by(barcode="8901030003456").one()
        product.stock = 99
        db.session.commit()

        result = _run(app, "replay-check")

        assert result.exit_code == 1
        assert f"FAIL {product.id}" in result.output

    def test_replay_check_unknown_product(self, app, db_session):
        result = _run(app, "replay-check", "--product-id", "missing")
        assert result.exit_code == 1
        assert "FAIL missing" in result.output
