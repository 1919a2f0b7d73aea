# Overview: Pytest coverage for the per-warehouse inventory ledger on Product.

import pytest

from backoffice.models import Product, ProductWarehouseInventory
from backoffice.validation import ValidationError, WarehouseNotFoundError, InsufficientQuantityError


@pytest.fixture
def bare_product(db_session, company_a):
    product = Product(company_id=company_a.id, product_name="Bare")
    db_session.add(product)
    db_session.flush()
    product.parent_product_id = product.id
    db_session.commit()
    return product


class TestLedgerReads:
    def test_missing_warehouse_reads_zero(self, bare_product, wh_main):
        assert bare_product.get_quantity(wh_main.id) == 0
        assert bare_product.get_total_quantity() == 0

    def test_total_is_sum_of_entries(self, product_a, wh_main, wh_north):
        product_a.increase(wh_north.id, 4)
        assert product_a.get_quantity(wh_main.id) == 10
        assert product_a.get_quantity(wh_north.id) == 4
        assert product_a.get_total_quantity() == 14

    def test_is_in_stock_defaults_to_one(self, product_a, wh_main, wh_north):
        assert product_a.is_in_stock(wh_main.id)
        assert not product_a.is_in_stock(wh_north.id)
        assert product_a.is_in_stock(wh_main.id, 10)
        assert not product_a.is_in_stock(wh_main.id, 11)


class TestLedgerWrites:
    def test_set_quantity_creates_then_updates_single_entry(self, db_session, bare_product, wh_main):
        bare_product.set_quantity(wh_main.id, 7)
        bare_product.set_quantity(wh_main.id, 2)
        db_session.commit()

        entries = db_session.query(ProductWarehouseInventory).filter_by(product_id=bare_product.id).all()
        assert len(entries) == 1
        assert entries[0].quantity == 2
        assert entries[0].last_updated is not None

    def test_set_quantity_rejects_negative(self, bare_product, wh_main):
        with pytest.raises(ValidationError):
            bare_product.set_quantity(wh_main.id, -1)

    def test_increase_upserts(self, bare_product, wh_main):
        bare_product.increase(wh_main.id, 3)
        bare_product.increase(wh_main.id, 4)
        assert bare_product.get_quantity(wh_main.id) == 7
        assert len(bare_product.warehouse_inventory) == 1

    def test_decrease_unknown_warehouse(self, bare_product, wh_main):
        with pytest.raises(WarehouseNotFoundError) as exc:
            bare_product.decrease(wh_main.id, 1)
        assert exc.value.warehouse_id == wh_main.id

    def test_decrease_insufficient_reports_available(self, product_a, wh_main):
        with pytest.raises(InsufficientQuantityError) as exc:
            product_a.decrease(wh_main.id, 11)
        assert exc.value.available == 10
        assert exc.value.requested == 11
        assert product_a.get_quantity(wh_main.id) == 10

    def test_decrease_to_zero_keeps_entry(self, product_a, wh_main):
        product_a.decrease(wh_main.id, 10)
        assert product_a.get_quantity(wh_main.id) == 0
        assert wh_main.id in product_a.inventory_snapshot()

    def test_mutation_bumps_product_version(self, db_session, product_a, wh_main):
        before = product_a.version_id
        product_a.increase(wh_main.id, 1)
        db_session.commit()
        assert product_a.version_id == before + 1

    def test_entries_keep_insertion_order(self, db_session, bare_product, wh_main, wh_north, wh_south):
        bare_product.set_quantity(wh_south.id, 1)
        bare_product.set_quantity(wh_main.id, 2)
        bare_product.set_quantity(wh_north.id, 3)
        db_session.commit()
        db_session.expire_all()

        reloaded = db_session.get(Product, bare_product.id)
        assert [entry.warehouse_id for entry in reloaded.warehouse_inventory] == [wh_south.id, wh_main.id, wh_north.id]

    def test_to_dict_includes_warehouse_names(self, product_a, wh_main):
        data = product_a.to_dict()
        names = {row["warehouse_id"]: row["warehouse_name"] for row in data["warehouse_inventory"]}
        assert names[wh_main.id] == "Main"
        assert data["total_quantity"] == 10
