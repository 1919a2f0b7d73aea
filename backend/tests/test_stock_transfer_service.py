# Overview: Pytest coverage for the stock transfer engine.

"""
Stock transfer engine tests.

Covers input validation (all errors reported together), existence checks,
the balance check, balance bookkeeping on the audit record, and the
guarantee that a rejected transfer leaves no trace.
"""

import re

import pytest

from backoffice.models import StockTransfer, TRANSFER_STATUS_COMPLETED
from backoffice.services.products_service import create_product
from backoffice.services.stock_transfer_service import (
    Actor,
    InsufficientStockError,
    TransferNotFoundError,
    TransferValidationError,
    transfer_stock,
    list_stock_transfers,
    get_recent_transfers,
)
from backoffice.time_utils import utcnow
from backoffice.validation import InventoryEntryInput


@pytest.fixture
def stocked_product(db_session, company_a, wh_main, wh_north):
    """W1 (Main) = 100, W2 (North) = 0."""
    product = create_product(
        patch={"product_name": "Bolt", "product_code": "B-100"},
        inventory=[
            InventoryEntryInput(warehouse_id=wh_main.id, quantity=100),
            InventoryEntryInput(warehouse_id=wh_north.id, quantity=0),
        ],
        company_id=company_a.id,
    )
    db_session.commit()
    return product


@pytest.fixture
def actor_a(user_a, company_a):
    return Actor(user_id=user_a.id, company_id=company_a.id)


def _transfer(product, source, destination, quantity, actor, notes=None):
    return transfer_stock(
        product_id=product.id,
        from_warehouse_id=source.id,
        to_warehouse_id=destination.id,
        quantity=quantity,
        notes=notes,
        actor=actor,
    )


class TestSuccessfulTransfer:
    def test_moves_quantity_and_records_balances(self, db_session, stocked_product, wh_main, wh_north, actor_a):
        result = _transfer(stocked_product, wh_main, wh_north, 30, actor_a, notes="restock")
        db_session.commit()

        assert stocked_product.get_quantity(wh_main.id) == 70
        assert stocked_product.get_quantity(wh_north.id) == 30

        transfer = result.transfer
        assert transfer.from_balance_before == 100
        assert transfer.from_balance_after == 70
        assert transfer.to_balance_before == 0
        assert transfer.to_balance_after == 30
        assert transfer.transfer_status == TRANSFER_STATUS_COMPLETED
        assert transfer.notes == "restock"
        assert transfer.transfer_date is not None
        assert transfer.company_id == actor_a.company_id
        assert transfer.created_by == actor_a.user_id

    def test_success_message(self, db_session, stocked_product, wh_main, wh_north, actor_a):
        assert _transfer(stocked_product, wh_main, wh_north, 1, actor_a).message == "Moved 1 unit from Main to North."
        assert _transfer(stocked_product, wh_main, wh_north, 5, actor_a).message == "Moved 5 units from Main to North."

    def test_balances_are_conserved(self, db_session, stocked_product, wh_main, wh_north, actor_a):
        transfer = _transfer(stocked_product, wh_main, wh_north, 42, actor_a).transfer

        assert transfer.from_balance_before - transfer.quantity == transfer.from_balance_after
        assert transfer.to_balance_before + transfer.quantity == transfer.to_balance_after
        assert (
            transfer.from_balance_after + transfer.to_balance_after
            == transfer.from_balance_before + transfer.to_balance_before
        )
        assert stocked_product.get_total_quantity() == 100

    def test_destination_entry_is_created_when_absent(self, db_session, stocked_product, wh_main, wh_south, actor_a):
        _transfer(stocked_product, wh_main, wh_south, 10, actor_a)
        db_session.commit()

        assert stocked_product.get_quantity(wh_south.id) == 10
        assert len([e for e in stocked_product.warehouse_inventory if e.warehouse_id == wh_south.id]) == 1

    def test_reference_code_format(self, db_session, stocked_product, wh_main, wh_north, actor_a):
        transfer = _transfer(stocked_product, wh_main, wh_north, 3, actor_a).transfer
        assert re.match(r"^ST-\d+-\d{4}$", transfer.reference_code)

    def test_accepts_digit_strings(self, db_session, stocked_product, wh_main, wh_north, actor_a):
        result = transfer_stock(
            product_id=str(stocked_product.id),
            from_warehouse_id=str(wh_main.id),
            to_warehouse_id=str(wh_north.id),
            quantity="4",
            actor=actor_a,
        )
        assert result.transfer.quantity == 4

    def test_unscoped_actor_uses_product_company(self, db_session, stocked_product, wh_main, wh_north, company_a):
        transfer = _transfer(stocked_product, wh_main, wh_north, 2, Actor()).transfer
        assert transfer.company_id == company_a.id
        assert transfer.created_by is None


class TestValidation:
    def test_same_warehouse(self, db_session, stocked_product, wh_main, actor_a):
        with pytest.raises(TransferValidationError) as exc:
            _transfer(stocked_product, wh_main, wh_main, 5, actor_a)
        assert exc.value.errors == ["Source and destination warehouses must be different."]
        assert stocked_product.get_quantity(wh_main.id) == 100

    @pytest.mark.parametrize("quantity", [0, -5, "0", "abc", None, 2.5])
    def test_non_positive_quantity(self, db_session, stocked_product, wh_main, wh_north, actor_a, quantity):
        with pytest.raises(TransferValidationError) as exc:
            _transfer(stocked_product, wh_main, wh_north, quantity, actor_a)
        assert exc.value.errors == ["Transfer quantity must be greater than zero."]

    def test_errors_are_collected(self, db_session, actor_a):
        with pytest.raises(TransferValidationError) as exc:
            transfer_stock(
                product_id="not-an-id",
                from_warehouse_id="x",
                to_warehouse_id="",
                quantity=0,
                actor=actor_a,
            )
        assert exc.value.errors == [
            "Select a valid product.",
            "Select a valid source warehouse.",
            "Select a valid destination warehouse.",
            "Transfer quantity must be greater than zero.",
        ]

    def test_same_invalid_warehouse_reports_both(self, db_session, stocked_product, actor_a):
        with pytest.raises(TransferValidationError) as exc:
            transfer_stock(
                product_id=stocked_product.id,
                from_warehouse_id="abc",
                to_warehouse_id="abc",
                quantity=1,
                actor=actor_a,
            )
        assert "Select a valid source warehouse." in exc.value.errors
        assert "Source and destination warehouses must be different." in exc.value.errors


class TestExistenceChecks:
    def test_unknown_product(self, db_session, wh_main, wh_north, actor_a):
        with pytest.raises(TransferNotFoundError) as exc:
            transfer_stock(product_id=99999, from_warehouse_id=wh_main.id, to_warehouse_id=wh_north.id,
                           quantity=1, actor=actor_a)
        assert exc.value.errors == ["Selected product was not found or is inactive."]

    def test_soft_deleted_product(self, db_session, stocked_product, wh_main, wh_north, actor_a):
        stocked_product.deleted_at = utcnow()
        db_session.commit()
        with pytest.raises(TransferNotFoundError) as exc:
            _transfer(stocked_product, wh_main, wh_north, 1, actor_a)
        assert exc.value.errors == ["Selected product was not found or is inactive."]

    def test_soft_deleted_source(self, db_session, stocked_product, wh_main, wh_north, actor_a):
        wh_main.deleted_at = utcnow()
        db_session.commit()
        with pytest.raises(TransferNotFoundError) as exc:
            _transfer(stocked_product, wh_main, wh_north, 1, actor_a)
        assert exc.value.errors == ["Source warehouse was not found or is inactive."]

    def test_missing_destination(self, db_session, stocked_product, wh_main, actor_a):
        with pytest.raises(TransferNotFoundError) as exc:
            transfer_stock(product_id=stocked_product.id, from_warehouse_id=wh_main.id,
                           to_warehouse_id=99999, quantity=1, actor=actor_a)
        assert exc.value.errors == ["Destination warehouse was not found or is inactive."]


class TestInsufficientStock:
    def test_rejected_without_mutation(self, db_session, stocked_product, wh_main, wh_north, actor_a):
        _transfer(stocked_product, wh_main, wh_north, 30, actor_a)
        db_session.commit()
        snapshot = stocked_product.inventory_snapshot()
        count_before = db_session.query(StockTransfer).count()

        with pytest.raises(InsufficientStockError) as exc:
            _transfer(stocked_product, wh_main, wh_north, 1000, actor_a)
        db_session.rollback()

        assert exc.value.errors == ["Insufficient quantity in Main. Available: 70"]
        assert exc.value.available == 70
        assert stocked_product.inventory_snapshot() == snapshot
        assert db_session.query(StockTransfer).count() == count_before

    def test_rejection_logged_as_warning(self, db_session, stocked_product, wh_main, wh_north, actor_a, caplog):
        with caplog.at_level("WARNING"):
            with pytest.raises(InsufficientStockError):
                _transfer(stocked_product, wh_main, wh_north, 101, actor_a)
        assert "Stock transfer rejected" in caplog.text


class TestTransferListing:
    def test_newest_first_with_pagination(self, db_session, stocked_product, wh_main, wh_north, company_a, actor_a):
        for quantity in range(1, 6):
            _transfer(stocked_product, wh_main, wh_north, quantity, actor_a)
        db_session.commit()

        page = list_stock_transfers(company_id=company_a.id, product_id=stocked_product.id, limit=2, page=1)
        assert page["total"] == 5
        assert [record.quantity for record in page["records"]] == [5, 4]
        assert page["has_next_page"] is True
        assert page["has_prev_page"] is False

        last = list_stock_transfers(company_id=company_a.id, product_id=stocked_product.id, limit=2, page=3)
        assert [record.quantity for record in last["records"]] == [1]
        assert last["has_next_page"] is False
        assert last["has_prev_page"] is True

    def test_second_page_of_fifty(self, db_session, stocked_product, wh_main, wh_north, company_a, actor_a):
        for _ in range(51):
            _transfer(stocked_product, wh_main, wh_north, 1, actor_a)
        db_session.commit()

        page = list_stock_transfers(company_id=company_a.id, product_id=str(stocked_product.id), limit=50, page=2)
        assert page["limit"] == 50
        assert len(page["records"]) == 1
        assert page["has_prev_page"] is True
        assert page["has_next_page"] is False

    def test_limit_is_clamped(self, db_session, company_a):
        assert list_stock_transfers(company_id=company_a.id, limit=5000)["limit"] == 200
        assert list_stock_transfers(company_id=company_a.id, limit=0)["limit"] == 50
        assert list_stock_transfers(company_id=company_a.id, limit="2.5")["limit"] == 50
        assert list_stock_transfers(company_id=company_a.id, page=-2)["page"] == 1

    def test_filters_by_warehouse(self, db_session, stocked_product, wh_main, wh_north, wh_south, company_a, actor_a):
        _transfer(stocked_product, wh_main, wh_north, 10, actor_a)
        _transfer(stocked_product, wh_main, wh_south, 10, actor_a)
        _transfer(stocked_product, wh_north, wh_south, 5, actor_a)
        db_session.commit()

        into_south = list_stock_transfers(company_id=company_a.id, to_warehouse_id=wh_south.id)
        assert into_south["total"] == 2
        out_of_north = list_stock_transfers(company_id=company_a.id, from_warehouse_id=wh_north.id)
        assert [record.quantity for record in out_of_north["records"]] == [5]

    def test_soft_deleted_records_hidden(self, db_session, stocked_product, wh_main, wh_north, company_a, actor_a):
        transfer = _transfer(stocked_product, wh_main, wh_north, 1, actor_a).transfer
        db_session.commit()
        transfer.deleted_at = utcnow()
        db_session.commit()

        assert list_stock_transfers(company_id=company_a.id)["total"] == 0
        assert get_recent_transfers(company_id=company_a.id) == []

    def test_recent_transfers_capped_at_twenty(self, db_session, stocked_product, wh_main, wh_north, company_a, actor_a):
        for _ in range(22):
            _transfer(stocked_product, wh_main, wh_north, 1, actor_a)
        db_session.commit()
        assert len(get_recent_transfers(company_id=company_a.id)) == 20
