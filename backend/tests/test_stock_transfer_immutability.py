# Overview: Pytest coverage for the append-only stock transfer audit record.

import re

import pytest

from backoffice.models import StockTransfer, StockTransferImmutableError
from backoffice.services.stock_transfer_service import Actor, transfer_stock
from backoffice.time_utils import utcnow


@pytest.fixture
def transfer(db_session, product_a, wh_main, wh_north, company_a):
    result = transfer_stock(
        product_id=product_a.id,
        from_warehouse_id=wh_main.id,
        to_warehouse_id=wh_north.id,
        quantity=2,
        actor=Actor(company_id=company_a.id),
    )
    db_session.commit()
    return result.transfer


class TestAppendOnly:
    def test_update_is_rejected(self, db_session, transfer):
        transfer.quantity = 99
        with pytest.raises(StockTransferImmutableError):
            db_session.flush()
        db_session.rollback()

        assert db_session.get(StockTransfer, transfer.id).quantity == 2

    def test_balance_rewrite_is_rejected(self, db_session, transfer):
        transfer.from_balance_after = 0
        with pytest.raises(StockTransferImmutableError):
            db_session.commit()
        db_session.rollback()

    def test_delete_is_rejected(self, db_session, transfer):
        db_session.delete(transfer)
        with pytest.raises(StockTransferImmutableError):
            db_session.flush()
        db_session.rollback()

        assert db_session.query(StockTransfer).count() == 1

    def test_soft_delete_is_allowed(self, db_session, transfer):
        transfer.deleted_at = utcnow()
        db_session.commit()

        assert db_session.get(StockTransfer, transfer.id).deleted_at is not None


class TestInsertDefaults:
    def test_reference_and_date_filled_on_insert(self, db_session, product_a, wh_main, wh_north, company_a):
        record = StockTransfer(
            product_id=product_a.id,
            from_warehouse_id=wh_main.id,
            to_warehouse_id=wh_north.id,
            quantity=1,
            company_id=company_a.id,
        )
        db_session.add(record)
        db_session.commit()

        assert re.match(r"^ST-\d+-\d{4}$", record.reference_code)
        assert record.transfer_date is not None
        assert record.transfer_status == "Completed"

    def test_explicit_reference_kept(self, db_session, product_a, wh_main, wh_north):
        record = StockTransfer(
            product_id=product_a.id,
            from_warehouse_id=wh_main.id,
            to_warehouse_id=wh_north.id,
            quantity=1,
            reference_code="ST-1-0001",
        )
        db_session.add(record)
        db_session.commit()

        assert record.reference_code == "ST-1-0001"
