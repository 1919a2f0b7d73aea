# Overview: Service-layer operations for warehouses; encapsulates business logic and database work.

"""
Warehouse directory.

Warehouses are referenced by product inventory ledgers and stock transfers.
The transfer engine only needs existence checks (active, same tenant); the
remaining operations back the warehouse API and CLI.

MULTI-TENANT: a warehouse with company_id NULL is shared by every company.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Warehouse, Product, ProductWarehouseInventory
from ..validation import ValidationError, NotFoundError
from .tenant_service import active_filter
from backoffice.time_utils import utcnow


WAREHOUSE_STATUSES = ("active", "nonactive")


def _visible_to(query, company_id: int | None):
    if company_id is None:
        return query
    return query.filter(
        db.or_(Warehouse.company_id == company_id, Warehouse.company_id.is_(None))
    )


def get_active_warehouse(warehouse_id: int, company_id: int | None = None) -> Warehouse | None:
    """
    Return the warehouse if it exists, is not soft-deleted and is visible to
    company_id. Returns None otherwise.
    """
    query = db.session.query(Warehouse).filter(
        Warehouse.id == warehouse_id,
        active_filter(Warehouse),
    )
    return _visible_to(query, company_id).first()


def require_active_warehouse(warehouse_id: int, company_id: int | None = None) -> Warehouse:
    warehouse = get_active_warehouse(warehouse_id, company_id)
    if warehouse is None:
        raise NotFoundError("Warehouse not found")
    return warehouse


def list_warehouses(company_id: int | None = None, *, include_inactive: bool = False) -> list[Warehouse]:
    query = db.session.query(Warehouse).filter(active_filter(Warehouse))
    if not include_inactive:
        query = query.filter(Warehouse.status == "active")
    query = _visible_to(query, company_id)
    return query.order_by(Warehouse.warehouse_name.asc(), Warehouse.id.asc()).all()


def create_warehouse(
    *,
    warehouse_name: str,
    warehouse_address: str,
    company_id: int | None = None,
    status: str = "active",
) -> Warehouse:
    name = (warehouse_name or "").strip()
    address = (warehouse_address or "").strip()
    if not name:
        raise ValidationError("warehouse_name is required")
    if not address:
        raise ValidationError("warehouse_address is required")
    if status not in WAREHOUSE_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(WAREHOUSE_STATUSES)}")

    warehouse = Warehouse(
        warehouse_name=name,
        warehouse_address=address,
        company_id=company_id,
        status=status,
    )
    db.session.add(warehouse)
    db.session.flush()
    return warehouse


def soft_delete_warehouse(warehouse_id: int, company_id: int | None = None) -> Warehouse:
    """
    Mark a warehouse deleted. Ledger entries pointing at it are kept; new
    transfers into or out of it are rejected by the existence check.
    """
    warehouse = require_active_warehouse(warehouse_id, company_id)
    if company_id is not None and warehouse.company_id is None:
        # Shared warehouses are managed by unscoped operators only
        raise NotFoundError("Warehouse not found")
    warehouse.deleted_at = utcnow()
    db.session.flush()
    return warehouse


def list_products_by_warehouse(warehouse_id: int, company_id: int | None = None) -> list[dict]:
    """
    Products holding a positive quantity at warehouse_id.

    Returns dicts with the warehouse quantity and the product's total quantity.
    """
    require_active_warehouse(warehouse_id, company_id)

    query = (
        db.session.query(Product)
        .join(ProductWarehouseInventory, ProductWarehouseInventory.product_id == Product.id)
        .filter(
            ProductWarehouseInventory.warehouse_id == warehouse_id,
            ProductWarehouseInventory.quantity > 0,
            active_filter(Product),
        )
    )
    if company_id is not None:
        query = query.filter(Product.company_id == company_id)

    products = query.order_by(Product.product_name.asc(), Product.id.asc()).all()
    return [
        {
            "id": product.id,
            "product_name": product.product_name,
            "product_code": product.product_code,
            "product_price_cents": product.product_price_cents,
            "warehouse_quantity": product.get_quantity(warehouse_id),
            "total_quantity": product.get_total_quantity(),
        }
        for product in products
    ]
