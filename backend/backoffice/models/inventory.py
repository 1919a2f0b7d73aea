from __future__ import annotations

import random
from datetime import datetime

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from ..extensions import db
from ..validation import (
    ValidationError,
    WarehouseNotFoundError,
    InsufficientQuantityError,
)
from backoffice.time_utils import to_utc_z, utcnow, epoch_millis


class Warehouse(db.Model):
    """
    Stock location referenced by product inventory ledgers.

    MULTI-TENANT: company_id NULL means the warehouse is shared by every
    company. Soft-deleted via deleted_at; never hard-deleted.
    """
    __tablename__ = "warehouses"
    __table_args__ = (
        db.Index("ix_warehouses_company_name", "company_id", "warehouse_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=True, index=True)

    warehouse_name = db.Column(db.String(255), nullable=False)
    warehouse_address = db.Column(db.String(500), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="active")
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    company = db.relationship("Company", foreign_keys=[company_id], backref=db.backref("warehouses", lazy=True))

    def __repr__(self) -> str:
        return f"<Warehouse id={self.id} name={self.warehouse_name!r} company_id={self.company_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "warehouse_name": self.warehouse_name,
            "warehouse_address": self.warehouse_address,
            "status": self.status,
            "deleted_at": to_utc_z(self.deleted_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductWarehouseInventory(db.Model):
    """
    One ledger entry: quantity of a product held at one warehouse.

    At most one entry per (product, warehouse); quantity never negative.
    """
    __tablename__ = "product_warehouse_inventory"
    __table_args__ = (
        db.UniqueConstraint("product_id", "warehouse_id", name="uq_inventory_product_warehouse"),
        db.CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    last_updated = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    warehouse = db.relationship("Warehouse")

    def to_dict(self) -> dict:
        return {
            "warehouse_id": self.warehouse_id,
            "warehouse_name": self.warehouse.warehouse_name if self.warehouse else "Unknown Warehouse",
            "quantity": self.quantity,
            "last_updated": to_utc_z(self.last_updated),
        }


class Product(db.Model):
    """
    Product master data with an embedded per-warehouse inventory ledger.

    PARENT / VARIANT:
    - Single products and parent products point parent_product_id at themselves.
    - Variants (product_type='Variable') point parent_product_id at their parent.
    - A parent's ledger is always the aggregate of its live variants' ledgers
      (see aggregation_service); it is never mutated by a transfer directly.

    CONCURRENCY:
    version_id is the optimistic version column. Every ledger mutation
    touches inventory_updated_at so the product row is rewritten (and its
    version checked) whenever any of its entries change.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("company_id", "product_code", name="uq_products_company_code"),
        db.Index("ix_products_company_name", "company_id", "product_name"),
        db.Index("ix_products_parent", "parent_product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=True, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    product_code = db.Column(db.String(64), nullable=True)
    product_description = db.Column(db.Text, nullable=True)
    product_price_cents = db.Column(db.Integer, nullable=True)
    barcode = db.Column(db.String(13), nullable=True, index=True)

    product_type = db.Column(db.String(16), nullable=False, default="Single")
    # Nullable only between the two phases of create_product
    parent_product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    inventory_updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    warehouse_inventory = db.relationship(
        "ProductWarehouseInventory",
        order_by="ProductWarehouseInventory.id",
        cascade="all, delete-orphan",
        backref=db.backref("product"),
    )
    parent = db.relationship("Product", remote_side=[id], foreign_keys=[parent_product_id])

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.product_name!r} type={self.product_type}>"

    # ------------------------------------------------------------------
    # Inventory ledger
    # ------------------------------------------------------------------

    def _find_entry(self, warehouse_id: int) -> ProductWarehouseInventory | None:
        for entry in self.warehouse_inventory:
            if entry.warehouse_id == int(warehouse_id):
                return entry
        return None

    def _touch_inventory(self, now: datetime) -> None:
        self.inventory_updated_at = now

    def get_quantity(self, warehouse_id: int) -> int:
        entry = self._find_entry(warehouse_id)
        return entry.quantity if entry else 0

    def set_quantity(self, warehouse_id: int, quantity: int) -> ProductWarehouseInventory:
        """Upsert the entry for warehouse_id with an absolute quantity."""
        if quantity < 0:
            raise ValidationError("Quantity cannot be negative")

        now = utcnow()
        entry = self._find_entry(warehouse_id)
        if entry is None:
            entry = ProductWarehouseInventory(warehouse_id=int(warehouse_id), quantity=quantity, last_updated=now)
            self.warehouse_inventory.append(entry)
        else:
            entry.quantity = quantity
            entry.last_updated = now
        self._touch_inventory(now)
        return entry

    def increase(self, warehouse_id: int, quantity: int) -> ProductWarehouseInventory:
        """
        Add quantity at warehouse_id, creating the entry when absent.

        Callers validate quantity >= 0.
        """
        now = utcnow()
        entry = self._find_entry(warehouse_id)
        if entry is None:
            entry = ProductWarehouseInventory(warehouse_id=int(warehouse_id), quantity=quantity, last_updated=now)
            self.warehouse_inventory.append(entry)
        else:
            entry.quantity = entry.quantity + quantity
            entry.last_updated = now
        self._touch_inventory(now)
        return entry

    def decrease(self, warehouse_id: int, quantity: int) -> ProductWarehouseInventory:
        """
        Remove quantity at warehouse_id.

        Raises:
            WarehouseNotFoundError: no entry for warehouse_id
            InsufficientQuantityError: entry holds less than quantity
        """
        entry = self._find_entry(warehouse_id)
        if entry is None:
            raise WarehouseNotFoundError(warehouse_id)
        if entry.quantity < quantity:
            raise InsufficientQuantityError(warehouse_id, available=entry.quantity, requested=quantity)

        now = utcnow()
        entry.quantity = entry.quantity - quantity
        entry.last_updated = now
        self._touch_inventory(now)
        return entry

    def get_total_quantity(self) -> int:
        return sum(entry.quantity for entry in self.warehouse_inventory)

    def is_in_stock(self, warehouse_id: int, required_quantity: int = 1) -> bool:
        return self.get_quantity(warehouse_id) >= required_quantity

    def inventory_snapshot(self) -> dict[int, int]:
        return {entry.warehouse_id: entry.quantity for entry in self.warehouse_inventory}

    # ------------------------------------------------------------------

    @property
    def is_variant(self) -> bool:
        return self.parent_product_id is not None and self.parent_product_id != self.id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "product_name": self.product_name,
            "product_code": self.product_code,
            "product_description": self.product_description,
            "product_price_cents": self.product_price_cents,
            "barcode": self.barcode,
            "product_type": self.product_type,
            "parent_product_id": self.parent_product_id,
            "warehouse_inventory": [entry.to_dict() for entry in self.warehouse_inventory],
            "total_quantity": self.get_total_quantity(),
            "deleted_at": to_utc_z(self.deleted_at),
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


TRANSFER_STATUS_PENDING = "Pending"
TRANSFER_STATUS_COMPLETED = "Completed"
TRANSFER_STATUS_FAILED = "Failed"

TRANSFER_STATUSES = (TRANSFER_STATUS_PENDING, TRANSFER_STATUS_COMPLETED, TRANSFER_STATUS_FAILED)


def generate_reference_code() -> str:
    """ST-<epoch-ms>-<4 digits>."""
    return f"ST-{epoch_millis()}-{random.randint(1000, 9999)}"


class StockTransfer(db.Model):
    """
    Append-only audit record of one stock movement between two warehouses.

    INVARIANTS:
    - from_balance_after = from_balance_before - quantity
    - to_balance_after = to_balance_before + quantity
    - Never updated after insert (only the soft-delete marker may be set)
      and never hard-deleted.
    """
    __tablename__ = "stock_transfers"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_transfers_quantity_positive"),
        db.Index("ix_stock_transfers_company_created", "company_id", "created_at"),
        db.Index("ix_stock_transfers_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    from_warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)
    to_warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)

    transfer_status = db.Column(db.String(16), nullable=False, default=TRANSFER_STATUS_COMPLETED)
    transfer_date = db.Column(db.DateTime(timezone=True), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    reference_code = db.Column(db.String(32), nullable=False, index=True)
    failure_reason = db.Column(db.String(500), nullable=True)

    from_balance_before = db.Column(db.Integer, nullable=True)
    from_balance_after = db.Column(db.Integer, nullable=True)
    to_balance_before = db.Column(db.Integer, nullable=True)
    to_balance_after = db.Column(db.Integer, nullable=True)

    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=True, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    product = db.relationship("Product")
    from_warehouse = db.relationship("Warehouse", foreign_keys=[from_warehouse_id])
    to_warehouse = db.relationship("Warehouse", foreign_keys=[to_warehouse_id])

    def __repr__(self) -> str:
        return (
            f"<StockTransfer id={self.id} ref={self.reference_code!r} product_id={self.product_id} "
            f"{self.from_warehouse_id}->{self.to_warehouse_id} qty={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reference_code": self.reference_code,
            "product_id": self.product_id,
            "product": {
                "id": self.product.id,
                "product_name": self.product.product_name,
                "product_code": self.product.product_code,
            } if self.product else None,
            "from_warehouse_id": self.from_warehouse_id,
            "from_warehouse": {
                "id": self.from_warehouse.id,
                "warehouse_name": self.from_warehouse.warehouse_name,
            } if self.from_warehouse else None,
            "to_warehouse_id": self.to_warehouse_id,
            "to_warehouse": {
                "id": self.to_warehouse.id,
                "warehouse_name": self.to_warehouse.warehouse_name,
            } if self.to_warehouse else None,
            "quantity": self.quantity,
            "transfer_status": self.transfer_status,
            "transfer_date": to_utc_z(self.transfer_date),
            "notes": self.notes,
            "failure_reason": self.failure_reason,
            "from_balance_before": self.from_balance_before,
            "from_balance_after": self.from_balance_after,
            "to_balance_before": self.to_balance_before,
            "to_balance_after": self.to_balance_after,
            "company_id": self.company_id,
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "created_at": to_utc_z(self.created_at),
        }


class StockTransferImmutableError(Exception):
    """Raised when code tries to rewrite or delete a transfer record."""


# Soft delete bookkeeping is the only permitted change to a persisted record
_STOCK_TRANSFER_MUTABLE_FIELDS = {"deleted_at", "updated_at", "updated_by"}


@event.listens_for(StockTransfer, "before_insert")
def _fill_transfer_defaults(mapper, connection, target):
    if not target.reference_code:
        target.reference_code = generate_reference_code()
    if target.transfer_date is None:
        target.transfer_date = utcnow()


@event.listens_for(StockTransfer, "before_update")
def _block_transfer_update(mapper, connection, target):
    for column in mapper.column_attrs:
        if column.key in _STOCK_TRANSFER_MUTABLE_FIELDS:
            continue
        if get_history(target, column.key).has_changes():
            raise StockTransferImmutableError(
                f"Stock transfer {target.reference_code} is immutable (attempted change to {column.key})"
            )


@event.listens_for(StockTransfer, "before_delete")
def _block_transfer_delete(mapper, connection, target):
    raise StockTransferImmutableError(
        f"Stock transfer {target.reference_code} cannot be deleted; set deleted_at instead"
    )
