"""
Parent aggregation.

A parent product's inventory ledger is derived data: for every warehouse it
holds the sum of its live (non-deleted) variants' quantities. It is
recomputed whenever a variant's ledger changes, and never mutated directly.

Warehouses whose total across all variants is zero are omitted. Each
aggregated entry carries the most recent last_updated of its contributors.
"""
from __future__ import annotations

from collections import OrderedDict

from flask import current_app

from ..extensions import db
from ..models import Product, ProductWarehouseInventory
from ..validation import ValidationError
from .concurrency import lock_for_update
from .tenant_service import active_filter
from backoffice.time_utils import utcnow


def resolve_parent_id(product: Product) -> int | None:
    """Parent id for a variant; None for single products and parents."""
    if product.parent_product_id is None or product.parent_product_id == product.id:
        return None
    return product.parent_product_id


def load_variants(parent_id: int) -> list[Product]:
    return (
        db.session.query(Product)
        .filter(
            Product.parent_product_id == parent_id,
            Product.id != parent_id,
            active_filter(Product),
        )
        .order_by(Product.id.asc())
        .all()
    )


def has_variants(product_id: int) -> bool:
    return (
        db.session.query(Product.id)
        .filter(
            Product.parent_product_id == product_id,
            Product.id != product_id,
            active_filter(Product),
        )
        .first()
        is not None
    )


def aggregate_variant_inventory(variants: list[Product]) -> "OrderedDict[int, dict]":
    """
    Sum variant ledgers per warehouse.

    Returns {warehouse_id: {"quantity": int, "last_updated": datetime}} in
    first-seen order, without zero totals.
    """
    totals: "OrderedDict[int, dict]" = OrderedDict()
    for variant in variants:
        for entry in variant.warehouse_inventory:
            record = totals.get(entry.warehouse_id)
            if record is None:
                record = {"quantity": 0, "last_updated": None}
                totals[entry.warehouse_id] = record
            record["quantity"] += entry.quantity or 0
            if entry.last_updated and (
                record["last_updated"] is None or entry.last_updated > record["last_updated"]
            ):
                record["last_updated"] = entry.last_updated

    now = utcnow()
    return OrderedDict(
        (warehouse_id, {"quantity": data["quantity"], "last_updated": data["last_updated"] or now})
        for warehouse_id, data in totals.items()
        if data["quantity"] != 0
    )


def _replace_ledger(parent: Product, aggregate: "OrderedDict[int, dict]") -> None:
    # Entries are rewritten in place: swapping the collection would INSERT the
    # new (product, warehouse) rows before DELETEing the old ones and trip the
    # unique constraint inside one flush.
    existing = {entry.warehouse_id: entry for entry in parent.warehouse_inventory}

    for warehouse_id, entry in existing.items():
        if warehouse_id not in aggregate:
            parent.warehouse_inventory.remove(entry)

    for warehouse_id, data in aggregate.items():
        entry = existing.get(warehouse_id)
        if entry is None:
            parent.warehouse_inventory.append(
                ProductWarehouseInventory(
                    warehouse_id=warehouse_id,
                    quantity=data["quantity"],
                    last_updated=data["last_updated"],
                )
            )
        else:
            entry.quantity = data["quantity"]
            entry.last_updated = data["last_updated"]

    parent.inventory_updated_at = utcnow()


def reaggregate_parent(parent_id: int, *, actor_id: int | None = None) -> Product | None:
    """
    Recompute and persist (flush) the ledger of parent_id from its variants.

    Returns the parent, or None when it does not exist.

    Raises:
        ValidationError: target is a single product or a variant
    """
    parent = lock_for_update(db.session.query(Product).filter(Product.id == parent_id)).first()
    if parent is None:
        return None
    if parent.is_variant or parent.product_type != "Variable":
        raise ValidationError(f"Product {parent_id} is not a parent product")

    variants = load_variants(parent_id)
    aggregate = aggregate_variant_inventory(variants)
    _replace_ledger(parent, aggregate)

    if actor_id is not None:
        parent.updated_by = actor_id

    db.session.flush()

    current_app.logger.info(
        "Re-aggregated parent product %s from %s variant(s): %s",
        parent_id,
        len(variants),
        {warehouse_id: data["quantity"] for warehouse_id, data in aggregate.items()},
    )
    return parent


def recompute_parent_inventory(product: Product, *, actor_id: int | None = None) -> Product | None:
    """
    Refresh the parent of product after product's ledger changed.

    No-op (returns None) for single products, parents, and dangling parent
    references.
    """
    parent_id = resolve_parent_id(product)
    if parent_id is None:
        return None
    return reaggregate_parent(parent_id, actor_id=actor_id)
