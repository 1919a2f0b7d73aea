# backend/backoffice/services/products_service.py
"""
Products Service with Multi-Tenant Support

MULTI-TENANT: every lookup is scoped to the caller's company (when the caller
has one) and to active (non-deleted) products.

CREATE is explicitly two-phase: the product is inserted and flushed to obtain
its id, then parent_product_id is pointed at itself for standalone products.
No persistence hook re-saves the row behind the caller's back.

LEDGER CHANGES made here (direct quantity operations, variant create/delete)
re-aggregate the parent so its ledger stays the sum of its live variants.
"""
from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Company, Product
from ..validation import (
    ValidationError,
    NotFoundError,
    ConflictError,
    InventoryEntryInput,
    coerce_int,
    parse_id,
    validate_product_payload,
)
from .aggregation_service import has_variants, recompute_parent_inventory, reaggregate_parent
from .barcode_service import generate_product_barcode
from .concurrency import lock_for_update, run_with_retry
from .tenant_service import active_filter, scoped_query
from .warehouse_service import get_active_warehouse, require_active_warehouse
from backoffice.time_utils import utcnow


PRODUCT_TYPE_SINGLE = "Single"
PRODUCT_TYPE_VARIABLE = "Variable"

QUANTITY_OPERATIONS = ("set", "increase", "decrease")


@dataclass(frozen=True)
class VariationInput:
    product_name: str
    quantity: int
    product_code: str | None = None
    product_price_cents: int | None = None
    product_description: str | None = None


def _product_query(company_id: int | None, *, lock: bool = False):
    query = scoped_query(Product, company_id)
    if lock:
        query = lock_for_update(query)
    return query


def find_active_product(product_id: int, company_id: int | None = None, *, lock: bool = False) -> Product | None:
    return _product_query(company_id, lock=lock).filter(Product.id == product_id).first()


def get_product(product_id: int, company_id: int | None = None, *, lock: bool = False) -> Product:
    product = find_active_product(product_id, company_id, lock=lock)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def list_products(company_id: int | None = None) -> list[Product]:
    return _product_query(company_id).order_by(Product.product_name.asc(), Product.id.asc()).all()


def _ensure_unique_code(product_code: str | None, company_id: int | None, exclude_id: int | None = None) -> None:
    if not product_code:
        return
    query = db.session.query(Product.id).filter(
        Product.product_code == product_code,
        Product.company_id.is_(None) if company_id is None else Product.company_id == company_id,
    )
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"Product code already exists: {product_code}")


def _apply_inventory(product: Product, inventory: list[InventoryEntryInput], company_id: int | None) -> None:
    for entry in inventory:
        if get_active_warehouse(entry.warehouse_id, company_id) is None:
            raise ValidationError(f"Warehouse {entry.warehouse_id} not found or inactive")
        product.set_quantity(entry.warehouse_id, entry.quantity)


def create_product(
    *,
    patch: dict,
    inventory: list[InventoryEntryInput] | None = None,
    company_id: int | None = None,
    actor_id: int | None = None,
) -> Product:
    """
    Create a single product, or a variant when patch carries parent_product_id.

    Phase 1 inserts the row to obtain its id; phase 2 sets
    parent_product_id = id for standalone products. Variants re-aggregate
    their parent before returning. Flushes, does not commit.
    """
    parent_id = patch.get("parent_product_id")
    product_type = patch.get("product_type") or (PRODUCT_TYPE_VARIABLE if parent_id else PRODUCT_TYPE_SINGLE)

    if parent_id is not None:
        if product_type != PRODUCT_TYPE_VARIABLE:
            raise ValidationError("Variants must have product_type 'Variable'")
        parent = find_active_product(parent_id, company_id)
        if parent is None:
            raise ValidationError("Parent product not found or inactive")
        if parent.is_variant or parent.product_type != PRODUCT_TYPE_VARIABLE:
            raise ValidationError("Parent product must be a 'Variable' product that is not itself a variant")
        if not has_variants(parent.id) and parent.get_total_quantity() > 0:
            # First variant: the parent ledger is about to become an aggregate
            raise ConflictError("Parent product holds its own stock; clear it before adding variants")

    _ensure_unique_code(patch.get("product_code"), company_id)

    product = Product(
        company_id=company_id,
        product_name=patch["product_name"],
        product_code=patch.get("product_code"),
        product_description=patch.get("product_description"),
        product_price_cents=patch.get("product_price_cents"),
        barcode=patch.get("barcode") or generate_product_barcode(),
        product_type=product_type,
        parent_product_id=parent_id,
        created_by=actor_id,
        updated_by=actor_id,
    )
    _apply_inventory(product, inventory or [], company_id)

    db.session.add(product)
    db.session.flush()

    if product.parent_product_id is None:
        product.parent_product_id = product.id
        db.session.flush()
    else:
        recompute_parent_inventory(product, actor_id=actor_id)

    return product


def create_variable_product(
    *,
    patch: dict,
    variations: list[VariationInput],
    opening_quantity: int = 0,
    warehouse_id: int | None = None,
    company_id: int | None = None,
    actor_id: int | None = None,
) -> tuple[Product, list[Product]]:
    """
    Create a parent product and its variants in one unit of work.

    Opening quantities are placed in warehouse_id, defaulting to the
    company's default warehouse. When variants are given, the parent's
    ledger is the aggregate of theirs.
    """
    if variations and opening_quantity:
        raise ValidationError("quantity must be set on each variation when variations are given")

    if warehouse_id is None and company_id is not None:
        company = db.session.query(Company).filter(
            Company.id == company_id,
            active_filter(Company),
        ).first()
        if company is None:
            raise NotFoundError("Company not found")
        warehouse_id = company.warehouse_id
    if warehouse_id is None:
        raise ValidationError("A default warehouse is required to create variable products")
    require_active_warehouse(warehouse_id, company_id)

    parent = create_product(
        patch={**patch, "product_type": PRODUCT_TYPE_VARIABLE, "parent_product_id": None},
        inventory=[InventoryEntryInput(warehouse_id=warehouse_id, quantity=opening_quantity)],
        company_id=company_id,
        actor_id=actor_id,
    )

    variants = []
    for variation in variations:
        variant = Product(
            company_id=company_id,
            product_name=variation.product_name,
            product_code=variation.product_code,
            product_description=variation.product_description,
            product_price_cents=variation.product_price_cents,
            barcode=generate_product_barcode(),
            product_type=PRODUCT_TYPE_VARIABLE,
            parent_product_id=parent.id,
            created_by=actor_id,
            updated_by=actor_id,
        )
        _ensure_unique_code(variation.product_code, company_id)
        variant.set_quantity(warehouse_id, variation.quantity)
        db.session.add(variant)
        db.session.flush()
        variants.append(variant)

    if variants:
        reaggregate_parent(parent.id, actor_id=actor_id)

    return parent, variants


def parse_variations(value) -> list[VariationInput]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError("variations must be a list")

    variations = []
    for index, raw in enumerate(value):
        if not isinstance(raw, dict):
            raise ValidationError(f"variations[{index}] must be an object")
        patch = validate_product_payload(raw)
        quantity = coerce_int(raw.get("quantity", 0), f"variations[{index}].quantity")
        if quantity < 0:
            raise ValidationError(f"variations[{index}].quantity cannot be negative")
        variations.append(VariationInput(
            product_name=patch["product_name"],
            quantity=quantity,
            product_code=patch.get("product_code"),
            product_price_cents=patch.get("product_price_cents"),
            product_description=patch.get("product_description"),
        ))
    return variations


def update_warehouse_quantity(
    *,
    product_id: int,
    warehouse_id,
    quantity,
    operation: str = "set",
    company_id: int | None = None,
    actor_id: int | None = None,
) -> Product:
    """
    Apply a direct ledger operation (set / increase / decrease).

    Raises:
        ValidationError: bad input, unknown operation, or a parent product
        NotFoundError: product (or, for set/increase, warehouse) missing
        WarehouseNotFoundError: decrease on a warehouse the ledger lacks
        InsufficientQuantityError: decrease below zero
    """
    if warehouse_id is None or quantity is None:
        raise ValidationError("warehouse_id and quantity are required")
    parsed_warehouse_id = parse_id(warehouse_id)
    if parsed_warehouse_id is None:
        raise ValidationError("warehouse_id is invalid")
    qty = coerce_int(quantity, "quantity")
    if qty < 0:
        raise ValidationError("Quantity cannot be negative")
    if operation not in QUANTITY_OPERATIONS:
        raise ValidationError("Invalid operation. Use 'set', 'increase', or 'decrease'")

    def _op():
        product = get_product(product_id, company_id, lock=True)
        if has_variants(product.id):
            raise ValidationError("Stock for a parent product is derived from its variants")

        if operation == "decrease":
            product.decrease(parsed_warehouse_id, qty)
        else:
            require_active_warehouse(parsed_warehouse_id, company_id)
            if operation == "set":
                product.set_quantity(parsed_warehouse_id, qty)
            else:
                product.increase(parsed_warehouse_id, qty)

        if actor_id is not None:
            product.updated_by = actor_id
        db.session.flush()

        recompute_parent_inventory(product, actor_id=actor_id)
        return product

    return run_with_retry(_op)


def get_product_inventory(product_id: int, company_id: int | None = None) -> dict:
    product = get_product(product_id, company_id)
    return {
        "product_id": product.id,
        "product_name": product.product_name,
        "warehouse_inventory": [entry.to_dict() for entry in product.warehouse_inventory],
        "total_quantity": product.get_total_quantity(),
    }


def check_warehouse_stock(product_id: int, warehouse_id, quantity=1, company_id: int | None = None) -> dict:
    parsed_warehouse_id = parse_id(warehouse_id)
    if parsed_warehouse_id is None:
        raise ValidationError("warehouse_id is required")
    requested = coerce_int(quantity if quantity is not None else 1, "quantity")

    product = get_product(product_id, company_id)
    return {
        "product_id": product.id,
        "product_name": product.product_name,
        "warehouse_id": parsed_warehouse_id,
        "available_quantity": product.get_quantity(parsed_warehouse_id),
        "requested_quantity": requested,
        "is_available": product.is_in_stock(parsed_warehouse_id, requested),
    }


def soft_delete_product(product_id: int, company_id: int | None = None, actor_id: int | None = None) -> Product:
    """
    Mark a product deleted. A variant's parent is re-aggregated without it.
    Parents with live variants cannot be deleted.
    """
    def _op():
        product = get_product(product_id, company_id, lock=True)
        if has_variants(product.id):
            raise ConflictError("Delete the variants of this product first")

        product.deleted_at = utcnow()
        if actor_id is not None:
            product.updated_by = actor_id
        db.session.flush()

        recompute_parent_inventory(product, actor_id=actor_id)
        return product

    return run_with_retry(_op)
