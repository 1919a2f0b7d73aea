from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(LookupError):
    """Referenced record is missing or soft-deleted."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate product code)."""


class WarehouseNotFoundError(NotFoundError):
    """Ledger has no entry for the requested warehouse."""

    def __init__(self, warehouse_id: Any):
        self.warehouse_id = warehouse_id
        super().__init__(f"Warehouse not found in product inventory: {warehouse_id}")


class InsufficientQuantityError(ValueError):
    """Ledger entry holds less than the requested quantity."""

    def __init__(self, warehouse_id: Any, available: int, requested: int):
        self.warehouse_id = warehouse_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient quantity in warehouse {warehouse_id}. "
            f"Available: {available}, requested: {requested}"
        )


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for request input.

    Accepts ints (not bools) and plain digit strings with an optional sign.
    Rejects floats, decimals and scientific notation.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def parse_id(value: Any) -> int | None:
    """
    Parse a record identifier.

    Identifiers are positive integers, given either as int or as a string of
    ASCII digits. Returns None for anything else.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isascii() and stripped.isdigit():
            parsed = int(stripped)
            return parsed if parsed > 0 else None
    return None


def parse_positive_int(value: Any) -> int | None:
    """Returns the integer value if it is > 0, otherwise None."""
    if value is None:
        return None
    try:
        parsed = coerce_int(value, "value")
    except ValidationError:
        return None
    return parsed if parsed > 0 else None


@dataclass(frozen=True)
class InventoryEntryInput:
    warehouse_id: int
    quantity: int


def parse_inventory_entries(value: Any) -> list[InventoryEntryInput]:
    """
    Normalize warehouse inventory input into typed entries.

    Accepts a list of {"warehouse_id" | "warehouseId", "quantity"} mappings or a
    single mapping. Quantities must be non-negative integers and each warehouse
    may appear at most once.
    """
    if value is None:
        return []
    if isinstance(value, dict):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ValidationError("warehouse_inventory must be a list")

    entries: list[InventoryEntryInput] = []
    seen: set[int] = set()
    for index, raw in enumerate(value):
        if not isinstance(raw, dict):
            raise ValidationError(f"warehouse_inventory[{index}] must be an object")

        warehouse_id = parse_id(raw.get("warehouse_id", raw.get("warehouseId")))
        if warehouse_id is None:
            raise ValidationError(f"warehouse_inventory[{index}].warehouse_id is invalid")

        quantity = coerce_int(raw.get("quantity", 0), f"warehouse_inventory[{index}].quantity")
        if quantity < 0:
            raise ValidationError(f"warehouse_inventory[{index}].quantity cannot be negative")

        if warehouse_id in seen:
            raise ValidationError(f"warehouse_inventory lists warehouse {warehouse_id} more than once")
        seen.add(warehouse_id)

        entries.append(InventoryEntryInput(warehouse_id=warehouse_id, quantity=quantity))

    return entries


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

PRODUCT_TYPES = ("Single", "Variable")


def validate_product_payload(payload: Any, *, partial: bool = False) -> dict:
    """
    Validates + normalizes incoming product JSON.

    Returns a cleaned patch dict with only writable fields. The inventory list
    is parsed separately by parse_inventory_entries.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        name = payload.get("product_name")
        if name is None or str(name).strip() == "":
            raise ValidationError("Missing required fields: product_name")

    patch: dict = {}

    for key, max_len in (("product_name", 255), ("product_code", 64), ("barcode", 13)):
        if key in payload and payload[key] is not None:
            val = str(payload[key]).strip()
            if len(val) > max_len:
                raise ValidationError(f"{key} exceeds max length {max_len}")
            patch[key] = val or None

    if "product_description" in payload:
        desc = payload["product_description"]
        patch["product_description"] = str(desc).strip() if desc is not None else None

    if payload.get("product_price_cents") is not None:
        price = coerce_int(payload["product_price_cents"], "product_price_cents")
        if price < 0:
            raise ValidationError("product_price_cents must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"product_price_cents cannot exceed {MAX_PRICE_CENTS}")
        patch["product_price_cents"] = price

    if "product_type" in payload and payload["product_type"] is not None:
        product_type = str(payload["product_type"]).strip()
        if product_type not in PRODUCT_TYPES:
            raise ValidationError(f"product_type must be one of: {', '.join(PRODUCT_TYPES)}")
        patch["product_type"] = product_type

    if "parent_product_id" in payload and payload["parent_product_id"] not in (None, ""):
        parent_id = parse_id(payload["parent_product_id"])
        if parent_id is None:
            raise ValidationError("parent_product_id is invalid")
        patch["parent_product_id"] = parent_id

    return patch
