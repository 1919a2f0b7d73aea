# backend/backoffice/services/stock_transfer_service.py
"""
Stock transfer service.

Moves quantity of one product between two warehouses and records an
append-only StockTransfer with before/after balances.

SEQUENCE (one database transaction):
1. Validate input (all problems reported together, nothing touched)
2. Load product (row lock) and both warehouses; tenant + soft-delete checks
3. Check source balance >= quantity
4. Decrease source, increase destination, flush product (version check)
5. Re-aggregate the parent when the product is a variant, flush parent
6. Insert the StockTransfer record (status Completed)

The caller commits. Any exception before commit rolls back the ledger change,
the parent aggregate and the audit record together.

CONCURRENCY:
Product carries an optimistic version column and is read FOR UPDATE. A
concurrent transfer that committed first makes our flush raise
StaleDataError; run_with_retry rolls back and re-runs steps 2-6 against
fresh balances, so two transfers can never both spend the same stock.
"""
from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import StockTransfer, Product, TRANSFER_STATUS_COMPLETED
from ..validation import ValidationError, parse_id, parse_positive_int
from .aggregation_service import has_variants, recompute_parent_inventory
from .concurrency import run_with_retry
from .products_service import find_active_product
from .tenant_service import scoped_query
from .warehouse_service import get_active_warehouse


MSG_INVALID_PRODUCT = "Select a valid product."
MSG_INVALID_SOURCE = "Select a valid source warehouse."
MSG_INVALID_DESTINATION = "Select a valid destination warehouse."
MSG_INVALID_QUANTITY = "Transfer quantity must be greater than zero."
MSG_SAME_WAREHOUSE = "Source and destination warehouses must be different."
MSG_PRODUCT_NOT_FOUND = "Selected product was not found or is inactive."
MSG_SOURCE_NOT_FOUND = "Source warehouse was not found or is inactive."
MSG_DESTINATION_NOT_FOUND = "Destination warehouse was not found or is inactive."
MSG_PARENT_PRODUCT = "Stock for a parent product is derived from its variants. Transfer a variant instead."

RECENT_TRANSFERS_LIMIT = 20


class StockTransferError(Exception):
    """Transfer rejected before any mutation. Carries every problem found."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(" ".join(self.errors))


class TransferValidationError(StockTransferError):
    """Malformed or contradictory transfer input."""


class TransferNotFoundError(StockTransferError):
    """Product or warehouse missing, soft-deleted, or owned by another company."""


class InsufficientStockError(StockTransferError):
    """Source warehouse holds less than the requested quantity."""

    def __init__(self, warehouse_name: str, available: int, requested: int):
        self.warehouse_name = warehouse_name
        self.available = available
        self.requested = requested
        super().__init__([f"Insufficient quantity in {warehouse_name}. Available: {available}"])


@dataclass(frozen=True)
class Actor:
    """Who is acting, and the company scope of the action (None = unscoped)."""
    user_id: int | None = None
    company_id: int | None = None


@dataclass
class StockTransferResult:
    transfer: StockTransfer
    product: Product
    message: str


@dataclass(frozen=True)
class TransferRequest:
    product_id: int
    from_warehouse_id: int
    to_warehouse_id: int
    quantity: int
    notes: str | None


def _same_reference(left, right) -> bool:
    if left in (None, "") or right in (None, ""):
        return False
    left_id, right_id = parse_id(left), parse_id(right)
    if left_id is not None and right_id is not None:
        return left_id == right_id
    return str(left).strip() == str(right).strip()


def validate_transfer_request(
    product_id,
    from_warehouse_id,
    to_warehouse_id,
    quantity,
    notes=None,
) -> TransferRequest:
    """
    Syntactic validation. Collects every violation before raising.

    Raises:
        TransferValidationError: with one message per violated rule
    """
    errors = []

    parsed_product_id = parse_id(product_id)
    if parsed_product_id is None:
        errors.append(MSG_INVALID_PRODUCT)

    parsed_from_id = parse_id(from_warehouse_id)
    if parsed_from_id is None:
        errors.append(MSG_INVALID_SOURCE)

    parsed_to_id = parse_id(to_warehouse_id)
    if parsed_to_id is None:
        errors.append(MSG_INVALID_DESTINATION)

    parsed_quantity = parse_positive_int(quantity)
    if parsed_quantity is None:
        errors.append(MSG_INVALID_QUANTITY)

    if _same_reference(from_warehouse_id, to_warehouse_id):
        errors.append(MSG_SAME_WAREHOUSE)

    if errors:
        raise TransferValidationError(errors)

    if notes is not None:
        notes = str(notes).strip() or None

    return TransferRequest(
        product_id=parsed_product_id,
        from_warehouse_id=parsed_from_id,
        to_warehouse_id=parsed_to_id,
        quantity=parsed_quantity,
        notes=notes,
    )


def _transfer_message(quantity: int, source: str, destination: str) -> str:
    unit = "unit" if quantity == 1 else "units"
    return f"Moved {quantity} {unit} from {source} to {destination}."


def transfer_stock(
    *,
    product_id,
    from_warehouse_id,
    to_warehouse_id,
    quantity,
    notes=None,
    actor: Actor | None = None,
) -> StockTransferResult:
    """
    Move quantity of a product from one warehouse to another.

    Args:
        product_id: Product to move (single product or variant)
        from_warehouse_id: Source warehouse
        to_warehouse_id: Destination warehouse
        quantity: Positive integer (int or digit string)
        notes: Optional free text stored on the transfer record
        actor: Acting user and company scope

    Returns:
        StockTransferResult with the persisted (flushed, uncommitted)
        transfer record and the updated product

    Raises:
        TransferValidationError: malformed input (all problems listed)
        TransferNotFoundError: product or warehouse missing / inactive
        InsufficientStockError: source balance below quantity
    """
    actor = actor or Actor()

    try:
        request = validate_transfer_request(product_id, from_warehouse_id, to_warehouse_id, quantity, notes)
    except StockTransferError as exc:
        current_app.logger.warning("Stock transfer rejected: %s", exc.errors)
        raise

    def _op() -> StockTransferResult:
        product = find_active_product(request.product_id, actor.company_id, lock=True)
        if product is None:
            raise TransferNotFoundError([MSG_PRODUCT_NOT_FOUND])

        source = get_active_warehouse(request.from_warehouse_id, actor.company_id)
        if source is None:
            raise TransferNotFoundError([MSG_SOURCE_NOT_FOUND])

        destination = get_active_warehouse(request.to_warehouse_id, actor.company_id)
        if destination is None:
            raise TransferNotFoundError([MSG_DESTINATION_NOT_FOUND])

        if has_variants(product.id):
            raise TransferValidationError([MSG_PARENT_PRODUCT])

        from_balance_before = product.get_quantity(source.id)
        if from_balance_before < request.quantity:
            raise InsufficientStockError(source.warehouse_name, from_balance_before, request.quantity)
        to_balance_before = product.get_quantity(destination.id)

        product.decrease(source.id, request.quantity)
        product.increase(destination.id, request.quantity)
        if actor.user_id is not None:
            product.updated_by = actor.user_id
        db.session.flush()

        recompute_parent_inventory(product, actor_id=actor.user_id)

        transfer = StockTransfer(
            product_id=product.id,
            from_warehouse_id=source.id,
            to_warehouse_id=destination.id,
            quantity=request.quantity,
            notes=request.notes,
            transfer_status=TRANSFER_STATUS_COMPLETED,
            from_balance_before=from_balance_before,
            from_balance_after=from_balance_before - request.quantity,
            to_balance_before=to_balance_before,
            to_balance_after=to_balance_before + request.quantity,
            company_id=actor.company_id if actor.company_id is not None else product.company_id,
            created_by=actor.user_id,
            updated_by=actor.user_id,
        )
        db.session.add(transfer)
        db.session.flush()

        return StockTransferResult(
            transfer=transfer,
            product=product,
            message=_transfer_message(request.quantity, source.warehouse_name, destination.warehouse_name),
        )

    try:
        result = run_with_retry(_op)
    except StockTransferError as exc:
        current_app.logger.warning(
            "Stock transfer rejected for product %s: %s", request.product_id, exc.errors
        )
        raise

    current_app.logger.info(
        "Stock transfer %s: product %s, %s unit(s) warehouse %s -> %s (%s -> %s / %s -> %s)",
        result.transfer.reference_code,
        result.product.id,
        result.transfer.quantity,
        result.transfer.from_warehouse_id,
        result.transfer.to_warehouse_id,
        result.transfer.from_balance_before,
        result.transfer.from_balance_after,
        result.transfer.to_balance_before,
        result.transfer.to_balance_after,
    )
    return result


def _parse_filter_id(value, name: str) -> int | None:
    if value in (None, ""):
        return None
    parsed = parse_id(value)
    if parsed is None:
        raise ValidationError(f"Invalid {name} provided")
    return parsed


def _transfer_query(company_id: int | None):
    return scoped_query(StockTransfer, company_id).options(
        joinedload(StockTransfer.product),
        joinedload(StockTransfer.from_warehouse),
        joinedload(StockTransfer.to_warehouse),
    )


def list_stock_transfers(
    *,
    company_id: int | None = None,
    product_id=None,
    from_warehouse_id=None,
    to_warehouse_id=None,
    page=None,
    limit=None,
) -> dict:
    """
    Newest-first page of transfer records.

    Args:
        company_id: Tenant scope (None = all companies)
        product_id, from_warehouse_id, to_warehouse_id: Optional filters
        page: 1-indexed page (default 1)
        limit: Page size (default STOCK_TRANSFER_DEFAULT_LIMIT, max
            STOCK_TRANSFER_MAX_LIMIT)

    Returns:
        {"records", "total", "page", "limit", "has_next_page", "has_prev_page"}

    Raises:
        ValidationError: if a filter id is malformed
    """
    product_filter = _parse_filter_id(product_id, "product_id")
    from_filter = _parse_filter_id(from_warehouse_id, "from_warehouse_id")
    to_filter = _parse_filter_id(to_warehouse_id, "to_warehouse_id")

    default_limit = current_app.config.get("STOCK_TRANSFER_DEFAULT_LIMIT", 50)
    max_limit = current_app.config.get("STOCK_TRANSFER_MAX_LIMIT", 200)
    limit = min(parse_positive_int(limit) or default_limit, max_limit)
    page = parse_positive_int(page) or 1
    offset = (page - 1) * limit

    query = _transfer_query(company_id)
    if product_filter is not None:
        query = query.filter(StockTransfer.product_id == product_filter)
    if from_filter is not None:
        query = query.filter(StockTransfer.from_warehouse_id == from_filter)
    if to_filter is not None:
        query = query.filter(StockTransfer.to_warehouse_id == to_filter)

    total = query.order_by(None).count()
    records = (
        query.order_by(StockTransfer.created_at.desc(), StockTransfer.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )

    return {
        "records": records,
        "total": total,
        "page": page,
        "limit": limit,
        "has_next_page": offset + len(records) < total,
        "has_prev_page": page > 1,
    }


def get_recent_transfers(company_id: int | None = None, limit: int = RECENT_TRANSFERS_LIMIT) -> list[StockTransfer]:
    return (
        _transfer_query(company_id)
        .order_by(StockTransfer.created_at.desc(), StockTransfer.id.desc())
        .limit(limit)
        .all()
    )

