# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/backoffice/routes/products.py
"""
Product routes with multi-tenant support.

MULTI-TENANT: All product operations are scoped to the caller's company
(g.company_id, set by @require_auth).

Ledger reads and direct quantity operations live here; moving stock between
warehouses goes through /api/stock-transfer.
"""
from flask import Blueprint, request, g, current_app

from ..extensions import db
from ..decorators import require_auth
from ..services import products_service
from ..validation import (
    ValidationError,
    NotFoundError,
    ConflictError,
    WarehouseNotFoundError,
    InsufficientQuantityError,
    coerce_int,
    parse_id,
    parse_inventory_entries,
    validate_product_payload,
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _actor_id() -> int:
    return g.current_user.id


@products_bp.get("")
@require_auth
def list_products():
    products = products_service.list_products(g.company_id)
    return {"items": [product.to_dict() for product in products], "count": len(products)}


@products_bp.post("")
@require_auth
def create_product_route():
    """
    Create a single product or a variant.

    Request body: product fields plus optional
    "warehouse_inventory": [{"warehouse_id", "quantity"}, ...]
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_product_payload(payload)
        inventory = parse_inventory_entries(
            payload.get("warehouse_inventory", payload.get("warehouseInventory"))
        )
        product = products_service.create_product(
            patch=patch,
            inventory=inventory,
            company_id=g.company_id,
            actor_id=_actor_id(),
        )
        db.session.commit()
    except ConflictError as e:
        db.session.rollback()
        return {"error": str(e)}, 409
    except ValidationError as e:
        db.session.rollback()
        return {"error": str(e)}, 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return product.to_dict(), 201


@products_bp.post("/variations")
@require_auth
def create_variable_product_route():
    """
    Create a parent product with variants.

    Request body: parent product fields plus
    "variations": [{"product_name", "quantity", ...}, ...],
    optional "quantity" (parent opening quantity) and "warehouse_id"
    (defaults to the company's default warehouse).
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_product_payload(payload)
        variations = products_service.parse_variations(payload.get("variations"))
        opening_quantity = coerce_int(payload.get("quantity", 0), "quantity")
        if opening_quantity < 0:
            raise ValidationError("quantity cannot be negative")

        warehouse_id = None
        if payload.get("warehouse_id") not in (None, ""):
            warehouse_id = parse_id(payload["warehouse_id"])
            if warehouse_id is None:
                raise ValidationError("warehouse_id is invalid")

        parent, variants = products_service.create_variable_product(
            patch=patch,
            variations=variations,
            opening_quantity=opening_quantity,
            warehouse_id=warehouse_id,
            company_id=g.company_id,
            actor_id=_actor_id(),
        )
        db.session.commit()
    except ConflictError as e:
        db.session.rollback()
        return {"error": str(e)}, 409
    except ValidationError as e:
        db.session.rollback()
        return {"error": str(e)}, 400
    except NotFoundError as e:
        db.session.rollback()
        return {"error": str(e)}, 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create variable product")
        return {"error": "Internal server error"}, 500

    return {
        "product": parent.to_dict(),
        "variations": [variant.to_dict() for variant in variants],
    }, 201


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id, g.company_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return product.to_dict()


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    """
    Soft delete a product. A variant's parent is re-aggregated without it.
    """
    try:
        product = products_service.soft_delete_product(product_id, g.company_id, _actor_id())
        db.session.commit()
    except NotFoundError as e:
        db.session.rollback()
        return {"error": str(e)}, 404
    except ConflictError as e:
        db.session.rollback()
        return {"error": str(e)}, 409
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete product %s", product_id)
        return {"error": "Internal server error"}, 500

    return {"message": "Product deleted", "product_id": product.id}


@products_bp.patch("/<int:product_id>/warehouse-quantity")
@require_auth
def update_warehouse_quantity_route(product_id: int):
    """
    Direct ledger operation.

    Request body: {"warehouse_id", "quantity", "operation": "set"|"increase"|"decrease"}
    """
    payload = request.get_json(silent=True) or {}

    try:
        product = products_service.update_warehouse_quantity(
            product_id=product_id,
            warehouse_id=payload.get("warehouse_id", payload.get("warehouseId")),
            quantity=payload.get("quantity"),
            operation=payload.get("operation") or "set",
            company_id=g.company_id,
            actor_id=_actor_id(),
        )
        db.session.commit()
    except (ValidationError, InsufficientQuantityError, WarehouseNotFoundError) as e:
        db.session.rollback()
        return {"error": str(e)}, 400
    except NotFoundError as e:
        db.session.rollback()
        return {"error": str(e)}, 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update warehouse quantity for product %s", product_id)
        return {"error": "Internal server error"}, 500

    return {
        "message": "Warehouse quantity updated",
        "product": product.to_dict(),
    }


@products_bp.get("/<int:product_id>/warehouse-inventory")
@require_auth
def get_product_inventory_route(product_id: int):
    try:
        return products_service.get_product_inventory(product_id, g.company_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.get("/<int:product_id>/stock-check")
@require_auth
def check_stock_route(product_id: int):
    try:
        return products_service.check_warehouse_stock(
            product_id,
            request.args.get("warehouse_id"),
            request.args.get("quantity", 1),
            g.company_id,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
