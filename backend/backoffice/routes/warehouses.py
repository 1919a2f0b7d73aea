# Overview: Flask API routes for warehouses; parses input and returns JSON responses.

# backend/backoffice/routes/warehouses.py
"""
Warehouse directory routes.

MULTI-TENANT: Company users see their own warehouses plus shared ones
(company_id NULL). New warehouses are created in the caller's company.
"""
from flask import Blueprint, request, g, current_app

from ..extensions import db
from ..decorators import require_auth
from ..services import warehouse_service
from ..validation import ValidationError, NotFoundError

warehouses_bp = Blueprint("warehouses", __name__, url_prefix="/api/warehouses")


@warehouses_bp.get("")
@require_auth
def list_warehouses():
    include_inactive = request.args.get("include_inactive", "").lower() in ("1", "true", "yes")
    warehouses = warehouse_service.list_warehouses(g.company_id, include_inactive=include_inactive)
    return {"items": [warehouse.to_dict() for warehouse in warehouses], "count": len(warehouses)}


@warehouses_bp.post("")
@require_auth
def create_warehouse_route():
    payload = request.get_json(silent=True) or {}

    try:
        warehouse = warehouse_service.create_warehouse(
            warehouse_name=payload.get("warehouse_name"),
            warehouse_address=payload.get("warehouse_address"),
            company_id=g.company_id,
            status=payload.get("status") or "active",
        )
        db.session.commit()
    except ValidationError as e:
        db.session.rollback()
        return {"error": str(e)}, 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create warehouse")
        return {"error": "Internal server error"}, 500

    return warehouse.to_dict(), 201


@warehouses_bp.get("/<int:warehouse_id>")
@require_auth
def get_warehouse_route(warehouse_id: int):
    try:
        warehouse = warehouse_service.require_active_warehouse(warehouse_id, g.company_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return warehouse.to_dict()


@warehouses_bp.delete("/<int:warehouse_id>")
@require_auth
def delete_warehouse_route(warehouse_id: int):
    try:
        warehouse = warehouse_service.soft_delete_warehouse(warehouse_id, g.company_id)
        db.session.commit()
    except NotFoundError as e:
        db.session.rollback()
        return {"error": str(e)}, 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete warehouse %s", warehouse_id)
        return {"error": "Internal server error"}, 500

    return {"message": "Warehouse deleted", "warehouse_id": warehouse.id}


@warehouses_bp.get("/<int:warehouse_id>/products")
@require_auth
def list_warehouse_products_route(warehouse_id: int):
    """Products holding stock at this warehouse."""
    try:
        items = warehouse_service.list_products_by_warehouse(warehouse_id, g.company_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"warehouse_id": warehouse_id, "items": items, "count": len(items)}
