# Overview: Flask API routes for stock transfers; parses input and returns JSON responses.

# backend/backoffice/routes/stock_transfers.py
"""
Stock transfer JSON API.

POST /api/stock-transfer   move quantity between two warehouses
GET  /api/stock-transfers  paginated transfer history

Request bodies accept snake_case or camelCase keys.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..decorators import require_auth
from ..services import stock_transfer_service
from ..services.stock_transfer_service import Actor, StockTransferError
from ..validation import ValidationError


stock_transfers_bp = Blueprint("stock_transfers", __name__, url_prefix="/api")


def _pick(data: dict, *keys):
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def current_actor() -> Actor:
    return Actor(user_id=g.current_user.id, company_id=g.company_id)


@stock_transfers_bp.post("/stock-transfer")
@require_auth
def create_stock_transfer():
    """
    Transfer stock between warehouses.

    Request body:
    {
        "product_id" | "productId": int,
        "from_warehouse_id" | "fromWarehouseId": int,
        "to_warehouse_id" | "toWarehouseId": int,
        "quantity": int,
        "notes": str (optional)
    }

    Returns:
        201: {"success": true, "message", "data": {"transfer", "product"}}
        400: {"success": false, "message", "errors": [...]}
        500: {"success": false, "message"}
    """
    data = request.get_json(silent=True) or {}

    try:
        result = stock_transfer_service.transfer_stock(
            product_id=_pick(data, "product_id", "productId"),
            from_warehouse_id=_pick(data, "from_warehouse_id", "fromWarehouseId"),
            to_warehouse_id=_pick(data, "to_warehouse_id", "toWarehouseId"),
            quantity=data.get("quantity"),
            notes=data.get("notes"),
            actor=current_actor(),
        )
        db.session.commit()

        return jsonify({
            "success": True,
            "message": result.message,
            "data": {
                "transfer": result.transfer.to_dict(),
                "product": result.product.to_dict(),
            },
        }), 201

    except StockTransferError as e:
        db.session.rollback()
        return jsonify({
            "success": False,
            "message": "Unable to complete stock transfer",
            "errors": e.errors,
        }), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Stock transfer failed")
        return jsonify({"success": False, "message": str(e) or "Internal server error"}), 500


@stock_transfers_bp.get("/stock-transfers")
@require_auth
def list_stock_transfers():
    """
    List transfer records, newest first.

    Query params: product_id, from_warehouse_id, to_warehouse_id, page, limit

    Returns:
        200: {"success": true, "data": [...], "pagination": {...}}
        400: {"success": false, "message": "Invalid <field> provided"}
    """
    try:
        page = stock_transfer_service.list_stock_transfers(
            company_id=g.company_id,
            product_id=request.args.get("product_id"),
            from_warehouse_id=request.args.get("from_warehouse_id"),
            to_warehouse_id=request.args.get("to_warehouse_id"),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
        )
    except ValidationError as e:
        return jsonify({"success": False, "message": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Failed to list stock transfers")
        return jsonify({"success": False, "message": str(e) or "Internal server error"}), 500

    return jsonify({
        "success": True,
        "data": [record.to_dict() for record in page["records"]],
        "pagination": {
            "total": page["total"],
            "page": page["page"],
            "limit": page["limit"],
            "hasNextPage": page["has_next_page"],
            "hasPrevPage": page["has_prev_page"],
        },
    }), 200
