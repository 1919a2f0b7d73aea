# Overview: Admin stock transfer page; form submit with flash messages and redirect.

# backend/backoffice/routes/admin.py
"""
Admin stock transfer page.

GET  renders the page model as JSON (no HTML templates): products with
     their ledgers, warehouses, the 20 most recent transfers, form defaults
     taken from the query string, and pending flash messages.
POST accepts the form, runs the transfer, flashes the outcome and
     redirects back to the page. On success only product_id is kept in the
     query string; on error every submitted input is kept.
"""
from flask import Blueprint, request, jsonify, g, current_app, flash, get_flashed_messages, redirect, url_for

from ..extensions import db
from ..decorators import require_auth
from ..services import stock_transfer_service
from ..services.products_service import list_products
from ..services.stock_transfer_service import Actor, StockTransferError
from ..services.warehouse_service import list_warehouses


admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

FORM_FIELDS = ("product_id", "from_warehouse_id", "to_warehouse_id", "quantity", "notes")


def _page_url(**params) -> str:
    return url_for(
        "admin.stock_transfer_page",
        **{key: value for key, value in params.items() if value not in (None, "")},
    )


@admin_bp.get("/products/stock-transfer")
@require_auth
def stock_transfer_page():
    try:
        products = list_products(g.company_id)
        warehouses = list_warehouses(g.company_id)
        recent = stock_transfer_service.get_recent_transfers(g.company_id)

        product_rows = [product.to_dict() for product in products]
        messages = {"success": [], "error": []}
        for category, message in get_flashed_messages(with_categories=True):
            messages.setdefault(category, []).append(message)

        return jsonify({
            "title": "Product Stock Transfer",
            "products": product_rows,
            "warehouses": [warehouse.to_dict() for warehouse in warehouses],
            "recent_transfers": [transfer.to_dict() for transfer in recent],
            "product_inventory_map": {
                str(row["id"]): row["warehouse_inventory"] for row in product_rows
            },
            "form_defaults": {field: request.args.get(field, "") for field in FORM_FIELDS},
            "messages": messages,
        }), 200

    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to load stock transfer page")
        return jsonify({"error": "Unable to load stock transfer page. Please try again."}), 500


@admin_bp.post("/products/stock-transfer")
@require_auth
def submit_stock_transfer():
    form = {field: request.form.get(field, "") for field in FORM_FIELDS}
    error_redirect = _page_url(**form)

    try:
        result = stock_transfer_service.transfer_stock(
            product_id=form["product_id"],
            from_warehouse_id=form["from_warehouse_id"],
            to_warehouse_id=form["to_warehouse_id"],
            quantity=form["quantity"],
            notes=form["notes"],
            actor=Actor(user_id=g.current_user.id, company_id=g.company_id),
        )
        db.session.commit()

    except StockTransferError as e:
        db.session.rollback()
        flash(" ".join(e.errors), "error")
        return redirect(error_redirect)
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Stock transfer form submit failed")
        flash(str(e) or "Unable to complete stock transfer. Please try again.", "error")
        return redirect(error_redirect)

    flash(result.message, "success")
    return redirect(_page_url(product_id=form["product_id"]))
