# Overview: Flask API routes for sales; builds carts from JSON and hands them to the SaleProcessor.

# backend/retail_inventory/routes/sales.py
"""Sales API routes"""

from datetime import timedelta

from flask import Blueprint, current_app, request

from ..services import sales_service
from ..validation import coerce_int, parse_date_arg, parse_datetime_arg
from ..exceptions import ValidationError
from ..decorators import handle_engine_errors, require_actor
from retail_inventory.time_utils import utcnow


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _processor() -> sales_service.SaleProcessor:
    return current_app.extensions["sale_processor"]


@sales_bp.post("/checkout")
@require_actor
@handle_engine_errors("process sale")
def checkout_route():
    """
    Commit a cart in one call.

    Body:
    - items: [{"product_id": int, "quantity": int}, ...] (same product twice is merged)
    - discount_percent: number 0..100 (optional)
    - discount_cents: int 0..subtotal (optional, exclusive with discount_percent)
    - payment_method: CASH | CARD | MOBILE | OTHER (default CASH)
    - notes: str (optional)
    """
    data = request.get_json(silent=True) or {}
    items = data.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    lines = [
        {
            "product_id": coerce_int(item.get("product_id"), "product_id"),
            "quantity": coerce_int(item.get("quantity"), "quantity"),
        }
        if isinstance(item, dict) else item
        for item in items
    ]
    discount_cents = data.get("discount_cents")
    cart = _processor().build_cart(
        lines,
        payment_method=data.get("payment_method") or "CASH",
        notes=data.get("notes"),
        discount_percent=data.get("discount_percent"),
        discount_cents=coerce_int(discount_cents, "discount_cents") if discount_cents is not None else None,
    )
    sale = _processor().process_sale(cart)
    return {"sale": sale.to_dict()}, 201


@sales_bp.post("/quick")
@require_actor
@handle_engine_errors("process quick sale")
def quick_sale_route():
    """Single-product sale. Body: product_id, quantity, payment_method?"""
    data = request.get_json(silent=True) or {}
    if "product_id" not in data or "quantity" not in data:
        raise ValidationError("product_id and quantity required")

    sale = _processor().quick_sale(
        coerce_int(data["product_id"], "product_id"),
        coerce_int(data["quantity"], "quantity"),
        payment_method=data.get("payment_method") or "CASH",
        notes=data.get("notes"),
    )
    return {"sale": sale.to_dict()}, 201


@sales_bp.get("/<int:sale_id>")
@handle_engine_errors("get sale")
def get_sale_route(sale_id: int):
    sale = sales_service.get_sale(sale_id)
    return {"sale": sale.to_dict()}


@sales_bp.get("/receipt/<receipt_number>")
@handle_engine_errors("get sale by receipt")
def get_sale_by_receipt_route(receipt_number: str):
    sale = sales_service.get_sale_by_receipt(receipt_number)
    return {"sale": sale.to_dict()}


@sales_bp.get("")
@handle_engine_errors("list sales")
def list_sales_route():
    """Completed sales. Query params: start, end (ISO-8601), user_id, limit."""
    sales = sales_service.list_sales(
        start=parse_datetime_arg(request.args.get("start"), "start"),
        end=parse_datetime_arg(request.args.get("end"), "end"),
        user_id=request.args.get("user_id", type=int),
        limit=request.args.get("limit", 200, type=int),
    )
    return {"sales": [s.to_dict(include_items=False) for s in sales]}


@sales_bp.get("/statistics")
@handle_engine_errors("compute sales statistics")
def statistics_route():
    """Statistics for whole days start_date..end_date (YYYY-MM-DD, default today)."""
    today = utcnow().date()
    start_date = parse_date_arg(request.args.get("start_date"), "start_date", today)
    end_date = parse_date_arg(request.args.get("end_date"), "end_date", today)
    if end_date - start_date > timedelta(days=366):
        raise ValidationError("date range cannot exceed one year")
    return sales_service.get_sales_statistics(start_date, end_date)
