# backend/retail_inventory/routes/inventory.py
"""
Inventory routes: restock, manual adjustment and the read-only audit trail.

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- Date-range filters are inclusive on both ends.
"""
from datetime import timedelta

from flask import Blueprint, g, request

from ..services import audit_service, inventory_service, stock_service
from ..validation import (
    enforce_rules_adjust,
    enforce_rules_restock,
    parse_datetime_arg,
)
from ..exceptions import ValidationError
from ..decorators import handle_engine_errors, require_actor
from retail_inventory.time_utils import utcnow


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _change_response(change, product_id: int) -> dict:
    product = inventory_service.get_product(product_id)
    return {
        "movement": change.movement.to_dict(),
        "product": product.to_dict(),
        "alert": change.alert.to_dict() if change.alert else None,
        "resolved_alert": change.resolved_alert.to_dict() if change.resolved_alert else None,
    }


@inventory_bp.post("/restock")
@require_actor
@handle_engine_errors("restock product")
def restock_route():
    """
    Receive stock for a product.

    Body: product_id, quantity, reason?, supplier_id?, resolve_alerts?
    resolve_alerts overrides ALERT_AUTO_RESOLVE_ON_RESTOCK for this call.
    """
    data = enforce_rules_restock(request.get_json(silent=True) or {})
    change = stock_service.restock(actor_user_id=g.actor_id, **data)
    return _change_response(change, data["product_id"]), 201


@inventory_bp.post("/adjust")
@require_actor
@handle_engine_errors("adjust inventory")
def adjust_route():
    """Manual correction. Body: product_id, quantity_delta (non-zero), reason."""
    data = enforce_rules_adjust(request.get_json(silent=True) or {})
    change = stock_service.adjust(actor_user_id=g.actor_id, **data)
    return _change_response(change, data["product_id"]), 201


@inventory_bp.get("/<int:product_id>/movements")
@handle_engine_errors("list product movements")
def product_movements_route(product_id: int):
    inventory_service.get_product(product_id)
    limit = request.args.get("limit", type=int)
    movements = audit_service.query_by_product(product_id, limit=limit)
    return {"movements": [m.to_dict() for m in movements]}


@inventory_bp.get("/movements")
@handle_engine_errors("list movements")
def movements_route():
    """
    Audit trail, newest first.

    Query params (one filter at a time):
    - user_id: int
    - start / end: ISO-8601 datetimes (both required for a range)
    - limit: int (unfiltered listing only, default 200)
    """
    user_id = request.args.get("user_id", type=int)
    start = parse_datetime_arg(request.args.get("start"), "start")
    end = parse_datetime_arg(request.args.get("end"), "end")

    if user_id is not None:
        movements = audit_service.query_by_user(user_id)
    elif start is not None or end is not None:
        if start is None or end is None:
            raise ValidationError("start and end are both required for a date range")
        movements = audit_service.query_by_date_range(start, end)
    else:
        movements = audit_service.query_all(limit=request.args.get("limit", 200, type=int))
    return {"movements": [m.to_dict() for m in movements]}


@inventory_bp.get("/movements/summary")
@handle_engine_errors("summarize movements")
def movements_summary_route():
    """Totals over start..end (defaults to the last 24 hours)."""
    end = parse_datetime_arg(request.args.get("end"), "end") or utcnow()
    start = parse_datetime_arg(request.args.get("start"), "start") or (end - timedelta(days=1))
    summary = audit_service.summarize_movements(start, end)
    return {"start": start.isoformat(), "end": end.isoformat(), "summary": summary}
