# Overview: Flask API routes for the low-stock alert register; read queries, resolution and maintenance.

from flask import Blueprint, request

from ..services import alert_service
from ..exceptions import ValidationError
from ..decorators import handle_engine_errors, require_actor


alerts_bp = Blueprint("alerts", __name__, url_prefix="/api/alerts")


@alerts_bp.get("")
@handle_engine_errors("list alerts")
def list_alerts_route():
    """Unresolved alerts, newest first. ?product_id= lists that product's full history."""
    product_id = request.args.get("product_id", type=int)
    if product_id is not None:
        alerts = alert_service.list_for_product(product_id)
    else:
        alerts = alert_service.list_unresolved()
    return {"alerts": [a.to_dict() for a in alerts]}


@alerts_bp.get("/count")
@handle_engine_errors("count alerts")
def count_alerts_route():
    return {"unresolved": alert_service.count_unresolved()}


@alerts_bp.get("/<int:alert_id>")
@handle_engine_errors("get alert")
def get_alert_route(alert_id: int):
    return {"alert": alert_service.get_alert(alert_id).to_dict()}


@alerts_bp.post("/<int:alert_id>/resolve")
@require_actor
@handle_engine_errors("resolve alert")
def resolve_alert_route(alert_id: int):
    data = request.get_json(silent=True) or {}
    alert = alert_service.resolve(alert_id, note=data.get("note"))
    return {"alert": alert.to_dict()}


@alerts_bp.post("/scan")
@require_actor
@handle_engine_errors("scan stock levels")
def scan_route():
    created = alert_service.scan_all_products()
    return {"created": [a.to_dict() for a in created], "unresolved": alert_service.count_unresolved()}


@alerts_bp.delete("/resolved")
@require_actor
@handle_engine_errors("purge resolved alerts")
def purge_resolved_route():
    """Maintenance: permanently delete resolved alerts. Requires ?confirm=true."""
    if request.args.get("confirm", "false").lower() != "true":
        raise ValidationError("confirm=true is required to purge resolved alerts")
    return {"deleted": alert_service.purge_resolved()}
