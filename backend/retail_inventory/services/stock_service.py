# Overview: The one "ledger mutate -> audit append -> alert evaluate" path, plus restock, adjustment and deactivation.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import LowStockAlert, Product, StockMovement
from ..exceptions import InvalidState, ValidationError
from . import alert_service, audit_service, inventory_service
from .concurrency import critical_section

"""
Every quantity change in the system goes through apply_stock_change(), which always:
  1. mutates the stock ledger (inventory_service.adjust_quantity),
  2. appends exactly one audit row (audit_service.append_movement),
  3. re-evaluates the alert register for that product.
It never commits; callers wrap it in concurrency.critical_section() so the three
effects land (or roll back) together with whatever else the unit of work writes.
"""


@dataclass
class StockChange:
    movement: StockMovement
    alert: LowStockAlert | None = None
    resolved_alert: LowStockAlert | None = None


def apply_stock_change(
    *,
    product_id: int,
    delta: int,
    movement_type: str,
    actor_user_id: int | None,
    reason: str | None = None,
    related_id: int | None = None,
    resolve_alerts: bool = False,
) -> StockChange:
    previous, new = inventory_service.adjust_quantity(product_id, delta)

    movement = audit_service.append_movement(
        product_id=product_id,
        movement_type=movement_type,
        quantity_changed=delta,
        previous_quantity=previous,
        related_id=related_id,
        reason=reason,
        actor_user_id=actor_user_id,
    )

    product = db.session.get(Product, product_id)
    change = StockChange(movement=movement)
    if movement_type == "DEACTIVATION":
        # inactive products are out of low-stock scans; close what is open
        change.resolved_alert = alert_service.resolve_for_product(product_id, note="Product deactivated")
    elif delta < 0:
        change.alert = alert_service.evaluate(product)
    elif delta > 0:
        if resolve_alerts and new > product.min_stock:
            change.resolved_alert = alert_service.resolve_for_product(
                product_id, note=f"Resolved by {movement_type.lower()} to {new}"
            )
        # still low after a partial restock
        change.alert = alert_service.evaluate(product)
    return change


def restock(
    *,
    product_id: int,
    quantity: int,
    actor_user_id: int,
    reason: str | None = None,
    supplier_id: int | None = None,
    resolve_alerts: bool | None = None,
    timeout: float | None = None,
) -> StockChange:
    """
    Add received units. Open alerts are resolved only when the policy says so:
    resolve_alerts overrides ALERT_AUTO_RESOLVE_ON_RESTOCK for this call.
    """
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer for RESTOCK")
    if resolve_alerts is None:
        resolve_alerts = bool(current_app.config.get("ALERT_AUTO_RESOLVE_ON_RESTOCK", False))

    with critical_section([product_id], timeout=timeout):
        product = inventory_service.get_product(product_id)
        if not product.is_active:
            raise InvalidState(f"{product.name} is inactive", details={"product_id": product_id})
        change = apply_stock_change(
            product_id=product_id,
            delta=quantity,
            movement_type="RESTOCK",
            actor_user_id=actor_user_id,
            reason=reason or "Restock",
            related_id=supplier_id,
            resolve_alerts=resolve_alerts,
        )
    current_app.logger.info("Restocked product %s by %s", product_id, quantity)
    return change


def adjust(
    *,
    product_id: int,
    quantity_delta: int,
    actor_user_id: int,
    reason: str,
    timeout: float | None = None,
) -> StockChange:
    """Manual correction (count differences, damage, shrink). Never resolves alerts."""
    if not isinstance(quantity_delta, int) or isinstance(quantity_delta, bool) or quantity_delta == 0:
        raise ValidationError("quantity_delta must be a non-zero integer for ADJUSTMENT")
    if not reason or not reason.strip():
        raise ValidationError("reason is required for ADJUSTMENT")

    with critical_section([product_id], timeout=timeout):
        product = inventory_service.get_product(product_id)
        if not product.is_active:
            raise InvalidState(f"{product.name} is inactive", details={"product_id": product_id})
        change = apply_stock_change(
            product_id=product_id,
            delta=quantity_delta,
            movement_type="ADJUSTMENT",
            actor_user_id=actor_user_id,
            reason=reason.strip(),
        )
    current_app.logger.info("Adjusted product %s by %s: %s", product_id, quantity_delta, reason)
    return change


def deactivate_product(
    *,
    product_id: int,
    actor_user_id: int,
    reason: str | None = None,
    timeout: float | None = None,
) -> StockChange:
    """
    Soft-delete a product. Records a zero-delta DEACTIVATION movement so the audit
    trail shows when the product left the catalogue.
    """
    with critical_section([product_id], timeout=timeout):
        product = inventory_service.get_product(product_id)
        if not product.is_active:
            raise InvalidState(f"{product.name} is already inactive", details={"product_id": product_id})
        product.is_active = False
        db.session.flush()
        change = apply_stock_change(
            product_id=product_id,
            delta=0,
            movement_type="DEACTIVATION",
            actor_user_id=actor_user_id,
            reason=reason or "Product deactivated",
        )
    return change
