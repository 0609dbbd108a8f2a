# Overview: Low-stock alert register; de-duplicated triggering, resolution and maintenance.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import LowStockAlert, Product
from ..exceptions import NotFound
from retail_inventory.time_utils import utcnow
from .concurrency import critical_section, store_transaction
"""
Alert Register Invariants (authoritative)

- At most one unresolved alert per product. trigger() checks before creating and is
  always called under the product's critical section (see stock_service).
- An alert is due when an active product has quantity <= min_stock.
- Resolution is explicit (resolve) or, when the restock policy asks for it,
  resolve_for_product() once quantity is back above the threshold.
- Resolved alerts are history; only purge_resolved() removes them.
"""

MIN_REORDER_QUANTITY = 10


def has_unresolved(product_id: int) -> bool:
    return (
        db.session.query(LowStockAlert.id)
        .filter_by(product_id=product_id, is_resolved=False)
        .first()
        is not None
    )


def trigger(product_id: int, current_qty: int, threshold: int) -> LowStockAlert | None:
    """Create an unresolved alert unless one is already open. No commit."""
    if has_unresolved(product_id):
        return None

    alert = LowStockAlert(
        product_id=product_id,
        current_quantity=current_qty,
        min_stock_level=threshold,
        alert_date=utcnow(),
        is_resolved=False,
    )
    db.session.add(alert)
    db.session.flush()
    current_app.logger.warning(
        "Low stock alert %s: product %s at %s (min %s)",
        alert.id, product_id, current_qty, threshold,
    )
    return alert


def should_alert(product: Product) -> bool:
    return bool(product.is_active) and product.quantity <= product.min_stock


def evaluate(product: Product) -> LowStockAlert | None:
    """Trigger an alert for product if it is due. Returns the new alert, if any."""
    if not should_alert(product):
        return None
    return trigger(product.id, product.quantity, product.min_stock)


def _close(alert: LowStockAlert, note: str | None) -> None:
    alert.is_resolved = True
    alert.resolved_at = utcnow()
    alert.resolution_note = note


def resolve_for_product(product_id: int, note: str | None = None) -> LowStockAlert | None:
    """Resolve the product's open alert, if there is one. No commit."""
    alert = (
        db.session.query(LowStockAlert)
        .filter_by(product_id=product_id, is_resolved=False)
        .first()
    )
    if alert is None:
        return None
    _close(alert, note)
    db.session.flush()
    return alert


def resolve(alert_id: int, note: str | None = None) -> LowStockAlert:
    """
    Manually acknowledge an alert.

    Raises NotFound for unknown ids and for alerts that are already resolved.
    """
    alert = db.session.get(LowStockAlert, alert_id)
    if alert is None or alert.is_resolved:
        raise NotFound(
            f"No open alert with id {alert_id}",
            details={"alert_id": alert_id},
        )

    with critical_section([alert.product_id]):
        alert = (
            db.session.query(LowStockAlert)
            .filter_by(id=alert_id)
            .populate_existing()
            .one()
        )
        if alert.is_resolved:
            raise NotFound(f"No open alert with id {alert_id}", details={"alert_id": alert_id})
        _close(alert, note or "Acknowledged")
    return alert


def get_alert(alert_id: int) -> LowStockAlert:
    alert = db.session.get(LowStockAlert, alert_id)
    if alert is None:
        raise NotFound(f"Alert {alert_id} not found", details={"alert_id": alert_id})
    return alert


def list_unresolved() -> list[LowStockAlert]:
    return (
        db.session.query(LowStockAlert)
        .filter_by(is_resolved=False)
        .order_by(LowStockAlert.alert_date.desc(), LowStockAlert.id.desc())
        .all()
    )


def count_unresolved() -> int:
    return int(
        db.session.query(func.count(LowStockAlert.id)).filter_by(is_resolved=False).scalar() or 0
    )


def list_for_product(product_id: int) -> list[LowStockAlert]:
    return (
        db.session.query(LowStockAlert)
        .filter_by(product_id=product_id)
        .order_by(LowStockAlert.alert_date.desc(), LowStockAlert.id.desc())
        .all()
    )


def scan_all_products() -> list[LowStockAlert]:
    """
    Check every active product and open alerts where due.

    Each product is evaluated under its own critical section so a concurrent sale
    cannot create a duplicate.
    """
    product_ids = [
        pid for (pid,) in db.session.query(Product.id).filter(Product.is_active.is_(True)).all()
    ]
    created: list[LowStockAlert] = []
    for product_id in product_ids:
        with critical_section([product_id]):
            product = db.session.query(Product).filter_by(id=product_id).populate_existing().one()
            alert = evaluate(product)
            if alert is not None:
                created.append(alert)
    return created


def purge_resolved() -> int:
    """Maintenance: delete resolved alerts. Returns the number removed."""
    with store_transaction():
        removed = (
            db.session.query(LowStockAlert)
            .filter_by(is_resolved=True)
            .delete(synchronize_session=False)
        )
    current_app.logger.info("Purged %s resolved low stock alerts", removed)
    return int(removed)


def reorder_quantity(product: Product) -> int:
    """Suggested reorder: twice the shortage, at least MIN_REORDER_QUANTITY units."""
    shortage = product.min_stock - product.quantity
    return max(shortage * 2, MIN_REORDER_QUANTITY)
