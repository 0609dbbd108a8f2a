# Overview: Append-only stock movement audit log; append and read-only queries.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import StockMovement
from ..exceptions import PersistenceError, ValidationError
"""
Audit Log Invariants (authoritative)

- Append-only: no update or delete operation exists here, and the model refuses both.
- One row per discrete quantity change (a sale with 3 lines writes 3 rows).
- new_quantity == previous_quantity + quantity_changed for every row.
- Rows are written inside the same DB transaction as the quantity change they record.
  A failed append raises PersistenceError and the caller's commit is rolled back.
- Reads are most-recent-first: occurred_at desc, id desc.
"""


def append_movement(
    *,
    product_id: int,
    movement_type: str,
    quantity_changed: int,
    previous_quantity: int,
    related_id: int | None = None,
    reason: str | None = None,
    actor_user_id: int | None = None,
    occurred_at: datetime | None = None,
) -> StockMovement:
    """Write one movement row (flush, no commit) and return it with its id."""
    try:
        movement = StockMovement(
            product_id=product_id,
            movement_type=movement_type,
            quantity_changed=quantity_changed,
            previous_quantity=previous_quantity,
            related_id=related_id,
            reason=reason,
            actor_user_id=actor_user_id,
            occurred_at=occurred_at,
        )
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    try:
        db.session.add(movement)
        db.session.flush()  # ensures movement.id is assigned without committing
    except SQLAlchemyError as exc:
        raise PersistenceError(
            "Could not write stock movement; the change was not applied",
            details={"product_id": product_id},
        ) from exc
    return movement


def _newest_first(query):
    return query.order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc())


def query_by_product(product_id: int, limit: int | None = None) -> list[StockMovement]:
    q = _newest_first(db.session.query(StockMovement).filter_by(product_id=product_id))
    if limit is not None:
        q = q.limit(limit)
    return q.all()


def query_by_date_range(start: datetime, end: datetime) -> list[StockMovement]:
    """Movements with start <= occurred_at <= end."""
    if start > end:
        raise ValidationError("start must not be after end")
    q = db.session.query(StockMovement).filter(
        StockMovement.occurred_at >= start,
        StockMovement.occurred_at <= end,
    )
    return _newest_first(q).all()


def query_by_user(user_id: int) -> list[StockMovement]:
    return _newest_first(db.session.query(StockMovement).filter_by(actor_user_id=user_id)).all()


def query_by_related(related_id: int, movement_type: str | None = None) -> list[StockMovement]:
    q = db.session.query(StockMovement).filter_by(related_id=related_id)
    if movement_type:
        q = q.filter_by(movement_type=movement_type)
    return _newest_first(q).all()


def query_all(limit: int = 200) -> list[StockMovement]:
    return _newest_first(db.session.query(StockMovement)).limit(limit).all()


def count_movements(product_id: int | None = None) -> int:
    q = db.session.query(func.count(StockMovement.id))
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)
    return int(q.scalar() or 0)


def summarize_movements(start: datetime, end: datetime) -> dict:
    """Totals over a period: movement count, units added, units removed, net change."""
    if start > end:
        raise ValidationError("start must not be after end")
    added = func.coalesce(
        func.sum(case((StockMovement.quantity_changed > 0, StockMovement.quantity_changed), else_=0)), 0
    )
    removed = func.coalesce(
        func.sum(case((StockMovement.quantity_changed < 0, -StockMovement.quantity_changed), else_=0)), 0
    )
    row = db.session.query(
        func.count(StockMovement.id).label("movements"),
        added.label("added"),
        removed.label("removed"),
    ).filter(
        StockMovement.occurred_at >= start,
        StockMovement.occurred_at <= end,
    ).one()

    total_added = int(row.added or 0)
    total_removed = int(row.removed or 0)
    return {
        "total_movements": int(row.movements or 0),
        "total_added": total_added,
        "total_removed": total_removed,
        "net_change": total_added - total_removed,
    }
