from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..exceptions import InvalidState
from retail_inventory.time_utils import to_utc_z, utcnow

MOVEMENT_TYPES = ("SALE", "RESTOCK", "ADJUSTMENT", "DEACTIVATION")


class Product(db.Model):
    """
    Product master data and stock ledger entry.

    STOCK LEDGER RULE:
    Product.quantity is only changed through inventory_service.adjust_quantity(),
    which is only called from stock_service.apply_stock_change(). That keeps every
    quantity change paired with exactly one StockMovement row.

    Products are never deleted. Deactivation flips is_active and keeps history.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_active_category", "is_active", "category"),
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        db.CheckConstraint("min_stock >= 0", name="ck_products_min_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False, default="GENERAL")

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.min_stock

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} qty={self.quantity} min={self.min_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "price_cents": self.price_cents,
            "quantity": self.quantity,
            "min_stock": self.min_stock,
            "is_active": self.is_active,
            "is_low_stock": self.is_low_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only audit row for one discrete quantity change.

    new_quantity is derived in the constructor and checked by the database;
    rows can never be updated or deleted through the ORM.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_movements_product_occurred", "product_id", "occurred_at"),
        db.Index("ix_movements_actor_occurred", "actor_user_id", "occurred_at"),
        db.CheckConstraint(
            "new_quantity = previous_quantity + quantity_changed",
            name="ck_movements_quantity_chain",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Originating document (sale id for SALE movements)
    related_id = db.Column(db.Integer, nullable=True, index=True)

    movement_type = db.Column(db.String(16), nullable=False, index=True)

    quantity_changed = db.Column(db.Integer, nullable=False)
    previous_quantity = db.Column(db.Integer, nullable=False)
    new_quantity = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(255), nullable=True)
    actor_user_id = db.Column(db.Integer, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    product = db.relationship("Product")

    def __init__(
        self,
        *,
        product_id: int,
        movement_type: str,
        quantity_changed: int,
        previous_quantity: int,
        related_id: int | None = None,
        reason: str | None = None,
        actor_user_id: int | None = None,
        occurred_at=None,
    ):
        if movement_type not in MOVEMENT_TYPES:
            raise ValueError(f"unknown movement type {movement_type!r}")
        super().__init__(
            product_id=product_id,
            movement_type=movement_type,
            quantity_changed=quantity_changed,
            previous_quantity=previous_quantity,
            new_quantity=previous_quantity + quantity_changed,
            related_id=related_id,
            reason=reason,
            actor_user_id=actor_user_id,
            occurred_at=occurred_at or utcnow(),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "related_id": self.related_id,
            "movement_type": self.movement_type,
            "quantity_changed": self.quantity_changed,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
            "reason": self.reason,
            "actor_user_id": self.actor_user_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }


@event.listens_for(StockMovement, "before_update")
def _refuse_movement_update(mapper, connection, target):
    raise InvalidState("Stock movements are append-only", details={"movement_id": target.id})


@event.listens_for(StockMovement, "before_delete")
def _refuse_movement_delete(mapper, connection, target):
    raise InvalidState("Stock movements are append-only", details={"movement_id": target.id})


class LowStockAlert(db.Model):
    """
    Low-stock alert with at most one unresolved row per product.

    The service checks before creating (under the product's lock); the partial
    unique index is the database backstop for the same rule.
    """
    __tablename__ = "low_stock_alerts"
    __table_args__ = (
        db.Index(
            "uq_low_stock_alerts_open_product",
            "product_id",
            unique=True,
            sqlite_where=db.text("is_resolved = 0"),
            postgresql_where=db.text("is_resolved = false"),
        ),
        db.Index("ix_low_stock_alerts_resolved_date", "is_resolved", "alert_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Snapshot at trigger time
    current_quantity = db.Column(db.Integer, nullable=False)
    min_stock_level = db.Column(db.Integer, nullable=False)
    alert_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    is_resolved = db.Column(db.Boolean, nullable=False, default=False)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    resolution_note = db.Column(db.String(255), nullable=True)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "current_quantity": self.current_quantity,
            "min_stock_level": self.min_stock_level,
            "alert_date": to_utc_z(self.alert_date),
            "is_resolved": self.is_resolved,
            "resolved_at": to_utc_z(self.resolved_at) if self.resolved_at else None,
            "resolution_note": self.resolution_note,
        }
