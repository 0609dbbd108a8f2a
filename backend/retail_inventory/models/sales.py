from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from ..extensions import db
from ..exceptions import InvalidState
from retail_inventory.time_utils import to_utc_z, utcnow

SALE_STATUSES = ("PENDING", "COMPLETED", "CANCELLED")
PAYMENT_METHODS = ("CASH", "CARD", "MOBILE", "OTHER")


class Sale(db.Model):
    """
    Committed sale header.

    Rows are only written by SaleProcessor.process_sale(), inside the same DB
    transaction as the stock decrements and audit rows. Totals are copied from
    the cart's derived values, so they always equal the sum over sale_items.
    A COMPLETED sale is immutable.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("receipt_number", name="uq_sales_receipt_number"),
        db.Index("ix_sales_status_created", "status", "created_at"),
        db.Index("ix_sales_actor_created", "actor_user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable receipt number (e.g., "NAR-20260114-7F3A9C21")
    receipt_number = db.Column(db.String(64), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    actor_user_id = db.Column(db.Integer, nullable=False)
    actor_name = db.Column(db.String(120), nullable=True)

    # All amounts in cents
    subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False, default="CASH")
    notes = db.Column(db.String(255), nullable=True)

    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        order_by="SaleItem.id",
        cascade="all, delete-orphan",
    )

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "receipt_number": self.receipt_number,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "actor_user_id": self.actor_user_id,
            "actor_name": self.actor_name,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "total_items": self.total_items,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """
    Line item on a sale with a denormalized product snapshot.

    product_name / product_category / unit_price_cents are copied when the line
    is added to the cart, so later product edits never rewrite history.
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "product_id", name="uq_sale_items_sale_product"),
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        db.CheckConstraint(
            "line_total_cents = quantity * unit_price_cents",
            name="ck_sale_items_line_total",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    product_category = db.Column(db.String(64), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_category": self.product_category,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


@event.listens_for(Sale, "before_update")
def _refuse_completed_sale_update(mapper, connection, target):
    history = get_history(target, "status")
    was_completed = "COMPLETED" in (history.deleted or ()) or (
        not history.has_changes() and target.status == "COMPLETED"
    )
    if was_completed:
        raise InvalidState("Completed sales are immutable", details={"sale_id": target.id})


@event.listens_for(SaleItem, "before_update")
def _refuse_completed_item_update(mapper, connection, target):
    if target.sale is not None and target.sale.status == "COMPLETED":
        raise InvalidState("Completed sales are immutable", details={"sale_id": target.sale_id})
