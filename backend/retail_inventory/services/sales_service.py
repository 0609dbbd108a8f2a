"""
Sales Service - cart to committed sale

WHY: A sale touches four things at once (sale record, stock levels, audit trail,
low-stock alerts). They are written in one unit of work so they can never drift
apart: either all of them land, or none of them do.
"""

from __future__ import annotations

from datetime import date, datetime

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Product, Sale, SaleItem
from ..exceptions import InsufficientStock, InvalidState, InventoryError, NotFound, ValidationError
from ..identity import IdentityProvider
from retail_inventory.time_utils import day_bounds, utcnow
from .cart import Cart, SaleState
from .concurrency import critical_section
from . import stock_service


class SaleProcessor:
    """
    Orchestrates BUILDING -> VALIDATING -> RESERVING -> COMMITTING -> COMPLETED.

    Validation failures send the cart back to BUILDING. Availability and commit
    failures mark it FAILED; nothing has been written either way, and the cart can
    be corrected and submitted again.
    """

    def __init__(
        self,
        identity: IdentityProvider,
        *,
        tax_rate_bps: int = 1000,
        receipt_prefix: str = "NAR",
        commit_timeout: float | None = None,
    ):
        self.identity = identity
        self.tax_rate_bps = tax_rate_bps
        self.receipt_prefix = receipt_prefix
        self.commit_timeout = commit_timeout

    @classmethod
    def from_config(cls, identity: IdentityProvider, config) -> "SaleProcessor":
        return cls(
            identity,
            tax_rate_bps=config.get("TAX_RATE_BPS", 1000),
            receipt_prefix=config.get("RECEIPT_PREFIX", "NAR"),
            commit_timeout=config.get("COMMIT_TIMEOUT_SECONDS"),
        )

    # ------------------------------------------------------------ building

    def new_cart(self, *, payment_method: str = "CASH", notes: str | None = None) -> Cart:
        return Cart(
            actor_user_id=self.identity.current_actor_id(),
            actor_name=self.identity.current_actor_name(),
            tax_rate_bps=self.tax_rate_bps,
            receipt_prefix=self.receipt_prefix,
            payment_method=payment_method,
            notes=notes,
        )

    def add_product(self, cart: Cart, product_id: int, quantity: int) -> None:
        """Add a live product to the cart, snapshotting its name, category and price."""
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFound(f"Product {product_id} not found", details={"product_id": product_id})
        if not product.is_active:
            raise ValidationError(f"{product.name} is not available for sale", details={"product_id": product_id})
        cart.add_item(product.id, product.name, product.category, quantity, product.price_cents)

    def build_cart(
        self,
        lines: list[dict],
        *,
        payment_method: str = "CASH",
        notes: str | None = None,
        discount_percent=None,
        discount_cents: int | None = None,
    ) -> Cart:
        """Cart from [{"product_id": .., "quantity": ..}, ...] plus an optional discount."""
        if discount_percent is not None and discount_cents is not None:
            raise ValidationError("Use either discount_percent or discount_cents, not both")
        cart = self.new_cart(payment_method=payment_method, notes=notes)
        for line in lines:
            if not isinstance(line, dict) or "product_id" not in line or "quantity" not in line:
                raise ValidationError("each item needs product_id and quantity")
            self.add_product(cart, line["product_id"], line["quantity"])
        if discount_percent is not None:
            cart.apply_percent_discount(discount_percent)
        if discount_cents is not None:
            cart.apply_fixed_discount(discount_cents)
        return cart

    # ---------------------------------------------------------- processing

    def _validate(self, cart: Cart) -> None:
        if cart.is_empty():
            raise ValidationError("Sale must contain at least one item")
        if not cart.actor_user_id or cart.actor_user_id <= 0:
            raise ValidationError("Invalid user ID")
        for line in cart.items:
            if line.quantity <= 0:
                raise ValidationError(
                    f"Quantity for {line.product_name} must be greater than zero",
                    details={"product_id": line.product_id},
                )
            if line.unit_price_cents <= 0:
                raise ValidationError(
                    f"Price for {line.product_name} must be greater than zero",
                    details={"product_id": line.product_id},
                )
        if cart.total_cents <= 0:
            raise ValidationError("Sale total must be greater than zero")

    def _reserve(self, cart: Cart) -> None:
        """Re-check every line against live stock. Runs inside the critical section."""
        for line in cart.items:
            product = (
                db.session.query(Product)
                .filter_by(id=line.product_id)
                .populate_existing()
                .first()
            )
            if product is None:
                raise NotFound(f"Product {line.product_id} not found", details={"product_id": line.product_id})
            if not product.is_active:
                raise ValidationError(
                    f"{line.product_name} is no longer available for sale",
                    details={"product_id": line.product_id},
                )
            if product.quantity < line.quantity:
                raise InsufficientStock(
                    product_id=line.product_id,
                    available=product.quantity,
                    requested=line.quantity,
                    product_name=line.product_name,
                )

    def _write(self, cart: Cart) -> Sale:
        now = utcnow()
        sale = Sale(
            receipt_number=cart.receipt_number,
            status="PENDING",
            created_at=cart.created_at,
            actor_user_id=cart.actor_user_id,
            actor_name=cart.actor_name,
            subtotal_cents=cart.subtotal_cents,
            tax_cents=cart.tax_cents,
            discount_cents=cart.discount_cents,
            total_cents=cart.total_cents,
            payment_method=cart.payment_method,
            notes=cart.notes,
        )
        for line in cart.items:
            sale.items.append(SaleItem(
                product_id=line.product_id,
                product_name=line.product_name,
                product_category=line.product_category,
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                line_total_cents=line.line_total_cents,
            ))
        db.session.add(sale)
        db.session.flush()  # sale.id for the movements' related_id

        for line in cart.items:
            stock_service.apply_stock_change(
                product_id=line.product_id,
                delta=-line.quantity,
                movement_type="SALE",
                actor_user_id=cart.actor_user_id,
                reason=f"Sale {cart.receipt_number}",
                related_id=sale.id,
            )

        sale.status = "COMPLETED"
        sale.completed_at = now
        db.session.flush()
        return sale

    def process_sale(self, cart: Cart) -> Sale:
        """
        Validate, reserve and commit a cart as one unit.

        On success the cart is COMPLETED and the committed Sale is returned. On
        failure the error propagates and stock, audit rows and sales are exactly as
        they were before the call.
        """
        if cart.status != "PENDING":
            raise InvalidState(
                f"Sale {cart.receipt_number} is {cart.status}",
                details={"receipt_number": cart.receipt_number, "status": cart.status},
            )
        cart.state = SaleState.VALIDATING
        try:
            self._validate(cart)
        except ValidationError as exc:
            cart.state = SaleState.BUILDING
            cart.last_error = exc
            raise

        product_ids = [line.product_id for line in cart.items]
        try:
            with critical_section(product_ids, timeout=self.commit_timeout):
                cart.state = SaleState.RESERVING
                self._reserve(cart)
                cart.state = SaleState.COMMITTING
                sale = self._write(cart)
        except InventoryError as exc:
            failed_in = cart.state
            cart.state = SaleState.FAILED
            cart.sale_id = None
            cart.last_error = exc
            if failed_in == SaleState.COMMITTING:
                current_app.logger.warning(
                    "Sale %s rolled back during commit: %s", cart.receipt_number, exc.message
                )
            raise
        except Exception as exc:
            cart.state = SaleState.FAILED
            cart.sale_id = None
            cart.last_error = exc
            current_app.logger.exception("Sale %s rolled back", cart.receipt_number)
            raise

        cart.state = SaleState.COMPLETED
        cart.status = "COMPLETED"
        cart.sale_id = sale.id
        cart.last_error = None
        current_app.logger.info(
            "Sale processed: #%s %s total_cents=%s", sale.id, cart.receipt_number, cart.total_cents
        )
        return sale

    def quick_sale(
        self,
        product_id: int,
        quantity: int,
        *,
        payment_method: str = "CASH",
        notes: str | None = None,
    ) -> Sale:
        """Single-line sale built from the live product and processed immediately."""
        cart = self.new_cart(payment_method=payment_method, notes=notes)
        self.add_product(cart, product_id, quantity)
        return self.process_sale(cart)


# ---------------------------------------------------------------- read side


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFound(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def get_sale_by_receipt(receipt_number: str) -> Sale:
    sale = db.session.query(Sale).filter_by(receipt_number=receipt_number).first()
    if sale is None:
        raise NotFound(f"Sale {receipt_number} not found", details={"receipt_number": receipt_number})
    return sale


def list_sales(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    user_id: int | None = None,
    limit: int = 200,
) -> list[Sale]:
    """Completed sales, newest first."""
    q = db.session.query(Sale).filter(Sale.status == "COMPLETED")
    if start is not None:
        q = q.filter(Sale.completed_at >= start)
    if end is not None:
        q = q.filter(Sale.completed_at <= end)
    if user_id is not None:
        q = q.filter(Sale.actor_user_id == user_id)
    return q.order_by(Sale.completed_at.desc(), Sale.id.desc()).limit(limit).all()


def get_sales_statistics(start_date: date, end_date: date, *, top_limit: int = 5) -> dict:
    """Count, revenue, average sale, units sold and top products for whole days start..end."""
    if start_date > end_date:
        raise ValidationError("start date must not be after end date")
    start, end = day_bounds(start_date, end_date)
    window = (
        Sale.status == "COMPLETED",
        Sale.completed_at >= start,
        Sale.completed_at <= end,
    )

    totals = db.session.query(
        func.count(Sale.id).label("count"),
        func.coalesce(func.sum(Sale.total_cents), 0).label("revenue"),
    ).filter(*window).one()
    items = (
        db.session.query(func.coalesce(func.sum(SaleItem.quantity), 0))
        .join(Sale, SaleItem.sale_id == Sale.id)
        .filter(*window)
        .scalar()
    )

    top_rows = (
        db.session.query(
            SaleItem.product_id,
            func.max(SaleItem.product_name).label("name"),
            func.max(SaleItem.product_category).label("category"),
            func.sum(SaleItem.quantity).label("total_sold"),
            func.sum(SaleItem.line_total_cents).label("revenue"),
        )
        .join(Sale, SaleItem.sale_id == Sale.id)
        .filter(*window)
        .group_by(SaleItem.product_id)
        .order_by(func.sum(SaleItem.quantity).desc(), SaleItem.product_id.asc())
        .limit(top_limit)
        .all()
    )

    count = int(totals.count or 0)
    revenue = int(totals.revenue or 0)
    return {
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat(),
        "total_sales": count,
        "total_revenue_cents": revenue,
        "average_sale_cents": (revenue + count // 2) // count if count else 0,
        "total_items": int(items or 0),
        "top_products": [
            {
                "product_id": row.product_id,
                "name": row.name,
                "category": row.category,
                "total_sold": int(row.total_sold or 0),
                "revenue_cents": int(row.revenue or 0),
            }
            for row in top_rows
        ],
    }
