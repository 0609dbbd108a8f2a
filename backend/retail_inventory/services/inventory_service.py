# Overview: Stock ledger; owns per-product quantity and minimum-stock threshold.

# backend/retail_inventory/services/inventory_service.py

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Product
from ..exceptions import InvalidState, NotFound, ValidationError
from .concurrency import lock_for_update, store_transaction
"""
Stock Ledger Invariants (authoritative)

- Product.quantity is an integer >= 0 at all times (also a DB check constraint).
- adjust_quantity() is the only writer of Product.quantity. It flushes but never
  commits: the caller owns the transaction and pairs the change with an audit row
  (see stock_service.apply_stock_change).
- The ledger writes no audit rows and no alerts itself.
- Inactive products keep their quantity and history; they are excluded from sale
  and from low-stock scans.
"""

PRODUCT_WRITABLE_FIELDS = {"sku", "name", "category", "price_cents", "min_stock"}


def _load_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        # refresh rows already in the identity map
        query = lock_for_update(query).populate_existing()
    product = query.first()
    if product is None:
        raise NotFound(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def get_product(product_id: int) -> Product:
    return _load_product(product_id)


def get_quantity(product_id: int) -> int:
    """Pure read of the current on-hand quantity."""
    qty = db.session.query(Product.quantity).filter_by(id=product_id).scalar()
    if qty is None:
        raise NotFound(f"Product {product_id} not found", details={"product_id": product_id})
    return int(qty)


def adjust_quantity(product_id: int, delta: int) -> tuple[int, int]:
    """
    Apply a signed delta to a product's quantity.

    Returns (previous_quantity, new_quantity). Raises NotFound for an unknown
    product and InvalidState if the result would be negative. Availability is
    expected to be checked by the caller first; this is the last line of defense.
    """
    if not isinstance(delta, int) or isinstance(delta, bool):
        raise ValidationError("delta must be an integer")

    product = _load_product(product_id, lock=True)
    previous = product.quantity
    new = previous + delta
    if new < 0:
        raise InvalidState(
            f"Quantity of {product.name} cannot go negative",
            details={"product_id": product_id, "quantity": previous, "delta": delta},
        )

    product.quantity = new
    db.session.flush()  # version_id bump; StaleDataError if someone else won
    return previous, new


def create_product(
    *,
    name: str,
    price_cents: int,
    category: str = "GENERAL",
    sku: str | None = None,
    min_stock: int = 0,
) -> Product:
    """
    Create a product with zero stock.

    Opening stock goes through stock_service.restock() so it gets a RESTOCK movement.
    """
    if not name or not name.strip():
        raise ValidationError("name is required")
    if price_cents is None or price_cents < 0:
        raise ValidationError("price_cents must be >= 0")
    if min_stock is None or min_stock < 0:
        raise ValidationError("min_stock must be >= 0")

    if sku:
        exists = db.session.query(Product.id).filter_by(sku=sku).first()
        if exists:
            raise ValidationError(f"SKU {sku} already exists", details={"sku": sku})

    product = Product(
        name=name.strip(),
        price_cents=price_cents,
        category=(category or "GENERAL").strip().upper(),
        sku=sku,
        min_stock=min_stock,
        quantity=0,
        is_active=True,
    )
    with store_transaction():
        db.session.add(product)
    return product


def update_product(product_id: int, patch: dict) -> Product:
    """Edit catalogue fields. Quantity is never editable here."""
    if "quantity" in patch:
        raise InvalidState("quantity can only change through restock, adjustment or sale")
    unknown = set(patch) - PRODUCT_WRITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    sku = patch.get("sku")
    if sku:
        taken = (
            db.session.query(Product.id)
            .filter(Product.sku == sku, Product.id != product_id)
            .first()
        )
        if taken:
            raise ValidationError(f"SKU {sku} already exists", details={"sku": sku})

    with store_transaction():
        product = _load_product(product_id, lock=True)
        for key, value in patch.items():
            if key == "category" and value:
                value = value.strip().upper()
            setattr(product, key, value)
    return product


def list_products(*, include_inactive: bool = False, category: str | None = None) -> list[Product]:
    q = db.session.query(Product)
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    if category:
        q = q.filter(Product.category == category.strip().upper())
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def list_low_stock_products() -> list[Product]:
    """Active products at or below their minimum stock level."""
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.quantity <= Product.min_stock)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )


def count_active_products() -> int:
    return int(
        db.session.query(func.count(Product.id)).filter(Product.is_active.is_(True)).scalar() or 0
    )


def count_low_stock_products() -> int:
    return int(
        db.session.query(func.count(Product.id))
        .filter(Product.is_active.is_(True), Product.quantity <= Product.min_stock)
        .scalar()
        or 0
    )
