# Overview: In-memory sale aggregate (cart) with derived totals.

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

from ..exceptions import InvalidState, ValidationError
from ..models import PAYMENT_METHODS
from retail_inventory.time_utils import utcnow

DEFAULT_TAX_RATE_BPS = 1000  # 10%


class SaleState(str, Enum):
    BUILDING = "BUILDING"
    VALIDATING = "VALIDATING"
    RESERVING = "RESERVING"
    COMMITTING = "COMMITTING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


def round_cents(value: Decimal) -> int:
    """Nearest cent, half-up."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def generate_receipt_number(prefix: str = "NAR") -> str:
    """PREFIX-YYYYMMDD-XXXXXXXX"""
    return f"{prefix}-{utcnow():%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


@dataclass
class CartLine:
    """
    One cart line. The product fields are a snapshot taken when the line was
    first added; only quantity changes afterwards.
    """
    product_id: int
    product_name: str
    product_category: str | None
    unit_price_cents: int
    quantity: int

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_category": self.product_category,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


def _require_int(value, field: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    return value


class Cart:
    """
    Mutable sale in progress (status PENDING) until the SaleProcessor commits it.

    subtotal / tax / discount / total are computed on every read from the lines
    and the discount rule, so there is nothing to recalculate and nothing that
    can drift.
    """

    def __init__(
        self,
        *,
        actor_user_id: int,
        actor_name: str | None = None,
        tax_rate_bps: int = DEFAULT_TAX_RATE_BPS,
        receipt_prefix: str = "NAR",
        payment_method: str = "CASH",
        notes: str | None = None,
    ):
        self.actor_user_id = actor_user_id
        self.actor_name = actor_name
        self.tax_rate_bps = tax_rate_bps
        self.receipt_number = generate_receipt_number(receipt_prefix)
        self.created_at = utcnow()
        self.notes = notes
        self.status = "PENDING"
        self.state = SaleState.BUILDING
        self.sale_id: int | None = None
        self.last_error: Exception | None = None
        self._lines: dict[int, CartLine] = {}
        self._discount_percent: Decimal | None = None
        self._discount_fixed_cents: int | None = None
        self.payment_method = "CASH"
        self.set_payment_method(payment_method)

    # ------------------------------------------------------------------ state

    def _ensure_editable(self) -> None:
        if self.status != "PENDING":
            raise InvalidState(
                f"Sale {self.receipt_number} is {self.status} and can no longer change",
                details={"receipt_number": self.receipt_number, "status": self.status},
            )
        if self.state == SaleState.COMMITTING:
            raise InvalidState("Sale is being committed", details={"receipt_number": self.receipt_number})

    def _touched(self) -> None:
        # a failed submit can be corrected and resubmitted
        if self.state == SaleState.FAILED:
            self.state = SaleState.BUILDING

    def cancel(self) -> None:
        """Abandon the cart. Nothing was written, so nothing is undone."""
        self._ensure_editable()
        self.status = "CANCELLED"
        self.state = SaleState.BUILDING

    # ------------------------------------------------------------------ lines

    @property
    def items(self) -> list[CartLine]:
        return list(self._lines.values())

    def get_line(self, product_id: int) -> CartLine | None:
        return self._lines.get(product_id)

    def is_empty(self) -> bool:
        return not self._lines

    def add_item(
        self,
        product_id: int,
        name: str,
        category: str | None,
        quantity: int,
        unit_price_cents: int,
    ) -> CartLine:
        """Add units of a product; an existing line for the product is increased instead."""
        self._ensure_editable()
        _require_int(quantity, "quantity")
        _require_int(unit_price_cents, "unit_price_cents")
        if quantity <= 0:
            raise ValidationError("quantity must be greater than zero", details={"product_id": product_id})
        if unit_price_cents < 0:
            raise ValidationError("unit_price_cents must be >= 0", details={"product_id": product_id})

        line = self._lines.get(product_id)
        if line is not None:
            line.quantity += quantity
        else:
            line = CartLine(
                product_id=product_id,
                product_name=name,
                product_category=category,
                unit_price_cents=unit_price_cents,
                quantity=quantity,
            )
            self._lines[product_id] = line
        self._touched()
        return line

    def remove_item(self, product_id: int) -> None:
        self._ensure_editable()
        self._lines.pop(product_id, None)
        self._touched()

    def set_quantity(self, product_id: int, quantity: int) -> None:
        """Set a line's quantity; quantity <= 0 removes the line."""
        self._ensure_editable()
        _require_int(quantity, "quantity")
        line = self._lines.get(product_id)
        if line is None:
            return
        if quantity <= 0:
            del self._lines[product_id]
        else:
            line.quantity = quantity
        self._touched()

    def clear(self) -> None:
        self._ensure_editable()
        self._lines.clear()
        self._touched()

    # --------------------------------------------------------------- discount

    def apply_percent_discount(self, percent) -> None:
        """Discount as a percentage of the subtotal, 0..100 inclusive."""
        self._ensure_editable()
        if isinstance(percent, bool):
            raise ValidationError("discount percent must be a number")
        try:
            pct = Decimal(str(percent))
        except (InvalidOperation, ValueError):
            raise ValidationError("discount percent must be a number")
        if not pct.is_finite() or pct < 0 or pct > 100:
            raise ValidationError("discount percent must be between 0 and 100", details={"percent": str(percent)})
        self._discount_percent = pct
        self._discount_fixed_cents = None
        self._touched()

    def apply_fixed_discount(self, amount_cents: int) -> None:
        """Flat discount in cents, 0..subtotal inclusive."""
        self._ensure_editable()
        _require_int(amount_cents, "discount amount")
        subtotal = self.subtotal_cents
        if amount_cents < 0 or amount_cents > subtotal:
            raise ValidationError(
                "discount amount must be between 0 and the subtotal",
                details={"amount_cents": amount_cents, "subtotal_cents": subtotal},
            )
        self._discount_fixed_cents = amount_cents
        self._discount_percent = None
        self._touched()

    def clear_discount(self) -> None:
        self._ensure_editable()
        self._discount_percent = None
        self._discount_fixed_cents = None
        self._touched()

    def set_payment_method(self, method: str) -> None:
        self._ensure_editable()
        method = (method or "").strip().upper()
        if method not in PAYMENT_METHODS:
            raise ValidationError(
                f"payment method must be one of {', '.join(PAYMENT_METHODS)}",
                details={"payment_method": method},
            )
        self.payment_method = method

    # ----------------------------------------------------------------- totals

    @property
    def subtotal_cents(self) -> int:
        return sum(line.line_total_cents for line in self._lines.values())

    @property
    def tax_cents(self) -> int:
        return round_cents(Decimal(self.subtotal_cents) * self.tax_rate_bps / Decimal(10000))

    @property
    def discount_cents(self) -> int:
        subtotal = self.subtotal_cents
        if self._discount_percent is not None:
            return round_cents(Decimal(subtotal) * self._discount_percent / Decimal(100))
        if self._discount_fixed_cents is not None:
            # a fixed discount never exceeds what is left in the cart
            return min(self._discount_fixed_cents, subtotal)
        return 0

    @property
    def total_cents(self) -> int:
        return max(0, self.subtotal_cents + self.tax_cents - self.discount_cents)

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def to_dict(self) -> dict:
        return {
            "receipt_number": self.receipt_number,
            "sale_id": self.sale_id,
            "status": self.status,
            "state": self.state.value,
            "actor_user_id": self.actor_user_id,
            "actor_name": self.actor_name,
            "items": [line.to_dict() for line in self._lines.values()],
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "total_items": self.total_items,
            "payment_method": self.payment_method,
            "notes": self.notes,
        }
