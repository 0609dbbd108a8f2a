# Overview: Flask API routes for product catalogue operations; parses input and returns JSON responses.

# backend/retail_inventory/routes/products.py
"""
Product routes.

Quantity is read-only here: stock changes go through /api/inventory (restock,
adjust) and /api/sales. Deactivation is the only way a product leaves the catalogue.
"""
from flask import Blueprint, g, request

from ..models import Product
from ..services import inventory_service, stock_service, alert_service
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_product
from ..decorators import handle_engine_errors, require_actor

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"sku", "name", "category", "price_cents", "min_stock"},
    required_on_create={"name", "price_cents"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@handle_engine_errors("list products")
def list_products():
    """
    List products.

    Query params:
    - include_inactive: bool (optional, default false)
    - category: str (optional)
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    category = request.args.get("category")
    products = inventory_service.list_products(include_inactive=include_inactive, category=category)
    return {"products": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/low-stock")
@handle_engine_errors("list low stock products")
def list_low_stock():
    """Active products at or below min_stock, with a suggested reorder quantity."""
    products = inventory_service.list_low_stock_products()
    return {
        "products": [
            {**p.to_dict(), "reorder_quantity": alert_service.reorder_quantity(p)}
            for p in products
        ],
        "count": len(products),
    }


@products_bp.post("")
@handle_engine_errors("create product")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    created = inventory_service.create_product(
        name=patch["name"],
        price_cents=patch["price_cents"],
        category=patch.get("category") or "GENERAL",
        sku=patch.get("sku"),
        min_stock=patch.get("min_stock") or 0,
    )
    return {"product": created.to_dict()}, 201


@products_bp.get("/<int:product_id>")
@handle_engine_errors("get product")
def get_product_route(product_id: int):
    product = inventory_service.get_product(product_id)
    return {"product": product.to_dict()}


@products_bp.put("/<int:product_id>")
@handle_engine_errors("update product")
def update_product_route(product_id: int):
    """Edit catalogue fields (name, category, sku, price_cents, min_stock)."""
    payload = request.get_json(silent=True) or {}

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)

    updated = inventory_service.update_product(product_id, patch)
    return {"product": updated.to_dict()}


@products_bp.post("/<int:product_id>/deactivate")
@require_actor
@handle_engine_errors("deactivate product")
def deactivate_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    change = stock_service.deactivate_product(
        product_id=product_id,
        actor_user_id=g.actor_id,
        reason=payload.get("reason"),
    )
    product = inventory_service.get_product(product_id)
    return {
        "product": product.to_dict(),
        "movement": change.movement.to_dict(),
        "resolved_alert": change.resolved_alert.to_dict() if change.resolved_alert else None,
    }
