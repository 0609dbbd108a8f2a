# Overview: Pytest coverage for the stock ledger and the stock change paths built on it.

import pytest

from retail_inventory.exceptions import InvalidState, NotFound, ValidationError
from retail_inventory.models import StockMovement
from retail_inventory.services import audit_service, inventory_service, stock_service


class TestStockLedger:

    def test_get_quantity(self, db_session, product_a):
        assert inventory_service.get_quantity(product_a.id) == 5

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFound):
            inventory_service.get_quantity(99999)
        with pytest.raises(NotFound):
            inventory_service.get_product(99999)

    def test_adjust_quantity_returns_previous_and_new(self, db_session, product_a):
        previous, new = inventory_service.adjust_quantity(product_a.id, -2)
        db_session.commit()

        assert (previous, new) == (5, 3)
        assert inventory_service.get_quantity(product_a.id) == 3

    def test_adjust_quantity_never_goes_negative(self, db_session, product_a):
        with pytest.raises(InvalidState):
            inventory_service.adjust_quantity(product_a.id, -6)
        db_session.rollback()
        assert inventory_service.get_quantity(product_a.id) == 5

    def test_adjust_quantity_requires_integer(self, db_session, product_a):
        with pytest.raises(ValidationError):
            inventory_service.adjust_quantity(product_a.id, 1.5)


class TestCatalogue:

    def test_create_product_starts_empty(self, db_session):
        product = inventory_service.create_product(
            name="  Sparkling Water ", price_cents=199, category="drinks", sku="SW-1", min_stock=4
        )
        assert product.id is not None
        assert product.name == "Sparkling Water"
        assert product.category == "DRINKS"
        assert product.quantity == 0
        assert product.is_low_stock

    def test_duplicate_sku_rejected(self, db_session, product_a):
        with pytest.raises(ValidationError):
            inventory_service.create_product(name="Copy", price_cents=100, sku="PROD-A-001")

    def test_update_product_cannot_touch_quantity(self, db_session, product_a):
        with pytest.raises(InvalidState):
            inventory_service.update_product(product_a.id, {"quantity": 100})

    def test_update_product_rejects_taken_sku(self, db_session, product_a, product_b):
        with pytest.raises(ValidationError) as exc_info:
            inventory_service.update_product(product_b.id, {"sku": product_a.sku})
        assert exc_info.value.details == {"sku": "PROD-A-001"}
        assert inventory_service.get_product(product_b.id).sku != product_a.sku

    def test_update_product_keeps_own_sku(self, db_session, product_a):
        updated = inventory_service.update_product(product_a.id, {"sku": product_a.sku, "name": "Product A2"})
        assert updated.sku == "PROD-A-001"
        assert updated.name == "Product A2"

    def test_update_product_fields(self, db_session, product_a):
        updated = inventory_service.update_product(product_a.id, {"price_cents": 1200, "category": "misc"})
        assert updated.price_cents == 1200
        assert updated.category == "MISC"

    def test_low_stock_listing(self, db_session, product_a, product_b, make_product):
        low = make_product(name="Almost Gone", quantity=1, min_stock=2)
        ids = [p.id for p in inventory_service.list_low_stock_products()]
        assert ids == [low.id]
        assert inventory_service.count_low_stock_products() == 1
        assert inventory_service.count_active_products() == 3


class TestStockChanges:

    def test_restock_records_movement(self, db_session, product_a):
        change = stock_service.restock(product_id=product_a.id, quantity=10, actor_user_id=3,
                                       reason="Delivery", supplier_id=42)

        m = change.movement
        assert (m.movement_type, m.quantity_changed, m.previous_quantity, m.new_quantity) == ("RESTOCK", 10, 5, 15)
        assert m.related_id == 42
        assert m.actor_user_id == 3
        assert inventory_service.get_quantity(product_a.id) == 15

    def test_restock_rejects_non_positive(self, db_session, product_a):
        with pytest.raises(ValidationError):
            stock_service.restock(product_id=product_a.id, quantity=0, actor_user_id=3)
        assert audit_service.count_movements(product_a.id) == 1

    def test_adjust_requires_reason(self, db_session, product_a):
        with pytest.raises(ValidationError):
            stock_service.adjust(product_id=product_a.id, quantity_delta=-1, actor_user_id=3, reason=" ")

    def test_adjust_cannot_go_negative(self, db_session, product_a):
        with pytest.raises(InvalidState):
            stock_service.adjust(product_id=product_a.id, quantity_delta=-9, actor_user_id=3, reason="Shrink")
        assert inventory_service.get_quantity(product_a.id) == 5
        assert audit_service.count_movements(product_a.id) == 1

    def test_adjust_down_raises_alert(self, db_session, product_a):
        change = stock_service.adjust(product_id=product_a.id, quantity_delta=-2, actor_user_id=3,
                                      reason="Damaged")
        assert change.movement.movement_type == "ADJUSTMENT"
        assert change.alert is not None
        assert change.alert.current_quantity == 3

    def test_deactivate_records_zero_delta_movement(self, db_session, product_a):
        change = stock_service.deactivate_product(product_id=product_a.id, actor_user_id=3)

        assert change.movement.movement_type == "DEACTIVATION"
        assert change.movement.quantity_changed == 0
        assert change.movement.new_quantity == 5
        product = inventory_service.get_product(product_a.id)
        assert product.is_active is False
        assert product.quantity == 5

    def test_deactivate_twice_rejected(self, db_session, product_a):
        stock_service.deactivate_product(product_id=product_a.id, actor_user_id=3)
        with pytest.raises(InvalidState):
            stock_service.deactivate_product(product_id=product_a.id, actor_user_id=3)

    def test_restock_inactive_product_rejected(self, db_session, product_a):
        stock_service.deactivate_product(product_id=product_a.id, actor_user_id=3)
        with pytest.raises(InvalidState):
            stock_service.restock(product_id=product_a.id, quantity=5, actor_user_id=3)

    def test_adjust_inactive_product_rejected(self, db_session, product_a):
        stock_service.deactivate_product(product_id=product_a.id, actor_user_id=3)
        before = db_session.query(StockMovement).filter_by(product_id=product_a.id).count()

        with pytest.raises(InvalidState):
            stock_service.adjust(product_id=product_a.id, quantity_delta=-2, actor_user_id=3, reason="Write-off")

        assert inventory_service.get_quantity(product_a.id) == 5
        assert db_session.query(StockMovement).filter_by(product_id=product_a.id).count() == before

    def test_every_change_pairs_with_one_movement(self, db_session, product_a):
        stock_service.restock(product_id=product_a.id, quantity=4, actor_user_id=3)
        stock_service.adjust(product_id=product_a.id, quantity_delta=-1, actor_user_id=3, reason="Count")

        assert db_session.query(StockMovement).filter_by(product_id=product_a.id).count() == 3
        assert inventory_service.get_quantity(product_a.id) == 8
