# Overview: Pytest coverage for the low-stock alert register and the restock resolution policy.

import pytest

from retail_inventory.exceptions import NotFound
from retail_inventory.models import LowStockAlert
from retail_inventory.services import alert_service, inventory_service, stock_service


def _drop_to(product, quantity):
    """Adjust product down to quantity (commits)."""
    current = product.quantity
    return stock_service.adjust(
        product_id=product.id,
        quantity_delta=quantity - current,
        actor_user_id=5,
        reason="Count correction",
    )


class TestTriggering:

    def test_no_alert_above_threshold(self, db_session, product_a):
        assert alert_service.count_unresolved() == 0
        assert not alert_service.has_unresolved(product_a.id)

    def test_alert_at_threshold(self, db_session, product_a):
        change = _drop_to(product_a, 3)
        assert change.alert is not None
        assert change.alert.current_quantity == 3
        assert change.alert.min_stock_level == 3

    def test_at_most_one_open_alert_per_product(self, db_session, product_a):
        _drop_to(product_a, 3)
        second = _drop_to(product_a, 1)

        assert second.alert is None
        assert alert_service.count_unresolved() == 1
        assert len(alert_service.list_for_product(product_a.id)) == 1

    def test_trigger_is_deduplicated(self, db_session, product_a):
        first = alert_service.trigger(product_a.id, 2, 3)
        again = alert_service.trigger(product_a.id, 1, 3)
        db_session.commit()
        assert first is not None
        assert again is None

    def test_scan_creates_missing_alerts_once(self, db_session, product_a, product_b):
        inventory_service.update_product(product_b.id, {"min_stock": 60})

        created = alert_service.scan_all_products()
        assert [a.product_id for a in created] == [product_b.id]
        assert alert_service.scan_all_products() == []

    def test_inactive_products_never_alert(self, db_session, product_a):
        _drop_to(product_a, 2)
        stock_service.deactivate_product(product_id=product_a.id, actor_user_id=5)
        assert alert_service.scan_all_products() == []
        assert alert_service.count_unresolved() == 0


class TestResolution:

    def test_manual_resolve(self, db_session, product_a):
        alert = _drop_to(product_a, 2).alert
        resolved = alert_service.resolve(alert.id, note="Reordered")

        assert resolved.is_resolved is True
        assert resolved.resolved_at is not None
        assert resolved.resolution_note == "Reordered"
        assert alert_service.count_unresolved() == 0

    def test_resolving_twice_is_not_found(self, db_session, product_a, make_product):
        other = make_product(name="Other", quantity=1, min_stock=2)
        alert = _drop_to(product_a, 2).alert
        alert_service.resolve(alert.id)

        with pytest.raises(NotFound):
            alert_service.resolve(alert.id)
        # the other product's alert is untouched
        assert alert_service.count_unresolved() == 1
        assert alert_service.has_unresolved(other.id)

    def test_unknown_alert(self, db_session):
        with pytest.raises(NotFound):
            alert_service.resolve(424242)

    def test_new_alert_after_resolution(self, db_session, product_a):
        alert = _drop_to(product_a, 3).alert
        alert_service.resolve(alert.id)
        again = _drop_to(product_a, 2).alert
        assert again is not None
        assert again.id != alert.id

    def test_deactivation_resolves_open_alert(self, db_session, product_a):
        _drop_to(product_a, 1)
        change = stock_service.deactivate_product(product_id=product_a.id, actor_user_id=5)
        assert change.resolved_alert is not None
        assert alert_service.count_unresolved() == 0

    def test_purge_only_removes_resolved(self, db_session, product_a, make_product):
        make_product(name="Still Low", quantity=1, min_stock=2)
        alert = _drop_to(product_a, 2).alert
        alert_service.resolve(alert.id)

        assert alert_service.purge_resolved() == 1
        assert db_session.query(LowStockAlert).count() == 1
        assert alert_service.count_unresolved() == 1


class TestRestockPolicy:

    def test_restock_keeps_alert_by_default(self, db_session, product_a):
        _drop_to(product_a, 2)
        change = stock_service.restock(product_id=product_a.id, quantity=10, actor_user_id=5)

        assert change.resolved_alert is None
        assert alert_service.has_unresolved(product_a.id)

    def test_restock_resolves_when_asked(self, db_session, product_a):
        _drop_to(product_a, 2)
        change = stock_service.restock(product_id=product_a.id, quantity=10, actor_user_id=5,
                                       resolve_alerts=True)

        assert change.resolved_alert is not None
        assert change.alert is None
        assert not alert_service.has_unresolved(product_a.id)

    def test_partial_restock_leaves_alert_open(self, db_session, product_a):
        _drop_to(product_a, 1)
        change = stock_service.restock(product_id=product_a.id, quantity=1, actor_user_id=5,
                                       resolve_alerts=True)

        assert change.resolved_alert is None
        assert alert_service.count_unresolved() == 1

    def test_config_enables_auto_resolve(self, app, db_session, product_a, monkeypatch):
        monkeypatch.setitem(app.config, "ALERT_AUTO_RESOLVE_ON_RESTOCK", True)
        _drop_to(product_a, 2)
        change = stock_service.restock(product_id=product_a.id, quantity=10, actor_user_id=5)
        assert change.resolved_alert is not None

    def test_reorder_quantity(self, db_session, product_a):
        _drop_to(product_a, 1)
        assert alert_service.reorder_quantity(product_a) == 10
        product_a.min_stock = 30
        assert alert_service.reorder_quantity(product_a) == 58
        db_session.rollback()
