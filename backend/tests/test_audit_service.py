# Overview: Pytest coverage for the append-only stock movement log.

from datetime import timedelta

import pytest

from retail_inventory.exceptions import InvalidState, ValidationError
from retail_inventory.models import StockMovement
from retail_inventory.services import audit_service, stock_service
from retail_inventory.time_utils import utcnow


class TestAppendOnly:

    def test_new_quantity_is_derived(self, db_session, product_a):
        movement = StockMovement(
            product_id=product_a.id,
            movement_type="ADJUSTMENT",
            quantity_changed=-2,
            previous_quantity=5,
        )
        assert movement.new_quantity == 3

    def test_unknown_movement_type_rejected(self, db_session, product_a):
        with pytest.raises(ValidationError):
            audit_service.append_movement(
                product_id=product_a.id,
                movement_type="THEFT",
                quantity_changed=-1,
                previous_quantity=5,
            )

    def test_update_refused(self, db_session, product_a):
        movement = audit_service.query_by_product(product_a.id)[0]
        movement.reason = "rewritten"
        with pytest.raises(InvalidState):
            db_session.flush()
        db_session.rollback()

    def test_delete_refused(self, db_session, product_a):
        movement = audit_service.query_by_product(product_a.id)[0]
        db_session.delete(movement)
        with pytest.raises(InvalidState):
            db_session.flush()
        db_session.rollback()
        assert audit_service.count_movements(product_a.id) == 1


class TestQueries:

    def test_chain_is_consistent(self, db_session, product_a):
        stock_service.restock(product_id=product_a.id, quantity=7, actor_user_id=2)
        stock_service.adjust(product_id=product_a.id, quantity_delta=-3, actor_user_id=2, reason="Count")
        stock_service.adjust(product_id=product_a.id, quantity_delta=1, actor_user_id=2, reason="Found one")

        movements = list(reversed(audit_service.query_by_product(product_a.id)))
        assert [m.quantity_changed for m in movements] == [5, 7, -3, 1]
        for earlier, later in zip(movements, movements[1:]):
            assert later.previous_quantity == earlier.new_quantity
        for m in movements:
            assert m.new_quantity == m.previous_quantity + m.quantity_changed
        assert movements[-1].new_quantity == 10

    def test_newest_first_and_limit(self, db_session, product_a):
        stock_service.restock(product_id=product_a.id, quantity=1, actor_user_id=2)
        stock_service.restock(product_id=product_a.id, quantity=2, actor_user_id=2)

        latest = audit_service.query_by_product(product_a.id, limit=1)
        assert len(latest) == 1
        assert latest[0].quantity_changed == 2

    def test_query_by_user(self, db_session, product_a):
        stock_service.restock(product_id=product_a.id, quantity=1, actor_user_id=99)
        rows = audit_service.query_by_user(99)
        assert len(rows) == 1
        assert rows[0].actor_user_id == 99

    def test_date_range_is_inclusive(self, db_session, product_a):
        at = utcnow().replace(microsecond=0) - timedelta(days=3)
        audit_service.append_movement(
            product_id=product_a.id,
            movement_type="ADJUSTMENT",
            quantity_changed=0,
            previous_quantity=5,
            reason="Backdated count",
            occurred_at=at,
        )
        db_session.commit()

        assert len(audit_service.query_by_date_range(at, at)) == 1
        assert audit_service.query_by_date_range(at - timedelta(days=2), at - timedelta(seconds=1)) == []

    def test_date_range_must_be_ordered(self, db_session):
        now = utcnow()
        with pytest.raises(ValidationError):
            audit_service.query_by_date_range(now, now - timedelta(hours=1))

    def test_summary(self, db_session, product_a):
        stock_service.adjust(product_id=product_a.id, quantity_delta=-2, actor_user_id=2, reason="Damaged")
        now = utcnow()
        summary = audit_service.summarize_movements(now - timedelta(hours=1), now + timedelta(hours=1))
        assert summary == {
            "total_movements": 2,
            "total_added": 5,
            "total_removed": 2,
            "net_change": 3,
        }
