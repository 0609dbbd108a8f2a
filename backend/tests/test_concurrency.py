# Overview: Threaded checks that concurrent sales and restocks on one product stay consistent.

"""
Concurrency tests run against a temporary SQLite file so every thread gets its
own connection, the same way production requests do.
"""

import threading

import pytest

from retail_inventory import create_app
from retail_inventory.exceptions import ConcurrencyConflict, InsufficientStock
from retail_inventory.extensions import db
from retail_inventory.identity import StaticIdentity
from retail_inventory.models import Product, Sale, StockMovement
from retail_inventory.services import inventory_service, stock_service
from retail_inventory.services.concurrency import product_locks
from retail_inventory.services.sales_service import SaleProcessor


@pytest.fixture
def file_app(tmp_path):
    db_path = tmp_path / "concurrency.db"
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
    })
    with app.app_context():
        db.drop_all()
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.session.remove()
        db.engine.dispose()


def _seed_product(app, quantity, min_stock=0):
    with app.app_context():
        product = Product(name="Concurrent Product", sku="CONCUR-1", price_cents=1000,
                          quantity=0, min_stock=min_stock, is_active=True)
        db.session.add(product)
        db.session.commit()
        stock_service.restock(product_id=product.id, quantity=quantity, actor_user_id=1, reason="Seed inventory")
        return product.id


def _run_threads(app, workers):
    """Start every worker at once; each runs in its own app context."""
    barrier = threading.Barrier(len(workers))
    results = [None] * len(workers)

    def run(index, work):
        with app.app_context():
            barrier.wait()
            try:
                results[index] = work()
            except Exception as exc:
                results[index] = exc
            finally:
                db.session.remove()

    threads = [threading.Thread(target=run, args=(i, w)) for i, w in enumerate(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results


class TestConcurrentSales:

    def test_last_unit_is_sold_once(self, file_app):
        product_id = _seed_product(file_app, quantity=1)
        processor = SaleProcessor(StaticIdentity(9, "racer"))

        results = _run_threads(
            file_app,
            [lambda: processor.quick_sale(product_id, 1).id for _ in range(8)],
        )

        sold = [r for r in results if isinstance(r, int)]
        refused = [r for r in results if isinstance(r, InsufficientStock)]
        assert len(sold) == 1
        assert len(refused) == 7

        with file_app.app_context():
            assert inventory_service.get_quantity(product_id) == 0
            assert db.session.query(Sale).count() == 1
            assert db.session.query(StockMovement).filter_by(movement_type="SALE").count() == 1

    def test_movement_chain_under_mixed_load(self, file_app):
        product_id = _seed_product(file_app, quantity=10, min_stock=2)
        processor = SaleProcessor(StaticIdentity(9, "racer"))

        def restock():
            return stock_service.restock(product_id=product_id, quantity=2, actor_user_id=4).movement.id

        def sell():
            return processor.quick_sale(product_id, 1).id

        results = _run_threads(file_app, [restock, sell] * 5)
        assert not [r for r in results if isinstance(r, Exception)]

        with file_app.app_context():
            assert inventory_service.get_quantity(product_id) == 10 + 5 * 2 - 5
            movements = (
                db.session.query(StockMovement)
                .filter_by(product_id=product_id)
                .order_by(StockMovement.id.asc())
                .all()
            )
            assert len(movements) == 11
            for earlier, later in zip(movements, movements[1:]):
                assert later.previous_quantity == earlier.new_quantity
            assert movements[-1].new_quantity == 15


class TestLockTimeout:

    def test_busy_product_times_out(self, db_session, product_a):
        with product_locks([product_a.id]):
            with pytest.raises(ConcurrencyConflict):
                stock_service.restock(product_id=product_a.id, quantity=1, actor_user_id=1, timeout=0.05)
        assert inventory_service.get_quantity(product_a.id) == 5

    def test_processor_honours_commit_timeout(self, db_session, product_a):
        processor = SaleProcessor(StaticIdentity(9, "racer"), commit_timeout=0.05)
        cart = processor.new_cart()
        processor.add_product(cart, product_a.id, 1)

        with product_locks([product_a.id]):
            with pytest.raises(ConcurrencyConflict):
                processor.process_sale(cart)
        assert inventory_service.get_quantity(product_a.id) == 5
