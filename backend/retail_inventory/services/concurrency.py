# Overview: Critical sections and store-error translation for stock-changing units of work.

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterable, Iterator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..exceptions import ConcurrencyConflict, InventoryError, PersistenceError

"""
Locking model (authoritative)

- Per-product process-wide mutexes close the gap between "check availability"
  and "decrement". Locks are always taken in ascending product id order.
- The store's own write lock is taken at the start of the unit of work
  (BEGIN IMMEDIATE on SQLite, SELECT ... FOR UPDATE elsewhere).
- Product.version_id catches anything that slipped past both; a StaleDataError
  surfaces as ConcurrencyConflict and is never retried inside a commit.
"""

_registry_guard = threading.Lock()
_product_locks: dict[int, threading.Lock] = {}


def _lock_for(product_id: int) -> threading.Lock:
    with _registry_guard:
        lock = _product_locks.get(product_id)
        if lock is None:
            lock = threading.Lock()
            _product_locks[product_id] = lock
        return lock


@contextmanager
def product_locks(product_ids: Iterable[int], timeout: float | None = None) -> Iterator[None]:
    """Hold the mutex of every product in product_ids. Timeout -> ConcurrencyConflict."""
    acquired: list[threading.Lock] = []
    try:
        for product_id in sorted(set(product_ids)):
            lock = _lock_for(product_id)
            ok = lock.acquire() if timeout is None else lock.acquire(timeout=timeout)
            if not ok:
                raise ConcurrencyConflict(
                    "Timed out waiting for another sale on the same product; please retry",
                    details={"product_id": product_id},
                )
            acquired.append(lock)
        yield
    finally:
        for lock in reversed(acquired):
            lock.release()


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() covers it there.
    """
    return query.with_for_update()


def begin_write() -> None:
    """Take the database write lock up front so reads and writes see one snapshot."""
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


@contextmanager
def store_transaction() -> Iterator[None]:
    """
    One all-or-nothing unit of work on db.session.

    Commits when the block finishes; on any exception rolls back everything
    written in the block and re-raises, translating store failures into the
    engine's taxonomy.
    """
    try:
        yield
        db.session.commit()
    except InventoryError:
        db.session.rollback()
        raise
    except StaleDataError as exc:
        db.session.rollback()
        raise ConcurrencyConflict() from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError() from exc
    except BaseException:
        db.session.rollback()
        raise


@contextmanager
def critical_section(product_ids: Iterable[int], timeout: float | None = None) -> Iterator[None]:
    """Product mutexes + store write lock + transaction, released after commit/rollback."""
    with product_locks(product_ids, timeout=timeout):
        with store_transaction():
            begin_write()
            yield
