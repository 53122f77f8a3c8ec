# Overview: Service-layer operations for concurrency; encapsulates locking and retry around database work.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Iterable, Iterator

from flask import current_app
from sqlalchemy.engine import make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

EXTENSION_KEY = "shopledger.locks"


class LockRegistry:
    """
    Process-local mutual exclusion for the two shared mutable resources:
    per-product stock and the document number sequences.

    Product locks are re-entrant so a checkout that already holds a product
    can call into the stock ledger for the same product. Callers that need
    several products go through hold_products(), which takes them in sorted
    order so two checkouts can never wait on each other.

    When every session shares one database connection (in-memory SQLite),
    one session's commit or rollback ends the others' open work too. With
    serialize_writes set, hold_writes() (and therefore hold_products())
    first takes a registry-wide write lock, so writes run one at a time from
    their first statement through commit. Lock order is always write lock,
    then product locks, then the sequence lock.
    """

    def __init__(self, *, serialize_writes: bool = False) -> None:
        self._guard = threading.Lock()
        self._product_locks: dict[str, threading.RLock] = {}
        self.sequence_lock = threading.RLock()
        self.write_lock = threading.RLock()
        self.serialize_writes = serialize_writes

    def product_lock(self, product_id: str) -> threading.RLock:
        with self._guard:
            lock = self._product_locks.get(product_id)
            if lock is None:
                lock = threading.RLock()
                self._product_locks[product_id] = lock
            return lock

    @contextmanager
    def hold_writes(self) -> Iterator[None]:
        if not self.serialize_writes:
            yield
            return
        with self.write_lock:
            yield

    @contextmanager
    def hold_products(self, product_ids: Iterable[str]) -> Iterator[None]:
        locks = [self.product_lock(pid) for pid in sorted(set(product_ids))]
        acquired = []
        with self.hold_writes():
            try:
                for lock in locks:
                    lock.acquire()
                    acquired.append(lock)
                yield
            finally:
                for lock in reversed(acquired):
                    lock.release()


def shares_one_connection(database_uri: str) -> bool:
    """True for SQLite URLs that Flask-SQLAlchemy serves from a single static connection."""
    url = make_url(database_uri)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def init_locks(app) -> LockRegistry:
    registry = LockRegistry(
        serialize_writes=shares_one_connection(app.config["SQLALCHEMY_DATABASE_URI"]),
    )
    app.extensions[EXTENSION_KEY] = registry

    if registry.serialize_writes:
        # Registered after db.init_app, so it runs before Flask-SQLAlchemy's own
        # teardown; closing a session rolls back the shared connection
        @app.teardown_appcontext
        def remove_session_serialized(exc=None):
            with registry.write_lock:
                db.session.remove()

    return registry


def get_locks() -> LockRegistry:
    return current_app.extensions[EXTENSION_KEY]


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The process-local LockRegistry covers the SQLite case.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts).
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            with get_locks().hold_writes():
                db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
