"""
Tests for the process-wide database connection handle.

Tests:
- Lazy, single-flight connection under concurrent callers
- Failed attempts are cleared and retried
- get_db classifies connection failures
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from intake.core import database
from intake.core.database import DatabasePool
from intake.core.errors import ErrorCode, IntakeError


def sqlite_engine():
    return create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)


class TestSingleFlight:
    def test_lazy_until_first_use(self):
        calls = []
        pool = DatabasePool(url="sqlite://", engine_factory=lambda: calls.append(1) or sqlite_engine())

        assert not pool.is_connected
        assert calls == []

        pool.ensure_connected()
        assert pool.is_connected
        assert len(calls) == 1

    def test_concurrent_callers_share_one_attempt(self):
        calls = []
        started = threading.Event()

        def factory():
            calls.append(1)
            started.set()
            time.sleep(0.2)
            return sqlite_engine()

        pool = DatabasePool(url="sqlite://", engine_factory=factory)

        with ThreadPoolExecutor(max_workers=8) as executor:
            futures = [executor.submit(pool.ensure_connected) for _ in range(8)]
            engines = [future.result(timeout=5) for future in futures]

        assert started.is_set()
        assert len(calls) == 1
        assert all(engine is engines[0] for engine in engines)

    def test_waiters_receive_the_failure(self):
        calls = []

        def factory():
            calls.append(1)
            time.sleep(0.2)
            raise ConnectionRefusedError("database is down")

        pool = DatabasePool(url="sqlite://", engine_factory=factory)

        with ThreadPoolExecutor(max_workers=4) as executor:
            futures = [executor.submit(pool.ensure_connected) for _ in range(4)]
            errors = [future.exception(timeout=5) for future in futures]

        assert all(isinstance(error, ConnectionRefusedError) for error in errors)
        # Callers that arrive after the failure was cleared start a new attempt
        assert 1 <= len(calls) <= 4
        assert not pool.is_connected

    def test_retry_after_failure(self):
        attempts = []

        def factory():
            attempts.append(1)
            if len(attempts) == 1:
                raise ConnectionRefusedError("database is down")
            return sqlite_engine()

        pool = DatabasePool(url="sqlite://", engine_factory=factory)

        with pytest.raises(ConnectionRefusedError):
            pool.ensure_connected()
        assert not pool.is_connected

        engine = pool.ensure_connected()
        assert engine is not None
        assert pool.is_connected
        assert len(attempts) == 2

    def test_session_and_dispose(self):
        pool = DatabasePool(url="sqlite://", engine_factory=sqlite_engine)
        session = pool.session()
        try:
            assert session.bind is pool.ensure_connected()
        finally:
            session.close()

        pool.dispose()
        assert not pool.is_connected


class TestGetDb:
    def test_connection_failure_becomes_store_unavailable(self, monkeypatch):
        from sqlalchemy.exc import OperationalError

        def refuse():
            raise OperationalError("SELECT 1", {}, Exception("could not connect to server"))

        failing = DatabasePool(url="sqlite://", engine_factory=refuse)
        monkeypatch.setattr(database, "pool", failing)

        with pytest.raises(IntakeError) as exc_info:
            next(database.get_db())

        assert exc_info.value.code is ErrorCode.STORE_UNAVAILABLE
        assert exc_info.value.status_code == 503
        assert exc_info.value.hint

    def test_session_factory_is_pool_session(self, monkeypatch):
        pool = DatabasePool(url="sqlite://", engine_factory=sqlite_engine)
        monkeypatch.setattr(database, "pool", pool)
        assert database.get_session_factory() == pool.session
