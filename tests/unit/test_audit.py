"""감사 싱크 / 리포지토리 단위 테스트 (in-memory SQLite)"""

from __future__ import annotations

from contextlib import contextmanager

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from specfinder.core.database import Base
from specfinder.crawlers.result import FetchMethod
from specfinder.engine.audit import (
    DatabaseAuditSink,
    FetchAuditEvent,
    LoggingAuditSink,
    NullAuditSink,
    build_audit_sink,
    emit_best_effort,
)
from specfinder.repositories.impl.fetch_audit_repository import FetchAuditRepository
from specfinder.repositories.models import FetchAuditLog
from tests.fixtures.fakes import BrokenAuditSink, fetched_source


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    @contextmanager
    def factory():
        db = Session()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    yield factory
    engine.dispose()


def test_event_from_source() -> None:
    ok = FetchAuditEvent.from_source(
        fetched_source("https://a.example.org/", "x" * 1500, method=FetchMethod.RENDERED), "p-1"
    )
    assert ok.method == "rendered"
    assert ok.content_length == 1500
    assert ok.success is True
    assert ok.product_id == "p-1"

    failed = FetchAuditEvent.from_source(fetched_source("https://b.example.org/", success=False))
    assert failed.method is None
    assert failed.success is False
    assert failed.error == "all strategies failed"


def test_emit_best_effort_swallows_sink_errors() -> None:
    sink = BrokenAuditSink()
    event = FetchAuditEvent.from_source(fetched_source("https://a.example.org/"))

    emit_best_effort(sink, event)
    emit_best_effort(None, event)

    assert sink.calls == 1


def test_logging_and_null_sinks() -> None:
    event = FetchAuditEvent.from_source(fetched_source("https://b.example.org/", success=False))
    LoggingAuditSink().emit(event)
    assert NullAuditSink().emit(event) is None


def test_build_audit_sink() -> None:
    assert isinstance(build_audit_sink("none"), NullAuditSink)
    assert isinstance(build_audit_sink("log"), LoggingAuditSink)
    assert isinstance(build_audit_sink("database"), DatabaseAuditSink)


@pytest.mark.asyncio
async def test_database_sink_writes_in_background(session_factory) -> None:
    sink = DatabaseAuditSink(session_factory=session_factory)

    sink.emit(FetchAuditEvent.from_source(fetched_source("https://a.example.org/", "x" * 1200), "p-1"))
    sink.emit(FetchAuditEvent.from_source(fetched_source("https://b.example.org/", success=False), "p-1"))
    await sink.drain()

    assert sink.pending_count == 0
    with session_factory() as db:
        repo = FetchAuditRepository(db)
        rows = repo.get_recent(limit=10)
        assert {r.url for r in rows} == {"https://a.example.org/", "https://b.example.org/"}

        stats = repo.get_method_stats()
        assert stats["fast-static"] == {"count": 1, "success": 1, "avg_content_length": 1200.0}
        assert stats["none"]["success"] == 0


@pytest.mark.asyncio
async def test_database_sink_failure_is_not_raised() -> None:
    @contextmanager
    def broken_factory():
        raise RuntimeError("database down")
        yield  # pragma: no cover

    sink = DatabaseAuditSink(session_factory=broken_factory)
    sink.emit(FetchAuditEvent.from_source(fetched_source("https://a.example.org/")))
    await sink.drain()

    assert sink.pending_count == 0


def test_database_sink_without_loop_drops_event(session_factory) -> None:
    sink = DatabaseAuditSink(session_factory=session_factory)
    sink.emit(FetchAuditEvent.from_source(fetched_source("https://a.example.org/")))

    assert sink.pending_count == 0
    with session_factory() as db:
        assert db.query(FetchAuditLog).count() == 0
