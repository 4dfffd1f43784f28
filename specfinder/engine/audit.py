"""Audit Sink - best-effort fetch monitoring events

One FetchAuditEvent is emitted per fetched source at a defined pipeline
checkpoint. Emission is synchronous and returns immediately; sinks that
do I/O schedule it in the background. A failing sink is logged and
otherwise ignored, so the pipeline never depends on its availability.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, ContextManager, Optional, Protocol

from sqlalchemy.orm import Session

from specfinder.core.logging import logger, sanitize_for_log
from specfinder.crawlers.result import FetchedSource


@dataclass(frozen=True)
class FetchAuditEvent:
    """소스 1건의 수집 기록"""

    url: str
    method: Optional[str]
    content_length: int
    success: bool
    elapsed_ms: float
    error: Optional[str] = None
    product_id: Optional[str] = None
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_source(cls, source: FetchedSource, product_id: Optional[str] = None) -> "FetchAuditEvent":
        return cls(
            url=source.url,
            method=source.method.value if source.method is not None else None,
            content_length=source.content_length,
            success=source.success,
            elapsed_ms=round(source.elapsed_ms, 1),
            error=source.error,
            product_id=product_id,
        )


class AuditSink(Protocol):
    """감사 이벤트 수신자 프로토콜 (즉시 반환해야 함)"""

    def emit(self, event: FetchAuditEvent) -> None:
        ...


def emit_best_effort(sink: Optional[AuditSink], event: FetchAuditEvent) -> None:
    """싱크 오류를 삼키고 로그만 남김"""
    if sink is None:
        return
    try:
        sink.emit(event)
    except Exception as e:
        logger.warning(f"[AUDIT] sink {type(sink).__name__} failed: {type(e).__name__}: {e}")


class NullAuditSink:
    """아무것도 하지 않는 싱크"""

    def emit(self, event: FetchAuditEvent) -> None:
        return None


class LoggingAuditSink:
    """구조화된 로그 한 줄로 기록"""

    def emit(self, event: FetchAuditEvent) -> None:
        logger.info(
            f"[AUDIT] url={event.url} method={event.method or '-'} "
            f"length={event.content_length} success={event.success} "
            f"elapsed_ms={event.elapsed_ms:.0f} product={event.product_id or '-'}"
            + (f" error={sanitize_for_log(event.error, 160)}" if event.error else "")
        )


class DatabaseAuditSink:
    """DB 기록 싱크 - 쓰기는 스레드에서 백그라운드로 수행

    emit()은 실행 중인 이벤트 루프에 작업만 예약하고 바로 반환합니다.
    """

    def __init__(self, session_factory: Optional[Callable[[], ContextManager[Session]]] = None):
        if session_factory is None:
            from specfinder.core.database import get_db_context

            session_factory = get_db_context
        self._session_factory = session_factory
        self._pending: set[asyncio.Task] = set()

    def _write(self, event: FetchAuditEvent) -> None:
        from specfinder.repositories.impl.fetch_audit_repository import FetchAuditRepository

        with self._session_factory() as db:
            FetchAuditRepository(db).create(
                url=event.url,
                method=event.method,
                content_length=event.content_length,
                success=event.success,
                elapsed_ms=event.elapsed_ms,
                error=event.error,
                product_id=event.product_id,
            )

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"[AUDIT] database write failed: {type(exc).__name__}: {exc}")

    def emit(self, event: FetchAuditEvent) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"[AUDIT] no running loop, dropping event for {event.url}")
            return
        task = loop.create_task(asyncio.to_thread(self._write, event))
        self._pending.add(task)
        task.add_done_callback(self._on_done)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """남은 쓰기 작업 대기 (종료 시점)"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def build_audit_sink(backend: Optional[str] = None) -> AuditSink:
    """설정값(log | database | none)에 맞는 싱크 생성"""
    if backend is None:
        from specfinder.core.config import settings

        backend = settings.audit_backend
    backend = (backend or "").strip().lower()
    if backend == "database":
        return DatabaseAuditSink()
    if backend == "none":
        return NullAuditSink()
    return LoggingAuditSink()
