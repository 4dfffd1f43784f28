"""Pipeline Orchestrator - Main Engine Entry Point

Drives each product through the pipeline:
1. Domain-Policy filter + Source Fetcher (fetch strategy ladder per URL)
2. Extraction Adapter (per-source candidates)
3. Reconciliation Engine (one PropertyResult per property + meta entry)

State machine per product:
    pending -> fetching -> extracting -> reconciling -> complete

A product with zero fetched sources, or one that hits an unexpected error,
still completes with empty PropertyResults. Only configuration errors
propagate. Batches run products under an outer semaphore; each product owns
its own task so cancelling one product cancels only its in-flight fetches.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Optional, Sequence

from specfinder.core.config import Settings, settings as default_settings
from specfinder.core.exceptions import ConfigurationException, InvalidSchemaException
from specfinder.core.logging import logger, sanitize_for_log
from specfinder.crawlers.ladder import FetchStrategyLadder
from specfinder.crawlers.result import FetchedSource
from specfinder.crawlers.source_fetcher import SourceFetcher

from .audit import AuditSink
from .domain_policy import DomainPolicy
from .extraction import ExtractionAdapter, ExtractionService
from .reconciliation import META_SOURCES_KEY, build_meta_entry, reconcile
from .result import (
    ProductRequest,
    ProductResult,
    ProductState,
    PropertyDefinition,
    SearchResponse,
)
from .timer import PipelineTimer


StateCallback = Callable[[str, ProductState], None]

CANCELLED_MESSAGE = "cancelled"


@dataclass(frozen=True)
class PipelineConfig:
    """파이프라인 동시성/추출 설정"""

    source_concurrency: int = 8
    batch_concurrency: int = 5
    max_sources_per_product: Optional[int] = 10
    extraction_concurrency: int = 10
    extraction_timeout_s: float = 60.0
    extraction_max_chars: int = 15000
    min_consistent_sources: int = 1

    @classmethod
    def from_settings(cls, s: Optional[Settings] = None) -> "PipelineConfig":
        s = s or default_settings
        return cls(
            source_concurrency=s.source_concurrency,
            batch_concurrency=s.batch_concurrency,
            max_sources_per_product=s.max_sources_per_product,
            extraction_concurrency=s.extraction_concurrency,
            extraction_timeout_s=s.extraction_timeout_s,
            extraction_max_chars=s.extraction_max_chars,
            min_consistent_sources=s.min_consistent_sources,
        )


def _empty_result(
    request: ProductRequest,
    schema: Sequence[PropertyDefinition],
    fetched: Sequence[FetchedSource],
    status_message: str,
    timer: Optional[PipelineTimer] = None,
) -> ProductResult:
    properties = reconcile([], schema)
    properties[META_SOURCES_KEY] = build_meta_entry(fetched)
    succeeded = sum(1 for f in fetched if f.success)
    return ProductResult(
        id=request.id,
        product_name=request.product_name,
        article_number=request.article_number,
        properties=properties,
        state=ProductState.COMPLETE,
        status_message=status_message,
        fetched_count=succeeded,
        failed_count=len(fetched) - succeeded,
        elapsed_ms=timer.elapsed_ms() if timer else 0.0,
        timings=timer.checkpoints if timer else {},
    )


def cancelled_result(request: ProductRequest, schema: Sequence[PropertyDefinition]) -> ProductResult:
    """개별 취소된 제품의 결과 (빈 속성)"""
    return _empty_result(request, schema, [], CANCELLED_MESSAGE)


class PipelineOrchestrator:
    """제품 사양 검색 파이프라인 오케스트레이터"""

    def __init__(
        self,
        ladder: FetchStrategyLadder,
        extraction_service: ExtractionService,
        audit_sink: Optional[AuditSink] = None,
        config: Optional[PipelineConfig] = None,
    ):
        """
        Args:
            ladder: URL별 수집 Ladder
            extraction_service: 외부 추출 서비스
            audit_sink: 감사 이벤트 싱크 (선택)
            config: 동시성/추출 설정 (기본값: settings)
        """
        if ladder is None:
            raise ValueError("ladder must not be None")
        if extraction_service is None:
            raise ValueError("extraction_service must not be None")

        self.ladder = ladder
        self.audit_sink = audit_sink
        self.config = config or PipelineConfig.from_settings()
        self.extraction = ExtractionAdapter(
            extraction_service,
            concurrency=self.config.extraction_concurrency,
            timeout_s=self.config.extraction_timeout_s,
            max_chars=self.config.extraction_max_chars,
        )

    @staticmethod
    def _notify(callback: Optional[StateCallback], product_id: str, state: ProductState) -> None:
        if callback is None:
            return
        try:
            callback(product_id, state)
        except Exception as e:
            logger.warning(f"[PIPELINE] state callback failed: {type(e).__name__}: {e}")

    async def search_product(
        self,
        request: ProductRequest,
        schema: Sequence[PropertyDefinition],
        domain_policy: DomainPolicy,
        min_consistent_sources: Optional[int] = None,
        on_state_change: Optional[StateCallback] = None,
    ) -> ProductResult:
        """제품 하나를 파이프라인으로 처리

        Args:
            request: 제품 요청 (후보 URL 포함)
            schema: 속성 스키마
            domain_policy: 이번 실행에 쓸 도메인 정책 스냅샷
            min_consistent_sources: is_consistent 기준 (기본값: config)
            on_state_change: 상태 전이 콜백 (product_id, state)

        Returns:
            ProductResult: 항상 COMPLETE 상태

        Raises:
            ConfigurationException: 설정 오류
            asyncio.CancelledError: 제품 취소 (진행 중인 수집도 함께 취소됨)
        """
        min_cs = min_consistent_sources or self.config.min_consistent_sources
        timer = PipelineTimer()
        timer.start()
        fetched: list[FetchedSource] = []

        def transition(state: ProductState) -> None:
            timer.checkpoint(state.value)
            logger.debug(f"[PIPELINE] {request.id}: {state.value} ({timer.elapsed_ms():.0f}ms)")
            self._notify(on_state_change, request.id, state)

        transition(ProductState.PENDING)
        try:
            transition(ProductState.FETCHING)
            fetcher = SourceFetcher(
                domain_policy,
                self.ladder,
                concurrency=self.config.source_concurrency,
                audit_sink=self.audit_sink,
                max_sources=self.config.max_sources_per_product,
                product_id=request.id,
            )
            fetched = await fetcher.fetch_all(request.sources, request.hint)
            succeeded = [f for f in fetched if f.success]

            if not succeeded:
                logger.warning(
                    f"[PIPELINE] {request.id}: no sources fetched "
                    f"({len(fetched)} attempted) for '{sanitize_for_log(request.product_name)}'"
                )
                transition(ProductState.COMPLETE)
                return _empty_result(request, schema, fetched, "no sources fetched", timer)

            transition(ProductState.EXTRACTING)
            candidates = await self.extraction.extract(succeeded, schema, request.hint)

            transition(ProductState.RECONCILING)
            properties = reconcile(candidates, schema, min_cs, domain_policy)
            properties[META_SOURCES_KEY] = build_meta_entry(fetched)

            transition(ProductState.COMPLETE)
            found = sum(1 for name, p in properties.items() if name != META_SOURCES_KEY and p.value)
            logger.info(
                f"[PIPELINE] {request.id}: complete - {found}/{len(schema)} properties, "
                f"{len(succeeded)}/{len(fetched)} sources, {timer.elapsed_ms():.0f}ms"
            )
            return ProductResult(
                id=request.id,
                product_name=request.product_name,
                article_number=request.article_number,
                properties=properties,
                state=ProductState.COMPLETE,
                status_message="ok",
                fetched_count=len(succeeded),
                failed_count=len(fetched) - len(succeeded),
                elapsed_ms=timer.elapsed_ms(),
                timings=timer.checkpoints,
            )
        except ConfigurationException:
            raise
        except asyncio.CancelledError:
            logger.info(f"[PIPELINE] {request.id}: cancelled")
            raise
        except Exception as e:
            logger.error(f"[PIPELINE] {request.id}: unexpected error: {type(e).__name__}: {e}", exc_info=True)
            transition(ProductState.COMPLETE)
            return _empty_result(request, schema, fetched, f"error: {type(e).__name__}", timer)

    def start_batch(
        self,
        requests: Sequence[ProductRequest],
        schema: Sequence[PropertyDefinition],
        domain_policy: DomainPolicy,
        min_consistent_sources: Optional[int] = None,
        on_state_change: Optional[StateCallback] = None,
    ) -> "BatchRun":
        """배치 실행 시작 (실행 중인 이벤트 루프 안에서 호출)"""
        return BatchRun(
            self,
            requests,
            schema,
            domain_policy,
            min_consistent_sources=min_consistent_sources,
            on_state_change=on_state_change,
        )

    async def search(
        self,
        requests: Sequence[ProductRequest],
        schema: Sequence[PropertyDefinition],
        domain_policy: DomainPolicy,
        min_consistent_sources: Optional[int] = None,
        on_state_change: Optional[StateCallback] = None,
    ) -> SearchResponse:
        """배치 전체를 처리하고 SearchResponse 반환"""
        run = self.start_batch(
            requests,
            schema,
            domain_policy,
            min_consistent_sources=min_consistent_sources,
            on_state_change=on_state_change,
        )
        return await run.wait()


class BatchRun:
    """실행 중인 배치 핸들

    - cancel(product_id): 해당 제품만 취소 (형제 제품에는 영향 없음)
    - as_completed(): 완료 순서대로 제품 결과 전달
    - wait(): 전체 완료 후 SearchResponse (입력 순서)
    """

    def __init__(
        self,
        orchestrator: PipelineOrchestrator,
        requests: Sequence[ProductRequest],
        schema: Sequence[PropertyDefinition],
        domain_policy: DomainPolicy,
        min_consistent_sources: Optional[int] = None,
        on_state_change: Optional[StateCallback] = None,
    ):
        ids = [r.id for r in requests]
        if len(set(ids)) != len(ids):
            raise ValueError("product ids must be unique within a batch")
        names = [p.name for p in schema]
        if not names:
            raise InvalidSchemaException("schema must define at least one property")
        if len(set(names)) != len(names):
            raise InvalidSchemaException("property names must be unique", {"names": names})

        self._orchestrator = orchestrator
        self._schema = list(schema)
        self._domain_policy = domain_policy
        self._min_cs = min_consistent_sources
        self._on_state_change = on_state_change
        self._semaphore = asyncio.Semaphore(orchestrator.config.batch_concurrency)
        self._requests: dict[str, ProductRequest] = {r.id: r for r in requests}
        self._tasks: dict[str, asyncio.Task] = {
            r.id: asyncio.create_task(self._run(r), name=f"product:{r.id}") for r in requests
        }
        logger.info(
            f"[PIPELINE] Batch started: {len(requests)} products "
            f"(concurrency={orchestrator.config.batch_concurrency})"
        )

    async def _run(self, request: ProductRequest) -> ProductResult:
        async with self._semaphore:
            return await self._orchestrator.search_product(
                request,
                self._schema,
                self._domain_policy,
                min_consistent_sources=self._min_cs,
                on_state_change=self._on_state_change,
            )

    @property
    def product_ids(self) -> list[str]:
        return list(self._tasks)

    def cancel(self, product_id: str) -> bool:
        """제품 하나 취소 (이미 끝났거나 없는 ID면 False)"""
        task = self._tasks.get(product_id)
        if task is None or task.done():
            return False
        logger.info(f"[PIPELINE] Cancelling product {product_id}")
        return task.cancel()

    def cancel_all(self) -> None:
        for task in self._tasks.values():
            if not task.done():
                task.cancel()

    def _settle(self, product_id: str) -> ProductResult:
        task = self._tasks[product_id]
        request = self._requests[product_id]
        if task.cancelled():
            return cancelled_result(request, self._schema)
        exc = task.exception()
        if exc is None:
            return task.result()
        if isinstance(exc, ConfigurationException):
            raise exc
        logger.error(f"[PIPELINE] product {product_id} failed: {type(exc).__name__}: {exc}")
        return _empty_result(request, self._schema, [], f"error: {type(exc).__name__}")

    async def as_completed(self) -> AsyncIterator[ProductResult]:
        """완료되는 순서대로 제품 결과 yield"""
        order = {pid: i for i, pid in enumerate(self._tasks)}
        by_task = {task: pid for pid, task in self._tasks.items()}
        pending = set(self._tasks.values())
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            for task in sorted(done, key=lambda t: order[by_task[t]]):
                yield self._settle(by_task[task])

    async def wait(self) -> SearchResponse:
        """전체 완료 대기 -> SearchResponse (제품은 입력 순서)"""
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)
        products = [self._settle(pid) for pid in self._tasks]
        response = SearchResponse.from_products(products)
        logger.info(f"[PIPELINE] Batch finished: {response.search_status.value} ({response.status_message})")
        return response
