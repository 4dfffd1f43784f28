"""Source Fetcher - bounded-concurrency, fail-soft fetching of candidate URLs

Given the candidate URLs of one product it:
1. drops URLs rejected by the Domain Policy (never fetched)
2. drops duplicates and malformed / non-http(s) URLs
3. puts trusted-domain sources first and caps the list
4. runs the Fetch Strategy Ladder for each URL under a semaphore
5. settles all workers (one URL's failure never cancels its siblings)

Every FetchedSource gets an arrival sequence number assigned at completion
time, and the returned list is in arrival order.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

from specfinder.core.logging import logger
from specfinder.engine.audit import AuditSink, FetchAuditEvent, emit_best_effort
from specfinder.engine.domain_policy import DomainPolicy
from specfinder.engine.result import ProductHint
from specfinder.utils.url_utils import is_http_url

from .ladder import FetchStrategyLadder
from .result import CandidateSource, FetchedSource


class SourceFetcher:
    """제품 하나의 후보 URL 목록을 FetchedSource 목록으로 변환"""

    def __init__(
        self,
        domain_policy: DomainPolicy,
        ladder: FetchStrategyLadder,
        concurrency: int = 8,
        audit_sink: Optional[AuditSink] = None,
        max_sources: Optional[int] = None,
        product_id: Optional[str] = None,
    ):
        if concurrency <= 0:
            raise ValueError("concurrency must be positive")
        self.domain_policy = domain_policy
        self.ladder = ladder
        self.concurrency = concurrency
        self.audit_sink = audit_sink
        self.max_sources = max_sources
        self.product_id = product_id

    def select_sources(self, sources: Sequence[CandidateSource]) -> list[CandidateSource]:
        """정책 필터 -> 중복/잘못된 URL 제거 -> 신뢰 도메인 우선 -> 개수 제한"""
        selected: list[CandidateSource] = []
        seen: set[str] = set()
        for source in sources:
            url = (source.url or "").strip()
            if not is_http_url(url):
                logger.info(f"[FETCHER] Skipping malformed URL: {url!r}")
                continue
            if not self.domain_policy.is_allowed(url):
                logger.info(f"[FETCHER] Excluded by domain policy: {url}")
                continue
            if url in seen:
                continue
            seen.add(url)
            selected.append(source if url == source.url else CandidateSource(url=url, title=source.title))

        selected = self.domain_policy.prioritize(selected)
        if self.max_sources is not None and len(selected) > self.max_sources:
            logger.info(f"[FETCHER] Capping sources {len(selected)} -> {self.max_sources}")
            selected = selected[: self.max_sources]
        return selected

    async def fetch_all(
        self,
        sources: Sequence[CandidateSource],
        hint: Optional[ProductHint] = None,
    ) -> list[FetchedSource]:
        """후보 URL 전체 수집 (settle-all)

        Args:
            sources: 후보 URL 목록
            hint: 제품 힌트 (품번 포함 여부 표시용)

        Returns:
            도착 순서의 FetchedSource 목록 (제외 도메인 URL은 포함되지 않음)
        """
        selected = self.select_sources(sources)
        if not selected:
            logger.info("[FETCHER] No fetchable sources after filtering")
            return []

        semaphore = asyncio.Semaphore(self.concurrency)
        arrived: list[FetchedSource] = []
        article = (hint.article_number or "").strip().lower() if hint is not None else ""

        async def _worker(source: CandidateSource) -> None:
            async with semaphore:
                try:
                    fetched = await self.ladder.fetch(source)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error(f"[FETCHER] Unexpected ladder error for {source.url}: {type(e).__name__}: {e}")
                    fetched = FetchedSource.failure(source.url, f"{type(e).__name__}: {e}", title=source.title)

            if article and fetched.success:
                fetched = fetched.with_article_match(article in fetched.content.lower())
            # 완료 시점에 순번 부여 (이벤트 루프 단일 스레드라 경합 없음)
            fetched = fetched.with_sequence(len(arrived))
            arrived.append(fetched)
            emit_best_effort(self.audit_sink, FetchAuditEvent.from_source(fetched, self.product_id))

        results = await asyncio.gather(*(_worker(s) for s in selected), return_exceptions=True)
        for source, outcome in zip(selected, results):
            if isinstance(outcome, BaseException):
                logger.error(f"[FETCHER] Worker crashed for {source.url}: {type(outcome).__name__}")
                crashed = FetchedSource.failure(source.url, f"worker error: {type(outcome).__name__}", title=source.title)
                arrived.append(crashed.with_sequence(len(arrived)))

        succeeded = sum(1 for f in arrived if f.success)
        logger.info(f"[FETCHER] Fetched {succeeded}/{len(selected)} sources successfully")
        return arrived
