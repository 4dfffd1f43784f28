"""Fetch Strategy Ladder - ordered escalation from cheapest to most capable

The ladder is a plain iteration over strategy objects with early exit:

    fast-static -> enhanced-static -> rendered -> script-eval

Each attempt is bounded by its own timeout through cancellation
(asyncio.wait_for), so a hung rung never blocks the URL beyond its budget.
Every rung failure is recorded and escalation continues; the last error is
kept on the FetchedSource when all rungs fail.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Optional, Sequence

from specfinder.core.exceptions import FetchException
from specfinder.core.logging import logger

from .executor import FetchStrategy, LadderConfig, LadderContext
from .result import AttemptRecord, CandidateSource, FetchedSource


@asynccontextmanager
async def _unbounded():
    yield


class FetchStrategyLadder:
    """URL 하나를 FetchedSource로 바꾸는 단계적 수집기"""

    def __init__(self, strategies: Sequence[FetchStrategy]):
        if not strategies:
            raise ValueError("ladder requires at least one strategy")
        self.strategies: tuple[FetchStrategy, ...] = tuple(strategies)

    @property
    def methods(self) -> list[str]:
        return [s.method.value for s in self.strategies]

    async def _run_attempt(
        self, strategy: FetchStrategy, url: str, context: LadderContext
    ) -> tuple[AttemptRecord, Optional[str], Optional[str], str]:
        """단계 1회 실행 -> (기록, 성공 시 content, title, 실패 사유)

        strategy.slot()이 있으면 슬롯을 먼저 잡고, 대기 시간은 timeout에 넣지 않음
        """
        slot = getattr(strategy, "slot", None)
        async with (slot() if slot is not None else _unbounded()):
            return await self._timed_attempt(strategy, url, context)

    async def _timed_attempt(
        self, strategy: FetchStrategy, url: str, context: LadderContext
    ) -> tuple[AttemptRecord, Optional[str], Optional[str], str]:
        started = time.perf_counter()
        method = strategy.method
        try:
            result = await asyncio.wait_for(strategy.attempt(url, context), timeout=strategy.timeout_s)
        except asyncio.TimeoutError:
            error = f"{method.value}: timeout after {strategy.timeout_s:.1f}s"
        except FetchException as e:
            error = f"{method.value}: {e.message}"
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = f"{method.value}: {type(e).__name__}: {e}"
        else:
            elapsed_ms = (time.perf_counter() - started) * 1000
            if result.raw_html:
                context.remember_html(result.raw_html)
            if result.success:
                record = AttemptRecord(
                    method=method,
                    success=True,
                    elapsed_ms=elapsed_ms,
                    content_length=len(result.content),
                )
                return record, result.content, result.title, ""
            error = f"{method.value}: {result.error or 'unsuccessful'}"
            record = AttemptRecord(
                method=method,
                success=False,
                elapsed_ms=elapsed_ms,
                error=error,
                content_length=len(result.content),
            )
            return record, None, result.title, error

        elapsed_ms = (time.perf_counter() - started) * 1000
        return AttemptRecord(method=method, success=False, elapsed_ms=elapsed_ms, error=error), None, None, error

    async def fetch(self, source: CandidateSource) -> FetchedSource:
        """단계별로 시도하고 첫 성공에서 멈춤

        Args:
            source: 수집 대상

        Returns:
            FetchedSource (전부 실패하면 success=False, 마지막 오류 보존)
        """
        url = source.url
        context = LadderContext(url=url)
        attempts: list[AttemptRecord] = []
        last_error = ""
        title: Optional[str] = None
        started = time.perf_counter()

        for strategy in self.strategies:
            record, content, attempt_title, error = await self._run_attempt(strategy, url, context)
            attempts.append(record)
            title = attempt_title or title
            if content is not None:
                elapsed_ms = (time.perf_counter() - started) * 1000
                logger.info(
                    f"[LADDER] {strategy.method.value} succeeded: {url} "
                    f"({len(content)} chars, {elapsed_ms:.0f}ms, attempts={len(attempts)})"
                )
                return FetchedSource.succeeded(
                    url,
                    title or source.title or url,
                    content,
                    strategy.method,
                    elapsed_ms=elapsed_ms,
                    attempts=tuple(attempts),
                )
            last_error = error
            logger.debug(f"[LADDER] escalating after {error} ({url})")

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.warning(f"[LADDER] all strategies failed: {url} last_error={last_error}")
        return FetchedSource.failure(
            url,
            last_error or "all strategies failed",
            title=source.title or title or url,
            elapsed_ms=elapsed_ms,
            attempts=tuple(attempts),
        )


def build_default_ladder(config: Optional[LadderConfig] = None) -> FetchStrategyLadder:
    """기본 4단계 Ladder 구성 (순서 고정)"""
    from .rendered_executor import RenderedStrategy
    from .script_executor import ScriptEvalStrategy
    from .static_executor import EnhancedStaticStrategy, FastStaticStrategy

    config = config or LadderConfig.from_settings()
    return FetchStrategyLadder(
        [
            FastStaticStrategy(config),
            EnhancedStaticStrategy(config),
            RenderedStrategy(config),
            ScriptEvalStrategy(config),
        ]
    )
