"""Fetch Strategy Ladder 단위 테스트

- 첫 성공 단계에서 멈춤
- 단계 실패(예외/타임아웃/기준 미달)는 기록 후 다음 단계로
- 전부 실패하면 마지막 오류 보존
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from specfinder.core.exceptions import (
    BlockedException,
    BrowserException,
    DynamicContentException,
    HttpStatusException,
)
from specfinder.crawlers.boundary.pdf_parsing import read_pdf
from specfinder.crawlers.executor import LadderConfig, LadderContext
from specfinder.crawlers.ladder import FetchStrategyLadder, build_default_ladder
from specfinder.crawlers.playwright import should_block_request
from specfinder.crawlers.rendered_executor import RenderedStrategy
from specfinder.crawlers.result import CandidateSource, FetchMethod, FetchResult
from specfinder.crawlers.script_executor import ScriptEvalStrategy
from specfinder.crawlers.static_executor import EnhancedStaticStrategy, FastStaticStrategy
from tests.fixtures.fakes import (
    FakeHttpClient,
    FakeStrategy,
    article_page,
    html_response,
    make_ladder,
    make_pdf,
    ok_result,
    pdf_response,
    spa_shell,
)


URL = "https://shop.example.com/product"


@pytest.mark.asyncio
async def test_fast_static_success_stops_ladder() -> None:
    """1단계가 1,200자를 돌려주면 fast-static으로 끝남"""
    fast = FakeStrategy(FetchMethod.FAST_STATIC, ok_result(1200))
    enhanced = FakeStrategy(FetchMethod.ENHANCED_STATIC, ok_result(5000))

    result = await make_ladder(fast, enhanced).fetch(CandidateSource(url=URL))

    assert result.success is True
    assert result.method == FetchMethod.FAST_STATIC
    assert result.content_length == 1200
    assert enhanced.calls == []
    assert len(result.attempts) == 1


@pytest.mark.asyncio
async def test_dynamic_page_escalates_to_rendered() -> None:
    """2단계가 동적 페이지로 판별하면 렌더링 단계가 다음으로 시도됨"""
    fast = FakeStrategy(FetchMethod.FAST_STATIC, FetchResult.failed("too short", content="x" * 50))
    enhanced = FakeStrategy(FetchMethod.ENHANCED_STATIC, DynamicContentException(["mount:root"]))
    rendered = FakeStrategy(FetchMethod.RENDERED, ok_result(3000))
    script = FakeStrategy(FetchMethod.SCRIPT_EVAL, ok_result(800))

    result = await make_ladder(fast, enhanced, rendered, script).fetch(CandidateSource(url=URL))

    assert result.method == FetchMethod.RENDERED
    assert rendered.calls == [URL]
    assert script.calls == []
    assert [a.method for a in result.attempts] == [
        FetchMethod.FAST_STATIC,
        FetchMethod.ENHANCED_STATIC,
        FetchMethod.RENDERED,
    ]
    assert "requires rendering" in (result.attempts[1].error or "")


@pytest.mark.asyncio
async def test_all_rungs_fail_keeps_last_error() -> None:
    fast = FakeStrategy(FetchMethod.FAST_STATIC, HttpStatusException(URL, 503))
    enhanced = FakeStrategy(FetchMethod.ENHANCED_STATIC, HttpStatusException(URL, 503))
    script = FakeStrategy(FetchMethod.SCRIPT_EVAL, FetchResult.failed("script payload too short"))

    result = await make_ladder(fast, enhanced, script).fetch(CandidateSource(url=URL, title="Bekannter Titel"))

    assert result.success is False
    assert result.method is None
    assert result.content == ""
    assert result.content_length == 0
    assert result.title == "Bekannter Titel"
    assert "script payload too short" in (result.error or "")
    assert len(result.attempts) == 3
    assert all(not a.success for a in result.attempts)


@pytest.mark.asyncio
async def test_hung_rung_is_bounded_by_timeout() -> None:
    """단계 타임아웃을 넘긴 시도는 취소되고 다음 단계로 넘어감"""
    slow = FakeStrategy(FetchMethod.FAST_STATIC, ok_result(5000), timeout_s=0.05, delay_s=5.0)
    fallback = FakeStrategy(FetchMethod.ENHANCED_STATIC, ok_result(1500))

    result = await asyncio.wait_for(make_ladder(slow, fallback).fetch(CandidateSource(url=URL)), timeout=2.0)

    assert result.method == FetchMethod.ENHANCED_STATIC
    assert "timeout" in (result.attempts[0].error or "")


@pytest.mark.asyncio
async def test_unexpected_error_is_recorded_not_raised() -> None:
    broken = FakeStrategy(FetchMethod.FAST_STATIC, RuntimeError("boom"))
    fallback = FakeStrategy(FetchMethod.ENHANCED_STATIC, ok_result(1500))

    result = await make_ladder(broken, fallback).fetch(CandidateSource(url=URL))

    assert result.success
    assert "RuntimeError" in (result.attempts[0].error or "")


@pytest.mark.asyncio
async def test_cancellation_propagates() -> None:
    slow = FakeStrategy(FetchMethod.FAST_STATIC, ok_result(), timeout_s=10.0, delay_s=10.0)
    task = asyncio.create_task(make_ladder(slow).fetch(CandidateSource(url=URL)))
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


def test_ladder_requires_strategies() -> None:
    with pytest.raises(ValueError):
        FetchStrategyLadder([])


def test_default_ladder_order() -> None:
    ladder = build_default_ladder(LadderConfig())
    assert ladder.methods == ["fast-static", "enhanced-static", "rendered", "script-eval"]


# ============================================================================
# 정적/스크립트 단계 (FakeHttpClient)
# ============================================================================

class TestStaticStrategies:
    @pytest.mark.asyncio
    async def test_fast_static_accepts_long_page(self) -> None:
        client = FakeHttpClient({URL: html_response(URL, article_page())})
        strategy = FastStaticStrategy(LadderConfig(), http_client=client)
        context = LadderContext(url=URL)

        result = await strategy.attempt(URL, context)

        assert result.success
        assert len(result.content) > 1000
        assert result.title == "Waschmaschine WM14 - Technische Daten"
        assert context.raw_html is not None

    @pytest.mark.asyncio
    async def test_fast_static_rejects_short_page(self) -> None:
        html = "<html><body><p>Gewicht 12 kg</p></body></html>"
        client = FakeHttpClient({URL: html_response(URL, html)})
        result = await FastStaticStrategy(LadderConfig(), http_client=client).attempt(URL, LadderContext(url=URL))

        assert not result.success
        assert "Content too short" in (result.error or "")

    @pytest.mark.asyncio
    async def test_http_error_status_raises(self) -> None:
        client = FakeHttpClient({URL: html_response(URL, "<html></html>", status=404)})
        with pytest.raises(HttpStatusException):
            await FastStaticStrategy(LadderConfig(), http_client=client).attempt(URL, LadderContext(url=URL))

    @pytest.mark.asyncio
    async def test_enhanced_static_uses_enhanced_headers(self) -> None:
        client = FakeHttpClient({URL: html_response(URL, article_page())})
        result = await EnhancedStaticStrategy(LadderConfig(), http_client=client).attempt(URL, LadderContext(url=URL))

        assert result.success
        assert client.calls[0][1]["Accept-Language"] == "de-DE"

    @pytest.mark.asyncio
    async def test_enhanced_static_rejects_dynamic_page(self) -> None:
        # 길이가 충분해도 프레임워크 마커가 있으면 렌더링 단계로 넘김
        html = article_page().replace("<main>", '<main id="__next">')
        client = FakeHttpClient({URL: html_response(URL, html)})
        with pytest.raises(DynamicContentException):
            await EnhancedStaticStrategy(LadderConfig(), http_client=client).attempt(URL, LadderContext(url=URL))

    @pytest.mark.asyncio
    async def test_static_rungs_on_spa_shell_escalate(self) -> None:
        client = FakeHttpClient({URL: html_response(URL, spa_shell())})
        config = LadderConfig()
        rendered = FakeStrategy(FetchMethod.RENDERED, ok_result(2500))
        ladder = FetchStrategyLadder(
            [
                FastStaticStrategy(config, http_client=client),
                EnhancedStaticStrategy(config, http_client=client),
                rendered,
            ]
        )

        result = await ladder.fetch(CandidateSource(url=URL))

        assert result.method == FetchMethod.RENDERED
        assert rendered.calls == [URL]


class TestScriptEvalStrategy:
    @pytest.mark.asyncio
    async def test_reuses_html_from_earlier_rung(self) -> None:
        specs = ", ".join(f'"spec{i}": "Wert {i} mit Einheit {i} kg"' for i in range(40))
        html = (
            '<html><head><title>WM14</title></head><body><div id="root"></div>'
            f"<script>window.__STATE__ = {{{specs}}};</script></body></html>"
        )
        client = FakeHttpClient()
        context = LadderContext(url=URL, raw_html=html)

        result = await ScriptEvalStrategy(LadderConfig(), http_client=client).attempt(URL, context)

        assert result.success
        assert "spec7: Wert 7 mit Einheit 7 kg" in result.content
        assert result.title == "WM14"
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_fetches_when_no_html_and_applies_threshold(self) -> None:
        client = FakeHttpClient({URL: html_response(URL, spa_shell())})
        result = await ScriptEvalStrategy(LadderConfig(), http_client=client).attempt(URL, LadderContext(url=URL))

        assert not result.success
        assert len(client.calls) == 1


class TestRenderedStrategy:
    """Playwright 페이지를 MagicMock으로 대체"""

    @staticmethod
    def _page(text: str, html: str = "<html><body>ok</body></html>", goto_error: Optional[Exception] = None) -> MagicMock:
        page = MagicMock()
        page.route = AsyncMock()
        page.goto = AsyncMock(side_effect=goto_error)
        page.evaluate = AsyncMock(return_value=text)
        page.title = AsyncMock(return_value="Gerendert")
        page.content = AsyncMock(return_value=html)
        page.close = AsyncMock()
        return page

    @pytest.mark.asyncio
    async def test_rendered_text_accepted_and_page_closed(self) -> None:
        page = self._page("Gewicht 12 kg " * 100)
        strategy = RenderedStrategy(LadderConfig(), page_factory=AsyncMock(return_value=page))
        context = LadderContext(url=URL)

        result = await strategy.attempt(URL, context)

        assert result.success
        assert result.title == "Gerendert"
        assert context.raw_html == "<html><body>ok</body></html>"
        page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_networkidle_timeout_reads_partial_dom(self) -> None:
        page = self._page("kurz", goto_error=PlaywrightTimeoutError("networkidle"))
        strategy = RenderedStrategy(LadderConfig(), page_factory=AsyncMock(return_value=page))

        result = await strategy.attempt(URL, LadderContext(url=URL))

        assert not result.success
        assert "too short" in (result.error or "")
        page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_page_open_failure_is_browser_error(self) -> None:
        strategy = RenderedStrategy(LadderConfig(), page_factory=AsyncMock(side_effect=RuntimeError("no chromium")))
        with pytest.raises(BrowserException):
            await strategy.attempt(URL, LadderContext(url=URL))

    @pytest.mark.asyncio
    async def test_challenge_page_is_blocked(self) -> None:
        html = "<html><head><title>Just a moment...</title></head><body></body></html>"
        page = self._page("Checking your browser " * 100, html=html)
        strategy = RenderedStrategy(LadderConfig(), page_factory=AsyncMock(return_value=page))
        with pytest.raises(BlockedException):
            await strategy.attempt(URL, LadderContext(url=URL))


def test_resource_blocking_rules() -> None:
    assert should_block_request("image", "https://cdn.example.com/a")
    assert should_block_request("script", "https://cdn.example.com/font.woff2?v=1")
    assert not should_block_request("document", "https://shop.example.com/product")


@pytest.mark.asyncio
async def test_browser_slot_wait_not_counted_against_render_timeout() -> None:
    active = 0
    max_active = 0

    async def slow_goto(*args, **kwargs) -> None:
        nonlocal active, max_active
        active += 1
        max_active = max(max_active, active)
        try:
            await asyncio.sleep(0.3)
        finally:
            active -= 1

    def page_factory():
        page = TestRenderedStrategy._page("Gewicht 12 kg " * 100)
        page.goto = AsyncMock(side_effect=slow_goto)
        return page

    config = LadderConfig(render_timeout_s=0.5, browser_concurrency=1)
    strategy = RenderedStrategy(config, page_factory=AsyncMock(side_effect=page_factory))
    ladder = FetchStrategyLadder([strategy])

    urls = [f"https://s{i}.example.org/" for i in range(3)]
    results = await asyncio.gather(*(ladder.fetch(CandidateSource(url=u)) for u in urls))

    assert [r.success for r in results] == [True, True, True]
    assert all(r.method == FetchMethod.RENDERED for r in results)
    assert max_active == 1


class TestStaticPdf:
    """정적 단계의 PDF 소스 처리 (pypdf로 만든 실제 PDF)"""

    @pytest.mark.asyncio
    async def test_pdf_accepted_or_rejected_by_length(self) -> None:
        url = "https://a.example.org/datenblatt.pdf"
        long_pdf = make_pdf("Gewicht 12 kg Leistung 2000 W " * 60, title="Datenblatt WM14")
        short_pdf = make_pdf("Gewicht 12 kg", title="Datenblatt WM14")

        accepted = await FastStaticStrategy(
            LadderConfig(), http_client=FakeHttpClient({url: pdf_response(url, long_pdf)})
        ).attempt(url, LadderContext(url=url))
        rejected = await FastStaticStrategy(
            LadderConfig(), http_client=FakeHttpClient({url: pdf_response(url, short_pdf)})
        ).attempt(url, LadderContext(url=url))

        assert accepted.success
        assert accepted.title == "Datenblatt WM14"
        assert "Gewicht 12 kg" in accepted.content
        assert "%PDF" not in accepted.content

        assert not rejected.success
        assert "Content too short" in (rejected.error or "")

    @pytest.mark.asyncio
    async def test_slow_pdf_parsing_respects_rung_timeout(self) -> None:
        url = "https://a.example.org/gross.pdf"
        pdf = make_pdf("Gewicht 12 kg " * 200)
        strategy = FastStaticStrategy(
            LadderConfig(fast_timeout_s=0.3), http_client=FakeHttpClient({url: pdf_response(url, pdf)})
        )

        def slow_read(data, fallback_title=""):
            time.sleep(1.5)
            return read_pdf(data, fallback_title)

        started = time.perf_counter()
        with patch("specfinder.crawlers.static_executor.read_pdf", side_effect=slow_read):
            fetched = await FetchStrategyLadder([strategy]).fetch(CandidateSource(url=url))
        elapsed = time.perf_counter() - started

        assert not fetched.success
        assert "timeout" in (fetched.error or "")
        assert elapsed < 1.2
