"""Rendered fetch strategy (ladder rung 3) - Playwright headless Chromium

페이지 스크립트를 실행하고 network-idle까지 기다린 뒤
렌더링된 문서의 가시 텍스트(document.body.innerText)를 읽습니다.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from specfinder.core.exceptions import BlockedException, BrowserException
from specfinder.core.logging import logger
from specfinder.utils.text_utils import collapse_whitespace

from .boundary.html_parsing import get_blocked_keyword
from .executor import LadderConfig, LadderContext
from .playwright import configure_page, new_page
from .result import FetchMethod, FetchResult


_INNER_TEXT_JS = "() => document.body ? document.body.innerText : ''"


class RenderedStrategy:
    """3단계: 헤드리스 브라우저 렌더링

    성공 기준: 렌더링 후 가시 텍스트 길이 > min_content_chars
    동시 페이지 수는 browser_concurrency로 제한합니다 (slot()).
    슬롯 대기 시간은 단계 timeout에 포함되지 않습니다.
    """

    method = FetchMethod.RENDERED

    def __init__(
        self,
        config: LadderConfig,
        page_factory: Optional[Callable[[], Awaitable[Any]]] = None,
    ):
        self.config = config
        self.timeout_s = config.render_timeout_s
        self._page_factory = page_factory or new_page
        self._semaphore = asyncio.Semaphore(max(1, config.browser_concurrency))

    def slot(self) -> asyncio.Semaphore:
        """브라우저 페이지 슬롯 (Ladder가 timeout 측정 전에 잡음)"""
        return self._semaphore

    async def attempt(self, url: str, context: LadderContext) -> FetchResult:
        try:
            page = await self._page_factory()
        except BrowserException:
            raise
        except Exception as e:
            raise BrowserException(f"Failed to open page: {type(e).__name__}: {e}") from e

        try:
            await configure_page(page, self.timeout_s)
            # networkidle 대기가 길어지는 페이지는 로드된 만큼만 읽음
            goto_timeout_ms = self.timeout_s * 0.8 * 1000
            try:
                await page.goto(url, wait_until="networkidle", timeout=goto_timeout_ms)
            except PlaywrightTimeoutError:
                logger.info(f"[Playwright] networkidle timeout, reading partial DOM: {url}")

            text = collapse_whitespace(await page.evaluate(_INNER_TEXT_JS) or "")
            title = (await page.title()) or url
            html = await page.content()
        finally:
            try:
                await page.close()
            except Exception as e:
                logger.debug(f"[Playwright] page close failed: {type(e).__name__}")

        context.remember_html(html)
        blocked = get_blocked_keyword(html)
        if blocked:
            raise BlockedException(url, {"keyword": blocked})

        threshold = self.config.min_content_chars
        if len(text) > threshold:
            return FetchResult.ok(text, title=title, raw_html=html)
        return FetchResult.failed(
            f"Rendered content too short ({len(text)} <= {threshold} chars)",
            content=text,
            title=title,
            raw_html=html,
        )
