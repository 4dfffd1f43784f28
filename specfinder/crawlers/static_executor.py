"""Static fetch strategies (ladder rungs 1-2)

- FastStaticStrategy: 브라우저 UA + 최소 헤더, 짧은 타임아웃
- EnhancedStaticStrategy: 헤더 보강 + 긴 타임아웃, 동적 페이지 판별 후 수락
"""

from __future__ import annotations

import asyncio
from typing import Optional

from specfinder.core.exceptions import (
    BlockedException,
    ContentTooShortException,
    DynamicContentException,
    HttpStatusException,
)
from specfinder.core.logging import logger

from .boundary.html_parsing import (
    detect_dynamic_content,
    extract_title,
    get_blocked_keyword,
    html_to_text,
)
from .boundary.pdf_parsing import is_pdf_response, read_pdf
from .executor import LadderConfig, LadderContext
from .http_client import HttpResponse, SharedHttpClient, get_shared_http_client
from .result import FetchMethod, FetchResult


class _StaticFetchStrategy:
    """정적 HTTP 수집 공통 로직"""

    method: FetchMethod
    timeout_s: float

    def __init__(self, config: LadderConfig, http_client: Optional[SharedHttpClient] = None):
        self.config = config
        self.http_client = http_client or get_shared_http_client()

    def _headers(self) -> dict[str, str]:
        return self.http_client.default_headers()

    async def _download(self, url: str, context: LadderContext) -> HttpResponse:
        logger.debug(f"[{self.method.value}] GET {url} (timeout={self.timeout_s:.1f}s)")
        resp = await self.http_client.get(url, timeout_s=self.timeout_s, headers=self._headers())
        if resp.status >= 400:
            raise HttpStatusException(url, resp.status)
        if not is_pdf_response(resp.content_type, resp.body):
            context.remember_html(resp.text, resp.content_type)
        return resp

    async def _pdf_result(self, url: str, resp: HttpResponse) -> FetchResult:
        # 파싱은 스레드에서 (이벤트 루프를 막지 않고 wait_for 취소가 바로 먹힘)
        try:
            doc = await asyncio.to_thread(read_pdf, resp.body, url)
        except ValueError as e:
            return FetchResult.failed(str(e))
        return self._judge_length(doc.text, doc.title)

    def _judge_length(self, text: str, title: Optional[str], raw_html: Optional[str] = None) -> FetchResult:
        threshold = self.config.min_content_chars
        if len(text) > threshold:
            return FetchResult.ok(text, title=title, raw_html=raw_html)
        return FetchResult.failed(
            ContentTooShortException(len(text), threshold).message,
            content=text,
            title=title,
            raw_html=raw_html,
        )


class FastStaticStrategy(_StaticFetchStrategy):
    """1단계: 단순 HTTP GET

    성공 기준: 태그 제거 후 텍스트 길이 > min_content_chars
    """

    method = FetchMethod.FAST_STATIC

    def __init__(self, config: LadderConfig, http_client: Optional[SharedHttpClient] = None):
        super().__init__(config, http_client)
        self.timeout_s = config.fast_timeout_s

    async def attempt(self, url: str, context: LadderContext) -> FetchResult:
        resp = await self._download(url, context)
        if is_pdf_response(resp.content_type, resp.body):
            return await self._pdf_result(url, resp)

        html = resp.text
        text = html_to_text(html)
        return self._judge_length(text, extract_title(html, fallback=url), raw_html=html)


class EnhancedStaticStrategy(_StaticFetchStrategy):
    """2단계: 헤더 보강 HTTP GET + 동적 페이지 판별

    동적 페이지로 판별되면 길이와 무관하게 실패로 처리해 렌더링 단계로 넘깁니다.
    """

    method = FetchMethod.ENHANCED_STATIC

    def __init__(self, config: LadderConfig, http_client: Optional[SharedHttpClient] = None):
        super().__init__(config, http_client)
        self.timeout_s = config.enhanced_timeout_s

    def _headers(self) -> dict[str, str]:
        return self.http_client.enhanced_headers()

    async def attempt(self, url: str, context: LadderContext) -> FetchResult:
        resp = await self._download(url, context)
        if is_pdf_response(resp.content_type, resp.body):
            return await self._pdf_result(url, resp)

        html = resp.text
        blocked = get_blocked_keyword(html)
        if blocked:
            raise BlockedException(url, {"keyword": blocked})

        verdict = detect_dynamic_content(
            html,
            min_element_count=self.config.dynamic_min_element_count,
            script_tag_threshold=self.config.dynamic_script_tag_threshold,
            near_empty_body_chars=self.config.dynamic_near_empty_body_chars,
        )
        if verdict.is_dynamic:
            logger.info(f"[{self.method.value}] Dynamic page detected: {url} reasons={verdict.reasons}")
            raise DynamicContentException(verdict.reasons, {"url": url, "reasons": verdict.reasons})

        text = html_to_text(html)
        return self._judge_length(text, extract_title(html, fallback=url), raw_html=html)
