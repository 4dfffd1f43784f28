"""Script-eval fetch strategy (ladder rung 4)

브라우저 없이 문서의 인라인 스크립트 페이로드를 프로세스 안에서 평가합니다.
JSON-LD, application/json 상태 스크립트(__NEXT_DATA__ 등),
window.X = {...} 하이드레이션 대입을 디코드해 텍스트로 펼친 뒤
정적 가시 텍스트/meta 정보와 합칩니다.
"""

from __future__ import annotations

from typing import Optional

from specfinder.core.exceptions import BlockedException, HttpStatusException
from specfinder.core.logging import logger

from .boundary.html_parsing import extract_script_payload_text, extract_title, get_blocked_keyword
from .boundary.pdf_parsing import is_pdf_response
from .executor import LadderConfig, LadderContext
from .http_client import SharedHttpClient, get_shared_http_client
from .result import FetchMethod, FetchResult


class ScriptEvalStrategy:
    """4단계: 인라인 스크립트 평가 (최후 수단)

    성공 기준: 텍스트 길이 > min_script_content_chars
    앞 단계가 받은 HTML이 있으면 재사용하고, 없으면 직접 GET 합니다.
    """

    method = FetchMethod.SCRIPT_EVAL

    def __init__(self, config: LadderConfig, http_client: Optional[SharedHttpClient] = None):
        self.config = config
        self.timeout_s = config.script_timeout_s
        self.http_client = http_client or get_shared_http_client()

    async def _load_html(self, url: str, context: LadderContext) -> Optional[str]:
        if context.raw_html:
            return context.raw_html

        resp = await self.http_client.get(
            url,
            timeout_s=self.timeout_s,
            headers=self.http_client.enhanced_headers(),
        )
        if resp.status >= 400:
            raise HttpStatusException(url, resp.status)
        if is_pdf_response(resp.content_type, resp.body):
            return None
        context.remember_html(resp.text, resp.content_type)
        return resp.text

    async def attempt(self, url: str, context: LadderContext) -> FetchResult:
        html = await self._load_html(url, context)
        if not html:
            return FetchResult.failed("No HTML document available for script evaluation")

        blocked = get_blocked_keyword(html)
        if blocked:
            raise BlockedException(url, {"keyword": blocked})

        text = extract_script_payload_text(html)
        title = extract_title(html, fallback=url)
        threshold = self.config.min_script_content_chars
        logger.debug(f"[{self.method.value}] {url}: {len(text)} chars from script payloads")
        if len(text) > threshold:
            return FetchResult.ok(text, title=title, raw_html=html)
        return FetchResult.failed(
            f"Script-evaluated content too short ({len(text)} <= {threshold} chars)",
            content=text,
            title=title,
        )
