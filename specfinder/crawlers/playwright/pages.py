"""Playwright page 설정/보조 함수.

Page 생성 후 라우팅(리소스 차단), 타임아웃 등 공통 설정을 분리합니다.
"""

from __future__ import annotations

from playwright.async_api import Page

from specfinder.core.config import settings


_BLOCKED_RESOURCE_TYPES = {"image", "media", "font", "stylesheet"}
_BLOCKED_EXTENSIONS = (
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".webp",
    ".svg",
    ".woff",
    ".woff2",
    ".ttf",
    ".css",
    ".mp4",
)


def should_block_request(resource_type: str, url: str) -> bool:
    """텍스트 추출에 필요 없는 리소스인지"""
    if resource_type in _BLOCKED_RESOURCE_TYPES:
        return True
    path = (url or "").lower().split("?", 1)[0]
    return path.endswith(_BLOCKED_EXTENSIONS)


async def configure_page(page: Page, timeout_s: float) -> Page:
    page.set_default_timeout(timeout_s * 1000)

    if not settings.crawler_block_resources:
        return page

    async def _route_handler(route, request):
        try:
            if should_block_request(request.resource_type, request.url):
                await route.abort()
                return
            await route.continue_()
        except Exception:
            # 페이지가 이미 닫힌 경우 라우팅 호출이 실패할 수 있음
            return

    await page.route("**/*", _route_handler)
    return page
