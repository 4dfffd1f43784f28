"""렌더링 단계용 공용 Chromium 관리

브라우저는 첫 렌더링 요청 때 한 번만 띄우고(지연 실행) 모든 제품/소스가
같은 컨텍스트를 공유합니다. 연결이 끊기면 다음 요청에서 다시 띄우며,
앱 종료 시 shutdown_shared_browser()로 정리합니다.
"""

from __future__ import annotations

import asyncio
import platform
from typing import Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Playwright

from specfinder.core.config import settings
from specfinder.core.logging import logger
from specfinder.core.exceptions import BrowserException


# playwright 기동/브라우저 실행 상한 (초)
PLAYWRIGHT_START_TIMEOUT_S = 20.0
BROWSER_LAUNCH_TIMEOUT_S = 25.0
MAX_RETRY_WAIT_S = 10.0


def build_launch_args() -> list[str]:
    args = [
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--disable-extensions",
        "--disable-background-networking",
        "--mute-audio",
        "--no-first-run",
    ]
    # 컨테이너(root) 환경에서는 샌드박스 없이만 뜸
    if platform.system().lower() == "linux":
        args += ["--no-sandbox", "--disable-setuid-sandbox"]
    return args


class SharedBrowser:
    """Playwright + Chromium + BrowserContext 묶음

    ensure()는 살아있는 컨텍스트를 돌려주거나, 없으면 재시도하며 새로 띄웁니다.
    """

    def __init__(self, launch_retries: Optional[int] = None):
        self.launch_retries = max(1, launch_retries or settings.crawler_browser_launch_retries)
        self._lock = asyncio.Lock()
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    @property
    def is_running(self) -> bool:
        if self._browser is None or self._context is None:
            return False
        try:
            return self._browser.is_connected()
        except Exception as e:
            logger.debug(f"[Playwright] connection check failed: {type(e).__name__}")
            return False

    async def ensure(self) -> BrowserContext:
        async with self._lock:
            if self.is_running:
                return self._context
            await self._teardown()

            last_err: Optional[Exception] = None
            for attempt in range(1, self.launch_retries + 1):
                try:
                    logger.info(f"[Playwright] Launching Chromium ({attempt}/{self.launch_retries})")
                    self._context = await self._launch()
                    logger.info("[Playwright] Shared browser ready")
                    return self._context
                except asyncio.TimeoutError as e:
                    last_err = e
                    logger.error(f"[Playwright] Launch timed out ({attempt}/{self.launch_retries})")
                except Exception as e:
                    last_err = e
                    logger.error(
                        f"[Playwright] Launch failed ({attempt}/{self.launch_retries}): {type(e).__name__}: {e}"
                    )

                await self._teardown()
                if attempt < self.launch_retries:
                    await asyncio.sleep(min(2.0 * attempt, MAX_RETRY_WAIT_S))

            raise BrowserException(
                f"Browser launch failed after {self.launch_retries} attempts: {last_err}",
                {"attempts": self.launch_retries},
            )

    async def _launch(self) -> BrowserContext:
        self._playwright = await asyncio.wait_for(
            async_playwright().start(), timeout=PLAYWRIGHT_START_TIMEOUT_S
        )
        self._browser = await asyncio.wait_for(
            self._playwright.chromium.launch(headless=True, args=build_launch_args()),
            timeout=BROWSER_LAUNCH_TIMEOUT_S,
        )
        return await self._browser.new_context(
            user_agent=settings.crawler_user_agent,
            extra_http_headers={"Accept-Language": settings.crawler_accept_language},
        )

    async def _teardown(self) -> None:
        # 컨텍스트 -> 브라우저 -> playwright 순으로 닫음 (실패는 무시하고 계속)
        steps = (
            ("context", self._context, "close"),
            ("browser", self._browser, "close"),
            ("playwright", self._playwright, "stop"),
        )
        for name, obj, method in steps:
            if obj is None:
                continue
            try:
                await getattr(obj, method)()
            except Exception as e:
                logger.debug(f"[Playwright] {name} {method} failed: {type(e).__name__}")
        self._context = None
        self._browser = None
        self._playwright = None

    async def close(self) -> None:
        async with self._lock:
            await self._teardown()

    async def new_page(self):
        context = await self.ensure()
        return await context.new_page()


_shared = SharedBrowser()


async def shutdown_shared_browser() -> None:
    await _shared.close()


async def new_page():
    return await _shared.new_page()
