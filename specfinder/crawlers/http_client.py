"""공유 HTTP 클라이언트 (curl_cffi)

- 정적 수집 단계에서 요청마다 AsyncSession을 만들면 TLS/커넥션 오버헤드가 커져서
  타임아웃/지연이 악화될 수 있어 프로세스 단위로 세션을 재사용합니다.
- 브라우저 TLS 지문(impersonate)으로 단순 봇 차단을 피합니다.
- 앱 종료 시 close()로 정리합니다.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional, Dict

from curl_cffi.requests import AsyncSession

from specfinder.core.config import settings
from specfinder.core.logging import logger
from specfinder.core.exceptions import FetchException, NetworkTimeoutException


@dataclass(frozen=True)
class HttpResponse:
    """정적 수집 단계가 쓰는 응답 요약"""

    url: str
    status: int
    content_type: str
    body: bytes
    text: str


def _is_timeout_error(exc: Exception) -> bool:
    name = type(exc).__name__.lower()
    return "timeout" in name or "timed out" in str(exc).lower()


class SharedHttpClient:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._session: Optional[AsyncSession] = None

    async def _ensure_session(self) -> AsyncSession:
        async with self._lock:
            if self._session is not None:
                return self._session
            self._session = AsyncSession(
                impersonate=settings.crawler_http_impersonate,
                headers=self.default_headers(),
                allow_redirects=True,
                max_clients=int(getattr(settings, "crawler_http_max_clients", 20)),
                trust_env=False,
            )
            return self._session

    def default_headers(self) -> Dict[str, str]:
        return {
            "User-Agent": settings.crawler_user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        }

    def enhanced_headers(self) -> Dict[str, str]:
        """실제 브라우저 탐색 요청에 가까운 헤더 세트"""
        return {
            **self.default_headers(),
            "Accept": (
                "text/html,application/xhtml+xml,application/xml;q=0.9,"
                "image/avif,image/webp,application/pdf,*/*;q=0.8"
            ),
            "Accept-Language": settings.crawler_accept_language,
            "Accept-Encoding": "gzip, deflate, br",
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
            "DNT": "1",
            "Upgrade-Insecure-Requests": "1",
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Mode": "navigate",
            "Sec-Fetch-Site": "none",
            "Sec-Fetch-User": "?1",
        }

    async def get(
        self,
        url: str,
        *,
        timeout_s: float,
        headers: Optional[Dict[str, str]] = None,
        follow_redirects: bool = True,
    ) -> HttpResponse:
        """GET 요청

        Raises:
            NetworkTimeoutException: 타임아웃
            FetchException: 그 외 네트워크 오류
        """
        sess = await self._ensure_session()
        try:
            resp = await sess.get(
                url,
                headers=headers,
                timeout=timeout_s,
                allow_redirects=follow_redirects,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.info(f"[HTTP_CLIENT] GET failed: {type(e).__name__}: {repr(e)}")
            if _is_timeout_error(e):
                raise NetworkTimeoutException("http_get", timeout_s, {"url": url}) from e
            raise FetchException(
                f"HTTP GET failed: {type(e).__name__}",
                "NETWORK_ERROR",
                {"url": url, "error": str(e)[:200]},
            ) from e

        status = getattr(resp, "status_code", 0) or 0
        resp_headers = getattr(resp, "headers", None) or {}
        content_type = str(resp_headers.get("content-type", "") or "")
        body = getattr(resp, "content", b"") or b""
        text = "" if "application/pdf" in content_type.lower() else (getattr(resp, "text", "") or "")
        return HttpResponse(
            url=str(getattr(resp, "url", url) or url),
            status=int(status),
            content_type=content_type,
            body=body,
            text=text,
        )

    async def close(self) -> None:
        async with self._lock:
            if self._session is None:
                return
            try:
                await self._session.close()
            except Exception as e:
                logger.debug(f"[HTTP_CLIENT] close failed: {type(e).__name__}")
            self._session = None


_shared_http_client = SharedHttpClient()


def get_shared_http_client() -> SharedHttpClient:
    return _shared_http_client


async def shutdown_shared_http_client() -> None:
    await _shared_http_client.close()
