"""Fetch Strategy Protocol - Interface for the ladder rungs

Defines the common interface that all fetch strategies must implement,
plus the per-ladder configuration and the per-URL context shared between rungs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from specfinder.core.config import Settings, settings as default_settings

from .result import FetchMethod, FetchResult


@dataclass(frozen=True)
class LadderConfig:
    """Ladder 임계값/타임아웃 (인스턴스 단위로 조정 가능)"""

    fast_timeout_s: float = 6.0
    enhanced_timeout_s: float = 10.0
    render_timeout_s: float = 20.0
    script_timeout_s: float = 8.0
    min_content_chars: int = 1000
    min_script_content_chars: int = 500
    dynamic_min_element_count: int = 10
    dynamic_script_tag_threshold: int = 15
    dynamic_near_empty_body_chars: int = 200
    browser_concurrency: int = 2

    @classmethod
    def from_settings(cls, s: Optional[Settings] = None) -> "LadderConfig":
        s = s or default_settings
        return cls(
            fast_timeout_s=s.fetch_fast_timeout_s,
            enhanced_timeout_s=s.fetch_enhanced_timeout_s,
            render_timeout_s=s.fetch_render_timeout_s,
            script_timeout_s=s.fetch_script_timeout_s,
            min_content_chars=s.min_content_chars,
            min_script_content_chars=s.min_script_content_chars,
            dynamic_min_element_count=s.dynamic_min_element_count,
            dynamic_script_tag_threshold=s.dynamic_script_tag_threshold,
            dynamic_near_empty_body_chars=s.dynamic_near_empty_body_chars,
            browser_concurrency=s.crawler_browser_concurrency,
        )


@dataclass
class LadderContext:
    """URL 하나를 처리하는 동안 단계 간에 공유되는 상태

    앞 단계가 받은 원본 HTML을 뒤 단계(script-eval)가 재사용합니다.
    """

    url: str
    raw_html: Optional[str] = None
    content_type: Optional[str] = None

    def remember_html(self, html: Optional[str], content_type: Optional[str] = None) -> None:
        if html:
            self.raw_html = html
        if content_type:
            self.content_type = content_type


class FetchStrategy(Protocol):
    """수집 전략 프로토콜

    Ladder의 각 단계가 구현해야 할 인터페이스입니다.

    구현 예시:
        class FastStaticStrategy:
            method = FetchMethod.FAST_STATIC
            timeout_s = 6.0

            async def attempt(self, url: str, context: LadderContext) -> FetchResult:
                # HTTP GET + 텍스트 길이 검사
                ...

    선택: slot()이 async context manager를 돌려주면 Ladder가 그 안에서만
    timeout을 잽니다 (공유 자원 대기 시간 제외).
    """

    method: FetchMethod
    timeout_s: float

    async def attempt(self, url: str, context: LadderContext) -> FetchResult:
        """수집 시도

        Args:
            url: 대상 URL
            context: 단계 간 공유 상태

        Returns:
            FetchResult: success는 단계별 성공 기준 충족 여부

        Raises:
            FetchException: 네트워크/HTTP/차단/동적 페이지 등 단계 실패
        """
        ...
