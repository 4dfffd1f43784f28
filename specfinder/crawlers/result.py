"""Fetch Result Standard Format

소스 수집(fetch) 단계의 표준 결과 형식을 정의합니다.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class FetchMethod(str, Enum):
    """콘텐츠를 만들어 낸 Ladder 단계"""

    FAST_STATIC = "fast-static"
    ENHANCED_STATIC = "enhanced-static"
    RENDERED = "rendered"
    SCRIPT_EVAL = "script-eval"


@dataclass(frozen=True)
class CandidateSource:
    """수집 전 입력 단위 (검색 요청마다 생성)

    Attributes:
        url: 수집할 URL
        title: 호출자가 알고 있는 제목 (선택)
        requested_at: 요청 시각
    """

    url: str
    title: str = ""
    requested_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class FetchResult:
    """Ladder 단계 1회 시도의 결과

    Attributes:
        content: 추출된 가시 텍스트
        success: 단계별 성공 기준 충족 여부
        title: 페이지 제목
        error: 실패 사유
        raw_html: 이후 단계가 재사용할 원본 HTML
    """

    content: str
    success: bool
    title: Optional[str] = None
    error: Optional[str] = None
    raw_html: Optional[str] = None

    @classmethod
    def ok(cls, content: str, title: Optional[str] = None, raw_html: Optional[str] = None) -> "FetchResult":
        return cls(content=content, success=True, title=title, raw_html=raw_html)

    @classmethod
    def failed(
        cls,
        error: str,
        content: str = "",
        title: Optional[str] = None,
        raw_html: Optional[str] = None,
    ) -> "FetchResult":
        return cls(content=content, success=False, title=title, error=error, raw_html=raw_html)


@dataclass(frozen=True)
class AttemptRecord:
    """단계별 시도 기록 (진단용)"""

    method: FetchMethod
    success: bool
    elapsed_ms: float
    error: Optional[str] = None
    content_length: int = 0


@dataclass(frozen=True)
class FetchedSource:
    """URL 하나에 대한 최종 수집 결과 (생성 후 불변)

    Attributes:
        url: 수집한 URL
        title: 페이지 제목 (없으면 URL)
        content: 추출된 텍스트 (실패 시 빈 문자열)
        method: 성공한 단계 (전부 실패하면 None)
        content_length: len(content)
        success: 수집 성공 여부
        error: 마지막 실패 사유
        sequence: 도착 순번 (fetch_all 호출 단위, 0부터)
        elapsed_ms: Ladder 전체 소요 시간
        attempts: 단계별 시도 기록
        contains_article_number: 본문에 품번이 포함되는지 (품번 힌트가 있을 때만)
    """

    url: str
    title: str
    content: str
    method: Optional[FetchMethod]
    content_length: int
    success: bool
    error: Optional[str] = None
    sequence: int = -1
    elapsed_ms: float = 0.0
    attempts: tuple[AttemptRecord, ...] = ()
    contains_article_number: Optional[bool] = None

    @classmethod
    def succeeded(
        cls,
        url: str,
        title: str,
        content: str,
        method: FetchMethod,
        *,
        elapsed_ms: float = 0.0,
        attempts: tuple[AttemptRecord, ...] = (),
    ) -> "FetchedSource":
        return cls(
            url=url,
            title=title or url,
            content=content,
            method=method,
            content_length=len(content),
            success=True,
            elapsed_ms=elapsed_ms,
            attempts=attempts,
        )

    @classmethod
    def failure(
        cls,
        url: str,
        error: str,
        *,
        title: str = "",
        elapsed_ms: float = 0.0,
        attempts: tuple[AttemptRecord, ...] = (),
    ) -> "FetchedSource":
        return cls(
            url=url,
            title=title or url,
            content="",
            method=None,
            content_length=0,
            success=False,
            error=error,
            elapsed_ms=elapsed_ms,
            attempts=attempts,
        )

    def with_sequence(self, sequence: int) -> "FetchedSource":
        return replace(self, sequence=sequence)

    def with_article_match(self, matched: Optional[bool]) -> "FetchedSource":
        return replace(self, contains_article_number=matched)
