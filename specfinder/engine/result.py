"""Pipeline Result Types - Standardized Result Format

Provides the value types that flow between the pipeline stages:
domain policy entries, property schema, per-source candidates,
reconciled property results and the caller-facing search response.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from specfinder.crawlers.result import CandidateSource


class DomainKind(str, Enum):
    """도메인 정책 항목 종류"""

    TRUSTED = "trusted"
    EXCLUDED = "excluded"


@dataclass(frozen=True)
class DomainEntry:
    """외부 설정 시스템이 관리하는 도메인 항목 (읽기 전용 스냅샷)"""

    hostname: str
    kind: DomainKind
    active: bool = True


@dataclass(frozen=True)
class PropertyDefinition:
    """추출할 속성 정의 (제품군 테이블의 열)

    Attributes:
        name: 속성명 (결과 map의 키)
        description: 추출 힌트
        expected_format: 기대 형식 (예: "kg", "W")
        order_index: 표시 순서
        is_required: 필수 속성 여부
    """

    name: str
    description: Optional[str] = None
    expected_format: Optional[str] = None
    order_index: int = 0
    is_required: bool = False


@dataclass(frozen=True)
class ProductHint:
    """추출 서비스에 전달하는 제품 식별 힌트"""

    product_name: str
    article_number: Optional[str] = None


@dataclass(frozen=True)
class Candidate:
    """소스 하나가 속성 하나에 대해 낸 후보 값 (교차검증 전)

    Attributes:
        property_name: 속성명
        raw_value: 원문 값 (대소문자 유지, 앞뒤 공백 제거)
        normalized_value: 비교용 정규화 값
        source_url: 값을 낸 소스 URL
        source_title: 소스 제목
        source_sequence: 소스 도착 순번
        justification: 추출 근거 (선택)
    """

    property_name: str
    raw_value: str
    normalized_value: str
    source_url: str
    source_title: str
    source_sequence: int = 0
    justification: Optional[str] = None


@dataclass(frozen=True)
class SourceRef:
    """결과가 인용하는 소스"""

    url: str
    title: str


@dataclass(frozen=True)
class PropertyResult:
    """속성 하나의 교차검증 결과

    Attributes:
        name: 속성명
        value: 선택된 값 (없으면 빈 문자열)
        confidence: 신뢰도 0-100
        is_consistent: consistency_count >= min_consistent_sources
        consistency_count: 선택된 값에 동의한 소스 수
        sources: 선택된 값에 동의한 소스 목록 (도착 순)
    """

    name: str
    value: str
    confidence: int
    is_consistent: bool
    consistency_count: int
    sources: tuple[SourceRef, ...] = ()

    @classmethod
    def empty(cls, name: str) -> "PropertyResult":
        """값을 찾지 못한 속성"""
        return cls(
            name=name,
            value="",
            confidence=0,
            is_consistent=False,
            consistency_count=0,
            sources=(),
        )


class ProductState(str, Enum):
    """제품 파이프라인 상태"""

    PENDING = "pending"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    RECONCILING = "reconciling"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ProductRequest:
    """제품 하나에 대한 검색 요청"""

    id: str
    product_name: str
    article_number: Optional[str] = None
    sources: tuple[CandidateSource, ...] = ()

    @property
    def hint(self) -> ProductHint:
        return ProductHint(product_name=self.product_name, article_number=self.article_number)


@dataclass(frozen=True)
class ProductResult:
    """제품 하나의 파이프라인 결과

    Attributes:
        id: 제품 ID
        product_name: 제품명
        article_number: 품번
        properties: 속성명 -> PropertyResult (메타 항목 포함)
        state: 최종 상태 (항상 COMPLETE)
        status_message: 상태 설명 (예: "cancelled", "no sources fetched")
        fetched_count: 수집 성공 소스 수
        failed_count: 수집 실패 소스 수
        elapsed_ms: 소요 시간
        timings: 단계별 체크포인트 (ms)
    """

    id: str
    product_name: str
    article_number: Optional[str]
    properties: dict[str, PropertyResult]
    state: ProductState = ProductState.COMPLETE
    status_message: str = ""
    fetched_count: int = 0
    failed_count: int = 0
    elapsed_ms: float = 0.0
    timings: dict[str, float] = field(default_factory=dict)

    @property
    def is_cancelled(self) -> bool:
        return self.status_message == "cancelled"


class SearchStatus(str, Enum):
    """검색 상태

    배치 전체 결과의 상태를 나타냅니다.
    """

    SUCCESS = "success"  # 모든 제품이 1개 이상 소스 수집
    PARTIAL = "partial"  # 일부 제품만 수집 (취소 포함)
    NO_RESULTS = "no_results"  # 어떤 제품도 수집하지 못함
    ERROR = "error"  # 설정 오류 등 파이프라인 수준 오류


@dataclass(frozen=True)
class SearchResponse:
    """파이프라인 최종 출력 (소유권은 호출자에게 넘어감)"""

    products: list[ProductResult]
    search_status: SearchStatus
    status_message: str

    @classmethod
    def error(cls, message: str) -> "SearchResponse":
        """파이프라인 수준 오류 응답"""
        return cls(products=[], search_status=SearchStatus.ERROR, status_message=message)

    @classmethod
    def from_products(cls, products: list[ProductResult]) -> "SearchResponse":
        """제품별 결과에서 배치 상태 계산"""
        total = len(products)
        with_data = sum(1 for p in products if p.fetched_count > 0 and not p.is_cancelled)
        cancelled = sum(1 for p in products if p.is_cancelled)

        if total == 0 or with_data == 0:
            status = SearchStatus.NO_RESULTS
        elif with_data == total:
            status = SearchStatus.SUCCESS
        else:
            status = SearchStatus.PARTIAL

        message = f"{with_data}/{total} products with sources"
        if cancelled:
            message += f", {cancelled} cancelled"
        return cls(products=list(products), search_status=status, status_message=message)
