"""Pydantic 스키마 정의 (요청 검증 + camelCase 응답)"""
from typing import Optional, List, Dict
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from specfinder.crawlers.result import CandidateSource
from specfinder.engine.result import (
    ProductRequest,
    ProductResult,
    PropertyDefinition,
    PropertyResult,
    SearchResponse,
)


class _CamelModel(BaseModel):
    """JSON은 camelCase, 파이썬 속성은 snake_case"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CandidateSourceSchema(_CamelModel):
    """후보 소스"""
    url: str = Field(..., min_length=1, max_length=2048, description="수집할 URL")
    title: str = Field("", max_length=500, description="알려진 제목 (선택)")


class ProductRequestSchema(_CamelModel):
    """제품 하나의 검색 요청"""
    id: Optional[str] = Field(None, max_length=100, description="제품 ID (없으면 순번)")
    product_name: str = Field(..., min_length=1, max_length=500, description="제품명")
    article_number: Optional[str] = Field(None, max_length=100, description="품번")
    sources: List[CandidateSourceSchema] = Field(default_factory=list, max_length=100, description="후보 URL")

    @field_validator("product_name")
    @classmethod
    def validate_product_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("제품명은 공백만으로 구성될 수 없습니다")
        return v.strip()


class PropertyDefinitionSchema(_CamelModel):
    """추출할 속성 정의"""
    name: str = Field(..., min_length=1, max_length=200, description="속성명")
    description: Optional[str] = Field(None, max_length=1000, description="추출 힌트")
    expected_format: Optional[str] = Field(None, max_length=200, description="기대 형식")
    order_index: int = Field(0, ge=0, description="표시 순서")
    is_required: bool = Field(False, description="필수 여부")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("속성명은 공백만으로 구성될 수 없습니다")
        if v.startswith("__"):
            raise ValueError("'__'로 시작하는 속성명은 예약되어 있습니다")
        return v


class SearchRequest(_CamelModel):
    """사양 검색 요청 (배치)"""
    products: List[ProductRequestSchema] = Field(..., min_length=1, max_length=200)
    properties: List[PropertyDefinitionSchema] = Field(..., min_length=1, max_length=200)
    min_consistent_sources: Optional[int] = Field(None, ge=1, le=20)

    @field_validator("properties")
    @classmethod
    def validate_unique_properties(cls, v: List[PropertyDefinitionSchema]) -> List[PropertyDefinitionSchema]:
        names = [p.name for p in v]
        if len(set(names)) != len(names):
            raise ValueError("속성명이 중복되었습니다")
        return v

    @field_validator("products")
    @classmethod
    def validate_unique_ids(cls, v: List[ProductRequestSchema]) -> List[ProductRequestSchema]:
        ids = [p.id for p in v if p.id]
        if len(set(ids)) != len(ids):
            raise ValueError("제품 ID가 중복되었습니다")
        return v

    def to_schema(self) -> list[PropertyDefinition]:
        return [
            PropertyDefinition(
                name=p.name,
                description=p.description,
                expected_format=p.expected_format,
                order_index=p.order_index if "order_index" in p.model_fields_set else i,
                is_required=p.is_required,
            )
            for i, p in enumerate(self.properties)
        ]

    def to_requests(self) -> list[ProductRequest]:
        used = {p.id for p in self.products if p.id}
        out: list[ProductRequest] = []
        for i, p in enumerate(self.products, start=1):
            pid = p.id
            if not pid:
                pid = str(i)
                while pid in used:
                    pid = f"{pid}_"
                used.add(pid)
            out.append(
                ProductRequest(
                    id=pid,
                    product_name=p.product_name,
                    article_number=p.article_number,
                    sources=tuple(CandidateSource(url=s.url.strip(), title=s.title) for s in p.sources),
                )
            )
        return out


class SourceRefSchema(_CamelModel):
    url: str
    title: str


class PropertyResultSchema(_CamelModel):
    """속성 하나의 결과"""
    name: str
    value: str
    confidence: int = Field(..., ge=0, le=100)
    is_consistent: bool
    consistency_count: int = Field(..., ge=0)
    sources: List[SourceRefSchema] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, result: PropertyResult) -> "PropertyResultSchema":
        return cls(
            name=result.name,
            value=result.value,
            confidence=result.confidence,
            is_consistent=result.is_consistent,
            consistency_count=result.consistency_count,
            sources=[SourceRefSchema(url=s.url, title=s.title) for s in result.sources],
        )


class ProductResultSchema(_CamelModel):
    """제품 하나의 결과"""
    id: str
    article_number: Optional[str] = None
    product_name: str
    properties: Dict[str, PropertyResultSchema]
    state: str
    status_message: str
    fetched_count: int
    failed_count: int
    elapsed_ms: float

    @classmethod
    def from_domain(cls, result: ProductResult) -> "ProductResultSchema":
        return cls(
            id=result.id,
            article_number=result.article_number,
            product_name=result.product_name,
            properties={name: PropertyResultSchema.from_domain(p) for name, p in result.properties.items()},
            state=result.state.value,
            status_message=result.status_message,
            fetched_count=result.fetched_count,
            failed_count=result.failed_count,
            elapsed_ms=result.elapsed_ms,
        )


class SearchResponseSchema(_CamelModel):
    """사양 검색 응답"""
    products: List[ProductResultSchema] = Field(default_factory=list)
    search_status: str = Field(..., description="success | partial | no_results | error")
    status_message: str

    @classmethod
    def from_domain(cls, response: SearchResponse) -> "SearchResponseSchema":
        return cls(
            products=[ProductResultSchema.from_domain(p) for p in response.products],
            search_status=response.search_status.value,
            status_message=response.status_message,
        )


class HealthResponse(BaseModel):
    """헬스 체크 응답"""
    status: str = Field(..., description="ok | degraded")
    timestamp: datetime
    version: str
    audit_backend: str
    extraction_configured: bool
