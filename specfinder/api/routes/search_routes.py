"""Search Routes - HTTP translator for the PipelineOrchestrator

HTTP Layer가 Engine Layer로 요청을 위임하는 단순한 Translator 역할만 수행합니다.
설정 오류(ConfigurationException)는 앱의 예외 핸들러가 searchStatus="error" 응답으로 바꿉니다.
"""

import asyncio
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from specfinder.core.config import settings
from specfinder.core.exceptions import ConfigurationException
from specfinder.core.logging import logger
from specfinder.crawlers.ladder import build_default_ladder
from specfinder.engine import (
    DomainPolicy,
    PipelineConfig,
    PipelineOrchestrator,
    SearchResponse,
    build_audit_sink,
    load_domain_policy,
)
from specfinder.schemas.search_schema import (
    ProductResultSchema,
    SearchRequest,
    SearchResponseSchema,
)
from specfinder.services.extraction_service import build_extraction_service

router = APIRouter(prefix="/api/v1", tags=["search"])

# 싱글톤 서비스
_orchestrator: Optional[PipelineOrchestrator] = None


def get_orchestrator() -> PipelineOrchestrator:
    """PipelineOrchestrator 싱글톤

    Raises:
        ExtractionServiceUnavailableException: 추출 서비스 미설정
    """
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = PipelineOrchestrator(
            ladder=build_default_ladder(),
            extraction_service=build_extraction_service(),
            audit_sink=build_audit_sink(settings.audit_backend),
            config=PipelineConfig.from_settings(),
        )
    return _orchestrator


def get_domain_policy() -> DomainPolicy:
    """요청마다 최신 도메인 정책 스냅샷 (파일이 바뀌지 않았으면 캐시 재사용)

    Raises:
        DomainPolicyException: 스냅샷을 읽을 수 없음
    """
    return load_domain_policy(settings.domain_policy_path)


@router.post("/search", response_model=SearchResponseSchema)
async def search_specs(
    request: SearchRequest,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
    domain_policy: DomainPolicy = Depends(get_domain_policy),
):
    """사양 검색 API

    HTTP → Engine(fetch → extract → reconcile) 파이프라인으로 실행

    Flow:
        1. HTTP Request 수신 (pydantic 검증)
        2. 도메인 정책 스냅샷 + 오케스트레이터 준비
        3. Engine에 위임 (배치 동시성 제한, 전체 하드 캡)
        4. 결과를 HTTP Response로 변환
    """
    requests = request.to_requests()
    schema = request.to_schema()
    logger.info(f"[API] Search request: {len(requests)} products, {len(schema)} properties")

    try:
        response = await asyncio.wait_for(
            orchestrator.search(
                requests,
                schema,
                domain_policy,
                min_consistent_sources=request.min_consistent_sources,
            ),
            timeout=settings.api_search_timeout_s,
        )
    except asyncio.TimeoutError:
        logger.warning(f"[API] Search timed out after {settings.api_search_timeout_s:.0f}s")
        response = SearchResponse.error(f"search timed out after {settings.api_search_timeout_s:.0f}s")

    return SearchResponseSchema.from_domain(response)


@router.post("/search/stream")
async def search_specs_stream(
    request: SearchRequest,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
    domain_policy: DomainPolicy = Depends(get_domain_policy),
):
    """사양 검색 API (NDJSON 스트리밍, 제품 완료 순서대로 한 줄씩)

    연결이 끊기면 남은 제품 파이프라인을 모두 취소합니다.
    """
    requests = request.to_requests()
    schema = request.to_schema()
    logger.info(f"[API] Stream request: {len(requests)} products, {len(schema)} properties")

    async def _lines() -> AsyncIterator[str]:
        run = orchestrator.start_batch(
            requests,
            schema,
            domain_policy,
            min_consistent_sources=request.min_consistent_sources,
        )
        try:
            async for result in run.as_completed():
                yield ProductResultSchema.from_domain(result).model_dump_json(by_alias=True) + "\n"
        except ConfigurationException as e:
            logger.error(f"[API] Configuration error during stream: {e}")
            error = SearchResponseSchema.from_domain(SearchResponse.error(e.message))
            yield error.model_dump_json(by_alias=True) + "\n"
        finally:
            run.cancel_all()

    return StreamingResponse(_lines(), media_type="application/x-ndjson")
