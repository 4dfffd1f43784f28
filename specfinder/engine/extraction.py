"""Extraction Adapter - per-source candidate values from the extraction service

For every successfully fetched source the adapter sends the (truncated)
content, the property schema and the product hint to the extraction
service, then turns its answer into Candidate values:

- "not found" markers and non-scalar values are dropped
- keys outside the requested schema are ignored
- raw_value keeps the original casing, normalized_value is used for grouping

A failing, slow or malformed call for one source only means that source
contributes no candidates. Only configuration errors propagate.
"""

from __future__ import annotations

import asyncio
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence, Union

from specfinder.core.exceptions import ConfigurationException, ExtractionException
from specfinder.core.logging import logger
from specfinder.crawlers.result import FetchedSource
from specfinder.engine.result import Candidate, ProductHint, PropertyDefinition
from specfinder.utils.text_utils import clean_raw_value, normalize_value, truncate


ExtractionOutput = Union[Mapping[str, Any], Sequence[Mapping[str, Any]]]


class ExtractionService(Protocol):
    """추출 서비스 프로토콜 (텍스트 + 스키마 + 힌트 -> 속성별 값)"""

    async def extract(
        self,
        text: str,
        schema: Sequence[PropertyDefinition],
        hint: ProductHint,
    ) -> ExtractionOutput:
        ...


def _split_value(value: Any) -> tuple[Optional[str], Optional[str]]:
    """값 -> (raw_value, justification)

    {"value": ..., "justification": ...} 형태와 단순 스칼라를 모두 허용합니다.
    """
    if isinstance(value, Mapping):
        raw = clean_raw_value(value.get("value"))
        justification = value.get("justification") or value.get("source_text")
        if not isinstance(justification, str) or not justification.strip():
            justification = None
        return raw, justification.strip() if justification else None
    return clean_raw_value(value), None


def _merge_output(output: Any) -> dict[str, Any]:
    """서비스 응답을 단일 mapping으로 병합 (list면 앞 항목 우선)"""
    if isinstance(output, Mapping):
        return dict(output)
    merged: dict[str, Any] = {}
    if isinstance(output, (list, tuple)):
        for item in output:
            if not isinstance(item, Mapping):
                continue
            for key, value in item.items():
                if key in merged and _split_value(merged[key])[0] is not None:
                    continue
                merged[key] = value
        return merged
    raise TypeError(f"unexpected extraction output type: {type(output).__name__}")


def candidates_from_output(
    output: Any,
    source: FetchedSource,
    schema: Sequence[PropertyDefinition],
) -> list[Candidate]:
    """서비스 응답 하나를 Candidate 목록으로 변환 (스키마 순서)"""
    merged = _merge_output(output)
    candidates: list[Candidate] = []
    for prop in schema:
        if prop.name not in merged:
            continue
        raw, justification = _split_value(merged[prop.name])
        if raw is None:
            continue
        normalized = normalize_value(raw)
        if not normalized:
            continue
        candidates.append(
            Candidate(
                property_name=prop.name,
                raw_value=raw,
                normalized_value=normalized,
                source_url=source.url,
                source_title=source.title,
                source_sequence=source.sequence,
                justification=justification,
            )
        )
    return candidates


class ExtractionAdapter:
    """소스별 추출 서비스 호출 + 후보 값 정리"""

    def __init__(
        self,
        service: ExtractionService,
        concurrency: int = 10,
        timeout_s: float = 60.0,
        max_chars: int = 15000,
    ):
        if concurrency <= 0:
            raise ValueError("concurrency must be positive")
        self.service = service
        self.concurrency = concurrency
        self.timeout_s = timeout_s
        self.max_chars = max_chars

    async def _extract_one(
        self,
        source: FetchedSource,
        schema: Sequence[PropertyDefinition],
        hint: ProductHint,
        semaphore: asyncio.Semaphore,
    ) -> list[Candidate]:
        text = truncate(source.content, self.max_chars)
        async with semaphore:
            try:
                output = await asyncio.wait_for(
                    self.service.extract(text, schema, hint),
                    timeout=self.timeout_s,
                )
                candidates = candidates_from_output(output, source, schema)
            except asyncio.TimeoutError:
                logger.warning(f"[EXTRACT] Timeout after {self.timeout_s:.0f}s: {source.url}")
                return []
            except ExtractionException as e:
                logger.warning(f"[EXTRACT] {e.error_code} for {source.url}: {e.message}")
                return []
            except (asyncio.CancelledError, ConfigurationException):
                raise
            except Exception as e:
                logger.warning(f"[EXTRACT] Failed for {source.url}: {type(e).__name__}: {e}")
                return []

        logger.info(f"[EXTRACT] {source.url}: {len(candidates)}/{len(schema)} properties found")
        return candidates

    async def extract(
        self,
        sources: Iterable[FetchedSource],
        schema: Sequence[PropertyDefinition],
        hint: ProductHint,
    ) -> list[Candidate]:
        """성공한 소스 전체에 대해 후보 값 추출

        Args:
            sources: 수집 결과 (실패 소스는 건너뜀)
            schema: 속성 스키마
            hint: 제품 힌트

        Returns:
            소스 도착 순서 -> 스키마 순서로 정렬된 Candidate 목록
        """
        usable = sorted((s for s in sources if s.success and s.content), key=lambda s: s.sequence)
        if not usable or not schema:
            return []

        semaphore = asyncio.Semaphore(self.concurrency)
        tasks = [asyncio.ensure_future(self._extract_one(s, schema, hint, semaphore)) for s in usable]
        try:
            per_source = await asyncio.gather(*tasks)
        except BaseException:
            # 설정 오류/취소 시 남은 호출 정리
            for task in tasks:
                task.cancel()
            raise
        return [c for batch in per_source for c in batch]
