"""Reconciliation Engine - cross-source consensus and confidence

Collapses the per-source candidates of one product into one
PropertyResult per requested property:

1. group candidates by normalized value (exact match, no fuzzy matching)
2. pick the best group: larger size, then the group holding the most
   trusted source, then the longer representative value, then the group
   whose first source arrived earliest (then normalized value, so the
   choice never depends on iteration order)
3. confidence from the group size: 0 -> 0, 1 -> 60, 2 -> 80, 3+ -> 100

reconcile() is a pure function of its inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from specfinder.core.logging import logger
from specfinder.crawlers.result import FetchedSource
from specfinder.engine.domain_policy import UNRANKED, DomainPolicy
from specfinder.engine.result import Candidate, PropertyDefinition, PropertyResult, SourceRef


CONFIDENCE_BY_COUNT: dict[int, int] = {0: 0, 1: 60, 2: 80}
MAX_CONFIDENCE = 100

META_SOURCES_KEY = "__meta_sources"


def confidence_for(consistency_count: int) -> int:
    """동의 소스 수 -> 신뢰도 (3개 이상에서 포화)"""
    if consistency_count <= 0:
        return 0
    return CONFIDENCE_BY_COUNT.get(consistency_count, MAX_CONFIDENCE)


@dataclass(frozen=True)
class _ValueGroup:
    """같은 정규화 값을 낸 후보 묶음"""

    normalized_value: str
    members: tuple[Candidate, ...]
    representative: Candidate
    best_rank: int

    @property
    def size(self) -> int:
        # 한 소스가 같은 값을 중복으로 내도 1표
        return len({c.source_url for c in self.members})

    @property
    def first_sequence(self) -> int:
        return self.representative.source_sequence

    def sort_key(self) -> tuple:
        return (
            -self.size,
            self.best_rank,
            -len(self.representative.raw_value),
            self.first_sequence,
            self.normalized_value,
        )


def _arrival_key(candidate: Candidate) -> tuple[int, str]:
    return candidate.source_sequence, candidate.source_url


def _build_groups(candidates: Sequence[Candidate], domain_policy: Optional[DomainPolicy]) -> list[_ValueGroup]:
    buckets: dict[str, list[Candidate]] = {}
    for c in candidates:
        buckets.setdefault(c.normalized_value, []).append(c)

    groups: list[_ValueGroup] = []
    for normalized, members in buckets.items():
        ordered = tuple(sorted(members, key=_arrival_key))
        if domain_policy is not None:
            best_rank = min(domain_policy.priority_rank(c.source_url) for c in ordered)
        else:
            best_rank = UNRANKED
        groups.append(
            _ValueGroup(
                normalized_value=normalized,
                members=ordered,
                representative=ordered[0],
                best_rank=best_rank,
            )
        )
    return groups


def _dedupe_sources(candidates: Iterable[Candidate]) -> tuple[SourceRef, ...]:
    refs: list[SourceRef] = []
    seen: set[str] = set()
    for c in candidates:
        if c.source_url in seen:
            continue
        seen.add(c.source_url)
        refs.append(SourceRef(url=c.source_url, title=c.source_title))
    return tuple(refs)


def reconcile_property(
    name: str,
    candidates: Sequence[Candidate],
    min_consistent_sources: int = 1,
    domain_policy: Optional[DomainPolicy] = None,
) -> PropertyResult:
    """속성 하나의 후보들을 하나의 결과로 합침"""
    if not candidates:
        return PropertyResult.empty(name)

    groups = _build_groups(candidates, domain_policy)
    best = min(groups, key=_ValueGroup.sort_key)
    count = best.size

    if len(groups) > 1:
        logger.debug(
            f"[RECONCILE] {name}: {len(groups)} distinct values, "
            f"chose {best.representative.raw_value!r} ({count} sources)"
        )

    return PropertyResult(
        name=name,
        value=best.representative.raw_value,
        confidence=confidence_for(count),
        is_consistent=count >= min_consistent_sources,
        consistency_count=count,
        sources=_dedupe_sources(best.members),
    )


def reconcile(
    candidates: Iterable[Candidate],
    schema: Sequence[PropertyDefinition],
    min_consistent_sources: int = 1,
    domain_policy: Optional[DomainPolicy] = None,
) -> dict[str, PropertyResult]:
    """
    제품 하나의 후보 값 전체를 속성별 결과로 교차검증

    Args:
        candidates: 소스별 후보 값
        schema: 요청된 속성 스키마 (order_index 순으로 결과 키 정렬)
        min_consistent_sources: is_consistent 기준 동의 소스 수
        domain_policy: 신뢰 도메인 동점 처리용 (없으면 해당 규칙 생략)

    Returns:
        속성명 -> PropertyResult (스키마에 없는 속성의 후보는 무시)
    """
    if min_consistent_sources < 1:
        raise ValueError("min_consistent_sources must be >= 1")

    ordered_schema = sorted(schema, key=lambda p: p.order_index)
    wanted = {p.name for p in ordered_schema}

    by_property: dict[str, list[Candidate]] = {name: [] for name in wanted}
    ignored = 0
    for c in candidates:
        if c.property_name not in wanted:
            ignored += 1
            continue
        by_property[c.property_name].append(c)
    if ignored:
        logger.debug(f"[RECONCILE] Ignored {ignored} candidates outside the requested schema")

    results: dict[str, PropertyResult] = {}
    for prop in ordered_schema:
        if prop.name in results:
            continue
        results[prop.name] = reconcile_property(
            prop.name,
            by_property[prop.name],
            min_consistent_sources=min_consistent_sources,
            domain_policy=domain_policy,
        )
    return results


def build_meta_entry(fetched_sources: Iterable[FetchedSource]) -> PropertyResult:
    """수집에 성공한 모든 소스를 기록하는 메타 항목 (합의 계산과 무관)"""
    succeeded = sorted((s for s in fetched_sources if s.success), key=lambda s: s.sequence)
    refs: list[SourceRef] = []
    seen: set[str] = set()
    for s in succeeded:
        if s.url in seen:
            continue
        seen.add(s.url)
        refs.append(SourceRef(url=s.url, title=s.title or s.url))

    count = len(refs)
    return PropertyResult(
        name=META_SOURCES_KEY,
        value=f"{count} sources",
        confidence=MAX_CONFIDENCE if count else 0,
        is_consistent=count > 0,
        consistency_count=count,
        sources=tuple(refs),
    )
