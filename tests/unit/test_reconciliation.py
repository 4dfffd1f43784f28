"""Reconciliation Engine 단위 테스트

- 정규화 값 기준 그룹핑 + 다수결
- 동점 처리: 신뢰 도메인 -> 긴 값 -> 먼저 도착한 소스
- 신뢰도 계단 (0/60/80/100), 결정적/멱등
"""

from __future__ import annotations

import random

import pytest

from specfinder.engine.domain_policy import DomainPolicy
from specfinder.engine.reconciliation import (
    META_SOURCES_KEY,
    build_meta_entry,
    confidence_for,
    reconcile,
    reconcile_property,
)
from specfinder.engine.result import Candidate, PropertyDefinition
from specfinder.utils.text_utils import normalize_value
from tests.fixtures.fakes import fetched_source


def cand(name: str, raw: str, url: str, seq: int, title: str = "") -> Candidate:
    return Candidate(
        property_name=name,
        raw_value=raw,
        normalized_value=normalize_value(raw),
        source_url=url,
        source_title=title or url,
        source_sequence=seq,
    )


def test_majority_value_wins(spec_schema: list[PropertyDefinition]) -> None:
    """3개 소스 중 2개가 같은 값(표기만 다름)이면 그 값이 선택됨"""
    candidates = [
        cand("Gewicht", "12 kg", "https://a.example.org/", 0),
        cand("Gewicht", "12kg", "https://b.example.org/", 1),
        cand("Gewicht", "15 kg", "https://c.example.org/", 2),
    ]

    result = reconcile(candidates, spec_schema)["Gewicht"]

    assert normalize_value(result.value) == "12kg"
    assert result.value == "12 kg"
    assert result.consistency_count == 2
    assert result.confidence == 80
    assert result.is_consistent is True
    assert [s.url for s in result.sources] == ["https://a.example.org/", "https://b.example.org/"]


def test_property_without_values(spec_schema: list[PropertyDefinition]) -> None:
    result = reconcile([cand("Gewicht", "12 kg", "https://a.example.org/", 0)], spec_schema)["Farbe"]

    assert result.value == ""
    assert result.confidence == 0
    assert result.is_consistent is False
    assert result.consistency_count == 0
    assert result.sources == ()


def test_every_schema_property_present_in_order() -> None:
    schema = [
        PropertyDefinition(name="Leistung", order_index=2),
        PropertyDefinition(name="Gewicht", order_index=0),
        PropertyDefinition(name="Farbe", order_index=1),
    ]
    results = reconcile([cand("Unbekannt", "x", "https://a.example.org/", 0)], schema)
    assert list(results) == ["Gewicht", "Farbe", "Leistung"]


@pytest.mark.parametrize("count,expected", [(0, 0), (1, 60), (2, 80), (3, 100), (7, 100)])
def test_confidence_steps(count: int, expected: int) -> None:
    assert confidence_for(count) == expected


def test_confidence_is_monotonic() -> None:
    values = [confidence_for(n) for n in range(10)]
    assert values == sorted(values)


class TestTieBreaks:
    def test_trusted_domain_wins_equal_groups(self) -> None:
        policy = DomainPolicy.from_mapping({"trusted": ["miele.de"]})
        candidates = [
            cand("Farbe", "Schwarz", "https://shop.example.org/", 0),
            cand("Farbe", "Weiß", "https://www.miele.de/wm", 1),
        ]

        result = reconcile_property("Farbe", candidates, domain_policy=policy)

        assert result.value == "Weiß"
        assert result.confidence == 60

    def test_longer_value_wins_without_trust(self) -> None:
        candidates = [
            cand("Farbe", "Weiß", "https://a.example.org/", 0),
            cand("Farbe", "Weiß / Chrom", "https://b.example.org/", 1),
        ]
        assert reconcile_property("Farbe", candidates).value == "Weiß / Chrom"

    def test_earliest_arrival_wins_last(self) -> None:
        candidates = [
            cand("Farbe", "Grau", "https://b.example.org/", 1),
            cand("Farbe", "Blau", "https://a.example.org/", 0),
        ]
        assert reconcile_property("Farbe", candidates).value == "Blau"

    def test_size_beats_trust(self) -> None:
        policy = DomainPolicy.from_mapping({"trusted": ["miele.de"]})
        candidates = [
            cand("Gewicht", "15 kg", "https://miele.de/wm", 0),
            cand("Gewicht", "12 kg", "https://a.example.org/", 1),
            cand("Gewicht", "12 kg", "https://b.example.org/", 2),
        ]
        assert reconcile_property("Gewicht", candidates, domain_policy=policy).value == "12 kg"


def test_same_source_counts_once() -> None:
    candidates = [
        cand("Gewicht", "15 kg", "https://a.example.org/", 0),
        cand("Gewicht", "15kg", "https://a.example.org/", 0),
        cand("Gewicht", "12 kg", "https://b.example.org/", 1),
        cand("Gewicht", "12 kg", "https://c.example.org/", 2),
    ]
    result = reconcile_property("Gewicht", candidates)
    assert result.value == "12 kg"
    assert result.consistency_count == 2


def test_representative_is_earliest_arrival_in_group() -> None:
    candidates = [
        cand("Gewicht", "12KG", "https://b.example.org/", 1),
        cand("Gewicht", "12 kg", "https://a.example.org/", 0),
    ]
    result = reconcile_property("Gewicht", candidates)
    assert result.value == "12 kg"
    assert result.consistency_count == 2


def test_deterministic_under_permutation(spec_schema: list[PropertyDefinition]) -> None:
    candidates = [
        cand("Gewicht", "12 kg", "https://a.example.org/", 0),
        cand("Gewicht", "15 kg", "https://b.example.org/", 1),
        cand("Farbe", "Weiß", "https://a.example.org/", 0),
        cand("Farbe", "weiss", "https://c.example.org/", 2),
        cand("Leistung", "2000 W", "https://b.example.org/", 1),
    ]
    expected = reconcile(candidates, spec_schema)
    rng = random.Random(7)
    for _ in range(20):
        shuffled = candidates[:]
        rng.shuffle(shuffled)
        assert reconcile(shuffled, spec_schema) == expected


def test_idempotent_on_own_output(spec_schema: list[PropertyDefinition]) -> None:
    candidates = [
        cand("Gewicht", "12 kg", "https://a.example.org/", 0),
        cand("Gewicht", "12kg", "https://b.example.org/", 1),
    ]
    first = reconcile(candidates, spec_schema)["Gewicht"]

    replayed = [
        cand("Gewicht", first.value, ref.url, i) for i, ref in enumerate(first.sources)
    ]
    second = reconcile(replayed, spec_schema)["Gewicht"]

    assert second.value == first.value
    assert second.consistency_count == first.consistency_count
    assert second.confidence == first.confidence


def test_adding_agreeing_source_never_lowers_confidence() -> None:
    base = [cand("Gewicht", "12 kg", "https://a.example.org/", 0)]
    before = reconcile_property("Gewicht", base)
    after = reconcile_property("Gewicht", base + [cand("Gewicht", "12 kg", "https://b.example.org/", 1)])
    assert after.confidence >= before.confidence


def test_min_consistent_sources_threshold(spec_schema: list[PropertyDefinition]) -> None:
    candidates = [
        cand("Gewicht", "12 kg", "https://a.example.org/", 0),
        cand("Gewicht", "12 kg", "https://b.example.org/", 1),
        cand("Farbe", "Weiß", "https://a.example.org/", 0),
    ]
    results = reconcile(candidates, spec_schema, min_consistent_sources=2)

    assert results["Gewicht"].is_consistent is True
    assert results["Farbe"].is_consistent is False
    assert results["Farbe"].value == "Weiß"

    with pytest.raises(ValueError):
        reconcile(candidates, spec_schema, min_consistent_sources=0)


class TestMetaEntry:
    def test_lists_successful_sources_in_arrival_order(self) -> None:
        fetched = [
            fetched_source("https://b.example.org/", sequence=1, title="B"),
            fetched_source("https://a.example.org/", sequence=0, title="A"),
            fetched_source("https://c.example.org/", sequence=2, success=False),
        ]

        meta = build_meta_entry(fetched)

        assert meta.name == META_SOURCES_KEY
        assert meta.value == "2 sources"
        assert meta.confidence == 100
        assert [s.title for s in meta.sources] == ["A", "B"]

    def test_no_sources(self) -> None:
        meta = build_meta_entry([])
        assert meta.value == "0 sources"
        assert meta.confidence == 0
        assert meta.is_consistent is False
