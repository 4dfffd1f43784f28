"""Extraction Adapter 단위 테스트

- 서비스 응답 형태(단순 값, value/justification, list) 허용
- 'not found' 표기/스키마 밖 키 무시
- 소스 하나의 실패/타임아웃은 그 소스만 후보 0개
"""

from __future__ import annotations

import asyncio

import pytest

from specfinder.core.exceptions import ExtractionParseException, ExtractionServiceException
from specfinder.engine.extraction import ExtractionAdapter, candidates_from_output
from specfinder.engine.result import ProductHint, PropertyDefinition
from tests.fixtures.fakes import FakeExtractionService, fetched_source


HINT = ProductHint(product_name="Waschmaschine WM14", article_number="WM14N2EX0")


class TestCandidatesFromOutput:
    def test_plain_and_structured_values(self, spec_schema: list[PropertyDefinition]) -> None:
        source = fetched_source("https://a.example.org/1", sequence=2, title="Datenblatt")
        output = {
            "Gewicht": {"value": " 12 kg ", "justification": "Gewicht: 12 kg"},
            "Farbe": "Weiß",
            "Leistung": 2000,
        }

        candidates = candidates_from_output(output, source, spec_schema)

        assert [c.property_name for c in candidates] == ["Gewicht", "Farbe", "Leistung"]
        weight = candidates[0]
        assert weight.raw_value == "12 kg"
        assert weight.normalized_value == "12kg"
        assert weight.justification == "Gewicht: 12 kg"
        assert weight.source_url == "https://a.example.org/1"
        assert weight.source_title == "Datenblatt"
        assert weight.source_sequence == 2
        assert candidates[2].raw_value == "2000"

    def test_not_found_and_unknown_keys_dropped(self, spec_schema: list[PropertyDefinition]) -> None:
        output = {
            "Gewicht": "not found",
            "Farbe": {"value": "N/A"},
            "Leistung": ["2000 W"],
            "Spannung": "230 V",
        }
        assert candidates_from_output(output, fetched_source("https://a.example.org/1"), spec_schema) == []

    def test_list_output_earlier_items_win(self, spec_schema: list[PropertyDefinition]) -> None:
        output = [{"Gewicht": "12 kg", "Farbe": ""}, {"Gewicht": "15 kg", "Farbe": "Weiß"}, "garbage"]

        candidates = candidates_from_output(output, fetched_source("https://a.example.org/1"), spec_schema)

        assert {c.property_name: c.raw_value for c in candidates} == {"Gewicht": "12 kg", "Farbe": "Weiß"}

    def test_unexpected_output_type(self, spec_schema: list[PropertyDefinition]) -> None:
        with pytest.raises(TypeError):
            candidates_from_output("12 kg", fetched_source("https://a.example.org/1"), spec_schema)


class TestExtractionAdapter:
    @pytest.mark.asyncio
    async def test_only_successful_sources_in_arrival_order(self, spec_schema: list[PropertyDefinition]) -> None:
        service = FakeExtractionService(
            {
                "source-b": {"Gewicht": "12 kg"},
                "source-a": {"Gewicht": "12kg"},
            }
        )
        adapter = ExtractionAdapter(service)
        sources = [
            fetched_source("https://a.example.org/", "source-a", sequence=1),
            fetched_source("https://b.example.org/", "source-b", sequence=0),
            fetched_source("https://c.example.org/", sequence=2, success=False),
        ]

        candidates = await adapter.extract(sources, spec_schema, HINT)

        assert [c.source_url for c in candidates] == ["https://b.example.org/", "https://a.example.org/"]
        assert len(service.calls) == 2
        assert service.calls[0][2] == HINT
        assert service.calls[0][1] == ["Gewicht", "Farbe", "Leistung"]

    @pytest.mark.asyncio
    async def test_service_errors_are_absorbed(self, spec_schema: list[PropertyDefinition]) -> None:
        service = FakeExtractionService(
            {
                "source-a": ExtractionServiceException("status 503"),
                "source-b": ExtractionParseException("not json"),
                "source-c": ValueError("sdk bug"),
                "source-d": {"Farbe": "Weiß"},
            }
        )
        sources = [
            fetched_source(f"https://{name}.example.org/", f"source-{name}", sequence=i)
            for i, name in enumerate("abcd")
        ]

        candidates = await ExtractionAdapter(service).extract(sources, spec_schema, HINT)

        assert [(c.property_name, c.raw_value) for c in candidates] == [("Farbe", "Weiß")]

    @pytest.mark.asyncio
    async def test_slow_call_times_out(self, spec_schema: list[PropertyDefinition]) -> None:
        service = FakeExtractionService(default={"Gewicht": "12 kg"}, delay_s=1.0)
        adapter = ExtractionAdapter(service, timeout_s=0.05)

        candidates = await asyncio.wait_for(
            adapter.extract([fetched_source("https://a.example.org/")], spec_schema, HINT), timeout=2.0
        )

        assert candidates == []

    @pytest.mark.asyncio
    async def test_content_is_truncated(self, spec_schema: list[PropertyDefinition]) -> None:
        service = FakeExtractionService()
        adapter = ExtractionAdapter(service, max_chars=100)

        await adapter.extract([fetched_source("https://a.example.org/", "z" * 5000)], spec_schema, HINT)

        assert len(service.calls[0][0]) == 100

    @pytest.mark.asyncio
    async def test_no_sources_no_calls(self, spec_schema: list[PropertyDefinition]) -> None:
        service = FakeExtractionService()
        assert await ExtractionAdapter(service).extract([], spec_schema, HINT) == []
        assert service.calls == []

    def test_invalid_concurrency(self) -> None:
        with pytest.raises(ValueError):
            ExtractionAdapter(FakeExtractionService(), concurrency=0)
