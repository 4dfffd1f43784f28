"""OpenAI 추출 서비스 단위 테스트 (SDK 클라이언트 mock)"""

from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Optional
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from openai import APIConnectionError

from specfinder.core.exceptions import (
    ExtractionParseException,
    ExtractionServiceException,
    ExtractionServiceUnavailableException,
)
from specfinder.engine.result import ProductHint, PropertyDefinition
from specfinder.services.extraction_service import (
    OpenAIExtractionService,
    _extract_json_object,
    build_extraction_service,
    build_user_prompt,
)


HINT = ProductHint(product_name="Waschmaschine WM14", article_number="WM14N2EX0")


def _client(content: Optional[str] = None, error: Optional[Exception] = None) -> MagicMock:
    client = MagicMock()
    response = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])
    client.chat.completions.create = AsyncMock(return_value=response, side_effect=error)
    return client


@pytest.mark.asyncio
async def test_returns_json_object(spec_schema: list[PropertyDefinition]) -> None:
    payload = {"Gewicht": {"value": "12 kg", "justification": "Gewicht: 12 kg"}}
    client = _client(json.dumps(payload))
    service = OpenAIExtractionService(client, model="gpt-4o-mini", temperature=0.1)

    result = await service.extract("Gewicht: 12 kg", spec_schema, HINT)

    assert result == payload
    kwargs = client.chat.completions.create.await_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["response_format"] == {"type": "json_object"}
    assert "WM14N2EX0" in kwargs["messages"][1]["content"]


@pytest.mark.asyncio
async def test_fenced_json_is_accepted(spec_schema) -> None:
    client = _client('Hier:\n```json\n{"Farbe": "Weiß"}\n```')
    result = await OpenAIExtractionService(client, model="m").extract("text", spec_schema, HINT)
    assert result == {"Farbe": "Weiß"}


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["", None, "keine Daten", "[1, 2]"])
async def test_unusable_response_is_parse_error(spec_schema, content) -> None:
    service = OpenAIExtractionService(_client(content), model="m")
    with pytest.raises(ExtractionParseException):
        await service.extract("text", spec_schema, HINT)


@pytest.mark.asyncio
async def test_sdk_error_is_service_error(spec_schema) -> None:
    error = APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
    service = OpenAIExtractionService(_client(error=error), model="m")
    with pytest.raises(ExtractionServiceException):
        await service.extract("text", spec_schema, HINT)


def test_user_prompt_lists_properties_in_order() -> None:
    schema = [
        PropertyDefinition(name="Leistung", expected_format="W", order_index=1, is_required=True),
        PropertyDefinition(name="Gewicht", description="Nettogewicht", order_index=0),
    ]
    prompt = build_user_prompt("SOURCE", schema, HINT)

    assert prompt.index("- Gewicht (Nettogewicht)") < prompt.index("- Leistung (format: W; required)")
    assert prompt.startswith("PRODUCT: Waschmaschine WM14")
    assert prompt.endswith("SOURCE")


def test_extract_json_object_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        _extract_json_object("no json here")


def test_missing_api_key_is_configuration_error() -> None:
    with patch("specfinder.services.extraction_service.settings") as mock_settings:
        mock_settings.openai_api_key = ""
        with pytest.raises(ExtractionServiceUnavailableException):
            build_extraction_service()
