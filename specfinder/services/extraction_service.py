"""언어모델 추출 서비스 클라이언트 (OpenAI 호환 SDK)

- 소스 텍스트 + 속성 스키마 + 제품 힌트로 속성별 값을 요청
- 응답은 JSON 객체 ({속성명: {"value", "justification"}})
- 응답 파싱/호출 실패는 ExtractionException으로 변환 (어댑터가 흡수)
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional, Sequence

from openai import AsyncOpenAI, APIConnectionError, APIStatusError, APITimeoutError, RateLimitError

from specfinder.core.config import settings
from specfinder.core.exceptions import (
    ExtractionParseException,
    ExtractionServiceException,
    ExtractionServiceUnavailableException,
)
from specfinder.core.logging import logger
from specfinder.engine.result import ProductHint, PropertyDefinition


_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL | re.IGNORECASE)


def build_openai_client(*, api_key: str, base_url: Optional[str] = None, max_retries: int = 2) -> AsyncOpenAI:
    return AsyncOpenAI(api_key=api_key, base_url=base_url or None, max_retries=max_retries)


def _extract_json_object(text: str) -> str:
    """응답에서 첫 JSON 객체 문자열 추출 (코드 펜스/앞뒤 잡음 허용)"""
    match = _JSON_FENCE_RE.search(text)
    if match:
        return match.group(1).strip()

    stripped = text.strip()
    if stripped.startswith("{") and stripped.endswith("}"):
        return stripped

    start = stripped.find("{")
    end = stripped.rfind("}")
    if 0 <= start < end:
        candidate = stripped[start : end + 1]
        try:
            json.loads(candidate)
            return candidate
        except json.JSONDecodeError:
            pass

    raise ValueError("Could not locate a valid JSON object in the extraction response.")


def build_system_prompt() -> str:
    # 환각 최소화: 텍스트에 있는 값만, 다른 제품 값 금지
    return (
        "You extract technical specifications of one physical product from a single web page or document.\n"
        "RULES:\n"
        "1. Only use values that literally appear in the provided text. Never guess or infer.\n"
        "2. Verify the text describes exactly the requested product (same model / article number). "
        "If it describes a different variant, return empty values.\n"
        "3. Keep units as written in the source (e.g. '12 kg', '2000 W').\n"
        "4. If a property is not present, return an empty string as its value.\n"
        "5. For each found value add a short justification quoting the source text.\n"
        "OUTPUT: a single JSON object mapping each property name to "
        '{"value": "...", "justification": "..."}. No extra keys, no prose.'
    )


def build_user_prompt(text: str, schema: Sequence[PropertyDefinition], hint: ProductHint) -> str:
    lines: list[str] = [f"PRODUCT: {hint.product_name}"]
    if hint.article_number:
        lines.append(f"ARTICLE NUMBER: {hint.article_number}")
    lines.append("")
    lines.append("PROPERTIES:")
    for prop in sorted(schema, key=lambda p: p.order_index):
        line = f"- {prop.name}"
        extras: list[str] = []
        if prop.description:
            extras.append(prop.description)
        if prop.expected_format:
            extras.append(f"format: {prop.expected_format}")
        if prop.is_required:
            extras.append("required")
        if extras:
            line += f" ({'; '.join(extras)})"
        lines.append(line)
    lines.append("")
    lines.append("SOURCE TEXT:")
    lines.append(text)
    return "\n".join(lines)


class OpenAIExtractionService:
    """OpenAI 호환 Chat Completions 기반 추출 서비스"""

    def __init__(self, client: AsyncOpenAI, model: str, temperature: float = 0.1):
        self.client = client
        self.model = model
        self.temperature = temperature

    async def extract(
        self,
        text: str,
        schema: Sequence[PropertyDefinition],
        hint: ProductHint,
    ) -> dict[str, Any]:
        """텍스트에서 속성 값 추출

        Returns:
            {속성명: {"value", "justification"} | str}

        Raises:
            ExtractionServiceException: SDK 호출 실패
            ExtractionParseException: 응답이 JSON 객체가 아님
        """
        messages = [
            {"role": "system", "content": build_system_prompt()},
            {"role": "user", "content": build_user_prompt(text, schema, hint)},
        ]
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,  # type: ignore[arg-type]
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
        except APIStatusError as exc:
            status = getattr(exc, "status_code", None)
            raise ExtractionServiceException(f"status {status}", {"status": status}) from exc
        except (RateLimitError, APITimeoutError, APIConnectionError) as exc:
            raise ExtractionServiceException(type(exc).__name__) from exc

        content = ""
        if response.choices:
            content = (response.choices[0].message.content or "").strip()
        if not content:
            raise ExtractionParseException("empty response")

        try:
            data: Any = json.loads(_extract_json_object(content))
        except (json.JSONDecodeError, ValueError) as exc:
            raise ExtractionParseException(str(exc)) from exc

        if not isinstance(data, dict):
            raise ExtractionParseException(f"expected JSON object, got {type(data).__name__}")

        logger.debug(f"[EXTRACT] model={self.model} returned {len(data)} keys")
        return data


def build_extraction_service() -> OpenAIExtractionService:
    """설정에서 추출 서비스 생성

    Raises:
        ExtractionServiceUnavailableException: API 키 미설정
    """
    if not settings.openai_api_key:
        raise ExtractionServiceUnavailableException("OPENAI_API_KEY is not configured")
    client = build_openai_client(api_key=settings.openai_api_key, base_url=settings.openai_base_url)
    return OpenAIExtractionService(client, model=settings.openai_model, temperature=settings.openai_temperature)
