"""텍스트 처리 유틸리티 - 사양 값 정규화/정제"""

from __future__ import annotations

import re
import unicodedata
from typing import Any, Optional


# "값 없음" 표기 (추출 서비스가 영어/독일어로 답하는 경우 포함)
NOT_FOUND_MARKERS: frozenset[str] = frozenset(
    {
        "",
        "-",
        "--",
        "—",
        "/",
        "?",
        "n/a",
        "n.a.",
        "na",
        "none",
        "null",
        "nil",
        "unknown",
        "not found",
        "not available",
        "not specified",
        "not applicable",
        "no data",
        "no information",
        "k.a.",
        "k. a.",
        "keine angabe",
        "keine angaben",
        "nicht gefunden",
        "nicht angegeben",
        "nicht verfügbar",
        "nicht vorhanden",
        "unbekannt",
    }
)

_WHITESPACE_RE = re.compile(r"\s+")
# 숫자와 단위 사이 공백: "12 kg" -> "12kg", "90 %" -> "90%", "230 V" -> "230V"
_NUMBER_UNIT_SPACING_RE = re.compile(r"(?<=\d)\s+(?=[^\W\d_]|[%°℃℉Ω])")


def collapse_whitespace(text: str) -> str:
    """연속 공백/줄바꿈을 단일 공백으로 치환"""
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip()


def clean_raw_value(value: Any) -> Optional[str]:
    """
    추출 서비스가 돌려준 값을 표시용 문자열로 정리

    - 문자열/숫자만 허용 (bool, dict, list 등은 None)
    - 앞뒤 공백 제거, 내부 공백 정리 (원래 대소문자 유지)
    - "값 없음" 표기는 None

    Args:
        value: 추출 서비스 응답의 값

    Returns:
        정리된 문자열 또는 None
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        text = str(value)
    elif isinstance(value, str):
        text = value
    else:
        return None

    text = collapse_whitespace(text)
    if is_not_found_marker(text):
        return None
    return text


def is_not_found_marker(text: Optional[str]) -> bool:
    """'not found' 류 표기인지 확인 (대소문자/앞뒤 구두점 무시)"""
    if text is None:
        return True
    key = collapse_whitespace(str(text)).casefold().strip(" .:;")
    if key in NOT_FOUND_MARKERS:
        return True
    return collapse_whitespace(str(text)).casefold() in NOT_FOUND_MARKERS


def normalize_value(raw: str) -> str:
    """
    비교용 정규화 값 생성

    예시:
    - "12 kg" -> "12kg"
    - " 12KG " -> "12kg"
    - "Edelstahl  gebürstet" -> "edelstahl gebürstet"

    원본 대소문자는 raw_value 쪽에 보존되고, 이 값은 그룹핑에만 쓰입니다.
    """
    if not raw:
        return ""
    text = unicodedata.normalize("NFKC", str(raw))
    text = text.casefold()
    text = collapse_whitespace(text)
    text = _NUMBER_UNIT_SPACING_RE.sub("", text)
    return text


def truncate(text: str, max_chars: int) -> str:
    """최대 길이로 자르기 (max_chars <= 0이면 그대로)"""
    if not text or max_chars <= 0 or len(text) <= max_chars:
        return text or ""
    return text[:max_chars]
