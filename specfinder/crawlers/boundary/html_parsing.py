"""HTML 파싱/검증 유틸 (네트워크와 분리된 순수 로직).

- 가시 텍스트 추출 (selectolax)
- 동적(클라이언트 렌더링) 페이지 판별 휴리스틱
- 차단/챌린지 페이지 판별
- 인라인 스크립트 페이로드(JSON-LD, 하이드레이션 상태) 텍스트화
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from selectolax.parser import HTMLParser

from specfinder.utils.text_utils import collapse_whitespace


# 본문 텍스트에 기여하지 않는 태그
_NON_CONTENT_TAGS = [
    "script",
    "style",
    "noscript",
    "iframe",
    "svg",
    "template",
    "nav",
    "header",
    "footer",
]

# 쿠키 배너/모달 오버레이
_OVERLAY_SELECTORS = (
    '[id*="cookie"]',
    '[class*="cookie"]',
    '[id*="consent"]',
    '[class*="consent"]',
    '[class*="modal"]',
    '[role="dialog"]',
)

_BLOCK_KEYWORDS = (
    # 문맥적으로 명확한 차단/챌린지 문구만 보관합니다.
    "access denied",
    "captcha",
    "just a moment",
    "verify you are human",
    "attention required",
    "enable javascript and cookies to continue",
    "zugriff verweigert",
)

# 클라이언트 프레임워크 마운트/상태 마커 (소문자 비교)
_FRAMEWORK_MARKERS: tuple[tuple[str, str], ...] = (
    ("data-reactroot", "react-root"),
    ('id="root"', "mount:root"),
    ('id="app"', "mount:app"),
    ('id="__next"', "mount:__next"),
    ('id="__nuxt"', "mount:__nuxt"),
    ("__next_data__", "next-data"),
    ("__nuxt__", "nuxt-state"),
    ("ng-app", "angular"),
    ("ng-version", "angular"),
    ("data-server-rendered", "vue-ssr"),
    ("v-cloak", "vue-cloak"),
    ("data-v-app", "vue-app"),
    ("appregistry.registerinitialstate", "react-native-web"),
)

_HYDRATION_ASSIGN_RE = re.compile(
    r"(?:window\.|self\.|globalThis\.)?([A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*)\s*=\s*(?=[\[{])"
)

# 스크립트 상태에서 의미 없는 키 (트래킹/빌드 정보)
_NOISE_KEYS = {
    "buildid",
    "assetprefix",
    "runtimeconfig",
    "isfallback",
    "gssp",
    "scriptloader",
    "locale",
    "locales",
    "defaultlocale",
    "__typename",
    "@context",
}


@dataclass(frozen=True)
class DynamicContentVerdict:
    """동적 페이지 판별 결과"""

    is_dynamic: bool
    reasons: list[str] = field(default_factory=list)


def _parser(html: str) -> HTMLParser:
    return HTMLParser(html or "")


def _node_text(node) -> str:
    if node is None:
        return ""
    return collapse_whitespace(node.text(deep=True, separator=" ", strip=True))


def extract_structured_data(html: str) -> list[Any]:
    """JSON-LD(<script type="application/ld+json">) 페이로드 목록"""
    if not html:
        return []
    out: list[Any] = []
    for node in _parser(html).css('script[type="application/ld+json"]'):
        raw = (node.text(deep=True) or "").strip()
        if not raw:
            continue
        try:
            out.append(json.loads(raw))
        except ValueError:
            continue
    return out


def html_to_text(html: str) -> str:
    """
    HTML에서 사양 추출에 쓸 가시 텍스트 생성

    - 비본문 태그/오버레이 제거
    - JSON-LD 상품 데이터는 [STRUCTURED DATA] 블록으로 앞에 붙임
    - 공백 정리

    Args:
        html: 원본 HTML

    Returns:
        가시 텍스트 (HTML이 비어 있으면 빈 문자열)
    """
    if not html:
        return ""

    structured = extract_structured_data(html)

    parser = _parser(html)
    parser.strip_tags(_NON_CONTENT_TAGS)
    for selector in _OVERLAY_SELECTORS:
        for node in parser.css(selector):
            node.remove()

    root = parser.body or parser.root
    text = _node_text(root)

    if not structured:
        return text

    blocks = []
    for item in structured:
        try:
            blocks.append(json.dumps(item, ensure_ascii=False, separators=(",", ":")))
        except (TypeError, ValueError):
            continue
    if not blocks:
        return text
    return "[STRUCTURED DATA]\n" + "\n".join(blocks) + "\n\n" + text


def extract_title(html: str, fallback: str = "") -> str:
    """제목 추출: <title> -> 첫 <h1> -> fallback"""
    if not html:
        return fallback
    parser = _parser(html)
    title = _node_text(parser.css_first("title"))
    if title:
        return title
    h1 = _node_text(parser.css_first("h1"))
    if h1:
        return h1
    return fallback


def extract_meta_text(html: str) -> str:
    """상품 관련 meta 태그(description, og:*, product:*) 텍스트"""
    if not html:
        return ""
    lines: list[str] = []
    for node in _parser(html).css("meta"):
        attrs = node.attributes or {}
        key = (attrs.get("property") or attrs.get("name") or "").strip().lower()
        content = (attrs.get("content") or "").strip()
        if not key or not content:
            continue
        if key in {"description", "og:title", "og:description"} or key.startswith("product:"):
            lines.append(f"{key}: {collapse_whitespace(content)}")
    return "\n".join(lines)


def detect_dynamic_content(
    html: str,
    *,
    min_element_count: int,
    script_tag_threshold: int,
    near_empty_body_chars: int,
) -> DynamicContentVerdict:
    """
    클라이언트 렌더링이 필요한 페이지인지 판별

    판단 기준 (하나라도 해당하면 동적):
    1. 프레임워크 루트 마운트/상태 마커
    2. 콘텐츠 요소(p/div/span)가 적은데 <script>가 많음
    3. <body> 가시 텍스트가 거의 없음

    Args:
        html: 원본 HTML
        min_element_count: 콘텐츠 요소 최소 개수
        script_tag_threshold: <script> 개수 임계값
        near_empty_body_chars: 빈 body로 볼 가시 텍스트 길이

    Returns:
        DynamicContentVerdict
    """
    if not html:
        return DynamicContentVerdict(is_dynamic=True, reasons=["empty-document"])

    reasons: list[str] = []
    lowered = html.lower()
    for marker, label in _FRAMEWORK_MARKERS:
        if marker in lowered and label not in reasons:
            reasons.append(label)

    parser = _parser(html)
    element_count = len(parser.css("p, div, span"))
    script_count = len(parser.css("script"))
    if element_count < min_element_count and script_count > script_tag_threshold:
        reasons.append(f"script-heavy:{element_count}el/{script_count}js")

    parser.strip_tags(_NON_CONTENT_TAGS)
    body_text = _node_text(parser.body)
    if len(body_text) < near_empty_body_chars:
        reasons.append(f"near-empty-body:{len(body_text)}")

    return DynamicContentVerdict(is_dynamic=bool(reasons), reasons=reasons)


def get_blocked_keyword(html: str, *, visible_text_limit: int = 2000) -> Optional[str]:
    """차단/챌린지 페이지 문구 반환

    제목에 차단 문구가 있거나, 가시 텍스트가 짧은 페이지의 본문에 있을 때만 차단으로 봅니다.
    (긴 상품 페이지의 폼 안내문 'captcha' 같은 오탐 방지)
    """
    if not html:
        return None
    title = extract_title(html).lower()
    for k in _BLOCK_KEYWORDS:
        if k in title:
            return k

    parser = _parser(html)
    parser.strip_tags(_NON_CONTENT_TAGS)
    visible = _node_text(parser.body or parser.root).lower()
    if len(visible) >= visible_text_limit:
        return None
    for k in _BLOCK_KEYWORDS:
        if k in visible:
            return k
    return None


def _flatten_payload(value: Any, lines: list[str], key: str = "", depth: int = 0) -> None:
    if depth > 12:
        return
    if isinstance(value, dict):
        for k, v in value.items():
            k_str = str(k)
            if k_str.lower() in _NOISE_KEYS:
                continue
            _flatten_payload(v, lines, k_str, depth + 1)
        return
    if isinstance(value, list):
        for item in value:
            _flatten_payload(item, lines, key, depth + 1)
        return
    if isinstance(value, bool) or value is None:
        return
    if isinstance(value, (int, float)):
        text = str(value)
    elif isinstance(value, str):
        text = collapse_whitespace(value)
        # URL/경로/해시 값은 사양 텍스트가 아님
        if not text or text.startswith(("http://", "https://", "/", "data:")):
            return
        if "<" in text and ">" in text:
            text = collapse_whitespace(_node_text(_parser(text).body) or "")
            if not text:
                return
    else:
        return
    lines.append(f"{key}: {text}" if key and not key.startswith("@") else text)


def _decode_assignments(script_text: str) -> Iterable[Any]:
    decoder = json.JSONDecoder()
    for m in _HYDRATION_ASSIGN_RE.finditer(script_text):
        try:
            obj, _end = decoder.raw_decode(script_text, m.end())
        except ValueError:
            continue
        yield obj


def extract_script_payloads(html: str) -> list[Any]:
    """인라인 스크립트에 실린 데이터 페이로드 디코드

    - <script type="application/ld+json"> / <script type="application/json"> (예: __NEXT_DATA__)
    - window.X = {...} / X = [...] 형태의 하이드레이션 대입 (JSON 리터럴인 경우만)
    """
    if not html:
        return []
    payloads: list[Any] = []
    for node in _parser(html).css("script"):
        attrs = node.attributes or {}
        if attrs.get("src"):
            continue
        script_type = (attrs.get("type") or "").strip().lower()
        raw = (node.text(deep=True) or "").strip()
        if not raw:
            continue
        if script_type in {"application/ld+json", "application/json"}:
            try:
                payloads.append(json.loads(raw))
            except ValueError:
                continue
            continue
        if script_type and script_type not in {"text/javascript", "application/javascript", "module"}:
            continue
        payloads.extend(_decode_assignments(raw))
    return payloads


def extract_script_payload_text(html: str) -> str:
    """스크립트 페이로드 + meta + 정적 가시 텍스트를 합친 텍스트

    중복 줄은 첫 등장만 유지합니다.
    """
    lines: list[str] = []
    for payload in extract_script_payloads(html):
        _flatten_payload(payload, lines)

    meta = extract_meta_text(html)
    if meta:
        lines.extend(meta.splitlines())

    seen: set[str] = set()
    deduped: list[str] = []
    for line in lines:
        if line in seen:
            continue
        seen.add(line)
        deduped.append(line)

    parser = _parser(html)
    parser.strip_tags(_NON_CONTENT_TAGS)
    visible = _node_text(parser.body or parser.root)

    parts = ["\n".join(deduped)] if deduped else []
    if visible:
        parts.append(visible)
    return "\n\n".join(parts).strip()
