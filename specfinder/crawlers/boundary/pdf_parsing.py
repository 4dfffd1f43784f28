"""PDF 소스 텍스트 추출 (pypdf)

pypdf 파싱은 동기 CPU 작업이므로 async 단계에서는
asyncio.to_thread(read_pdf, ...)로 호출합니다.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Optional

from pypdf import PdfReader

from specfinder.utils.text_utils import collapse_whitespace


_PDF_MAGIC = b"%PDF-"


@dataclass(frozen=True)
class PdfDocument:
    text: str
    title: str


def is_pdf_response(content_type: Optional[str], body: bytes) -> bool:
    """Content-Type 또는 매직 바이트로 PDF 응답 판별"""
    if content_type and "application/pdf" in content_type.lower():
        return True
    return bool(body) and body.lstrip()[:5] == _PDF_MAGIC


def read_pdf(data: bytes, fallback_title: str = "") -> PdfDocument:
    """
    PDF 바이트를 한 번 파싱해 본문 텍스트와 제목을 함께 추출

    Args:
        data: PDF 원본 바이트
        fallback_title: 메타데이터 제목이 없을 때 쓸 제목

    Returns:
        PdfDocument (페이지별 텍스트를 줄바꿈으로 합침)

    Raises:
        ValueError: PDF를 파싱할 수 없음
    """
    if not data:
        return PdfDocument(text="", title=fallback_title)
    try:
        reader = PdfReader(io.BytesIO(data))
        page_text: list[str] = []
        for page in reader.pages:
            text = collapse_whitespace(page.extract_text() or "")
            if text:
                page_text.append(text)
        meta = reader.metadata
    except Exception as exc:
        raise ValueError(f"Failed to parse PDF: {type(exc).__name__}: {exc}") from exc

    title = getattr(meta, "title", None) if meta is not None else None
    return PdfDocument(
        text="\n".join(page_text),
        title=collapse_whitespace(str(title)) if title else fallback_title,
    )
