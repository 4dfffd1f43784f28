"""URL/호스트명 파싱 유틸리티"""
from typing import Optional
from urllib.parse import urlparse


def normalize_hostname(value: str, strip_www: bool = True) -> Optional[str]:
    """
    호스트명(또는 URL)을 비교용 형태로 정규화

    Examples:
        >>> normalize_hostname("https://WWW.Example.com/path")
        'example.com'
        >>> normalize_hostname("https://WWW.Example.com/path", strip_www=False)
        'www.example.com'
        >>> normalize_hostname("shop.example.com.")
        'shop.example.com'
        >>> normalize_hostname("")
        None

    Args:
        value: 호스트명 또는 URL
        strip_www: 선행 www. 제거 여부 (제외 도메인 매칭은 False)

    Returns:
        소문자, 포트/경로/선행 www./후행 점 제거된 호스트명 또는 None
    """
    if not value:
        return None

    raw = str(value).strip().lower()
    if not raw:
        return None

    # 스킴 없는 호스트명도 허용 ("example.com/path")
    if "://" not in raw:
        raw = "//" + raw

    try:
        host = urlparse(raw).hostname
    except ValueError:
        return None

    if not host:
        return None

    host = host.rstrip(".")
    if strip_www and host.startswith("www."):
        host = host[4:]

    if not host or " " in host:
        return None
    return host


def hostname_of(url: str, strip_www: bool = True) -> Optional[str]:
    """http(s) URL에서 정규화된 호스트명 추출 (잘못된 URL은 None)"""
    if not is_http_url(url):
        return None
    return normalize_hostname(url, strip_www=strip_www)


def is_http_url(url: str) -> bool:
    """http/https 스킴 + 호스트를 갖는 URL인지 확인"""
    if not url or not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.hostname)


def parent_domains(host: str) -> list[str]:
    """호스트와 그 상위 도메인 목록 (자기 자신 포함, TLD 단독은 제외)

    Examples:
        >>> parent_domains("a.shop.example.com")
        ['a.shop.example.com', 'shop.example.com', 'example.com']
    """
    if not host:
        return []
    labels = host.split(".")
    if len(labels) < 2:
        return [host]
    return [".".join(labels[i:]) for i in range(len(labels) - 1)]
