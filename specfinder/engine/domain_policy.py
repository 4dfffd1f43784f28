"""Domain Policy - Trusted/Excluded Domain Snapshot

An immutable snapshot of the externally maintained domain lists.
It is built once per pipeline run and shared read-only by every
concurrent worker; there is no process-wide mutable state here.

- is_allowed(url): False iff the host (or a parent domain) is an active excluded entry
- priority_rank(url): position of the matching active trusted entry, lower = more trusted
"""

from __future__ import annotations

import os
import sys
import threading
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence, TypeVar

import yaml

from specfinder.core.exceptions import DomainPolicyException
from specfinder.core.logging import logger
from specfinder.engine.result import DomainEntry, DomainKind
from specfinder.utils.resource_loader import read_yaml_file, resolve_path
from specfinder.utils.url_utils import hostname_of, normalize_hostname, parent_domains


UNRANKED = sys.maxsize

T = TypeVar("T")


@dataclass(frozen=True)
class DomainPolicy:
    """신뢰/제외 도메인 스냅샷

    Attributes:
        trusted: 활성 신뢰 도메인 (우선순위 순, 정규화된 호스트명)
        excluded: 활성 제외 도메인 (정규화된 호스트명)
    """

    trusted: tuple[str, ...] = ()
    excluded: frozenset[str] = frozenset()

    @classmethod
    def empty(cls) -> "DomainPolicy":
        return cls()

    @classmethod
    def from_entries(cls, entries: Iterable[DomainEntry]) -> "DomainPolicy":
        """DomainEntry 목록에서 스냅샷 생성 (비활성/잘못된 항목은 무시)"""
        trusted: list[str] = []
        excluded: set[str] = set()
        for entry in entries:
            if not entry.active:
                continue
            # 제외 항목은 www.까지 그대로 보존 (www.x.com 제외가 x.com 전체를 막지 않도록)
            host = normalize_hostname(entry.hostname, strip_www=entry.kind != DomainKind.EXCLUDED)
            if not host:
                logger.warning(f"[POLICY] Ignoring malformed domain entry: {entry.hostname!r}")
                continue
            if entry.kind == DomainKind.EXCLUDED:
                excluded.add(host)
            elif host not in trusted:
                trusted.append(host)
        return cls(trusted=tuple(trusted), excluded=frozenset(excluded))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DomainPolicy":
        """{"trusted": [...], "excluded": [...]} 형태에서 생성

        각 항목은 호스트명 문자열 또는 {"hostname": ..., "active": bool} mapping.
        """
        entries: list[DomainEntry] = []
        for kind in (DomainKind.TRUSTED, DomainKind.EXCLUDED):
            items = data.get(kind.value) or []
            if not isinstance(items, (list, tuple)):
                raise ValueError(f"'{kind.value}' must be a list")
            for item in items:
                entries.append(_entry_from_item(item, kind))
        return cls.from_entries(entries)

    def _excluded_match(self, host: str) -> Optional[str]:
        for candidate in parent_domains(host):
            if candidate in self.excluded:
                return candidate
        return None

    def is_allowed(self, url: str) -> bool:
        """제외 도메인(또는 그 하위 도메인)이 아니면 True

        잘못된 URL은 어떤 항목과도 매칭되지 않은 것으로 봅니다.
        """
        host = hostname_of(url, strip_www=False)
        if not host:
            return True
        return self._excluded_match(host) is None

    def priority_rank(self, url: str) -> int:
        """신뢰 도메인 우선순위 (낮을수록 신뢰, 매칭 없으면 UNRANKED)

        호스트명 일치(선행 www. 무시)로만 매칭하며, 제외 도메인이 항상 우선합니다.
        """
        raw_host = hostname_of(url, strip_www=False)
        if not raw_host or self._excluded_match(raw_host) is not None:
            return UNRANKED
        host = normalize_hostname(raw_host)
        try:
            return self.trusted.index(host)
        except ValueError:
            return UNRANKED

    def prioritize(self, items: Sequence[T], key=lambda item: getattr(item, "url", item)) -> list[T]:
        """신뢰 도메인 소스를 앞으로 (같은 순위끼리는 입력 순서 유지)"""
        return sorted(items, key=lambda item: self.priority_rank(key(item)))


def _entry_from_item(item: Any, kind: DomainKind) -> DomainEntry:
    if isinstance(item, str):
        return DomainEntry(hostname=item, kind=kind)
    if isinstance(item, Mapping):
        hostname = item.get("hostname") or item.get("domain")
        if not isinstance(hostname, str):
            raise ValueError(f"domain entry without hostname: {item!r}")
        return DomainEntry(hostname=hostname, kind=kind, active=bool(item.get("active", True)))
    raise ValueError(f"unsupported domain entry: {item!r}")


_cache_lock = threading.Lock()
_cache: dict[str, tuple[float, DomainPolicy]] = {}


def load_domain_policy(path: str) -> DomainPolicy:
    """YAML 스냅샷에서 DomainPolicy 로드

    - 파일 없음: 빈 정책 + 경고
    - 읽기/파싱 실패: DomainPolicyException (설정 오류)
    - 파일 mtime이 같으면 이전에 파싱한 스냅샷 재사용

    Args:
        path: 스냅샷 경로 (상대 경로는 CWD -> 프로젝트 루트 순으로 해석)

    Returns:
        DomainPolicy

    Raises:
        DomainPolicyException: 스냅샷을 읽을 수 없음
    """
    resolved = resolve_path(path)
    if not os.path.exists(resolved):
        logger.warning(f"[POLICY] Domain policy snapshot not found: {resolved}, using empty policy")
        return DomainPolicy.empty()

    try:
        mtime = os.path.getmtime(resolved)
    except OSError as e:
        raise DomainPolicyException(resolved, str(e)) from e

    with _cache_lock:
        cached = _cache.get(resolved)
        if cached is not None and cached[0] == mtime:
            return cached[1]

    try:
        policy = DomainPolicy.from_mapping(read_yaml_file(resolved))
    except (OSError, yaml.YAMLError, ValueError, TypeError) as e:
        raise DomainPolicyException(resolved, f"{type(e).__name__}: {e}") from e

    with _cache_lock:
        _cache[resolved] = (mtime, policy)
    logger.info(
        f"[POLICY] Loaded domain policy: trusted={len(policy.trusted)}, excluded={len(policy.excluded)}"
    )
    return policy


def clear_domain_policy_cache() -> None:
    with _cache_lock:
        _cache.clear()
