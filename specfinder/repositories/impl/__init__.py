"""리포지토리 구현체"""

from .fetch_audit_repository import FetchAuditRepository

__all__ = ["FetchAuditRepository"]
