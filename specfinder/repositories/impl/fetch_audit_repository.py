"""수집 감사 로그 리포지토리 - DB 접근 로직"""
from typing import List, Optional, Any, cast
from sqlalchemy.orm import Session
from sqlalchemy import func, desc, case

from specfinder.repositories.models import FetchAuditLog
from specfinder.core.logging import logger
from specfinder.core.exceptions import DatabaseException


class FetchAuditRepository:
    """수집 감사 로그 데이터 액세스 레이어"""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        url: str,
        method: Optional[str],
        content_length: int,
        success: bool,
        elapsed_ms: Optional[float] = None,
        error: Optional[str] = None,
        product_id: Optional[str] = None,
    ) -> FetchAuditLog:
        """감사 로그 생성"""
        try:
            log = FetchAuditLog(
                url=url,
                method=method,
                content_length=content_length,
                success=success,
                elapsed_ms=elapsed_ms,
                error=error,
                product_id=product_id,
            )
            self.db.add(log)
            self.db.commit()
            self.db.refresh(log)
            logger.debug(f"Fetch audit log created: {log.id}")
            return log
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create fetch audit log: {e}")
            raise DatabaseException(f"Failed to create fetch audit log: {e}")

    def get_recent(self, limit: int = 20) -> List[FetchAuditLog]:
        """최근 로그 조회"""
        return self.db.query(FetchAuditLog).order_by(
            desc(FetchAuditLog.created_at), desc(FetchAuditLog.id)
        ).limit(limit).all()

    def get_method_stats(self) -> dict:
        """수집 단계별 통계 ({method: {"count", "success", "avg_content_length"}})

        모든 단계가 실패한 소스는 method가 없으므로 "none"으로 집계합니다.
        """
        rows: List[Any] = self.db.query(
            FetchAuditLog.method,
            func.count(FetchAuditLog.id).label("count"),
            func.sum(case((FetchAuditLog.success.is_(True), 1), else_=0)).label("success"),
            func.avg(FetchAuditLog.content_length).label("avg_len"),
        ).group_by(FetchAuditLog.method).all()

        stats: dict = {}
        for row in rows:
            method = cast(Optional[str], getattr(row, "method", None)) or "none"
            stats[method] = {
                "count": int(cast(Any, getattr(row, "count", 0)) or 0),
                "success": int(cast(Any, getattr(row, "success", 0)) or 0),
                "avg_content_length": round(float(cast(Any, getattr(row, "avg_len", 0)) or 0.0), 1),
            }
        return stats
