"""데이터베이스 모델"""
from sqlalchemy import Column, Integer, String, TIMESTAMP, func, Index, Text, Float, Boolean
from specfinder.core.database import Base


class FetchAuditLog(Base):
    """소스 수집 감사 로그 테이블 (소스 1건당 1행)"""

    __tablename__ = "fetch_audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(String, nullable=True, index=True)
    url = Column(String(2048), nullable=False)
    method = Column(String(32), nullable=True)  # fast-static, enhanced-static, rendered, script-eval
    content_length = Column(Integer, nullable=False, default=0)
    success = Column(Boolean, nullable=False, default=False)
    elapsed_ms = Column(Float, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP, server_default=func.now(), index=True)

    # 복합 인덱스 (통계 쿼리 최적화)
    __table_args__ = (
        Index("idx_fetch_audit_url_created", "url", "created_at"),
        Index("idx_fetch_audit_method_success", "method", "success"),
    )

    def __repr__(self) -> str:
        return f"<FetchAuditLog(id={self.id}, url={self.url}, method={self.method}, success={self.success})>"
