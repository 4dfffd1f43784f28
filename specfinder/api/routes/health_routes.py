"""헬스 체크 엔드포인트"""
from fastapi import APIRouter
from datetime import datetime

from specfinder.schemas.search_schema import HealthResponse
from specfinder.core.config import settings
from specfinder.core.database import engine
from specfinder.core.logging import logger
from specfinder import __version__

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    헬스 체크 엔드포인트

    - 서버 상태
    - DB 연결 상태 (감사 로그를 DB에 쓸 때만)
    - 추출 서비스 설정 여부
    """
    db_ok = True

    if settings.audit_backend == "database":
        try:
            with engine.connect() as connection:
                # 간단한 쿼리로 연결 확인
                connection.exec_driver_sql("SELECT 1")
        except Exception as e:
            logger.error(f"Database connection error: {e}")
            db_ok = False

    extraction_configured = bool(settings.openai_api_key)
    status = "ok" if db_ok and extraction_configured else "degraded"

    return HealthResponse(
        status=status,
        timestamp=datetime.now(),
        version=__version__,
        audit_backend=settings.audit_backend,
        extraction_configured=extraction_configured,
    )


@router.get("/")
async def root():
    """루트 엔드포인트"""
    return {
        "service": "제품 사양 수집 서비스",
        "version": __version__,
        "docs": "/docs"
    }
