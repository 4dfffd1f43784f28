"""FastAPI 앱 팩토리"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from specfinder.core.config import settings
from specfinder.core.database import init_db
from specfinder.core.exceptions import ConfigurationException
from specfinder.core.logging import logger
from specfinder.api import health_router, search_router
from specfinder.engine import SearchResponse
from specfinder.schemas.search_schema import SearchResponseSchema


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 생명주기"""
    logger.info("Starting application...")
    if settings.audit_backend == "database":
        init_db()
    logger.info("Application started")
    yield
    logger.info("Shutting down application...")
    try:
        from specfinder.api.routes import search_routes
        sink = getattr(search_routes._orchestrator, "audit_sink", None)
        drain = getattr(sink, "drain", None)
        if drain is not None:
            await drain()
    except Exception as e:
        logger.warning(f"Audit drain failed: {type(e).__name__}")
    try:
        from specfinder.crawlers.http_client import shutdown_shared_http_client
        await shutdown_shared_http_client()
    except Exception as e:
        # 종료 훅에서의 예외는 앱 종료를 막지 않도록 로그만 남김
        logger.warning(f"HTTP client shutdown failed: {type(e).__name__}")
    try:
        from specfinder.crawlers.playwright import shutdown_shared_browser
        await shutdown_shared_browser()
    except Exception as e:
        logger.warning(f"Browser shutdown failed: {type(e).__name__}")


async def configuration_exception_handler(request: Request, exc: ConfigurationException) -> JSONResponse:
    """설정 오류 -> searchStatus="error" 응답 (raw 500 대신)"""
    logger.error(f"[API] Configuration error: {exc}")
    body = SearchResponseSchema.from_domain(SearchResponse.error(exc.message))
    return JSONResponse(status_code=200, content=body.model_dump(by_alias=True))


def create_app() -> FastAPI:
    """
    FastAPI 앱 생성 (Factory Pattern)

    Returns:
        FastAPI 앱 인스턴스
    """
    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        lifespan=lifespan
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ConfigurationException, configuration_exception_handler)

    # 라우터 등록
    app.include_router(health_router)
    app.include_router(search_router)

    return app

# 앱 인스턴스 생성 (uvicorn이 로드할 수 있도록)
app = create_app()
