"""설정 관리 - 환경 변수 로드 및 검증"""
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    """애플리케이션 설정"""

    # 데이터베이스 (감사 로그 저장용)
    database_url: str = "sqlite:///./specfinder.db"

    # 감사/모니터링 싱크: log | database | none
    audit_backend: str = "log"

    # 도메인 정책 스냅샷 (외부 설정 시스템이 갱신)
    domain_policy_path: str = "resources/domain_policy.yaml"

    # 크롤러 공통
    crawler_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    crawler_accept_language: str = "de-DE,de;q=0.9,en-US;q=0.8,en;q=0.7"
    crawler_http_impersonate: str = "chrome110"
    crawler_http_max_clients: int = 20

    # Fetch Strategy Ladder 단계별 타임아웃 (초)
    # - fast: 짧은 예산, enhanced: 헤더 보강 + 여유 예산
    # - render: Playwright networkidle 대기 포함
    fetch_fast_timeout_s: float = 6.0
    fetch_enhanced_timeout_s: float = 10.0
    fetch_render_timeout_s: float = 20.0
    fetch_script_timeout_s: float = 8.0

    # 콘텐츠 최소 길이 (HTML 태그 제거 후 문자 수)
    min_content_chars: int = 1000
    min_script_content_chars: int = 500

    # 동적 페이지 판별 휴리스틱
    dynamic_min_element_count: int = 10
    dynamic_script_tag_threshold: int = 15
    dynamic_near_empty_body_chars: int = 200

    # Playwright
    crawler_browser_concurrency: int = 2
    crawler_browser_launch_retries: int = 3
    crawler_block_resources: bool = True

    # 동시성 (outer: 제품, inner: 소스)
    source_concurrency: int = 8
    batch_concurrency: int = 5
    max_sources_per_product: int = 10

    # 추출 서비스 호출
    extraction_concurrency: int = 10
    extraction_timeout_s: float = 60.0
    extraction_max_chars: int = 15000

    # 교차검증
    min_consistent_sources: int = 1

    # 언어모델 추출 서비스 (OpenAI 호환)
    openai_api_key: str = ""
    openai_base_url: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.1

    # API
    api_title: str = "제품 사양 수집 서비스"
    api_version: str = "1.0.0"
    api_description: str = "여러 웹/PDF 소스에서 사양 값을 수집하고 교차검증합니다."

    # 배치 전체 하드 캡 (초)
    api_search_timeout_s: float = 180.0

    # 로깅
    log_level: str = "INFO"

    @field_validator(
        "fetch_fast_timeout_s",
        "fetch_enhanced_timeout_s",
        "fetch_render_timeout_s",
        "fetch_script_timeout_s",
        "extraction_timeout_s",
        "api_search_timeout_s",
    )
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @field_validator(
        "source_concurrency",
        "batch_concurrency",
        "extraction_concurrency",
        "crawler_browser_concurrency",
        "max_sources_per_product",
    )
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("concurrency limits must be positive")
        return v

    @field_validator(
        "min_content_chars",
        "min_script_content_chars",
        "dynamic_min_element_count",
        "dynamic_script_tag_threshold",
        "dynamic_near_empty_body_chars",
        "extraction_max_chars",
    )
    @classmethod
    def validate_thresholds(cls, v: int) -> int:
        if v < 0:
            raise ValueError("thresholds must be >= 0")
        return v

    @field_validator("min_consistent_sources")
    @classmethod
    def validate_min_consistent_sources(cls, v: int) -> int:
        if v < 1:
            raise ValueError("min_consistent_sources must be >= 1")
        return v

    @field_validator("audit_backend")
    @classmethod
    def validate_audit_backend(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if v not in {"log", "database", "none"}:
            raise ValueError("audit_backend must be one of: log, database, none")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
