"""커스텀 예외 정의 (Structured Exception Hierarchy)"""
from typing import Any, Optional


# 기본 예외 클래스
class SpecFinderException(Exception):
    """기본 예외 클래스 - 모든 커스텀 예외의 부모"""
    def __init__(self, message: str, error_code: str = "UNKNOWN_ERROR", details: Optional[dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# 수집(fetch) 관련 예외 - Ladder 내부에서 흡수되어 FetchedSource.error로 기록됨
class FetchException(SpecFinderException):
    """수집 관련 예외의 기본 클래스"""
    def __init__(self, message: str, error_code: str = "FETCH_ERROR", details: Optional[dict[str, Any]] = None):
        super().__init__(message, error_code or "FETCH_ERROR", details)


class NetworkTimeoutException(FetchException):
    """네트워크 타임아웃 예외"""
    def __init__(self, operation: str, timeout_s: float, details: Optional[dict[str, Any]] = None):
        message = f"Network timeout during '{operation}' after {timeout_s:.1f}s"
        super().__init__(message, "NETWORK_TIMEOUT",
                        details or {"operation": operation, "timeout_s": timeout_s})


class HttpStatusException(FetchException):
    """HTTP 오류 상태 코드"""
    def __init__(self, url: str, status: int, details: Optional[dict[str, Any]] = None):
        message = f"HTTP {status} for {url}"
        super().__init__(message, "HTTP_STATUS", details or {"url": url, "status": status})


class BlockedException(FetchException):
    """봇 감지/차단 예외"""
    def __init__(self, source: str, details: Optional[dict[str, Any]] = None):
        message = f"Request blocked by {source} (possible bot detection)"
        super().__init__(message, "BLOCKED", details or {"source": source})


class ContentTooShortException(FetchException):
    """최소 콘텐츠 길이 미달"""
    def __init__(self, length: int, threshold: int, details: Optional[dict[str, Any]] = None):
        message = f"Content too short ({length} <= {threshold} chars)"
        super().__init__(message, "CONTENT_TOO_SHORT",
                        details or {"length": length, "threshold": threshold})


class DynamicContentException(FetchException):
    """클라이언트 렌더링이 필요한 페이지"""
    def __init__(self, reasons: list[str], details: Optional[dict[str, Any]] = None):
        message = f"Page requires rendering ({', '.join(reasons) or 'dynamic'})"
        super().__init__(message, "DYNAMIC_CONTENT", details or {"reasons": list(reasons)})


class BrowserException(FetchException):
    """브라우저 실행 오류"""
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, "BROWSER_ERROR", details)


# 추출 서비스 관련 예외 - Adapter 내부에서 흡수됨
class ExtractionException(SpecFinderException):
    """추출 관련 예외"""
    def __init__(self, message: str, error_code: str = "EXTRACTION_ERROR", details: Optional[dict[str, Any]] = None):
        super().__init__(message, error_code or "EXTRACTION_ERROR", details)


class ExtractionServiceException(ExtractionException):
    """추출 서비스 호출 실패"""
    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Extraction service call failed: {reason}"
        super().__init__(message, "EXTRACTION_SERVICE_ERROR", details or {"reason": reason})


class ExtractionParseException(ExtractionException):
    """추출 서비스 응답 파싱 실패"""
    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Failed to parse extraction output: {reason}"
        super().__init__(message, "EXTRACTION_PARSE_ERROR", details or {"reason": reason})


# 설정 관련 예외 - 파이프라인 밖으로 전파되는 유일한 예외군
class ConfigurationException(SpecFinderException):
    """설정 오류"""
    def __init__(self, message: str, error_code: str = "CONFIGURATION_ERROR", details: Optional[dict[str, Any]] = None):
        super().__init__(message, error_code or "CONFIGURATION_ERROR", details)


class DomainPolicyException(ConfigurationException):
    """도메인 정책 스냅샷을 읽을 수 없음"""
    def __init__(self, path: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Domain policy snapshot unreadable ({path}): {reason}"
        super().__init__(message, "DOMAIN_POLICY_ERROR", details or {"path": path, "reason": reason})


class ExtractionServiceUnavailableException(ConfigurationException):
    """추출 서비스 미설정"""
    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Extraction service unavailable: {reason}"
        super().__init__(message, "EXTRACTION_SERVICE_UNAVAILABLE", details or {"reason": reason})


# 유효성 검증 관련 예외
class ValidationException(SpecFinderException):
    """유효성 검증 예외"""
    def __init__(self, field: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Validation failed for '{field}': {reason}"
        super().__init__(message, "VALIDATION_ERROR",
                        details or {"field": field, "reason": reason})


class InvalidSchemaException(ValidationException):
    """유효하지 않은 속성 스키마"""
    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        super().__init__("schema", reason, details)


# 데이터베이스 관련 예외
class DatabaseException(SpecFinderException):
    """데이터베이스 관련 예외"""
    def __init__(self, message: str, error_code: str = "DB_ERROR", details: Optional[dict[str, Any]] = None):
        super().__init__(message, error_code or "DB_ERROR", details)
