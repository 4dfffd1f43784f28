"""로깅 설정

- 패키지 로거 하나("specfinder")만 구성하고, 로그 줄은 [LADDER], [PIPELINE] 같은
  컴포넌트 태그로 시작합니다.
- 페이지 본문/사용자 입력은 sanitize_for_log()를 거쳐서만 기록합니다.
"""
import logging
import re
import sys
import os
from specfinder.core.config import settings


# Production 환경에서는 DEBUG 로그 비활성화
IS_PRODUCTION = os.getenv("ENVIRONMENT", "development") == "production"

_VERBOSE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
_COMPACT_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

# 요청 단위로 로그를 쏟아내는 서드파티 로거
_NOISY_LOGGERS = ("openai", "httpx", "httpcore", "curl_cffi", "asyncio")


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    if not isinstance(level, int):
        level = logging.INFO
    if IS_PRODUCTION:
        level = max(level, logging.INFO)
    return level


def setup_logging() -> logging.Logger:
    """패키지 로거 초기화 (여러 번 호출해도 핸들러는 하나)"""
    level = _resolve_level(settings.log_level)

    logger = logging.getLogger("specfinder")
    logger.setLevel(level)
    logger.propagate = False

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter(
                fmt=_COMPACT_FORMAT if IS_PRODUCTION else _VERBOSE_FORMAT,
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(handler)
    for handler in logger.handlers:
        handler.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return logger


logger = setup_logging()


_SECRET_PATTERN = re.compile(
    r"(?i)(api[_-]?key|token|secret|password|authorization)(\s*[:=]\s*|\s+)(\S+)"
)
_BEARER_PATTERN = re.compile(r"(?i)\b(sk-[A-Za-z0-9_\-]{8,}|bearer\s+[A-Za-z0-9_\-\.]{8,})")


def sanitize_for_log(value: str, max_length: int = 100) -> str:
    """민감 정보 마스킹 후 로깅용 문자열 반환

    Args:
        value: 로깅할 문자열 (페이지 본문, 사용자 입력 등)
        max_length: 최대 길이

    Returns:
        마스킹/절단된 문자열
    """
    if not value:
        return "[empty]"

    result = _SECRET_PATTERN.sub(lambda m: f"{m.group(1)}{m.group(2)}***", str(value))
    result = _BEARER_PATTERN.sub("***", result)

    # 줄바꿈은 한 줄 로그를 깨뜨리므로 공백으로 치환
    result = re.sub(r"\s+", " ", result).strip()

    if len(result) > max_length:
        result = result[:max_length] + "..."

    return result
