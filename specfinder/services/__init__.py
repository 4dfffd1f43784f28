"""외부 서비스 클라이언트"""

from .extraction_service import OpenAIExtractionService, build_extraction_service, build_openai_client

__all__ = ["OpenAIExtractionService", "build_extraction_service", "build_openai_client"]
