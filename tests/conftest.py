"""전역 테스트 설정

역할:
- 테스트 환경 구성
- 공통 Fake 주입 (tests/fixtures/fakes.py)
- 전역 상태 초기화

금지:
- 실제 네트워크/브라우저/언어모델 호출
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest


# 프로젝트 루트를 경로에 추가
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("AUDIT_BACKEND", "none")

from specfinder.engine.domain_policy import clear_domain_policy_cache  # noqa: E402
from specfinder.engine.result import PropertyDefinition  # noqa: E402
from tests.fixtures.fakes import RecordingAuditSink  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def test_env() -> None:
    """테스트 환경 변수 설정 (세션 전역)"""
    os.environ["ENVIRONMENT"] = "test"
    os.environ["LOG_LEVEL"] = "INFO"


@pytest.fixture(autouse=True)
def _reset_policy_cache():
    clear_domain_policy_cache()
    yield
    clear_domain_policy_cache()


@pytest.fixture
def recording_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def spec_schema() -> list[PropertyDefinition]:
    """세탁기 제품군 테이블 열"""
    return [
        PropertyDefinition(name="Gewicht", expected_format="kg", order_index=0),
        PropertyDefinition(name="Farbe", order_index=1),
        PropertyDefinition(name="Leistung", expected_format="W", order_index=2),
    ]
