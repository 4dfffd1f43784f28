"""리소스 파일(YAML) 로더 유틸리티"""
import os
import yaml
from typing import Any, Dict


def resolve_path(path: str) -> str:
    """절대 경로는 그대로, 상대 경로는 CWD -> 프로젝트 루트 순으로 해석"""
    if os.path.isabs(path) or os.path.exists(path):
        return path
    base_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    candidate = os.path.join(base_dir, path)
    if os.path.exists(candidate):
        return candidate
    return path


def read_yaml_file(path: str) -> Dict[str, Any]:
    """YAML 파일 읽기 (최상위는 mapping이어야 함)

    Raises:
        OSError: 파일을 읽을 수 없음
        yaml.YAMLError: YAML 문법 오류
        ValueError: 최상위가 mapping이 아님
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"top-level YAML must be a mapping, got {type(data).__name__}")
    return data
