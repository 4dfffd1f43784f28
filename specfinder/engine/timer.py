"""Pipeline Timer - per-product stage checkpoints

제품 파이프라인의 상태 전이마다 경과 시간을 기록합니다.

Usage:
    timer = PipelineTimer()
    timer.start()

    timer.checkpoint("fetching")
    ...
    timer.checkpoint("complete")

    timer.checkpoints  # {"fetching": 12.3, ...}
"""

from time import time
from typing import Optional


class PipelineTimer:
    """단계별 경과 시간 측정기"""

    def __init__(self) -> None:
        self.start_time: Optional[float] = None
        self._checkpoints: dict[str, float] = {}

    def start(self) -> None:
        """측정 시작"""
        self.start_time = time()
        self._checkpoints.clear()

    def checkpoint(self, name: str) -> None:
        """체크포인트 기록 (ms)

        Args:
            name: 체크포인트 이름 (예: "fetching", "complete")

        Raises:
            RuntimeError: start()가 호출되지 않은 경우
        """
        if self.start_time is None:
            raise RuntimeError("Timer not started. Call start() first.")
        self._checkpoints[name] = round((time() - self.start_time) * 1000, 1)

    def elapsed_ms(self) -> float:
        """경과 시간 반환 (ms). start() 전에는 0.0"""
        if self.start_time is None:
            return 0.0
        return round((time() - self.start_time) * 1000, 1)

    @property
    def checkpoints(self) -> dict[str, float]:
        return self._checkpoints.copy()
