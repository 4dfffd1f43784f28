"""Content-acquisition layer (HTTP + Playwright fetch strategy ladder).

공개 API는 이 파일에서만 export합니다.
"""

from .executor import FetchStrategy, LadderConfig, LadderContext
from .result import AttemptRecord, CandidateSource, FetchedSource, FetchMethod, FetchResult
from .static_executor import EnhancedStaticStrategy, FastStaticStrategy
from .rendered_executor import RenderedStrategy
from .script_executor import ScriptEvalStrategy
from .ladder import FetchStrategyLadder, build_default_ladder

__all__ = [
        "FetchStrategy",
        "LadderConfig",
        "LadderContext",
        "AttemptRecord",
        "CandidateSource",
        "FetchedSource",
        "FetchMethod",
        "FetchResult",
        "FastStaticStrategy",
        "EnhancedStaticStrategy",
        "RenderedStrategy",
        "ScriptEvalStrategy",
        "FetchStrategyLadder",
        "build_default_ladder",
]
