"""specfinder - 제품 기술사양 수집/교차검증 서비스"""

__version__ = "1.0.0"
