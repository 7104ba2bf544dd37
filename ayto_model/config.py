"""
Global Configuration for the AYTO probability model
"""
from pathlib import Path
from dataclasses import dataclass, field
from typing import Tuple

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
OUTPUT_DIR = PROJECT_ROOT / "outputs"
FIGURE_DIR = OUTPUT_DIR / "figures"
CACHE_DIR = OUTPUT_DIR / "cache"


@dataclass
class EngineConfig:
    """Search and aggregation settings"""

    # Hard cap on complete candidates produced by one search
    ENUMERATION_BUDGET: int = 10_000_000

    # Search nodes between progress reports / cancellation checks
    PROGRESS_INTERVAL: int = 50_000

    # 'pruning' (fused backtracking) or 'enumeration' (generate-then-filter)
    DEFAULT_STRATEGY: str = 'pruning'
    STRATEGIES: Tuple[str, ...] = ('pruning', 'enumeration')

    # A pair is fixed when its probability equals this value exactly
    FIXED_PAIR_VALUE: float = 1.0

    # Progress milestones (percent)
    PROGRESS_CACHE_CHECK: int = 5
    PROGRESS_SEARCH_START: int = 10
    PROGRESS_SEARCH_END: int = 85
    PROGRESS_AGGREGATE: int = 90
    PROGRESS_CACHING: int = 95


@dataclass
class RecordConfig:
    """Vocabulary of the external record store"""

    MATCH_TYPE_PERFECT: str = 'perfect'
    MATCH_TYPE_NO_MATCH: str = 'no-match'
    MATCH_TYPE_SOLD: str = 'sold'

    INACTIVE_STATUSES: Tuple[str, ...] = field(default_factory=lambda: ('inactive', 'inaktiv'))

    WOMAN_TAGS: Tuple[str, ...] = ('F', 'W', 'WOMAN')
    MAN_TAGS: Tuple[str, ...] = ('M', 'MAN')

    def verdict_for(self, match_type: str):
        """True/False for decided boxes, None when the box carries no verdict"""
        if match_type == self.MATCH_TYPE_PERFECT:
            return True
        if match_type == self.MATCH_TYPE_NO_MATCH:
            return False
        return None


# Global instances
ENGINE_CONFIG = EngineConfig()
RECORD_CONFIG = RecordConfig()
