# Probability Engines Module
from .constraint_model import (
    Gender, Pair, CeremonyConstraint, PairVerdict, Matching, EngineInput
)
from .generator import AssignmentGenerator, count_assignments, max_partners_per_woman
from .constraints import (
    satisfies_verdicts, satisfies_ceremony, satisfies_all, count_correct_pairs,
    validate_input, ensure_valid, CompiledConstraints
)
from .aggregator import ProbabilityAggregator, ProbabilityMatrix, extract_fixed_pairs
from .engine_interface import (
    EngineResult, ResultState, ProbabilityEngine, CancellationToken, determine_state
)
from .enumeration import EnumerationEngine
from .search import PruningSearchEngine


def create_engine(strategy: str = 'pruning', **kwargs) -> ProbabilityEngine:
    """Engine factory keyed by strategy name"""
    if strategy == 'pruning':
        return PruningSearchEngine(**kwargs)
    if strategy == 'enumeration':
        return EnumerationEngine(**kwargs)
    raise ValueError(f"Unknown strategy: {strategy}")


__all__ = [
    'Gender', 'Pair', 'CeremonyConstraint', 'PairVerdict', 'Matching', 'EngineInput',
    'AssignmentGenerator', 'count_assignments', 'max_partners_per_woman',
    'satisfies_verdicts', 'satisfies_ceremony', 'satisfies_all', 'count_correct_pairs',
    'validate_input', 'ensure_valid', 'CompiledConstraints',
    'ProbabilityAggregator', 'ProbabilityMatrix', 'extract_fixed_pairs',
    'EngineResult', 'ResultState', 'ProbabilityEngine', 'CancellationToken', 'determine_state',
    'EnumerationEngine', 'PruningSearchEngine', 'create_engine',
]
