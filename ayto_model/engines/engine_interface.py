"""
Common Interface for Probability Engines
"""
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import pandas as pd

from .constraint_model import EngineInput, Pair
from .aggregator import ProbabilityMatrix
from ..errors import CalculationCancelled

# (percent within the search, human-readable step)
ProgressCallback = Callable[[float, str], None]


class ResultState(Enum):
    """What the consumer may claim about a result"""
    EXACT = 'exact'                  # full space searched
    APPROXIMATE = 'approximate'      # enumeration budget exhausted
    UNSATISFIABLE = 'unsatisfiable'  # full space searched, nothing fits


def determine_state(total_valid: int, budget_exhausted: bool) -> ResultState:
    """
    A zero total is only proof of contradiction when the search
    covered the whole space.
    """
    if budget_exhausted:
        return ResultState.APPROXIMATE
    if total_valid == 0:
        return ResultState.UNSATISFIABLE
    return ResultState.EXACT


class CancellationToken:
    """Cooperative cancellation flag shared between caller and search"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise CalculationCancelled("Calculation cancelled")


@dataclass
class EngineResult:
    """Complete result from a probability engine"""
    probability_matrix: ProbabilityMatrix
    fixed_pairs: List[Pair]
    total_valid_matchings: int
    calculation_time: float = 0.0   # seconds
    budget_exhausted: bool = False
    state: ResultState = ResultState.EXACT
    method: str = ''

    # Search diagnostics
    nodes_visited: int = 0
    counts: Dict[str, Dict[str, int]] = field(default_factory=dict)

    @property
    def is_exact(self) -> bool:
        return self.state == ResultState.EXACT

    @property
    def is_approximate(self) -> bool:
        return self.state == ResultState.APPROXIMATE

    @property
    def is_unsatisfiable(self) -> bool:
        return self.state == ResultState.UNSATISFIABLE

    def status_label(self) -> str:
        """User-facing description of the result state"""
        if self.is_unsatisfiable:
            return "No valid assignment: the recorded facts contradict each other"
        if self.is_approximate:
            return (f"Approximate: enumeration capped after "
                    f"{self.total_valid_matchings:,} candidates")
        return f"Exact: {self.total_valid_matchings:,} valid assignments"

    def get_probability(self, woman: str, man: str) -> float:
        return self.probability_matrix.get(woman, {}).get(man, 0.0)

    def get_women(self) -> List[str]:
        return list(self.probability_matrix.keys())

    def get_men(self) -> List[str]:
        for row in self.probability_matrix.values():
            return list(row.keys())
        return []

    def excluded_pairs(self) -> List[Pair]:
        """Pairs with probability 0, meaningful only for a satisfiable result"""
        if self.is_unsatisfiable:
            return []
        return [
            Pair(w, m)
            for w, row in self.probability_matrix.items()
            for m, p in row.items() if p == 0.0
        ]

    def most_likely_pairs(self, threshold: float = 0.0, limit: Optional[int] = None) -> List[Tuple[Pair, float]]:
        """Pairs sorted by probability (descending), strictly above threshold"""
        ranked = sorted(
            ((Pair(w, m), p)
             for w, row in self.probability_matrix.items()
             for m, p in row.items() if p > threshold),
            key=lambda x: (-x[1], x[0])
        )
        return ranked[:limit] if limit is not None else ranked

    def to_dataframe(self) -> pd.DataFrame:
        """Women as rows, men as columns"""
        df = pd.DataFrame.from_dict(self.probability_matrix, orient='index')
        df = df.reindex(columns=self.get_men())
        df.index.name = 'woman'
        df.columns.name = 'man'
        return df

    def to_records_frame(self) -> pd.DataFrame:
        """Long format: one row per (woman, man) pair"""
        fixed = set(self.fixed_pairs)
        records = []
        for woman, row in self.probability_matrix.items():
            for man, p in row.items():
                records.append({
                    'woman': woman,
                    'man': man,
                    'probability': p,
                    'count': self.counts.get(woman, {}).get(man, 0),
                    'is_fixed': Pair(woman, man) in fixed,
                    'state': self.state.value
                })
        return pd.DataFrame(records)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe representation"""
        return {
            'probability_matrix': self.probability_matrix,
            'fixed_pairs': [list(p) for p in self.fixed_pairs],
            'total_valid_matchings': self.total_valid_matchings,
            'calculation_time': self.calculation_time,
            'budget_exhausted': self.budget_exhausted,
            'state': self.state.value,
            'method': self.method,
            'nodes_visited': self.nodes_visited,
            'counts': self.counts,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EngineResult':
        return cls(
            probability_matrix={
                w: {m: float(p) for m, p in row.items()}
                for w, row in data['probability_matrix'].items()
            },
            fixed_pairs=[Pair(*p) for p in data.get('fixed_pairs', [])],
            total_valid_matchings=int(data['total_valid_matchings']),
            calculation_time=float(data.get('calculation_time', 0.0)),
            budget_exhausted=bool(data.get('budget_exhausted', False)),
            state=ResultState(data.get('state', ResultState.EXACT.value)),
            method=data.get('method', ''),
            nodes_visited=int(data.get('nodes_visited', 0)),
            counts=data.get('counts', {}),
        )


class ProbabilityEngine(ABC):
    """Abstract base class for probability engines"""

    @abstractmethod
    def solve(
        self,
        engine_input: EngineInput,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> EngineResult:
        """
        Compute pair probabilities for a validated input.

        Args:
            engine_input: EngineInput with resolved known perfect matches
            on_progress: Called with (percent of search done, step label)
            cancel_token: Checked periodically; cancellation raises
                CalculationCancelled

        Returns:
            EngineResult tagged EXACT, APPROXIMATE or UNSATISFIABLE

        Raises:
            InvalidInputError: malformed input, before any search
        """
        pass

    @abstractmethod
    def get_method_name(self) -> str:
        """Return the name of the search strategy"""
        pass

    def validate_result(self, result: EngineResult) -> List[str]:
        """
        Check internal consistency of a result.

        Returns list of validation errors.
        """
        errors = []
        total = result.total_valid_matchings

        for woman, row in result.probability_matrix.items():
            for man, p in row.items():
                if not 0.0 <= p <= 1.0:
                    errors.append(f"P({woman}, {man}) = {p} outside [0, 1]")

        if total == 0:
            if any(p != 0.0 for row in result.probability_matrix.values() for p in row.values()):
                errors.append("Non-zero probability without any valid candidate")
            return errors

        # Every man appears exactly once per candidate
        for man in result.get_men():
            column = sum(row.get(man, 0.0) for row in result.probability_matrix.values())
            if abs(column - 1.0) > 1e-9:
                errors.append(f"Probabilities for {man} sum to {column:.6f}")

        fixed = set(result.fixed_pairs)
        for woman, row in result.probability_matrix.items():
            for man, p in row.items():
                if (p == 1.0) != (Pair(woman, man) in fixed):
                    errors.append(f"Fixed-pair mismatch for {woman} + {man}")

        return errors
