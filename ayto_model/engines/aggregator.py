"""
Probability Aggregator

Folds accepted candidates into a women x men occurrence matrix and
normalizes it by the number of accepted candidates.
"""
import numpy as np
from typing import Dict, Iterable, List, Sequence, Tuple

from .constraint_model import Matching, Pair
from ..config import ENGINE_CONFIG

ProbabilityMatrix = Dict[str, Dict[str, float]]


class ProbabilityAggregator:
    """
    Streaming counter over accepted candidates.

    counts[j, i] = number of accepted candidates assigning women[j] to men[i].
    Every cell of the cross product exists from the start, so pairs that
    never occur end up with probability exactly 0.
    """

    def __init__(self, men: Sequence[str], women: Sequence[str]):
        self.men = tuple(men)
        self.women = tuple(women)
        self.counts = np.zeros((len(self.women), len(self.men)), dtype=np.int64)
        self.total = 0
        self._man_columns = np.arange(len(self.men))

    def add_assignment(self, assignment: Sequence[int]):
        """Count one accepted candidate given as woman indices per man"""
        self.counts[list(assignment), self._man_columns] += 1
        self.total += 1

    def add_matching(self, matching: Matching):
        woman_index = {w: j for j, w in enumerate(self.women)}
        self.add_assignment([woman_index[w] for w in matching.women])

    def add_counts(self, counts: np.ndarray, total: int):
        """Merge a block of pre-aggregated counts"""
        self.counts += counts
        self.total += total

    def probabilities(self) -> np.ndarray:
        """Normalized matrix; all zeros when nothing was accepted"""
        if self.total == 0:
            return np.zeros(self.counts.shape, dtype=float)
        return self.counts / self.total

    def to_matrix(self) -> ProbabilityMatrix:
        """woman -> man -> probability, covering the full cross product"""
        probs = self.probabilities()
        return {
            w: {m: float(probs[j, i]) for i, m in enumerate(self.men)}
            for j, w in enumerate(self.women)
        }

    def count_matrix(self) -> Dict[str, Dict[str, int]]:
        return {
            w: {m: int(self.counts[j, i]) for i, m in enumerate(self.men)}
            for j, w in enumerate(self.women)
        }


def extract_fixed_pairs(
    matrix: ProbabilityMatrix,
    fixed_value: float = ENGINE_CONFIG.FIXED_PAIR_VALUE
) -> List[Pair]:
    """Pairs whose probability is exactly 1.0 (present in every candidate)"""
    fixed = []
    for woman, row in matrix.items():
        for man, p in row.items():
            if p == fixed_value:
                fixed.append(Pair(woman, man))
    return fixed


def aggregate_matchings(
    matchings: Iterable[Matching],
    men: Sequence[str],
    women: Sequence[str]
) -> Tuple[ProbabilityMatrix, List[Pair], int]:
    """One-shot helper: (matrix, fixed pairs, total accepted)"""
    aggregator = ProbabilityAggregator(men, women)
    for matching in matchings:
        aggregator.add_matching(matching)
    matrix = aggregator.to_matrix()
    return matrix, extract_fixed_pairs(matrix), aggregator.total
