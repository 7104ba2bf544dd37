"""
Assignment Generator

Enumerates every syntactically valid candidate for a men/women roster:
- Equal group sizes: all bijections (permutations of the women)
- Unequal sizes: backtracking over men in fixed order, each woman
  taking at most ceil(|men| / |women|) men

Candidates are produced lazily as tuples of woman indices
(assignment[i] = index of the woman assigned to men[i]) and the
enumeration budget is enforced while generating, never afterwards.
"""
from itertools import permutations
from math import comb, factorial
from typing import Iterator, List, Optional, Sequence, Tuple

from .constraint_model import Matching
from ..config import ENGINE_CONFIG


def max_partners_per_woman(n_men: int, n_women: int) -> int:
    """ceil(n_men / n_women), 0 for an empty women list"""
    if n_women <= 0:
        return 0
    return -(-n_men // n_women)


def count_assignments(n_men: int, n_women: int) -> int:
    """
    Closed-form size of the candidate space.

    n! for equal groups. Otherwise the number of ways to hand each man
    one woman with every woman below the per-woman cap:
        sum over count vectors c (c_j <= cap, sum c_j = n_men)
        of n_men! / prod(c_j!)
    evaluated woman by woman.
    """
    if n_men == 0:
        return 1
    if n_women == 0:
        return 0
    if n_men == n_women:
        return factorial(n_men)

    cap = max_partners_per_woman(n_men, n_women)
    # ways[r] = number of ways to place r (distinguishable) men on the women seen so far
    ways = [1] + [0] * n_men
    for _ in range(n_women):
        updated = [0] * (n_men + 1)
        for placed in range(n_men + 1):
            if not ways[placed]:
                continue
            for take in range(0, min(cap, n_men - placed) + 1):
                updated[placed + take] += ways[placed] * comb(n_men - placed, take)
        ways = updated
    return ways[n_men]


class AssignmentGenerator:
    """
    Lazy, budget-capped enumeration of candidate assignments.

    After iteration, `generated` holds the number of candidates produced
    and `budget_exhausted` tells whether the cap cut the space short.
    """

    def __init__(
        self,
        men: Sequence[str],
        women: Sequence[str],
        budget: Optional[int] = None
    ):
        self.men = tuple(men)
        self.women = tuple(women)
        self.budget = ENGINE_CONFIG.ENUMERATION_BUDGET if budget is None else budget
        self.max_per_woman = max_partners_per_woman(len(self.men), len(self.women))

        self.generated = 0
        self.budget_exhausted = False

    def expected_count(self) -> int:
        """Size of the full (uncapped) space"""
        return count_assignments(len(self.men), len(self.women))

    def target_count(self) -> int:
        """Number of candidates this generator will actually produce"""
        return min(self.expected_count(), self.budget)

    def iter_assignments(self) -> Iterator[Tuple[int, ...]]:
        """Yield index tuples until the space or the budget runs out"""
        self.generated = 0
        self.budget_exhausted = False

        if not self.men or not self.women:
            return

        if len(self.men) == len(self.women):
            source = permutations(range(len(self.women)), len(self.men))
        else:
            source = self._backtrack(0, [], [0] * len(self.women))

        for assignment in source:
            if self.generated >= self.budget:
                self.budget_exhausted = True
                return
            self.generated += 1
            yield assignment

    def iter_matchings(self) -> Iterator[Matching]:
        for assignment in self.iter_assignments():
            yield Matching.from_indices(self.men, self.women, assignment)

    def _backtrack(
        self,
        man_index: int,
        current: List[int],
        counts: List[int]
    ) -> Iterator[Tuple[int, ...]]:
        """Many-to-one assignment: every man once, no woman above the cap"""
        if man_index == len(self.men):
            yield tuple(current)
            return

        for w in range(len(self.women)):
            if counts[w] >= self.max_per_woman:
                continue
            counts[w] += 1
            current.append(w)
            yield from self._backtrack(man_index + 1, current, counts)
            current.pop()
            counts[w] -= 1
