"""
Pruning Search Engine: fused generation and constraint checking

Backtracking over men in input order. A branch is cut as soon as
- the woman is excluded for this man, or another woman is required
  (both folded into CompiledConstraints.domains),
- the woman already has her maximum number of partners,
- some ceremony has more hits than its count, or can no longer reach it.

Every complete assignment reached is therefore accepted. Occurrence
counts are added per subtree (counts[w][i] += accepted leaves below the
node that assigned w to man i), so aggregation costs one update per
search node instead of one per pair per candidate.
"""
import logging
import time
import warnings
from typing import List, Optional, Tuple

import numpy as np

from .aggregator import ProbabilityAggregator, extract_fixed_pairs
from .constraint_model import EngineInput
from .constraints import CompiledConstraints, ensure_valid
from .engine_interface import (
    CancellationToken, EngineResult, ProbabilityEngine, ProgressCallback, determine_state
)
from ..config import ENGINE_CONFIG

logger = logging.getLogger(__name__)


class _SearchRun:
    """State of one backtracking search; never shared between computations"""

    # Depths used for the progress estimate
    PROGRESS_DEPTH = 2

    def __init__(
        self,
        compiled: CompiledConstraints,
        budget: int,
        progress_interval: int,
        on_progress: Optional[ProgressCallback],
        cancel_token: Optional[CancellationToken]
    ):
        self.c = compiled
        self.budget = budget
        self.progress_interval = progress_interval
        self.on_progress = on_progress
        self.cancel_token = cancel_token

        n_men, n_women = len(compiled.men), len(compiled.women)
        self.n_men = n_men
        self.counts = [[0] * n_men for _ in range(n_women)]
        self.load = [0] * n_women
        self.hits = [0] * len(compiled.ceremonies)

        # gain_table[i][w] = [(ceremony index, hits added), ...]
        self.gain_table = [
            [
                [(k, g) for k, g in enumerate(compiled.step_gains(i, w)) if g]
                for w in range(n_women)
            ]
            for i in range(n_men)
        ]
        self.has_ceremonies = bool(compiled.ceremonies)

        self.accepted = 0
        self.nodes = 0
        self.budget_exhausted = False
        self._cursor: List[Tuple[int, int]] = [(0, 1)] * self.PROGRESS_DEPTH
        self._last_percent = 0.0

    def run(self) -> int:
        if self.n_men == 0:
            return 0
        return self._descend(0)

    def _descend(self, i: int) -> int:
        """Returns the number of accepted candidates below the current prefix"""
        if i == self.n_men:
            # Only a valid candidate beyond the cap proves the space was cut short
            if self.accepted >= self.budget:
                self.budget_exhausted = True
                return 0
            self.accepted += 1
            return 1

        c = self.c
        cap = c.max_per_woman
        domain = [w for w in c.domains[i] if self.load[w] < cap]
        leaves = 0

        for k, w in enumerate(domain):
            if self.budget_exhausted:
                break

            if i < self.PROGRESS_DEPTH:
                self._cursor[i] = (k, len(domain))
            self.nodes += 1
            if self.nodes % self.progress_interval == 0:
                self._checkpoint(i)

            gains = self.gain_table[i][w]
            for idx, g in gains:
                self.hits[idx] += g

            if not self.has_ceremonies or c.prefix_feasible(self.hits, i + 1):
                self.load[w] += 1
                below = self._descend(i + 1)
                self.load[w] -= 1
                if below:
                    self.counts[w][i] += below
                    leaves += below

            for idx, g in gains:
                self.hits[idx] -= g

        return leaves

    def _checkpoint(self, depth: int):
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()
        if self.on_progress is None:
            return

        fraction = 0.0
        scale = 1.0
        for d in range(min(depth + 1, self.PROGRESS_DEPTH)):
            k, size = self._cursor[d]
            scale /= max(size, 1)
            fraction += k * scale
        percent = max(self._last_percent, 100.0 * fraction)
        self._last_percent = percent
        self.on_progress(percent, f"Searched {self.nodes:,} nodes, {self.accepted:,} valid")


class PruningSearchEngine(ProbabilityEngine):
    """
    Backtracking search with early rejection.

    The budget caps accepted candidates. Within budget, matrices are
    identical to EnumerationEngine's.
    """

    def __init__(
        self,
        budget: Optional[int] = None,
        progress_interval: Optional[int] = None
    ):
        self.budget = ENGINE_CONFIG.ENUMERATION_BUDGET if budget is None else budget
        self.progress_interval = progress_interval or ENGINE_CONFIG.PROGRESS_INTERVAL

    def get_method_name(self) -> str:
        return "pruning"

    def solve(
        self,
        engine_input: EngineInput,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> EngineResult:
        ensure_valid(engine_input)
        start_time = time.time()

        compiled = CompiledConstraints(engine_input)
        run = _SearchRun(compiled, self.budget, self.progress_interval, on_progress, cancel_token)

        if compiled.is_trivially_unsatisfiable():
            logger.info("Constraints leave no candidate; skipping search")
        else:
            logger.info(
                f"Searching {len(engine_input.men)} men x {len(engine_input.women)} women "
                f"(max {compiled.max_per_woman} per woman, "
                f"{len(engine_input.ceremonies)} ceremonies, {len(engine_input.verdicts)} verdicts)"
            )
            run.run()

        if run.budget_exhausted:
            warnings.warn(
                f"Enumeration budget of {self.budget:,} candidates exhausted; "
                f"probabilities are approximate"
            )

        logger.info(f"{run.accepted:,} valid candidates, {run.nodes:,} nodes visited")

        aggregator = ProbabilityAggregator(engine_input.men, engine_input.women)
        if run.accepted:
            aggregator.add_counts(np.array(run.counts, dtype=np.int64), run.accepted)
        matrix = aggregator.to_matrix()

        return EngineResult(
            probability_matrix=matrix,
            fixed_pairs=extract_fixed_pairs(matrix),
            total_valid_matchings=aggregator.total,
            calculation_time=time.time() - start_time,
            budget_exhausted=run.budget_exhausted,
            state=determine_state(aggregator.total, run.budget_exhausted),
            method=self.get_method_name(),
            nodes_visited=run.nodes,
            counts=aggregator.count_matrix()
        )
