"""
Reference Engine: generate-then-filter

Enumerates the complete candidate space with AssignmentGenerator and
keeps the candidates that pass satisfies_all. Slow but obviously
correct; the pruning engine must reproduce its matrices exactly.
"""
import logging
import time
import warnings
from typing import Optional

from .aggregator import ProbabilityAggregator, extract_fixed_pairs
from .constraint_model import EngineInput
from .constraints import ensure_valid, satisfies_all
from .engine_interface import (
    CancellationToken, EngineResult, ProbabilityEngine, ProgressCallback, determine_state
)
from .generator import AssignmentGenerator
from ..config import ENGINE_CONFIG

logger = logging.getLogger(__name__)


class EnumerationEngine(ProbabilityEngine):
    """
    Brute force: enumerate all candidates, then filter.

    The budget caps generated candidates, not accepted ones.
    """

    def __init__(
        self,
        budget: Optional[int] = None,
        progress_interval: Optional[int] = None
    ):
        self.budget = ENGINE_CONFIG.ENUMERATION_BUDGET if budget is None else budget
        self.progress_interval = progress_interval or ENGINE_CONFIG.PROGRESS_INTERVAL

    def get_method_name(self) -> str:
        return "enumeration"

    def solve(
        self,
        engine_input: EngineInput,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> EngineResult:
        ensure_valid(engine_input)
        start_time = time.time()

        generator = AssignmentGenerator(engine_input.men, engine_input.women, self.budget)
        aggregator = ProbabilityAggregator(engine_input.men, engine_input.women)
        target = max(1, generator.target_count())

        logger.info(
            f"Enumerating up to {generator.target_count():,} candidates "
            f"({len(engine_input.men)} men, {len(engine_input.women)} women, "
            f"{len(engine_input.ceremonies)} ceremonies, {len(engine_input.verdicts)} verdicts)"
        )

        for matching in generator.iter_matchings():
            if generator.generated % self.progress_interval == 0:
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled()
                if on_progress is not None:
                    on_progress(
                        100.0 * generator.generated / target,
                        f"Filtered {generator.generated:,} candidates"
                    )

            if satisfies_all(matching, engine_input.ceremonies, engine_input.verdicts):
                aggregator.add_matching(matching)

        if generator.budget_exhausted:
            warnings.warn(
                f"Enumeration budget of {self.budget:,} candidates exhausted; "
                f"probabilities are approximate"
            )

        logger.info(f"{aggregator.total:,} of {generator.generated:,} candidates accepted")

        matrix = aggregator.to_matrix()
        return EngineResult(
            probability_matrix=matrix,
            fixed_pairs=extract_fixed_pairs(matrix),
            total_valid_matchings=aggregator.total,
            calculation_time=time.time() - start_time,
            budget_exhausted=generator.budget_exhausted,
            state=determine_state(aggregator.total, generator.budget_exhausted),
            method=self.get_method_name(),
            nodes_visited=generator.generated,
            counts=aggregator.count_matrix()
        )
