"""
Constraint Engine

Two views of the same rules:

1. Predicates on complete candidates (satisfies_verdicts,
   satisfies_ceremony, satisfies_all) used by the reference
   generate-then-filter engine and by tests.
2. CompiledConstraints: the rules translated to woman/man indices so the
   backtracking search can reject partial assignments early:
   - excluded pairs are removed from a man's domain
   - required pairs (verdict matches and known perfect matches) shrink a
     man's domain to the required woman
   - ceremony counts are bounded from both sides on every prefix
"""
from collections import Counter
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Sequence, Tuple

from .constraint_model import CeremonyConstraint, EngineInput, Matching, Pair, PairVerdict
from ..errors import InvalidInputError


# ----------------------------------------------------------------------
# Predicates on complete candidates
# ----------------------------------------------------------------------

def count_correct_pairs(pair_set: FrozenSet[Pair], ceremony_pairs: Iterable[Pair]) -> int:
    """How many ceremony pairs occur in the candidate"""
    return sum(1 for p in ceremony_pairs if p in pair_set)


def satisfies_verdicts(candidate: Matching, verdicts: Iterable[PairVerdict]) -> bool:
    """Every match verdict present, every non-match verdict absent"""
    pair_set = candidate.pair_set()
    for verdict in verdicts:
        if (verdict.pair in pair_set) != verdict.is_match:
            return False
    return True


def satisfies_ceremony(candidate: Matching, ceremony: CeremonyConstraint) -> bool:
    """Known perfect matches present and the light count exact"""
    pair_set = candidate.pair_set()
    return _satisfies_ceremony(pair_set, ceremony)


def _satisfies_ceremony(pair_set: FrozenSet[Pair], ceremony: CeremonyConstraint) -> bool:
    if not ceremony.known_perfect_matches <= pair_set:
        return False
    return count_correct_pairs(pair_set, ceremony.pairs) == ceremony.correct_count


def satisfies_all(
    candidate: Matching,
    ceremonies: Iterable[CeremonyConstraint],
    verdicts: Iterable[PairVerdict]
) -> bool:
    """Conjunction over all ceremonies and verdicts, short-circuiting"""
    pair_set = candidate.pair_set()
    for verdict in verdicts:
        if (verdict.pair in pair_set) != verdict.is_match:
            return False
    for ceremony in ceremonies:
        if not _satisfies_ceremony(pair_set, ceremony):
            return False
    return True


# ----------------------------------------------------------------------
# Input validation
# ----------------------------------------------------------------------

def validate_input(engine_input: EngineInput) -> List[str]:
    """
    Check an input for malformed records.

    Returns list of problems (empty if valid). Contradictory but
    well-formed facts are not problems here; they surface as an
    unsatisfiable result.
    """
    problems = []

    if not engine_input.men:
        problems.append("No men in input")
    if not engine_input.women:
        problems.append("No women in input")

    for label, names in (('man', engine_input.men), ('woman', engine_input.women)):
        for name, n in Counter(names).items():
            if n > 1:
                problems.append(f"Duplicate {label} name: {name}")

    men = set(engine_input.men)
    women = set(engine_input.women)

    def check_pair(pair: Pair, where: str):
        if pair.woman not in women:
            problems.append(f"{where}: unknown woman '{pair.woman}' in pair {pair.label()}")
        if pair.man not in men:
            problems.append(f"{where}: unknown man '{pair.man}' in pair {pair.label()}")

    for idx, ceremony in enumerate(engine_input.ceremonies, start=1):
        where = f"Ceremony {idx}"
        if ceremony.correct_count < 0:
            problems.append(f"{where}: negative correct_count {ceremony.correct_count}")
        for pair in ceremony.pairs:
            check_pair(pair, where)
        for pair in sorted(ceremony.known_perfect_matches):
            check_pair(pair, f"{where} (known match)")

    for idx, verdict in enumerate(engine_input.verdicts, start=1):
        check_pair(verdict.pair, f"Verdict {idx}")

    return problems


def ensure_valid(engine_input: EngineInput) -> None:
    """Raise InvalidInputError listing every problem found"""
    problems = validate_input(engine_input)
    if problems:
        raise InvalidInputError(
            f"Invalid input ({len(problems)} problem(s)): {problems[0]}",
            problems
        )


# ----------------------------------------------------------------------
# Index form for incremental pruning
# ----------------------------------------------------------------------

@dataclass
class CompiledCeremony:
    """A ceremony over man/woman indices"""
    correct_count: int
    # gains[i] = {woman_index: multiplicity} of ceremony pairs involving man i
    gains: List[Dict[int, int]]
    # potential[i] = best possible hits from men i.. end (len = n_men + 1)
    potential: List[int]


class CompiledConstraints:
    """
    Constraints resolved to indices for the fused search.

    domains[i] lists the woman indices man i may still receive after
    applying required and excluded pairs. An empty domain means no
    candidate can exist.
    """

    def __init__(self, engine_input: EngineInput):
        self.men: Tuple[str, ...] = engine_input.men
        self.women: Tuple[str, ...] = engine_input.women
        self.max_per_woman = engine_input.max_per_woman()

        self.man_index = {m: i for i, m in enumerate(self.men)}
        self.woman_index = {w: j for j, w in enumerate(self.women)}

        self.required = engine_input.required_pairs()
        self.excluded = engine_input.excluded_pairs()

        self.domains = self._build_domains()
        self.ceremonies = [self._compile_ceremony(c) for c in engine_input.ceremonies]

    def _build_domains(self) -> List[List[int]]:
        n_women = len(self.women)
        domains = [list(range(n_women)) for _ in self.men]

        required_for_man: Dict[int, set] = {}
        required_for_woman: Dict[int, set] = {}
        for pair in self.required:
            i, j = self.man_index[pair.man], self.woman_index[pair.woman]
            required_for_man.setdefault(i, set()).add(j)
            required_for_woman.setdefault(j, set()).add(i)

        for pair in self.excluded:
            i, j = self.man_index[pair.man], self.woman_index[pair.woman]
            if j in domains[i]:
                domains[i].remove(j)

        for i, women in required_for_man.items():
            # Two different required women for one man: nothing fits
            domains[i] = [j for j in domains[i] if j in women] if len(women) == 1 else []

        for j, men in required_for_woman.items():
            if len(men) > self.max_per_woman:
                for i in men:
                    domains[i] = []
            elif len(men) == self.max_per_woman:
                # Woman is saturated by required pairs
                for i in range(len(self.men)):
                    if i not in men and j in domains[i]:
                        domains[i].remove(j)

        return domains

    def _compile_ceremony(self, ceremony: CeremonyConstraint) -> CompiledCeremony:
        n_men = len(self.men)
        gains: List[Dict[int, int]] = [dict() for _ in range(n_men)]
        for pair in ceremony.pairs:
            i, j = self.man_index[pair.man], self.woman_index[pair.woman]
            gains[i][j] = gains[i].get(j, 0) + 1

        potential = [0] * (n_men + 1)
        for i in range(n_men - 1, -1, -1):
            best = max((gains[i].get(j, 0) for j in self.domains[i]), default=0)
            potential[i] = potential[i + 1] + best

        return CompiledCeremony(
            correct_count=ceremony.correct_count,
            gains=gains,
            potential=potential
        )

    def is_trivially_unsatisfiable(self) -> bool:
        """True if some man has no woman left or a ceremony count is out of reach"""
        if any(not d for d in self.domains):
            return True
        for c in self.ceremonies:
            if c.correct_count > c.potential[0]:
                return True
        return False

    def step_gains(self, man: int, woman: int) -> List[int]:
        """Ceremony hit increments caused by assigning woman to man"""
        return [c.gains[man].get(woman, 0) for c in self.ceremonies]

    def prefix_feasible(self, hits: Sequence[int], next_man: int) -> bool:
        """
        Bound check after assigning men [0, next_man).

        Rejects when a ceremony already has too many hits or can no
        longer reach its count with the men still unassigned.
        """
        for c, h in zip(self.ceremonies, hits):
            if h > c.correct_count:
                return False
            if h + c.potential[next_man] < c.correct_count:
                return False
        return True
