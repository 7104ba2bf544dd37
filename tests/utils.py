"""Builders and an independent brute-force oracle for engine tests."""
from __future__ import annotations

from itertools import product
from typing import Dict, Iterable, List, Sequence, Tuple

from ayto_model.engines import (
    CeremonyConstraint, EngineInput, Matching, PairVerdict, satisfies_all
)

MEN3 = ("A", "B", "C")
WOMEN3 = ("X", "Y", "Z")


def ceremony(pairs: Iterable[Tuple[str, str]], count: int, known: Iterable[Tuple[str, str]] = ()) -> CeremonyConstraint:
    """Pairs are (woman, man)."""
    return CeremonyConstraint.create(pairs, count, known)


def verdict(woman: str, man: str, is_match: bool) -> PairVerdict:
    return PairVerdict.create(woman, man, is_match)


def make_input(
    men: Sequence[str] = MEN3,
    women: Sequence[str] = WOMEN3,
    ceremonies: Iterable[CeremonyConstraint] = (),
    verdicts: Iterable[PairVerdict] = (),
) -> EngineInput:
    return EngineInput.create(men, women, ceremonies, verdicts)


def lights_for(truth: Dict[str, str], seating: Iterable[Tuple[str, str]]) -> int:
    """Number of (woman, man) seats that match the hidden truth (man -> woman)."""
    return sum(1 for woman, man in seating if truth.get(man) == woman)


def brute_force(engine_input: EngineInput) -> Tuple[List[Matching], Dict[str, Dict[str, int]]]:
    """Accepted matchings and pair counts via itertools.product, independent of the generator."""
    cap = engine_input.max_per_woman()
    accepted: List[Matching] = []
    counts = {w: {m: 0 for m in engine_input.men} for w in engine_input.women}
    for combo in product(engine_input.women, repeat=len(engine_input.men)):
        if any(combo.count(w) > cap for w in set(combo)):
            continue
        matching = Matching(men=tuple(engine_input.men), women=tuple(combo))
        if satisfies_all(matching, engine_input.ceremonies, engine_input.verdicts):
            accepted.append(matching)
            for pair in matching.pairs:
                counts[pair.woman][pair.man] += 1
    return accepted, counts


def five_by_five_input() -> EngineInput:
    """A realistic mid-season input whose truth is A-V, B-W, C-X, D-Y, E-Z."""
    men = ("A", "B", "C", "D", "E")
    women = ("V", "W", "X", "Y", "Z")
    truth = dict(zip(men, women))
    night1 = [("V", "A"), ("X", "B"), ("W", "C"), ("Z", "D"), ("Y", "E")]
    night2 = [("Y", "A"), ("W", "B"), ("X", "C"), ("V", "D"), ("Z", "E")]
    return make_input(
        men,
        women,
        ceremonies=[
            ceremony(night1, lights_for(truth, night1)),
            ceremony(night2, lights_for(truth, night2)),
        ],
        verdicts=[verdict("Z", "D", False), verdict("W", "A", False)],
    )


def unequal_input() -> EngineInput:
    """Five men, four women: one woman has two perfect matches (truth: Q gets A and E)."""
    men = ("A", "B", "C", "D", "E")
    women = ("Q", "R", "S", "T")
    truth = {"A": "Q", "B": "R", "C": "S", "D": "T", "E": "Q"}
    night1 = [("Q", "A"), ("S", "B"), ("R", "C"), ("T", "D")]
    return make_input(
        men,
        women,
        ceremonies=[ceremony(night1, lights_for(truth, night1))],
        verdicts=[verdict("T", "E", False)],
    )
