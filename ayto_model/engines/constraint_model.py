"""
Constraint Model: value types shared by every engine component

A candidate solution ("matching") assigns exactly one woman to every man.
Ceremonies reveal how many of their seated pairs are correct, verdicts
reveal single pairs. All types here are immutable and hashable.
"""
from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, NamedTuple, Tuple


class Gender(Enum):
    """Gender tag of a participant"""
    WOMAN = 'Woman'
    MAN = 'Man'


class Pair(NamedTuple):
    """A (woman, man) pairing, compared by value"""
    woman: str
    man: str

    def label(self) -> str:
        return f"{self.woman} + {self.man}"


@dataclass(frozen=True)
class CeremonyConstraint:
    """
    One ceremony: the seated pairs and how many of them are correct.

    known_perfect_matches holds pairs confirmed strictly before the
    ceremony aired; every candidate satisfying the ceremony contains them.
    """
    pairs: Tuple[Pair, ...]
    correct_count: int
    known_perfect_matches: FrozenSet[Pair] = field(default_factory=frozenset)

    @classmethod
    def create(
        cls,
        pairs,
        correct_count: int,
        known_perfect_matches=()
    ) -> 'CeremonyConstraint':
        """Build from any iterables of (woman, man) tuples"""
        return cls(
            pairs=tuple(Pair(*p) for p in pairs),
            correct_count=int(correct_count),
            known_perfect_matches=frozenset(Pair(*p) for p in known_perfect_matches)
        )


@dataclass(frozen=True)
class PairVerdict:
    """A single revealed fact: pair is (or is not) a perfect match"""
    pair: Pair
    is_match: bool

    @classmethod
    def create(cls, woman: str, man: str, is_match: bool) -> 'PairVerdict':
        return cls(pair=Pair(woman, man), is_match=bool(is_match))


@dataclass(frozen=True)
class Matching:
    """
    A complete candidate: men[i] is assigned women[i].

    In the equal-size case no woman repeats; otherwise a woman may
    appear up to ceil(|men| / |women|) times.
    """
    men: Tuple[str, ...]
    women: Tuple[str, ...]

    @classmethod
    def from_indices(
        cls,
        men: Tuple[str, ...],
        women: Tuple[str, ...],
        assignment: Tuple[int, ...]
    ) -> 'Matching':
        return cls(men=men, women=tuple(women[w] for w in assignment))

    @property
    def pairs(self) -> Tuple[Pair, ...]:
        return tuple(Pair(w, m) for m, w in zip(self.men, self.women))

    def pair_set(self) -> FrozenSet[Pair]:
        return frozenset(self.pairs)

    def partner_of(self, man: str) -> str:
        return self.women[self.men.index(man)]

    def as_dict(self) -> Dict[str, str]:
        """man -> woman"""
        return dict(zip(self.men, self.women))


@dataclass(frozen=True)
class EngineInput:
    """Complete, already-resolved input of one probability computation"""
    men: Tuple[str, ...]
    women: Tuple[str, ...]
    ceremonies: Tuple[CeremonyConstraint, ...] = ()
    verdicts: Tuple[PairVerdict, ...] = ()

    @classmethod
    def create(
        cls,
        men,
        women,
        ceremonies=(),
        verdicts=()
    ) -> 'EngineInput':
        return cls(
            men=tuple(men),
            women=tuple(women),
            ceremonies=tuple(ceremonies),
            verdicts=tuple(verdicts)
        )

    def max_per_woman(self) -> int:
        """How many men a single woman may be matched with"""
        if not self.women:
            return 0
        return -(-len(self.men) // len(self.women))

    def is_balanced(self) -> bool:
        return len(self.men) == len(self.women)

    def all_pairs(self) -> List[Pair]:
        """Full (woman, man) cross product in input order"""
        return [Pair(w, m) for w in self.women for m in self.men]

    def required_pairs(self) -> FrozenSet[Pair]:
        """Pairs every accepted candidate must contain"""
        required = {v.pair for v in self.verdicts if v.is_match}
        for ceremony in self.ceremonies:
            required.update(ceremony.known_perfect_matches)
        return frozenset(required)

    def excluded_pairs(self) -> FrozenSet[Pair]:
        """Pairs no accepted candidate may contain"""
        return frozenset(v.pair for v in self.verdicts if not v.is_match)
