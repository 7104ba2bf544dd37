"""
Engine Input Builder
Translates a record snapshot into an EngineInput.

This is where temporal ordering is resolved: a ceremony's known perfect
matches are the perfect-match boxes broadcast strictly before it. The
engine receives them already resolved and never re-derives them.
"""
import logging
from typing import List, Optional, Set, Tuple

from ..config import RECORD_CONFIG, RecordConfig
from ..engines.constraint_model import CeremonyConstraint, EngineInput, Gender, Pair, PairVerdict
from .records import CeremonyRecord, MatchboxRecord, ParticipantRecord, Snapshot

logger = logging.getLogger(__name__)


class EngineInputBuilder:
    """
    Builds the search roster and constraints from records.

    Roster: active participants seated at the latest ceremony. Anyone not
    seated there has already found their match and leaves the search.
    Pairs involving such a participant are dropped from every ceremony;
    the ceremony's light count is reduced by the dropped pairs that are
    confirmed perfect matches.
    """

    def __init__(self, config: Optional[RecordConfig] = None):
        self.config = config or RECORD_CONFIG
        self.removed_men: List[str] = []
        self.removed_women: List[str] = []

    def build_from_snapshot(self, snapshot: Snapshot) -> EngineInput:
        return self.build(snapshot.participants, snapshot.ceremonies, snapshot.matchboxes)

    def build(
        self,
        participants: List[ParticipantRecord],
        ceremonies: List[CeremonyRecord],
        matchboxes: List[MatchboxRecord]
    ) -> EngineInput:
        active = [p for p in participants if p.is_active()]
        men = [p.name for p in active if p.gender == Gender.MAN]
        women = [p.name for p in active if p.gender == Gender.WOMAN]

        ordered = sorted(ceremonies, key=lambda c: c.effective_time())
        if not ordered:
            logger.warning("No ceremonies recorded; nothing to calculate")
            return EngineInput.create(men=[], women=[])

        last = ordered[-1]
        seated_men, seated_women = set(last.men()), set(last.women())
        roster_men = [m for m in men if m in seated_men]
        roster_women = [w for w in women if w in seated_women]

        self.removed_men = [m for m in men if m not in seated_men]
        self.removed_women = [w for w in women if w not in seated_women]
        if self.removed_men or self.removed_women:
            logger.info(
                f"Excluded from search (not seated at '{last.name}'): "
                f"{', '.join(self.removed_men + self.removed_women)}"
            )

        in_roster = self._roster_filter(roster_men, roster_women)
        confirmed = {mb.pair for mb in matchboxes if mb.verdict() is True}

        constraints = [
            self._build_ceremony(c, matchboxes, in_roster, confirmed)
            for c in ordered
        ]
        verdicts = [
            PairVerdict(pair=mb.pair, is_match=mb.verdict())
            for mb in matchboxes
            if mb.verdict() is not None and in_roster(mb.pair)
        ]

        return EngineInput.create(
            men=roster_men,
            women=roster_women,
            ceremonies=constraints,
            verdicts=verdicts
        )

    @staticmethod
    def _roster_filter(men: List[str], women: List[str]):
        men_set: Set[str] = set(men)
        women_set: Set[str] = set(women)

        def in_roster(pair: Pair) -> bool:
            return pair.man in men_set and pair.woman in women_set

        return in_roster

    def _build_ceremony(
        self,
        ceremony: CeremonyRecord,
        matchboxes: List[MatchboxRecord],
        in_roster,
        confirmed: Set[Pair]
    ) -> CeremonyConstraint:
        night_time = ceremony.effective_time()

        # Strictly before: a box aired at the same moment was not yet known
        known = [
            mb.pair for mb in matchboxes
            if mb.verdict() is True and mb.effective_time() < night_time
        ]

        kept: List[Pair] = []
        dropped_lights = 0
        for pair in ceremony.pairs:
            if in_roster(pair):
                kept.append(pair)
            elif pair in confirmed:
                dropped_lights += 1

        lights = (ceremony.total_lights or 0) - dropped_lights
        return CeremonyConstraint.create(
            pairs=kept,
            correct_count=lights,
            known_perfect_matches=[p for p in known if in_roster(p)]
        )


def build_engine_input(snapshot: Snapshot, config: Optional[RecordConfig] = None) -> EngineInput:
    """Convenience wrapper around EngineInputBuilder"""
    return EngineInputBuilder(config).build_from_snapshot(snapshot)


def summarize_input(engine_input: EngineInput) -> List[Tuple[str, str]]:
    """Human-readable (label, value) rows describing an input"""
    rows = [
        ("Men", ", ".join(engine_input.men)),
        ("Women", ", ".join(engine_input.women)),
        ("Ceremonies", str(len(engine_input.ceremonies))),
        ("Verdicts", str(len(engine_input.verdicts))),
    ]
    for idx, c in enumerate(engine_input.ceremonies, start=1):
        known = len(c.known_perfect_matches)
        rows.append((f"Ceremony {idx}", f"{len(c.pairs)} pairs, {c.correct_count} lights, {known} known"))
    return rows
