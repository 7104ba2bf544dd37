"""
Record snapshot types

Plain views of what the external record store holds: participants,
matching nights (ceremonies) and matchboxes. They carry the broadcast
timestamps needed to decide what was known before each ceremony.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from ..config import RECORD_CONFIG
from ..engines.constraint_model import Gender, Pair


@dataclass(frozen=True)
class ParticipantRecord:
    name: str
    gender: Gender
    status: Optional[str] = None
    active: Optional[bool] = None

    def is_active(self) -> bool:
        """Excluded only when explicitly marked inactive by status AND flag"""
        status = (self.status or '').strip().lower()
        not_inactive = status not in RECORD_CONFIG.INACTIVE_STATUSES
        active_by_flag = self.active is not False
        return not_inactive or active_by_flag


@dataclass(frozen=True)
class CeremonyRecord:
    """A matching night: seated pairs and the revealed number of lights"""
    name: str
    pairs: Tuple[Pair, ...]
    total_lights: Optional[int]
    created_at: datetime
    broadcast_at: Optional[datetime] = None

    def effective_time(self) -> datetime:
        return self.broadcast_at or self.created_at

    def men(self) -> List[str]:
        return [p.man for p in self.pairs]

    def women(self) -> List[str]:
        return [p.woman for p in self.pairs]


@dataclass(frozen=True)
class MatchboxRecord:
    """A single pair sent to the truth booth (or sold)"""
    woman: str
    man: str
    match_type: str
    created_at: datetime
    broadcast_at: Optional[datetime] = None

    @property
    def pair(self) -> Pair:
        return Pair(self.woman, self.man)

    def effective_time(self) -> datetime:
        return self.broadcast_at or self.created_at

    def verdict(self) -> Optional[bool]:
        return RECORD_CONFIG.verdict_for(self.match_type)


@dataclass
class Snapshot:
    """Everything the engine input is derived from"""
    participants: List[ParticipantRecord] = field(default_factory=list)
    ceremonies: List[CeremonyRecord] = field(default_factory=list)
    matchboxes: List[MatchboxRecord] = field(default_factory=list)
