"""
Snapshot Loader with Defensive Parsing
Handles: missing broadcast times, mixed naive/aware timestamps,
legacy field names (womanId/manId, ausstrahlungsdatum/ausstrahlungszeit)
"""
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import pandas as pd

from ..config import RECORD_CONFIG
from ..engines.constraint_model import Gender, Pair
from .records import CeremonyRecord, MatchboxRecord, ParticipantRecord, Snapshot


class SnapshotLoader:
    """
    Load a JSON export of the record store.

    Expected top-level keys: participants, matchingNights, matchboxes.
    Unknown genders or malformed pairs are skipped and logged in
    anomaly_log rather than failing the whole load.
    """

    REQUIRED_KEYS = ('participants', 'matchingNights', 'matchboxes')

    def __init__(self, data_path: Union[str, Path]):
        self.data_path = Path(data_path)
        self.raw: Dict[str, Any] = {}
        self.anomaly_log: List[str] = []

    def load(self) -> Snapshot:
        with open(self.data_path, 'r', encoding='utf-8') as f:
            self.raw = json.load(f)
        return self.parse(self.raw)

    def parse(self, raw: Dict[str, Any]) -> Snapshot:
        self.raw = raw
        self._validate_keys()
        return Snapshot(
            participants=[p for p in map(self._parse_participant, raw.get('participants', [])) if p],
            ceremonies=[c for c in map(self._parse_ceremony, raw.get('matchingNights', [])) if c],
            matchboxes=[m for m in map(self._parse_matchbox, raw.get('matchboxes', [])) if m],
        )

    def _validate_keys(self):
        """Validate expected top-level keys exist"""
        if not isinstance(self.raw, dict):
            raise ValueError("Snapshot must be a JSON object")
        for key in self.REQUIRED_KEYS:
            if key not in self.raw:
                raise ValueError(f"Missing required key: {key}")

    def _parse_gender(self, tag: Any) -> Optional[Gender]:
        tag = str(tag or '').strip().upper()
        if tag in RECORD_CONFIG.WOMAN_TAGS:
            return Gender.WOMAN
        if tag in RECORD_CONFIG.MAN_TAGS:
            return Gender.MAN
        return None

    def _parse_participant(self, row: Dict[str, Any]) -> Optional[ParticipantRecord]:
        name = str(row.get('name', '')).strip()
        gender = self._parse_gender(row.get('gender'))
        if not name or gender is None:
            self.anomaly_log.append(f"Skipped participant {row.get('name')!r}: gender {row.get('gender')!r}")
            return None
        return ParticipantRecord(
            name=name,
            gender=gender,
            status=row.get('status'),
            active=row.get('active')
        )

    def _parse_pairs(self, rows: List[Dict[str, Any]], where: str) -> Tuple[Pair, ...]:
        pairs = []
        for row in rows or []:
            woman, man = row.get('woman'), row.get('man')
            if not woman or not man:
                self.anomaly_log.append(f"{where}: incomplete pair {row!r}")
                continue
            pairs.append(Pair(str(woman), str(man)))
        return tuple(pairs)

    def _parse_ceremony(self, row: Dict[str, Any]) -> Optional[CeremonyRecord]:
        name = str(row.get('name') or f"Night {row.get('id', '?')}")
        lights = row.get('totalLights')
        return CeremonyRecord(
            name=name,
            pairs=self._parse_pairs(row.get('pairs', []), name),
            total_lights=int(lights) if lights is not None else None,
            created_at=parse_timestamp(row.get('createdAt')) or datetime.min,
            broadcast_at=self._broadcast_time(row)
        )

    def _parse_matchbox(self, row: Dict[str, Any]) -> Optional[MatchboxRecord]:
        woman = row.get('womanId') or row.get('woman')
        man = row.get('manId') or row.get('man')
        match_type = row.get('matchType')
        if not woman or not man or not match_type:
            self.anomaly_log.append(f"Skipped matchbox {row!r}")
            return None
        return MatchboxRecord(
            woman=str(woman),
            man=str(man),
            match_type=str(match_type),
            created_at=parse_timestamp(row.get('createdAt')) or datetime.min,
            broadcast_at=self._broadcast_time(row)
        )

    def _broadcast_time(self, row: Dict[str, Any]) -> Optional[datetime]:
        date = row.get('broadcastDate') or row.get('ausstrahlungsdatum')
        if not date:
            return None
        clock = row.get('broadcastTime') or row.get('ausstrahlungszeit') or '00:00'
        return parse_timestamp(f"{date}T{clock}")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse to a naive UTC datetime so every timestamp is comparable.

    Returns None for missing or unparseable values.
    """
    if value is None or value == '':
        return None
    ts = pd.to_datetime(value, errors='coerce')
    if pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert('UTC').tz_localize(None)
    return ts.to_pydatetime()


def load_snapshot(path: Union[str, Path]) -> Snapshot:
    return SnapshotLoader(path).load()
