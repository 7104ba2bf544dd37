from __future__ import annotations

import json
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from ayto_model.engines import Gender, Pair, PairVerdict
from ayto_model.etl import (
    CeremonyRecord, EngineInputBuilder, MatchboxRecord, ParticipantRecord, Snapshot,
    SnapshotLoader, build_engine_input, load_snapshot, parse_timestamp, summarize_input
)

T0 = datetime(2025, 9, 1, 20, 15)


def _people(men, women):
    return (
        [ParticipantRecord(m, Gender.MAN) for m in men]
        + [ParticipantRecord(w, Gender.WOMAN) for w in women]
    )


def _night(name, pairs, lights, at):
    return CeremonyRecord(name, tuple(Pair(w, m) for w, m in pairs), lights, created_at=at)


def _box(woman, man, match_type, at):
    return MatchboxRecord(woman, man, match_type, created_at=at)


def test_known_matches_are_boxes_broadcast_strictly_before() -> None:
    nights = [
        _night("Night 1", [("X", "A"), ("Y", "B")], 1, T0),
        _night("Night 2", [("X", "A"), ("Y", "B")], 2, T0 + timedelta(days=7)),
    ]
    boxes = [
        _box("X", "A", "perfect", T0),  # same moment as night 1: not yet known
        _box("Y", "B", "perfect", T0 + timedelta(days=3)),
    ]

    engine_input = EngineInputBuilder().build(_people("AB", "XY"), nights, boxes)

    first, second = engine_input.ceremonies
    assert first.known_perfect_matches == frozenset()
    assert second.known_perfect_matches == {Pair("X", "A"), Pair("Y", "B")}


def test_broadcast_time_takes_precedence_over_creation_time() -> None:
    night = CeremonyRecord("Night", (Pair("X", "A"),), 1, created_at=T0 - timedelta(days=30),
                           broadcast_at=T0)
    box = MatchboxRecord("X", "A", "perfect", created_at=T0 + timedelta(days=1),
                         broadcast_at=T0 - timedelta(days=1))

    engine_input = EngineInputBuilder().build(_people("A", "X"), [night], [box])

    assert engine_input.ceremonies[0].known_perfect_matches == {Pair("X", "A")}


def test_verdicts_come_from_decided_boxes_only() -> None:
    nights = [_night("Night", [("X", "A"), ("Y", "B")], 0, T0)]
    boxes = [
        _box("X", "A", "no-match", T0),
        _box("Y", "A", "sold", T0),
        _box("Y", "B", "perfect", T0 + timedelta(days=1)),
    ]

    engine_input = EngineInputBuilder().build(_people("AB", "XY"), nights, boxes)

    assert set(engine_input.verdicts) == {
        PairVerdict(Pair("X", "A"), False),
        PairVerdict(Pair("Y", "B"), True),
    }


def test_participants_missing_from_last_night_leave_the_search() -> None:
    nights = [
        _night("Night 1", [("X", "A"), ("Y", "B"), ("Z", "C"), ("W", "D")], 2, T0),
        _night("Night 2", [("Y", "A"), ("X", "B"), ("Z", "C")], 1, T0 + timedelta(days=7)),
    ]
    boxes = [_box("W", "D", "perfect", T0 + timedelta(days=3))]

    builder = EngineInputBuilder()
    engine_input = builder.build(_people("ABCD", "XYZW"), nights, boxes)

    assert engine_input.men == ("A", "B", "C")
    assert engine_input.women == ("X", "Y", "Z")
    assert builder.removed_men == ["D"] and builder.removed_women == ["W"]
    first = engine_input.ceremonies[0]
    assert Pair("W", "D") not in first.pairs
    # The dropped pair was a confirmed match, so its light goes too
    assert first.correct_count == 1
    assert engine_input.ceremonies[1].known_perfect_matches == frozenset()
    assert engine_input.verdicts == ()


def test_ceremonies_are_ordered_by_broadcast_time() -> None:
    later = _night("Night 2", [("Y", "A"), ("X", "B")], 0, T0 + timedelta(days=7))
    earlier = _night("Night 1", [("X", "A"), ("Y", "B")], 2, T0)

    engine_input = EngineInputBuilder().build(_people("AB", "XY"), [later, earlier], [])

    assert [c.correct_count for c in engine_input.ceremonies] == [2, 0]


def test_inactive_requires_status_and_flag() -> None:
    participants = [
        ParticipantRecord("A", Gender.MAN),
        ParticipantRecord("B", Gender.MAN, status="inaktiv", active=False),
        ParticipantRecord("C", Gender.MAN, status="inactive"),
        ParticipantRecord("D", Gender.MAN, status="active", active=False),
    ]

    assert [p.name for p in participants if p.is_active()] == ["A", "C", "D"]


def test_no_ceremonies_gives_empty_roster() -> None:
    engine_input = build_engine_input(Snapshot(participants=_people("AB", "XY")))

    assert engine_input.men == () and engine_input.women == ()


def test_summarize_input_lists_each_ceremony() -> None:
    nights = [_night("Night 1", [("X", "A"), ("Y", "B")], 1, T0)]
    engine_input = EngineInputBuilder().build(_people("AB", "XY"), nights, [])

    rows = dict(summarize_input(engine_input))

    assert rows["Men"] == "A, B"
    assert rows["Ceremony 1"] == "2 pairs, 1 lights, 0 known"


def _snapshot_json() -> dict:
    return {
        "participants": [
            {"name": "Anna", "gender": "F", "status": "aktiv"},
            {"name": "Ben", "gender": "M", "active": True},
            {"name": "Clara", "gender": "F"},
            {"name": "Dave", "gender": "M"},
            {"name": "Eve", "gender": "?"},
        ],
        "matchingNights": [
            {
                "name": "Matching Night 1",
                "pairs": [{"woman": "Anna", "man": "Ben"}, {"woman": "Clara", "man": "Dave"}],
                "totalLights": 0,
                "ausstrahlungsdatum": "2025-09-01",
                "ausstrahlungszeit": "20:15",
                "createdAt": "2025-08-01T10:00:00.000Z",
            },
        ],
        "matchboxes": [
            {
                "womanId": "Anna",
                "manId": "Dave",
                "matchType": "perfect",
                "createdAt": "2025-08-28T18:00:00+02:00",
            },
        ],
    }


def test_loader_reads_legacy_field_names(tmp_path: Path) -> None:
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps(_snapshot_json()), encoding="utf-8")

    loader = SnapshotLoader(path)
    snapshot = loader.load()

    assert [p.name for p in snapshot.participants] == ["Anna", "Ben", "Clara", "Dave"]
    assert len(loader.anomaly_log) == 1
    night = snapshot.ceremonies[0]
    assert night.broadcast_at == datetime(2025, 9, 1, 20, 15)
    assert night.created_at == datetime(2025, 8, 1, 10, 0)
    box = snapshot.matchboxes[0]
    assert box.pair == Pair("Anna", "Dave")
    assert box.effective_time() == datetime(2025, 8, 28, 16, 0)


def test_loaded_snapshot_builds_engine_input(tmp_path: Path) -> None:
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps(_snapshot_json()), encoding="utf-8")

    engine_input = build_engine_input(load_snapshot(path))

    assert engine_input.men == ("Ben", "Dave")
    assert engine_input.ceremonies[0].known_perfect_matches == {Pair("Anna", "Dave")}


def test_loader_rejects_missing_sections() -> None:
    with pytest.raises(ValueError, match="matchboxes"):
        SnapshotLoader("unused.json").parse({"participants": [], "matchingNights": []})


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2025-09-01T20:15", datetime(2025, 9, 1, 20, 15)),
        ("2025-09-01T20:15:00Z", datetime(2025, 9, 1, 20, 15)),
        ("2025-09-01T22:15:00+02:00", datetime(2025, 9, 1, 20, 15)),
        ("", None),
        (None, None),
        ("not a date", None),
    ],
)
def test_parse_timestamp_normalizes_to_naive_utc(value, expected) -> None:
    assert parse_timestamp(value) == expected
