# ETL Module: record snapshot -> engine input
from .records import ParticipantRecord, CeremonyRecord, MatchboxRecord, Snapshot
from .input_builder import EngineInputBuilder, build_engine_input, summarize_input
from .data_loader import SnapshotLoader, load_snapshot, parse_timestamp

__all__ = [
    'ParticipantRecord', 'CeremonyRecord', 'MatchboxRecord', 'Snapshot',
    'EngineInputBuilder', 'build_engine_input', 'summarize_input',
    'SnapshotLoader', 'load_snapshot', 'parse_timestamp'
]
