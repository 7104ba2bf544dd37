# AYTO Perfect-Match Probability Model
#
# Architecture:
# - etl/: Record snapshot -> engine input (temporal resolution of known matches)
# - engines/: Constraint model, assignment generation, constraint checking,
#             aggregation; reference enumeration and pruning search engines
# - cache/: Content-hashed result cache with pluggable stores
# - orchestrator: Phase state machine, progress, cancellation, background runs
# - visualization/: Probability heatmaps

from .engines import (
    Pair, CeremonyConstraint, PairVerdict, EngineInput, EngineResult, ResultState,
    PruningSearchEngine, EnumerationEngine, create_engine
)
from .cache import ResultCache, InMemoryCacheStore, JsonFileCacheStore, compute_input_hash
from .orchestrator import CalculationOrchestrator, CalculationPhase, ProgressEvent
from .errors import InvalidInputError, CacheUnavailableError, CalculationCancelled

__version__ = "1.0.0"
