"""
Calculation Orchestrator

Sequences validation, cache lookup, search, aggregation and caching for
one probability request and reports progress along the way.

Phases:
- IDLE -> LOADING_INPUT -> CHECKING_CACHE
- CHECKING_CACHE -> CACHE_HIT -> DONE
- CHECKING_CACHE -> CACHE_MISS -> SEARCHING (pruning engine)
  or GENERATING -> FILTERING (enumeration engine) -> AGGREGATING -> CACHING -> DONE
- ERROR from any running phase (malformed input, unexpected failure)
- CANCELLED from any running phase (cancellation token set)

Searches run on a single background worker when submitted with
submit(); calculate() runs on the calling thread.
"""
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, Dict, List, Optional, Set

from .cache import ResultCache, compute_input_hash
from .config import ENGINE_CONFIG, EngineConfig
from .engines import (
    CancellationToken, EngineInput, EngineResult, ProbabilityEngine, create_engine, ensure_valid
)
from .errors import CalculationCancelled

logger = logging.getLogger(__name__)


class CalculationPhase(Enum):
    """Orchestrator lifecycle states"""
    IDLE = auto()
    LOADING_INPUT = auto()
    CHECKING_CACHE = auto()
    CACHE_HIT = auto()
    CACHE_MISS = auto()
    GENERATING = auto()
    FILTERING = auto()
    SEARCHING = auto()
    AGGREGATING = auto()
    CACHING = auto()
    DONE = auto()
    ERROR = auto()
    CANCELLED = auto()


TERMINAL_PHASES = {CalculationPhase.DONE, CalculationPhase.ERROR, CalculationPhase.CANCELLED}

ALLOWED_TRANSITIONS: Dict[CalculationPhase, Set[CalculationPhase]] = {
    CalculationPhase.IDLE: {CalculationPhase.LOADING_INPUT},
    CalculationPhase.LOADING_INPUT: {CalculationPhase.CHECKING_CACHE},
    CalculationPhase.CHECKING_CACHE: {CalculationPhase.CACHE_HIT, CalculationPhase.CACHE_MISS},
    CalculationPhase.CACHE_HIT: {CalculationPhase.DONE},
    CalculationPhase.CACHE_MISS: {CalculationPhase.SEARCHING, CalculationPhase.GENERATING},
    CalculationPhase.GENERATING: {CalculationPhase.FILTERING},
    CalculationPhase.FILTERING: {CalculationPhase.AGGREGATING},
    CalculationPhase.SEARCHING: {CalculationPhase.AGGREGATING},
    CalculationPhase.AGGREGATING: {CalculationPhase.CACHING},
    CalculationPhase.CACHING: {CalculationPhase.DONE},
    # A finished orchestrator may start the next request
    CalculationPhase.DONE: {CalculationPhase.LOADING_INPUT},
    CalculationPhase.ERROR: {CalculationPhase.LOADING_INPUT},
    CalculationPhase.CANCELLED: {CalculationPhase.LOADING_INPUT},
}

PHASE_LABELS = {
    CalculationPhase.IDLE: "Ready",
    CalculationPhase.LOADING_INPUT: "Loading input...",
    CalculationPhase.CHECKING_CACHE: "Checking cache...",
    CalculationPhase.CACHE_HIT: "Loaded from cache",
    CalculationPhase.CACHE_MISS: "Starting calculation...",
    CalculationPhase.GENERATING: "Generating possible matchings...",
    CalculationPhase.FILTERING: "Applying ceremony and matchbox constraints...",
    CalculationPhase.SEARCHING: "Searching valid matchings...",
    CalculationPhase.AGGREGATING: "Computing probabilities...",
    CalculationPhase.CACHING: "Saving result...",
    CalculationPhase.DONE: "Calculation complete",
    CalculationPhase.ERROR: "Error",
    CalculationPhase.CANCELLED: "Cancelled",
}


@dataclass
class ProgressEvent:
    """One progress report: phase, percent (0-100) and label"""
    phase: CalculationPhase
    percent: float
    label: str


@dataclass
class CalculationStatus:
    """Snapshot of the orchestrator state"""
    phase: CalculationPhase = CalculationPhase.IDLE
    progress: float = 0.0
    step: str = PHASE_LABELS[CalculationPhase.IDLE]
    error: Optional[str] = None
    from_cache: bool = False
    history: List[CalculationPhase] = field(default_factory=list)

    @property
    def is_calculating(self) -> bool:
        return self.phase not in TERMINAL_PHASES and self.phase != CalculationPhase.IDLE


@dataclass
class CalculationHandle:
    """A calculation running in the background"""
    future: Future
    cancel_token: CancellationToken

    def cancel(self):
        self.cancel_token.cancel()

    def result(self, timeout: Optional[float] = None) -> Optional[EngineResult]:
        """EngineResult, or None if the calculation was cancelled"""
        return self.future.result(timeout)

    def done(self) -> bool:
        return self.future.done()


class CalculationOrchestrator:
    """
    Owns the end-to-end pipeline for probability requests.

    The cache handle is injected; without one, an in-memory cache is used.
    """

    def __init__(
        self,
        cache: Optional[ResultCache] = None,
        engine: Optional[ProbabilityEngine] = None,
        strategy: Optional[str] = None,
        budget: Optional[int] = None,
        config: Optional[EngineConfig] = None
    ):
        self.config = config or ENGINE_CONFIG
        self.cache = cache if cache is not None else ResultCache()
        self.budget = self.config.ENUMERATION_BUDGET if budget is None else budget
        self.engine = engine or create_engine(
            strategy or self.config.DEFAULT_STRATEGY,
            budget=self.budget,
            progress_interval=self.config.PROGRESS_INTERVAL
        )

        self._status = CalculationStatus()
        self._lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._current: Optional[CalculationHandle] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def status(self) -> CalculationStatus:
        with self._lock:
            s = self._status
            return CalculationStatus(
                phase=s.phase, progress=s.progress, step=s.step,
                error=s.error, from_cache=s.from_cache, history=list(s.history)
            )

    def _transition(
        self,
        phase: CalculationPhase,
        percent: Optional[float] = None,
        label: Optional[str] = None,
        on_progress: Optional[Callable[[ProgressEvent], None]] = None
    ):
        with self._lock:
            current = self._status.phase
            forced = phase in (CalculationPhase.ERROR, CalculationPhase.CANCELLED)
            if not forced and phase not in ALLOWED_TRANSITIONS.get(current, set()):
                raise RuntimeError(f"Illegal phase transition {current.name} -> {phase.name}")

            self._status.phase = phase
            self._status.history.append(phase)
            self._status.step = label or PHASE_LABELS[phase]
            if percent is not None:
                self._status.progress = max(self._status.progress, percent)
            event = ProgressEvent(phase, self._status.progress, self._status.step)

        logger.info(f"[{phase.name}] {event.label} ({event.percent:.0f}%)")
        if on_progress is not None:
            on_progress(event)

    def _report(self, percent: float, label: str, on_progress):
        with self._lock:
            self._status.progress = max(self._status.progress, percent)
            self._status.step = label
            event = ProgressEvent(self._status.phase, self._status.progress, label)
        if on_progress is not None:
            on_progress(event)

    def _reset(self):
        with self._lock:
            self._status.progress = 0.0
            self._status.error = None
            self._status.from_cache = False
            self._status.history = [self._status.phase]

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def calculate(
        self,
        engine_input: EngineInput,
        on_progress: Optional[Callable[[ProgressEvent], None]] = None,
        cancel_token: Optional[CancellationToken] = None,
        force: bool = False
    ) -> Optional[EngineResult]:
        """
        Run the full pipeline on the calling thread.

        Args:
            engine_input: Resolved input (see etl.EngineInputBuilder)
            on_progress: Receives ProgressEvent at each milestone
            cancel_token: Cooperative cancellation; a cancelled run
                returns None and writes nothing to the cache
            force: Skip the cache lookup (the result is still stored)

        Returns:
            EngineResult, or None if cancelled

        Raises:
            InvalidInputError: malformed input, before any search
        """
        token = cancel_token or CancellationToken()
        self._reset()
        start_time = time.time()

        try:
            self._transition(CalculationPhase.LOADING_INPUT, 0, on_progress=on_progress)
            ensure_valid(engine_input)
            token.raise_if_cancelled()

            self._transition(CalculationPhase.CHECKING_CACHE,
                             self.config.PROGRESS_CACHE_CHECK, on_progress=on_progress)
            key = compute_input_hash(engine_input)
            cached = None if force else self.cache.get(key)

            if cached is not None:
                with self._lock:
                    self._status.from_cache = True
                self._transition(CalculationPhase.CACHE_HIT, 100, on_progress=on_progress)
                self._transition(CalculationPhase.DONE, 100, on_progress=on_progress)
                return cached

            self._transition(CalculationPhase.CACHE_MISS,
                             self.config.PROGRESS_SEARCH_START, on_progress=on_progress)
            token.raise_if_cancelled()

            result = self._run_engine(engine_input, token, on_progress)
            token.raise_if_cancelled()

            self._transition(CalculationPhase.AGGREGATING,
                             self.config.PROGRESS_AGGREGATE, on_progress=on_progress)
            for problem in self.engine.validate_result(result):
                logger.warning(f"Result check: {problem}")
            token.raise_if_cancelled()

            self._transition(CalculationPhase.CACHING,
                             self.config.PROGRESS_CACHING, on_progress=on_progress)
            if result.is_approximate:
                # A capped result must not answer a later run with a larger budget
                logger.info("Approximate result not cached")
            else:
                self.cache.put(key, result)

            self._transition(CalculationPhase.DONE, 100, result.status_label(),
                             on_progress=on_progress)
            logger.info(f"Calculation finished in {time.time() - start_time:.2f}s")
            return result

        except CalculationCancelled:
            self._transition(CalculationPhase.CANCELLED, on_progress=on_progress)
            return None
        except Exception as e:
            with self._lock:
                self._status.error = str(e)
            self._transition(CalculationPhase.ERROR, label=str(e), on_progress=on_progress)
            raise

    def _run_engine(
        self,
        engine_input: EngineInput,
        token: CancellationToken,
        on_progress
    ) -> EngineResult:
        start = self.config.PROGRESS_SEARCH_START
        span = self.config.PROGRESS_SEARCH_END - start

        def engine_progress(percent: float, step: str):
            self._report(start + span * min(percent, 100.0) / 100.0, step, on_progress)

        if self.engine.get_method_name() == 'enumeration':
            self._transition(CalculationPhase.GENERATING, on_progress=on_progress)
            self._transition(CalculationPhase.FILTERING, on_progress=on_progress)
        else:
            self._transition(CalculationPhase.SEARCHING, on_progress=on_progress)

        return self.engine.solve(engine_input, engine_progress, token)

    # ------------------------------------------------------------------
    # Background execution
    # ------------------------------------------------------------------

    def submit(
        self,
        engine_input: EngineInput,
        on_progress: Optional[Callable[[ProgressEvent], None]] = None,
        force: bool = False,
        cancel_previous: bool = True
    ) -> CalculationHandle:
        """
        Run calculate() on the background worker.

        A still-running previous submission is cancelled first unless
        cancel_previous is False, in which case the new one queues.
        """
        with self._lock:
            previous = self._current
            if cancel_previous and previous is not None and not previous.done():
                previous.cancel()

            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='ayto-search')

            token = CancellationToken()
            future = self._executor.submit(self.calculate, engine_input, on_progress, token, force)
            self._current = CalculationHandle(future=future, cancel_token=token)
            return self._current

    def clear_cache(self):
        self.cache.clear()
        with self._lock:
            self._status.step = "Cache cleared"

    def shutdown(self, wait: bool = True):
        with self._lock:
            current, executor = self._current, self._executor
            self._executor = None
        if current is not None and not current.done():
            current.cancel()
        # Waiting must happen outside the lock; the worker reports through it
        if executor is not None:
            executor.shutdown(wait=wait)

    def __enter__(self) -> 'CalculationOrchestrator':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
