from __future__ import annotations

import threading

import pytest

from ayto_model.cache import InMemoryCacheStore, ResultCache, compute_input_hash
from ayto_model.engines import CancellationToken, PruningSearchEngine
from ayto_model.errors import InvalidInputError
from ayto_model.orchestrator import CalculationOrchestrator, CalculationPhase as Phase
from tests.utils import ceremony, five_by_five_input, make_input, verdict


def _orchestrator(strategy: str = "pruning", **kwargs):
    store = InMemoryCacheStore()
    return CalculationOrchestrator(cache=ResultCache(store), strategy=strategy, **kwargs), store


def test_miss_runs_search_and_stores_result() -> None:
    orchestrator, store = _orchestrator()
    events = []

    result = orchestrator.calculate(five_by_five_input(), on_progress=events.append)

    status = orchestrator.status
    assert result is not None and result.is_exact
    assert status.phase == Phase.DONE
    assert status.history == [
        Phase.IDLE, Phase.LOADING_INPUT, Phase.CHECKING_CACHE, Phase.CACHE_MISS,
        Phase.SEARCHING, Phase.AGGREGATING, Phase.CACHING, Phase.DONE,
    ]
    assert status.from_cache is False
    assert status.progress == 100
    assert len(store) == 1
    assert events[-1].phase == Phase.DONE
    assert events[-1].label == result.status_label()


def test_enumeration_strategy_reports_generate_and_filter_phases() -> None:
    orchestrator, _ = _orchestrator("enumeration")

    orchestrator.calculate(make_input())

    assert orchestrator.status.history[4:6] == [Phase.GENERATING, Phase.FILTERING]


def test_second_identical_request_is_served_from_cache() -> None:
    orchestrator, _ = _orchestrator()
    first = orchestrator.calculate(five_by_five_input())

    second = orchestrator.calculate(five_by_five_input())

    status = orchestrator.status
    assert status.from_cache is True
    assert status.history == [
        Phase.DONE, Phase.LOADING_INPUT, Phase.CHECKING_CACHE, Phase.CACHE_HIT, Phase.DONE,
    ]
    assert second.probability_matrix == first.probability_matrix
    assert second.state == first.state


def test_force_skips_cache_lookup() -> None:
    orchestrator, _ = _orchestrator()
    orchestrator.calculate(make_input())

    orchestrator.calculate(make_input(), force=True)

    assert Phase.CACHE_HIT not in orchestrator.status.history
    assert orchestrator.status.from_cache is False


def test_progress_events_never_decrease() -> None:
    orchestrator = CalculationOrchestrator(
        cache=ResultCache(), engine=PruningSearchEngine(progress_interval=1)
    )
    events = []

    orchestrator.calculate(five_by_five_input(), on_progress=events.append)

    percents = [e.percent for e in events]
    assert percents == sorted(percents)
    assert percents[-1] == 100
    assert any(e.phase == Phase.SEARCHING and 10 <= e.percent <= 85 for e in events)


def test_invalid_input_fails_before_search() -> None:
    orchestrator, store = _orchestrator()

    with pytest.raises(InvalidInputError):
        orchestrator.calculate(make_input(verdicts=[verdict("Q", "A", True)]))

    status = orchestrator.status
    assert status.phase == Phase.ERROR
    assert "unknown woman 'Q'" in status.error
    assert Phase.SEARCHING not in status.history
    assert len(store) == 0


def test_unsatisfiable_input_completes_normally() -> None:
    orchestrator, store = _orchestrator()

    result = orchestrator.calculate(
        make_input(ceremonies=[ceremony([("X", "A"), ("Y", "B"), ("Z", "C")], 2)])
    )

    assert result.is_unsatisfiable
    assert orchestrator.status.phase == Phase.DONE
    assert len(store) == 1


def test_cancelled_run_returns_none_and_caches_nothing() -> None:
    store = InMemoryCacheStore()
    orchestrator = CalculationOrchestrator(
        cache=ResultCache(store), engine=PruningSearchEngine(progress_interval=1)
    )
    token = CancellationToken()

    def cancel_when_searching(event):
        if event.phase == Phase.SEARCHING:
            token.cancel()

    result = orchestrator.calculate(
        five_by_five_input(), on_progress=cancel_when_searching, cancel_token=token
    )

    assert result is None
    assert orchestrator.status.phase == Phase.CANCELLED
    assert Phase.CACHING not in orchestrator.status.history
    assert len(store) == 0


def test_new_request_after_cancellation_starts_cleanly() -> None:
    orchestrator, _ = _orchestrator()
    token = CancellationToken()
    token.cancel()
    assert orchestrator.calculate(make_input(), cancel_token=token) is None

    result = orchestrator.calculate(make_input())

    assert result.total_valid_matchings == 6
    assert orchestrator.status.phase == Phase.DONE


def test_submit_runs_in_background() -> None:
    with CalculationOrchestrator(cache=ResultCache()) as orchestrator:
        handle = orchestrator.submit(five_by_five_input())
        result = handle.result(timeout=60)

    assert handle.done()
    assert result.is_exact


def test_clear_cache_forces_recomputation() -> None:
    orchestrator, store = _orchestrator()
    orchestrator.calculate(make_input())

    orchestrator.clear_cache()
    orchestrator.calculate(make_input())

    assert len(store) == 1
    assert orchestrator.status.from_cache is False


def test_engine_failure_moves_to_error_and_propagates(monkeypatch) -> None:
    orchestrator, store = _orchestrator()

    def broken_solve(*args, **kwargs):
        raise RuntimeError("worker crashed")

    monkeypatch.setattr(orchestrator.engine, "solve", broken_solve)

    with pytest.raises(RuntimeError, match="worker crashed"):
        orchestrator.calculate(make_input())

    assert orchestrator.status.phase == Phase.ERROR
    assert orchestrator.status.error == "worker crashed"
    assert len(store) == 0


def test_approximate_result_does_not_answer_a_larger_budget() -> None:
    store = InMemoryCacheStore()
    cache = ResultCache(store)
    engine_input = make_input(list("ABCD"), list("WXYZ"))

    with pytest.warns(UserWarning, match="budget"):
        capped = CalculationOrchestrator(cache=cache, budget=5).calculate(engine_input)
    assert capped.is_approximate
    assert len(store) == 0

    orchestrator = CalculationOrchestrator(cache=cache, budget=1000)
    full = orchestrator.calculate(engine_input)

    assert orchestrator.status.from_cache is False
    assert full.is_exact
    assert full.total_valid_matchings == 24
    assert len(store) == 1


def test_new_submission_cancels_the_one_in_flight() -> None:
    store = InMemoryCacheStore()
    orchestrator = CalculationOrchestrator(
        cache=ResultCache(store), engine=PruningSearchEngine(progress_interval=1)
    )
    searching = threading.Event()
    release = threading.Event()
    first_phases = []

    def hold_first_search(event):
        first_phases.append(event.phase)
        if event.phase == Phase.SEARCHING and not searching.is_set():
            searching.set()
            release.wait(timeout=30)

    with orchestrator:
        first = orchestrator.submit(five_by_five_input(), on_progress=hold_first_search)
        assert searching.wait(timeout=30)
        second = orchestrator.submit(make_input())
        release.set()

        assert first.result(timeout=60) is None
        assert second.result(timeout=60).total_valid_matchings == 6

    assert first_phases[-1] == Phase.CANCELLED
    assert store.get(compute_input_hash(five_by_five_input())) is None
    assert store.get(compute_input_hash(make_input())) is not None
