"""
Run the Perfect-Match Probability Analysis

Loads a record snapshot, computes pair probabilities and prints the
result (optionally writing a CSV table and a heatmap).
"""
import argparse
import logging
import sys
from pathlib import Path

from tqdm import tqdm

from ayto_model.cache import JsonFileCacheStore, ResultCache
from ayto_model.config import CACHE_DIR, ENGINE_CONFIG, FIGURE_DIR
from ayto_model.errors import InvalidInputError
from ayto_model.etl import EngineInputBuilder, load_snapshot, summarize_input
from ayto_model.orchestrator import CalculationOrchestrator


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('snapshot', help='JSON export with participants, matchingNights, matchboxes')
    parser.add_argument('--budget', type=int, default=ENGINE_CONFIG.ENUMERATION_BUDGET,
                        help='Maximum number of candidates to enumerate')
    parser.add_argument('--strategy', choices=ENGINE_CONFIG.STRATEGIES,
                        default=ENGINE_CONFIG.DEFAULT_STRATEGY)
    parser.add_argument('--cache-dir', default=str(CACHE_DIR))
    parser.add_argument('--no-cache', action='store_true', help='Always recompute')
    parser.add_argument('--clear-cache', action='store_true', help='Drop cached results first')
    parser.add_argument('--csv', help='Write long-format probabilities to this CSV file')
    parser.add_argument('--plot', nargs='?', const=str(FIGURE_DIR / 'probability_heatmap.pdf'),
                        help='Write a heatmap (default path under outputs/figures)')
    parser.add_argument('--top', type=int, default=10, help='Number of most likely pairs to list')
    parser.add_argument('-v', '--verbose', action='store_true')
    return parser.parse_args(argv)


def run_probability_analysis(args) -> int:
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    print("=" * 60)
    print("PERFECT MATCH PROBABILITY ANALYSIS")
    print("=" * 60)
    print(f"Strategy: {args.strategy}")
    print(f"Budget:   {args.budget:,} candidates")
    print()

    snapshot = load_snapshot(args.snapshot)
    engine_input = EngineInputBuilder().build_from_snapshot(snapshot)
    for label, value in summarize_input(engine_input):
        print(f"  {label:<12} {value}")
    print()

    cache = ResultCache(JsonFileCacheStore(args.cache_dir), enabled=not args.no_cache)
    orchestrator = CalculationOrchestrator(cache=cache, strategy=args.strategy, budget=args.budget)
    if args.clear_cache:
        orchestrator.clear_cache()

    with tqdm(total=100, desc="Calculating", unit="%", bar_format='{l_bar}{bar}| {n:.0f}/{total}%') as bar:
        def on_progress(event):
            bar.set_postfix_str(event.label[:40])
            bar.update(max(0.0, event.percent - bar.n))

        try:
            result = orchestrator.calculate(engine_input, on_progress=on_progress)
        except InvalidInputError as e:
            bar.close()
            print(f"\nInvalid input: {e}")
            for problem in e.problems:
                print(f"  - {problem}")
            return 2

    if result is None:
        print("Calculation cancelled")
        return 1

    print()
    print(result.status_label())
    if orchestrator.status.from_cache:
        print("(loaded from cache)")
    print(f"Calculation time: {result.calculation_time:.2f}s")
    print()

    if result.is_unsatisfiable:
        print("No assignment satisfies all ceremonies and matchboxes.")
        print("Check the recorded lights and matchbox results for contradictions.")
        return 0

    if result.fixed_pairs:
        print("Fixed pairs:")
        for pair in result.fixed_pairs:
            print(f"  {pair.label()}")
        print()

    print(f"Top {args.top} pairs:")
    for pair, p in result.most_likely_pairs(limit=args.top):
        print(f"  {pair.label():<30} {100 * p:6.2f}%")
    print()
    print(result.to_dataframe().round(3).to_string())

    if args.csv:
        Path(args.csv).parent.mkdir(parents=True, exist_ok=True)
        result.to_records_frame().to_csv(args.csv, index=False)
        print(f"\nWrote {args.csv}")

    if args.plot:
        from ayto_model.visualization import plot_probability_heatmap
        plot_probability_heatmap(result, output_path=args.plot)
        print(f"Wrote {args.plot}")

    return 0


if __name__ == '__main__':
    sys.exit(run_probability_analysis(parse_args()))
