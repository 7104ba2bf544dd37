"""
Content hash of an engine input

The key is a SHA-256 over a canonical JSON form in which every list
whose order carries no meaning is sorted, so reordered but otherwise
identical inputs share a cache entry.
"""
import hashlib
import json
from typing import Any, Dict, List

from ..engines.constraint_model import EngineInput, Pair


def _pair_key(pair: Pair) -> List[str]:
    return [pair.woman, pair.man]


def canonicalize_input(engine_input: EngineInput) -> Dict[str, Any]:
    """Order-independent, JSON-serializable view of the input"""
    ceremonies = [
        {
            'pairs': sorted(_pair_key(p) for p in c.pairs),
            'correct_count': c.correct_count,
            'known_perfect_matches': sorted(_pair_key(p) for p in c.known_perfect_matches),
        }
        for c in engine_input.ceremonies
    ]
    ceremonies.sort(key=lambda c: json.dumps(c, sort_keys=True))

    verdicts = sorted(
        [v.pair.woman, v.pair.man, bool(v.is_match)]
        for v in engine_input.verdicts
    )

    return {
        'men': sorted(engine_input.men),
        'women': sorted(engine_input.women),
        'ceremonies': ceremonies,
        'verdicts': verdicts,
    }


def compute_input_hash(engine_input: EngineInput) -> str:
    """Stable hex digest used as the result cache key"""
    canonical = json.dumps(
        canonicalize_input(engine_input),
        sort_keys=True,
        separators=(',', ':'),
        ensure_ascii=False
    )
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()
