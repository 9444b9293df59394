"""Edit-distance similarity used by every matching step."""

from __future__ import annotations

from rapidfuzz.distance import Levenshtein

# Returned whenever either side is empty, including similarity("", "").
EMPTY_SIMILARITY = 0.0


def similarity(a: str, b: str) -> float:
    """Levenshtein ratio ``1 - distance / max(len(a), len(b))`` in [0, 1].

    Inputs are expected to be normalized already (see
    ``reconcile.normalize_for_comparison``); no case folding happens here.
    """
    if not a or not b:
        return EMPTY_SIMILARITY
    if a == b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)
