from __future__ import annotations

from collections.abc import Iterable

from rapidfuzz.distance import Levenshtein

from discount_engine.discounts.constants import (
    SUGGESTION_MAX_DISTANCE,
    SUGGESTION_MAX_DISTANCE_RATIO,
)


def suggest_code(normalized_code: str, candidates: Iterable[str]) -> str | None:
    """Closest candidate by edit distance, or None when nothing is close enough.

    Ties keep the alphabetically first code so the hint is stable between calls.
    """
    if not normalized_code:
        return None

    max_ratio_distance = SUGGESTION_MAX_DISTANCE_RATIO * len(normalized_code)
    best: tuple[int, str] | None = None
    for candidate in candidates:
        if candidate == normalized_code:
            continue
        distance = Levenshtein.distance(
            normalized_code,
            candidate,
            score_cutoff=SUGGESTION_MAX_DISTANCE,
        )
        if distance > SUGGESTION_MAX_DISTANCE or distance >= max_ratio_distance:
            continue
        if best is None or (distance, candidate) < best:
            best = (distance, candidate)

    return best[1] if best is not None else None
