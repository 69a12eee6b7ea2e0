"""String similarity used to match free-text values against catalog names."""

from typing import Iterable, List, Tuple

from rapidfuzz.distance import Levenshtein

# Score for one string containing the other
CONTAINMENT_SIMILARITY = 0.8


def calculate_similarity(first: str, second: str) -> float:
    """
    Similarity of two strings on a 0..1 scale (case-insensitive).

    1.0 when equal (or both empty), 0.8 when one contains the other,
    otherwise 1 - levenshtein / max(len).
    """
    a = first.lower()
    b = second.lower()
    if a == b:
        return 1.0

    longer, shorter = (a, b) if len(a) > len(b) else (b, a)
    if not longer:
        return 1.0
    if shorter in longer:
        return CONTAINMENT_SIMILARITY

    distance = Levenshtein.distance(a, b)
    return (len(longer) - distance) / len(longer)


def rank_candidates(
    values: Iterable[str],
    candidates: Iterable[Tuple[int, str]],
    threshold: float = 0.6,
    limit: int = 3,
) -> List[Tuple[int, str, float]]:
    """
    Score every (value, candidate) pair and keep the best matches.

    Args:
        values: Strings to match
        candidates: (id, name) pairs to match against
        threshold: Matches must score strictly above this
        limit: Maximum number of matches returned

    Returns:
        (id, name, similarity) tuples, best first
    """
    candidates = list(candidates)
    best = {}  # candidate id -> best match across all values
    for value in values:
        for candidate_id, name in candidates:
            similarity = calculate_similarity(value, name)
            if similarity > threshold and similarity > best.get(candidate_id, (0, "", -1.0))[2]:
                best[candidate_id] = (candidate_id, name, similarity)

    # Stable sort keeps catalog order among equal scores
    matches = sorted(best.values(), key=lambda m: -m[2])
    return matches[:limit]
