"""
Fuzzy string similarity shared by entity resolution and task search.

Scores are integers in 0..100. The score of a pair is the best of:

- the plain ratio of the two normalized strings, and
- a token-set ratio: the words both strings share are compared against each
  side's full word set, so "budget" vs "Budget Review" scores 100 while
  "budget" vs "bugdet plan" still relies on character overlap.

Ratios come from difflib.SequenceMatcher (2*M/T over matching blocks), rounded
half-up to the nearest integer. Only threshold behaviour is a contract; exact
scores are an implementation detail.
"""
import re
from difflib import SequenceMatcher
from typing import Callable, Iterable, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")

_WHITESPACE = re.compile(r"\s+")
_TOKEN = re.compile(r"[^\w]+")


def normalize(text: str) -> str:
    """Lowercase and collapse whitespace."""
    return _WHITESPACE.sub(" ", (text or "").strip().lower())


def _tokens(text: str) -> list[str]:
    return [t for t in _TOKEN.split(text) if t]


def _ratio(left: str, right: str) -> int:
    if not left or not right:
        return 0
    matcher = SequenceMatcher(None, left, right)
    matches = sum(block.size for block in matcher.get_matching_blocks())
    total = len(left) + len(right)
    # round(200 * M / T) in integer arithmetic, half-up
    return (400 * matches + total) // (2 * total)


def token_set_ratio(left: str, right: str) -> int:
    """Ratio over shared vs. remaining words, order-insensitive."""
    a = set(_tokens(normalize(left)))
    b = set(_tokens(normalize(right)))
    if not a or not b:
        return 0

    shared = " ".join(sorted(a & b))
    only_a = " ".join(sorted(a - b))
    only_b = " ".join(sorted(b - a))

    combined_a = f"{shared} {only_a}".strip()
    combined_b = f"{shared} {only_b}".strip()

    scores = [_ratio(combined_a, combined_b)]
    if shared:
        scores.append(_ratio(shared, combined_a))
        scores.append(_ratio(shared, combined_b))
    return max(scores)


def similarity(left: str, right: str) -> int:
    """Case-insensitive similarity score in 0..100."""
    a = normalize(left)
    b = normalize(right)
    if not a or not b:
        return 0
    if a == b:
        return 100
    return max(_ratio(a, b), token_set_ratio(a, b))


def best_match(
    query: str,
    candidates: Iterable[T],
    key: Callable[[T], str],
    threshold: int,
    scorer: Callable[[str, str], int] = similarity,
) -> Optional[Tuple[T, int]]:
    """
    Highest-scoring candidate at or above threshold.

    Ties keep the first candidate in iteration order.
    """
    best: Optional[Tuple[T, int]] = None
    for candidate in candidates:
        score = scorer(query, key(candidate))
        if score < threshold:
            continue
        if best is None or score > best[1]:
            best = (candidate, score)
    return best


def all_matches(
    query: str,
    candidates: Sequence[T],
    key: Callable[[T], str],
    threshold: int,
    scorer: Callable[[str, str], int] = similarity,
) -> list[Tuple[T, int]]:
    """Every candidate at or above threshold, best first, stable on ties."""
    scored = [(c, scorer(query, key(c))) for c in candidates]
    kept = [(c, s) for c, s in scored if s >= threshold]
    # sorted() is stable, so equal scores keep store order
    return sorted(kept, key=lambda pair: pair[1], reverse=True)
