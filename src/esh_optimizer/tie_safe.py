"""
Tie-Safe Deterministic Ordering

Selections between candidates with equal scores (equally violated
constraints, for instance) are broken by a stable key and then by original
position, so repeated solves queue identical cut points.
"""

from typing import Any, Callable, List, Optional, TypeVar

from .receipts import canonical_hash


T = TypeVar('T')


def select_top_k(
    candidates: List[T],
    score_fn: Callable[[T], float],
    k: int,
    key_fn: Optional[Callable[[T], Any]] = None,
    minimize: bool = True
) -> List[T]:
    """
    Select the k best candidates with deterministic tie-breaking.

    Args:
        candidates: List of candidates
        score_fn: Function to compute score
        k: Number to select; k <= 0 selects nothing
        key_fn: Tie-break key (default: hash of str(candidate))
        minimize: If True, prefer lower scores

    Returns:
        List of at most k selected candidates
    """
    if k <= 0:
        return []
    if key_fn is None:
        key_fn = lambda c: canonical_hash(str(c))

    sign = 1.0 if minimize else -1.0
    ranked = sorted(
        range(len(candidates)),
        key=lambda i: (sign * score_fn(candidates[i]), key_fn(candidates[i]), i),
    )
    return [candidates[i] for i in ranked[:k]]
