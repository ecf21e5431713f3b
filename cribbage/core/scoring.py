from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from functools import lru_cache
from itertools import combinations
from typing import List, Sequence, Tuple

from .cards import Card, JACK
from .errors import InvalidHandSize

# Points per rule
PTS_FIFTEEN = 2
PTS_PAIR = 2
PTS_FLUSH = 4
PTS_NOBS = 1

HAND_SIZE = 4
SHOW_SIZE = HAND_SIZE + 1  # hand plus start card
START = HAND_SIZE  # position of the start card in the show set


@dataclass(frozen=True)
class ShowScore:
    fifteens: int
    pairs: int
    runs: int
    flush: int
    nobs: int

    @property
    def total(self) -> int:
        return self.fifteens + self.pairs + self.runs + self.flush + self.nobs

    def items(self) -> List[Tuple[str, int]]:
        return [
            ("fifteens", self.fifteens),
            ("pairs", self.pairs),
            ("runs", self.runs),
            ("flush", self.flush),
            ("nobs", self.nobs),
        ]


# Position subsets of the 5-card show set, grouped by size. Runs are checked
# longest first so the first size with any hit wins.
_RUN_SIZES = (5, 4, 3)
_SUBSETS_BY_SIZE = {k: tuple(combinations(range(SHOW_SIZE), k)) for k in _RUN_SIZES}
_ALL_MASKS = range(1, 1 << SHOW_SIZE)


# ── Raw rules (operate on ordinal/pip/suit tuples for speed) ─────────

def _fifteens_raw(pips: Tuple[int, ...]) -> int:
    """2 points for every subset of positions whose pips sum to 15.

    Subset sums are built incrementally over bitmasks: a mask's sum is the sum
    of the mask without its lowest bit plus the pip at that bit.
    """
    sums = [0] * (1 << len(pips))
    hits = 0
    for mask in _ALL_MASKS:
        low = mask & -mask
        sums[mask] = sums[mask ^ low] + pips[low.bit_length() - 1]
        if sums[mask] == 15:
            hits += 1
    return hits * PTS_FIFTEEN


def _pairs_raw(ords: Tuple[int, ...]) -> int:
    return sum(PTS_PAIR * n * (n - 1) // 2 for n in Counter(ords).values())


def _is_run(seq: List[int]) -> bool:
    # Duplicates break a run: every step must be exactly +1
    return all(b == a + 1 for a, b in zip(seq, seq[1:]))


def _runs_raw(ords: Tuple[int, ...]) -> int:
    for size in _RUN_SIZES:
        count = sum(
            1 for idx in _SUBSETS_BY_SIZE[size]
            if _is_run(sorted(ords[i] for i in idx))
        )
        if count:
            return count * size
    return 0


def _flush_raw(suits: Tuple[str, ...]) -> int:
    hand_suit = suits[0]
    if any(s != hand_suit for s in suits[1:HAND_SIZE]):
        return 0
    return PTS_FLUSH + (1 if suits[START] == hand_suit else 0)


def _nobs_raw(hand: Sequence[Card], start: Card) -> int:
    return PTS_NOBS if Card(JACK, start.suit) in hand else 0


def _score_impl(hand: Sequence[Card], start: Card) -> ShowScore:
    show = (*hand, start)
    ords = tuple(c.ordinal for c in show)
    pips = tuple(c.pip for c in show)
    suits = tuple(c.suit for c in show)
    return ShowScore(
        fifteens=_fifteens_raw(pips),
        pairs=_pairs_raw(ords),
        runs=_runs_raw(ords),
        flush=_flush_raw(suits),
        nobs=_nobs_raw(hand, start),
    )


# ── Cached scoring via frozenset keys ─────────────────────────
# The hand key is a frozenset of (rank, suit) tuples, which is order-independent
# and hashable. 15 candidates x 46 start cards per 6-card deal fit many times
# over in the cache.

@lru_cache(maxsize=262144)
def _cached_show(key: frozenset, start_rank: str, start_suit: str) -> ShowScore:
    hand = [Card(r, s) for r, s in key]
    return _score_impl(hand, Card(start_rank, start_suit))


def score_breakdown(hand: Sequence[Card], start: Card) -> ShowScore:
    """Score a 4-card hand plus start card, rule by rule.

    Duplicate cards across hand and start are not rejected; they produce a
    well-defined but meaningless score.
    """
    if len(hand) != HAND_SIZE:
        raise InvalidHandSize(len(hand))
    key = frozenset((c.rank, c.suit) for c in hand)
    if len(key) != HAND_SIZE:
        # Repeated cards collapse in the cache key; score them directly.
        return _score_impl(list(hand), start)
    return _cached_show(key, start.rank, start.suit)


def score(hand: Sequence[Card], start: Card) -> int:
    """Total show points for a 4-card hand and the start card."""
    return score_breakdown(hand, start).total


def clear_score_caches():
    """Clear the scoring LRU cache."""
    _cached_show.cache_clear()
