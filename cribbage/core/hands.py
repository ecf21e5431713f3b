from __future__ import annotations

from itertools import combinations
from typing import List, Sequence, Tuple

from .cards import Card, ensure_distinct
from .errors import InvalidDealSize
from .scoring import HAND_SIZE

Candidate = Tuple[Tuple[Card, ...], Tuple[Card, ...]]  # (hand, crib)

MIN_DEAL = 4
MAX_DEAL = 6


def validate_deal(deal: Sequence[Card]) -> None:
    if not MIN_DEAL <= len(deal) <= MAX_DEAL:
        raise InvalidDealSize(len(deal))
    ensure_distinct(deal)


def generate_candidates(deal: Sequence[Card]) -> List[Candidate]:
    """Generate all C(n,4) ways to keep 4 cards of an n-card deal.

    Uses index-based selection so hand and crib both keep the deal's order.
    Candidates come out in combinations() order, which is the include-first
    walk over the deal: for ABCDE that is ABCD, ABCE, ABDE, ACDE, BCDE.
    """
    validate_deal(deal)
    cards_list = list(deal)
    indices = range(len(cards_list))
    cands: List[Candidate] = []
    for keep_idx in combinations(indices, HAND_SIZE):
        hand = tuple(cards_list[i] for i in keep_idx)
        crib = tuple(cards_list[i] for i in indices if i not in keep_idx)
        cands.append((hand, crib))
    return cands
