"""Public API used by the CLI and by callers embedding the scorer."""
from __future__ import annotations

from typing import Callable, List, Sequence, Tuple

from .cards import Card
from .discard import DiscardResult, SelectOutcome, evaluate_discards, select_hand, select_many
from .scoring import ShowScore, score, score_breakdown

__all__ = [
    "DiscardResult",
    "ShowScore",
    "evaluate_discards",
    "score",
    "score_breakdown",
    "select",
    "select_batch",
]


def select(deal: Sequence[Card]) -> Tuple[Tuple[Card, ...], Tuple[Card, ...]]:
    """The 4 cards to keep from a 4-6 card deal, and the crib.

    Deterministic; on equal totals the earliest candidate in combination
    order over the deal is kept.
    """
    return select_hand(deal)


def select_batch(
    deals: Sequence[Sequence[Card]],
    progress: Callable[[float], None] | None = None,
    cancel: Callable[[], bool] | None = None,
) -> List[SelectOutcome]:
    """Select for many deals at once, in parallel when the batch is large."""
    return select_many(deals, progress=progress, cancel=cancel)
