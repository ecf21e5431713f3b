from __future__ import annotations

import logging
import os
from concurrent.futures import ProcessPoolExecutor, as_completed
from concurrent.futures.process import BrokenProcessPool
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from .cards import Card, labels, remaining_deck
from .hands import Candidate, generate_candidates, validate_deal
from .scoring import score

logger = logging.getLogger(__name__)

# ── Configuration ─────────────────────────────────────────────
# Number of worker processes for batch selection.  Override with
# CRIBBAGE_WORKERS env var.  Default: min(cpu_count, 8).  Set to 1 to disable
# multiprocessing.
_MAX_WORKERS = min(os.cpu_count() or 4, 8)
_WORKERS = int(os.environ.get("CRIBBAGE_WORKERS", _MAX_WORKERS))

# Minimum number of deals before we bother spawning subprocesses
_MP_THRESHOLD = 64

# Set CRIBBAGE_NO_NUMPY=1 to fall back to pure-Python loops (debug only)
_USE_NUMPY = not bool(int(os.environ.get("CRIBBAGE_NO_NUMPY", "0")))


class DiscardResult:
    __slots__ = ('hand', 'crib', 'total', 'starts')

    def __init__(self, hand: Tuple[Card, ...], crib: Tuple[Card, ...], total: int, starts: int):
        self.hand = hand
        self.crib = crib
        self.total = total
        self.starts = starts

    @property
    def expected(self) -> float:
        return (self.total / self.starts) if self.starts else 0.0

    def __repr__(self) -> str:
        return f"DiscardResult(hand=[{labels(self.hand)}], crib=[{labels(self.crib)}], total={self.total})"


# ── Aggregation over start cards ─────────────────────────────

def _totals_numpy(cands: List[Candidate], starts: List[Card]) -> List[int]:
    """Score matrix of shape (candidates, start cards), summed per row."""
    m = np.array(
        [[score(hand, s) for s in starts] for hand, _ in cands],
        dtype=np.int64,
    )
    return m.sum(axis=1).tolist()


def _totals_pure(cands: List[Candidate], starts: List[Card]) -> List[int]:
    totals = []
    for hand, _ in cands:
        t = 0
        for s in starts:
            t += score(hand, s)
        totals.append(t)
    return totals


def _best_index(totals: Sequence[int]) -> int:
    """First index holding the strict maximum (earliest candidate wins ties)."""
    if _USE_NUMPY:
        return int(np.argmax(np.asarray(totals, dtype=np.int64)))
    best = 0
    for i in range(1, len(totals)):
        if totals[i] > totals[best]:
            best = i
    return best


def evaluate_discards(deal: Sequence[Card]) -> Tuple[DiscardResult, List[DiscardResult]]:
    """Sum show points of every 4-card keep against every unseen start card.

    Sums rather than averages: every candidate of a deal faces the same
    number of start cards, so the ordering is the same.

    Returns: (best_result, all_results_sorted_desc). Ties keep enumeration
    order, so best_result is always all_results[0].
    """
    cands = generate_candidates(deal)
    starts = remaining_deck(deal)

    totals = _totals_numpy(cands, starts) if _USE_NUMPY else _totals_pure(cands, starts)
    results = [
        DiscardResult(hand=h, crib=c, total=int(t), starts=len(starts))
        for (h, c), t in zip(cands, totals)
    ]
    best = results[_best_index(totals)]
    # list.sort is stable with reverse=True, so equal totals stay in order
    ranked = sorted(results, key=lambda r: r.total, reverse=True)

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "deal [%s]: %d candidates x %d starts, keep [%s] total=%d",
            labels(deal), len(cands), len(starts), labels(best.hand), best.total,
        )
    return best, ranked


def select_hand(deal: Sequence[Card]) -> Tuple[Tuple[Card, ...], Tuple[Card, ...]]:
    best, _ = evaluate_discards(deal)
    return best.hand, best.crib


# ══════════════════════════════════════════════════════════════
#  Top-level worker function (must be picklable for Windows spawn)
# ══════════════════════════════════════════════════════════════

def _select_chunk(deals: List[List[Tuple[str, str]]]) -> List[Tuple[int, ...]]:
    """Select a hand for each deal in this worker process.

    Arguments use plain Python types for pickling; returns the deal positions
    of the kept cards.
    """
    kept: List[Tuple[int, ...]] = []
    for raw in deals:
        deal = [Card(rank, suit) for rank, suit in raw]
        hand, _ = select_hand(deal)
        kept.append(tuple(deal.index(c) for c in hand))
    return kept


def _split_by_index(deal: Sequence[Card], keep: Tuple[int, ...]):
    hand = tuple(deal[i] for i in keep)
    crib = tuple(c for i, c in enumerate(deal) if i not in keep)
    return hand, crib


SelectOutcome = Optional[Tuple[Tuple[Card, ...], Tuple[Card, ...]]]


def select_many(
    deals: Sequence[Sequence[Card]],
    progress: Callable[[float], None] | None = None,
    cancel: Callable[[], bool] | None = None,
) -> List[SelectOutcome]:
    """Select the best keep for many deals.

    Uses multiprocessing when there are at least _MP_THRESHOLD deals and
    _WORKERS > 1. Output is in input order and identical to calling
    select_hand on each deal. Deals not finished before cancel() returned
    True are left as None. If the pool breaks, the deals it had not finished
    are selected in-process; finished ones are kept.
    """
    deals = [list(d) for d in deals]
    for d in deals:
        validate_deal(d)

    n = len(deals)
    out: List[SelectOutcome] = [None] * n
    use_mp = _WORKERS > 1 and n >= _MP_THRESHOLD
    if not use_mp:
        return _select_many_single(deals, out, progress, cancel)

    # ── Multi-process path ────────────────────────────────────
    workers = min(_WORKERS, max(1, n // _MP_THRESHOLD))
    base = n // workers
    remainder = n % workers

    chunks: List[Tuple[int, int]] = []  # (start, stop)
    pos = 0
    for w in range(workers):
        cs = base + (1 if w < remainder else 0)
        chunks.append((pos, pos + cs))
        pos += cs

    completed = 0

    try:
        with ProcessPoolExecutor(max_workers=workers) as executor:
            futures = {}
            for lo, hi in chunks:
                payload = [[(c.rank, c.suit) for c in d] for d in deals[lo:hi]]
                futures[executor.submit(_select_chunk, payload)] = (lo, hi)

            for fut in as_completed(futures):
                lo, hi = futures[fut]
                for i, keep in zip(range(lo, hi), fut.result()):
                    out[i] = _split_by_index(deals[i], keep)
                completed += hi - lo

                if progress:
                    progress(completed / n)

                if cancel and cancel():
                    for f in futures:
                        f.cancel()
                    return out

    except (BrokenProcessPool, BrokenPipeError, OSError) as e:
        logger.warning(
            "process pool failed (%s); selecting %d remaining deals in-process",
            e, n - completed,
        )
        return _select_many_single(deals, out, progress, cancel)

    if progress and completed == n:
        progress(1.0)
    return out


def _select_many_single(
    deals: List[List[Card]],
    out: List[SelectOutcome],
    progress: Callable[[float], None] | None = None,
    cancel: Callable[[], bool] | None = None,
) -> List[SelectOutcome]:
    """Fill the None slots of *out* in order; slots already set are kept."""
    n = len(deals)
    done = sum(1 for o in out if o is not None)
    for i, deal in enumerate(deals):
        if out[i] is not None:
            continue
        if cancel and cancel():
            break
        out[i] = select_hand(deal)
        done += 1
        if progress:
            progress(done / n)
    return out
