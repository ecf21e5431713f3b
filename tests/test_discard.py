import logging
from concurrent.futures import Future
from concurrent.futures.process import BrokenProcessPool

import pytest

from cribbage.core import discard
from cribbage.core.cards import full_deck, parse_many
from cribbage.core.errors import InvalidDealSize, InvalidInput
from cribbage.core.hands import generate_candidates
from cribbage.core.scoring import score


def _letters(deal, hand):
    return "".join("ABCDEF"[deal.index(c)] for c in hand)


def test_candidates_follow_combination_order():
    deal = parse_many("AS 2S 3S 4S 5S")
    cands = generate_candidates(deal)
    assert [_letters(deal, h) for h, _ in cands] == ["ABCD", "ABCE", "ABDE", "ACDE", "BCDE"]
    assert [_letters(deal, c) for _, c in cands] == ["E", "D", "C", "B", "A"]


def test_six_card_deal_has_fifteen_candidates():
    assert len(generate_candidates(parse_many("AS 2S 3S 4S 5S 6S"))) == 15


def test_six_card_select_partitions_deal():
    deal = parse_many("7H 9S 8C 7C 2D KS")
    hand, crib = discard.select_hand(deal)
    assert len(hand) == 4
    assert len(crib) == 2
    assert set(hand) | set(crib) == set(deal)
    assert not set(hand) & set(crib)


def test_keeps_four_fives():
    deal = parse_many("5H 5S 5C 5D JH KC")
    hand, crib = discard.select_hand(deal)
    assert set(hand) == set(parse_many("5H 5S 5C 5D"))
    assert crib == tuple(parse_many("JH KC"))


def test_five_card_deal_makes_235_scoring_calls(monkeypatch):
    calls = []

    def counting_score(hand, start):
        calls.append((tuple(hand), start))
        return score(hand, start)

    monkeypatch.setattr(discard, "score", counting_score)
    deal = parse_many("AS 3H KH 7H 2D")
    discard.select_hand(deal)
    assert len(calls) == 235
    assert len({h for h, _ in calls}) == 5
    assert all(s not in deal for _, s in calls)


def test_totals_are_sums_over_remaining_deck():
    deal = parse_many("AS 3H KH 7H 2D")
    best, results = discard.evaluate_discards(deal)
    assert all(r.starts == 47 for r in results)
    for r in results:
        rest = [c for c in full_deck() if c not in deal]
        assert r.total == sum(score(r.hand, s) for s in rest)
    assert best is results[0]
    assert [r.total for r in results] == sorted((r.total for r in results), reverse=True)
    assert best.expected == pytest.approx(best.total / 47)


def test_select_is_deterministic():
    deal = parse_many("QD 10C 4H 6S 9D AH")
    first = discard.select_hand(deal)
    for _ in range(3):
        assert discard.select_hand(deal) == first


def test_numpy_and_pure_paths_agree(monkeypatch):
    deal = parse_many("QD 10C 4H 6S 9D AH")
    with_numpy = discard.evaluate_discards(deal)
    monkeypatch.setattr(discard, "_USE_NUMPY", False)
    pure = discard.evaluate_discards(deal)
    assert [(r.hand, r.total) for r in with_numpy[1]] == [(r.hand, r.total) for r in pure[1]]
    assert with_numpy[0].hand == pure[0].hand


@pytest.mark.parametrize("use_numpy", [True, False])
def test_ties_go_to_first_candidate(monkeypatch, use_numpy):
    monkeypatch.setattr(discard, "_USE_NUMPY", use_numpy)
    assert discard._best_index([3, 7, 5, 7, 7]) == 1
    assert discard._best_index([4, 4, 4]) == 0


def test_tied_candidates_keep_enumeration_order_in_ranking(monkeypatch):
    monkeypatch.setattr(discard, "score", lambda hand, start: 1)
    deal = parse_many("AS 2S 3S 4S 5S")
    best, results = discard.evaluate_discards(deal)
    assert [_letters(deal, r.hand) for r in results] == ["ABCD", "ABCE", "ABDE", "ACDE", "BCDE"]
    assert _letters(deal, best.hand) == "ABCD"


def test_four_card_deal_keeps_everything():
    deal = parse_many("AS 2S 3S 4S")
    hand, crib = discard.select_hand(deal)
    assert hand == tuple(deal)
    assert crib == ()


@pytest.mark.parametrize("text", ["AS 2S 3S", "AS 2S 3S 4S 5S 6S 7S"])
def test_deal_size_is_checked(text):
    with pytest.raises(InvalidDealSize):
        discard.select_hand(parse_many(text))


def test_duplicate_cards_are_rejected():
    with pytest.raises(InvalidInput):
        discard.select_hand(parse_many("AS 2S 3S 4S AS"))


DEALS = [
    "5H 5S 5C 5D JH KC",
    "7H 9S 8C 7C 2D KS",
    "AS 3H KH 7H 2D",
    "QD 10C 4H 6S 9D AH",
]


def test_select_many_matches_select_hand():
    deals = [parse_many(t) for t in DEALS]
    seen = []
    out = discard.select_many(deals, progress=seen.append)
    assert out == [discard.select_hand(d) for d in deals]
    assert seen[-1] == pytest.approx(1.0)


def test_select_many_in_worker_processes(monkeypatch):
    monkeypatch.setattr(discard, "_WORKERS", 2)
    monkeypatch.setattr(discard, "_MP_THRESHOLD", 2)
    deals = [parse_many(t) for t in DEALS]
    assert discard.select_many(deals) == [discard.select_hand(d) for d in deals]


def test_select_many_cancel_leaves_unfinished_deals_empty():
    deals = [parse_many(t) for t in DEALS]
    out = discard.select_many(deals, cancel=lambda: True)
    assert out == [None] * len(deals)


def test_select_many_validates_before_work():
    deals = [parse_many("AS 2S 3S 4S 5S"), parse_many("AS 2S")]
    with pytest.raises(InvalidDealSize):
        discard.select_many(deals)


def _use_pool(monkeypatch):
    monkeypatch.setattr(discard, "_WORKERS", 2)
    monkeypatch.setattr(discard, "_MP_THRESHOLD", 2)


def test_select_many_pool_cancel_keeps_finished_chunk(monkeypatch):
    _use_pool(monkeypatch)
    deals = [parse_many(t) for t in DEALS]
    out = discard.select_many(deals, cancel=lambda: True)
    finished = [i for i, o in enumerate(out) if o is not None]
    # two chunks of two deals; the first chunk to finish is kept
    assert finished in ([0, 1], [2, 3])
    for i in finished:
        assert out[i] == discard.select_hand(deals[i])


def test_select_many_falls_back_when_pool_cannot_start(monkeypatch, caplog):
    _use_pool(monkeypatch)

    def no_pool(*args, **kwargs):
        raise OSError("no semaphores")

    monkeypatch.setattr(discard, "ProcessPoolExecutor", no_pool)
    deals = [parse_many(t) for t in DEALS]
    with caplog.at_level(logging.WARNING, logger="cribbage.core.discard"):
        out = discard.select_many(deals)
    assert out == [discard.select_hand(d) for d in deals]
    assert "process pool failed" in caplog.text


class _HalfBrokenPool:
    """Runs the first chunk in-process, then reports the pool as broken."""

    def __init__(self, max_workers):
        self.submitted = 0

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def submit(self, fn, payload):
        fut = Future()
        if self.submitted == 0:
            fut.set_result(fn(payload))
        else:
            fut.set_exception(BrokenProcessPool("worker died"))
        self.submitted += 1
        return fut


def test_select_many_fallback_resumes_unfinished_deals(monkeypatch):
    _use_pool(monkeypatch)
    deals = [parse_many(t) for t in DEALS]
    expected = [discard.select_hand(d) for d in deals]

    calls = []
    real_select_hand = discard.select_hand

    def counting_select_hand(deal):
        calls.append(deal)
        return real_select_hand(deal)

    monkeypatch.setattr(discard, "select_hand", counting_select_hand)
    monkeypatch.setattr(discard, "ProcessPoolExecutor", _HalfBrokenPool)
    monkeypatch.setattr(discard, "as_completed", list)

    seen = []
    out = discard.select_many(deals, progress=seen.append)
    assert out == expected
    # two deals in the finished chunk, two more in-process; none redone
    assert len(calls) == len(deals)
    assert seen == sorted(seen)
    assert seen[-1] == pytest.approx(1.0)


def test_debug_log_is_skipped_when_disabled(monkeypatch, caplog):
    rendered = []
    real_labels = discard.labels

    def counting_labels(cards):
        rendered.append(cards)
        return real_labels(cards)

    monkeypatch.setattr(discard, "labels", counting_labels)
    deal = parse_many("AS 3H KH 7H 2D")

    caplog.set_level(logging.INFO, logger="cribbage.core.discard")
    discard.evaluate_discards(deal)
    assert rendered == []

    caplog.set_level(logging.DEBUG, logger="cribbage.core.discard")
    discard.evaluate_discards(deal)
    assert len(rendered) == 2
    assert "keep [" in caplog.text
