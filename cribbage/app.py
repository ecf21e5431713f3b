from __future__ import annotations

import argparse
import logging
import multiprocessing
import sys
from typing import List, Optional, Sequence

from cribbage.core.cards import Card, labels, parse, parse_many
from cribbage.core.errors import CribbageError
from cribbage.core.evaluator import evaluate_discards, score_breakdown, select, select_batch

logger = logging.getLogger("cribbage")


def _cards(tokens: Sequence[str]) -> List[Card]:
    return parse_many(" ".join(tokens))


def cmd_score(args: argparse.Namespace) -> int:
    hand = _cards(args.hand)
    start = parse(args.start)
    show = score_breakdown(hand, start)
    if args.breakdown:
        for name, pts in show.items():
            print(f"{name:<9}{pts:>3}")
    print(show.total)
    return 0


def cmd_select(args: argparse.Namespace) -> int:
    deal = _cards(args.deal)
    if args.all:
        best, results = evaluate_discards(deal)
        for r in results:
            mark = "*" if r is best else " "
            print(f"{mark} keep {labels(r.hand):<16} crib {labels(r.crib):<8} "
                  f"total {r.total:>4}  avg {r.expected:6.3f}")
        return 0
    hand, crib = select(deal)
    print(f"keep {labels(hand)}")
    print(f"crib {labels(crib)}")
    return 0


def cmd_batch(args: argparse.Namespace) -> int:
    if args.infile is sys.stdin:
        text = args.infile.read()
    else:
        with args.infile:
            text = args.infile.read()
    lines = [ln for ln in (ln.strip() for ln in text.splitlines()) if ln and not ln.startswith("#")]
    deals = [parse_many(ln) for ln in lines]
    logger.info("selecting for %d deals", len(deals))
    for deal, outcome in zip(deals, select_batch(deals)):
        hand, crib = outcome
        print(f"{labels(deal)} -> keep {labels(hand)} | crib {labels(crib)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cribbage",
        description="Score Cribbage show hands and choose what to keep.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("score", help="score a 4-card hand with a start card")
    p.add_argument("hand", nargs="+", help="4 cards, e.g. 5H 5S 5C JD")
    p.add_argument("-s", "--start", required=True, help="start card, e.g. 5D")
    p.add_argument("-b", "--breakdown", action="store_true", help="show points per rule")
    p.set_defaults(func=cmd_score)

    p = sub.add_parser("select", help="choose the best 4 cards from a 5 or 6 card deal")
    p.add_argument("deal", nargs="+", help="dealt cards, e.g. 5H 5S 5C JD 2C 7D")
    p.add_argument("-a", "--all", action="store_true", help="list every candidate keep")
    p.set_defaults(func=cmd_select)

    p = sub.add_parser("batch", help="select for one deal per line of a file")
    p.add_argument("infile", nargs="?", type=argparse.FileType("r", encoding="utf-8"),
                   default=sys.stdin, help="input file (default: stdin)")
    p.set_defaults(func=cmd_batch)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    # Required for multiprocessing support in frozen executables
    multiprocessing.freeze_support()

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    try:
        return args.func(args)
    except CribbageError as e:
        logger.debug("rejected input", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
