from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Sequence

from .errors import InvalidCard, InvalidInput

# Suits and ranks
SUITS = ("S", "H", "D", "C")  # Spades, Hearts, Diamonds, Clubs
RANKS = ("A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K")

RANK_TO_ORD = {r: i + 1 for i, r in enumerate(RANKS)}  # 1..13 (A=1, K=13)
RANK_TO_PIP = {r: min(o, 10) for r, o in RANK_TO_ORD.items()}  # J/Q/K count 10

JACK = "J"


@dataclass(frozen=True)
class Card:
    rank: str  # "A","2".."10","J","Q","K"
    suit: str  # "S","H","D","C"

    def __post_init__(self):
        if self.rank not in RANKS:
            raise InvalidCard(f"Invalid rank: {self.rank!r}")
        if self.suit not in SUITS:
            raise InvalidCard(f"Invalid suit: {self.suit!r}")

    def id(self) -> str:
        return f"{self.rank}{self.suit}"

    def __str__(self) -> str:
        return self.id()

    @property
    def ordinal(self) -> int:
        return RANK_TO_ORD[self.rank]

    @property
    def pip(self) -> int:
        return RANK_TO_PIP[self.rank]


# Pretty strings for the CLI
SUIT_SYMBOL = {"S": "♠", "H": "♥", "D": "♦", "C": "♣"}
_SYMBOL_TO_SUIT = {v: k for k, v in SUIT_SYMBOL.items()}
# Text-variation forms of the suit glyphs (♤ ♡ ♢ ♧)
_SYMBOL_TO_SUIT.update({"♤": "S", "♡": "H", "♢": "D", "♧": "C"})


def parse(card_id: str) -> Card:
    """Parse an id like AS, 10H, TD, 7♣ or q♥."""
    s = card_id.strip().upper()
    if len(s) < 2:
        raise InvalidCard(f"Bad card: {card_id!r}")
    rank, suit = s[:-1], s[-1]
    suit = _SYMBOL_TO_SUIT.get(suit, suit)
    if rank == "T":
        rank = "10"
    if rank not in RANKS:
        raise InvalidCard(f"Bad card rank: {rank}")
    if suit not in SUITS:
        raise InvalidCard(f"Bad suit: {suit}")
    return Card(rank, suit)


def parse_many(text: str) -> List[Card]:
    """Parse whitespace- or comma-separated card ids."""
    return [parse(tok) for tok in re.split(r"[\s,]+", text.strip()) if tok]


def full_deck() -> List[Card]:
    return [Card(r, s) for s in SUITS for r in RANKS]


def remaining_deck(exclude: Sequence[Card]) -> List[Card]:
    excl = set(exclude)
    return [c for c in full_deck() if c not in excl]


def ensure_distinct(cards: Sequence[Card]) -> None:
    seen = set()
    for c in cards:
        if c in seen:
            raise InvalidInput(f"Duplicate card: {label(c)}")
        seen.add(c)


def label(card: Card) -> str:
    return f"{card.rank}{SUIT_SYMBOL[card.suit]}"


def labels(cards: Sequence[Card]) -> str:
    return " ".join(label(c) for c in cards)
