"""
Card and deck utilities for the seating draw and the dealt hands.

A deck is a plain list of immutable ``Card`` values. The functions here never
mutate their input except ``draw``, which the engine only calls on its own
working copy of a hand.
"""

from __future__ import annotations
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple
from enum import IntEnum


class Suit(IntEnum):
    """Card suits. The integer order is the seating-draw tie-break."""
    CLUBS = 0     # ♣
    DIAMONDS = 1  # ♦
    HEARTS = 2    # ♥
    SPADES = 3    # ♠


class Rank(IntEnum):
    """Card ranks from 2 (lowest) to Ace (highest)."""
    TWO = 0
    THREE = 1
    FOUR = 2
    FIVE = 3
    SIX = 4
    SEVEN = 5
    EIGHT = 6
    NINE = 7
    TEN = 8
    JACK = 9
    QUEEN = 10
    KING = 11
    ACE = 12


SUIT_SYMBOLS = {
    Suit.CLUBS: "♣",
    Suit.DIAMONDS: "♦",
    Suit.HEARTS: "♥",
    Suit.SPADES: "♠",
}

SUIT_CHARS = {
    Suit.CLUBS: "c",
    Suit.DIAMONDS: "d",
    Suit.HEARTS: "h",
    Suit.SPADES: "s",
}

SUIT_NAMES = {
    Suit.CLUBS: "clubs",
    Suit.DIAMONDS: "diamonds",
    Suit.HEARTS: "hearts",
    Suit.SPADES: "spades",
}

RANK_LABELS = {
    Rank.TWO: "2",
    Rank.THREE: "3",
    Rank.FOUR: "4",
    Rank.FIVE: "5",
    Rank.SIX: "6",
    Rank.SEVEN: "7",
    Rank.EIGHT: "8",
    Rank.NINE: "9",
    Rank.TEN: "10",
    Rank.JACK: "J",
    Rank.QUEEN: "Q",
    Rank.KING: "K",
    Rank.ACE: "A",
}

# Reverse mappings
LABEL_TO_RANK = {v: k for k, v in RANK_LABELS.items()}
NAME_TO_SUIT = {v: k for k, v in SUIT_NAMES.items()}

# Enumeration order of a fresh deck
SUIT_ORDER = (Suit.CLUBS, Suit.DIAMONDS, Suit.HEARTS, Suit.SPADES)


@dataclass(frozen=True)
class Card:
    """
    A playing card.

    Cards can be created from:
    - Rank and Suit enums: Card(Rank.ACE, Suit.SPADES)
    - A persisted dict: Card.from_dict({"rank": "A", "suit": "spades"})
    """

    rank: Rank
    suit: Suit

    def __post_init__(self):
        object.__setattr__(self, "rank", Rank(self.rank))
        object.__setattr__(self, "suit", Suit(self.suit))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Card:
        try:
            return cls(LABEL_TO_RANK[str(data["rank"]).upper()], NAME_TO_SUIT[data["suit"]])
        except KeyError:
            raise ValueError(f"Invalid card: {data!r}")

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return {"rank": RANK_LABELS[self.rank], "suit": SUIT_NAMES[self.suit]}

    @property
    def short_str(self) -> str:
        """Short string like 'As', '10h'."""
        return f"{RANK_LABELS[self.rank]}{SUIT_CHARS[self.suit]}"

    def __repr__(self) -> str:
        return f"Card({self.short_str})"

    def __str__(self) -> str:
        return f"{RANK_LABELS[self.rank]}{SUIT_SYMBOLS[self.suit]}"


def create_deck() -> List[Card]:
    """Return the 52-card deck in suit-major, rank-ascending order."""
    return [Card(rank, suit) for suit in SUIT_ORDER for rank in Rank]


def shuffle(deck: Sequence[Card], rng: Optional[random.Random] = None) -> List[Card]:
    """Return a Fisher-Yates shuffled copy of the deck."""
    rng = rng or random
    shuffled = list(deck)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def compare_cards(a: Card, b: Card) -> int:
    """
    Total order over cards: higher rank wins, ties broken by suit
    (clubs < diamonds < hearts < spades).

    Returns:
        Negative if a < b, zero if equal, positive if a > b
    """
    if a.rank != b.rank:
        return int(a.rank) - int(b.rank)
    return int(a.suit) - int(b.suit)


def card_key(card: Card) -> Tuple[int, int]:
    """Sort key consistent with compare_cards."""
    return (int(card.rank), int(card.suit))


def draw(deck: List[Card], n: int = 1) -> List[Card]:
    """
    Remove and return n cards from the top of the deck.

    Raises:
        ValueError: If not enough cards remain.
    """
    if n > len(deck):
        raise ValueError(f"Cannot deal {n} cards, only {len(deck)} remain")
    dealt = deck[:n]
    del deck[:n]
    return dealt

