"""
Cash Game Rules and Constants.

This module defines the table policy used by the engine:

1. Blinds: small blind is the first eligible seat after the dealer, big
   blind the next one, and the first player to act preflop sits after the
   big blind. A player short of the blind posts what they have and is all-in.

2. Betting: a bet or raise names the player's new total for the round and
   must exceed the current minimum-raise-to amount.

3. Seats: a table has at most 10 seats, numbered from 1. After the seating
   draw the dealer occupies seat 1.
"""

from enum import Enum
from dataclasses import dataclass
from decimal import Decimal

from cashgame.core.money import Number, to_money


class HandPhase(Enum):
    """Phases of a live hand."""
    PRE_DEAL = "PRE_DEAL"    # Placeholder, never reached by the live machine
    PRE_FLOP = "PRE_FLOP"    # Hole cards dealt, blinds posted
    FLOP = "FLOP"            # 3 community cards
    TURN = "TURN"            # 4th community card
    RIVER = "RIVER"          # 5th community card
    SHOWDOWN = "SHOWDOWN"    # Waiting for the declared winner


# Phase that follows each betting phase
NEXT_PHASE = {
    HandPhase.PRE_FLOP: HandPhase.FLOP,
    HandPhase.FLOP: HandPhase.TURN,
    HandPhase.TURN: HandPhase.RIVER,
    HandPhase.RIVER: HandPhase.SHOWDOWN,
}


class ActionType(Enum):
    """Possible player actions."""
    FOLD = "FOLD"
    CHECK_OR_CALL = "CHECK_OR_CALL"
    BET_OR_RAISE = "BET_OR_RAISE"
    ALL_IN = "ALL_IN"


class TransactionKind(Enum):
    """How money entered the session."""
    BUY_IN = "buy-in"
    REBUY = "rebuy"
    ADD_ON = "add-on"
    ADMIN_JOIN = "admin-join"


class JoinRequestStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


@dataclass(frozen=True)
class BlindStructure:
    """Blind amounts for a hand."""
    small_blind: Decimal
    big_blind: Decimal

    @classmethod
    def of(cls, small_blind: Number, big_blind: Number) -> "BlindStructure":
        small = to_money(small_blind)
        big = to_money(big_blind)
        if small <= 0 or big <= 0:
            raise ValueError("Blinds must be positive")
        if small > big:
            raise ValueError("Small blind cannot exceed big blind")
        return cls(small, big)


# Default table settings
DEFAULT_SMALL_BLIND = Decimal("1.00")
DEFAULT_BIG_BLIND = Decimal("2.00")
DEFAULT_BLINDS = BlindStructure(DEFAULT_SMALL_BLIND, DEFAULT_BIG_BLIND)
MIN_PLAYERS = 2
MAX_SEATS = 10

# Cards per phase
HOLE_CARDS = 2
FLOP_CARDS = 3
TURN_CARDS = 1
RIVER_CARDS = 1

CARDS_FOR_PHASE = {
    HandPhase.FLOP: FLOP_CARDS,
    HandPhase.TURN: TURN_CARDS,
    HandPhase.RIVER: RIVER_CARDS,
}
