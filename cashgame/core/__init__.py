"""
CashGame Core - Pure Python cash game session engine.

This module contains all session and hand logic without any network dependencies.
"""

from cashgame.core.card import Card, Rank, Suit, compare_cards, create_deck, shuffle
from cashgame.core.chips import ChipDenomination, allocate_chips, chip_value
from cashgame.core.game import (
    HandState, Pot, advance_phase, apply_action, award_pot, award_pots,
    collect_bets, is_betting_round_over, start_hand,
)
from cashgame.core.models import CashedOutPlayer, PlayerTransaction, SessionPlayer
from cashgame.core.rules import ActionType, HandPhase, TransactionKind
from cashgame.core.seating import resolve_seating
from cashgame.core.session import CashGame
from cashgame.core.settlement import reconcile

__all__ = [
    "Card",
    "Rank",
    "Suit",
    "compare_cards",
    "create_deck",
    "shuffle",
    "ChipDenomination",
    "allocate_chips",
    "chip_value",
    "HandState",
    "Pot",
    "advance_phase",
    "apply_action",
    "award_pot",
    "award_pots",
    "collect_bets",
    "is_betting_round_over",
    "start_hand",
    "CashedOutPlayer",
    "PlayerTransaction",
    "SessionPlayer",
    "ActionType",
    "HandPhase",
    "TransactionKind",
    "resolve_seating",
    "CashGame",
    "reconcile",
]
