"""
Per-hand player state.

Tracks, for one dealt hand:
- Remaining stack (stack at hand start minus everything committed)
- Bet in the current betting round
- Hole cards
- Acted / folded / all-in flags
"""

from __future__ import annotations
from decimal import Decimal
from typing import List, Optional, Dict, Any
from dataclasses import dataclass, field

from cashgame.core.card import Card
from cashgame.core.money import ZERO, format_money, to_money


@dataclass
class PlayerHandState:
    """
    A player in the current hand.

    Attributes:
        id: Session player id
        name: Display name
        seat: Seat number at the table
        stack: Remaining stack
        bet: Amount committed in the current betting round
        hole_cards: The player's private cards (2 cards)
        has_acted: Acted since the round started
        is_folded: Has folded this hand
        is_all_in: Has no stack left to act with
    """
    id: str
    name: str
    seat: int
    stack: Decimal
    bet: Decimal = ZERO
    hole_cards: List[Card] = field(default_factory=list)
    has_acted: bool = False
    is_folded: bool = False
    is_all_in: bool = False

    def commit(self, amount: Decimal) -> Decimal:
        """
        Move chips from the stack to the round bet.

        Args:
            amount: Amount to commit

        Returns:
            Actual amount committed (capped at the stack)
        """
        if amount <= 0:
            return ZERO

        actual = min(amount, self.stack)
        self.stack -= actual
        self.bet += actual

        if self.stack == 0:
            self.is_all_in = True

        return actual

    def fold(self) -> None:
        self.is_folded = True

    def reset_for_new_round(self) -> None:
        """Reset for the next street (bets are already collected)."""
        self.bet = ZERO
        self.has_acted = False

    @property
    def is_in_hand(self) -> bool:
        """Still contesting the pot."""
        return not self.is_folded

    @property
    def can_act(self) -> bool:
        """Can still take betting actions."""
        return not self.is_folded and not self.is_all_in

    def to_dict(self, hide_cards: bool = False) -> Dict[str, Any]:
        """
        Convert to dictionary for JSON serialization.

        Args:
            hide_cards: If True, don't include hole cards
        """
        result = {
            "id": self.id,
            "name": self.name,
            "seat": self.seat,
            "stack": format_money(self.stack),
            "bet": format_money(self.bet),
            "has_acted": self.has_acted,
            "is_folded": self.is_folded,
            "is_all_in": self.is_all_in,
        }

        if not hide_cards:
            result["hole_cards"] = [card.to_dict() for card in self.hole_cards]

        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PlayerHandState:
        return cls(
            id=str(data["id"]),
            name=data["name"],
            seat=int(data["seat"]),
            stack=to_money(data["stack"]),
            bet=to_money(data.get("bet", "0")),
            hole_cards=[Card.from_dict(c) for c in data.get("hole_cards", [])],
            has_acted=bool(data.get("has_acted", False)),
            is_folded=bool(data.get("is_folded", False)),
            is_all_in=bool(data.get("is_all_in", False)),
        )

    def __repr__(self) -> str:
        return (
            f"PlayerHandState({self.id}, stack={self.stack}, bet={self.bet}, "
            f"folded={self.is_folded}, all_in={self.is_all_in})"
        )


def find_player(players: List[PlayerHandState], player_id: Optional[str]) -> Optional[PlayerHandState]:
    """Get a hand player by id."""
    for player in players:
        if player.id == player_id:
            return player
    return None
