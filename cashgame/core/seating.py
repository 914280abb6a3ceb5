"""
Seating draw.

Each player is dealt one card from a fresh shuffled deck; the highest card
takes the button and seat 1, and the rest follow in their original order.
"""

from __future__ import annotations
import logging
import random
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from cashgame.core.card import card_key, create_deck, shuffle
from cashgame.core.errors import InsufficientPlayers
from cashgame.core.models import SessionPlayer
from cashgame.core.rules import MIN_PLAYERS


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeatingResult:
    """
    Outcome of the seating draw.

    Attributes:
        players_with_cards: Input order, each annotated with the drawn card
        seated_players: Same players re-seated from the dealer, sorted by seat
        dealer: The player holding the highest card
    """
    players_with_cards: List[SessionPlayer]
    seated_players: List[SessionPlayer]
    dealer: SessionPlayer


def resolve_seating(
    players: Sequence[SessionPlayer],
    rng: Optional[random.Random] = None,
) -> SeatingResult:
    """
    Draw cards to decide seats and the first dealer.

    Raises:
        InsufficientPlayers: With fewer than 2 players.
    """
    if len(players) < MIN_PLAYERS:
        raise InsufficientPlayers(
            f"Need at least {MIN_PLAYERS} players to draw for seats, got {len(players)}"
        )

    deck = shuffle(create_deck(), rng)
    with_cards = [replace(player, card=deck[i]) for i, player in enumerate(players)]

    dealer_index = max(range(len(with_cards)), key=lambda i: card_key(with_cards[i].card))
    count = len(with_cards)
    seated = [
        replace(with_cards[(dealer_index + offset) % count], seat=offset + 1)
        for offset in range(count)
    ]

    dealer = with_cards[dealer_index]
    logger.info(f"Seating resolved: dealer {dealer.id} with {dealer.card}")
    return SeatingResult(players_with_cards=with_cards, seated_players=seated, dealer=dealer)
