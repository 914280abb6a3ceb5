"""
Pytest configuration and shared fixtures for CashGame tests.
"""

import random
from decimal import Decimal

import pytest

from cashgame.core.chips import DEFAULT_CHIP_SET, make_denomination
from cashgame.core.game import start_hand
from cashgame.core.models import PlayerTransaction, SessionPlayer
from cashgame.core.rules import TransactionKind


def make_player(player_id, amount="100", seat=None, chips=None):
    """Build a session player with a single buy-in."""
    transaction = PlayerTransaction(
        id=1,
        kind=TransactionKind.BUY_IN,
        amount=Decimal(amount),
        chips=chips or {},
    )
    return SessionPlayer(id=player_id, name=player_id, transactions=[transaction], seat=seat)


@pytest.fixture
def rng():
    """Seeded random source so shuffles are repeatable."""
    return random.Random(42)


@pytest.fixture
def denominations():
    """The default chip set: 0.25, 0.50, 1 and 10."""
    return list(DEFAULT_CHIP_SET)


@pytest.fixture
def odd_denominations():
    """Chips of 3 and 5, where greedy misses some amounts."""
    return [make_denomination(1, 3, name="Three"), make_denomination(2, 5, name="Five")]


@pytest.fixture
def three_players():
    """Players A, B, C in seats 1-3 with 100 each."""
    return [make_player("A", seat=1), make_player("B", seat=2), make_player("C", seat=3)]


@pytest.fixture
def heads_up_players():
    return [make_player("A", seat=1), make_player("B", seat=2)]


@pytest.fixture
def three_player_hand(three_players, rng):
    """
    Fresh 3-handed hand with blinds 1/2 and A as the previous dealer.

    Dealer B, small blind C, big blind A; B acts first.
    """
    return start_hand(three_players, "A", rng=rng)
