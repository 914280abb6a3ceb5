"""
CashGame - Live Cash Game Session Manager

A poker cash-table session engine with:
- Pure Python session, chip and hand logic (no hand ranking: the table declares winners)
- Buy-in chip allocation and end-of-session settlement
- FastAPI HTTP server over an in-memory session store

Usage:
    from cashgame.core import CashGame, allocate_chips, start_hand, reconcile
"""

__version__ = "0.1.0"

from cashgame.core.chips import ChipDenomination, allocate_chips
from cashgame.core.game import HandState, start_hand
from cashgame.core.session import CashGame
from cashgame.core.settlement import reconcile

__all__ = [
    "ChipDenomination",
    "allocate_chips",
    "HandState",
    "start_hand",
    "CashGame",
    "reconcile",
    "__version__",
]
