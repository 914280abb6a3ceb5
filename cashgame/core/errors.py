"""
Error kinds raised by the cash game engine.

Every operation either returns its new value or raises one of these before
touching the caller's state. ``kind`` is a stable machine-readable name the
HTTP layer puts in its error bodies.
"""


class CashGameError(Exception):
    """Base class for all engine failures."""

    kind = "CashGameError"

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind)
        self.message = message or self.kind


class InsufficientPlayers(CashGameError):
    """Fewer than 2 eligible players for seating or a hand."""
    kind = "InsufficientPlayers"


class InvalidBet(CashGameError):
    """Bet does not exceed the current minimum or exceeds the stack."""
    kind = "InvalidBet"


class UndistributableAmount(CashGameError):
    """No combination of the available chips values to the amount."""
    kind = "UndistributableAmount"


class UnbalancedSettlement(CashGameError):
    """Settlement difference is outside the tolerance."""
    kind = "UnbalancedSettlement"

    def __init__(self, message: str = "", difference=None):
        super().__init__(message)
        self.difference = difference


class ChipSetLocked(CashGameError):
    """Denominations cannot change once anyone has bought in."""
    kind = "ChipSetLocked"


class StateConflict(CashGameError):
    """The operation does not fit the current state (wrong actor, wrong phase...)."""
    kind = "StateConflict"


class ChipCountMismatch(CashGameError):
    """A chip vector does not value to the transaction amount."""
    kind = "ChipCountMismatch"


class TableFull(CashGameError):
    """No free seat left at the table."""
    kind = "TableFull"


class PlayerNotFound(CashGameError):
    kind = "PlayerNotFound"
