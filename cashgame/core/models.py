"""
Session data model: transactions, seated players, cashed-out snapshots and
join requests.

These are plain dataclasses with ``to_dict``/``from_dict`` so the session
aggregate can be persisted as JSON and read back unchanged.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from cashgame.core.card import Card
from cashgame.core.chips import ChipCounts, add_counts
from cashgame.core.money import format_money, money_sum, to_money
from cashgame.core.rules import JoinRequestStatus, TransactionKind


def _counts_to_dict(counts: Mapping[int, int]) -> Dict[str, int]:
    # JSON object keys are strings
    return {str(chip_id): count for chip_id, count in sorted(counts.items())}


def _counts_from_dict(data: Optional[Mapping[Any, Any]]) -> ChipCounts:
    return {int(chip_id): int(count) for chip_id, count in (data or {}).items()}


@dataclass(frozen=True)
class PlayerTransaction:
    """Money a player put into the session and the chips handed over for it."""
    id: int
    kind: TransactionKind
    amount: Decimal
    chips: ChipCounts = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.kind.value,
            "amount": format_money(self.amount),
            "chips": _counts_to_dict(self.chips),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PlayerTransaction:
        return cls(
            id=int(data["id"]),
            kind=TransactionKind(data["type"]),
            amount=to_money(data["amount"]),
            chips=_counts_from_dict(data.get("chips")),
        )


@dataclass
class SessionPlayer:
    """
    A player sitting in the session.

    Attributes:
        id: Unique identifier (for manually added players, the name)
        name: Display name
        transactions: Buy-ins and rebuys in order
        final_chip_counts: Chips counted at settlement
        seat: Seat number from 1, unset before the seating draw
        card: Card drawn during seating, for presentation only
    """
    id: str
    name: str
    transactions: List[PlayerTransaction] = field(default_factory=list)
    final_chip_counts: ChipCounts = field(default_factory=dict)
    seat: Optional[int] = None
    card: Optional[Card] = None

    @property
    def total_invested(self) -> Decimal:
        """Sum of all transaction amounts."""
        return money_sum(t.amount for t in self.transactions)

    @property
    def chips_received(self) -> ChipCounts:
        """All chips handed to this player across transactions."""
        return add_counts(*(t.chips for t in self.transactions))

    def next_transaction_id(self) -> int:
        return max((t.id for t in self.transactions), default=0) + 1

    def find_transaction(self, transaction_id: int) -> Optional[PlayerTransaction]:
        for transaction in self.transactions:
            if transaction.id == transaction_id:
                return transaction
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "transactions": [t.to_dict() for t in self.transactions],
            "final_chip_counts": _counts_to_dict(self.final_chip_counts),
            "seat": self.seat,
            "card": self.card.to_dict() if self.card else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SessionPlayer:
        card = data.get("card")
        return cls(
            id=str(data["id"]),
            name=data["name"],
            transactions=[PlayerTransaction.from_dict(t) for t in data.get("transactions", [])],
            final_chip_counts=_counts_from_dict(data.get("final_chip_counts")),
            seat=data.get("seat"),
            card=Card.from_dict(card) if card else None,
        )

    def __repr__(self) -> str:
        return f"SessionPlayer({self.id}, seat={self.seat}, invested={self.total_invested})"


@dataclass(frozen=True)
class CashedOutPlayer:
    """Snapshot of a player who left the session early."""
    id: str
    name: str
    transactions: tuple
    cashed_out_at: datetime
    amount_received: Decimal
    chip_counts: ChipCounts
    total_invested: Decimal

    @classmethod
    def from_player(
        cls,
        player: SessionPlayer,
        chip_counts: ChipCounts,
        amount_received: Decimal,
        cashed_out_at: datetime,
    ) -> CashedOutPlayer:
        return cls(
            id=player.id,
            name=player.name,
            transactions=tuple(player.transactions),
            cashed_out_at=cashed_out_at,
            amount_received=amount_received,
            chip_counts=dict(chip_counts),
            total_invested=player.total_invested,
        )

    @property
    def chips_received(self) -> ChipCounts:
        return add_counts(*(t.chips for t in self.transactions))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "transactions": [t.to_dict() for t in self.transactions],
            "cashed_out_at": self.cashed_out_at.isoformat(),
            "amount_received": format_money(self.amount_received),
            "chip_counts": _counts_to_dict(self.chip_counts),
            "total_invested": format_money(self.total_invested),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CashedOutPlayer:
        return cls(
            id=str(data["id"]),
            name=data["name"],
            transactions=tuple(PlayerTransaction.from_dict(t) for t in data.get("transactions", [])),
            cashed_out_at=datetime.fromisoformat(data["cashed_out_at"]),
            amount_received=to_money(data["amount_received"]),
            chip_counts=_counts_from_dict(data.get("chip_counts")),
            total_invested=to_money(data["total_invested"]),
        )


@dataclass(frozen=True)
class JoinRequest:
    """A user asking to be let into the session."""
    user_id: str
    user_name: str
    status: JoinRequestStatus = JoinRequestStatus.PENDING

    def with_status(self, status: JoinRequestStatus) -> JoinRequest:
        return replace(self, status=status)

    def to_dict(self) -> Dict[str, Any]:
        return {"user_id": self.user_id, "user_name": self.user_name, "status": self.status.value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> JoinRequest:
        return cls(
            user_id=str(data["user_id"]),
            user_name=data["user_name"],
            status=JoinRequestStatus(data.get("status", "pending")),
        )
