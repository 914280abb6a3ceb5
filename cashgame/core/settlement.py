"""
Settlement Reconciler.

At the end of a session every chip on the table is counted: each remaining
player's stack, the croupier's tips and the house rake. Together with what
early leavers were paid, the total has to match the money that came in.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from cashgame.core.chips import ChipCounts, ChipDenomination, add_counts, chip_value, normalize_counts
from cashgame.core.errors import UnbalancedSettlement
from cashgame.core.models import CashedOutPlayer, SessionPlayer
from cashgame.core.money import ZERO, approx_equal, format_money, money_sum


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayerSettlement:
    """Money in versus money out for one player."""
    player_id: str
    name: str
    total_invested: Decimal
    final_value: Decimal
    cashed_out: bool = False

    @property
    def balance(self) -> Decimal:
        return self.final_value - self.total_invested

    def to_dict(self) -> Dict[str, Any]:
        return {
            "player_id": self.player_id,
            "name": self.name,
            "total_invested": format_money(self.total_invested),
            "final_value": format_money(self.final_value),
            "balance": format_money(self.balance),
            "cashed_out": self.cashed_out,
        }


@dataclass(frozen=True)
class ChipInPlay:
    """
    Chip inventory for one denomination.

    ``in_play`` is what transactions handed out minus what early leavers
    returned; ``counted`` is what was counted at settlement. A non-zero
    ``discrepancy`` points at a data-entry error in the counts.
    """
    chip: ChipDenomination
    distributed: int
    cashed_out: int
    counted: int

    @property
    def in_play(self) -> int:
        return self.distributed - self.cashed_out

    @property
    def discrepancy(self) -> int:
        return self.counted - self.in_play

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chip_id": self.chip.id,
            "name": self.chip.name,
            "distributed": self.distributed,
            "cashed_out": self.cashed_out,
            "in_play": self.in_play,
            "counted": self.counted,
            "discrepancy": self.discrepancy,
        }


@dataclass(frozen=True)
class SettlementReport:
    """Full end-of-session reconciliation."""
    players: List[PlayerSettlement]
    cashed_out_players: List[PlayerSettlement]
    total_buy_in: Decimal
    total_settlement_value: Decimal
    tips_value: Decimal
    rake_value: Decimal
    chips_in_play: List[ChipInPlay]

    @property
    def difference(self) -> Decimal:
        """(settlement value + tips + rake) - buy-ins; zero when balanced."""
        return self.total_settlement_value + self.tips_value + self.rake_value - self.total_buy_in

    @property
    def is_balanced(self) -> bool:
        return approx_equal(self.difference, ZERO)

    @property
    def chip_counts_match(self) -> bool:
        return all(c.discrepancy == 0 for c in self.chips_in_play)

    def raise_if_unbalanced(self) -> None:
        if not self.is_balanced:
            raise UnbalancedSettlement(
                f"Settlement is off by {format_money(self.difference)}",
                difference=self.difference,
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "players": [p.to_dict() for p in self.players],
            "cashed_out_players": [p.to_dict() for p in self.cashed_out_players],
            "total_buy_in": format_money(self.total_buy_in),
            "total_settlement_value": format_money(self.total_settlement_value),
            "tips_value": format_money(self.tips_value),
            "rake_value": format_money(self.rake_value),
            "difference": format_money(self.difference),
            "is_balanced": self.is_balanced,
            "chips_in_play": [c.to_dict() for c in self.chips_in_play],
            "chip_counts_match": self.chip_counts_match,
        }


def player_position(
    denominations: Sequence[ChipDenomination],
    player: SessionPlayer,
    chip_counts: Optional[Mapping[int, int]] = None,
) -> PlayerSettlement:
    """
    Invested, current value and balance for one player.

    Uses ``chip_counts`` when given (a player checking their own stack),
    otherwise the player's recorded final chip counts.
    """
    counts = player.final_chip_counts if chip_counts is None else chip_counts
    return PlayerSettlement(
        player_id=player.id,
        name=player.name,
        total_invested=player.total_invested,
        final_value=chip_value(counts, denominations),
    )


def table_inventory(
    denominations: Sequence[ChipDenomination],
    players: Sequence[SessionPlayer],
) -> List[Dict[str, Any]]:
    """Chips handed to the active players, per denomination, with their value."""
    totals = normalize_counts(add_counts(*(p.chips_received for p in players)), denominations)
    by_id = {d.id: d for d in denominations}
    return [
        {
            "chip_id": chip_id,
            "count": count,
            "value": format_money(by_id[chip_id].value * count),
        }
        for chip_id, count in sorted(totals.items(), key=lambda item: by_id[item[0]].value)
    ]


def reconcile(
    denominations: Sequence[ChipDenomination],
    players: Sequence[SessionPlayer],
    cashed_out_players: Sequence[CashedOutPlayer] = (),
    tips: Optional[Mapping[int, int]] = None,
    rake: Optional[Mapping[int, int]] = None,
) -> SettlementReport:
    """
    Reconcile the session.

    Args:
        denominations: Chip set of the session
        players: Active players, with final chip counts filled in
        cashed_out_players: Players who left early
        tips: Chips counted as croupier tips
        rake: Chips counted as house rake

    Returns:
        SettlementReport; check ``is_balanced`` or call ``raise_if_unbalanced``
    """
    tips_counts = normalize_counts(tips, denominations)
    rake_counts = normalize_counts(rake, denominations)

    active = [player_position(denominations, p) for p in players]
    left = [
        PlayerSettlement(
            player_id=p.id,
            name=p.name,
            total_invested=p.total_invested,
            final_value=p.amount_received,
            cashed_out=True,
        )
        for p in cashed_out_players
    ]

    distributed = add_counts(
        *(p.chips_received for p in players),
        *(p.chips_received for p in cashed_out_players),
    )
    returned = add_counts(*(p.chip_counts for p in cashed_out_players))
    counted = add_counts(*(p.final_chip_counts for p in players), tips_counts, rake_counts)
    chips_in_play = [
        ChipInPlay(
            chip=chip,
            distributed=distributed.get(chip.id, 0),
            cashed_out=returned.get(chip.id, 0),
            counted=counted.get(chip.id, 0),
        )
        for chip in sorted(denominations, key=lambda d: d.value)
    ]

    report = SettlementReport(
        players=active,
        cashed_out_players=left,
        total_buy_in=money_sum(p.total_invested for p in active + left),
        total_settlement_value=money_sum(p.final_value for p in active + left),
        tips_value=chip_value(tips_counts, denominations),
        rake_value=chip_value(rake_counts, denominations),
        chips_in_play=chips_in_play,
    )

    if report.is_balanced:
        logger.info(f"Settlement balanced at {format_money(report.total_buy_in)}")
    else:
        logger.warning(f"Settlement off by {format_money(report.difference)}")
    return report
