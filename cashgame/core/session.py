"""
Cash game session aggregate.

``CashGame`` is the whole persisted state of one table: the chip set, the
seated players with their transactions, the players who left, pending join
requests, the dealer and croupier, and at most one live hand.

The functions in this module are the session's operations. Each one takes the
current ``CashGame`` and returns a new one (plus any result value), leaving
the input untouched; callers persist the returned value. Serializing updates
against the store is the caller's job.
"""

from __future__ import annotations
import copy
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from cashgame.core.chips import (
    DEFAULT_CHIP_SET, ChipCounts, ChipDenomination,
    allocate_chips, chip_value, make_denomination, normalize_counts,
)
from cashgame.core.errors import (
    ChipCountMismatch, ChipSetLocked, PlayerNotFound, StateConflict, TableFull,
)
from cashgame.core.game import (
    ActionResult, HandState, PotAward,
    advance_phase, apply_action, award_pot, award_pots, start_hand,
)
from cashgame.core.models import CashedOutPlayer, JoinRequest, PlayerTransaction, SessionPlayer
from cashgame.core.money import Number, approx_equal, format_money, to_money
from cashgame.core.rules import (
    ActionType, BlindStructure, JoinRequestStatus, TransactionKind,
    DEFAULT_BLINDS, MAX_SEATS,
)
from cashgame.core.seating import SeatingResult, resolve_seating
from cashgame.core.settlement import PlayerSettlement, SettlementReport, player_position, reconcile


logger = logging.getLogger(__name__)


@dataclass
class CashGame:
    """
    One cash game session.

    Attributes:
        denominations: Chip set in use
        players: Active players
        cashed_out_players: Players who left early
        join_requests: Requests to join, with their status
        positions_finalized: Seating draw done; late joiners get free seats
        dealer_id: Current dealer
        croupier_id: User currently driving hands, if any
        hand_state: Live hand, if any
        blinds: Blinds used for new hands
    """
    denominations: List[ChipDenomination] = field(default_factory=lambda: list(DEFAULT_CHIP_SET))
    players: List[SessionPlayer] = field(default_factory=list)
    cashed_out_players: List[CashedOutPlayer] = field(default_factory=list)
    join_requests: List[JoinRequest] = field(default_factory=list)
    positions_finalized: bool = False
    dealer_id: Optional[str] = None
    croupier_id: Optional[str] = None
    hand_state: Optional[HandState] = None
    blinds: BlindStructure = DEFAULT_BLINDS

    @property
    def chip_set_locked(self) -> bool:
        """The chip set is frozen once anyone has bought in."""
        return bool(self.players or self.cashed_out_players)

    def find_player(self, player_id: str) -> Optional[SessionPlayer]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def get_player(self, player_id: str) -> SessionPlayer:
        player = self.find_player(player_id)
        if player is None:
            raise PlayerNotFound(f"No player {player_id} at this table")
        return player

    def to_dict(self, hide_cards: bool = False, viewer_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Convert to dictionary for JSON serialization.

        The full dict round-trips through ``from_dict``. With ``hide_cards``
        the deck is left out and hole cards are only shown to the player
        holding them, or all of them to the croupier.
        """
        hand = None
        if self.hand_state is not None:
            hand = self.hand_state.to_dict(hide_cards=hide_cards, viewer_id=viewer_id)
            if hide_cards and viewer_id is not None and viewer_id == self.croupier_id:
                hand["players"] = [p.to_dict() for p in self.hand_state.players]
        return {
            "denominations": [d.to_dict() for d in self.denominations],
            "players": [p.to_dict() for p in self.players],
            "cashed_out_players": [p.to_dict() for p in self.cashed_out_players],
            "join_requests": [r.to_dict() for r in self.join_requests],
            "positions_finalized": self.positions_finalized,
            "dealer_id": self.dealer_id,
            "croupier_id": self.croupier_id,
            "hand_state": hand,
            "blinds": {
                "small_blind": format_money(self.blinds.small_blind),
                "big_blind": format_money(self.blinds.big_blind),
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CashGame:
        blinds = data.get("blinds")
        hand_state = data.get("hand_state")
        return cls(
            denominations=[ChipDenomination.from_dict(d) for d in data.get("denominations", [])],
            players=[SessionPlayer.from_dict(p) for p in data.get("players", [])],
            cashed_out_players=[CashedOutPlayer.from_dict(p) for p in data.get("cashed_out_players", [])],
            join_requests=[JoinRequest.from_dict(r) for r in data.get("join_requests", [])],
            positions_finalized=bool(data.get("positions_finalized", False)),
            dealer_id=data.get("dealer_id"),
            croupier_id=data.get("croupier_id"),
            hand_state=HandState.from_dict(hand_state) if hand_state else None,
            blinds=BlindStructure.of(blinds["small_blind"], blinds["big_blind"]) if blinds else DEFAULT_BLINDS,
        )


def _copy(game: CashGame) -> CashGame:
    return copy.deepcopy(game)


# ============= Chip set =============

def add_denomination(game: CashGame, name: str, value: Number, color: str = "#ffffff") -> CashGame:
    """Add a chip; its id is the highest existing id + 1."""
    if not name:
        raise ValueError("Chip name is required")
    new_game = _copy(game)
    chip_id = max((d.id for d in new_game.denominations), default=0) + 1
    new_game.denominations.append(make_denomination(chip_id, value, color, name))
    return new_game


def remove_denomination(game: CashGame, chip_id: int) -> CashGame:
    if game.chip_set_locked:
        raise ChipSetLocked("Cannot remove chips while the game is in progress")
    new_game = _copy(game)
    new_game.denominations = [d for d in new_game.denominations if d.id != chip_id]
    return new_game


def reset_denominations(game: CashGame) -> CashGame:
    """Restore the default chip set."""
    if game.chip_set_locked:
        raise ChipSetLocked("Cannot reset chips while the game is in progress")
    new_game = _copy(game)
    new_game.denominations = list(DEFAULT_CHIP_SET)
    return new_game


def set_blinds(game: CashGame, small_blind: Number, big_blind: Number) -> CashGame:
    new_game = _copy(game)
    new_game.blinds = BlindStructure.of(small_blind, big_blind)
    return new_game


def suggest_chips(game: CashGame, amount: Number) -> ChipCounts:
    """Chip distribution the bank would hand out for this amount."""
    return allocate_chips(amount, game.denominations)


# ============= Transactions =============

def _make_transaction(
    game: CashGame,
    transaction_id: int,
    kind: TransactionKind,
    amount: Number,
    chips: Optional[Mapping[Any, int]],
) -> PlayerTransaction:
    value = to_money(amount)
    if value <= 0:
        raise ValueError("Transaction amount must be positive")

    if chips is None:
        counts = allocate_chips(value, game.denominations)
    else:
        counts = normalize_counts(chips, game.denominations)
        distributed = chip_value(counts, game.denominations)
        if not approx_equal(distributed, value):
            raise ChipCountMismatch(
                f"Chips value {format_money(distributed)} but the transaction is {format_money(value)}"
            )
    return PlayerTransaction(id=transaction_id, kind=kind, amount=value, chips=counts)


def _free_seat(game: CashGame) -> Optional[int]:
    """Lowest free seat once positions are set; unset before the draw."""
    if not game.positions_finalized:
        return None
    occupied = {p.seat for p in game.players}
    for seat in range(1, MAX_SEATS + 1):
        if seat not in occupied:
            return seat
    raise TableFull("No seats available")


def _seat_new_player(
    game: CashGame,
    player_id: str,
    name: str,
    kind: TransactionKind,
    amount: Number,
    chips: Optional[Mapping[Any, int]],
) -> CashGame:
    if game.find_player(player_id) is not None:
        raise StateConflict(f"Player {player_id} is already at the table")

    new_game = _copy(game)
    transaction = _make_transaction(new_game, 1, kind, amount, chips)
    player = SessionPlayer(id=player_id, name=name, transactions=[transaction], seat=_free_seat(new_game))
    new_game.players.append(player)
    if new_game.positions_finalized:
        new_game.players.sort(key=lambda p: p.seat if p.seat is not None else MAX_SEATS + 1)

    logger.info(f"{name} joined with {format_money(transaction.amount)} (seat {player.seat})")
    return new_game


def buy_in(
    game: CashGame,
    name: str,
    amount: Number,
    chips: Optional[Mapping[Any, int]] = None,
    player_id: Optional[str] = None,
) -> CashGame:
    """
    Add a player with an initial buy-in.

    Manually added players use their name as id.

    Raises:
        StateConflict: If the player is already seated.
        ChipCountMismatch: If ``chips`` does not value to ``amount``.
        UndistributableAmount: If no chips were given and none fit the amount.
        TableFull: If positions are set and every seat is taken.
    """
    if not name:
        raise ValueError("Player name is required")
    return _seat_new_player(game, player_id or name, name, TransactionKind.BUY_IN, amount, chips)


def admin_join(
    game: CashGame,
    user_id: str,
    name: str,
    amount: Number,
    chips: Optional[Mapping[Any, int]] = None,
) -> CashGame:
    """The session owner sits down as a player."""
    return _seat_new_player(game, user_id, name, TransactionKind.ADMIN_JOIN, amount, chips)


def rebuy(
    game: CashGame,
    player_id: str,
    amount: Number,
    chips: Optional[Mapping[Any, int]] = None,
    kind: TransactionKind = TransactionKind.REBUY,
) -> CashGame:
    """Record a rebuy or add-on for a seated player."""
    if kind not in (TransactionKind.REBUY, TransactionKind.ADD_ON):
        raise ValueError(f"Not a rebuy kind: {kind.value}")
    new_game = _copy(game)
    player = new_game.get_player(player_id)
    transaction = _make_transaction(new_game, player.next_transaction_id(), kind, amount, chips)
    player.transactions = player.transactions + [transaction]
    logger.info(f"{player.name}: {kind.value} of {format_money(transaction.amount)}")
    return new_game


def edit_transaction(
    game: CashGame,
    player_id: str,
    transaction_id: int,
    amount: Number,
    chips: Mapping[Any, int],
) -> CashGame:
    """Replace a transaction's amount and chips; the chips are required."""
    new_game = _copy(game)
    player = new_game.get_player(player_id)
    existing = player.find_transaction(transaction_id)
    if existing is None:
        raise StateConflict(f"Player {player_id} has no transaction {transaction_id}")
    updated = _make_transaction(new_game, transaction_id, existing.kind, amount, chips)
    player.transactions = [updated if t.id == transaction_id else t for t in player.transactions]
    return new_game


def delete_transaction(game: CashGame, player_id: str, transaction_id: int) -> CashGame:
    new_game = _copy(game)
    player = new_game.get_player(player_id)
    if player.find_transaction(transaction_id) is None:
        raise StateConflict(f"Player {player_id} has no transaction {transaction_id}")
    player.transactions = [t for t in player.transactions if t.id != transaction_id]
    return new_game


# ============= Join requests =============

def request_join(game: CashGame, user_id: str, user_name: str) -> CashGame:
    if game.find_player(user_id) is not None:
        raise StateConflict(f"{user_name} is already playing")
    if any(r.user_id == user_id and r.status == JoinRequestStatus.PENDING for r in game.join_requests):
        raise StateConflict(f"{user_name} already has a pending request")
    new_game = _copy(game)
    new_game.join_requests = [r for r in new_game.join_requests if r.user_id != user_id]
    new_game.join_requests.append(JoinRequest(user_id, user_name))
    return new_game


def _pending_request(game: CashGame, user_id: str) -> JoinRequest:
    for request in game.join_requests:
        if request.user_id == user_id and request.status == JoinRequestStatus.PENDING:
            return request
    raise StateConflict(f"No pending request from {user_id}")


def _set_request_status(game: CashGame, user_id: str, status: JoinRequestStatus) -> None:
    game.join_requests = [
        r.with_status(status) if r.user_id == user_id else r for r in game.join_requests
    ]


def approve_join(
    game: CashGame,
    user_id: str,
    amount: Number,
    chips: Optional[Mapping[Any, int]] = None,
) -> CashGame:
    """Seat a requesting user with a buy-in and mark the request approved."""
    request = _pending_request(game, user_id)
    new_game = _seat_new_player(game, user_id, request.user_name, TransactionKind.BUY_IN, amount, chips)
    _set_request_status(new_game, user_id, JoinRequestStatus.APPROVED)
    return new_game


def decline_join(game: CashGame, user_id: str) -> CashGame:
    _pending_request(game, user_id)
    new_game = _copy(game)
    _set_request_status(new_game, user_id, JoinRequestStatus.DECLINED)
    return new_game


# ============= Leaving the table =============

def _ensure_not_in_hand(game: CashGame, player_id: str) -> None:
    if game.hand_state is not None and game.hand_state.get_player(player_id) is not None:
        raise StateConflict(f"Player {player_id} is in the current hand")


def remove_player(game: CashGame, player_id: str) -> CashGame:
    game.get_player(player_id)
    _ensure_not_in_hand(game, player_id)
    new_game = _copy(game)
    new_game.players = [p for p in new_game.players if p.id != player_id]
    return new_game


def cash_out(
    game: CashGame,
    player_id: str,
    chip_counts: Mapping[Any, int],
    at: Optional[datetime] = None,
) -> CashGame:
    """
    Let a player leave early, paying out the value of the chips they return.
    """
    game.get_player(player_id)
    _ensure_not_in_hand(game, player_id)

    new_game = _copy(game)
    player = new_game.get_player(player_id)
    counts = normalize_counts(chip_counts, new_game.denominations)
    received = chip_value(counts, new_game.denominations)
    snapshot = CashedOutPlayer.from_player(player, counts, received, at or datetime.now(timezone.utc))

    new_game.cashed_out_players.append(snapshot)
    new_game.players = [p for p in new_game.players if p.id != player_id]
    logger.info(f"{player.name} cashed out {format_money(received)} (invested {format_money(snapshot.total_invested)})")
    return new_game


def set_final_chip_counts(game: CashGame, player_id: str, chip_counts: Mapping[Any, int]) -> CashGame:
    new_game = _copy(game)
    player = new_game.get_player(player_id)
    player.final_chip_counts = normalize_counts(chip_counts, new_game.denominations)
    return new_game


# ============= Seating and croupier =============

def draw_seats(game: CashGame, rng: Optional[random.Random] = None) -> Tuple[CashGame, SeatingResult]:
    """
    Run the seating draw and record seats, dealer and finalized positions.

    Returns:
        (new game, seating result for presentation)
    """
    if game.hand_state is not None:
        raise StateConflict("Cannot redraw seats during a hand")
    result = resolve_seating(game.players, rng)
    new_game = _copy(game)
    new_game.players = [copy.deepcopy(p) for p in result.seated_players]
    new_game.dealer_id = result.dealer.id
    new_game.positions_finalized = True
    return new_game, result


def claim_croupier(game: CashGame, user_id: str) -> CashGame:
    """Take the single croupier seat."""
    if game.croupier_id is not None and game.croupier_id != user_id:
        raise StateConflict(f"Croupier seat is held by {game.croupier_id}")
    new_game = _copy(game)
    new_game.croupier_id = user_id
    return new_game


def release_croupier(game: CashGame, user_id: str) -> CashGame:
    if game.croupier_id != user_id:
        raise StateConflict(f"{user_id} does not hold the croupier seat")
    new_game = _copy(game)
    new_game.croupier_id = None
    return new_game


# ============= Hands =============

def _require_hand(game: CashGame) -> HandState:
    if game.hand_state is None:
        raise StateConflict("No hand in progress")
    return game.hand_state


def begin_hand(
    game: CashGame,
    rng: Optional[random.Random] = None,
    stacks: Optional[Mapping[str, Number]] = None,
) -> CashGame:
    """Deal a new hand and move the button."""
    if game.hand_state is not None:
        raise StateConflict("A hand is already in progress")
    hand = start_hand(game.players, game.dealer_id, game.blinds, rng=rng, stacks=stacks)
    new_game = _copy(game)
    new_game.hand_state = hand
    new_game.dealer_id = hand.dealer_id
    return new_game


def play_action(
    game: CashGame,
    player_id: str,
    action_type: ActionType,
    amount: Optional[Number] = None,
) -> Tuple[CashGame, ActionResult]:
    result = apply_action(_require_hand(game), player_id, action_type, amount)
    new_game = _copy(game)
    new_game.hand_state = result.state
    return new_game, result


def next_phase(game: CashGame) -> CashGame:
    hand = advance_phase(_require_hand(game))
    new_game = _copy(game)
    new_game.hand_state = hand
    return new_game


def declare_winner(
    game: CashGame,
    winner_id: Optional[str] = None,
    winners_by_pot: Optional[Mapping[int, str]] = None,
) -> Tuple[CashGame, PotAward]:
    """End the hand, paying the pot to one winner or each pot to its own winner."""
    hand = _require_hand(game)
    if winners_by_pot:
        award = award_pots(hand, winners_by_pot)
    elif winner_id is not None:
        award = award_pot(hand, winner_id)
    else:
        raise StateConflict("No winner declared")
    new_game = _copy(game)
    new_game.hand_state = None
    return new_game, award


# ============= Settlement =============

def settle(
    game: CashGame,
    tips: Optional[Mapping[Any, int]] = None,
    rake: Optional[Mapping[Any, int]] = None,
) -> SettlementReport:
    return reconcile(game.denominations, game.players, game.cashed_out_players, tips, rake)


def position(
    game: CashGame,
    player_id: str,
    chip_counts: Optional[Mapping[Any, int]] = None,
) -> PlayerSettlement:
    """A player's running balance for a self-reported chip count; nothing is stored."""
    player = game.get_player(player_id)
    counts = None if chip_counts is None else normalize_counts(chip_counts, game.denominations)
    return player_position(game.denominations, player, counts)


def close_session(
    game: CashGame,
    tips: Optional[Mapping[Any, int]] = None,
    rake: Optional[Mapping[Any, int]] = None,
    force: bool = False,
) -> SettlementReport:
    """
    Final settlement before the session is discarded.

    Raises:
        StateConflict: If a hand is still in progress.
        UnbalancedSettlement: If the books do not balance and ``force`` is False.
    """
    if game.hand_state is not None:
        raise StateConflict("Finish the current hand before closing the session")
    report = settle(game, tips, rake)
    if not force:
        report.raise_if_unbalanced()
    elif not report.is_balanced:
        logger.warning(f"Session force-closed {format_money(report.difference)} off balance")
    return report
