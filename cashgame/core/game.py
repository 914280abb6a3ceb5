"""
Hand State Machine.

This module drives one live hand at a cash table:
- Dealer rotation, blind posting and hole-card dealing
- Player actions (fold, check-or-call, bet-or-raise, all-in)
- End-of-round detection and bet collection into main/side pots
- Phase advancement (pre-flop, flop, turn, river, showdown)
- Awarding the pot to the winner declared by the table

Every function takes a ``HandState`` and returns a new one; the input is
never modified, so a rejected action leaves the caller's state untouched.
There is no hand ranking here: the croupier declares the winner.
"""

from __future__ import annotations
import copy
import logging
import random
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from cashgame.core.card import Card, create_deck, draw, shuffle
from cashgame.core.errors import InsufficientPlayers, InvalidBet, StateConflict
from cashgame.core.models import SessionPlayer
from cashgame.core.money import CENT, ZERO, Number, format_money, money_sum, to_money
from cashgame.core.player import PlayerHandState, find_player
from cashgame.core.rules import (
    ActionType, BlindStructure, HandPhase,
    CARDS_FOR_PHASE, DEFAULT_BLINDS, HOLE_CARDS, MIN_PLAYERS, NEXT_PHASE,
)


logger = logging.getLogger(__name__)


@dataclass
class Pot:
    """Represents a pot (main pot or side pot)."""
    amount: Decimal = ZERO
    eligible_players: List[str] = field(default_factory=list)

    def add(self, amount: Decimal) -> None:
        self.amount += amount

    def to_dict(self) -> Dict[str, Any]:
        return {"amount": format_money(self.amount), "eligible_players": list(self.eligible_players)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Pot:
        return cls(to_money(data["amount"]), [str(p) for p in data.get("eligible_players", [])])


@dataclass
class HandState:
    """
    Live state of one dealt hand.

    ``players`` is kept in seat order; turn order wraps around that list.
    ``last_raise`` is the minimum-raise-to amount: a bet or raise must name a
    round total above it.
    """
    phase: HandPhase
    players: List[PlayerHandState]
    dealer_id: str
    small_blind: Decimal
    big_blind: Decimal
    small_blind_player_id: str
    big_blind_player_id: str
    deck: List[Card] = field(default_factory=list)
    community_cards: List[Card] = field(default_factory=list)
    pots: List[Pot] = field(default_factory=list)
    active_player_id: Optional[str] = None
    last_raise: Decimal = ZERO

    @property
    def pot_total(self) -> Decimal:
        """Total amount in all pots (excluding uncollected bets)."""
        return money_sum(pot.amount for pot in self.pots)

    @property
    def round_bets_total(self) -> Decimal:
        return money_sum(p.bet for p in self.players)

    @property
    def current_bet(self) -> Decimal:
        """Highest bet committed in this round."""
        return max((p.bet for p in self.players), default=ZERO)

    @property
    def active_player(self) -> Optional[PlayerHandState]:
        return find_player(self.players, self.active_player_id)

    def get_player(self, player_id: str) -> Optional[PlayerHandState]:
        return find_player(self.players, player_id)

    def to_dict(self, hide_cards: bool = False, viewer_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Convert to dictionary for JSON serialization.

        Args:
            hide_cards: If True, leave out the remaining deck and every
                player's hole cards except the viewer's
            viewer_id: Player whose own hole cards stay visible
        """
        result = {
            "phase": self.phase.value,
            "players": [
                p.to_dict(hide_cards=hide_cards and p.id != viewer_id) for p in self.players
            ],
            "dealer_id": self.dealer_id,
            "small_blind": format_money(self.small_blind),
            "big_blind": format_money(self.big_blind),
            "small_blind_player_id": self.small_blind_player_id,
            "big_blind_player_id": self.big_blind_player_id,
            "community_cards": [c.to_dict() for c in self.community_cards],
            "pots": [pot.to_dict() for pot in self.pots],
            "active_player_id": self.active_player_id,
            "last_raise": format_money(self.last_raise),
        }
        if not hide_cards:
            result["deck"] = [c.to_dict() for c in self.deck]
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> HandState:
        return cls(
            phase=HandPhase(data["phase"]),
            players=[PlayerHandState.from_dict(p) for p in data["players"]],
            dealer_id=str(data["dealer_id"]),
            small_blind=to_money(data["small_blind"]),
            big_blind=to_money(data["big_blind"]),
            small_blind_player_id=str(data["small_blind_player_id"]),
            big_blind_player_id=str(data["big_blind_player_id"]),
            deck=[Card.from_dict(c) for c in data.get("deck", [])],
            community_cards=[Card.from_dict(c) for c in data.get("community_cards", [])],
            pots=[Pot.from_dict(p) for p in data.get("pots", [])],
            active_player_id=data.get("active_player_id"),
            last_raise=to_money(data.get("last_raise", "0")),
        )


@dataclass
class PotAward:
    """Result of paying out a finished hand; the hand state is cleared."""
    winnings: Dict[str, Decimal]
    total: Decimal
    final_stacks: Dict[str, Decimal]
    community_cards: List[Card]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "winnings": {pid: format_money(v) for pid, v in self.winnings.items()},
            "total": format_money(self.total),
            "final_stacks": {pid: format_money(v) for pid, v in self.final_stacks.items()},
            "community_cards": [c.to_dict() for c in self.community_cards],
        }


@dataclass
class ActionResult:
    """
    Result of a player action.

    ``state`` is None when the action ended the hand (everyone else folded);
    ``award`` then holds the payout.
    """
    state: Optional[HandState]
    action_type: ActionType
    player_id: str
    amount: Decimal
    message: str
    round_over: bool = False
    award: Optional[PotAward] = None

    @property
    def hand_over(self) -> bool:
        return self.state is None


# ============= Seat order helpers =============

def _next_index(
    players: Sequence[PlayerHandState],
    start: int,
    predicate: Callable[[PlayerHandState], bool],
) -> Optional[int]:
    """First index after ``start`` (wrapping, ``start`` itself last) matching predicate."""
    count = len(players)
    for offset in range(1, count + 1):
        index = (start + offset) % count
        if predicate(players[index]):
            return index
    return None


def _index_of(players: Sequence[PlayerHandState], player_id: str) -> int:
    for i, player in enumerate(players):
        if player.id == player_id:
            return i
    raise StateConflict(f"Player {player_id} is not in this hand")


def _seat_sort_key(item):
    index, player = item
    return (player.seat is None, player.seat or 0, index)


# ============= Start hand =============

def start_hand(
    players: Sequence[SessionPlayer],
    dealer_id: Optional[str],
    blinds: BlindStructure = DEFAULT_BLINDS,
    rng: Optional[random.Random] = None,
    stacks: Optional[Mapping[str, Number]] = None,
) -> HandState:
    """
    Start a new hand.

    The button moves to the next eligible seat after ``dealer_id``; the small
    and big blinds follow it, and the seat after the big blind acts first.

    Args:
        players: Session players; those with a positive stack are dealt in
        dealer_id: Current dealer
        blinds: Blind amounts
        rng: Random source for the shuffle
        stacks: Optional stacks carried over from earlier hands; by default a
            player's stack is their total transacted amount

    Raises:
        StateConflict: If no dealer has been designated.
        InsufficientPlayers: With fewer than 2 players holding chips.
    """
    if dealer_id is None:
        raise StateConflict("No dealer designated; resolve seating first")

    def stack_of(player: SessionPlayer) -> Decimal:
        if stacks is not None and player.id in stacks:
            return to_money(stacks[player.id])
        return player.total_invested

    ordered = [p for _, p in sorted(enumerate(players), key=_seat_sort_key)]
    eligible = [p for p in ordered if stack_of(p) > 0]
    if len(eligible) < MIN_PLAYERS:
        raise InsufficientPlayers(
            f"Need at least {MIN_PLAYERS} players with chips, got {len(eligible)}"
        )

    hand_players = [
        PlayerHandState(
            id=p.id,
            name=p.name,
            seat=p.seat if p.seat is not None else i + 1,
            stack=stack_of(p),
        )
        for i, p in enumerate(eligible)
    ]
    count = len(hand_players)
    dealer_index = (_previous_dealer_index(players, eligible, dealer_id) + 1) % count
    sb_index = (dealer_index + 1) % count
    bb_index = (dealer_index + 2) % count

    deck = shuffle(create_deck(), rng)
    for _ in range(HOLE_CARDS):
        for offset in range(count):
            hand_players[(sb_index + offset) % count].hole_cards.extend(draw(deck, 1))

    state = HandState(
        phase=HandPhase.PRE_FLOP,
        players=hand_players,
        dealer_id=hand_players[dealer_index].id,
        small_blind=blinds.small_blind,
        big_blind=blinds.big_blind,
        small_blind_player_id=hand_players[sb_index].id,
        big_blind_player_id=hand_players[bb_index].id,
        deck=deck,
        last_raise=blinds.big_blind,
    )

    sb_amount = hand_players[sb_index].commit(blinds.small_blind)
    bb_amount = hand_players[bb_index].commit(blinds.big_blind)
    logger.debug(f"Blinds posted: SB={sb_amount} BB={bb_amount}")

    first = _next_index(hand_players, bb_index, lambda p: p.can_act)
    state.active_player_id = hand_players[first].id if first is not None else None
    if is_betting_round_over(state):
        state.active_player_id = None

    logger.info(
        f"Hand started: dealer={state.dealer_id} sb={state.small_blind_player_id} "
        f"bb={state.big_blind_player_id} players={count}"
    )
    return state


def _previous_dealer_index(
    players: Sequence[SessionPlayer],
    eligible: Sequence[SessionPlayer],
    dealer_id: str,
) -> int:
    """
    Index in ``eligible`` the button moves on from.

    A dealer who is no longer eligible still anchors the rotation by seat.
    """
    for i, player in enumerate(eligible):
        if player.id == dealer_id:
            return i

    seat = next((p.seat for p in players if p.id == dealer_id), None)
    if seat is not None:
        before = [i for i, p in enumerate(eligible) if p.seat is not None and p.seat < seat]
        if before:
            return before[-1]
    # Rotation then lands on the first eligible seat
    return len(eligible) - 1


# ============= Round state =============

def is_betting_round_over(state: HandState) -> bool:
    """
    Check if the current betting round is complete.

    The round is over when at most one player has not folded, or when every
    player still able to act has acted and matched the highest bet. All-in
    players are exempt since they cannot act further.
    """
    live = [p for p in state.players if p.is_in_hand]
    if len(live) <= 1:
        return True

    actors = [p for p in live if not p.is_all_in]
    high = max(p.bet for p in live)
    if not actors:
        return True
    if len(actors) == 1 and actors[0].bet >= high:
        # Nobody left to bet against
        return True

    return all(p.has_acted and p.bet == high for p in actors)


def legal_actions(state: HandState) -> List[Dict[str, Any]]:
    """
    Get legal actions for the player to act.

    Returns:
        List of action dicts with type and constraints
    """
    player = state.active_player
    if player is None or not player.can_act:
        return []

    to_call = max(ZERO, state.current_bet - player.bet)
    actions: List[Dict[str, Any]] = [{"type": ActionType.FOLD.value}]
    actions.append({
        "type": ActionType.CHECK_OR_CALL.value,
        "amount": format_money(min(to_call, player.stack)),
    })

    max_total = player.stack + player.bet
    if max_total > state.last_raise:
        actions.append({
            "type": ActionType.BET_OR_RAISE.value,
            "min": format_money(state.last_raise + CENT),
            "max": format_money(max_total),
        })

    actions.append({"type": ActionType.ALL_IN.value, "amount": format_money(max_total)})
    return actions


# ============= Actions =============

def apply_action(
    state: HandState,
    player_id: str,
    action_type: ActionType,
    amount: Optional[Number] = None,
) -> ActionResult:
    """
    Apply an action by the player to act.

    Args:
        state: Current hand state
        player_id: Player taking the action
        action_type: FOLD, CHECK_OR_CALL, BET_OR_RAISE or ALL_IN
        amount: For BET_OR_RAISE, the player's new total bet for the round

    Returns:
        ActionResult with the next state, or the payout if the hand ended

    Raises:
        StateConflict: If betting is closed or it is not this player's turn.
        InvalidBet: If a bet does not exceed the current minimum or the stack.
    """
    if state.active_player_id is None:
        raise StateConflict("Betting is closed for this round")
    if player_id != state.active_player_id:
        raise StateConflict(f"It is not {player_id}'s turn (waiting on {state.active_player_id})")

    new_state = copy.deepcopy(state)
    index = _index_of(new_state.players, player_id)
    player = new_state.players[index]
    to_call = new_state.current_bet - player.bet

    if action_type == ActionType.FOLD:
        player.fold()
        moved, message = ZERO, "Folded"

    elif action_type == ActionType.CHECK_OR_CALL:
        if to_call > 0:
            moved = player.commit(to_call)
            message = f"Called {format_money(moved)}"
        else:
            moved, message = ZERO, "Checked"

    elif action_type == ActionType.BET_OR_RAISE:
        if amount is None:
            raise InvalidBet("A bet needs an amount")
        total = to_money(amount)
        if total <= new_state.last_raise:
            raise InvalidBet(
                f"Bet must exceed {format_money(new_state.last_raise)}, got {format_money(total)}"
            )
        needed = total - player.bet
        if needed > player.stack:
            raise InvalidBet(
                f"Cannot bet {format_money(total)} with {format_money(player.stack + player.bet)} available"
            )
        moved = player.commit(needed)
        new_state.last_raise = total
        message = f"Bet {format_money(total)}"

    elif action_type == ActionType.ALL_IN:
        moved = player.commit(player.stack)
        if player.bet > new_state.last_raise:
            new_state.last_raise = player.bet
        message = f"All-in for {format_money(player.bet)}"

    else:
        raise StateConflict(f"Unknown action: {action_type}")

    player.has_acted = True
    logger.debug(f"{player_id}: {message}")

    live = [p for p in new_state.players if p.is_in_hand]
    if len(live) == 1:
        award = _award_in_place(new_state, {None: live[0].id})
        logger.info(f"Everyone else folded, {live[0].id} wins {format_money(award.total)}")
        return ActionResult(None, action_type, player_id, moved, message, round_over=True, award=award)

    round_over = is_betting_round_over(new_state)
    if round_over:
        new_state.active_player_id = None
    else:
        nxt = _next_index(new_state.players, index, lambda p: p.can_act)
        new_state.active_player_id = new_state.players[nxt].id if nxt is not None else None

    return ActionResult(new_state, action_type, player_id, moved, message, round_over=round_over)


# ============= Bet collection =============

def collect_bets(state: HandState) -> HandState:
    """
    Move every round bet into the pots, splitting side pots at all-in levels.

    Returns:
        New state with all round bets at 0 and ``last_raise`` reset to 0.
    """
    new_state = copy.deepcopy(state)
    _collect_in_place(new_state)
    return new_state


def _collect_in_place(state: HandState) -> None:
    contributors = [p for p in state.players if p.bet > 0]
    folded = {p.id for p in state.players if p.is_folded}

    for pot in state.pots:
        pot.eligible_players = [pid for pid in pot.eligible_players if pid not in folded]

    slices: List[Pot] = []
    level = ZERO
    for threshold in sorted({p.bet for p in contributors if p.is_all_in}):
        amount = money_sum(min(p.bet, threshold) - min(p.bet, level) for p in contributors)
        eligible = [p.id for p in state.players if p.is_in_hand and p.bet >= threshold]
        slices.append(Pot(amount, eligible))
        level = threshold

    excess = money_sum(p.bet - min(p.bet, level) for p in contributors)
    if excess > 0:
        eligible = [
            p.id for p in state.players
            if p.is_in_hand and not p.is_all_in and p.bet > level
        ]
        slices.append(Pot(excess, eligible))

    for pot in slices:
        last = state.pots[-1] if state.pots else None
        if last is not None and (set(last.eligible_players) == set(pot.eligible_players)
                                 or not pot.eligible_players):
            # Same contenders (or nobody left to claim it): keep one pot
            last.add(pot.amount)
        else:
            state.pots.append(pot)

    if contributors:
        logger.debug(f"Collected {format_money(money_sum(p.bet for p in contributors))} into {len(state.pots)} pot(s)")

    for player in state.players:
        player.bet = ZERO
    state.last_raise = ZERO


# ============= Phase advancement =============

def advance_phase(state: HandState) -> HandState:
    """
    Close the betting round and move to the next phase.

    Collects bets, burns one card and deals the next community cards (none
    when moving from the river to showdown), then hands the action to the
    first player able to act clockwise from the dealer.

    Raises:
        StateConflict: If the round is not over, the hand is at showdown, or
            only one player remains (award the pot instead).
    """
    if state.phase not in NEXT_PHASE:
        raise StateConflict(f"Cannot advance from {state.phase.value}")
    if not is_betting_round_over(state):
        raise StateConflict("Betting round is not over")
    if sum(1 for p in state.players if p.is_in_hand) <= 1:
        raise StateConflict("Only one player remains; award the pot")

    new_state = copy.deepcopy(state)
    _collect_in_place(new_state)

    next_phase = NEXT_PHASE[new_state.phase]
    if next_phase in CARDS_FOR_PHASE:
        draw(new_state.deck, 1)  # burn
        new_state.community_cards.extend(draw(new_state.deck, CARDS_FOR_PHASE[next_phase]))
    new_state.phase = next_phase

    for player in new_state.players:
        player.reset_for_new_round()

    new_state.active_player_id = None
    actors = [p for p in new_state.players if p.can_act]
    if next_phase != HandPhase.SHOWDOWN and len(actors) >= MIN_PLAYERS:
        dealer_index = _index_of(new_state.players, new_state.dealer_id)
        first = _next_index(new_state.players, dealer_index, lambda p: p.can_act)
        new_state.active_player_id = new_state.players[first].id

    logger.info(
        f"Advanced to {next_phase.value}: board={' '.join(str(c) for c in new_state.community_cards)} "
        f"pot={format_money(new_state.pot_total)}"
    )
    return new_state


# ============= Pot award =============

def award_pot(state: HandState, winner_id: str) -> PotAward:
    """
    Give every pot to the declared winner and end the hand.

    Raises:
        StateConflict: If the winner is not in the hand or has folded.
    """
    winner = state.get_player(winner_id)
    if winner is None:
        raise StateConflict(f"Player {winner_id} is not in this hand")
    if winner.is_folded:
        raise StateConflict(f"Player {winner_id} has folded")

    new_state = copy.deepcopy(state)
    award = _award_in_place(new_state, {None: winner_id})
    logger.info(f"Pot of {format_money(award.total)} awarded to {winner_id}")
    return award


def award_pots(state: HandState, winners_by_pot: Mapping[int, str]) -> PotAward:
    """
    Award each pot to its own winner.

    Uncollected bets are collected first, so pot indices refer to the pots
    as they stand after collection (see ``collect_bets``). A pot with a single
    eligible player may be left out of the mapping.

    Raises:
        StateConflict: If a pot has no winner or the winner is not eligible.
    """
    new_state = copy.deepcopy(state)
    _collect_in_place(new_state)

    assignment: Dict[Optional[int], str] = {}
    for index, pot in enumerate(new_state.pots):
        winner_id = winners_by_pot.get(index)
        if winner_id is None:
            if len(pot.eligible_players) != 1:
                raise StateConflict(f"No winner declared for pot {index}")
            winner_id = pot.eligible_players[0]
        if winner_id not in pot.eligible_players:
            raise StateConflict(f"Player {winner_id} is not eligible for pot {index}")
        assignment[index] = winner_id

    award = _award_in_place(new_state, assignment)
    logger.info(f"Pots awarded: {', '.join(f'{k}={format_money(v)}' for k, v in award.winnings.items())}")
    return award


def _award_in_place(state: HandState, assignment: Mapping[Optional[int], str]) -> PotAward:
    """
    Collect bets and pay out. Key ``None`` means every pot goes to one player.
    """
    _collect_in_place(state)

    winnings: Dict[str, Decimal] = {}
    for index, pot in enumerate(state.pots):
        winner_id = assignment.get(index, assignment.get(None))
        winnings[winner_id] = winnings.get(winner_id, ZERO) + pot.amount

    for winner_id, amount in winnings.items():
        state.get_player(winner_id).stack += amount

    return PotAward(
        winnings=winnings,
        total=state.pot_total,
        final_stacks={p.id: p.stack for p in state.players},
        community_cards=list(state.community_cards),
    )
