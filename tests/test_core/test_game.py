"""
Tests for the hand state machine.
"""

from decimal import Decimal

import pytest
from cashgame.core.errors import InsufficientPlayers, InvalidBet, StateConflict
from cashgame.core.game import (
    advance_phase, apply_action, award_pot, is_betting_round_over, legal_actions, start_hand,
)
from cashgame.core.rules import ActionType, BlindStructure, HandPhase

from conftest import make_player


def act(state, player_id, action_type, amount=None):
    return apply_action(state, player_id, action_type, amount).state


def call_around(state):
    """B calls, C completes the small blind, A checks its option."""
    state = act(state, "B", ActionType.CHECK_OR_CALL)
    state = act(state, "C", ActionType.CHECK_OR_CALL)
    return act(state, "A", ActionType.CHECK_OR_CALL)


def check_around(state):
    """Everyone checks, starting left of the dealer."""
    for player_id in ("C", "A", "B"):
        state = act(state, player_id, ActionType.CHECK_OR_CALL)
    return state


class TestStartHand:
    """Tests for starting a hand."""

    def test_phase_and_cards(self, three_player_hand):
        state = three_player_hand
        assert state.phase == HandPhase.PRE_FLOP
        assert all(len(p.hole_cards) == 2 for p in state.players)
        assert len(state.deck) == 52 - 6
        assert state.community_cards == []

    def test_button_moves_one_seat(self, three_player_hand):
        assert three_player_hand.dealer_id == "B"
        assert three_player_hand.small_blind_player_id == "C"
        assert three_player_hand.big_blind_player_id == "A"

    def test_blinds_posted(self, three_player_hand):
        state = three_player_hand
        sb = state.get_player("C")
        bb = state.get_player("A")
        assert sb.bet == Decimal("1") and sb.stack == Decimal("99")
        assert bb.bet == Decimal("2") and bb.stack == Decimal("98")
        assert state.current_bet == Decimal("2")
        assert state.last_raise == Decimal("2")

    def test_first_to_act_after_big_blind(self, three_player_hand):
        assert three_player_hand.active_player_id == "B"

    def test_stacks_from_transactions(self, rng):
        players = [make_player("A", "50", seat=1), make_player("B", "120", seat=2)]
        state = start_hand(players, "B", rng=rng)
        total = {p.id: p.stack + p.bet for p in state.players}
        assert total == {"A": Decimal("50"), "B": Decimal("120")}

    def test_carried_over_stacks(self, three_players, rng):
        state = start_hand(three_players, "A", rng=rng, stacks={"A": 40, "B": 160, "C": 100})
        assert state.get_player("A").stack + state.get_player("A").bet == Decimal("40")
        assert state.get_player("B").stack == Decimal("160")

    def test_busted_player_sits_out(self, three_players, rng):
        state = start_hand(three_players, "A", rng=rng, stacks={"A": 100, "B": 0, "C": 100})
        assert [p.id for p in state.players] == ["A", "C"]

    def test_custom_blinds(self, three_players, rng):
        state = start_hand(three_players, "A", BlindStructure.of(5, 10), rng=rng)
        assert state.get_player("A").bet == Decimal("10")
        assert state.get_player("C").bet == Decimal("5")

    def test_short_blind_is_all_in(self, three_players, rng):
        state = start_hand(three_players, "A", rng=rng, stacks={"A": "1.50", "B": 100, "C": 100})
        bb = state.get_player("A")
        assert bb.bet == Decimal("1.50")
        assert bb.is_all_in

    def test_needs_dealer(self, three_players):
        with pytest.raises(StateConflict):
            start_hand(three_players, None)

    def test_needs_two_players_with_chips(self, three_players):
        with pytest.raises(InsufficientPlayers):
            start_hand(three_players, "A", stacks={"A": 100, "B": 0, "C": 0})

    def test_input_players_untouched(self, three_players, rng):
        start_hand(three_players, "A", rng=rng)
        assert all(p.total_invested == Decimal("100") for p in three_players)


class TestHeadsUp:
    """Heads-up blind order."""

    def test_dealer_posts_big_blind(self, heads_up_players, rng):
        state = start_hand(heads_up_players, "A", rng=rng)
        assert state.dealer_id == "B"
        assert state.small_blind_player_id == "A"
        assert state.big_blind_player_id == "B"

    def test_small_blind_acts_first(self, heads_up_players, rng):
        state = start_hand(heads_up_players, "A", rng=rng)
        assert state.active_player_id == "A"


class TestDealerRotation:
    """Tests for the button moving between hands."""

    def test_rotation_wraps(self, three_players, rng):
        state = start_hand(three_players, "C", rng=rng)
        assert state.dealer_id == "A"

    def test_rotation_skips_busted_player(self, three_players, rng):
        state = start_hand(three_players, "A", rng=rng, stacks={"A": 100, "B": 0, "C": 100})
        assert state.dealer_id == "C"

    def test_busted_dealer_anchors_by_seat(self, three_players, rng):
        """If the old dealer sits out, the button goes to the next seat."""
        state = start_hand(three_players, "B", rng=rng, stacks={"A": 100, "B": 0, "C": 100})
        assert state.dealer_id == "C"


class TestActions:
    """Tests for player actions."""

    def test_call(self, three_player_hand):
        result = apply_action(three_player_hand, "B", ActionType.CHECK_OR_CALL)
        assert result.amount == Decimal("2")
        assert result.state.get_player("B").bet == Decimal("2")
        assert result.state.active_player_id == "C"
        assert not result.round_over

    def test_raise(self, three_player_hand):
        result = apply_action(three_player_hand, "B", ActionType.BET_OR_RAISE, 20)
        state = result.state
        assert state.get_player("B").bet == Decimal("20")
        assert state.get_player("B").stack == Decimal("80")
        assert state.last_raise == Decimal("20")
        assert state.current_bet == Decimal("20")

    def test_raise_must_exceed_last_raise(self, three_player_hand):
        state = act(three_player_hand, "B", ActionType.BET_OR_RAISE, 20)
        before = state.to_dict()
        with pytest.raises(InvalidBet):
            apply_action(state, "C", ActionType.BET_OR_RAISE, 15)
        with pytest.raises(InvalidBet):
            apply_action(state, "C", ActionType.BET_OR_RAISE, 20)
        assert state.to_dict() == before

    def test_raise_cannot_exceed_stack(self, three_player_hand):
        with pytest.raises(InvalidBet):
            apply_action(three_player_hand, "B", ActionType.BET_OR_RAISE, 101)

    def test_raise_needs_amount(self, three_player_hand):
        with pytest.raises(InvalidBet):
            apply_action(three_player_hand, "B", ActionType.BET_OR_RAISE)

    def test_wrong_player(self, three_player_hand):
        before = three_player_hand.to_dict()
        with pytest.raises(StateConflict):
            apply_action(three_player_hand, "A", ActionType.CHECK_OR_CALL)
        assert three_player_hand.to_dict() == before

    def test_all_in(self, three_player_hand):
        result = apply_action(three_player_hand, "B", ActionType.ALL_IN)
        player = result.state.get_player("B")
        assert player.is_all_in
        assert player.stack == Decimal("0")
        assert player.bet == Decimal("100")
        assert result.state.last_raise == Decimal("100")

    def test_fold_skips_player(self, three_player_hand):
        state = act(three_player_hand, "B", ActionType.FOLD)
        state = act(state, "C", ActionType.CHECK_OR_CALL)
        assert state.active_player_id == "A"
        state = act(state, "A", ActionType.CHECK_OR_CALL)
        assert state.active_player_id is None
        assert is_betting_round_over(state)

    def test_big_blind_gets_option(self, three_player_hand):
        state = act(three_player_hand, "B", ActionType.CHECK_OR_CALL)
        state = act(state, "C", ActionType.CHECK_OR_CALL)
        assert not is_betting_round_over(state)
        assert state.active_player_id == "A"

    def test_raise_reopens_action(self, three_player_hand):
        state = call_around(three_player_hand)
        state = advance_phase(state)
        state = act(state, "C", ActionType.CHECK_OR_CALL)
        state = act(state, "A", ActionType.BET_OR_RAISE, 10)
        state = act(state, "B", ActionType.CHECK_OR_CALL)
        assert state.active_player_id == "C"
        state = act(state, "C", ActionType.CHECK_OR_CALL)
        assert state.active_player_id is None

    def test_action_after_round_closed(self, three_player_hand):
        state = call_around(three_player_hand)
        with pytest.raises(StateConflict):
            apply_action(state, "B", ActionType.CHECK_OR_CALL)


class TestFoldOut:
    """Tests for the hand ending when everyone else folds."""

    def test_last_player_wins(self, three_player_hand):
        state = act(three_player_hand, "B", ActionType.FOLD)
        result = apply_action(state, "C", ActionType.FOLD)
        assert result.hand_over
        assert result.state is None
        assert result.award.winnings == {"A": Decimal("3")}
        assert result.award.total == Decimal("3")
        assert result.award.final_stacks["A"] == Decimal("101")
        assert result.award.final_stacks["C"] == Decimal("99")


class TestLegalActions:
    """Tests for legal_actions."""

    def test_preflop_options(self, three_player_hand):
        actions = {a["type"]: a for a in legal_actions(three_player_hand)}
        assert set(actions) == {"FOLD", "CHECK_OR_CALL", "BET_OR_RAISE", "ALL_IN"}
        assert actions["CHECK_OR_CALL"]["amount"] == "2.00"
        assert actions["BET_OR_RAISE"]["min"] == "2.01"
        assert actions["ALL_IN"]["amount"] == "100.00"

    def test_no_actions_when_round_closed(self, three_player_hand):
        assert legal_actions(call_around(three_player_hand)) == []


class TestAdvancePhase:
    """Tests for moving through the streets."""

    def test_flop(self, three_player_hand):
        state = call_around(three_player_hand)
        burn_and_flop = state.deck[:4]
        state = advance_phase(state)
        assert state.phase == HandPhase.FLOP
        assert state.community_cards == burn_and_flop[1:]
        assert len(state.deck) == 52 - 6 - 4

    def test_bets_collected(self, three_player_hand):
        state = advance_phase(call_around(three_player_hand))
        assert len(state.pots) == 1
        assert state.pots[0].amount == Decimal("6")
        assert set(state.pots[0].eligible_players) == {"A", "B", "C"}
        assert all(p.bet == 0 for p in state.players)
        assert state.last_raise == 0

    def test_first_to_act_left_of_dealer(self, three_player_hand):
        state = advance_phase(call_around(three_player_hand))
        assert state.active_player_id == "C"
        assert not any(p.has_acted for p in state.players)

    def test_all_streets(self, three_player_hand):
        state = advance_phase(call_around(three_player_hand))
        state = advance_phase(check_around(state))
        assert state.phase == HandPhase.TURN
        assert len(state.community_cards) == 4
        state = advance_phase(check_around(state))
        assert state.phase == HandPhase.RIVER
        assert len(state.community_cards) == 5
        deck_before = len(state.deck)
        state = advance_phase(check_around(state))
        assert state.phase == HandPhase.SHOWDOWN
        assert len(state.community_cards) == 5
        assert len(state.deck) == deck_before
        assert state.active_player_id is None

    def test_cannot_advance_mid_round(self, three_player_hand):
        with pytest.raises(StateConflict):
            advance_phase(three_player_hand)

    def test_cannot_advance_past_showdown(self, three_player_hand):
        state = advance_phase(call_around(three_player_hand))
        for _ in range(3):
            state = advance_phase(check_around(state))
        with pytest.raises(StateConflict):
            advance_phase(state)

    def test_no_action_when_all_in(self, three_player_hand):
        """Streets run out without action once nobody can bet."""
        state = act(three_player_hand, "B", ActionType.ALL_IN)
        state = act(state, "C", ActionType.ALL_IN)
        state = act(state, "A", ActionType.ALL_IN)
        assert state.active_player_id is None
        state = advance_phase(state)
        assert state.active_player_id is None
        assert state.pot_total == Decimal("300")


class TestAwardPot:
    """Tests for paying the declared winner."""

    def test_showdown_award(self, three_player_hand):
        state = advance_phase(call_around(three_player_hand))
        for _ in range(3):
            state = advance_phase(check_around(state))
        award = award_pot(state, "B")
        assert award.winnings == {"B": Decimal("6")}
        assert award.final_stacks == {"A": Decimal("98"), "B": Decimal("104"), "C": Decimal("98")}
        assert len(award.community_cards) == 5

    def test_award_collects_open_bets(self, three_player_hand):
        award = award_pot(three_player_hand, "C")
        assert award.total == Decimal("3")
        assert award.final_stacks["C"] == Decimal("102")

    def test_folded_player_cannot_win(self, three_player_hand):
        state = act(three_player_hand, "B", ActionType.FOLD)
        with pytest.raises(StateConflict):
            award_pot(state, "B")

    def test_unknown_player_cannot_win(self, three_player_hand):
        with pytest.raises(StateConflict):
            award_pot(three_player_hand, "Z")

    def test_chips_are_conserved(self, three_player_hand):
        state = act(three_player_hand, "B", ActionType.BET_OR_RAISE, 20)
        state = act(state, "C", ActionType.CHECK_OR_CALL)
        state = act(state, "A", ActionType.FOLD)
        state = advance_phase(state)
        award = award_pot(state, "C")
        assert sum(award.final_stacks.values()) == Decimal("300")
