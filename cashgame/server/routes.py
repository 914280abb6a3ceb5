"""
HTTP API Routes for CashGame.

Every write goes through the session store so it is applied atomically and
bumps the session version. Hand operations are only accepted from the user
holding the croupier seat.
"""

from typing import Any, Callable, Dict, Optional, Tuple
from decimal import Decimal

from fastapi import APIRouter, HTTPException

from cashgame.core import session as ops
from cashgame.core.errors import StateConflict
from cashgame.core.game import legal_actions
from cashgame.core.money import format_money
from cashgame.core.session import CashGame
from cashgame.core.settlement import table_inventory
from cashgame.core.rules import BlindStructure
from cashgame.server.schemas import (
    AddChipRequest, ActionRequest, ApproveJoinRequest, AwardRequest, BlindsRequest,
    BuyInRequest, ChipCountsRequest, CloseSessionRequest, CreateSessionRequest,
    CroupierRequest, EditTransactionRequest, ErrorSchema, HandRequest, JoinRequestBody,
    PositionRequest, RebuyRequest, SettlementRequest, VersionedRequest,
)
from cashgame.server.store import SessionNotFound, SessionStore, StoredSession

router = APIRouter(
    prefix="/sessions",
    responses={
        400: {"model": ErrorSchema},
        404: {"model": ErrorSchema},
        409: {"model": ErrorSchema},
    },
)

# Process-wide store; swap for a persistent one behind the same interface
store = SessionStore()


def get_session(session_id: str) -> StoredSession:
    try:
        return store.get(session_id)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")


def session_response(stored: StoredSession, viewer_id: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    """Public view of a session: no deck, and only the viewer's hole cards."""
    return {
        "session_id": stored.session_id,
        "version": stored.version,
        "game": stored.game.to_dict(hide_cards=True, viewer_id=viewer_id),
        **extra,
    }


def apply(
    session_id: str,
    req: Optional[VersionedRequest],
    operation: Callable[[CashGame], Tuple[CashGame, Any]],
) -> Tuple[StoredSession, Any]:
    """Run an operation through the store, translating a missing session to 404."""
    get_session(session_id)
    expected = req.expected_version if req is not None else None
    try:
        return store.update(session_id, operation, expected_version=expected)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")


def without_result(operation: Callable[[CashGame], CashGame]) -> Callable[[CashGame], Tuple[CashGame, None]]:
    return lambda game: (operation(game), None)


def as_croupier(croupier_id: str, operation: Callable[[CashGame], Tuple[CashGame, Any]]):
    def checked(game: CashGame) -> Tuple[CashGame, Any]:
        if game.croupier_id != croupier_id:
            raise StateConflict(f"{croupier_id} is not the croupier of this session")
        return operation(game)
    return checked


# ============= Sessions =============

@router.post("")
async def create_session(req: CreateSessionRequest) -> Dict[str, Any]:
    """Create a new session with the default chip set."""
    game = CashGame(blinds=BlindStructure.of(req.small_blind, req.big_blind))
    return session_response(store.create(game))


@router.get("/{session_id}")
async def read_session(session_id: str, viewer_id: Optional[str] = None) -> Dict[str, Any]:
    """Read a session as seen by ``viewer_id`` (a player or the croupier)."""
    stored = get_session(session_id)
    return session_response(stored, viewer_id, inventory=table_inventory(stored.game.denominations, stored.game.players))


@router.delete("/{session_id}")
async def delete_session(session_id: str) -> Dict[str, Any]:
    get_session(session_id)
    store.delete(session_id)
    return {"success": True, "message": f"Session {session_id} deleted"}


@router.put("/{session_id}/blinds")
async def set_blinds(session_id: str, req: BlindsRequest) -> Dict[str, Any]:
    """Blinds for the next hand; a live hand keeps its own."""
    stored, _ = apply(session_id, req, without_result(
        lambda g: ops.set_blinds(g, req.small_blind, req.big_blind)
    ))
    return session_response(stored)


# ============= Chips =============

@router.post("/{session_id}/chips")
async def add_chip(session_id: str, req: AddChipRequest) -> Dict[str, Any]:
    stored, _ = apply(session_id, req, without_result(
        lambda g: ops.add_denomination(g, req.name, req.value, req.color)
    ))
    return session_response(stored)


@router.delete("/{session_id}/chips/{chip_id}")
async def remove_chip(session_id: str, chip_id: int) -> Dict[str, Any]:
    stored, _ = apply(session_id, None, without_result(lambda g: ops.remove_denomination(g, chip_id)))
    return session_response(stored)


@router.post("/{session_id}/chips/reset")
async def reset_chips(session_id: str) -> Dict[str, Any]:
    stored, _ = apply(session_id, None, without_result(ops.reset_denominations))
    return session_response(stored)


@router.get("/{session_id}/chips/suggest")
async def suggest_chips(session_id: str, amount: Decimal) -> Dict[str, Any]:
    """Suggested chip distribution for a buy-in, before it is confirmed."""
    stored = get_session(session_id)
    counts = ops.suggest_chips(stored.game, amount)
    return {"amount": format_money(amount), "chips": {str(k): v for k, v in counts.items()}}


# ============= Players =============

@router.post("/{session_id}/players")
async def add_player(session_id: str, req: BuyInRequest) -> Dict[str, Any]:
    if req.admin:
        if not req.player_id:
            raise HTTPException(status_code=400, detail="player_id is required for an admin join")
        operation = lambda g: ops.admin_join(g, req.player_id, req.name, req.amount, req.chips)
    else:
        operation = lambda g: ops.buy_in(g, req.name, req.amount, req.chips, req.player_id)
    stored, _ = apply(session_id, req, without_result(operation))
    return session_response(stored)


@router.delete("/{session_id}/players/{player_id}")
async def remove_player(session_id: str, player_id: str) -> Dict[str, Any]:
    stored, _ = apply(session_id, None, without_result(lambda g: ops.remove_player(g, player_id)))
    return session_response(stored)


@router.post("/{session_id}/players/{player_id}/transactions")
async def add_transaction(session_id: str, player_id: str, req: RebuyRequest) -> Dict[str, Any]:
    stored, _ = apply(session_id, req, without_result(
        lambda g: ops.rebuy(g, player_id, req.amount, req.chips, req.kind)
    ))
    return session_response(stored)


@router.put("/{session_id}/players/{player_id}/transactions/{transaction_id}")
async def edit_transaction(
    session_id: str, player_id: str, transaction_id: int, req: EditTransactionRequest
) -> Dict[str, Any]:
    stored, _ = apply(session_id, req, without_result(
        lambda g: ops.edit_transaction(g, player_id, transaction_id, req.amount, req.chips)
    ))
    return session_response(stored)


@router.delete("/{session_id}/players/{player_id}/transactions/{transaction_id}")
async def delete_transaction(session_id: str, player_id: str, transaction_id: int) -> Dict[str, Any]:
    stored, _ = apply(session_id, None, without_result(
        lambda g: ops.delete_transaction(g, player_id, transaction_id)
    ))
    return session_response(stored)


@router.post("/{session_id}/players/{player_id}/cash-out")
async def cash_out(session_id: str, player_id: str, req: ChipCountsRequest) -> Dict[str, Any]:
    stored, _ = apply(session_id, req, without_result(
        lambda g: ops.cash_out(g, player_id, req.chip_counts)
    ))
    return session_response(stored)


@router.put("/{session_id}/players/{player_id}/final-chips")
async def set_final_chips(session_id: str, player_id: str, req: ChipCountsRequest) -> Dict[str, Any]:
    stored, _ = apply(session_id, req, without_result(
        lambda g: ops.set_final_chip_counts(g, player_id, req.chip_counts)
    ))
    return session_response(stored)


@router.post("/{session_id}/players/{player_id}/position")
async def player_position(session_id: str, player_id: str, req: PositionRequest) -> Dict[str, Any]:
    """
    A player's running balance.

    Uses the chip counts in the body, or the recorded final counts when none
    are given. Nothing is stored.
    """
    return ops.position(get_session(session_id).game, player_id, req.chip_counts).to_dict()


# ============= Join requests =============

@router.post("/{session_id}/requests")
async def request_join(session_id: str, req: JoinRequestBody) -> Dict[str, Any]:
    stored, _ = apply(session_id, req, without_result(
        lambda g: ops.request_join(g, req.user_id, req.user_name)
    ))
    return session_response(stored)


@router.post("/{session_id}/requests/{user_id}/approve")
async def approve_join(session_id: str, user_id: str, req: ApproveJoinRequest) -> Dict[str, Any]:
    stored, _ = apply(session_id, req, without_result(
        lambda g: ops.approve_join(g, user_id, req.amount, req.chips)
    ))
    return session_response(stored)


@router.post("/{session_id}/requests/{user_id}/decline")
async def decline_join(session_id: str, user_id: str) -> Dict[str, Any]:
    stored, _ = apply(session_id, None, without_result(lambda g: ops.decline_join(g, user_id)))
    return session_response(stored)


# ============= Seating and croupier =============

@router.post("/{session_id}/seating")
async def draw_seats(session_id: str, req: VersionedRequest) -> Dict[str, Any]:
    """Draw cards for seats; the response carries the cards for the animation."""
    stored, result = apply(session_id, req, ops.draw_seats)
    return session_response(
        stored,
        dealt=[{"id": p.id, "card": p.card.to_dict()} for p in result.players_with_cards],
        dealer_id=result.dealer.id,
    )


@router.post("/{session_id}/croupier")
async def claim_croupier(session_id: str, req: CroupierRequest) -> Dict[str, Any]:
    stored, _ = apply(session_id, req, without_result(lambda g: ops.claim_croupier(g, req.user_id)))
    return session_response(stored)


@router.delete("/{session_id}/croupier/{user_id}")
async def release_croupier(session_id: str, user_id: str) -> Dict[str, Any]:
    stored, _ = apply(session_id, None, without_result(lambda g: ops.release_croupier(g, user_id)))
    return session_response(stored)


# ============= Hands =============

@router.post("/{session_id}/hand")
async def start_hand(session_id: str, req: HandRequest) -> Dict[str, Any]:
    stored, _ = apply(session_id, req, as_croupier(req.croupier_id, without_result(ops.begin_hand)))
    return session_response(stored, req.croupier_id)


@router.get("/{session_id}/hand/legal-actions")
async def get_legal_actions(session_id: str) -> Dict[str, Any]:
    hand = get_session(session_id).game.hand_state
    if hand is None:
        return {"actions": [], "message": "No hand in progress"}
    return {"player_id": hand.active_player_id, "actions": legal_actions(hand)}


@router.post("/{session_id}/hand/actions")
async def take_action(session_id: str, req: ActionRequest) -> Dict[str, Any]:
    """
    Take a player action.

    If the action ends the hand, the payout is included.
    """
    stored, result = apply(session_id, req, as_croupier(
        req.croupier_id,
        lambda g: ops.play_action(g, req.player_id, req.action_type, req.amount),
    ))
    return session_response(
        stored,
        req.croupier_id,
        message=result.message,
        amount=format_money(result.amount),
        round_over=result.round_over,
        award=result.award.to_dict() if result.award else None,
    )


@router.post("/{session_id}/hand/advance")
async def advance_phase(session_id: str, req: HandRequest) -> Dict[str, Any]:
    stored, _ = apply(session_id, req, as_croupier(req.croupier_id, without_result(ops.next_phase)))
    return session_response(stored, req.croupier_id)


@router.post("/{session_id}/hand/award")
async def award(session_id: str, req: AwardRequest) -> Dict[str, Any]:
    stored, result = apply(session_id, req, as_croupier(
        req.croupier_id,
        lambda g: ops.declare_winner(g, req.winner_id, req.winners_by_pot),
    ))
    return session_response(stored, req.croupier_id, award=result.to_dict())


# ============= Settlement =============

@router.post("/{session_id}/settlement")
async def settlement(session_id: str, req: SettlementRequest) -> Dict[str, Any]:
    """Reconcile counts without closing the session."""
    report = ops.settle(get_session(session_id).game, req.tips, req.rake)
    return report.to_dict()


@router.post("/{session_id}/close")
async def close_session(session_id: str, req: CloseSessionRequest) -> Dict[str, Any]:
    """Close the session; refused while unbalanced unless forced."""
    try:
        report = store.close(
            session_id,
            lambda g: ops.close_session(g, req.tips, req.rake, force=req.force),
            expected_version=req.expected_version,
        )
    except SessionNotFound:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return report.to_dict()
