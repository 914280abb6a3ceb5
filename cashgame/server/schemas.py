"""
Pydantic schemas for API request validation.
"""

from decimal import Decimal
from typing import Dict, Optional

from pydantic import BaseModel, Field

from cashgame.core.rules import ActionType, TransactionKind


# ============= Request Schemas =============

class VersionedRequest(BaseModel):
    """Base for writes; set expected_version for compare-and-set."""
    expected_version: Optional[int] = Field(default=None, ge=0)


class CreateSessionRequest(BaseModel):
    small_blind: Decimal = Field(gt=0, default=Decimal("1"))
    big_blind: Decimal = Field(gt=0, default=Decimal("2"))


class BlindsRequest(VersionedRequest):
    small_blind: Decimal = Field(gt=0)
    big_blind: Decimal = Field(gt=0)


class AddChipRequest(VersionedRequest):
    name: str = Field(min_length=1)
    value: Decimal = Field(gt=0)
    color: str = "#ffffff"


class BuyInRequest(VersionedRequest):
    """Add a player with a buy-in. Chips default to the suggested distribution."""
    name: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    chips: Optional[Dict[int, int]] = None
    player_id: Optional[str] = None
    admin: bool = Field(default=False, description="Owner joining as a player")


class RebuyRequest(VersionedRequest):
    amount: Decimal = Field(gt=0)
    chips: Optional[Dict[int, int]] = None
    kind: TransactionKind = TransactionKind.REBUY


class EditTransactionRequest(VersionedRequest):
    amount: Decimal = Field(gt=0)
    chips: Dict[int, int]


class ChipCountsRequest(VersionedRequest):
    chip_counts: Dict[int, int] = Field(default_factory=dict)


class PositionRequest(BaseModel):
    """Self-reported chip counts; omit to use the recorded final counts."""
    chip_counts: Optional[Dict[int, int]] = None


class JoinRequestBody(VersionedRequest):
    user_id: str
    user_name: str


class ApproveJoinRequest(VersionedRequest):
    amount: Decimal = Field(gt=0)
    chips: Optional[Dict[int, int]] = None


class CroupierRequest(VersionedRequest):
    user_id: str


class HandRequest(VersionedRequest):
    """Hand operations must come from the croupier."""
    croupier_id: str


class ActionRequest(HandRequest):
    """Request to take a player action."""
    player_id: str
    action_type: ActionType = Field(..., description="FOLD, CHECK_OR_CALL, BET_OR_RAISE, ALL_IN")
    amount: Optional[Decimal] = Field(default=None, gt=0, description="New round total for BET_OR_RAISE")


class AwardRequest(HandRequest):
    winner_id: Optional[str] = None
    winners_by_pot: Optional[Dict[int, str]] = None


class SettlementRequest(BaseModel):
    tips: Dict[int, int] = Field(default_factory=dict)
    rake: Dict[int, int] = Field(default_factory=dict)


class CloseSessionRequest(SettlementRequest, VersionedRequest):
    force: bool = False


# ============= Response Schemas =============

class ErrorSchema(BaseModel):
    """Error response."""
    error: str
    detail: Optional[str] = None
