"""
Trade data model.

A session pairs two players, each with one offer. Sessions only move
forward: pending -> locked -> completed, with cancelled reachable from
either non-terminal state.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from henhouse.inventory.items import ItemType


class TradeStatus(str, enum.Enum):
    PENDING = "pending"
    LOCKED = "locked"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def is_terminal(self) -> bool:
        return self in (TradeStatus.COMPLETED, TradeStatus.CANCELLED)


class TradeErrorKind(str, enum.Enum):
    INVALID_STATE = "invalid_state"
    NOT_A_PARTICIPANT = "not_a_participant"
    ITEM_CONFLICT = "item_conflict"
    MISSING_ITEMS = "missing_items"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"
    SELF_TRADE = "self_trade"
    BUSY = "busy"


class TradeError(Exception):
    def __init__(self, kind: TradeErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


@dataclass
class TradeItem:
    item_type: ItemType
    item_id: str
    item_data: Dict[str, Any] = field(default_factory=dict)  # display snapshot only

    def __post_init__(self) -> None:
        self.item_type = ItemType(self.item_type)

    def to_dict(self) -> dict:
        return {
            "item_type": ItemType(self.item_type).value,
            "item_id": self.item_id,
            "item_data": self.item_data,
        }


@dataclass
class TradeOffer:
    items: List[TradeItem] = field(default_factory=list)
    confirmed: bool = False

    def item_ids(self) -> List[str]:
        return [item.item_id for item in self.items]

    def has_item(self, item_id: str) -> bool:
        return any(item.item_id == item_id for item in self.items)

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "confirmed": self.confirmed,
        }


@dataclass
class TradeSession:
    trade_id: str
    party_a: str
    party_b: str
    offer_a: TradeOffer = field(default_factory=TradeOffer)
    offer_b: TradeOffer = field(default_factory=TradeOffer)
    status: TradeStatus = TradeStatus.PENDING
    locked_item_ids: Set[str] = field(default_factory=set)
    started_at: float = 0.0
    locked_at: Optional[float] = None
    cancel_reason: Optional[str] = None

    def is_active(self) -> bool:
        return not self.status.is_terminal()

    def offer_for(self, player_id: str) -> Optional[TradeOffer]:
        if player_id == self.party_a:
            return self.offer_a
        if player_id == self.party_b:
            return self.offer_b
        return None

    def partner_of(self, player_id: str) -> Optional[str]:
        if player_id == self.party_a:
            return self.party_b
        if player_id == self.party_b:
            return self.party_a
        return None

    def both_confirmed(self) -> bool:
        return self.offer_a.confirmed and self.offer_b.confirmed

    def summary(self) -> str:
        a_mark = "✓" if self.offer_a.confirmed else "✗"
        b_mark = "✓" if self.offer_b.confirmed else "✗"
        return (
            f"Trade {self.trade_id}: "
            f"A({len(self.offer_a.items)} items, {a_mark}) <-> "
            f"B({len(self.offer_b.items)} items, {b_mark}) "
            f"[{self.status.value}]"
        )

    def to_dict(self) -> dict:
        return {
            "trade_id": self.trade_id,
            "party_a": self.party_a,
            "party_b": self.party_b,
            "offer_a": self.offer_a.to_dict(),
            "offer_b": self.offer_b.to_dict(),
            "status": self.status.value,
            "locked_item_ids": sorted(self.locked_item_ids),
            "started_at": self.started_at,
            "locked_at": self.locked_at,
            "cancel_reason": self.cancel_reason,
        }


@dataclass
class TradeResult:
    success: bool
    message: str = ""
    error_kind: Optional[TradeErrorKind] = None
    trade_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, trade_id: Optional[str] = None, **details: Any) -> "TradeResult":
        return cls(True, message, None, trade_id, details)

    @classmethod
    def fail(cls, kind: TradeErrorKind, message: str, trade_id: Optional[str] = None, **details: Any) -> "TradeResult":
        return cls(False, message, kind, trade_id, details)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "trade_id": self.trade_id,
            "details": self.details,
        }


@dataclass
class ValidationResult:
    valid: bool
    message: str
    error_kind: Optional[TradeErrorKind] = None
    missing_item_ids: List[str] = field(default_factory=list)


@dataclass
class TransferResult:
    success: bool
    message: str
    error_kind: Optional[TradeErrorKind] = None
    party_a_received: List[TradeItem] = field(default_factory=list)
    party_b_received: List[TradeItem] = field(default_factory=list)
    missing_item_ids: List[str] = field(default_factory=list)
    transfers: List[Dict[str, Any]] = field(default_factory=list)  # one entry per moved item

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "party_a_received": [item.to_dict() for item in self.party_a_received],
            "party_b_received": [item.to_dict() for item in self.party_b_received],
            "missing_item_ids": self.missing_item_ids,
            "transfers": self.transfers,
        }
