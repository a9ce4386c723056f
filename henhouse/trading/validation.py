"""
Trade validation.

Checks that a session is still live and that every offered item still
sits in its owner's inventory. Runs once before locking and again right
before execution, since other subsystems may sell or consume items in
between.
"""

from __future__ import annotations

from henhouse.inventory.store import InventoryStore
from henhouse.trading.models import (
    TradeErrorKind,
    TradeOffer,
    TradeSession,
    TradeStatus,
    ValidationResult,
)


def validate_offer(store: InventoryStore, owner_id: str, offer: TradeOffer) -> ValidationResult:
    """Look up every offered item; collect all misses rather than stopping at the first."""
    missing = [
        item.item_id
        for item in offer.items
        if store.find_item(owner_id, item.item_id, item.item_type) is None
    ]
    if missing:
        return ValidationResult(
            valid=False,
            message=f"Missing {len(missing)} item(s) from inventory",
            error_kind=TradeErrorKind.MISSING_ITEMS,
            missing_item_ids=missing,
        )
    return ValidationResult(valid=True, message="All items validated")


def validate_session(
    session: TradeSession,
    store: InventoryStore,
    now: float,
    trade_timeout: float,
) -> ValidationResult:
    if session.status == TradeStatus.COMPLETED:
        return ValidationResult(False, "Trade already completed", TradeErrorKind.INVALID_STATE)

    if session.status == TradeStatus.CANCELLED:
        return ValidationResult(False, "Trade was cancelled", TradeErrorKind.INVALID_STATE)

    if now - session.started_at > trade_timeout:
        return ValidationResult(False, "Trade session timed out", TradeErrorKind.EXPIRED)

    for label, owner_id, offer in (
        ("Player A", session.party_a, session.offer_a),
        ("Player B", session.party_b, session.offer_b),
    ):
        result = validate_offer(store, owner_id, offer)
        if not result.valid:
            return ValidationResult(
                valid=False,
                message=f"{label}: {result.message}",
                error_kind=result.error_kind,
                missing_item_ids=result.missing_item_ids,
            )

    return ValidationResult(valid=True, message="Session is valid")
