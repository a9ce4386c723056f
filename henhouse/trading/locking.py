"""
Trade locking.

Locking closes negotiation: once locked, offers can no longer change and
the offered items cannot enter any other trade. A failed lock leaves the
session exactly as it was.
"""

from __future__ import annotations

import logging

from henhouse.inventory.store import InventoryStore
from henhouse.trading.models import TradeErrorKind, TradeResult, TradeSession, TradeStatus
from henhouse.trading.registry import SessionRegistry
from henhouse.trading.validation import validate_session

logger = logging.getLogger("henhouse.trading")


def lock_session(
    session: TradeSession,
    store: InventoryStore,
    registry: SessionRegistry,
    now: float,
    trade_timeout: float,
) -> TradeResult:
    if session.status != TradeStatus.PENDING:
        return TradeResult.fail(
            TradeErrorKind.INVALID_STATE,
            f"Trade is {session.status.value}; only pending trades can be locked",
            session.trade_id,
        )

    validation = validate_session(session, store, now, trade_timeout)
    if not validation.valid:
        logger.debug("Trade %s lock rejected: %s", session.trade_id, validation.message)
        return TradeResult.fail(
            validation.error_kind,
            validation.message,
            session.trade_id,
            missing_item_ids=validation.missing_item_ids,
        )

    if not session.both_confirmed():
        return TradeResult.fail(
            TradeErrorKind.INVALID_STATE,
            "Both players must confirm before locking",
            session.trade_id,
        )

    item_ids = session.offer_a.item_ids() + session.offer_b.item_ids()
    conflicts = registry.claim_items(session, item_ids)
    if conflicts:
        return TradeResult.fail(
            TradeErrorKind.ITEM_CONFLICT,
            "Items are locked in another trade",
            session.trade_id,
            conflicting_item_ids=conflicts,
        )

    session.locked_item_ids = set(item_ids)
    session.status = TradeStatus.LOCKED
    session.locked_at = now
    logger.info("Trade %s locked with %d item(s)", session.trade_id, len(item_ids))
    return TradeResult.ok("Items locked for trade", session.trade_id, locked_item_ids=sorted(item_ids))
