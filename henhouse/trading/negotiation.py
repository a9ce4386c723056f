"""
Offer negotiation.

Participants build their offers while the session is pending. Any change
to an offer clears that offer's confirmation; the partner's flag is left
alone. Callers hold the session lock.
"""

from __future__ import annotations

import logging

from henhouse.trading.models import (
    TradeErrorKind,
    TradeItem,
    TradeResult,
    TradeSession,
    TradeStatus,
)
from henhouse.trading.registry import SessionRegistry

logger = logging.getLogger("henhouse.trading")


def _not_pending(session: TradeSession) -> TradeResult:
    return TradeResult.fail(
        TradeErrorKind.INVALID_STATE,
        f"Trade is {session.status.value}; offers can only change while pending",
        session.trade_id,
    )


def _not_participant(session: TradeSession, player_id: str) -> TradeResult:
    return TradeResult.fail(
        TradeErrorKind.NOT_A_PARTICIPANT,
        f"Player {player_id} is not part of this trade",
        session.trade_id,
    )


def add_item(
    session: TradeSession,
    player_id: str,
    item: TradeItem,
    registry: SessionRegistry,
) -> TradeResult:
    if session.status != TradeStatus.PENDING:
        return _not_pending(session)

    if registry.is_item_globally_locked(item.item_id):
        return TradeResult.fail(
            TradeErrorKind.ITEM_CONFLICT,
            "Item is locked in another trade",
            session.trade_id,
            item_id=item.item_id,
        )

    offer = session.offer_for(player_id)
    if offer is None:
        return _not_participant(session, player_id)

    if offer.has_item(item.item_id):
        return TradeResult.fail(
            TradeErrorKind.ITEM_CONFLICT,
            "Item is already in your offer",
            session.trade_id,
            item_id=item.item_id,
        )

    offer.items.append(item)
    offer.confirmed = False
    logger.debug("Trade %s: %s offered %s", session.trade_id, player_id, item.item_id)
    return TradeResult.ok("Item added to offer", session.trade_id, item_id=item.item_id)


def remove_item(session: TradeSession, player_id: str, item_id: str) -> TradeResult:
    if session.status != TradeStatus.PENDING:
        return _not_pending(session)

    offer = session.offer_for(player_id)
    if offer is None:
        return _not_participant(session, player_id)

    for index, item in enumerate(offer.items):
        if item.item_id == item_id:
            del offer.items[index]
            offer.confirmed = False
            logger.debug("Trade %s: %s withdrew %s", session.trade_id, player_id, item_id)
            return TradeResult.ok("Item removed from offer", session.trade_id, item_id=item_id)

    return TradeResult.fail(
        TradeErrorKind.NOT_FOUND,
        "Item is not in your offer",
        session.trade_id,
        item_id=item_id,
    )


def set_confirmation(session: TradeSession, player_id: str, confirmed: bool) -> TradeResult:
    if session.status != TradeStatus.PENDING:
        return _not_pending(session)

    offer = session.offer_for(player_id)
    if offer is None:
        return _not_participant(session, player_id)

    offer.confirmed = confirmed
    return TradeResult.ok(
        "Trade confirmed" if confirmed else "Confirmation removed",
        session.trade_id,
        confirmed=confirmed,
    )
