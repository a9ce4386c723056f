"""
Exchange executor.

Performs the two-way transfer of a locked session:
1. Remove every item in offer A from player A
2. Remove every item in offer B from player B
3. Insert A's items into B's inventory under fresh IDs
4. Insert B's items into A's inventory under fresh IDs

The sequence runs inside one inventory-store transaction. If the store
fails part-way, whatever already moved is put back and the session is
cancelled; a trade never settles partially.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional, Tuple

from henhouse.inventory.items import ItemRecord, fresh_copy
from henhouse.inventory.store import InventoryError, InventoryStore
from henhouse.trading.janitor import REASON_LOCK_TIMEOUT, cancel_session
from henhouse.trading.models import (
    TradeErrorKind,
    TradeItem,
    TradeSession,
    TradeStatus,
    TransferResult,
)
from henhouse.trading.registry import SessionRegistry
from henhouse.trading.settings import TradeSettings
from henhouse.trading.validation import validate_session

logger = logging.getLogger("henhouse.trading")


def _remove_offer(
    store: InventoryStore,
    owner_id: str,
    items: List[TradeItem],
    removed: List[Tuple[str, TradeItem, ItemRecord]],
) -> List[Tuple[TradeItem, ItemRecord]]:
    taken = []
    for item in items:
        original = store.find_item(owner_id, item.item_id, item.item_type)
        snapshot = copy.deepcopy(original)
        record = store.remove_item(owner_id, item.item_id, item.item_type)
        if record is None:
            raise InventoryError(f"Item {item.item_id} vanished from {owner_id} during transfer")
        removed.append((owner_id, item, snapshot))
        taken.append((item, record))
    return taken


def _deliver(
    store: InventoryStore,
    session: TradeSession,
    donor_id: str,
    recipient_id: str,
    taken: List[Tuple[TradeItem, ItemRecord]],
    now: float,
    inserted: List[Tuple[str, TradeItem]],
) -> Tuple[List[TradeItem], List[Dict[str, Any]]]:
    received = []
    transfers = []
    for item, record in taken:
        new_record = fresh_copy(record, item.item_type, store.generate_id(), now)
        new_id = store.insert_item(recipient_id, new_record, item.item_type)
        delivered = TradeItem(item_type=item.item_type, item_id=new_id, item_data=new_record.to_dict())
        inserted.append((recipient_id, delivered))
        received.append(delivered)
        transfers.append({
            "trade_id": session.trade_id,
            "from_player": donor_id,
            "to_player": recipient_id,
            "item_type": item.item_type.value,
            "donor_item_id": item.item_id,
            "new_item_id": new_id,
            "rarity": record.rarity,
        })
    return received, transfers


def _rollback(
    store: InventoryStore,
    removed: List[Tuple[str, TradeItem, ItemRecord]],
    inserted: List[Tuple[str, TradeItem]],
) -> None:
    for recipient_id, delivered in reversed(inserted):
        store.remove_item(recipient_id, delivered.item_id, delivered.item_type)
    for owner_id, item, snapshot in reversed(removed):
        store.insert_item(owner_id, snapshot, item.item_type)


def _fail(
    session: TradeSession,
    registry: SessionRegistry,
    kind: TradeErrorKind,
    message: str,
    missing: Optional[List[str]] = None,
) -> TransferResult:
    cancel_session(session, registry, message)
    return TransferResult(False, message, kind, missing_item_ids=missing or [])


def execute_transfer(
    session: TradeSession,
    store: InventoryStore,
    registry: SessionRegistry,
    now: float,
    settings: TradeSettings,
) -> TransferResult:
    if session.status != TradeStatus.LOCKED:
        return TransferResult(False, "Trade must be locked before execution", TradeErrorKind.INVALID_STATE)

    if session.locked_at is not None and now - session.locked_at > settings.lock_timeout:
        return _fail(session, registry, TradeErrorKind.EXPIRED, REASON_LOCK_TIMEOUT)

    with store.transaction():
        validation = validate_session(session, store, now, settings.trade_timeout)
        if not validation.valid:
            return _fail(session, registry, validation.error_kind, validation.message, validation.missing_item_ids)

        removed: List[Tuple[str, TradeItem, ItemRecord]] = []
        inserted: List[Tuple[str, TradeItem]] = []
        try:
            taken_a = _remove_offer(store, session.party_a, session.offer_a.items, removed)
            taken_b = _remove_offer(store, session.party_b, session.offer_b.items, removed)
            b_received, a_to_b = _deliver(store, session, session.party_a, session.party_b, taken_a, now, inserted)
            a_received, b_to_a = _deliver(store, session, session.party_b, session.party_a, taken_b, now, inserted)
        except Exception as e:
            logger.exception("Trade %s failed mid-transfer; rolling back", session.trade_id)
            try:
                _rollback(store, removed, inserted)
            except Exception:
                logger.exception("Trade %s rollback incomplete", session.trade_id)
            return _fail(session, registry, TradeErrorKind.INVALID_STATE, f"Inventory failure: {e}")

    session.status = TradeStatus.COMPLETED
    session.locked_item_ids = set()
    registry.release(session)
    logger.info(
        "Trade %s completed: %d item(s) to %s, %d item(s) to %s",
        session.trade_id, len(a_received), session.party_a, len(b_received), session.party_b,
    )
    return TransferResult(
        success=True,
        message="Trade completed successfully",
        party_a_received=a_received,
        party_b_received=b_received,
        transfers=a_to_b + b_to_a,
    )
