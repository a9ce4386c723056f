"""
Trade service.

The entry point for every player trade intent: requests, offer changes,
confirmation, locking, execution, cancellation and disconnects. Each
mutating call runs under the lock of the one session it touches, so calls
on different sessions proceed in parallel while calls on the same session
are serialized.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from henhouse.inventory.store import InventoryStore
from henhouse.ledger.transfers import TransferLedger
from henhouse.trading import negotiation
from henhouse.trading.executor import execute_transfer
from henhouse.trading.janitor import SessionJanitor
from henhouse.trading.locking import lock_session
from henhouse.trading.models import (
    TradeError,
    TradeErrorKind,
    TradeItem,
    TradeResult,
    TradeSession,
    TradeStatus,
)
from henhouse.trading.registry import SessionRegistry
from henhouse.trading.settings import TradeSettings

logger = logging.getLogger("henhouse.trading")

REASON_PLAYER_CANCELLED = "Player cancelled"


@dataclass
class TradeRequest:
    from_player: str
    to_player: str
    requested_at: float

    def to_dict(self) -> dict:
        return {
            "from_player": self.from_player,
            "to_player": self.to_player,
            "requested_at": self.requested_at,
        }


class TradeService:
    """Coordinates trade sessions between players."""

    def __init__(
        self,
        store: InventoryStore,
        settings: Optional[TradeSettings] = None,
        clock: Callable[[], float] = time.time,
        on_event: Optional[Callable[[dict], None]] = None,
        transfers: Optional[TransferLedger] = None,
    ) -> None:
        self.store = store
        self.settings = settings or TradeSettings()
        self.clock = clock
        self.registry = SessionRegistry(clock=clock)
        self.transfers = transfers or TransferLedger()
        self.janitor = SessionJanitor(
            self.registry,
            self.settings,
            on_cancel=self._on_session_cancelled,
            on_sweep=self.expire_requests,
        )
        self._on_event = on_event  # callback for appending to the event ledger
        self._requests: Dict[str, TradeRequest] = {}  # target player -> request
        self._requests_lock = threading.Lock()

    # ── Lifecycle ─────────────────────────────────────────────────────────

    def start(self) -> None:
        self.janitor.start()

    def stop(self) -> None:
        self.janitor.stop()

    def reset(self) -> None:
        self.registry.reset()
        with self._requests_lock:
            self._requests = {}

    # ── Events ────────────────────────────────────────────────────────────

    def _emit(
        self,
        event_type: str,
        trade_id: Optional[str],
        player_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        success: bool = True,
        error: Optional[str] = None,
    ) -> None:
        if not self._on_event:
            return
        self._on_event({
            "event_type": event_type,
            "trade_id": trade_id,
            "player_id": player_id,
            "success": success,
            "details": details or {},
            "error": error,
        })

    def _emit_update(self, session: TradeSession, player_id: Optional[str]) -> None:
        self._emit("trade_updated", session.trade_id, player_id, {
            "offer_a": session.offer_a.to_dict(),
            "offer_b": session.offer_b.to_dict(),
            "status": session.status.value,
        })

    def _on_session_cancelled(self, session: TradeSession, reason: str) -> None:
        self._emit("trade_cancelled", session.trade_id, None, {
            "party_a": session.party_a,
            "party_b": session.party_b,
            "reason": reason,
        })

    # ── Queries ───────────────────────────────────────────────────────────

    def get_session(self, trade_id: str) -> Optional[TradeSession]:
        return self.registry.get_session(trade_id)

    def get_active_session_for_player(self, player_id: str) -> Optional[TradeSession]:
        return self.registry.get_active_session_for_player(player_id)

    def get_current_trade(self, player_id: str) -> Optional[dict]:
        session = self.registry.get_active_session_for_player(player_id)
        return session.to_dict() if session else None

    def get_partner_info(self, player_id: str) -> Optional[Dict[str, str]]:
        session = self.registry.get_active_session_for_player(player_id)
        if session is None:
            return None
        return {"partner_id": session.partner_of(player_id)}

    def is_item_locked(self, item_id: str) -> bool:
        return self.registry.is_item_globally_locked(item_id)

    def active_session_count(self) -> int:
        return self.registry.active_session_count()

    def summary(self, trade_id: str) -> Optional[str]:
        session = self.registry.get_session(trade_id)
        return session.summary() if session else None

    # ── Sessions and requests ─────────────────────────────────────────────

    def create_session(self, party_a: str, party_b: str) -> TradeResult:
        try:
            session = self.registry.create_session(party_a, party_b)
        except TradeError as e:
            return TradeResult.fail(e.kind, e.message)
        self._emit("trade_started", session.trade_id, party_a, {
            "party_a": party_a,
            "party_b": party_b,
        })
        return TradeResult.ok("Trade started", session.trade_id, party_a=party_a, party_b=party_b)

    def _request_expired(self, request: TradeRequest, now: float) -> bool:
        return now - request.requested_at > self.settings.request_timeout

    def request_trade(self, from_player: str, to_player: str) -> TradeResult:
        if from_player == to_player:
            return TradeResult.fail(TradeErrorKind.SELF_TRADE, "Cannot trade with yourself")

        if self.store.get_inventory(from_player) is None:
            return TradeResult.fail(TradeErrorKind.NOT_FOUND, "Player not found")
        if self.store.get_inventory(to_player) is None:
            return TradeResult.fail(TradeErrorKind.NOT_FOUND, "Target player not found")

        if self.registry.get_active_session_for_player(from_player):
            return TradeResult.fail(TradeErrorKind.BUSY, "You are already in a trade")
        if self.registry.get_active_session_for_player(to_player):
            return TradeResult.fail(TradeErrorKind.BUSY, "Target player is already in a trade")

        now = self.clock()
        with self._requests_lock:
            existing = self._requests.get(to_player)
            if existing and existing.from_player == from_player and not self._request_expired(existing, now):
                return TradeResult.fail(TradeErrorKind.BUSY, "Trade request already pending")
            self._requests[to_player] = TradeRequest(from_player, to_player, now)

        self._emit("trade_requested", None, from_player, {"to_player": to_player})
        return TradeResult.ok("Trade request sent", to_player=to_player)

    def accept_trade(self, accepting_player: str, from_player: str) -> TradeResult:
        now = self.clock()
        with self._requests_lock:
            request = self._requests.get(accepting_player)
            if request is None or request.from_player != from_player:
                return TradeResult.fail(TradeErrorKind.NOT_FOUND, "No pending request from that player")
            del self._requests[accepting_player]

        if self._request_expired(request, now):
            return TradeResult.fail(TradeErrorKind.EXPIRED, "Trade request expired")

        return self.create_session(from_player, accepting_player)

    def decline_trade(self, declining_player: str, from_player: str) -> TradeResult:
        with self._requests_lock:
            request = self._requests.get(declining_player)
            if request is None or request.from_player != from_player:
                return TradeResult.fail(TradeErrorKind.NOT_FOUND, "No pending request from that player")
            del self._requests[declining_player]

        self._emit("trade_request_declined", None, declining_player, {"from_player": from_player})
        return TradeResult.ok("Trade request declined")

    def get_pending_request(self, player_id: str) -> Dict[str, Any]:
        now = self.clock()
        with self._requests_lock:
            request = self._requests.get(player_id)
            if request is not None and self._request_expired(request, now):
                del self._requests[player_id]
                request = None
        if request is None:
            return {"has_pending": False, "from_player_id": None}
        return {"has_pending": True, "from_player_id": request.from_player}

    def expire_requests(self, now: Optional[float] = None) -> int:
        now = self.clock() if now is None else now
        with self._requests_lock:
            expired = [pid for pid, req in self._requests.items() if self._request_expired(req, now)]
            for player_id in expired:
                del self._requests[player_id]
        return len(expired)

    # ── Offer negotiation ─────────────────────────────────────────────────

    def _player_session(self, player_id: str) -> TradeSession:
        session = self.registry.get_active_session_for_player(player_id)
        if session is None:
            raise TradeError(TradeErrorKind.NOT_FOUND, "Not in a trade")
        return session

    def add_item(self, player_id: str, item: TradeItem) -> TradeResult:
        try:
            session = self._player_session(player_id)
            lock = self.registry.session_lock(session.trade_id)
        except TradeError as e:
            return TradeResult.fail(e.kind, e.message)

        record = self.store.find_item(player_id, item.item_id, item.item_type)
        if record is None:
            return TradeResult.fail(
                TradeErrorKind.MISSING_ITEMS,
                "You don't own this item",
                session.trade_id,
                item_id=item.item_id,
            )
        offered = TradeItem(item_type=item.item_type, item_id=item.item_id, item_data=record.to_dict())

        with lock:
            result = negotiation.add_item(session, player_id, offered, self.registry)
            if result.success:
                self._emit_update(session, player_id)
        return result

    def remove_item(self, player_id: str, item_id: str) -> TradeResult:
        try:
            session = self._player_session(player_id)
            lock = self.registry.session_lock(session.trade_id)
        except TradeError as e:
            return TradeResult.fail(e.kind, e.message)

        with lock:
            result = negotiation.remove_item(session, player_id, item_id)
            if result.success:
                self._emit_update(session, player_id)
        return result

    def set_confirmation(self, player_id: str, confirmed: bool) -> TradeResult:
        try:
            session = self._player_session(player_id)
            lock = self.registry.session_lock(session.trade_id)
        except TradeError as e:
            return TradeResult.fail(e.kind, e.message)

        with lock:
            result = negotiation.set_confirmation(session, player_id, confirmed)
            if not result.success:
                return result
            self._emit_update(session, player_id)

            if self.settings.auto_complete and session.both_confirmed():
                completion = self._complete(session)
                if not completion.success:
                    if session.status == TradeStatus.PENDING:
                        # Lock refused: players renegotiate from unconfirmed offers
                        session.offer_a.confirmed = False
                        session.offer_b.confirmed = False
                        self._emit_update(session, None)
                return completion
        return result

    # ── Locking and execution ─────────────────────────────────────────────

    def _lock(self, session: TradeSession) -> TradeResult:
        result = lock_session(
            session, self.store, self.registry, self.clock(), self.settings.trade_timeout,
        )
        if result.success:
            self._emit("trade_locked", session.trade_id, None, {
                "locked_item_ids": sorted(session.locked_item_ids),
            })
        return result

    def _execute(self, session: TradeSession) -> TradeResult:
        transfer = execute_transfer(session, self.store, self.registry, self.clock(), self.settings)
        if not transfer.success:
            if session.status == TradeStatus.CANCELLED:
                self._on_session_cancelled(session, transfer.message)
            return TradeResult.fail(
                transfer.error_kind,
                transfer.message,
                session.trade_id,
                missing_item_ids=transfer.missing_item_ids,
            )

        for tx in transfer.transfers:
            self.transfers.record_transfer(**tx)
            self._emit("item_transferred", session.trade_id, tx["to_player"], tx)
        self._emit("trade_completed", session.trade_id, None, transfer.to_dict())
        return TradeResult.ok("Trade completed", session.trade_id, transfer=transfer.to_dict())

    def _complete(self, session: TradeSession) -> TradeResult:
        locked = self._lock(session)
        if not locked.success:
            return locked
        return self._execute(session)

    def _with_trade(self, trade_id: str, action: Callable[[TradeSession], TradeResult]) -> TradeResult:
        try:
            session = self.registry.require(trade_id)
            lock = self.registry.session_lock(trade_id)
        except TradeError as e:
            return TradeResult.fail(e.kind, e.message, trade_id)
        with lock:
            return action(session)

    def _with_participant(self, player_id: str, action: Callable[[TradeSession], TradeResult]) -> TradeResult:
        try:
            session = self._player_session(player_id)
        except TradeError as e:
            return TradeResult.fail(e.kind, e.message)
        return self._with_trade(session.trade_id, action)

    def lock(self, trade_id: str) -> TradeResult:
        return self._with_trade(trade_id, self._lock)

    def execute(self, trade_id: str) -> TradeResult:
        return self._with_trade(trade_id, self._execute)

    def complete_trade(self, trade_id: str) -> TradeResult:
        return self._with_trade(trade_id, self._complete)

    def request_lock(self, player_id: str) -> TradeResult:
        return self._with_participant(player_id, self._lock)

    def execute_for(self, player_id: str) -> TradeResult:
        return self._with_participant(player_id, self._execute)

    # ── Cancellation ──────────────────────────────────────────────────────

    def cancel(self, trade_id: str, reason: str = REASON_PLAYER_CANCELLED) -> TradeResult:
        session = self.registry.get_session(trade_id)
        if session is None:
            return TradeResult.fail(TradeErrorKind.NOT_FOUND, f"Unknown trade: {trade_id}", trade_id)
        return self.janitor.cancel(session, reason)

    def cancel_trade(self, player_id: str) -> TradeResult:
        session = self.registry.get_active_session_for_player(player_id)
        if session is None:
            return TradeResult.fail(TradeErrorKind.NOT_FOUND, "Not in a trade")
        result = self.janitor.cancel(session, REASON_PLAYER_CANCELLED)
        if result.success:
            result.details["cancelled_by"] = player_id
        return result

    def on_disconnect(self, player_id: str) -> TradeResult:
        """Cancel the player's trade and drop their requests. Repeat calls are no-ops."""
        session = self.janitor.on_disconnect(player_id)

        with self._requests_lock:
            stale = [
                target for target, req in self._requests.items()
                if target == player_id or req.from_player == player_id
            ]
            for target in stale:
                del self._requests[target]

        if session is None:
            return TradeResult.ok("No active trade", cancelled=False)
        return TradeResult.ok("Trade cancelled", session.trade_id, cancelled=True, partner_id=session.partner_of(player_id))

    def sweep(self, now: Optional[float] = None) -> Dict[str, int]:
        return self.janitor.sweep(now)

    def pending_requests(self) -> List[dict]:
        with self._requests_lock:
            return [req.to_dict() for req in self._requests.values()]
