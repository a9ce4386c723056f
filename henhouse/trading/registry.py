"""
Trade session registry.

Owns every live session plus two indexes: player -> active session and
item -> locking session. The registry lock only guards these maps; it is
never held while a session lock is being acquired or an inventory is read.
"""

from __future__ import annotations

import logging
import secrets
import threading
import time
from typing import Callable, Dict, List, Optional, Set

from henhouse.trading.models import TradeError, TradeErrorKind, TradeSession, TradeStatus

logger = logging.getLogger("henhouse.trading")


class SessionRegistry:
    """Process-wide store of trade sessions."""

    MAX_ID_ATTEMPTS = 8

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self.clock = clock
        self._lock = threading.Lock()
        self._sessions: Dict[str, TradeSession] = {}
        self._session_locks: Dict[str, threading.RLock] = {}
        self._player_index: Dict[str, str] = {}  # player_id -> trade_id
        self._locked_items: Dict[str, str] = {}  # item_id -> trade_id
        self._claims: Dict[str, Set[str]] = {}  # trade_id -> item_ids
        self._next_id: int = 0

    def _generate_trade_id(self) -> str:
        for _ in range(self.MAX_ID_ATTEMPTS):
            self._next_id += 1
            trade_id = f"trade_{self._next_id:08d}_{secrets.token_hex(8)}"
            if trade_id not in self._sessions:
                return trade_id
        raise TradeError(TradeErrorKind.BUSY, "Could not allocate a trade ID")

    def create_session(self, party_a: str, party_b: str) -> TradeSession:
        if party_a == party_b:
            raise TradeError(TradeErrorKind.SELF_TRADE, "Cannot trade with yourself")

        with self._lock:
            for player_id in (party_a, party_b):
                if self._active_trade_id(player_id) is not None:
                    raise TradeError(TradeErrorKind.BUSY, f"Player {player_id} is already in a trade")

            session = TradeSession(
                trade_id=self._generate_trade_id(),
                party_a=party_a,
                party_b=party_b,
                started_at=self.clock(),
            )
            self._sessions[session.trade_id] = session
            self._session_locks[session.trade_id] = threading.RLock()
            self._player_index[party_a] = session.trade_id
            self._player_index[party_b] = session.trade_id

        logger.info("Trade %s created between %s and %s", session.trade_id, party_a, party_b)
        return session

    def get_session(self, trade_id: str) -> Optional[TradeSession]:
        with self._lock:
            return self._sessions.get(trade_id)

    def require(self, trade_id: str) -> TradeSession:
        session = self.get_session(trade_id)
        if session is None:
            raise TradeError(TradeErrorKind.NOT_FOUND, f"Unknown trade: {trade_id}")
        return session

    def session_lock(self, trade_id: str) -> threading.RLock:
        with self._lock:
            lock = self._session_locks.get(trade_id)
        if lock is None:
            raise TradeError(TradeErrorKind.NOT_FOUND, f"Unknown trade: {trade_id}")
        return lock

    def _active_trade_id(self, player_id: str) -> Optional[str]:
        # Caller holds self._lock
        trade_id = self._player_index.get(player_id)
        if trade_id is None:
            return None
        session = self._sessions.get(trade_id)
        if session is None or not session.is_active():
            del self._player_index[player_id]
            return None
        return trade_id

    def get_active_session_for_player(self, player_id: str) -> Optional[TradeSession]:
        with self._lock:
            trade_id = self._active_trade_id(player_id)
            return self._sessions.get(trade_id) if trade_id else None

    def is_item_globally_locked(self, item_id: str) -> bool:
        with self._lock:
            trade_id = self._locked_items.get(item_id)
            if trade_id is None:
                return False
            session = self._sessions.get(trade_id)
            return session is not None and session.status == TradeStatus.LOCKED

    def claim_items(self, session: TradeSession, item_ids: List[str]) -> List[str]:
        """
        Record item_ids as locked by session, all or nothing.

        Returns the IDs already held by another locked session; when that
        list is non-empty nothing is claimed.
        """
        with self._lock:
            conflicts = [
                item_id for item_id in item_ids
                if self._locked_items.get(item_id, session.trade_id) != session.trade_id
            ]
            if conflicts:
                return conflicts
            for item_id in item_ids:
                self._locked_items[item_id] = session.trade_id
            self._claims.setdefault(session.trade_id, set()).update(item_ids)
            return []

    def _drop_claims(self, trade_id: str) -> None:
        # Caller holds self._lock
        for item_id in self._claims.pop(trade_id, ()):
            if self._locked_items.get(item_id) == trade_id:
                del self._locked_items[item_id]

    def release(self, session: TradeSession) -> None:
        """Drop the indexes held by a session that has become terminal."""
        with self._lock:
            self._drop_claims(session.trade_id)
            for player_id in (session.party_a, session.party_b):
                if self._player_index.get(player_id) == session.trade_id:
                    del self._player_index[player_id]

    def remove(self, trade_id: str) -> Optional[TradeSession]:
        with self._lock:
            session = self._sessions.pop(trade_id, None)
            self._session_locks.pop(trade_id, None)
            self._drop_claims(trade_id)
            if session is not None:
                for player_id in (session.party_a, session.party_b):
                    if self._player_index.get(player_id) == trade_id:
                        del self._player_index[player_id]
        if session is not None:
            logger.debug("Trade %s removed from registry", trade_id)
        return session

    def sessions(self) -> List[TradeSession]:
        with self._lock:
            return list(self._sessions.values())

    def active_session_count(self) -> int:
        with self._lock:
            return sum(1 for s in self._sessions.values() if s.is_active())

    def count_by_status(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in TradeStatus}
        with self._lock:
            for session in self._sessions.values():
                counts[session.status.value] += 1
        return counts

    def reset(self) -> None:
        with self._lock:
            self._sessions = {}
            self._session_locks = {}
            self._player_index = {}
            self._locked_items = {}
            self._claims = {}
            self._next_id = 0
