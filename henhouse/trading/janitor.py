"""
Session janitor.

Periodically:
1. Cancels pending sessions older than the trade timeout
2. Cancels locked sessions whose execution window has lapsed
3. Removes terminal sessions from the registry
4. Runs any extra sweep hooks (expired trade requests)

Also owns cancellation, including cancellation on disconnect.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Optional

from henhouse.trading.models import (
    TradeError,
    TradeErrorKind,
    TradeResult,
    TradeSession,
    TradeStatus,
)
from henhouse.trading.registry import SessionRegistry
from henhouse.trading.settings import TradeSettings

logger = logging.getLogger("henhouse.janitor")

REASON_DISCONNECT = "Player disconnected"
REASON_TIMEOUT = "Trade session timed out"
REASON_LOCK_TIMEOUT = "Trade lock expired"


def cancel_session(session: TradeSession, registry: SessionRegistry, reason: str) -> TradeResult:
    """Cancel a pending or locked session. Inventories are never touched."""
    if session.status.is_terminal():
        return TradeResult.fail(
            TradeErrorKind.INVALID_STATE,
            f"Trade already {session.status.value}",
            session.trade_id,
        )

    session.status = TradeStatus.CANCELLED
    session.locked_item_ids = set()
    session.cancel_reason = reason
    registry.release(session)
    logger.info("Trade %s cancelled: %s", session.trade_id, reason)
    return TradeResult.ok("Trade cancelled", session.trade_id, reason=reason)


class SessionJanitor:
    """
    Reclaims finished and expired sessions.
    Runs on its own daemon thread, or synchronously via sweep().
    """

    def __init__(
        self,
        registry: SessionRegistry,
        settings: TradeSettings,
        on_cancel: Optional[Callable[[TradeSession, str], None]] = None,
        on_sweep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.registry = registry
        self.settings = settings
        self._on_cancel = on_cancel  # callback for the event ledger
        self._on_sweep = on_sweep
        self._running = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._sweep_loop, daemon=True)
        self._thread.start()
        logger.info("Session janitor started. Sweep interval: %.1fs", self.settings.sweep_interval)

    def stop(self) -> None:
        self._running = False
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5.0)
            self._thread = None
        logger.info("Session janitor stopped.")

    def _sweep_loop(self) -> None:
        while self._running:
            try:
                self.sweep()
            except Exception:
                logger.exception("Error sweeping trade sessions")
            self._stop_event.wait(timeout=self.settings.sweep_interval)

    def cancel(self, session: TradeSession, reason: str) -> TradeResult:
        try:
            lock = self.registry.session_lock(session.trade_id)
        except TradeError as e:
            return TradeResult.fail(e.kind, e.message, session.trade_id)
        with lock:
            result = cancel_session(session, self.registry, reason)
        if result.success and self._on_cancel:
            self._on_cancel(session, reason)
        return result

    def on_disconnect(self, player_id: str) -> Optional[TradeSession]:
        """Cancel the player's active trade, if any. Safe to call repeatedly."""
        session = self.registry.get_active_session_for_player(player_id)
        if session is None:
            return None
        result = self.cancel(session, REASON_DISCONNECT)
        return session if result.success else None

    def sweep(self, now: Optional[float] = None) -> Dict[str, int]:
        now = self.registry.clock() if now is None else now
        stats = {"timed_out": 0, "lock_expired": 0, "removed": 0}

        for session in self.registry.sessions():
            try:
                lock = self.registry.session_lock(session.trade_id)
            except TradeError:
                continue  # removed since the snapshot

            reason = None
            with lock:
                if session.status == TradeStatus.PENDING and now - session.started_at > self.settings.trade_timeout:
                    reason = REASON_TIMEOUT
                    stats["timed_out"] += 1
                elif (
                    session.status == TradeStatus.LOCKED
                    and session.locked_at is not None
                    and now - session.locked_at > self.settings.lock_timeout
                ):
                    reason = REASON_LOCK_TIMEOUT
                    stats["lock_expired"] += 1

                if reason:
                    cancel_session(session, self.registry, reason)

                if session.status.is_terminal():
                    self.registry.remove(session.trade_id)
                    stats["removed"] += 1

            if reason and self._on_cancel:
                self._on_cancel(session, reason)

        if self._on_sweep:
            self._on_sweep(now)

        if stats["removed"]:
            logger.debug(
                "Sweep removed %d session(s) (%d timed out, %d lock expired)",
                stats["removed"], stats["timed_out"], stats["lock_expired"],
            )
        return stats

